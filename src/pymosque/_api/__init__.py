"""Backend endpoint modules."""
