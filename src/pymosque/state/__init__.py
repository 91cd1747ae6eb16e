"""Tracking state layer.

This package is the single source of truth for how provider callbacks are
merged into one current position.
"""
