"""Internal constants shared across the library."""

OVERPASS_URL = "https://overpass-api.de/api/interpreter"
USER_AGENT = "pymosque/0.1 (+https://github.com/pymosque/pymosque)"

DEFAULT_RADIUS_M = 1000
DEFAULT_AMENITY = "place_of_worship"
DEFAULT_RELIGION = "muslim"

UNNAMED_LABEL = "unnamed"
SELF_MARKER_KEY = "self"
SELF_MARKER_TITLE = "Your location"

# Error bodies are cut to this many characters in exceptions and logs.
BODY_TRUNCATE = 200

KAABA_LATITUDE = 21.4225
KAABA_LONGITUDE = 39.8262

EARTH_RADIUS_M = 6_371_008.8
