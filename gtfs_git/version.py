"""Version information."""

VERSION = "0.1.0"
MANIFEST_VERSION = 1
