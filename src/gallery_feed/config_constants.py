"""Configuration constants for gallery_feed.

All constants are re-exported from config.py for convenience.
"""

# General defaults
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_TIMEOUT_SECONDS = 20
DEFAULT_USER_AGENT = "gallery-feed/1.0"
MIN_TIMEOUT_SECONDS = 1

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Environment variable overrides (read after .env is loaded)
ENV_LOG_LEVEL = "GALLERY_FEED_LOG_LEVEL"
ENV_TIMEOUT = "GALLERY_FEED_TIMEOUT"
ENV_USER_AGENT = "GALLERY_FEED_USER_AGENT"

# Gallery layout
FEED_FILENAME = "atom.xml"
MANIFEST_FILENAME = "extension.vsixmanifest"

# Composite locator: vsix:<container>!/<entry>
VSIX_SCHEME = "vsix"
LOCATOR_SEPARATOR = "!"

# Feed document
ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"
VSIX_SYNDICATION_NAMESPACE = "http://schemas.microsoft.com/developer/vsx-syndication-schema/2010"
TEXT_CONTENT_TYPE = "text"
PACKAGE_CONTENT_TYPE = "application/octet-stream"
