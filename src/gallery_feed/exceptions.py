"""Custom exceptions for gallery_feed.

Exception Hierarchy:
    GalleryFeedError (base)
    ├── LocatorFormatError - Malformed ``vsix:`` composite locator
    ├── ArchiveEntryNotFoundError - Named entry missing from a container
    ├── ArchiveReadError - Container could not be opened as a zip archive
    ├── InvalidManifestError - Manifest missing, empty or not well-formed
    ├── ManifestStructureError - Manifest lacks an element/attribute at a fixed position
    ├── StreamCloseError - One or more chained resources failed to close
    └── CommandLineError - Command-line arguments could not be parsed

Network and filesystem failures are not wrapped: they surface as
``requests.RequestException`` and ``OSError`` respectively.
"""

from typing import List, Optional


class GalleryFeedError(Exception):
    """Base exception for all gallery_feed errors."""


class LocatorFormatError(GalleryFeedError, ValueError):
    """Raised when a composite locator does not match ``vsix:<container>!/<entry>``.

    Attributes:
        identifier: The offending identifier string
    """

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(
            "Vsix URI does not have a '!' between the vsix file path and the path to "
            "the xml within the vsix file, or path to xml does not start with a '/'. "
            f"Vsix URI found was '{identifier}'"
        )


class ArchiveEntryNotFoundError(GalleryFeedError):
    """Raised when a container does not hold the requested entry.

    Attributes:
        entry_path: Normalized path of the entry inside the container
        container: Location of the container that was searched
    """

    def __init__(self, entry_path: str, container: str) -> None:
        self.entry_path = entry_path
        self.container = container
        super().__init__(f"could not find the xml file {entry_path} in the vsix file {container}")


class ArchiveReadError(GalleryFeedError):
    """Raised when a container cannot be read as a zip archive."""

    def __init__(self, container: str, reason: str) -> None:
        self.container = container
        self.reason = reason
        super().__init__(f"Unable to open vsix file {container}: {reason}")


class InvalidManifestError(GalleryFeedError):
    """Raised when an extension manifest cannot be loaded or has no content.

    Attributes:
        archive_path: Path to the extension package the manifest belongs to
    """

    def __init__(self, archive_path: str, message: str) -> None:
        self.archive_path = archive_path
        super().__init__(f"{message} for {archive_path}")


class ManifestStructureError(GalleryFeedError):
    """Raised when a manifest lacks an element or attribute the extractor reads.

    Attributes:
        archive_path: Path to the extension package the manifest belongs to
        missing: Human-readable description of what was expected
    """

    def __init__(self, archive_path: str, missing: str) -> None:
        self.archive_path = archive_path
        self.missing = missing
        super().__init__(f"extension.vsixmanifest in {archive_path} has no {missing}")


class StreamCloseError(GalleryFeedError):
    """Raised when closing a chained stream fails for one or more resources.

    Every resource is closed before this is raised; ``errors`` holds each failure
    in the order the close attempts were made.
    """

    def __init__(self, errors: List[BaseException], message: Optional[str] = None) -> None:
        self.errors = list(errors)
        details = "; ".join(f"{type(exc).__name__}: {exc}" for exc in self.errors)
        super().__init__(message or f"Failed to close {len(self.errors)} resource(s): {details}")


class CommandLineError(GalleryFeedError, ValueError):
    """Raised instead of exiting when command-line arguments cannot be parsed."""
