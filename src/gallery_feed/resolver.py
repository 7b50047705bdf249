"""Resolution of ``vsix:`` composite locators to streams inside zip archives.

A composite locator names one entry inside one container::

    vsix:<container-location>!/<path/inside/container>

The container location is a filesystem path, a ``file:`` URI or an HTTP(S)
URL. Identifiers without the ``vsix:`` scheme are handed to the default
resolver unchanged.
"""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional

from . import config_constants, downloader
from .exceptions import ArchiveEntryNotFoundError, ArchiveReadError, LocatorFormatError
from .streams import ChainedStream

logger = logging.getLogger(__name__)

OpenFn = Callable[[str], BinaryIO]

SCHEME_PREFIX = f"{config_constants.VSIX_SCHEME}:"
_ENTRY_SEPARATORS = ("/", "\\")


@dataclass(frozen=True)
class CompositeLocator:
    """Parsed ``vsix:`` locator."""

    container: str
    entry_path: str


def is_composite(identifier: str) -> bool:
    """Return True when ``identifier`` uses the ``vsix:`` scheme."""
    return identifier[: len(SCHEME_PREFIX)].lower() == SCHEME_PREFIX


def build_locator(container: str, entry_path: str) -> str:
    """Build the composite locator for ``entry_path`` inside ``container``."""
    if not entry_path.startswith(_ENTRY_SEPARATORS):
        entry_path = f"/{entry_path}"
    return f"{SCHEME_PREFIX}{container}{config_constants.LOCATOR_SEPARATOR}{entry_path}"


def parse_locator(identifier: str) -> CompositeLocator:
    """Split a ``vsix:`` identifier into container location and entry path.

    Raises:
        LocatorFormatError: If the scheme, the ``!`` separator or the leading
            entry separator is missing, or either part is empty
    """
    if not is_composite(identifier):
        raise LocatorFormatError(identifier)

    remainder = identifier[len(SCHEME_PREFIX) :]
    container, sep, entry_path = remainder.partition(config_constants.LOCATOR_SEPARATOR)
    if not sep or not container or not entry_path.startswith(_ENTRY_SEPARATORS):
        raise LocatorFormatError(identifier)

    entry_path = entry_path[1:]
    if not entry_path:
        raise LocatorFormatError(identifier)
    return CompositeLocator(container=container, entry_path=entry_path)


def open_container(location: str, fetch: Optional[OpenFn] = None) -> BinaryIO:
    """Open the raw byte stream of a container.

    Local references are opened directly; anything else goes through ``fetch``
    (an HTTP download by default).
    """
    if downloader.is_local_reference(location):
        return downloader.open_local(location)
    return (fetch or downloader.open_remote)(location)


def open_entry(locator: CompositeLocator, fetch: Optional[OpenFn] = None) -> ChainedStream:
    """Open the entry named by ``locator`` and return a stream owning all handles.

    Anything opened before a failure is closed again before the error
    propagates.

    Raises:
        ArchiveReadError: If the container is not a readable zip archive
        ArchiveEntryNotFoundError: If the container has no such entry
        OSError: If a local container cannot be opened
        requests.RequestException: If a remote container cannot be fetched
    """
    container_stream: Optional[BinaryIO] = None
    archive: Optional[zipfile.ZipFile] = None
    try:
        container_stream = open_container(locator.container, fetch)
        try:
            archive = zipfile.ZipFile(container_stream)
        except zipfile.BadZipFile as exc:
            raise ArchiveReadError(locator.container, str(exc)) from exc

        try:
            info = archive.getinfo(locator.entry_path)
        except KeyError:
            raise ArchiveEntryNotFoundError(locator.entry_path, locator.container) from None

        entry_stream = archive.open(info)
        return ChainedStream(archive, container_stream, entry_stream, size=info.file_size)
    except BaseException:
        if archive is not None:
            archive.close()
        if container_stream is not None:
            container_stream.close()
        raise


def resolve(
    identifier: str,
    default_resolver: Optional[OpenFn] = None,
    fetch: Optional[OpenFn] = None,
) -> BinaryIO:
    """Resolve ``identifier`` to a readable binary stream.

    ``vsix:`` locators are served from inside the named archive; everything
    else is passed to ``default_resolver`` (``downloader.open_resource`` unless
    given).

    Args:
        identifier: A composite locator or any plain location
        default_resolver: Capability used for non-composite identifiers
        fetch: Capability used to download remote containers

    Returns:
        A binary stream. For composite locators this is a ``ChainedStream``
        that must be closed by the caller.
    """
    if not is_composite(identifier):
        return (default_resolver or downloader.open_resource)(identifier)

    locator = parse_locator(identifier)
    logger.debug(f"Resolving {locator.entry_path} inside {locator.container}")
    return open_entry(locator, fetch)
