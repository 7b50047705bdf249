"""Extension manifest loading and field extraction.

The extractor targets the VSIX manifest schema version 2 layout::

    <PackageManifest>
      <Metadata>
        <Identity Id="..." Version="..." Publisher="..." />
        <DisplayName>...</DisplayName>
        <Description>...</Description>
        ...

Fields are read by position under the root's first child, not by name. Any
manifest that does not follow this layout fails with ``ManifestStructureError``.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET  # nosec B405 - parsing handled via defusedxml safe APIs
from typing import BinaryIO, Callable, Optional

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import ParseError as DefusedXMLParseError, parse as safe_parse

from . import config_constants, models, resolver
from .exceptions import InvalidManifestError, ManifestStructureError

logger = logging.getLogger(__name__)

ResolveFn = Callable[[str], BinaryIO]

IDENTITY_INDEX = 0
DISPLAY_NAME_INDEX = 1
DESCRIPTION_INDEX = 2


def manifest_locator(archive_path: str) -> str:
    """Return the composite locator of the manifest inside ``archive_path``."""
    return resolver.build_locator(archive_path, config_constants.MANIFEST_FILENAME)


def _child(parent: ET.Element, index: int, archive_path: str) -> ET.Element:
    children = list(parent)
    if index >= len(children):
        raise ManifestStructureError(
            archive_path, f"child element at position {index} under <{_local_name(parent.tag)}>"
        )
    return children[index]


def _attribute(element: ET.Element, name: str, archive_path: str) -> str:
    value = element.get(name)
    if value is None:
        raise ManifestStructureError(
            archive_path, f"'{name}' attribute on <{_local_name(element.tag)}>"
        )
    return value


def _text(element: ET.Element) -> str:
    return "".join(element.itertext())


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def extract_metadata(root: Optional[ET.Element], archive_path: str) -> models.ExtensionMetadata:
    """Pluck the five gallery fields out of a parsed manifest.

    Raises:
        InvalidManifestError: If the document has no root or the root has no children
        ManifestStructureError: If an element or attribute is missing at its fixed position
    """
    if root is None or len(root) == 0:
        raise InvalidManifestError(archive_path, "Invalid XML syntax in extension.vsixmanifest")

    metadata_el = root[0]
    identity = _child(metadata_el, IDENTITY_INDEX, archive_path)

    return models.ExtensionMetadata(
        id=_attribute(identity, "Id", archive_path),
        version=_attribute(identity, "Version", archive_path),
        publisher=_attribute(identity, "Publisher", archive_path),
        display_name=_text(_child(metadata_el, DISPLAY_NAME_INDEX, archive_path)),
        description=_text(_child(metadata_el, DESCRIPTION_INDEX, archive_path)),
    )


def load_extension_metadata(
    archive_path: str, resolve_fn: Optional[ResolveFn] = None
) -> models.ExtensionMetadata:
    """Read the manifest of the extension package at ``archive_path``.

    Args:
        archive_path: Path or URL of the extension package
        resolve_fn: Resolver for the composite locator (``resolver.resolve`` by default)

    Returns:
        The extension's metadata

    Raises:
        InvalidManifestError: If the manifest is not well-formed XML or is empty
        ManifestStructureError: If the manifest does not follow the expected layout
        ArchiveEntryNotFoundError: If the package has no manifest
    """
    resolve_fn = resolve_fn or resolver.resolve
    with resolve_fn(manifest_locator(archive_path)) as stream:
        try:
            document = safe_parse(stream)
        except (DefusedXMLParseError, DefusedXmlException) as exc:
            raise InvalidManifestError(
                archive_path, f"Unable to load extension.vsixmanifest ({exc})"
            ) from exc

    metadata = extract_metadata(document.getroot(), archive_path)
    logger.debug(f"Loaded manifest for {metadata.id} {metadata.version} from {archive_path}")
    return metadata
