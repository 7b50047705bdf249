"""Atom document serialization for the gallery feed."""

from __future__ import annotations

import io
import logging
import xml.etree.ElementTree as ET  # nosec B405 - only builds documents; parsing uses defusedxml
from typing import Optional

from defusedxml.ElementTree import parse as safe_parse

from . import config_constants, models

logger = logging.getLogger(__name__)

ATOM_NS = config_constants.ATOM_NAMESPACE
VSIX_NS = config_constants.VSIX_SYNDICATION_NAMESPACE

# Prefixes used when writing; Atom is the default namespace.
_PREFIXES = {ATOM_NS: "", VSIX_NS: "vsx"}


def _atom(tag: str) -> str:
    return f"{{{ATOM_NS}}}{tag}"


def _vsix(tag: str) -> str:
    return f"{{{VSIX_NS}}}{tag}"


def _text_element(parent: ET.Element, tag: str, construct: models.TextConstruct) -> None:
    element = ET.SubElement(parent, _atom(tag), {"type": construct.type})
    element.text = construct.text


def entry_to_element(entry: models.FeedEntry) -> ET.Element:
    """Build the ``<entry>`` element for one extension."""
    element = ET.Element(_atom("entry"))
    ET.SubElement(element, _atom("id")).text = entry.id
    _text_element(element, "title", entry.title)
    _text_element(element, "summary", entry.summary)

    author = ET.SubElement(element, _atom("author"))
    ET.SubElement(author, _atom("name")).text = entry.author.name

    ET.SubElement(element, _atom("category"), {"term": entry.category.term})
    ET.SubElement(
        element, _atom("content"), {"type": entry.content.type, "src": entry.content.src}
    )

    vsix = ET.SubElement(element, _vsix("Vsix"))
    ET.SubElement(vsix, _vsix("Id")).text = entry.vsix.id
    ET.SubElement(vsix, _vsix("Version")).text = entry.vsix.version
    return element


def feed_to_element(feed: models.Feed) -> ET.Element:
    """Build the ``<feed>`` root element, entries in feed order."""
    root = ET.Element(_atom("feed"))
    for entry in feed.entries:
        root.append(entry_to_element(entry))
    return root


def _prefixed_tag(tag: str) -> str:
    if tag[:1] != "{":
        return tag
    uri, local = tag[1:].split("}", 1)
    prefix = _PREFIXES[uri]
    return f"{prefix}:{local}" if prefix else local


def _with_prefixes(element: ET.Element) -> ET.Element:
    copy = ET.Element(_prefixed_tag(element.tag), element.attrib)
    copy.text = element.text
    copy.tail = element.tail
    for child in element:
        copy.append(_with_prefixes(child))
    return copy


def serialize_feed(feed: models.Feed) -> bytes:
    """Serialize ``feed`` to UTF-8 XML with Atom as the default namespace.

    The namespace declarations are written on the root element, so
    ElementTree's process-wide prefix registry is left untouched.
    """
    root = _with_prefixes(feed_to_element(feed))
    root.set("xmlns", ATOM_NS)
    root.set("xmlns:vsx", VSIX_NS)
    tree = ET.ElementTree(root)
    ET.indent(tree)
    buffer = io.BytesIO()
    tree.write(buffer, encoding="utf-8", xml_declaration=True)
    return buffer.getvalue()


def write_feed(feed: models.Feed, path: str) -> None:
    """Write ``feed`` to ``path``, replacing any existing file."""
    data = serialize_feed(feed)
    with open(path, "wb") as handle:
        handle.write(data)
    logger.debug(f"Wrote {len(feed.entries)} entries ({len(data)} bytes) to {path}")


def _find_text(parent: ET.Element, tag: str) -> str:
    element = parent.find(tag)
    if element is None:
        return ""
    return element.text or ""


def _find_attr(parent: ET.Element, tag: str, name: str) -> str:
    element = parent.find(tag)
    if element is None:
        return ""
    return element.get(name, "")


def element_to_entry(element: ET.Element) -> models.FeedEntry:
    """Rebuild a ``FeedEntry`` from an ``<entry>`` element."""
    title: Optional[ET.Element] = element.find(_atom("title"))
    summary: Optional[ET.Element] = element.find(_atom("summary"))
    author = element.find(_atom("author"))
    vsix = element.find(_vsix("Vsix"))
    return models.FeedEntry(
        id=_find_text(element, _atom("id")),
        title=models.TextConstruct(
            type=title.get("type", "") if title is not None else "",
            text=(title.text or "") if title is not None else "",
        ),
        summary=models.TextConstruct(
            type=summary.get("type", "") if summary is not None else "",
            text=(summary.text or "") if summary is not None else "",
        ),
        author=models.Author(name=_find_text(author, _atom("name")) if author is not None else ""),
        category=models.Category(term=_find_attr(element, _atom("category"), "term")),
        content=models.Content(
            type=_find_attr(element, _atom("content"), "type"),
            src=_find_attr(element, _atom("content"), "src"),
        ),
        vsix=models.ExtensionReference(
            id=_find_text(vsix, _vsix("Id")) if vsix is not None else "",
            version=_find_text(vsix, _vsix("Version")) if vsix is not None else "",
        ),
    )


def read_feed(path: str) -> models.Feed:
    """Parse a previously written feed file back into the model."""
    root = safe_parse(path).getroot()
    return models.Feed(entries=[element_to_entry(e) for e in root.findall(_atom("entry"))])
