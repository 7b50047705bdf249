"""Data models for the extension gallery feed.

ExtensionMetadata holds what is read out of a package manifest; FeedEntry and
its parts mirror the Atom elements written for each package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class ExtensionMetadata:
    """Fields read from an extension.vsixmanifest document."""

    id: str
    version: str
    publisher: str
    display_name: str
    description: str


@dataclass(frozen=True)
class TextConstruct:
    """Atom text construct (title, summary)."""

    type: str
    text: str


@dataclass(frozen=True)
class Author:
    name: str


@dataclass(frozen=True)
class Category:
    term: str


@dataclass(frozen=True)
class Content:
    """Out-of-line content pointing at the extension package."""

    type: str
    src: str


@dataclass(frozen=True)
class ExtensionReference:
    """The ``Vsix`` element the gallery client uses to match installed extensions."""

    id: str
    version: str


@dataclass(frozen=True)
class FeedEntry:
    """Represents one extension package listed in the gallery feed."""

    id: str
    title: TextConstruct
    summary: TextConstruct
    author: Author
    category: Category
    content: Content
    vsix: ExtensionReference


@dataclass
class Feed:
    """Ordered collection of entries, in gallery enumeration order."""

    entries: List[FeedEntry] = field(default_factory=list)
