"""Shared fixtures and test utilities for gallery_feed tests.

This module contains:
- Test constants
- Builders for manifests, .vsix packages and gallery trees
- Stream doubles that record how they were closed
- Pytest hooks for marker defaults

All test files can import from this module using pytest's conftest.py mechanism.
"""

import io
import os
import sys
import zipfile
from pathlib import Path

import pytest

# Allow running the suite from a checkout without installing the package.
SRC_DIR = Path(__file__).resolve().parent.parent / "src"
if SRC_DIR.is_dir() and str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from gallery_feed import config, models  # noqa: E402

# Test constants
TEST_EXTENSION_ID = "x.y"
TEST_EXTENSION_VERSION = "1.0"
TEST_PUBLISHER = "P"
TEST_DISPLAY_NAME = "X"
TEST_DESCRIPTION = "D"
TEST_MANIFEST_NAME = "extension.vsixmanifest"
TEST_REMOTE_VSIX_URL = "https://gallery.example.com/Tools/x.vsix"
TEST_USER_AGENT = "gallery-feed-tests"
VSIX_MANIFEST_NAMESPACE = "http://schemas.microsoft.com/developer/vsx-schema/2011"

GALLERY_ENV_VARS = ("GALLERY_FEED_LOG_LEVEL", "GALLERY_FEED_TIMEOUT", "GALLERY_FEED_USER_AGENT")


def build_manifest_xml(
    extension_id=TEST_EXTENSION_ID,
    version=TEST_EXTENSION_VERSION,
    publisher=TEST_PUBLISHER,
    display_name=TEST_DISPLAY_NAME,
    description=TEST_DESCRIPTION,
):
    """Build a schema 2.0 extension.vsixmanifest document.

    Returns:
        Manifest XML string
    """
    return f"""<?xml version="1.0" encoding="utf-8"?>
<PackageManifest Version="2.0.0" xmlns="{VSIX_MANIFEST_NAMESPACE}">
  <Metadata>
    <Identity Id="{extension_id}" Version="{version}" Language="en-US" Publisher="{publisher}" />
    <DisplayName>{display_name}</DisplayName>
    <Description xml:space="preserve">{description}</Description>
    <Tags>tools</Tags>
  </Metadata>
  <Installation>
    <InstallationTarget Id="Microsoft.VisualStudio.Community" Version="[17.0,18.0)" />
  </Installation>
</PackageManifest>"""


def build_short_manifest_xml():
    """Build a manifest whose Metadata element has only two children."""
    return f"""<?xml version="1.0" encoding="utf-8"?>
<PackageManifest Version="2.0.0" xmlns="{VSIX_MANIFEST_NAMESPACE}">
  <Metadata>
    <Identity Id="{TEST_EXTENSION_ID}" Version="1.0" Language="en-US" Publisher="P" />
    <DisplayName>X</DisplayName>
  </Metadata>
</PackageManifest>"""


def build_vsix_bytes(manifest_xml=None, extra_entries=None, include_manifest=True):
    """Build the bytes of a .vsix (zip) package.

    Args:
        manifest_xml: Manifest text; defaults to ``build_manifest_xml()``
        extra_entries: Mapping of entry name to bytes/str stored alongside the manifest
        include_manifest: Set False to leave the manifest out

    Returns:
        Zip archive bytes
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        if include_manifest:
            archive.writestr(TEST_MANIFEST_NAME, manifest_xml or build_manifest_xml())
        for name, data in (extra_entries or {}).items():
            archive.writestr(name, data)
    return buffer.getvalue()


def create_vsix(path, **kwargs):
    """Write a .vsix package to ``path`` (parent directories are created).

    Returns:
        The path as a string
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(build_vsix_bytes(**kwargs))
    return str(path)


def create_gallery(root, layout):
    """Create a gallery tree under ``root``.

    Args:
        root: Gallery root directory
        layout: Mapping of category name to mapping of file name to manifest XML
            (``None`` uses the default manifest)

    Returns:
        Dict mapping ``"category/file"`` to the created package path
    """
    created = {}
    for category, packages in layout.items():
        category_dir = Path(root) / category
        category_dir.mkdir(parents=True, exist_ok=True)
        for file_name, manifest_xml in packages.items():
            created[f"{category}/{file_name}"] = create_vsix(
                category_dir / file_name, manifest_xml=manifest_xml
            )
    return created


def create_test_config(**overrides):
    """Create test Config object with defaults.

    Args:
        **overrides: Fields to override from defaults

    Returns:
        config.Config object with test defaults
    """
    defaults = {
        "gallery_path": os.getcwd(),
        "log_level": "INFO",
        "user_agent": TEST_USER_AGENT,
        "timeout": 5,
        "sort_entries": True,
        "dry_run": False,
        "show_progress": False,
    }
    defaults.update(overrides)
    return config.Config(**defaults)


def create_test_metadata(**overrides):
    """Create test ExtensionMetadata object with defaults."""
    defaults = {
        "id": TEST_EXTENSION_ID,
        "version": TEST_EXTENSION_VERSION,
        "publisher": TEST_PUBLISHER,
        "display_name": TEST_DISPLAY_NAME,
        "description": TEST_DESCRIPTION,
    }
    defaults.update(overrides)
    return models.ExtensionMetadata(**defaults)


class TrackingBytesIO(io.BytesIO):
    """BytesIO that counts explicit close() calls."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.close_calls = 0

    def close(self):
        self.close_calls += 1
        super().close()


class FailingCloseStream(io.BytesIO):
    """BytesIO whose close() raises after actually closing."""

    def close(self):
        super().close()
        raise OSError("simulated close failure")


class MockHTTPResponse:
    """Simple mock for streaming HTTP responses."""

    def __init__(self, *, content=b"", url="", headers=None, chunks=None, error=None):
        self.content = content
        self.url = url
        self.headers = headers or {}
        self._chunks = chunks if chunks is not None else [content]
        self._error = error
        self.closed = False

    def raise_for_status(self):
        if self._error is not None:
            raise self._error
        return None

    def iter_content(self, chunk_size=1):
        for chunk in self._chunks:
            yield chunk

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def _isolate_gallery_env(monkeypatch):
    """Keep GALLERY_FEED_* variables from the developer's shell out of tests."""
    for name in GALLERY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_scan_display():
    from gallery_feed import progress

    yield
    progress.set_scan_display(None)


def pytest_collection_modifyitems(config, items):
    """Mark tests under tests/integration as integration and the rest as unit."""
    for item in items:
        path = str(item.path)
        if f"{os.sep}integration{os.sep}" in path:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
