#!/usr/bin/env python3
"""Tests for manifest loading and metadata extraction."""

import io
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import defusedxml.ElementTree as SafeET

# Add tests directory to path for conftest import
tests_dir = Path(__file__).resolve().parents[2]
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from conftest import (  # noqa: F401, E402
    build_manifest_xml,
    build_short_manifest_xml,
    create_test_metadata,
    create_vsix,
    TEST_MANIFEST_NAME,
    TrackingBytesIO,
    VSIX_MANIFEST_NAMESPACE,
)

from gallery_feed import manifest  # noqa: E402
from gallery_feed.exceptions import (  # noqa: E402
    ArchiveEntryNotFoundError,
    InvalidManifestError,
    ManifestStructureError,
)


def _root(xml_text):
    return SafeET.fromstring(xml_text)


class TestManifestLocator(unittest.TestCase):
    def test_locator_points_at_manifest(self):
        self.assertEqual(
            manifest.manifest_locator("/srv/gallery/Tools/a.vsix"),
            f"vsix:/srv/gallery/Tools/a.vsix!/{TEST_MANIFEST_NAME}",
        )


class TestExtractMetadata(unittest.TestCase):
    """Tests for extract_metadata."""

    def test_extracts_all_fields(self):
        metadata = manifest.extract_metadata(_root(build_manifest_xml()), "a.vsix")
        self.assertEqual(metadata, create_test_metadata())

    def test_fields_read_by_position(self):
        xml_text = f"""<PackageManifest xmlns="{VSIX_MANIFEST_NAMESPACE}">
  <Metadata>
    <Identity Id="pos.id" Version="2.5" Publisher="Pub" />
    <Name>Second Child</Name>
    <Notes>Third Child</Notes>
  </Metadata>
</PackageManifest>"""
        metadata = manifest.extract_metadata(_root(xml_text), "a.vsix")
        self.assertEqual(metadata.display_name, "Second Child")
        self.assertEqual(metadata.description, "Third Child")

    def test_description_includes_nested_text(self):
        xml_text = """<Root><Meta>
<Identity Id="i" Version="1" Publisher="p" />
<DisplayName>Name</DisplayName>
<Description>Fast <b>and</b> small</Description>
</Meta></Root>"""
        metadata = manifest.extract_metadata(_root(xml_text), "a.vsix")
        self.assertEqual(metadata.description, "Fast and small")

    def test_empty_text_elements(self):
        xml_text = """<Root><Meta>
<Identity Id="i" Version="1" Publisher="p" />
<DisplayName />
<Description></Description>
</Meta></Root>"""
        metadata = manifest.extract_metadata(_root(xml_text), "a.vsix")
        self.assertEqual(metadata.display_name, "")
        self.assertEqual(metadata.description, "")

    def test_only_two_metadata_children(self):
        with self.assertRaises(ManifestStructureError) as ctx:
            manifest.extract_metadata(_root(build_short_manifest_xml()), "short.vsix")
        self.assertEqual(ctx.exception.archive_path, "short.vsix")
        self.assertIn("position 2", str(ctx.exception))
        self.assertIn("short.vsix", str(ctx.exception))

    def test_missing_attribute(self):
        xml_text = """<Root><Meta>
<Identity Id="i" Version="1" />
<DisplayName>n</DisplayName>
<Description>d</Description>
</Meta></Root>"""
        with self.assertRaises(ManifestStructureError) as ctx:
            manifest.extract_metadata(_root(xml_text), "a.vsix")
        self.assertIn("Publisher", ctx.exception.missing)

    def test_root_without_children(self):
        with self.assertRaises(InvalidManifestError) as ctx:
            manifest.extract_metadata(_root("<PackageManifest/>"), "empty.vsix")
        self.assertEqual(ctx.exception.archive_path, "empty.vsix")

    def test_no_root(self):
        with self.assertRaises(InvalidManifestError):
            manifest.extract_metadata(None, "a.vsix")

    def test_metadata_without_children(self):
        with self.assertRaises(ManifestStructureError):
            manifest.extract_metadata(_root("<Root><Meta/></Root>"), "a.vsix")


class TestLoadExtensionMetadata(unittest.TestCase):
    """Tests for load_extension_metadata."""

    def test_reads_manifest_from_package(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = create_vsix(
                Path(tmp) / "Tools" / "a.vsix",
                manifest_xml=build_manifest_xml(extension_id="a.b", display_name="A"),
            )
            metadata = manifest.load_extension_metadata(path)
        self.assertEqual(metadata.id, "a.b")
        self.assertEqual(metadata.display_name, "A")

    def test_uses_given_resolver_and_closes_stream(self):
        stream = TrackingBytesIO(build_manifest_xml().encode("utf-8"))
        resolve_fn = MagicMock(return_value=stream)

        metadata = manifest.load_extension_metadata("/g/Tools/a.vsix", resolve_fn=resolve_fn)

        resolve_fn.assert_called_once_with(f"vsix:/g/Tools/a.vsix!/{TEST_MANIFEST_NAME}")
        self.assertEqual(metadata, create_test_metadata())
        self.assertTrue(stream.closed)

    def test_malformed_xml(self):
        stream = TrackingBytesIO(b"<PackageManifest><Metadata>")
        with self.assertRaises(InvalidManifestError) as ctx:
            manifest.load_extension_metadata("bad.vsix", resolve_fn=lambda _: stream)
        self.assertIn("Unable to load extension.vsixmanifest", str(ctx.exception))
        self.assertTrue(stream.closed)

    def test_empty_manifest(self):
        stream = TrackingBytesIO(b"")
        with self.assertRaises(InvalidManifestError):
            manifest.load_extension_metadata("empty.vsix", resolve_fn=lambda _: stream)
        self.assertTrue(stream.closed)

    def test_entity_expansion_rejected(self):
        xml_text = """<?xml version="1.0"?>
<!DOCTYPE PackageManifest [<!ENTITY boom "boom">]>
<PackageManifest><Metadata><Identity Id="&boom;" Version="1" Publisher="p"/>
<DisplayName>n</DisplayName><Description>d</Description></Metadata></PackageManifest>"""
        stream = io.BytesIO(xml_text.encode("utf-8"))
        with self.assertRaises(InvalidManifestError):
            manifest.load_extension_metadata("evil.vsix", resolve_fn=lambda _: stream)

    def test_package_without_manifest(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = create_vsix(Path(tmp) / "a.vsix", include_manifest=False)
            with self.assertRaises(ArchiveEntryNotFoundError):
                manifest.load_extension_metadata(path)

    def test_short_manifest_in_package(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = create_vsix(Path(tmp) / "a.vsix", manifest_xml=build_short_manifest_xml())
            with self.assertRaises(ManifestStructureError):
                manifest.load_extension_metadata(path)

    def test_logs_loaded_manifest(self):
        stream = io.BytesIO(build_manifest_xml().encode("utf-8"))
        with self.assertLogs("gallery_feed.manifest", level="DEBUG") as logs:
            manifest.load_extension_metadata("a.vsix", resolve_fn=lambda _: stream)
        self.assertTrue(any("x.y" in message for message in logs.output))


if __name__ == "__main__":
    unittest.main()
