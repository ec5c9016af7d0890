"""Tests for manifest loading."""

import json
from pathlib import Path

import pytest

from capguard.errors import ConfigurationError
from capguard.models.capabilities import Manifest
from capguard.policy.manifest import discover_manifest, load_manifest, parse_manifest

FIXTURES = Path(__file__).parent / "fixtures"


def _write_package(tmp_path: Path, data) -> Path:
    path = tmp_path / "package.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestParseManifest:
    """Validation of decoded descriptors."""

    def test_reads_capabilities(self):
        manifest = parse_manifest({"capabilities": ["fs", "fetch"]})
        assert manifest.capabilities == frozenset({"fs", "fetch"})

    def test_missing_field_is_empty(self):
        manifest = parse_manifest({"name": "pkg"})
        assert len(manifest) == 0

    def test_dotted_field(self):
        manifest = parse_manifest({"capguard": {"capabilities": ["net"]}}, field="capguard.capabilities")
        assert "net" in manifest

    def test_entries_stripped(self):
        assert parse_manifest({"capabilities": [" fs "]}).capabilities == frozenset({"fs"})

    def test_duplicates_collapse(self):
        assert len(parse_manifest({"capabilities": ["fs", "fs"]})) == 1

    def test_not_an_object(self):
        with pytest.raises(ConfigurationError):
            parse_manifest(["fs"])

    def test_field_not_a_list(self):
        with pytest.raises(ConfigurationError):
            parse_manifest({"capabilities": "fs"})

    def test_non_string_entry_rejects_whole_manifest(self):
        with pytest.raises(ConfigurationError):
            parse_manifest({"capabilities": ["fs", 3]})

    def test_blank_entry_rejected(self):
        with pytest.raises(ConfigurationError):
            parse_manifest({"capabilities": ["fs", "  "]})


class TestLoadManifest:
    """Reading manifests from disk."""

    def test_package_json(self, tmp_path: Path):
        path = _write_package(tmp_path, {"name": "x", "capabilities": ["fs"]})
        manifest = load_manifest(path)
        assert manifest.capabilities == frozenset({"fs"})
        assert manifest.source == str(path)

    def test_yaml_manifest(self, tmp_path: Path):
        path = tmp_path / "capabilities.yaml"
        path.write_text("capabilities:\n  - child_process\n  - net\n", encoding="utf-8")
        assert load_manifest(path).capabilities == frozenset({"child_process", "net"})

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError):
            load_manifest(tmp_path / "package.json")

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "package.json"
        path.write_text("{ not json", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_manifest(path)

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "manifest.yml"
        path.write_text("capabilities: [fs\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_manifest(path)

    def test_custom_field(self, tmp_path: Path):
        path = _write_package(tmp_path, {"permissions": ["dns"]})
        assert "dns" in load_manifest(path, field="permissions")


class TestDiscoverManifest:
    """package.json lookup in the audited directory."""

    def test_fixture_package(self):
        manifest = discover_manifest(FIXTURES / "undisclosed_pkg")
        assert manifest.capabilities == frozenset({"fs"})

    def test_no_descriptor_is_empty(self, tmp_path: Path):
        manifest = discover_manifest(tmp_path)
        assert manifest == Manifest()


class TestManifestOf:
    def test_iterable(self):
        assert Manifest.of(["fs", "net"]).capabilities == frozenset({"fs", "net"})

    def test_single_string(self):
        assert Manifest.of("fs").capabilities == frozenset({"fs"})

    def test_passthrough(self):
        manifest = Manifest(capabilities=frozenset({"fs"}))
        assert Manifest.of(manifest) is manifest
