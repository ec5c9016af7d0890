"""Integration tests for the capguard CLI.

Fixture packages are copied into tmp_path so reports never land in the
source tree.
"""

import json
import shutil
from pathlib import Path

import pytest
from typer.testing import CliRunner

from capguard.cli import app
from capguard.config import SETTINGS_FILE
from capguard.reporter.json_out import REPORT_FILENAME

runner = CliRunner()
FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def package(tmp_path: Path):
    def _copy(name: str) -> Path:
        target = tmp_path / name
        shutil.copytree(FIXTURES / name, target)
        return target

    return _copy


class TestAuditExitCodes:
    """Status to exit code mapping."""

    def test_compliant_passes(self, package):
        result = runner.invoke(app, ["audit", str(package("compliant_pkg"))])
        assert result.exit_code == 0

    def test_undeclared_fails(self, package):
        result = runner.invoke(app, ["audit", str(package("undisclosed_pkg")), "--quiet"])
        assert result.exit_code == 1

    def test_warn_passes_by_default(self, package):
        result = runner.invoke(app, ["audit", str(package("obfuscated_pkg")), "--quiet"])
        assert result.exit_code == 0

    def test_fail_on_warn(self, package):
        result = runner.invoke(
            app, ["audit", str(package("obfuscated_pkg")), "--quiet", "--fail-on-warn"]
        )
        assert result.exit_code == 2

    def test_fail_on_warn_from_settings(self, package, tmp_path: Path):
        root = package("obfuscated_pkg")
        settings = tmp_path / SETTINGS_FILE
        settings.write_text("fail_on_warn: true\n", encoding="utf-8")
        result = runner.invoke(app, ["audit", str(root), "--quiet", "--config", str(settings)])
        assert result.exit_code == 2

    def test_missing_directory(self, tmp_path: Path):
        result = runner.invoke(app, ["audit", str(tmp_path / "nope")])
        assert result.exit_code == 3

    def test_malformed_manifest(self, package):
        root = package("clean_pkg")
        (root / "package.json").write_text('{"capabilities": "fs"}', encoding="utf-8")
        result = runner.invoke(app, ["audit", str(root)])
        assert result.exit_code == 3

    def test_bad_settings(self, package, tmp_path: Path):
        root = package("clean_pkg")
        settings = tmp_path / SETTINGS_FILE
        settings.write_text("workers: 0\n", encoding="utf-8")
        result = runner.invoke(app, ["audit", str(root), "--config", str(settings)])
        assert result.exit_code == 3

    def test_missing_settings_file(self, package, tmp_path: Path):
        result = runner.invoke(
            app, ["audit", str(package("clean_pkg")), "--config", str(tmp_path / "none.yaml")]
        )
        assert result.exit_code == 3


class TestAuditedPackageCannotConfigureAudit:
    """Files shipped inside the package never change how it is audited."""

    def test_package_settings_file_ignored(self, package):
        root = package("undisclosed_pkg")
        (root / SETTINGS_FILE).write_text(
            "extensions: ['.none']\nignore: ['*.js']\n", encoding="utf-8"
        )
        result = runner.invoke(app, ["audit", str(root), "--quiet", "--no-report"])
        assert result.exit_code == 1

    def test_package_settings_file_ignored_when_run_from_package(self, package, monkeypatch):
        root = package("undisclosed_pkg")
        (root / SETTINGS_FILE).write_text("extensions: ['.none']\n", encoding="utf-8")
        monkeypatch.chdir(root)
        result = runner.invoke(app, ["audit", ".", "--quiet", "--no-report"])
        assert result.exit_code == 1

    def test_auditor_settings_in_cwd_used(self, package, tmp_path: Path, monkeypatch):
        root = package("obfuscated_pkg")
        (tmp_path / SETTINGS_FILE).write_text("fail_on_warn: true\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["audit", str(root), "--quiet", "--no-report"])
        assert result.exit_code == 2

    def test_package_ignore_files_not_honoured(self, package):
        root = package("undisclosed_pkg")
        (root / ".capguardignore").write_text("*.js\n", encoding="utf-8")
        (root / ".gitignore").write_text("*.js\n", encoding="utf-8")
        result = runner.invoke(app, ["audit", str(root), "--json", "--no-report"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert [f["path"] for f in data["audit"]["files"]] == ["index.js"]

    def test_auditor_ignore_setting(self, package, tmp_path: Path):
        root = package("undisclosed_pkg")
        settings = tmp_path / SETTINGS_FILE
        settings.write_text("ignore: ['index.js']\n", encoding="utf-8")
        result = runner.invoke(
            app, ["audit", str(root), "--quiet", "--no-report", "--config", str(settings)]
        )
        assert result.exit_code == 0


class TestAuditOutput:
    """Report file and JSON output."""

    def test_report_file_created(self, package):
        root = package("compliant_pkg")
        runner.invoke(app, ["audit", str(root), "--quiet"])
        report = json.loads((root / REPORT_FILENAME).read_text(encoding="utf-8"))
        assert report["audit"]["status"] == "pass"
        assert report["declared"] == ["fetch", "fs"]
        assert report["discovery_source"] == "directory"

    def test_no_report(self, package):
        root = package("compliant_pkg")
        runner.invoke(app, ["audit", str(root), "--quiet", "--no-report"])
        assert not (root / REPORT_FILENAME).exists()

    def test_custom_output(self, package, tmp_path: Path):
        root = package("clean_pkg")
        out = tmp_path / "reports" / "clean.json"
        runner.invoke(app, ["audit", str(root), "--quiet", "--output", str(out)])
        assert out.exists()
        assert not (root / REPORT_FILENAME).exists()

    def test_json_stdout(self, package):
        root = package("undisclosed_pkg")
        result = runner.invoke(app, ["audit", str(root), "--json", "--no-report"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        violations = data["audit"]["result"]["violations"]
        assert [v["capability"] for v in violations] == ["child_process"]
        assert violations[0]["file"] == "index.js"
        assert data["audit"]["result"]["status"] == "fail"

    def test_json_lists_files_in_order(self, package):
        root = package("compliant_pkg")
        result = runner.invoke(app, ["audit", str(root), "--json", "--no-report"])
        data = json.loads(result.stdout)
        assert [f["path"] for f in data["audit"]["files"]] == ["index.js", "lib/format.js"]

    def test_console_output_mentions_capability(self, package):
        result = runner.invoke(app, ["audit", str(package("undisclosed_pkg")), "--no-report"])
        assert "FAIL" in result.stdout
        assert "child_process" in result.stdout

    def test_verbose_shows_declared_but_unused(self, package):
        result = runner.invoke(app, ["audit", str(package("clean_pkg")), "--no-report", "-v"])
        assert result.exit_code == 0
        assert "fetch" in result.stdout

    def test_source_text_is_not_console_markup(self, tmp_path: Path):
        root = tmp_path / "markup_pkg"
        root.mkdir()
        (root / "package.json").write_text('{"name": "markup-pkg", "capabilities": []}', encoding="utf-8")
        (root / "index.js").write_text(
            "const key = 'fetch';\nwindow[key]; require('fs') // [/bold]\n", encoding="utf-8"
        )
        result = runner.invoke(app, ["audit", str(root), "--no-report", "-v"])
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "FAIL" in result.stdout
        assert "[/bold]" in result.stdout


class TestAuditOptions:
    """Manifest, catalog and scope overrides."""

    def test_explicit_manifest(self, package, tmp_path: Path):
        root = package("undisclosed_pkg")
        manifest = tmp_path / "caps.yaml"
        manifest.write_text("capabilities: [fs, child_process]\n", encoding="utf-8")
        result = runner.invoke(
            app, ["audit", str(root), "--manifest", str(manifest), "--quiet", "--no-report"]
        )
        assert result.exit_code == 0

    def test_custom_catalog(self, package, tmp_path: Path):
        root = package("undisclosed_pkg")
        catalog = tmp_path / "catalog.yaml"
        catalog.write_text(
            "loaders: [require]\nglobals: [window]\n"
            "capabilities:\n  - {name: fs, trigger: module_load}\n",
            encoding="utf-8",
        )
        result = runner.invoke(
            app, ["audit", str(root), "--catalog", str(catalog), "--quiet", "--no-report"]
        )
        assert result.exit_code == 0

    def test_missing_catalog(self, package, tmp_path: Path):
        result = runner.invoke(
            app,
            ["audit", str(package("clean_pkg")), "--catalog", str(tmp_path / "none.yaml")],
        )
        assert result.exit_code == 3

    def test_resolve_scope(self, package):
        root = package("clean_pkg")
        (root / "index.js").write_text(
            "function send(window) { return window.fetch; }\nmodule.exports = send;\n",
            encoding="utf-8",
        )
        (root / "package.json").write_text('{"name": "clean-pkg"}', encoding="utf-8")
        plain = runner.invoke(app, ["audit", str(root), "--quiet", "--no-report"])
        scoped = runner.invoke(
            app, ["audit", str(root), "--quiet", "--no-report", "--resolve-scope"]
        )
        assert plain.exit_code == 1
        assert scoped.exit_code == 0


class TestCatalogCommand:
    def test_prints_table(self):
        result = runner.invoke(app, ["catalog"])
        assert result.exit_code == 0
        assert "Capability catalog" in result.stdout

    def test_json(self):
        result = runner.invoke(app, ["catalog", "--json"])
        assert result.exit_code == 0
        rows = json.loads(result.stdout)
        assert {"capability": "fs", "trigger": "module_load", "pattern": "fs", "tracks": ["import", "require"]} in rows
        assert rows[-1]["capability"] == "unknown"

    def test_bad_catalog(self, tmp_path: Path):
        path = tmp_path / "catalog.yaml"
        path.write_text("capabilities: {}\n", encoding="utf-8")
        result = runner.invoke(app, ["catalog", "--catalog", str(path)])
        assert result.exit_code == 3
