# Capguard — Capability Disclosure Auditor
# Copyright (C) 2026 Capguard Project Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""Capguard CLI — Typer entry point.

Commands:
- capguard audit <path>   — Audit a package against its declared capabilities
- capguard catalog        — Show the effective capability catalog
- capguard version        — Show the capguard version

Exit codes for ``audit``: 0 pass (or warn), 1 fail, 2 warn with
--fail-on-warn, 3 the run itself could not complete (bad configuration,
ambiguous input, too many malformed nodes).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape

from capguard import __version__
from capguard.config import find_settings_file, load_settings
from capguard.errors import CapguardError, ConfigurationError
from capguard.models.capabilities import Manifest
from capguard.models.report import AuditReport, AuditStatus
from capguard.policy.manifest import discover_manifest, load_manifest
from capguard.reporter.console_out import console, print_audit_report, print_catalog, print_error
from capguard.reporter.json_out import REPORT_FILENAME, to_canonical_json, write_report
from capguard.scanner.auditor import audit_files
from capguard.scanner.catalog import Catalog, build_catalog, default_catalog, load_catalog_table
from capguard.scanner.coordinator import discover_files, get_source_files
from capguard.scanner.scope import LocalBindingResolver

app = typer.Typer(
    name="capguard",
    help=(
        "Capguard: audit JavaScript packages for undisclosed use of risky "
        "platform capabilities. Run 'capguard <command> --help' for flags."
    ),
    add_completion=False,
)

logger = logging.getLogger("capguard")

EXIT_PASS = 0
EXIT_FAIL = 1
EXIT_WARN = 2
EXIT_ERROR = 3


def _configure_logging(verbose: bool, quiet: bool) -> None:
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


def _load_catalog(catalog_path: Optional[str], resolve_scope: bool) -> Catalog:
    resolver = LocalBindingResolver() if resolve_scope else None
    if catalog_path:
        return build_catalog(load_catalog_table(catalog_path), resolver=resolver)
    return default_catalog(resolver=resolver)


def _exit_code(status: AuditStatus, fail_on_warn: bool) -> int:
    if status == AuditStatus.FAIL:
        return EXIT_FAIL
    if status == AuditStatus.WARN and fail_on_warn:
        return EXIT_WARN
    return EXIT_PASS


def _run_audit(
    path: str,
    *,
    manifest_path: Optional[str],
    catalog_path: Optional[str],
    config_path: Optional[str],
    workers: Optional[int],
    resolve_scope: bool,
    fail_on_warn: bool,
    output_json: bool,
    output: Optional[str],
    no_report: bool,
    verbose: bool,
    quiet: bool,
) -> int:
    target_dir = Path(path).resolve()
    if not target_dir.exists():
        raise ConfigurationError(f"Directory not found: {target_dir}")
    if not target_dir.is_dir():
        raise ConfigurationError(f"Not a directory: {target_dir}")

    settings = load_settings(
        find_settings_file(config_path, target_dir=target_dir),
        {
            "workers": workers,
            "catalog": catalog_path,
            # Flags can only switch these on; the settings file may enable them too.
            "resolve_scope": resolve_scope or None,
            "fail_on_warn": fail_on_warn or None,
        },
    )
    catalog = _load_catalog(settings.catalog, settings.resolve_scope)

    manifest: Manifest
    if manifest_path:
        manifest = load_manifest(manifest_path, field=settings.manifest_field)
    else:
        manifest = discover_manifest(target_dir, field=settings.manifest_field)

    all_files, discovery_source = discover_files(target_dir, settings.ignore)
    source_files = get_source_files(all_files, settings.extensions)
    logger.info("Auditing %d source files in %s", len(source_files), target_dir)

    project = audit_files(
        target_dir,
        source_files,
        catalog,
        manifest,
        workers=settings.workers,
        max_structural_errors=settings.max_structural_errors,
    )

    report = AuditReport(
        target=str(target_dir),
        manifest_source=manifest.source,
        declared=sorted(manifest.capabilities),
        catalog_capabilities=catalog.capabilities,
        discovery_source=discovery_source,
        audit=project,
    )

    report_path = Path(output) if output else target_dir / REPORT_FILENAME
    if not no_report:
        write_report(report, report_path)
    if output_json:
        typer.echo(to_canonical_json(report), nl=False)
    elif not quiet:
        print_audit_report(report, verbose=verbose)
        if not no_report:
            console.print(f"\n  [dim]Full report written to {escape(str(report_path))}[/dim]")

    return _exit_code(project.status, settings.fail_on_warn)


@app.command()
def audit(
    path: str = typer.Argument(".", help="Package directory to audit (default: current directory)"),
    manifest: Optional[str] = typer.Option(
        None, "--manifest", "-m", help="Manifest file (default: <path>/package.json)"
    ),
    catalog: Optional[str] = typer.Option(
        None, "--catalog", help="Catalog table YAML (default: bundled catalog)"
    ),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Settings file (default: ./.capguard.yaml outside the audited package)"
    ),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Parallel file workers"),
    resolve_scope: bool = typer.Option(
        False, "--resolve-scope", help="Ignore tracked globals shadowed by local bindings"
    ),
    fail_on_warn: bool = typer.Option(
        False, "--fail-on-warn", help="Exit 2 when only dynamic warnings were found"
    ),
    output_json: bool = typer.Option(False, "--json", help="Output the report as JSON to stdout (for CI)"),
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help=f"Report path (default: <path>/{REPORT_FILENAME})"
    ),
    no_report: bool = typer.Option(False, "--no-report", help="Do not write the JSON report file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show diagnostics and debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress all output except errors"),
) -> None:
    """Audit a package: detect capability use and compare it with the manifest."""
    _configure_logging(verbose, quiet)
    try:
        code = _run_audit(
            path,
            manifest_path=manifest,
            catalog_path=catalog,
            config_path=config,
            workers=workers,
            resolve_scope=resolve_scope,
            fail_on_warn=fail_on_warn,
            output_json=output_json,
            output=output,
            no_report=no_report,
            verbose=verbose,
            quiet=quiet,
        )
    except CapguardError as e:
        print_error(str(e))
        raise typer.Exit(code=EXIT_ERROR)
    raise typer.Exit(code=code)


@app.command(name="catalog")
def show_catalog(
    catalog: Optional[str] = typer.Option(
        None, "--catalog", help="Catalog table YAML (default: bundled catalog)"
    ),
    output_json: bool = typer.Option(False, "--json", help="Output the catalog as JSON"),
) -> None:
    """Show the capabilities and matchers the audit uses."""
    try:
        effective = _load_catalog(catalog, resolve_scope=False)
    except CapguardError as e:
        print_error(str(e))
        raise typer.Exit(code=EXIT_ERROR)

    if output_json:
        rows = [
            {
                "capability": name,
                "trigger": matcher.trigger.value,
                "pattern": matcher.pattern,
                "tracks": sorted(matcher.names),
            }
            for name, matcher in effective.entries
        ]
        typer.echo(to_canonical_json(rows), nl=False)
    else:
        print_catalog(effective)


@app.command()
def version() -> None:
    """Show the capguard version."""
    console.print(f"capguard v{__version__}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
