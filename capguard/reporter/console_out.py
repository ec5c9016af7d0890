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

"""Rich terminal output for audit results.

The verdict panel comes first: pass, warn or fail, and why. Undeclared
capability uses follow site by site, then the computed accesses that
could not be attributed, then the declared-but-unused list. Per-file
diagnostics are only shown with --verbose.
"""

from __future__ import annotations

from collections import defaultdict

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from capguard.models.capabilities import Finding
from capguard.models.report import AuditReport, AuditStatus
from capguard.scanner.catalog import Catalog


def _make_console() -> Console:
    """Console with soft wrap, sized to the live terminal."""
    return Console(soft_wrap=True)


console = _make_console()
err_console = Console(stderr=True, soft_wrap=True)

ICON_PASS = "[bold green][OK][/bold green]"
ICON_WARN = "[bold yellow][WARN][/bold yellow]"
ICON_DANGER = "[bold red][ALERT][/bold red]"
ICON_INFO = "[bold blue][INFO][/bold blue]"

_STATUS_STYLE: dict[AuditStatus, tuple[str, str, str]] = {
    AuditStatus.PASS: (
        "green",
        ICON_PASS,
        "Every detected capability use is declared in the manifest.",
    ),
    AuditStatus.WARN: (
        "yellow",
        ICON_WARN,
        "No undeclared capability use was proven, but some accesses are computed "
        "at runtime and could not be attributed. Review them before trusting this code.",
    ),
    AuditStatus.FAIL: (
        "red",
        ICON_DANGER,
        "The code uses capabilities its author did not declare.",
    ),
}


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def _location(finding: Finding) -> str:
    return escape(f"{finding.file}:{finding.line}:{finding.col}" if finding.file else f"{finding.line}:{finding.col}")


def print_verdict(report: AuditReport) -> None:
    """Print the headline status panel."""
    audit = report.audit
    color, icon, explanation = _STATUS_STYLE[audit.status]
    declared = escape(", ".join(report.declared)) if report.declared else "(nothing)"
    lines = [
        f"  {icon}  [bold {color}]{audit.status.value.upper()}[/bold {color}]",
        "",
        f"  {explanation}",
        "",
        f"  Files audited:       {len(audit.files)}",
        f"  Declared:            {declared}",
        f"  Violations:          {len(audit.result.violations)}",
        f"  Dynamic warnings:    {len(audit.result.dynamic_warnings)}",
    ]
    if audit.cancelled:
        lines.append(f"  [yellow]Not analysed (cancelled): {len(audit.cancelled)}[/yellow]")
    console.print(
        Panel(
            "\n".join(lines),
            border_style=color,
            title=f"[bold {color}]capguard audit[/bold {color}]",
            title_align="left",
            expand=True,
            safe_box=True,
        )
    )


def _findings_table(title: str, findings: list[Finding], color: str) -> Table:
    table = Table(title=title, title_style=f"bold {color}", expand=True, safe_box=True)
    table.add_column("Location", style="cyan", no_wrap=True)
    table.add_column("Capability", style=f"bold {color}")
    table.add_column("Code")
    table.add_column("Why", style="dim")
    for f in findings:
        table.add_row(
            _location(f),
            escape(f.capability),
            escape(_truncate(f.source_line or f.pattern, 60)),
            escape(f.message),
        )
    return table


def print_violations(findings: list[Finding]) -> None:
    if not findings:
        return
    by_capability: dict[str, int] = defaultdict(int)
    for f in findings:
        by_capability[f.capability] += 1
    summary = ", ".join(f"{escape(cap)} ({n})" for cap, n in sorted(by_capability.items()))
    console.print()
    console.print(_findings_table("Undeclared capability use", findings, "red"))
    console.print(f"  Add these to the manifest only if the package really needs them: {summary}")


def print_dynamic_warnings(findings: list[Finding]) -> None:
    if not findings:
        return
    console.print()
    console.print(_findings_table("Unresolved dynamic access", findings, "yellow"))
    console.print(
        "  [dim]Declaring capabilities cannot clear these; the accessed API is "
        "only known at runtime.[/dim]"
    )


def print_declared_but_unused(names: tuple[str, ...] | list[str]) -> None:
    if not names:
        return
    console.print()
    console.print(
        f"  {ICON_INFO}  Declared but not detected: {escape(', '.join(names))}  "
        "[dim](informational — the declaration may be stale)[/dim]"
    )


def print_diagnostics(report: AuditReport) -> None:
    diagnostics = report.audit.diagnostics
    if not diagnostics:
        return
    table = Table(title="Skipped nodes and files", title_style="bold", expand=True)
    table.add_column("Location", style="cyan", no_wrap=True)
    table.add_column("Kind")
    table.add_column("Detail", style="dim")
    for d in diagnostics:
        table.add_row(escape(f"{d.file}:{d.line}:{d.col}"), d.kind, escape(d.message))
    console.print()
    console.print(table)


def print_audit_report(report: AuditReport, verbose: bool = False) -> None:
    """Print the full audit report."""
    print_verdict(report)
    print_violations(list(report.audit.result.violations))
    print_dynamic_warnings(list(report.audit.result.dynamic_warnings))
    print_declared_but_unused(report.audit.result.declared_but_unused)
    if verbose:
        print_diagnostics(report)
        if report.audit.cancelled:
            console.print()
            console.print("  Not analysed: " + escape(", ".join(report.audit.cancelled)))


def print_catalog(catalog: Catalog) -> None:
    """Print the effective catalog, one row per matcher."""
    table = Table(title="Capability catalog", title_style="bold", expand=True)
    table.add_column("Capability", style="bold")
    table.add_column("Trigger")
    table.add_column("Pattern", style="cyan")
    table.add_column("Tracks", style="dim")
    for name, matcher in catalog.entries:
        table.add_row(
            escape(name),
            matcher.trigger.value,
            escape(matcher.pattern or "<computed>"),
            escape(", ".join(sorted(matcher.names))),
        )
    console.print(table)


def print_error(message: str) -> None:
    err_console.print(f"[red]Error: {escape(message)}[/red]")
