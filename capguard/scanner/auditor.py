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

"""Audit pipeline — parse, walk and evaluate files, then merge per project.

Per-file work is a pure function of (source, catalog, manifest) and runs
on a thread pool. Results are keyed by path and merged in the declared
file order, never in completion order, so reports are reproducible.

Cancellation is per file: once the event is set, files that have not
started are skipped (and listed as cancelled) while in-flight files
finish, so no file ever contributes a partial result.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

from capguard.errors import AggregationConflict, StructuralErrorLimitExceeded
from capguard.models.capabilities import Diagnostic, Finding, Manifest
from capguard.models.report import FileAudit, ProjectAudit
from capguard.models.syntax import SyntaxNode
from capguard.policy.verdict import evaluate, merge_results
from capguard.scanner.catalog import Catalog
from capguard.scanner.js_parser import parse_source
from capguard.scanner.walker import walk

logger = logging.getLogger(__name__)

ManifestLike = Union[Manifest, Iterable[str]]


def _locate(finding: Finding, path: str, lines: Sequence[str]) -> Finding:
    source_line = ""
    if 0 < finding.line <= len(lines):
        source_line = lines[finding.line - 1].strip()[:200]
    return finding.model_copy(update={"file": path, "source_line": source_line})


def audit_tree(
    root: SyntaxNode,
    catalog: Catalog,
    manifest: ManifestLike,
    path: str = "",
    source_lines: Sequence[str] = (),
) -> FileAudit:
    """Walk an already-parsed tree and evaluate it against the manifest."""
    manifest = Manifest.of(manifest)
    walked = walk(root, catalog)
    findings = tuple(_locate(f, path, source_lines) for f in walked.findings)
    diagnostics = tuple(d.model_copy(update={"file": path}) for d in walked.diagnostics)
    return FileAudit(
        path=path,
        findings=findings,
        diagnostics=diagnostics,
        result=evaluate(findings, manifest),
    )


def audit_source(
    source: str,
    catalog: Catalog,
    manifest: ManifestLike,
    path: str = "<source>",
) -> FileAudit:
    """Parse and audit one piece of JavaScript/TypeScript source text."""
    return audit_tree(
        parse_source(source), catalog, manifest, path=path, source_lines=source.splitlines()
    )


def audit_file(
    file_path: Path,
    relative_name: str,
    catalog: Catalog,
    manifest: ManifestLike,
) -> FileAudit:
    """Audit one file on disk. Unreadable files yield a diagnostic, not an error."""
    try:
        source = file_path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Could not read %s: %s", file_path, e)
        return FileAudit(
            path=relative_name,
            diagnostics=(
                Diagnostic(kind="unreadable", message=str(e), file=relative_name),
            ),
            result=evaluate((), manifest),
        )
    file_audit = audit_source(source, catalog, manifest, path=relative_name)
    logger.debug(
        "%s: %d findings, %d diagnostics",
        relative_name, len(file_audit.findings), len(file_audit.diagnostics),
    )
    return file_audit


def _check_unique(order: Sequence[str]) -> None:
    seen: set[str] = set()
    for path in order:
        if path in seen:
            raise AggregationConflict(path)
        seen.add(path)


def aggregate(
    file_audits: Iterable[FileAudit],
    order: Sequence[str],
    manifest: ManifestLike,
) -> ProjectAudit:
    """Merge per-file audits in declared ``order``, independent of arrival order.

    Paths in ``order`` with no audit are reported as cancelled.
    """
    _check_unique(order)
    by_path: dict[str, FileAudit] = {}
    for file_audit in file_audits:
        if file_audit.path in by_path:
            raise AggregationConflict(file_audit.path)
        by_path[file_audit.path] = file_audit

    undeclared = sorted(set(by_path) - set(order))
    if undeclared:
        logger.warning("Merging %d audits for undeclared paths: %s", len(undeclared), undeclared)

    files = [by_path[p] for p in order if p in by_path]
    files.extend(by_path[p] for p in undeclared)
    cancelled = tuple(p for p in order if p not in by_path)

    return ProjectAudit(
        files=tuple(files),
        result=merge_results([f.result for f in files], manifest),
        cancelled=cancelled,
    )


def audit_files(
    target_dir: Path,
    relative_paths: Sequence[Union[str, Path]],
    catalog: Catalog,
    manifest: ManifestLike,
    *,
    workers: int = 4,
    max_structural_errors: int = 100,
    cancel: Optional[threading.Event] = None,
) -> ProjectAudit:
    """Audit ``relative_paths`` under ``target_dir`` in parallel.

    Raises:
        AggregationConflict: the same path is listed twice.
        StructuralErrorLimitExceeded: skipped malformed nodes exceed the limit.
    """
    manifest = Manifest.of(manifest)
    order = [str(p) for p in relative_paths]
    _check_unique(order)
    cancel = cancel or threading.Event()

    def _task(rel: str) -> Optional[FileAudit]:
        if cancel.is_set():
            return None
        return audit_file(target_dir / rel, rel, catalog, manifest)

    outcomes: list[FileAudit] = []
    structural = 0
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_task, rel) for rel in order]
        for future in as_completed(futures):
            file_audit = future.result()
            if file_audit is None:
                continue
            outcomes.append(file_audit)
            structural += file_audit.structural_errors
            if structural > max_structural_errors:
                cancel.set()
                raise StructuralErrorLimitExceeded(structural, max_structural_errors)

    project = aggregate(outcomes, order, manifest)
    if project.cancelled:
        logger.warning("Audit cancelled: %d files not analysed", len(project.cancelled))
    logger.info(
        "Audited %d files: %s (%d violations, %d dynamic warnings)",
        len(project.files),
        project.status.value,
        len(project.result.violations),
        len(project.result.dynamic_warnings),
    )
    return project
