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

"""Verdict engine — reconcile findings with the declared manifest.

Classification per finding:
1. Dynamic (capability unresolved) -> dynamic_warnings, whatever is declared
2. Direct, capability declared     -> compliant, marks the capability used
3. Direct, capability undeclared   -> violations, one entry per site

``declared_but_unused`` lists manifest names that no direct finding used.
It is informational and never affects the status.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence, Union

from capguard.models.capabilities import Finding, Manifest
from capguard.models.report import AuditResult

logger = logging.getLogger(__name__)


def evaluate(
    findings: Sequence[Finding],
    manifest: Union[Manifest, Iterable[str]],
) -> AuditResult:
    """Classify ``findings`` against ``manifest`` and build an AuditResult."""
    declared = Manifest.of(manifest).capabilities
    violations: list[Finding] = []
    dynamic_warnings: list[Finding] = []
    used: set[str] = set()

    for finding in findings:
        if finding.is_dynamic:
            dynamic_warnings.append(finding)
        elif finding.capability in declared:
            used.add(finding.capability)
        else:
            violations.append(finding)

    result = AuditResult(
        violations=tuple(violations),
        dynamic_warnings=tuple(dynamic_warnings),
        declared_but_unused=tuple(sorted(declared - used)),
    )
    logger.debug(
        "Verdict: %d violations, %d dynamic warnings, %d declared but unused",
        len(result.violations),
        len(result.dynamic_warnings),
        len(result.declared_but_unused),
    )
    return result


def merge_results(
    results: Sequence[AuditResult],
    manifest: Union[Manifest, Iterable[str]],
) -> AuditResult:
    """Fold per-file results in the given order into one project result.

    A declared capability is unused for the project only if every file
    left it unused.
    """
    declared = Manifest.of(manifest).capabilities
    unused = set(declared)
    violations: list[Finding] = []
    dynamic_warnings: list[Finding] = []

    for result in results:
        violations.extend(result.violations)
        dynamic_warnings.extend(result.dynamic_warnings)
        unused &= set(result.declared_but_unused)

    return AuditResult(
        violations=tuple(violations),
        dynamic_warnings=tuple(dynamic_warnings),
        declared_but_unused=tuple(sorted(unused)),
    )
