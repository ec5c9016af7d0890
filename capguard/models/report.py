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

"""Pydantic models for audit outcomes: per unit, per file, per project."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from capguard import __version__
from capguard.models.capabilities import Diagnostic, Finding


class AuditStatus(str, Enum):
    """Three-tier outcome handed to the reporting boundary."""

    PASS = "pass"
    WARN = "warn"  # no violations, but computed accesses could not be attributed
    FAIL = "fail"  # at least one undeclared capability use


class AuditResult(BaseModel):
    """Complete, reproducible outcome of auditing one unit of code."""

    model_config = ConfigDict(frozen=True)

    violations: tuple[Finding, ...] = ()
    dynamic_warnings: tuple[Finding, ...] = ()
    declared_but_unused: tuple[str, ...] = ()  # informational only

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> AuditStatus:
        if self.violations:
            return AuditStatus.FAIL
        if self.dynamic_warnings:
            return AuditStatus.WARN
        return AuditStatus.PASS


class FileAudit(BaseModel):
    """Everything one file contributed to an audit run."""

    model_config = ConfigDict(frozen=True)

    path: str
    findings: tuple[Finding, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()
    result: AuditResult = Field(default_factory=AuditResult)

    @property
    def structural_errors(self) -> int:
        return sum(1 for d in self.diagnostics if d.kind == "structural")


class ProjectAudit(BaseModel):
    """Per-file audits merged in declared file order."""

    model_config = ConfigDict(frozen=True)

    files: tuple[FileAudit, ...] = ()
    result: AuditResult = Field(default_factory=AuditResult)
    cancelled: tuple[str, ...] = ()  # files never started because the run was cancelled

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> AuditStatus:
        return self.result.status

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return [d for f in self.files for d in f.diagnostics]


class AuditReport(BaseModel):
    """The complete report written to ``capguard_report.json``."""

    capguard_version: str = __version__
    target: str = ""
    audit_timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    manifest_source: str = ""
    declared: list[str] = Field(default_factory=list)
    catalog_capabilities: list[str] = Field(default_factory=list)
    discovery_source: str = "directory"  # "git" or "directory"
    audit: ProjectAudit = Field(default_factory=ProjectAudit)
