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

"""Exception hierarchy for audit runs.

Only boundary failures are exceptions. A failing or warning audit is a
successful run and is reported through ``AuditResult.status``.
"""

from __future__ import annotations

from typing import Optional


class CapguardError(Exception):
    """Base class for every error raised by capguard."""


class StructuralError(CapguardError):
    """A syntax node is malformed for its kind (e.g. a call without a callee).

    Raised by matchers and recovered by the walker, which skips the node
    and records a diagnostic.
    """

    def __init__(self, node_kind: str, slot: str, message: Optional[str] = None) -> None:
        self.node_kind = node_kind
        self.slot = slot
        super().__init__(message or f"{node_kind} node is missing its '{slot}' slot")


class ConfigurationError(CapguardError):
    """Invalid manifest, catalog table or settings file."""


class AggregationConflict(CapguardError):
    """Two file audits claim the same path in one aggregation."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Duplicate audit result for '{path}' — refusing ambiguous input set")


class StructuralErrorLimitExceeded(CapguardError):
    """Too many malformed nodes were skipped for the audit to be meaningful."""

    def __init__(self, count: int, limit: int) -> None:
        self.count = count
        self.limit = limit
        super().__init__(
            f"{count} structural errors exceed the configured limit of {limit}"
        )
