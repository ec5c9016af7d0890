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

"""Pydantic models for capabilities, catalog tables, findings and manifests."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Capability name reported when the access is computed and cannot be attributed.
UNKNOWN_CAPABILITY = "unknown"


class TriggerKind(str, Enum):
    """Matcher families available to catalog rows."""

    MODULE_LOAD = "module_load"        # require("x") / import("x")
    MODULE_IMPORT = "module_import"    # import ... from "x" / export ... from "x"
    GLOBAL_MEMBER = "global_member"    # window.x / window["x"]
    DYNAMIC_LOAD = "dynamic_load"      # require(expr)
    DYNAMIC_ACCESS = "dynamic_access"  # window[expr]


DYNAMIC_TRIGGERS = frozenset({TriggerKind.DYNAMIC_LOAD, TriggerKind.DYNAMIC_ACCESS})


class Confidence(str, Enum):
    """How firmly a finding is attributed to its capability."""

    DIRECT = "direct"    # literal module/property name matched exactly
    DYNAMIC = "dynamic"  # some access happens through a computed expression


class CapabilityRule(BaseModel):
    """One row of the declarative catalog table."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    trigger: TriggerKind
    pattern: Optional[str] = None  # defaults to the capability name

    @property
    def match_pattern(self) -> str:
        return self.pattern if self.pattern is not None else self.name


class CatalogTable(BaseModel):
    """Declarative catalog configuration (``default_catalog.yaml``)."""

    version: int = 1
    loaders: list[str] = Field(default_factory=lambda: ["require"])
    globals: list[str] = Field(default_factory=lambda: ["window", "globalThis", "self", "global"])
    capabilities: list[CapabilityRule] = Field(default_factory=list)


class Finding(BaseModel):
    """A single detected (possible) capability use.

    Position fields locate the matched node; ``file`` and ``source_line``
    are filled in once the finding leaves the walker for a file audit.
    """

    model_config = ConfigDict(frozen=True)

    capability: str
    confidence: Confidence
    node_kind: str
    line: int = 0
    col: int = 0
    end_line: int = 0
    end_col: int = 0
    pattern: str = ""  # e.g. "fs", "XMLHttpRequest", "require(<expr>)"
    message: str = ""
    file: str = ""
    source_line: str = ""

    @property
    def is_dynamic(self) -> bool:
        return self.confidence == Confidence.DYNAMIC


class Diagnostic(BaseModel):
    """A node or file the audit had to skip."""

    model_config = ConfigDict(frozen=True)

    kind: str  # "structural" or "unreadable"
    message: str
    node_kind: str = ""
    line: int = 0
    col: int = 0
    file: str = ""


class Manifest(BaseModel):
    """Capabilities the package author declares. Consumed read-only."""

    model_config = ConfigDict(frozen=True)

    capabilities: frozenset[str] = Field(default_factory=frozenset)
    source: str = ""  # where the declaration was read from, if anywhere

    def __contains__(self, name: object) -> bool:
        return name in self.capabilities

    def __len__(self) -> int:
        return len(self.capabilities)

    @classmethod
    def of(cls, value: Union[Manifest, Iterable[str]]) -> Manifest:
        if isinstance(value, Manifest):
            return value
        if isinstance(value, str):
            value = [value]
        return cls(capabilities=frozenset(value))
