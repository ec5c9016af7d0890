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

"""Capability catalog — capability name -> ordered matchers, indexed by node kind.

Catalogs are built from a declarative YAML table (``rules/default_catalog.yaml``
or a user-supplied file). Adding a risky API means adding a row; the walker
and verdict engine never change. The obfuscation matchers (dynamic module
loads and computed member access on tracked globals) are always installed
under the ``unknown`` capability.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from capguard.errors import ConfigurationError
from capguard.models.capabilities import (
    DYNAMIC_TRIGGERS,
    UNKNOWN_CAPABILITY,
    CapabilityRule,
    CatalogTable,
    TriggerKind,
)
from capguard.scanner.matchers import Matcher
from capguard.scanner.scope import ScopeResolver

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent.parent / "rules" / "default_catalog.yaml"


class Catalog:
    """Registry of matchers. Immutable once frozen."""

    def __init__(self) -> None:
        self._entries: list[tuple[str, Matcher]] = []
        self._by_kind: dict[str, list[Matcher]] = {}
        self._keys: set[tuple[str, TriggerKind, Optional[str]]] = set()
        self._frozen = False

    def register(self, capability_name: str, matcher: Matcher) -> Matcher:
        """Bind ``matcher`` to ``capability_name``; order of calls is preserved."""
        if self._frozen:
            raise ConfigurationError(
                f"Catalog is frozen; cannot register '{capability_name}'"
            )
        if not capability_name:
            raise ConfigurationError("Capability name must not be empty")
        key = (capability_name, matcher.trigger, matcher.pattern)
        if key in self._keys:
            raise ConfigurationError(
                f"Capability '{capability_name}' already has a {matcher.trigger.value} "
                f"matcher for '{matcher.pattern}'"
            )
        bound = replace(matcher, capability=capability_name)
        self._keys.add(key)
        self._entries.append((capability_name, bound))
        self._by_kind.setdefault(bound.node_kind, []).append(bound)
        return bound

    def matchers_for(self, node_kind: str) -> tuple[Matcher, ...]:
        return tuple(self._by_kind.get(node_kind, ()))

    def freeze(self) -> Catalog:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def entries(self) -> list[tuple[str, Matcher]]:
        return list(self._entries)

    @property
    def capabilities(self) -> list[str]:
        """Attributable capability names, in registration order."""
        seen: dict[str, None] = {}
        for name, _ in self._entries:
            if name != UNKNOWN_CAPABILITY:
                seen.setdefault(name, None)
        return list(seen)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Catalog({len(self._entries)} matchers, frozen={self._frozen})"


def load_catalog_table(path: str | Path) -> CatalogTable:
    """Read and validate a catalog table from YAML."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Catalog file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Catalog file {path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Catalog file {path} must contain a mapping")
    try:
        return CatalogTable(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid catalog table in {path}: {e}") from e


def build_catalog(
    table: CatalogTable,
    resolver: Optional[ScopeResolver] = None,
) -> Catalog:
    """Instantiate matcher templates for every row and freeze the result."""
    loaders = frozenset(table.loaders)
    globals_ = frozenset(table.globals)
    if not loaders and not globals_:
        raise ConfigurationError("Catalog tracks neither loaders nor globals")

    catalog = Catalog()
    rows = list(table.capabilities)
    for trigger in (TriggerKind.DYNAMIC_LOAD, TriggerKind.DYNAMIC_ACCESS):
        if not any(r.trigger == trigger for r in rows):
            rows.append(CapabilityRule(name=UNKNOWN_CAPABILITY, trigger=trigger))

    for row in rows:
        if row.trigger in DYNAMIC_TRIGGERS:
            if row.name != UNKNOWN_CAPABILITY:
                raise ConfigurationError(
                    f"{row.trigger.value} rows report '{UNKNOWN_CAPABILITY}', not '{row.name}'"
                )
            pattern = None
        else:
            if row.name == UNKNOWN_CAPABILITY:
                raise ConfigurationError(
                    f"'{UNKNOWN_CAPABILITY}' is reserved for dynamic findings"
                )
            pattern = row.match_pattern

        if row.trigger in (TriggerKind.GLOBAL_MEMBER, TriggerKind.DYNAMIC_ACCESS):
            names = globals_
        elif row.trigger == TriggerKind.MODULE_IMPORT:
            names = frozenset()
        else:
            names = loaders
        catalog.register(
            row.name,
            Matcher(trigger=row.trigger, pattern=pattern, names=names, resolver=resolver),
        )

    logger.debug(
        "Built catalog: %d matchers for %d capabilities",
        len(catalog),
        len(catalog.capabilities),
    )
    return catalog.freeze()


def default_catalog(resolver: Optional[ScopeResolver] = None) -> Catalog:
    """The bundled catalog of Node.js modules and browser globals."""
    return build_catalog(load_catalog_table(DEFAULT_CATALOG_PATH), resolver=resolver)
