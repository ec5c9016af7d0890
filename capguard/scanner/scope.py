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

"""Optional scope resolution for tracked global and loader identifiers.

Matchers treat an identifier as the platform global only when no resolver
is configured or the resolver says the name is not shadowed. A shadowed
name is an unresolved reference: no match, never an error.

``LocalBindingResolver`` is a lexical approximation. It walks the ancestor
path outward and looks for parameters and declarations (``var``/``let``/
``const``, function and class declarations, catch parameters) in each
enclosing function or program body. It does not model block scoping or
assignment to undeclared names.
"""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from capguard.models.syntax import (
    ASSIGNMENT_PATTERN,
    CATCH_CLAUSE,
    CLASS_DECLARATION,
    FUNCTION_DECLARATION,
    FUNCTION_EXPRESSION,
    FUNCTION_KINDS,
    IDENTIFIER,
    PROGRAM,
    PROPERTY_PATTERN,
    VARIABLE_DECLARATOR,
    SyntaxNode,
)

logger = logging.getLogger(__name__)


class ScopeResolver(Protocol):
    """Caller-supplied collaborator consulted before a name is treated as global."""

    def is_shadowed(self, name: str, path: Sequence[SyntaxNode]) -> bool: ...


def pattern_names(node: object) -> set[str]:
    """Names bound by a parameter or declarator pattern."""
    names: set[str] = set()
    stack = [node]
    while stack:
        current = stack.pop()
        if not isinstance(current, SyntaxNode):
            continue
        if current.kind == IDENTIFIER:
            name = current.get("name")
            if isinstance(name, str):
                names.add(name)
        elif current.kind == ASSIGNMENT_PATTERN:
            stack.append(current.get("left"))
        elif current.kind == PROPERTY_PATTERN:
            stack.append(current.get("value"))
        else:
            stack.extend(current.child_nodes())
    return names


def _declared_in(scope: SyntaxNode) -> set[str]:
    """Names declared directly in a function or program body."""
    names: set[str] = set()
    if scope.kind in FUNCTION_KINDS:
        for param in scope.get("params") or ():
            names |= pattern_names(param)
        # A named function expression binds its own name inside itself.
        if scope.kind == FUNCTION_EXPRESSION:
            names |= pattern_names(scope.get("id"))
    if scope.kind == CATCH_CLAUSE:
        names |= pattern_names(scope.get("param"))

    stack: list[object] = [scope.get("body")]
    while stack:
        current = stack.pop()
        if isinstance(current, tuple):
            stack.extend(current)
            continue
        if not isinstance(current, SyntaxNode):
            continue
        if current.kind == VARIABLE_DECLARATOR:
            names |= pattern_names(current.get("id"))
            stack.append(current.get("init"))
        elif current.kind in (FUNCTION_DECLARATION, CLASS_DECLARATION):
            names |= pattern_names(current.get("id"))
            # Nested function bodies are separate scopes; class bodies are not searched.
        elif current.kind in FUNCTION_KINDS:
            continue
        else:
            stack.extend(current.child_nodes())
    return names


class LocalBindingResolver:
    """Treat a name as shadowed when an enclosing scope declares it."""

    def is_shadowed(self, name: str, path: Sequence[SyntaxNode]) -> bool:
        for ancestor in reversed(path):
            if ancestor.kind in FUNCTION_KINDS or ancestor.kind in (PROGRAM, CATCH_CLAUSE):
                if name in _declared_in(ancestor):
                    logger.debug("'%s' is bound locally in %s", name, ancestor.kind)
                    return True
        return False
