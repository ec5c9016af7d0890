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

"""Capability matchers — one generic dispatch over a tagged rule variant.

A ``Matcher`` is a frozen description of one detection rule: which family
it belongs to (``TriggerKind``), the literal it matches, and the loader or
global names it tracks. Calling it evaluates a node and its ancestor path
and returns at most one ``Finding``. Matchers hold no state and may be
shared across threads.

Families:
- module_load:    require("fs")             -> Finding(fs, direct)
- module_import:  import x from "fs"        -> Finding(fs, direct)
- global_member:  window.XMLHttpRequest     -> Finding(XMLHttpRequest, direct)
- dynamic_load:   require(name)             -> Finding(unknown, dynamic)
- dynamic_access: window["X" + suffix]      -> Finding(unknown, dynamic)

A node missing a slot its kind requires raises ``StructuralError``; the
walker turns that into a diagnostic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from capguard.errors import StructuralError
from capguard.models.capabilities import (
    UNKNOWN_CAPABILITY,
    Confidence,
    Finding,
    TriggerKind,
)
from capguard.models.syntax import (
    CALL_EXPRESSION,
    IDENTIFIER,
    IMPORT_DECLARATION,
    LITERAL,
    MEMBER_EXPRESSION,
    SEQUENCE_EXPRESSION,
    SyntaxNode,
    is_string_literal,
)
from capguard.scanner.scope import ScopeResolver

logger = logging.getLogger(__name__)


TRIGGER_NODE_KINDS: dict[TriggerKind, str] = {
    TriggerKind.MODULE_LOAD: CALL_EXPRESSION,
    TriggerKind.DYNAMIC_LOAD: CALL_EXPRESSION,
    TriggerKind.MODULE_IMPORT: IMPORT_DECLARATION,
    TriggerKind.GLOBAL_MEMBER: MEMBER_EXPRESSION,
    TriggerKind.DYNAMIC_ACCESS: MEMBER_EXPRESSION,
}


@dataclass(frozen=True)
class Matcher:
    """A predicate + extractor bound to one node kind."""

    trigger: TriggerKind
    pattern: Optional[str] = None
    names: frozenset[str] = frozenset()  # loader names or tracked globals
    capability: str = ""
    resolver: Optional[ScopeResolver] = field(default=None, compare=False, repr=False)

    @property
    def node_kind(self) -> str:
        return TRIGGER_NODE_KINDS[self.trigger]

    def __call__(self, node: SyntaxNode, path: Sequence[SyntaxNode]) -> Optional[Finding]:
        return match_node(self, node, path)


def match_node(
    matcher: Matcher, node: SyntaxNode, path: Sequence[SyntaxNode]
) -> Optional[Finding]:
    """Evaluate ``matcher`` against ``node`` with its ancestor ``path``."""
    if node.kind != matcher.node_kind:
        return None
    return _DISPATCH[matcher.trigger](matcher, node, path)


# ── Slot access ──


def _require_slot(node: SyntaxNode, slot: str) -> Any:
    if slot not in node or node[slot] is None:
        raise StructuralError(node.kind, slot)
    return node[slot]


def _require_node(node: SyntaxNode, slot: str) -> SyntaxNode:
    value = _require_slot(node, slot)
    if not isinstance(value, SyntaxNode):
        raise StructuralError(
            node.kind, slot, f"{node.kind} slot '{slot}' holds {type(value).__name__}, not a node"
        )
    return value


def _require_arguments(node: SyntaxNode) -> tuple[Any, ...]:
    value = _require_slot(node, "arguments")
    if not isinstance(value, tuple):
        raise StructuralError(node.kind, "arguments", f"{node.kind} arguments are not a sequence")
    return value


def _tracked_name(
    matcher: Matcher, node: SyntaxNode, path: Sequence[SyntaxNode]
) -> Optional[str]:
    """Return the identifier's name if it resolves to a tracked global or loader."""
    if node.kind != IDENTIFIER:
        return None
    name = node.get("name")
    if not isinstance(name, str) or name not in matcher.names:
        return None
    if matcher.resolver is not None and matcher.resolver.is_shadowed(name, path):
        logger.debug("Skipping shadowed '%s' at line %d", name, node.span.start_line)
        return None
    return name


def _literal_property(member: SyntaxNode) -> Optional[str]:
    """Property name when it is spelled literally: ``obj.name`` or ``obj["name"]``."""
    prop = _require_node(member, "property")
    if member.get("computed", False):
        return prop.get("value") if is_string_literal(prop) else None
    if prop.kind == IDENTIFIER and isinstance(prop.get("name"), str):
        return prop.get("name")
    return None


def _global_reference(
    matcher: Matcher, node: SyntaxNode, path: Sequence[SyntaxNode]
) -> Optional[str]:
    """Tracked global that ``node`` evaluates to.

    Besides a bare identifier this sees through comma expressions
    (``(0, window)``) and self-references between tracked globals
    (``window.window``, ``globalThis.self``).
    """
    current = node
    while True:
        if current.kind == SEQUENCE_EXPRESSION:
            expressions = current.get("expressions") or ()
            if not expressions or not isinstance(expressions[-1], SyntaxNode):
                return None
            current = expressions[-1]
        elif current.kind == MEMBER_EXPRESSION:
            if _literal_property(current) not in matcher.names:
                return None
            current = _require_node(current, "object")
        else:
            return _tracked_name(matcher, current, path)


def _finding(
    matcher: Matcher,
    node: SyntaxNode,
    confidence: Confidence,
    pattern: str,
    message: str,
) -> Finding:
    span = node.span
    capability = matcher.capability or UNKNOWN_CAPABILITY
    return Finding(
        capability=UNKNOWN_CAPABILITY if confidence == Confidence.DYNAMIC else capability,
        confidence=confidence,
        node_kind=node.kind,
        line=span.start_line,
        col=span.start_col,
        end_line=span.end_line,
        end_col=span.end_col,
        pattern=pattern,
        message=message,
    )


# ── Families ──


def _match_module_load(
    matcher: Matcher, node: SyntaxNode, path: Sequence[SyntaxNode]
) -> Optional[Finding]:
    callee = _require_node(node, "callee")
    arguments = _require_arguments(node)
    loader = _tracked_name(matcher, callee, path)
    if loader is None or not arguments:
        return None
    first = arguments[0]
    if is_string_literal(first) and first.get("value") == matcher.pattern:
        return _finding(
            matcher,
            node,
            Confidence.DIRECT,
            matcher.pattern,
            f"Loads restricted module '{matcher.pattern}' via {loader}()",
        )
    return None


def _match_dynamic_load(
    matcher: Matcher, node: SyntaxNode, path: Sequence[SyntaxNode]
) -> Optional[Finding]:
    callee = _require_node(node, "callee")
    arguments = _require_arguments(node)
    loader = _tracked_name(matcher, callee, path)
    if loader is None or not arguments:
        return None
    if is_string_literal(arguments[0]):
        return None
    return _finding(
        matcher,
        node,
        Confidence.DYNAMIC,
        f"{loader}(<expr>)",
        f"Module path passed to {loader}() is computed at runtime — capability cannot be resolved",
    )


def _match_module_import(
    matcher: Matcher, node: SyntaxNode, path: Sequence[SyntaxNode]
) -> Optional[Finding]:
    source = node.get("source")
    if source is None:
        return None
    if is_string_literal(source) and source.get("value") == matcher.pattern:
        return _finding(
            matcher,
            node,
            Confidence.DIRECT,
            matcher.pattern,
            f"Imports restricted module '{matcher.pattern}'",
        )
    return None


def _match_global_member(
    matcher: Matcher, node: SyntaxNode, path: Sequence[SyntaxNode]
) -> Optional[Finding]:
    obj = _require_node(node, "object")
    prop_name = _literal_property(node)
    global_name = _global_reference(matcher, obj, path)
    if global_name is None or prop_name != matcher.pattern:
        return None
    return _finding(
        matcher,
        node,
        Confidence.DIRECT,
        matcher.pattern,
        f"Accesses {global_name}.{prop_name}",
    )


def _match_dynamic_access(
    matcher: Matcher, node: SyntaxNode, path: Sequence[SyntaxNode]
) -> Optional[Finding]:
    obj = _require_node(node, "object")
    prop = _require_node(node, "property")
    global_name = _global_reference(matcher, obj, path)
    if global_name is None or not node.get("computed", False):
        return None
    if prop.kind == LITERAL:
        return None
    return _finding(
        matcher,
        node,
        Confidence.DYNAMIC,
        f"{global_name}[<expr>]",
        f"Computed property access on global '{global_name}' — capability cannot be resolved",
    )


_DISPATCH: dict[
    TriggerKind,
    Callable[[Matcher, SyntaxNode, Sequence[SyntaxNode]], Optional[Finding]],
] = {
    TriggerKind.MODULE_LOAD: _match_module_load,
    TriggerKind.DYNAMIC_LOAD: _match_dynamic_load,
    TriggerKind.MODULE_IMPORT: _match_module_import,
    TriggerKind.GLOBAL_MEMBER: _match_global_member,
    TriggerKind.DYNAMIC_ACCESS: _match_dynamic_access,
}
