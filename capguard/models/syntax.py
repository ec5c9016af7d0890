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

"""Syntax tree contract consumed by the walker and matchers.

A ``SyntaxNode`` has a ``kind`` tag, an ordered mapping of named slots
(child nodes, tuples of child nodes, or scalar literals) and a source span.
The parent link is a weak reference: a node never owns its parent, and
matchers receive the ancestor path from the walker instead of reading it.

The kinds below follow ESTree naming. Parser adapters must produce at
least ``CallExpression``, ``MemberExpression``, ``Identifier`` and
``Literal``; anything else is traversed generically.
"""

from __future__ import annotations

import weakref
from typing import Any, Iterator, NamedTuple, Optional, Sequence, Union

# ── Node kinds ──

PROGRAM = "Program"
CALL_EXPRESSION = "CallExpression"
NEW_EXPRESSION = "NewExpression"
MEMBER_EXPRESSION = "MemberExpression"
IDENTIFIER = "Identifier"
LITERAL = "Literal"
TEMPLATE_LITERAL = "TemplateLiteral"
IMPORT_DECLARATION = "ImportDeclaration"
VARIABLE_DECLARATOR = "VariableDeclarator"
FUNCTION_DECLARATION = "FunctionDeclaration"
FUNCTION_EXPRESSION = "FunctionExpression"
ARROW_FUNCTION = "ArrowFunctionExpression"
METHOD_DEFINITION = "MethodDefinition"
CLASS_DECLARATION = "ClassDeclaration"
CATCH_CLAUSE = "CatchClause"
ASSIGNMENT_PATTERN = "AssignmentPattern"
PROPERTY_PATTERN = "PropertyPattern"
SEQUENCE_EXPRESSION = "SequenceExpression"

FUNCTION_KINDS = frozenset({
    FUNCTION_DECLARATION,
    FUNCTION_EXPRESSION,
    ARROW_FUNCTION,
    METHOD_DEFINITION,
})

Scalar = Union[str, int, float, bool, None]


class Span(NamedTuple):
    """Source position: 1-based lines, 0-based columns."""

    start_line: int = 0
    start_col: int = 0
    end_line: int = 0
    end_col: int = 0


class SyntaxNode:
    """A node of a finite, acyclic syntax tree."""

    __slots__ = ("kind", "span", "_slots", "_parent", "__weakref__")

    def __init__(
        self,
        kind: str,
        slots: Optional[dict[str, Any]] = None,
        span: Optional[Span] = None,
    ) -> None:
        self.kind = kind
        self.span = span or Span()
        self._slots: dict[str, Any] = {}
        self._parent: Optional[weakref.ref[SyntaxNode]] = None
        for name, value in (slots or {}).items():
            self.set_slot(name, value)

    @property
    def parent(self) -> Optional[SyntaxNode]:
        """The parent node, if it is still alive. Not for use by matchers."""
        return self._parent() if self._parent is not None else None

    @property
    def slots(self) -> dict[str, Any]:
        return dict(self._slots)

    def set_slot(self, name: str, value: Any) -> None:
        """Attach a child node, a sequence of child nodes, or a scalar."""
        if isinstance(value, list):
            value = tuple(value)
        for child in _nodes_in(value):
            current = child.parent
            if current is not None and current is not self:
                raise ValueError(f"{child.kind} node already belongs to a {current.kind} node")
            if child is self:
                raise ValueError("A node cannot be its own child")
            child._parent = weakref.ref(self)
        self._slots[name] = value

    def get(self, name: str, default: Any = None) -> Any:
        return self._slots.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self._slots

    def __getitem__(self, name: str) -> Any:
        return self._slots[name]

    def child_nodes(self) -> list[SyntaxNode]:
        """Child nodes in slot order, sequences flattened."""
        children: list[SyntaxNode] = []
        for value in self._slots.values():
            children.extend(_nodes_in(value))
        return children

    def iter_tree(self) -> Iterator[SyntaxNode]:
        """Pre-order iteration over this node and its descendants."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.child_nodes()))

    def __repr__(self) -> str:
        scalars = ", ".join(
            f"{k}={v!r}" for k, v in self._slots.items() if not _nodes_in(v)
        )
        return f"SyntaxNode({self.kind}{', ' + scalars if scalars else ''})"


def _nodes_in(value: Any) -> list[SyntaxNode]:
    if isinstance(value, SyntaxNode):
        return [value]
    if isinstance(value, tuple):
        return [v for v in value if isinstance(v, SyntaxNode)]
    return []


def is_string_literal(node: Any) -> bool:
    return (
        isinstance(node, SyntaxNode)
        and node.kind == LITERAL
        and isinstance(node.get("value"), str)
    )


# ── Builders ──
# Used by parser adapters and for analysing hand-built expressions in isolation.


def identifier(name: str, span: Optional[Span] = None) -> SyntaxNode:
    return SyntaxNode(IDENTIFIER, {"name": name}, span)


def literal(value: Scalar, span: Optional[Span] = None) -> SyntaxNode:
    return SyntaxNode(LITERAL, {"value": value}, span)


def call(
    callee: SyntaxNode,
    arguments: Sequence[SyntaxNode] = (),
    span: Optional[Span] = None,
) -> SyntaxNode:
    return SyntaxNode(CALL_EXPRESSION, {"callee": callee, "arguments": list(arguments)}, span)


def member(
    obj: SyntaxNode,
    prop: SyntaxNode,
    computed: bool = False,
    span: Optional[Span] = None,
) -> SyntaxNode:
    return SyntaxNode(
        MEMBER_EXPRESSION,
        {"object": obj, "property": prop, "computed": computed},
        span,
    )


def program(body: Sequence[SyntaxNode] = (), span: Optional[Span] = None) -> SyntaxNode:
    return SyntaxNode(PROGRAM, {"body": list(body)}, span)
