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

"""Depth-first AST walker dispatching to per-kind matchers.

The walker visits every node pre-order, siblings in source order, and
runs each matcher bound to the node's kind in registration order. It
carries no global state: the ancestor path and the collected findings
live on the walk itself, so any sub-tree can be walked in isolation and
walks can run in parallel.

It never stops at the first finding. A matcher that raises
``StructuralError`` skips the node: findings earlier matchers made for
it are dropped, the node is recorded as a diagnostic, and its children
are still visited.
"""

from __future__ import annotations

import logging
from typing import Callable, Mapping, NamedTuple, Optional, Protocol, Sequence, Union

from capguard.errors import StructuralError
from capguard.models.capabilities import Diagnostic, Finding
from capguard.models.syntax import SyntaxNode

logger = logging.getLogger(__name__)

MatcherFn = Callable[[SyntaxNode, Sequence[SyntaxNode]], Optional[Finding]]


class MatcherSource(Protocol):
    def matchers_for(self, node_kind: str) -> Sequence[MatcherFn]: ...


Visitors = Union[MatcherSource, Mapping[str, Sequence[MatcherFn]]]


class WalkResult(NamedTuple):
    findings: tuple[Finding, ...]
    diagnostics: tuple[Diagnostic, ...]


def _lookup(visitors: Visitors) -> Callable[[str], Sequence[MatcherFn]]:
    if hasattr(visitors, "matchers_for"):
        return visitors.matchers_for  # type: ignore[union-attr]
    return lambda kind: visitors.get(kind, ())  # type: ignore[union-attr]


def ordered_children(node: SyntaxNode) -> list[SyntaxNode]:
    """Children in source order; slot order breaks ties (e.g. spanless nodes)."""
    return sorted(
        node.child_nodes(),
        key=lambda child: (child.span.start_line, child.span.start_col),
    )


def walk(root: SyntaxNode, visitors: Visitors) -> WalkResult:
    """Traverse ``root`` and collect every finding the matchers produce."""
    matchers_for = _lookup(visitors)
    findings: list[Finding] = []
    diagnostics: list[Diagnostic] = []

    # Explicit stack keeps deeply nested minified code off the recursion limit.
    stack: list[tuple[SyntaxNode, tuple[SyntaxNode, ...]]] = [(root, ())]
    while stack:
        node, path = stack.pop()

        node_findings: list[Finding] = []
        for matcher in matchers_for(node.kind):
            try:
                finding = matcher(node, path)
            except StructuralError as e:
                logger.debug(
                    "Skipping malformed %s at %d:%d: %s",
                    node.kind, node.span.start_line, node.span.start_col, e,
                )
                diagnostics.append(
                    Diagnostic(
                        kind="structural",
                        message=str(e),
                        node_kind=node.kind,
                        line=node.span.start_line,
                        col=node.span.start_col,
                    )
                )
                break
            if finding is not None:
                node_findings.append(finding)
        else:
            findings.extend(node_findings)

        children = ordered_children(node)
        if children:
            child_path = path + (node,)
            stack.extend((child, child_path) for child in reversed(children))

    return WalkResult(tuple(findings), tuple(diagnostics))
