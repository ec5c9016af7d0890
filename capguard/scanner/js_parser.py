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

"""tree-sitter adapter — JavaScript/TypeScript source to ``SyntaxNode`` trees.

Normalises the tree-sitter JavaScript grammar into the ESTree-style shape
the matchers expect:

- call_expression        -> CallExpression(callee, arguments)
- new_expression         -> NewExpression(callee, arguments)
- member_expression      -> MemberExpression(object, property, computed=False)
- subscript_expression   -> MemberExpression(object, property, computed=True)
- identifier & friends   -> Identifier(name)
- string/number/boolean  -> Literal(value)
- template_string        -> TemplateLiteral(expressions)
- a, b                   -> SequenceExpression(expressions)
- import_statement       -> ImportDeclaration(source, specifiers)
- export ... from "x"    -> ImportDeclaration(source, specifiers)

Parentheses are dropped as in ESTree, so ``require(("fs"))`` still carries
a literal argument. Comments are discarded. Everything else keeps its
tree-sitter type as the kind with its named children in a ``children``
slot. TypeScript is parsed with the JavaScript grammar, best effort;
syntax errors become ``ERROR`` nodes that are traversed like any other.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

import tree_sitter_javascript as tsjs
from tree_sitter import Language, Node, Parser

from capguard.models.syntax import (
    ARROW_FUNCTION,
    ASSIGNMENT_PATTERN,
    CALL_EXPRESSION,
    CATCH_CLAUSE,
    CLASS_DECLARATION,
    FUNCTION_DECLARATION,
    FUNCTION_EXPRESSION,
    IDENTIFIER,
    IMPORT_DECLARATION,
    LITERAL,
    MEMBER_EXPRESSION,
    METHOD_DEFINITION,
    NEW_EXPRESSION,
    PROGRAM,
    PROPERTY_PATTERN,
    SEQUENCE_EXPRESSION,
    TEMPLATE_LITERAL,
    VARIABLE_DECLARATOR,
    Span,
    SyntaxNode,
)

logger = logging.getLogger(__name__)

JS_LANGUAGE = Language(tsjs.language())

_IDENTIFIER_TYPES = frozenset({
    "identifier",
    "property_identifier",
    "private_property_identifier",
    "shorthand_property_identifier",
    "shorthand_property_identifier_pattern",
    "statement_identifier",
    "import",  # callee of import("x")
})

_FUNCTION_TYPES: dict[str, str] = {
    "function_declaration": FUNCTION_DECLARATION,
    "generator_function_declaration": FUNCTION_DECLARATION,
    "function_expression": FUNCTION_EXPRESSION,
    "function": FUNCTION_EXPRESSION,  # older grammar releases
    "generator_function": FUNCTION_EXPRESSION,
    "arrow_function": ARROW_FUNCTION,
    "method_definition": METHOD_DEFINITION,
}

_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0",
}

_SKIPPED_TYPES = frozenset({"comment", "html_comment"})


def _text(node: Optional[Node]) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def _span(node: Node) -> Span:
    start, end = node.start_point, node.end_point
    return Span(start[0] + 1, start[1], end[0] + 1, end[1])


def _unwrap(node: Optional[Node]) -> Optional[Node]:
    """Drop parentheses around a single expression."""
    while node is not None and node.type == "parenthesized_expression":
        inner = [c for c in node.named_children if c.type not in _SKIPPED_TYPES]
        if len(inner) != 1:
            break
        node = inner[0]
    return node


def _named(node: Optional[Node]) -> list[Node]:
    if node is None:
        return []
    return [c for c in node.named_children if c.type not in _SKIPPED_TYPES]


def _decode_escape(sequence: str) -> str:
    body = sequence[1:]
    if body in _ESCAPES:
        return _ESCAPES[body]
    try:
        if body.startswith("u{") and body.endswith("}"):
            return chr(int(body[2:-1], 16))
        if body[:1] in ("u", "x") and len(body) > 1:
            return chr(int(body[1:], 16))
    except ValueError:
        pass
    return body


def _string_value(node: Node) -> str:
    parts: list[str] = []
    for child in node.named_children:
        if child.type == "string_fragment":
            parts.append(_text(child))
        elif child.type == "escape_sequence":
            parts.append(_decode_escape(_text(child)))
    return "".join(parts)


def _number_value(raw: str) -> Any:
    cleaned = raw.replace("_", "").rstrip("n")
    try:
        if cleaned.lower().startswith(("0x", "0o", "0b")):
            return int(cleaned, 0)
        if any(ch in cleaned for ch in ".eE"):
            return float(cleaned)
        return int(cleaned)
    except ValueError:
        return raw


def _shell(node: Node) -> SyntaxNode:
    """Create the SyntaxNode for ``node`` with its scalar slots only."""
    span = _span(node)
    t = node.type
    if t in _IDENTIFIER_TYPES:
        return SyntaxNode(IDENTIFIER, {"name": _text(node)}, span)
    if t == "string":
        return SyntaxNode(LITERAL, {"value": _string_value(node), "raw": _text(node)}, span)
    if t == "number":
        return SyntaxNode(LITERAL, {"value": _number_value(_text(node)), "raw": _text(node)}, span)
    if t in ("true", "false"):
        return SyntaxNode(LITERAL, {"value": t == "true", "raw": t}, span)
    if t == "null":
        return SyntaxNode(LITERAL, {"value": None, "raw": t}, span)
    if t == "call_expression":
        return SyntaxNode(CALL_EXPRESSION, span=span)
    if t == "new_expression":
        return SyntaxNode(NEW_EXPRESSION, span=span)
    if t == "member_expression":
        return SyntaxNode(MEMBER_EXPRESSION, {"computed": False}, span)
    if t == "subscript_expression":
        return SyntaxNode(MEMBER_EXPRESSION, {"computed": True}, span)
    if t == "sequence_expression":
        return SyntaxNode(SEQUENCE_EXPRESSION, span=span)
    if t == "template_string":
        return SyntaxNode(TEMPLATE_LITERAL, {"raw": _text(node)}, span)
    if t in ("import_statement", "export_statement"):
        return SyntaxNode(IMPORT_DECLARATION if node.child_by_field_name("source") else t, span=span)
    if t == "variable_declarator":
        return SyntaxNode(VARIABLE_DECLARATOR, span=span)
    if t in _FUNCTION_TYPES:
        return SyntaxNode(_FUNCTION_TYPES[t], span=span)
    if t in ("class_declaration", "class"):
        return SyntaxNode(CLASS_DECLARATION, span=span)
    if t == "catch_clause":
        return SyntaxNode(CATCH_CLAUSE, span=span)
    if t in ("assignment_pattern", "object_assignment_pattern"):
        return SyntaxNode(ASSIGNMENT_PATTERN, span=span)
    if t == "pair_pattern":
        return SyntaxNode(PROPERTY_PATTERN, span=span)
    if t == "program":
        return SyntaxNode(PROGRAM, span=span)
    return SyntaxNode(t, span=span)


def _child_slots(node: Node) -> Iterator[tuple[str, Any]]:
    """Yield (slot, tree-sitter child | list of children | None) in source order."""
    t = node.type
    field = node.child_by_field_name

    if t in _IDENTIFIER_TYPES or t in ("string", "number", "true", "false", "null"):
        return
    if t in ("call_expression", "new_expression"):
        callee = field("function") if t == "call_expression" else field("constructor")
        yield "callee", _unwrap(callee)
        args = field("arguments")
        if args is None:
            yield "arguments", []
        elif args.type == "template_string":  # tagged template: fn`...`
            yield "arguments", [args]
        else:
            yield "arguments", [_unwrap(a) for a in _named(args)]
    elif t == "member_expression":
        yield "object", _unwrap(field("object"))
        yield "property", field("property")
    elif t == "subscript_expression":
        yield "object", _unwrap(field("object"))
        yield "property", _unwrap(field("index"))
    elif t == "sequence_expression":
        yield "expressions", [_unwrap(c) for c in _named(node)]
    elif t == "template_string":
        yield "expressions", [
            _unwrap(sub.named_children[0])
            for sub in node.named_children
            if sub.type == "template_substitution" and sub.named_children
        ]
    elif t in ("import_statement", "export_statement") and field("source") is not None:
        source = field("source")
        yield "specifiers", [c for c in _named(node) if c != source]
        yield "source", source
    elif t == "variable_declarator":
        yield "id", field("name")
        yield "init", _unwrap(field("value"))
    elif t in _FUNCTION_TYPES:
        yield "id", field("name")
        params = field("parameters")
        if params is not None:
            yield "params", _named(params)
        elif field("parameter") is not None:  # x => ...
            yield "params", [field("parameter")]
        else:
            yield "params", []
        yield "body", field("body")
    elif t in ("class_declaration", "class"):
        yield "id", field("name")
        yield "body", field("body")
    elif t == "catch_clause":
        yield "param", field("parameter")
        yield "body", field("body")
    elif t in ("assignment_pattern", "object_assignment_pattern"):
        yield "left", field("left")
        yield "right", _unwrap(field("right"))
    elif t == "pair_pattern":
        yield "key", field("key")
        yield "value", field("value")
    elif t == "program":
        yield "body", _named(node)
    else:
        yield "children", [_unwrap(c) for c in _named(node)]


def convert(root: Node) -> SyntaxNode:
    """Convert a tree-sitter node and its descendants without recursion."""
    converted = _shell(root)
    stack: list[tuple[Node, SyntaxNode]] = [(root, converted)]
    while stack:
        ts_node, node = stack.pop()
        for slot, value in _child_slots(ts_node):
            if isinstance(value, list):
                pairs = [(child, _shell(child)) for child in value if child is not None]
                node.set_slot(slot, [shell for _, shell in pairs])
                stack.extend(pairs)
            elif value is None:
                node.set_slot(slot, None)
            else:
                shell = _shell(value)
                node.set_slot(slot, shell)
                stack.append((value, shell))
    return converted


def parse_source(source: str | bytes) -> SyntaxNode:
    """Parse JavaScript/TypeScript source text into a ``Program`` node."""
    data = source.encode("utf-8") if isinstance(source, str) else source
    # Parser instances are not shared between threads.
    parser = Parser(JS_LANGUAGE)
    tree = parser.parse(data)
    if tree.root_node.has_error:
        logger.debug("Source contains syntax errors; continuing with partial tree")
    return convert(tree.root_node)
