"""Tests for the optional local binding resolver."""

from capguard.models.syntax import (
    ARROW_FUNCTION,
    CATCH_CLAUSE,
    FUNCTION_DECLARATION,
    VARIABLE_DECLARATOR,
    SyntaxNode,
    identifier,
    literal,
    member,
    program,
)
from capguard.scanner.auditor import audit_source
from capguard.scanner.scope import LocalBindingResolver, pattern_names


def _declarator(name, init=None):
    return SyntaxNode(VARIABLE_DECLARATOR, {"id": identifier(name), "init": init})


class TestPatternNames:
    def test_identifier(self):
        assert pattern_names(identifier("a")) == {"a"}

    def test_destructuring(self):
        pattern = SyntaxNode(
            "object_pattern",
            {"children": [identifier("fetch"), SyntaxNode("PropertyPattern", {"key": identifier("k"), "value": identifier("v")})]},
        )
        assert pattern_names(pattern) == {"fetch", "v"}

    def test_default_value_not_bound(self):
        pattern = SyntaxNode("AssignmentPattern", {"left": identifier("x"), "right": identifier("fallback")})
        assert pattern_names(pattern) == {"x"}

    def test_none(self):
        assert pattern_names(None) == set()


class TestLocalBindingResolver:
    """Lexical lookup through the ancestor path."""

    def setup_method(self):
        self.resolver = LocalBindingResolver()

    def test_unbound_global(self):
        use = member(identifier("window"), identifier("fetch"))
        root = program([use])
        assert not self.resolver.is_shadowed("window", (root, use))

    def test_program_declaration(self):
        use = member(identifier("window"), identifier("fetch"))
        root = program([_declarator("window", literal(None)), use])
        assert self.resolver.is_shadowed("window", (root, use))

    def test_function_parameter(self):
        use = member(identifier("window"), identifier("fetch"))
        fn = SyntaxNode(
            FUNCTION_DECLARATION,
            {"id": identifier("f"), "params": [identifier("window")], "body": SyntaxNode("statement_block", {"children": [use]})},
        )
        root = program([fn])
        assert self.resolver.is_shadowed("window", (root, fn, fn["body"], use))

    def test_sibling_function_scope_does_not_leak(self):
        inner = SyntaxNode(
            ARROW_FUNCTION,
            {"params": [identifier("require")], "body": identifier("require")},
        )
        use = member(identifier("window"), identifier("fetch"))
        root = program([inner, use])
        assert not self.resolver.is_shadowed("require", (root, use))

    def test_function_declaration_name(self):
        fn = SyntaxNode(FUNCTION_DECLARATION, {"id": identifier("require"), "params": [], "body": None})
        use = identifier("require")
        root = program([fn, use])
        assert self.resolver.is_shadowed("require", (root,))

    def test_catch_parameter(self):
        use = identifier("self")
        clause = SyntaxNode(CATCH_CLAUSE, {"param": identifier("self"), "body": SyntaxNode("statement_block", {"children": [use]})})
        root = program([clause])
        assert self.resolver.is_shadowed("self", (root, clause, clause["body"]))


class TestResolverInAudit:
    """The resolver wired through the catalog."""

    SOURCE = (
        "function send(window) {\n"
        "  return window.fetch('/x');\n"
        "}\n"
    )

    def test_off_by_default_reports(self, catalog):
        audit = audit_source(self.SOURCE, catalog, [])
        assert [f.capability for f in audit.result.violations] == ["fetch"]

    def test_shadowed_parameter_ignored(self, scoped_catalog):
        audit = audit_source(self.SOURCE, scoped_catalog, [])
        assert audit.result.violations == ()

    def test_local_require(self, scoped_catalog):
        source = "const require = (m) => m;\nrequire('fs');\n"
        assert audit_source(source, scoped_catalog, []).result.violations == ()

    def test_unshadowed_still_reported(self, scoped_catalog):
        source = "function f(win) { return window.fetch; }\n"
        audit = audit_source(source, scoped_catalog, [])
        assert [f.capability for f in audit.result.violations] == ["fetch"]
