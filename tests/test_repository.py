"""Tests for mimeident.repository."""

import pytest

from mimeident.errors import ConfigError
from mimeident.mediatype import OCTET_STREAM, TEXT_PLAIN, MediaType
from mimeident.patterns import compile_clause
from mimeident.repository import (
    ContainerRule,
    GlobRule,
    RuleRepository,
    SignatureRule,
    TypeDefinition,
)

A = MediaType.parse("application/x-a")
B = MediaType.parse("application/x-b")
C = MediaType.parse("application/x-c")
OLD_B = MediaType.parse("application/x-old-b")


@pytest.fixture
def repo():
    return RuleRepository(
        [
            TypeDefinition(A),
            TypeDefinition(B, parent=A, aliases=(OLD_B,)),
            TypeDefinition(C, extensions=(".c1", ".c2")),
        ],
        signatures=[SignatureRule(B, (compile_clause("string", "BBBB"),))],
        globs=[GlobRule("*.b", B), GlobRule("*.bee", B), GlobRule("*.c", C)],
    )


class TestRuleRepository:
    def test_types_in_declaration_order(self, repo):
        assert repo.types == (A, B, C)
        assert len(repo) == 3

    def test_canonical_alias(self, repo):
        assert repo.canonical("application/x-old-b") == B
        assert repo.canonical(OLD_B) == B
        assert repo.canonical(A) == A

    def test_canonical_keeps_parameters(self, repo):
        mt = repo.canonical("application/x-old-b; version=2")
        assert mt.base == B
        assert mt.parameters == (("version", "2"),)

    def test_contains(self, repo):
        assert B in repo
        assert "application/x-old-b" in repo
        assert MediaType.parse("application/x-z") not in repo

    def test_hierarchy(self, repo):
        assert repo.parent(B) == A
        assert repo.parent(A) == OCTET_STREAM
        assert repo.parent(OCTET_STREAM) is None
        assert repo.ancestors(B) == (A, OCTET_STREAM)
        assert repo.is_a(B, A)
        assert repo.is_a(OLD_B, A)
        assert repo.is_a(B, B)
        assert not repo.is_a(A, B)
        assert repo.is_a(C, OCTET_STREAM)

    def test_text_types_specialise_text_plain(self, repo):
        csv = MediaType.parse("text/csv")
        assert repo.parent(csv) == TEXT_PLAIN
        assert repo.ancestors(csv) == (TEXT_PLAIN, OCTET_STREAM)

    def test_extensions_from_globs(self, repo):
        assert repo.extensions(B) == (".b", ".bee")
        assert repo.preferred_extension(OLD_B) == ".b"

    def test_explicit_extensions_win(self, repo):
        assert repo.extensions(C) == (".c1", ".c2")

    def test_unknown_extension_is_empty(self, repo):
        assert repo.preferred_extension(A) == ""
        assert repo.preferred_extension("application/x-unknown") == ""

    def test_rule_order_assigned(self, repo):
        assert [g.order for g in repo.globs] == [0, 1, 2]

    def test_lookahead(self, repo):
        assert repo.lookahead == 4

    def test_rules_resolve_aliases(self):
        repo = RuleRepository(
            [TypeDefinition(B, aliases=(OLD_B,))],
            globs=[GlobRule("*.old", OLD_B)],
        )
        assert repo.globs[0].media_type == B


class TestRepositoryValidation:
    def test_duplicate_type(self):
        with pytest.raises(ConfigError):
            RuleRepository([TypeDefinition(A), TypeDefinition(A)])

    def test_dangling_signature(self):
        with pytest.raises(ConfigError) as exc:
            RuleRepository(
                [TypeDefinition(A)],
                signatures=[SignatureRule(B, (compile_clause("string", "B"),))],
            )
        assert exc.value.rule == str(B)

    def test_dangling_glob(self):
        with pytest.raises(ConfigError):
            RuleRepository([TypeDefinition(A)], globs=[GlobRule("*.b", B)])

    def test_dangling_container(self):
        with pytest.raises(ConfigError):
            RuleRepository([TypeDefinition(A)],
                           containers=[ContainerRule(B, "zip", "b/*")])

    def test_dangling_parent(self):
        with pytest.raises(ConfigError):
            RuleRepository([TypeDefinition(A, parent=B)])

    def test_cycle(self):
        with pytest.raises(ConfigError):
            RuleRepository([TypeDefinition(A, parent=B), TypeDefinition(B, parent=A)])

    def test_self_parent(self):
        with pytest.raises(ConfigError):
            RuleRepository([TypeDefinition(A, parent=A)])

    def test_alias_naming_a_type(self):
        with pytest.raises(ConfigError):
            RuleRepository([TypeDefinition(A, aliases=(B,)), TypeDefinition(B)])

    def test_alias_for_two_types(self):
        with pytest.raises(ConfigError):
            RuleRepository([
                TypeDefinition(A, aliases=(OLD_B,)),
                TypeDefinition(B, aliases=(OLD_B,)),
            ])


class TestGlobRule:
    def test_kinds(self):
        assert GlobRule("Makefile", A).kind == "literal"
        assert GlobRule("*.tar.gz", A).kind == "extension"
        assert GlobRule("*.tar.gz", A).extension == ".tar.gz"
        assert GlobRule("*-gz", A).kind == "glob"
        assert GlobRule("*-gz", A).extension is None

    def test_case_insensitive_by_default(self):
        assert GlobRule("*.gz", A).matches("ARCHIVE.GZ")

    def test_case_sensitive(self):
        rule = GlobRule("*.C", A, case_sensitive=True)
        assert rule.matches("main.C")
        assert not rule.matches("main.c")

    @pytest.mark.parametrize("pattern", ["", "a/*.b", "*.[ab", "[[a]]"])
    def test_invalid(self, pattern):
        with pytest.raises(ValueError):
            GlobRule(pattern, A)
