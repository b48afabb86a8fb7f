from __future__ import annotations

import re

import pytest

from callclinic.errors import ConfigError
from callclinic.match_spec import (
    ArityRange,
    ScopeSpec,
    StructSpec,
    SymbolSpec,
    compile_spec,
    compile_specs,
    matches_any,
    reject_matching,
)
from callclinic.node_types import Finding, FindingKind, Meta, SourceLocation, Symbol


def _finding(sym: Symbol, kind: FindingKind = FindingKind.UNUSED) -> Finding:
    return Finding(sym, kind, SourceLocation("m.py", 1), f"{sym} is unused")


def test_bare_string_is_scope_spec() -> None:
    spec = compile_spec("pkg.mod")

    assert isinstance(spec, ScopeSpec)
    assert spec.matches(Symbol("pkg.mod", "anything", 3))
    assert not spec.matches(Symbol("pkg.mod.sub", "anything", 3))


def test_wildcards_collapse_to_scope_spec() -> None:
    assert isinstance(compile_spec(["pkg.mod", "_", "_"]), ScopeSpec)
    assert isinstance(compile_spec(["pkg.mod", "*"]), ScopeSpec)


def test_exact_symbol_and_two_element_form() -> None:
    exact = compile_spec(["pkg.mod", "handler", 1])
    any_arity = compile_spec(["pkg.mod", "handler"])

    assert isinstance(exact, SymbolSpec)
    assert exact.matches(Symbol("pkg.mod", "handler", 1))
    assert not exact.matches(Symbol("pkg.mod", "handler", 2))
    assert any_arity.matches(Symbol("pkg.mod", "handler", 2))


def test_regex_fields_use_search_semantics() -> None:
    spec = compile_spec(["_", "re:^__.+__$", "_"])

    assert spec.matches(Symbol("a.B", "__enter__", 0))
    assert not spec.matches(Symbol("a.B", "enter", 0))
    assert compile_spec("re:legacy").matches(Symbol("pkg.legacy.old", "f", 0))
    assert compile_spec(re.compile(r"^pkg\.")).matches(Symbol("pkg.x", "f", 0))


def test_arity_range_is_inclusive() -> None:
    spec = compile_spec(["pkg.mod", "load", "1..2"])

    assert isinstance(spec.arity, ArityRange)
    assert [spec.matches(Symbol("pkg.mod", "load", n)) for n in range(4)] == [False, True, True, False]
    assert compile_spec({"scope": "pkg.mod", "name": "load", "arity": range(1, 3)}) == spec


def test_struct_spec_covers_both_arities() -> None:
    spec = compile_spec(["pkg.models.User", "__struct__", 0])

    assert isinstance(spec, StructSpec)
    assert spec.matches(Symbol("pkg.models.User", "__struct__", 0))
    assert spec.matches(Symbol("pkg.models.User", "__struct__", 1))
    assert not spec.matches(Symbol("pkg.models.User", "save", 0))


def test_predicates_with_one_or_two_arguments() -> None:
    by_symbol = compile_spec(lambda sym: sym.name.startswith("cmd_"))
    by_meta = compile_spec(lambda sym, meta: "click.command" in meta.decorators)

    assert by_symbol.matches(Symbol("cli", "cmd_run", 0))
    assert by_meta.matches(Symbol("cli", "run", 0), Meta(decorators=["click.command"]))
    assert not by_meta.matches(Symbol("cli", "run", 0))


def test_compiling_is_idempotent() -> None:
    spec = compile_spec(["pkg.mod", "handler", 1])

    assert compile_spec(spec) is spec
    assert compile_specs([spec, "pkg"]) == [spec, compile_spec("pkg")]


@pytest.mark.parametrize(
    "raw",
    [
        ["pkg", "re:(", 0],
        "re:[unclosed",
        ["pkg", "f", "3..1"],
        ["pkg", "f", -1],
        ["pkg", "f", True],
        ["pkg", "f", "many"],
        ["pkg", "f", 0, "extra"],
        {"scope": "pkg", "nmae": "f"},
        ["pkg", ""],
        42,
        lambda a, b, c: True,
    ],
)
def test_invalid_specs_raise_config_error(raw) -> None:
    with pytest.raises(ConfigError):
        compile_spec(raw)


def test_config_error_mentions_offending_spec() -> None:
    with pytest.raises(ConfigError) as exc:
        compile_specs([["pkg", "f", "9..2"]])

    assert "9..2" in str(exc.value)


def test_wildcard_subsumes_narrower_specs() -> None:
    findings = [
        _finding(Symbol("pkg.mod", "a", 0)),
        _finding(Symbol("pkg.mod", "b", 2)),
        _finding(Symbol("other", "c", 0)),
    ]
    broad = compile_specs([["pkg.mod", "_", "_"]])
    both = compile_specs([["pkg.mod", "_", "_"], ["pkg.mod", "a", 0]])

    assert reject_matching(findings, broad) == reject_matching(findings, both)
    assert [str(f.symbol) for f in reject_matching(findings, broad)] == ["other.c/0"]


def test_reject_matching_is_idempotent() -> None:
    findings = [_finding(Symbol("pkg.mod", "a", 0)), _finding(Symbol("keep", "b", 0))]
    specs = compile_specs(["pkg.mod"])

    once = reject_matching(findings, specs)

    assert reject_matching(once, specs) == once


def test_field_initializer_dropped_when_class_is_unused() -> None:
    struct0 = Symbol("m.Point", "__struct__", 0)
    struct1 = Symbol("m.Point", "__struct__", 1)
    lone1 = Symbol("m.Other", "__struct__", 1)

    kept = reject_matching([_finding(struct0), _finding(struct1), _finding(lone1)], [])

    assert [f.symbol for f in kept] == [struct0, lone1]


def test_predicate_receives_meta_from_lookup() -> None:
    sym = Symbol("m", "view", 0)
    specs = compile_specs([lambda s, meta: meta.kind == "method"])

    assert reject_matching([_finding(sym)], specs, {sym: Meta(kind="method")}) == []
    assert matches_any(specs, sym, Meta(kind="function")) is False


def test_failing_predicate_raises_config_error() -> None:
    def explode(sym):
        raise KeyError(sym.name)

    specs = compile_specs([explode])

    with pytest.raises(ConfigError) as exc:
        reject_matching([_finding(Symbol("m", "f", 0))], specs)

    assert "explode" in str(exc.value)
    assert "m.f/0" in str(exc.value)
