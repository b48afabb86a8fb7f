from __future__ import annotations

from typing import List, Tuple

from callclinic.analyze import analyze, live_set, strongly_connected_components
from callclinic.call_graph import build_graph
from callclinic.match_spec import compile_specs
from callclinic.node_types import Call, Definition, FindingKind, Meta, Symbol

_LINES = {}


def d(scope: str, name: str, arity: int = 0, **meta) -> Definition:
    line = _LINES.setdefault((scope, name, arity), len(_LINES) + 1)
    meta.setdefault("file", scope.replace(".", "/") + ".py")
    meta.setdefault("line", line)
    return Definition(Symbol(scope, name, arity), Meta(**meta))


def c(caller: Definition, callee: Definition) -> Call:
    return Call(caller.symbol, callee.symbol)


def kinds(result) -> List[Tuple[str, FindingKind]]:
    return [(str(f.symbol), f.kind) for f in result.findings]


def test_unreachable_definition_is_unused() -> None:
    main = d("m", "main", export=True)
    a, b, dead = d("m", "a"), d("m", "b"), d("m", "dead")
    graph = build_graph([main, a, b, dead, c(main, a), c(a, b), c(dead, b)])

    result = analyze(graph, checks=["unused"])

    assert kinds(result) == [("m.dead/0", FindingKind.UNUSED)]
    assert result.live == {main.symbol, a.symbol, b.symbol}
    assert result.findings[0].message == "m.dead/0 is unused"


def test_private_definitions_are_never_roots() -> None:
    hidden = d("m", "_hidden", visibility="private", export=True)
    graph = build_graph([hidden])

    result = analyze(graph, checks=["unused"])

    assert result.roots == set()
    assert kinds(result) == [("m._hidden/0", FindingKind.UNUSED)]


def test_self_loop_without_root_is_unused_and_recursive_only() -> None:
    loop = d("m", "loop")
    graph = build_graph([loop, c(loop, loop)])

    result = analyze(graph)

    assert set(kinds(result)) == {
        ("m.loop/0", FindingKind.UNUSED),
        ("m.loop/0", FindingKind.RECURSIVE_ONLY),
    }


def test_mutual_recursion_reachable_from_root_is_clean() -> None:
    main = d("m", "main", export=True)
    ping, pong = d("m", "ping"), d("m", "pong")
    graph = build_graph([main, ping, pong, c(main, ping), c(ping, pong), c(pong, ping)])

    result = analyze(graph, checks=["unused", "recursive_only"])

    assert result.findings == []


def test_cycle_called_only_from_dead_code_is_recursive_only() -> None:
    dead = d("m", "dead")
    ping, pong = d("m", "ping"), d("m", "pong")
    graph = build_graph([dead, ping, pong, c(dead, ping), c(ping, pong), c(pong, ping)])

    result = analyze(graph, checks=["recursive_only"])

    assert kinds(result) == [
        ("m.ping/0", FindingKind.RECURSIVE_ONLY),
        ("m.pong/0", FindingKind.RECURSIVE_ONLY),
    ]


def test_cycle_containing_root_is_not_recursive_only() -> None:
    ping = d("m", "ping", export=True)
    pong = d("m", "pong")
    graph = build_graph([ping, pong, c(ping, pong), c(pong, ping)])

    result = analyze(graph, checks=["recursive_only"])

    assert result.findings == []


def test_public_symbol_called_only_from_own_scope_is_narrowable() -> None:
    main = d("m", "main", export=True)
    helper = d("m", "helper")
    shared = d("m", "shared")
    other = d("n", "other", export=True)
    graph = build_graph(
        [main, helper, shared, other, c(main, helper), c(main, shared), c(other, shared)]
    )

    result = analyze(graph, checks=["private"])

    assert kinds(result) == [("m.helper/0", FindingKind.NARROWABLE_VISIBILITY)]
    assert result.findings[0].message == "m.helper/0 should be private (is not used outside m)"


def test_self_call_alone_does_not_make_symbol_narrowable() -> None:
    loop = d("m", "loop", export=False)
    graph = build_graph([loop, c(loop, loop)])

    result = analyze(graph, checks=["private"])

    assert result.findings == []


def test_narrowable_check_skips_likely_roots_by_default() -> None:
    main = d("m", "main", export=True)
    hook = d("m", "hook")
    graph = build_graph([main, hook, c(main, hook)])

    def oracle(sym, meta):
        return sym.name == "hook"

    assert analyze(graph, checks=["private"], oracle=oracle).findings == []
    result = analyze(graph, checks=["private"], oracle=oracle, narrow_skip_likely_roots=False)
    assert kinds(result) == [("m.hook/0", FindingKind.NARROWABLE_VISIBILITY)]


def test_oracle_and_ignore_specs_add_roots() -> None:
    cb = d("m", "on_event")
    ignored = d("legacy", "old")
    helper = d("m", "helper")
    graph = build_graph([cb, ignored, helper, c(cb, helper)])

    result = analyze(
        graph,
        checks=["unused"],
        oracle=lambda sym, meta: sym.name == "on_event",
        root_specs=compile_specs(["legacy"]),
    )

    assert result.findings == []
    assert result.roots == {cb.symbol, ignored.symbol}


def test_module_body_is_never_reported() -> None:
    body = d("m", "<module>", kind="module", generated=True)
    graph = build_graph([body])

    assert analyze(graph).findings == []


def test_unknown_checks_are_ignored_and_aliases_accepted() -> None:
    dead = d("m", "dead")
    graph = build_graph([dead, c(dead, dead)])

    result = analyze(graph, checks=["bogus", "recursive"])

    assert kinds(result) == [("m.dead/0", FindingKind.RECURSIVE_ONLY)]


def test_severity_and_sorting() -> None:
    late = d("m", "late", line=20)
    early = d("m", "early", line=3)
    other_file = d("a", "first", line=50)
    graph = build_graph([late, early, other_file])

    result = analyze(graph, checks=["unused"], severity="warning")

    assert [str(f.symbol) for f in result.findings] == ["a.first/0", "m.early/0", "m.late/0"]
    assert {f.severity for f in result.findings} == {"warning"}


def test_struct_message_names_the_class() -> None:
    cls = Definition(Symbol("m.Point", "__struct__", 0), Meta(file="m.py", line=1, kind="class"))
    graph = build_graph([cls])

    result = analyze(graph, checks=["unused"])

    assert result.findings[0].message == "class m.Point is unused"


def test_live_set_ignores_undefined_nodes() -> None:
    main = d("m", "main")
    graph = build_graph([main, Call(main.symbol, Symbol("os", "getcwd", 0))])

    assert live_set(graph, [main.symbol, Symbol("x", "missing", 0)]) == {main.symbol}


def test_scc_handles_long_chains_without_recursion_limit() -> None:
    defs = [d("chain", f"f{i}") for i in range(3000)]
    calls = [c(defs[i], defs[i + 1]) for i in range(len(defs) - 1)]
    calls.append(c(defs[-1], defs[0]))
    graph = build_graph(defs + calls)

    sccs = strongly_connected_components(graph)

    assert len(sccs) == 1
    assert len(sccs[0]) == 3000


def test_two_symbol_cycle_without_root_is_unused_and_recursive_only() -> None:
    x, y = d("m", "x"), d("m", "y")
    graph = build_graph([x, y, c(x, y), c(y, x)])

    result = analyze(graph, checks=["unused", "recursive_only"])

    assert set(kinds(result)) == {
        ("m.x/0", FindingKind.UNUSED),
        ("m.x/0", FindingKind.RECURSIVE_ONLY),
        ("m.y/0", FindingKind.UNUSED),
        ("m.y/0", FindingKind.RECURSIVE_ONLY),
    }


def test_public_symbol_without_callers_is_unused_not_narrowable() -> None:
    lonely = d("m", "lonely")
    graph = build_graph([lonely])

    result = analyze(graph)

    assert kinds(result) == [("m.lonely/0", FindingKind.UNUSED)]


def test_function_called_only_from_methods_of_own_module_is_narrowable() -> None:
    service = Definition(
        Symbol("app.core.Service", "__struct__", 0), Meta(file="app/core.py", line=4, kind="class", export=True)
    )
    go = d("app.core.Service", "go", kind="method", export=True)
    helper = d("app.core", "helper")
    graph = build_graph([service, go, helper, c(go, helper)])

    result = analyze(graph, checks=["private"])

    assert kinds(result) == [("app.core.helper/0", FindingKind.NARROWABLE_VISIBILITY)]


def test_caller_in_submodule_is_outside_scope() -> None:
    main = d("pkg", "main", export=True)
    helper = d("pkg", "helper")
    sub = d("pkg.sub", "run", export=True)
    graph = build_graph([main, helper, sub, c(main, helper), c(sub, helper)])

    assert analyze(graph, checks=["private"]).findings == []


def test_live_set_is_monotonic() -> None:
    a, b, e, f = d("mono", "a"), d("mono", "b"), d("mono", "e"), d("mono", "f")
    facts = [a, b, e, f, c(a, b)]
    roots = {a.symbol, e.symbol}
    base = live_set(build_graph(facts), roots)

    # an extra edge never shrinks the live set
    assert live_set(build_graph(facts + [c(b, f)]), roots) >= base
    # dropping a root never grows it
    for root in roots:
        assert live_set(build_graph(facts), roots - {root}) <= base
