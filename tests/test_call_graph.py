from __future__ import annotations

from callclinic.call_graph import build_graph
from callclinic.node_types import Call, Definition, Meta, SourceLocation, Symbol

MAIN = Symbol("app", "main", 0)
HELPER = Symbol("app", "helper", 1)
EXTERNAL = Symbol("os.path", "join", 2)


def _facts():
    return [
        Definition(MAIN, Meta(file="app.py", line=1)),
        Definition(HELPER, Meta(file="app.py", line=5)),
        Call(MAIN, HELPER, SourceLocation("app.py", 2)),
        Call(MAIN, HELPER, SourceLocation("app.py", 3)),
        Call(HELPER, EXTERNAL, SourceLocation("app.py", 6)),
    ]


def test_edges_are_deduplicated_but_sites_kept() -> None:
    graph = build_graph(_facts())

    assert graph.callees(MAIN) == {HELPER}
    assert graph.callers(HELPER) == {MAIN}
    assert graph.sites[(MAIN, HELPER)] == [SourceLocation("app.py", 2), SourceLocation("app.py", 3)]
    assert graph.dropped == 0


def test_external_callee_is_a_sink_not_a_node() -> None:
    graph = build_graph(_facts())

    assert not graph.is_defined(EXTERNAL)
    assert EXTERNAL in graph.callees(HELPER)
    assert graph.definitions() == [HELPER, MAIN]


def test_fact_order_does_not_matter() -> None:
    forward = build_graph(_facts())
    backward = build_graph(list(reversed(_facts())))

    assert forward.nodes == backward.nodes
    assert forward.succ == backward.succ
    assert forward.sites == backward.sites


def test_malformed_facts_are_dropped_and_counted() -> None:
    facts = _facts() + [
        Definition(Symbol("app", "", 0)),
        Definition(Symbol("app", "neg", -1)),
        Call(MAIN, Symbol("app", "flag", True)),  # bool arity
        "not a fact",
    ]
    graph = build_graph(facts)

    assert graph.dropped == 4
    assert len(graph.nodes) == 2


def test_conflicting_definitions_keep_earliest_location() -> None:
    sym = Symbol("app", "twice", 0)
    graph = build_graph(
        [
            Definition(sym, Meta(file="b.py", line=3)),
            Definition(sym, Meta(file="a.py", line=9)),
            Definition(sym, Meta(file="a.py", line=9)),  # identical, ignored
        ]
    )

    assert graph.nodes[sym].file == "a.py"
    assert graph.dropped == 1


def test_call_from_undefined_caller_is_kept() -> None:
    ghost = Symbol("gone", "f", 0)
    graph = build_graph([Definition(MAIN), Call(ghost, MAIN)])

    assert graph.callers(MAIN) == {ghost}
    assert not graph.is_defined(ghost)
