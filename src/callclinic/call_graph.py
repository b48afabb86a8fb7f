"""
Graph builder: turns the fact stream into a directed call graph.

Nodes are definitions; edges are call facts collapsed to (caller, callee)
pairs. Call sites are kept per edge for diagnostics only. Callees without a
definition stay in the adjacency maps as external sinks.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set, Tuple

from .node_types import Call, Definition, Meta, SourceLocation, Symbol


@dataclass
class CallGraph:
    nodes: Dict[Symbol, Meta] = field(default_factory=dict)
    succ: Dict[Symbol, Set[Symbol]] = field(default_factory=dict)
    pred: Dict[Symbol, Set[Symbol]] = field(default_factory=dict)
    sites: Dict[Tuple[Symbol, Symbol], List[SourceLocation]] = field(default_factory=dict)
    dropped: int = 0

    def is_defined(self, sym: Symbol) -> bool:
        return sym in self.nodes

    def callees(self, sym: Symbol) -> Set[Symbol]:
        return self.succ.get(sym, set())

    def callers(self, sym: Symbol) -> Set[Symbol]:
        return self.pred.get(sym, set())

    def definitions(self) -> List[Symbol]:
        return sorted(self.nodes)

    def edges(self) -> List[Tuple[Symbol, Symbol]]:
        return sorted(self.sites)

    def add_edge(self, caller: Symbol, callee: Symbol, site: SourceLocation) -> None:
        key = (caller, callee)
        if key not in self.sites:
            self.sites[key] = []
            self.succ.setdefault(caller, set()).add(callee)
            self.pred.setdefault(callee, set()).add(caller)
        if site not in self.sites[key]:
            self.sites[key].append(site)


def _valid_symbol(sym: object) -> bool:
    if not isinstance(sym, Symbol):
        return False
    if not isinstance(sym.scope, str) or not isinstance(sym.name, str) or not sym.name:
        return False
    # bool is an int subclass; reject it explicitly
    if isinstance(sym.arity, bool) or not isinstance(sym.arity, int):
        return False
    return sym.arity >= 0


def build_graph(facts: Iterable[object]) -> CallGraph:
    """Build a CallGraph from facts in any order. Never raises.

    Malformed facts and conflicting duplicate definitions are dropped and
    counted in ``graph.dropped``.
    """
    graph = CallGraph()
    definitions: Dict[Symbol, Meta] = {}
    calls: List[Call] = []

    for fact in facts:
        if isinstance(fact, Definition):
            if not _valid_symbol(fact.symbol) or not isinstance(fact.meta, Meta):
                graph.dropped += 1
                continue
            prev = definitions.get(fact.symbol)
            if prev is None:
                definitions[fact.symbol] = fact.meta
                continue
            if (prev.file, prev.line) == (fact.meta.file, fact.meta.line):
                continue  # identical re-definition
            graph.dropped += 1
            # keep the earliest location so the result does not depend on order
            if (fact.meta.file, fact.meta.line) < (prev.file, prev.line):
                definitions[fact.symbol] = fact.meta
        elif isinstance(fact, Call):
            if not _valid_symbol(fact.caller) or not _valid_symbol(fact.callee):
                graph.dropped += 1
                continue
            calls.append(fact)
        else:
            graph.dropped += 1

    for sym in sorted(definitions):
        graph.nodes[sym] = definitions[sym]
    for call in calls:
        site = call.site if isinstance(call.site, SourceLocation) else SourceLocation("", 0)
        graph.add_edge(call.caller, call.callee, site)
    for sites in graph.sites.values():
        sites.sort(key=lambda s: (s.file, s.line))
    return graph
