"""
Classification engine over a CallGraph.

Roots: public definitions that are explicitly exported, that the heuristic
oracle considers framework entry points, or that an ignore pattern matches.
The live set is the forward closure of the roots over caller->callee edges.

Checks (run independently, every applicable finding is emitted):
  - unused          definitions outside the live set
  - private         public symbols only ever called from their own scope
  - recursive_only  cyclic SCCs with no root and no live caller outside the SCC
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set

from .call_graph import CallGraph
from .match_spec import MatchSpec, matches_any
from .node_types import (
    MODULE_BODY,
    STRUCT_NAME,
    Finding,
    FindingKind,
    Meta,
    SourceLocation,
    Symbol,
)

Oracle = Callable[[Symbol, Meta], bool]

DEFAULT_CHECKS = ["private", "unused", "recursive_only"]


@dataclass
class AnalysisContext:
    graph: CallGraph
    metas: Dict[Symbol, Meta]
    roots: Set[Symbol]
    live: Set[Symbol]
    oracle: Optional[Oracle] = None
    severity: str = "hint"
    narrow_skip_likely_roots: bool = True

    def meta(self, sym: Symbol) -> Meta:
        return self.metas.get(sym) or self.graph.nodes.get(sym) or Meta()


@dataclass
class AnalysisResult:
    findings: List[Finding] = field(default_factory=list)
    roots: Set[Symbol] = field(default_factory=set)
    live: Set[Symbol] = field(default_factory=set)


def describe(sym: Symbol) -> str:
    if sym.name == STRUCT_NAME:
        return f"class {sym.scope}" if sym.arity == 0 else f"{sym.scope} field initializer"
    return str(sym)


def _location(ctx: AnalysisContext, sym: Symbol) -> SourceLocation:
    meta = ctx.meta(sym)
    return SourceLocation(meta.file, meta.line)


def _classifiable(ctx: AnalysisContext, sym: Symbol) -> bool:
    return sym.name != MODULE_BODY


def _within_scope(graph: CallGraph, caller: Symbol, sym: Symbol) -> bool:
    """Caller sits in sym's scope, or in a class nested inside it."""
    scope = caller.scope
    while scope != sym.scope:
        if not scope.startswith(sym.scope + ".") or Symbol(scope, STRUCT_NAME, 0) not in graph.nodes:
            return False
        scope = scope.rpartition(".")[0]
    return True


def compute_roots(
    graph: CallGraph,
    metas: Optional[Dict[Symbol, Meta]] = None,
    oracle: Optional[Oracle] = None,
    root_specs: Iterable[MatchSpec] = (),
) -> Set[Symbol]:
    metas = metas if metas is not None else graph.nodes
    specs = list(root_specs)
    roots: Set[Symbol] = set()
    for sym in graph.definitions():
        meta = metas.get(sym) or graph.nodes[sym]
        if not meta.is_public:
            continue
        if meta.export:
            roots.add(sym)
        elif oracle is not None and oracle(sym, meta):
            roots.add(sym)
        elif specs and matches_any(specs, sym, meta):
            roots.add(sym)
    return roots


def live_set(graph: CallGraph, roots: Iterable[Symbol]) -> Set[Symbol]:
    """Forward closure of ``roots``; each node is visited once."""
    live: Set[Symbol] = set()
    queue = deque()
    for r in sorted(roots):
        if graph.is_defined(r) and r not in live:
            live.add(r)
            queue.append(r)
    while queue:
        node = queue.popleft()
        for nxt in sorted(graph.callees(node)):
            if nxt in live or not graph.is_defined(nxt):
                continue
            live.add(nxt)
            queue.append(nxt)
    return live


def strongly_connected_components(graph: CallGraph) -> List[List[Symbol]]:
    """Tarjan SCC over defined nodes (iterative, no recursion limit)."""
    index = 0
    indices: Dict[Symbol, int] = {}
    lowlink: Dict[Symbol, int] = {}
    stack: List[Symbol] = []
    onstack: Set[Symbol] = set()
    sccs: List[List[Symbol]] = []

    def successors(v: Symbol) -> List[Symbol]:
        return [w for w in sorted(graph.callees(v)) if graph.is_defined(w)]

    for start in graph.definitions():
        if start in indices:
            continue
        work = [(start, iter(successors(start)))]
        indices[start] = lowlink[start] = index
        index += 1
        stack.append(start)
        onstack.add(start)
        while work:
            v, it = work[-1]
            advanced = False
            for w in it:
                if w not in indices:
                    indices[w] = lowlink[w] = index
                    index += 1
                    stack.append(w)
                    onstack.add(w)
                    work.append((w, iter(successors(w))))
                    advanced = True
                    break
                if w in onstack:
                    lowlink[v] = min(lowlink[v], indices[w])
            if advanced:
                continue
            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[v])
            if lowlink[v] == indices[v]:
                comp: List[Symbol] = []
                while True:
                    w = stack.pop()
                    onstack.discard(w)
                    comp.append(w)
                    if w == v:
                        break
                sccs.append(sorted(comp))
    return sccs


# ---- analyzers ----


def analyze_unused(ctx: AnalysisContext) -> List[Finding]:
    out: List[Finding] = []
    for sym in ctx.graph.definitions():
        if sym in ctx.live or not _classifiable(ctx, sym):
            continue
        out.append(
            Finding(
                symbol=sym,
                kind=FindingKind.UNUSED,
                location=_location(ctx, sym),
                message=f"{describe(sym)} is unused",
                severity=ctx.severity,
            )
        )
    return out


def analyze_private(ctx: AnalysisContext) -> List[Finding]:
    out: List[Finding] = []
    for sym in ctx.graph.definitions():
        meta = ctx.meta(sym)
        if not meta.is_public or meta.export or meta.generated or not _classifiable(ctx, sym):
            continue
        if ctx.narrow_skip_likely_roots and ctx.oracle is not None and ctx.oracle(sym, meta):
            continue
        callers = ctx.graph.callers(sym) - {sym}
        if not callers:
            continue
        if all(_within_scope(ctx.graph, c, sym) for c in callers):
            out.append(
                Finding(
                    symbol=sym,
                    kind=FindingKind.NARROWABLE_VISIBILITY,
                    location=_location(ctx, sym),
                    message=f"{describe(sym)} should be private (is not used outside {sym.scope})",
                    severity=ctx.severity,
                )
            )
    return out


def analyze_recursive_only(ctx: AnalysisContext) -> List[Finding]:
    graph = ctx.graph
    out: List[Finding] = []
    for comp in strongly_connected_components(graph):
        members = set(comp)
        cyclic = len(comp) > 1 or comp[0] in graph.callees(comp[0])
        if not cyclic or members & ctx.roots:
            continue
        outside = {c for m in comp for c in graph.callers(m)} - members
        if any(c in ctx.live for c in outside):
            continue
        for sym in comp:
            if not _classifiable(ctx, sym):
                continue
            out.append(
                Finding(
                    symbol=sym,
                    kind=FindingKind.RECURSIVE_ONLY,
                    location=_location(ctx, sym),
                    message=f"{describe(sym)} is only recursively called",
                    severity=ctx.severity,
                )
            )
    return out


ANALYZERS: Dict[str, Callable[[AnalysisContext], List[Finding]]] = {
    "private": analyze_private,
    "unused": analyze_unused,
    "recursive_only": analyze_recursive_only,
}

CHECK_ALIASES = {
    "narrowable_visibility": "private",
    "narrowable": "private",
    "recursive": "recursive_only",
    "recursiveonly": "recursive_only",
}


def normalize_check(name: str) -> Optional[str]:
    key = str(name).strip().lower().replace("-", "_")
    key = CHECK_ALIASES.get(key, key)
    return key if key in ANALYZERS else None


def analyze(
    graph: CallGraph,
    metas: Optional[Dict[Symbol, Meta]] = None,
    checks: Optional[List[str]] = None,
    oracle: Optional[Oracle] = None,
    root_specs: Iterable[MatchSpec] = (),
    severity: str = "hint",
    narrow_skip_likely_roots: bool = True,
) -> AnalysisResult:
    """Run the configured checks and return findings sorted by
    (file, line, symbol, kind)."""
    metas = metas if metas is not None else dict(graph.nodes)
    roots = compute_roots(graph, metas, oracle, root_specs)
    live = live_set(graph, roots)
    ctx = AnalysisContext(
        graph=graph,
        metas=metas,
        roots=roots,
        live=live,
        oracle=oracle,
        severity=severity,
        narrow_skip_likely_roots=narrow_skip_likely_roots,
    )
    findings: List[Finding] = []
    for name in checks if checks is not None else DEFAULT_CHECKS:
        key = normalize_check(name)
        if key is None:
            continue
        findings.extend(ANALYZERS[key](ctx))
    findings.sort(key=lambda f: f.sort_key())
    return AnalysisResult(findings=findings, roots=roots, live=live)
