from __future__ import annotations

from typing import Dict, Iterable, Optional, Set, Tuple

from graphviz import Digraph
from graphviz.backend import ExecutableNotFound

from .call_graph import CallGraph
from .node_types import MODULE_BODY, STRUCT_NAME, Finding, FindingKind, Symbol

LIVE_COLOR = "#4CAF50"  # green
UNUSED_COLOR = "#F44336"  # red
RECURSIVE_COLOR = "#FF9800"  # orange
NARROWABLE_COLOR = "#FFC107"  # amber
DEFAULT_COLOR = "#FFFFFF"

# a symbol with several findings takes the most severe colour
_KIND_PRIORITY = [
    (FindingKind.RECURSIVE_ONLY, RECURSIVE_COLOR),
    (FindingKind.UNUSED, UNUSED_COLOR),
    (FindingKind.NARROWABLE_VISIBILITY, NARROWABLE_COLOR),
]


def _node_id(sym: Symbol) -> str:
    return str(sym)


def _label(sym: Symbol) -> str:
    if sym.name == MODULE_BODY:
        return f"\U0001f4c4 {sym.scope}"  # 📄
    if sym.name == STRUCT_NAME:
        short = sym.scope.rsplit(".", 1)[-1]
        return f"\U0001f4e6 {short}" if sym.arity == 0 else f"{short}{{...}}"  # 📦
    return sym.signature


def _module_of(sym: Symbol, modules: Set[str]) -> str:
    scope = sym.scope
    while scope and scope not in modules:
        scope = scope.rpartition(".")[0]
    return scope or sym.scope


def _color_for(sym: Symbol, kinds: Dict[Symbol, Set[FindingKind]], live: Set[Symbol]) -> str:
    found = kinds.get(sym, set())
    for kind, color in _KIND_PRIORITY:
        if kind in found:
            return color
    return LIVE_COLOR if sym in live else DEFAULT_COLOR


def render_call_graph(
    graph: CallGraph,
    findings: Iterable[Finding],
    live: Set[Symbol],
    output_base: str,
    fmt: str = "svg",
    title: Optional[str] = None,
) -> Tuple[str, str]:
    """
    渲染调用图：存活节点绿色，未使用红色，仅递归调用橙色，可收窄为私有琥珀色。
    外部符号不绘制。返回 (dot 路径, 渲染文件路径)；缺少 Graphviz 可执行文件时
    只写出 DOT，渲染路径为空字符串。
    """
    kinds: Dict[Symbol, Set[FindingKind]] = {}
    for f in findings:
        kinds.setdefault(f.symbol, set()).add(f.kind)

    dot = Digraph(
        "callclinic",
        graph_attr={
            "rankdir": "LR",
            "splines": "spline",
            "label": title or "Call Graph",
            "labelloc": "t",
        },
        node_attr={"shape": "box", "style": "rounded,filled", "fontname": "Helvetica"},
        edge_attr={"arrowhead": "vee"},
    )

    modules = {s.scope for s in graph.nodes if s.name == MODULE_BODY}
    by_module: Dict[str, list] = {}
    for sym in graph.definitions():
        by_module.setdefault(_module_of(sym, modules), []).append(sym)

    # one cluster per module
    for module in sorted(by_module):
        with dot.subgraph(name=f"cluster_{module}") as sub:
            sub.attr(label=module, style="dashed", color="#999999")
            for sym in by_module[module]:
                sub.node(_node_id(sym), label=_label(sym), fillcolor=_color_for(sym, kinds, live))

    for caller, callee in graph.edges():
        if not graph.is_defined(caller) or not graph.is_defined(callee):
            continue
        dead = caller not in live
        dot.edge(
            _node_id(caller),
            _node_id(callee),
            color="#BBBBBB" if dead else "black",
            style="dashed" if dead else "solid",
        )

    dot_path = f"{output_base}.dot"
    out_path = f"{output_base}.{fmt}"
    dot.save(dot_path)

    try:
        dot.render(output_base, format=fmt, cleanup=True)
    except ExecutableNotFound:
        # Only DOT written; caller should inform user
        out_path = ""
    return dot_path, out_path
