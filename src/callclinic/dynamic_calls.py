"""
Dynamic dispatch advisory.

Functions that call ``getattr``, ``operator.methodcaller`` or similar reach
their targets by name at run time, so anything they dispatch to may be
reported as unused. This module only points them out; it never changes the
analysis.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Set, Tuple

from .call_graph import CallGraph
from .node_types import MODULE_BODY, Symbol

# (scope, name) -> accepted arities, None = any
DYNAMIC_DISPATCH: Dict[Tuple[str, str], Optional[Set[int]]] = {
    ("builtins", "getattr"): {2, 3},
    ("operator", "methodcaller"): None,
    ("operator", "attrgetter"): None,
    ("importlib", "import_module"): None,
    ("builtins", "__import__"): None,
    ("builtins", "eval"): None,
    ("builtins", "exec"): None,
}


def is_dynamic_call(callee: Symbol) -> bool:
    arities = DYNAMIC_DISPATCH.get((callee.scope, callee.name), set())
    if arities is None:
        return True
    return callee.arity in arities


def find_dynamic_dispatchers(graph: CallGraph) -> Dict[str, List[Tuple[str, int]]]:
    """{caller scope: [(caller name, caller arity), ...]} for every defined
    caller of a dynamic-dispatch primitive."""
    found: Dict[str, Set[Tuple[str, int]]] = {}
    for caller, callee in graph.edges():
        if not graph.is_defined(caller) or not is_dynamic_call(callee):
            continue
        found.setdefault(caller.scope, set()).add((caller.name, caller.arity))
    return {scope: sorted(found[scope]) for scope in sorted(found)}


def suggest_ignore_pattern(scope: str) -> List[str]:
    return [scope, "_", "_"]


def generate_warnings(dispatchers: Dict[str, List[Tuple[str, int]]]) -> List[str]:
    warnings: List[str] = []
    for scope, funcs in dispatchers.items():
        names = ", ".join(
            "module body" if name == MODULE_BODY else f"{name}/{arity}" for name, arity in funcs
        )
        suggestion = suggest_ignore_pattern(scope)
        warnings.append(
            f"{scope} uses dynamic dispatch ({names}); symbols it reaches by name may be "
            f"reported as unused. To silence them add to ignore: {suggestion!r}"
        )
    return warnings
