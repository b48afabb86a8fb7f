"""
Export collector: symbol -> declaration metadata for every collected unit.

Explicit exports are names listed in a module's ``__all__`` (set by the
collector) plus names re-exported from a top-level package ``__init__``.
Public methods of an exported class are exported with it.
Units that failed to collect are absent: their symbols are neither used nor
unused for this run.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Set, Tuple

from .node_types import MODULE_BODY, STRUCT_NAME, Definition, Fact, Meta, Symbol


def collect_exports(
    facts_by_unit: Dict[str, List[Fact]], excluded: Iterable[str] = ()
) -> Dict[Symbol, Meta]:
    skip: Set[str] = set(excluded)
    metas: Dict[Symbol, Meta] = {}
    reexports: List[str] = []
    for unit in sorted(facts_by_unit):
        if unit in skip:
            continue
        for fact in facts_by_unit[unit]:
            if not isinstance(fact, Definition):
                continue
            if fact.symbol in metas:
                continue
            metas[fact.symbol] = replace(fact.meta)
            if fact.symbol.name == MODULE_BODY and fact.meta.reexports:
                reexports.extend(fact.meta.reexports)

    by_name: Dict[Tuple[str, str], List[Symbol]] = {}
    for sym in metas:
        by_name.setdefault((sym.scope, sym.name), []).append(sym)

    for target in reexports:
        scope, _, name = target.rpartition(".")
        hits = list(by_name.get((scope, name), []))
        # a re-exported class: its structural constructor is the export
        hits.extend(s for s in by_name.get((target, STRUCT_NAME), []) if s.arity == 0)
        for sym in hits:
            meta = metas[sym]
            if meta.is_public:
                meta.export = True

    # an exported class exports its public methods
    exported_classes = {
        sym.scope for sym, meta in metas.items() if sym.name == STRUCT_NAME and sym.arity == 0 and meta.export
    }
    for sym, meta in metas.items():
        if meta.kind == "method" and meta.is_public and sym.scope in exported_classes:
            meta.export = True
    return metas
