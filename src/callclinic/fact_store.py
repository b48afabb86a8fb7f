"""
Append-only store of definition/call facts, grouped per compiled unit.

Units may be collected concurrently; every append goes through one lock.
"""
from __future__ import annotations

import threading
from typing import Dict, Iterable, List

from .node_types import Fact


class FactStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._facts: Dict[str, List[Fact]] = {}
        self._digests: Dict[str, str] = {}
        self._modules: Dict[str, str] = {}

    def extend(self, unit: str, facts: Iterable[Fact]) -> None:
        batch = list(facts)
        with self._lock:
            self._facts.setdefault(unit, []).extend(batch)

    def mark_unit(self, unit: str, digest: str = "", module: str = "") -> None:
        """Register a unit even if it produced no facts (e.g. an empty module)."""
        with self._lock:
            self._facts.setdefault(unit, [])
            if digest:
                self._digests[unit] = digest
            if module:
                self._modules[unit] = module

    def digest(self, unit: str) -> str:
        with self._lock:
            return self._digests.get(unit, "")

    def module(self, unit: str) -> str:
        with self._lock:
            return self._modules.get(unit, "")

    def snapshot(self) -> Dict[str, List[Fact]]:
        """Copy of all facts keyed by unit."""
        with self._lock:
            return {unit: list(facts) for unit, facts in self._facts.items()}
