"""
Core value types shared by the fact store, graph builder and analyzers.

A Symbol is a (scope, name, arity) triple. For Python sources the scope is the
dotted module path (functions) or ``module.Class`` (methods), and the arity is
the number of positional parameters, without ``self``/``cls``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


# Negative arities mark callees the collector could not resolve inside a unit
# (-1: a bare reference, -2 - n: a call with n arguments); linking replaces them.
UNRESOLVED_ARITY = -1

# Reserved name of the structural constructor pair (arity 0 = the type itself,
# arity 1 = its generated field initializer).
STRUCT_NAME = "__struct__"

# Reserved name of the synthetic symbol holding module-level code.
MODULE_BODY = "<module>"


@dataclass(frozen=True, order=True)
class Symbol:
    scope: str
    name: str
    arity: int

    def __str__(self) -> str:
        return f"{self.scope}.{self.name}/{self.arity}"

    @property
    def signature(self) -> str:
        return f"{self.name}/{self.arity}"


@dataclass(frozen=True)
class SourceLocation:
    file: str
    line: int = 0


@dataclass
class Meta:
    """Declaration metadata attached to a definition."""

    visibility: str = "public"  # public|private
    file: str = ""
    line: int = 0
    # None: no docstring; False: explicitly hidden; str: first docstring line
    doc: Union[None, bool, str] = None
    export: bool = False
    generated: bool = False
    kind: str = "function"  # function|method|class|module
    decorators: List[str] = field(default_factory=list)
    implements: List[str] = field(default_factory=list)
    # module body only: dotted names re-exported by a package __init__
    reexports: List[str] = field(default_factory=list)
    # module body only: local import name -> dotted target
    aliases: Dict[str, str] = field(default_factory=dict)

    @property
    def is_public(self) -> bool:
        return self.visibility == "public"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "visibility": self.visibility,
            "file": self.file,
            "line": self.line,
            "doc": self.doc,
            "export": self.export,
            "generated": self.generated,
            "kind": self.kind,
            "decorators": list(self.decorators),
            "implements": list(self.implements),
            "reexports": list(self.reexports),
            "aliases": dict(self.aliases),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Meta":
        return cls(
            visibility=str(data.get("visibility", "public")),
            file=str(data.get("file", "")),
            line=int(data.get("line", 0) or 0),
            doc=data.get("doc"),
            export=bool(data.get("export", False)),
            generated=bool(data.get("generated", False)),
            kind=str(data.get("kind", "function")),
            decorators=[str(d) for d in data.get("decorators") or []],
            implements=[str(i) for i in data.get("implements") or []],
            reexports=[str(r) for r in data.get("reexports") or []],
            aliases={str(k): str(v) for k, v in (data.get("aliases") or {}).items()},
        )


@dataclass(frozen=True)
class Definition:
    symbol: Symbol
    meta: Meta = field(default_factory=Meta, compare=False, hash=False)


@dataclass(frozen=True)
class Call:
    caller: Symbol
    callee: Symbol
    site: SourceLocation = SourceLocation("", 0)


Fact = Union[Definition, Call]


class FindingKind(Enum):
    UNUSED = "unused"
    NARROWABLE_VISIBILITY = "narrowable_visibility"
    RECURSIVE_ONLY = "recursive_only"

    @property
    def analyzer(self) -> str:
        return {
            FindingKind.UNUSED: "Unused",
            FindingKind.NARROWABLE_VISIBILITY: "Private",
            FindingKind.RECURSIVE_ONLY: "RecursiveOnly",
        }[self]


@dataclass
class Finding:
    symbol: Symbol
    kind: FindingKind
    location: SourceLocation
    message: str
    severity: str = "hint"

    @property
    def file(self) -> str:
        return self.location.file

    @property
    def line(self) -> int:
        return self.location.line

    def sort_key(self) -> tuple:
        return (self.location.file, self.location.line, self.symbol, self.kind.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.location.file,
            "line": self.location.line,
            "severity": self.severity,
            "message": self.message,
            "scope": self.symbol.scope,
            "name": self.symbol.name,
            "arity": self.symbol.arity,
            "signature": self.symbol.signature,
            "analyzer": self.kind.analyzer,
            "kind": self.kind.value,
        }


# ---- (de)serialisation used by the manifest ----


def symbol_to_list(sym: Symbol) -> List[Any]:
    return [sym.scope, sym.name, sym.arity]


def symbol_from_list(data: Any) -> Symbol:
    scope, name, arity = data
    return Symbol(str(scope), str(name), int(arity))


def fact_to_dict(fact: Fact) -> Dict[str, Any]:
    if isinstance(fact, Definition):
        return {"t": "def", "sym": symbol_to_list(fact.symbol), "meta": fact.meta.to_dict()}
    return {
        "t": "call",
        "caller": symbol_to_list(fact.caller),
        "callee": symbol_to_list(fact.callee),
        "site": [fact.site.file, fact.site.line],
    }


def fact_from_dict(data: Dict[str, Any]) -> Optional[Fact]:
    """Decode one fact; returns None for anything it does not understand."""
    try:
        kind = data.get("t")
        if kind == "def":
            return Definition(symbol_from_list(data["sym"]), Meta.from_dict(data.get("meta") or {}))
        if kind == "call":
            site = data.get("site") or ["", 0]
            return Call(
                caller=symbol_from_list(data["caller"]),
                callee=symbol_from_list(data["callee"]),
                site=SourceLocation(str(site[0]), int(site[1] or 0)),
            )
    except (AttributeError, KeyError, TypeError, ValueError):
        return None
    return None
