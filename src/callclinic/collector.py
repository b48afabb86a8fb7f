"""
Python event source: turns module files into definition/call facts.

One unit per module file. Inside a unit the visitor only knows local names and
imports, so callees are emitted with a negative (unresolved) arity and fixed
up by ``link_facts`` once every unit is collected:

 - ``name(...)`` / ``mod.name(...)``: resolved by (scope, name) through the
   cross-module alias chain;
 - ``self.m()`` / ``cls.m()`` / ``Class.m()``: the class or its nearest
   in-project base defining ``m``, plus overrides in in-project subclasses;
 - ``super().m()``: the nearest base defining ``m``;
 - ``obj.m()`` with an unknown receiver: every in-project method named ``m``;
 - anything else is an external sink whose arity is the call-site argument
   count. Unresolved bare references are dropped.

Type annotations are not treated as uses.
"""
from __future__ import annotations

import ast
import builtins
import fnmatch
import hashlib
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

from .errors import CollectorError
from .fact_store import FactStore
from .node_types import (
    MODULE_BODY,
    STRUCT_NAME,
    UNRESOLVED_ARITY,
    Call,
    Definition,
    Fact,
    Meta,
    SourceLocation,
    Symbol,
)

# receiver of an attribute call the visitor could not type
ATTR_SCOPE = "<attr>"
# super().m() inside class C is emitted as scope "<super>.C"
SUPER_PREFIX = "<super>."

BUILTIN_NAMES = frozenset(dir(builtins))

# Classes whose generated field initializer gets its own __struct__/1 symbol
STRUCT_DECORATORS = {"dataclass", "dataclasses.dataclass", "attr.s", "attr.attrs", "attrs.define", "attrs.frozen"}
STRUCT_BASES = {"NamedTuple", "typing.NamedTuple", "TypedDict", "typing.TypedDict"}

# Bases whose subclasses do not override anything by defining methods
NEUTRAL_BASES = {
    "object",
    "builtins.object",
    "abc.ABC",
    "typing.Generic",
    "typing.Protocol",
    "typing.NamedTuple",
    "typing.TypedDict",
    "typing_extensions.Protocol",
    "typing_extensions.TypedDict",
    "enum.Enum",
    "enum.IntEnum",
    "enum.StrEnum",
    "enum.Flag",
    "enum.IntFlag",
}


def unresolved_call(argc: int) -> int:
    return -2 - argc


def call_site_arity(arity: int) -> int:
    return max(0, -2 - arity)


def _split(dotted: str) -> Tuple[str, str]:
    scope, _, name = dotted.rpartition(".")
    return scope, name


def _is_private(name: str) -> bool:
    return name.startswith("_") and not (name.startswith("__") and name.endswith("__"))


def _first_doc_line(node: ast.AST) -> Optional[str]:
    try:
        doc = ast.get_docstring(node)  # type: ignore[arg-type]
    except TypeError:
        return None
    if not doc:
        return None
    return doc.strip().splitlines()[0]


def _dotted(expr: Optional[ast.AST]) -> Optional[str]:
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        base = _dotted(expr.value)
        return f"{base}.{expr.attr}" if base else None
    if isinstance(expr, ast.Call):
        return _dotted(expr.func)
    if isinstance(expr, ast.Subscript):
        return _dotted(expr.value)
    return None


def _module_level(stmts: Iterable[ast.stmt]) -> Iterator[ast.stmt]:
    """Statements executed at import time, descending into if/try/with blocks."""
    for st in stmts:
        yield st
        if isinstance(st, (ast.If, ast.While, ast.For, ast.AsyncFor, ast.With, ast.AsyncWith)):
            yield from _module_level(st.body)
            yield from _module_level(getattr(st, "orelse", []) or [])
        elif isinstance(st, (ast.Try, getattr(ast, "TryStar", ast.Try))):
            yield from _module_level(st.body)
            for h in st.handlers:
                yield from _module_level(h.body)
            yield from _module_level(st.orelse)
            yield from _module_level(st.finalbody)


def _string_list(value: ast.AST) -> List[str]:
    if isinstance(value, (ast.List, ast.Tuple, ast.Set)):
        return [
            elt.value
            for elt in value.elts
            if isinstance(elt, ast.Constant) and isinstance(elt.value, str)
        ]
    return []


# ---- file discovery (unit enumeration) ----


@dataclass(frozen=True)
class SourceFile:
    path: Path
    module: str
    unit: str

    @property
    def is_package(self) -> bool:
        return self.path.name == "__init__.py"


def _matches(rel: str, name: str, patterns: List[str]) -> bool:
    # "/rel" lets "**/x/**" style patterns match at the top level too
    return any(
        fnmatch.fnmatch(rel, pat) or fnmatch.fnmatch(name, pat) or fnmatch.fnmatch(f"/{rel}", pat)
        for pat in patterns
    )


def collect_py_files(paths: List[str], include: List[str], exclude: List[str]) -> List[Path]:
    collected: List[Path] = []
    for root in paths:
        base = Path(root)
        if base.is_file() and base.suffix == ".py":
            collected.append(base)
            continue
        if not base.exists():
            continue
        for dirpath, dirnames, filenames in os.walk(base):
            # prune excluded dirs
            for d in list(dirnames):
                rel = (Path(dirpath) / d).relative_to(base).as_posix()
                if _matches(rel + "/", d, exclude) or _matches(rel, d, exclude):
                    dirnames.remove(d)
            dirnames.sort()
            for fn in sorted(filenames):
                if not fn.endswith(".py"):
                    continue
                rel = (Path(dirpath) / fn).relative_to(base).as_posix()
                if _matches(rel, fn, exclude):
                    continue
                if include and not _matches(rel, fn, include):
                    continue
                collected.append(Path(dirpath) / fn)
    return collected


def path_to_module(file_path: Path, roots: List[Path]) -> Optional[str]:
    for root in roots:
        if root.is_file():
            if root == file_path:
                return file_path.stem
            continue
        try:
            rel = file_path.relative_to(root)
        except ValueError:
            continue
        parts = list(rel.parts)
        if not parts:
            return None
        if parts[-1] == "__init__.py":
            parts = parts[:-1]
        else:
            parts[-1] = Path(parts[-1]).stem
        return ".".join(p for p in parts if p) or None
    return None


def discover_sources(paths: List[str], include: List[str], exclude: List[str]) -> List[SourceFile]:
    roots = [Path(p) for p in paths]
    seen: Set[str] = set()
    out: List[SourceFile] = []
    for f in collect_py_files(paths, include, exclude):
        module = path_to_module(f, roots)
        unit = f.as_posix()
        if not module or unit in seen:
            continue
        seen.add(unit)
        out.append(SourceFile(path=f, module=module, unit=unit))
    return sorted(out, key=lambda s: s.unit)


# ---- per-unit visitor ----


class _FactVisitor(ast.NodeVisitor):
    def __init__(self, module: str, file: str, is_package: bool):
        self.module = module
        self.file = file
        self.is_package = is_package
        self.facts: List[Fact] = []
        self.defs: Dict[str, str] = {}  # top-level local name -> dotted
        self.alias: Dict[str, str] = {}  # module-level import alias -> dotted
        self.relative_names: Set[str] = set()
        self.exports: List[str] = []
        self.top_level: Dict[str, List[Meta]] = {}
        self.alias_stack: List[Dict[str, str]] = []
        self.frames: List[str] = ["module"]  # module|class|function
        self.class_stack: List[str] = []
        self.class_bases: List[List[str]] = []
        self.class_locals: List[Dict[str, str]] = []
        self.caller_stack: List[Symbol] = [Symbol(module, MODULE_BODY, 0)]

    # --- driver ---
    def run(self, tree: ast.Module) -> List[Fact]:
        body_meta = Meta(
            visibility="public",
            file=self.file,
            line=1,
            doc=_first_doc_line(tree),
            kind="module",
            generated=True,
        )
        self.facts.append(Definition(self.caller_stack[0], body_meta))
        self._precollect(tree)
        for st in tree.body:
            self.visit(st)
        self._apply_exports(body_meta)
        return self.facts

    def _precollect(self, tree: ast.Module) -> None:
        for node in _module_level(tree.body):
            if isinstance(node, (ast.Import, ast.ImportFrom)):
                self._register_import(node, self.alias)
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                self.defs[node.name] = f"{self.module}.{node.name}"
            elif isinstance(node, ast.Assign):
                if any(isinstance(t, ast.Name) and t.id == "__all__" for t in node.targets):
                    self.exports.extend(_string_list(node.value))
            elif isinstance(node, ast.AugAssign):
                if isinstance(node.target, ast.Name) and node.target.id == "__all__":
                    self.exports.extend(_string_list(node.value))

    def _apply_exports(self, body_meta: Meta) -> None:
        names = list(self.exports)
        top_package_init = self.is_package and "." not in self.module
        if not names and top_package_init:
            # no __all__: relative imports and public defs of a top-level
            # package __init__ are its public surface
            names = sorted(self.relative_names)
            names += [n for n in sorted(self.top_level) if not n.startswith("_")]
        reexports: List[str] = []
        for name in names:
            if name in self.top_level:
                for meta in self.top_level[name]:
                    meta.export = True
            elif name in self.alias:
                reexports.append(self.alias[name])
        body_meta.reexports = sorted(set(reexports))
        body_meta.aliases = dict(sorted(self.alias.items()))

    # --- helpers ---
    @property
    def _frame(self) -> str:
        return self.frames[-1]

    def _emit(self, callee: Symbol, node: ast.AST) -> None:
        site = SourceLocation(self.file, getattr(node, "lineno", 0) or 0)
        self.facts.append(Call(self.caller_stack[-1], callee, site))

    def _register_import(self, node: ast.AST, aliases: Dict[str, str]) -> None:
        if isinstance(node, ast.Import):
            for a in node.names:
                if a.asname:
                    aliases[a.asname] = a.name
                else:
                    head = a.name.split(".")[0]
                    aliases[head] = head
            return
        if not isinstance(node, ast.ImportFrom):
            return
        module = node.module or ""
        level = int(node.level or 0)
        if level > 0:
            parts = self.module.split(".")
            package = parts if self.is_package else parts[:-1]
            drop = level - 1
            base = package[: len(package) - drop] if drop <= len(package) else []
            module = ".".join([*base, module]) if module else ".".join(base)
        for a in node.names:
            if a.name == "*":
                continue
            local = a.asname or a.name
            aliases[local] = f"{module}.{a.name}" if module else a.name
            if level > 0 and aliases is self.alias:
                self.relative_names.add(local)

    def _resolve_name(self, name: str) -> Optional[str]:
        for scope in reversed(self.alias_stack):
            if name in scope:
                return scope[name]
        if self._frame == "class" and self.class_locals and name in self.class_locals[-1]:
            return self.class_locals[-1][name]
        if name in self.defs:
            return self.defs[name]
        return self.alias.get(name)

    def _resolve_attr(self, value: ast.AST, attr: str) -> Optional[str]:
        if isinstance(value, ast.Name) and value.id in {"self", "cls"} and self.class_stack:
            return f"{self.class_stack[-1]}.{attr}"
        dotted = _dotted(value) if isinstance(value, (ast.Name, ast.Attribute)) else None
        if not dotted:
            return None
        head, _, rest = dotted.partition(".")
        if head in {"self", "cls"}:
            return None
        base = self._resolve_name(head)
        if not base:
            return None
        return ".".join(p for p in (base, rest, attr) if p)

    def _callee(self, func: ast.AST, argc: int) -> Optional[Symbol]:
        arity = unresolved_call(argc)
        if isinstance(func, ast.Name):
            target = self._resolve_name(func.id)
            if target:
                scope, name = _split(target)
                return Symbol(scope, name, arity)
            if func.id in BUILTIN_NAMES:
                return Symbol("builtins", func.id, arity)
            return None
        if isinstance(func, ast.Attribute):
            value = func.value
            if (
                isinstance(value, ast.Call)
                and isinstance(value.func, ast.Name)
                and value.func.id == "super"
                and self.class_stack
            ):
                return Symbol(SUPER_PREFIX + self.class_stack[-1], func.attr, arity)
            target = self._resolve_attr(value, func.attr)
            if target:
                scope, name = _split(target)
                return Symbol(scope, name, arity)
            return Symbol(ATTR_SCOPE, func.attr, arity)
        return None

    def _decorator_names(self, node: ast.AST) -> List[str]:
        out: List[str] = []
        for dec in getattr(node, "decorator_list", []) or []:
            name = _dotted(dec)
            if name:
                out.append(name)
        return out

    def _visit_all(self, nodes: Iterable[Optional[ast.AST]]) -> None:
        for n in nodes:
            if n is not None:
                self.visit(n)

    # --- definitions ---
    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._handle_func(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._handle_func(node)

    def _handle_func(self, node: Any) -> None:
        # decorators and defaults are evaluated in the enclosing scope
        self._visit_all(node.decorator_list)
        self._visit_all(node.args.defaults)
        self._visit_all(node.args.kw_defaults)
        if self._frame == "function":
            # nested function: its uses belong to the enclosing function
            self.alias_stack.append({})
            self._visit_all(node.body)
            self.alias_stack.pop()
            return

        decorators = self._decorator_names(node)
        in_class = self._frame == "class"
        arity = len(node.args.posonlyargs) + len(node.args.args)
        if in_class and arity > 0 and not any(d.rsplit(".", 1)[-1] == "staticmethod" for d in decorators):
            arity -= 1  # self/cls
        scope = self.class_stack[-1] if in_class else self.module
        sym = Symbol(scope, node.name, arity)
        meta = Meta(
            visibility="private" if _is_private(node.name) else "public",
            file=self.file,
            line=node.lineno,
            doc=_first_doc_line(node),
            kind="method" if in_class else "function",
            decorators=decorators,
            implements=list(self.class_bases[-1]) if in_class else [],
        )
        self.facts.append(Definition(sym, meta))
        if len(self.frames) == 1:
            self.top_level.setdefault(node.name, []).append(meta)

        self.frames.append("function")
        self.caller_stack.append(sym)
        self.alias_stack.append({})
        self._visit_all(node.body)
        self.alias_stack.pop()
        self.caller_stack.pop()
        self.frames.pop()

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self._visit_all(node.decorator_list)
        if self._frame == "function":
            self._visit_all(node.bases)
            self._visit_all(kw.value for kw in node.keywords)
            self._visit_all(node.body)
            return

        scope = self.class_stack[-1] if self._frame == "class" else self.module
        fqn = f"{scope}.{node.name}"
        bases: List[str] = []
        for b in node.bases:
            ref = _dotted(b)
            if not ref:
                continue
            head, _, rest = ref.partition(".")
            target = self._resolve_name(head)
            bases.append(".".join(p for p in (target, rest) if p) if target else ref)
        decorators = self._decorator_names(node)
        visibility = "private" if _is_private(node.name) else "public"
        struct0 = Symbol(fqn, STRUCT_NAME, 0)
        meta0 = Meta(
            visibility=visibility,
            file=self.file,
            line=node.lineno,
            doc=_first_doc_line(node),
            kind="class",
            decorators=decorators,
            implements=list(bases),
        )
        self.facts.append(Definition(struct0, meta0))
        metas = [meta0]
        is_record = any(d in STRUCT_DECORATORS for d in decorators) or any(
            b in STRUCT_BASES or b.rsplit(".", 1)[-1] in STRUCT_BASES for b in bases
        )
        if is_record:
            struct1 = Symbol(fqn, STRUCT_NAME, 1)
            meta1 = Meta(
                visibility=visibility,
                file=self.file,
                line=node.lineno,
                kind="class",
                generated=True,
            )
            self.facts.append(Definition(struct1, meta1))
            self.facts.append(Call(struct0, struct1, SourceLocation(self.file, node.lineno)))
            metas.append(meta1)
        if len(self.frames) == 1:
            self.top_level.setdefault(node.name, []).extend(metas)

        self.frames.append("class")
        self.class_stack.append(fqn)
        self.class_bases.append(bases)
        self.class_locals.append(
            {
                st.name: f"{fqn}.{st.name}"
                for st in node.body
                if isinstance(st, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef))
            }
        )
        self.caller_stack.append(struct0)
        # base classes and metaclass are used by the class itself
        self._visit_all(node.bases)
        self._visit_all(kw.value for kw in node.keywords)
        self._visit_all(node.body)
        self.caller_stack.pop()
        self.class_locals.pop()
        self.class_bases.pop()
        self.class_stack.pop()
        self.frames.pop()

    # --- imports / assignments ---
    def visit_Import(self, node: ast.Import) -> None:
        self._register_import(node, self.alias_stack[-1] if self.alias_stack else self.alias)

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        self._register_import(node, self.alias_stack[-1] if self.alias_stack else self.alias)

    def visit_Assign(self, node: ast.Assign) -> None:
        # module-level alias: Name = Target
        if len(self.frames) == 1 and isinstance(node.value, (ast.Name, ast.Attribute)):
            ref = _dotted(node.value)
            if ref:
                head, _, rest = ref.partition(".")
                target = self._resolve_name(head)
                if target:
                    resolved = ".".join(p for p in (target, rest) if p)
                    for t in node.targets:
                        if isinstance(t, ast.Name) and t.id not in self.defs:
                            self.alias[t.id] = resolved
        self.generic_visit(node)

    def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
        # annotation is not a use
        if not isinstance(node.target, ast.Name):
            self.visit(node.target)
        if node.value is not None:
            self.visit(node.value)

    def visit_arg(self, node: ast.arg) -> None:
        return None

    # --- uses ---
    def visit_Call(self, node: ast.Call) -> None:
        argc = len(node.args) + len(node.keywords)
        callee = self._callee(node.func, argc)
        if callee is not None:
            self._emit(callee, node)
        if isinstance(node.func, ast.Attribute):
            self.visit(node.func.value)
        elif not isinstance(node.func, ast.Name):
            self.visit(node.func)
        self._visit_all(node.args)
        self._visit_all(kw.value for kw in node.keywords)

    def visit_Name(self, node: ast.Name) -> None:
        if not isinstance(node.ctx, ast.Load) or node.id in {"self", "cls"}:
            return
        target = self._resolve_name(node.id)
        if target:
            scope, name = _split(target)
            self._emit(Symbol(scope, name, UNRESOLVED_ARITY), node)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if isinstance(node.ctx, ast.Load):
            target = self._resolve_attr(node.value, node.attr)
            if target:
                scope, name = _split(target)
                self._emit(Symbol(scope, name, UNRESOLVED_ARITY), node)
        self.visit(node.value)


@dataclass
class UnitFacts:
    unit: str
    module: str
    digest: str
    facts: List[Fact] = field(default_factory=list)


def digest_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def read_source(source: SourceFile) -> bytes:
    try:
        return source.path.read_bytes()
    except OSError as e:
        raise CollectorError(source.unit, f"cannot read file ({e.strerror or e})")


def collect_unit(source: SourceFile, data: Optional[bytes] = None) -> UnitFacts:
    """Parse one module file and return its facts. Raises CollectorError."""
    if data is None:
        data = read_source(source)
    try:
        tree = ast.parse(data, filename=source.unit)
    except (SyntaxError, ValueError) as e:
        raise CollectorError(source.unit, f"syntax error ({e})")
    except (RecursionError, MemoryError) as e:
        raise CollectorError(source.unit, f"too deeply nested to parse ({type(e).__name__})")
    visitor = _FactVisitor(source.module, source.unit, source.is_package)
    try:
        facts = visitor.run(tree)
    except (RecursionError, MemoryError) as e:
        raise CollectorError(source.unit, f"too deeply nested to analyze ({type(e).__name__})")
    return UnitFacts(unit=source.unit, module=source.module, digest=digest_bytes(data), facts=facts)


@dataclass
class CollectionResult:
    store: FactStore
    failed: Dict[str, str] = field(default_factory=dict)  # unit -> reason
    collected: List[str] = field(default_factory=list)
    reused: List[str] = field(default_factory=list)


def collect_all(
    sources: List[SourceFile],
    previous: Optional[Mapping[str, Any]] = None,
    workers: int = 4,
    store: Optional[FactStore] = None,
) -> CollectionResult:
    """Collect every unit into a FactStore, concurrently.

    ``previous`` maps unit -> manifest entry (``digest``, ``module``,
    ``facts``); a unit whose content digest is unchanged reuses its facts.
    """
    result = CollectionResult(store=store or FactStore())
    previous = previous or {}

    def work(src: SourceFile) -> str:
        data = read_source(src)
        digest = digest_bytes(data)
        prev = previous.get(src.unit)
        if prev is not None and prev.digest == digest and prev.module == src.module:
            result.store.extend(src.unit, prev.facts)
            result.store.mark_unit(src.unit, digest, src.module)
            return "reused"
        unit = collect_unit(src, data)
        result.store.extend(unit.unit, unit.facts)
        result.store.mark_unit(unit.unit, unit.digest, unit.module)
        return "collected"

    with ThreadPoolExecutor(max_workers=max(1, int(workers or 1))) as pool:
        futures = {pool.submit(work, src): src for src in sources}
        for future in as_completed(futures):
            src = futures[future]
            try:
                outcome = future.result()
            except CollectorError as e:
                result.failed[src.unit] = e.reason
                continue
            (result.reused if outcome == "reused" else result.collected).append(src.unit)
    # completion order is arbitrary
    result.collected.sort()
    result.reused.sort()
    return result


# ---- cross-unit linking ----


class _ProjectIndex:
    def __init__(self, facts_by_unit: Mapping[str, List[Fact]]):
        self.by_name: Dict[Tuple[str, str], List[Symbol]] = {}
        self.methods_by_name: Dict[str, List[Symbol]] = {}
        self.classes: Dict[str, List[str]] = {}
        self.modules: Set[str] = set()
        self.aliases: Dict[str, str] = {}
        for unit in sorted(facts_by_unit):
            for fact in facts_by_unit[unit]:
                if not isinstance(fact, Definition):
                    continue
                sym, meta = fact.symbol, fact.meta
                if sym.name == MODULE_BODY:
                    self.modules.add(sym.scope)
                    for local, target in meta.aliases.items():
                        self.aliases[f"{sym.scope}.{local}"] = target
                    continue
                if sym.name == STRUCT_NAME:
                    if sym.arity == 0:
                        self.classes[sym.scope] = list(meta.implements)
                    continue
                self.by_name.setdefault((sym.scope, sym.name), []).append(sym)
                if meta.kind == "method":
                    self.methods_by_name.setdefault(sym.name, []).append(sym)
        for key in self.by_name:
            self.by_name[key].sort()
        for key in self.methods_by_name:
            self.methods_by_name[key].sort()
        self.classes = {c: [self.resolve_alias(b) for b in bs] for c, bs in self.classes.items()}
        self.subclasses: Dict[str, Set[str]] = {}
        for cls, bases in self.classes.items():
            for b in bases:
                if b in self.classes:
                    self.subclasses.setdefault(b, set()).add(cls)

    def _rewrite_head(self, dotted: str) -> str:
        parts = dotted.split(".")
        # longest aliased head wins; the tail is kept
        for i in range(len(parts), 0, -1):
            head = ".".join(parts[:i])
            target = self.aliases.get(head)
            if target and target != head:
                tail = ".".join(parts[i:])
                return target + ("." + tail if tail else "")
        return dotted

    def resolve_alias(self, dotted: str, limit: int = 10) -> str:
        cur = dotted
        for _ in range(limit):
            nxt = self._rewrite_head(cur)
            if nxt == cur:
                break
            cur = nxt
        return cur

    def mro(self, cls: str) -> List[str]:
        order: List[str] = []
        stack = [cls]
        while stack:
            c = stack.pop(0)
            if c in order:
                continue
            order.append(c)
            stack.extend(b for b in self.classes.get(c, []) if b in self.classes)
        return order

    def all_subclasses(self, cls: str) -> List[str]:
        out: Set[str] = set()
        stack = list(self.subclasses.get(cls, ()))
        while stack:
            c = stack.pop()
            if c in out:
                continue
            out.add(c)
            stack.extend(self.subclasses.get(c, ()))
        return sorted(out)

    def external_bases(self, cls: str) -> List[str]:
        out: List[str] = []
        for c in self.mro(cls):
            for b in self.classes.get(c, []):
                if b not in self.classes and b not in out:
                    out.append(b)
        return out

    def lookup_method(self, cls: str, name: str, skip_self: bool = False) -> List[Symbol]:
        for c in self.mro(cls)[1 if skip_self else 0:]:
            hits = self.by_name.get((c, name))
            if hits:
                return list(hits)
        return []

    def overrides(self, cls: str, name: str) -> List[Symbol]:
        out: List[Symbol] = []
        for sub in self.all_subclasses(cls):
            out.extend(self.by_name.get((sub, name), []))
        return out

    def in_project(self, dotted: str) -> bool:
        parts = dotted.split(".")
        return any(".".join(parts[:i]) in self.modules for i in range(1, len(parts) + 1))

    def resolve(self, callee: Symbol) -> List[Symbol]:
        if callee.arity >= 0:
            return [callee]
        is_call = callee.arity <= -2
        scope, name = callee.scope, callee.name
        if scope.startswith(SUPER_PREFIX):
            return self.lookup_method(scope[len(SUPER_PREFIX):], name, skip_self=True)
        if scope == ATTR_SCOPE:
            return list(self.methods_by_name.get(name, [])) if is_call else []
        dotted = self.resolve_alias(f"{scope}.{name}" if scope else name)
        scope2, name2 = _split(dotted)
        hits = self.by_name.get((scope2, name2))
        if hits:
            extra = self.overrides(scope2, name2) if scope2 in self.classes else []
            return list(hits) + extra
        if dotted in self.classes:
            return [Symbol(dotted, STRUCT_NAME, 0)]
        if scope2 in self.classes:
            return self.lookup_method(scope2, name2) + self.overrides(scope2, name2)
        if self.in_project(dotted) or not is_call:
            return []
        return [Symbol(scope2 or "builtins", name2, call_site_arity(callee.arity))]


def _may_override(base: str, name: str) -> bool:
    if base in NEUTRAL_BASES:
        return False
    short = base[len("builtins."):] if base.startswith("builtins.") else base
    if "." not in short:
        obj = getattr(builtins, short, None)
        if isinstance(obj, type):
            return hasattr(obj, name)
    return True


def link_facts(facts_by_unit: Mapping[str, List[Fact]]) -> Dict[str, List[Fact]]:
    """Resolve unresolved callees across units; returns new per-unit facts
    containing only well-formed symbols."""
    index = _ProjectIndex(facts_by_unit)
    linked: Dict[str, List[Fact]] = {}
    for unit in sorted(facts_by_unit):
        out: List[Fact] = []
        seen: Set[Tuple[Symbol, Symbol, SourceLocation]] = set()
        for fact in facts_by_unit[unit]:
            if isinstance(fact, Definition):
                sym, meta = fact.symbol, fact.meta
                if sym.name == MODULE_BODY and meta.reexports:
                    meta = replace(meta, reexports=sorted({index.resolve_alias(r) for r in meta.reexports}))
                elif sym.name == STRUCT_NAME and sym.arity == 0:
                    meta = replace(meta, implements=list(index.classes.get(sym.scope, meta.implements)))
                elif meta.kind == "method":
                    meta = replace(
                        meta,
                        implements=[b for b in index.external_bases(sym.scope) if _may_override(b, sym.name)],
                    )
                out.append(Definition(sym, meta))
                continue
            if not isinstance(fact, Call):
                continue
            for callee in index.resolve(fact.callee):
                key = (fact.caller, callee, fact.site)
                if key in seen:
                    continue
                seen.add(key)
                out.append(Call(fact.caller, callee, fact.site))
        linked[unit] = out
    return linked
