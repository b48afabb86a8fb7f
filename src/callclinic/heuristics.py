"""
Heuristics for symbols that are probably entry points called from outside the
analysed code (framework callbacks, protocol methods, test functions ...).

The oracle is an ordered list of named rules; ``is_likely_root`` only exposes
the aggregate answer. A scope that looks internal vetoes every rule.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .node_types import MODULE_BODY, STRUCT_NAME, Meta, Symbol


@dataclass(frozen=True)
class Rule:
    name: str
    match: Callable[[Symbol, Meta], bool]

    def __call__(self, symbol: Symbol, meta: Meta) -> bool:
        return bool(self.match(symbol, meta))


# (name, arity) pairs of well-known framework callbacks regardless of scope
FRAMEWORK_CALLBACKS: List[Tuple[str, int]] = [
    # unittest
    ("setUp", 0),
    ("tearDown", 0),
    ("setUpClass", 0),
    ("tearDownClass", 0),
    ("setUpModule", 0),
    ("tearDownModule", 0),
    ("asyncSetUp", 0),
    ("asyncTearDown", 0),
    # pytest hooks
    ("pytest_configure", 1),
    ("pytest_addoption", 1),
    ("pytest_collection_modifyitems", 3),
    ("pytest_generate_tests", 1),
    ("pytest_sessionstart", 1),
    ("pytest_sessionfinish", 2),
    # logging / threading / asyncio
    ("emit", 1),
    ("run", 0),
    ("connection_made", 1),
    ("connection_lost", 1),
    ("data_received", 1),
    ("datagram_received", 2),
    # ast / json
    ("generic_visit", 1),
    ("default", 1),
    # setuptools / plugin entry points
    ("setup", 0),
    ("setup", 1),
    ("load_ipython_extension", 1),
]

# Decorator names (last dotted segment) that register a function with a framework.
FRAMEWORK_DECORATORS = {
    "route",
    "get",
    "post",
    "put",
    "patch",
    "delete",
    "head",
    "options",
    "websocket",
    "api_view",
    "action",
    "receiver",
    "register",
    "command",
    "group",
    "callback",
    "task",
    "shared_task",
    "periodic_task",
    "fixture",
    "hookimpl",
    "hookspec",
    "on_event",
    "exception_handler",
    "middleware",
    "before_request",
    "after_request",
    "teardown_request",
    "errorhandler",
    "validator",
    "field_validator",
    "model_validator",
    "root_validator",
    "property",
    "cached_property",
    "setter",
    "getter",
    "deleter",
    "overload",
    "abstractmethod",
    "singledispatch",
    "contextmanager",
    "asynccontextmanager",
    "entrypoint",
}

# Class-name suffixes whose public methods are invoked by a framework.
FRAMEWORK_CLASS_SUFFIXES = (
    "View",
    "ViewSet",
    "Admin",
    "Command",
    "Middleware",
    "Handler",
    "Visitor",
    "Transformer",
    "Consumer",
    "Serializer",
    "Plugin",
    "Migration",
)

TEST_HELPER_MARKERS = ("conftest", "factories", "factory", "fixtures", "testing", "test_helpers")

INTERNAL_SEGMENTS = {"internal", "_internal", "private", "_private", "helpers", "_helpers"}


def _segments(scope: str) -> List[str]:
    return [p for p in scope.split(".") if p]


def _last_segment(dotted: str) -> str:
    return dotted.rsplit(".", 1)[-1]


def internal_scope(symbol: Symbol) -> bool:
    """Scope suggests an internal/private implementation package."""
    return any(seg.lower() in INTERNAL_SEGMENTS for seg in _segments(symbol.scope))


def explicit_export(symbol: Symbol, meta: Meta) -> bool:
    return bool(meta.export)


def has_public_documentation(symbol: Symbol, meta: Meta) -> bool:
    doc = meta.doc
    if doc is None or doc is False:
        return False
    return bool(str(doc).strip())


def module_body(symbol: Symbol, meta: Meta) -> bool:
    return symbol.name == MODULE_BODY


def dunder_method(symbol: Symbol, meta: Meta) -> bool:
    name = symbol.name
    return (
        name != STRUCT_NAME
        and len(name) > 4
        and name.startswith("__")
        and name.endswith("__")
    )


def entry_point(symbol: Symbol, meta: Meta) -> bool:
    return symbol.name in {"main", "cli"} or _last_segment(symbol.scope) == "__main__"


def test_function(symbol: Symbol, meta: Meta) -> bool:
    scope_last = _last_segment(symbol.scope)
    in_test_scope = any(
        seg.startswith("test_") or seg.endswith("_test") or seg in {"tests", "test"}
        for seg in _segments(symbol.scope)
    ) or scope_last.startswith("Test")
    return in_test_scope and (symbol.name.startswith("test") or symbol.name.startswith("Test"))


def framework_callback(symbol: Symbol, meta: Meta) -> bool:
    return (symbol.name, symbol.arity) in FRAMEWORK_CALLBACKS


def framework_decorator(symbol: Symbol, meta: Meta) -> bool:
    return any(_last_segment(d) in FRAMEWORK_DECORATORS for d in meta.decorators)


def framework_class_method(symbol: Symbol, meta: Meta) -> bool:
    if meta.kind != "method":
        return False
    return _last_segment(symbol.scope).endswith(FRAMEWORK_CLASS_SUFFIXES)


def external_override(symbol: Symbol, meta: Meta) -> bool:
    """Method of a class deriving from a base that is not part of the project;
    ``implements`` lists those external bases."""
    return meta.kind == "method" and bool(meta.implements)


def test_helper(symbol: Symbol, meta: Meta) -> bool:
    return any(
        marker in seg.lower() for seg in _segments(symbol.scope) for marker in TEST_HELPER_MARKERS
    )


DEFAULT_RULES: List[Rule] = [
    Rule("explicit_export", explicit_export),
    Rule("module_body", module_body),
    Rule("dunder_method", dunder_method),
    Rule("entry_point", entry_point),
    Rule("test_function", test_function),
    Rule("framework_callback", framework_callback),
    Rule("framework_decorator", framework_decorator),
    Rule("framework_class_method", framework_class_method),
    Rule("external_override", external_override),
    Rule("test_helper", test_helper),
]


def matching_rules(
    symbol: Symbol, meta: Meta, rules: Optional[List[Rule]] = None
) -> List[str]:
    """Names of every rule that fires, ignoring the internal-scope veto."""
    return [r.name for r in (rules if rules is not None else DEFAULT_RULES) if r(symbol, meta)]


def is_likely_root(symbol: Symbol, meta: Meta, rules: Optional[List[Rule]] = None) -> bool:
    if internal_scope(symbol) and symbol.name != MODULE_BODY:
        return False
    return any(r(symbol, meta) for r in (rules if rules is not None else DEFAULT_RULES))


def build_rules(documented_is_root: bool = False) -> List[Rule]:
    """Default rule list; docstrings only count as "public API" on request,
    since most Python code documents internal helpers too."""
    rules = list(DEFAULT_RULES)
    if documented_is_root:
        rules.insert(1, Rule("public_documentation", has_public_documentation))
    return rules
