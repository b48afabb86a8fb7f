"""
Pipeline: discover -> collect (manifest-aware, concurrent) -> link -> exports
-> graph -> analyze -> filter -> report.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from .analyze import analyze
from .call_graph import build_graph
from .collector import collect_all, discover_sources, link_facts
from .config_loader import UnusedConfig, load_config, normalize_severity
from .dynamic_calls import find_dynamic_dispatchers, generate_warnings
from .exports import collect_exports
from .graphviz_render import render_call_graph
from .heuristics import build_rules, is_likely_root
from .manifest import ManifestEntry, ManifestStore
from .match_spec import compile_specs, reject_matching
from .node_types import Definition, Fact
from .report import build_report_data, build_tree, calculate_stats, save_json_report, write_html_report

ManifestArg = Union[None, bool, str, Path, ManifestStore]


def _manifest_store(manifest: ManifestArg, config: UnusedConfig) -> Optional[ManifestStore]:
    if manifest is False:
        return None
    if isinstance(manifest, ManifestStore):
        return manifest
    if isinstance(manifest, (str, Path)):
        return ManifestStore(manifest)
    return ManifestStore(config.manifest) if config.manifest else None


def analyze_project(
    paths: Union[None, str, Sequence[str]] = None,
    config: Optional[UnusedConfig] = None,
    manifest: ManifestArg = None,
    output: Union[None, bool, str, Path] = None,
) -> Dict[str, Any]:
    """
    Analyze a project for unused, narrowable and recursion-only code.

    Args:
        paths: directories/files to scan (default: from config)
        config: configuration (default: discovered callclinic config)
        manifest: ManifestStore or path; False disables incremental reuse
        output: report directory; False writes no files

    Returns:
        dict with ``findings`` (sorted Finding list), ``summary``,
        ``dynamic_dispatchers``, ``warnings`` and ``report`` (written paths)

    Raises:
        ConfigError: invalid ignore specification or configuration
    """
    config = config or load_config(quiet=True)
    if paths is not None:
        config.paths = [paths] if isinstance(paths, str) else list(paths)
    config.severity = normalize_severity(config.severity)
    specs = compile_specs(config.ignore)

    store = _manifest_store(manifest, config)
    previous: Dict[str, ManifestEntry] = store.load() if store else {}

    sources = discover_sources(config.paths, config.include, config.exclude)
    collection = collect_all(sources, previous=previous, workers=config.workers)
    warnings: List[str] = []
    for unit, reason in sorted(collection.failed.items()):
        warnings.append(f"{unit} 无法分析，已跳过: {reason}")

    raw = collection.store.snapshot()
    linked = link_facts(raw)
    metas = collect_exports(linked, excluded=collection.failed)
    facts: List[Fact] = []
    for unit in sorted(linked):
        for fact in linked[unit]:
            if isinstance(fact, Definition) and fact.symbol in metas:
                fact = Definition(fact.symbol, metas[fact.symbol])
            facts.append(fact)
    graph = build_graph(facts)

    rules = build_rules(config.documented_is_root)
    result = analyze(
        graph,
        checks=config.checks,
        oracle=lambda sym, meta: is_likely_root(sym, meta, rules),
        root_specs=specs,
        severity=config.severity,
        narrow_skip_likely_roots=config.narrow_skip_likely_roots,
    )
    findings = reject_matching(result.findings, specs, graph.nodes)

    dispatchers = find_dynamic_dispatchers(graph)
    warnings.extend(generate_warnings(dispatchers))

    if store is not None:
        fresh = {
            unit: ManifestEntry(
                digest=collection.store.digest(unit),
                module=collection.store.module(unit),
                facts=raw.get(unit, []),
            )
            for unit in collection.collected + collection.reused
        }
        merged = ManifestStore.merge(previous, fresh)
        # files that no longer exist are not worth keeping
        merged = {u: e for u, e in merged.items() if u in fresh or u in collection.failed or Path(u).exists()}
        store.save(merged)

    summary = {
        "files": len(sources),
        "collected": len(collection.collected),
        "reused": len(collection.reused),
        "failed": len(collection.failed),
        "symbols": len(graph.nodes),
        "edges": len(graph.sites),
        "dropped_facts": graph.dropped,
        "roots": len(result.roots),
        "live": len(result.live),
        "findings": len(findings),
        "stats": calculate_stats(findings),
    }

    report: Dict[str, str] = {}
    target = None if output is False else (output or config.output)
    if target:
        out_dir = Path(target)
        data = build_report_data(
            findings,
            extra={
                "summary": {k: v for k, v in summary.items() if k != "stats"},
                "dynamic_dispatchers": {s: [list(f) for f in fs] for s, fs in dispatchers.items()},
                "warnings": warnings,
            },
        )
        report["json"] = str(save_json_report(data, out_dir))
        if config.html_report:
            html_path = Path(config.html_output) if config.html_output else out_dir / "unused.html"
            written = write_html_report({**data, "tree": build_tree(findings)}, html_path)
            if written:
                report["html"] = str(written)
        if config.graph:
            dot_path, rendered = render_call_graph(
                graph, findings, result.live, str(out_dir / "call_graph"), fmt=config.format
            )
            report["dot"] = dot_path
            if rendered:
                report["graph"] = rendered

    return {
        "findings": findings,
        "summary": summary,
        "dynamic_dispatchers": dispatchers,
        "warnings": warnings,
        "report": report,
    }
