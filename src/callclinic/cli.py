#!/usr/bin/env python3
"""
CLI entrypoint for callclinic

Subcommands:
  - run:          analyze the project and report unused code
  - init:         generate callclinic.yaml
  - show-config:  print the effective configuration
  - clean:        delete the incremental-analysis manifest

Exit codes: 0 ok, 1 findings at blocking severity, 2 configuration error.
"""
from __future__ import annotations

import argparse
import sys
import webbrowser
from pathlib import Path
from typing import List, Optional

from .errors import ConfigError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="callclinic", description="Find unused, narrowable and recursion-only code"
    )
    sub = parser.add_subparsers(dest="cmd")

    p_run = sub.add_parser("run", help="Analyze the project")
    p_run.add_argument("--path", action="append", default=None, help="Path to scan (repeatable)")
    p_run.add_argument("--config", default=None, help="Path to config (YAML or pyproject.toml)")
    p_run.add_argument("--severity", default=None, help="hint | information | warning | error")
    p_run.add_argument(
        "--warnings-as-errors", action="store_true", default=None, help="Treat warning severity as blocking"
    )
    p_run.add_argument("--checks", default=None, help="Comma separated analyzers (private,unused,recursive_only)")
    p_run.add_argument("--output", default=None, help="Output directory for reports")
    p_run.add_argument("--html-report", action="store_true", default=None, help="Also write an HTML report")
    p_run.add_argument("--html-output", default=None, help="HTML report path (default <output>/unused.html)")
    p_run.add_argument("--html-open", action="store_true", help="Open the HTML report in a browser")
    p_run.add_argument("--graph", action="store_true", default=None, help="Render the call graph with Graphviz")
    p_run.add_argument("--format", default=None, help="Graph output format (svg, png, ...)")
    p_run.add_argument("--workers", type=int, default=None, help="Concurrent collectors")
    p_run.add_argument("--no-manifest", action="store_true", help="Ignore and do not update the manifest")

    p_init = sub.add_parser("init", help="Generate callclinic.yaml")
    p_init.add_argument("--force", action="store_true", help="Overwrite existing callclinic.yaml if present")
    p_init.add_argument("--output", default="callclinic.yaml", help="Config file to write")

    p_show = sub.add_parser("show-config", help="Show the effective configuration")
    p_show.add_argument("--config", default=None, help="Path to config (YAML or pyproject.toml)")

    p_clean = sub.add_parser("clean", help="Delete the manifest")
    p_clean.add_argument("--config", default=None, help="Path to config (YAML or pyproject.toml)")
    return parser


def run_command(args: argparse.Namespace) -> int:
    # Lazy import to keep CLI start-up light
    from .api import analyze_project
    from .config_loader import apply_overrides, load_config
    from .report import print_diagnostic

    try:
        config = load_config(Path(args.config) if args.config else None)
        checks = [c.strip() for c in args.checks.split(",") if c.strip()] if args.checks else None
        apply_overrides(
            config,
            paths=args.path,
            severity=args.severity,
            warnings_as_errors=args.warnings_as_errors,
            checks=checks,
            output=args.output,
            html_report=True if (args.html_open or args.html_output) else args.html_report,
            html_output=args.html_output,
            graph=args.graph,
            format=args.format,
            workers=args.workers,
        )
        result = analyze_project(config=config, manifest=False if args.no_manifest else None)
    except ConfigError as e:
        print(f"❌ 配置错误: {e}")
        return 2

    for warning in result["warnings"]:
        print(f"⚠️  {warning}")
    findings = result["findings"]
    for f in findings:
        print_diagnostic(f)

    summary = result["summary"]
    stats = summary["stats"]
    print(
        f"\n📊 {summary['files']} 个文件（新分析 {summary['collected']}，复用 {summary['reused']}，"
        f"失败 {summary['failed']}）| {summary['symbols']} 个符号 | {stats['total_issues']} 个问题"
    )
    for analyzer, count in stats["by_analyzer"].items():
        print(f"  • {analyzer}: {count}")
    report = result["report"]
    if "json" in report:
        print(f"📄 JSON 报告: {report['json']}")
    if "html" in report:
        print(f"🌐 HTML 报告: {report['html']}")
        if args.html_open:
            webbrowser.open(Path(report["html"]).resolve().as_uri())
    if "dot" in report:
        if "graph" in report:
            print(f"🕸️  调用图: {report['graph']}")
        else:
            print(f"⚠️  未找到 Graphviz 可执行文件，仅生成 DOT: {report['dot']}")

    blocking = config.severity == "error" or (config.severity == "warning" and config.warnings_as_errors)
    if findings and blocking:
        return 1
    if not findings:
        print("✅ 未发现问题")
    return 0


def clean_command(args: argparse.Namespace) -> int:
    from .config_loader import load_config
    from .manifest import DEFAULT_MANIFEST, ManifestStore

    try:
        config = load_config(Path(args.config) if args.config else None, quiet=True)
    except ConfigError as e:
        print(f"❌ 配置错误: {e}")
        return 2
    store = ManifestStore(config.manifest or DEFAULT_MANIFEST)
    if store.clean():
        print(f"🧹 已删除 manifest: {store.path}")
    else:
        print(f"ℹ️  没有可删除的 manifest: {store.path}")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        sys.exit(0)

    if args.cmd == "run":
        sys.exit(run_command(args))

    if args.cmd == "init":
        from .config_init import init_config

        init_config(Path(args.output), force=args.force)
        return

    if args.cmd == "show-config":
        from .config_init import show_config

        sys.exit(0 if show_config(Path(args.config) if args.config else None) else 2)

    if args.cmd == "clean":
        sys.exit(clean_command(args))


if __name__ == "__main__":
    main()
