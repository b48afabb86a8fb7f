"""
Reporting: console diagnostics, statistics, JSON and HTML reports.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .node_types import STRUCT_NAME, Finding

SEVERITY_ORDER = ["error", "warning", "information", "hint"]

SEVERITY_COLORS = {
    "error": "#c00",
    "warning": "#e69500",
    "information": "#1565c0",
    "hint": "#666",
}


def _relpath(path: str) -> str:
    if not path:
        return path
    try:
        rel = os.path.relpath(path)
    except ValueError:
        return path
    return path if rel.startswith("..") else rel


def is_printable(finding: Finding) -> bool:
    # the field initializer of a reported class is noise on the console
    return not (finding.symbol.name == STRUCT_NAME and finding.symbol.arity == 1)


def format_diagnostic(finding: Finding) -> str:
    return f"{finding.severity}: {finding.message}\n    {_relpath(finding.file)}:{finding.line}"


def print_diagnostic(finding: Finding) -> None:
    if is_printable(finding):
        print(format_diagnostic(finding))


def serialize_finding(finding: Finding) -> Dict[str, Any]:
    data = finding.to_dict()
    data["file"] = _relpath(finding.file)
    return data


def _count_by_severity(findings: List[Finding]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for f in findings:
        counts[f.severity] = counts.get(f.severity, 0) + 1
    return counts


def _count_by_analyzer(findings: List[Finding]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for f in findings:
        counts[f.kind.analyzer] = counts.get(f.kind.analyzer, 0) + 1
    return dict(sorted(counts.items()))


def _group_by_file(findings: Iterable[Finding]) -> Dict[str, List[Finding]]:
    files: Dict[str, List[Finding]] = {}
    for f in findings:
        files.setdefault(_relpath(f.file), []).append(f)
    return files


def calculate_stats(findings: Iterable[Finding]) -> Dict[str, Any]:
    """Totals, per-severity (every level present), per-analyzer counts, the
    ten files with most findings and the average per file."""
    findings = list(findings)
    if not findings:
        return {
            "total_issues": 0,
            "total_files": 0,
            "avg_issues_per_file": 0.0,
            "by_severity": {s: 0 for s in SEVERITY_ORDER},
            "by_analyzer": {},
            "top_files": [],
        }
    files = _group_by_file(findings)
    by_severity = _count_by_severity(findings)
    for s in SEVERITY_ORDER:
        by_severity.setdefault(s, 0)
    top = sorted(files.items(), key=lambda kv: (-len(kv[1]), kv[0]))[:10]
    return {
        "total_issues": len(findings),
        "total_files": len(files),
        "avg_issues_per_file": round(len(findings) / len(files), 2),
        "by_severity": by_severity,
        "by_analyzer": _count_by_analyzer(findings),
        "top_files": [
            {
                "file": path,
                "count": len(items),
                "by_severity": _count_by_severity(items),
                "by_analyzer": _count_by_analyzer(items),
            }
            for path, items in top
        ],
    }


def build_tree(findings: Iterable[Finding]) -> Dict[str, Any]:
    """Folder hierarchy of findings for report navigation."""
    root: Dict[str, Any] = {"type": "root", "name": "Project Root", "count": 0, "by_severity": {}, "children": {}}
    for path, items in sorted(_group_by_file(findings).items()):
        parts = [p for p in Path(path).parts if p]
        sev = _count_by_severity(items)
        node = root
        for folder in parts[:-1]:
            node["count"] += len(items)
            for k, v in sev.items():
                node["by_severity"][k] = node["by_severity"].get(k, 0) + v
            node = node["children"].setdefault(
                folder, {"type": "folder", "name": folder, "count": 0, "by_severity": {}, "children": {}}
            )
        node["count"] += len(items)
        for k, v in sev.items():
            node["by_severity"][k] = node["by_severity"].get(k, 0) + v
        name = parts[-1] if parts else path
        node["children"][name] = {
            "type": "file",
            "name": name,
            "path": path,
            "count": len(items),
            "by_severity": sev,
            "issues": [serialize_finding(f) for f in items],
        }
    return root


def build_report_data(findings: Iterable[Finding], extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    findings = list(findings)
    files = _group_by_file(findings)
    data: Dict[str, Any] = {
        "version": "1.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "project_root": os.getcwd(),
        "total_count": len(findings),
        "stats": calculate_stats(findings),
        "issues": [serialize_finding(f) for f in findings],
        "files": [
            {
                "path": path,
                "total_count": len(items),
                "issues": [serialize_finding(f) for f in items],
                "by_severity": _count_by_severity(items),
                "by_analyzer": _count_by_analyzer(items),
            }
            for path, items in sorted(files.items(), key=lambda kv: (-len(kv[1]), kv[0]))
        ],
    }
    if extra:
        data.update(extra)
    return data


def save_json_report(data: Dict[str, Any], output_dir: Path, name: str = "unused.json") -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    out = output_dir / name
    out.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    return out


def esc(s: Any) -> str:
    return (
        str(s)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#39;")
    )


def _render_tree(node: Dict[str, Any]) -> str:
    children = node.get("children") or {}
    items = []
    for name in sorted(children):
        child = children[name]
        count = esc(child.get("count", 0))
        if child.get("type") == "file":
            items.append(f"<li>\U0001f4c4 <a href='#{esc(child['path'])}'>{esc(name)}</a> <span class='count'>{count}</span></li>")
        else:
            items.append(
                f"<li><details open><summary>\U0001f4c1 {esc(name)} <span class='count'>{count}</span></summary>"
                f"{_render_tree(child)}</details></li>"
            )
    return f"<ul class='tree'>{''.join(items)}</ul>"


def generate_html(data: Dict[str, Any]) -> str:
    stats = data.get("stats", {})
    sev_rows = "".join(
        f"<tr><td style='color:{SEVERITY_COLORS.get(k, '#000')};font-weight:600'>{esc(k)}</td><td>{esc(v)}</td></tr>"
        for k, v in (stats.get("by_severity") or {}).items()
    )
    analyzer_rows = "".join(
        f"<tr><td>{esc(k)}</td><td>{esc(v)}</td></tr>" for k, v in (stats.get("by_analyzer") or {}).items()
    )
    top_rows = "".join(
        f"<tr><td><code>{esc(t.get('file'))}</code></td><td>{esc(t.get('count'))}</td></tr>"
        for t in stats.get("top_files") or []
    ) or "<tr><td colspan='2'>No issues found</td></tr>"

    file_sections = []
    for entry in data.get("files") or []:
        rows = "".join(
            f"<tr><td>{esc(i.get('line'))}</td>"
            f"<td style='color:{SEVERITY_COLORS.get(i.get('severity'), '#000')}'>{esc(i.get('severity'))}</td>"
            f"<td>{esc(i.get('analyzer'))}</td>"
            f"<td><code>{esc(i.get('scope'))}.{esc(i.get('signature'))}</code></td>"
            f"<td>{esc(i.get('message'))}</td></tr>"
            for i in entry.get("issues") or []
        )
        file_sections.append(
            f"""
  <h3 id='{esc(entry.get('path'))}'><code>{esc(entry.get('path'))}</code> ({esc(entry.get('total_count'))})</h3>
  <table>
    <thead><tr><th>Line</th><th>Severity</th><th>Analyzer</th><th>Symbol</th><th>Message</th></tr></thead>
    <tbody>{rows}</tbody>
  </table>"""
        )

    tree = data.get("tree")
    tree_html = f"<h2>Files</h2>{_render_tree(tree)}" if tree else ""

    return f"""
<!doctype html>
<html><head><meta charset='utf-8'><title>callclinic Unused Code Report</title>
<style>
body{{font-family:system-ui,-apple-system,Segoe UI,Roboto,Arial,sans-serif; padding:16px;}}
table{{border-collapse:collapse; width:100%; margin-bottom:12px;}}
th,td{{border:1px solid #ccc; padding:6px 8px; text-align:left;}}
ul.tree{{list-style:none; padding-left:16px;}}
.count{{color:#888; font-size:90%;}}
</style></head>
<body>
  <h1>callclinic Unused Code Report</h1>
  <p>Generated: {esc(data.get('timestamp'))} | Project: <code>{esc(data.get('project_root'))}</code></p>
  <ul>
    <li>Total issues: {esc(stats.get('total_issues', 0))}</li>
    <li>Files with issues: {esc(stats.get('total_files', 0))}</li>
    <li>Average per file: {esc(stats.get('avg_issues_per_file', 0.0))}</li>
  </ul>
  <h2>By Severity</h2>
  <table><thead><tr><th>Severity</th><th>Count</th></tr></thead><tbody>{sev_rows}</tbody></table>
  <h2>By Analyzer</h2>
  <table><thead><tr><th>Analyzer</th><th>Count</th></tr></thead><tbody>{analyzer_rows}</tbody></table>
  <h2>Top Files</h2>
  <table><thead><tr><th>File</th><th>Issues</th></tr></thead><tbody>{top_rows}</tbody></table>
  {tree_html}
  <h2>Issues</h2>
  {''.join(file_sections)}
</body></html>
"""


def write_html_report(data: Dict[str, Any], output_path: Path) -> Optional[Path]:
    """Write the HTML report; returns None (and prints a warning) on failure."""
    html_data = dict(data)
    html_data.setdefault("tree", None)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(generate_html(html_data), encoding="utf-8")
    except OSError as e:
        print(f"⚠️  HTML 报告写入失败: {e}")
        return None
    return output_path
