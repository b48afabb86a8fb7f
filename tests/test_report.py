from __future__ import annotations

import json
from pathlib import Path

from callclinic.node_types import Finding, FindingKind, SourceLocation, Symbol
from callclinic.report import (
    build_report_data,
    build_tree,
    calculate_stats,
    format_diagnostic,
    generate_html,
    is_printable,
    save_json_report,
    write_html_report,
)


def _finding(scope: str, name: str, file: str, line: int, kind=FindingKind.UNUSED, severity="hint") -> Finding:
    sym = Symbol(scope, name, 0)
    return Finding(sym, kind, SourceLocation(file, line), f"{sym} is unused", severity)


def _findings():
    return [
        _finding("pkg.a", "f", "pkg/a.py", 3),
        _finding("pkg.a", "g", "pkg/a.py", 9, FindingKind.NARROWABLE_VISIBILITY, "warning"),
        _finding("pkg.sub.b", "h", "pkg/sub/b.py", 1, FindingKind.RECURSIVE_ONLY),
    ]


def test_format_diagnostic() -> None:
    text = format_diagnostic(_finding("pkg.a", "f", "pkg/a.py", 3))

    assert text == "hint: pkg.a.f/0 is unused\n    pkg/a.py:3"


def test_field_initializer_is_not_printed() -> None:
    struct1 = Finding(
        Symbol("pkg.a.Point", "__struct__", 1), FindingKind.UNUSED, SourceLocation("pkg/a.py", 1), "x"
    )

    assert not is_printable(struct1)
    assert is_printable(_finding("pkg.a", "f", "pkg/a.py", 3))


def test_stats_for_no_findings() -> None:
    stats = calculate_stats([])

    assert stats["total_issues"] == 0
    assert stats["by_severity"] == {"error": 0, "warning": 0, "hint": 0, "information": 0}
    assert stats["top_files"] == []


def test_stats_counts() -> None:
    stats = calculate_stats(_findings())

    assert stats["total_issues"] == 3
    assert stats["total_files"] == 2
    assert stats["avg_issues_per_file"] == 1.5
    assert stats["by_severity"]["hint"] == 2
    assert stats["by_severity"]["warning"] == 1
    assert stats["by_analyzer"] == {"Private": 1, "RecursiveOnly": 1, "Unused": 1}
    assert stats["top_files"][0]["file"] == "pkg/a.py"
    assert stats["top_files"][0]["count"] == 2


def test_tree_groups_by_folder() -> None:
    tree = build_tree(_findings())

    pkg = tree["children"]["pkg"]
    assert pkg["count"] == 3
    assert pkg["children"]["a.py"]["count"] == 2
    assert pkg["children"]["sub"]["children"]["b.py"]["type"] == "file"


def test_json_report_is_written(tmp_path: Path) -> None:
    data = build_report_data(_findings(), extra={"warnings": ["注意"]})

    out = save_json_report(data, tmp_path / "out")

    loaded = json.loads(out.read_text(encoding="utf-8"))
    assert loaded["total_count"] == 3
    assert loaded["warnings"] == ["注意"]
    assert "注意" in out.read_text(encoding="utf-8")
    assert [f["path"] for f in loaded["files"]] == ["pkg/a.py", "pkg/sub/b.py"]


def test_html_escapes_content(tmp_path: Path) -> None:
    finding = _finding("pkg.a", "f", "pkg/a.py", 3)
    finding.message = "<script>alert(1)</script>"
    data = build_report_data([finding])

    html = generate_html(data)
    assert "<script>alert" not in html
    assert "&lt;script&gt;" in html

    path = write_html_report({**data, "tree": build_tree([finding])}, tmp_path / "r" / "unused.html")
    assert path is not None and path.exists()


def test_severity_levels_are_ordered_most_severe_first() -> None:
    stats = calculate_stats([])

    assert list(stats["by_severity"]) == ["error", "warning", "information", "hint"]
