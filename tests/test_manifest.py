from __future__ import annotations

import json
from pathlib import Path

from callclinic.manifest import MANIFEST_VERSION, ManifestEntry, ManifestStore
from callclinic.node_types import Call, Definition, Meta, SourceLocation, Symbol

MAIN = Symbol("app", "main", 0)
HELPER = Symbol("app", "helper", 1)


def _entry(digest: str = "abc") -> ManifestEntry:
    return ManifestEntry(
        digest=digest,
        module="app",
        facts=[
            Definition(MAIN, Meta(file="app.py", line=1, export=True, aliases={"os": "os"})),
            Definition(HELPER, Meta(file="app.py", line=4, visibility="public", decorators=["cache"])),
            Call(MAIN, HELPER, SourceLocation("app.py", 2)),
        ],
    )


def test_save_then_load_preserves_facts(tmp_path: Path) -> None:
    store = ManifestStore(tmp_path / "cache" / "manifest.json")

    assert store.save({"app.py": _entry()})
    loaded = store.load()

    assert list(loaded) == ["app.py"]
    entry = loaded["app.py"]
    assert entry.digest == "abc"
    assert entry.module == "app"
    assert entry.facts == _entry().facts
    assert entry.facts[0].meta.aliases == {"os": "os"}
    assert entry.facts[1].meta.decorators == ["cache"]


def test_missing_manifest_is_empty(tmp_path: Path) -> None:
    assert ManifestStore(tmp_path / "nope.json").load() == {}


def test_corrupt_manifest_resets(tmp_path: Path, capsys) -> None:
    path = tmp_path / "manifest.json"
    path.write_text("{not json", encoding="utf-8")

    assert ManifestStore(path).load() == {}
    assert "manifest" in capsys.readouterr().out


def test_foreign_version_resets(tmp_path: Path) -> None:
    path = tmp_path / "manifest.json"
    path.write_text(json.dumps({"version": MANIFEST_VERSION + 1, "units": {}}), encoding="utf-8")

    assert ManifestStore(path).load() == {}


def test_undecodable_fact_resets(tmp_path: Path) -> None:
    path = tmp_path / "manifest.json"
    payload = {
        "version": MANIFEST_VERSION,
        "units": {"app.py": {"digest": "abc", "module": "app", "facts": [{"t": "def", "sym": ["app"]}]}},
    }
    path.write_text(json.dumps(payload), encoding="utf-8")

    assert ManifestStore(path).load() == {}


def test_merge_prefers_new_entries() -> None:
    old = {"a.py": _entry("old-a"), "b.py": _entry("old-b")}
    new = {"a.py": _entry("new-a")}

    merged = ManifestStore.merge(old, new)

    assert {u: e.digest for u, e in merged.items()} == {"a.py": "new-a", "b.py": "old-b"}


def test_clean_removes_file_once(tmp_path: Path) -> None:
    store = ManifestStore(tmp_path / "manifest.json")
    store.save({})

    assert store.clean() is True
    assert store.clean() is False
    assert not store.path.exists()


def test_invalid_utf8_manifest_resets(tmp_path: Path, capsys) -> None:
    path = tmp_path / "manifest.json"
    path.write_bytes(b'{"version": 1, "units": {"\xff\xfe": {}}}')

    assert ManifestStore(path).load() == {}
    assert "manifest" in capsys.readouterr().out
