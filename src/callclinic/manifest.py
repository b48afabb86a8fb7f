"""
Manifest store: facts of every successfully collected unit, persisted between
runs so unchanged files are not parsed again.

File layout (JSON):

    {"version": 1,
     "units": {"src/pkg/mod.py": {"digest": "...", "module": "pkg.mod",
                                   "facts": [{"t": "def", ...}, ...]}}}

Loading is fail-open: an unreadable, corrupt or foreign-version file yields an
empty store and a printed warning.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

from .errors import ManifestError
from .node_types import Fact, fact_from_dict, fact_to_dict

MANIFEST_VERSION = 1
DEFAULT_MANIFEST = ".callclinic/manifest.json"


@dataclass
class ManifestEntry:
    digest: str
    module: str = ""
    facts: List[Fact] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "digest": self.digest,
            "module": self.module,
            "facts": [fact_to_dict(f) for f in self.facts],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ManifestEntry":
        if not isinstance(data, Mapping) or not isinstance(data.get("digest"), str):
            raise ManifestError("entry without digest")
        raw_facts = data.get("facts") or []
        if not isinstance(raw_facts, list):
            raise ManifestError("facts must be a list")
        facts: List[Fact] = []
        for raw in raw_facts:
            fact = fact_from_dict(raw) if isinstance(raw, Mapping) else None
            if fact is None:
                raise ManifestError(f"undecodable fact {raw!r}")
            facts.append(fact)
        return cls(digest=data["digest"], module=str(data.get("module") or ""), facts=facts)


Entries = Dict[str, ManifestEntry]


class ManifestStore:
    def __init__(self, path: Union[str, Path] = DEFAULT_MANIFEST):
        self.path = Path(path)

    def _read(self) -> Entries:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise ManifestError(f"cannot read {self.path} ({e})")
        except UnicodeDecodeError as e:
            raise ManifestError(f"corrupt manifest {self.path} ({e})")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ManifestError(f"corrupt manifest {self.path} ({e})")
        if not isinstance(data, dict) or data.get("version") != MANIFEST_VERSION:
            raise ManifestError(f"unknown manifest version in {self.path}")
        units = data.get("units") or {}
        if not isinstance(units, dict):
            raise ManifestError(f"malformed units in {self.path}")
        return {str(unit): ManifestEntry.from_dict(entry) for unit, entry in units.items()}

    def load(self) -> Entries:
        """Read the manifest; any problem resets it to an empty store."""
        try:
            return self._read()
        except ManifestError as e:
            print(f"⚠️  manifest 无法使用，已重置: {e}")
            return {}

    @staticmethod
    def merge(old: Mapping[str, ManifestEntry], new: Mapping[str, ManifestEntry]) -> Entries:
        """Units present in ``new`` replace their old entries; others carry over."""
        merged: Entries = dict(old)
        merged.update(new)
        return dict(sorted(merged.items()))

    def save(self, entries: Mapping[str, ManifestEntry]) -> bool:
        payload = {
            "version": MANIFEST_VERSION,
            "units": {unit: entries[unit].to_dict() for unit in sorted(entries)},
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as e:
            print(f"⚠️  无法写入 manifest {self.path}: {e}")
            return False
        return True

    def clean(self) -> bool:
        """Delete the manifest file; True if something was removed."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            print(f"⚠️  无法删除 manifest {self.path}: {e}")
            return False
        return True
