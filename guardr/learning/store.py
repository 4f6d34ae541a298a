"""JSON file store for learned label patterns.

Three kinds of file live under the store directory:

- ``sites/<site>.json``: the learned patterns of one site.
- ``global.json``: the cross-site pattern map.
- ``promoted.json``: rules promoted into the built-in tier.

Every file is a pydantic model dumped with ``model_dump_json``.  A
malformed file is removed and treated as empty, so a corrupt store
never blocks a run.
"""

from __future__ import annotations

import json
import pathlib
import shutil
from typing import TypeVar

import pydantic

from guardr.models import base, labels
from guardr.utils import logger

log = logger.create_logger("PatternStore")

_M = TypeVar("_M", bound=pydantic.BaseModel)


class SitePatterns(base.CamelModel):
    """Learned patterns for one site, unique by normalised text."""

    site: str
    patterns: list[labels.LearnedPattern] = pydantic.Field(default_factory=list)

    @pydantic.model_validator(mode="after")
    def _deduplicate(self) -> SitePatterns:
        self.patterns = _unique(self.patterns)
        return self


class GlobalPatterns(base.CamelModel):
    """Cross-site pattern map, unique by normalised text."""

    patterns: list[labels.LearnedPattern] = pydantic.Field(default_factory=list)

    @pydantic.model_validator(mode="after")
    def _deduplicate(self) -> GlobalPatterns:
        self.patterns = _unique(self.patterns)
        return self


class PromotedRules(base.CamelModel):
    """Rules promoted from learned patterns, unique by expression and intent."""

    rules: list[labels.PromotedRule] = pydantic.Field(default_factory=list)

    @pydantic.model_validator(mode="after")
    def _deduplicate(self) -> PromotedRules:
        seen: set[tuple[str, str]] = set()
        unique: list[labels.PromotedRule] = []
        for rule in self.rules:
            key = (rule.pattern, rule.intent.value)
            if key not in seen:
                seen.add(key)
                unique.append(rule)
        self.rules = unique
        return self


def _unique(patterns: list[labels.LearnedPattern]) -> list[labels.LearnedPattern]:
    """Keep the first entry per normalised text; taught entries win."""
    by_key: dict[str, labels.LearnedPattern] = {}
    for pattern in patterns:
        existing = by_key.get(pattern.normalized_text)
        if existing is None or (existing.origin == "auto" and pattern.origin == "taught"):
            by_key[pattern.normalized_text] = pattern
    return list(by_key.values())


def _site_filename(site: str) -> str:
    """Filesystem-safe name for *site*; ``www.`` shares the bare entry."""
    safe = site.lower().removeprefix("www.")
    safe = "".join(c if c.isalnum() or c in ".-" else "_" for c in safe)[:100]
    return f"{safe or 'unknown'}.json"


class PatternStore:
    """Loads and saves learning state under *root*."""

    def __init__(self, root: pathlib.Path) -> None:
        self.root = pathlib.Path(root)

    @property
    def _sites_dir(self) -> pathlib.Path:
        return self.root / "sites"

    @property
    def _global_path(self) -> pathlib.Path:
        return self.root / "global.json"

    @property
    def _promoted_path(self) -> pathlib.Path:
        return self.root / "promoted.json"

    # ------------------------------------------------------------------
    # Generic file handling
    # ------------------------------------------------------------------

    def _read(self, path: pathlib.Path, model: type[_M]) -> _M | None:
        if not path.exists():
            return None
        try:
            return model.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError) as exc:
            log.warn(
                "Failed to read pattern file, removing",
                {
                    "path": path.name,
                    "error": str(exc),
                },
            )
            self._remove(path)
            return None

    def _write(self, path: pathlib.Path, model: pydantic.BaseModel) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            path.write_text(model.model_dump_json(indent=2, by_alias=True), encoding="utf-8")
        except OSError as exc:
            log.warn(
                "Failed to write pattern file",
                {
                    "path": path.name,
                    "error": str(exc),
                },
            )

    @staticmethod
    def _remove(path: pathlib.Path) -> None:
        if not path.exists():
            return
        try:
            path.unlink()
        except OSError as exc:
            log.warn("Failed to remove pattern file", {"path": path.name, "error": str(exc)})

    # ------------------------------------------------------------------
    # Per-site patterns
    # ------------------------------------------------------------------

    def load_site(self, site: str) -> SitePatterns:
        entry = self._read(self._sites_dir / _site_filename(site), SitePatterns)
        return entry if entry is not None else SitePatterns(site=site)

    def save_site(self, entry: SitePatterns) -> None:
        if not entry.patterns:
            self._remove(self._sites_dir / _site_filename(entry.site))
            return
        self._write(self._sites_dir / _site_filename(entry.site), entry)

    def list_sites(self) -> list[str]:
        if not self._sites_dir.exists():
            return []
        return sorted(p.stem for p in self._sites_dir.glob("*.json"))

    # ------------------------------------------------------------------
    # Global map and promoted rules
    # ------------------------------------------------------------------

    def load_global(self) -> GlobalPatterns:
        entry = self._read(self._global_path, GlobalPatterns)
        return entry if entry is not None else GlobalPatterns()

    def save_global(self, entry: GlobalPatterns) -> None:
        self._write(self._global_path, entry)

    def load_promoted(self) -> PromotedRules:
        entry = self._read(self._promoted_path, PromotedRules)
        return entry if entry is not None else PromotedRules()

    def save_promoted(self, entry: PromotedRules) -> None:
        self._write(self._promoted_path, entry)

    def clear_all(self) -> int:
        """Delete every stored file.  Returns the number of files removed."""
        if not self.root.exists():
            return 0
        count = sum(1 for p in self.root.rglob("*.json") if p.is_file())
        try:
            shutil.rmtree(self.root)
        except OSError as exc:
            log.warn("Failed to clear pattern store", {"root": str(self.root), "error": str(exc)})
            return 0
        log.info("Pattern store cleared", {"files": count})
        return count
