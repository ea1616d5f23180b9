# appraisal/inputs/inputs.py
"""
Inputs loader for a lot grouping run.

Goals
-----
- File-first inputs validated with Pydantic.
- Lenient on selector fields: grouping mode, language and currency stay plain
  strings here and are normalized by the pipeline (unknown mode → empty
  result, unknown language → en).
- Minimal environment-variable overrides for CI/CLI convenience.

JSON shape
----------
    {
      "images": ["https://cdn.example.com/a.jpg", "photos/b.jpg"],
      "grouping_mode": "per_item",
      "language": "en",
      "currency": "CAD",
      "metadata": {"client_name": "...", "effective_date": "2024-05-01"},
      "catalogue_lots": [{"count": 4, "cover_index": 0}],
      "combined_modes": ["per_item", "per_photo"],
      "out": "lots.json"
    }

`images` may also be a folder path (string); its image files are listed in
case-insensitive name order.

Environment overrides (optional)
--------------------------------
- APPRAISAL_MODE      -> RunInputs.grouping_mode
- APPRAISAL_LANGUAGE  -> RunInputs.language
- APPRAISAL_CURRENCY  -> RunInputs.currency
- APPRAISAL_OUT       -> RunInputs.out
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

from pydantic import BaseModel, Field, ValidationError, field_validator

from appraisal.schemas.models import CatalogueSegment, ReportMetadata

_IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".gif", ".tif", ".tiff"}

# ----------------------------
# Pydantic model
# ----------------------------


class RunInputs(BaseModel):
    """One pipeline run: images, selectors, report metadata and output path."""

    images: list[str] = Field(default_factory=list, description="Ordered image locators (URLs or paths).")
    grouping_mode: str = Field("per_item", description="single_lot | per_item | per_photo | catalogue | combined.")
    language: str = Field("en", description="en | fr | es.")
    currency: str = Field("CAD", description="ISO currency code for estimated values.")
    metadata: ReportMetadata = Field(default_factory=ReportMetadata)
    catalogue_lots: list[CatalogueSegment] = Field(default_factory=list)
    combined_modes: list[str] = Field(default_factory=list)
    out: str = Field("lots.json", description="Path to write the JSON report.")

    @field_validator("images", mode="before")
    @classmethod
    def _images(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return list_image_files(v)
        if isinstance(v, list | tuple):
            return ["" if x is None else str(x) for x in v]
        raise ValueError("images must be a list of locators or a folder path")


def list_image_files(folder: str | Path) -> list[str]:
    base = Path(folder)
    if not base.is_dir():
        raise ValueError(f"images folder not found: {base}")
    files = [p for p in base.iterdir() if p.is_file() and p.suffix.lower() in _IMAGE_EXTS]
    return [str(p) for p in sorted(files, key=lambda p: p.name.lower())]


# ----------------------------
# Loader
# ----------------------------


@dataclass(frozen=True)
class InputsLoader:
    """
    File-first inputs loader with light env overrides.

    Default search (when path=None):
        1) ./data/sample/lots.json
        2) ./config.json
    """

    env_prefix: str = "APPRAISAL_"

    # ---------- Public API ----------

    def load(self, path: str | Path | None = None) -> RunInputs:
        p = self._resolve_path(path)
        raw = self._read_json_file(p)
        cfg = self._parse_root(raw)
        return self._apply_env_overrides(cfg)

    def load_json(self, text: str) -> RunInputs:
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON payload: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError("Inputs payload must be a JSON object.")
        cfg = self._parse_root(raw)
        return self._apply_env_overrides(cfg)

    def with_overrides(
        self,
        cfg: RunInputs,
        *,
        images: list[str] | None = None,
        grouping_mode: str | None = None,
        language: str | None = None,
        currency: str | None = None,
        out: str | None = None,
    ) -> RunInputs:
        """
        Return a *new* RunInputs with the non-null overrides applied.
        Does not mutate the original instance.
        """
        updates: dict[str, Any] = {}
        if images:
            updates["images"] = list(images)
        if grouping_mode is not None:
            updates["grouping_mode"] = grouping_mode
        if language is not None:
            updates["language"] = language
        if currency is not None:
            updates["currency"] = currency
        if out is not None:
            updates["out"] = out

        if not updates:
            return cfg
        return cfg.model_copy(update=updates)

    # ---------- Internals ----------

    def _resolve_path(self, path: str | Path | None) -> Path:
        if path is not None:
            p = Path(path)
            if not p.exists():
                raise FileNotFoundError(f"Inputs file not found: {p}")
            return p

        for candidate in (Path("data/sample/lots.json"), Path("config.json")):
            if candidate.exists():
                return candidate
        raise FileNotFoundError(
            "No inputs path provided and no default inputs found. Looked for ./data/sample/lots.json and ./config.json."
        )

    def _read_json_file(self, p: Path) -> dict[str, Any]:
        if p.suffix.lower() != ".json":
            raise ValueError(f"Unsupported inputs format for {p.name}; only .json is supported.")
        try:
            loaded = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {p}: {e}") from e
        if not isinstance(loaded, dict):
            raise ValueError(f"Inputs in {p} must be a JSON object.")
        return cast(dict[str, Any], loaded)

    def _parse_root(self, data: dict[str, Any]) -> RunInputs:
        try:
            return RunInputs.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Inputs validation failed:\n{e}") from e

    def _apply_env_overrides(self, cfg: RunInputs) -> RunInputs:
        prefix = self.env_prefix
        updates: dict[str, Any] = {}

        for env_name, field_name in (("MODE", "grouping_mode"), ("LANGUAGE", "language"), ("CURRENCY", "currency"), ("OUT", "out")):
            value = os.getenv(f"{prefix}{env_name}")
            if value and value.strip():
                updates[field_name] = value.strip()

        if not updates:
            return cfg
        return cfg.model_copy(update=updates)


# ----------------------------
# Convenience function
# ----------------------------


def load_inputs(path: str | Path | None = None) -> RunInputs:
    """Convenience wrapper for one-shot callers."""
    return InputsLoader().load(path)


__all__ = ["RunInputs", "InputsLoader", "list_image_files", "load_inputs"]
