# appraisal/tools/vision/mock_provider.py
"""
Mock Lot Provider

Purpose
-------
Deterministic, network-free `LotVisionProvider` for tests, local runs and the
CLI's default mode. Two ways to drive it:

1) Scripted: pass `script(request) -> str | dict | list | None`. Dicts/lists
   are JSON-encoded; strings are returned verbatim (use them to simulate
   malformed output); raising simulates a transport failure.
2) Filename rules (no script): plausible responses derived from the image
   *filenames*, never from pixels:
     - "forklift_1.jpg", "forklift_2.jpg"  → same subject, different frames
       (trailing _<n>/-<n>/_dup/_copy/_angle<n> is stripped to find the group)
     - "camera+lens.jpg"                   → two items in one frame
     - "camera#SN123.jpg"                  → item with serial "SN123"

Usage
-----
prov = MockLotProvider()
text = prov.complete(request)      # JSON string shaped like {"lots": [...]}
prov.calls                         # every request seen, in call order
"""

from __future__ import annotations

import json
import re
import threading
from collections.abc import Callable
from pathlib import PurePosixPath
from typing import Any

from appraisal.schemas.labels import GroupingMode

from .provider_base import LotVisionProvider, LotVisionRequest

Script = Callable[[LotVisionRequest], Any]

_FRAME_SUFFIX = re.compile(r"([_-](\d+|dup\d*|copy\d*|angle\d*|[a-z]))$")


class MockLotProvider(LotVisionProvider):
    """Scripted or filename-based mock provider."""

    def __init__(self, script: Script | None = None) -> None:
        self._script = script
        self._lock = threading.Lock()
        self.calls: list[LotVisionRequest] = []

    def complete(self, request: LotVisionRequest) -> str:
        with self._lock:
            self.calls.append(request)
        if self._script is not None:
            out = self._script(request)
        else:
            out = _filename_response(request)
        if out is None:
            return ""
        if isinstance(out, str):
            return out
        return json.dumps(out, ensure_ascii=False)


# ---------- filename rules ----------


def _stem(url: str) -> str:
    # Query strings are ignored; "#" stays part of the name (serial marker)
    path = url.split("?", 1)[0]
    return PurePosixPath(path).stem.lower()


def _subject(stem: str) -> str:
    prev = None
    while prev != stem:
        prev = stem
        stem = _FRAME_SUFFIX.sub("", stem)
    return stem or prev or "item"


def _title(token: str) -> str:
    words = re.split(r"[_\-\s]+", token.strip())
    return " ".join(w.capitalize() for w in words if w) or "Item"


def _items_in(stem: str) -> list[tuple[str, str | None]]:
    out: list[tuple[str, str | None]] = []
    for part in stem.split("+"):
        name, _, serial = part.partition("#")
        if name.strip():
            out.append((_title(_subject(name)), serial.strip().upper() or None))
    return out


def _lot(n: int, title: str, indexes: list[int], serial: str | None = None, **extra: Any) -> dict[str, Any]:
    return {
        "lot_id": f"lot-{n:03d}",
        "title": title,
        "description": f"{title} observed in the provided images.",
        "condition": "Used - Good",
        "estimated_value": None,
        "serial_no_or_label": serial,
        "details": None,
        "image_indexes": indexes,
        **extra,
    }


def _filename_response(request: LotVisionRequest) -> dict[str, Any]:
    refs = list(request.images)
    # Indices the model "sees" are positions in the attached image list
    if request.mode == GroupingMode.per_item:
        local = request.tags.get("image_index", 0)
        lots = [_lot(k + 1, t, [local], s) for k, (t, s) in enumerate(_items_in(_stem(refs[0].url)))] if refs else []
        return {"lots": lots, "summary": f"{len(lots)} item(s) in image {local}."}

    if request.mode == GroupingMode.per_photo:
        lots = []
        for pos, ref in enumerate(refs):
            items = _items_in(_stem(ref.url))
            title, serial = items[0] if items else ("Item", None)
            lots.append(_lot(pos + 1, title, [pos], serial))
        return {"lots": lots, "summary": f"{len(lots)} photo lot(s)."}

    if request.mode == GroupingMode.catalogue:
        items = []
        for pos, ref in enumerate(refs):
            for title, serial in _items_in(_stem(ref.url)):
                items.append({"title": title, "sn_vin": serial or "not found", "description": title, "image_local_index": pos})
        lot = _lot(1, "Catalogue Lot", list(range(len(refs))), items=items)
        return {"lots": [lot], "summary": f"Catalogue lot with {len(items)} item(s)."}

    # single_lot: one representative frame per subject
    reps: dict[str, int] = {}
    for pos, ref in enumerate(refs):
        reps.setdefault(_subject(_stem(ref.url)), pos)
    titles = [_title(s) for s in reps]
    lot = _lot(1, " & ".join(titles[:3]) or "Mixed Lot", sorted(reps.values()))
    return {"lots": [lot] if refs else [], "summary": f"{len(reps)} distinct subject(s) across {len(refs)} image(s)."}


__all__ = ["MockLotProvider", "Script"]
