"""
Lot deduplication.

Single left-to-right pass, first-seen wins, lots are never edited:

1. A non-empty normalized serial (``serial_no_or_label``, falling back to
   ``serial_number``) is authoritative: a repeat is dropped even when it comes
   from a different image.
2. Otherwise a lot with an ``image_url`` is keyed on
   ``(image_url, title, details)``; a repeat is a within-frame duplicate.
3. Otherwise the lot is kept. Text similarity across images never merges lots.
"""

from __future__ import annotations

import re
from typing import Any

from appraisal.core.lots.trace import TraceHook, resolve_trace
from appraisal.schemas.models import DedupSummary, Lot

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_key(value: Any) -> str:
    """Lower-case, collapse non-alphanumeric runs to one space, trim. None → ""."""
    if value is None:
        return ""
    return _NON_ALNUM.sub(" ", str(value).lower()).strip()


def serial_key(lot: Lot) -> str:
    return normalize_key(lot.serial_no_or_label) or normalize_key(lot.serial_number)


def frame_key(lot: Lot) -> tuple[str, str, str] | None:
    if not lot.image_url:
        return None
    return (lot.image_url, normalize_key(lot.title), normalize_key(lot.details))


def deduplicate_lots(lots: Any, *, trace: TraceHook | None = None) -> tuple[list[Lot], DedupSummary]:
    """Return (kept lots in original order, summary). Non-list input → empty."""
    emit = resolve_trace(trace)
    if not isinstance(lots, list | tuple):
        return [], DedupSummary()

    candidates = [lot for lot in lots if isinstance(lot, Lot)]
    emit("dedup:before", {"count": len(candidates)})

    seen_serials: set[str] = set()
    seen_frames: set[tuple[str, str, str]] = set()
    kept: list[Lot] = []
    by_serial = 0
    by_frame = 0

    for lot in candidates:
        serial = serial_key(lot)
        if serial:
            if serial in seen_serials:
                by_serial += 1
                emit("dedup:drop", {"lot_id": lot.lot_id, "title": lot.title, "reason": "serial", "key": serial})
                continue
            seen_serials.add(serial)
            kept.append(lot)
            continue

        frame = frame_key(lot)
        if frame is not None:
            if frame in seen_frames:
                by_frame += 1
                emit("dedup:drop", {"lot_id": lot.lot_id, "title": lot.title, "reason": "frame", "key": frame})
                continue
            seen_frames.add(frame)

        kept.append(lot)

    summary = DedupSummary(
        input_count=len(candidates),
        output_count=len(kept),
        dropped_by_serial=by_serial,
        dropped_by_frame=by_frame,
    )
    emit("dedup:after", {"count": len(kept), "dropped_by_serial": by_serial, "dropped_by_frame": by_frame})
    return kept, summary


__all__ = ["normalize_key", "serial_key", "frame_key", "deduplicate_lots"]
