"""
Per-strategy lot analyzers.

One class per grouping mode, all implementing `LotStrategy.analyze(image_set,
language, currency) -> AnalyzerResult`. The strategies are the only code that
talks to the AI collaborator. They share three rules:

- Zero images → zero lots, no call.
- An unparseable response drops that call's contribution (trace event
  ``response_dropped``); the strategy itself never fails on bad content.
- Transport failures are raised as AnalysisTransportError. A run is failed as
  a whole on the first one; no image is silently skipped.

Index invariants are enforced here, not trusted from the model:
- single_lot: ≤ 1 lot; indices filtered to range.
- per_item:   every lot from image i gets image_indexes=[i], image_url=url(i).
- per_photo:  ≤ 1 lot per index, exactly one index per lot, ordered by index.
- catalogue:  each segment lot covers its full global index range.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import ClassVar, Protocol

from appraisal.core.errors import ResponseParseError, transport_error_guard
from appraisal.core.lots import prompts
from appraisal.core.lots.contract import ParsedResponse, parse_lots_response
from appraisal.core.lots.trace import TraceHook, resolve_trace
from appraisal.schemas.labels import GroupingMode, Language
from appraisal.schemas.models import AnalyzerResult, CatalogueItem, CatalogueSegment, ImageSet, Lot
from appraisal.tools.vision.provider_base import LotVisionProvider, LotVisionRequest, run_indexed

# Images sent to the model per catalogue segment; the lot still spans the whole segment
CATALOGUE_AI_IMAGE_CAP = 20


class LotStrategy(Protocol):
    mode: ClassVar[GroupingMode]

    def analyze(self, image_set: ImageSet, language: Language, currency: str) -> AnalyzerResult: ...


class _GuardedProvider:
    """Wraps provider.complete so transport errors carry the per-item image index."""

    def __init__(self, provider: LotVisionProvider) -> None:
        self._provider = provider

    def complete(self, request: LotVisionRequest) -> str:
        with transport_error_guard(image_index=request.tags.get("image_index")):
            return self._provider.complete(request)


class _BaseStrategy:
    mode: ClassVar[GroupingMode]

    def __init__(self, provider: LotVisionProvider, *, trace: TraceHook | None = None) -> None:
        self._provider = _GuardedProvider(provider)
        self._trace = resolve_trace(trace)

    def _request(self, refs, user_text, language: Language, currency: str, **tags: int) -> LotVisionRequest:
        return LotVisionRequest(
            mode=self.mode,
            system_prompt=prompts.system_prompt(self.mode, language, currency),
            user_text=tuple(user_text),
            images=tuple(refs),
            language=language,
            currency=currency,
            tags=dict(tags),
        )

    def _call(self, request: LotVisionRequest) -> str:
        self._trace("ai:call", {"mode": self.mode.value, "images": len(request.images), **request.tags})
        return self._provider.complete(request)

    def _parse(self, text: str, **ctx: object) -> ParsedResponse | None:
        try:
            parsed = parse_lots_response(text)
        except ResponseParseError as exc:
            self._trace("response_dropped", {"mode": self.mode.value, "reason": str(exc), **ctx})
            return None
        self._trace("ai:response", {"mode": self.mode.value, "lots": len(parsed.lots), "skipped": parsed.skipped, **ctx})
        return parsed

    def _empty(self, language: Language, currency: str) -> AnalyzerResult:
        return AnalyzerResult(mode=self.mode, language=language, currency=currency)


# ---------------------------------------------------------------------------
# single_lot
# ---------------------------------------------------------------------------


class SingleLotStrategy(_BaseStrategy):
    """All images describe ONE lot; the model collapses near-duplicate frames to one index per group."""

    mode = GroupingMode.single_lot

    def analyze(self, image_set: ImageSet, language: Language, currency: str) -> AnalyzerResult:
        n = len(image_set)
        if n == 0:
            return self._empty(language, currency)
        self._trace("analyze:start", {"mode": self.mode.value, "images": n})

        req = self._request(image_set.refs, prompts.single_lot_text(image_set.refs), language, currency)
        parsed = self._parse(self._call(req))

        lots: list[Lot] = []
        warnings: list[str] = []
        if parsed is not None and parsed.lots:
            first = parsed.lots[0]
            if len(parsed.lots) > 1:
                warnings.append(f"single_lot: model returned {len(parsed.lots)} lots; kept the first")
            idxs = [i for i in first.image_indexes if i < n]
            if not idxs:
                warnings.append("single_lot: no usable image index; relying on image_url")
            lots.append(first.model_copy(update={"lot_id": first.lot_id or "lot-001", "image_indexes": idxs}))
        elif parsed is None:
            warnings.append("single_lot: response dropped")

        self._trace("analyze:done", {"mode": self.mode.value, "lots": len(lots)})
        return AnalyzerResult(
            mode=self.mode,
            lots=lots,
            summary=parsed.summary if parsed else None,
            language=language,
            currency=currency,
            calls=1,
            dropped_responses=0 if parsed else 1,
            warnings=warnings,
        )


# ---------------------------------------------------------------------------
# per_item
# ---------------------------------------------------------------------------


class PerItemStrategy(_BaseStrategy):
    """
    One call per image; every item the model sees in image i becomes a lot
    pinned to image i. Cross-image duplicates are left for the deduplicator.
    """

    mode = GroupingMode.per_item

    def __init__(self, provider: LotVisionProvider, *, trace: TraceHook | None = None, max_workers: int = 1) -> None:
        super().__init__(provider, trace=trace)
        self._max_workers = max(1, int(max_workers))

    def analyze(self, image_set: ImageSet, language: Language, currency: str) -> AnalyzerResult:
        n = len(image_set)
        if n == 0:
            return self._empty(language, currency)
        self._trace("analyze:start", {"mode": self.mode.value, "images": n, "workers": self._max_workers})

        calls: list[tuple[int, LotVisionRequest]] = [
            (ref.index, self._request((ref,), prompts.per_item_text(ref), language, currency, image_index=ref.index))
            for ref in image_set.refs
        ]
        for _, req in calls:
            self._trace("ai:call", {"mode": self.mode.value, "images": 1, **req.tags})
        responses = run_indexed(self._provider, calls, max_workers=self._max_workers)

        lots: list[Lot] = []
        warnings: list[str] = []
        dropped = 0
        for i, text in sorted(responses, key=lambda r: r[0]):
            url = image_set.url_at(i)
            parsed = self._parse(text, image_index=i)
            if parsed is None:
                dropped += 1
                warnings.append(f"per_item: response for image {i} dropped")
                continue
            for k, lot in enumerate(parsed.lots):
                pinned = lot.model_copy(
                    update={
                        "lot_id": f"lot-{i + 1:03d}-{k + 1:02d}",
                        "image_indexes": [i],
                        "image_url": url,
                    }
                )
                self._trace(
                    "per_item:lot",
                    {
                        "image_index": i,
                        "lot_id": pinned.lot_id,
                        "title": pinned.title,
                        "reported_indexes": lot.image_indexes,
                        "reported_url": lot.image_url,
                    },
                )
                lots.append(pinned)

        self._trace("analyze:done", {"mode": self.mode.value, "lots": len(lots)})
        return AnalyzerResult(
            mode=self.mode,
            lots=lots,
            summary=f"{len(lots)} item(s) identified across {n} image(s).",
            language=language,
            currency=currency,
            calls=n,
            dropped_responses=dropped,
            warnings=warnings,
        )


# ---------------------------------------------------------------------------
# per_photo
# ---------------------------------------------------------------------------


class PerPhotoStrategy(_BaseStrategy):
    """One call with all images; at most one lot per image, no placeholders for missing ones."""

    mode = GroupingMode.per_photo

    def analyze(self, image_set: ImageSet, language: Language, currency: str) -> AnalyzerResult:
        n = len(image_set)
        if n == 0:
            return self._empty(language, currency)
        self._trace("analyze:start", {"mode": self.mode.value, "images": n})

        req = self._request(image_set.refs, prompts.per_photo_text(image_set.refs), language, currency)
        parsed = self._parse(self._call(req))

        warnings: list[str] = []
        by_index: dict[int, Lot] = {}
        if parsed is None:
            warnings.append("per_photo: response dropped")
        else:
            for lot in parsed.lots:
                free = [i for i in lot.image_indexes if i < n and i not in by_index]
                if not free:
                    warnings.append(f"per_photo: lot {lot.title!r} has no unclaimed in-range index; dropped")
                    continue
                idx = free[0]
                by_index[idx] = lot.model_copy(
                    update={"lot_id": f"lot-{idx + 1:03d}", "image_indexes": [idx], "image_url": image_set.url_at(idx)}
                )
            missing = [i for i in range(n) if i not in by_index]
            if missing:
                warnings.append("per_photo: no lot for image(s) " + ", ".join(str(i) for i in missing))

        lots = [by_index[i] for i in sorted(by_index)]
        self._trace("analyze:done", {"mode": self.mode.value, "lots": len(lots)})
        return AnalyzerResult(
            mode=self.mode,
            lots=lots,
            summary=parsed.summary if parsed else None,
            language=language,
            currency=currency,
            calls=1,
            dropped_responses=0 if parsed else 1,
            warnings=warnings,
        )


# ---------------------------------------------------------------------------
# catalogue
# ---------------------------------------------------------------------------


def plan_segments(total: int, segments: Sequence[CatalogueSegment] | None) -> list[tuple[int, int, int]]:
    """
    Resolve client segment mappings into (start, end, cover_global) triples.

    - Segments with count 0 are ignored.
    - Missing mappings, or counts summing past `total`, fall back to one
      segment of min(20, total) images.
    - A shortfall is absorbed by the last segment so every image is covered.
    - cover_index is clamped into its segment.
    """
    if total <= 0:
        return []
    usable = [s for s in (segments or []) if s.count > 0]
    counts = [(s.count, s.cover_index) for s in usable]
    if not counts or sum(c for c, _ in counts) > total:
        counts = [(min(CATALOGUE_AI_IMAGE_CAP, total), 0)]
    mapped = sum(c for c, _ in counts)
    if mapped < total:
        last_count, last_cover = counts[-1]
        counts[-1] = (last_count + total - mapped, last_cover)

    plan: list[tuple[int, int, int]] = []
    base = 0
    for count, cover in counts:
        end = min(total, base + count)
        if end <= base:
            break
        cover_local = max(0, min(count - 1, cover))
        plan.append((base, end, min(end - 1, base + cover_local)))
        base = end
    return plan


class CatalogueStrategy(_BaseStrategy):
    """One call per client-declared segment; each segment yields one lot with item rows."""

    mode = GroupingMode.catalogue

    def __init__(
        self,
        provider: LotVisionProvider,
        *,
        trace: TraceHook | None = None,
        segments: Sequence[CatalogueSegment] | None = None,
    ) -> None:
        super().__init__(provider, trace=trace)
        self._segments = list(segments or [])

    def analyze(self, image_set: ImageSet, language: Language, currency: str) -> AnalyzerResult:
        n = len(image_set)
        if n == 0:
            return self._empty(language, currency)
        plan = plan_segments(n, self._segments)
        self._trace("analyze:start", {"mode": self.mode.value, "images": n, "segments": len(plan)})

        lots: list[Lot] = []
        warnings: list[str] = []
        dropped = 0
        summary: str | None = None
        for seg_no, (start, end, cover) in enumerate(plan):
            ai_idxs = list(range(start, min(end, start + CATALOGUE_AI_IMAGE_CAP)))
            refs = tuple(image_set.subset(ai_idxs))
            req = self._request(refs, prompts.catalogue_text(refs), language, currency, segment=seg_no)
            parsed = self._parse(self._call(req), segment=seg_no)
            if parsed is None or not parsed.lots:
                dropped += 1 if parsed is None else 0
                warnings.append(f"catalogue: no lot for segment {seg_no + 1} (images {start}-{end - 1})")
                continue
            summary = parsed.summary or summary
            if len(parsed.lots) > 1:
                warnings.append(
                    f"catalogue: model returned {len(parsed.lots)} lots for segment {seg_no + 1}; kept the first"
                )
            full_range = list(range(start, end))
            lot = parsed.lots[0]
            items = [self._map_item(it, k, ai_idxs, full_range, image_set) for k, it in enumerate(lot.items)]
            lots.append(
                lot.model_copy(
                    update={
                        "lot_id": f"lot-{seg_no + 1:03d}",
                        "image_url": image_set.url_at(cover) or lot.image_url,
                        "image_indexes": full_range,
                        "extra_image_indexes": [cover],
                        "items": items,
                        # Identity lives in the item rows, never on the segment lot
                        "serial_no_or_label": None,
                        "serial_number": None,
                    }
                )
            )

        self._trace("analyze:done", {"mode": self.mode.value, "lots": len(lots)})
        return AnalyzerResult(
            mode=self.mode,
            lots=lots,
            summary=summary,
            language=language,
            currency=currency,
            calls=len(plan),
            dropped_responses=dropped,
            warnings=warnings,
        )

    @staticmethod
    def _map_item(item: CatalogueItem, position: int, ai_idxs: list[int], full_range: list[int], image_set: ImageSet) -> CatalogueItem:
        local = item.image_local_index
        if local is not None and local < len(ai_idxs):
            global_idx = ai_idxs[local]
        else:
            # Spread unplaced items over the segment's images
            global_idx = full_range[position % len(full_range)]
        return item.model_copy(update={"image_index": global_idx, "image_url": item.image_url or image_set.url_at(global_idx)})


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def get_strategy(
    mode: GroupingMode,
    provider: LotVisionProvider,
    *,
    trace: TraceHook | None = None,
    max_workers: int = 1,
    catalogue_segments: Sequence[CatalogueSegment] | None = None,
) -> LotStrategy | None:
    """Strategy object for a single-strategy mode; None for composite/unknown modes."""
    if mode == GroupingMode.single_lot:
        return SingleLotStrategy(provider, trace=trace)
    if mode == GroupingMode.per_item:
        return PerItemStrategy(provider, trace=trace, max_workers=max_workers)
    if mode == GroupingMode.per_photo:
        return PerPhotoStrategy(provider, trace=trace)
    if mode == GroupingMode.catalogue:
        return CatalogueStrategy(provider, trace=trace, segments=catalogue_segments)
    return None


__all__ = [
    "CATALOGUE_AI_IMAGE_CAP",
    "LotStrategy",
    "SingleLotStrategy",
    "PerItemStrategy",
    "PerPhotoStrategy",
    "CatalogueStrategy",
    "plan_segments",
    "get_strategy",
]
