# appraisal/orchestrators/lot_pipeline.py
from __future__ import annotations

import os
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from appraisal.core.errors import AnalysisTransportError, LotAnalysisFailed
from appraisal.core.images.resolver import resolve_image_set
from appraisal.core.lots.assembler import assemble_lots, coerce_metadata
from appraisal.core.lots.combined import derive_views, primary_view
from appraisal.core.lots.dedup import deduplicate_lots
from appraisal.core.lots.strategies import PerItemStrategy, get_strategy
from appraisal.core.lots.trace import TraceHook, get_debug_logger, resolve_trace
from appraisal.schemas.labels import (
    GroupingMode,
    Language,
    parse_currency,
    parse_grouping_mode,
    parse_language,
    parse_view_modes,
)
from appraisal.schemas.models import (
    AnalyzerResult,
    AssembledReport,
    CatalogueSegment,
    DedupSummary,
    ImageSet,
    LotPipelineResult,
    ReportMetadata,
)
from appraisal.tools.vision import LotVisionProvider, get_provider


def _env_workers() -> int:
    raw = os.getenv("APPRAISAL_PER_ITEM_WORKERS", "1")
    try:
        return max(1, int(raw))
    except ValueError:
        return 1


class LotPipeline:
    """
    Resolve → analyze → deduplicate → assemble.

    Unknown modes and empty image lists give an empty result without calling
    the provider. A transport failure anywhere fails the run with
    LotAnalysisFailed; a run that legitimately finds nothing returns zero lots.
    """

    def __init__(
        self,
        provider: LotVisionProvider | None = None,
        *,
        trace: TraceHook | None = None,
        max_workers: int | None = None,
    ) -> None:
        self._provider = provider
        self._trace = resolve_trace(trace)
        self._max_workers = max_workers if max_workers is not None else _env_workers()
        self._log = get_debug_logger()

    @property
    def provider(self) -> LotVisionProvider:
        if self._provider is None:
            self._provider = get_provider()
        return self._provider

    def run(
        self,
        images: Any,
        grouping_mode: Any,
        language: Any = None,
        currency: Any = None,
        *,
        metadata: ReportMetadata | Mapping[str, Any] | None = None,
        catalogue_lots: Sequence[CatalogueSegment | Mapping[str, Any]] | None = None,
        combined_modes: Iterable[Any] | None = None,
    ) -> LotPipelineResult:
        image_set = resolve_image_set(images)
        mode = parse_grouping_mode(grouping_mode)
        lang = parse_language(language)
        cur = parse_currency(currency)

        if mode is None:
            self._log.warning("Unknown grouping mode %r; returning empty result", grouping_mode)
            return self._empty(image_set, None, lang, cur, metadata, [f"unknown grouping mode: {grouping_mode!r}"])
        if len(image_set) == 0:
            return self._empty(image_set, mode, lang, cur, metadata, [])

        self._log.info("Lot pipeline: mode=%s images=%d", mode.value, len(image_set))
        try:
            if mode == GroupingMode.combined:
                return self._run_combined(image_set, lang, cur, metadata, parse_view_modes(combined_modes))
            strategy = get_strategy(
                mode,
                self.provider,
                trace=self._trace,
                max_workers=self._max_workers,
                catalogue_segments=_segments(catalogue_lots),
            )
            if strategy is None:
                return self._empty(image_set, mode, lang, cur, metadata, [f"no strategy for mode {mode.value}"])
            analyzed = strategy.analyze(image_set, lang, cur)
        except AnalysisTransportError as exc:
            self._log.error("Lot analysis failed (image_index=%s): %s", exc.image_index, exc)
            raise LotAnalysisFailed(cause=exc) from exc

        if mode == GroupingMode.catalogue:
            # Segment lots never merge
            kept = list(analyzed.lots)
            dedup = DedupSummary(input_count=len(kept), output_count=len(kept))
        else:
            kept, dedup = deduplicate_lots(analyzed.lots, trace=self._trace)
        report = assemble_lots(
            kept,
            image_set,
            grouping_mode=mode,
            metadata=metadata,
            summary=analyzed.summary,
            language=lang,
            currency=cur,
            trace=self._trace,
        )
        result = LotPipelineResult(
            mode=mode,
            image_set=image_set,
            report=report,
            dedup=dedup,
            warnings=list(analyzed.warnings),
            calls=analyzed.calls,
        )
        self._log.info(result.summary())
        return result

    # ----------------------------
    # Internals
    # ----------------------------

    def _run_combined(
        self,
        image_set: ImageSet,
        lang: Language,
        cur: str,
        metadata: ReportMetadata | Mapping[str, Any] | None,
        view_modes: list[GroupingMode],
    ) -> LotPipelineResult:
        analyzed: AnalyzerResult = PerItemStrategy(
            self.provider, trace=self._trace, max_workers=self._max_workers
        ).analyze(image_set, lang, cur)
        kept, dedup = deduplicate_lots(analyzed.lots, trace=self._trace)

        views = derive_views(kept, image_set, view_modes)
        assembled = {
            name: assemble_lots(lots, image_set, language=lang, currency=cur, trace=self._trace).lots
            for name, lots in views.items()
        }
        primary = primary_view(view_modes)
        report = AssembledReport(
            grouping_mode=GroupingMode.combined,
            image_urls=image_set.urls,
            lots=assembled.get(primary.value, []),
            metadata=coerce_metadata(metadata),
            summary=analyzed.summary,
            language=lang,
            currency=cur,
        )
        result = LotPipelineResult(
            mode=GroupingMode.combined,
            image_set=image_set,
            report=report,
            dedup=dedup,
            views=assembled,
            warnings=list(analyzed.warnings),
            calls=analyzed.calls,
        )
        self._log.info(result.summary())
        return result

    @staticmethod
    def _empty(
        image_set: ImageSet,
        mode: GroupingMode | None,
        lang: Language,
        cur: str,
        metadata: ReportMetadata | Mapping[str, Any] | None,
        warnings: list[str],
    ) -> LotPipelineResult:
        report = assemble_lots([], image_set, grouping_mode=mode, metadata=metadata, language=lang, currency=cur, trace=None)
        return LotPipelineResult(mode=mode, image_set=image_set, report=report, dedup=DedupSummary(), warnings=warnings)


def _segments(raw: Sequence[CatalogueSegment | Mapping[str, Any]] | None) -> list[CatalogueSegment]:
    if not isinstance(raw, list | tuple):
        return []
    out: list[CatalogueSegment] = []
    for item in raw:
        if isinstance(item, CatalogueSegment):
            out.append(item)
        elif isinstance(item, Mapping):
            out.append(CatalogueSegment.model_validate(dict(item)))
    return out


__all__ = ["LotPipeline"]
