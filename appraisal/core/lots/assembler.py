"""
Lot assembly: surviving lots → final report.

- ``image_indexes`` then ``extra_image_indexes`` are resolved to locators by
  direct ImageSet lookup. Out-of-range indices are skipped (trace event
  ``assemble:skip_index``); repeated locators collapse to the first.
- A lot with no resolvable index falls back to its ``image_url`` when that
  locator is part of the ImageSet.
- Lots are renumbered ``lot-001``, ``lot-002``, ... in list order.
- Titles shared by several lots get ``" (#k)"`` suffixes, first occurrence
  included, unless ``disambiguate=False``. Suffixes already used by another
  lot are skipped.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Any

from appraisal.core.lots.trace import TraceHook, resolve_trace
from appraisal.schemas.labels import DEFAULT_CURRENCY, GroupingMode, Language
from appraisal.schemas.models import AssembledReport, ImageSet, Lot, ReportMetadata


def resolve_lot_urls(lot: Lot, image_set: ImageSet, *, trace: TraceHook | None = None) -> list[str]:
    emit = resolve_trace(trace)
    urls: list[str] = []
    for idx in [*lot.image_indexes, *lot.extra_image_indexes]:
        url = image_set.url_at(idx)
        if url is None:
            emit("assemble:skip_index", {"lot_id": lot.lot_id, "index": idx, "images": len(image_set)})
            continue
        if url not in urls:
            urls.append(url)
    if not urls and lot.image_url and image_set.index_of(lot.image_url) is not None:
        urls.append(lot.image_url)
    return urls


def disambiguate_titles(titles: Sequence[str]) -> list[str]:
    """
    ['Chair', 'Chair', 'Desk'] → ['Chair (#1)', 'Chair (#2)', 'Desk'].

    Suffixes skip any name already in use, so the output titles are unique:
    ['Chair', 'Chair', 'Chair (#1)'] → ['Chair (#2)', 'Chair (#3)', 'Chair (#1)'].
    """
    totals = Counter(titles)
    taken = {title for title in titles if totals[title] < 2}
    running: Counter[str] = Counter()
    out: list[str] = []
    for title in titles:
        if totals[title] < 2:
            out.append(title)
            continue
        running[title] += 1
        candidate = f"{title} (#{running[title]})"
        while candidate in taken:
            running[title] += 1
            candidate = f"{title} (#{running[title]})"
        taken.add(candidate)
        out.append(candidate)
    return out


def coerce_metadata(value: ReportMetadata | Mapping[str, Any] | None) -> ReportMetadata:
    if isinstance(value, ReportMetadata):
        return value
    if isinstance(value, Mapping):
        return ReportMetadata.model_validate(dict(value))
    return ReportMetadata()


def assemble_lots(
    lots: Sequence[Lot],
    image_set: ImageSet,
    *,
    grouping_mode: GroupingMode | None = None,
    metadata: ReportMetadata | Mapping[str, Any] | None = None,
    summary: str | None = None,
    language: Language = Language.en,
    currency: str = DEFAULT_CURRENCY,
    disambiguate: bool = True,
    trace: TraceHook | None = None,
) -> AssembledReport:
    emit = resolve_trace(trace)
    lots = [lot for lot in (lots or []) if isinstance(lot, Lot)]
    titles = disambiguate_titles([lot.title for lot in lots]) if disambiguate else [lot.title for lot in lots]

    final: list[Lot] = []
    for pos, (lot, title) in enumerate(zip(lots, titles, strict=True), start=1):
        final.append(
            lot.model_copy(
                update={
                    "lot_id": f"lot-{pos:03d}",
                    "title": title,
                    "image_urls": resolve_lot_urls(lot, image_set, trace=emit),
                }
            )
        )

    emit("assemble:done", {"lots": len(final), "images": len(image_set)})
    return AssembledReport(
        grouping_mode=grouping_mode,
        image_urls=image_set.urls,
        lots=final,
        metadata=coerce_metadata(metadata),
        summary=summary,
        language=language,
        currency=currency,
    )


__all__ = ["resolve_lot_urls", "disambiguate_titles", "coerce_metadata", "assemble_lots"]
