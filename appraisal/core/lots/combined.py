from __future__ import annotations

from collections.abc import Sequence

from appraisal.schemas.labels import GroupingMode
from appraisal.schemas.models import ImageSet, Lot


def per_photo_view(items: Sequence[Lot], image_set: ImageSet) -> list[Lot]:
    """For each image, the first item that references it, pinned to that image and tagged with `image_index`."""
    out: list[Lot] = []
    for ref in image_set.refs:
        match = next((lot for lot in items if ref.index in lot.image_indexes), None)
        if match is None:
            continue
        out.append(
            match.model_copy(
                update={"image_indexes": [ref.index], "image_url": ref.url, "image_index": ref.index},
            )
        )
    return out


def derive_views(items: Sequence[Lot], image_set: ImageSet, modes: Sequence[GroupingMode]) -> dict[str, list[Lot]]:
    """Build the requested views from one deduplicated per_item list."""
    views: dict[str, list[Lot]] = {}
    for mode in modes:
        if mode == GroupingMode.per_photo:
            views[mode.value] = per_photo_view(items, image_set)
        elif mode in (GroupingMode.per_item, GroupingMode.single_lot):
            views[mode.value] = list(items)
    return views


def primary_view(modes: Sequence[GroupingMode]) -> GroupingMode:
    """per_item wins, then single_lot, then per_photo."""
    for candidate in (GroupingMode.per_item, GroupingMode.single_lot, GroupingMode.per_photo):
        if candidate in modes:
            return candidate
    return GroupingMode.per_item


__all__ = ["per_photo_view", "derive_views", "primary_view"]
