# appraisal/core/images/resolver.py
from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from appraisal.schemas.models import ImageRef, ImageSet

# Accept plain locators or path objects
LocatorLike = str | Path


def resolve_image_set(locators: Any) -> ImageSet:
    """
    Pair an ordered list of image locators with stable indices 0..n-1.

    No filtering, no normalization, no network: position i in the input is
    image i for the rest of the run. Anything that is not a list/tuple
    resolves to an empty ImageSet so downstream stages stay total.
    """
    if not isinstance(locators, list | tuple):
        return ImageSet()
    return ImageSet(refs=tuple(ImageRef(index=i, url=_as_locator(loc)) for i, loc in enumerate(locators)))


def resolve_indexes(image_set: ImageSet, indexes: Sequence[int]) -> list[str]:
    """Direct index lookup; out-of-range indices are skipped."""
    out: list[str] = []
    for i in indexes:
        url = image_set.url_at(i)
        if url is not None:
            out.append(url)
    return out


def _as_locator(value: LocatorLike | object) -> str:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, str):
        return value
    # Keep the slot: dropping it would shift every later index.
    return "" if value is None else str(value)


__all__ = ["resolve_image_set", "resolve_indexes"]
