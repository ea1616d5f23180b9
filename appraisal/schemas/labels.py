from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

# =========================
# Canonical label enums
# =========================


class GroupingMode(str, Enum):
    single_lot = "single_lot"
    per_item = "per_item"
    per_photo = "per_photo"
    catalogue = "catalogue"
    combined = "combined"


class Language(str, Enum):
    en = "en"
    fr = "fr"
    es = "es"


# Modes that map to exactly one analyzer strategy
STRATEGY_MODES: frozenset[GroupingMode] = frozenset(
    {GroupingMode.single_lot, GroupingMode.per_item, GroupingMode.per_photo, GroupingMode.catalogue}
)

# Views a combined run can expose
VIEW_MODES: tuple[GroupingMode, ...] = (GroupingMode.single_lot, GroupingMode.per_item, GroupingMode.per_photo)

_MODE_ALIASES: dict[str, GroupingMode] = {
    "mixed": GroupingMode.combined,
    "everything_you_see": GroupingMode.per_item,
    "catalog": GroupingMode.catalogue,
}

DEFAULT_LANGUAGE = Language.en
DEFAULT_CURRENCY = "CAD"


# =========================
# Normalizers
# =========================


def parse_grouping_mode(value: object) -> GroupingMode | None:
    """
    Map a free-form selector to a GroupingMode.

    Accepts enum members, canonical names, hyphen/space variants and the
    aliases above. Returns None for anything unknown so callers can treat it
    as an input error (empty result) instead of raising.
    """
    if isinstance(value, GroupingMode):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    if not key:
        return None
    try:
        return GroupingMode(key)
    except ValueError:
        return _MODE_ALIASES.get(key)


def parse_language(value: object) -> Language:
    if isinstance(value, Language):
        return value
    if isinstance(value, str):
        try:
            return Language(value.strip().lower()[:2])
        except ValueError:
            pass
    return DEFAULT_LANGUAGE


def parse_currency(value: object) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip().upper()
    return DEFAULT_CURRENCY


def parse_view_modes(values: Iterable[object] | None) -> list[GroupingMode]:
    """Deduplicated, order-preserving list of combined views; all views when empty."""
    if values is None or isinstance(values, str):
        return list(VIEW_MODES)
    out: list[GroupingMode] = []
    for v in values:
        mode = parse_grouping_mode(v)
        if mode in VIEW_MODES and mode not in out:
            out.append(mode)
    return out or list(VIEW_MODES)


__all__ = [
    "GroupingMode",
    "Language",
    "STRATEGY_MODES",
    "VIEW_MODES",
    "DEFAULT_LANGUAGE",
    "DEFAULT_CURRENCY",
    "parse_grouping_mode",
    "parse_language",
    "parse_currency",
    "parse_view_modes",
]
