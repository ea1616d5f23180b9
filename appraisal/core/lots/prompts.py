"""
Fixed instruction/schema prompts, one per grouping mode.

The prompt is the only contract the AI collaborator sees: a strict JSON
object ``{"lots": [...], "summary": "..."}``. Strategies still enforce every
index invariant themselves; nothing here is trusted.
"""

from __future__ import annotations

from appraisal.schemas.labels import GroupingMode, Language
from appraisal.schemas.models import ImageRef

_LANGUAGE_NAMES = {Language.en: "English", Language.fr: "French", Language.es: "Spanish"}

_COMMON = """\
You are an expert inventory and loss appraisal assistant. Analyze the provided images and produce coherent "lots".

Output rules:
- Return STRICT JSON only: no markdown, no code fences, no commentary.
- Shape:
  {{
    "lots": [
      {{
        "lot_id": "lot-001",
        "title": "short, specific, unique across lots",
        "description": "summary of key visible details",
        "condition": "e.g. 'Used - Good', 'New', 'Damaged'",
        "estimated_value": "amount in {currency}, prefixed with the currency code (e.g. '{currency} 150')",
        "tags": ["optional", "keywords"],
        "serial_no_or_label": "visible serial/model/label text, or null",
        "details": "compact attributes: color, material, size, specs, inclusions",
        "image_indexes": [0]
      }}
    ],
    "summary": "one sentence summarizing all lots"
  }}
- Write all free text in {language}.
- 'image_indexes' are 0-based positions of the attached images, ascending, no repeats within a lot.
- Keep serial numbers and VINs out of 'description'. Label a visible VIN exactly as "VIN: <VIN>"; use '*' for unreadable characters.
- For identical units, distinguish titles with "(#1)", "(#2)".
"""

_SINGLE_LOT = """\
Grouping mode: single_lot
- Treat ALL images as describing ONE physical lot. Return exactly ONE lot.
- Find duplicate or near-identical frames (same subject, redundant shot or slightly different angle).
  Keep only ONE representative index per duplicate group (the sharpest, most complete view).
- 'description' is a numbered list, one line per distinct item in the lot.
- 'serial_no_or_label' may list several serials separated by "; ", or null.
"""

_PER_ITEM = """\
Grouping mode: per_item ("everything you see")
- You receive ONE image. Return EVERY distinct physical item visible in it as its own lot. Do not omit or merge items.
- Multiple identical units in the frame are separate lots.
- Set 'image_indexes' to exactly the index given in the request and nothing else.
- Do NOT try to match items against other images; a later step handles cross-image duplicates.
"""

_PER_PHOTO = """\
Grouping mode: per_photo
- Return EXACTLY one lot per image: with N images, N lots.
- Each lot has exactly one index in 'image_indexes'; every index is used once; no overlaps.
- If red boxes / regions of interest are drawn on an image, describe only the boxed item for that image.
"""

_CATALOGUE = """\
Grouping mode: catalogue (sales catalogue segment)
- The images form ONE catalogue lot segment. Return exactly ONE lot with an additional 'items' array.
- List every distinct, fully visible saleable item across the images once, even if it appears in several frames.
- Item fields: title, sn_vin ("VIN: <VIN>" or the literal "not found"), description, condition,
  details (optional), estimated_value, image_local_index (0-based index of the single clearest image of the item).
"""

_MODE_SECTIONS = {
    GroupingMode.single_lot: _SINGLE_LOT,
    GroupingMode.per_item: _PER_ITEM,
    GroupingMode.per_photo: _PER_PHOTO,
    GroupingMode.catalogue: _CATALOGUE,
}


def system_prompt(mode: GroupingMode, language: Language = Language.en, currency: str = "CAD") -> str:
    section = _MODE_SECTIONS.get(mode, _PER_ITEM)
    common = _COMMON.format(language=_LANGUAGE_NAMES.get(language, "English"), currency=currency)
    return f"{common}\n{section}"


def index_listing(refs: list[ImageRef] | tuple[ImageRef, ...], *, local: bool = False) -> str:
    """'#k: url' lines; local=True numbers by attachment position instead of global index."""
    lines = [f"#{pos if local else ref.index}: {ref.url}" for pos, ref in enumerate(refs)]
    return "Original image URLs (index -> URL):\n" + "\n".join(lines)


def single_lot_text(refs: tuple[ImageRef, ...]) -> tuple[str, ...]:
    return (
        f"Grouping mode: single_lot. {len(refs)} image(s) attached in index order. Return the JSON result.",
        index_listing(refs),
    )


def per_item_text(ref: ImageRef) -> tuple[str, ...]:
    return (
        "Grouping mode: per_item. Analyze THIS SINGLE IMAGE and return ALL distinct items visible as separate lots. "
        f"Use image index {ref.index} in 'image_indexes' only and the URL below in 'image_url'. "
        "Include 'serial_no_or_label' if visible, else null, and concise 'details'.",
        f"Original image URL: {ref.url}",
    )


def per_photo_text(refs: tuple[ImageRef, ...]) -> tuple[str, ...]:
    return (
        f"Grouping mode: per_photo. {len(refs)} image(s) attached in index order; return {len(refs)} lot(s).",
        index_listing(refs),
    )


def catalogue_text(refs: tuple[ImageRef, ...]) -> tuple[str, ...]:
    return (
        f"Grouping mode: catalogue. {len(refs)} image(s) from one catalogue segment. "
        "Use 'image_local_index' relative to the list below.",
        index_listing(refs, local=True),
    )


__all__ = [
    "system_prompt",
    "index_listing",
    "single_lot_text",
    "per_item_text",
    "per_photo_text",
    "catalogue_text",
]
