# tests/utils.py
"""
Single source of truth for test data, factories, and canned AI payloads.
Update values here to cascade across the test suite.
"""

from __future__ import annotations

import io
from collections.abc import Mapping, Sequence
from typing import Any

from PIL import Image

from appraisal.core.images.resolver import resolve_image_set
from appraisal.schemas.models import ImageSet, Lot
from appraisal.tools.vision.mock_provider import MockLotProvider
from appraisal.tools.vision.provider_base import LotVisionRequest

# -----------------------------
# Global defaults (edit once)
# -----------------------------

DEFAULT_CDN = "https://cdn.example.com/photos"
DEFAULT_CURRENCY = "CAD"

# -----------------------------
# Image factories
# -----------------------------


def make_image_urls(n: int = 3, *, names: Sequence[str] | None = None, base: str = DEFAULT_CDN) -> list[str]:
    """['.../img_0.jpg', '.../img_1.jpg', ...] or one URL per given name."""
    if names is not None:
        return [f"{base}/{name}" for name in names]
    return [f"{base}/img_{i}.jpg" for i in range(n)]


def make_image_set(n: int = 3, *, names: Sequence[str] | None = None) -> ImageSet:
    return resolve_image_set(make_image_urls(n, names=names))


def png_bytes(width: int = 32, height: int = 32, color: tuple[int, int, int] = (200, 120, 40)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG", compress_level=0)
    return buf.getvalue()


# -----------------------------
# Lot factories
# -----------------------------


def lot_payload(
    title: str = "Office Chair",
    indexes: Sequence[int] = (0,),
    *,
    serial: str | None = None,
    details: str | None = None,
    image_url: str | None = None,
    lot_id: str = "lot-001",
    **extra: Any,
) -> dict[str, Any]:
    """Raw lot dict as an AI response would carry it."""
    payload: dict[str, Any] = {
        "lot_id": lot_id,
        "title": title,
        "description": f"{title}, good overall condition.",
        "condition": "Used - Good",
        "estimated_value": f"{DEFAULT_CURRENCY} 150",
        "serial_no_or_label": serial,
        "details": details,
        "image_indexes": list(indexes),
        **extra,
    }
    if image_url is not None:
        payload["image_url"] = image_url
    return payload


def make_lot(title: str = "Office Chair", indexes: Sequence[int] = (0,), **overrides: Any) -> Lot:
    return Lot.model_validate(lot_payload(title, indexes, **overrides))


def lots_response(*lots: Mapping[str, Any], summary: str | None = "Test summary.") -> dict[str, Any]:
    out: dict[str, Any] = {"lots": [dict(lot) for lot in lots]}
    if summary is not None:
        out["summary"] = summary
    return out


# -----------------------------
# Scripted providers
# -----------------------------


def fixed_provider(payload: Any) -> MockLotProvider:
    """Every call returns `payload` (dict/list JSON-encoded, str verbatim)."""
    return MockLotProvider(script=lambda _req: payload)


def per_image_provider(by_index: Mapping[int, Any], default: Any = None) -> MockLotProvider:
    """per_item script: response chosen by the request's image_index tag."""

    def _script(req: LotVisionRequest) -> Any:
        idx = req.tags.get("image_index")
        if idx not in by_index:
            return default if default is not None else {"lots": []}
        out = by_index[idx]
        if isinstance(out, BaseException):
            raise out
        return out

    return MockLotProvider(script=_script)


def failing_provider(exc: BaseException) -> MockLotProvider:
    def _script(_req: LotVisionRequest) -> Any:
        raise exc

    return MockLotProvider(script=_script)


def sequence_provider(responses: Sequence[Any]) -> MockLotProvider:
    """Responses handed out in call order (sequential runs only)."""
    queue = list(responses)

    def _script(_req: LotVisionRequest) -> Any:
        return queue.pop(0) if queue else {"lots": []}

    return MockLotProvider(script=_script)

