from __future__ import annotations

import base64
import io
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import requests
from PIL import Image, ImageOps, UnidentifiedImageError

from appraisal.core.errors import AnalysisTransportError

# ---------------------------
# Helpers / knobs
# ---------------------------

_DEFAULT_MIME = "image/jpeg"
_DEFAULT_TIMEOUT_S = 20.0
_DEFAULT_MAX_SIDE = 1600
_JPEG_QUALITY = 82
_USER_AGENT = "appraisal-lots/0.1 (+image-fetch)"

_RESAMPLE = Image.Resampling.LANCZOS


@dataclass(frozen=True)
class EncodedImage:
    """Inline image payload ready to attach to a multimodal request."""

    mime: str
    base64: str

    def data_url(self) -> str:
        return f"data:{self.mime};base64,{self.base64}"


def _timeout_s() -> float:
    return float(os.getenv("APPRAISAL_IMAGE_TIMEOUT_S", str(_DEFAULT_TIMEOUT_S)))


def _max_side() -> int:
    return int(os.getenv("APPRAISAL_IMAGE_MAX_SIDE", str(_DEFAULT_MAX_SIDE)))


def _mime_from_header(content_type: str | None) -> str | None:
    if not content_type:
        return None
    ct = content_type.split(";", 1)[0].strip().lower()
    return ct if ct.startswith("image/") else None


def _mime_from_name(name: str) -> str | None:
    guessed, _ = mimetypes.guess_type(name)
    return guessed if guessed and guessed.startswith("image/") else None


def _is_remote(locator: str) -> bool:
    return urlparse(locator).scheme in {"http", "https"}


def _read_bytes(locator: str, *, timeout_s: float) -> tuple[bytes, str | None]:
    if _is_remote(locator):
        resp = requests.get(locator, headers={"User-Agent": _USER_AGENT, "Accept": "image/*"}, timeout=timeout_s)
        resp.raise_for_status()
        mime = _mime_from_header(resp.headers.get("Content-Type")) or _mime_from_name(urlparse(locator).path)
        return resp.content, mime
    p = Path(locator)
    if not p.is_file():
        raise FileNotFoundError(f"Image not found: {locator}")
    return p.read_bytes(), _mime_from_name(p.name)


def shrink_image(data: bytes, *, max_side: int) -> tuple[bytes, str] | None:
    """
    Re-encode as JPEG when the image is larger than max_side on either edge.

    Returns None when Pillow cannot decode the bytes or no resize is needed;
    callers then send the original payload untouched.
    """
    try:
        img = Image.open(io.BytesIO(data))
        if max(img.size) <= max_side:
            return None
        img = ImageOps.exif_transpose(img).convert("RGB")
        img.thumbnail((max_side, max_side), _RESAMPLE)
        buf = io.BytesIO()
        img.save(buf, format="JPEG", quality=_JPEG_QUALITY)
        return buf.getvalue(), "image/jpeg"
    except (UnidentifiedImageError, OSError, ValueError):
        return None


# ---------------------------
# Public API
# ---------------------------


def fetch_image(locator: str, *, timeout_s: float | None = None, max_side: int | None = None) -> EncodedImage:
    """
    Load one image (HTTP(S) URL or local path) and return it base64-encoded.

    Raises AnalysisTransportError on any transport problem (HTTP error,
    timeout, missing file): an image the model cannot see is an
    infrastructure failure, not an empty analysis.
    """
    try:
        data, mime = _read_bytes(locator, timeout_s=timeout_s if timeout_s is not None else _timeout_s())
    except (requests.RequestException, OSError) as exc:
        raise AnalysisTransportError(f"network: could not fetch image {locator!r}: {type(exc).__name__}: {exc}") from exc

    shrunk = shrink_image(data, max_side=max_side if max_side is not None else _max_side())
    if shrunk is not None:
        data, mime = shrunk
    return EncodedImage(mime=mime or _DEFAULT_MIME, base64=base64.b64encode(data).decode("ascii"))


__all__ = ["EncodedImage", "fetch_image", "shrink_image"]
