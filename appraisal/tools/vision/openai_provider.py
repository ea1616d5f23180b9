# appraisal/tools/vision/openai_provider.py
"""
OpenAI Lot Provider

Purpose
-------
Production `LotVisionProvider` using OpenAI multimodal chat completions in
JSON mode. Images are attached inline (base64 data URLs) after being loaded
by `fetch_image`, so private buckets and local paths work the same way.

Environment
-----------
OPENAI_API_KEY               : required
APPRAISAL_VISION_MODEL       : default "gpt-4o-mini"
APPRAISAL_VISION_TIMEOUT_S   : default "60"
APPRAISAL_VISION_MAX_RETRIES : default "2"

Retries
-------
Retries belong to this collaborator layer, not to the analyzer strategies.
Only transient transport failures (timeouts, connection errors, 429/5xx) are
retried; anything else, and the final failure, is raised as
AnalysisTransportError.
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from appraisal.core.errors import AnalysisTransportError, classify_transport_error
from appraisal.core.images.fetcher import EncodedImage, fetch_image

from .provider_base import LotVisionProvider, LotVisionRequest

ImageLoader = Callable[[str], EncodedImage]

_RETRYABLE_STATUS = {408, 409, 429, 500, 502, 503, 504}


class OpenAILotProvider(LotVisionProvider):
    def __init__(
        self,
        *,
        client: Any | None = None,
        model: str | None = None,
        image_loader: ImageLoader | None = None,
    ) -> None:
        if client is None:
            api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise RuntimeError("OPENAI_API_KEY not set for OpenAILotProvider.")
            try:
                from openai import OpenAI
            except ImportError as e:
                raise RuntimeError("OpenAI SDK not available. Install `openai>=1.0`.") from e
            client = OpenAI(api_key=api_key)

        self._client = client
        self._model = model or os.getenv("APPRAISAL_VISION_MODEL", "gpt-4o-mini")
        self._timeout_s = float(os.getenv("APPRAISAL_VISION_TIMEOUT_S", "60"))
        self._max_retries = int(os.getenv("APPRAISAL_VISION_MAX_RETRIES", "2"))
        self._load_image = image_loader or fetch_image

    @property
    def model(self) -> str:
        return self._model

    # ---------- LotVisionProvider ----------
    def complete(self, request: LotVisionRequest) -> str:
        images = self._load_images(request)
        messages = build_messages(request, images)

        last_err: AnalysisTransportError | None = None
        for attempt in range(self._max_retries + 1):
            try:
                resp = self._client.chat.completions.create(
                    model=self._model,
                    messages=messages,
                    response_format={"type": "json_object"},
                    timeout=self._timeout_s,
                )
                return _first_message_text(resp)
            except Exception as e:  # noqa: BLE001
                last_err = classify_transport_error(e)
                if attempt < self._max_retries and _is_retryable(e):
                    time.sleep(min(0.5 * (attempt + 1), 2.0))
                    continue
                raise last_err from e
        assert last_err is not None
        raise last_err

    # ---------- helpers ----------
    def _load_images(self, request: LotVisionRequest) -> list[EncodedImage]:
        refs = list(request.images)
        if len(refs) <= 1:
            return [self._load_image(r.url) for r in refs]
        # map() keeps input order, so image k in the message is still index refs[k]
        with ThreadPoolExecutor(max_workers=min(8, len(refs))) as pool:
            return list(pool.map(lambda r: self._load_image(r.url), refs))


def build_messages(request: LotVisionRequest, images: list[EncodedImage]) -> list[dict[str, Any]]:
    content: list[dict[str, Any]] = [{"type": "text", "text": t} for t in request.user_text]
    content.extend({"type": "image_url", "image_url": {"url": img.data_url()}} for img in images)
    return [
        {"role": "system", "content": request.system_prompt},
        {"role": "user", "content": content},
    ]


def _first_message_text(resp: Any) -> str:
    try:
        return (resp.choices[0].message.content or "").strip()
    except (AttributeError, IndexError, TypeError):
        return ""


def _is_retryable(exc: BaseException) -> bool:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status in _RETRYABLE_STATUS
    try:
        import openai

        if isinstance(exc, openai.APIConnectionError | openai.APITimeoutError):
            return True
    except ImportError:
        pass
    return isinstance(exc, TimeoutError | ConnectionError)


__all__ = ["OpenAILotProvider", "build_messages"]
