# appraisal/tools/vision/provider_base.py
"""
Lot Vision Provider Interface

Purpose
-------
Define a minimal, provider-agnostic contract for the multimodal AI call used
by the lot analyzer strategies, plus a helper that runs one call per image
while keeping every response tied to the index that produced it.

Design
------
- Protocol `LotVisionProvider.complete(request) -> str` returns the raw model
  text. Parsing lives in `appraisal.core.lots.contract`, so every provider
  shares the same tolerance rules.
- Providers own transport concerns (image loading, timeouts, retries) and
  raise on infrastructure failure; they never return partial garbage.
- `run_indexed(provider, requests, max_workers)` dispatches per-image calls,
  sequentially by default or through a bounded thread pool. Each future is
  keyed by its image index; results come back sorted by index.

Invariants & Guardrails
-----------------------
- Output of `run_indexed` is a list of (index, text) aligned to the input
  order, never to completion order.
- The first transport failure cancels pending calls and propagates.
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from appraisal.schemas.labels import GroupingMode, Language
from appraisal.schemas.models import ImageRef


@dataclass(frozen=True)
class LotVisionRequest:
    """One multimodal call: fixed system prompt, user text blocks and the images to attach."""

    mode: GroupingMode
    system_prompt: str
    user_text: tuple[str, ...]
    images: tuple[ImageRef, ...]
    language: Language = Language.en
    currency: str = "CAD"
    # Where this call sits in its run (per-item image index, catalogue segment, ...)
    tags: dict[str, int] = field(default_factory=dict)


@runtime_checkable
class LotVisionProvider(Protocol):
    def complete(self, request: LotVisionRequest) -> str: ...


def run_indexed(
    provider: LotVisionProvider,
    requests: Sequence[tuple[int, LotVisionRequest]],
    *,
    max_workers: int = 1,
) -> list[tuple[int, str]]:
    """
    Execute independent calls and pair each response with its index.
    Sequential when max_workers <= 1; otherwise a bounded thread pool.
    """
    if max_workers <= 1 or len(requests) <= 1:
        return [(idx, provider.complete(req)) for idx, req in requests]

    out: dict[int, str] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures: dict[Future[str], int] = {pool.submit(provider.complete, req): idx for idx, req in requests}
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for fut in pending:
            fut.cancel()
        # Surface the failure of the lowest index first for deterministic errors
        for fut in sorted(done, key=lambda f: futures[f]):
            exc = fut.exception()
            if exc is not None:
                raise exc
            out[futures[fut]] = fut.result()
        if pending:
            # FIRST_EXCEPTION returned early but nothing in `done` failed: cannot happen
            raise RuntimeError("run_indexed: pending calls without a failure")
    return [(idx, out[idx]) for idx, _ in requests]


__all__ = ["LotVisionRequest", "LotVisionProvider", "run_indexed"]
