"""
Typed errors + utilities for the lot analysis pipeline.

Exports
-------
- LotPipelineError, AnalysisTransportError, ResponseParseError, LotAnalysisFailed
- TRANSPORT_ERRORS
- classify_transport_error(exc)
- transport_error_guard()

Taxonomy
--------
- Transport errors (network, auth, rate limit, timeout) are explicit failures
  of an analyzer invocation. They are never retried here.
- Parse errors are recovered locally by the strategies: the offending call
  contributes zero lots.
- LotAnalysisFailed is what the pipeline raises to its caller: "could not
  analyze images", distinct from a legitimate zero-lot result.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import requests

# =========================
# Exception types
# =========================


class LotPipelineError(RuntimeError):
    """Base class for lot pipeline failures."""


class AnalysisTransportError(LotPipelineError):
    """Network/auth/rate-limit/timeout failure talking to the AI collaborator or fetching an image."""

    def __init__(self, message: str, *, image_index: int | None = None) -> None:
        super().__init__(message)
        self.image_index = image_index


class ResponseParseError(LotPipelineError):
    """AI response was empty, not JSON, or not shaped like {"lots": [...]}."""


class LotAnalysisFailed(LotPipelineError):
    """A pipeline run could not analyze its images (infrastructure problem)."""

    def __init__(self, message: str = "could not analyze images", *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


TRANSPORT_ERRORS = (AnalysisTransportError,)

# =========================
# Classification helpers
# =========================


def classify_transport_error(exc: BaseException, *, image_index: int | None = None) -> AnalysisTransportError:
    """
    Map an arbitrary exception raised by a provider or the image fetcher to
    AnalysisTransportError.

    Heuristics:
      - AnalysisTransportError → passed through (index filled in if missing)
      - requests.* errors → "network: ..."
      - openai.* API errors → "provider: ..." (status code included when known)
      - TimeoutError / ConnectionError / OSError → "network: ..."
      - anything else → "provider: ..."
    """
    if isinstance(exc, AnalysisTransportError):
        if exc.image_index is None and image_index is not None:
            exc.image_index = image_index
        return exc

    msg = f"{type(exc).__name__}: {exc}"

    if isinstance(exc, requests.RequestException):
        return AnalysisTransportError(f"network: {msg}", image_index=image_index)

    try:
        import openai

        if isinstance(exc, openai.APIError):
            status = getattr(exc, "status_code", None)
            prefix = f"provider[{status}]" if status else "provider"
            return AnalysisTransportError(f"{prefix}: {msg}", image_index=image_index)
    except ImportError:
        pass

    if isinstance(exc, TimeoutError | ConnectionError | OSError):
        return AnalysisTransportError(f"network: {msg}", image_index=image_index)

    return AnalysisTransportError(f"provider: {msg}", image_index=image_index)


@contextmanager
def transport_error_guard(*, image_index: int | None = None) -> Iterator[None]:
    """Normalize anything escaping a collaborator call into AnalysisTransportError."""
    try:
        yield
    except TRANSPORT_ERRORS as exc:
        if exc.image_index is None and image_index is not None:
            exc.image_index = image_index
        raise
    except Exception as exc:  # noqa: BLE001
        raise classify_transport_error(exc, image_index=image_index) from exc


__all__ = [
    "LotPipelineError",
    "AnalysisTransportError",
    "ResponseParseError",
    "LotAnalysisFailed",
    "TRANSPORT_ERRORS",
    "classify_transport_error",
    "transport_error_guard",
]
