# appraisal/tools/vision/__init__.py
"""
Vision tools package

Re-exports the provider interface/implementations and the provider selector,
so callers can do:

    from appraisal.tools.vision import (
        LotVisionProvider,
        LotVisionRequest,
        MockLotProvider,
        OpenAILotProvider,
        get_provider,
    )
"""

from __future__ import annotations

import os

# Concrete providers
from .mock_provider import MockLotProvider
from .openai_provider import OpenAILotProvider

# Provider protocol / base
from .provider_base import LotVisionProvider, LotVisionRequest, run_indexed


def get_provider(name: str | None = None) -> LotVisionProvider:
    """
    Select a provider by name, falling back to APPRAISAL_VISION_PROVIDER
    (default "mock"). Unknown names raise ValueError; a misconfigured
    OpenAI provider raises RuntimeError.
    """
    provider_name = (name or os.getenv("APPRAISAL_VISION_PROVIDER", "mock")).strip().lower()
    if provider_name == "mock":
        return MockLotProvider()
    if provider_name == "openai":
        return OpenAILotProvider()
    raise ValueError(f"Unknown vision provider: {provider_name!r}")


__all__ = [
    "LotVisionProvider",
    "LotVisionRequest",
    "MockLotProvider",
    "OpenAILotProvider",
    "get_provider",
    "run_indexed",
]
