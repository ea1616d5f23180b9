"""
appraisal.core.lots
===================

Lot grouping and deduplication stages.

Exports:
- Strategies: LotStrategy, SingleLotStrategy, PerItemStrategy, PerPhotoStrategy, CatalogueStrategy, get_strategy()
- Response contract: parse_lots_response(), extract_json(), ParsedResponse
- Dedup: deduplicate_lots(), normalize_key()
- Assembly: assemble_lots(), disambiguate_titles()
- Combined views: derive_views(), primary_view()
- Tracing: TraceHook, TraceRecorder, logging_trace
"""

from __future__ import annotations

# ---- Assembly ----
from .assembler import assemble_lots, disambiguate_titles, resolve_lot_urls

# ---- Combined views ----
from .combined import derive_views, per_photo_view, primary_view

# ---- Response contract ----
from .contract import ParsedResponse, extract_json, parse_lots_response

# ---- Dedup ----
from .dedup import deduplicate_lots, normalize_key

# ---- Strategies ----
from .strategies import (
    CatalogueStrategy,
    LotStrategy,
    PerItemStrategy,
    PerPhotoStrategy,
    SingleLotStrategy,
    get_strategy,
    plan_segments,
)

# ---- Tracing ----
from .trace import TraceHook, TraceRecorder, logging_trace, null_trace

__all__ = [
    # Strategies
    "LotStrategy",
    "SingleLotStrategy",
    "PerItemStrategy",
    "PerPhotoStrategy",
    "CatalogueStrategy",
    "get_strategy",
    "plan_segments",
    # Contract
    "ParsedResponse",
    "extract_json",
    "parse_lots_response",
    # Dedup
    "deduplicate_lots",
    "normalize_key",
    # Assembly
    "assemble_lots",
    "disambiguate_titles",
    "resolve_lot_urls",
    # Combined
    "derive_views",
    "per_photo_view",
    "primary_view",
    # Tracing
    "TraceHook",
    "TraceRecorder",
    "logging_trace",
    "null_trace",
]
