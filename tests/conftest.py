# tests/conftest.py
from __future__ import annotations

import os
import random

import pytest

from appraisal.core.lots.trace import TraceRecorder
from tests.utils import make_image_set, make_image_urls, png_bytes as _make_png

_ENV_VARS = (
    "OPENAI_API_KEY",
    "APPRAISAL_VISION_PROVIDER",
    "APPRAISAL_VISION_MODEL",
    "APPRAISAL_VISION_TIMEOUT_S",
    "APPRAISAL_VISION_MAX_RETRIES",
    "APPRAISAL_IMAGE_TIMEOUT_S",
    "APPRAISAL_IMAGE_MAX_SIDE",
    "APPRAISAL_PER_ITEM_WORKERS",
    "APPRAISAL_DEBUG",
    "APPRAISAL_MODE",
    "APPRAISAL_LANGUAGE",
    "APPRAISAL_CURRENCY",
    "APPRAISAL_OUT",
)


# -------- Global deterministic seed --------
@pytest.fixture(autouse=True, scope="session")
def _seed_session():
    random.seed(1337)
    os.environ.setdefault("PYTHONHASHSEED", "0")
    yield


# -------- Hermetic environment --------
@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


# -------- Domain fixtures --------
@pytest.fixture
def trace() -> TraceRecorder:
    """In-memory trace hook; assert on `trace.named("dedup:drop")` etc."""
    return TraceRecorder()


@pytest.fixture
def image_urls():
    """
    Factory for ordered image URLs.
    Usage:
        urls = image_urls(3)
        urls = image_urls(names=["desk_1.jpg", "desk_2.jpg"])
    """
    return make_image_urls


@pytest.fixture
def image_set():
    """Factory for an ImageSet; same arguments as `image_urls`."""
    return make_image_set


@pytest.fixture
def png_bytes():
    """
    Fixture that returns a callable to generate PNG bytes.
    Usage:
        data = png_bytes(64, 64)
    """
    return _make_png


# -------- Pytest markers --------
def pytest_configure(config):
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks integration tests")
