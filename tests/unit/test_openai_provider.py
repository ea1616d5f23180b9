# tests/unit/test_openai_provider.py
"""
OpenAILotProvider (no network)

A fake client stands in for `openai.OpenAI`; images are loaded through an
injected loader so nothing touches disk or HTTP.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from appraisal.core.errors import AnalysisTransportError
from appraisal.core.images.fetcher import EncodedImage
from appraisal.core.lots import prompts
from appraisal.schemas.labels import GroupingMode
from appraisal.tools.vision import get_provider
from appraisal.tools.vision.mock_provider import MockLotProvider
from appraisal.tools.vision.openai_provider import OpenAILotProvider, build_messages
from appraisal.tools.vision.provider_base import LotVisionRequest
from tests.utils import make_image_set


class _StatusError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class _FakeCompletions:
    def __init__(self, outcomes):
        self._outcomes = list(outcomes)
        self.kwargs: list[dict] = []

    def create(self, **kwargs):
        self.kwargs.append(kwargs)
        out = self._outcomes.pop(0)
        if isinstance(out, BaseException):
            raise out
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=out))])


def _client(*outcomes):
    completions = _FakeCompletions(outcomes)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def _loader(url: str) -> EncodedImage:
    return EncodedImage(mime="image/jpeg", base64=url.rsplit("/", 1)[-1])


def _request(n: int = 2) -> LotVisionRequest:
    images = make_image_set(n)
    return LotVisionRequest(
        mode=GroupingMode.per_photo,
        system_prompt=prompts.system_prompt(GroupingMode.per_photo),
        user_text=prompts.per_photo_text(images.refs),
        images=images.refs,
    )


@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch):
    monkeypatch.setattr("appraisal.tools.vision.openai_provider.time.sleep", lambda s: None)


def test_requires_api_key_without_client():
    with pytest.raises(RuntimeError):
        OpenAILotProvider()


def test_json_mode_call_with_images_in_index_order(monkeypatch):
    monkeypatch.setenv("APPRAISAL_VISION_MODEL", "gpt-test")
    monkeypatch.setenv("APPRAISAL_VISION_TIMEOUT_S", "12")
    client, completions = _client('  {"lots": []}  ')
    prov = OpenAILotProvider(client=client, image_loader=_loader)

    assert prov.complete(_request(3)) == '{"lots": []}'
    kw = completions.kwargs[0]
    assert kw["model"] == "gpt-test"
    assert kw["response_format"] == {"type": "json_object"}
    assert kw["timeout"] == 12.0
    system, user = kw["messages"]
    assert system["role"] == "system" and "per_photo" in system["content"]
    image_urls = [c["image_url"]["url"] for c in user["content"] if c["type"] == "image_url"]
    assert image_urls == [f"data:image/jpeg;base64,img_{i}.jpg" for i in range(3)]


def test_retries_transient_errors_then_succeeds():
    client, completions = _client(_StatusError(429), _StatusError(503), '{"lots": []}')
    prov = OpenAILotProvider(client=client, image_loader=_loader)
    assert prov.complete(_request()) == '{"lots": []}'
    assert len(completions.kwargs) == 3


def test_gives_up_after_max_retries(monkeypatch):
    monkeypatch.setenv("APPRAISAL_VISION_MAX_RETRIES", "1")
    client, completions = _client(TimeoutError("t1"), TimeoutError("t2"), '{"lots": []}')
    prov = OpenAILotProvider(client=client, image_loader=_loader)
    with pytest.raises(AnalysisTransportError, match="network"):
        prov.complete(_request())
    assert len(completions.kwargs) == 2


def test_auth_errors_are_not_retried():
    client, completions = _client(_StatusError(401), '{"lots": []}')
    prov = OpenAILotProvider(client=client, image_loader=_loader)
    with pytest.raises(AnalysisTransportError):
        prov.complete(_request())
    assert len(completions.kwargs) == 1


def test_image_load_failure_is_transport_error():
    def bad_loader(url: str) -> EncodedImage:
        raise AnalysisTransportError(f"network: could not fetch image {url!r}")

    client, completions = _client('{"lots": []}')
    with pytest.raises(AnalysisTransportError):
        OpenAILotProvider(client=client, image_loader=bad_loader).complete(_request())
    assert completions.kwargs == []


def test_empty_choice_returns_empty_text():
    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=lambda **kw: SimpleNamespace(choices=[]))))
    assert OpenAILotProvider(client=client, image_loader=_loader).complete(_request()) == ""


def test_build_messages_puts_text_before_images():
    req = _request(1)
    msgs = build_messages(req, [_loader("x/a.jpg")])
    kinds = [c["type"] for c in msgs[1]["content"]]
    assert kinds == ["text", "text", "image_url"]


def test_get_provider_selection(monkeypatch):
    assert isinstance(get_provider(), MockLotProvider)
    monkeypatch.setenv("APPRAISAL_VISION_PROVIDER", "openai")
    with pytest.raises(RuntimeError):
        get_provider()
    with pytest.raises(ValueError):
        get_provider("llava")
