# tests/integration/test_pipeline_failures.py
from __future__ import annotations

import pytest
import requests

from appraisal.core.errors import AnalysisTransportError, LotAnalysisFailed
from appraisal.orchestrators.lot_pipeline import LotPipeline
from tests.utils import failing_provider, fixed_provider, lot_payload, lots_response, make_image_urls, per_image_provider

pytestmark = pytest.mark.integration


@pytest.mark.parametrize("mode", ["single_lot", "per_photo", "catalogue", "combined"])
def test_transport_failure_is_could_not_analyze(mode):
    with pytest.raises(LotAnalysisFailed, match="could not analyze images") as ei:
        LotPipeline(failing_provider(requests.ConnectionError("dns"))).run(make_image_urls(2), mode)
    assert isinstance(ei.value.cause, AnalysisTransportError)
    assert isinstance(ei.value.__cause__, AnalysisTransportError)


def test_one_failed_image_fails_the_whole_per_item_run():
    prov = per_image_provider({0: lots_response(lot_payload("Desk")), 1: TimeoutError("slow")})
    with pytest.raises(LotAnalysisFailed) as ei:
        LotPipeline(prov, max_workers=2).run(make_image_urls(3), "per_item")
    assert ei.value.cause.image_index == 1


def test_all_responses_malformed_is_a_zero_lot_result_not_a_failure():
    result = LotPipeline(fixed_provider("not json at all")).run(make_image_urls(2), "per_item")
    assert result.lots == []
    assert len(result.warnings) == 2


def test_unknown_mode_is_empty_without_calls():
    prov = fixed_provider(lots_response(lot_payload()))
    result = LotPipeline(prov).run(make_image_urls(2), "by_room")
    assert result.mode is None
    assert result.lots == []
    assert result.report.image_urls == make_image_urls(2)
    assert prov.calls == []
    assert "unknown grouping mode" in result.warnings[0]


@pytest.mark.parametrize("images", [[], None, "https://cdn.example.com/a.jpg", {"a": 1}])
def test_empty_or_malformed_images_are_empty_without_calls(images):
    prov = fixed_provider(lots_response(lot_payload()))
    result = LotPipeline(prov).run(images, "per_item", metadata={"client_name": "ACME"})
    assert result.lots == []
    assert result.report.metadata.client_name == "ACME"
    assert prov.calls == []
