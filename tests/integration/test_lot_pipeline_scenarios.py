# tests/integration/test_lot_pipeline_scenarios.py
"""
End-to-end pipeline runs (resolve → analyze → dedup → assemble) with a
scripted provider standing in for the AI collaborator.
"""

from __future__ import annotations

import pytest

from appraisal.orchestrators.lot_pipeline import LotPipeline
from appraisal.schemas.labels import GroupingMode
from appraisal.tools.vision.mock_provider import MockLotProvider
from tests.utils import fixed_provider, lot_payload, lots_response, make_image_urls, per_image_provider

pytestmark = pytest.mark.integration


def test_scenario_a_single_lot_keeps_one_index_per_duplicate_group():
    urls = make_image_urls(4)
    # frames 0/1 and 2/3 are duplicate pairs; the model keeps 0 and 2
    prov = fixed_provider(lots_response(lot_payload("Workshop contents", [0, 2])))
    result = LotPipeline(prov).run(urls, "single_lot")

    assert result.mode is GroupingMode.single_lot
    assert len(result.lots) == 1
    lot = result.lots[0]
    assert len(lot.image_indexes) == 2
    assert lot.image_urls == [urls[0], urls[2]]
    assert lot.lot_id == "lot-001"


def test_scenario_b_per_item_serial_dedup_across_images(trace):
    urls = make_image_urls(2)
    prov = per_image_provider(
        {
            0: lots_response(lot_payload("Generator", serial="ABC"), lot_payload("Extension cord")),
            1: lots_response(lot_payload("Generator (side view)", serial="abc")),
        }
    )
    result = LotPipeline(prov, trace=trace).run(urls, "per_item")

    assert [lot.title for lot in result.lots] == ["Generator", "Extension cord"]
    assert [lot.image_urls for lot in result.lots] == [[urls[0]], [urls[0]]]
    assert result.dedup.input_count == 3
    assert result.dedup.dropped_by_serial == 1
    assert result.calls == 2
    assert trace.named("dedup:drop")[0]["reason"] == "serial"


def test_scenario_c_per_photo_missing_lot_is_not_fabricated():
    urls = make_image_urls(3)
    prov = fixed_provider(lots_response(lot_payload("Desk", [0]), lot_payload("Shelf", [2])))
    result = LotPipeline(prov).run(urls, "per_photo")

    assert len(result.lots) == 2
    assert {i for lot in result.lots for i in lot.image_indexes} == {0, 2}
    assert [lot.image_urls for lot in result.lots] == [[urls[0]], [urls[2]]]


def test_per_item_same_title_in_different_frames_stays_distinct():
    urls = make_image_urls(2)
    prov = per_image_provider(
        {0: lots_response(lot_payload("Office Chair")), 1: lots_response(lot_payload("Office Chair"))}
    )
    result = LotPipeline(prov).run(urls, "per_item")
    assert [lot.title for lot in result.lots] == ["Office Chair (#1)", "Office Chair (#2)"]


def test_per_item_final_titles_unique_when_model_already_numbered_one():
    urls = make_image_urls(3)
    prov = per_image_provider(
        {
            0: lots_response(lot_payload("Chair")),
            1: lots_response(lot_payload("Chair")),
            2: lots_response(lot_payload("Chair (#1)")),
        }
    )
    result = LotPipeline(prov).run(urls, "per_item")
    titles = [lot.title for lot in result.lots]
    assert len(set(titles)) == 3
    assert titles == ["Chair (#2)", "Chair (#3)", "Chair (#1)"]


def test_per_item_same_frame_duplicates_collapse():
    urls = make_image_urls(1)
    prov = per_image_provider(
        {0: lots_response(lot_payload("Desk", details="oak"), lot_payload("desk", details="Oak"))}
    )
    result = LotPipeline(prov).run(urls, "per_item")
    assert len(result.lots) == 1
    assert result.dedup.dropped_by_frame == 1


def test_parallel_per_item_matches_sequential():
    urls = make_image_urls(5)
    script = {i: lots_response(lot_payload(f"Item {i}"), lot_payload(f"Part {i}", serial=f"S{i % 2}")) for i in range(5)}
    seq = LotPipeline(per_image_provider(script), max_workers=1).run(urls, "per_item")
    par = LotPipeline(per_image_provider(script), max_workers=4).run(urls, "per_item")
    assert [lot.model_dump() for lot in par.lots] == [lot.model_dump() for lot in seq.lots]


def test_workers_from_environment(monkeypatch):
    monkeypatch.setenv("APPRAISAL_PER_ITEM_WORKERS", "3")
    urls = make_image_urls(3)
    result = LotPipeline(per_image_provider({})).run(urls, "per_item")
    assert result.calls == 3


def test_language_currency_and_metadata_flow_through():
    urls = make_image_urls(1)
    prov = fixed_provider(lots_response(lot_payload("Bureau", [0])))
    result = LotPipeline(prov).run(
        urls, "per_photo", "fr", "eur", metadata={"client_name": "ACME", "appraiser": "J. Doe"}
    )
    req = prov.calls[0]
    assert req.language.value == "fr" and req.currency == "EUR"
    assert result.report.language.value == "fr"
    assert result.report.currency == "EUR"
    assert result.report.metadata.client_name == "ACME"
    assert result.report.grouping_mode is GroupingMode.per_photo


def test_filename_mock_end_to_end():
    urls = make_image_urls(names=["drill#D-100.jpg", "drill#d.100.jpg", "toolbox+drill#d-100.jpg"])
    result = LotPipeline(MockLotProvider()).run(urls, "per_item")
    assert [lot.title for lot in result.lots] == ["Drill", "Toolbox"]
