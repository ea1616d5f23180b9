# tests/unit/test_assembler.py
from __future__ import annotations

from datetime import date

from appraisal.core.lots.assembler import assemble_lots, disambiguate_titles, resolve_lot_urls
from appraisal.schemas.labels import GroupingMode, Language
from appraisal.schemas.models import ReportMetadata
from tests.utils import make_image_set, make_lot


def test_indexes_resolve_in_order_with_supplemental_and_no_repeats():
    images = make_image_set(5)
    lot = make_lot("Desk", [3, 1], extra_image_indexes=[1, 4])
    assert resolve_lot_urls(lot, images) == [images.urls[3], images.urls[1], images.urls[4]]


def test_out_of_range_indexes_are_skipped_and_traced(trace):
    images = make_image_set(2)
    lot = make_lot("Desk", [0, 7])
    assert resolve_lot_urls(lot, images, trace=trace) == [images.urls[0]]
    assert trace.named("assemble:skip_index")[0]["index"] == 7


def test_image_url_fallback_only_when_part_of_image_set():
    images = make_image_set(3)
    inside = make_lot("Desk", [], image_url=images.urls[2])
    outside = make_lot("Desk", [], image_url="https://elsewhere.example/x.jpg")
    assert resolve_lot_urls(inside, images) == [images.urls[2]]
    assert resolve_lot_urls(outside, images) == []


def test_duplicate_url_slots_collapse():
    images = make_image_set(names=["a.jpg", "a.jpg", "b.jpg"])
    lot = make_lot("Desk", [0, 1, 2])
    assert resolve_lot_urls(lot, images) == [images.urls[0], images.urls[2]]


def test_disambiguate_titles():
    assert disambiguate_titles(["Chair", "Desk", "Chair", "Chair"]) == ["Chair (#1)", "Desk", "Chair (#2)", "Chair (#3)"]
    assert disambiguate_titles(["A", "B"]) == ["A", "B"]


def test_disambiguate_titles_skips_suffixes_already_in_use():
    out = disambiguate_titles(["Chair", "Chair", "Chair (#1)"])
    assert out == ["Chair (#2)", "Chair (#3)", "Chair (#1)"]
    assert len(set(out)) == 3

    assert disambiguate_titles(["Lamp", "Lamp (#2)", "Lamp", "Lamp"]) == [
        "Lamp (#1)",
        "Lamp (#2)",
        "Lamp (#3)",
        "Lamp (#4)",
    ]


def test_assemble_renumbers_and_passes_metadata():
    images = make_image_set(3)
    lots = [make_lot("Chair", [2], lot_id="x-9"), make_lot("Chair", [0]), make_lot("Desk", [1])]
    report = assemble_lots(
        lots,
        images,
        grouping_mode=GroupingMode.per_photo,
        metadata={"client_name": "ACME Corp", "effective_date": "2024-06-30"},
        summary="Three lots.",
        language=Language.fr,
        currency="EUR",
    )
    assert [lot.lot_id for lot in report.lots] == ["lot-001", "lot-002", "lot-003"]
    assert [lot.title for lot in report.lots] == ["Chair (#1)", "Chair (#2)", "Desk"]
    assert [lot.image_urls for lot in report.lots] == [[images.urls[2]], [images.urls[0]], [images.urls[1]]]
    assert report.image_urls == images.urls
    assert report.metadata.client_name == "ACME Corp"
    assert report.metadata.effective_date == date(2024, 6, 30)
    assert (report.grouping_mode, report.summary, report.language, report.currency) == (
        GroupingMode.per_photo,
        "Three lots.",
        Language.fr,
        "EUR",
    )


def test_assemble_can_keep_titles_and_does_not_mutate_input():
    images = make_image_set(2)
    lots = [make_lot("Chair", [0]), make_lot("Chair", [1])]
    report = assemble_lots(lots, images, disambiguate=False, metadata=ReportMetadata(appraiser="J. Doe"))
    assert [lot.title for lot in report.lots] == ["Chair", "Chair"]
    assert lots[0].image_urls == []
    assert report.metadata.appraiser == "J. Doe"


def test_assemble_empty():
    report = assemble_lots([], make_image_set(0))
    assert report.lots == []
    assert report.image_urls == []
