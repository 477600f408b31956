"""Unit tests for eligibility resolution."""

from __future__ import annotations

import pytest

from analysis_worker.exceptions import StoreError
from analysis_worker.models import CallRow, EligibilityCriteria, parse_formatted_duration
from analysis_worker.orchestration.eligibility import (
    EligibilityResolver,
    check_row,
    translate_call_status,
)


class TestRealDuration:
    """Test duration resolution from formatted and raw values."""

    def test_formatted_wins_over_raw(self):
        row = CallRow(id="c1", duration=999, duration_formatted="00:03:05")
        assert row.real_duration() == 185

    def test_store_spelling_is_accepted(self):
        row = CallRow.model_validate({"id": "c1", "duration_formated": "01:00:00"})
        assert row.real_duration() == 3600

    @pytest.mark.parametrize("formatted", [None, "", "00:00:00", "3 minutes", "10:20"])
    def test_falls_back_to_raw_seconds(self, formatted):
        row = CallRow(id="c1", duration=240, duration_formatted=formatted)
        assert row.real_duration() == 240

    def test_absent_everything_is_zero(self):
        assert CallRow(id="c1").real_duration() == 0

    def test_parse_formatted_duration(self):
        assert parse_formatted_duration("00:02:59") == 179
        assert parse_formatted_duration("aa:bb:cc") is None


class TestCheckRow:
    """Test the static eligibility criteria."""

    def test_eligible_row(self, make_row):
        check = check_row(CallRow.model_validate(make_row("c1")), EligibilityCriteria())
        assert check.meets_criteria is True

    def test_unanswered_status(self, make_row):
        row = CallRow.model_validate(make_row("c1", status_voip="no_answer"))
        check = check_row(row, EligibilityCriteria())
        assert check.answered is False
        assert check.meets_criteria is False

    def test_missing_status_falls_back_to_duration(self, make_row):
        row = CallRow.model_validate(make_row("c1", status_voip=None))
        assert check_row(row, EligibilityCriteria()).answered is True

    def test_duration_boundary_is_inclusive(self, make_row):
        criteria = EligibilityCriteria()
        at_min = CallRow.model_validate(make_row("c1", duration=180))
        below = CallRow.model_validate(make_row("c2", duration=179))
        assert check_row(at_min, criteria).long_enough is True
        assert check_row(below, criteria).long_enough is False

    def test_transcript_must_exceed_min_chars(self, make_row):
        criteria = EligibilityCriteria()
        exactly = CallRow.model_validate(make_row("c1", transcription="  " + "x" * 100 + "  "))
        assert check_row(exactly, criteria).has_transcript is False

    def test_segments_must_exceed_minimum(self, make_row):
        criteria = EligibilityCriteria()
        ten_pieces = ". ".join(["A reasonably long sentence"] * 10)
        eleven_pieces = ten_pieces + ". And one more"
        assert check_row(CallRow.model_validate(make_row("c1", transcription=ten_pieces)), criteria).has_min_segments is False
        assert check_row(CallRow.model_validate(make_row("c2", transcription=eleven_pieces)), criteria).has_min_segments is True


def test_translate_call_status():
    assert translate_call_status("normal_clearing") == "Answered"
    assert translate_call_status("busy") == "Busy"
    assert translate_call_status("weird_code") == "weird_code"
    assert translate_call_status(None) == "Unknown status"


@pytest.mark.asyncio
async def test_list_eligible_filters_and_excludes_analyzed(fake_store, make_row) -> None:
    fake_store.rows = [
        make_row("c1"),
        make_row("c2", status_voip="no_answer"),
        make_row("c3", duration=60),
        make_row("c4", transcription="too short."),
        make_row("c5"),
        make_row("c6"),
    ]
    fake_store.analyzed = [{"call_id": "c5", "final_grade": 7.5}]

    resolver = EligibilityResolver(fake_store)
    eligible = await resolver.list_eligible()
    assert [item.id for item in eligible] == ["c1", "c6"]
    assert eligible[0].segments > 10
    assert eligible[0].duration == 300


@pytest.mark.asyncio
async def test_force_reprocess_includes_analyzed(fake_store, make_row) -> None:
    fake_store.rows = [make_row("c1"), make_row("c2")]
    fake_store.analyzed = [{"call_id": "c1"}]
    resolver = EligibilityResolver(fake_store)
    eligible = await resolver.list_eligible(force_reprocess=True)
    assert [item.id for item in eligible] == ["c1", "c2"]


@pytest.mark.asyncio
async def test_limit_and_duplicates(fake_store, make_row) -> None:
    fake_store.rows = [make_row("c1"), make_row("c1"), make_row("c2"), make_row("c3")]
    resolver = EligibilityResolver(fake_store)

    assert [item.id for item in await resolver.list_eligible(limit=2)] == ["c1", "c2"]
    assert await resolver.list_eligible(limit=0) == []
    assert await resolver.list_eligible(limit=-3) == []


@pytest.mark.asyncio
async def test_pagination_uses_offsets_and_stops_at_total(fake_store, make_row) -> None:
    fake_store.rows = [make_row(f"c{n}") for n in range(7)]
    resolver = EligibilityResolver(fake_store, page_size=3)
    eligible = await resolver.list_eligible(limit=100)
    assert len(eligible) == 7
    assert fake_store.page_requests == [(3, 0), (3, 3), (3, 6)]


@pytest.mark.asyncio
async def test_pagination_respects_page_cap(fake_store, make_row) -> None:
    fake_store.rows = [make_row(f"c{n}") for n in range(10)]
    resolver = EligibilityResolver(fake_store, page_size=2, max_pages=3)
    eligible = await resolver.list_eligible(limit=100)
    assert len(eligible) == 6
    assert len(fake_store.page_requests) == 3


@pytest.mark.asyncio
async def test_criteria_override(fake_store, make_row) -> None:
    fake_store.rows = [make_row("c1", duration=200)]
    resolver = EligibilityResolver(fake_store)
    strict = EligibilityCriteria(min_duration_seconds=600)
    assert await resolver.list_eligible(criteria=strict) == []
    assert len(await resolver.list_eligible()) == 1


@pytest.mark.asyncio
async def test_store_errors_propagate(fake_store) -> None:
    fake_store.listing_error = StoreError("connection refused")
    resolver = EligibilityResolver(fake_store)
    with pytest.raises(StoreError):
        await resolver.list_eligible()


@pytest.mark.asyncio
async def test_summarize_reports_funnel(fake_store, make_row) -> None:
    fake_store.rows = [
        make_row("c1"),
        make_row("c2"),
        make_row("c3", status_voip="busy", duration=0, transcription=None),
        make_row("c4", duration=30),
    ]
    fake_store.analyzed = [
        {"call_id": "c1", "final_grade": 8.0},
        {"call_id": "old", "final_grade": None},
    ]
    stats = await EligibilityResolver(fake_store).summarize()
    assert stats.total_calls == 4
    assert stats.calls_answered == 3
    assert stats.calls_with_transcription == 3
    assert stats.calls_over_min_duration == 2
    assert stats.calls_with_min_segments == 3
    assert stats.calls_eligible == 2
    assert stats.calls_already_analyzed == 1
    assert stats.calls_needing_analysis == 1
    assert stats.calls_with_score == 1


def test_resolver_rejects_bad_paging(fake_store):
    with pytest.raises(ValueError):
        EligibilityResolver(fake_store, page_size=0)
