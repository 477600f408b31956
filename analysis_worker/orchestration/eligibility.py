"""Discovery of calls eligible for AI analysis.

A call is eligible when it was answered, carries a transcript longer than
``min_transcript_chars``, has more than ``min_segments`` period-separated
segments, lasted at least ``min_duration_seconds``, and either has no
completed analysis yet or reprocessing is forced.

Rows are read page by page from the store with a hard cap on the number of
pages. The analyzed set is fetched fresh on every call; nothing is cached
across cycles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from analysis_worker.models import CallRow, EligibilityCriteria, EligibilityStats, WorkItem
from analysis_worker.store.base import CallStore

_log = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_PAGES = 50

_CALL_STATUS_LABELS = {
    "no_answer": "Not answered",
    "originator_cancel": "Cancelled by agent",
    "normal_clearing": "Answered",
    "number_changed": "Number changed",
    "busy": "Busy",
    "failed": "Failed",
    "congestion": "Congestion",
    "timeout": "Timeout",
    "rejected": "Rejected",
    "unavailable": "Unavailable",
}


def translate_call_status(status_voip: Optional[str]) -> str:
    """Human-readable label for a VoIP hang-up code."""
    if not status_voip:
        return "Unknown status"
    return _CALL_STATUS_LABELS.get(status_voip, status_voip)


@dataclass(frozen=True)
class EligibilityCheck:
    answered: bool
    has_transcript: bool
    long_enough: bool
    has_min_segments: bool

    @property
    def meets_criteria(self) -> bool:
        return self.answered and self.has_transcript and self.long_enough and self.has_min_segments


def check_row(row: CallRow, criteria: EligibilityCriteria) -> EligibilityCheck:
    """Apply the static criteria to one row (analysis history not considered)."""
    duration = row.real_duration()
    if row.status_voip:
        answered = row.status_voip == criteria.answered_status
    else:
        answered = duration > 0
    transcript = row.transcription or ""
    has_transcript = len(transcript.strip()) > criteria.min_transcript_chars
    return EligibilityCheck(
        answered=answered,
        has_transcript=has_transcript,
        long_enough=duration >= criteria.min_duration_seconds,
        has_min_segments=has_transcript and row.segment_count() > criteria.min_segments,
    )


class EligibilityResolver:
    def __init__(
        self,
        store: CallStore,
        criteria: Optional[EligibilityCriteria] = None,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
        filters: Optional[Mapping[str, Any]] = None,
    ):
        if page_size < 1 or max_pages < 1:
            raise ValueError("page_size and max_pages must be positive")
        self.store = store
        self.criteria = criteria or EligibilityCriteria()
        self.page_size = page_size
        self.max_pages = max_pages
        self.filters = dict(filters) if filters else None

    async def fetch_rows(self) -> list[CallRow]:
        """Accumulate every row the store returns, within the page cap."""
        rows: list[CallRow] = []
        for page in range(self.max_pages):
            result = await self.store.list_candidates(
                self.filters, self.page_size, page * self.page_size
            )
            if not result.rows:
                break
            rows.extend(CallRow.model_validate(raw) for raw in result.rows)
            if result.total_count and len(rows) >= result.total_count:
                break
        else:
            _log.warning(
                "Stopped paging after %d pages (%d rows); remaining calls are not considered",
                self.max_pages,
                len(rows),
            )
        return rows

    async def fetch_analyzed(self) -> dict[str, Any]:
        """Map of analyzed call id to its stored grade (None when unknown)."""
        records = await self.store.list_analyzed_ids()
        return {str(r["call_id"]): r.get("final_grade") for r in records if r.get("call_id")}

    async def list_eligible(
        self,
        force_reprocess: bool = False,
        limit: int = 50,
        *,
        criteria: Optional[EligibilityCriteria] = None,
    ) -> list[WorkItem]:
        """
        Return at most ``limit`` eligible calls, in store order, without duplicates.

        Store errors propagate; there is no partial result.
        """
        if limit <= 0:
            return []
        criteria = criteria or self.criteria
        rows = await self.fetch_rows()
        _log.info("Found %d calls in the store", len(rows))

        analyzed: set[str] = set()
        if not force_reprocess:
            analyzed = set(await self.fetch_analyzed())
            _log.info("%d calls already analyzed", len(analyzed))

        seen: set[str] = set()
        eligible: list[WorkItem] = []
        for row in rows:
            if row.id in seen:
                continue
            seen.add(row.id)
            if not check_row(row, criteria).meets_criteria:
                continue
            if not force_reprocess and row.id in analyzed:
                continue
            _log.debug(
                "Eligible call %s - %s - %ds - %d segments",
                row.id,
                translate_call_status(row.status_voip),
                row.real_duration(),
                row.segment_count(),
            )
            eligible.append(WorkItem.from_row(row))
            if len(eligible) >= limit:
                break

        _log.info("%d calls eligible for analysis", len(eligible))
        return eligible

    async def summarize(self, *, criteria: Optional[EligibilityCriteria] = None) -> EligibilityStats:
        """Funnel counts used by status dashboards."""
        criteria = criteria or self.criteria
        rows = await self.fetch_rows()
        analyzed = await self.fetch_analyzed()

        stats = EligibilityStats(total_calls=len(rows))
        for row in rows:
            check = check_row(row, criteria)
            stats.calls_answered += int(check.answered)
            stats.calls_with_transcription += int(check.has_transcript)
            stats.calls_over_min_duration += int(check.long_enough)
            stats.calls_with_min_segments += int(check.has_min_segments)
            if check.meets_criteria:
                stats.calls_eligible += 1
                if row.id in analyzed:
                    stats.calls_already_analyzed += 1

        stats.calls_needing_analysis = max(0, stats.calls_eligible - stats.calls_already_analyzed)
        stats.calls_with_score = sum(
            1 for grade in analyzed.values() if grade is not None and grade > 0
        )
        return stats
