"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest

from analysis_worker.models import AnalysisStatus, CandidatePage, ScoreResult

GOOD_TRANSCRIPT = (
    "Good morning, thank you for taking my call today. "
    "I am calling from Acme about the analytics product your company evaluated. "
    "Do you have a few minutes right now? "
    "Yes, please go ahead with the overview. "
    "We help sales teams understand every customer conversation. "
    "That sounds interesting for our business. "
    "What does the pricing look like for a team of twenty? "
    "The investment depends on the number of seats you need. "
    "Could you send me a proposal by email? "
    "Sure, I will also book a demo meeting for next week. "
    "Thank you, that works for me. "
    "Great, talk to you soon. "
    "Have a great day. "
    "Goodbye."
)

# Long enough and segmented enough to be eligible, but fails the quality check.
NOISY_TRANSCRIPT = "uh um ah. " * 15


class FakeCallStore:
    """In-memory CallStore and SettingsStore."""

    def __init__(
        self,
        rows: Optional[List[Dict[str, Any]]] = None,
        analyzed: Optional[List[Dict[str, Any]]] = None,
    ):
        self.rows = list(rows or [])
        self.analyzed = list(analyzed or [])
        self.statuses: Dict[str, AnalysisStatus] = {}
        self.settings: Dict[str, Any] = {}
        self.page_requests: List[tuple] = []
        self.listing_error: Optional[Exception] = None
        self.status_error: Optional[Exception] = None
        self.settings_error: Optional[Exception] = None
        self.put_error: Optional[Exception] = None

    async def list_candidates(self, filters, limit: int, offset: int) -> CandidatePage:
        if self.listing_error is not None:
            raise self.listing_error
        self.page_requests.append((limit, offset))
        return CandidatePage(rows=self.rows[offset : offset + limit], total_count=len(self.rows))

    async def list_analyzed_ids(self) -> List[Dict[str, Any]]:
        if self.listing_error is not None:
            raise self.listing_error
        return list(self.analyzed)

    async def update_status(self, call_id: str, status: AnalysisStatus) -> None:
        if self.status_error is not None:
            raise self.status_error
        self.statuses[call_id] = status

    async def get_setting(self, key: str) -> Any:
        if self.settings_error is not None:
            raise self.settings_error
        return self.settings.get(key)

    async def put_setting(self, key: str, value: str) -> None:
        if self.put_error is not None:
            raise self.put_error
        self.settings[key] = value


class ScriptedScorer:
    """ScoringClient whose outcomes are scripted per call id.

    Each outcome is an exception (raised), a ScoreResult or None (returned).
    Calls without a script get ``default``.
    """

    def __init__(self, script: Optional[Dict[str, list]] = None, default: Any = None):
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.default = default if default is not None else ScoreResult(final_grade=8.0, scorecard_used="default")
        self.calls: List[Dict[str, Any]] = []
        self.gate: Optional[asyncio.Event] = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def score_call(
        self,
        call_id: str,
        transcript: str,
        agent_label: str,
        person_label: str,
        force_reprocess: bool = False,
    ) -> Optional[ScoreResult]:
        self.calls.append(
            {
                "call_id": call_id,
                "agent_label": agent_label,
                "person_label": person_label,
                "force_reprocess": force_reprocess,
            }
        )
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            outcomes = self.script.get(call_id)
            outcome = outcomes.pop(0) if outcomes else self.default
        finally:
            self.in_flight -= 1
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def attempts_for(self, call_id: str) -> int:
        return sum(1 for c in self.calls if c["call_id"] == call_id)


class ManualTimer:
    """RepeatingTimer driven by the test instead of wall-clock time."""

    def __init__(self):
        self.active: Dict[int, tuple] = {}
        self.cancelled: List[int] = []
        self._next_handle = 0

    def schedule_repeating(self, interval: float, callback) -> int:
        self._next_handle += 1
        self.active[self._next_handle] = (interval, callback)
        return self._next_handle

    def cancel(self, handle: int) -> None:
        self.active.pop(handle, None)
        self.cancelled.append(handle)

    @property
    def intervals(self) -> List[float]:
        return [interval for interval, _ in self.active.values()]

    async def fire(self) -> None:
        for _, callback in list(self.active.values()):
            await callback()


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def good_transcript() -> str:
    return GOOD_TRANSCRIPT


@pytest.fixture
def noisy_transcript() -> str:
    return NOISY_TRANSCRIPT


@pytest.fixture
def make_row() -> Callable[..., Dict[str, Any]]:
    """Factory for store rows that are eligible unless overridden."""

    def _make_row(call_id: str, **overrides: Any) -> Dict[str, Any]:
        row = {
            "id": call_id,
            "transcription": GOOD_TRANSCRIPT,
            "duration": 300,
            "status_voip": "normal_clearing",
            "enterprise": f"Company {call_id}",
            "person": "Maria",
            "agent_id": "agent-1",
        }
        row.update(overrides)
        return row

    return _make_row


@pytest.fixture
def fake_store() -> FakeCallStore:
    return FakeCallStore()


@pytest.fixture
def scorer() -> ScriptedScorer:
    return ScriptedScorer()


@pytest.fixture
def manual_timer() -> ManualTimer:
    return ManualTimer()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
