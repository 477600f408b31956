"""Scoring function protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from analysis_worker.models import ScoreResult


class ScoringClient(Protocol):
    async def score_call(
        self,
        call_id: str,
        transcript: str,
        agent_label: str,
        person_label: str,
        force_reprocess: bool = False,
    ) -> Optional[ScoreResult]:
        """Grade one call transcript against its scorecard."""
