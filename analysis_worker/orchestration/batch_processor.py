"""Concurrent scoring of one batch of work items with per-item failure isolation."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Sequence

from analysis_worker.exceptions import RetryableError, ValidationError
from analysis_worker.models import (
    AnalysisStatus,
    BatchOutcome,
    ItemResult,
    RetryPolicy,
    ScoreResult,
    WorkItem,
)
from analysis_worker.scoring.base import ScoringClient
from analysis_worker.store.base import CallStore
from analysis_worker.utils import structured_log
from analysis_worker.utils.retry_strategies import (
    ANALYSIS_RETRY_POLICY,
    RetryStatsTracker,
    SleepFn,
    retry_analysis,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]

DEFAULT_SCORING_TIMEOUT = 120.0


class BatchProcessor:
    """Scores items concurrently; one failed item never aborts the batch."""

    def __init__(
        self,
        store: CallStore,
        scorer: ScoringClient,
        *,
        retry_policy: RetryPolicy = ANALYSIS_RETRY_POLICY,
        scoring_timeout: Optional[float] = DEFAULT_SCORING_TIMEOUT,
        force_reprocess: bool = False,
        sleep: SleepFn = asyncio.sleep,
        retry_tracker: Optional[RetryStatsTracker] = None,
    ):
        self.store = store
        self.scorer = scorer
        self.retry_policy = retry_policy
        self.scoring_timeout = scoring_timeout
        self.force_reprocess = force_reprocess
        self._sleep = sleep
        self.retry_tracker = retry_tracker or RetryStatsTracker()

    async def process_batch(
        self,
        items: Sequence[WorkItem],
        on_progress: Optional[ProgressCallback] = None,
        *,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> BatchOutcome:
        """
        Score every item and wait for all of them to settle.

        ``on_progress(position, total, label)`` fires in input order before
        each item starts. Completion order is not guaranteed.
        """
        total = len(items)
        if total == 0:
            return BatchOutcome()
        policy = retry_policy or self.retry_policy
        logger.info("Processing batch of %d calls", total)

        tasks: list[asyncio.Task[ItemResult]] = []
        for index, item in enumerate(items):
            if on_progress is not None:
                try:
                    on_progress(index + 1, total, item.display_label)
                except Exception:
                    logger.exception("Progress callback failed for %s", item.id)
            tasks.append(asyncio.ensure_future(self._process_item(item, policy)))

        settled = await asyncio.gather(*tasks, return_exceptions=True)

        results: list[ItemResult] = []
        for item, outcome in zip(items, settled):
            if isinstance(outcome, BaseException):
                # _process_item handles its own errors; this only catches the unexpected.
                logger.error("Unexpected failure processing %s: %s", item.id, outcome)
                outcome = ItemResult(call_id=item.id, success=False, error=str(outcome))
            results.append(outcome)

        success_count = sum(1 for r in results if r.success)
        failure_count = total - success_count
        logger.info("Batch finished: %d succeeded, %d failed", success_count, failure_count)
        return BatchOutcome(
            total=total,
            success_count=success_count,
            failure_count=failure_count,
            results=results,
        )

    async def _score(self, item: WorkItem) -> Optional[ScoreResult]:
        call = self.scorer.score_call(
            item.id,
            item.transcript,
            item.agent_label,
            item.person_label,
            self.force_reprocess,
        )
        if self.scoring_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self.scoring_timeout)
        except asyncio.TimeoutError as exc:
            raise RetryableError(
                f"scoring timeout after {self.scoring_timeout:.0f}s for {item.id}"
            ) from exc

    async def _process_item(self, item: WorkItem, policy: RetryPolicy) -> ItemResult:
        label = item.display_label
        logger.info("Analyzing: %s", label)
        try:
            result = await retry_analysis(
                lambda: self._score(item),
                item.id,
                label,
                policy=policy,
                sleep=self._sleep,
                tracker=self.retry_tracker,
            )
            if result is None or not result.has_grade:
                raise ValidationError("Analysis returned an invalid result (no grade)")
        except Exception as e:
            logger.error("Failed to analyze %s: %s", item.id, e)
            await self._write_status(item.id, AnalysisStatus.FAILED)
            error = f"{type(e).__name__}: {e}"
            structured_log.log_item_result(item.id, "failed", label=label, error=error)
            return ItemResult(call_id=item.id, success=False, error=str(e))

        logger.info("%s analyzed: %s/10", label, result.final_grade)
        await self._write_status(item.id, AnalysisStatus.COMPLETED)
        structured_log.log_item_result(
            item.id,
            "completed",
            label=label,
            grade=result.final_grade,
            scorecard=result.scorecard_used,
        )
        return ItemResult(
            call_id=item.id,
            success=True,
            score=result.final_grade,
            scorecard=result.scorecard_used,
        )

    async def _write_status(self, call_id: str, status: AnalysisStatus) -> None:
        # The scoring outcome is authoritative; the status row is telemetry.
        try:
            await self.store.update_status(call_id, status)
        except Exception as e:
            logger.warning("Could not mark %s as %s: %s", call_id, status.value, e)
