"""Background scheduler that periodically discovers and scores eligible calls.

State machine::

    Idle --start()--> Running (timer armed)
    Running: Waiting <--> Ticking (one cycle in progress)
    Running --stop()--> Idle (an in-flight cycle still runs to completion)

At most one cycle runs at a time: a tick that arrives while a cycle is in
progress is dropped, never queued. Every cycle error is caught here so the
timer keeps firing.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from analysis_worker.exceptions import ConfigError
from analysis_worker.models import (
    AnalyzeDecision,
    BatchOutcome,
    CycleAction,
    CycleReport,
    EligibilityCriteria,
    RetryPolicy,
    RunStats,
    WorkerConfig,
    WorkerStatus,
    WorkItem,
)
from analysis_worker.orchestration.batch_processor import BatchProcessor, ProgressCallback
from analysis_worker.orchestration.eligibility import EligibilityResolver
from analysis_worker.orchestration.timers import AsyncioTimer, RepeatingTimer
from analysis_worker.quality.transcript_validator import should_analyze
from analysis_worker.store.base import ENABLED_FLAG_KEY, WORKER_CONFIG_KEY, SettingsStore
from analysis_worker.utils import structured_log

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
QualityGate = Callable[[str], AnalyzeDecision]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_enabled_flag(raw: Any) -> bool:
    """Accept True, "true" and "1" (case and JSON quoting tolerated); anything else is off."""
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw == 1
    if isinstance(raw, str):
        return raw.strip().strip('"').strip().lower() in ("true", "1")
    return False


class AnalysisScheduler:
    def __init__(
        self,
        resolver: EligibilityResolver,
        processor: BatchProcessor,
        settings_store: SettingsStore,
        *,
        config: Optional[WorkerConfig] = None,
        criteria: Optional[EligibilityCriteria] = None,
        timer: Optional[RepeatingTimer] = None,
        clock: Optional[Clock] = None,
        quality_gate: QualityGate = should_analyze,
        local_development: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.resolver = resolver
        self.processor = processor
        self.settings_store = settings_store
        self.config = config or WorkerConfig()
        self.criteria = criteria or resolver.criteria
        self.timer = timer or AsyncioTimer()
        self.local_development = local_development
        self.stats = RunStats()
        self._clock = clock or _utcnow
        self._quality_gate = quality_gate
        self._on_progress = on_progress or self._log_progress
        self._timer_handle: Any = None
        self._starting = False
        self._processing = False
        self._idle = asyncio.Event()
        self._idle.set()

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._timer_handle is not None

    @property
    def is_processing(self) -> bool:
        return self._processing

    async def start(self) -> None:
        """Arm the timer and run the first cycle right away. No-op when already running."""
        if self._timer_handle is not None or self._starting:
            logger.info("Analysis worker is already running")
            return

        self._starting = True
        try:
            await self.load_persisted_config()
            enabled = await self._read_enabled_flag()
            self.config = self.config.model_copy(update={"enabled": enabled})
            if not enabled:
                logger.info("Analysis worker disabled (%s is not true)", ENABLED_FLAG_KEY)
                return

            logger.info(
                "Starting analysis worker (interval: %.1fs, batch size: %d, local: %s)",
                self.config.interval,
                self.config.batch_size,
                self.local_development,
            )
            self._timer_handle = self.timer.schedule_repeating(self.config.interval, self._on_tick)
        finally:
            self._starting = False

        await self.run_cycle()

    def stop(self) -> None:
        """Stop future ticks. A cycle already in progress runs to completion."""
        if self._timer_handle is None:
            return
        self.timer.cancel(self._timer_handle)
        self._timer_handle = None
        logger.info("Analysis worker stopped")

    async def wait_idle(self) -> None:
        """Wait until no cycle is in progress."""
        await self._idle.wait()

    def get_stats(self) -> WorkerStatus:
        return WorkerStatus(
            **self.stats.model_dump(),
            is_running=self.is_running,
            is_processing=self._processing,
            config=self.config.model_copy(),
            retry=self.processor.retry_tracker.get_stats(),
        )

    async def update_config(
        self, partial: Optional[Mapping[str, Any]] = None, **changes: Any
    ) -> WorkerConfig:
        """
        Merge changes into the active config and persist it (best effort).

        A cycle already running keeps the config it started with. A changed
        interval re-arms the timer.
        """
        updates = {**dict(partial or {}), **changes}
        unknown = sorted(set(updates) - set(WorkerConfig.model_fields))
        if unknown:
            raise ConfigError(f"Unknown worker config field(s): {', '.join(unknown)}")
        try:
            new_config = WorkerConfig.model_validate({**self.config.model_dump(), **updates})
        except PydanticValidationError as exc:
            raise ConfigError(f"Invalid worker config: {exc}") from exc

        interval_changed = new_config.interval != self.config.interval
        self.config = new_config
        if interval_changed and self._timer_handle is not None:
            self.timer.cancel(self._timer_handle)
            self._timer_handle = self.timer.schedule_repeating(new_config.interval, self._on_tick)

        persisted = True
        try:
            await self.settings_store.put_setting(WORKER_CONFIG_KEY, new_config.model_dump_json())
        except Exception as e:
            persisted = False
            logger.warning("Could not persist worker config: %s", e)
        structured_log.log_config_update(new_config.model_dump(), persisted)
        logger.info("Worker config updated: %s", new_config.model_dump())
        return new_config

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> Optional[CycleReport]:
        """Discover, filter and score one batch. Returns None if a cycle is already running."""
        if self._processing:
            return None
        self._processing = True
        self._idle.clear()

        config = self.config
        report = CycleReport(started_at=self._clock())
        outcome: Optional[BatchOutcome] = None
        structured_log.log_cycle(CycleAction.START.value, batch_size=config.batch_size)
        try:
            logger.info("Checking for calls to analyze...")
            candidates = await self.resolver.list_eligible(
                False,
                config.batch_size * 2,
                criteria=self.criteria.model_copy(update={"min_duration_seconds": config.min_duration}),
            )
            report.candidates = len(candidates)
            accepted = self._quality_filter(candidates)
            report.rejected_by_quality = len(candidates) - len(accepted)
            logger.info("%d/%d calls passed quality validation", len(accepted), len(candidates))

            batch = accepted[: config.batch_size]
            if not batch:
                logger.info("No eligible calls found")
            else:
                outcome = await self.processor.process_batch(
                    batch,
                    self._on_progress,
                    retry_policy=self._retry_policy_for(config),
                )
        except Exception as e:
            report.error = f"{type(e).__name__}: {e}"
            logger.exception("Analysis cycle failed: %s", e)
        finally:
            report.finished_at = self._clock()
            self._record(outcome, report)
            self._processing = False
            self._idle.set()

        return report

    async def _on_tick(self) -> None:
        if self._processing:
            logger.debug("Tick skipped: previous cycle still running")
            structured_log.log_cycle(CycleAction.SKIPPED.value)
            return
        await self.run_cycle()

    def _quality_filter(self, candidates: Sequence[WorkItem]) -> list[WorkItem]:
        accepted: list[WorkItem] = []
        for item in candidates:
            if not item.transcript:
                continue
            decision = self._quality_gate(item.transcript)
            if not decision.allow:
                logger.info("Call %s rejected: %s", item.id, decision.reason)
                continue
            accepted.append(item)
        return accepted

    def _retry_policy_for(self, config: WorkerConfig) -> RetryPolicy:
        return self.processor.retry_policy.model_copy(update={"max_attempts": config.max_retries})

    def _record(self, outcome: Optional[BatchOutcome], report: CycleReport) -> None:
        if outcome is not None:
            self.stats.total_processed += outcome.total
            self.stats.successful += outcome.success_count
            self.stats.failed += outcome.failure_count
            report.processed = outcome.total
            report.successful = outcome.success_count
            report.failed = outcome.failure_count
        self.stats.last_run = report.finished_at

        action = CycleAction.ERROR if report.error else CycleAction.DONE
        structured_log.log_cycle(
            action.value,
            candidates=report.candidates,
            rejected_by_quality=report.rejected_by_quality,
            processed=report.processed,
            successful=report.successful,
            failed=report.failed,
            error=report.error,
        )
        logger.info(
            "Cycle finished. Totals: %d succeeded, %d failed",
            self.stats.successful,
            self.stats.failed,
        )

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def _read_enabled_flag(self) -> bool:
        raw: Any = None
        try:
            raw = await self.settings_store.get_setting(ENABLED_FLAG_KEY)
        except Exception as e:
            logger.warning("Could not read %s, treating as disabled: %s", ENABLED_FLAG_KEY, e)
        enabled = parse_enabled_flag(raw)
        if self.local_development and not enabled:
            logger.info("Local development: enabling analysis worker (raw flag: %r)", raw)
            return True
        return enabled

    async def load_persisted_config(self) -> None:
        """Merge the stored config blob into the active config, if one is stored."""
        try:
            raw = await self.settings_store.get_setting(WORKER_CONFIG_KEY)
        except Exception as e:
            logger.warning("Could not read persisted worker config: %s", e)
            return
        if not raw:
            return
        try:
            data = json.loads(raw) if isinstance(raw, str) else dict(raw)
            merged = {**self.config.model_dump(), **data}
            self.config = WorkerConfig.model_validate(merged)
        except (ValueError, TypeError) as e:
            logger.warning("Ignoring malformed persisted worker config: %s", e)

    @staticmethod
    def _log_progress(position: int, total: int, label: str) -> None:
        logger.debug("Analyzing %d/%d: %s", position, total, label)
