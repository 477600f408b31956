"""Run statistics and status snapshots."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from analysis_worker.models.config import WorkerConfig


class RunStats(BaseModel):
    total_processed: int = 0
    successful: int = 0
    failed: int = 0
    last_run: Optional[datetime] = None


class RetryStats(BaseModel):
    total_retries: int = 0
    successful_retries: int = 0
    failed_retries: int = 0
    average_attempts: float = 0.0


class WorkerStatus(RunStats):
    is_running: bool = False
    is_processing: bool = False
    config: WorkerConfig
    retry: RetryStats = Field(default_factory=RetryStats)


class CycleReport(BaseModel):
    """What one scheduler cycle did."""

    candidates: int = 0
    rejected_by_quality: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0
    error: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None


class EligibilityStats(BaseModel):
    total_calls: int = 0
    calls_answered: int = 0
    calls_with_transcription: int = 0
    calls_over_min_duration: int = 0
    calls_with_min_segments: int = 0
    calls_eligible: int = 0
    calls_already_analyzed: int = 0
    calls_needing_analysis: int = 0
    calls_with_score: int = 0
