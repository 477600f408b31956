"""Configuration and policy models loaded from YAML and the settings store."""

from __future__ import annotations

from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

RETRYABLE_ERROR_SIGNATURES: Tuple[str, ...] = (
    "timeout",
    "network",
    "ECONNRESET",
    "ENOTFOUND",
    "ETIMEDOUT",
    "429",
    "500",
    "502",
    "503",
    "504",
)


class RetryPolicy(BaseModel):
    """Bounded exponential backoff. Delays are in seconds."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(ge=1, default=3)
    base_delay: float = Field(ge=0.0, default=1.0)
    max_delay: float = Field(ge=0.0, default=10.0)
    backoff_multiplier: float = Field(ge=1.0, default=2.0)
    retryable_errors: Tuple[str, ...] = RETRYABLE_ERROR_SIGNATURES


class EligibilityCriteria(BaseModel):
    model_config = ConfigDict(frozen=True)

    answered_status: str = "normal_clearing"
    min_transcript_chars: int = Field(ge=0, default=100)
    min_segments: int = Field(ge=0, default=10)
    min_duration_seconds: int = Field(ge=0, default=180)


class WorkerConfig(BaseModel):
    """Mutable worker knobs; persisted as a JSON blob in the settings store."""

    enabled: bool = False
    interval: float = Field(gt=0.0, default=30.0, description="Seconds between timer ticks.")
    batch_size: int = Field(ge=1, default=5)
    min_duration: int = Field(ge=0, default=180, description="Minimum call duration in seconds.")
    max_retries: int = Field(ge=1, default=2, description="Attempts per scoring call.")


class PaginationConfig(BaseModel):
    page_size: int = Field(ge=1, default=1000)
    max_pages: int = Field(ge=1, default=50)


class RetrySettings(BaseModel):
    analysis: RetryPolicy = Field(
        default_factory=lambda: RetryPolicy(max_attempts=2, base_delay=3.0, max_delay=5.0)
    )


class StoreConfig(BaseModel):
    db_path: str = "data/calls.db"


class ScoringConfig(BaseModel):
    base_url: str = "http://localhost:8787"
    timeout: Optional[float] = Field(default=120.0, gt=0, description="Per-call bound in seconds; null disables it.")
    verify_ssl: bool = True


class LoggingConfig(BaseModel):
    level: str = "normal"
    log_dir: str = "logs"


class SettingsConfig(BaseModel):
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    eligibility: EligibilityCriteria = Field(default_factory=EligibilityCriteria)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    store: StoreConfig = Field(default_factory=StoreConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
