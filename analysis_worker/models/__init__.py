"""Model exports for the worker's component boundaries."""

from analysis_worker.models.calls import (
    BatchOutcome,
    CallRow,
    CandidatePage,
    ItemResult,
    ScoreResult,
    WorkItem,
    parse_formatted_duration,
)
from analysis_worker.models.config import (
    RETRYABLE_ERROR_SIGNATURES,
    EligibilityCriteria,
    LoggingConfig,
    PaginationConfig,
    RetryPolicy,
    RetrySettings,
    ScoringConfig,
    SettingsConfig,
    StoreConfig,
    WorkerConfig,
)
from analysis_worker.models.enums import AnalysisStatus, CycleAction, LanguageQuality
from analysis_worker.models.quality import AnalyzeDecision, QualityReport
from analysis_worker.models.stats import (
    CycleReport,
    EligibilityStats,
    RetryStats,
    RunStats,
    WorkerStatus,
)

__all__ = [
    "AnalysisStatus",
    "AnalyzeDecision",
    "BatchOutcome",
    "CallRow",
    "CandidatePage",
    "CycleAction",
    "CycleReport",
    "EligibilityCriteria",
    "EligibilityStats",
    "ItemResult",
    "LanguageQuality",
    "LoggingConfig",
    "PaginationConfig",
    "QualityReport",
    "RETRYABLE_ERROR_SIGNATURES",
    "RetryPolicy",
    "RetrySettings",
    "RetryStats",
    "RunStats",
    "ScoreResult",
    "ScoringConfig",
    "SettingsConfig",
    "StoreConfig",
    "WorkItem",
    "WorkerConfig",
    "WorkerStatus",
    "parse_formatted_duration",
]
