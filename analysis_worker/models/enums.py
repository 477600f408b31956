"""Enum definitions shared across the worker."""

from enum import Enum


class AnalysisStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class LanguageQuality(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CycleAction(str, Enum):
    START = "start"
    DONE = "done"
    ERROR = "error"
    SKIPPED = "skipped"
