"""Worker Orchestration Module."""

from .batch_processor import BatchProcessor
from .eligibility import EligibilityResolver
from .scheduler import AnalysisScheduler
from .timers import AsyncioTimer, RepeatingTimer

__all__ = [
    "AnalysisScheduler",
    "AsyncioTimer",
    "BatchProcessor",
    "EligibilityResolver",
    "RepeatingTimer",
]
