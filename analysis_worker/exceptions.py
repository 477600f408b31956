"""
Custom exceptions for the analysis worker.

Errors are tagged where they are produced (store adapters, the scoring
client) so retry decisions do not depend on message text.
"""


class AnalysisWorkerError(Exception):
    """Base exception for analysis worker errors."""

    pass


class RetryableError(AnalysisWorkerError):
    """Raised for transient failures: timeouts, dropped connections, 429 and 5xx."""

    pass


class FatalError(AnalysisWorkerError):
    """Raised for failures that will not go away by trying again."""

    pass


class ValidationError(FatalError):
    """Raised when a scoring result is unusable (for example, no grade)."""

    pass


class StoreError(AnalysisWorkerError):
    """Raised when the call store or settings store cannot be read or written."""

    pass


class ConfigError(AnalysisWorkerError):
    """Raised when settings cannot be loaded or validated."""

    pass
