"""External scoring function adapters."""

from analysis_worker.scoring.base import ScoringClient
from analysis_worker.scoring.http_client import HttpScoringClient

__all__ = ["HttpScoringClient", "ScoringClient"]
