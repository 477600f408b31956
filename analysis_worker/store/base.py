"""Call store and settings store protocols."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from analysis_worker.models import AnalysisStatus, CandidatePage

ENABLED_FLAG_KEY = "auto_analysis_enabled"
WORKER_CONFIG_KEY = "auto_analysis_config"


class CallStore(Protocol):
    async def list_candidates(
        self,
        filters: Mapping[str, Any] | None,
        limit: int,
        offset: int,
    ) -> CandidatePage:
        """Return one page of call rows plus the store's total row count."""

    async def list_analyzed_ids(self) -> list[dict[str, Any]]:
        """Return ``{"call_id": ..., "final_grade": ...}`` records for analyzed calls."""

    async def update_status(self, call_id: str, status: AnalysisStatus) -> None:
        """Record the analysis outcome on the call."""


class SettingsStore(Protocol):
    async def get_setting(self, key: str) -> Any | None:
        """Return the stored value for key, or None when absent."""

    async def put_setting(self, key: str, value: str) -> None:
        """Insert or replace the value for key."""
