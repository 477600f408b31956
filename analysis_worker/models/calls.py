"""Call records read from the store and the projections handed downstream."""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def parse_formatted_duration(value: str | None) -> int | None:
    """Parse an ``HH:MM:SS`` string into seconds.

    Returns None for empty strings, ``00:00:00`` and anything that does not
    split into three integer parts.
    """
    if not value or value.strip() in ("", "00:00:00"):
        return None
    parts = value.strip().split(":")
    if len(parts) != 3:
        return None
    try:
        hours, minutes, seconds = (int(p) for p in parts)
    except ValueError:
        return None
    return hours * 3600 + minutes * 60 + seconds


class CallRow(BaseModel):
    """One call as returned by the store's paginated listing."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    transcription: Optional[str] = None
    duration: Optional[float] = None
    duration_formatted: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("duration_formatted", "duration_formated"),
    )
    status_voip: Optional[str] = None
    ai_status: Optional[str] = None
    enterprise: Optional[str] = None
    person: Optional[str] = None
    agent_id: Optional[str] = None
    sdr: Optional[str] = None
    call_type: Optional[str] = None
    pipeline: Optional[str] = None
    cadence: Optional[str] = None

    def real_duration(self) -> int:
        """Duration in seconds; the formatted field wins over the raw one."""
        formatted = parse_formatted_duration(self.duration_formatted)
        if formatted is not None:
            return formatted
        return int(self.duration or 0)

    def segment_count(self) -> int:
        # Periods are the segment proxy the store-side dashboards use too.
        if not self.transcription:
            return 0
        return len(self.transcription.split("."))


class WorkItem(BaseModel):
    """Projection of an eligible call carrying only what scoring needs."""

    id: str
    transcript: str
    duration: int
    segments: int
    enterprise: Optional[str] = None
    person: Optional[str] = None
    agent_id: Optional[str] = None
    sdr: Optional[str] = None
    call_type: Optional[str] = None
    pipeline: Optional[str] = None
    cadence: Optional[str] = None

    @classmethod
    def from_row(cls, row: CallRow) -> "WorkItem":
        return cls(
            id=row.id,
            transcript=row.transcription or "",
            duration=row.real_duration(),
            segments=row.segment_count(),
            enterprise=row.enterprise,
            person=row.person,
            agent_id=row.agent_id,
            sdr=row.sdr,
            call_type=row.call_type,
            pipeline=row.pipeline,
            cadence=row.cadence,
        )

    @property
    def display_label(self) -> str:
        return self.enterprise or self.person or f"Call {self.id[:8]}"

    @property
    def agent_label(self) -> str:
        return self.agent_id or self.sdr or "SDR"

    @property
    def person_label(self) -> str:
        return self.person or "Client"


class CandidatePage(BaseModel):
    rows: List[dict[str, Any]] = Field(default_factory=list)
    total_count: int = 0


class ScoreResult(BaseModel):
    """Outcome of the external scoring function."""

    model_config = ConfigDict(extra="allow")

    final_grade: Optional[float] = None
    scorecard_used: Optional[str] = None

    @property
    def has_grade(self) -> bool:
        return self.final_grade is not None


class ItemResult(BaseModel):
    call_id: str
    success: bool
    score: Optional[float] = None
    scorecard: Optional[str] = None
    error: Optional[str] = None


class BatchOutcome(BaseModel):
    total: int = 0
    success_count: int = 0
    failure_count: int = 0
    results: List[ItemResult] = Field(default_factory=list)
