"""Transcript quality report models."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from analysis_worker.models.enums import LanguageQuality


class QualityReport(BaseModel):
    is_valid: bool
    score: int = Field(ge=0, le=100)
    issues: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    segments: int = 0
    avg_segment_length: int = 0
    contains_dialog: bool = False
    language_quality: LanguageQuality = LanguageQuality.LOW


class AnalyzeDecision(BaseModel):
    allow: bool
    reason: str
