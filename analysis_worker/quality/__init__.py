"""Transcript quality checks."""

from analysis_worker.quality.transcript_validator import evaluate_transcript, should_analyze

__all__ = ["evaluate_transcript", "should_analyze"]
