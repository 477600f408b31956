"""Lexical quality check for call transcripts.

Scores a transcript 0-100 before it is sent for AI analysis. The score
starts at 100 and loses points for:

- fewer than 5 sentence-like segments (-20)
- average segment shorter than 10 characters (-15)
- little dialog: at most 3 hits across pronouns, courtesy words,
  greetings, question marks and yes/no tokens (-25)
- transcription noise (bracketed tags, ellipses, fillers, 1-2 letter
  tokens) above 10% of the text length (-30) or above 5% (-10)
- fewer than 100 characters (-20)
- no commercial vocabulary at all (-15)

A transcript is valid when the score is at least 60, it has at least 5
segments, dialog was detected and the text is at least 100 characters
long. The lexicons carry the Portuguese vocabulary the calls are
recorded in plus English equivalents.
"""

from __future__ import annotations

import re
from typing import Pattern, Sequence

from analysis_worker.models.enums import LanguageQuality
from analysis_worker.models.quality import AnalyzeDecision, QualityReport

MIN_SEGMENTS = 5
MIN_AVG_SEGMENT_LENGTH = 10
MIN_DIALOG_MATCHES = 3
MIN_LENGTH = 100
VALID_SCORE = 60
LOW_NOISE_RATIO = 0.1
MEDIUM_NOISE_RATIO = 0.05

_SEGMENT_SPLIT = re.compile(r"[.!?]+")

DIALOG_PATTERNS: tuple[Pattern[str], ...] = (
    re.compile(r"\b(eu|você|nós|vocês|i|you|we)\b", re.IGNORECASE),
    re.compile(r"\b(obrigad\w*|por favor|desculp\w*|thank\w*|please|sorry)\b", re.IGNORECASE),
    re.compile(
        r"\b(bom dia|boa tarde|boa noite|good morning|good afternoon|good evening|hello|hi)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\?"),
    re.compile(r"\b(sim|não|talvez|yes|no|maybe)\b", re.IGNORECASE),
)

NOISE_PATTERNS: tuple[Pattern[str], ...] = (
    re.compile(r"\[(inaudível|inaudivel|inaudible)\]", re.IGNORECASE),
    re.compile(r"\[(ruído|ruido|noise)\]", re.IGNORECASE),
    re.compile(r"\.\.\."),
    re.compile(r"\b(ahn|uhm|hmm|um|uh)\b", re.IGNORECASE),
    # Lowercase only: stray syllables, not capitalised words like "I" or "OK".
    re.compile(r"\b[a-z]{1,2}\b"),
)

BUSINESS_PATTERNS: tuple[Pattern[str], ...] = (
    re.compile(
        r"\b(produto|serviço|solução|proposta|orçamento|preço|valor|investimento"
        r"|product|service|solution|proposal|budget|price|pricing|investment)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(empresa|negócio|mercado|cliente|fornecedor"
        r"|company|business|market|customer|client|supplier|vendor)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(reunião|apresentação|demonstração|demo|meeting|presentation|demonstration)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(interesse|necessidade|problema|desafio|interest|need|problem|challenge)\b",
        re.IGNORECASE,
    ),
)


def count_matches(text: str, patterns: Sequence[Pattern[str]]) -> int:
    """Total number of non-overlapping matches across all patterns."""
    return sum(len(pattern.findall(text)) for pattern in patterns)


def split_segments(text: str) -> list[str]:
    return [s for s in _SEGMENT_SPLIT.split(text) if s.strip()]


def evaluate_transcript(text: str | None) -> QualityReport:
    """Score a transcript's suitability for AI analysis. Pure and deterministic."""
    if not text or not text.strip():
        return QualityReport(
            is_valid=False,
            score=0,
            issues=["empty transcript"],
            recommendations=["Check that the audio was transcribed"],
            language_quality=LanguageQuality.LOW,
        )

    issues: list[str] = []
    recommendations: list[str] = []
    score = 100

    segments = split_segments(text)
    segment_count = len(segments)
    avg_segment_length = (
        sum(len(s) for s in segments) / segment_count if segment_count else 0.0
    )

    if segment_count < MIN_SEGMENTS:
        issues.append(f"too few segments (< {MIN_SEGMENTS})")
        recommendations.append("Very short calls can produce inaccurate analysis")
        score -= 20

    if avg_segment_length < MIN_AVG_SEGMENT_LENGTH:
        issues.append("segments too short")
        recommendations.append("May indicate a fragmented transcription")
        score -= 15

    contains_dialog = count_matches(text, DIALOG_PATTERNS) > MIN_DIALOG_MATCHES
    if not contains_dialog:
        issues.append("little dialog detected")
        recommendations.append("Check that both participants were captured")
        score -= 25

    noise_ratio = count_matches(text, NOISE_PATTERNS) / len(text)
    language_quality = LanguageQuality.HIGH
    if noise_ratio > LOW_NOISE_RATIO:
        language_quality = LanguageQuality.LOW
        issues.append("low transcription quality (too much noise)")
        recommendations.append("Consider improving the audio quality")
        score -= 30
    elif noise_ratio > MEDIUM_NOISE_RATIO:
        language_quality = LanguageQuality.MEDIUM
        issues.append("medium transcription quality")
        score -= 10

    if len(text) < MIN_LENGTH:
        issues.append(f"transcript too short (< {MIN_LENGTH} characters)")
        recommendations.append("Very short calls may not carry enough content to analyze")
        score -= 20

    if count_matches(text, BUSINESS_PATTERNS) == 0:
        issues.append("no commercial content detected")
        recommendations.append("Check that this is a sales call")
        score -= 15

    final_score = max(0, min(100, score))
    is_valid = (
        final_score >= VALID_SCORE
        and segment_count >= MIN_SEGMENTS
        and contains_dialog
        and len(text) >= MIN_LENGTH
    )

    return QualityReport(
        is_valid=is_valid,
        score=final_score,
        issues=issues,
        recommendations=recommendations,
        segments=segment_count,
        avg_segment_length=round(avg_segment_length),
        contains_dialog=contains_dialog,
        language_quality=language_quality,
    )


def should_analyze(text: str | None) -> AnalyzeDecision:
    report = evaluate_transcript(text)
    if not report.is_valid:
        return AnalyzeDecision(
            allow=False,
            reason=f"Insufficient quality ({report.score}/100): {', '.join(report.issues)}",
        )
    return AnalyzeDecision(allow=True, reason=f"Adequate quality ({report.score}/100)")
