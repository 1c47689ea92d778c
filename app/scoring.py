"""Keyword scoring engine.

``analyze`` lower-cases the input and, for every category, measures the share
of its keywords that occur as plain substrings. The share is the category's
match ratio; confidence is the ratio as a percentage and severity follows the
fixed 0.3 / 0.6 cutoffs. The overall verdict is driven by the single highest
scoring category.

Matching is literal substring containment, so a short keyword inside an
unrelated word still counts ("die" in "diet").
"""

from __future__ import annotations

from datetime import datetime, timezone
from time import perf_counter
from typing import Iterable, Sequence

from app.categories import CATEGORIES, CategoryDefinition
from app.models import AnalysisResult, CategoryVerdict, Severity

WARNING_THRESHOLD = 0.3
VIOLATION_THRESHOLD = 0.6


def severity_for_ratio(ratio: float) -> Severity:
    if ratio > VIOLATION_THRESHOLD:
        return "violation"
    if ratio > WARNING_THRESHOLD:
        return "warning"
    return "safe"


def matched_keywords(normalized: str, keywords: Iterable[str]) -> tuple[str, ...]:
    return tuple(keyword for keyword in keywords if keyword in normalized)


def score_category(normalized: str, definition: CategoryDefinition) -> CategoryVerdict:
    found = matched_keywords(normalized, definition.keywords)
    ratio = min(len(found) / len(definition.keywords), 1.0) if definition.keywords else 0.0
    return CategoryVerdict(
        name=definition.name,
        description=definition.description,
        confidence=ratio * 100,
        detected=ratio > WARNING_THRESHOLD,
        severity=severity_for_ratio(ratio),
        match_ratio=ratio,
        matched_keywords=found,
    )


def analyze(text: str, categories: Sequence[CategoryDefinition] = CATEGORIES) -> AnalysisResult:
    start = perf_counter()
    normalized = text.lower()

    verdicts = tuple(score_category(normalized, definition) for definition in categories)

    # overall severity is taken from the ratio; 0.3 * 100 is 30.000000000000004
    top_ratio = max((v.match_ratio for v in verdicts), default=0.0)
    overall_score = max((v.confidence for v in verdicts), default=0.0)

    duration_ms = (perf_counter() - start) * 1000.0
    return AnalysisResult(
        text=text,
        overall_score=overall_score,
        overall_severity=severity_for_ratio(top_ratio),
        categories=verdicts,
        timestamp=datetime.now(timezone.utc),
        processing_time_ms=duration_ms,
    )
