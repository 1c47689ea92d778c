from __future__ import annotations

import asyncio
import logging

from app.models import AnalysisResult
from app.scoring import analyze

logger = logging.getLogger(__name__)


class AnalysisTimeoutError(Exception):
    """Raised when a delayed analysis does not finish within its timeout."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"analysis did not finish within {timeout_seconds:.2f}s")
        self.timeout_seconds = timeout_seconds


async def _delayed_analyze(text: str, delay_seconds: float) -> AnalysisResult:
    if delay_seconds > 0:
        await asyncio.sleep(delay_seconds)
    return analyze(text)


async def analyze_content(
    text: str,
    delay_seconds: float = 0.0,
    timeout_seconds: float | None = None,
) -> AnalysisResult:
    if timeout_seconds is None:
        result = await _delayed_analyze(text, delay_seconds)
    else:
        try:
            result = await asyncio.wait_for(_delayed_analyze(text, delay_seconds), timeout=timeout_seconds)
        except asyncio.TimeoutError as exc:
            logger.warning("Analysis timed out after %.2fs (delay=%.2fs)", timeout_seconds, delay_seconds)
            raise AnalysisTimeoutError(timeout_seconds) from exc

    logger.debug(
        "Analyzed %d chars: overall=%.1f severity=%s in %.3fms",
        len(text),
        result.overall_score,
        result.overall_severity,
        result.processing_time_ms,
    )
    return result
