from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["safe", "warning", "violation"]


class AnalyzeRequest(BaseModel):
    text: str = Field(default="", max_length=20000)


class CategoryVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    confidence: float = Field(ge=0.0, le=100.0)
    detected: bool
    severity: Severity
    match_ratio: float = Field(ge=0.0, le=1.0)
    matched_keywords: tuple[str, ...] = ()


class AnalysisResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    overall_score: float = Field(ge=0.0, le=100.0)
    overall_severity: Severity
    categories: tuple[CategoryVerdict, ...]
    timestamp: datetime
    processing_time_ms: float = Field(ge=0.0)


class CategoryInfo(BaseModel):
    name: str
    description: str
    keywords: list[str]


class DisplayStatistics(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_analyzed: int
    violations_detected: int
    accuracy_rate: float
    avg_response_time_ms: float
    illustrative: bool = True
