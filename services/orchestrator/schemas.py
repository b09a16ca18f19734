from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SentimentLabel = Literal["positive", "negative", "neutral"]
SENTIMENT_LABELS = ("positive", "negative", "neutral")

MAX_KEYWORDS = 8


class SentimentScoreSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    positive: float = Field(..., ge=0.0, le=1.0)
    negative: float = Field(..., ge=0.0, le=1.0)
    neutral: float = Field(..., ge=0.0, le=1.0)

    def score_for(self, label: str) -> float:
        return getattr(self, label)


class Keyword(BaseModel):
    model_config = ConfigDict(frozen=True)

    word: str
    influence: SentimentLabel = "neutral"
    weight: float = Field(0.5, ge=0.0, le=1.0)
    percentage_contribution: float = Field(0.0, ge=0.0, le=100.0)


class VoiceAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    transcription: str = ""
    detected_tone: str = "neutral"
    emotional_indicators: List[str] = Field(default_factory=list)
    speaking_style: str = "normal"


class AnalysisResult(BaseModel):
    """One analyzed unit. Never mutated once created."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    sentiment: SentimentLabel
    confidence: float = Field(..., ge=0.0, le=1.0)
    scores: SentimentScoreSet
    keywords: List[Keyword] = Field(default_factory=list, max_length=MAX_KEYWORDS)
    explanation: str
    timestamp: datetime
    voice: Optional[VoiceAnalysis] = None


class BatchProgress(BaseModel):
    current: int
    total: int

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 100.0
        return self.current / self.total * 100


class BatchSummary(BaseModel):
    total: int
    positive: int
    negative: int
    neutral: int
    average_confidence: float


# Request/Response Models
class TextInput(BaseModel):
    text: str = Field(..., min_length=1, description="Text to analyze")


class BatchInput(BaseModel):
    texts: List[str] = Field(..., min_length=1, description="Texts to analyze in order")


class BatchResponse(BaseModel):
    results: List[AnalysisResult]
    failed: int
    summary: BatchSummary
