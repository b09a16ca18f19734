"""
Normalization of raw classification payloads into AnalysisResult objects.

The hosted model is asked for a fixed shape but may omit fields or return
out-of-range numbers. Everything is clamped and defaulted here so that the
rest of the service can rely on the AnalysisResult invariants.
"""

import math
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from services.orchestrator.exceptions import InvalidResponse
from services.orchestrator.schemas import (
    MAX_KEYWORDS,
    SENTIMENT_LABELS,
    AnalysisResult,
    Keyword,
    SentimentScoreSet,
    VoiceAnalysis,
)

DEFAULT_SENTIMENT = "neutral"
DEFAULT_CONFIDENCE = 0.5
DEFAULT_CLASS_SCORE = 1 / 3
DEFAULT_KEYWORD_WEIGHT = 0.5
DEFAULT_TEXT_EXPLANATION = "Sentiment analysis completed."
DEFAULT_VOICE_EXPLANATION = "Voice sentiment analysis completed."


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return float(value)


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(high, max(low, value))


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def normalize_scores(
    raw_scores: Any, sentiment: str, confidence: Any
) -> SentimentScoreSet:
    """Clamp per-class scores, filling gaps"""
    if isinstance(raw_scores, dict):
        values = {}
        for label in SENTIMENT_LABELS:
            score = _number(raw_scores.get(label))
            values[label] = _clamp(DEFAULT_CLASS_SCORE if score is None else score)
        return SentimentScoreSet(**values)

    # No score object at all: spread the reported confidence
    reported = _number(confidence)
    dominant = _clamp(DEFAULT_CONFIDENCE if reported is None else reported)
    rest = (1.0 - dominant) / 2
    values = {label: rest for label in SENTIMENT_LABELS}
    values[sentiment] = dominant
    return SentimentScoreSet(**values)


def resolve_sentiment(reported: str, scores: SentimentScoreSet) -> str:
    """Keep the reported label unless another class scores strictly higher"""
    best = max(SENTIMENT_LABELS, key=scores.score_for)
    if scores.score_for(best) > scores.score_for(reported):
        return best
    return reported


def normalize_keywords(raw_keywords: Any) -> List[Keyword]:
    if not isinstance(raw_keywords, list):
        return []

    keywords: List[Keyword] = []
    for item in raw_keywords:
        if not isinstance(item, dict):
            continue
        word = item.get("word")
        if not isinstance(word, str) or not word.strip():
            continue

        influence = item.get("influence")
        weight = _number(item.get("weight"))
        contribution = _number(
            item.get("percentageContribution", item.get("percentage_contribution"))
        )
        keywords.append(
            Keyword(
                word=word.strip(),
                influence=influence if influence in SENTIMENT_LABELS else "neutral",
                weight=_clamp(DEFAULT_KEYWORD_WEIGHT if weight is None else weight),
                percentage_contribution=_clamp(
                    0.0 if contribution is None else contribution, 0.0, 100.0
                ),
            )
        )
        if len(keywords) == MAX_KEYWORDS:
            break
    return keywords


def normalize_voice_analysis(payload: Dict[str, Any]) -> VoiceAnalysis:
    raw = payload.get("voiceAnalysis")
    if not isinstance(raw, dict):
        raw = {}
    indicators = raw.get("emotionalIndicators")
    if not isinstance(indicators, list):
        indicators = []
    return VoiceAnalysis(
        transcription=_text(payload.get("transcription"), ""),
        detected_tone=_text(raw.get("detectedTone"), "neutral"),
        emotional_indicators=[str(i) for i in indicators if str(i).strip()],
        speaking_style=_text(raw.get("speakingStyle"), "normal"),
    )


def _check_payload(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise InvalidResponse("Analysis payload is not an object")
    if "sentiment" not in payload and "scores" not in payload:
        raise InvalidResponse("Analysis payload is missing sentiment and scores")
    return payload


def _build_result(
    text: str,
    payload: Dict[str, Any],
    default_explanation: str,
    voice: Optional[VoiceAnalysis] = None,
) -> AnalysisResult:
    reported = payload.get("sentiment")
    if reported not in SENTIMENT_LABELS:
        reported = DEFAULT_SENTIMENT

    scores = normalize_scores(payload.get("scores"), reported, payload.get("confidence"))
    sentiment = resolve_sentiment(reported, scores)

    return AnalysisResult(
        id=str(uuid.uuid4()),
        text=text,
        sentiment=sentiment,
        confidence=scores.score_for(sentiment),
        scores=scores,
        keywords=normalize_keywords(payload.get("keywords")),
        explanation=_text(payload.get("explanation"), default_explanation),
        timestamp=datetime.now(timezone.utc),
        voice=voice,
    )


def normalize_text_payload(text: str, payload: Any) -> AnalysisResult:
    """Build a result for `text` from an analyze-sentiment payload"""
    payload = _check_payload(payload)
    return _build_result(text, payload, DEFAULT_TEXT_EXPLANATION)


def normalize_voice_payload(payload: Any) -> AnalysisResult:
    """Build a result from an analyze-voice-sentiment payload"""
    payload = _check_payload(payload)
    voice = normalize_voice_analysis(payload)
    return _build_result(
        voice.transcription, payload, DEFAULT_VOICE_EXPLANATION, voice=voice
    )
