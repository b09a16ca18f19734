import csv
import io
import json
from typing import Any, Dict, Iterable, List

from services.orchestrator.schemas import AnalysisResult

CSV_HEADERS = [
    "Text",
    "Sentiment",
    "Confidence",
    "Positive Score",
    "Negative Score",
    "Neutral Score",
    "Keywords",
    "Explanation",
]


def _percent(value: float) -> str:
    return f"{value * 100:.1f}"


def to_records(results: Iterable[AnalysisResult]) -> List[Dict[str, Any]]:
    return [
        {
            "text": r.text,
            "sentiment": r.sentiment,
            "confidence": r.confidence,
            "scores": r.scores.model_dump(),
            "keywords": [k.word for k in r.keywords],
            "explanation": r.explanation,
            "timestamp": r.timestamp.isoformat(),
        }
        for r in results
    ]


def to_json(results: Iterable[AnalysisResult]) -> str:
    return json.dumps(to_records(results), indent=2, ensure_ascii=False)


def to_csv(results: Iterable[AnalysisResult]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for r in results:
        writer.writerow(
            [
                r.text,
                r.sentiment,
                _percent(r.confidence),
                _percent(r.scores.positive),
                _percent(r.scores.negative),
                _percent(r.scores.neutral),
                ", ".join(k.word for k in r.keywords),
                r.explanation,
            ]
        )
    return buffer.getvalue()
