from typing import Dict, Iterable, List, Optional

from services.orchestrator.exceptions import ResultNotFound
from services.orchestrator.schemas import AnalysisResult, BatchSummary


class AnalysisHistory:
    """In-memory analysis history, newest first"""

    def __init__(self):
        self._results: List[AnalysisResult] = []
        self._index: Dict[str, AnalysisResult] = {}

    def __len__(self) -> int:
        return len(self._results)

    def add(self, result: AnalysisResult) -> AnalysisResult:
        self._results.insert(0, result)
        self._index[result.id] = result
        return result

    def extend(self, results: Iterable[AnalysisResult]) -> None:
        """Prepend a batch, keeping its internal order"""
        batch = list(results)
        self._results[:0] = batch
        for result in batch:
            self._index[result.id] = result

    def list(self) -> List[AnalysisResult]:
        return list(self._results)

    def get(self, result_id: str) -> Optional[AnalysisResult]:
        return self._index.get(result_id)

    def delete(self, result_id: str) -> AnalysisResult:
        result = self._index.pop(result_id, None)
        if result is None:
            raise ResultNotFound(f"Result not found: {result_id}")
        self._results = [r for r in self._results if r.id != result_id]
        return result

    def clear(self) -> int:
        count = len(self._results)
        self._results = []
        self._index = {}
        return count


def summarize(results: Iterable[AnalysisResult]) -> BatchSummary:
    results = list(results)
    total = len(results)
    average = sum(r.confidence for r in results) / total if total else 0.0
    return BatchSummary(
        total=total,
        positive=sum(1 for r in results if r.sentiment == "positive"),
        negative=sum(1 for r in results if r.sentiment == "negative"),
        neutral=sum(1 for r in results if r.sentiment == "neutral"),
        average_confidence=average,
    )
