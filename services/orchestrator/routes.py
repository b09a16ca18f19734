from typing import List

from fastapi import APIRouter, Depends, File, Response, UploadFile

from services.orchestrator.exceptions import ResultNotFound
from services.orchestrator.export import to_csv, to_json
from services.orchestrator.history import AnalysisHistory, summarize
from services.orchestrator.intake import check_file_size, parse_text_file
from services.orchestrator.orchestrator import AnalysisOrchestrator
from services.orchestrator.schemas import (
    AnalysisResult,
    BatchInput,
    BatchResponse,
    BatchSummary,
    TextInput,
)
from services.orchestrator.utils import get_history, get_logger, get_orchestrator

logger = get_logger()
router = APIRouter(prefix="/api")


async def _run_batch(
    texts: List[str],
    orchestrator: AnalysisOrchestrator,
    history: AnalysisHistory,
) -> BatchResponse:
    results = await orchestrator.analyze_batch(texts)
    history.extend(results)
    return BatchResponse(
        results=results,
        failed=len(texts) - len(results),
        summary=summarize(results),
    )


@router.post("/analyze", response_model=AnalysisResult)
async def analyze_text(
    request: TextInput,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    history: AnalysisHistory = Depends(get_history),
):
    """Analyze the sentiment of a single text"""
    result = await orchestrator.analyze_one(request.text)
    return history.add(result)


@router.post("/analyze/batch", response_model=BatchResponse)
async def analyze_batch(
    request: BatchInput,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    history: AnalysisHistory = Depends(get_history),
):
    """Analyze texts one after another; failed items are skipped"""
    return await _run_batch(request.texts, orchestrator, history)


@router.post("/analyze/file", response_model=BatchResponse)
async def analyze_file(
    file: UploadFile = File(...),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    history: AnalysisHistory = Depends(get_history),
):
    """Analyze every entry of an uploaded .txt, .csv or .json file"""
    check_file_size(file.size, orchestrator.max_text_bytes)
    contents = await file.read()
    texts = parse_text_file(
        file.filename or "", contents, max_bytes=orchestrator.max_text_bytes
    )
    logger.info("Text file parsed", filename=file.filename, entries=len(texts))
    return await _run_batch(texts, orchestrator, history)


@router.post("/analyze/voice", response_model=AnalysisResult)
async def analyze_voice(
    file: UploadFile = File(...),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    history: AnalysisHistory = Depends(get_history),
):
    """Transcribe an audio recording and analyze its sentiment"""
    check_file_size(file.size, orchestrator.max_audio_bytes)
    contents = await file.read()
    result = await orchestrator.analyze_voice(
        contents, file.content_type, filename=file.filename
    )
    return history.add(result)


@router.get("/history", response_model=List[AnalysisResult])
async def list_history(history: AnalysisHistory = Depends(get_history)):
    return history.list()


@router.get("/history/summary", response_model=BatchSummary)
async def history_summary(history: AnalysisHistory = Depends(get_history)):
    return summarize(history.list())


@router.get("/history/{result_id}", response_model=AnalysisResult)
async def get_result(result_id: str, history: AnalysisHistory = Depends(get_history)):
    result = history.get(result_id)
    if result is None:
        raise ResultNotFound(f"Result not found: {result_id}")
    return result


@router.delete("/history/{result_id}")
async def delete_result(
    result_id: str, history: AnalysisHistory = Depends(get_history)
):
    history.delete(result_id)
    return {"deleted": result_id}


@router.delete("/history")
async def clear_history(history: AnalysisHistory = Depends(get_history)):
    return {"deleted": history.clear()}


@router.get("/export/json")
async def export_json(history: AnalysisHistory = Depends(get_history)):
    return Response(
        content=to_json(history.list()),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="sentiment-analysis.json"'},
    )


@router.get("/export/csv")
async def export_csv(history: AnalysisHistory = Depends(get_history)):
    return Response(
        content=to_csv(history.list()),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="sentiment-analysis.csv"'},
    )
