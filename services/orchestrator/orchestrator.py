import asyncio
import base64
import random
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
)

from services.orchestrator.client import SentimentFunctionClient
from services.orchestrator.exceptions import AnalysisError, EmptyInput, RateLimited
from services.orchestrator.intake import check_text_size, validate_audio
from services.orchestrator.metrics import BATCH_ITEM_COUNT, RETRY_COUNT
from services.orchestrator.normalize import (
    normalize_text_payload,
    normalize_voice_payload,
)
from services.orchestrator.retry import (
    BackoffPolicy,
    RateLimitCooldown,
    Sleep,
    retry_with_backoff,
)
from services.orchestrator.schemas import AnalysisResult, BatchProgress
from services.orchestrator.settings import settings
from shared.logger import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[float], None]

# Process-wide cooldown shared by orchestrators built without their own
_shared_cooldown: Optional[RateLimitCooldown] = None


def get_shared_cooldown() -> RateLimitCooldown:
    global _shared_cooldown
    if _shared_cooldown is None:
        _shared_cooldown = RateLimitCooldown(window=settings.retry.cooldown_seconds)
    return _shared_cooldown


def default_policy() -> BackoffPolicy:
    return BackoffPolicy(
        max_retries=settings.retry.max_retries,
        base_delay=settings.retry.base_delay,
        max_delay=settings.retry.max_delay,
        jitter=settings.retry.jitter,
    )


def is_rate_limited(error: Exception) -> bool:
    return isinstance(error, RateLimited)


class AnalysisOrchestrator:
    """
    Turns text or audio units into AnalysisResult objects through the hosted
    classification functions.

    Rate-limited calls push the shared cooldown deadline forward and are
    retried on an exponential backoff schedule. Every other error surfaces
    immediately. Batches run strictly one item at a time.
    """

    def __init__(
        self,
        client: SentimentFunctionClient,
        cooldown: Optional[RateLimitCooldown] = None,
        policy: Optional[BackoffPolicy] = None,
        pacing: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random = random,
        max_text_bytes: Optional[int] = None,
        max_audio_bytes: Optional[int] = None,
    ):
        self.client = client
        self.cooldown = cooldown if cooldown is not None else get_shared_cooldown()
        self.policy = policy if policy is not None else default_policy()
        self.pacing = settings.batch_pacing_seconds if pacing is None else pacing
        self.max_text_bytes = (
            settings.max_text_bytes if max_text_bytes is None else max_text_bytes
        )
        self.max_audio_bytes = (
            settings.max_audio_bytes if max_audio_bytes is None else max_audio_bytes
        )
        self._sleep = sleep
        self._rng = rng

    async def _call_with_retry(
        self, function: str, call: Callable[[], Awaitable[Dict[str, Any]]]
    ) -> Dict[str, Any]:
        async def attempt() -> Dict[str, Any]:
            await self.cooldown.wait_if_cooling_down()
            try:
                return await call()
            except RateLimited:
                deadline = self.cooldown.trigger()
                logger.warning(
                    "Rate limited by analysis service",
                    function=function,
                    cooldown=self.cooldown.window,
                    deadline=round(deadline, 3),
                )
                raise

        def on_retry(attempt_number: int, delay: float, error: Exception) -> None:
            RETRY_COUNT.labels(function=function).inc()

        return await retry_with_backoff(
            attempt,
            is_rate_limited,
            policy=self.policy,
            sleep=self._sleep,
            rng=self._rng,
            on_retry=on_retry,
        )

    async def analyze_one(self, text: str) -> AnalysisResult:
        """Analyze one text unit"""
        if not isinstance(text, str) or not text.strip():
            raise EmptyInput("Text is required")
        check_text_size(text, self.max_text_bytes)

        logger.info("Analyzing text", text_length=len(text))
        payload = await self._call_with_retry(
            self.client.config.text_function, lambda: self.client.analyze_text(text)
        )
        result = normalize_text_payload(text, payload)

        logger.info(
            "Text analysis complete",
            result_id=result.id,
            sentiment=result.sentiment,
            confidence=round(result.confidence, 3),
            keywords=len(result.keywords),
        )
        return result

    async def analyze_voice(
        self, audio: bytes, mime_type: Optional[str], filename: Optional[str] = None
    ) -> AnalysisResult:
        """Analyze one audio recording"""
        mime_type = validate_audio(filename, mime_type, len(audio), self.max_audio_bytes)
        encoded = base64.b64encode(audio).decode("ascii")

        logger.info(
            "Analyzing audio", filename=filename, mime_type=mime_type, size=len(audio)
        )
        payload = await self._call_with_retry(
            self.client.config.voice_function,
            lambda: self.client.analyze_voice(encoded, mime_type),
        )
        result = normalize_voice_payload(payload)

        logger.info(
            "Voice analysis complete",
            result_id=result.id,
            sentiment=result.sentiment,
            detected_tone=result.voice.detected_tone if result.voice else None,
        )
        return result

    async def iter_batch(
        self, texts: Sequence[str]
    ) -> AsyncIterator[Tuple[BatchProgress, Optional[AnalysisResult]]]:
        """
        Analyze `texts` in order, yielding a progress snapshot per item.

        The second element is None when that item failed. Failures are logged
        and never stop the batch.
        """
        total = len(texts)
        for index, text in enumerate(texts):
            result: Optional[AnalysisResult] = None
            try:
                result = await self.analyze_one(text)
                BATCH_ITEM_COUNT.labels(outcome="success").inc()
            except AnalysisError as e:
                BATCH_ITEM_COUNT.labels(outcome="failed").inc()
                logger.warning(
                    "Batch item failed, skipping",
                    index=index,
                    total=total,
                    error=e.message,
                    error_type=type(e).__name__,
                )
            except Exception as e:
                BATCH_ITEM_COUNT.labels(outcome="failed").inc()
                logger.error(
                    "Unexpected error in batch item, skipping",
                    index=index,
                    total=total,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

            yield BatchProgress(current=index + 1, total=total), result

            if index < total - 1 and self.pacing > 0:
                await self._sleep(self.pacing)

    async def analyze_batch(
        self, texts: Sequence[str], on_progress: Optional[ProgressCallback] = None
    ) -> List[AnalysisResult]:
        """Analyze `texts` sequentially, returning the successes in input order"""
        logger.info("Batch analysis started", total=len(texts))

        results: List[AnalysisResult] = []
        async for progress, result in self.iter_batch(texts):
            if result is not None:
                results.append(result)
            if on_progress is not None:
                on_progress(progress.percentage)

        logger.info(
            "Batch analysis completed",
            total=len(texts),
            succeeded=len(results),
            failed=len(texts) - len(results),
        )
        return results
