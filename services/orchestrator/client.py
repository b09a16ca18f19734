import re
import time
from typing import Any, Dict, Optional

import httpx

from services.orchestrator.exceptions import (
    AnalysisError,
    InvalidResponse,
    QuotaExhausted,
    RateLimited,
    ServiceUnavailable,
)
from services.orchestrator.metrics import FUNCTION_CALL_COUNT, FUNCTION_CALL_DURATION
from services.orchestrator.settings import EndpointConfig
from shared.logger import get_logger

logger = get_logger(__name__)

_RATE_LIMIT_PATTERN = re.compile(r"rate[\s_-]?limit|too many requests", re.IGNORECASE)
_QUOTA_PATTERN = re.compile(
    r"credits?\b.*\bexhausted|payment required|quota", re.IGNORECASE
)


def classify_error_message(message: str) -> Optional[type]:
    """Map an application-level error message to an error class"""
    if _RATE_LIMIT_PATTERN.search(message):
        return RateLimited
    if _QUOTA_PATTERN.search(message):
        return QuotaExhausted
    return None


def _error_field(body: Any) -> str:
    if isinstance(body, dict):
        error = body.get("error")
        if error:
            return str(error)
    return ""


class SentimentFunctionClient:
    """Client for the hosted analyze-sentiment functions"""

    def __init__(self, http_client: httpx.AsyncClient, config: EndpointConfig):
        self.http_client = http_client
        self.config = config

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
            headers["apikey"] = self.config.api_key
        return headers

    def function_url(self, function: str) -> str:
        return f"{self.config.functions_url.rstrip('/')}/{function.lstrip('/')}"

    async def analyze_text(self, text: str) -> Dict[str, Any]:
        return await self.invoke(self.config.text_function, {"text": text})

    async def analyze_voice(self, audio_b64: str, mime_type: str) -> Dict[str, Any]:
        return await self.invoke(
            self.config.voice_function, {"audio": audio_b64, "mimeType": mime_type}
        )

    async def invoke(self, function: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST `payload` to a function and return its JSON object body"""
        url = self.function_url(function)
        start_time = time.time()
        outcome = "success"

        logger.debug("Calling analysis function", function=function, url=url)

        try:
            try:
                response = await self.http_client.post(
                    url,
                    json=payload,
                    headers=self._headers(),
                    timeout=self.config.timeout,
                )
            except httpx.TimeoutException as e:
                raise ServiceUnavailable(f"Analysis service timeout: {function}") from e
            except httpx.HTTPError as e:
                raise ServiceUnavailable(
                    f"Analysis service unreachable: {function} ({e})"
                ) from e

            return self._parse_response(function, response)

        except AnalysisError as e:
            outcome = type(e).__name__
            logger.warning(
                "Analysis function call failed",
                function=function,
                error=e.message,
                error_type=outcome,
            )
            raise

        finally:
            duration = time.time() - start_time
            FUNCTION_CALL_COUNT.labels(function=function, outcome=outcome).inc()
            FUNCTION_CALL_DURATION.labels(function=function).observe(duration)
            logger.debug(
                "Analysis function call finished",
                function=function,
                outcome=outcome,
                duration=f"{duration:.3f}s",
            )

    def _parse_response(self, function: str, response: httpx.Response) -> Dict[str, Any]:
        try:
            body: Any = response.json()
        except ValueError:
            body = None

        message = _error_field(body)
        status_code = response.status_code

        if status_code == 429:
            raise RateLimited(message or None)
        if status_code == 402:
            raise QuotaExhausted(message or None)

        if not response.is_success:
            detail = message or response.text or response.reason_phrase
            error_class = classify_error_message(detail) or ServiceUnavailable
            raise error_class(f"Service error ({status_code}): {detail}")

        if body is None:
            raise InvalidResponse(f"Non-JSON response from {function}")
        if not isinstance(body, dict):
            raise InvalidResponse(
                f"Expected a JSON object from {function}, got {type(body).__name__}"
            )
        if message:
            error_class = classify_error_message(message) or ServiceUnavailable
            raise error_class(message)

        return body
