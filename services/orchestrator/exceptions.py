"""
Errors surfaced by the analysis orchestrator.

- ValidationError    : rejected client-side, before any network call
- RateLimited        : endpoint kept rate limiting after every retry
- QuotaExhausted     : endpoint reported exhausted AI credits
- ServiceUnavailable : transport failure or non rate-limit HTTP error
- InvalidResponse    : malformed or incomplete payload from the endpoint
- ResultNotFound     : unknown id in the analysis history
"""

from typing import Optional

from fastapi import status


class AnalysisError(Exception):
    """Base class for every orchestrator error."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Analysis failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AnalysisError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class EmptyInput(ValidationError):
    default_message = "Text is required"


class PayloadTooLarge(ValidationError):
    status_code = 413
    default_message = "Payload is too large"


class UnsupportedFormat(ValidationError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    default_message = "Unsupported file format"


class RateLimited(AnalysisError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Rate limit exceeded. Please wait a moment and try again."


class QuotaExhausted(AnalysisError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_message = "AI credits exhausted. Please add more credits."


class ServiceUnavailable(AnalysisError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Analysis service is unavailable. Please try again later."


class InvalidResponse(AnalysisError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Invalid response from analysis service"


class ResultNotFound(AnalysisError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Result not found"
