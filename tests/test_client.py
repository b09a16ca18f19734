import json

import httpx
import pytest
from conftest import FUNCTIONS_URL, run, sentiment_payload

from services.orchestrator.client import SentimentFunctionClient, classify_error_message
from services.orchestrator.exceptions import (
    InvalidResponse,
    QuotaExhausted,
    RateLimited,
    ServiceUnavailable,
)
from services.orchestrator.settings import EndpointConfig


def make_client(handler, api_key: str = "") -> SentimentFunctionClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SentimentFunctionClient(
        http_client, EndpointConfig(functions_url=FUNCTIONS_URL, api_key=api_key)
    )


def respond(status_code: int, **kwargs):
    return lambda request: httpx.Response(status_code, **kwargs)


def test_text_request_shape_and_headers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = request.content
        return httpx.Response(200, json=sentiment_payload())

    client = make_client(handler, api_key="anon-key")
    body = run(client.analyze_text("hello there"))

    assert body["sentiment"] == "positive"
    assert seen["url"] == f"{FUNCTIONS_URL}/analyze-sentiment"
    assert seen["headers"]["authorization"] == "Bearer anon-key"
    assert seen["headers"]["apikey"] == "anon-key"
    assert json.loads(seen["body"]) == {"text": "hello there"}


def test_voice_request_targets_voice_function():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = request.read()
        return httpx.Response(200, json=sentiment_payload(transcription="hi"))

    client = make_client(handler)
    run(client.analyze_voice("aGVsbG8=", "audio/wav"))

    assert seen["url"] == f"{FUNCTIONS_URL}/analyze-voice-sentiment"
    assert b"aGVsbG8=" in seen["body"]
    assert b"audio/wav" in seen["body"]


def test_no_auth_headers_without_api_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["headers"] = request.headers
        return httpx.Response(200, json=sentiment_payload())

    run(make_client(handler).analyze_text("x"))

    assert "authorization" not in seen["headers"]


@pytest.mark.parametrize(
    "status_code, body, expected",
    [
        (429, {"error": "Rate limit exceeded. Please try again later."}, RateLimited),
        (429, None, RateLimited),
        (402, {"error": "AI credits exhausted. Please add more credits."}, QuotaExhausted),
        (500, {"error": "Rate limit exceeded. Please try again later."}, RateLimited),
        (500, {"error": "AI analysis failed"}, ServiceUnavailable),
        (503, None, ServiceUnavailable),
        (400, {"error": "Text is required"}, ServiceUnavailable),
    ],
)
def test_error_status_classification(status_code, body, expected):
    kwargs = {"json": body} if body is not None else {"text": "upstream down"}
    client = make_client(respond(status_code, **kwargs))

    with pytest.raises(expected):
        run(client.analyze_text("hello"))


def test_success_status_with_error_field_fails():
    client = make_client(respond(200, json={"error": "AI analysis failed"}))

    with pytest.raises(ServiceUnavailable) as exc_info:
        run(client.analyze_text("hello"))

    assert "AI analysis failed" in exc_info.value.message


def test_success_status_with_rate_limit_message_is_rate_limited():
    client = make_client(respond(200, json={"error": "rate limit reached"}))

    with pytest.raises(RateLimited):
        run(client.analyze_text("hello"))


def test_non_json_body_is_invalid_response():
    client = make_client(respond(200, text="<html>oops</html>"))

    with pytest.raises(InvalidResponse):
        run(client.analyze_text("hello"))


def test_non_object_body_is_invalid_response():
    client = make_client(respond(200, json=["positive"]))

    with pytest.raises(InvalidResponse):
        run(client.analyze_text("hello"))


def test_transport_error_is_service_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ServiceUnavailable):
        run(make_client(handler).analyze_text("hello"))


def test_timeout_is_service_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(ServiceUnavailable) as exc_info:
        run(make_client(handler).analyze_text("hello"))

    assert "timeout" in exc_info.value.message


def test_classify_error_message():
    assert classify_error_message("Rate limit exceeded") is RateLimited
    assert classify_error_message("429 Too Many Requests") is RateLimited
    assert classify_error_message("AI credits exhausted") is QuotaExhausted
    assert classify_error_message("Something else broke") is None
