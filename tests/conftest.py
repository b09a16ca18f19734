import asyncio
import json
import random
from typing import Callable, List

import httpx
import pytest

from services.orchestrator.client import SentimentFunctionClient
from services.orchestrator.orchestrator import AnalysisOrchestrator
from services.orchestrator.retry import BackoffPolicy, RateLimitCooldown
from services.orchestrator.settings import EndpointConfig

FUNCTIONS_URL = "http://functions.test/functions/v1"

POSITIVE_WORDS = {"love", "amazing", "great", "excellent", "happy"}
NEGATIVE_WORDS = {"terrible", "hate", "awful", "bad", "broken"}


def run(coro):
    return asyncio.run(coro)


class FakeClock:
    """Deterministic clock whose sleeps advance time instantly"""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps: List[float] = []
        self.cooldown_waits: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    async def cooldown_sleep(self, seconds: float) -> None:
        self.cooldown_waits.append(seconds)
        self.now += seconds


def sentiment_payload(
    sentiment: str = "positive",
    scores=None,
    keywords=None,
    explanation: str = "Clear sentiment.",
    **extra,
) -> dict:
    if scores is None:
        scores = {"positive": 0.1, "negative": 0.1, "neutral": 0.8}
        scores[sentiment] = 0.8
        if sentiment != "neutral":
            scores["neutral"] = 0.1
    payload = {
        "sentiment": sentiment,
        "confidence": scores[sentiment],
        "scores": scores,
        "keywords": keywords if keywords is not None else [],
        "explanation": explanation,
    }
    payload.update(extra)
    return payload


def classify_text(text: str) -> dict:
    """Word-matching stand-in for the hosted classifier"""
    words = [w.strip(".,!?'\"").lower() for w in text.split()]
    positive = [w for w in words if w in POSITIVE_WORDS]
    negative = [w for w in words if w in NEGATIVE_WORDS]

    if len(positive) > len(negative):
        sentiment, hits = "positive", positive
    elif len(negative) > len(positive):
        sentiment, hits = "negative", negative
    else:
        sentiment, hits = "neutral", []

    keywords = [
        {
            "word": w,
            "influence": sentiment,
            "weight": 0.9,
            "percentageContribution": 100 / len(hits),
        }
        for w in hits
    ]
    return sentiment_payload(sentiment, keywords=keywords)


def faithful_handler(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json=classify_text(body["text"]))


class RecordingHandler:
    """Wraps a handler and records every request body"""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.bodies: List[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(json.loads(request.content))
        return self.handler(request)


def build_orchestrator(
    handler,
    clock: FakeClock,
    max_retries: int = 3,
    cooldown_window: float = 8.0,
    pacing: float = 0.4,
    api_key: str = "",
) -> AnalysisOrchestrator:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    config = EndpointConfig(functions_url=FUNCTIONS_URL, api_key=api_key)
    cooldown = RateLimitCooldown(
        window=cooldown_window, clock=clock, sleep=clock.cooldown_sleep
    )
    return AnalysisOrchestrator(
        SentimentFunctionClient(http_client, config),
        cooldown=cooldown,
        policy=BackoffPolicy(
            max_retries=max_retries, base_delay=1.0, max_delay=8.0, jitter=0.25
        ),
        pacing=pacing,
        sleep=clock.sleep,
        rng=random.Random(7),
    )


@pytest.fixture
def clock():
    return FakeClock()
