from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI

from services.orchestrator.client import SentimentFunctionClient
from services.orchestrator.exceptions import ServiceUnavailable
from services.orchestrator.history import AnalysisHistory
from services.orchestrator.orchestrator import AnalysisOrchestrator
from services.orchestrator.settings import settings
from shared.logger import configure_logging, is_configured
from shared.logger import get_logger as _get_logger

# Global variables
http_client: httpx.AsyncClient = None  # type: ignore
orchestrator: AnalysisOrchestrator = None  # type: ignore
history = AnalysisHistory()


def setup_logging() -> structlog.stdlib.BoundLogger:
    """Configure structured logging"""
    configure_logging(
        level=settings.log_level,
        log_format=settings.log_format,
        service="sentiment-orchestrator",
        version=settings.version,
        environment=settings.environment,
    )
    return _get_logger("services.orchestrator")


def get_logger() -> structlog.stdlib.BoundLogger:
    """Get the logger instance, initializing if necessary"""
    if not is_configured():
        return setup_logging()
    return _get_logger("services.orchestrator")


def get_orchestrator() -> AnalysisOrchestrator:
    if orchestrator is None:
        raise ServiceUnavailable("Analysis orchestrator is not initialized")
    return orchestrator


def get_history() -> AnalysisHistory:
    return history


def build_http_client() -> httpx.AsyncClient:
    timeout = httpx.Timeout(
        settings.endpoint.timeout,
        connect=settings.connection_timeout,
    )
    limits = httpx.Limits(
        max_keepalive_connections=settings.connection_pool_size,
        max_connections=settings.connection_pool_size + 10,
    )
    return httpx.AsyncClient(timeout=timeout, limits=limits, follow_redirects=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    global http_client, orchestrator

    logger = setup_logging()
    logger.info("Starting sentiment orchestrator", version=settings.version)

    http_client = build_http_client()
    orchestrator = AnalysisOrchestrator(
        SentimentFunctionClient(http_client, settings.endpoint)
    )

    logger.info(
        "Analysis orchestrator initialized",
        functions_url=settings.endpoint.functions_url,
        max_retries=orchestrator.policy.max_retries,
        cooldown=orchestrator.cooldown.window,
    )

    yield

    # Shutdown
    logger.info("Shutting down sentiment orchestrator")
    if http_client:
        await http_client.aclose()
    http_client = None  # type: ignore
    orchestrator = None  # type: ignore
    logger.info("Shutdown completed")
