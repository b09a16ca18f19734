import time
import uuid

import structlog
import uvicorn
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from services.orchestrator.exceptions import AnalysisError
from services.orchestrator.metrics import (
    ACTIVE_REQUESTS,
    REQUEST_COUNT,
    REQUEST_DURATION,
)
from services.orchestrator.routes import router
from services.orchestrator.settings import settings
from services.orchestrator.utils import get_logger, lifespan

app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Sentiment analysis orchestration over hosted AI functions",
    lifespan=lifespan,
    debug=settings.debug,
)

app.include_router(router)


def get_endpoint_path(request: Request) -> str:
    """Extract a clean endpoint path for metrics"""
    path = request.url.path
    if path.startswith("/api/history/") and path != "/api/history/summary":
        return "/api/history/{id}"
    if path.startswith("/api/") or path in ["/health", "/metrics"]:
        return path
    return "/other"


def _error_response(status_code: int, message) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": True, "message": message, "status_code": status_code},
    )


# Middleware for request logging
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Bind a request id and log every request"""
    logger = get_logger()
    request_id = str(uuid.uuid4())[:8]
    request.state.request_id = request_id

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)

    start_time = time.time()
    logger.info(
        "Request started",
        method=request.method,
        path=request.url.path,
        client_ip=request.client.host if request.client else None,
    )

    response = await call_next(request)

    logger.info(
        "Request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration=f"{time.time() - start_time:.3f}s",
    )
    return response


# Middleware for metrics collection
@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Collect Prometheus metrics for all requests"""
    if request.url.path == "/metrics":
        return await call_next(request)

    ACTIVE_REQUESTS.inc()
    endpoint = get_endpoint_path(request)
    method = request.method
    start_time = time.time()

    try:
        response = await call_next(request)
        REQUEST_COUNT.labels(
            method=method, endpoint=endpoint, status_code=str(response.status_code)
        ).inc()
        return response

    except Exception:
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code="500").inc()
        raise

    finally:
        REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(
            time.time() - start_time
        )
        ACTIVE_REQUESTS.dec()


# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AnalysisError)
async def analysis_exception_handler(request: Request, exc: AnalysisError):
    """Render orchestrator errors with their own status code"""
    logger = get_logger()
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Analysis error",
        status_code=exc.status_code,
        error=exc.message,
        error_type=type(exc).__name__,
        path=request.url.path,
    )
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with structured logging"""
    get_logger().error(
        "HTTP exception occurred",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
    )
    return _error_response(exc.status_code, exc.detail)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    get_logger().error(
        "Unhandled exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    return _error_response(500, "Internal server error")


@app.get("/health")
async def health():
    return {"status": "healthy", "service": "orchestrator", "version": settings.version}


@app.get("/metrics")
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port)
