# Prometheus metrics
from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNT = Counter(
    "orchestrator_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)
REQUEST_DURATION = Histogram(
    "orchestrator_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
)
ACTIVE_REQUESTS = Gauge(
    "orchestrator_active_requests", "Number of active HTTP requests"
)
FUNCTION_CALL_COUNT = Counter(
    "orchestrator_function_calls_total",
    "Total calls to the hosted classification functions",
    ["function", "outcome"],
)
FUNCTION_CALL_DURATION = Histogram(
    "orchestrator_function_call_duration_seconds",
    "Hosted classification function call duration",
    ["function"],
)
RETRY_COUNT = Counter(
    "orchestrator_retries_total",
    "Retries scheduled after rate limiting",
    ["function"],
)
BATCH_ITEM_COUNT = Counter(
    "orchestrator_batch_items_total",
    "Batch items processed",
    ["outcome"],
)
