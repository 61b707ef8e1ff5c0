from prometheus_client import Counter, Histogram, make_asgi_app

# Route label uses the template (/fileread/{slug}/{filename}) to keep cardinality low
REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "route", "status"],
)

LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency in seconds",
    ["method", "route"],
)

STORAGE_OPERATIONS = Counter(
    "storage_operations_total",
    "Storage operations by provider and outcome",
    ["provider", "operation", "outcome"],
)

metrics_app = make_asgi_app()
