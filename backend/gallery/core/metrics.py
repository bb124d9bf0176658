"""Central Prometheus metrics registry.

All application metrics are defined here to avoid scattered metric definitions
and ensure consistent naming/labeling.
"""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("gallery_app", "Template gallery application info")

# --- HTTP ---
http_requests_total = Counter(
    "gallery_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
http_request_duration_seconds = Histogram(
    "gallery_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

# --- Cache ---
cache_operations_total = Counter(
    "gallery_cache_operations_total",
    "Total template cache operations",
    ["operation", "status"],
)

# --- Object store ---
object_store_requests_total = Counter(
    "gallery_object_store_requests_total",
    "Total object store requests",
    ["backend", "operation", "status"],
)
object_store_request_duration_seconds = Histogram(
    "gallery_object_store_request_duration_seconds",
    "Object store request duration in seconds",
    ["backend", "operation"],
)

# --- Upstream imports ---
workflow_imports_total = Counter(
    "gallery_workflow_imports_total",
    "Workflow import attempts against the n8n API",
    ["outcome"],
)
