from prometheus_client import Counter, Histogram

# -------------------------
# HTTP metrics
# -------------------------

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["path", "method", "status"],
)

# -------------------------
# Diagnosis metrics
# -------------------------

DIAGNOSIS_REQUESTS_TOTAL = Counter(
    "diagnosis_requests_total",
    "Total diagnosis requests by input kind and outcome",
    ["kind", "result", "model"],
)

LLM_CALL_SECONDS = Histogram(
    "llm_call_seconds",
    "Latency of the outbound generative API call in seconds",
    ["kind", "model"],
)
