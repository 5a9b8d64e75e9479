"""
Prometheus 指标采集
"""

import logging

from prometheus_client import Counter, Histogram, Info

logger = logging.getLogger(__name__)

APP_INFO = Info("miroyo_app", "Miroyo app metadata")

HTTP_REQUESTS = Counter(
    "miroyo_http_requests_total", "HTTP requests count",
    ["method", "path", "status"],
)
HTTP_REQUEST_LATENCY = Histogram(
    "miroyo_http_request_duration_seconds", "HTTP request latency",
    ["method", "path"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0],
)

INTERPRET_COUNT = Counter(
    "miroyo_interpret_total", "Interpret request outcomes",
    ["outcome"],
)
UPSTREAM_LATENCY = Histogram(
    "miroyo_upstream_duration_seconds", "Model call latency",
    ["outcome"],
    buckets=[0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0, 30.0],
)

SHARE_COUNT = Counter(
    "miroyo_share_codec_total", "Share codec operations",
    ["operation", "status"],
)


def set_app_info(name: str, version: str, env: str):
    APP_INFO.info({"name": name, "version": version, "env": env})


def observe_http_request(method: str, path: str, status: int, elapsed: float):
    HTTP_REQUESTS.labels(method=method, path=path, status=str(status)).inc()
    HTTP_REQUEST_LATENCY.labels(method=method, path=path).observe(max(0.0, elapsed))


def record_interpret(outcome: str):
    INTERPRET_COUNT.labels(outcome=outcome).inc()


def record_upstream(outcome: str, latency: float):
    UPSTREAM_LATENCY.labels(outcome=outcome).observe(max(0.0, latency))


def record_share(operation: str, status: str):
    SHARE_COUNT.labels(operation=operation, status=status).inc()
