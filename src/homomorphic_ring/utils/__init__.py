from .logging import configure_logging, get_logger
from .metrics import InMemoryMetrics, MetricPoint, Timer
from .prometheus_metrics import PrometheusMetrics
from .retry import RetryError, retry

__all__ = [
    "configure_logging",
    "get_logger",
    "InMemoryMetrics",
    "MetricPoint",
    "PrometheusMetrics",
    "RetryError",
    "Timer",
    "retry",
]
