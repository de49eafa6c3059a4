"""Prometheus metrics for monitoring"""
from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest
import time
from functools import wraps
from typing import Callable

registry = CollectorRegistry()

request_count = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status'],
    registry=registry
)

request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=registry
)

cache_hits = Counter(
    'cache_hits_total',
    'Total cache hits',
    ['cache'],
    registry=registry
)

cache_misses = Counter(
    'cache_misses_total',
    'Total cache misses',
    ['cache'],
    registry=registry
)

pricing_requests = Counter(
    'pricing_service_requests_total',
    'Total remote pricing service calls',
    ['status'],
    registry=registry
)

pricing_duration = Histogram(
    'pricing_service_duration_seconds',
    'Remote pricing service call duration in seconds',
    ['status'],
    registry=registry
)

recalculations = Counter(
    'quote_recalculations_total',
    'Quote recalculation cycles by outcome',
    ['outcome'],
    registry=registry
)

redis_connected = Gauge(
    'redis_connected',
    'Redis connection status (1=connected, 0=disconnected)',
    registry=registry
)


def track_pricing_call(func: Callable) -> Callable:
    """Decorator to time pricing service calls"""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        start_time = time.time()
        try:
            result = await func(*args, **kwargs)
        except Exception:
            duration = time.time() - start_time
            pricing_requests.labels(status='error').inc()
            pricing_duration.labels(status='error').observe(duration)
            raise
        duration = time.time() - start_time
        pricing_requests.labels(status='success').inc()
        pricing_duration.labels(status='success').observe(duration)
        return result
    return wrapper


def get_metrics_text() -> str:
    """Generate Prometheus metrics in text format"""
    return generate_latest(registry).decode('utf-8')
