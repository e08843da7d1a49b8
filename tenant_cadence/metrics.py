"""Prometheus metrics for tenant_cadence."""

from prometheus_client import Counter, Histogram, start_http_server
import functools
import time

__all__ = [
    "JOB_LATENCY",
    "JOB_SUCCESS",
    "JOB_FAILURE",
    "REGISTRATION_OUTCOMES",
    "RUN_NOW_REQUESTS",
    "start_metrics_server",
    "track_job",
]

# Histogram tracking how long each job takes to run.
JOB_LATENCY = Histogram(
    "tenant_job_latency_seconds",
    "Time spent executing scheduled jobs",
    ["job_class"],
)

JOB_SUCCESS = Counter(
    "tenant_job_success_total",
    "Total number of job fires that completed successfully",
    ["job_class"],
)

JOB_FAILURE = Counter(
    "tenant_job_failure_total",
    "Total number of job fires that raised an exception",
    ["job_class"],
)

# One increment per definition per registration pass.
REGISTRATION_OUTCOMES = Counter(
    "tenant_job_registrations_total",
    "Registration pass outcomes by state",
    ["outcome"],
)

RUN_NOW_REQUESTS = Counter(
    "tenant_job_run_now_requests_total",
    "Run-now requests by result",
    ["result"],
)


def start_metrics_server(port: int = 8000) -> None:
    """Start an HTTP server to expose Prometheus metrics."""
    start_http_server(port)


def track_job(func=None, *, name: str | None = None):
    """Decorator recording latency and success/failure of a job callable.

    Usable as ``@track_job`` or ``@track_job(name="pkg.jobs:Purge")``.  When
    the wrapped callable receives the job class reference as its first
    argument and no ``name`` is given, that reference is used as the label.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            label = name or (args[0] if args and isinstance(args[0], str) else func.__name__)
            start_time = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception:
                JOB_FAILURE.labels(label).inc()
                raise
            else:
                JOB_SUCCESS.labels(label).inc()
                return result
            finally:
                JOB_LATENCY.labels(label).observe(time.monotonic() - start_time)

        return wrapper

    if func is None:
        return decorator

    return decorator(func)
