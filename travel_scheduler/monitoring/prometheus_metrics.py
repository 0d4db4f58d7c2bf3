"""
Prometheus metrics for the scheduler.

Service timings come from ``@BaseService.measure_operation``; the domain
counters below are bumped by the dispatch, lifecycle and job layers.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Custom registry so tests and multiple apps in one process don't collide
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "travel_scheduler_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 10.0),
)

service_operations_total = Counter(
    "travel_scheduler_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "travel_scheduler_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

scheduled_notifications_total = Counter(
    "travel_scheduler_scheduled_notifications_total",
    "Scheduled notification outcomes",
    ["outcome"],  # enqueued | sent | failed | cancelled | skipped
    registry=REGISTRY,
)

booking_transitions_total = Counter(
    "travel_scheduler_booking_transitions_total",
    "Booking status transitions made by the lifecycle job",
    ["from_status", "to_status"],
    registry=REGISTRY,
)

attendance_reprompts_total = Counter(
    "travel_scheduler_attendance_reprompts_total",
    "Attendance re-prompts sent to creators",
    registry=REGISTRY,
)

itinerary_transitions_total = Counter(
    "travel_scheduler_itinerary_transitions_total",
    "Itinerary status transitions made by the sweep job",
    ["to_status"],
    registry=REGISTRY,
)

job_runs_total = Counter(
    "travel_scheduler_job_runs_total",
    "Job runs by terminal status",
    ["job", "status"],  # success | failed | skipped
    registry=REGISTRY,
)

job_duration_seconds = Histogram(
    "travel_scheduler_job_duration_seconds",
    "Job run duration in seconds",
    ["job"],
    registry=REGISTRY,
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0),
)

jobs_in_progress = Gauge(
    "travel_scheduler_jobs_in_progress",
    "Jobs currently executing",
    ["job"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = 1.0

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'NotificationScheduler')
            operation: Operation name (e.g., 'poll_and_dispatch')
            duration: Operation duration in seconds
            status: 'success' or 'error'
            error_type: Exception class name when status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_scheduled_notification(outcome: str, count: int = 1) -> None:
        if count > 0:
            scheduled_notifications_total.labels(outcome=outcome).inc(count)
            PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_booking_transition(from_status: str, to_status: str) -> None:
        booking_transitions_total.labels(from_status=from_status, to_status=to_status).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_attendance_reprompt() -> None:
        attendance_reprompts_total.inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_itinerary_transition(to_status: str) -> None:
        itinerary_transitions_total.labels(to_status=to_status).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_job_run(job: str, status: str, duration: float) -> None:
        job_runs_total.labels(job=job, status=status).inc()
        if status != "skipped":
            job_duration_seconds.labels(job=job).observe(max(duration, 0.0))
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def track_job_start(job: str) -> None:
        jobs_in_progress.labels(job=job).inc()

    @staticmethod
    def track_job_end(job: str) -> None:
        jobs_in_progress.labels(job=job).dec()

    @staticmethod
    def get_metrics() -> bytes:
        """Prometheus text exposition, cached for a short TTL between scrapes."""
        now = monotonic()
        payload = PrometheusMetrics._cache_payload
        ts = PrometheusMetrics._cache_ts
        if payload is not None and ts is not None and (now - ts) <= PrometheusMetrics._cache_ttl_seconds:
            return payload

        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_payload = cast(bytes, generate_latest(REGISTRY))
            PrometheusMetrics._cache_ts = monotonic()
            return PrometheusMetrics._cache_payload

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_ts = None
            PrometheusMetrics._cache_payload = None


# Singleton instance
prometheus_metrics = PrometheusMetrics()
