"""
Metrics Collection with Prometheus.

Exposes business and system metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from app.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    OUTCOME = "outcome"
    ERROR_TYPE = "error_type"


class StudioMetrics:
    """
    Centralized metrics for the Image Studio API.

    Covers:
    - HTTP requests (rate, duration, in flight)
    - Generation and edit requests by outcome
    - Provider calls (rate, duration, failures by class)
    - Credit settlement (credits charged, failed settlements)
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "studio_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "studio_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "studio_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
        )

        self.http_requests_in_progress = Gauge(
            "studio_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Workflow Metrics
        # ====================================================================
        self.generation_requests_total = Counter(
            "studio_generation_requests_total",
            "Generation requests by outcome",
            [MetricLabels.OUTCOME],
        )

        self.images_generated_total = Counter(
            "studio_images_generated_total",
            "Images returned by the provider and recorded in history",
        )

        self.edit_requests_total = Counter(
            "studio_edit_requests_total",
            "Edit requests by outcome",
            [MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Provider Metrics
        # ====================================================================
        self.provider_calls_total = Counter(
            "studio_provider_calls_total",
            "Calls to the image generation provider",
            [MetricLabels.OUTCOME],
        )

        self.provider_call_duration_seconds = Histogram(
            "studio_provider_call_duration_seconds",
            "Provider call duration in seconds",
            buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0),
        )

        self.removal_duration_seconds = Histogram(
            "studio_background_removal_duration_seconds",
            "Background removal duration in seconds",
            ["mode"],
            buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0),
        )

        # ====================================================================
        # Credit Metrics
        # ====================================================================
        self.credits_charged_total = Counter(
            "studio_credits_charged_total",
            "Credits deducted from balances",
            [MetricLabels.OPERATION],
        )

        self.credit_settlement_failures_total = Counter(
            "studio_credit_settlement_failures_total",
            "Settling writes that failed after delivered work",
            [MetricLabels.OPERATION],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "studio_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_provider_call(self, outcome: str, duration: float) -> None:
        """Record one provider round trip."""
        self.provider_calls_total.labels(outcome=outcome).inc()
        self.provider_call_duration_seconds.observe(duration)

    def record_generation(self, outcome: str, images: int = 0) -> None:
        self.generation_requests_total.labels(outcome=outcome).inc()
        if images:
            self.images_generated_total.inc(images)

    def record_edit(self, outcome: str) -> None:
        self.edit_requests_total.labels(outcome=outcome).inc()

    def record_settlement(self, operation: str, amount: int, success: bool) -> None:
        """Record the outcome of a settling write."""
        if success:
            self.credits_charged_total.labels(operation=operation).inc(amount)
        else:
            self.credit_settlement_failures_total.labels(operation=operation).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = StudioMetrics()
