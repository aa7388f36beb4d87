"""
Metrics Collection with Prometheus.

Exposes entitlement, redemption and store metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from scripthub.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    OUTCOME = "outcome"
    ROLE = "role"
    ERROR_TYPE = "error_type"


class ScriptHubMetrics:
    """
    Centralized metrics for the ScriptHub API.

    Covers:
    - HTTP requests (rate, duration, in flight)
    - Entitlement resolutions and expiry corrections
    - Redemptions by outcome
    - Document store operations
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        self.service_info = Info(
            "scripthub_service",
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
            "scripthub_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "scripthub_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "scripthub_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Entitlement Metrics
        # ====================================================================
        self.entitlement_checks_total = Counter(
            "scripthub_entitlement_checks_total",
            "Total live entitlement checks by resolved role",
            [MetricLabels.ROLE],
        )

        self.entitlement_corrections_total = Counter(
            "scripthub_entitlement_corrections_total",
            "Expired premium grants demoted to basic",
            ["persisted"],
        )

        # ====================================================================
        # Redemption Metrics
        # ====================================================================
        self.redemptions_total = Counter(
            "scripthub_redemptions_total",
            "Redeem code attempts by outcome",
            [MetricLabels.OUTCOME],
        )

        self.redemption_duration_seconds = Histogram(
            "scripthub_redemption_duration_seconds",
            "Redemption duration in seconds",
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
        )

        self.redeem_codes_created_total = Counter(
            "scripthub_redeem_codes_created_total",
            "Redeem codes created",
            ["source"],
        )

        # ====================================================================
        # Store Metrics
        # ====================================================================
        self.store_operations_total = Counter(
            "scripthub_store_operations_total",
            "Total document store operations",
            [MetricLabels.OPERATION, "success"],
        )

        self.store_operation_duration_seconds = Histogram(
            "scripthub_store_operation_duration_seconds",
            "Document store operation duration in seconds",
            [MetricLabels.OPERATION],
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
        )

        self.store_conflicts_total = Counter(
            "scripthub_store_conflicts_total",
            "Conditional updates retried after a concurrent write",
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "scripthub_errors_total",
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

    def record_entitlement_check(self, role: str) -> None:
        self.entitlement_checks_total.labels(role=role).inc()

    def record_entitlement_correction(self, persisted: bool) -> None:
        self.entitlement_corrections_total.labels(persisted=str(persisted)).inc()

    def record_redemption(self, outcome: str, duration: float) -> None:
        """Record a redemption attempt; outcome is 'success' or the error class name."""
        self.redemptions_total.labels(outcome=outcome).inc()
        self.redemption_duration_seconds.observe(duration)

    def record_store_operation(self, operation: str, success: bool, duration: float) -> None:
        """Record document store operation metrics."""
        self.store_operations_total.labels(operation=operation, success=str(success)).inc()
        self.store_operation_duration_seconds.labels(operation=operation).observe(duration)

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = ScriptHubMetrics()
