"""
Metrics Collection with Prometheus.

Business counters for the job lifecycle, the credit ledger and the payment
workflow, plus HTTP request metrics.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from photoforge.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OUTCOME = "outcome"
    KIND = "kind"
    TRANSACTION_TYPE = "transaction_type"
    ERROR_TYPE = "error_type"
    OPERATION = "operation"


class PhotoForgeMetrics:
    """Centralized metrics for the PhotoForge API."""

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        self.service_info = Info("photoforge_service", "Service information")
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
            "photoforge_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "photoforge_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )

        self.http_requests_in_progress = Gauge(
            "photoforge_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Job Metrics
        # ====================================================================
        self.generations_submitted_total = Counter(
            "photoforge_generations_submitted_total",
            "Generation submissions by outcome",
            [MetricLabels.OUTCOME],
        )

        self.trainings_submitted_total = Counter(
            "photoforge_trainings_submitted_total",
            "Training submissions by outcome",
            [MetricLabels.OUTCOME],
        )

        self.provider_dispatch_duration_seconds = Histogram(
            "photoforge_provider_dispatch_duration_seconds",
            "Duration of synchronous provider dispatch calls",
            [MetricLabels.KIND],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
        )

        self.prompt_enhancements_total = Counter(
            "photoforge_prompt_enhancements_total",
            "Prompt enhancement attempts by outcome",
            [MetricLabels.OUTCOME],
        )

        self.webhook_callbacks_total = Counter(
            "photoforge_webhook_callbacks_total",
            "Provider callbacks by kind and outcome",
            [MetricLabels.KIND, MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Ledger Metrics
        # ====================================================================
        self.credit_mutations_total = Counter(
            "photoforge_credit_mutations_total",
            "Ledger mutations by transaction type",
            [MetricLabels.TRANSACTION_TYPE],
        )

        self.credit_mutation_amount = Histogram(
            "photoforge_credit_mutation_amount",
            "Absolute crystal amount per ledger mutation",
            [MetricLabels.TRANSACTION_TYPE],
            buckets=(1, 3, 6, 12, 24, 50, 100, 200, 500, 1000, 5000),
        )

        self.insufficient_credit_total = Counter(
            "photoforge_insufficient_credit_total",
            "Debits rejected for insufficient balance",
        )

        # ====================================================================
        # Payment Metrics
        # ====================================================================
        self.payment_transitions_total = Counter(
            "photoforge_payment_transitions_total",
            "Payment workflow transitions by target state",
            ["to_status"],
        )

        self.notifications_total = Counter(
            "photoforge_notifications_total",
            "Admin notifications by event and outcome",
            [MetricLabels.KIND, MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "photoforge_errors_total",
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

    def record_credit_mutation(self, transaction_type: str, amount: int) -> None:
        """Record one ledger mutation."""
        self.credit_mutations_total.labels(transaction_type=transaction_type).inc()
        self.credit_mutation_amount.labels(transaction_type=transaction_type).observe(
            abs(amount)
        )

    def record_dispatch(self, kind: str, duration: float) -> None:
        """Record a provider dispatch call duration."""
        self.provider_dispatch_duration_seconds.labels(kind=kind).observe(duration)

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = PhotoForgeMetrics()
