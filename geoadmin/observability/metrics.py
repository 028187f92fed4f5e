"""
Metrics Collection with Prometheus.

Exposes request, cache, listing and authentication metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from geoadmin.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    ERROR_TYPE = "error_type"
    CACHE_KEY = "cache_key"
    PRINCIPAL_KIND = "principal_kind"


class GeoAdminMetrics:
    """
    Centralized metrics for the GeoAdmin API.

    Covers:
    - HTTP requests (rate, duration, errors)
    - Reference-data cache (hits, misses, store errors, invalidations)
    - Account listings (rate, duration)
    - Logins and CSRF rejections
    - Referential guard conflicts
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "geoadmin_service",
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
            "geoadmin_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "geoadmin_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "geoadmin_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.METHOD],
        )

        # ====================================================================
        # Reference-Data Cache Metrics
        # ====================================================================
        self.geo_cache_lookups_total = Counter(
            "geoadmin_geo_cache_lookups_total",
            "Reference-data cache lookups by outcome",
            [MetricLabels.CACHE_KEY, "outcome"],
        )

        self.geo_cache_errors_total = Counter(
            "geoadmin_geo_cache_errors_total",
            "Cache store failures absorbed by the reference-data cache",
            [MetricLabels.OPERATION],
        )

        self.geo_cache_invalidations_total = Counter(
            "geoadmin_geo_cache_invalidations_total",
            "Reference-data cache invalidations",
            ["success"],
        )

        # ====================================================================
        # Listing Metrics
        # ====================================================================
        self.account_listings_total = Counter(
            "geoadmin_account_listings_total",
            "Account listings served",
            ["searched"],
        )

        self.account_listing_duration_seconds = Histogram(
            "geoadmin_account_listing_duration_seconds",
            "Account listing duration in seconds (count + page queries)",
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
        )

        # ====================================================================
        # Auth Metrics
        # ====================================================================
        self.login_attempts_total = Counter(
            "geoadmin_login_attempts_total",
            "Login attempts by principal kind and outcome",
            [MetricLabels.PRINCIPAL_KIND, "outcome"],
        )

        self.csrf_failures_total = Counter(
            "geoadmin_csrf_failures_total",
            "State-changing requests rejected for a bad CSRF token",
        )

        self.session_rotations_total = Counter(
            "geoadmin_session_rotations_total",
            "Session identifier rotations on privilege escalation",
        )

        # ====================================================================
        # Referential Guard Metrics
        # ====================================================================
        self.delete_conflicts_total = Counter(
            "geoadmin_delete_conflicts_total",
            "Deletes refused by referential guards",
            ["entity"],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "geoadmin_errors_total",
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

    def record_cache_lookup(self, cache_key: str, hit: bool) -> None:
        """Record a cache hit or miss; per-country keys share one label value."""
        label = "states" if cache_key.startswith("states:") else cache_key
        self.geo_cache_lookups_total.labels(
            cache_key=label, outcome="hit" if hit else "miss"
        ).inc()

    def record_cache_error(self, operation: str) -> None:
        self.geo_cache_errors_total.labels(operation=operation).inc()

    def record_invalidation(self, success: bool) -> None:
        self.geo_cache_invalidations_total.labels(success=str(success)).inc()

    def record_listing(self, searched: bool, duration: float) -> None:
        """Record account listing metrics."""
        self.account_listings_total.labels(searched=str(searched)).inc()
        self.account_listing_duration_seconds.observe(duration)

    def record_login(self, kind: str, outcome: str) -> None:
        self.login_attempts_total.labels(principal_kind=kind, outcome=outcome).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = GeoAdminMetrics()
