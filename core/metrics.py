"""
Prometheus metrics for the gRPC service.

A `MetricsCollector` owns its own `CollectorRegistry`; one instance is created
at boot and shared by reference between the pipeline, the entity service and
the `/metrics` endpoint. prometheus_client metrics are safe for concurrent
increments.
"""
from __future__ import annotations

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


_DURATION_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


class MetricsCollector:
    def __init__(self, namespace: str = "items", registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.namespace = namespace

        self.requests_total = Counter(
            "requests_total", "Total number of gRPC requests",
            ["method", "status"], namespace=namespace, registry=self.registry,
        )
        self.errors_total = Counter(
            "errors_total", "Total number of request errors",
            ["method", "error_type"], namespace=namespace, registry=self.registry,
        )
        self.request_duration_seconds = Histogram(
            "request_duration_seconds", "Duration of gRPC requests in seconds",
            ["method", "status"], namespace=namespace, registry=self.registry,
            buckets=_DURATION_BUCKETS,
        )
        self.entities_created_total = Counter(
            "entities_created_total", "Total number of entities created",
            namespace=namespace, registry=self.registry,
        )
        self.entities_updated_total = Counter(
            "entities_updated_total", "Total number of entities updated",
            namespace=namespace, registry=self.registry,
        )
        self.entities_deleted_total = Counter(
            "entities_deleted_total", "Total number of entities deleted",
            namespace=namespace, registry=self.registry,
        )
        self.active_connections = Gauge(
            "active_connections", "Number of in-flight gRPC calls",
            namespace=namespace, registry=self.registry,
        )
        self.database_operation_duration_seconds = Histogram(
            "database_operation_duration_seconds", "Duration of database operations in seconds",
            ["operation", "success"], namespace=namespace, registry=self.registry,
            buckets=_DURATION_BUCKETS,
        )
        self.validation_errors_total = Counter(
            "validation_errors_total", "Total number of validation errors",
            ["error_type"], namespace=namespace, registry=self.registry,
        )
        self.authorization_failures_total = Counter(
            "authorization_failures_total", "Total number of authorization failures",
            ["operation", "reason"], namespace=namespace, registry=self.registry,
        )

    def record_request(self, method: str, status: str, duration_seconds: float) -> None:
        self.requests_total.labels(method=method, status=status).inc()
        self.request_duration_seconds.labels(method=method, status=status).observe(duration_seconds)

    def record_error(self, method: str, error_type: str) -> None:
        self.errors_total.labels(method=method, error_type=error_type).inc()

    def record_entity_created(self) -> None:
        self.entities_created_total.inc()

    def record_entity_updated(self) -> None:
        self.entities_updated_total.inc()

    def record_entity_deleted(self) -> None:
        self.entities_deleted_total.inc()

    def connection_opened(self) -> None:
        self.active_connections.inc()

    def connection_closed(self) -> None:
        self.active_connections.dec()

    def record_database_operation(self, operation: str, duration_seconds: float, success: bool) -> None:
        self.database_operation_duration_seconds.labels(
            operation=operation, success=str(success).lower()
        ).observe(duration_seconds)

    def record_validation_error(self, error_type: str) -> None:
        self.validation_errors_total.labels(error_type=error_type).inc()

    def record_authorization_failure(self, operation: str, reason: str) -> None:
        self.authorization_failures_total.labels(operation=operation, reason=reason).inc()

    def sample(self, name: str, labels: Optional[dict] = None) -> float:
        """Current value of one sample (full name, e.g. `items_requests_total`); 0.0 if absent."""
        value = self.registry.get_sample_value(name, labels or {})
        return value or 0.0

    def generate_latest(self) -> bytes:
        return generate_latest(self.registry)

    @staticmethod
    def content_type() -> str:
        return CONTENT_TYPE_LATEST
