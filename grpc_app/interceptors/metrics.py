from __future__ import annotations

import time

import grpc

from application.services.token_service import operation_for_method
from core.logging_config import get_logger
from core.metrics import MetricsCollector
from grpc_app.interceptors.pipeline import CallNext, RpcCall


logger = get_logger(__name__)

_AUTH_FAILURES = {grpc.StatusCode.UNAUTHENTICATED.name, grpc.StatusCode.PERMISSION_DENIED.name}


class MetricsMiddleware:
    """Request count, duration and error telemetry for every call.

    Purely observational: whatever the downstream raises is re-raised as is.
    """

    def __init__(self, metrics: MetricsCollector) -> None:
        self._metrics = metrics

    def _record_business(self, method: str) -> None:
        name = method.lower()
        if name.startswith("create"):
            self._metrics.record_entity_created()
        elif name.startswith("update"):
            self._metrics.record_entity_updated()
        elif name.startswith("delete"):
            self._metrics.record_entity_deleted()

    def _record_status_failure(self, call: RpcCall, method: str, code_name: str) -> None:
        self._metrics.record_error(method, code_name)
        if code_name == grpc.StatusCode.INVALID_ARGUMENT.name:
            self._metrics.record_validation_error("invalid_argument")
        elif code_name in _AUTH_FAILURES:
            operation = call.context.operation or operation_for_method(call.method)
            self._metrics.record_authorization_failure(operation.value, code_name)

    async def __call__(self, call: RpcCall, call_next: CallNext):
        method = call.context.method_name
        started = time.perf_counter()
        self._metrics.connection_opened()
        try:
            logger.debug("grpc_request_started", streaming=call.streaming)
            result = await call_next(call)
        except Exception as exc:
            duration = time.perf_counter() - started
            code_name = call.status_name()
            if code_name and code_name != grpc.StatusCode.OK.name:
                status = code_name.lower()
                self._metrics.record_request(method, status, duration)
                self._record_status_failure(call, method, code_name)
                logger.warning("grpc_request_failed", status=status, duration_ms=round(duration * 1000, 2))
            else:
                status = "internal_error"
                self._metrics.record_request(method, status, duration)
                self._metrics.record_error(method, type(exc).__name__)
                logger.error(
                    "grpc_request_unhandled_error",
                    error=str(exc),
                    duration_ms=round(duration * 1000, 2),
                    exc_info=True,
                )
            raise
        else:
            duration = time.perf_counter() - started
            self._metrics.record_request(method, "success", duration)
            self._record_business(method)
            logger.debug("grpc_request_completed", duration_ms=round(duration * 1000, 2))
            return result
        finally:
            self._metrics.connection_closed()
