from __future__ import annotations

import json
from typing import Dict, List, Tuple

import grpc

from core.logging_config import get_logger
from domain.common.exceptions import (
    BusinessRuleError,
    DataAccessError,
    DomainError,
    EntityNotFoundError,
    ValidationError,
    error_kind_of,
)
from grpc_app.interceptors.pipeline import CallNext, RpcCall
from shared.codes import ErrorCode, ErrorKind


logger = get_logger(__name__)

Metadata = List[Tuple[str, str]]

_STATUS_BY_KIND: Dict[ErrorKind, grpc.StatusCode] = {
    ErrorKind.VALIDATION: grpc.StatusCode.INVALID_ARGUMENT,
    ErrorKind.NOT_FOUND: grpc.StatusCode.NOT_FOUND,
    ErrorKind.BUSINESS_RULE: grpc.StatusCode.FAILED_PRECONDITION,
    ErrorKind.DATA_ACCESS: grpc.StatusCode.INTERNAL,
    ErrorKind.DOMAIN: grpc.StatusCode.INVALID_ARGUMENT,
    ErrorKind.INTERNAL: grpc.StatusCode.INTERNAL,
}

# Client-safe replacements for storage failure messages
DATA_ACCESS_MESSAGES: Dict[str, str] = {
    "Create": "Failed to create the entity. Please try again.",
    "Read": "Failed to retrieve the entity. Please try again.",
    "Update": "Failed to update the entity. Please try again.",
    "Delete": "Failed to delete the entity. Please try again.",
}
DATA_ACCESS_FALLBACK = "A data access error occurred. Please try again."
INTERNAL_MESSAGE = "An internal error occurred. Please try again later."


def status_for(kind: ErrorKind) -> grpc.StatusCode:
    return _STATUS_BY_KIND.get(kind, grpc.StatusCode.INTERNAL)


def map_exception(exc: BaseException) -> Tuple[grpc.StatusCode, str, Metadata]:
    """Translate an error into (status, client message, trailing metadata)."""
    kind = error_kind_of(exc)
    code = status_for(kind)

    if isinstance(exc, ValidationError):
        return code, exc.message, [
            ("error-code", exc.error_code),
            ("validation-errors", json.dumps(exc.errors)),
        ]
    if isinstance(exc, EntityNotFoundError):
        return code, exc.message, [
            ("error-code", exc.error_code),
            ("entity-type", exc.entity_type),
            ("entity-id", exc.entity_id),
        ]
    if isinstance(exc, BusinessRuleError):
        return code, exc.message, [
            ("error-code", exc.error_code),
            ("rule-name", exc.rule_name),
        ]
    if isinstance(exc, DataAccessError):
        return code, DATA_ACCESS_MESSAGES.get(exc.operation, DATA_ACCESS_FALLBACK), [
            ("error-code", exc.error_code),
            ("operation", exc.operation),
        ]
    if isinstance(exc, DomainError):
        metadata: Metadata = [("error-code", exc.error_code)]
        if exc.details is not None:
            metadata.append(("error-details", json.dumps(exc.details, default=str)))
        return code, exc.message, metadata
    return code, INTERNAL_MESSAGE, [
        ("error-code", ErrorCode.INTERNAL_ERROR.value),
        ("exception-type", type(exc).__name__),
    ]


class ExceptionMappingMiddleware:
    """Converts errors raised below it into gRPC statuses with typed metadata.

    Calls that were already aborted pass through untouched.
    """

    async def __call__(self, call: RpcCall, call_next: CallNext):
        try:
            return await call_next(call)
        except (grpc.aio.AbortError, grpc.RpcError) as exc:
            logger.warning("grpc_passthrough_error", error_type=type(exc).__name__, status=call.status_name())
            raise
        except Exception as exc:
            code, message, metadata = map_exception(exc)
            kind = error_kind_of(exc)
            if kind in (ErrorKind.DATA_ACCESS, ErrorKind.INTERNAL):
                logger.error(
                    "grpc_mapped_error",
                    status=code.name,
                    kind=kind.value,
                    error_type=type(exc).__name__,
                    message=str(exc),
                    exc_info=True,
                )
            else:
                logger.warning(
                    "grpc_mapped_error",
                    status=code.name,
                    kind=kind.value,
                    message=str(exc),
                    metadata=dict(metadata),
                )
            await call.abort(code, message, metadata)
