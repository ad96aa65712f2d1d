from __future__ import annotations

from typing import Iterable, Mapping, Optional

import grpc
from structlog.contextvars import bound_contextvars

from application.services.token_service import TokenService, operation_for_method
from core.logging_config import get_logger
from grpc_app.interceptors.pipeline import CallNext, RpcCall


logger = get_logger(__name__)


# Full method names served without a token (compared case-insensitively)
PUBLIC_METHODS = frozenset(
    {
        "/grpc.health.v1.Health/Check",
        "/grpc.health.v1.Health/Watch",
        "/grpc.reflection.v1alpha.ServerReflection/ServerReflectionInfo",
    }
)


def extract_bearer_token(metadata: Mapping[str, str]) -> Optional[str]:
    """Token from the `authorization` entry, with or without a `Bearer ` prefix."""
    raw = metadata.get("authorization")
    if not raw:
        return None
    value = raw.strip()
    if value[:7].lower() == "bearer ":
        value = value[7:].strip()
    return value or None


class AuthorizationMiddleware:
    """Signature check plus operation-level authorization.

    Authentication already happened at the gateway; here the token is only
    verified and its claims matched against the operation the method maps to.
    """

    def __init__(self, token_service: TokenService, public_methods: Iterable[str] = PUBLIC_METHODS) -> None:
        self._tokens = token_service
        self._public = frozenset(m.lower() for m in public_methods)

    async def __call__(self, call: RpcCall, call_next: CallNext):
        operation = operation_for_method(call.method)
        call.context.operation = operation

        if call.method.lower() in self._public:
            logger.debug("authorization_skipped", method=call.method)
            return await call_next(call)

        try:
            token = extract_bearer_token(call.metadata)
            if not token:
                logger.warning("authorization_denied", reason="missing_token", method=call.method)
                await call.abort(grpc.StatusCode.UNAUTHENTICATED, "Authorization token required")

            user = self._tokens.validate_token(token)
            if user is None:
                logger.warning("authorization_denied", reason="invalid_token", method=call.method)
                await call.abort(grpc.StatusCode.UNAUTHENTICATED, "Invalid authorization token")

            call.context.user = user
            if not self._tokens.is_authorized(user, operation):
                await call.abort(
                    grpc.StatusCode.PERMISSION_DENIED,
                    f"Insufficient permissions for {operation.value} operation",
                )
        except (grpc.aio.AbortError, grpc.RpcError):
            raise
        except Exception as exc:
            logger.error("authorization_error", method=call.method, error=str(exc), exc_info=True)
            await call.abort(grpc.StatusCode.INTERNAL, "Authorization service error")

        logger.debug("authorization_granted", operation=operation.value, user_id=user.user_id)
        with bound_contextvars(user_id=user.user_id, client_id=user.client_id or "unknown"):
            return await call_next(call)
