from __future__ import annotations

import uuid

from structlog.contextvars import bound_contextvars

from grpc_app.interceptors.pipeline import CallNext, RpcCall


REQUEST_ID_META_KEY = "x-request-id"


class RequestIdMiddleware:
    """Reuse the caller's `x-request-id` or mint one; echo it as trailing metadata.

    The id is bound into structlog's context for every log line of the call.
    """

    async def __call__(self, call: RpcCall, call_next: CallNext):
        request_id = call.metadata.get(REQUEST_ID_META_KEY) or str(uuid.uuid4())
        call.context.request_id = request_id
        call.add_trailing((REQUEST_ID_META_KEY, request_id))
        with bound_contextvars(request_id=request_id, method=call.context.method_name):
            return await call_next(call)
