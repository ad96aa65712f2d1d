"""Ordered middleware pipeline around every RPC handler.

A single `PipelineInterceptor` wraps each method handler (all four
cardinalities) and runs an explicit list of middlewares around it. A
middleware is any callable `async (call, call_next) -> result`; it may act
before and after `await call_next(call)`, short-circuit by aborting, or
observe exceptions on their way out.

Streaming responses are written through `context.write` inside the terminal
step, so every middleware sees one awaitable per call regardless of
cardinality.
"""
from __future__ import annotations

import contextvars
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, NoReturn, Optional, Sequence, Tuple

import grpc

from application.context import CallContext


CallNext = Callable[["RpcCall"], Awaitable[Any]]
Middleware = Callable[["RpcCall", CallNext], Awaitable[Any]]

_current_call: contextvars.ContextVar[Optional[CallContext]] = contextvars.ContextVar(
    "grpc_call_context", default=None
)


def current_call_context() -> CallContext:
    """The `CallContext` of the RPC being served.

    Servicer methods call this once and pass the result on explicitly.
    """
    ctx = _current_call.get()
    return ctx if ctx is not None else CallContext()


@dataclass
class RpcCall:
    context: CallContext
    servicer_context: grpc.aio.ServicerContext
    # Invocation metadata, keys lower-cased
    metadata: Dict[str, str]
    streaming: bool = False
    trailing: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def method(self) -> str:
        return self.context.method

    def add_trailing(self, *pairs: Tuple[str, str]) -> None:
        self.trailing.extend(pairs)
        self.servicer_context.set_trailing_metadata(tuple(self.trailing))

    async def abort(
        self,
        code: grpc.StatusCode,
        details: str,
        metadata: Sequence[Tuple[str, str]] = (),
    ) -> NoReturn:
        """Record the status on the call context and end the RPC."""
        self.context.status = code.name
        self.trailing.extend(metadata)
        await self.servicer_context.abort(code, details, trailing_metadata=tuple(self.trailing))
        raise AssertionError("abort() returned")  # pragma: no cover

    def status_name(self) -> Optional[str]:
        if self.context.status:
            return self.context.status
        try:
            code = self.servicer_context.code()
        except (AttributeError, NotImplementedError):
            return None
        if isinstance(code, grpc.StatusCode):
            return code.name
        return None


def _metadata_dict(details: grpc.HandlerCallDetails) -> Dict[str, str]:
    md: Dict[str, str] = {}
    for key, value in details.invocation_metadata or ():
        if isinstance(value, bytes):
            continue
        md[key.lower()] = value
    return md


async def _drain(result: Any, context: grpc.aio.ServicerContext) -> None:
    """Run a streaming handler's result to completion, writing responses."""
    if inspect.isawaitable(result):
        await result
    elif hasattr(result, "__aiter__"):
        async for response in result:
            await context.write(response)
    elif result is not None:
        for response in result:
            await context.write(response)


class PipelineInterceptor(grpc.aio.ServerInterceptor):
    """Runs `middlewares` in order around every handler."""

    def __init__(self, middlewares: Sequence[Middleware]) -> None:
        self._middlewares: List[Middleware] = list(middlewares)

    def _compose(self, terminal: CallNext) -> CallNext:
        call_next = terminal
        for middleware in reversed(self._middlewares):
            call_next = self._bind(middleware, call_next)
        return call_next

    @staticmethod
    def _bind(middleware: Middleware, call_next: CallNext) -> CallNext:
        async def _step(call: RpcCall) -> Any:
            return await middleware(call, call_next)
        return _step

    async def _run(
        self,
        details: grpc.HandlerCallDetails,
        context: grpc.aio.ServicerContext,
        terminal: CallNext,
        streaming: bool,
    ) -> Any:
        call = RpcCall(
            context=CallContext(method=details.method),
            servicer_context=context,
            metadata=_metadata_dict(details),
            streaming=streaming,
        )
        token = _current_call.set(call.context)
        try:
            return await self._compose(terminal)(call)
        finally:
            _current_call.reset(token)

    async def intercept_service(
        self,
        continuation: Callable[[grpc.HandlerCallDetails], Awaitable[grpc.RpcMethodHandler]],
        handler_call_details: grpc.HandlerCallDetails,
    ) -> grpc.RpcMethodHandler:
        handler = await continuation(handler_call_details)
        if handler is None:
            return handler

        details = handler_call_details

        if handler.unary_unary:
            async def _unary_unary(request, context: grpc.aio.ServicerContext):
                async def terminal(call: RpcCall):
                    return await handler.unary_unary(request, context)
                return await self._run(details, context, terminal, streaming=False)

            return grpc.unary_unary_rpc_method_handler(
                _unary_unary,
                request_deserializer=handler.request_deserializer,
                response_serializer=handler.response_serializer,
            )

        if handler.unary_stream:
            async def _unary_stream(request, context: grpc.aio.ServicerContext):
                async def terminal(call: RpcCall):
                    await _drain(handler.unary_stream(request, context), context)
                await self._run(details, context, terminal, streaming=True)

            return grpc.unary_stream_rpc_method_handler(
                _unary_stream,
                request_deserializer=handler.request_deserializer,
                response_serializer=handler.response_serializer,
            )

        if handler.stream_unary:
            async def _stream_unary(request_iterator, context: grpc.aio.ServicerContext):
                async def terminal(call: RpcCall):
                    result = handler.stream_unary(request_iterator, context)
                    return await result if inspect.isawaitable(result) else result
                return await self._run(details, context, terminal, streaming=True)

            return grpc.stream_unary_rpc_method_handler(
                _stream_unary,
                request_deserializer=handler.request_deserializer,
                response_serializer=handler.response_serializer,
            )

        if handler.stream_stream:
            async def _stream_stream(request_iterator, context: grpc.aio.ServicerContext):
                async def terminal(call: RpcCall):
                    await _drain(handler.stream_stream(request_iterator, context), context)
                await self._run(details, context, terminal, streaming=True)

            return grpc.stream_stream_rpc_method_handler(
                _stream_stream,
                request_deserializer=handler.request_deserializer,
                response_serializer=handler.response_serializer,
            )

        return handler
