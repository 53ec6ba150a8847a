"""Per-invocation request interceptors that can observe or replace outbound Batch calls."""

from __future__ import annotations

import inspect
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from batch_mcp_server.errors import InterceptorContractError
from batch_mcp_server.models import BatchRequest, BatchResponse

if TYPE_CHECKING:
    from pydantic import BaseModel

log = structlog.get_logger()


@dataclass(frozen=True)
class OperationContext:
    """Describes one outbound call, handed to every interceptor in the chain."""

    account: str
    operation: str
    client_request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


# An interceptor returns a substitute response, or None to pass the request on.
# It may be a plain function or a coroutine function.
Interceptor = Callable[[OperationContext, BatchRequest], Any]


class Transport(Protocol):
    async def send(self, request: BatchRequest, context: OperationContext) -> BatchResponse: ...


class InterceptorChain:
    """Ordered, immutable sequence of interceptors.

    The chain holds no mutable state, so one instance can serve concurrent
    requests from any task.
    """

    def __init__(self, interceptors: Iterable[Interceptor] = ()) -> None:
        self._interceptors: tuple[Interceptor, ...] = tuple(interceptors)

    def __len__(self) -> int:
        return len(self._interceptors)

    def prepend(self, interceptors: Iterable[Interceptor]) -> InterceptorChain:
        """Return a new chain that consults ``interceptors`` before this chain's own."""
        return InterceptorChain([*interceptors, *self._interceptors])

    async def intercept(self, context: OperationContext, request: BatchRequest) -> Any:
        """Return the first substitute produced by the chain, or None if every interceptor declines."""
        for interceptor in self._interceptors:
            result = interceptor(context, request)
            if inspect.isawaitable(result):
                result = await result
            if result is not None:
                return result
        return None

    async def send(self, context: OperationContext, request: BatchRequest, transport: Transport) -> BatchResponse:
        """Send a request through the chain, falling back to the real transport.

        Raises:
            InterceptorContractError: If a substitute, or the transport's response,
                is not an instance of the request's declared response type.
        """
        expected: type[BaseModel] = request.response_type
        substitute = await self.intercept(context, request)
        if substitute is None:
            response = await transport.send(request, context)
            if not isinstance(response, expected):
                msg = (
                    f"Transport returned {type(response).__name__} for {type(request).__name__}; "
                    f"expected {expected.__name__}."
                )
                raise InterceptorContractError(msg)
            return response

        if not isinstance(substitute, expected):
            msg = (
                f"Interceptor returned {type(substitute).__name__} for {type(request).__name__}; "
                f"expected {expected.__name__}."
            )
            raise InterceptorContractError(msg)

        log.debug(
            "batch_request_intercepted",
            account=context.account,
            operation=context.operation,
            client_request_id=context.client_request_id,
        )
        return substitute


def respond_with(
    request_type: type[BatchRequest],
    factory: Callable[[BatchRequest], BatchResponse],
) -> Interceptor:
    """Build an interceptor that answers every request of ``request_type`` with ``factory(request)``."""

    def _interceptor(context: OperationContext, request: BatchRequest) -> BatchResponse | None:
        if isinstance(request, request_type):
            return factory(request)
        return None

    return _interceptor


class RequestRecorder:
    """Interceptor that records every request it sees and always declines."""

    def __init__(self) -> None:
        self.calls: list[tuple[OperationContext, BatchRequest]] = []

    def __call__(self, context: OperationContext, request: BatchRequest) -> None:
        self.calls.append((context, request))

    @property
    def requests(self) -> list[BatchRequest]:
        return [request for _, request in self.calls]

    def count(self, request_type: type[BatchRequest]) -> int:
        return sum(1 for request in self.requests if isinstance(request, request_type))
