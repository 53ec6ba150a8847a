"""Batch pool client: routes every request through the interceptor chain."""

from __future__ import annotations

from collections.abc import Iterable
from typing import cast

import structlog

from batch_mcp_server.config import BatchAccountContext, ClientSettings, get_settings
from batch_mcp_server.errors import BatchServiceError, PoolNotFoundError
from batch_mcp_server.interceptors import Interceptor, InterceptorChain, OperationContext, Transport
from batch_mcp_server.models import (
    BatchPool,
    BatchRequest,
    BatchResponse,
    GetPoolRequest,
    GetPoolResponse,
    ListPoolsRequest,
    ListPoolsResponse,
)
from batch_mcp_server.paging import PagedResult
from batch_mcp_server.transport import HttpBatchTransport

log = structlog.get_logger()


class BatchServiceClient:
    """Pool operations against one Batch account.

    Args:
        context: The account the client talks to.
        transport: Sends requests that no interceptor answers. Defaults to an
            HttpBatchTransport for ``context``; it opens no connection until first used.
        behaviors: Interceptors consulted, in order, before every request.
        settings: Client settings. Defaults to get_settings().
    """

    def __init__(
        self,
        context: BatchAccountContext,
        transport: Transport | None = None,
        behaviors: Iterable[Interceptor] = (),
        settings: ClientSettings | None = None,
    ) -> None:
        self._context = context
        self._settings = settings or get_settings()
        self._transport: Transport = transport or HttpBatchTransport(context, self._settings)
        self._chain = InterceptorChain(behaviors)

    @property
    def context(self) -> BatchAccountContext:
        return self._context

    def with_behaviors(self, behaviors: Iterable[Interceptor]) -> BatchServiceClient:
        """Return a client sharing this transport with ``behaviors`` run ahead of this client's own."""
        clone = BatchServiceClient(self._context, self._transport, (), self._settings)
        clone._chain = self._chain.prepend(behaviors)
        return clone

    async def aclose(self) -> None:
        transport = self._transport
        if isinstance(transport, HttpBatchTransport):
            await transport.aclose()

    async def _execute(self, request: BatchRequest) -> BatchResponse:
        context = OperationContext(account=self._context.name, operation=request.operation)
        log.debug(
            "batch_request",
            account=context.account,
            operation=context.operation,
            client_request_id=context.client_request_id,
        )
        return await self._chain.send(context, request, self._transport)

    async def get_pool(self, pool_id: str, select: str | None = None, expand: str | None = None) -> BatchPool:
        """Fetch a single pool.

        Raises:
            PoolNotFoundError: If the account has no pool with this id.
            BatchServiceError: On any other non-success response.
        """
        request = GetPoolRequest(pool_id=pool_id, select=select, expand=expand)
        try:
            response = await self._execute(request)
        except BatchServiceError as e:
            if e.status_code == 404:
                raise PoolNotFoundError(pool_id, self._context.name) from e
            raise
        return BatchPool.from_raw(cast(GetPoolResponse, response).pool)

    def list_pools(
        self,
        filter: str | None = None,
        select: str | None = None,
        expand: str | None = None,
        max_count: int | None = None,
    ) -> PagedResult[BatchPool]:
        """List pools lazily. No request is sent until the result is iterated."""
        page_size = self._settings.page_size
        if max_count is not None:
            page_size = min(page_size, max_count)

        async def fetch_page(continuation_token: str | None) -> ListPoolsResponse:
            request = ListPoolsRequest(
                filter=filter,
                select=select,
                expand=expand,
                max_results=page_size,
                continuation_token=continuation_token,
            )
            return cast(ListPoolsResponse, await self._execute(request))

        return PagedResult(fetch_page, BatchPool.from_raw, max_count=max_count)

