"""Get-pool command: dispatches to single-pool or lazy collection retrieval."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from batch_mcp_server.client import BatchServiceClient
from batch_mcp_server.config import BatchAccountContext
from batch_mcp_server.errors import ParameterConflictError
from batch_mcp_server.interceptors import Interceptor
from batch_mcp_server.models import BatchPool
from batch_mcp_server.paging import PagedResult
from batch_mcp_server.validation import normalize_filter, validate_max_count, validate_odata_clause, validate_pool_id

log = structlog.get_logger()


class Pipeline(Protocol):
    """Output channel a command writes its result to."""

    def write_object(self, obj: Any) -> None: ...


class ListPipeline:
    """Pipeline that keeps everything written to it, in order."""

    def __init__(self) -> None:
        self.objects: list[Any] = []

    def write_object(self, obj: Any) -> None:
        self.objects.append(obj)

    def __len__(self) -> int:
        return len(self.objects)


@dataclass(frozen=True)
class SingleResult:
    """A pool fetched by id."""

    pool: BatchPool


@dataclass(frozen=True)
class CollectionResult:
    """A lazily listed collection of pools. Iterate ``pools`` to fetch them.

    When the command built its own client, ``owned_client`` is that client and
    must be closed with ``aclose()`` once iteration is finished.
    """

    pools: PagedResult[BatchPool]
    owned_client: BatchServiceClient | None = field(default=None, repr=False)

    async def aclose(self) -> None:
        if self.owned_client is not None:
            await self.owned_client.aclose()


CommandResult = SingleResult | CollectionResult


@dataclass
class GetBatchPoolCommand:
    """Retrieve one pool by ``name`` or list pools matching ``filter``.

    ``name`` and ``filter`` are mutually exclusive. ``additional_behaviors``
    are interceptors that apply to this invocation only; they run ahead of any
    behaviors already configured on ``client``.
    """

    context: BatchAccountContext
    name: str | None = None
    filter: str | None = None
    select: str | None = None
    expand: str | None = None
    max_count: int | None = None
    additional_behaviors: list[Interceptor] = field(default_factory=list)
    client: BatchServiceClient | None = None

    def _build_client(self) -> BatchServiceClient:
        client = self.client or BatchServiceClient(self.context)
        if self.additional_behaviors:
            client = client.with_behaviors(self.additional_behaviors)
        return client

    def _validate(self) -> None:
        if self.name and normalize_filter(self.filter) is not None:
            msg = "Parameters 'name' and 'filter' are mutually exclusive; supply at most one."
            raise ParameterConflictError(msg)
        if self.name:
            validate_pool_id(self.name)
        validate_odata_clause("$select", self.select)
        validate_odata_clause("$expand", self.expand)
        validate_max_count(self.max_count)

    async def execute(self, pipeline: Pipeline) -> CommandResult:
        """Run the command and write exactly one object to ``pipeline``.

        For a name, the pool is fetched before this returns. For a filter (or
        neither), a PagedResult is written and nothing is fetched yet. A client the
        command creates for itself is closed after a single fetch, and handed
        to the CollectionResult for the caller to close after listing.
        """
        self._validate()
        client = self._build_client()
        owned = self.client is None

        if self.name:
            log.info("get_pool", account=self.context.name, pool=self.name)
            try:
                pool = await client.get_pool(self.name, select=self.select, expand=self.expand)
            finally:
                if owned:
                    await client.aclose()
            pipeline.write_object(pool)
            return SingleResult(pool)

        filter_expression = normalize_filter(self.filter)
        log.info("list_pools", account=self.context.name, filter=filter_expression, max_count=self.max_count)
        pools = client.list_pools(
            filter=filter_expression,
            select=self.select,
            expand=self.expand,
            max_count=self.max_count,
        )
        pipeline.write_object(pools)
        return CollectionResult(pools, owned_client=client if owned else None)
