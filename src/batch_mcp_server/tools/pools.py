"""get_batch_pool: fetch one pool by id or list pools matching an OData filter."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import structlog

from batch_mcp_server.client import BatchServiceClient
from batch_mcp_server.commands import CollectionResult, GetBatchPoolCommand, ListPipeline, SingleResult
from batch_mcp_server.config import ALL_ACCOUNT_NAMES, get_settings, resolve_account
from batch_mcp_server.errors import BatchCommandError
from batch_mcp_server.models import BatchPool, PoolListOutput, PoolOutput, ToolError

log = structlog.get_logger()


async def get_pool_handler(
    account: str,
    name: str,
    select: str | None = None,
    expand: str | None = None,
) -> PoolOutput:
    """Core handler for get_batch_pool with a pool id."""
    context = resolve_account(account)
    client = BatchServiceClient(context)
    try:
        command = GetBatchPoolCommand(context=context, name=name, select=select, expand=expand, client=client)
        result = await command.execute(ListPipeline())
    finally:
        await client.aclose()

    if not isinstance(result, SingleResult):
        msg = f"Expected a single pool for {name!r}, got {type(result).__name__}."
        raise TypeError(msg)
    return PoolOutput(account=account, pool=result.pool, timestamp=datetime.now(tz=UTC).isoformat())


async def list_pools_handler(
    account: str,
    filter: str | None = None,
    select: str | None = None,
    expand: str | None = None,
    max_count: int | None = None,
) -> PoolListOutput:
    """Core handler for get_batch_pool without a pool id.

    Drains at most ``max_count`` pools (default BATCH_DEFAULT_MAX_COUNT). If a
    later page fails, the pools already received are returned with an error.
    """
    context = resolve_account(account)
    limit = max_count if max_count is not None else get_settings().default_max_count
    client = BatchServiceClient(context)
    pools: list[BatchPool] = []
    errors: list[ToolError] = []
    try:
        # One extra item tells us whether the listing was cut short.
        command = GetBatchPoolCommand(
            context=context,
            filter=filter,
            select=select,
            expand=expand,
            max_count=limit + 1,
            client=client,
        )
        result = await command.execute(ListPipeline())
        if not isinstance(result, CollectionResult):
            msg = f"Expected a pool collection, got {type(result).__name__}."
            raise TypeError(msg)
        try:
            async for pool in result.pools:
                pools.append(pool)
        except BatchCommandError as e:
            if not pools:
                raise
            log.warning("list_pools_partial", account=account, received=len(pools), error=str(e))
            errors.append(
                ToolError(
                    error=f"Listing stopped after {len(pools)} pools: {e}",
                    source="batch-api",
                    account=account,
                    partial_data=True,
                )
            )
    finally:
        await client.aclose()

    truncated = len(pools) > limit
    pools = pools[:limit]
    if truncated:
        summary = f"Showing the first {len(pools)} pools in {account}; more are available"
    else:
        summary = f"{len(pools)} pools in {account}"
    if filter:
        summary += f" matching {filter}"

    return PoolListOutput(
        account=account,
        filter=filter,
        pools=pools,
        count=len(pools),
        truncated=truncated,
        summary=summary,
        timestamp=datetime.now(tz=UTC).isoformat(),
        errors=errors,
    )


async def list_pools_all(
    filter: str | None = None,
    select: str | None = None,
    expand: str | None = None,
    max_count: int | None = None,
) -> list[PoolListOutput]:
    """Fan-out list_pools_handler to all configured accounts concurrently.

    Each account gets its own client and paged result, so the listings share
    no state.
    """
    tasks = [list_pools_handler(name, filter, select, expand, max_count) for name in ALL_ACCOUNT_NAMES]
    results = await asyncio.gather(*tasks, return_exceptions=True)
    outputs: list[PoolListOutput] = []
    for name, result in zip(ALL_ACCOUNT_NAMES, results, strict=True):
        if isinstance(result, BaseException):
            log.error("fan_out_account_failed", tool="get_batch_pool", account=name, error=str(result))
            outputs.append(
                PoolListOutput(
                    account=name,
                    filter=filter,
                    summary=f"Failed to list pools in {name}",
                    timestamp=datetime.now(tz=UTC).isoformat(),
                    errors=[ToolError(error=str(result), source="batch-api", account=name)],
                )
            )
        else:
            outputs.append(result)
    return outputs
