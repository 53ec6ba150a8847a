"""MCP server entry point and tool registration."""

from __future__ import annotations

import sys
import time

import structlog
from mcp.server.fastmcp import FastMCP

from batch_mcp_server.config import load_account_map, validate_account_config
from batch_mcp_server.models import scrub_sensitive_values
from batch_mcp_server.tools.pools import get_pool_handler, list_pools_all, list_pools_handler

# Configure structlog for stderr: console rendering on a TTY, JSON lines otherwise
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer() if sys.stderr.isatty() else structlog.processors.JSONRenderer(),
    ],
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
)

log = structlog.get_logger()

mcp = FastMCP("Batch Pool MCP Server")


@mcp.tool()
async def get_batch_pool(
    account: str,
    name: str | None = None,
    filter: str | None = None,
    select: str | None = None,
    expand: str | None = None,
    max_count: int | None = None,
) -> str:
    """Get an Azure Batch pool by id, or list pools in a Batch account.

    With a name, returns that single pool. Without one, lists pools matching the
    OData filter (or all pools), following continuation pages as needed.
    Use this to inspect pool state, allocation state, VM size and node counts.

    Args:
        account: Configured Batch account name, or 'all' to list across every account.
        name: Pool id to fetch. Cannot be combined with filter.
        filter: OData $filter expression, e.g. "startswith(id,'render')". Omit for all pools.
        select: OData $select clause limiting the returned properties.
        expand: OData $expand clause, e.g. 'stats'.
        max_count: Maximum number of pools to list. Default 1000.
    """
    start = time.monotonic()
    try:
        if name and account == "all":
            msg = "A pool name requires a specific account; 'all' only supports listing."
            raise ValueError(msg)
        if name:
            result = await get_pool_handler(account, name, select, expand)
            output = scrub_sensitive_values(result.model_dump_json(indent=2))
        elif account == "all":
            results = await list_pools_all(filter, select, expand, max_count)
            output = "\n\n".join(scrub_sensitive_values(r.model_dump_json(indent=2)) for r in results)
        else:
            listing = await list_pools_handler(account, filter, select, expand, max_count)
            output = scrub_sensitive_values(listing.model_dump_json(indent=2))
        log.info("tool_completed", tool="get_batch_pool", account=account, latency_ms=_elapsed_ms(start))
        return output
    except Exception as e:
        sanitised = scrub_sensitive_values(str(e))
        log.error("tool_failed", tool="get_batch_pool", account=account, error=sanitised)
        raise RuntimeError(sanitised) from None


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def main() -> None:
    load_account_map()
    validate_account_config()
    mcp.run(transport="stdio")


# Claude Desktop MCP server configuration example:
#
# {
#   "mcpServers": {
#     "batch-mcp-server": {
#       "command": "uv",
#       "args": ["run", "--directory", "/path/to/batch-mcp-server", "batch-mcp-server"],
#       "env": {"BATCH_MCP_ACCOUNTS": "/path/to/accounts.yaml"}
#     }
#   }
# }

if __name__ == "__main__":
    main()
