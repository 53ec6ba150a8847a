"""Shared test fixtures for all test modules."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from batch_mcp_server.config import BatchAccountContext, load_account_map
from batch_mcp_server.errors import BatchServiceError
from batch_mcp_server.interceptors import OperationContext
from batch_mcp_server.models import (
    BatchRequest,
    BatchResponse,
    GetPoolRequest,
    GetPoolResponse,
    ListPoolsRequest,
    ListPoolsResponse,
)

ACCOUNTS_FILE = Path(__file__).parent / "data" / "accounts.yaml"


@pytest.fixture(autouse=True)
def account_map(monkeypatch: pytest.MonkeyPatch) -> dict[str, BatchAccountContext]:
    """Load the test account file into ACCOUNT_MAP for every test."""
    monkeypatch.setenv("BATCH_MCP_ACCOUNTS", str(ACCOUNTS_FILE))
    return load_account_map()


@pytest.fixture
def prod_context(account_map: dict[str, BatchAccountContext]) -> BatchAccountContext:
    return account_map["prod-eastus"]


class FakeTransport:
    """In-memory stand-in for HttpBatchTransport.

    ``pages`` holds the pool list pages in service order; continuation tokens
    are the index of the next page. ``fail_on_page`` makes that page fetch
    raise a 503.
    """

    def __init__(self) -> None:
        self.pools: dict[str, dict[str, Any]] = {}
        self.pages: list[list[dict[str, Any]]] = []
        self.fail_on_page: int | None = None
        self.requests: list[BatchRequest] = []

    async def send(self, request: BatchRequest, context: OperationContext) -> BatchResponse:
        self.requests.append(request)
        if isinstance(request, GetPoolRequest):
            if request.pool_id not in self.pools:
                raise BatchServiceError("The specified pool does not exist.", status_code=404, code="PoolNotFound")
            return GetPoolResponse(pool=self.pools[request.pool_id])

        assert isinstance(request, ListPoolsRequest)
        index = int(request.continuation_token) if request.continuation_token else 0
        if index == self.fail_on_page:
            raise BatchServiceError("Server busy", status_code=503, code="ServerBusy")
        page = self.pages[index] if self.pages else []
        next_token = str(index + 1) if index + 1 < len(self.pages) else None
        return ListPoolsResponse(pools=page, continuation_token=next_token)

    def list_requests(self) -> list[ListPoolsRequest]:
        return [r for r in self.requests if isinstance(r, ListPoolsRequest)]


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


def make_raw_pool(
    pool_id: str = "testPool",
    state: str = "active",
    allocation_state: str = "steady",
    vm_size: str = "standard_d2s_v3",
    dedicated: int = 2,
) -> dict[str, Any]:
    """Create a raw pool entity shaped like the Batch REST API response."""
    return {
        "id": pool_id,
        "displayName": f"{pool_id} display",
        "url": f"https://prodbatch.eastus.batch.azure.com/pools/{pool_id}",
        "eTag": "0x8DC1234567890AB",
        "state": state,
        "allocationState": allocation_state,
        "vmSize": vm_size,
        "targetDedicatedNodes": dedicated,
        "currentDedicatedNodes": dedicated,
        "targetLowPriorityNodes": 0,
        "currentLowPriorityNodes": 0,
        "enableAutoScale": False,
        "creationTime": "2026-01-15T08:30:00Z",
        "lastModified": "2026-02-01T12:00:00Z",
    }


@pytest.fixture
def raw_pool() -> Any:
    """Factory for raw pool entities; call it with the fields a test cares about."""
    return make_raw_pool
