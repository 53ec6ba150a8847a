"""Pydantic v2 models for service requests, responses, pools, and tool outputs."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from batch_mcp_server.errors import BatchServiceError

# --- Shared error model ---


class ToolError(BaseModel):
    """Structured error returned by tools for a single account."""

    error: str
    source: str
    account: str
    partial_data: bool = False


# --- Output scrubbing ---

_SHARED_KEY_PATTERN = re.compile(r"SharedKey\s+[^\s:]+:[A-Za-z0-9+/=]+")
_BEARER_PATTERN = re.compile(r"Bearer\s+[A-Za-z0-9\-_.~+/=]+")
_SUBSCRIPTION_PATTERN = re.compile(r"/subscriptions/[a-f0-9-]+", re.IGNORECASE)
_RESOURCE_GROUP_PATTERN = re.compile(r"/resourceGroups/[^/]+", re.IGNORECASE)
# Batch account keys are 64 random bytes, base64 encoded.
_ACCOUNT_KEY_PATTERN = re.compile(r"\b[A-Za-z0-9+/]{86}==")


def scrub_sensitive_values(text: str) -> str:
    """Remove request signatures, tokens, account keys and ARM resource paths from text.

    Account URLs and pool ids are preserved.
    """
    if not text:
        return text
    result = _SHARED_KEY_PATTERN.sub("SharedKey [REDACTED]", text)
    result = _BEARER_PATTERN.sub("Bearer [REDACTED]", result)
    result = _ACCOUNT_KEY_PATTERN.sub("[REDACTED_KEY]", result)
    result = _RESOURCE_GROUP_PATTERN.sub("/resourceGroups/[REDACTED]", result)
    result = _SUBSCRIPTION_PATTERN.sub("/subscriptions/[REDACTED]", result)
    return result


# --- Domain object ---


class BatchPool(BaseModel):
    """User-facing projection of a raw Batch pool entity.

    Constructed once from the REST representation and immutable afterwards.
    Properties the service omitted (e.g. because of ``$select``) are None.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str
    display_name: str | None = None
    url: str | None = None
    e_tag: str | None = None
    state: str | None = None
    allocation_state: str | None = None
    vm_size: str | None = None
    target_dedicated_nodes: int | None = None
    current_dedicated_nodes: int | None = None
    target_low_priority_nodes: int | None = None
    current_low_priority_nodes: int | None = None
    enable_auto_scale: bool | None = None
    creation_time: datetime | None = None
    last_modified: datetime | None = None

    @property
    def name(self) -> str:
        return self.id

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> BatchPool:
        """Project a REST pool entity.

        Raises:
            BatchServiceError: If the entity lacks an id or has a badly typed property.
        """
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            pool_id = raw.get("id") if isinstance(raw, dict) else None
            msg = f"Malformed pool record {pool_id!r}: {e.error_count()} invalid properties."
            raise BatchServiceError(msg) from e


# --- Service requests and responses ---


class GetPoolResponse(BaseModel):
    """Raw response to a single-pool fetch."""

    model_config = ConfigDict(frozen=True)

    pool: dict[str, Any]


class ListPoolsResponse(BaseModel):
    """One page of raw pools plus the continuation token for the next page."""

    model_config = ConfigDict(frozen=True)

    pools: list[dict[str, Any]] = Field(default_factory=list)
    continuation_token: str | None = None


class GetPoolRequest(BaseModel):
    """Fetch one pool by id."""

    model_config = ConfigDict(frozen=True)

    response_type: ClassVar[type[BaseModel]] = GetPoolResponse
    operation: ClassVar[str] = "Pool_Get"

    pool_id: str
    select: str | None = None
    expand: str | None = None


class ListPoolsRequest(BaseModel):
    """Fetch one page of pools.

    ``continuation_token`` is None for the first page and carries the
    service's next link for every following page.
    """

    model_config = ConfigDict(frozen=True)

    response_type: ClassVar[type[BaseModel]] = ListPoolsResponse
    operation: ClassVar[str] = "Pool_List"

    filter: str | None = None
    select: str | None = None
    expand: str | None = None
    max_results: int | None = None
    continuation_token: str | None = None


BatchRequest = GetPoolRequest | ListPoolsRequest
BatchResponse = GetPoolResponse | ListPoolsResponse


# --- Tool output models ---


class PoolOutput(BaseModel):
    """Output of get_batch_pool for a single pool id."""

    account: str
    pool: BatchPool
    timestamp: str


class PoolListOutput(BaseModel):
    """Output of get_batch_pool when listing pools in one account."""

    account: str
    filter: str | None = None
    pools: list[BatchPool] = Field(default_factory=list)
    count: int = 0
    truncated: bool = False
    summary: str
    timestamp: str
    errors: list[ToolError] = Field(default_factory=list)
