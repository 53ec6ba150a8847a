"""Input validation helpers for command and tool parameters."""

from __future__ import annotations

import re

from batch_mcp_server.errors import InvalidParameterError

# Batch ids: letters, digits, hyphens and underscores, at most 64 characters.
_POOL_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

# $select and $expand take comma-separated property paths.
_ODATA_CLAUSE_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_/]*(\s*,\s*[A-Za-z][A-Za-z0-9_/]*)*$")


def validate_pool_id(pool_id: str) -> None:
    """Validate a Batch pool id."""
    if not _POOL_ID_RE.match(pool_id):
        msg = (
            f"Invalid pool id: {pool_id!r}. Must be 1-64 characters of letters, digits, "
            "hyphens and underscores."
        )
        raise InvalidParameterError(msg)


def normalize_filter(filter_expression: str | None) -> str | None:
    """Collapse a blank filter to None, meaning "return all pools"."""
    if filter_expression is None or not filter_expression.strip():
        return None
    return filter_expression.strip()


def validate_odata_clause(name: str, clause: str | None) -> None:
    """Validate a $select or $expand clause."""
    if clause is None:
        return
    if not _ODATA_CLAUSE_RE.match(clause.strip()):
        msg = f"Invalid {name} clause: {clause!r}. Must be a comma-separated list of property names."
        raise InvalidParameterError(msg)


def validate_max_count(max_count: int | None) -> None:
    """Validate the item limit for collection retrieval. None means unlimited."""
    if max_count is None:
        return
    if max_count < 1:
        msg = f"Invalid max_count: {max_count!r}. Must be a positive integer or omitted."
        raise InvalidParameterError(msg)
