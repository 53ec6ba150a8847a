"""Exception hierarchy for pool retrieval.

All errors raised by the library inherit from BatchCommandError, so the tool
boundary in server.py can catch them in one place.
"""

from __future__ import annotations


class BatchCommandError(Exception):
    """Base exception for all pool retrieval errors."""


class ParameterConflictError(BatchCommandError):
    """Mutually exclusive parameters were supplied together."""


class InvalidParameterError(BatchCommandError):
    """A parameter value failed validation before any request was sent."""


class PoolNotFoundError(BatchCommandError):
    """The requested pool does not exist in the account."""

    def __init__(self, pool_id: str, account: str) -> None:
        super().__init__(f"Pool {pool_id!r} was not found in Batch account {account!r}.")
        self.pool_id = pool_id
        self.account = account


class BatchServiceError(BatchCommandError):
    """The Batch service returned a non-success or unreadable response."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class BatchTransportError(BatchCommandError):
    """The request never produced a response (connection, DNS, timeout)."""


class InterceptorContractError(BatchCommandError):
    """An interceptor or transport answered a request with the wrong response type."""
