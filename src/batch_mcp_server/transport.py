"""HTTP transport for the Batch data plane REST API."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Generator
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
import requests
import structlog
from azure.batch.batch_auth import SharedKeyCredentials
from azure.identity import DefaultAzureCredential
from pydantic import ValidationError

from batch_mcp_server.config import BatchAccountContext, ClientSettings, get_settings
from batch_mcp_server.errors import BatchServiceError, BatchTransportError
from batch_mcp_server.models import (
    BatchRequest,
    BatchResponse,
    GetPoolRequest,
    GetPoolResponse,
    ListPoolsResponse,
)

if TYPE_CHECKING:
    from batch_mcp_server.interceptors import OperationContext

log = structlog.get_logger()

BATCH_SCOPE = "https://batch.core.windows.net/.default"


class SharedKeyAuth(httpx.Auth):
    """Signs requests with a Batch account's Shared Key.

    Signing is done by the azure-batch SDK's SharedKeyCredentials, which works
    on ``requests`` prepared requests. The httpx request is mirrored into one,
    signed, and the resulting ``ocp-date`` and ``Authorization`` headers are
    copied back.
    """

    def __init__(self, account_name: str, account_key: str) -> None:
        session = SharedKeyCredentials(account_name, account_key).signed_session()
        self._signer = session.auth
        session.close()

    def sign(self, request: httpx.Request) -> None:
        prepared = requests.Request(request.method, str(request.url), headers=dict(request.headers)).prepare()
        self._signer(prepared)
        request.headers["ocp-date"] = prepared.headers["ocp-date"]
        request.headers["Authorization"] = prepared.headers["Authorization"]

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        self.sign(request)
        yield request


class EntraTokenAuth(httpx.Auth):
    """Adds a Microsoft Entra ID bearer token from DefaultAzureCredential."""

    def __init__(self) -> None:
        self._credential: DefaultAzureCredential | None = None
        self._lock = threading.Lock()

    def _get_credential(self) -> DefaultAzureCredential:
        with self._lock:
            if self._credential is None:
                self._credential = DefaultAzureCredential()
            return self._credential

    def _token(self) -> str:
        return self._get_credential().get_token(BATCH_SCOPE).token

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self._token()}"
        yield request

    async def async_auth_flow(self, request: httpx.Request) -> Any:
        # DefaultAzureCredential blocks on token refresh, keep it off the event loop.
        token = await asyncio.to_thread(self._token)
        request.headers["Authorization"] = f"Bearer {token}"
        yield request


def build_auth(context: BatchAccountContext) -> httpx.Auth:
    if context.account_key:
        return SharedKeyAuth(context.account_name, context.account_key)
    return EntraTokenAuth()


class HttpBatchTransport:
    """Sends pool requests to one Batch account over HTTPS.

    Args:
        context: The account to talk to.
        settings: Timeouts, retries and API version. Defaults to get_settings().
        http_transport: Optional httpx transport, e.g. httpx.MockTransport in tests.
    """

    def __init__(
        self,
        context: BatchAccountContext,
        settings: ClientSettings | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._context = context
        self._settings = settings or get_settings()
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            transport = self._http_transport or httpx.AsyncHTTPTransport(retries=self._settings.connection_retries)
            self._client = httpx.AsyncClient(
                base_url=self._context.account_url,
                auth=build_auth(self._context),
                timeout=httpx.Timeout(self._settings.timeout_seconds),
                headers={"Accept": "application/json"},
                transport=transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpBatchTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def send(self, request: BatchRequest, context: OperationContext) -> BatchResponse:
        if isinstance(request, GetPoolRequest):
            params = self._odata_params(request.select, request.expand)
            data = await self._get_json(f"/pools/{quote(request.pool_id, safe='')}", params, context)
            return GetPoolResponse(pool=data)

        if request.continuation_token:
            # The next link already carries api-version and every query option.
            data = await self._get_json(request.continuation_token, None, context)
        else:
            params = self._odata_params(request.select, request.expand)
            if request.filter:
                params["$filter"] = request.filter
            if request.max_results:
                params["maxresults"] = str(request.max_results)
            data = await self._get_json("/pools", params, context)

        value = data.get("value")
        if not isinstance(value, list):
            msg = f"Malformed response for {request.operation}: missing 'value' array."
            raise BatchServiceError(msg)
        try:
            return ListPoolsResponse(pools=value, continuation_token=data.get("odata.nextLink"))
        except ValidationError as e:
            msg = f"Malformed response for {request.operation}: {e.error_count()} invalid entries in 'value'."
            raise BatchServiceError(msg) from e

    def _odata_params(self, select: str | None, expand: str | None) -> dict[str, str]:
        params = {"api-version": self._settings.api_version}
        if select:
            params["$select"] = select
        if expand:
            params["$expand"] = expand
        return params

    async def _get_json(
        self,
        url: str,
        params: dict[str, str] | None,
        context: OperationContext,
    ) -> dict[str, Any]:
        headers = {
            "client-request-id": context.client_request_id,
            "return-client-request-id": "true",
        }
        try:
            response = await self._get_client().get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            log.error(
                "batch_transport_failed",
                account=self._context.name,
                operation=context.operation,
                client_request_id=context.client_request_id,
                error=type(e).__name__,
            )
            raise BatchTransportError(f"{context.operation} request failed: {e}") from e

        if response.is_error:
            code, message = _parse_error_body(response)
            log.error(
                "batch_request_failed",
                account=self._context.name,
                operation=context.operation,
                client_request_id=context.client_request_id,
                status_code=response.status_code,
                code=code,
            )
            msg = f"Batch service returned {response.status_code} {code or response.reason_phrase}: {message}"
            raise BatchServiceError(msg, status_code=response.status_code, code=code)

        try:
            data = response.json()
        except ValueError:
            msg = f"Malformed response for {context.operation}: body is not JSON."
            raise BatchServiceError(msg, status_code=response.status_code) from None
        if not isinstance(data, dict):
            msg = f"Malformed response for {context.operation}: expected a JSON object."
            raise BatchServiceError(msg, status_code=response.status_code)
        return data


def _parse_error_body(response: httpx.Response) -> tuple[str | None, str]:
    """Extract the Batch error code and message, tolerating non-JSON bodies."""
    try:
        body = response.json()
    except ValueError:
        return None, response.text or response.reason_phrase
    if not isinstance(body, dict):
        return None, response.reason_phrase
    message = body.get("message")
    if isinstance(message, dict):
        message = message.get("value")
    return body.get("code"), str(message or response.reason_phrase)
