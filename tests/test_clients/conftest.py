"""Client-specific test fixtures: httpx mock transports and recorded requests."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest


class RecordingHandler:
    """httpx.MockTransport handler that records requests and replies via ``respond``."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]) -> None:
        self._respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._respond(request)


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], tuple[httpx.MockTransport, RecordingHandler]]:
    """Factory building an httpx.MockTransport around a response function."""

    def _build(respond: Callable[[httpx.Request], httpx.Response]) -> tuple[httpx.MockTransport, RecordingHandler]:
        handler = RecordingHandler(respond)
        return httpx.MockTransport(handler), handler

    return _build


@pytest.fixture
def batch_error_body() -> Callable[[str, str], dict]:
    """Factory for a Batch REST error body."""

    def _build(code: str, message: str) -> dict:
        return {
            "odata.metadata": "https://prodbatch.eastus.batch.azure.com/$metadata#Microsoft.Azure.Batch.Protocol.Entities.Container.errors/@Element",
            "code": code,
            "message": {"lang": "en-US", "value": message},
        }

    return _build
