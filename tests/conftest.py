# -*- coding: utf-8 -*-

"""
Shared pytest fixtures.

The upstream API is replaced by httpx.MockTransport, so no test touches
the network. Every request that reaches the fake upstream is recorded.
"""

import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from kimi.app import create_app
from kimi.http_client import UpstreamHttpClient
from kimi.middleware.tool_id_normalizer import DEFAULT_TOOL_ID_GENERATOR, ToolIdGenerator

UpstreamHandler = Callable[[httpx.Request], httpx.Response]


def _streamed_response(
    status_code: int,
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
) -> httpx.Response:
    """
    Build a fake upstream response whose body is still unread.

    httpx.Response(content=...) loads the body eagerly, unlike a real
    network response; stream= keeps it lazy.
    """
    return httpx.Response(status_code, headers=headers, stream=httpx.ByteStream(body))


def _streamed_json(status_code: int, payload: Any) -> httpx.Response:
    """Streamed fake upstream response carrying a JSON body."""
    return _streamed_response(
        status_code,
        json.dumps(payload).encode("utf-8"),
        {"Content-Type": "application/json"},
    )


@pytest.fixture
def streamed_response():
    """Factory for fake upstream responses with an unread body."""
    return _streamed_response


@pytest.fixture
def streamed_json():
    """Factory for streamed fake upstream JSON responses."""
    return _streamed_json


@pytest.fixture
def tool_id_generator() -> ToolIdGenerator:
    """Fresh fallback id generator starting at zero."""
    return ToolIdGenerator()


@pytest.fixture
def reset_default_tool_id_generator():
    """Reset the process-wide generator before and after the test."""
    DEFAULT_TOOL_ID_GENERATOR.reset()
    yield DEFAULT_TOOL_ID_GENERATOR
    DEFAULT_TOOL_ID_GENERATOR.reset()


@pytest.fixture
def upstream_requests() -> List[httpx.Request]:
    """Requests received by the fake upstream, in order."""
    return []


@pytest.fixture
def make_upstream_client(upstream_requests):
    """Factory for an UpstreamHttpClient backed by a recording MockTransport."""

    def _make(handler: Optional[UpstreamHandler] = None) -> UpstreamHttpClient:
        def _record(request: httpx.Request) -> httpx.Response:
            upstream_requests.append(request)
            if handler is not None:
                return handler(request)
            return _streamed_json(200, {"id": "chatcmpl-test", "object": "chat.completion"})

        return UpstreamHttpClient(
            base_url="https://api.moonshot.ai",
            proxy_url="",
            verify_tls=True,
            transport=httpx.MockTransport(_record),
        )

    return _make


@pytest.fixture
def make_test_client(make_upstream_client):
    """Factory for a TestClient whose upstream is a MockTransport."""

    def _make(handler: Optional[UpstreamHandler] = None) -> TestClient:
        app = create_app(upstream_client=make_upstream_client(handler))
        return TestClient(app)

    return _make


@pytest.fixture
def test_client(make_test_client) -> TestClient:
    """TestClient with a fake upstream answering 200 to everything."""
    return make_test_client()


@pytest.fixture
def kimi_tool_call_payload() -> dict:
    """Typical Copilot-style request for a Kimi model with one tool round-trip."""
    return {
        "model": "kimi-k2.5",
        "temperature": 0.2,
        "top_p": 0.5,
        "n": 3,
        "presence_penalty": 1.5,
        "frequency_penalty": -0.5,
        "thinking": {"type": "enabled", "budget_tokens": 2048},
        "messages": [
            {"role": "system", "content": "You are a coding assistant."},
            {"role": "user", "content": "Read main.py"},
            {
                "role": "assistant",
                "content": "",
                "tool_calls": [
                    {
                        "id": "functions.read_file:0",
                        "type": "function",
                        "function": {"name": "read_file", "arguments": "{\"path\": \"main.py\"}"},
                    }
                ],
            },
            {
                "role": "tool",
                "tool_call_id": "functions.read_file:0",
                "content": "print('hello')",
            },
        ],
    }
