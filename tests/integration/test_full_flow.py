# -*- coding: utf-8 -*-

"""
Integration tests for complete end-to-end flow.
Checks interaction of all system components: CORS, routing, pipeline,
upstream client and response relay.
"""

import json

import httpx
from fastapi.testclient import TestClient

from kimi.app import create_app
from kimi.http_client import UpstreamHttpClient


class TestFullChatCompletionFlow:
    """Integration tests for a multi-turn agent conversation."""

    def test_agent_tool_loop(
        self,
        make_test_client,
        upstream_requests,
        kimi_tool_call_payload,
        reset_default_tool_id_generator,
        streamed_json,
    ):
        """
        What it does: Sends a tool round-trip conversation through the proxy.
        Goal: Upstream receives a payload it accepts, client gets upstream's answer.
        """

        def handler(request):
            return streamed_json(
                200,
                {"id": "chatcmpl-1", "choices": [{"message": {"role": "assistant", "content": "Done"}}]},
            )

        client = make_test_client(handler)

        print("Step 1: Preflight...")
        preflight = client.options("/v1/chat/completions")
        assert preflight.status_code == 200
        assert upstream_requests == []

        print("Step 2: Chat completion with tool history...")
        response = client.post(
            "/v1/chat/completions",
            json=kimi_tool_call_payload,
            headers={"Authorization": "Bearer sk-moonshot"},
        )
        assert response.status_code == 200
        assert response.json()["choices"][0]["message"]["content"] == "Done"
        assert response.headers["access-control-allow-origin"] == "*"

        print("Step 3: Inspecting what upstream received...")
        sent = json.loads(upstream_requests[0].content)
        print(f"Forwarded payload: {sent}")
        assert "thinking" not in sent
        assert sent["temperature"] == 1.0
        assert sent["top_p"] == 0.95
        assert sent["n"] == 1
        assert sent["presence_penalty"] == 0.0
        assert sent["frequency_penalty"] == 0.0

        assistant = sent["messages"][2]
        tool_result = sent["messages"][3]
        assert assistant["reasoning_content"] == " "
        assert assistant["tool_calls"][0]["id"] == "functions_read_file_0"
        assert tool_result["tool_call_id"] == assistant["tool_calls"][0]["id"]
        assert upstream_requests[0].headers["authorization"] == "Bearer sk-moonshot"

    def test_anthropic_style_blocks(self, test_client, upstream_requests, reset_default_tool_id_generator):
        """
        What it does: Sends Anthropic-style content blocks with a degenerate id.
        Goal: Blocks get reasoning_content and linked fallback ids.
        """
        payload = {
            "model": "moonshot-v1-32k",
            "messages": [
                {
                    "role": "assistant",
                    "reasoning": "client-only field",
                    "content": [
                        {"type": "text", "text": "Let me check."},
                        {"type": "tool_use", "id": "::", "name": "ls", "input": {}},
                    ],
                },
                {
                    "role": "user",
                    "content": [{"type": "tool_result", "tool_use_id": "::", "content": "a.txt"}],
                },
            ],
        }

        test_client.post("/v1/messages", json=payload)

        sent = json.loads(upstream_requests[0].content)
        assistant = sent["messages"][0]
        assert "reasoning" not in assistant
        assert assistant["reasoning_content"] == " "
        assert assistant["content"][1]["id"] == "tooluse_1"
        assert sent["messages"][1]["content"][0]["tool_use_id"] == "tooluse_1"

    def test_streaming_completion(self, make_test_client, upstream_requests, streamed_response):
        """
        What it does: Streams an SSE response through the proxy.
        Goal: Chunks arrive unmodified and in order.
        """
        events = b"".join(
            f"data: {json.dumps({'choices': [{'delta': {'content': c}}]})}\n\n".encode()
            for c in ("Hel", "lo")
        ) + b"data: [DONE]\n\n"

        def handler(request):
            return streamed_response(200, events, {"Content-Type": "text/event-stream"})

        client = make_test_client(handler)
        with client.stream(
            "POST", "/v1/chat/completions", json={"model": "kimi-k2.5", "stream": True, "messages": []}
        ) as response:
            received = b"".join(response.iter_bytes())

        assert response.status_code == 200
        assert received == events
        assert json.loads(upstream_requests[0].content)["stream"] is True

    def test_passthrough_for_other_models(self, test_client, upstream_requests):
        """
        What it does: Sends requests for a non-Kimi model.
        Goal: Proxy behaves as a plain reverse proxy.
        """
        raw = b'{"model":"gpt-4o","temperature":0.3,"messages":[{"role":"assistant","reasoning":"x"}]}'

        test_client.post("/v1/chat/completions", content=raw)
        test_client.get("/v1/models")

        assert upstream_requests[0].content == raw
        assert upstream_requests[1].method == "GET"


class TestApplicationLifespan:
    """Integration tests for application startup and shutdown."""

    def test_lifespan_closes_client(self, make_upstream_client):
        """
        What it does: Runs the app inside TestClient's context manager.
        Goal: Injected client is used and closed on shutdown.
        """
        upstream = make_upstream_client()
        app = create_app(upstream_client=upstream)

        with TestClient(app) as client:
            assert client.get("/v1/models").status_code == 200
            assert app.state.upstream_client is upstream

        assert app.state.upstream_client is None
        assert upstream._client.is_closed

    def test_lifespan_creates_client(self):
        """What it does: app without an injected client builds one at startup."""
        app = create_app()

        with TestClient(app):
            assert isinstance(app.state.upstream_client, UpstreamHttpClient)

        assert app.state.upstream_client is None

    def test_docs_paths_are_forwarded(self, test_client, upstream_requests):
        """What it does: /docs and /openapi.json belong to upstream."""
        test_client.get("/docs")
        test_client.get("/openapi.json")

        assert [r.url.path for r in upstream_requests] == ["/docs", "/openapi.json"]
