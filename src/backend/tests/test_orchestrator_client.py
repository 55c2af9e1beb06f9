"""Tests for the orchestrator HTTP client.

Uses httpx.MockTransport so requests never leave the process.
"""

import json

import httpx
import pytest

from nexora.errors import MissingCredentialError, TransportError
from nexora.orchestrator.client import OrchestratorClient
from payloads import server_payload, usage_payload

BASE = "https://panel.test"


def _client(handler, **kwargs) -> OrchestratorClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OrchestratorClient(http_client, base_url=BASE, timeout=5, **kwargs)


class TestCredentials:
    async def test_missing_credential_fails_before_network(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"data": []})

        client = _client(handler)

        with pytest.raises(MissingCredentialError):
            await client.list_servers("")
        assert calls == []

    async def test_bearer_header_is_sent(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"object": "list", "data": []})

        await _client(handler).list_servers("key-123")

        assert seen["auth"] == "Bearer key-123"
        assert seen["url"] == f"{BASE}/api/client"


class TestReads:
    async def test_list_servers_returns_raw_items(self):
        items = [server_payload("a1"), server_payload("b2")]

        def handler(request):
            return httpx.Response(200, json={"object": "list", "data": items})

        assert await _client(handler).list_servers("key") == items

    async def test_list_servers_wraps_single_object(self):
        def handler(request):
            return httpx.Response(200, json={"data": server_payload("a1")})

        assert len(await _client(handler).list_servers("key")) == 1

    async def test_get_server(self):
        def handler(request):
            assert request.url.path == "/api/client/servers/a1"
            return httpx.Response(200, json=server_payload("a1"))

        body = await _client(handler).get_server("a1", "key")
        assert body["attributes"]["identifier"] == "a1"

    async def test_get_usage_parses_resources(self):
        def handler(request):
            assert request.url.path == "/api/client/servers/a1/resources"
            return httpx.Response(200, json=usage_payload(state="running", cpu=33.0, memory_mb=256))

        usage = await _client(handler).get_usage("a1", "key")

        assert usage.current_state == "running"
        assert usage.cpu == 33.0
        assert usage.memory_mb == 256.0


class TestWrites:
    async def test_send_power_posts_signal(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(204)

        ack = await _client(handler).send_power("a1", "key", "restart")

        assert ack.accepted is True
        assert seen == {"path": "/api/client/servers/a1/power", "body": {"signal": "restart"}}

    async def test_send_command_posts_command(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(204)

        await _client(handler).send_command("a1", "key", "say hi")

        assert seen["body"] == {"command": "say hi"}


class TestErrors:
    async def test_non_2xx_raises_transport_error_with_truncated_body(self):
        def handler(request):
            return httpx.Response(500, text="x" * 2000)

        with pytest.raises(TransportError) as exc_info:
            await _client(handler, error_body_max_chars=100).list_servers("key")

        assert exc_info.value.status == 500
        assert len(exc_info.value.body) == 100

    async def test_html_error_body_is_not_parsed(self):
        def handler(request):
            return httpx.Response(403, text="<html>Forbidden</html>")

        with pytest.raises(TransportError) as exc_info:
            await _client(handler).send_power("a1", "key", "start")

        assert exc_info.value.status == 403
        assert "Forbidden" in exc_info.value.body

    async def test_network_error_raises_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError) as exc_info:
            await _client(handler).get_server("a1", "key")

        assert exc_info.value.status is None

    async def test_timeout_raises_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransportError, match="timed out"):
            await _client(handler).get_usage("a1", "key")

    async def test_non_json_success_body_raises_transport_error(self):
        def handler(request):
            return httpx.Response(200, text="not json")

        with pytest.raises(TransportError):
            await _client(handler).list_servers("key")
