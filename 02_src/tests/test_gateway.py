"""Tests for GatewayClient."""

import httpx
import pytest

from patchin.commands import GatewayClient
from patchin.errors import GatewayError


def make_client(handler, command: str = "openclaw") -> GatewayClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://gateway")
    return GatewayClient(base_url="http://gateway", command=command, client=http)


def routes(table: dict):
    def handler(request: httpx.Request) -> httpx.Response:
        key = (request.method, request.url.path)
        if key not in table:
            return httpx.Response(404)
        status, body = table[key]
        return httpx.Response(status, json=body)

    return handler


class TestProbe:
    """Tests for the liveness probe used in auto-replies."""

    @pytest.mark.asyncio
    async def test_online_idle(self):
        client = make_client(routes({("GET", "/status"): (200, {"activeAgents": []})}))
        assert await client.probe() == {"online": True, "has_active_task": False, "agent_count": 0}

    @pytest.mark.asyncio
    async def test_online_with_agents(self):
        agents = [{"id": "main"}, {"id": "sub"}]
        client = make_client(routes({("GET", "/status"): (200, {"activeAgents": agents})}))
        probe = await client.probe()
        assert probe["has_active_task"] is True
        assert probe["agent_count"] == 2

    @pytest.mark.asyncio
    async def test_http_error_is_offline(self):
        client = make_client(routes({("GET", "/status"): (503, {})}))
        probe = await client.probe()
        assert probe["online"] is False
        assert "HTTP 503" in probe["error"]

    @pytest.mark.asyncio
    async def test_unreachable_is_offline(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        probe = await make_client(refuse).probe()
        assert probe["online"] is False


class TestCurrentTask:
    @pytest.mark.asyncio
    async def test_lists_active_agents(self):
        body = {"activeAgents": [{"id": "main", "model": "opus"}]}
        client = make_client(routes({("GET", "/status"): (200, body)}))

        text = await client.current_task()
        assert text.startswith("📋 Current Task Summary:")
        assert "- Agent: main (opus)" in text

    @pytest.mark.asyncio
    async def test_falls_back_to_sessions(self):
        client = make_client(routes({
            ("GET", "/status"): (200, {"activeAgents": []}),
            ("GET", "/sessions"): (200, {"sessions": [{"id": "s1"}]}),
        }))
        text = await client.current_task()
        assert "Recent sessions:" in text
        assert "Session s1" in text

    @pytest.mark.asyncio
    async def test_idle(self):
        client = make_client(routes({("GET", "/status"): (200, {})}))
        assert "No active tasks detected" in await client.current_task()

    @pytest.mark.asyncio
    async def test_gateway_down(self):
        client = make_client(routes({}))
        with pytest.raises(GatewayError, match="Failed to get current task"):
            await client.current_task()


class TestNewSession:
    @pytest.mark.asyncio
    async def test_success(self):
        client = make_client(routes({("POST", "/sessions/new"): (200, {"sessionKey": "abc"})}))
        text = await client.new_session()
        assert text.startswith("✅ New session started!")
        assert "Session: abc" in text

    @pytest.mark.asyncio
    async def test_http_failure(self):
        client = make_client(routes({("POST", "/sessions/new"): (500, {})}))
        with pytest.raises(GatewayError, match="HTTP 500"):
            await client.new_session()

    @pytest.mark.asyncio
    async def test_timeout(self):
        def slow(request):
            raise httpx.ReadTimeout("too slow", request=request)

        with pytest.raises(GatewayError, match="Timeout waiting for new session"):
            await make_client(slow).new_session()


class TestCli:
    """Tests for the subprocess-backed actions."""

    @pytest.mark.asyncio
    async def test_status_output(self):
        client = make_client(routes({}), command="echo")
        assert await client.status() == "📊 Gateway Status:\ngateway status\n"

    @pytest.mark.asyncio
    async def test_restart_output(self):
        client = make_client(routes({}), command="echo")
        text = await client.restart()
        assert text.startswith("🔄 Gateway restart initiated!\n\ngateway restart")
        assert "approximately 30 seconds" in text

    @pytest.mark.asyncio
    async def test_missing_binary(self):
        client = make_client(routes({}), command="/nonexistent/openclaw")
        with pytest.raises(GatewayError, match="Failed to get gateway status"):
            await client.status()

    @pytest.mark.asyncio
    async def test_non_zero_exit(self):
        client = make_client(routes({}), command="false")
        with pytest.raises(GatewayError, match="exited with code 1"):
            await client.restart()


@pytest.mark.asyncio
async def test_close():
    client = make_client(routes({}))
    await client.close()
