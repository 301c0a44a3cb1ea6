"""Gateway client: the side effects behind remote-control commands."""

import asyncio
import time
from typing import Any, Protocol

import httpx

from ..errors import GatewayError
from ..logging_config import get_logger

logger = get_logger(__name__)


class IGatewayClient(Protocol):
    """Local gateway actions. Each returns display text or raises GatewayError."""

    async def status(self) -> str:
        ...

    async def current_task(self) -> str:
        ...

    async def new_session(self) -> str:
        ...

    async def restart(self) -> str:
        ...

    async def probe(self) -> dict[str, Any]:
        """Liveness summary used in auto-replies. Never raises."""
        ...

    async def close(self) -> None:
        ...


class GatewayClient:
    """Talks to the gateway CLI via subprocess and to its HTTP API via httpx."""

    def __init__(
        self,
        base_url: str = "http://localhost:18789",
        command: str = "openclaw",
        client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._command = command
        self._client = client or httpx.AsyncClient(base_url=self._base_url)

    async def close(self) -> None:
        await self._client.aclose()

    async def status(self) -> str:
        try:
            stdout, stderr = await self._run_cli("status", timeout=10.0)
        except GatewayError as e:
            raise GatewayError(f"Failed to get gateway status: {e}") from e

        output = stdout
        if stderr.strip():
            output += f"\n[Warning output]\n{stderr}"
        if not output.strip():
            raise GatewayError(
                "Failed to get gateway status: No output received from gateway status command"
            )
        return f"📊 Gateway Status:\n{output}"

    async def current_task(self) -> str:
        try:
            status = await self._get_json("/status", timeout=5.0)
        except GatewayError as e:
            raise GatewayError(f"Failed to get current task: {e}") from e

        agents = status.get("activeAgents") or []
        if agents:
            lines = "\n".join(
                f"- Agent: {a.get('id', 'unknown')} ({a.get('model', 'default model')})"
                for a in agents
            )
            return f"📋 Current Task Summary:\n\nActive agents: {len(agents)}\n{lines}"

        try:
            sessions = (await self._get_json("/sessions", timeout=5.0)).get("sessions") or []
        except GatewayError as e:
            logger.debug("Sessions lookup failed: %s", e)
            sessions = []

        if sessions:
            now_ms = time.time() * 1000
            lines = "\n".join(
                f"- Session {s.get('id') or s.get('key') or 'unknown'} "
                f"({int((now_ms - (s.get('createdAt') or now_ms)) / 60000)} min ago)"
                for s in sessions[:3]
            )
            return f"📋 Current Task Summary:\n\nRecent sessions:\n{lines}"

        return (
            "📋 Current Task Summary:\n\n"
            "No active tasks detected. OpenClaw is ready and waiting for commands."
        )

    async def new_session(self) -> str:
        try:
            response = await self._client.post("/sessions/new", json={}, timeout=10.0)
        except httpx.TimeoutException as e:
            raise GatewayError(
                "Timeout waiting for new session. The gateway may be busy."
            ) from e
        except httpx.HTTPError as e:
            raise GatewayError(f"Failed to start new session: {e}") from e

        if response.is_success:
            data = response.json()
            session_key = data.get("sessionKey") or data.get("key") or data.get("id") or "new session"
            return (
                f"✅ New session started!\n\nSession: {session_key}\n\n"
                "You can now send commands to this fresh session."
            )

        raise GatewayError(
            f"Failed to start new session: API returned HTTP {response.status_code}. "
            "Please use /new in your OpenClaw interface to start a new session manually."
        )

    async def restart(self) -> str:
        try:
            stdout, stderr = await self._run_cli("restart", timeout=60.0)
        except GatewayError as e:
            raise GatewayError(f"Failed to restart gateway: {e}") from e

        output = stdout
        if stderr.strip():
            output += f"\n[Output]\n{stderr}"
        return (
            f"🔄 Gateway restart initiated!\n\n{output}\n\n"
            "Note: It will take approximately 30 seconds for the gateway to come back "
            "online. Please wait before sending new commands."
        )

    async def probe(self) -> dict[str, Any]:
        try:
            data = await self._get_json("/status", timeout=5.0)
        except GatewayError as e:
            return {"online": False, "error": str(e)}
        agents = data.get("activeAgents") or []
        return {"online": True, "has_active_task": bool(agents), "agent_count": len(agents)}

    async def _get_json(self, path: str, timeout: float) -> dict[str, Any]:
        try:
            response = await self._client.get(path, timeout=timeout)
        except httpx.TimeoutException as e:
            raise GatewayError(f"Gateway did not answer {path} within {timeout:.0f}s") from e
        except httpx.HTTPError as e:
            raise GatewayError(f"Gateway unreachable: {e}") from e
        if not response.is_success:
            raise GatewayError(f"Gateway status check failed: HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as e:
            raise GatewayError(f"Gateway returned invalid JSON for {path}") from e
        return data if isinstance(data, dict) else {}

    async def _run_cli(self, action: str, timeout: float) -> tuple[str, str]:
        try:
            proc = await asyncio.create_subprocess_exec(
                self._command,
                "gateway",
                action,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise GatewayError(f"Could not run {self._command}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise GatewayError(f"{self._command} gateway {action} timed out after {timeout:.0f}s") from e

        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            raise GatewayError(
                f"{self._command} gateway {action} exited with code {proc.returncode}: "
                f"{(err or out).strip()[:500]}"
            )
        return out, err
