"""
Remote automation backends.

A backend exposes a single opaque RPC, ``invoke(tool_name, args)``. Two
transports are provided:

- MCP over stdio, spawning a Playwright MCP server process (mcp SDK)
- Plain HTTP, posting tool calls to an automation server (httpx)
"""

from __future__ import annotations

from contextlib import AsyncExitStack
from datetime import timedelta
from typing import Any, Protocol, runtime_checkable

import httpx
import structlog
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from designscout.config import BackendConfig, TransportKind
from designscout.gateway.decoder import decode_text
from designscout.gateway.errors import BackendError

logger = structlog.get_logger(__name__)


@runtime_checkable
class RemoteBackend(Protocol):
    """Opaque, fallible RPC to a browser-automation backend."""

    @property
    def is_connected(self) -> bool: ...

    async def connect(self) -> None: ...

    async def invoke(self, tool_name: str, args: dict[str, Any]) -> Any: ...

    async def aclose(self) -> None: ...


class McpStdioBackend:
    """
    Backend speaking MCP to a server process over stdio.

    The process is spawned on ``connect()`` and terminated on ``aclose()``.
    Both must be awaited from the same task, as the stdio transport runs in a
    task group bound to the opening task.
    """

    def __init__(self, config: BackendConfig) -> None:
        self._config = config
        self._stack: AsyncExitStack | None = None
        self._session: ClientSession | None = None
        self._tools: set[str] = set()
        self._log = logger.bind(component="mcp_backend", command=config.command)

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    @property
    def tools(self) -> frozenset[str]:
        return frozenset(self._tools)

    async def connect(self) -> None:
        """Spawn the server, run the initialize handshake and list its tools."""
        if self._session is not None:
            return

        params = StdioServerParameters(
            command=self._config.command,
            args=list(self._config.args),
            env=self._config.env,
        )
        stack = AsyncExitStack()
        try:
            read, write = await stack.enter_async_context(stdio_client(params))
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
            listing = await session.list_tools()
        except Exception as e:
            await stack.aclose()
            raise BackendError(f"connection to MCP server failed: {e}") from e

        self._stack = stack
        self._session = session
        self._tools = {tool.name for tool in listing.tools}
        self._log.info("MCP server connected", tool_count=len(self._tools))

    async def invoke(self, tool_name: str, args: dict[str, Any]) -> Any:
        if self._session is None:
            raise BackendError("connection not established", tool_name=tool_name)

        result = await self._session.call_tool(
            tool_name,
            arguments=args,
            read_timeout_seconds=timedelta(milliseconds=self._config.request_timeout_ms),
        )
        content = [item.model_dump(mode="json") for item in result.content]
        if result.isError:
            raise BackendError(decode_text(content) or f"{tool_name} reported an error", tool_name)
        return content

    async def aclose(self) -> None:
        if self._stack is None:
            return
        stack, self._stack, self._session = self._stack, None, None
        await stack.aclose()
        self._log.info("MCP server disconnected")


class HttpToolBackend:
    """Backend posting tool calls to ``{base_url}/tools/{name}``."""

    def __init__(
        self,
        config: BackendConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client
        self._log = logger.bind(component="http_backend", base_url=config.base_url)

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                timeout=httpx.Timeout(self._config.request_timeout_ms / 1000),
            )
            self._owns_client = True

    async def invoke(self, tool_name: str, args: dict[str, Any]) -> Any:
        if self._client is None:
            raise BackendError("connection not established", tool_name=tool_name)

        try:
            response = await self._client.post(f"/tools/{tool_name}", json=args)
        except httpx.TimeoutException as e:
            raise BackendError(f"request timed out: {e}", tool_name) from e
        except httpx.TransportError as e:
            raise BackendError(f"network error: {e}", tool_name) from e

        if response.status_code == 429:
            raise BackendError("rate limit exceeded (HTTP 429 too many requests)", tool_name)
        if response.status_code in (401, 403):
            raise BackendError(f"access denied (HTTP {response.status_code})", tool_name)
        if response.status_code >= 400:
            raise BackendError(f"HTTP {response.status_code}: {response.text}", tool_name)

        try:
            data = response.json()
        except ValueError:
            return response.text

        if isinstance(data, dict) and data.get("isError"):
            raise BackendError(decode_text(data) or f"{tool_name} reported an error", tool_name)
        return data

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


def create_backend(config: BackendConfig) -> RemoteBackend:
    """Build the backend selected by ``config.transport``."""
    if config.transport == TransportKind.HTTP:
        return HttpToolBackend(config)
    return McpStdioBackend(config)


__all__ = [
    "HttpToolBackend",
    "McpStdioBackend",
    "RemoteBackend",
    "create_backend",
]
