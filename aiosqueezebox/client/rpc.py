"""JSON-RPC client for the media server's ``/jsonrpc.js`` endpoint."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Sequence
from types import TracebackType
from typing import Any, Self

import orjson
from aiohttp import ClientError, ClientSession, ClientTimeout

from aiosqueezebox.exceptions import ProtocolParseError, TransportError
from aiosqueezebox.models.rpc import (
    PLAYERS_COMMAND,
    SERVER_TARGET,
    STATUS_COMMAND,
    PlayersResult,
    PlayerStatus,
    RpcRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class RpcClient:
    """Issue one-shot ``slim.request`` calls over HTTP.

    Calls are independent of each other and may be in flight concurrently.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        session: ClientSession | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Create a client for the server at host:port."""
        self._host = host
        self._port = port
        self._url = f"http://{host}:{port}/jsonrpc.js"
        self._session = session
        self._owns_session = session is None
        self._timeout = ClientTimeout(total=timeout)
        self._ids = itertools.count(1)

    @property
    def url(self) -> str:
        """Return the JSON-RPC endpoint URL."""
        return self._url

    async def call(self, player_id: str, command: str | Sequence[str]) -> dict[str, Any]:
        """
        Execute a command for a player and return its ``result`` object.

        Args:
            player_id: Player id, or ``"-"`` for server-wide commands.
            command: Space separated command or list of command tokens.

        Raises:
            TransportError: The HTTP request failed or returned an error status.
            ProtocolParseError: The response body is not a JSON object.
        """
        request = RpcRequest.build(next(self._ids), player_id, command)
        if self._session is None:
            self._session = ClientSession()
            self._owns_session = True

        logger.debug("RPC %s %s", player_id, request.params[1])
        try:
            async with self._session.post(
                self._url,
                data=request.to_jsonb(),
                headers={"Content-Type": "application/json", "Accept": "application/json"},
                timeout=self._timeout,
            ) as response:
                response.raise_for_status()
                body = await response.read()
        except (ClientError, asyncio.TimeoutError) as err:
            raise TransportError(f"HTTP request to {self._url} failed: {err!r}") from err

        try:
            answer = orjson.loads(body)
        except orjson.JSONDecodeError as err:
            raise ProtocolParseError(f"Invalid JSON in RPC response: {err}") from err
        if not isinstance(answer, dict):
            raise ProtocolParseError(f"Unexpected RPC response: {answer!r}")

        result = answer.get("result")
        return result if isinstance(result, dict) else {}

    async def get_players(self) -> PlayersResult:
        """Return the players known to the server."""
        result = await self.call(SERVER_TARGET, PLAYERS_COMMAND)
        return PlayersResult.from_dict(result)

    async def get_player_status(self, player_id: str) -> PlayerStatus:
        """Return the current status of a player."""
        result = await self.call(player_id, STATUS_COMMAND)
        return PlayerStatus.from_dict(result)

    async def close(self) -> None:
        """Release the HTTP session if this client created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> Self:
        """Enter the async context manager returning this instance."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Close the HTTP session when leaving the async context manager."""
        await self.close()
