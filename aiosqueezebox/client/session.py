"""Live session with a media server: player discovery, push subscriptions and commands."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from contextlib import suppress
from types import TracebackType
from typing import Any, Self

from aiohttp import ClientSession

from aiosqueezebox.config import SqueezeboxConfig
from aiosqueezebox.exceptions import ConnectTimeoutError, SqueezeboxError, TransportError
from aiosqueezebox.host import EntitiesInterface, NotificationsInterface
from aiosqueezebox.models.cometd import ServerMessage
from aiosqueezebox.models.types import (
    BASE_FEATURES,
    ConnectionState,
    IntegrationState,
    MediaPlayerCommand,
    MediaPlayerFeature,
)

from .commands import MEDIA_PLAYER, CommandDispatcher
from .registry import PlayerRegistry
from .rpc import RpcClient
from .state_machine import (
    ApplyStatus,
    ConnectRequested,
    DisconnectRequested,
    Effect,
    MarkSubscribed,
    MessageReceived,
    OpenTransport,
    PlayersDiscovered,
    RequestPlayers,
    ResetSession,
    SendMessage,
    SubscriptionStateMachine,
    SurfaceOnline,
    TransportConnected,
    TransportFailed,
)
from .transport import CometDTransport

logger = logging.getLogger(__name__)

StateCallback = Callable[[IntegrationState], Awaitable[None] | None]


class SqueezeboxSession:
    """Keep a media server's players in sync with the host's entities.

    All work happens on one event loop. Responses that arrive after the session was
    reset (disconnect, failed attempt) are recognized by a generation counter and
    dropped.
    """

    def __init__(
        self,
        config: SqueezeboxConfig,
        entities: EntitiesInterface,
        notifications: NotificationsInterface,
        *,
        http_session: ClientSession | None = None,
    ) -> None:
        """Create a session; players of already configured entities are registered."""
        self._config = config
        self._entities = entities
        self._notifications = notifications
        self._rpc = RpcClient(config.url, config.port, session=http_session)
        self._dispatcher = CommandDispatcher(self._rpc)
        self._machine = SubscriptionStateMachine()
        self._registry = PlayerRegistry(
            entities, config.base_url, progress_interval=config.progress_interval
        )
        self._transport: CometDTransport | None = None
        self._state = IntegrationState.DISCONNECTED
        self._state_callbacks: list[StateCallback] = []
        self._user_disconnect = False
        self._generation = 0
        self._connection_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._callback_tasks: set[asyncio.Task[Any]] = set()
        self._online: asyncio.Future[None] | None = None
        self._lost = asyncio.Event()
        self._connected_event = asyncio.Event()

        for entity in entities.get_by_integration(config.integration_id):
            self._registry.register(entity.entity_id)
        logger.debug("Session set up with %d configured player(s)", len(self._registry))

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    @property
    def state(self) -> IntegrationState:
        """Return the integration state as reported to the host."""
        return self._state

    @property
    def connection_state(self) -> ConnectionState:
        """Return the protocol state of the streaming connection."""
        return self._machine.state

    @property
    def client_id(self) -> str | None:
        """Return the CometD client id of the current connection."""
        return self._machine.client_id

    @property
    def players(self) -> PlayerRegistry:
        """Return the player registry."""
        return self._registry

    @property
    def rpc(self) -> RpcClient:
        """Return the JSON-RPC client."""
        return self._rpc

    def add_state_listener(self, callback: StateCallback) -> None:
        """Register a callback invoked when the integration state changes."""
        self._state_callbacks.append(callback)

    async def connect(self) -> None:
        """Start connecting; attempts continue in the background until connected or exhausted."""
        self._start_connection()

    async def wait_connected(self, timeout: float | None = None) -> None:
        """Wait until all connected players are subscribed."""
        await asyncio.wait_for(self._connected_event.wait(), timeout=timeout)

    async def disconnect(self) -> None:
        """Stop the session; late responses of the closed connection are discarded."""
        self._user_disconnect = True
        task = self._connection_task
        self._connection_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        await self._teardown()
        self._set_state(IntegrationState.DISCONNECTED)

    def enter_standby(self) -> None:
        """Stop position extrapolation while the host sleeps."""
        self._registry.enter_standby()

    def leave_standby(self) -> None:
        """Resume after standby by re-polling the status of playing players."""
        for player_id in self._registry.leave_standby():
            self._spawn(self._poll_status(player_id))

    async def network_accessible_changed(self, accessible: bool) -> None:
        """Disconnect when the host reports that the network is no longer reachable."""
        if accessible:
            return
        logger.info("Network not accessible, disconnecting from %s", self._config.url)
        await self.disconnect()

    async def send_command(
        self,
        entity_type: str,
        entity_id: str,
        command: MediaPlayerCommand | str,
        param: Any = None,
    ) -> None:
        """Send a playback command to a player."""
        await self._dispatcher.dispatch(entity_type, entity_id, command, param)

    async def close(self) -> None:
        """Disconnect and release the HTTP session."""
        await self.disconnect()
        await self._rpc.close()

    async def __aenter__(self) -> Self:
        """Enter the async context manager returning this instance."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Close the session when leaving the async context manager."""
        await self.close()

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------
    def _start_connection(self) -> None:
        if self._connection_task is not None and not self._connection_task.done():
            logger.debug("Connection already in progress")
            return
        self._user_disconnect = False
        self._set_state(IntegrationState.CONNECTING)
        self._connection_task = asyncio.get_running_loop().create_task(self._connection_loop())

    async def _connection_loop(self) -> None:
        tries = 0
        while not self._user_disconnect:
            logger.debug("Try to connect for the %d. time", tries + 1)
            error: SqueezeboxError | None = None
            try:
                await asyncio.wait_for(self._attempt(), timeout=self._config.connect_timeout)
            except TimeoutError:
                error = ConnectTimeoutError(
                    f"No connection within {self._config.connect_timeout:.1f}s"
                )
            except SqueezeboxError as err:
                error = err

            if error is not None:
                logger.warning("Connection attempt to %s failed: %s", self._config.url, error)
                await self._teardown()
                if tries >= self._config.connect_retries:
                    await self._report_failure(tries + 1)
                    return
                tries += 1
                continue

            tries = 0
            await self._lost.wait()
            if self._user_disconnect:
                return
            logger.error("Connection to %s lost - try to reconnect", self._config.url)
            await self._teardown()
            self._set_state(IntegrationState.CONNECTING)

    async def _attempt(self) -> None:
        self._online = asyncio.get_running_loop().create_future()
        self._lost = asyncio.Event()
        await self._execute(self._machine.handle(ConnectRequested(), self._registry))
        await self._online

    async def _teardown(self) -> None:
        """Reset to IDLE: drop the connection, pending calls and subscription state."""
        self._generation += 1
        self._connected_event.clear()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        if self._online is not None:
            if self._online.done() and not self._online.cancelled():
                self._online.exception()
            else:
                self._online.cancel()
            self._online = None
        if self._transport is not None:
            await self._transport.close()
            self._transport = None
        await self._execute(self._machine.handle(DisconnectRequested(), self._registry))

    async def _report_failure(self, attempts: int) -> None:
        await self.disconnect()
        logger.critical(
            "Cannot connect to Squeezebox server: tried %d times connecting to %s",
            attempts,
            self._config.url,
        )
        self._notifications.add(
            True,
            f"Cannot connect to {self._config.name}.",
            "Reconnect",
            self._start_connection,
        )

    def _fail(self, reason: str) -> None:
        """Mark the current connection as broken; the connection loop resets it."""
        self._machine.handle(TransportFailed(reason), self._registry)
        self._lost.set()
        if self._online is not None and not self._online.done():
            self._online.set_exception(TransportError(reason))

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------
    async def _execute(self, effects: list[Effect]) -> None:
        for effect in effects:
            match effect:
                case RequestPlayers():
                    await self._discover_players()
                case OpenTransport():
                    await self._open_transport()
                case SendMessage(message=message):
                    if self._transport is None:
                        raise TransportError("Streaming connection is not open")
                    await self._transport.send(message)
                case MarkSubscribed(player_id=player_id):
                    self._registry.mark_subscribed(player_id)
                case ApplyStatus(player_id=player_id, data=data):
                    self._registry.apply_status(player_id, data)
                case SurfaceOnline():
                    self._surface_online()
                case ResetSession():
                    self._registry.reset()
                case _:
                    logger.debug("Unhandled effect: %s", type(effect).__name__)

    async def _discover_players(self) -> None:
        generation = self._generation
        result = await self._rpc.get_players()
        if generation != self._generation:
            return

        for item in result.players_loop:
            features = list(BASE_FEATURES)
            if item.canpoweroff:
                features += [MediaPlayerFeature.TURN_OFF, MediaPlayerFeature.TURN_ON]
            self._entities.add_available_entity(
                item.playerid, MEDIA_PLAYER, self._config.integration_id, item.name, features
            )
            if item.playerid in self._registry:
                self._registry.mark_connected(item.playerid)
                self._spawn(self._poll_status(item.playerid))
        logger.debug("Server reported %d player(s)", result.count)

        await self._execute(self._machine.handle(PlayersDiscovered(), self._registry))

    async def _open_transport(self) -> None:
        generation = self._generation
        self._transport = CometDTransport(
            self._config.url,
            self._config.port,
            on_message=lambda message: self._on_transport_message(message, generation),
            on_closed=lambda error: self._on_transport_closed(error, generation),
        )
        await self._transport.open()
        logger.debug("Connected to socket")
        await self._execute(self._machine.handle(TransportConnected(), self._registry))

    def _surface_online(self) -> None:
        logger.info(
            "Connected to %s, %d player(s) subscribed",
            self._config.url,
            self._registry.subscribed_count(),
        )
        self._connected_event.set()
        if self._online is not None and not self._online.done():
            self._online.set_result(None)
        self._set_state(IntegrationState.CONNECTED)

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------
    async def _on_transport_message(self, message: ServerMessage, generation: int) -> None:
        if generation != self._generation or self._user_disconnect:
            logger.debug("Dropping late message on %s", message.channel)
            return
        try:
            await self._execute(self._machine.handle(MessageReceived(message), self._registry))
        except SqueezeboxError as err:
            logger.error("Handling %s failed: %s", message.channel, err)
            self._fail(str(err))

    def _on_transport_closed(self, error: Exception | None, generation: int) -> None:
        if generation != self._generation or self._user_disconnect:
            return
        reason = f"socket error: {error}" if error is not None else "closed by server"
        logger.error("Streaming connection %s", reason)
        self._fail(reason)

    async def _poll_status(self, player_id: str) -> None:
        generation = self._generation
        try:
            status = await self._rpc.get_player_status(player_id)
        except SqueezeboxError as err:
            if not self._user_disconnect:
                logger.warning("Status request for %s failed: %s", player_id, err)
            return
        if generation != self._generation or self._user_disconnect:
            return
        self._registry.apply_status(player_id, status)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _set_state(self, state: IntegrationState) -> None:
        if state is self._state:
            return
        self._state = state
        for callback in self._state_callbacks:
            try:
                result = callback(state)
                if asyncio.iscoroutine(result):
                    task = asyncio.get_running_loop().create_task(result)
                    self._callback_tasks.add(task)
                    task.add_done_callback(self._callback_tasks.discard)
            except Exception:
                logger.exception("Error in state callback %s", callback)
