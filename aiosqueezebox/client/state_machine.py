"""Connection and subscription state machine for the streaming channel.

The machine is pure: it consumes events and returns the effects the session has to
carry out (send a message, open the socket, mark a player, ...). It never performs
I/O, which keeps the ordering rules of the protocol testable without a server.

Sequence for one connection cycle::

    IDLE -> REQUESTING_PLAYERS -> HANDSHAKING -> CONNECTING -> SUBSCRIBING -> CONNECTED

Each step needs data from the previous reply (first the client id, then a live
connect channel), so the steps can only complete in that order.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from aiosqueezebox.models.cometd import (
    CONNECT_CHANNEL,
    HANDSHAKE_CHANNEL,
    SUBSCRIBE_CHANNEL,
    CometDMessage,
    ConnectMessage,
    HandshakeMessage,
    ServerMessage,
    SubscribeData,
    SubscribeMessage,
    status_channel,
)
from aiosqueezebox.models.rpc import STATUS_COMMAND, tokenize
from aiosqueezebox.models.types import ConnectionState

if TYPE_CHECKING:
    from .registry import Player

logger = logging.getLogger(__name__)

SUBSCRIBE_INTERVAL = 60
"""Seconds between periodic status pushes requested from the server."""


# Events
class Event:
    """Base event type consumed by SubscriptionStateMachine.handle()."""


@dataclass
class ConnectRequested(Event):
    """The host asked for a connection."""


@dataclass
class PlayersDiscovered(Event):
    """The player list was received and the players are registered."""


@dataclass
class TransportConnected(Event):
    """The TCP socket of the streaming channel is open."""


@dataclass
class MessageReceived(Event):
    """A message arrived on the streaming channel."""

    message: ServerMessage


@dataclass
class TransportFailed(Event):
    """The streaming connection failed or was closed by the server."""

    reason: str


@dataclass
class DisconnectRequested(Event):
    """The host asked for a disconnect, or a failed cycle is reset."""


# Effects
class Effect:
    """Base type of the side effects returned by SubscriptionStateMachine.handle()."""


@dataclass
class RequestPlayers(Effect):
    """Ask the JSON-RPC endpoint for the player list."""


@dataclass
class OpenTransport(Effect):
    """Open the TCP connection of the streaming channel."""


@dataclass
class SendMessage(Effect):
    """Send a message on the streaming channel."""

    message: CometDMessage


@dataclass
class MarkSubscribed(Effect):
    """The subscription of a player was acknowledged."""

    player_id: str


@dataclass
class ApplyStatus(Effect):
    """Apply a pushed status payload to a player."""

    player_id: str
    data: dict[str, Any]


@dataclass
class SurfaceOnline(Effect):
    """All connected players are subscribed, report the integration as connected."""


@dataclass
class ResetSession(Effect):
    """Clear per-player connection flags, session identifiers are already gone."""


class SubscriptionStateMachine:
    """Drive handshake, connect and per-player subscribe of the streaming channel."""

    def __init__(self) -> None:
        """Initialize in the IDLE state."""
        self.state = ConnectionState.IDLE
        self.client_id: str | None = None
        self.subscription_channel: str | None = None
        self.subscriptions: dict[int, str] = {}
        """Subscription request id -> player id."""
        # ids stay unique for the lifetime of the machine, also across reconnects
        self._ids = itertools.count(1)

    def handle(self, event: Event, players: Mapping[str, Player]) -> list[Effect]:
        """Consume an event and return the effects to execute, in order."""
        match event:
            case ConnectRequested():
                return self._on_connect_requested()
            case PlayersDiscovered():
                return self._on_players_discovered()
            case TransportConnected():
                return self._on_transport_connected()
            case MessageReceived(message=message):
                return self._on_message(message, players)
            case TransportFailed(reason=reason):
                return self._on_transport_failed(reason)
            case DisconnectRequested():
                return self._reset()
            case _:
                logger.debug("Unhandled event type: %s", type(event).__name__)
                return []

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------
    def _on_connect_requested(self) -> list[Effect]:
        if self.state is not ConnectionState.IDLE:
            logger.debug("Connect requested in state %s, ignoring", self.state.value)
            return []
        self._set_state(ConnectionState.REQUESTING_PLAYERS)
        return [RequestPlayers()]

    def _on_players_discovered(self) -> list[Effect]:
        if self.state is not ConnectionState.REQUESTING_PLAYERS:
            return []
        return [OpenTransport()]

    def _on_transport_connected(self) -> list[Effect]:
        if self.state is not ConnectionState.REQUESTING_PLAYERS:
            return []
        self._set_state(ConnectionState.HANDSHAKING)
        return [SendMessage(HandshakeMessage())]

    def _on_transport_failed(self, reason: str) -> list[Effect]:
        if self.state is ConnectionState.IDLE:
            return []
        logger.debug("Transport failed in state %s: %s", self.state.value, reason)
        self._set_state(ConnectionState.ERROR)
        return []

    def _on_message(self, message: ServerMessage, players: Mapping[str, Player]) -> list[Effect]:
        channel = message.channel

        if self.subscription_channel is not None and channel == self.subscription_channel:
            return self._on_status_push(message)

        if not message.successful:
            if message.error:
                logger.debug("Unsuccessful %s: %s", channel, message.error)
            return []

        if self.state is ConnectionState.HANDSHAKING and channel == HANDSHAKE_CHANNEL:
            return self._on_handshake(message)
        if self.state is ConnectionState.CONNECTING and channel == CONNECT_CHANNEL:
            return self._on_connect(players)
        if self.state is ConnectionState.SUBSCRIBING and channel == SUBSCRIBE_CHANNEL:
            return self._on_subscribe_ack(message, players)

        logger.debug("Ignoring %s in state %s", channel, self.state.value)
        return []

    def _on_handshake(self, message: ServerMessage) -> list[Effect]:
        if not message.client_id:
            logger.debug("Handshake reply without clientId")
            return []
        self.client_id = message.client_id.replace('"', "")
        self.subscription_channel = status_channel(self.client_id)
        logger.info("Client ID: %s", self.client_id)
        self._set_state(ConnectionState.CONNECTING)
        return [SendMessage(ConnectMessage(client_id=self.client_id))]

    def _on_connect(self, players: Mapping[str, Player]) -> list[Effect]:
        assert self.client_id is not None
        assert self.subscription_channel is not None
        self._set_state(ConnectionState.SUBSCRIBING)

        effects: list[Effect] = []
        command = tokenize(f"{STATUS_COMMAND} subscribe:{SUBSCRIBE_INTERVAL}")
        for player_id, player in players.items():
            if not player.connected or player.subscribed:
                continue
            request_id = next(self._ids)
            self.subscriptions[request_id] = player_id
            effects.append(
                SendMessage(
                    SubscribeMessage(
                        client_id=self.client_id,
                        id=request_id,
                        data=SubscribeData(
                            response=self.subscription_channel,
                            request=[player_id, command],
                        ),
                    )
                )
            )

        if not effects:
            # nothing to wait for
            return self._check_complete(players, None)
        return effects

    def _on_subscribe_ack(
        self, message: ServerMessage, players: Mapping[str, Player]
    ) -> list[Effect]:
        player_id = self._resolve(message)
        if player_id is None or player_id not in players:
            logger.debug("Subscribe ack for unknown id %s", message.id)
            return []
        return [MarkSubscribed(player_id), *self._check_complete(players, player_id)]

    def _on_status_push(self, message: ServerMessage) -> list[Effect]:
        player_id = self._resolve(message)
        if player_id is None:
            logger.debug("Status push for unknown id %s", message.id)
            return []
        return [ApplyStatus(player_id, message.data or {})]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _check_complete(
        self, players: Mapping[str, Player], acknowledged: str | None
    ) -> list[Effect]:
        connected = 0
        subscribed = 0
        for player_id, player in players.items():
            if not player.connected:
                continue
            connected += 1
            if player.subscribed or player_id == acknowledged:
                subscribed += 1
        if connected != subscribed:
            logger.debug("%d of %d players subscribed", subscribed, connected)
            return []
        self._set_state(ConnectionState.CONNECTED)
        return [SurfaceOnline()]

    def _resolve(self, message: ServerMessage) -> str | None:
        request_id = message.request_id
        if request_id is None:
            return None
        return self.subscriptions.get(request_id)

    def _reset(self) -> list[Effect]:
        self.subscriptions.clear()
        self.client_id = None
        self.subscription_channel = None
        self._set_state(ConnectionState.IDLE)
        return [ResetSession()]

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self.state:
            logger.debug("Connection state %s -> %s", self.state.value, state.value)
        self.state = state
