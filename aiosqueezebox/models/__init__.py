"""Models for the media server JSON-RPC and CometD protocols."""

from __future__ import annotations

from . import cometd, rpc, types
from .cometd import (
    ConnectMessage,
    HandshakeMessage,
    ServerMessage,
    SubscribeData,
    SubscribeMessage,
    status_channel,
)
from .rpc import PlayerItem, PlayersResult, PlayerStatus, PlaylistItem, RpcRequest
from .types import (
    BASE_FEATURES,
    ConnectionState,
    IntegrationState,
    MediaPlayerAttr,
    MediaPlayerCommand,
    MediaPlayerFeature,
    MediaPlayerState,
)

__all__ = [
    "BASE_FEATURES",
    "ConnectMessage",
    "ConnectionState",
    "HandshakeMessage",
    "IntegrationState",
    "MediaPlayerAttr",
    "MediaPlayerCommand",
    "MediaPlayerFeature",
    "MediaPlayerState",
    "PlayerItem",
    "PlayerStatus",
    "PlayersResult",
    "PlaylistItem",
    "RpcRequest",
    "ServerMessage",
    "SubscribeData",
    "SubscribeMessage",
    "cometd",
    "rpc",
    "status_channel",
    "types",
]
