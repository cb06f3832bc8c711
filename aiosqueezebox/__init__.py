"""aiosqueezebox: asyncio client for Logitech Media Server push notifications."""

from __future__ import annotations

# Re-export client library for easy import
from aiosqueezebox.client import (
    CommandDispatcher,
    Player,
    PlayerRegistry,
    RpcClient,
    SqueezeboxSession,
    StateCallback,
    SubscriptionStateMachine,
)
from aiosqueezebox.config import SqueezeboxConfig
from aiosqueezebox.exceptions import (
    ConnectTimeoutError,
    ProtocolParseError,
    SqueezeboxError,
    TransportError,
)
from aiosqueezebox.models.types import (
    ConnectionState,
    IntegrationState,
    MediaPlayerAttr,
    MediaPlayerCommand,
    MediaPlayerFeature,
    MediaPlayerState,
)

__all__ = [
    "CommandDispatcher",
    "ConnectTimeoutError",
    "ConnectionState",
    "IntegrationState",
    "MediaPlayerAttr",
    "MediaPlayerCommand",
    "MediaPlayerFeature",
    "MediaPlayerState",
    "Player",
    "PlayerRegistry",
    "ProtocolParseError",
    "RpcClient",
    "SqueezeboxConfig",
    "SqueezeboxError",
    "SqueezeboxSession",
    "StateCallback",
    "SubscriptionStateMachine",
    "TransportError",
]
