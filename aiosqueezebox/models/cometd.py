"""CometD messages exchanged on the streaming channel.

The media server implements a small subset of the Bayeux/CometD protocol on top of
a plain TCP socket. The client walks through /meta/handshake and /meta/connect and
then subscribes to per-player status pushes with /slim/subscribe. Every push for a
subscription arrives on the per-client channel ``/slim/<clientId>/status``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from mashumaro import field_options
from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin

HANDSHAKE_CHANNEL = "/meta/handshake"
CONNECT_CHANNEL = "/meta/connect"
SUBSCRIBE_CHANNEL = "/slim/subscribe"


def status_channel(client_id: str) -> str:
    """Return the channel status pushes are delivered on for a client id."""
    return f"/slim/{client_id}/status"


@dataclass
class CometDMessage(DataClassORJSONMixin):
    """Base class for messages sent to the server."""

    class Config(BaseConfig):
        """Config for serializing CometD messages."""

        serialize_by_alias = True
        omit_none = True


# Client -> Server /meta/handshake
@dataclass
class HandshakeMessage(CometDMessage):
    """First message of a CometD session, answered with a client id."""

    supported_connection_types: list[str] = field(
        default_factory=lambda: ["long-polling", "streaming"],
        metadata=field_options(alias="supportedConnectionTypes"),
    )
    version: str = "1.0"
    channel: Literal["/meta/handshake"] = HANDSHAKE_CHANNEL


# Client -> Server /meta/connect
@dataclass
class ConnectMessage(CometDMessage):
    """Open the streaming connection for an established client id."""

    client_id: str = field(metadata=field_options(alias="clientId"))
    connection_type: str = field(
        default="streaming", metadata=field_options(alias="connectionType")
    )
    channel: Literal["/meta/connect"] = CONNECT_CHANNEL


@dataclass
class SubscribeData(DataClassORJSONMixin):
    """Payload of a /slim/subscribe request."""

    response: str
    """Channel the server delivers the subscribed command's results on."""
    request: list[Any]
    """``[player_id, [command tokens]]`` as used by the JSON-RPC interface."""
    priority: int = 1


# Client -> Server /slim/subscribe
@dataclass
class SubscribeMessage(CometDMessage):
    """Subscribe to periodic results of a command for one player."""

    client_id: str = field(metadata=field_options(alias="clientId"))
    id: int
    """Locally generated correlation id, echoed in the ack and every push."""
    data: SubscribeData
    channel: Literal["/slim/subscribe"] = SUBSCRIBE_CHANNEL


# Server -> Client, any channel
@dataclass
class ServerMessage(DataClassORJSONMixin):
    """Message received from the server on the streaming channel."""

    channel: str
    successful: bool | None = None
    client_id: str | None = field(default=None, metadata=field_options(alias="clientId"))
    id: int | str | None = None
    data: dict[str, Any] | None = None
    error: str | None = None

    class Config(BaseConfig):
        """Config for parsing json messages."""

        serialize_by_alias = True
        omit_none = True

    @property
    def request_id(self) -> int | None:
        """Return the correlation id as an integer, if the message carries one."""
        if self.id is None or isinstance(self.id, bool):
            return None
        try:
            return int(self.id)
        except (TypeError, ValueError):
            return None
