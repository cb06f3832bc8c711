"""JSON-RPC messages for the media server's ``/jsonrpc.js`` endpoint.

The server is loose about types: numbers frequently arrive as strings and flags as
``"0"``/``"1"``. The result models normalize those values before deserializing.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin

SERVER_TARGET = "-"
"""Player placeholder for server-wide requests."""

STATUS_COMMAND = "status - 1 tags:aBcdgjKlNotuxyY power"
"""Status of the current track only, with the tags needed to fill an entity."""
PLAYERS_COMMAND = "players 0 99"


def tokenize(command: str | Sequence[str]) -> list[str]:
    """Split a command string into the token list the server expects."""
    if isinstance(command, str):
        return command.split()
    return [str(token) for token in command]


def _to_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _to_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false")
    return bool(value)


@dataclass
class RpcRequest(DataClassORJSONMixin):
    """Body of a ``slim.request`` call."""

    id: int
    params: list[Any]
    """``[player_id, [command tokens]]``."""
    method: str = "slim.request"

    @classmethod
    def build(cls, request_id: int, player_id: str, command: str | Sequence[str]) -> RpcRequest:
        """Build a request for a player (or ``"-"``) and a command."""
        return cls(id=request_id, params=[player_id, tokenize(command)])


@dataclass
class PlayerItem(DataClassORJSONMixin):
    """One entry of the ``players_loop`` returned by the ``players`` query."""

    playerid: str
    name: str = ""
    canpoweroff: bool = False
    connected: bool = True
    model: str | None = None

    class Config(BaseConfig):
        """Config for parsing json messages."""

        omit_none = True

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        d = dict(d)
        if "canpoweroff" in d:
            d["canpoweroff"] = _to_bool(d["canpoweroff"])
        if "connected" in d:
            d["connected"] = _to_bool(d["connected"])
        if "name" in d:
            d["name"] = str(d["name"])
        return d


@dataclass
class PlayersResult(DataClassORJSONMixin):
    """Result of the ``players`` query."""

    count: int = 0
    players_loop: list[PlayerItem] = field(default_factory=list)

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        d = dict(d)
        d["count"] = _to_int(d.get("count"))
        d["players_loop"] = [
            item
            for item in d.get("players_loop") or []
            if isinstance(item, dict) and item.get("playerid")
        ]
        return d


@dataclass
class PlaylistItem(DataClassORJSONMixin):
    """Track entry of a status ``playlist_loop``."""

    title: str = ""
    artist: str = ""
    album: str = ""
    coverart: bool = False
    coverid: str = ""

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        return {
            "title": str(d.get("title") or ""),
            "artist": str(d.get("artist") or ""),
            "album": str(d.get("album") or ""),
            "coverart": _to_bool(d.get("coverart")),
            "coverid": str(d.get("coverid") or ""),
        }


@dataclass
class PlayerStatus(DataClassORJSONMixin):
    """Playback state of one player, as returned by ``status`` or pushed on subscription."""

    power: bool = False
    mode: str = ""
    time: float = 0.0
    """Elapsed seconds of the current track."""
    duration: float = 0.0
    mixer_volume: int = 0
    """Volume 0-100, negative while muted."""
    playlist_curr_index: int = 0
    playlist_loop: list[PlaylistItem] = field(default_factory=list)

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        volume = d.get("mixer_volume", d.get("mixer volume"))
        index = d.get("playlist_curr_index", d.get("playlist_cur_index"))
        playlist = d.get("playlist_loop") or []
        return {
            "power": _to_bool(d.get("power")),
            "mode": str(d.get("mode") or ""),
            "time": _to_float(d.get("time")),
            "duration": _to_float(d.get("duration")),
            "mixer_volume": _to_int(volume),
            "playlist_curr_index": _to_int(index),
            "playlist_loop": [item for item in playlist if isinstance(item, dict)],
        }

    @property
    def current_item(self) -> PlaylistItem | None:
        """Return the playlist entry of the current track, if present."""
        if 0 <= self.playlist_curr_index < len(self.playlist_loop):
            return self.playlist_loop[self.playlist_curr_index]
        # "status - 1" returns only the current track, indexed from the playlist start
        if len(self.playlist_loop) == 1:
            return self.playlist_loop[0]
        return None
