"""Tests for the player registry and status synchronization."""

import asyncio
from typing import Any

from aiosqueezebox.client.registry import PlayerRegistry
from aiosqueezebox.host import MemoryEntities, MemoryEntity
from aiosqueezebox.models.rpc import PlayerStatus
from aiosqueezebox.models.types import MediaPlayerAttr, MediaPlayerState

_PLAYER = "00:04:20:aa"
_BASE_URL = "http://lms.local:9000/"


def _status(**overrides: Any) -> dict[str, Any]:
    status: dict[str, Any] = {
        "power": 1,
        "mode": "play",
        "time": "12.5",
        "duration": "200.7",
        "mixer volume": "37",
        "playlist_cur_index": "0",
        "playlist_loop": [
            {"title": "Song", "artist": "Band", "coverart": "1", "coverid": "abc123"},
        ],
    }
    status.update(overrides)
    return status


def _registry(**kwargs: Any) -> tuple[PlayerRegistry, MemoryEntity]:
    entity = MemoryEntity(_PLAYER)
    registry = PlayerRegistry(MemoryEntities([entity]), _BASE_URL, **kwargs)
    registry.mark_connected(_PLAYER)
    return registry, entity


def test_apply_playing_status() -> None:
    registry, entity = _registry()

    registry.apply_status(_PLAYER, _status())

    assert entity.state is MediaPlayerState.PLAYING
    assert registry[_PLAYER].is_playing
    assert entity.attributes == {
        MediaPlayerAttr.MEDIA_ARTIST: "Band",
        MediaPlayerAttr.MEDIA_TITLE: "Song",
        MediaPlayerAttr.MEDIA_IMAGE: "http://lms.local:9000/music/abc123/cover.jpg",
        MediaPlayerAttr.MUTED: False,
        MediaPlayerAttr.VOLUME: 37,
        MediaPlayerAttr.MEDIA_DURATION: 200,
        MediaPlayerAttr.MEDIA_PROGRESS: 12.5,
    }


def test_apply_status_is_idempotent() -> None:
    registry, entity = _registry()
    changes: list[Any] = []
    registry.apply_status(_PLAYER, _status())
    entity.listeners.append(lambda _entity, attr: changes.append(attr))

    registry.apply_status(_PLAYER, _status())

    assert changes == []
    assert registry[_PLAYER].position == 12.5


def test_mode_mapping() -> None:
    registry, entity = _registry()

    registry.apply_status(_PLAYER, _status(mode="pause"))
    assert entity.state is MediaPlayerState.IDLE
    assert not registry[_PLAYER].is_playing

    registry.apply_status(_PLAYER, _status(mode="stop"))
    assert entity.state is MediaPlayerState.IDLE

    registry.apply_status(_PLAYER, _status(mode=""))
    assert entity.state is MediaPlayerState.ON


def test_power_off() -> None:
    registry, entity = _registry()
    registry.apply_status(_PLAYER, _status())

    registry.apply_status(_PLAYER, _status(power=0))

    assert entity.state is MediaPlayerState.OFF
    assert not registry[_PLAYER].is_playing


def test_muted_volume_keeps_last_level() -> None:
    registry, entity = _registry()
    registry.apply_status(_PLAYER, _status())

    registry.apply_status(_PLAYER, _status(**{"mixer volume": "-37"}))

    assert entity.attributes[MediaPlayerAttr.MUTED] is True
    assert entity.attributes[MediaPlayerAttr.VOLUME] == 37


def test_missing_cover_art() -> None:
    registry, entity = _registry()

    registry.apply_status(
        _PLAYER, _status(playlist_loop=[{"title": "Radio", "artist": "", "coverart": "0"}])
    )

    assert entity.attributes[MediaPlayerAttr.MEDIA_IMAGE] == ""
    assert entity.attributes[MediaPlayerAttr.MEDIA_TITLE] == "Radio"


def test_empty_playlist_clears_track() -> None:
    registry, entity = _registry()
    registry.apply_status(_PLAYER, _status())

    registry.apply_status(_PLAYER, PlayerStatus(power=True, mode="stop"))

    assert entity.attributes[MediaPlayerAttr.MEDIA_TITLE] == ""
    assert entity.attributes[MediaPlayerAttr.MEDIA_ARTIST] == ""
    assert entity.attributes[MediaPlayerAttr.MEDIA_IMAGE] == ""


def test_status_for_unknown_player_is_ignored() -> None:
    registry, entity = _registry()

    registry.apply_status("00:04:20:zz", _status())

    assert "00:04:20:zz" not in registry
    assert entity.attributes == {}


def test_tick_extrapolates_position() -> None:
    registry, entity = _registry()
    registry.apply_status(_PLAYER, _status())

    for _ in range(3):
        assert registry.tick()

    assert registry[_PLAYER].position == 14.0
    assert entity.attributes[MediaPlayerAttr.MEDIA_PROGRESS] == 14.0

    registry.apply_status(_PLAYER, _status(time="20"))
    assert registry[_PLAYER].position == 20.0
    assert entity.attributes[MediaPlayerAttr.MEDIA_PROGRESS] == 20.0


def test_tick_without_playing_players() -> None:
    registry, entity = _registry()
    registry.apply_status(_PLAYER, _status(mode="pause"))

    assert not registry.tick()
    assert registry[_PLAYER].position == 12.5


def test_register_and_flags() -> None:
    registry, _ = _registry()

    assert registry.register(_PLAYER) is registry[_PLAYER]
    registry.mark_subscribed("00:04:20:bb")
    assert "00:04:20:bb" not in registry

    registry.register("00:04:20:bb")
    registry.mark_subscribed("00:04:20:bb")
    assert not registry["00:04:20:bb"].subscribed

    registry.mark_subscribed(_PLAYER)
    assert registry.connected_count() == 1
    assert registry.subscribed_count() == 1

    registry.apply_status(_PLAYER, _status())
    registry.reset()
    assert len(registry) == 2
    assert registry.connected_count() == 0
    assert registry.subscribed_count() == 0
    assert registry.playing_ids() == []


def test_standby_returns_playing_players() -> None:
    registry, _ = _registry()
    registry.apply_status(_PLAYER, _status())

    registry.enter_standby()
    assert registry.in_standby

    assert registry.leave_standby() == [_PLAYER]
    assert not registry.in_standby


async def test_progress_ticker_runs_while_playing() -> None:
    registry, entity = _registry(progress_interval=0.01)

    registry.apply_status(_PLAYER, _status())
    assert registry.progress_running

    await asyncio.sleep(0.1)
    assert entity.attributes[MediaPlayerAttr.MEDIA_PROGRESS] > 12.5

    registry.apply_status(_PLAYER, _status(mode="pause"))
    await asyncio.sleep(0.05)
    assert not registry.progress_running


async def test_standby_stops_ticker() -> None:
    registry, _ = _registry(progress_interval=0.01)
    registry.apply_status(_PLAYER, _status())

    registry.enter_standby()
    await asyncio.sleep(0)
    position = registry[_PLAYER].position

    assert not registry.progress_running
    await asyncio.sleep(0.05)
    assert registry[_PLAYER].position == position

    registry.apply_status(_PLAYER, _status(time="30"))
    assert not registry.progress_running


def _underscore_status(volume: Any) -> dict[str, Any]:
    status = _status(mode="pause", mixer_volume=volume)
    del status["mixer volume"]
    return status


def test_underscore_volume_key() -> None:
    registry, entity = _registry()

    registry.apply_status(_PLAYER, _underscore_status(37))
    assert entity.attributes[MediaPlayerAttr.VOLUME] == 37
    assert entity.attributes[MediaPlayerAttr.MUTED] is False

    registry.apply_status(_PLAYER, _underscore_status(-1))
    assert entity.attributes[MediaPlayerAttr.MUTED] is True
    assert entity.attributes[MediaPlayerAttr.VOLUME] == 37


def test_underscore_muted_volume_on_first_status() -> None:
    registry, entity = _registry()

    registry.apply_status(_PLAYER, _underscore_status(-1))

    assert entity.attributes[MediaPlayerAttr.MUTED] is True
    assert MediaPlayerAttr.VOLUME not in entity.attributes
