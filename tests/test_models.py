"""Tests for the protocol models and the integration configuration."""

from aiosqueezebox.config import SqueezeboxConfig
from aiosqueezebox.models.cometd import ServerMessage, status_channel
from aiosqueezebox.models.rpc import PlayersResult, PlayerStatus, RpcRequest, tokenize


def test_rpc_request() -> None:
    request = RpcRequest.build(5, "-", "players 0 99")

    assert request.to_dict() == {
        "id": 5,
        "params": ["-", ["players", "0", "99"]],
        "method": "slim.request",
    }


def test_tokenize() -> None:
    assert tokenize("mixer volume 20") == ["mixer", "volume", "20"]
    assert tokenize(["mixer", "volume", 20]) == ["mixer", "volume", "20"]


def test_players_result_normalizes_values() -> None:
    result = PlayersResult.from_dict(
        {
            "count": "3",
            "players_loop": [
                {"playerid": "00:04:20:aa", "name": "Kitchen", "canpoweroff": 1, "connected": "1"},
                {"playerid": "00:04:20:bb", "name": "Radio", "canpoweroff": "0"},
                {"name": "no id"},
            ],
        }
    )

    assert result.count == 3
    assert [item.playerid for item in result.players_loop] == ["00:04:20:aa", "00:04:20:bb"]
    assert result.players_loop[0].canpoweroff is True
    assert result.players_loop[1].canpoweroff is False
    assert result.players_loop[1].connected is True


def test_players_result_empty() -> None:
    result = PlayersResult.from_dict({})

    assert result.count == 0
    assert result.players_loop == []


def test_player_status_current_item() -> None:
    loop = [{"title": "One"}, {"title": "Two"}]

    status = PlayerStatus.from_dict({"playlist_cur_index": "1", "playlist_loop": loop})
    assert status.current_item is not None
    assert status.current_item.title == "Two"

    # only the current track is returned, but the index counts from the playlist start
    status = PlayerStatus.from_dict({"playlist_cur_index": "7", "playlist_loop": loop[:1]})
    assert status.current_item is not None
    assert status.current_item.title == "One"

    assert PlayerStatus.from_dict({"playlist_cur_index": "7"}).current_item is None


def test_player_status_defaults() -> None:
    status = PlayerStatus.from_dict({"mixer_volume": 55, "power": "0"})

    assert status.mixer_volume == 55
    assert status.power is False
    assert status.mode == ""
    assert status.time == 0.0


def test_server_message_request_id() -> None:
    assert ServerMessage.from_dict({"channel": "/slim/subscribe", "id": 4}).request_id == 4
    assert ServerMessage(channel="/slim/subscribe", id="4").request_id == 4
    assert ServerMessage(channel="/slim/subscribe", id="x").request_id is None
    assert ServerMessage(channel="/slim/subscribe").request_id is None


def test_status_channel() -> None:
    assert status_channel("abc") == "/slim/abc/status"


def test_config_from_mapping() -> None:
    config = SqueezeboxConfig.from_dict(
        {"url": "lms.local", "port": "9001", "friendly_name": "Living room"}
    )

    assert config.port == 9001
    assert config.name == "Living room"
    assert config.base_url == "http://lms.local:9001/"
    assert config.connect_timeout == 3.0
    assert config.connect_retries == 3


def test_config_defaults() -> None:
    config = SqueezeboxConfig.from_dict({"url": "10.0.0.2", "name": "Den"})

    assert config.port == 9000
    assert config.name == "Den"
    assert config.progress_interval == 0.5
