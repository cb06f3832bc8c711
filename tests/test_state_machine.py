"""Tests for the subscription state machine."""

from aiosqueezebox.client.registry import Player
from aiosqueezebox.client.state_machine import (
    ApplyStatus,
    ConnectRequested,
    DisconnectRequested,
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
from aiosqueezebox.models.cometd import ConnectMessage, HandshakeMessage, ServerMessage
from aiosqueezebox.models.types import ConnectionState

_STATUS_TOKENS = ["status", "-", "1", "tags:aBcdgjKlNotuxyY", "power", "subscribe:60"]


def _received(channel: str, **kwargs) -> MessageReceived:
    return MessageReceived(ServerMessage(channel=channel, **kwargs))


def _until_subscribing(
    machine: SubscriptionStateMachine, players: dict[str, Player]
) -> list[SendMessage]:
    assert machine.handle(ConnectRequested(), players) == [RequestPlayers()]
    assert machine.handle(PlayersDiscovered(), players) == [OpenTransport()]
    assert machine.handle(TransportConnected(), players) == [SendMessage(HandshakeMessage())]
    effects = machine.handle(
        _received("/meta/handshake", successful=True, client_id='"abc"'), players
    )
    assert effects == [SendMessage(ConnectMessage(client_id="abc"))]
    return machine.handle(_received("/meta/connect", successful=True), players)


def test_full_sequence_in_order() -> None:
    machine = SubscriptionStateMachine()
    players = {
        "aa": Player("aa", connected=True),
        "bb": Player("bb", connected=True),
        "cc": Player("cc"),
    }

    effects = _until_subscribing(machine, players)

    assert machine.state is ConnectionState.SUBSCRIBING
    assert machine.client_id == "abc"
    assert machine.subscription_channel == "/slim/abc/status"
    assert [effect.message.data.request for effect in effects] == [
        ["aa", _STATUS_TOKENS],
        ["bb", _STATUS_TOKENS],
    ]
    assert all(effect.message.data.response == "/slim/abc/status" for effect in effects)
    assert machine.subscriptions == {1: "aa", 2: "bb"}


def test_out_of_order_acks() -> None:
    machine = SubscriptionStateMachine()
    players = {"aa": Player("aa", connected=True), "bb": Player("bb", connected=True)}
    _until_subscribing(machine, players)

    effects = machine.handle(_received("/slim/subscribe", successful=True, id=2), players)
    assert effects == [MarkSubscribed("bb")]
    assert machine.state is ConnectionState.SUBSCRIBING
    players["bb"].subscribed = True

    effects = machine.handle(_received("/slim/subscribe", successful=True, id="1"), players)
    assert effects == [MarkSubscribed("aa"), SurfaceOnline()]
    assert machine.state is ConnectionState.CONNECTED


def test_no_connected_players_goes_online() -> None:
    machine = SubscriptionStateMachine()
    players = {"aa": Player("aa")}

    effects = _until_subscribing(machine, players)

    assert effects == [SurfaceOnline()]
    assert machine.state is ConnectionState.CONNECTED


def test_replies_for_other_states_are_ignored() -> None:
    machine = SubscriptionStateMachine()
    players = {"aa": Player("aa", connected=True)}
    machine.handle(ConnectRequested(), players)
    machine.handle(PlayersDiscovered(), players)
    machine.handle(TransportConnected(), players)

    assert machine.handle(_received("/meta/connect", successful=True), players) == []
    assert machine.handle(_received("/slim/subscribe", successful=True, id=1), players) == []
    assert machine.state is ConnectionState.HANDSHAKING


def test_unsuccessful_handshake_is_ignored() -> None:
    machine = SubscriptionStateMachine()
    players: dict[str, Player] = {}
    machine.handle(ConnectRequested(), players)
    machine.handle(PlayersDiscovered(), players)
    machine.handle(TransportConnected(), players)

    effects = machine.handle(
        _received("/meta/handshake", successful=False, error="403::denied"), players
    )

    assert effects == []
    assert machine.state is ConnectionState.HANDSHAKING
    assert machine.client_id is None


def test_connect_only_from_idle() -> None:
    machine = SubscriptionStateMachine()

    assert machine.handle(ConnectRequested(), {}) == [RequestPlayers()]
    assert machine.handle(ConnectRequested(), {}) == []


def test_status_push_is_routed_by_id() -> None:
    machine = SubscriptionStateMachine()
    players = {"aa": Player("aa", connected=True)}
    _until_subscribing(machine, players)
    machine.handle(_received("/slim/subscribe", successful=True, id=1), players)

    effects = machine.handle(_received("/slim/abc/status", id=1, data={"mode": "play"}), players)
    assert effects == [ApplyStatus("aa", {"mode": "play"})]

    assert machine.handle(_received("/slim/abc/status", id=99, data={}), players) == []


def test_unknown_ack_is_ignored() -> None:
    machine = SubscriptionStateMachine()
    players = {"aa": Player("aa", connected=True)}
    _until_subscribing(machine, players)

    assert machine.handle(_received("/slim/subscribe", successful=True, id=42), players) == []
    assert machine.state is ConnectionState.SUBSCRIBING


def test_stale_ack_after_reset() -> None:
    machine = SubscriptionStateMachine()
    players = {"aa": Player("aa", connected=True)}
    _until_subscribing(machine, players)

    assert machine.handle(DisconnectRequested(), players) == [ResetSession()]
    assert machine.state is ConnectionState.IDLE
    assert machine.client_id is None
    assert machine.subscriptions == {}

    assert machine.handle(_received("/slim/subscribe", successful=True, id=1), players) == []
    assert machine.state is ConnectionState.IDLE


def test_ids_are_not_reused_after_reconnect() -> None:
    machine = SubscriptionStateMachine()
    players = {"aa": Player("aa", connected=True)}
    _until_subscribing(machine, players)
    machine.handle(DisconnectRequested(), players)

    effects = _until_subscribing(machine, players)

    assert [effect.message.id for effect in effects] == [2]
    assert machine.subscriptions == {2: "aa"}


def test_already_subscribed_players_are_skipped() -> None:
    machine = SubscriptionStateMachine()
    players = {
        "aa": Player("aa", connected=True, subscribed=True),
        "bb": Player("bb", connected=True),
    }

    effects = _until_subscribing(machine, players)

    assert [effect.message.data.request[0] for effect in effects] == ["bb"]


def test_transport_failure() -> None:
    machine = SubscriptionStateMachine()

    assert machine.handle(TransportFailed("closed"), {}) == []
    assert machine.state is ConnectionState.IDLE

    machine.handle(ConnectRequested(), {})
    machine.handle(TransportFailed("closed"), {})
    assert machine.state is ConnectionState.ERROR

    machine.handle(DisconnectRequested(), {})
    assert machine.state is ConnectionState.IDLE
