"""Command-line interface for following and controlling media server players."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field

import aioconsole
from aiohttp import ClientSession

from aiosqueezebox.client import RpcClient, SqueezeboxSession
from aiosqueezebox.client.commands import MEDIA_PLAYER
from aiosqueezebox.config import DEFAULT_PORT, SqueezeboxConfig
from aiosqueezebox.exceptions import SqueezeboxError
from aiosqueezebox.host import MemoryEntities, MemoryEntity, MemoryNotifications, Notification
from aiosqueezebox.models.types import IntegrationState, MediaPlayerAttr, MediaPlayerCommand

logger = logging.getLogger(__name__)

_SIMPLE_COMMANDS: dict[str, MediaPlayerCommand] = {
    "play": MediaPlayerCommand.PLAY,
    "p": MediaPlayerCommand.PLAY,
    "pause": MediaPlayerCommand.PAUSE,
    "stop": MediaPlayerCommand.STOP,
    "s": MediaPlayerCommand.STOP,
    "next": MediaPlayerCommand.NEXT,
    "n": MediaPlayerCommand.NEXT,
    "prev": MediaPlayerCommand.PREVIOUS,
    "previous": MediaPlayerCommand.PREVIOUS,
    "b": MediaPlayerCommand.PREVIOUS,
    "on": MediaPlayerCommand.TURN_ON,
    "off": MediaPlayerCommand.TURN_OFF,
    "mute": MediaPlayerCommand.MUTE,
    "m": MediaPlayerCommand.MUTE,
    "vol+": MediaPlayerCommand.VOLUME_UP,
    "+": MediaPlayerCommand.VOLUME_UP,
    "vol-": MediaPlayerCommand.VOLUME_DOWN,
    "-": MediaPlayerCommand.VOLUME_DOWN,
}


@dataclass
class CLIState:
    """Holds the player selection of the CLI."""

    player_ids: list[str] = field(default_factory=list)
    selected: str | None = None
    show_progress: bool = False

    def resolve(self, argument: str | None) -> str | None:
        """Return the player addressed by an argument (player id or list index)."""
        if argument is None:
            return self.selected
        if argument in self.player_ids:
            return argument
        if argument.isdigit() and int(argument) < len(self.player_ids):
            return self.player_ids[int(argument)]
        return None


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the client."""
    parser = argparse.ArgumentParser(description="Follow and control Squeezebox players")
    parser.add_argument("--host", required=True, help="Host name or address of the server")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Server port")
    parser.add_argument(
        "--player",
        action="append",
        default=None,
        help="Player id to follow (repeatable). Defaults to all players of the server.",
    )
    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=3.0,
        help="Seconds to wait for a connection attempt",
    )
    parser.add_argument(
        "--show-progress",
        action="store_true",
        help="Print every playback position update",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level to use",
    )
    return parser.parse_args(argv)


async def _discover_player_ids(rpc: RpcClient) -> list[str]:
    result = await rpc.get_players()
    return [item.playerid for item in result.players_loop]


async def main_async(argv: Sequence[str] | None = None) -> int:
    """Entry point executing the asynchronous CLI workflow."""
    args = parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(level=getattr(logging, args.log_level))

    config = SqueezeboxConfig(url=args.host, port=args.port, connect_timeout=args.connect_timeout)
    state = CLIState(show_progress=args.show_progress)

    async with ClientSession() as http:
        player_ids = args.player
        if not player_ids:
            try:
                player_ids = await _discover_player_ids(RpcClient(args.host, args.port, session=http))
            except SqueezeboxError as err:
                logger.error("Cannot list players of %s: %s", args.host, err)
                return 1
        if not player_ids:
            _print_event("Server reported no players")

        entities = MemoryEntities()
        for player_id in player_ids:
            entities.configure(player_id).integration_id = config.integration_id
        entities.add_listener(lambda entity, attr: _print_entity_change(state, entity, attr))
        state.player_ids = list(player_ids)
        state.selected = state.player_ids[0] if state.player_ids else None

        notifications = MemoryNotifications(on_add=_print_notification)
        session = SqueezeboxSession(config, entities, notifications, http_session=http)
        session.add_state_listener(lambda new_state: _print_event(f"Connection: {new_state.value}"))

        _print_instructions()
        keyboard_task = asyncio.create_task(_keyboard_loop(session, entities, notifications, state))

        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            logger.debug("Received interrupt signal, shutting down...")
            keyboard_task.cancel()

        loop.add_signal_handler(signal.SIGINT, signal_handler)

        try:
            await session.connect()
            await keyboard_task
        except asyncio.CancelledError:  # pragma: no cover - cancellation path
            logger.debug("Keyboard loop cancelled")
        finally:
            loop.remove_signal_handler(signal.SIGINT)
            await session.close()

    return 0


async def _keyboard_loop(
    session: SqueezeboxSession,
    entities: MemoryEntities,
    notifications: MemoryNotifications,
    state: CLIState,
) -> None:
    while True:
        try:
            line = await aioconsole.ainput()
        except EOFError:
            break
        parts = line.strip().split()
        if not parts:
            continue
        keyword = parts[0].lower()
        argument = parts[1] if len(parts) > 1 else None

        if keyword in {"quit", "exit", "q"}:
            break
        if keyword == "players":
            _print_players(entities, state)
        elif keyword == "use":
            _select_player(state, argument)
        elif keyword == "standby":
            session.enter_standby()
            _print_event("Standby")
        elif keyword == "wake":
            session.leave_standby()
            _print_event("Left standby")
        elif keyword == "reconnect":
            await _reconnect(notifications, session)
        elif keyword in {"vol", "volume"} and argument is not None and argument.isdigit():
            target = state.resolve(parts[2] if len(parts) > 2 else None)
            await _send(session, target, MediaPlayerCommand.VOLUME_SET, argument)
        elif keyword in _SIMPLE_COMMANDS:
            await _send(session, state.resolve(argument), _SIMPLE_COMMANDS[keyword])
        else:
            _print_event("Unknown command")


async def _send(
    session: SqueezeboxSession,
    player_id: str | None,
    command: MediaPlayerCommand,
    param: str | None = None,
) -> None:
    if player_id is None:
        _print_event("No such player")
        return
    await session.send_command(MEDIA_PLAYER, player_id, command, param)


def _select_player(state: CLIState, argument: str | None) -> None:
    player_id = state.resolve(argument) if argument is not None else None
    if player_id is None:
        _print_event("Usage: use <player id|index>")
        return
    state.selected = player_id
    _print_event(f"Selected {player_id}")


async def _reconnect(notifications: MemoryNotifications, session: SqueezeboxSession) -> None:
    if session.state is not IntegrationState.DISCONNECTED:
        _print_event("Already connected or connecting")
        return
    for notification in reversed(notifications.items):
        if notification.action is not None:
            notification.action()
            return
    await session.connect()


def _print_players(entities: MemoryEntities, state: CLIState) -> None:
    for index, player_id in enumerate(state.player_ids):
        entity = entities.get_entity_interface(player_id)
        marker = "*" if player_id == state.selected else " "
        if entity is None:
            _print_event(f"{marker}{index}: {player_id}")
            continue
        name = entity.friendly_name or player_id
        _print_event(f"{marker}{index}: {name} ({player_id}) {entity.state.value}")


def _print_entity_change(state: CLIState, entity: MemoryEntity, attr: MediaPlayerAttr | None) -> None:
    name = entity.friendly_name or entity.entity_id
    if attr is None:
        _print_event(f"{name}: {entity.state.value}")
        return
    if attr is MediaPlayerAttr.MEDIA_PROGRESS and not state.show_progress:
        return
    _print_event(f"{name}: {attr.value} = {entity.attributes[attr]}")


def _print_notification(notification: Notification) -> None:
    text = notification.text
    if notification.action_label:
        text += f" Type 'reconnect' to {notification.action_label.lower()}."
    _print_event(text)


def _print_event(message: str) -> None:
    print(message, flush=True)  # noqa: T201


def _print_instructions() -> None:
    print(  # noqa: T201
        (
            "Commands: players, use <player>, play(p), pause, stop(s), next(n), prev(b), "
            "on, off, mute(m), vol+/-, vol <0-100>, standby, wake, reconnect, quit(q)\n"
            "  player commands take an optional player id or index, e.g. 'play 1'"
        ),
        flush=True,
    )


def main() -> int:
    """Run the CLI client."""
    return asyncio.run(main_async(sys.argv[1:]))


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
