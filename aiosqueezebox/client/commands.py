"""Translate host media player commands into server commands."""

from __future__ import annotations

import logging
from typing import Any

from aiosqueezebox.exceptions import SqueezeboxError
from aiosqueezebox.models.types import MediaPlayerCommand

from .rpc import RpcClient

logger = logging.getLogger(__name__)

MEDIA_PLAYER = "media_player"

_COMMANDS: dict[MediaPlayerCommand, str] = {
    MediaPlayerCommand.PLAY: "play",
    MediaPlayerCommand.PAUSE: "pause 1",
    MediaPlayerCommand.STOP: "stop",
    MediaPlayerCommand.NEXT: "playlist jump +1",
    MediaPlayerCommand.PREVIOUS: "playlist jump -1",
    MediaPlayerCommand.TURN_ON: "power 1",
    MediaPlayerCommand.TURN_OFF: "power 0",
    MediaPlayerCommand.MUTE: "mixer muting 1",
    MediaPlayerCommand.VOLUME_UP: "button volume_up",
    MediaPlayerCommand.VOLUME_DOWN: "button volume_down",
    MediaPlayerCommand.VOLUME_SET: "mixer volume {param}",
}


def command_string(command: MediaPlayerCommand, param: Any = None) -> str:
    """
    Return the server command for a media player command.

    Raises:
        ValueError: VOLUME_SET without a parameter.
    """
    template = _COMMANDS[command]
    if "{param}" in template:
        if param is None or str(param) == "":
            raise ValueError(f"{command.name} requires a parameter")
        return template.format(param=param)
    return template


class CommandDispatcher:
    """Send playback commands through the JSON-RPC client.

    The effect of a command is observed through the regular status pushes; the
    response of the command itself is only checked for errors.
    """

    def __init__(self, rpc: RpcClient) -> None:
        """Create a dispatcher sending through the given RPC client."""
        self._rpc = rpc

    async def dispatch(
        self,
        entity_type: str,
        player_id: str,
        command: MediaPlayerCommand | str,
        param: Any = None,
    ) -> None:
        """Send a command to a player; unsupported entity types and commands are dropped."""
        if entity_type != MEDIA_PLAYER:
            logger.error("Command for unsupported entity type: %s", entity_type)
            return
        try:
            command = MediaPlayerCommand(command)
            rpc_command = command_string(command, param)
        except ValueError as err:
            logger.warning("Ignoring command %s for %s: %s", command, player_id, err)
            return

        try:
            await self._rpc.call(player_id, rpc_command)
        except SqueezeboxError as err:
            logger.error("Command '%s' for %s failed: %s", rpc_command, player_id, err)
            return
        logger.debug("Command '%s' sent to %s", rpc_command, player_id)
