"""Player registry, status synchronization and playback position extrapolation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Mapping
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

from aiosqueezebox.host import EntitiesInterface, EntityInterface
from aiosqueezebox.models.rpc import PlayerStatus
from aiosqueezebox.models.types import MediaPlayerAttr, MediaPlayerState

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 0.5


@dataclass
class Player:
    """Connection and playback bookkeeping for one player.

    ``subscribed`` implies ``connected``.
    """

    player_id: str
    connected: bool = False
    """Reported by the server's player list."""
    subscribed: bool = False
    """Status push subscription acknowledged."""
    is_playing: bool = False
    position: float = 0.0
    """Elapsed seconds, authoritative on status updates, extrapolated in between."""


class PlayerRegistry(Mapping[str, Player]):
    """Hold the known players and mirror their status onto host entities.

    While at least one player is playing and the host is not in standby, a ticker
    advances the local position of every playing player between server updates.
    """

    def __init__(
        self,
        entities: EntitiesInterface,
        base_url: str,
        *,
        progress_interval: float = PROGRESS_INTERVAL,
    ) -> None:
        """
        Create an empty registry.

        Args:
            entities: Host entity registry receiving state updates.
            base_url: HTTP base URL of the server (with trailing slash) for cover art.
            progress_interval: Seconds between position extrapolation ticks.
        """
        self._entities = entities
        self._base_url = base_url
        self._progress_interval = progress_interval
        self._players: dict[str, Player] = {}
        self._in_standby = False
        self._progress_task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Mapping interface
    # ------------------------------------------------------------------
    def __getitem__(self, player_id: str) -> Player:
        return self._players[player_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._players)

    def __len__(self) -> int:
        return len(self._players)

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------
    @property
    def in_standby(self) -> bool:
        """Return True while the host is in standby."""
        return self._in_standby

    @property
    def progress_running(self) -> bool:
        """Return True while the position ticker is active."""
        return self._progress_task is not None and not self._progress_task.done()

    def register(self, player_id: str) -> Player:
        """Add a player if unknown and return it."""
        player = self._players.get(player_id)
        if player is None:
            player = self._players[player_id] = Player(player_id)
        return player

    def mark_connected(self, player_id: str) -> None:
        """Mark a player as reported by the server."""
        self.register(player_id).connected = True

    def mark_subscribed(self, player_id: str) -> None:
        """Mark the push subscription of a connected player as acknowledged."""
        player = self._players.get(player_id)
        if player is None or not player.connected:
            logger.debug("Ignoring subscription of unconnected player %s", player_id)
            return
        player.subscribed = True

    def connected_count(self) -> int:
        """Return the number of connected players."""
        return sum(1 for player in self._players.values() if player.connected)

    def subscribed_count(self) -> int:
        """Return the number of connected and subscribed players."""
        return sum(
            1 for player in self._players.values() if player.connected and player.subscribed
        )

    def playing_ids(self) -> list[str]:
        """Return the ids of players currently marked playing."""
        return [player_id for player_id, player in self._players.items() if player.is_playing]

    def reset(self) -> None:
        """Clear connection flags of all players and stop the ticker, keeping the entries."""
        self.stop_progress()
        for player in self._players.values():
            player.connected = False
            player.subscribed = False
            player.is_playing = False

    # ------------------------------------------------------------------
    # Status synchronization
    # ------------------------------------------------------------------
    def apply_status(self, player_id: str, status: PlayerStatus | Mapping[str, Any]) -> None:
        """
        Apply a status payload to the player and its entity.

        Applying the same payload twice leaves the same state as applying it once.
        """
        if not isinstance(status, PlayerStatus):
            status = PlayerStatus.from_dict(dict(status))
        player = self._players.get(player_id)
        if player is None:
            logger.debug("Status for unknown player %s", player_id)
            return
        entity = self._entities.get_entity_interface(player_id)
        if entity is None:
            logger.debug("No entity configured for player %s", player_id)
            return

        if not status.power:
            entity.set_state(MediaPlayerState.OFF)
            player.is_playing = False
        elif status.mode == "play":
            entity.set_state(MediaPlayerState.PLAYING)
            player.is_playing = True
        elif status.mode in ("pause", "stop"):
            entity.set_state(MediaPlayerState.IDLE)
            player.is_playing = False
        else:
            entity.set_state(MediaPlayerState.ON)

        self._apply_track(entity, status)

        if status.mixer_volume < 0:
            entity.update_attr(MediaPlayerAttr.MUTED, True)
        else:
            entity.update_attr(MediaPlayerAttr.MUTED, False)
            entity.update_attr(MediaPlayerAttr.VOLUME, status.mixer_volume)
        entity.update_attr(MediaPlayerAttr.MEDIA_DURATION, int(status.duration))

        player.position = status.time
        entity.update_attr(MediaPlayerAttr.MEDIA_PROGRESS, player.position)

        if player.is_playing and not self._in_standby:
            self.start_progress()

    def _apply_track(self, entity: EntityInterface, status: PlayerStatus) -> None:
        item = status.current_item
        if item is None:
            entity.update_attr(MediaPlayerAttr.MEDIA_ARTIST, "")
            entity.update_attr(MediaPlayerAttr.MEDIA_TITLE, "")
            entity.update_attr(MediaPlayerAttr.MEDIA_IMAGE, "")
            return
        entity.update_attr(MediaPlayerAttr.MEDIA_ARTIST, item.artist)
        entity.update_attr(MediaPlayerAttr.MEDIA_TITLE, item.title)
        if item.coverart:
            image = f"{self._base_url}music/{item.coverid}/cover.jpg"
        else:
            image = ""
        entity.update_attr(MediaPlayerAttr.MEDIA_IMAGE, image)

    # ------------------------------------------------------------------
    # Position extrapolation
    # ------------------------------------------------------------------
    def tick(self) -> bool:
        """Advance every playing player by one interval; return False if none is playing."""
        one_playing = False
        for player_id, player in self._players.items():
            if not player.is_playing:
                continue
            one_playing = True
            player.position += self._progress_interval
            entity = self._entities.get_entity_interface(player_id)
            if entity is not None:
                entity.update_attr(MediaPlayerAttr.MEDIA_PROGRESS, player.position)
        return one_playing

    def start_progress(self) -> None:
        """Start the position ticker unless it is running or the host is in standby."""
        if self._in_standby or self.progress_running:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, position extrapolation disabled")
            return
        self._progress_task = loop.create_task(self._progress_loop())

    def stop_progress(self) -> None:
        """Stop the position ticker."""
        task = self._progress_task
        self._progress_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _progress_loop(self) -> None:
        with suppress(asyncio.CancelledError):
            while True:
                await asyncio.sleep(self._progress_interval)
                if not self.tick():
                    break
        if self._progress_task is asyncio.current_task():
            self._progress_task = None

    def enter_standby(self) -> None:
        """Stop extrapolating until standby ends."""
        self._in_standby = True
        self.stop_progress()

    def leave_standby(self) -> list[str]:
        """End standby and return the players whose status should be re-polled."""
        self._in_standby = False
        return self.playing_ids()
