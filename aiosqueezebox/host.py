"""Interfaces to the host application's entity and notification model.

The session only talks to the host through these protocols. The in-memory
implementations are used by the command-line client and the tests.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from aiosqueezebox.models.types import MediaPlayerAttr, MediaPlayerFeature, MediaPlayerState

logger = logging.getLogger(__name__)

EntityListener = Callable[["MemoryEntity", MediaPlayerAttr | None], None]
NotificationAction = Callable[[], Any]


class EntityInterface(Protocol):
    """A controllable entity as exposed by the host."""

    @property
    def entity_id(self) -> str:
        """Return the id of the entity (the player id)."""
        ...

    def set_state(self, state: MediaPlayerState) -> None:
        """Set the entity state."""
        ...

    def update_attr(self, attr: MediaPlayerAttr, value: Any) -> None:
        """Update a single attribute of the entity."""
        ...


class EntitiesInterface(Protocol):
    """Entity registry of the host."""

    def add_available_entity(
        self,
        entity_id: str,
        entity_type: str,
        integration_id: str,
        friendly_name: str,
        supported_features: Sequence[MediaPlayerFeature],
    ) -> None:
        """Offer a discovered player as a controllable entity."""
        ...

    def get_entity_interface(self, entity_id: str) -> EntityInterface | None:
        """Return the entity for an id, or None if it is not configured."""
        ...

    def get_by_integration(self, integration_id: str) -> list[EntityInterface]:
        """Return entities previously configured for an integration."""
        ...


class NotificationsInterface(Protocol):
    """User-visible notifications of the host."""

    def add(
        self,
        error: bool,
        text: str,
        action_label: str | None = None,
        action: NotificationAction | None = None,
    ) -> None:
        """Show a notification, optionally with an action button."""
        ...


@dataclass
class MemoryEntity:
    """Entity kept in memory."""

    entity_id: str
    entity_type: str = "media_player"
    integration_id: str = ""
    friendly_name: str = ""
    supported_features: list[MediaPlayerFeature] = field(default_factory=list)
    state: MediaPlayerState = MediaPlayerState.OFF
    attributes: dict[MediaPlayerAttr, Any] = field(default_factory=dict)
    listeners: list[EntityListener] = field(default_factory=list, repr=False)

    def set_state(self, state: MediaPlayerState) -> None:
        """Set the entity state and notify listeners on change."""
        if state == self.state:
            return
        self.state = state
        self._notify(None)

    def update_attr(self, attr: MediaPlayerAttr, value: Any) -> None:
        """Update an attribute and notify listeners on change."""
        if attr in self.attributes and self.attributes[attr] == value:
            return
        self.attributes[attr] = value
        self._notify(attr)

    def _notify(self, attr: MediaPlayerAttr | None) -> None:
        for listener in self.listeners:
            try:
                listener(self, attr)
            except Exception:
                logger.exception("Error in entity listener %s", listener)


class MemoryEntities:
    """Entity registry kept in memory.

    Entities offered through ``add_available_entity`` are only listed as available;
    ``configure`` turns one into a configured entity that receives state updates.
    """

    def __init__(self, configured: Sequence[MemoryEntity] = ()) -> None:
        """Initialize with already configured entities."""
        self.available: dict[str, MemoryEntity] = {}
        self.configured: dict[str, MemoryEntity] = {
            entity.entity_id: entity for entity in configured
        }
        self._listeners: list[EntityListener] = []

    def add_listener(self, listener: EntityListener) -> None:
        """Register a callback for changes of any configured entity."""
        self._listeners.append(listener)
        for entity in self.configured.values():
            entity.listeners.append(listener)

    def configure(self, entity_id: str) -> MemoryEntity:
        """Configure an available entity (or a bare one if it was never offered)."""
        entity = self.configured.get(entity_id)
        if entity is None:
            entity = self.available.get(entity_id) or MemoryEntity(entity_id=entity_id)
            entity.listeners.extend(self._listeners)
            self.configured[entity_id] = entity
        return entity

    def add_available_entity(
        self,
        entity_id: str,
        entity_type: str,
        integration_id: str,
        friendly_name: str,
        supported_features: Sequence[MediaPlayerFeature],
    ) -> None:
        """Record a discovered entity."""
        entity = self.available.get(entity_id) or self.configured.get(entity_id)
        if entity is None:
            entity = MemoryEntity(entity_id=entity_id)
        entity.entity_type = entity_type
        entity.integration_id = integration_id
        entity.friendly_name = friendly_name
        entity.supported_features = list(supported_features)
        self.available[entity_id] = entity

    def get_entity_interface(self, entity_id: str) -> MemoryEntity | None:
        """Return a configured entity."""
        return self.configured.get(entity_id)

    def get_by_integration(self, integration_id: str) -> list[MemoryEntity]:
        """Return configured entities of an integration (all if they carry no id)."""
        return [
            entity
            for entity in self.configured.values()
            if entity.integration_id in ("", integration_id)
        ]


@dataclass
class Notification:
    """A notification shown to the user."""

    error: bool
    text: str
    action_label: str | None = None
    action: NotificationAction | None = None


class MemoryNotifications:
    """Notifications kept in memory, optionally forwarded to a callback."""

    def __init__(self, on_add: Callable[[Notification], None] | None = None) -> None:
        """Initialize the notification list."""
        self.items: list[Notification] = []
        self._on_add = on_add

    def add(
        self,
        error: bool,
        text: str,
        action_label: str | None = None,
        action: NotificationAction | None = None,
    ) -> None:
        """Store a notification."""
        notification = Notification(error, text, action_label, action)
        self.items.append(notification)
        if self._on_add is not None:
            self._on_add(notification)
