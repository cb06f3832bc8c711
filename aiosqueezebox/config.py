"""Integration configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig

DEFAULT_PORT = 9000


@dataclass
class SqueezeboxConfig(DataClassDictMixin):
    """Settings read from the host's configuration mapping."""

    url: str
    """Host name or address of the media server."""
    port: int = DEFAULT_PORT
    name: str = field(default="Squeezebox", metadata=field_options(alias="friendly_name"))
    """Friendly name shown in notifications."""
    integration_id: str = "squeezebox"
    connect_timeout: float = 3.0
    """Seconds one attempt may take from player list to the last subscription ack."""
    connect_retries: int = 3
    """Attempts after the first one before the user is asked to reconnect."""
    progress_interval: float = 0.5

    class Config(BaseConfig):
        """Config for parsing the configuration mapping."""

        allow_deserialization_not_by_alias = True

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        d = dict(d)
        if "port" in d:
            d["port"] = int(d["port"])
        return d

    @property
    def base_url(self) -> str:
        """Return the HTTP base URL of the server, with trailing slash."""
        return f"http://{self.url}:{self.port}/"
