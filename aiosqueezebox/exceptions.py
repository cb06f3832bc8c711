"""Exceptions raised by aiosqueezebox."""

from __future__ import annotations


class SqueezeboxError(Exception):
    """Base exception for media server errors."""


class TransportError(SqueezeboxError):
    """HTTP or TCP communication with the server failed."""


class ProtocolParseError(SqueezeboxError):
    """The server sent data that is not valid JSON or not the expected shape."""


class ConnectTimeoutError(SqueezeboxError, TimeoutError):
    """The handshake/connect/subscribe sequence did not complete in time."""
