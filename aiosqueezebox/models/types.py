"""Models for enum types used by aiosqueezebox."""

from enum import Enum


class ConnectionState(Enum):
    """Protocol state of the streaming connection to the media server."""

    IDLE = "idle"
    REQUESTING_PLAYERS = "requesting_players"
    """Waiting for the player list from the JSON-RPC endpoint."""
    HANDSHAKING = "handshaking"
    """TCP socket is open, waiting for the /meta/handshake reply."""
    CONNECTING = "connecting"
    """Client id received, waiting for the /meta/connect reply."""
    SUBSCRIBING = "subscribing"
    """Waiting for /slim/subscribe acknowledgments of all connected players."""
    CONNECTED = "connected"
    ERROR = "error"


class IntegrationState(Enum):
    """State of the integration as seen by the host."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class MediaPlayerState(Enum):
    """Enum for media player entity states."""

    OFF = "off"
    ON = "on"
    IDLE = "idle"
    PLAYING = "playing"


class MediaPlayerAttr(Enum):
    """Entity attributes updated from player status."""

    MEDIA_ARTIST = "media_artist"
    MEDIA_TITLE = "media_title"
    MEDIA_IMAGE = "media_image"
    MEDIA_DURATION = "media_duration"
    MEDIA_PROGRESS = "media_progress"
    VOLUME = "volume"
    MUTED = "muted"


class MediaPlayerFeature(Enum):
    """Features advertised to the host for a discovered player."""

    MEDIA_ALBUM = "MEDIA_ALBUM"
    MEDIA_ARTIST = "MEDIA_ARTIST"
    MEDIA_DURATION = "MEDIA_DURATION"
    MEDIA_POSITION = "MEDIA_POSITION"
    MEDIA_IMAGE = "MEDIA_IMAGE"
    MEDIA_TITLE = "MEDIA_TITLE"
    MEDIA_TYPE = "MEDIA_TYPE"
    MUTE = "MUTE"
    MUTE_SET = "MUTE_SET"
    NEXT = "NEXT"
    PAUSE = "PAUSE"
    PLAY = "PLAY"
    PREVIOUS = "PREVIOUS"
    SEARCH = "SEARCH"
    SEEK = "SEEK"
    STOP = "STOP"
    VOLUME = "VOLUME"
    VOLUME_SET = "VOLUME_SET"
    VOLUME_UP = "VOLUME_UP"
    VOLUME_DOWN = "VOLUME_DOWN"
    TURN_OFF = "TURN_OFF"
    TURN_ON = "TURN_ON"


BASE_FEATURES: tuple[MediaPlayerFeature, ...] = tuple(
    feature
    for feature in MediaPlayerFeature
    if feature not in (MediaPlayerFeature.TURN_OFF, MediaPlayerFeature.TURN_ON)
)
"""Features every player supports, power control is added when the player can power off."""


class MediaPlayerCommand(Enum):
    """Enum for media player commands accepted from the host."""

    PLAY = "play"
    PAUSE = "pause"
    STOP = "stop"
    NEXT = "next"
    PREVIOUS = "previous"
    TURN_ON = "turn_on"
    TURN_OFF = "turn_off"
    MUTE = "mute"
    VOLUME_UP = "volume_up"
    VOLUME_DOWN = "volume_down"
    VOLUME_SET = "volume_set"
