"""CometD streaming transport on a raw TCP connection.

Outgoing messages are wrapped in a minimal literal HTTP POST to ``/cometd``. The
server answers on the same socket, first with an HTTP response and afterwards with
bare chunks of the streaming response, each carrying one JSON array. A read from
the socket can hold several of those frames or only part of one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import Any

import orjson
from mashumaro.exceptions import InvalidFieldValue, MissingField

from aiosqueezebox.exceptions import ProtocolParseError, TransportError
from aiosqueezebox.models.cometd import CometDMessage, ServerMessage

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 65536
MAX_BUFFER_SIZE = 4 * 1024 * 1024

MessageCallback = Callable[[ServerMessage], Awaitable[None] | None]
ClosedCallback = Callable[[Exception | None], Awaitable[None] | None]


def encode_frame(message: CometDMessage) -> bytes:
    """Wrap one message into the HTTP POST the server expects on the socket."""
    body = orjson.dumps([message.to_dict()])
    header = (
        "POST /cometd HTTP/1.1\n"
        f"Content-Length: {len(body)}\n"
        "Content-Type: application/json\n\n"
    ).encode()
    return header + body + b"\n"


class StreamDecoder:
    """Reassemble JSON payloads from the bytes read off the socket.

    The server answers with HTTP responses on the same connection. A response body is
    either sized by ``Content-Length`` or sent as chunks (hex size line + payload).
    Reads may end anywhere, so several frames can arrive in one read and one frame
    can be spread over several reads. Payloads of non ``200 OK`` responses are dropped.
    """

    def __init__(self) -> None:
        """Start with an empty buffer, outside of any response header."""
        self._buffer = bytearray()
        self._pending: int | None = None
        """Size of the payload currently being received."""
        self._in_headers = False
        self._content_length: int | None = None
        self._status_ok = True

    def feed(self, data: bytes) -> list[bytes]:
        """
        Add received bytes and return every payload completed by them.

        Raises:
            ProtocolParseError: A size field is not a number.
        """
        self._buffer += data
        payloads: list[bytes] = []
        while True:
            if self._pending is not None:
                if len(self._buffer) < self._pending:
                    break
                payload = bytes(self._buffer[: self._pending])
                del self._buffer[: self._pending]
                self._pending = None
                if self._status_ok and payload.strip():
                    payloads.append(payload)
                continue
            end = self._buffer.find(b"\n")
            if end < 0:
                if len(self._buffer) > MAX_BUFFER_SIZE:
                    self._buffer.clear()
                    raise ProtocolParseError("Line on streaming channel exceeds buffer size")
                break
            line = bytes(self._buffer[:end]).strip()
            del self._buffer[: end + 1]
            payload = self._handle_line(line)
            if payload is not None:
                payloads.append(payload)
        return payloads

    def _handle_line(self, line: bytes) -> bytes | None:
        if self._in_headers:
            if not line:
                self._in_headers = False
                self._pending, self._content_length = self._content_length, None
                return None
            name, _, value = line.partition(b":")
            if name.strip().lower() == b"content-length":
                self._content_length = _parse_size(value, 10)
            return None

        if not line:
            return None
        if line.startswith(b"HTTP/"):
            self._status_ok = line.endswith(b"200 OK")
            if not self._status_ok:
                logger.debug("Ignoring response %r", line)
            self._in_headers = True
            self._content_length = None
            return None
        if line.startswith((b"[", b"{")):
            # payload line without size prefix
            return line if self._status_ok else None

        size = _parse_size(line.split(b";", 1)[0], 16)
        if size:
            self._pending = size
        return None


def _parse_size(value: bytes, base: int) -> int:
    try:
        return int(value.strip(), base)
    except ValueError as err:
        raise ProtocolParseError(f"Invalid size on streaming channel: {value!r}") from err


def decode_payload(payload: bytes) -> list[ServerMessage]:
    """
    Parse one JSON payload into CometD messages; items without a channel are skipped.

    Raises:
        ProtocolParseError: The payload is not a JSON array (or object) of messages.
    """
    try:
        data: Any = orjson.loads(payload)
    except orjson.JSONDecodeError as err:
        raise ProtocolParseError(f"Invalid JSON on streaming channel: {err}") from err
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ProtocolParseError(f"Unexpected streaming payload: {data!r}")

    messages: list[ServerMessage] = []
    for item in data:
        if not isinstance(item, dict) or "channel" not in item:
            logger.debug("Ignoring message without channel: %r", item)
            continue
        try:
            messages.append(ServerMessage.from_dict(item))
        except (MissingField, InvalidFieldValue, ValueError, TypeError) as err:
            raise ProtocolParseError(f"Malformed CometD message {item!r}: {err}") from err
    return messages


def decode_chunk(data: bytes) -> list[ServerMessage]:
    """
    Decode the messages of a complete piece of the stream.

    Raises:
        ProtocolParseError: A payload is not valid.
    """
    messages: list[ServerMessage] = []
    for payload in StreamDecoder().feed(data):
        messages.extend(decode_payload(payload))
    return messages


class CometDTransport:
    """Own the TCP connection of the streaming channel."""

    def __init__(
        self,
        host: str,
        port: int,
        on_message: MessageCallback,
        on_closed: ClosedCallback,
    ) -> None:
        """Create a transport for host:port; nothing is opened yet."""
        self._host = host
        self._port = port
        self._on_message = on_message
        self._on_closed = on_closed
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._send_lock = asyncio.Lock()
        self._decoder = StreamDecoder()
        self._closing = False

    @property
    def connected(self) -> bool:
        """Return True while the socket is open."""
        return self._writer is not None and not self._writer.is_closing()

    async def open(self) -> None:
        """
        Connect the socket and start reading.

        Raises:
            TransportError: The connection could not be established.
        """
        if self.connected:
            return
        self._closing = False
        self._decoder = StreamDecoder()
        logger.debug("Opening streaming connection to %s:%s", self._host, self._port)
        try:
            self._reader, self._writer = await asyncio.open_connection(self._host, self._port)
        except OSError as err:
            raise TransportError(
                f"Cannot connect to {self._host}:{self._port}: {err}"
            ) from err
        self._reader_task = asyncio.get_running_loop().create_task(self._reader_loop())

    async def send(self, message: CometDMessage) -> None:
        """
        Send one message.

        Raises:
            TransportError: The socket is closed or the write failed.
        """
        if self._writer is None:
            raise TransportError("Streaming connection is not open")
        frame = encode_frame(message)
        logger.debug("Sending %s", frame)
        async with self._send_lock:
            try:
                self._writer.write(frame)
                await self._writer.drain()
            except OSError as err:
                raise TransportError(f"Write to streaming connection failed: {err}") from err

    async def close(self) -> None:
        """Close the socket; the closed callback is not invoked."""
        self._closing = True
        current_task = asyncio.current_task()
        if self._reader_task is not None:
            if self._reader_task is not current_task:
                self._reader_task.cancel()
                with suppress(asyncio.CancelledError):
                    await self._reader_task
            self._reader_task = None
        if self._writer is not None:
            self._writer.close()
            with suppress(OSError):
                await self._writer.wait_closed()
            self._writer = None
        self._reader = None

    async def _reader_loop(self) -> None:
        assert self._reader is not None
        error: Exception | None = None
        try:
            while True:
                data = await self._reader.read(READ_CHUNK_SIZE)
                if not data:
                    logger.debug("Streaming connection closed by server")
                    break
                await self._handle_data(data)
        except OSError as err:
            error = err
        if not self._closing:
            await _invoke(self._on_closed, error)

    async def _handle_data(self, data: bytes) -> None:
        try:
            payloads = self._decoder.feed(data)
        except ProtocolParseError as err:
            logger.warning("Resetting stream decoder: %s", err)
            self._decoder = StreamDecoder()
            return
        for payload in payloads:
            try:
                messages = decode_payload(payload)
            except ProtocolParseError as err:
                logger.warning("Discarding streaming payload: %s", err)
                continue
            await self._dispatch(messages)

    async def _dispatch(self, messages: list[ServerMessage]) -> None:
        for message in messages:
            try:
                await _invoke(self._on_message, message)
            except Exception:
                logger.exception("Error handling message on channel %s", message.channel)


async def _invoke(callback: Callable[[Any], Awaitable[None] | None], arg: Any) -> None:
    result = callback(arg)
    if asyncio.iscoroutine(result):
        await result
