"""Runtime support for gamewire sessions.

A `TransportSession` owns one WebSocket connection. The first frame the
server sends is the schema; every later frame is a `Message` that is either a
control frame (disconnect, keep-alive), a reply to a pending request, or an
unsolicited message for the application listener.

Example:
    async with TransportSession(SessionOptions("https://game.example/")) as session:
        session.set_listener(handle)
        reply = await session.request({"ask": 1})
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum, auto
from typing import Any
from urllib.parse import urlsplit

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from .closing import (
    CONNECTION_FAILED,
    NORMAL_CLOSURE,
    PROTOCOL_ERROR,
    LoggingNotifier,
    Notifier,
    ProtocolClose,
)
from .message import MalformedFrame, Message, parse_handshake
from .schema import SchemaError, SchemaRegistry

logger = logging.getLogger(__name__)

DEFAULT_PATH = "/sswss"
DISCONNECT_REASON = "Disconnect"

Listener = Callable[[Message], Awaitable[None] | None]
Connector = Callable[[str], Awaitable[Any]]


class ProtocolError(RuntimeError):
    """Raised when protocol operations fail."""


class ConnectionFailed(ProtocolError):
    """Raised when the connection fails before the handshake completes."""


class SessionState(StrEnum):
    """Session lifecycle. Only READY sessions can send."""

    IDLE = auto()
    CONNECTING = auto()
    HANDSHAKING = auto()
    READY = auto()
    CLOSED = auto()


def endpoint_for(page_url: str, path: str = DEFAULT_PATH) -> str:
    """Derive the WebSocket endpoint serving a page.

    Same host name as the page, ws for http pages and wss for https pages,
    fixed path. ws/wss URLs are returned unchanged.
    """
    parts = urlsplit(page_url)
    if parts.scheme in ("ws", "wss"):
        return page_url

    scheme = {"http": "ws", "https": "wss"}.get(parts.scheme)
    if scheme is None or not parts.hostname:
        raise ValueError(f"Cannot derive endpoint from {page_url!r}")

    host = f"[{parts.hostname}]" if ":" in parts.hostname else parts.hostname
    return f"{scheme}://{host}{path}"


@dataclass
class SessionOptions:
    """Connection settings for a `TransportSession`."""

    url: str
    path: str = DEFAULT_PATH
    keep_alive_type: str = "PacketServerKeepAlive"
    disconnect_type: str = "PacketDisconnect"

    @property
    def endpoint(self) -> str:
        return endpoint_for(self.url, self.path)


class TransportSession:
    """One multiplexed connection to the game server.

    All bookkeeping happens on the event loop in the reader task, which
    handles each frame to completion before reading the next one.
    """

    def __init__(
        self,
        options: SessionOptions,
        *,
        notifier: Notifier | None = None,
        connector: Connector | None = None,
    ) -> None:
        self.options = options
        self.notifier: Notifier = notifier if notifier is not None else LoggingNotifier()
        self.registry = SchemaRegistry()
        self.state = SessionState.IDLE

        self._connector = connector or connect
        self._connection: Any = None
        self._reader: asyncio.Task[None] | None = None
        self._handshake: asyncio.Future[SchemaRegistry] | None = None
        self._pending: dict[str, asyncio.Future[Message]] = {}
        self._listener: Listener | None = None
        self._closing = False
        self._fault: Exception | None = None

    async def __aenter__(self) -> "TransportSession":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def pending(self) -> frozenset[str]:
        """Ids of requests still waiting for a reply."""
        return frozenset(self._pending)

    async def open(self) -> SchemaRegistry:
        """Connect and wait for the schema handshake.

        Returns:
            The loaded registry.

        Raises:
            ConnectionFailed: The connection failed or closed before the
                handshake completed.
        """
        if self.state != SessionState.IDLE:
            raise ProtocolError(f"Session already opened (state {self.state})")

        uri = self.options.endpoint
        self.state = SessionState.CONNECTING
        self._handshake = asyncio.get_running_loop().create_future()

        logger.debug("Connecting to %s", uri)
        try:
            self._connection = await self._connector(uri)
        except (OSError, TimeoutError, WebSocketException) as exc:
            self.state = SessionState.CLOSED
            self.notifier.show(CONNECTION_FAILED)
            raise ConnectionFailed(f"Could not connect to {uri}: {exc}") from exc

        self.state = SessionState.HANDSHAKING
        self._reader = asyncio.create_task(self._run())
        return await self._handshake

    def set_listener(self, listener: Listener | None) -> None:
        """Install the callback for uncorrelated messages, replacing any other."""
        self._listener = listener

    async def send(self, message: Message) -> "asyncio.Future[Message]":
        """Transmit a message and return a future for its reply."""
        if self.state != SessionState.READY:
            raise ProtocolError(f"Cannot send while {self.state}")
        if message.id in self._pending:
            raise ProtocolError(f"Request {message.id} is already pending")

        future: asyncio.Future[Message] = asyncio.get_running_loop().create_future()
        self._pending[message.id] = future

        frame = message.serialize()
        logger.debug("Sending %s", frame)
        try:
            await self._connection.send(frame)
        except ConnectionClosed as exc:
            self._pending.pop(message.id, None)
            close = exc.rcvd or exc.sent
            raise ProtocolClose(
                close.code if close else None, close.reason if close else ""
            ) from exc
        return future

    async def request(self, payload: Any) -> Message:
        """Send payload as a new request and wait for the reply."""
        future = await self.send(Message.request(payload))
        return await future

    async def close(self) -> None:
        """Close the connection from the client side and wait for shutdown."""
        if self._connection is not None and self.state != SessionState.CLOSED:
            self._closing = True
            await self._connection.close(NORMAL_CLOSURE, DISCONNECT_REASON)
        # A listener closing the session runs inside the reader task.
        if self._reader is not None and asyncio.current_task() is not self._reader:
            await self._reader

    async def wait_closed(self) -> None:
        """Wait until the connection is gone.

        Raises:
            SchemaError, MalformedFrame: The fault that ended the session.
        """
        if self._reader is not None:
            await self._reader
        if self._fault is not None:
            raise self._fault

    async def _run(self) -> None:
        try:
            async for raw in self._connection:
                await self._handle_frame(raw)
        except ConnectionClosed:
            pass
        except (SchemaError, MalformedFrame) as exc:
            logger.exception("Fatal protocol fault, closing connection")
            self._fault = exc
            await self._connection.close(PROTOCOL_ERROR, "Protocol error")
        finally:
            self._on_closed()

    async def _handle_frame(self, raw: str | bytes) -> None:
        logger.debug("Received raw %s", raw)

        if self.state == SessionState.HANDSHAKING:
            handshake = parse_handshake(raw)
            self.registry.load(handshake.classes)
            self.state = SessionState.READY
            logger.debug("Handshake complete, %d classes loaded", len(self.registry))
            self._handshake.set_result(self.registry)
            return

        await self._dispatch(Message.parse(raw, self.registry))

    async def _dispatch(self, message: Message) -> None:
        if self._is_control(self.options.disconnect_type, message.payload):
            logger.info("Got disconnect from server")
            await self._connection.close(NORMAL_CLOSURE, DISCONNECT_REASON)
            return

        if self._is_control(self.options.keep_alive_type, message.payload):
            logger.debug("Got keep-alive")
            return

        if message.referrer_id is not None:
            future = self._pending.pop(message.referrer_id, None)
            if future is not None:
                if not future.done():
                    future.set_result(message)
                return

        if self._listener is None:
            logger.warning("No listener installed, dropping message %s", message.id)
            return

        try:
            result = self._listener(message)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Listener failed on message %s", message.id)

    def _is_control(self, type_name: str, payload: Any) -> bool:
        rtype = self.registry.get(type_name)
        return rtype is not None and rtype.is_instance(payload)

    def _on_closed(self) -> None:
        previous = self.state
        self.state = SessionState.CLOSED
        code = getattr(self._connection, "close_code", None)
        reason = getattr(self._connection, "close_reason", None) or ""

        if previous != SessionState.READY:
            error = self._fault or ConnectionFailed(
                f"Connection closed before handshake (code {code})"
            )
            if not self._handshake.done():
                self._handshake.set_exception(error)
            if not self._closing:
                self.notifier.show(CONNECTION_FAILED)
            return

        close = ProtocolClose(code, reason)
        logger.info("Connection closed: %s", close)

        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(self._fault or close)

        if self._closing:
            return
        if self.notifier.showing:
            logger.debug("Notification already showing, suppressing %s", close.kind)
            return
        self.notifier.show(close.notification())
