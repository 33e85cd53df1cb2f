"""Unit tests configuration file."""

import asyncio
import json
import os

import pytest

from gamewire.proto import SchemaRegistry, SessionOptions, TransportSession, parse_handshake

FILE_DIR = os.path.dirname(os.path.realpath(__file__))
HANDSHAKE_FILE = os.path.join(FILE_DIR, "proto", "handshake.json")

_CLOSED = object()


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


class FakeConnection:
    """Scripted stand-in for a websockets client connection.

    Frames fed with `feed` are yielded in order; `settle` waits until the
    session has finished handling everything fed so far.
    """

    def __init__(self):
        self.inbound = asyncio.Queue()
        self.sent = []
        self.close_calls = []
        self.close_code = None
        self.close_reason = None
        self._taken = False
        self._dropped = False

    def feed(self, frame):
        if not isinstance(frame, (str, bytes)):
            frame = json.dumps(frame)
        self.inbound.put_nowait(frame)

    def drop(self, code, reason=""):
        """Close from the server side."""
        if self._dropped:
            return
        self._dropped = True
        self.close_code = code
        self.close_reason = reason
        self.inbound.put_nowait(_CLOSED)

    async def settle(self):
        await self.inbound.join()

    async def send(self, data):
        self.sent.append(data)

    async def close(self, code=1000, reason=""):
        self.close_calls.append((code, reason))
        self.drop(code, reason)

    def sent_json(self):
        return [json.loads(frame) for frame in self.sent]

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._taken:
            self._taken = False
            self.inbound.task_done()

        item = await self.inbound.get()
        if item is _CLOSED:
            self.inbound.task_done()
            raise StopAsyncIteration
        self._taken = True
        return item


class RecordingNotifier:
    def __init__(self, showing=False):
        self.shown = []
        self._showing = showing

    @property
    def showing(self):
        return self._showing

    def show(self, notification):
        self.shown.append(notification)


@pytest.fixture
def handshake_raw():
    with open(HANDSHAKE_FILE, encoding="utf-8") as f:
        return f.read()


@pytest.fixture
def handshake(handshake_raw):
    return json.loads(handshake_raw)


@pytest.fixture
def registry(handshake_raw):
    reg = SchemaRegistry()
    reg.load(parse_handshake(handshake_raw).classes)
    return reg


@pytest.fixture
def run():
    """Run a coroutine function to completion on a fresh event loop."""

    def runner(fn, *args):
        return asyncio.run(fn(*args))

    return runner


async def _open_session(handshake, notifier=None, **options):
    """Open a session against a FakeConnection that answers with handshake."""
    connection = FakeConnection()
    connection.feed(handshake)

    async def connector(uri):
        connection.uri = uri
        return connection

    session = TransportSession(
        SessionOptions("https://game.example/play", **options),
        notifier=notifier or RecordingNotifier(),
        connector=connector,
    )
    await session.open()
    return session, connection


@pytest.fixture
def open_session():
    return _open_session


@pytest.fixture
def fake_connection():
    return FakeConnection


@pytest.fixture
def notifier():
    return RecordingNotifier()
