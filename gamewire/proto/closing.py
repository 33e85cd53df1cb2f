"""Connection close taxonomy and user notifications."""

import logging
from dataclasses import dataclass
from enum import StrEnum, auto
from typing import Protocol

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
GOING_AWAY = 1001
PROTOCOL_ERROR = 1002
ABNORMAL_CLOSURE = 1006
POLICY_VIOLATION = 1008


class CloseKind(StrEnum):
    """Classification of a post-handshake closure."""

    NORMAL = auto()
    GOING_AWAY = auto()
    ABNORMAL = auto()
    POLICY_VIOLATION = auto()
    UNKNOWN = auto()


_KINDS = {
    NORMAL_CLOSURE: CloseKind.NORMAL,
    GOING_AWAY: CloseKind.GOING_AWAY,
    ABNORMAL_CLOSURE: CloseKind.ABNORMAL,
    POLICY_VIOLATION: CloseKind.POLICY_VIOLATION,
}


def classify(code: int | None) -> CloseKind:
    """Map a WebSocket close code to its kind."""
    if code is None:
        return CloseKind.ABNORMAL
    return _KINDS.get(code, CloseKind.UNKNOWN)


@dataclass(frozen=True)
class Notification:
    """Text to surface to the user when the connection changes state."""

    title: str
    text: str


CONNECTION_FAILED = Notification("Connection failed", "Failed to connect to the server")


class ProtocolClose(RuntimeError):
    """The connection closed after the handshake completed."""

    def __init__(self, code: int | None, reason: str = "") -> None:
        self.code = ABNORMAL_CLOSURE if code is None else code
        self.reason = reason or ""
        self.kind = classify(self.code)
        super().__init__(f"connection closed ({self.kind}, code {self.code}): {self.reason}")

    def notification(self) -> Notification:
        if self.kind == CloseKind.NORMAL:
            detail = self.reason or "Unknown reason"
        elif self.kind == CloseKind.GOING_AWAY:
            detail = "Server shutting down/Client disconnect"
        elif self.kind == CloseKind.ABNORMAL:
            detail = "Abnormal closure"
        elif self.kind == CloseKind.POLICY_VIOLATION:
            detail = f"Client-side error: {self.reason or 'Unknown cause'}"
        else:
            detail = f"Unknown (Code: {self.code})"
        return Notification("Connection lost", f"You got disconnected\nReason: {detail}")


class Notifier(Protocol):
    """Surfaces connection notifications to the user.

    Only one notification is shown at a time; `showing` reports whether one
    is currently on screen.
    """

    @property
    def showing(self) -> bool: ...

    def show(self, notification: Notification) -> None: ...


class LoggingNotifier:
    """Notifier that writes notifications to the log."""

    def __init__(self) -> None:
        self.current: Notification | None = None

    @property
    def showing(self) -> bool:
        return self.current is not None

    def show(self, notification: Notification) -> None:
        self.current = notification
        logger.warning("%s: %s", notification.title, notification.text.replace("\n", " "))

    def dismiss(self) -> None:
        self.current = None
