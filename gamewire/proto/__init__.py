"""Gamewire protocol runtime."""

from .closing import CloseKind, LoggingNotifier, Notification, Notifier, ProtocolClose, classify
from .message import MalformedFrame, Message, parse_handshake
from .runtime import (
    ConnectionFailed,
    ProtocolError,
    SessionOptions,
    SessionState,
    TransportSession,
    endpoint_for,
)
from .schema import EnumValue, RuntimeType, SchemaError, SchemaRegistry, TypedValue, encode
from .types import AccessorDescriptor, ClassDescriptor, Handshake

__all__ = [
    "AccessorDescriptor",
    "ClassDescriptor",
    "CloseKind",
    "ConnectionFailed",
    "EnumValue",
    "Handshake",
    "LoggingNotifier",
    "MalformedFrame",
    "Message",
    "Notification",
    "Notifier",
    "ProtocolClose",
    "ProtocolError",
    "RuntimeType",
    "SchemaError",
    "SchemaRegistry",
    "SessionOptions",
    "SessionState",
    "TransportSession",
    "TypedValue",
    "classify",
    "encode",
    "endpoint_for",
    "parse_handshake",
]
