"""Protocol envelope and frame parsing.

Steady-state frame:
    {
        "id": "5f0c...",            (client or server generated uuid)
        "referrerID": "a1b2..." | null,
        "success": true,
        "data": <payload, may carry class tags>,
        "errorMessage": null
    }

The first frame of every connection is not an envelope but the schema:
    {"classes": [ClassDescriptor, ...]}
"""

import json
import uuid
from dataclasses import dataclass
from typing import Any, Self

from .schema import SchemaRegistry, encode
from .types import Handshake


class MalformedFrame(RuntimeError):
    """Raised when a frame does not have the expected structure."""


def _load_object(raw_frame: str | bytes) -> dict[str, Any]:
    try:
        if isinstance(raw_frame, bytes):
            raw_frame = raw_frame.decode("utf-8")
        obj = json.loads(raw_frame)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedFrame(f"invalid JSON frame: {exc}") from exc

    if not isinstance(obj, dict):
        raise MalformedFrame("frame must be a JSON object")
    return obj


def parse_handshake(raw_frame: str | bytes) -> Handshake:
    """Parse the schema frame sent first on every connection."""
    obj = _load_object(raw_frame)
    if not isinstance(obj.get("classes"), list):
        raise MalformedFrame("handshake frame missing 'classes'")
    try:
        return Handshake.from_dict(obj)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise MalformedFrame(f"invalid class descriptor: {exc}") from exc


def new_id() -> str:
    """Return a fresh 36 character message id."""
    return str(uuid.uuid4())


@dataclass
class Message:
    """One protocol envelope: a request, a reply or a notification."""

    id: str
    referrer_id: str | None = None
    success: bool = True
    payload: Any = None
    error_text: str | None = None

    @classmethod
    def request(cls, payload: Any) -> Self:
        """Build an uncorrelated message carrying payload."""
        return cls(id=new_id(), payload=payload)

    @classmethod
    def reply(
        cls,
        to: "Message",
        payload: Any = None,
        *,
        success: bool = True,
        error_text: str | None = None,
    ) -> Self:
        """Build a reply correlated to another message."""
        return cls(
            id=new_id(),
            referrer_id=to.id,
            success=success,
            payload=payload,
            error_text=error_text,
        )

    @property
    def is_reply(self) -> bool:
        return self.referrer_id is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "referrerID": self.referrer_id,
            "success": self.success,
            "data": encode(self.payload),
            "errorMessage": self.error_text,
        }

    def serialize(self) -> str:
        """Render this message as a single text frame."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def parse(cls, raw_frame: str | bytes, registry: SchemaRegistry) -> Self:
        """Parse a text frame, decoding only the payload against registry."""
        obj = _load_object(raw_frame)
        if not isinstance(obj.get("id"), str):
            raise MalformedFrame("frame missing 'id'")

        referrer_id = obj.get("referrerID")
        if referrer_id is not None and not isinstance(referrer_id, str):
            raise MalformedFrame("'referrerID' must be a string or null")
        success = obj.get("success", True)
        if not isinstance(success, bool):
            raise MalformedFrame("'success' must be a boolean")
        error_text = obj.get("errorMessage")
        if error_text is not None and not isinstance(error_text, str):
            raise MalformedFrame("'errorMessage' must be a string or null")

        return cls(
            id=obj["id"],
            referrer_id=referrer_id,
            success=success,
            payload=registry.decode(obj.get("data")),
            error_text=error_text,
        )
