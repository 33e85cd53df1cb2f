"""Wire descriptors announced by the server during the handshake.

These dataclasses mirror the JSON the server sends as its very first frame.
They are plain data; `SchemaRegistry.load` compiles them into runtime types.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Optional

from dataclasses_json import DataClassJsonMixin, config


class AccessorKind(StrEnum):
    """Kinds of generated accessor."""

    GETTER = "getter"
    SETTER = "setter"


@dataclass(frozen=True)
class AccessorDescriptor(DataClassJsonMixin):
    """Describes one generated accessor bound to a backing field.

    `kind` stays a plain string on the wire; kinds other than getter and
    setter are skipped when the type is compiled.
    """

    kind: str = field(metadata=config(field_name="type"))
    name: str
    backing_field: str = field(metadata=config(field_name="field"))


@dataclass(frozen=True)
class ClassDescriptor(DataClassJsonMixin):
    """Describes one reconstructible server class or enumeration."""

    name: str
    native_name: Optional[str] = field(default=None, metadata=config(field_name="javaName"))
    is_enum: bool = field(default=False, metadata=config(field_name="isEnum"))
    accessors: list[AccessorDescriptor] = field(
        default_factory=list, metadata=config(field_name="instanceMethods")
    )
    enum_entries: Optional[dict[str, dict[str, Any]]] = field(
        default=None, metadata=config(field_name="enumValues")
    )


@dataclass(frozen=True)
class Handshake(DataClassJsonMixin):
    """The schema frame: every class the server may send or accept."""

    classes: list[ClassDescriptor]
