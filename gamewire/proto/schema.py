"""Runtime type registry built from the server's handshake schema.

The server announces its classes once per connection. Each class is compiled
into a `RuntimeType`: a discriminant for decoded values, a decoder for tagged
wire objects, and the accessor functions the server declared. Enumeration
entries become `EnumValue` singletons whose identity is stable for the life
of the registry.

Wire tagging:
    {"jsClass": "Card", "rank": 3}          -> TypedValue of type Card
    {"jsClass": "Suit", "jsEnumName": "HEARTS"} -> the Suit.HEARTS singleton
"""

from collections.abc import Callable, Iterable, Iterator, Mapping
from functools import partial
from typing import Any

from .types import AccessorKind, ClassDescriptor

CLASS_TAG = "jsClass"
NATIVE_TAG = "_class"
ENUM_TAG = "jsEnumName"

_TAGS = frozenset([CLASS_TAG, NATIVE_TAG, ENUM_TAG])


class SchemaError(RuntimeError):
    """Raised when a value does not match the negotiated schema."""


def _strip_tags(raw: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in raw.items() if k not in _TAGS}


def _make_getter(backing_field: str) -> Callable[..., Any]:
    def getter(value: "TypedValue") -> Any:
        return value.fields.get(backing_field)

    return getter


def _make_setter(backing_field: str) -> Callable[..., None]:
    def setter(value: "TypedValue", new_value: Any) -> None:
        value.fields[backing_field] = new_value

    return setter


class TypedValue:
    """A decoded instance of a registered class.

    Declared accessors are available as methods, fields by subscription:

        card.getRank()        # getter bound to the "rank" field
        card.setRank(4)
        card["rank"]
    """

    __slots__ = ("type", "fields")

    def __init__(self, type: "RuntimeType", fields: dict[str, Any]) -> None:
        self.type = type
        self.fields = fields

    def __getattr__(self, name: str) -> Any:
        # Slots not yet assigned (copy, pickle) must not recurse.
        if name.startswith("__") or name in TypedValue.__slots__:
            raise AttributeError(name)
        accessor = self.type.accessors.get(name)
        if accessor is None:
            raise AttributeError(f"{self.type.name} has no accessor {name!r}")
        return partial(accessor, self)

    def __getitem__(self, key: str) -> Any:
        return self.fields[key]

    def __contains__(self, key: object) -> bool:
        return key in self.fields

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypedValue) or isinstance(other, EnumValue):
            return NotImplemented
        return self.type is other.type and self.fields == other.fields

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"{self.type.name}({self.fields!r})"


class EnumValue(TypedValue):
    """The single canonical instance of one enumeration entry.

    Compared by identity; decoding the same entry key always yields this
    object.
    """

    __slots__ = ("key",)

    def __init__(self, type: "RuntimeType", key: str) -> None:
        super().__init__(type, {})
        self.key = key

    def name(self) -> str:
        return self.key

    __eq__ = object.__eq__
    __hash__ = object.__hash__

    def __repr__(self) -> str:
        return f"{self.type.name}.{self.key}"


class RuntimeType:
    """Compiled form of a `ClassDescriptor`."""

    def __init__(self, descriptor: ClassDescriptor) -> None:
        self.descriptor = descriptor
        self.name = descriptor.name
        self.native_name = descriptor.native_name or descriptor.name
        self.is_enum = descriptor.is_enum
        self.accessors: dict[str, Callable[..., Any]] = {}
        self._entries: dict[str, EnumValue] = {}

        for accessor in descriptor.accessors:
            if accessor.kind == AccessorKind.GETTER:
                self.accessors[accessor.name] = _make_getter(accessor.backing_field)
            elif accessor.kind == AccessorKind.SETTER:
                self.accessors[accessor.name] = _make_setter(accessor.backing_field)

    def decode(self, raw: Any, enum_strict: bool = True) -> Any:
        """Decode a raw wire value as this type.

        Args:
            raw: Parsed JSON value; nested members should already be decoded.
            enum_strict: For enum types, resolve to the registered singleton
                instead of building a fresh value.

        Returns:
            None for None input or input that is not an object, the enum
            singleton for enum types, otherwise a new TypedValue.
        """
        if raw is None:
            return None
        if self.is_enum and isinstance(raw, str):
            return self.lookup(raw)
        if not isinstance(raw, Mapping):
            return None

        if self.is_enum and enum_strict:
            key = raw.get(ENUM_TAG)
            if key is None:
                raise SchemaError("missing enum tag")
            return self.lookup(key)

        return TypedValue(self, _strip_tags(raw))

    def is_instance(self, value: Any) -> bool:
        """True iff value was decoded as exactly this type."""
        return isinstance(value, TypedValue) and value.type is self

    def lookup(self, key: str) -> EnumValue:
        """Return the singleton for an enumeration entry key."""
        if not self.is_enum:
            raise SchemaError(f"{self.name} is not an enum")
        if not isinstance(key, str):
            raise SchemaError(f"{self.name} entry key must be a string, got {key!r}")
        try:
            return self._entries[key]
        except KeyError:
            raise SchemaError(f"{self.name} has no entry {key!r}") from None

    @property
    def entries(self) -> Mapping[str, EnumValue]:
        return dict(self._entries)

    def new(self, **fields: Any) -> TypedValue:
        """Build a value of this type for sending to the server."""
        if self.is_enum:
            raise SchemaError(f"cannot instantiate enum {self.name}")
        return TypedValue(self, dict(fields))

    def __repr__(self) -> str:
        return f"<RuntimeType {self.name}>"


class SchemaRegistry:
    """Class name to `RuntimeType` mapping for one session.

    Populated exactly once by `load`; read-only afterwards.
    """

    def __init__(self) -> None:
        self._types: dict[str, RuntimeType] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self, descriptors: Iterable[ClassDescriptor]) -> None:
        """Compile every descriptor and build all enum singletons."""
        if self._loaded:
            raise SchemaError("schema already loaded")

        types: dict[str, RuntimeType] = {}
        for descriptor in descriptors:
            if descriptor.name in types:
                raise SchemaError(f"duplicate class {descriptor.name!r}")
            types[descriptor.name] = RuntimeType(descriptor)
        self._types = types

        # Register every shell before decoding fields so entries may refer
        # to any other entry regardless of declaration order.
        enums = [t for t in types.values() if t.is_enum]
        for rtype in enums:
            for key in rtype.descriptor.enum_entries or {}:
                rtype._entries[key] = EnumValue(rtype, key)

        for rtype in enums:
            for key, raw_fields in (rtype.descriptor.enum_entries or {}).items():
                fields = {k: self.decode(v) for k, v in (raw_fields or {}).items()}
                rtype._entries[key].fields.update(_strip_tags(fields))

        self._loaded = True

    def decode(self, raw: Any) -> Any:
        """Recursively decode a parsed JSON value.

        Members are decoded first; an object carrying a class tag is then
        handed to that type's decoder. Untagged values come back as new
        plain containers with the same structure.
        """
        if isinstance(raw, list):
            return [self.decode(v) for v in raw]
        if not isinstance(raw, Mapping):
            return raw

        members = {k: self.decode(v) for k, v in raw.items()}
        class_name = members.get(CLASS_TAG)
        if class_name is None:
            return members

        return self[class_name].decode(members)

    def lookup(self, type_name: str, key: str) -> EnumValue:
        return self[type_name].lookup(key)

    def get(self, name: str) -> RuntimeType | None:
        return self._types.get(name)

    def __getitem__(self, name: str) -> RuntimeType:
        if not isinstance(name, str):
            raise SchemaError(f"class tag must be a string, got {name!r}")
        try:
            return self._types[name]
        except KeyError:
            raise SchemaError(f"unregistered class {name!r}") from None

    def __contains__(self, name: object) -> bool:
        return name in self._types

    def __iter__(self) -> Iterator[RuntimeType]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)


def encode(value: Any) -> Any:
    """Convert a value to plain JSON-compatible data.

    Enum entries collapse to their entry key. Typed values carry their class
    tags so the server can rebuild them.
    """
    if isinstance(value, EnumValue):
        return value.key
    if isinstance(value, TypedValue):
        out = {k: encode(v) for k, v in value.fields.items()}
        out[CLASS_TAG] = value.type.name
        out[NATIVE_TAG] = value.type.native_name
        return out
    if isinstance(value, Mapping):
        if value.get(ENUM_TAG) is not None:
            return value[ENUM_TAG]
        return {k: encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode(v) for v in value]
    return value
