"""Field type mapping shared by every target language.

The tables here decide how each field kind is framed on the wire, which
primitive codec reads and writes it, and what its default value is. Target
formatters (``python``, ``java``) turn these decisions into source text;
none of them re-derive wire details on their own.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum, auto

from protorecord.proto.wire import MAX_FIELD_NUMBER, WireType, make_tag

from .types import FieldDescriptor, FieldType, MessageDescriptor


class GenerationError(RuntimeError):
    """Raised when a descriptor cannot be turned into code."""


class UnsupportedFieldTypeError(GenerationError):
    """Raised for a field kind that has no wire mapping."""


class DefaultKind(StrEnum):
    """The value a field takes when it is absent from the wire."""

    ZERO = auto()
    FALSE = auto()
    EMPTY_STRING = auto()
    EMPTY_BYTES = auto()
    EMPTY_SEQUENCE = auto()
    ABSENT = auto()


WIRE_TYPES: dict[FieldType, WireType] = {
    FieldType.INT32: WireType.VARINT,
    FieldType.INT64: WireType.VARINT,
    FieldType.UINT32: WireType.VARINT,
    FieldType.UINT64: WireType.VARINT,
    FieldType.SINT32: WireType.VARINT,
    FieldType.SINT64: WireType.VARINT,
    FieldType.BOOL: WireType.VARINT,
    FieldType.ENUM: WireType.VARINT,
    FieldType.FIXED64: WireType.FIXED64,
    FieldType.SFIXED64: WireType.FIXED64,
    FieldType.DOUBLE: WireType.FIXED64,
    FieldType.STRING: WireType.LENGTH_DELIMITED,
    FieldType.BYTES: WireType.LENGTH_DELIMITED,
    FieldType.MESSAGE: WireType.LENGTH_DELIMITED,
    FieldType.FIXED32: WireType.FIXED32,
    FieldType.SFIXED32: WireType.FIXED32,
    FieldType.FLOAT: WireType.FIXED32,
}

# Primitive read/write operation for each kind. Runtimes expose
# ``read_<codec>``/``write_<codec>``/``compute_<codec>_size`` (or the
# CamelCase equivalent); message fields are framed by the generator itself.
CODECS: dict[FieldType, str] = {
    FieldType.INT32: "int32",
    FieldType.INT64: "int64",
    FieldType.UINT32: "uint32",
    FieldType.UINT64: "uint64",
    FieldType.SINT32: "sint32",
    FieldType.SINT64: "sint64",
    FieldType.BOOL: "bool",
    FieldType.ENUM: "enum",
    FieldType.FIXED64: "fixed64",
    FieldType.SFIXED64: "sfixed64",
    FieldType.DOUBLE: "double",
    FieldType.STRING: "string",
    FieldType.BYTES: "bytes",
    FieldType.MESSAGE: "message",
    FieldType.FIXED32: "fixed32",
    FieldType.SFIXED32: "sfixed32",
    FieldType.FLOAT: "float",
}

DEFAULT_KINDS: dict[FieldType, DefaultKind] = {
    FieldType.INT32: DefaultKind.ZERO,
    FieldType.INT64: DefaultKind.ZERO,
    FieldType.UINT32: DefaultKind.ZERO,
    FieldType.UINT64: DefaultKind.ZERO,
    FieldType.SINT32: DefaultKind.ZERO,
    FieldType.SINT64: DefaultKind.ZERO,
    FieldType.FIXED32: DefaultKind.ZERO,
    FieldType.FIXED64: DefaultKind.ZERO,
    FieldType.SFIXED32: DefaultKind.ZERO,
    FieldType.SFIXED64: DefaultKind.ZERO,
    FieldType.FLOAT: DefaultKind.ZERO,
    FieldType.DOUBLE: DefaultKind.ZERO,
    FieldType.ENUM: DefaultKind.ZERO,
    FieldType.BOOL: DefaultKind.FALSE,
    FieldType.STRING: DefaultKind.EMPTY_STRING,
    FieldType.BYTES: DefaultKind.EMPTY_BYTES,
    FieldType.MESSAGE: DefaultKind.ABSENT,
}

FLOATING_TYPES = frozenset([FieldType.FLOAT, FieldType.DOUBLE])


def _lookup(table: dict, field: FieldDescriptor):
    try:
        return table[field.type]
    except KeyError:
        raise UnsupportedFieldTypeError(
            f"field '{field.name}' has unsupported type '{field.type}'"
        ) from None


def wire_type(field: FieldDescriptor) -> WireType:
    """Wire type every occurrence of ``field`` is written with."""
    return _lookup(WIRE_TYPES, field)


def field_tag(field: FieldDescriptor) -> int:
    """The exact tag value written before, and matched when reading, ``field``."""
    return make_tag(field.number, wire_type(field))


def codec(field: FieldDescriptor) -> str:
    return _lookup(CODECS, field)


def default_kind(field: FieldDescriptor) -> DefaultKind:
    """Default used for elision on encode and for absent fields on decode."""
    kind = _lookup(DEFAULT_KINDS, field)
    if field.repeated:
        return DefaultKind.EMPTY_SEQUENCE
    if field.optional:
        return DefaultKind.ABSENT
    return kind


def is_packable(field: FieldDescriptor) -> bool:
    """Repeated numeric fields may also arrive as one length-delimited run."""
    return field.repeated and wire_type(field) != WireType.LENGTH_DELIMITED


def capitalize(name: str) -> str:
    if not name:
        return name
    return name[0].upper() + name[1:]


def singular_name(plural: str) -> str:
    """Best-effort singular of a repeated field name ("cities" -> "city")."""
    if plural.endswith("ies"):
        return plural[:-3] + "y"
    if plural.endswith("s"):
        return plural[:-1]
    return plural


@dataclass(frozen=True)
class TypeRef:
    """Where a referenced message type is generated."""

    proto_name: str
    namespace: str
    name: str


TypeResolver = Callable[[str], TypeRef]


@dataclass(frozen=True)
class FieldPlan:
    """Everything a formatter needs to know about one field."""

    descriptor: FieldDescriptor
    wire_type: WireType
    tag: int
    codec: str
    default_kind: DefaultKind
    type_ref: TypeRef | None = None
    packed_tag: int | None = None

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def number(self) -> int:
        return self.descriptor.number

    @property
    def type(self) -> FieldType:
        return self.descriptor.type

    @property
    def repeated(self) -> bool:
        return self.descriptor.repeated

    @property
    def optional(self) -> bool:
        return self.descriptor.optional

    @property
    def is_message(self) -> bool:
        return self.descriptor.type == FieldType.MESSAGE

    @property
    def is_floating(self) -> bool:
        return self.descriptor.type in FLOATING_TYPES

    @property
    def capitalized(self) -> str:
        return capitalize(self.descriptor.name)

    @property
    def singular(self) -> str:
        return singular_name(self.descriptor.name)


@dataclass(frozen=True)
class MessagePlan:
    """A message with its fields in declaration order."""

    name: str
    namespace: str
    fields: tuple[FieldPlan, ...]

    @property
    def builder_name(self) -> str:
        return f"{self.name}Builder"

    def message_refs(self) -> list[TypeRef]:
        """Distinct message types referenced by fields, in first-use order."""
        refs: dict[str, TypeRef] = {}
        for f in self.fields:
            if f.type_ref is not None and f.is_message:
                refs.setdefault(f.type_ref.proto_name, f.type_ref)
        return list(refs.values())


def plan_field(field: FieldDescriptor, resolve: TypeResolver | None = None) -> FieldPlan:
    """Map a field descriptor onto its wire and default decisions."""
    if not 0 < field.number <= MAX_FIELD_NUMBER:
        raise GenerationError(f"field '{field.name}' has invalid number {field.number}")

    type_ref = None
    if field.type == FieldType.MESSAGE:
        if not field.type_name:
            raise GenerationError(f"message field '{field.name}' has no type name")
        if resolve is not None:
            type_ref = resolve(field.type_name)
        else:
            type_ref = TypeRef(field.type_name, "", field.short_type_name)

    return FieldPlan(
        descriptor=field,
        wire_type=wire_type(field),
        tag=field_tag(field),
        codec=codec(field),
        default_kind=default_kind(field),
        type_ref=type_ref,
        packed_tag=make_tag(field.number, WireType.LENGTH_DELIMITED) if is_packable(field) else None,
    )


def plan_message(
    message: MessageDescriptor, namespace: str, resolve: TypeResolver | None = None
) -> MessagePlan:
    return MessagePlan(
        name=message.name,
        namespace=namespace,
        fields=tuple(plan_field(f, resolve) for f in message.fields),
    )
