"""Descriptor types consumed by the generators."""

from dataclasses import dataclass, field
from enum import StrEnum

from dataclasses_json import DataClassJsonMixin


class FieldType(StrEnum):
    """Scalar, message or enum kind of a field."""

    DOUBLE = "double"
    FLOAT = "float"
    INT64 = "int64"
    UINT64 = "uint64"
    INT32 = "int32"
    FIXED64 = "fixed64"
    FIXED32 = "fixed32"
    BOOL = "bool"
    STRING = "string"
    MESSAGE = "message"
    BYTES = "bytes"
    UINT32 = "uint32"
    ENUM = "enum"
    SFIXED32 = "sfixed32"
    SFIXED64 = "sfixed64"
    SINT32 = "sint32"
    SINT64 = "sint64"


SCALAR_TYPES = frozenset(t for t in FieldType if t not in (FieldType.MESSAGE, FieldType.ENUM))


@dataclass
class FieldDescriptor(DataClassJsonMixin):
    """Describes one field of a message.

    ``type_name`` is the fully qualified name (``.pkg.Name``) of the
    referenced type and is only set for message and enum fields.
    ``optional`` marks proto3 explicit presence.
    """

    name: str
    number: int
    type: FieldType
    repeated: bool = False
    type_name: str | None = None
    optional: bool = False

    @property
    def short_type_name(self) -> str:
        """Referenced type name without its package qualifier."""
        if not self.type_name:
            return ""
        return self.type_name.rsplit(".", 1)[-1]


@dataclass
class EnumValueDescriptor(DataClassJsonMixin):
    """Represents a single enum value."""

    name: str
    number: int


@dataclass
class EnumDescriptor(DataClassJsonMixin):
    """Represents an enum type definition."""

    name: str
    values: list[EnumValueDescriptor] = field(default_factory=list)


@dataclass
class MessageDescriptor(DataClassJsonMixin):
    """Represents a message type with its fields in declaration order.

    Nested types are kept so they can be referenced, but only top-level
    messages are generated.
    """

    name: str
    fields: list[FieldDescriptor] = field(default_factory=list)
    nested_types: list["MessageDescriptor"] = field(default_factory=list)
    enum_types: list[EnumDescriptor] = field(default_factory=list)


@dataclass
class FileDescriptor(DataClassJsonMixin):
    """Represents one schema file."""

    name: str
    package: str = ""
    options: dict[str, str] = field(default_factory=dict)
    message_types: list[MessageDescriptor] = field(default_factory=list)
    enum_types: list[EnumDescriptor] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)


@dataclass
class GenerationRequest(DataClassJsonMixin):
    """Files to generate plus every file they may reference."""

    files_to_generate: list[str]
    files: list[FileDescriptor]
    parameter: str = ""


@dataclass(frozen=True)
class GeneratedArtifact:
    """A generated source file."""

    name: str
    content: str
