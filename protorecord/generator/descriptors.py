"""Conversion from protoc descriptor protos to protorecord descriptors."""

import logging
from collections.abc import Iterable

from google.protobuf import descriptor_pb2
from google.protobuf.compiler import plugin_pb2

from .fields import UnsupportedFieldTypeError
from .types import (
    EnumDescriptor,
    EnumValueDescriptor,
    FieldDescriptor,
    FieldType,
    FileDescriptor,
    GenerationRequest,
    MessageDescriptor,
)

_LOG = logging.getLogger(__name__)

_Field = descriptor_pb2.FieldDescriptorProto

FIELD_TYPES = {
    _Field.TYPE_DOUBLE: FieldType.DOUBLE,
    _Field.TYPE_FLOAT: FieldType.FLOAT,
    _Field.TYPE_INT64: FieldType.INT64,
    _Field.TYPE_UINT64: FieldType.UINT64,
    _Field.TYPE_INT32: FieldType.INT32,
    _Field.TYPE_FIXED64: FieldType.FIXED64,
    _Field.TYPE_FIXED32: FieldType.FIXED32,
    _Field.TYPE_BOOL: FieldType.BOOL,
    _Field.TYPE_STRING: FieldType.STRING,
    _Field.TYPE_MESSAGE: FieldType.MESSAGE,
    _Field.TYPE_BYTES: FieldType.BYTES,
    _Field.TYPE_UINT32: FieldType.UINT32,
    _Field.TYPE_ENUM: FieldType.ENUM,
    _Field.TYPE_SFIXED32: FieldType.SFIXED32,
    _Field.TYPE_SFIXED64: FieldType.SFIXED64,
    _Field.TYPE_SINT32: FieldType.SINT32,
    _Field.TYPE_SINT64: FieldType.SINT64,
}

# File options that can name an output namespace
NAMESPACE_OPTIONS = ("java_package",)


def field_from_proto(proto: descriptor_pb2.FieldDescriptorProto) -> FieldDescriptor:
    """Convert one field.

    Proto3 ``optional`` fields and oneof members track presence explicitly.
    Groups have no mapping and are rejected.
    """
    try:
        kind = FIELD_TYPES[proto.type]
    except KeyError:
        type_name = _Field.Type.Name(proto.type) if proto.type in _Field.Type.values() else proto.type
        raise UnsupportedFieldTypeError(
            f"field '{proto.name}' has unsupported type '{type_name}'"
        ) from None

    return FieldDescriptor(
        name=proto.name,
        number=proto.number,
        type=kind,
        repeated=proto.label == _Field.LABEL_REPEATED,
        type_name=proto.type_name or None,
        optional=proto.proto3_optional or proto.HasField("oneof_index"),
    )


def enum_from_proto(proto: descriptor_pb2.EnumDescriptorProto) -> EnumDescriptor:
    return EnumDescriptor(
        name=proto.name,
        values=[EnumValueDescriptor(name=v.name, number=v.number) for v in proto.value],
    )


def _fields_from_proto(
    protos: Iterable[descriptor_pb2.FieldDescriptorProto], strict: bool
) -> list[FieldDescriptor]:
    fields = []
    for proto in protos:
        try:
            fields.append(field_from_proto(proto))
        except UnsupportedFieldTypeError as e:
            if strict:
                raise
            _LOG.debug("Skipping %s", e)
    return fields


def message_from_proto(proto: descriptor_pb2.DescriptorProto, strict: bool = True) -> MessageDescriptor:
    """Convert one message and its nested types.

    With ``strict`` unset, fields without a mapping are dropped instead of
    rejected; such messages are only useful as reference targets.
    """
    return MessageDescriptor(
        name=proto.name,
        fields=_fields_from_proto(proto.field, strict),
        nested_types=[message_from_proto(m, strict) for m in proto.nested_type],
        enum_types=[enum_from_proto(e) for e in proto.enum_type],
    )


def file_from_proto(proto: descriptor_pb2.FileDescriptorProto, strict: bool = True) -> FileDescriptor:
    options = {
        name: getattr(proto.options, name)
        for name in NAMESPACE_OPTIONS
        if proto.options.HasField(name)
    }
    return FileDescriptor(
        name=proto.name,
        package=proto.package,
        options=options,
        message_types=[message_from_proto(m, strict) for m in proto.message_type],
        enum_types=[enum_from_proto(e) for e in proto.enum_type],
        dependencies=list(proto.dependency),
    )


def request_from_proto(request: plugin_pb2.CodeGeneratorRequest) -> GenerationRequest:
    """Convert a whole protoc request.

    Files outside ``file_to_generate`` only provide type names to reference,
    so their unsupported fields are skipped rather than rejected.
    """
    requested = set(request.file_to_generate)
    return GenerationRequest(
        files_to_generate=list(request.file_to_generate),
        files=[file_from_proto(f, strict=f.name in requested) for f in request.proto_file],
        parameter=request.parameter,
    )
