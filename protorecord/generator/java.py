"""Java code generator for protorecord messages.

Emits a JEP 401 value class per message, backed by protobuf-java's
``CodedInputStream``/``CodedOutputStream``, plus a separate builder class.
"""

from jinja2 import Environment, PackageLoader

from .fields import DefaultKind, FieldPlan, MessagePlan, capitalize
from .types import FieldType

EXTENSION = ".java"
NAMESPACE_OPTION = "java_package"

env = Environment(
    loader=PackageLoader("protorecord.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

record_template = env.get_template("java_record.java.j2")
builder_template = env.get_template("java_builder.java.j2")

PRIMITIVE_TYPE_MAP = {
    FieldType.INT32: "int",
    FieldType.SINT32: "int",
    FieldType.SFIXED32: "int",
    FieldType.UINT32: "int",
    FieldType.FIXED32: "int",
    FieldType.ENUM: "int",
    FieldType.INT64: "long",
    FieldType.SINT64: "long",
    FieldType.SFIXED64: "long",
    FieldType.UINT64: "long",
    FieldType.FIXED64: "long",
    FieldType.FLOAT: "float",
    FieldType.DOUBLE: "double",
    FieldType.BOOL: "boolean",
    FieldType.STRING: "String",
    FieldType.BYTES: "ByteString",
}

# Reference types used where a primitive cannot appear (List<T>, nullable optionals)
BOXED_TYPE_MAP = {
    "int": "Integer",
    "long": "Long",
    "float": "Float",
    "double": "Double",
    "boolean": "Boolean",
}

# Literal suffix for typed zero values
ZERO_LITERALS = {
    "int": "0",
    "long": "0L",
    "float": "0.0f",
    "double": "0.0",
}

# CodedInputStream/CodedOutputStream method names
METHOD_SUFFIXES = {
    "int32": "Int32",
    "int64": "Int64",
    "uint32": "UInt32",
    "uint64": "UInt64",
    "sint32": "SInt32",
    "sint64": "SInt64",
    "fixed32": "Fixed32",
    "fixed64": "Fixed64",
    "sfixed32": "SFixed32",
    "sfixed64": "SFixed64",
    "float": "Float",
    "double": "Double",
    "bool": "Bool",
    "enum": "Enum",
    "string": "String",
    "bytes": "Bytes",
    "message": "Message",
}


class _Formatter:
    """Per-message helpers handed to the templates."""

    def __init__(self, plan: MessagePlan) -> None:
        self.plan = plan

    def base_type(self, f: FieldPlan) -> str:
        """Java type of a single value of ``f``."""
        if f.is_message:
            assert f.type_ref is not None
            if f.type_ref.namespace in ("", self.plan.namespace):
                return f.type_ref.name
            return f"{f.type_ref.namespace}.{f.type_ref.name}"
        return PRIMITIVE_TYPE_MAP[f.type]

    def element_type(self, f: FieldPlan) -> str:
        """Java type of a single value, boxed."""
        base = self.base_type(f)
        return BOXED_TYPE_MAP.get(base, base)

    def java_type(self, f: FieldPlan) -> str:
        if f.default_kind == DefaultKind.EMPTY_SEQUENCE:
            return f"List<{self.element_type(f)}>"
        if f.default_kind == DefaultKind.ABSENT:
            return self.element_type(f)
        return self.base_type(f)

    def default_value(self, f: FieldPlan) -> str:
        match f.default_kind:
            case DefaultKind.ZERO:
                return ZERO_LITERALS[self.base_type(f)]
            case DefaultKind.FALSE:
                return "false"
            case DefaultKind.EMPTY_STRING:
                return '""'
            case DefaultKind.EMPTY_BYTES:
                return "ByteString.EMPTY"
            case DefaultKind.EMPTY_SEQUENCE:
                return "List.of()"
            case DefaultKind.ABSENT:
                return "null"
        raise ValueError(f"Unknown default kind: {f.default_kind}")

    def default_check(self, f: FieldPlan, var: str) -> str:
        match f.default_kind:
            case DefaultKind.ZERO:
                return f"{var} != {ZERO_LITERALS[self.base_type(f)]}"
            case DefaultKind.FALSE:
                return var
            case DefaultKind.EMPTY_STRING | DefaultKind.EMPTY_BYTES:
                return f"!{var}.isEmpty()"
            case DefaultKind.ABSENT:
                return f"{var} != null"
        raise ValueError(f"Field {f.name} has no default check")

    def read_expression(self, f: FieldPlan) -> str:
        if f.is_message:
            return f"{self.base_type(f)}.parseFrom(input.readBytes().toByteArray())"
        return f"input.read{METHOD_SUFFIXES[f.codec]}()"

    def write_statements(self, f: FieldPlan, var: str) -> list[str]:
        if f.is_message:
            return [
                f"output.writeTag({f.number}, WireFormat.WIRETYPE_LENGTH_DELIMITED);",
                f"byte[] messageBytes = {var}.toByteArray();",
                "output.writeUInt32NoTag(messageBytes.length);",
                "output.writeRawBytes(messageBytes);",
            ]
        return [f"output.write{METHOD_SUFFIXES[f.codec]}({f.number}, {var});"]

    def size_expression(self, f: FieldPlan, var: str) -> str:
        if f.is_message:
            return (
                f"CodedOutputStream.computeTagSize({f.number}) + "
                f"CodedOutputStream.computeUInt32SizeNoTag({var}.getSerializedSize()) + "
                f"{var}.getSerializedSize()"
            )
        return f"CodedOutputStream.compute{METHOD_SUFFIXES[f.codec]}Size({f.number}, {var})"


def _template_args(plan: MessagePlan, source: str) -> dict:
    formatter = _Formatter(plan)
    return {
        "plan": plan,
        "source": source,
        "capitalize": capitalize,
        "java_type": formatter.java_type,
        "base_type": formatter.base_type,
        "element_type": formatter.element_type,
        "default_value": formatter.default_value,
        "default_check": formatter.default_check,
        "read_expression": formatter.read_expression,
        "write_statements": formatter.write_statements,
        "size_expression": formatter.size_expression,
        "parameters": ", ".join(f"{formatter.java_type(f)} {f.name}" for f in plan.fields),
        "defaults": ", ".join(formatter.default_value(f) for f in plan.fields),
        "arguments": ", ".join(f.name for f in plan.fields),
    }


def render_record(plan: MessagePlan, *, source: str = "", runtime_import: str = "") -> str:
    """Render the value class for a message.

    ``runtime_import`` is accepted for signature parity with the Python
    target; generated Java always uses protobuf-java.
    """
    args = _template_args(plan, source)
    args["with_args"] = lambda target: ", ".join(
        "value" if f is target else f"this.{f.name}" for f in plan.fields
    )
    return record_template.render(**args)


def render_builder(plan: MessagePlan, *, source: str = "", runtime_import: str = "") -> str:
    """Render the builder class for a message."""
    return builder_template.render(**_template_args(plan, source))
