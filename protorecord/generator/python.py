"""Python code generator for protorecord messages."""

import keyword
from importlib import resources

from jinja2 import Environment, PackageLoader

from .fields import DefaultKind, FieldPlan, MessagePlan, TypeRef
from .types import FieldType

EXTENSION = ".py"
NAMESPACE_OPTION = "python_package"

RUNTIME_FILES = [
    "__init__.py",
    "wire.py",
    "serialization.py",
]

env = Environment(
    loader=PackageLoader("protorecord.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

record_template = env.get_template("python_record.py.j2")
builder_template = env.get_template("python_builder.py.j2")

# Map field kinds to Python type annotations
PRIMITIVE_TYPE_MAP = {
    FieldType.INT32: "int",
    FieldType.INT64: "int",
    FieldType.UINT32: "int",
    FieldType.UINT64: "int",
    FieldType.SINT32: "int",
    FieldType.SINT64: "int",
    FieldType.FIXED32: "int",
    FieldType.FIXED64: "int",
    FieldType.SFIXED32: "int",
    FieldType.SFIXED64: "int",
    FieldType.ENUM: "int",
    FieldType.FLOAT: "float",
    FieldType.DOUBLE: "float",
    FieldType.BOOL: "bool",
    FieldType.STRING: "str",
    FieldType.BYTES: "bytes",
}


# Names a field attribute must not take: the dataclass ``__init__`` receiver
# and the methods defined on records and builders
RESERVED_NAMES = frozenset(
    [
        "self",
        "cls",
        "parse_from",
        "read_from",
        "write_to",
        "to_bytes",
        "serialized_size",
        "default_instance",
        "new_builder",
        "to_builder",
        "build",
    ]
)


def attribute_name(f: FieldPlan) -> str:
    """Python attribute for a field; keywords and reserved names get a trailing underscore."""
    if keyword.iskeyword(f.name) or f.name in RESERVED_NAMES:
        return f"{f.name}_"
    return f.name


def module_aliases(plan: MessagePlan) -> dict[str, str]:
    """Import alias for each referenced message module.

    Aliases use the simple type name unless two references share it.
    """
    refs = [ref for ref in plan.message_refs() if not _is_self(ref, plan)]
    names = [ref.name for ref in refs]
    aliases: dict[str, str] = {}
    for ref in refs:
        if names.count(ref.name) > 1:
            qualified = f"{ref.namespace}.{ref.name}".replace(".", "_")
            aliases[ref.proto_name] = f"_{qualified}"
        else:
            aliases[ref.proto_name] = f"_{ref.name}"
    return aliases


def _is_self(ref: TypeRef, plan: MessagePlan) -> bool:
    return ref.namespace == plan.namespace and ref.name == plan.name


class _Formatter:
    """Per-message helpers handed to the templates.

    ``self_name`` is how the message's own class is spelled in the module
    being rendered: bare in the record module, module-qualified in the
    builder module.
    """

    def __init__(self, plan: MessagePlan, self_name: str) -> None:
        self.plan = plan
        self.self_name = self_name
        self.aliases = module_aliases(plan)

    def class_ref(self, f: FieldPlan) -> str:
        assert f.type_ref is not None
        if _is_self(f.type_ref, self.plan):
            return self.self_name
        return f"{self.aliases[f.type_ref.proto_name]}.{f.type_ref.name}"

    def element_type(self, f: FieldPlan) -> str:
        if f.is_message:
            return self.class_ref(f)
        return PRIMITIVE_TYPE_MAP[f.type]

    def storage_type(self, f: FieldPlan) -> str:
        base = self.element_type(f)
        if f.default_kind == DefaultKind.EMPTY_SEQUENCE:
            return f"tuple[{base}, ...]"
        if f.default_kind == DefaultKind.ABSENT:
            return f"{base} | None"
        return base

    def read_expression(self, f: FieldPlan) -> str:
        if f.is_message:
            return f"{self.class_ref(f)}.parse_from(_input.read_bytes())"
        return f"_input.read_{f.codec}()"


def default_literal(f: FieldPlan) -> str:
    """Python literal for a field's default value."""
    match f.default_kind:
        case DefaultKind.ZERO:
            return "0.0" if f.is_floating else "0"
        case DefaultKind.FALSE:
            return "False"
        case DefaultKind.EMPTY_STRING:
            return '""'
        case DefaultKind.EMPTY_BYTES:
            return 'b""'
        case DefaultKind.EMPTY_SEQUENCE:
            return "()"
        case DefaultKind.ABSENT:
            return "None"
    raise ValueError(f"Unknown default kind: {f.default_kind}")


def default_check(f: FieldPlan, var: str) -> str:
    """Condition that is true when ``var`` differs from the default and must be written."""
    match f.default_kind:
        case DefaultKind.ZERO:
            return f"{var} != {default_literal(f)}"
        case DefaultKind.FALSE | DefaultKind.EMPTY_STRING | DefaultKind.EMPTY_BYTES:
            return var
        case DefaultKind.ABSENT:
            return f"{var} is not None"
    raise ValueError(f"Field {f.name} has no default check")


def write_statements(f: FieldPlan, var: str) -> list[str]:
    """Statements writing one occurrence of ``f`` holding ``var``."""
    if f.is_message:
        return [
            f"_output.write_tag({f.number}, _wire.WireType.LENGTH_DELIMITED)",
            f"_message_bytes = {var}.to_bytes()",
            "_output.write_uint32_no_tag(len(_message_bytes))",
            "_output.write_raw_bytes(_message_bytes)",
        ]
    return [f"_output.write_{f.codec}({f.number}, {var})"]


def size_statements(f: FieldPlan, var: str) -> list[str]:
    """Statements adding one occurrence of ``f`` holding ``var`` to ``_size``."""
    if f.is_message:
        return [
            f"_message_size = {var}.serialized_size()",
            f"_size += _wire.compute_tag_size({f.number}) + "
            "_wire.compute_uint32_size_no_tag(_message_size) + _message_size",
        ]
    return [f"_size += _wire.compute_{f.codec}_size({f.number}, {var})"]


def _template_args(plan: MessagePlan, formatter: _Formatter, source: str, runtime_import: str) -> dict:
    aliases = formatter.aliases
    return {
        "plan": plan,
        "source": source,
        "runtime_import": runtime_import,
        "imports": [ref for ref in plan.message_refs() if ref.proto_name in aliases],
        "aliases": aliases,
        "repeated_fields": [f for f in plan.fields if f.repeated],
        "attr": attribute_name,
        "storage_type": formatter.storage_type,
        "element_type": formatter.element_type,
        "read_expression": formatter.read_expression,
        "default_literal": default_literal,
        "default_check": default_check,
        "write_statements": write_statements,
        "size_statements": size_statements,
    }


def render_record(plan: MessagePlan, *, source: str = "", runtime_import: str = "protorecord.proto") -> str:
    """Render the immutable record module for a message."""
    formatter = _Formatter(plan, plan.name)
    args = _template_args(plan, formatter, source, runtime_import)
    args["with_args"] = lambda target: ", ".join(
        "value" if f is target else f"self.{attribute_name(f)}" for f in plan.fields
    )
    args["ctor_args"] = ", ".join(attribute_name(f) for f in plan.fields)
    return record_template.render(**args)


def render_builder(plan: MessagePlan, *, source: str = "", runtime_import: str = "protorecord.proto") -> str:
    """Render the mutable builder module for a message."""
    formatter = _Formatter(plan, f"_record.{plan.name}")
    args = _template_args(plan, formatter, source, runtime_import)
    args["builder_args"] = ", ".join(f"self._{f.name}" for f in plan.fields)
    return builder_template.render(**args)


def runtime() -> dict[str, str]:
    """Return the Python runtime files as a dict of filename -> content."""
    result: dict[str, str] = {}
    for filename in RUNTIME_FILES:
        content = resources.files("protorecord.proto").joinpath(filename).read_text()
        result[filename] = content
    return result
