"""Schema parser for .proto files, using Lark."""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, TypeVar

from lark import Lark, Token
from lark.exceptions import UnexpectedInput
from lark.visitors import Transformer

from protorecord.proto.wire import MAX_FIELD_NUMBER

from .fields import GenerationError
from .types import (
    SCALAR_TYPES,
    EnumDescriptor,
    EnumValueDescriptor,
    FieldDescriptor,
    FieldType,
    FileDescriptor,
    GenerationRequest,
    MessageDescriptor,
)

_LOG = logging.getLogger(__name__)

_g_parser: Lark | None = None

# Field numbers reserved for the protocol buffers implementation
IMPLEMENTATION_RESERVED = range(19000, 20000)

SCALAR_NAMES = {t.value: t for t in SCALAR_TYPES}


class ValidationError(GenerationError):
    """Raised when a schema fails to parse or is inconsistent."""


@dataclass
class _Syntax:
    value: str


@dataclass
class _Package:
    value: str


@dataclass
class _Import:
    value: str


@dataclass
class _Label:
    value: str


@dataclass
class _Option:
    name: str
    value: str


@dataclass
class _Reserved:
    numbers: list[range]
    names: list[str]


@dataclass
class _Field:
    label: str | None
    type: str
    name: str
    number: int
    line: int
    in_oneof: bool = False


@dataclass
class _Oneof:
    name: str
    fields: list[_Field]


@dataclass
class _Message:
    name: str
    fields: list[_Field] = field(default_factory=list)
    messages: list["_Message"] = field(default_factory=list)
    enums: list[EnumDescriptor] = field(default_factory=list)
    reserved: list[_Reserved] = field(default_factory=list)


TFilter = TypeVar("TFilter", bound=object)


def _filter(args: list[Any], class_type: type[TFilter]) -> list[TFilter]:
    return [v for v in args if isinstance(v, class_type)]


def _find_one(args: list[Any], class_type: type[object]) -> Any:
    filtered = _filter(args, class_type)
    if len(filtered) == 0:
        return None
    if len(filtered) > 1:
        raise ValidationError(f"Found more than one {class_type.__name__.lstrip('_').lower()} statement")
    if hasattr(filtered[0], "value"):
        return filtered[0].value
    return filtered[0]


def _unquote(token: str) -> str:
    return token[1:-1].replace('\\"', '"').replace("\\'", "'").replace("\\\\", "\\")


class TreeTransformer(Transformer):
    """Transform parse tree into intermediate schema objects."""

    def start(self, args: list[Any]) -> list[Any]:
        return list(args)

    def string(self, args: list[Any]) -> str:
        return "".join(_unquote(str(a)) for a in args)

    def constant(self, args: list[Any]) -> str:
        return str(args[0])

    def extension_name(self, args: list[Any]) -> str:
        return f"({args[0]})"

    def option_name(self, args: list[Any]) -> str:
        return "".join(str(a) for a in args if a is not None)

    def option(self, args: list[Any]) -> _Option:
        return _Option(name=args[0], value=args[1])

    def field_option(self, args: list[Any]) -> _Option:
        return _Option(name=args[0], value=args[1])

    def field_options(self, args: list[Any]) -> list[_Option]:
        return list(args)

    def syntax(self, args: list[Any]) -> _Syntax:
        return _Syntax(value=args[0])

    def package(self, args: list[Any]) -> _Package:
        return _Package(value=str(args[0]))

    def import_(self, args: list[Any]) -> _Import:
        return _Import(value=args[-1])

    def label(self, args: list[Any]) -> _Label:
        return _Label(value=str(args[0]))

    def field(self, args: list[Any]) -> _Field:
        type_name, name, number = [a for a in args if isinstance(a, Token)]
        return _Field(
            label=_find_one(args, _Label),
            type=str(type_name),
            name=str(name),
            number=int(number),
            line=name.line,
        )

    def oneof(self, args: list[Any]) -> _Oneof:
        return _Oneof(
            name=str(args[0]),
            fields=[replace(f, in_oneof=True) for f in _filter(args, _Field)],
        )

    def range_end(self, args: list[Any]) -> int:
        if args[0] == "max":
            return MAX_FIELD_NUMBER
        return int(args[0])

    def reserved_range(self, args: list[Any]) -> range:
        start = int(args[0])
        end = args[1] if len(args) > 1 and args[1] is not None else start
        return range(start, end + 1)

    def ranges(self, args: list[Any]) -> list[range]:
        return list(args)

    def names(self, args: list[Any]) -> list[str]:
        return list(args)

    def reserved(self, args: list[Any]) -> _Reserved:
        items = args[0]
        return _Reserved(
            numbers=[r for r in items if isinstance(r, range)],
            names=[n for n in items if isinstance(n, str)],
        )

    def enum_value(self, args: list[Any]) -> EnumValueDescriptor:
        return EnumValueDescriptor(name=str(args[0]), number=int(args[1]))

    def enum(self, args: list[Any]) -> EnumDescriptor:
        return EnumDescriptor(name=str(args[0]), values=_filter(args, EnumValueDescriptor))

    def message(self, args: list[Any]) -> _Message:
        message = _Message(name=str(args[0]))
        for item in args[1:]:
            if isinstance(item, _Field):
                message.fields.append(item)
            elif isinstance(item, _Oneof):
                message.fields.extend(item.fields)
            elif isinstance(item, _Message):
                message.messages.append(item)
            elif isinstance(item, EnumDescriptor):
                message.enums.append(item)
            elif isinstance(item, _Reserved):
                message.reserved.append(item)
        return message


class _Symbols:
    """Fully qualified message and enum names visible to one file."""

    def __init__(self) -> None:
        self.kinds: dict[str, FieldType] = {}

    def add_raw(self, scope: str, messages: list[_Message], enums: list[EnumDescriptor]) -> None:
        for enum in enums:
            self._add(f"{scope}.{enum.name}", FieldType.ENUM)
        for message in messages:
            qualified = f"{scope}.{message.name}"
            self._add(qualified, FieldType.MESSAGE)
            self.add_raw(qualified, message.messages, message.enums)

    def add_file(self, file: FileDescriptor) -> None:
        scope = f".{file.package}" if file.package else ""
        for enum in file.enum_types:
            self.kinds[f"{scope}.{enum.name}"] = FieldType.ENUM
        self._add_descriptors(scope, file.message_types)

    def _add_descriptors(self, scope: str, messages: list[MessageDescriptor]) -> None:
        for message in messages:
            qualified = f"{scope}.{message.name}"
            self.kinds[qualified] = FieldType.MESSAGE
            for enum in message.enum_types:
                self.kinds[f"{qualified}.{enum.name}"] = FieldType.ENUM
            self._add_descriptors(qualified, message.nested_types)

    def _add(self, qualified: str, kind: FieldType) -> None:
        if qualified in self.kinds:
            raise ValidationError(f"'{qualified.lstrip('.')}' is already defined")
        self.kinds[qualified] = kind

    def resolve(self, type_name: str, scope: str) -> tuple[str, FieldType] | None:
        """Resolve ``type_name`` as written inside ``scope``, innermost scope first."""
        if type_name.startswith("."):
            kind = self.kinds.get(type_name)
            return (type_name, kind) if kind else None

        parts = [p for p in scope.split(".") if p]
        for depth in range(len(parts), -1, -1):
            candidate = "." + ".".join([*parts[:depth], type_name])
            kind = self.kinds.get(candidate)
            if kind:
                return candidate, kind
        return None


def _validate_fields(message: _Message, where: str) -> None:
    numbers: dict[int, str] = {}
    names: set[str] = set()
    reserved_names = {n for r in message.reserved for n in r.names}
    reserved_numbers = [n for r in message.reserved for n in r.numbers]

    for f in message.fields:
        location = f"{where}.{f.name} (line {f.line})"
        if f.name in names:
            raise ValidationError(f"{location}: duplicate field name")
        names.add(f.name)

        if not 0 < f.number <= MAX_FIELD_NUMBER:
            raise ValidationError(f"{location}: field number {f.number} out of range")
        if f.number in IMPLEMENTATION_RESERVED:
            raise ValidationError(
                f"{location}: field numbers 19000-19999 are reserved by protocol buffers"
            )
        if f.number in numbers:
            raise ValidationError(
                f"{location}: field number {f.number} already used by '{numbers[f.number]}'"
            )
        numbers[f.number] = f.name

        if f.name in reserved_names:
            raise ValidationError(f"{location}: field name is reserved")
        if any(f.number in r for r in reserved_numbers):
            raise ValidationError(f"{location}: field number {f.number} is reserved")
        if f.in_oneof and f.label is not None:
            raise ValidationError(f"{location}: oneof fields cannot be '{f.label}'")


def _validate_enum(enum: EnumDescriptor, where: str) -> None:
    if not enum.values:
        raise ValidationError(f"{where}.{enum.name}: enum has no values")
    if enum.values[0].number != 0:
        raise ValidationError(f"{where}.{enum.name}: first enum value must be zero")


def _build_message(message: _Message, scope: str, symbols: _Symbols) -> MessageDescriptor:
    qualified = f"{scope}.{message.name}"
    where = qualified.lstrip(".")
    _validate_fields(message, where)
    for enum in message.enums:
        _validate_enum(enum, where)

    fields: list[FieldDescriptor] = []
    for f in message.fields:
        kind = SCALAR_NAMES.get(f.type)
        type_name = None
        if kind is None:
            resolved = symbols.resolve(f.type, qualified)
            if resolved is None:
                raise ValidationError(f"{where}.{f.name} (line {f.line}): unknown type '{f.type}'")
            type_name, kind = resolved
        fields.append(
            FieldDescriptor(
                name=f.name,
                number=f.number,
                type=kind,
                repeated=f.label == "repeated",
                type_name=type_name,
                optional=f.label == "optional" or f.in_oneof,
            )
        )

    return MessageDescriptor(
        name=message.name,
        fields=fields,
        nested_types=[_build_message(m, qualified, symbols) for m in message.messages],
        enum_types=message.enums,
    )


def _parse_items(text: str, name: str) -> list[Any]:
    global _g_parser

    if not _g_parser:
        _g_parser = Lark.open("proto3.lark", rel_to=__file__, parser="lalr")

    try:
        tree = _g_parser.parse(text)
    except UnexpectedInput as e:
        raise ValidationError(
            f"{name}:{e.line}:{e.column}: syntax error\n{e.get_context(text)}"
        ) from e
    return TreeTransformer().transform(tree)


def _build_file(name: str, items: list[Any], context: Iterable[FileDescriptor]) -> FileDescriptor:
    syntax = _find_one(items, _Syntax)
    if syntax is None:
        _LOG.warning("%s: no syntax specified, assuming proto3", name)
    elif syntax != "proto3":
        raise ValidationError(f"{name}: unsupported syntax '{syntax}', only proto3 is accepted")

    package = _find_one(items, _Package) or ""
    scope = f".{package}" if package else ""
    messages = _filter(items, _Message)
    enums = _filter(items, EnumDescriptor)

    symbols = _Symbols()
    for other in context:
        symbols.add_file(other)
    try:
        symbols.add_raw(scope, messages, enums)
    except ValidationError as e:
        raise ValidationError(f"{name}: {e}") from e

    for enum in enums:
        _validate_enum(enum, package or name)

    return FileDescriptor(
        name=name,
        package=package,
        options={o.name: o.value for o in _filter(items, _Option)},
        message_types=[_build_message(m, scope, symbols) for m in messages],
        enum_types=enums,
        dependencies=[i.value for i in _filter(items, _Import)],
    )


def parse(text: str, name: str = "<string>", context: Iterable[FileDescriptor] = ()) -> FileDescriptor:
    """Parse one .proto file.

    Types referenced from other files must be present in ``context``.
    """
    return _build_file(name, _parse_items(text, name), context)


def load(paths: Sequence[str | Path], include_paths: Sequence[str | Path] = ()) -> GenerationRequest:
    """Parse .proto files and, transitively, the files they import.

    Imports are searched for in ``include_paths`` followed by the directory
    of each input. Imported files are included as context only.
    """
    inputs = [Path(p) for p in paths]
    search = [Path(p) for p in include_paths]
    for path in inputs:
        if path.parent not in search:
            search.append(path.parent)

    parsed: dict[str, FileDescriptor] = {}

    def _name_for(path: Path) -> str:
        for root in search:
            try:
                return path.resolve().relative_to(root.resolve()).as_posix()
            except ValueError:
                continue
        return path.name

    def _find_import(name: str, importer: str) -> Path:
        for root in search:
            candidate = root / name
            if candidate.is_file():
                return candidate
        raise ValidationError(f"{importer}: import '{name}' not found")

    def _load(path: Path, name: str, stack: tuple[str, ...]) -> None:
        if name in parsed:
            return
        if name in stack:
            raise ValidationError(f"Import cycle: {' -> '.join([*stack, name])}")

        _LOG.debug("Parsing %s", path)
        items = _parse_items(path.read_text(encoding="utf-8"), name)
        for dependency in _filter(items, _Import):
            _load(_find_import(dependency.value, name), dependency.value, (*stack, name))
        parsed[name] = _build_file(name, items, parsed.values())

    requested = []
    for path in inputs:
        name = _name_for(path)
        _load(path, name, ())
        requested.append(name)

    return GenerationRequest(files_to_generate=requested, files=list(parsed.values()))
