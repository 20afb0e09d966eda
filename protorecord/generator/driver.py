"""Turns a generation request into named source artifacts.

Each requested file gets an output namespace, then every message declared
directly in it is planned once and rendered twice: the record first, its
builder immediately after. Files that are only present for reference
contribute types to the index but produce nothing.
"""

import logging
from dataclasses import dataclass, fields
from types import ModuleType
from typing import Self

from . import java, python
from .fields import GenerationError, MessagePlan, TypeRef, TypeResolver, plan_message
from .types import FileDescriptor, GeneratedArtifact, GenerationRequest, MessageDescriptor

_LOG = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "generated"

TARGETS: dict[str, ModuleType] = {
    "python": python,
    "java": java,
}


@dataclass
class GeneratorOptions:
    """Run-wide settings, typically parsed from the plugin parameter string."""

    target: str = "python"
    runtime_import: str = "protorecord.proto"
    namespace: str | None = None

    @classmethod
    def from_parameter(cls, parameter: str) -> Self:
        """Parse ``key=value`` pairs separated by commas."""
        known = {f.name for f in fields(cls)}
        values: dict[str, str] = {}
        for chunk in parameter.split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            key, sep, value = chunk.partition("=")
            key = key.strip()
            if not sep or not key:
                raise GenerationError(f"Malformed generator parameter '{chunk}'")
            if key not in known:
                raise GenerationError(
                    f"Unknown generator parameter '{key}' (expected one of: {', '.join(sorted(known))})"
                )
            values[key] = value.strip()
        return cls(**values)

    @property
    def backend(self) -> ModuleType:
        try:
            return TARGETS[self.target]
        except KeyError:
            raise GenerationError(
                f"Unknown target '{self.target}' (expected one of: {', '.join(sorted(TARGETS))})"
            ) from None


def resolve_namespace(file: FileDescriptor, option_name: str, override: str | None = None) -> str:
    """Output namespace for ``file``.

    An explicit override wins, then the target's file option, then the
    schema package, then ``DEFAULT_NAMESPACE``.
    """
    if override:
        return override
    return file.options.get(option_name) or file.package or DEFAULT_NAMESPACE


def artifact_path(namespace: str, type_name: str, extension: str) -> str:
    """Slash-separated output path for one generated type."""
    return "/".join([*namespace.split("."), f"{type_name}{extension}"])


class TypeIndex:
    """Maps fully qualified message names to where their code is generated.

    Only top-level messages are indexed since nested ones are never
    generated.
    """

    def __init__(self) -> None:
        self._types: dict[str, TypeRef] = {}

    def __contains__(self, proto_name: str) -> bool:
        return proto_name in self._types

    def __len__(self) -> int:
        return len(self._types)

    def add_file(self, file: FileDescriptor, namespace: str) -> None:
        prefix = f".{file.package}" if file.package else ""
        for message in file.message_types:
            proto_name = f"{prefix}.{message.name}"
            self._types[proto_name] = TypeRef(proto_name, namespace, message.name)

    def resolver(self, namespace: str) -> TypeResolver:
        """Resolver for fields of messages generated into ``namespace``."""

        def resolve(type_name: str) -> TypeRef:
            qualified = type_name if type_name.startswith(".") else f".{type_name}"
            ref = self._types.get(qualified)
            if ref is None:
                name = type_name.rsplit(".", 1)[-1]
                _LOG.warning(
                    "Message type %s is not generated by this request; assuming %s.%s",
                    type_name,
                    namespace,
                    name,
                )
                ref = TypeRef(qualified, namespace, name)
            return ref

        return resolve


def render_message(
    plan: MessagePlan, backend: ModuleType, *, source: str = "", runtime_import: str = ""
) -> list[GeneratedArtifact]:
    """Render the record and builder artifacts for one message, in that order."""
    record = backend.render_record(plan, source=source, runtime_import=runtime_import)
    builder = backend.render_builder(plan, source=source, runtime_import=runtime_import)
    return [
        GeneratedArtifact(artifact_path(plan.namespace, plan.name, backend.EXTENSION), record),
        GeneratedArtifact(
            artifact_path(plan.namespace, plan.builder_name, backend.EXTENSION), builder
        ),
    ]


def _generate_message(
    message: MessageDescriptor,
    namespace: str,
    resolve: TypeResolver,
    backend: ModuleType,
    source: str,
    runtime_import: str,
) -> list[GeneratedArtifact]:
    try:
        plan = plan_message(message, namespace, resolve)
    except GenerationError as e:
        raise type(e)(f"{source}: message {message.name}: {e}") from e
    return render_message(plan, backend, source=source, runtime_import=runtime_import)


def generate(
    request: GenerationRequest, options: GeneratorOptions | None = None
) -> list[GeneratedArtifact]:
    """Generate every artifact for ``request``.

    When ``options`` is omitted they are parsed from ``request.parameter``.
    Nothing is returned unless every message generates successfully.
    """
    if options is None:
        options = GeneratorOptions.from_parameter(request.parameter)
    backend = options.backend

    requested = set(request.files_to_generate)
    known = {file.name for file in request.files}
    missing = [name for name in request.files_to_generate if name not in known]
    if missing:
        raise GenerationError(f"Requested files missing from request: {', '.join(missing)}")

    namespaces = {
        file.name: resolve_namespace(
            file,
            backend.NAMESPACE_OPTION,
            options.namespace if file.name in requested else None,
        )
        for file in request.files
    }

    index = TypeIndex()
    for file in request.files:
        index.add_file(file, namespaces[file.name])
    _LOG.debug("Indexed %d message types from %d files", len(index), len(request.files))

    artifacts: list[GeneratedArtifact] = []
    for file in request.files:
        if file.name not in requested:
            continue
        namespace = namespaces[file.name]
        _LOG.info(
            "Generating %d messages from %s into %s (%s)",
            len(file.message_types),
            file.name,
            namespace,
            options.target,
        )
        resolve = index.resolver(namespace)
        for message in file.message_types:
            artifacts.extend(
                _generate_message(
                    message, namespace, resolve, backend, file.name, options.runtime_import
                )
            )

    return artifacts
