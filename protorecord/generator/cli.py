"""Command-line interface for protorecord code generation."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from protorecord.generator import python
from protorecord.generator.driver import DEFAULT_NAMESPACE, TARGETS, GeneratorOptions, generate
from protorecord.generator.fields import GenerationError, plan_message
from protorecord.generator.parser import load
from protorecord.generator.types import FileDescriptor, GenerationRequest

if TYPE_CHECKING:
    from protorecord.generator.fields import MessagePlan

_LOG = logging.getLogger(__name__)


def _load_request(inputs: tuple[str, ...], include_paths: tuple[str, ...]) -> GenerationRequest:
    """Read .proto inputs (with their imports) and JSON file descriptors."""
    proto_inputs = [p for p in inputs if not p.endswith(".json")]
    if proto_inputs:
        request = load(proto_inputs, include_paths)
    else:
        request = GenerationRequest(files_to_generate=[], files=[])

    for path in inputs:
        if path.endswith(".json"):
            descriptor = FileDescriptor.from_json(Path(path).read_text(encoding="utf-8"))
            request.files.append(descriptor)
            request.files_to_generate.append(descriptor.name)
    return request


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Show debug logging")
def cli(verbose: bool) -> None:
    """protorecord record and builder code generator."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@cli.command()
@click.option("--language", "-l", default="python", help="Target language (python, java)")
@click.option(
    "--input", "-i", "inputs", required=True, multiple=True, help="Input .proto or JSON file"
)
@click.option(
    "--include", "-I", "include_paths", multiple=True, help="Directory searched for imports"
)
@click.option("--output", "-o", "output_path", default=".", help="Output directory")
@click.option(
    "--runtime-import",
    "runtime_import",
    is_flag=False,
    flag_value="protorecord.proto",
    default=None,
    help="Import path for runtime. No value=protorecord.proto, omit=protorecord_runtime",
)
@click.option("--namespace", default=None, help="Override the output namespace of every input")
def gen(
    language: str,
    inputs: tuple[str, ...],
    include_paths: tuple[str, ...],
    output_path: str,
    runtime_import: str | None,
    namespace: str | None,
) -> None:
    """Generate records and builders from schema files."""
    if language not in TARGETS:
        print(f"Unknown language: {language}")
        sys.exit(1)

    # Default to "protorecord_runtime", as written by the runtime command
    import_path = runtime_import if runtime_import is not None else "protorecord_runtime"
    options = GeneratorOptions(target=language, runtime_import=import_path, namespace=namespace)

    try:
        request = _load_request(inputs, include_paths)
        artifacts = generate(request, options)
    except (GenerationError, OSError) as e:
        _fail(str(e))
        return

    output_dir = Path(output_path)
    for artifact in artifacts:
        path = output_dir / artifact.name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(artifact.content, encoding="utf-8")
        _LOG.debug("Wrote %s", path)
    print(f"Generated {len(artifacts)} files in {output_dir}")


@cli.command()
@click.option("--output", "-o", "output_path", default=".", help="Output directory")
@click.option("--name", default="protorecord_runtime", help="Runtime package name")
def runtime(output_path: str, name: str) -> None:
    """Write the Python wire runtime used by generated records."""
    runtime_dir = Path(output_path) / name
    runtime_dir.mkdir(parents=True, exist_ok=True)
    for filename, content in python.runtime().items():
        (runtime_dir / filename).write_text(content)
    print(f"Generated Python runtime in {runtime_dir}")


@cli.command()
@click.option("--input", "-i", "inputs", required=True, multiple=True, help="Input .proto or JSON file")
@click.option(
    "--include", "-I", "include_paths", multiple=True, help="Directory searched for imports"
)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def info(inputs: tuple[str, ...], include_paths: tuple[str, ...], output_json: bool) -> None:
    """Display each message's fields with their wire tags and defaults."""
    try:
        request = _load_request(inputs, include_paths)
        requested = set(request.files_to_generate)
        plans = [
            (file.name, plan_message(message, file.package or DEFAULT_NAMESPACE))
            for file in request.files
            if file.name in requested
            for message in file.message_types
        ]
    except (GenerationError, OSError) as e:
        _fail(str(e))
        return

    if output_json:
        _output_json(plans)
    else:
        _output_plain(plans)


def _field_rows(plan: MessagePlan) -> list[dict]:
    rows = []
    for f in plan.fields:
        rows.append(
            {
                "name": f.name,
                "number": f.number,
                "type": f.type_ref.name if f.type_ref else f.type.value,
                "label": "repeated" if f.repeated else "optional" if f.optional else "",
                "tag": f.tag,
                "wire_type": f.wire_type.name.lower(),
                "default": f.default_kind.value,
            }
        )
    return rows


def _output_json(plans: list[tuple[str, MessagePlan]]) -> None:
    """Output field info as JSON."""
    data: dict = {"messages": {}}
    for source, plan in plans:
        data["messages"][f"{plan.namespace}.{plan.name}"] = {
            "file": source,
            "fields": _field_rows(plan),
        }
    print(json.dumps(data, indent=2))


def _output_plain(plans: list[tuple[str, MessagePlan]]) -> None:
    """Output field info using rich text formatting."""
    console = Console()

    for source, plan in plans:
        console.print(f"[bold cyan]{plan.name}[/bold cyan] [dim]({source})[/dim]")

        table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
        table.add_column("Field", style="white")
        table.add_column("#", style="green", justify="right")
        table.add_column("Type", style="white")
        table.add_column("Label", style="dim")
        table.add_column("Tag", style="yellow", justify="right")
        table.add_column("Wire", style="dim")
        table.add_column("Default", style="dim")

        for row in _field_rows(plan):
            table.add_row(
                row["name"],
                str(row["number"]),
                row["type"],
                row["label"],
                f"{row['tag']} (0x{row['tag']:02x})",
                row["wire_type"],
                row["default"],
            )

        console.print(table)
        console.print()


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
