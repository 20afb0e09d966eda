"""Tests for CLI interface."""

import json
import os

from click.testing import CliRunner

from protorecord.generator.cli import cli

FILE_DIR = os.path.dirname(os.path.realpath(__file__))
PERSON = os.path.join(FILE_DIR, "protos", "person.proto")
ORDER = os.path.join(FILE_DIR, "protos", "order.proto")


def describe_gen_command():
    def generates_python_code(expect, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["gen", "-l", "python", "-i", PERSON, "-o", str(tmp_path)])
        expect(result.exit_code) == 0

        record = (tmp_path / "example" / "Person.py").read_text()
        expect("class Person(_Message):" in record) == True
        expect("from protorecord_runtime import wire as _wire" in record) == True
        expect((tmp_path / "example" / "PersonBuilder.py").exists()) == True

    def generates_java_code(expect, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["gen", "-l", "java", "-i", PERSON, "-o", str(tmp_path)])
        expect(result.exit_code) == 0

        record = (tmp_path / "com" / "example" / "Person.java").read_text()
        expect("public value class Person {" in record) == True
        builder = (tmp_path / "com" / "example" / "PersonBuilder.java").read_text()
        expect("public PersonBuilder addCity(String value) {" in builder) == True

    def uses_runtime_import_flag(expect, tmp_path):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["gen", "-i", PERSON, "-o", str(tmp_path), "--runtime-import", "--namespace", "app.people"]
        )
        expect(result.exit_code) == 0
        record = (tmp_path / "app" / "people" / "Person.py").read_text()
        expect("from protorecord.proto import wire as _wire" in record) == True

    def generates_only_requested_files(expect, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["gen", "-i", ORDER, "-o", str(tmp_path)])
        expect(result.exit_code) == 0
        expect(sorted(p.name for p in (tmp_path / "shop").iterdir())) == [
            "Order.py",
            "OrderBuilder.py",
        ]
        expect((tmp_path / "common").exists()) == False

    def accepts_json_descriptors(expect, tmp_path):
        descriptor = tmp_path / "ping.json"
        descriptor.write_text(
            json.dumps(
                {
                    "name": "ping.proto",
                    "package": "net",
                    "message_types": [
                        {"name": "Ping", "fields": [{"name": "id", "number": 1, "type": "uint32"}]}
                    ],
                }
            )
        )
        runner = CliRunner()
        result = runner.invoke(cli, ["gen", "-i", str(descriptor), "-o", str(tmp_path / "out")])
        expect(result.exit_code) == 0
        record = (tmp_path / "out" / "net" / "Ping.py").read_text()
        expect("id: int = 0" in record) == True

    def fails_with_unknown_language(expect):
        runner = CliRunner()
        result = runner.invoke(cli, ["gen", "-l", "unknown", "-i", PERSON, "-o", "/tmp/out"])
        expect(result.exit_code) == 1
        expect("Unknown language" in result.output) == True

    def fails_on_invalid_schema(expect, tmp_path):
        schema = tmp_path / "bad.proto"
        schema.write_text('syntax = "proto3"; message A { int32 a = 1; int32 b = 1; }')
        runner = CliRunner()
        result = runner.invoke(cli, ["gen", "-i", str(schema), "-o", str(tmp_path)])
        expect(result.exit_code) == 1
        expect(list(tmp_path.iterdir())) == [schema]


def describe_runtime_command():
    def writes_python_runtime(expect, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["runtime", "-o", str(tmp_path)])
        expect(result.exit_code) == 0
        runtime_dir = tmp_path / "protorecord_runtime"
        expect(sorted(p.name for p in runtime_dir.iterdir())) == [
            "__init__.py",
            "serialization.py",
            "wire.py",
        ]

    def uses_custom_name(expect, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["runtime", "-o", str(tmp_path), "--name", "rt"])
        expect(result.exit_code) == 0
        expect((tmp_path / "rt" / "wire.py").exists()) == True


def describe_info_command():
    def outputs_json(expect):
        runner = CliRunner()
        result = runner.invoke(cli, ["info", "-i", PERSON, "--json"])
        expect(result.exit_code) == 0
        data = json.loads(result.output)
        fields = data["messages"]["example.Person"]["fields"]
        expect(fields[0]) == {
            "name": "name",
            "number": 1,
            "type": "string",
            "label": "",
            "tag": 10,
            "wire_type": "length_delimited",
            "default": "empty_string",
        }
        expect(fields[2]["label"]) == "repeated"
        expect(fields[2]["default"]) == "empty_sequence"

    def outputs_table(expect):
        runner = CliRunner()
        result = runner.invoke(cli, ["info", "-i", PERSON])
        expect(result.exit_code) == 0
        expect("Person" in result.output) == True
        expect("length_delimited" in result.output) == True
