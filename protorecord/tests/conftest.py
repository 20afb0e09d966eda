"""Unit tests configuration file."""

import importlib
import sys
import uuid

import pytest

from protorecord.generator import GeneratorOptions, generate, load


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


@pytest.fixture
def gen_code(tmp_path, monkeypatch):
    """Generate Python code for a schema and import every generated class.

    Each call writes into a fresh namespace so that tests never share
    generated modules.
    """
    namespaces = []

    def _gen_code(text, name="test.proto"):
        namespace = f"pr_{uuid.uuid4().hex}"
        namespaces.append(namespace)

        schema = tmp_path / "schema" / name
        schema.parent.mkdir(parents=True, exist_ok=True)
        schema.write_text(text)

        options = GeneratorOptions(runtime_import="protorecord.proto", namespace=namespace)
        artifacts = generate(load([schema]), options)

        output_dir = tmp_path / "out"
        for artifact in artifacts:
            path = output_dir / artifact.name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(artifact.content)
        monkeypatch.syspath_prepend(str(output_dir))

        classes = {}
        for artifact in artifacts:
            module_name = artifact.name.removesuffix(".py").replace("/", ".")
            class_name = module_name.rsplit(".", 1)[-1]
            classes[class_name] = getattr(importlib.import_module(module_name), class_name)
        return classes

    yield _gen_code

    for module_name in list(sys.modules):
        if module_name.split(".", 1)[0] in namespaces:
            del sys.modules[module_name]
