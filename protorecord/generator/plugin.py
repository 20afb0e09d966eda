"""protoc plugin entry point (``protoc-gen-record``).

Reads a CodeGeneratorRequest from stdin and writes a CodeGeneratorResponse
to stdout. Parameters are passed as ``--record_opt=key=value,...``; see
``GeneratorOptions`` for the accepted keys.
"""

import logging
import sys

from google.protobuf.compiler import plugin_pb2

from .descriptors import request_from_proto
from .driver import generate
from .fields import GenerationError

_LOG = logging.getLogger(__name__)


def process_request(request: plugin_pb2.CodeGeneratorRequest) -> plugin_pb2.CodeGeneratorResponse:
    """Generate code for ``request``.

    Generation failures are reported through ``response.error`` so protoc
    shows them; no files are returned in that case.
    """
    response = plugin_pb2.CodeGeneratorResponse()

    # Declare that this plugin supports optional fields in proto3.
    response.supported_features |= response.FEATURE_PROTO3_OPTIONAL

    try:
        artifacts = generate(request_from_proto(request))
    except GenerationError as e:
        _LOG.error("%s", e)
        response.error = str(e)
        return response

    for artifact in artifacts:
        output_file = response.file.add()
        output_file.name = artifact.name
        output_file.content = artifact.content
    return response


def main() -> int:
    """Protobuf compiler plugin entrypoint."""
    # stdout carries the response, so diagnostics go to stderr
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.WARNING,
        format="protoc-gen-record: %(levelname)s: %(message)s",
    )

    data = sys.stdin.buffer.read()
    request = plugin_pb2.CodeGeneratorRequest.FromString(data)
    response = process_request(request)
    sys.stdout.buffer.write(response.SerializeToString())
    return 0


if __name__ == "__main__":
    sys.exit(main())
