"""protorecord - immutable record and builder generator for protobuf messages."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("protorecord")
except PackageNotFoundError:
    __version__ = "(local)"
