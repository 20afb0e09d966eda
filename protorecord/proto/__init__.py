"""Runtime support for records generated by protorecord."""

from .serialization import Message
from .wire import (
    DecodeError,
    EncodeError,
    InputStream,
    OutputStream,
    SerializationError,
    WireType,
    make_tag,
)

__all__ = [
    "DecodeError",
    "EncodeError",
    "InputStream",
    "Message",
    "OutputStream",
    "SerializationError",
    "WireType",
    "make_tag",
]
