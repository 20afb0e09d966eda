"""Base type shared by generated records."""

from typing import Self

from .wire import DecodeError, EncodeError, InputStream, OutputStream, SerializationError

__all__ = ["DecodeError", "EncodeError", "Message", "SerializationError"]


class Message:
    """Base class for generated record types.

    Subclasses are frozen dataclasses whose codec is generated alongside
    them. Only ``parse_from`` and ``to_bytes`` are implemented here; the
    rest is overridden by the generated code.

    Example:
        @dataclass(frozen=True)
        class Ack(Message):
            code: int = 0

            def write_to(self, output: OutputStream) -> None:
                if self.code != 0:
                    output.write_uint32(1, self.code)
    """

    @classmethod
    def parse_from(cls, data: bytes | bytearray | memoryview) -> Self:
        """Decode a record from its complete wire encoding."""
        return cls.read_from(InputStream(data))

    @classmethod
    def read_from(cls, input: InputStream) -> Self:
        """Decode a record, consuming ``input`` until it is exhausted."""
        raise NotImplementedError("read_from() must be implemented by generated code")

    def write_to(self, output: OutputStream) -> None:
        """Write every non-default field to ``output``."""
        raise NotImplementedError("write_to() must be implemented by generated code")

    def serialized_size(self) -> int:
        """Return the exact number of bytes ``to_bytes`` produces."""
        raise NotImplementedError("serialized_size() must be implemented by generated code")

    def to_bytes(self) -> bytes:
        """Encode this record."""
        output = OutputStream()
        self.write_to(output)
        return output.to_bytes()
