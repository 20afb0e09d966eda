"""Protocol buffers wire format primitives used by generated records.

Tags, varints, zig-zag encoding and fixed-width little-endian values. The
reader and writer mirror each other method for method so that generated
``read_from``/``write_to``/``serialized_size`` stay consistent.
"""

import struct
from collections.abc import Callable
from enum import IntEnum
from typing import TypeVar


class SerializationError(RuntimeError):
    """Raised when serialization or deserialization fails."""


class DecodeError(SerializationError):
    """Raised when a byte sequence is not a valid encoding."""


class EncodeError(SerializationError):
    """Raised when a value cannot be represented on the wire."""


class WireType(IntEnum):
    """Framing of a single field occurrence."""

    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    START_GROUP = 3
    END_GROUP = 4
    FIXED32 = 5


TAG_TYPE_BITS = 3
TAG_TYPE_MASK = (1 << TAG_TYPE_BITS) - 1
MAX_FIELD_NUMBER = (1 << 29) - 1

_MASK32 = (1 << 32) - 1
_MASK64 = (1 << 64) - 1
_MAX_VARINT_BYTES = 10

_FIXED32 = struct.Struct("<I")
_SFIXED32 = struct.Struct("<i")
_FLOAT = struct.Struct("<f")
_FIXED64 = struct.Struct("<Q")
_SFIXED64 = struct.Struct("<q")
_DOUBLE = struct.Struct("<d")

T = TypeVar("T")


def make_tag(field_number: int, wire_type: int) -> int:
    """Combine a field number and wire type into a tag."""
    return (field_number << TAG_TYPE_BITS) | wire_type


def tag_field_number(tag: int) -> int:
    return tag >> TAG_TYPE_BITS


def tag_wire_type(tag: int) -> int:
    return tag & TAG_TYPE_MASK


def zigzag_encode32(value: int) -> int:
    return ((value << 1) ^ (value >> 31)) & _MASK32


def zigzag_encode64(value: int) -> int:
    return ((value << 1) ^ (value >> 63)) & _MASK64


def zigzag_decode(value: int) -> int:
    return (value >> 1) ^ -(value & 1)


def _signed32(value: int) -> int:
    value &= _MASK32
    return value - (1 << 32) if value & (1 << 31) else value


def _signed64(value: int) -> int:
    value &= _MASK64
    return value - (1 << 64) if value & (1 << 63) else value


def encode_varint(value: int) -> bytes:
    """Encode ``value`` as a varint; negative values use ten bytes."""
    value &= _MASK64
    out = bytearray()
    while value > 0x7F:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def varint_size(value: int) -> int:
    """Number of bytes ``encode_varint`` produces for ``value``."""
    value &= _MASK64
    size = 1
    while value > 0x7F:
        value >>= 7
        size += 1
    return size


def _check_range(value: int, low: int, high: int, kind: str) -> None:
    if not low <= value <= high:
        raise EncodeError(f"{value} is out of range for {kind}")


class InputStream:
    """Cursor over an encoded message."""

    __slots__ = ("_data", "_pos", "_limit")

    def __init__(self, data: bytes | bytearray | memoryview) -> None:
        self._data = data if isinstance(data, bytes) else bytes(data)
        self._pos = 0
        self._limit = len(self._data)

    def at_end(self) -> bool:
        return self._pos >= self._limit

    def _require(self, size: int) -> int:
        """Advance past ``size`` bytes and return their starting offset."""
        if size < 0 or size > self._limit - self._pos:
            raise DecodeError(
                f"truncated message: need {size} bytes at offset {self._pos}, "
                f"{self._limit - self._pos} available"
            )
        start = self._pos
        self._pos += size
        return start

    def read_raw_varint(self) -> int:
        result = 0
        shift = 0
        for _ in range(_MAX_VARINT_BYTES):
            if self._pos >= self._limit:
                raise DecodeError(f"truncated varint at offset {self._pos}")
            byte = self._data[self._pos]
            self._pos += 1
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result & _MASK64
            shift += 7
        raise DecodeError(f"malformed varint ending at offset {self._pos}")

    def read_tag(self) -> int:
        tag = self.read_raw_varint()
        if tag > _MASK32 or tag_field_number(tag) == 0:
            raise DecodeError(f"invalid tag {tag}")
        return tag

    def read_int32(self) -> int:
        return _signed32(self.read_raw_varint())

    def read_int64(self) -> int:
        return _signed64(self.read_raw_varint())

    def read_uint32(self) -> int:
        return self.read_raw_varint() & _MASK32

    def read_uint64(self) -> int:
        return self.read_raw_varint()

    def read_sint32(self) -> int:
        return zigzag_decode(self.read_raw_varint() & _MASK32)

    def read_sint64(self) -> int:
        return zigzag_decode(self.read_raw_varint())

    def read_bool(self) -> bool:
        return self.read_raw_varint() != 0

    def read_enum(self) -> int:
        return self.read_int32()

    def read_fixed32(self) -> int:
        return _FIXED32.unpack_from(self._data, self._require(4))[0]

    def read_sfixed32(self) -> int:
        return _SFIXED32.unpack_from(self._data, self._require(4))[0]

    def read_float(self) -> float:
        return _FLOAT.unpack_from(self._data, self._require(4))[0]

    def read_fixed64(self) -> int:
        return _FIXED64.unpack_from(self._data, self._require(8))[0]

    def read_sfixed64(self) -> int:
        return _SFIXED64.unpack_from(self._data, self._require(8))[0]

    def read_double(self) -> float:
        return _DOUBLE.unpack_from(self._data, self._require(8))[0]

    def read_bytes(self) -> bytes:
        size = self.read_raw_varint()
        start = self._require(size)
        return self._data[start : start + size]

    def read_string(self) -> str:
        raw = self.read_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"invalid UTF-8 in string field: {e}") from e

    def read_packed(self, read: Callable[[], T]) -> list[T]:
        """Read a length-delimited run of values using ``read`` for each one."""
        size = self.read_raw_varint()
        start = self._require(size)
        self._pos = start
        end = start + size
        saved_limit = self._limit
        self._limit = end
        values: list[T] = []
        try:
            while self._pos < end:
                values.append(read())
        finally:
            self._limit = saved_limit
        return values

    def skip_field(self, tag: int) -> None:
        """Skip the payload of a field occurrence according to its wire type."""
        wire_type = tag_wire_type(tag)
        if wire_type == WireType.VARINT:
            self.read_raw_varint()
        elif wire_type == WireType.FIXED64:
            self._require(8)
        elif wire_type == WireType.LENGTH_DELIMITED:
            self._require(self.read_raw_varint())
        elif wire_type == WireType.FIXED32:
            self._require(4)
        else:
            raise DecodeError(f"unsupported wire type {wire_type} in tag {tag}")


class OutputStream:
    """Growable buffer that encoded fields are appended to."""

    __slots__ = ("_buf",)

    def __init__(self) -> None:
        self._buf = bytearray()

    def __len__(self) -> int:
        return len(self._buf)

    def to_bytes(self) -> bytes:
        return bytes(self._buf)

    def write_tag(self, field_number: int, wire_type: int) -> None:
        self.write_raw_varint(make_tag(field_number, wire_type))

    def write_raw_varint(self, value: int) -> None:
        value &= _MASK64
        while value > 0x7F:
            self._buf.append((value & 0x7F) | 0x80)
            value >>= 7
        self._buf.append(value)

    def write_uint32_no_tag(self, value: int) -> None:
        _check_range(value, 0, _MASK32, "uint32")
        self.write_raw_varint(value)

    def write_raw_bytes(self, value: bytes | bytearray | memoryview) -> None:
        self._buf.extend(value)

    def _write_varint_field(self, field_number: int, value: int) -> None:
        self.write_tag(field_number, WireType.VARINT)
        self.write_raw_varint(value)

    def write_int32(self, field_number: int, value: int) -> None:
        _check_range(value, -(1 << 31), (1 << 31) - 1, "int32")
        self._write_varint_field(field_number, value)

    def write_int64(self, field_number: int, value: int) -> None:
        _check_range(value, -(1 << 63), (1 << 63) - 1, "int64")
        self._write_varint_field(field_number, value)

    def write_uint32(self, field_number: int, value: int) -> None:
        _check_range(value, 0, _MASK32, "uint32")
        self._write_varint_field(field_number, value)

    def write_uint64(self, field_number: int, value: int) -> None:
        _check_range(value, 0, _MASK64, "uint64")
        self._write_varint_field(field_number, value)

    def write_sint32(self, field_number: int, value: int) -> None:
        _check_range(value, -(1 << 31), (1 << 31) - 1, "sint32")
        self._write_varint_field(field_number, zigzag_encode32(value))

    def write_sint64(self, field_number: int, value: int) -> None:
        _check_range(value, -(1 << 63), (1 << 63) - 1, "sint64")
        self._write_varint_field(field_number, zigzag_encode64(value))

    def write_bool(self, field_number: int, value: bool) -> None:
        self._write_varint_field(field_number, 1 if value else 0)

    def write_enum(self, field_number: int, value: int) -> None:
        self.write_int32(field_number, value)

    def _write_fixed(self, field_number: int, wire_type: WireType, packer: struct.Struct, value: int | float) -> None:
        try:
            packed = packer.pack(value)
        except (struct.error, OverflowError) as e:
            raise EncodeError(f"{value!r} cannot be packed as {packer.format}: {e}") from e
        self.write_tag(field_number, wire_type)
        self._buf.extend(packed)

    def write_fixed32(self, field_number: int, value: int) -> None:
        self._write_fixed(field_number, WireType.FIXED32, _FIXED32, value)

    def write_sfixed32(self, field_number: int, value: int) -> None:
        self._write_fixed(field_number, WireType.FIXED32, _SFIXED32, value)

    def write_float(self, field_number: int, value: float) -> None:
        self._write_fixed(field_number, WireType.FIXED32, _FLOAT, value)

    def write_fixed64(self, field_number: int, value: int) -> None:
        self._write_fixed(field_number, WireType.FIXED64, _FIXED64, value)

    def write_sfixed64(self, field_number: int, value: int) -> None:
        self._write_fixed(field_number, WireType.FIXED64, _SFIXED64, value)

    def write_double(self, field_number: int, value: float) -> None:
        self._write_fixed(field_number, WireType.FIXED64, _DOUBLE, value)

    def write_bytes(self, field_number: int, value: bytes | bytearray | memoryview) -> None:
        self.write_tag(field_number, WireType.LENGTH_DELIMITED)
        self.write_raw_varint(len(value))
        self._buf.extend(value)

    def write_string(self, field_number: int, value: str) -> None:
        try:
            encoded = value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise EncodeError(f"string is not valid UTF-8: {e}") from e
        self.write_bytes(field_number, encoded)


# Size computation. Each function returns the bytes the matching
# OutputStream.write_* call appends, tag included.


def compute_tag_size(field_number: int) -> int:
    return varint_size(field_number << TAG_TYPE_BITS)


def compute_uint32_size_no_tag(value: int) -> int:
    return varint_size(value)


def compute_int32_size(field_number: int, value: int) -> int:
    return compute_tag_size(field_number) + varint_size(value)


def compute_int64_size(field_number: int, value: int) -> int:
    return compute_tag_size(field_number) + varint_size(value)


def compute_uint32_size(field_number: int, value: int) -> int:
    return compute_tag_size(field_number) + varint_size(value)


def compute_uint64_size(field_number: int, value: int) -> int:
    return compute_tag_size(field_number) + varint_size(value)


def compute_sint32_size(field_number: int, value: int) -> int:
    return compute_tag_size(field_number) + varint_size(zigzag_encode32(value))


def compute_sint64_size(field_number: int, value: int) -> int:
    return compute_tag_size(field_number) + varint_size(zigzag_encode64(value))


def compute_bool_size(field_number: int, value: bool) -> int:
    return compute_tag_size(field_number) + 1


def compute_enum_size(field_number: int, value: int) -> int:
    return compute_int32_size(field_number, value)


def compute_fixed32_size(field_number: int, value: int) -> int:
    return compute_tag_size(field_number) + 4


def compute_sfixed32_size(field_number: int, value: int) -> int:
    return compute_tag_size(field_number) + 4


def compute_float_size(field_number: int, value: float) -> int:
    return compute_tag_size(field_number) + 4


def compute_fixed64_size(field_number: int, value: int) -> int:
    return compute_tag_size(field_number) + 8


def compute_sfixed64_size(field_number: int, value: int) -> int:
    return compute_tag_size(field_number) + 8


def compute_double_size(field_number: int, value: float) -> int:
    return compute_tag_size(field_number) + 8


def compute_bytes_size(field_number: int, value: bytes | bytearray | memoryview) -> int:
    return compute_tag_size(field_number) + varint_size(len(value)) + len(value)


def compute_string_size(field_number: int, value: str) -> int:
    return compute_bytes_size(field_number, value.encode("utf-8"))
