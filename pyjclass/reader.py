"""
Bounds-checked big-endian readers over an in-memory class file buffer.
"""

import struct

from .errors import BufferUnderrun

_U1 = struct.Struct(">B")
_U2 = struct.Struct(">H")
_U4 = struct.Struct(">I")
_U8 = struct.Struct(">Q")
_I1 = struct.Struct(">b")
_I2 = struct.Struct(">h")
_I4 = struct.Struct(">i")
_I8 = struct.Struct(">q")
_F4 = struct.Struct(">f")
_F8 = struct.Struct(">d")


class ByteReader:
    """Reads fixed-width fields at absolute offsets.

    Every read is a pure function of the offset; the reader never moves.
    Widths are in bytes, so ``read_u8`` reads an eight byte value.
    """

    def __init__(self, data: bytes):
        self.data = bytes(data)

    def __len__(self) -> int:
        return len(self.data)

    def _check(self, offset: int, width: int):
        if offset < 0 or width < 0 or offset + width > len(self.data):
            raise BufferUnderrun(offset, width, len(self.data))

    def _unpack(self, fmt: struct.Struct, offset: int):
        self._check(offset, fmt.size)
        return fmt.unpack_from(self.data, offset)[0]

    def read_u1(self, offset: int) -> int:
        return self._unpack(_U1, offset)

    def read_u2(self, offset: int) -> int:
        return self._unpack(_U2, offset)

    def read_u4(self, offset: int) -> int:
        return self._unpack(_U4, offset)

    def read_u8(self, offset: int) -> int:
        return self._unpack(_U8, offset)

    def read_i1(self, offset: int) -> int:
        return self._unpack(_I1, offset)

    def read_i2(self, offset: int) -> int:
        return self._unpack(_I2, offset)

    def read_i4(self, offset: int) -> int:
        return self._unpack(_I4, offset)

    def read_i8(self, offset: int) -> int:
        return self._unpack(_I8, offset)

    def read_f4(self, offset: int) -> float:
        return self._unpack(_F4, offset)

    def read_f8(self, offset: int) -> float:
        return self._unpack(_F8, offset)

    def slice(self, offset: int, length: int) -> bytes:
        self._check(offset, length)
        return self.data[offset:offset + length]

    def cursor(self, offset: int = 0) -> "Cursor":
        return Cursor(self, offset)


class Cursor:
    """A read position over a ByteReader that advances past each field."""

    def __init__(self, reader: ByteReader, offset: int = 0):
        self.reader = reader
        self.offset = offset

    def _advance(self, value, width: int):
        self.offset += width
        return value

    def u1(self) -> int:
        return self._advance(self.reader.read_u1(self.offset), 1)

    def u2(self) -> int:
        return self._advance(self.reader.read_u2(self.offset), 2)

    def u4(self) -> int:
        return self._advance(self.reader.read_u4(self.offset), 4)

    def u8(self) -> int:
        return self._advance(self.reader.read_u8(self.offset), 8)

    def i1(self) -> int:
        return self._advance(self.reader.read_i1(self.offset), 1)

    def i2(self) -> int:
        return self._advance(self.reader.read_i2(self.offset), 2)

    def i4(self) -> int:
        return self._advance(self.reader.read_i4(self.offset), 4)

    def i8(self) -> int:
        return self._advance(self.reader.read_i8(self.offset), 8)

    def f4(self) -> float:
        return self._advance(self.reader.read_f4(self.offset), 4)

    def f8(self) -> float:
        return self._advance(self.reader.read_f8(self.offset), 8)

    def bytes(self, length: int) -> bytes:
        return self._advance(self.reader.slice(self.offset, length), length)

    def skip(self, length: int):
        self.reader._check(self.offset, length)
        self.offset += length

    def consumed_since(self, start: int) -> int:
        return self.offset - start
