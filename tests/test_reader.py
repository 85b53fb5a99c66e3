"""Tests for the bounds-checked byte readers."""

import struct

import pytest

from pyjclass.errors import BufferUnderrun, ClassFormatError
from pyjclass.reader import ByteReader


@pytest.fixture
def reader():
    return ByteReader(bytes.fromhex("cafebabe0000003480ff"))


class TestByteReader:
    def test_unsigned_reads(self, reader):
        assert reader.read_u1(0) == 0xCA
        assert reader.read_u2(0) == 0xCAFE
        assert reader.read_u4(0) == 0xCAFEBABE
        assert reader.read_u2(6) == 52

    def test_signed_reads(self, reader):
        assert reader.read_i1(9) == -1
        assert reader.read_i2(8) == struct.unpack(">h", b"\x80\xff")[0]

    def test_eight_byte_reads(self):
        reader = ByteReader(struct.pack(">qd", -2, 1.5))
        assert reader.read_i8(0) == -2
        assert reader.read_u8(0) == 2 ** 64 - 2
        assert reader.read_f8(8) == 1.5

    def test_float(self):
        reader = ByteReader(struct.pack(">f", 0.25))
        assert reader.read_f4(0) == 0.25

    def test_reads_are_pure(self, reader):
        assert reader.read_u4(0) == reader.read_u4(0)
        assert reader.read_u2(4) == 0

    def test_underrun(self, reader):
        with pytest.raises(BufferUnderrun) as exc:
            reader.read_u4(8)
        assert exc.value.offset == 8
        assert exc.value.width == 4
        assert exc.value.size == 10

    def test_underrun_is_class_format_error(self, reader):
        with pytest.raises(ClassFormatError):
            reader.read_u2(9)

    def test_negative_offset(self, reader):
        with pytest.raises(BufferUnderrun):
            reader.read_u1(-1)

    def test_slice(self, reader):
        assert reader.slice(4, 4) == b"\x00\x00\x00\x34"
        assert reader.slice(10, 0) == b""
        with pytest.raises(BufferUnderrun):
            reader.slice(8, 3)


class TestCursor:
    def test_advances(self, reader):
        cur = reader.cursor()
        assert cur.u4() == 0xCAFEBABE
        assert cur.u2() == 0
        assert cur.u2() == 52
        assert cur.offset == 8
        assert cur.consumed_since(0) == 8

    def test_bytes_and_skip(self, reader):
        cur = reader.cursor(2)
        assert cur.bytes(2) == b"\xba\xbe"
        cur.skip(4)
        assert cur.offset == 8
        with pytest.raises(BufferUnderrun):
            cur.skip(3)

    def test_failed_read_does_not_advance(self, reader):
        cur = reader.cursor(9)
        with pytest.raises(BufferUnderrun):
            cur.u2()
        assert cur.offset == 9
