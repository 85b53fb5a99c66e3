"""Tests for StackMapTable frame decoding."""

import struct

import pytest

from classbuilder import PoolBuilder, attribute
from pyjclass.constant_pool import decode_constant_pool
from pyjclass.context import DecodeOptions, make_context
from pyjclass.attributes import decode_attribute
from pyjclass.diagnostics import DiagnosticKind
from pyjclass.reader import ByteReader
from pyjclass.stackmap import (
    FrameRegistry,
    StackMapFrame,
    StackMapTableAttribute,
    VerificationTag,
    VerificationType,
)


def decode_table(frame_bytes: bytes, count: int, **kwargs):
    cp = PoolBuilder()
    attr = attribute(cp, "StackMapTable", struct.pack(">H", count) + frame_bytes)
    reader = ByteReader(cp.to_bytes() + attr)
    pool, offset = decode_constant_pool(reader, 0)
    ctx = make_context(reader, pool, **kwargs)
    decoded, span = decode_attribute(ctx, offset)
    assert span == len(attr)
    return ctx, decoded.info


class TestFrames:
    def test_all_frame_kinds(self):
        frames = b"".join([
            bytes([5]),  # same
            bytes([64 + 3, VerificationTag.INTEGER]),  # same_locals_1_stack_item
            struct.pack(">BHB", 247, 300, VerificationTag.NULL),
            struct.pack(">BH", 249, 4),  # chop 2
            struct.pack(">BH", 251, 1000),
            struct.pack(">BHBBH", 253, 2, VerificationTag.LONG, VerificationTag.OBJECT, 9),
            struct.pack(">BHH", 255, 7, 1) + bytes([VerificationTag.UNINITIALIZED_THIS])
            + struct.pack(">HBH", 1, VerificationTag.UNINITIALIZED, 12),
        ])
        ctx, table = decode_table(frames, 7)
        assert isinstance(table, StackMapTableAttribute)
        assert table.stopped_at is None
        assert table.remainder == b""
        assert ctx.diagnostics == []
        assert table.frames == (
            StackMapFrame(5, "same", 5),
            StackMapFrame(67, "same_locals_1_stack_item", 3,
                          stack=(VerificationType(VerificationTag.INTEGER),)),
            StackMapFrame(247, "same_locals_1_stack_item_extended", 300,
                          stack=(VerificationType(VerificationTag.NULL),)),
            StackMapFrame(249, "chop", 4, chopped=2),
            StackMapFrame(251, "same_frame_extended", 1000),
            StackMapFrame(253, "append", 2, locals=(
                VerificationType(VerificationTag.LONG),
                VerificationType(VerificationTag.OBJECT, 9),
            )),
            StackMapFrame(255, "full_frame", 7,
                          locals=(VerificationType(VerificationTag.UNINITIALIZED_THIS),),
                          stack=(VerificationType(VerificationTag.UNINITIALIZED, 12),)),
        )

    def test_verification_type_str(self):
        assert str(VerificationType(VerificationTag.OBJECT, 4)) == "object(4)"
        assert str(VerificationType(VerificationTag.TOP)) == "top"


class TestStops:
    def test_reserved_frame_type(self):
        frames = bytes([1]) + bytes([200, 0xAA, 0xBB])
        ctx, table = decode_table(frames, 2)
        assert table.frames == (StackMapFrame(1, "same", 1),)
        assert table.stopped_at.frame_type == 200
        assert table.remainder == bytes([200, 0xAA, 0xBB])
        (diagnostic,) = ctx.diagnostics
        assert diagnostic.kind is DiagnosticKind.UNSUPPORTED_FRAME
        assert diagnostic.offset == table.stopped_at.offset

    def test_unknown_verification_tag(self):
        frames = bytes([64, 9])
        ctx, table = decode_table(frames, 1)
        assert table.frames == ()
        assert "verification type tag 9" in table.stopped_at.reason
        assert table.remainder == frames

    def test_custom_frame_decoder(self):
        registry = FrameRegistry.standard()
        registry.register(200, lambda frame_type, cur: StackMapFrame(frame_type, "custom", cur.u1()))
        _, table = decode_table(bytes([200, 3]), 1, frames=registry)
        assert table.frames == (StackMapFrame(200, "custom", 3),)
        assert table.stopped_at is None

    def test_decoding_disabled(self):
        frames = bytes([5, 6])
        _, table = decode_table(frames, 2, options=DecodeOptions(decode_stack_maps=False))
        assert table.frames == ()
        assert table.number_of_entries == 2
        assert table.remainder == frames


class TestRegistry:
    @pytest.mark.parametrize("frame_type", [0, 63, 64, 127, 247, 248, 250, 251, 252, 254, 255])
    def test_standard_ranges(self, frame_type):
        assert frame_type in FrameRegistry.standard()

    @pytest.mark.parametrize("frame_type", [128, 200, 246])
    def test_reserved_types(self, frame_type):
        assert frame_type not in FrameRegistry.standard()
