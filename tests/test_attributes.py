"""Tests for attribute dispatch and the standard attribute decoders."""

import struct

import pytest

from classbuilder import PoolBuilder, attribute, attribute_list, line_number_table, u2_attribute
from pyjclass.attributes import (
    Annotation,
    AttributeRegistry,
    DeprecatedAttribute,
    ElementValue,
    ExceptionsAttribute,
    InnerClass,
    InnerClassesAttribute,
    LineNumber,
    LineNumberTableAttribute,
    LocalVariable,
    LocalVariableTableAttribute,
    LocalVariableType,
    LocalVariableTypeTableAttribute,
    OpaqueAttribute,
    RuntimeAnnotationsAttribute,
    SignatureAttribute,
    SourceFileAttribute,
    SyntheticAttribute,
    decode_attribute,
    decode_attributes,
    find_attribute,
)
from pyjclass.constant_pool import decode_constant_pool
from pyjclass.context import make_context, standard_attributes
from pyjclass.diagnostics import DiagnosticKind
from pyjclass.errors import (
    AttributeLengthMismatch,
    InvalidConstantIndex,
    MalformedAttribute,
    NonUtf8AttributeName,
)
from pyjclass.reader import ByteReader


def decode_one(cp: PoolBuilder, attr: bytes, attributes=None):
    """Decode ``attr`` placed right after the pool; returns (ctx, attribute, span, offset)."""
    pool_bytes = cp.to_bytes()
    reader = ByteReader(pool_bytes + attr)
    pool, offset = decode_constant_pool(reader, 0)
    ctx = make_context(reader, pool, attributes=attributes)
    decoded, span = decode_attribute(ctx, offset)
    return ctx, decoded, span, offset


@pytest.fixture
def cp():
    return PoolBuilder()


class TestDispatch:
    def test_source_file(self, cp):
        attr = attribute(cp, "SourceFile", b"\x00\x07")
        ctx, decoded, span, _ = decode_one(cp, attr)
        assert decoded.info == SourceFileAttribute(7)
        assert decoded.length == 2
        assert span == 8
        assert decoded.size == span
        assert decoded.name(ctx.pool) == "SourceFile"
        assert ctx.diagnostics == []

    def test_length_mismatch(self, cp):
        attr = attribute(cp, "SourceFile", b"\x00\x07", length=3) + b"\x00"
        with pytest.raises(AttributeLengthMismatch) as exc:
            decode_one(cp, attr)
        assert exc.value.declared == 3
        assert exc.value.consumed == 2
        assert exc.value.name == "SourceFile"

    def test_unknown_name_is_opaque(self, cp):
        attr = attribute(cp, "com.example.Custom", b"\x01\x02\x03")
        ctx, decoded, span, offset = decode_one(cp, attr)
        assert decoded.is_opaque
        assert decoded.info == OpaqueAttribute(b"\x01\x02\x03")
        assert span == 9
        assert len(ctx.diagnostics) == 1
        diagnostic = ctx.diagnostics[0]
        assert diagnostic.kind is DiagnosticKind.OPAQUE_ATTRIBUTE
        assert diagnostic.offset == offset
        assert "com.example.Custom" in diagnostic.message

    def test_non_utf8_name(self, cp):
        class_idx = cp.add_class("Foo")
        attr = struct.pack(">HI", class_idx, 0)
        with pytest.raises(NonUtf8AttributeName) as exc:
            decode_one(cp, attr)
        assert exc.value.index == class_idx
        assert exc.value.found == "Class"

    def test_name_index_out_of_range(self, cp):
        cp.add_utf8("x")
        with pytest.raises(InvalidConstantIndex):
            decode_one(cp, struct.pack(">HI", 40, 0))

    def test_attribute_list(self, cp):
        attrs = attribute_list([
            u2_attribute(cp, "SourceFile", 1),
            attribute(cp, "Deprecated", b""),
        ])
        reader = ByteReader(cp.to_bytes() + attrs)
        pool, offset = decode_constant_pool(reader, 0)
        decoded, span = decode_attributes(make_context(reader, pool), offset)
        assert span == len(attrs)
        assert [type(a.info) for a in decoded] == [SourceFileAttribute, DeprecatedAttribute]
        assert find_attribute(decoded, DeprecatedAttribute) == DeprecatedAttribute()
        assert find_attribute(decoded, SignatureAttribute) is None


class TestStandardAttributes:
    def test_exceptions(self, cp):
        payload = struct.pack(">HHH", 2, 5, 6)
        _, decoded, _, _ = decode_one(cp, attribute(cp, "Exceptions", payload))
        assert decoded.info == ExceptionsAttribute((5, 6))

    def test_line_number_table(self, cp):
        attr = line_number_table(cp, [(0, 10), (4, 11), (9, 13)])
        _, decoded, _, _ = decode_one(cp, attr)
        table = decoded.info
        assert table.line_number_table[1] == LineNumber(4, 11)
        assert table.line_for(0) == 10
        assert table.line_for(6) == 11
        assert table.line_for(100) == 13

    def test_line_for_uncovered_pc(self):
        table = LineNumberTableAttribute((LineNumber(4, 7),))
        assert table.line_for(2) is None

    def test_local_variable_table(self, cp):
        payload = struct.pack(">H", 1) + struct.pack(">HHHHH", 0, 5, 3, 4, 0)
        _, decoded, _, _ = decode_one(cp, attribute(cp, "LocalVariableTable", payload))
        assert decoded.info == LocalVariableTableAttribute((LocalVariable(0, 5, 3, 4, 0),))

    def test_local_variable_type_table(self, cp):
        payload = struct.pack(">H", 1) + struct.pack(">HHHHH", 0, 5, 3, 4, 1)
        _, decoded, span, _ = decode_one(cp, attribute(cp, "LocalVariableTypeTable", payload))
        assert decoded.info == LocalVariableTypeTableAttribute((LocalVariableType(0, 5, 3, 4, 1),))
        assert span == 6 + len(payload)

    def test_local_variable_type_table_length_is_checked(self, cp):
        payload = struct.pack(">H", 1) + struct.pack(">HHHHH", 0, 5, 3, 4, 1) + b"\x00\x00"
        with pytest.raises(AttributeLengthMismatch):
            decode_one(cp, attribute(cp, "LocalVariableTypeTable", payload))

    def test_inner_classes(self, cp):
        payload = struct.pack(">H", 1) + struct.pack(">HHHH", 2, 0, 0, 0x0008)
        _, decoded, _, _ = decode_one(cp, attribute(cp, "InnerClasses", payload))
        assert decoded.info == InnerClassesAttribute((InnerClass(2, 0, 0, 0x0008),))

    def test_signature(self, cp):
        _, decoded, _, _ = decode_one(cp, u2_attribute(cp, "Signature", 3))
        assert decoded.info == SignatureAttribute(3)

    def test_marker_attributes(self, cp):
        _, decoded, span, _ = decode_one(cp, attribute(cp, "Synthetic", b""))
        assert decoded.info == SyntheticAttribute()
        assert span == 6

    def test_marker_with_payload_is_rejected(self, cp):
        with pytest.raises(AttributeLengthMismatch):
            decode_one(cp, attribute(cp, "Deprecated", b"\x00"))


class TestAnnotations:
    def test_nested_element_values(self, cp):
        # @T(a = 1, b = {@U}, c = E.X)
        payload = (
            struct.pack(">H", 1)  # num_annotations
            + struct.pack(">HH", 10, 3)  # type_index, num_element_value_pairs
            + struct.pack(">HBH", 11, ord("I"), 12)
            + struct.pack(">HBH", 13, ord("["), 1) + struct.pack(">BHH", ord("@"), 14, 0)
            + struct.pack(">HBHH", 15, ord("e"), 16, 17)
        )
        _, decoded, _, _ = decode_one(cp, attribute(cp, "RuntimeVisibleAnnotations", payload))
        info = decoded.info
        assert isinstance(info, RuntimeAnnotationsAttribute)
        assert info.visible
        assert info.name == "RuntimeVisibleAnnotations"
        (annotation,) = info.annotations
        assert annotation.type_index == 10
        assert annotation.element_value_pairs == (
            (11, ElementValue("I", 12)),
            (13, ElementValue("[", (ElementValue("@", Annotation(14, ())),))),
            (15, ElementValue("e", (16, 17))),
        )

    def test_invisible(self, cp):
        payload = struct.pack(">HHH", 1, 4, 0)
        _, decoded, _, _ = decode_one(cp, attribute(cp, "RuntimeInvisibleAnnotations", payload))
        assert not decoded.info.visible
        assert decoded.info.name == "RuntimeInvisibleAnnotations"

    def test_unknown_element_tag(self, cp):
        payload = struct.pack(">HHHHB", 1, 4, 1, 5, ord("?"))
        with pytest.raises(MalformedAttribute):
            decode_one(cp, attribute(cp, "RuntimeVisibleAnnotations", payload))


class TestRegistry:
    def test_standard_names(self):
        registry = standard_attributes()
        for name in ("Code", "StackMapTable", "SourceFile", "ConstantValue", "Exceptions"):
            assert name in registry

    def test_custom_decoder(self, cp):
        registry = standard_attributes()

        @registry.register("Custom")
        def decode_custom(ctx, offset, length):
            return ctx.reader.slice(offset, length).decode("ascii"), length

        ctx, decoded, _, _ = decode_one(cp, attribute(cp, "Custom", b"abc"), attributes=registry)
        assert decoded.info == "abc"
        assert ctx.diagnostics == []

    def test_unregistered_standard_attribute_is_opaque(self, cp):
        registry = standard_attributes()
        registry.unregister("SourceFile")
        ctx, decoded, _, _ = decode_one(cp, u2_attribute(cp, "SourceFile", 7), attributes=registry)
        assert decoded.info == OpaqueAttribute(b"\x00\x07")
        assert ctx.diagnostics[0].kind is DiagnosticKind.OPAQUE_ATTRIBUTE

    def test_copy_is_independent(self):
        registry = AttributeRegistry({"A": lambda ctx, offset, length: (None, length)})
        copied = registry.copy()
        copied.unregister("A")
        assert "A" in registry
        assert "A" not in copied
        assert registry.names() == ["A"]

    def test_decoder_reading_too_much(self, cp):
        registry = AttributeRegistry()
        registry.register("Greedy", lambda ctx, offset, length: (None, length + 1))
        with pytest.raises(AttributeLengthMismatch):
            decode_one(cp, attribute(cp, "Greedy", b"\x00\x00"), attributes=registry)
