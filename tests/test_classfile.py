"""Tests for whole class file decoding."""

import json
import struct

import pytest

from classbuilder import ClassBuilder, attribute, code_attribute, u2_attribute
from pyjclass import (
    AccessFlags,
    BufferUnderrun,
    ClassFormatError,
    ClassVersion,
    DecodeOptions,
    NotAClassFile,
    decode_class_file,
    read_class_file,
)
from pyjclass.errors import TrailingBytes, UnknownConstantTag

SECTION_NAMES = [
    "magic", "version", "constant_pool", "access_flags", "this_class",
    "super_class", "interfaces", "fields", "methods", "attributes",
]


@pytest.fixture
def sample():
    cb = ClassBuilder("com/example/Greeter", version=(52, 0))
    cb.add_interface("java/lang/Runnable")
    cb.add_interface("java/io/Serializable")
    greeting = cb.cp.add_string("hi")
    cb.add_field(0x001A, "GREETING", "Ljava/lang/String;", [u2_attribute(cb.cp, "ConstantValue", greeting)])
    cb.add_field(0x0002, "count", "I")
    init = cb.cp.add_methodref("java/lang/Object", "<init>", "()V")
    cb.add_method(0x0001, "<init>", "()V", [
        code_attribute(cb.cp, bytes([0x2A, 0xB7]) + struct.pack(">H", init) + bytes([0xB1])),
    ])
    ioe = cb.cp.add_class("java/io/IOException")
    exceptions = attribute(cb.cp, "Exceptions", struct.pack(">HH", 1, ioe))
    cb.add_method(0x0001, "run", "()V", [code_attribute(cb.cp, b"\xb1"), exceptions])
    cb.add_attribute(u2_attribute(cb.cp, "SourceFile", cb.cp.add_utf8("Greeter.java")))
    return cb.to_bytes()


class TestHeader:
    def test_minimal_class(self):
        data = bytes.fromhex("cafebabe 0000 0034 0001 0021 0000 0000 0000 0000 0000 0000")
        cf = decode_class_file(data)
        assert cf.magic == 0xCAFEBABE
        assert cf.version == ClassVersion(52, 0)
        assert len(cf.constant_pool) == 0
        assert cf.access_flags == AccessFlags.PUBLIC | AccessFlags.SUPER
        assert cf.interfaces == ()
        assert cf.fields == ()
        assert cf.methods == ()
        assert cf.attributes == ()
        assert cf.size == len(data)

    def test_bad_magic(self):
        with pytest.raises(NotAClassFile) as exc:
            decode_class_file(bytes.fromhex("cafed00d 0000 0034"))
        assert exc.value.magic == 0xCAFED00D
        assert exc.value.offset == 0

    def test_bad_magic_without_anything_else(self):
        with pytest.raises(NotAClassFile):
            decode_class_file(b"\x00\x00\x00\x00")

    def test_short_buffer(self):
        with pytest.raises(BufferUnderrun):
            decode_class_file(b"\xca\xfe")

    def test_truncated_after_magic(self):
        with pytest.raises(ClassFormatError):
            decode_class_file(bytes.fromhex("cafebabe 0000"))

    def test_version(self):
        version = ClassVersion(52, 0)
        assert str(version) == "52.0"
        assert version.java_release == "Java 8"
        assert ClassVersion(45, 3).java_release == "JDK 1.1"
        assert ClassVersion(50, 0) < ClassVersion(52, 0)

    def test_unknown_constant_tag_is_fatal(self):
        data = bytes.fromhex("cafebabe 0000 0034 0002 02")
        with pytest.raises(UnknownConstantTag):
            decode_class_file(data)


class TestSections:
    def test_sections_cover_buffer(self, sample):
        cf = decode_class_file(sample)
        assert [s.name for s in cf.sections] == SECTION_NAMES
        assert cf.sections[0].start == 0
        for prev, cur in zip(cf.sections, cf.sections[1:]):
            assert cur.start == prev.end
        assert cf.sections[-1].end == len(sample)
        assert sum(s.size for s in cf.sections) == len(sample)

    def test_member_sizes(self, sample):
        cf = decode_class_file(sample)
        sections = {s.name: s for s in cf.sections}
        assert sections["fields"].size == 2 + sum(f.size for f in cf.fields)
        assert sections["methods"].size == 2 + sum(m.size for m in cf.methods)
        assert sections["interfaces"].size == 2 + 2 * 2

    def test_trailing_bytes(self, sample):
        with pytest.raises(TrailingBytes) as exc:
            decode_class_file(sample + b"\x00\x00")
        assert exc.value.count == 2
        assert exc.value.offset == len(sample)

    def test_trailing_bytes_allowed(self, sample):
        cf = decode_class_file(sample + b"\x00", DecodeOptions(allow_trailing_bytes=True))
        assert cf.sections[-1].name == "trailing"
        assert cf.sections[-1].size == 1
        assert cf.size == len(sample) + 1

    def test_truncated_attributes(self, sample):
        with pytest.raises(BufferUnderrun):
            decode_class_file(sample[:-5])

    def test_decoding_is_deterministic(self, sample):
        assert decode_class_file(sample) == decode_class_file(sample)


class TestModel:
    def test_model_is_hashable(self, sample):
        first = decode_class_file(sample)
        second = decode_class_file(sample)
        assert first == second
        assert hash(first) == hash(second)
        assert len({first, second}) == 1

    def test_names(self, sample):
        cf = decode_class_file(sample)
        assert cf.name == "com/example/Greeter"
        assert cf.super_name == "java/lang/Object"
        assert cf.interface_names == ("java/lang/Runnable", "java/io/Serializable")
        assert cf.source_file == "Greeter.java"
        assert cf.signature is None
        assert cf.inner_classes is None

    def test_no_super_class(self):
        cb = ClassBuilder("java/lang/Object", super_class=None)
        cf = decode_class_file(cb.to_bytes())
        assert cf.super_class == 0
        assert cf.super_name is None

    def test_fields(self, sample):
        cf = decode_class_file(sample)
        pool = cf.constant_pool
        greeting = cf.find_field("GREETING")
        assert greeting.descriptor(pool) == "Ljava/lang/String;"
        assert AccessFlags.STATIC in greeting.access_flags
        assert pool.loadable_value(greeting.constant_value_index) == "hi"
        assert cf.find_field("count").constant_value_index is None
        assert cf.find_field("missing") is None

    def test_methods(self, sample):
        cf = decode_class_file(sample)
        pool = cf.constant_pool
        init = cf.find_method("<init>", "()V")
        assert [i.mnemonic for i in init.code.instructions] == ["aload_0", "invokespecial", "return"]
        owner, name, descriptor = pool.member_ref(init.code.instructions[1].operands[0])
        assert (owner, name, descriptor) == ("java/lang/Object", "<init>", "()V")
        run = cf.find_method("run")
        assert run.exceptions(pool) == ("java/io/IOException",)
        assert init.exceptions(pool) == ()
        assert run.signature(pool) is None
        assert cf.find_method("run", "(I)V") is None

    def test_to_json(self, sample):
        cf = decode_class_file(sample)
        data = json.loads(cf.to_json())
        assert data["_type"] == "ClassFile"
        assert data["version"] == {"_type": "ClassVersion", "major": 52, "minor": 0}
        assert data["access_flags"] == 0x0021
        assert len(data["methods"]) == 2
        code = data["methods"][0]["attributes"][0]["info"]
        assert code["_type"] == "CodeAttribute"
        assert code["code"] == "2ab7" + format(code["instructions"][1]["operands"][0], "04x") + "b1"

    def test_read_class_file(self, sample, tmp_path):
        path = tmp_path / "Greeter.class"
        path.write_bytes(sample)
        assert read_class_file(path).name == "com/example/Greeter"
