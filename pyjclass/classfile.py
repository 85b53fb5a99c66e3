"""
Top-level class file decoding.

Sections are decoded strictly in buffer order, each starting where the
previous one ended. The constant pool is complete before anything that
resolves names through it.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .attributes import (
    Attribute,
    AttributeRegistry,
    InnerClassesAttribute,
    SignatureAttribute,
    SourceFileAttribute,
    decode_attributes,
    find_attribute,
)
from .constant_pool import ConstantPool, decode_constant_pool
from .context import DecodeOptions, make_context
from .diagnostics import Diagnostic
from .errors import TrailingBytes
from .header import (
    AccessFlags,
    ClassVersion,
    decode_access_flags,
    decode_class_index,
    decode_interfaces,
    decode_magic,
    decode_version,
)
from .instructions import InstructionRegistry
from .members import Member, decode_member_table
from .nodes import Node
from .reader import ByteReader
from .stackmap import FrameRegistry

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Section(Node):
    """Byte span of one top-level section."""
    name: str
    start: int
    size: int

    @property
    def end(self) -> int:
        return self.start + self.size


@dataclass(frozen=True)
class ClassFile(Node):
    """Decoded class file. Cross references are constant pool indices."""
    magic: int
    version: ClassVersion
    constant_pool: ConstantPool
    access_flags: AccessFlags
    this_class: int
    super_class: int
    interfaces: tuple[int, ...]
    fields: tuple[Member, ...]
    methods: tuple[Member, ...]
    attributes: tuple[Attribute, ...]
    sections: tuple[Section, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def name(self) -> str:
        return self.constant_pool.class_name(self.this_class)

    @property
    def super_name(self) -> Optional[str]:
        """None only for java/lang/Object (super_class 0)."""
        return self.constant_pool.optional_class_name(self.super_class)

    @property
    def interface_names(self) -> tuple[str, ...]:
        return tuple(self.constant_pool.class_name(i) for i in self.interfaces)

    @property
    def source_file(self) -> Optional[str]:
        sf = find_attribute(self.attributes, SourceFileAttribute)
        return self.constant_pool.utf8(sf.sourcefile_index) if sf else None

    @property
    def signature(self) -> Optional[str]:
        sig = find_attribute(self.attributes, SignatureAttribute)
        return self.constant_pool.utf8(sig.signature_index) if sig else None

    @property
    def inner_classes(self) -> Optional[InnerClassesAttribute]:
        return find_attribute(self.attributes, InnerClassesAttribute)

    @property
    def size(self) -> int:
        return sum(section.size for section in self.sections)

    def find_method(self, name: str, descriptor: Optional[str] = None) -> Optional[Member]:
        for method in self.methods:
            if method.name(self.constant_pool) != name:
                continue
            if descriptor is None or method.descriptor(self.constant_pool) == descriptor:
                return method
        return None

    def find_field(self, name: str) -> Optional[Member]:
        for fld in self.fields:
            if fld.name(self.constant_pool) == name:
                return fld
        return None


def decode_class_file(data: bytes,
                      options: Optional[DecodeOptions] = None,
                      attributes: Optional[AttributeRegistry] = None,
                      instructions: Optional[InstructionRegistry] = None,
                      frames: Optional[FrameRegistry] = None) -> ClassFile:
    """Decode a complete class file buffer.

    Raises a ClassFormatError subclass on any fatal problem; soft problems
    end up in ``ClassFile.diagnostics``.
    """
    options = options or DecodeOptions()
    reader = ByteReader(data)
    sections = []
    offset = 0

    def section(name: str, size: int):
        nonlocal offset
        sections.append(Section(name, offset, size))
        offset += size

    magic, size = decode_magic(reader, offset)
    section("magic", size)

    version, size = decode_version(reader, offset)
    section("version", size)

    pool, size = decode_constant_pool(reader, offset)
    section("constant_pool", size)

    ctx = make_context(reader, pool, options, attributes, instructions, frames)

    access_flags, size = decode_access_flags(reader, offset)
    section("access_flags", size)

    this_class, size = decode_class_index(reader, offset)
    section("this_class", size)

    super_class, size = decode_class_index(reader, offset)
    section("super_class", size)

    interfaces, size = decode_interfaces(reader, offset)
    section("interfaces", size)

    fields, size = decode_member_table(ctx, offset, "fields")
    section("fields", size)

    methods, size = decode_member_table(ctx, offset, "methods")
    section("methods", size)

    class_attributes, size = decode_attributes(ctx, offset)
    section("attributes", size)

    if offset != len(reader):
        if not options.allow_trailing_bytes:
            raise TrailingBytes(offset, len(reader) - offset)
        section("trailing", len(reader) - offset)

    log.debug("Decoded class file of %d bytes with %d diagnostic(s)",
              len(reader), len(ctx.diagnostics))

    return ClassFile(
        magic=magic,
        version=version,
        constant_pool=pool,
        access_flags=access_flags,
        this_class=this_class,
        super_class=super_class,
        interfaces=interfaces,
        fields=fields,
        methods=methods,
        attributes=class_attributes,
        sections=tuple(sections),
        diagnostics=tuple(ctx.diagnostics),
    )


def read_class_file(path, options: Optional[DecodeOptions] = None) -> ClassFile:
    """Read a single class file."""
    data = Path(path).read_bytes()
    return decode_class_file(data, options)
