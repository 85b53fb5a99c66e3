"""
Attribute decoding.

Every attribute_info is dispatched on its resolved name through an
AttributeRegistry. Names without a registered decoder are kept as opaque
payloads; their length field makes them safe to skip.
"""

import functools
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Iterable, Optional, TypeVar

from .constant_pool import Utf8Info, kind_name
from .diagnostics import DiagnosticKind
from .errors import AttributeLengthMismatch, MalformedAttribute, NonUtf8AttributeName
from .nodes import Node
from .reader import Cursor

if TYPE_CHECKING:
    from .constant_pool import ConstantPool
    from .context import DecodeContext

AttributeDecoder = Callable[["DecodeContext", int, int], tuple[Any, int]]

A = TypeVar("A")


@dataclass(frozen=True)
class Attribute(Node):
    """An attribute_info: name index, declared length and decoded payload."""
    name_index: int
    length: int
    info: Any

    @property
    def size(self) -> int:
        return 2 + 4 + self.length

    @property
    def is_opaque(self) -> bool:
        return isinstance(self.info, OpaqueAttribute)

    def name(self, pool: "ConstantPool") -> str:
        return pool.utf8(self.name_index)


@dataclass(frozen=True)
class OpaqueAttribute(Node):
    """Payload of an attribute nobody registered a decoder for."""
    raw: bytes


@dataclass(frozen=True)
class ConstantValueAttribute(Node):
    name: ClassVar[str] = "ConstantValue"
    constantvalue_index: int


@dataclass(frozen=True)
class ExceptionsAttribute(Node):
    name: ClassVar[str] = "Exceptions"
    exception_index_table: tuple[int, ...]


@dataclass(frozen=True)
class LineNumber(Node):
    start_pc: int
    line_number: int


@dataclass(frozen=True)
class LineNumberTableAttribute(Node):
    name: ClassVar[str] = "LineNumberTable"
    line_number_table: tuple[LineNumber, ...]

    def line_for(self, pc: int) -> Optional[int]:
        """Source line of the instruction at ``pc``, if the table covers it."""
        best = None
        for entry in self.line_number_table:
            if entry.start_pc <= pc and (best is None or entry.start_pc >= best.start_pc):
                best = entry
        return best.line_number if best else None


@dataclass(frozen=True)
class LocalVariable(Node):
    start_pc: int
    length: int
    name_index: int
    descriptor_index: int
    index: int


@dataclass(frozen=True)
class LocalVariableTableAttribute(Node):
    name: ClassVar[str] = "LocalVariableTable"
    local_variable_table: tuple[LocalVariable, ...]


@dataclass(frozen=True)
class LocalVariableType(Node):
    start_pc: int
    length: int
    name_index: int
    signature_index: int
    index: int


@dataclass(frozen=True)
class LocalVariableTypeTableAttribute(Node):
    name: ClassVar[str] = "LocalVariableTypeTable"
    local_variable_type_table: tuple[LocalVariableType, ...]


@dataclass(frozen=True)
class SourceFileAttribute(Node):
    name: ClassVar[str] = "SourceFile"
    sourcefile_index: int


@dataclass(frozen=True)
class InnerClass(Node):
    inner_class_info_index: int
    outer_class_info_index: int  # 0 for local and anonymous classes
    inner_name_index: int  # 0 for anonymous classes
    inner_class_access_flags: int


@dataclass(frozen=True)
class InnerClassesAttribute(Node):
    name: ClassVar[str] = "InnerClasses"
    classes: tuple[InnerClass, ...]


@dataclass(frozen=True)
class SignatureAttribute(Node):
    name: ClassVar[str] = "Signature"
    signature_index: int


@dataclass(frozen=True)
class SyntheticAttribute(Node):
    name: ClassVar[str] = "Synthetic"


@dataclass(frozen=True)
class DeprecatedAttribute(Node):
    name: ClassVar[str] = "Deprecated"


@dataclass(frozen=True)
class ElementValue(Node):
    """An annotation element value.

    ``value`` depends on ``tag``: a const pool index for BCDFIJSZs, a
    (type_name_index, const_name_index) pair for e, a class info index
    for c, an Annotation for @ and a tuple of ElementValue for [.
    """
    tag: str
    value: Any


@dataclass(frozen=True)
class Annotation(Node):
    type_index: int
    element_value_pairs: tuple[tuple[int, ElementValue], ...] = ()


@dataclass(frozen=True)
class RuntimeAnnotationsAttribute(Node):
    visible: bool
    annotations: tuple[Annotation, ...]

    @property
    def name(self) -> str:
        return "RuntimeVisibleAnnotations" if self.visible else "RuntimeInvisibleAnnotations"


def find_attribute(attributes: Iterable[Attribute], kind: type[A]) -> Optional[A]:
    """Payload of the first attribute decoded as ``kind``."""
    for attr in attributes:
        if isinstance(attr.info, kind):
            return attr.info
    return None


def _payload(fn):
    """Adapt a cursor-walking payload reader to the registry decoder signature."""
    @functools.wraps(fn)
    def decode(ctx: "DecodeContext", offset: int, length: int):
        cur = ctx.cursor(offset)
        info = fn(ctx, cur)
        return info, cur.consumed_since(offset)
    return decode


def _read_table(cur: Cursor, row: Callable[[Cursor], Any]) -> tuple:
    count = cur.u2()
    return tuple(row(cur) for _ in range(count))


@_payload
def decode_constant_value(ctx, cur: Cursor):
    return ConstantValueAttribute(cur.u2())


@_payload
def decode_exceptions(ctx, cur: Cursor):
    return ExceptionsAttribute(_read_table(cur, Cursor.u2))


@_payload
def decode_line_number_table(ctx, cur: Cursor):
    return LineNumberTableAttribute(
        _read_table(cur, lambda c: LineNumber(c.u2(), c.u2()))
    )


@_payload
def decode_local_variable_table(ctx, cur: Cursor):
    return LocalVariableTableAttribute(
        _read_table(cur, lambda c: LocalVariable(c.u2(), c.u2(), c.u2(), c.u2(), c.u2()))
    )


@_payload
def decode_local_variable_type_table(ctx, cur: Cursor):
    return LocalVariableTypeTableAttribute(
        _read_table(cur, lambda c: LocalVariableType(c.u2(), c.u2(), c.u2(), c.u2(), c.u2()))
    )


@_payload
def decode_source_file(ctx, cur: Cursor):
    return SourceFileAttribute(cur.u2())


@_payload
def decode_inner_classes(ctx, cur: Cursor):
    return InnerClassesAttribute(
        _read_table(cur, lambda c: InnerClass(c.u2(), c.u2(), c.u2(), c.u2()))
    )


@_payload
def decode_signature(ctx, cur: Cursor):
    return SignatureAttribute(cur.u2())


@_payload
def decode_synthetic(ctx, cur: Cursor):
    return SyntheticAttribute()


@_payload
def decode_deprecated(ctx, cur: Cursor):
    return DeprecatedAttribute()


def _read_annotation(cur: Cursor) -> Annotation:
    type_idx = cur.u2()
    pairs = _read_table(cur, lambda c: (c.u2(), _read_element_value(c)))
    return Annotation(type_idx, pairs)


def _read_element_value(cur: Cursor) -> ElementValue:
    start = cur.offset
    tag = chr(cur.u1())

    if tag in "BCDFIJSZs":
        return ElementValue(tag, cur.u2())

    elif tag == "e":
        type_idx = cur.u2()
        const_idx = cur.u2()
        return ElementValue(tag, (type_idx, const_idx))

    elif tag == "c":
        return ElementValue(tag, cur.u2())

    elif tag == "@":
        return ElementValue(tag, _read_annotation(cur))

    elif tag == "[":
        return ElementValue(tag, _read_table(cur, _read_element_value))

    raise MalformedAttribute(f"Unknown annotation element value tag: {tag!r}", start)


@_payload
def decode_visible_annotations(ctx, cur: Cursor):
    return RuntimeAnnotationsAttribute(True, _read_table(cur, _read_annotation))


@_payload
def decode_invisible_annotations(ctx, cur: Cursor):
    return RuntimeAnnotationsAttribute(False, _read_table(cur, _read_annotation))


STANDARD_ATTRIBUTES: dict[str, AttributeDecoder] = {
    "ConstantValue": decode_constant_value,
    "Exceptions": decode_exceptions,
    "LineNumberTable": decode_line_number_table,
    "LocalVariableTable": decode_local_variable_table,
    "LocalVariableTypeTable": decode_local_variable_type_table,
    "SourceFile": decode_source_file,
    "InnerClasses": decode_inner_classes,
    "Signature": decode_signature,
    "Synthetic": decode_synthetic,
    "Deprecated": decode_deprecated,
    "RuntimeVisibleAnnotations": decode_visible_annotations,
    "RuntimeInvisibleAnnotations": decode_invisible_annotations,
}


class AttributeRegistry:
    """Maps attribute names to payload decoders.

    A decoder is called as ``decoder(ctx, offset, length)`` with the offset
    just past the length field, and returns ``(info, bytes_consumed)``.
    """

    def __init__(self, decoders: Optional[dict[str, AttributeDecoder]] = None):
        self._decoders: dict[str, AttributeDecoder] = dict(decoders or {})

    def register(self, name: str, decoder: Optional[AttributeDecoder] = None):
        """Register a decoder; usable as a decorator when ``decoder`` is omitted."""
        if decoder is None:
            def wrap(fn: AttributeDecoder) -> AttributeDecoder:
                self._decoders[name] = fn
                return fn
            return wrap
        self._decoders[name] = decoder
        return decoder

    def unregister(self, name: str):
        self._decoders.pop(name, None)

    def lookup(self, name: str) -> Optional[AttributeDecoder]:
        return self._decoders.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._decoders

    def names(self) -> list[str]:
        return sorted(self._decoders)

    def copy(self) -> "AttributeRegistry":
        return AttributeRegistry(self._decoders)


def decode_attribute(ctx: "DecodeContext", offset: int) -> tuple[Attribute, int]:
    """Decode one attribute_info; returns it and its total byte span."""
    cur = ctx.cursor(offset)
    name_index = cur.u2()
    length = cur.u4()

    entry = ctx.pool.get(name_index)
    if not isinstance(entry, Utf8Info):
        raise NonUtf8AttributeName(name_index, kind_name(entry), offset)
    name = entry.value

    decoder = ctx.attributes.lookup(name)
    if decoder is None:
        raw = cur.bytes(length)
        ctx.report(DiagnosticKind.OPAQUE_ATTRIBUTE, offset,
                   f"kept {length} byte(s) of unrecognized attribute {name!r}")
        return Attribute(name_index, length, OpaqueAttribute(raw)), cur.consumed_since(offset)

    info, consumed = decoder(ctx, cur.offset, length)
    if consumed != length:
        raise AttributeLengthMismatch(name, length, consumed, offset)
    return Attribute(name_index, length, info), 2 + 4 + length


def decode_attributes(ctx: "DecodeContext", offset: int) -> tuple[tuple[Attribute, ...], int]:
    """Decode an attributes_count-prefixed list; the span includes the count."""
    count = ctx.reader.read_u2(offset)
    pos = offset + 2
    attrs = []
    for _ in range(count):
        attr, size = decode_attribute(ctx, pos)
        attrs.append(attr)
        pos += size
    return tuple(attrs), pos - offset
