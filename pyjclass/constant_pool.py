"""
Constant pool decoding and index resolution.

The pool is decoded as a flat sequence of tagged records. References
between records are kept as indices and only resolved when a consumer
asks for them, since a record may point at an entry decoded after it.
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType
from typing import Callable, ClassVar, Iterator, Optional, TypeVar, Union

from .errors import (
    InvalidConstantIndex,
    MalformedConstant,
    UnexpectedConstantKind,
    UnknownConstantTag,
)
from .nodes import Node
from .reader import ByteReader, Cursor

log = logging.getLogger(__name__)


class ConstantPoolTag(IntEnum):
    UTF8 = 1
    INTEGER = 3
    FLOAT = 4
    LONG = 5
    DOUBLE = 6
    CLASS = 7
    STRING = 8
    FIELDREF = 9
    METHODREF = 10
    INTERFACE_METHODREF = 11
    NAME_AND_TYPE = 12
    METHOD_HANDLE = 15
    METHOD_TYPE = 16
    INVOKE_DYNAMIC = 18


class ReferenceKind(IntEnum):
    GET_FIELD = 1
    GET_STATIC = 2
    PUT_FIELD = 3
    PUT_STATIC = 4
    INVOKE_VIRTUAL = 5
    INVOKE_STATIC = 6
    INVOKE_SPECIAL = 7
    NEW_INVOKE_SPECIAL = 8
    INVOKE_INTERFACE = 9


@dataclass(frozen=True)
class Utf8Info(Node):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.UTF8
    value: str


@dataclass(frozen=True)
class IntegerInfo(Node):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.INTEGER
    value: int


@dataclass(frozen=True)
class FloatInfo(Node):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.FLOAT
    value: float


@dataclass(frozen=True)
class LongInfo(Node):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.LONG
    value: int


@dataclass(frozen=True)
class DoubleInfo(Node):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.DOUBLE
    value: float


@dataclass(frozen=True)
class ClassInfo(Node):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.CLASS
    name_index: int


@dataclass(frozen=True)
class StringInfo(Node):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.STRING
    string_index: int


@dataclass(frozen=True)
class FieldrefInfo(Node):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.FIELDREF
    class_index: int
    name_and_type_index: int


@dataclass(frozen=True)
class MethodrefInfo(Node):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.METHODREF
    class_index: int
    name_and_type_index: int


@dataclass(frozen=True)
class InterfaceMethodrefInfo(Node):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.INTERFACE_METHODREF
    class_index: int
    name_and_type_index: int


@dataclass(frozen=True)
class NameAndTypeInfo(Node):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.NAME_AND_TYPE
    name_index: int
    descriptor_index: int


@dataclass(frozen=True)
class MethodHandleInfo(Node):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.METHOD_HANDLE
    reference_kind: int
    reference_index: int


@dataclass(frozen=True)
class MethodTypeInfo(Node):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.METHOD_TYPE
    descriptor_index: int


@dataclass(frozen=True)
class InvokeDynamicInfo(Node):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.INVOKE_DYNAMIC
    bootstrap_method_attr_index: int
    name_and_type_index: int


ConstantPoolEntry = Union[
    Utf8Info, IntegerInfo, FloatInfo, LongInfo, DoubleInfo, ClassInfo,
    StringInfo, FieldrefInfo, MethodrefInfo, InterfaceMethodrefInfo,
    NameAndTypeInfo, MethodHandleInfo, MethodTypeInfo, InvokeDynamicInfo,
]

MemberRefInfo = (FieldrefInfo, MethodrefInfo, InterfaceMethodrefInfo)

# Long and Double occupy two pool slots; the second one is unusable
WIDE_ENTRIES = (LongInfo, DoubleInfo)

E = TypeVar("E")


def kind_name(entry_or_type) -> str:
    """'Utf8' for Utf8Info, 'Methodref' for MethodrefInfo, ..."""
    cls = entry_or_type if isinstance(entry_or_type, type) else type(entry_or_type)
    return cls.__name__[:-len("Info")]


def decode_modified_utf8(raw: bytes) -> str:
    """Decode the modified UTF-8 used by class files.

    NUL is stored as C0 80 and supplementary characters as a pair of
    three byte surrogate encodings. Four byte sequences do not occur.
    """
    for pos, byte in enumerate(raw):
        if byte >= 0xF0:
            raise UnicodeDecodeError("modified-utf-8", raw, pos, pos + 1,
                                     "four byte sequences are not allowed")
    text = raw.replace(b"\xc0\x80", b"\x00").decode("utf-8", "surrogatepass")
    if any("\ud800" <= ch <= "\udfff" for ch in text):
        text = text.encode("utf-16-be", "surrogatepass").decode("utf-16-be", "surrogatepass")
    return text


def _decode_utf8(cur: Cursor) -> Utf8Info:
    start = cur.offset
    length = cur.u2()
    raw = cur.bytes(length)
    try:
        return Utf8Info(decode_modified_utf8(raw))
    except UnicodeDecodeError as e:
        raise MalformedConstant(f"Invalid modified UTF-8 in Utf8 entry: {e.reason}", start) from e


def _decode_member_ref(cls) -> Callable[[Cursor], ConstantPoolEntry]:
    def decode(cur: Cursor):
        class_idx = cur.u2()
        nat_idx = cur.u2()
        return cls(class_idx, nat_idx)
    return decode


_DECODERS: dict[int, Callable[[Cursor], ConstantPoolEntry]] = {
    ConstantPoolTag.UTF8: _decode_utf8,
    ConstantPoolTag.INTEGER: lambda cur: IntegerInfo(cur.i4()),
    ConstantPoolTag.FLOAT: lambda cur: FloatInfo(cur.f4()),
    ConstantPoolTag.LONG: lambda cur: LongInfo(cur.i8()),
    ConstantPoolTag.DOUBLE: lambda cur: DoubleInfo(cur.f8()),
    ConstantPoolTag.CLASS: lambda cur: ClassInfo(cur.u2()),
    ConstantPoolTag.STRING: lambda cur: StringInfo(cur.u2()),
    ConstantPoolTag.FIELDREF: _decode_member_ref(FieldrefInfo),
    ConstantPoolTag.METHODREF: _decode_member_ref(MethodrefInfo),
    ConstantPoolTag.INTERFACE_METHODREF: _decode_member_ref(InterfaceMethodrefInfo),
    ConstantPoolTag.NAME_AND_TYPE: lambda cur: NameAndTypeInfo(cur.u2(), cur.u2()),
    ConstantPoolTag.METHOD_HANDLE: lambda cur: MethodHandleInfo(cur.u1(), cur.u2()),
    ConstantPoolTag.METHOD_TYPE: lambda cur: MethodTypeInfo(cur.u2()),
    ConstantPoolTag.INVOKE_DYNAMIC: lambda cur: InvokeDynamicInfo(cur.u2(), cur.u2()),
}


def decode_constant(reader: ByteReader, offset: int) -> tuple[ConstantPoolEntry, int]:
    """Decode one cp_info record. The returned size includes the tag byte."""
    cur = reader.cursor(offset)
    tag = cur.u1()
    decoder = _DECODERS.get(tag)
    if decoder is None:
        raise UnknownConstantTag(tag, offset)
    entry = decoder(cur)
    return entry, cur.consumed_since(offset)


@dataclass(frozen=True)
class ConstantPool(Node):
    """The decoded pool: (slot index, entry) pairs in index order.

    ``count`` is the constant_pool_count field, so valid indices are
    ``1 <= index < count``.
    """
    count: int
    entries: tuple[tuple[int, ConstantPoolEntry], ...]
    _by_index: MappingProxyType = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_by_index", MappingProxyType(dict(self.entries)))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[tuple[int, ConstantPoolEntry]]:
        return iter(self.entries)

    def __contains__(self, index: int) -> bool:
        return index in self._by_index

    def get(self, index: int) -> ConstantPoolEntry:
        if not 1 <= index < self.count:
            raise InvalidConstantIndex(index, self.count)
        entry = self._by_index.get(index)
        if entry is None:
            previous = self._by_index.get(index - 1)
            reason = (
                f"the unusable slot after a {kind_name(previous)}"
                if isinstance(previous, WIDE_ENTRIES) else "not populated"
            )
            raise InvalidConstantIndex(index, self.count, reason)
        return entry

    def get_typed(self, index: int, kind: type[E]) -> E:
        entry = self.get(index)
        if not isinstance(entry, kind):
            raise UnexpectedConstantKind(kind_name(kind), kind_name(entry), index)
        return entry

    def utf8(self, index: int) -> str:
        return self.get_typed(index, Utf8Info).value

    def class_name(self, index: int) -> str:
        """Internal name of a Class entry, e.g. 'java/lang/String'."""
        return self.utf8(self.get_typed(index, ClassInfo).name_index)

    def optional_class_name(self, index: int) -> Optional[str]:
        """Like class_name, but index 0 means 'no class' (super of Object, anonymous outer)."""
        if index == 0:
            return None
        return self.class_name(index)

    def optional_utf8(self, index: int) -> Optional[str]:
        if index == 0:
            return None
        return self.utf8(index)

    def string(self, index: int) -> str:
        return self.utf8(self.get_typed(index, StringInfo).string_index)

    def name_and_type(self, index: int) -> tuple[str, str]:
        nat = self.get_typed(index, NameAndTypeInfo)
        return self.utf8(nat.name_index), self.utf8(nat.descriptor_index)

    def member_ref(self, index: int) -> tuple[str, str, str]:
        """(class name, member name, descriptor) of a field/method reference."""
        entry = self.get(index)
        if not isinstance(entry, MemberRefInfo):
            raise UnexpectedConstantKind("Fieldref/Methodref/InterfaceMethodref", kind_name(entry), index)
        name, descriptor = self.name_and_type(entry.name_and_type_index)
        return self.class_name(entry.class_index), name, descriptor

    def loadable_value(self, index: int):
        """Value of an entry usable by ConstantValue or ldc."""
        entry = self.get(index)
        if isinstance(entry, (IntegerInfo, FloatInfo, LongInfo, DoubleInfo)):
            return entry.value
        if isinstance(entry, StringInfo):
            return self.utf8(entry.string_index)
        if isinstance(entry, ClassInfo):
            return self.utf8(entry.name_index)
        if isinstance(entry, MethodTypeInfo):
            return self.utf8(entry.descriptor_index)
        raise UnexpectedConstantKind("loadable constant", kind_name(entry), index)

    def to_dict(self) -> dict:
        return {
            "_type": "ConstantPool",
            "count": self.count,
            "entries": {str(i): e.to_dict() for i, e in self},
        }


def decode_constant_pool(reader: ByteReader, offset: int) -> tuple[ConstantPool, int]:
    """Decode constant_pool_count and the entries that follow it.

    Returns the pool and its byte span, count field included.
    """
    count = reader.read_u2(offset)
    pos = offset + 2
    entries = {}
    index = 1
    while index < count:
        entry, size = decode_constant(reader, pos)
        entries[index] = entry
        pos += size
        index += 2 if isinstance(entry, WIDE_ENTRIES) else 1
    log.debug("Decoded %d constant pool entries (count %d) in %d bytes",
              len(entries), count, pos - offset)
    return ConstantPool(count, tuple(entries.items())), pos - offset
