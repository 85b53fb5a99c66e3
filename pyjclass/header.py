"""
Fixed-width header sections: magic, version, access flags, class indices
and the interface list.
"""

from dataclasses import dataclass
from enum import IntFlag

from .errors import NotAClassFile
from .nodes import Node
from .reader import ByteReader

MAGIC = 0xCAFEBABE


class AccessFlags(IntFlag):
    PUBLIC = 0x0001
    PRIVATE = 0x0002
    PROTECTED = 0x0004
    STATIC = 0x0008
    FINAL = 0x0010
    SUPER = 0x0020  # For classes (invokespecial semantics)
    SYNCHRONIZED = 0x0020  # For methods
    VOLATILE = 0x0040
    BRIDGE = 0x0040
    TRANSIENT = 0x0080
    VARARGS = 0x0080
    NATIVE = 0x0100
    INTERFACE = 0x0200
    ABSTRACT = 0x0400
    STRICT = 0x0800
    SYNTHETIC = 0x1000
    ANNOTATION = 0x2000
    ENUM = 0x4000


# Flag names by the kind of thing they are attached to, since several bits
# mean different things on classes, fields and methods.
CLASS_FLAG_NAMES = {
    0x0001: "public", 0x0010: "final", 0x0020: "super", 0x0200: "interface",
    0x0400: "abstract", 0x1000: "synthetic", 0x2000: "annotation", 0x4000: "enum",
}
FIELD_FLAG_NAMES = {
    0x0001: "public", 0x0002: "private", 0x0004: "protected", 0x0008: "static",
    0x0010: "final", 0x0040: "volatile", 0x0080: "transient", 0x1000: "synthetic",
    0x4000: "enum",
}
METHOD_FLAG_NAMES = {
    0x0001: "public", 0x0002: "private", 0x0004: "protected", 0x0008: "static",
    0x0010: "final", 0x0020: "synchronized", 0x0040: "bridge", 0x0080: "varargs",
    0x0100: "native", 0x0400: "abstract", 0x0800: "strict", 0x1000: "synthetic",
}
INNER_CLASS_FLAG_NAMES = {
    0x0001: "public", 0x0002: "private", 0x0004: "protected", 0x0008: "static",
    0x0010: "final", 0x0200: "interface", 0x0400: "abstract", 0x1000: "synthetic",
    0x2000: "annotation", 0x4000: "enum",
}


def flag_names(flags: int, names: dict[int, str]) -> list[str]:
    """Names of the set bits, lowest bit first; unknown bits are shown in hex."""
    result = []
    for bit in range(16):
        mask = 1 << bit
        if flags & mask:
            result.append(names.get(mask, f"{mask:#06x}"))
    return result


@dataclass(frozen=True, order=True)
class ClassVersion(Node):
    major: int
    minor: int

    @property
    def java_release(self) -> str:
        """'Java 8' for 52.0, 'JDK 1.1' for 45.x, ..."""
        if self.major >= 49:
            return f"Java {self.major - 44}"
        if self.major >= 46:
            return f"JDK 1.{self.major - 44}"
        return "JDK 1.1"

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


def decode_magic(reader: ByteReader, offset: int) -> tuple[int, int]:
    magic = reader.read_u4(offset)
    if magic != MAGIC:
        raise NotAClassFile(magic)
    return magic, 4


def decode_version(reader: ByteReader, offset: int) -> tuple[ClassVersion, int]:
    minor = reader.read_u2(offset)
    major = reader.read_u2(offset + 2)
    return ClassVersion(major, minor), 4


def decode_access_flags(reader: ByteReader, offset: int) -> tuple[AccessFlags, int]:
    return AccessFlags(reader.read_u2(offset)), 2


def decode_class_index(reader: ByteReader, offset: int) -> tuple[int, int]:
    """this_class / super_class: a pool index resolved by consumers."""
    return reader.read_u2(offset), 2


def decode_interfaces(reader: ByteReader, offset: int) -> tuple[tuple[int, ...], int]:
    count = reader.read_u2(offset)
    indices = tuple(reader.read_u2(offset + 2 + 2 * i) for i in range(count))
    return indices, 2 + 2 * count
