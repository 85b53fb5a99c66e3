"""
Exceptions raised while decoding class files.
"""

from typing import Optional


class ClassFormatError(Exception):
    """The byte buffer is not a decodable class file."""

    def __init__(self, message: str, offset: Optional[int] = None):
        if offset is not None:
            message = f"{message} (at offset {offset})"
        super().__init__(message)
        self.offset = offset


class NotAClassFile(ClassFormatError):
    def __init__(self, magic: int):
        super().__init__(f"Invalid class file magic: {magic:#010x}", 0)
        self.magic = magic


class BufferUnderrun(ClassFormatError):
    """A read would go past the end of the buffer."""

    def __init__(self, offset: int, width: int, size: int):
        super().__init__(
            f"Cannot read {width} byte(s) at offset {offset}, buffer holds {size}"
        )
        self.offset = offset
        self.width = width
        self.size = size


class UnknownConstantTag(ClassFormatError):
    def __init__(self, tag: int, offset: int):
        super().__init__(f"Unknown constant pool tag: {tag}", offset)
        self.tag = tag


class MalformedConstant(ClassFormatError):
    pass


class NonUtf8AttributeName(ClassFormatError):
    def __init__(self, index: int, found: str, offset: int):
        super().__init__(f"Attribute name #{index} is a {found}, expected Utf8", offset)
        self.index = index
        self.found = found


class AttributeLengthMismatch(ClassFormatError):
    def __init__(self, name: str, declared: int, consumed: int, offset: int):
        super().__init__(
            f"{name} attribute declares {declared} byte(s) but its payload is {consumed}",
            offset,
        )
        self.name = name
        self.declared = declared
        self.consumed = consumed


class MalformedAttribute(ClassFormatError):
    pass


class TrailingBytes(ClassFormatError):
    def __init__(self, offset: int, count: int):
        super().__init__(f"{count} unexpected byte(s) after class attributes", offset)
        self.count = count


class InvalidConstantIndex(ClassFormatError):
    """A pool index is 0, out of range, or the unusable slot after a Long/Double."""

    def __init__(self, index: int, count: int, reason: str = "out of range"):
        super().__init__(f"Constant pool index #{index} is {reason} (pool count {count})")
        self.index = index
        self.count = count


class UnexpectedConstantKind(ClassFormatError):
    def __init__(self, expected: str, found: str, index: int):
        super().__init__(f"Expected {expected} at constant pool index #{index}, got {found}")
        self.expected = expected
        self.found = found
        self.index = index


class InvalidDescriptor(ValueError):
    """A field or method descriptor does not follow the descriptor grammar."""
    pass
