"""pyjclass - A decoder for Java class files."""

from .attributes import Attribute, AttributeRegistry, OpaqueAttribute, find_attribute
from .classfile import ClassFile, Section, decode_class_file, read_class_file
from .code import CodeAttribute, ExceptionHandler
from .constant_pool import ConstantPool, ConstantPoolTag, decode_constant_pool
from .context import DecodeOptions, standard_attributes
from .diagnostics import Diagnostic, DiagnosticKind
from .errors import (
    AttributeLengthMismatch,
    BufferUnderrun,
    ClassFormatError,
    InvalidConstantIndex,
    NonUtf8AttributeName,
    NotAClassFile,
    UnexpectedConstantKind,
    UnknownConstantTag,
)
from .header import AccessFlags, ClassVersion
from .instructions import Instruction, InstructionRegistry, UnsupportedOpcode
from .members import Member
from .reader import ByteReader
from .stackmap import FrameRegistry

__version__ = "0.1.0"
__all__ = [
    "AccessFlags",
    "Attribute",
    "AttributeLengthMismatch",
    "AttributeRegistry",
    "BufferUnderrun",
    "ByteReader",
    "ClassFile",
    "ClassFormatError",
    "ClassVersion",
    "CodeAttribute",
    "ConstantPool",
    "ConstantPoolTag",
    "DecodeOptions",
    "Diagnostic",
    "DiagnosticKind",
    "ExceptionHandler",
    "FrameRegistry",
    "Instruction",
    "InstructionRegistry",
    "InvalidConstantIndex",
    "Member",
    "NonUtf8AttributeName",
    "NotAClassFile",
    "OpaqueAttribute",
    "Section",
    "UnexpectedConstantKind",
    "UnknownConstantTag",
    "UnsupportedOpcode",
    "decode_class_file",
    "decode_constant_pool",
    "find_attribute",
    "read_class_file",
    "standard_attributes",
]
