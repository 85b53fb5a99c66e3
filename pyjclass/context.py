"""
Decode options and the per-decode context handed to every section decoder.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .attributes import STANDARD_ATTRIBUTES, AttributeRegistry
from .code import decode_code
from .constant_pool import ConstantPool
from .diagnostics import Diagnostic, DiagnosticKind
from .instructions import InstructionRegistry
from .reader import ByteReader, Cursor
from .stackmap import FrameRegistry, decode_stack_map_table

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodeOptions:
    """Switches for the optional parts of a decode."""
    decode_instructions: bool = True  # materialize Code instruction lists
    decode_stack_maps: bool = True  # decode StackMapTable frames instead of keeping raw bytes
    allow_trailing_bytes: bool = False


def standard_attributes() -> AttributeRegistry:
    """A fresh registry with every attribute kind this package decodes."""
    registry = AttributeRegistry(STANDARD_ATTRIBUTES)
    registry.register("Code", decode_code)
    registry.register("StackMapTable", decode_stack_map_table)
    return registry


@dataclass
class DecodeContext:
    """State shared by the section decoders of one class file decode.

    The pool is read-only once decoded; diagnostics are appended in buffer order.
    """
    reader: ByteReader
    pool: ConstantPool
    options: DecodeOptions = field(default_factory=DecodeOptions)
    attributes: AttributeRegistry = field(default_factory=standard_attributes)
    instructions: InstructionRegistry = field(default_factory=InstructionRegistry.standard)
    frames: FrameRegistry = field(default_factory=FrameRegistry.standard)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def cursor(self, offset: int) -> Cursor:
        return self.reader.cursor(offset)

    def report(self, kind: DiagnosticKind, offset: int, message: str):
        diagnostic = Diagnostic(kind, offset, message)
        log.debug("%s", diagnostic)
        self.diagnostics.append(diagnostic)


def make_context(reader: ByteReader, pool: ConstantPool,
                 options: Optional[DecodeOptions] = None,
                 attributes: Optional[AttributeRegistry] = None,
                 instructions: Optional[InstructionRegistry] = None,
                 frames: Optional[FrameRegistry] = None) -> DecodeContext:
    return DecodeContext(
        reader=reader,
        pool=pool,
        options=options if options is not None else DecodeOptions(),
        attributes=attributes if attributes is not None else standard_attributes(),
        instructions=instructions if instructions is not None else InstructionRegistry.standard(),
        frames=frames if frames is not None else FrameRegistry.standard(),
    )
