"""
The Code attribute: method bytecode, exception handlers and nested attributes.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar, Optional

from .attributes import Attribute, LineNumberTableAttribute, decode_attributes, find_attribute
from .diagnostics import DiagnosticKind
from .instructions import Instruction, StreamStop, UnsupportedOpcode
from .nodes import Node

if TYPE_CHECKING:
    from .context import DecodeContext


@dataclass(frozen=True)
class ExceptionHandler(Node):
    """An entry in the exception table."""
    start_pc: int
    end_pc: int
    handler_pc: int
    catch_type: int  # 0 for finally (catches all), otherwise constant pool index of class

    @property
    def catches_all(self) -> bool:
        return self.catch_type == 0


@dataclass(frozen=True)
class CodeAttribute(Node):
    """Code attribute for a method."""
    name: ClassVar[str] = "Code"

    max_stack: int
    max_locals: int
    code: bytes
    exception_table: tuple[ExceptionHandler, ...]
    attributes: tuple[Attribute, ...]
    instructions: tuple[Instruction, ...] = ()
    stopped_at: Optional[StreamStop] = None

    @property
    def line_numbers(self) -> Optional[LineNumberTableAttribute]:
        return find_attribute(self.attributes, LineNumberTableAttribute)

    @property
    def fully_decoded(self) -> bool:
        """True when the instruction list covers the whole code array."""
        return self.stopped_at is None and sum(i.size for i in self.instructions) == len(self.code)


def decode_code(ctx: "DecodeContext", offset: int, length: int) -> tuple[CodeAttribute, int]:
    cur = ctx.cursor(offset)
    max_stack = cur.u2()
    max_locals = cur.u2()
    code_length = cur.u4()
    code_start = cur.offset
    code = cur.bytes(code_length)

    handler_count = cur.u2()
    handlers = tuple(
        ExceptionHandler(cur.u2(), cur.u2(), cur.u2(), cur.u2())
        for _ in range(handler_count)
    )

    # before the nested attributes, so diagnostics stay in buffer order
    instructions: tuple[Instruction, ...] = ()
    stopped_at = None
    if ctx.options.decode_instructions:
        stream = ctx.instructions.stream(code)
        instructions = tuple(stream)
        stopped_at = stream.stopped_at
        if stopped_at is not None:
            kind = (DiagnosticKind.UNSUPPORTED_OPCODE if isinstance(stopped_at, UnsupportedOpcode)
                    else DiagnosticKind.TRUNCATED_INSTRUCTION)
            ctx.report(kind, code_start + stopped_at.pc,
                       f"instruction decoding stopped: {stopped_at}")

    attributes, size = decode_attributes(ctx, cur.offset)
    cur.skip(size)

    info = CodeAttribute(
        max_stack=max_stack,
        max_locals=max_locals,
        code=code,
        exception_table=handlers,
        attributes=attributes,
        instructions=instructions,
        stopped_at=stopped_at,
    )
    return info, cur.consumed_since(offset)
