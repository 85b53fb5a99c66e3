"""
Instruction decoding for Code attribute byte streams.

Opcodes map to decoders through an InstructionRegistry. The registry is
open: opcodes without a decoder produce an UnsupportedOpcode outcome and
an InstructionStream stops there instead of failing the class decode.
"""

import struct
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Union

from .errors import BufferUnderrun
from .nodes import Node
from .reader import ByteReader


@dataclass(frozen=True)
class Instruction(Node):
    pc: int
    opcode: int
    mnemonic: str
    operands: tuple[int, ...] = ()
    size: int = 1

    @property
    def next_pc(self) -> int:
        return self.pc + self.size

    def __str__(self) -> str:
        if not self.operands:
            return f"{self.pc}: {self.mnemonic}"
        return f"{self.pc}: {self.mnemonic} {', '.join(str(o) for o in self.operands)}"


@dataclass(frozen=True)
class UnsupportedOpcode(Node):
    """No decoder is registered for ``opcode``."""
    pc: int
    opcode: int

    def __str__(self) -> str:
        return f"unsupported opcode {self.opcode:#04x} at pc {self.pc}"


@dataclass(frozen=True)
class TruncatedInstruction(Node):
    """The operands of the instruction at ``pc`` run past the end of the code."""
    pc: int
    opcode: int

    def __str__(self) -> str:
        return f"truncated operands for opcode {self.opcode:#04x} at pc {self.pc}"


DecodeOutcome = Union[Instruction, UnsupportedOpcode]
InstructionDecoder = Callable[[ByteReader, int], DecodeOutcome]
StreamStop = Union[UnsupportedOpcode, TruncatedInstruction]


def fixed(opcode: int, mnemonic: str, operands: str = "") -> InstructionDecoder:
    """Decoder for an instruction with a fixed operand layout.

    ``operands`` is a struct format for the bytes after the opcode:
    B unsigned byte, b signed byte, H u2 index, h s2 branch, i s4 branch.
    """
    layout = struct.Struct(">" + operands)

    def decode(code: ByteReader, pc: int) -> Instruction:
        raw = code.slice(pc + 1, layout.size)
        return Instruction(pc, opcode, mnemonic, layout.unpack(raw), 1 + layout.size)

    return decode


def _switch_padding(pc: int) -> int:
    # operands start on a 4-byte boundary relative to the start of the code
    return (4 - (pc + 1) % 4) % 4


def _decode_tableswitch(code: ByteReader, pc: int) -> Instruction:
    pos = pc + 1 + _switch_padding(pc)
    default = code.read_i4(pos)
    low = code.read_i4(pos + 4)
    high = code.read_i4(pos + 8)
    pos += 12
    offsets = []
    for _ in range(max(high - low + 1, 0)):
        offsets.append(code.read_i4(pos))
        pos += 4
    return Instruction(pc, 0xAA, "tableswitch", (default, low, high, *offsets), pos - pc)


def _decode_lookupswitch(code: ByteReader, pc: int) -> Instruction:
    pos = pc + 1 + _switch_padding(pc)
    default = code.read_i4(pos)
    npairs = code.read_i4(pos + 4)
    pos += 8
    pairs = []
    for _ in range(max(npairs, 0)):
        pairs.append(code.read_i4(pos))
        pairs.append(code.read_i4(pos + 4))
        pos += 8
    return Instruction(pc, 0xAB, "lookupswitch", (default, npairs, *pairs), pos - pc)


# Opcodes that may follow wide: the typed loads and stores, iinc and ret
_WIDENABLE = frozenset([*range(0x15, 0x1A), *range(0x36, 0x3B), 0x84, 0xA9])


def _decode_wide(code: ByteReader, pc: int) -> DecodeOutcome:
    modified = code.read_u1(pc + 1)
    if modified not in _WIDENABLE:
        return UnsupportedOpcode(pc, 0xC4)
    index = code.read_u2(pc + 2)
    if modified == 0x84:  # iinc
        return Instruction(pc, 0xC4, "wide", (modified, index, code.read_i2(pc + 4)), 6)
    return Instruction(pc, 0xC4, "wide", (modified, index), 4)


def _names(*groups) -> list[str]:
    return [name for group in groups for name in group]


_TYPED = "ilfda"

# Runs of consecutive opcodes that take no operands, keyed by the first opcode
_NO_OPERAND_RUNS = {
    0x00: _names(
        ["nop", "aconst_null", "iconst_m1"],
        [f"iconst_{n}" for n in range(6)],
        ["lconst_0", "lconst_1", "fconst_0", "fconst_1", "fconst_2", "dconst_0", "dconst_1"],
    ),
    0x1A: _names(
        [f"{t}load_{n}" for t in _TYPED for n in range(4)],
        [f"{t}aload" for t in "ilfdabcs"],
    ),
    0x3B: _names(
        [f"{t}store_{n}" for t in _TYPED for n in range(4)],
        [f"{t}astore" for t in "ilfdabcs"],
        ["pop", "pop2", "dup", "dup_x1", "dup_x2", "dup2", "dup2_x1", "dup2_x2", "swap"],
        [f"{t}{op}" for op in ("add", "sub", "mul", "div", "rem", "neg") for t in "ilfd"],
        [f"{t}{op}" for op in ("shl", "shr", "ushr") for t in "il"],
        [f"{t}{op}" for op in ("and", "or", "xor") for t in "il"],
    ),
    0x85: _names(
        ["i2l", "i2f", "i2d", "l2i", "l2f", "l2d", "f2i", "f2l", "f2d",
         "d2i", "d2l", "d2f", "i2b", "i2c", "i2s"],
        ["lcmp", "fcmpl", "fcmpg", "dcmpl", "dcmpg"],
    ),
    0xAC: [f"{t}return" for t in _TYPED] + ["return"],
    0xBE: ["arraylength", "athrow"],
    0xC2: ["monitorenter", "monitorexit"],
}

_BRANCHES = [
    "ifeq", "ifne", "iflt", "ifge", "ifgt", "ifle",
    "if_icmpeq", "if_icmpne", "if_icmplt", "if_icmpge", "if_icmpgt", "if_icmple",
    "if_acmpeq", "if_acmpne", "goto", "jsr",
]

_MEMBER_OPS = [
    "getstatic", "putstatic", "getfield", "putfield",
    "invokevirtual", "invokespecial", "invokestatic",
]


def _standard_table() -> dict[int, InstructionDecoder]:
    table = {}
    for first, names in _NO_OPERAND_RUNS.items():
        for i, name in enumerate(names):
            table[first + i] = fixed(first + i, name)

    for opcode, name, operands in [
        (0x10, "bipush", "b"),
        (0x11, "sipush", "h"),
        (0x12, "ldc", "B"),
        (0x13, "ldc_w", "H"),
        (0x14, "ldc2_w", "H"),
        (0x84, "iinc", "Bb"),
        (0xA9, "ret", "B"),
        (0xB9, "invokeinterface", "HBB"),
        (0xBA, "invokedynamic", "HBB"),
        (0xBB, "new", "H"),
        (0xBC, "newarray", "B"),
        (0xBD, "anewarray", "H"),
        (0xC0, "checkcast", "H"),
        (0xC1, "instanceof", "H"),
        (0xC5, "multianewarray", "HB"),
        (0xC6, "ifnull", "h"),
        (0xC7, "ifnonnull", "h"),
        (0xC8, "goto_w", "i"),
        (0xC9, "jsr_w", "i"),
    ]:
        table[opcode] = fixed(opcode, name, operands)

    for i, t in enumerate(_TYPED):
        table[0x15 + i] = fixed(0x15 + i, f"{t}load", "B")
        table[0x36 + i] = fixed(0x36 + i, f"{t}store", "B")
    for i, name in enumerate(_BRANCHES):
        table[0x99 + i] = fixed(0x99 + i, name, "h")
    for i, name in enumerate(_MEMBER_OPS):
        table[0xB2 + i] = fixed(0xB2 + i, name, "H")

    table[0xAA] = _decode_tableswitch
    table[0xAB] = _decode_lookupswitch
    table[0xC4] = _decode_wide
    return table


class InstructionRegistry:
    """Maps one-byte opcodes to instruction decoders."""

    def __init__(self, decoders: Optional[dict[int, InstructionDecoder]] = None):
        self._decoders: dict[int, InstructionDecoder] = dict(decoders or {})

    @classmethod
    def standard(cls) -> "InstructionRegistry":
        """A registry holding every opcode defined for class files up to Java 8."""
        return cls(_standard_table())

    def register(self, opcode: int, decoder: InstructionDecoder):
        if not 0 <= opcode <= 0xFF:
            raise ValueError(f"Opcode out of range: {opcode}")
        self._decoders[opcode] = decoder

    def register_fixed(self, opcode: int, mnemonic: str, operands: str = ""):
        self.register(opcode, fixed(opcode, mnemonic, operands))

    def unregister(self, opcode: int):
        self._decoders.pop(opcode, None)

    def __contains__(self, opcode: int) -> bool:
        return opcode in self._decoders

    def __len__(self) -> int:
        return len(self._decoders)

    def copy(self) -> "InstructionRegistry":
        return InstructionRegistry(self._decoders)

    def decode(self, code: ByteReader, pc: int) -> DecodeOutcome:
        opcode = code.read_u1(pc)
        decoder = self._decoders.get(opcode)
        if decoder is None:
            return UnsupportedOpcode(pc, opcode)
        return decoder(code, pc)

    def stream(self, code: bytes) -> "InstructionStream":
        return InstructionStream(code, self)


class InstructionStream:
    """Single pass, left to right iterator over the instructions of a code array.

    Iteration ends at the end of the code, at the first opcode without a
    decoder, or at an instruction whose operands do not fit; ``stopped_at``
    then tells which of the latter two happened.
    """

    def __init__(self, code: bytes, registry: InstructionRegistry):
        self._code = ByteReader(code)
        self._registry = registry
        self._pc = 0
        self.stopped_at: Optional[StreamStop] = None

    @property
    def pc(self) -> int:
        return self._pc

    @property
    def exhausted(self) -> bool:
        return self.stopped_at is not None or self._pc >= len(self._code)

    def __iter__(self) -> Iterator[Instruction]:
        return self

    def __next__(self) -> Instruction:
        if self.exhausted:
            raise StopIteration
        pc = self._pc
        try:
            outcome = self._registry.decode(self._code, pc)
        except BufferUnderrun:
            self.stopped_at = TruncatedInstruction(pc, self._code.read_u1(pc))
            raise StopIteration
        if isinstance(outcome, UnsupportedOpcode):
            self.stopped_at = outcome
            raise StopIteration
        self._pc = outcome.next_pc
        return outcome
