"""
StackMapTable decoding.

Frames are selected by their first byte through a FrameRegistry. A frame
type without a decoder ends frame decoding; the rest of the attribute is
kept as raw bytes, which its length field makes safe.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Callable, ClassVar, Optional

from .diagnostics import DiagnosticKind
from .nodes import Node
from .reader import Cursor

if TYPE_CHECKING:
    from .context import DecodeContext


class VerificationTag(IntEnum):
    TOP = 0
    INTEGER = 1
    FLOAT = 2
    DOUBLE = 3
    LONG = 4
    NULL = 5
    UNINITIALIZED_THIS = 6
    OBJECT = 7
    UNINITIALIZED = 8


@dataclass(frozen=True)
class VerificationType(Node):
    tag: int
    value: Optional[int] = None  # class index for OBJECT, code offset for UNINITIALIZED

    def __str__(self) -> str:
        name = VerificationTag(self.tag).name.lower()
        return name if self.value is None else f"{name}({self.value})"


@dataclass(frozen=True)
class StackMapFrame(Node):
    frame_type: int
    kind: str
    offset_delta: int
    locals: tuple[VerificationType, ...] = ()
    stack: tuple[VerificationType, ...] = ()
    chopped: int = 0


@dataclass(frozen=True)
class UnsupportedFrame(Node):
    frame_type: int
    offset: int  # absolute buffer offset of the frame
    reason: str

    def __str__(self) -> str:
        return f"{self.reason} (frame type {self.frame_type}) at offset {self.offset}"


@dataclass(frozen=True)
class StackMapTableAttribute(Node):
    name: ClassVar[str] = "StackMapTable"
    number_of_entries: int
    frames: tuple[StackMapFrame, ...]
    remainder: bytes = b""
    stopped_at: Optional[UnsupportedFrame] = None


class _UnknownVerificationTag(Exception):
    def __init__(self, tag: int):
        super().__init__(f"unknown verification type tag {tag}")
        self.tag = tag


def _read_verification_type(cur: Cursor) -> VerificationType:
    tag = cur.u1()
    if tag in (VerificationTag.OBJECT, VerificationTag.UNINITIALIZED):
        return VerificationType(tag, cur.u2())
    if tag > VerificationTag.UNINITIALIZED:
        raise _UnknownVerificationTag(tag)
    return VerificationType(tag)


def _read_types(cur: Cursor, count: int) -> tuple[VerificationType, ...]:
    return tuple(_read_verification_type(cur) for _ in range(count))


FrameDecoder = Callable[[int, Cursor], StackMapFrame]


def _same(frame_type: int, cur: Cursor) -> StackMapFrame:
    return StackMapFrame(frame_type, "same", frame_type)


def _same_locals_1_stack_item(frame_type: int, cur: Cursor) -> StackMapFrame:
    return StackMapFrame(frame_type, "same_locals_1_stack_item", frame_type - 64,
                         stack=_read_types(cur, 1))


def _same_locals_1_stack_item_extended(frame_type: int, cur: Cursor) -> StackMapFrame:
    delta = cur.u2()
    return StackMapFrame(frame_type, "same_locals_1_stack_item_extended", delta,
                         stack=_read_types(cur, 1))


def _chop(frame_type: int, cur: Cursor) -> StackMapFrame:
    return StackMapFrame(frame_type, "chop", cur.u2(), chopped=251 - frame_type)


def _same_frame_extended(frame_type: int, cur: Cursor) -> StackMapFrame:
    return StackMapFrame(frame_type, "same_frame_extended", cur.u2())


def _append(frame_type: int, cur: Cursor) -> StackMapFrame:
    delta = cur.u2()
    return StackMapFrame(frame_type, "append", delta, locals=_read_types(cur, frame_type - 251))


def _full_frame(frame_type: int, cur: Cursor) -> StackMapFrame:
    delta = cur.u2()
    locals_ = _read_types(cur, cur.u2())
    stack = _read_types(cur, cur.u2())
    return StackMapFrame(frame_type, "full_frame", delta, locals=locals_, stack=stack)


class FrameRegistry:
    """Maps stack map frame type bytes to frame decoders."""

    def __init__(self, decoders: Optional[dict[int, FrameDecoder]] = None):
        self._decoders: dict[int, FrameDecoder] = dict(decoders or {})

    @classmethod
    def standard(cls) -> "FrameRegistry":
        registry = cls()
        registry.register_range(0, 63, _same)
        registry.register_range(64, 127, _same_locals_1_stack_item)
        registry.register(247, _same_locals_1_stack_item_extended)
        registry.register_range(248, 250, _chop)
        registry.register(251, _same_frame_extended)
        registry.register_range(252, 254, _append)
        registry.register(255, _full_frame)
        return registry

    def register(self, frame_type: int, decoder: FrameDecoder):
        self._decoders[frame_type] = decoder

    def register_range(self, first: int, last: int, decoder: FrameDecoder):
        for frame_type in range(first, last + 1):
            self.register(frame_type, decoder)

    def lookup(self, frame_type: int) -> Optional[FrameDecoder]:
        return self._decoders.get(frame_type)

    def __contains__(self, frame_type: int) -> bool:
        return frame_type in self._decoders

    def copy(self) -> "FrameRegistry":
        return FrameRegistry(self._decoders)


def decode_stack_map_table(ctx: "DecodeContext", offset: int, length: int) -> tuple[StackMapTableAttribute, int]:
    end = offset + length
    cur = ctx.cursor(offset)
    count = cur.u2()
    frames = []
    stopped_at = None

    if ctx.options.decode_stack_maps:
        for _ in range(count):
            frame_start = cur.offset
            frame_type = cur.u1()
            decoder = ctx.frames.lookup(frame_type)
            if decoder is None:
                stopped_at = UnsupportedFrame(frame_type, frame_start, "no decoder for frame type")
            else:
                try:
                    frames.append(decoder(frame_type, cur))
                except _UnknownVerificationTag as e:
                    stopped_at = UnsupportedFrame(frame_type, frame_start, str(e))
            if stopped_at is not None:
                cur.offset = frame_start
                ctx.report(DiagnosticKind.UNSUPPORTED_FRAME, frame_start,
                           f"stack map decoding stopped: {stopped_at.reason}")
                break

    remainder = b""
    if cur.offset < end and (stopped_at is not None or not ctx.options.decode_stack_maps):
        remainder = cur.bytes(end - cur.offset)

    info = StackMapTableAttribute(count, tuple(frames), remainder, stopped_at)
    return info, cur.consumed_since(offset)
