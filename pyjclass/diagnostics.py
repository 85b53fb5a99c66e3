"""
Soft decode problems: recorded on the model, decoding continues.
"""

from dataclasses import dataclass
from enum import Enum

from .nodes import Node


class DiagnosticKind(Enum):
    OPAQUE_ATTRIBUTE = "opaque-attribute"
    UNSUPPORTED_OPCODE = "unsupported-opcode"
    TRUNCATED_INSTRUCTION = "truncated-instruction"
    UNSUPPORTED_FRAME = "unsupported-frame"


@dataclass(frozen=True)
class Diagnostic(Node):
    kind: DiagnosticKind
    offset: int  # absolute offset into the class file buffer
    message: str

    def __str__(self) -> str:
        return f"{self.kind.value} at offset {self.offset}: {self.message}"
