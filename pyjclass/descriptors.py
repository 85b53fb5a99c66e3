"""
Readable rendering of field and method descriptors, using Lark.

The decoder keeps descriptors as constant pool text; this module is for
consumers that want Java-like type names, such as the printer.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from lark import Lark, Token, Transformer
from lark.exceptions import LarkError

from .errors import InvalidDescriptor

GRAMMAR_FILE = Path(__file__).parent / "descriptor.lark"

BASE_TYPES = {
    "B": "byte", "C": "char", "D": "double", "F": "float",
    "I": "int", "J": "long", "S": "short", "Z": "boolean",
}


@dataclass(frozen=True)
class MethodType:
    parameters: tuple[str, ...]
    return_type: str

    def __str__(self) -> str:
        return f"({', '.join(self.parameters)}){self.return_type}"


class DescriptorTransformer(Transformer):
    """Transforms descriptor parse trees to Java source type names."""

    def field_descriptor(self, items):
        return items[0]

    def method_descriptor(self, items):
        return MethodType(tuple(items[:-1]), items[-1])

    def return_type(self, items):
        item = items[0]
        if isinstance(item, Token) and item.type == "VOID":
            return "void"
        return item

    def field_type(self, items):
        item = items[0]
        if isinstance(item, Token):
            if item.type == "BASE_TYPE":
                return BASE_TYPES[str(item)]
            return str(item)[1:-1].replace("/", ".")
        return item

    def array_type(self, items):
        return f"{items[0]}[]"


@lru_cache(maxsize=1)
def _parser() -> Lark:
    return Lark(
        GRAMMAR_FILE.read_text(),
        start=["field_descriptor", "method_descriptor"],
        parser="lalr",
        transformer=DescriptorTransformer(),
    )


def parse_field_descriptor(descriptor: str) -> str:
    """'[Ljava/lang/String;' -> 'java.lang.String[]'"""
    try:
        return _parser().parse(descriptor, start="field_descriptor")
    except LarkError as e:
        raise InvalidDescriptor(f"Invalid field descriptor {descriptor!r}") from e


def parse_method_descriptor(descriptor: str) -> MethodType:
    """'(I[J)V' -> MethodType(('int', 'long[]'), 'void')"""
    try:
        return _parser().parse(descriptor, start="method_descriptor")
    except LarkError as e:
        raise InvalidDescriptor(f"Invalid method descriptor {descriptor!r}") from e


def internal_to_java(name: str) -> str:
    """'java/lang/String' -> 'java.lang.String'; array class names become array types."""
    if name.startswith("["):
        return parse_field_descriptor(name)
    return name.replace("/", ".")
