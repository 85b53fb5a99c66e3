"""
Field and method tables.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from .attributes import (
    Attribute,
    ConstantValueAttribute,
    ExceptionsAttribute,
    SignatureAttribute,
    decode_attributes,
    find_attribute,
)
from .code import CodeAttribute
from .header import AccessFlags
from .nodes import Node

if TYPE_CHECKING:
    from .constant_pool import ConstantPool
    from .context import DecodeContext

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Member(Node):
    """A field_info or method_info entry."""
    access_flags: AccessFlags
    name_index: int
    descriptor_index: int
    attributes: tuple[Attribute, ...] = ()

    @property
    def size(self) -> int:
        return 8 + sum(attr.size for attr in self.attributes)

    def name(self, pool: "ConstantPool") -> str:
        return pool.utf8(self.name_index)

    def descriptor(self, pool: "ConstantPool") -> str:
        return pool.utf8(self.descriptor_index)

    def signature(self, pool: "ConstantPool") -> Optional[str]:
        sig = find_attribute(self.attributes, SignatureAttribute)
        return pool.utf8(sig.signature_index) if sig else None

    @property
    def code(self) -> Optional[CodeAttribute]:
        return find_attribute(self.attributes, CodeAttribute)

    @property
    def constant_value_index(self) -> Optional[int]:
        cv = find_attribute(self.attributes, ConstantValueAttribute)
        return cv.constantvalue_index if cv else None

    def exceptions(self, pool: "ConstantPool") -> tuple[str, ...]:
        exc = find_attribute(self.attributes, ExceptionsAttribute)
        if exc is None:
            return ()
        return tuple(pool.class_name(i) for i in exc.exception_index_table)


def decode_member(ctx: "DecodeContext", offset: int) -> tuple[Member, int]:
    cur = ctx.cursor(offset)
    access = cur.u2()
    name_idx = cur.u2()
    desc_idx = cur.u2()
    attributes, size = decode_attributes(ctx, cur.offset)
    member = Member(AccessFlags(access), name_idx, desc_idx, attributes)
    return member, 6 + size


def decode_member_table(ctx: "DecodeContext", offset: int,
                        label: str = "members") -> tuple[tuple[Member, ...], int]:
    """Decode a fields or methods table; ``label`` only names it in log output."""
    count = ctx.reader.read_u2(offset)
    pos = offset + 2
    members = []
    for _ in range(count):
        member, size = decode_member(ctx, pos)
        members.append(member)
        pos += size
    log.debug("Decoded %d %s in %d bytes", count, label, pos - offset)
    return tuple(members), pos - offset
