"""
Human-readable rendering of decoded class files, in the spirit of javap.
"""

from typing import Optional

from .attributes import (
    Attribute,
    ConstantValueAttribute,
    DeprecatedAttribute,
    ExceptionsAttribute,
    InnerClassesAttribute,
    LineNumberTableAttribute,
    LocalVariableTableAttribute,
    LocalVariableTypeTableAttribute,
    OpaqueAttribute,
    RuntimeAnnotationsAttribute,
    SignatureAttribute,
    SourceFileAttribute,
    SyntheticAttribute,
)
from .classfile import ClassFile
from .code import CodeAttribute
from .constant_pool import (
    ClassInfo,
    ConstantPool,
    DoubleInfo,
    FloatInfo,
    IntegerInfo,
    InvokeDynamicInfo,
    LongInfo,
    MemberRefInfo,
    MethodHandleInfo,
    MethodTypeInfo,
    NameAndTypeInfo,
    ReferenceKind,
    StringInfo,
    Utf8Info,
    kind_name,
)
from .descriptors import internal_to_java, parse_field_descriptor, parse_method_descriptor
from .errors import ClassFormatError, InvalidDescriptor
from .header import (
    CLASS_FLAG_NAMES,
    FIELD_FLAG_NAMES,
    INNER_CLASS_FLAG_NAMES,
    METHOD_FLAG_NAMES,
    flag_names,
)
from .instructions import Instruction
from .members import Member
from .stackmap import StackMapTableAttribute

# Instructions whose first operand is a constant pool index
_POOL_OPERAND = {
    "ldc", "ldc_w", "ldc2_w", "getstatic", "putstatic", "getfield", "putfield",
    "invokevirtual", "invokespecial", "invokestatic", "invokeinterface",
    "invokedynamic", "new", "anewarray", "checkcast", "instanceof", "multianewarray",
}


def describe_constant(pool: ConstantPool, index: int) -> str:
    """Resolved text of a pool entry, e.g. 'java/lang/Object."<init>":()V'.

    Broken references are rendered inline instead of raising.
    """
    try:
        entry = pool.get(index)
        if isinstance(entry, Utf8Info):
            return entry.value
        if isinstance(entry, (IntegerInfo, FloatInfo, LongInfo, DoubleInfo)):
            return repr(entry.value)
        if isinstance(entry, StringInfo):
            return pool.utf8(entry.string_index)
        if isinstance(entry, ClassInfo):
            return pool.utf8(entry.name_index)
        if isinstance(entry, NameAndTypeInfo):
            name, descriptor = pool.name_and_type(index)
            return f"{_quote(name)}:{descriptor}"
        if isinstance(entry, MemberRefInfo):
            owner, name, descriptor = pool.member_ref(index)
            return f"{owner}.{_quote(name)}:{descriptor}"
        if isinstance(entry, MethodHandleInfo):
            try:
                kind = ReferenceKind(entry.reference_kind).name
            except ValueError:
                kind = str(entry.reference_kind)
            return f"{kind} {describe_constant(pool, entry.reference_index)}"
        if isinstance(entry, MethodTypeInfo):
            return pool.utf8(entry.descriptor_index)
        if isinstance(entry, InvokeDynamicInfo):
            name, descriptor = pool.name_and_type(entry.name_and_type_index)
            return f"#{entry.bootstrap_method_attr_index}:{_quote(name)}:{descriptor}"
    except ClassFormatError as e:
        return f"<{e}>"
    return "<unknown>"


def _quote(name: str) -> str:
    return f'"{name}"' if name.startswith("<") else name


def _entry_refs(entry) -> str:
    if isinstance(entry, ClassInfo):
        return f"#{entry.name_index}"
    if isinstance(entry, StringInfo):
        return f"#{entry.string_index}"
    if isinstance(entry, MemberRefInfo):
        return f"#{entry.class_index}.#{entry.name_and_type_index}"
    if isinstance(entry, NameAndTypeInfo):
        return f"#{entry.name_index}:#{entry.descriptor_index}"
    if isinstance(entry, MethodHandleInfo):
        return f"{entry.reference_kind}:#{entry.reference_index}"
    if isinstance(entry, MethodTypeInfo):
        return f"#{entry.descriptor_index}"
    if isinstance(entry, InvokeDynamicInfo):
        return f"#{entry.bootstrap_method_attr_index}:#{entry.name_and_type_index}"
    return ""


def format_constant_pool(pool: ConstantPool) -> list[str]:
    width = len(str(pool.count))
    lines = ["Constant pool:"]
    for index, entry in pool:
        refs = _entry_refs(entry)
        text = describe_constant(pool, index)
        label = f"#{index}".rjust(width + 1)
        if refs:
            lines.append(f"  {label} = {kind_name(entry):<18} {refs:<14} // {text}")
        else:
            lines.append(f"  {label} = {kind_name(entry):<18} {text}")
    return lines


def _java_type(descriptor: str) -> str:
    try:
        return parse_field_descriptor(descriptor)
    except InvalidDescriptor:
        return descriptor


def _java_name(name: str) -> str:
    try:
        return internal_to_java(name)
    except InvalidDescriptor:
        return name


def format_member_header(cf: ClassFile, member: Member, is_method: bool) -> str:
    pool = cf.constant_pool
    names = METHOD_FLAG_NAMES if is_method else FIELD_FLAG_NAMES
    flags = [n for n in flag_names(member.access_flags, names)
             if n not in ("synthetic", "bridge", "varargs", "enum")]
    name = member.name(pool)
    descriptor = member.descriptor(pool)
    prefix = " ".join(flags + [""]) if flags else ""
    if not is_method:
        return f"{prefix}{_java_type(descriptor)} {name};"
    try:
        method_type = parse_method_descriptor(descriptor)
    except InvalidDescriptor:
        return f"{prefix}{name}{descriptor};"
    params = ", ".join(method_type.parameters)
    if name == "<clinit>":
        return "static {};"
    if name == "<init>":
        return f"{prefix}{_java_name(cf.name)}({params});"
    throws = member.exceptions(pool)
    suffix = f" throws {', '.join(_java_name(t) for t in throws)}" if throws else ""
    return f"{prefix}{method_type.return_type} {name}({params}){suffix};"


def format_instruction(pool: ConstantPool, insn: Instruction) -> str:
    text = str(insn)
    if insn.mnemonic in _POOL_OPERAND and insn.operands:
        return f"{insn.pc}: {insn.mnemonic} #{insn.operands[0]}".ljust(32) + \
            f"// {describe_constant(pool, insn.operands[0])}"
    if insn.mnemonic in ("tableswitch", "lookupswitch"):
        return f"{insn.pc}: {insn.mnemonic} default={insn.pc + insn.operands[0]}"
    return text


def format_code(pool: ConstantPool, code: CodeAttribute, indent: str = "    ") -> list[str]:
    lines = [f"{indent}Code:",
             f"{indent}  stack={code.max_stack}, locals={code.max_locals}, code_length={len(code.code)}"]
    for insn in code.instructions:
        lines.append(f"{indent}  {format_instruction(pool, insn)}")
    if code.stopped_at is not None:
        lines.append(f"{indent}  ... {code.stopped_at}")
    if code.exception_table:
        lines.append(f"{indent}Exception table:")
        lines.append(f"{indent}   from    to  target type")
        for h in code.exception_table:
            catch = "any" if h.catches_all else f"Class {describe_constant(pool, h.catch_type)}"
            lines.append(f"{indent}  {h.start_pc:>5} {h.end_pc:>5} {h.handler_pc:>5}   {catch}")
    for attr in code.attributes:
        lines.extend(format_attribute(pool, attr, indent))
    return lines


def format_attribute(pool: ConstantPool, attr: Attribute, indent: str = "  ") -> list[str]:
    info = attr.info
    if isinstance(info, CodeAttribute):
        return format_code(pool, info, indent)
    if isinstance(info, LineNumberTableAttribute):
        return [f"{indent}LineNumberTable:"] + [
            f"{indent}  line {e.line_number}: {e.start_pc}" for e in info.line_number_table
        ]
    if isinstance(info, LocalVariableTableAttribute):
        lines = [f"{indent}LocalVariableTable:", f"{indent}  Start  Length  Slot  Name   Signature"]
        for v in info.local_variable_table:
            lines.append(f"{indent}  {v.start_pc:>5} {v.length:>7} {v.index:>5}  "
                         f"{describe_constant(pool, v.name_index):<6} {describe_constant(pool, v.descriptor_index)}")
        return lines
    if isinstance(info, LocalVariableTypeTableAttribute):
        lines = [f"{indent}LocalVariableTypeTable:", f"{indent}  Start  Length  Slot  Name   Signature"]
        for v in info.local_variable_type_table:
            lines.append(f"{indent}  {v.start_pc:>5} {v.length:>7} {v.index:>5}  "
                         f"{describe_constant(pool, v.name_index):<6} {describe_constant(pool, v.signature_index)}")
        return lines
    if isinstance(info, StackMapTableAttribute):
        lines = [f"{indent}StackMapTable: number_of_entries = {info.number_of_entries}"]
        for frame in info.frames:
            detail = f" /* {frame.kind} */"
            extra = []
            if frame.locals:
                extra.append(f"locals = [ {', '.join(str(t) for t in frame.locals)} ]")
            if frame.stack:
                extra.append(f"stack = [ {', '.join(str(t) for t in frame.stack)} ]")
            lines.append(f"{indent}  frame_type = {frame.frame_type}{detail} offset_delta = {frame.offset_delta}"
                         + (" " + " ".join(extra) if extra else ""))
        if info.stopped_at is not None:
            lines.append(f"{indent}  ... {info.stopped_at}")
        return lines
    if isinstance(info, ConstantValueAttribute):
        return [f"{indent}ConstantValue: {describe_constant(pool, info.constantvalue_index)}"]
    if isinstance(info, ExceptionsAttribute):
        return [f"{indent}Exceptions:"] + [
            f"{indent}  throws {describe_constant(pool, i)}" for i in info.exception_index_table
        ]
    if isinstance(info, SourceFileAttribute):
        return [f'{indent}SourceFile: "{describe_constant(pool, info.sourcefile_index)}"']
    if isinstance(info, SignatureAttribute):
        return [f"{indent}Signature: {describe_constant(pool, info.signature_index)}"]
    if isinstance(info, InnerClassesAttribute):
        lines = [f"{indent}InnerClasses:"]
        for ic in info.classes:
            flags = " ".join(flag_names(ic.inner_class_access_flags, INNER_CLASS_FLAG_NAMES))
            inner = describe_constant(pool, ic.inner_class_info_index)
            outer = describe_constant(pool, ic.outer_class_info_index) if ic.outer_class_info_index else "-"
            name = describe_constant(pool, ic.inner_name_index) if ic.inner_name_index else "<anonymous>"
            prefix = f"{flags} " if flags else ""
            lines.append(f"{indent}  {prefix}{name} = {inner} of {outer}")
        return lines
    if isinstance(info, RuntimeAnnotationsAttribute):
        return [f"{indent}{info.name}:"] + [
            f"{indent}  {describe_constant(pool, a.type_index)}" for a in info.annotations
        ]
    if isinstance(info, (SyntheticAttribute, DeprecatedAttribute)):
        return [f"{indent}{info.name}: true"]
    if isinstance(info, OpaqueAttribute):
        return [f"{indent}{_attribute_name(pool, attr)}: length = {attr.length} (not decoded)"]
    return [f"{indent}{_attribute_name(pool, attr)}: length = {attr.length}"]


def _attribute_name(pool: ConstantPool, attr: Attribute) -> str:
    try:
        return attr.name(pool)
    except ClassFormatError:
        return f"#{attr.name_index}"


def format_class(cf: ClassFile, show_code: bool = False, show_pool: bool = False) -> str:
    pool = cf.constant_pool
    lines = []
    if cf.source_file:
        lines.append(f'Compiled from "{cf.source_file}"')

    flags = [n for n in flag_names(cf.access_flags, CLASS_FLAG_NAMES)
             if n not in ("super", "synthetic")]
    is_interface = "interface" in flags
    keyword = "interface" if is_interface else "class"
    flags = [n for n in flags if n != "interface" and not (is_interface and n == "abstract")]
    header = " ".join(flags + [keyword, _java_name(cf.name)])
    if cf.super_name and not is_interface and cf.super_name != "java/lang/Object":
        header += f" extends {_java_name(cf.super_name)}"
    if cf.interfaces:
        keyword = "extends" if is_interface else "implements"
        header += f" {keyword} " + ", ".join(_java_name(n) for n in cf.interface_names)
    lines.append(header)
    lines.append(f"  minor version: {cf.version.minor}")
    lines.append(f"  major version: {cf.version.major} ({cf.version.java_release})")
    lines.append(f"  flags: ({int(cf.access_flags):#06x}) "
                 + ", ".join(f"ACC_{n.upper()}" for n in flag_names(cf.access_flags, CLASS_FLAG_NAMES)))

    if show_pool:
        lines.extend(format_constant_pool(pool))

    lines.append("{")
    for fld in cf.fields:
        lines.append(f"  {format_member_header(cf, fld, is_method=False)}")
        if show_code:
            for attr in fld.attributes:
                lines.extend(format_attribute(pool, attr, "    "))
        lines.append("")
    for method in cf.methods:
        lines.append(f"  {format_member_header(cf, method, is_method=True)}")
        if show_code:
            for attr in method.attributes:
                lines.extend(format_attribute(pool, attr, "    "))
        lines.append("")
    lines.append("}")

    if show_code:
        for attr in cf.attributes:
            lines.extend(format_attribute(pool, attr, ""))

    for diagnostic in cf.diagnostics:
        lines.append(f"warning: {diagnostic}")
    return "\n".join(lines)


def summarize(cf: ClassFile, label: Optional[str] = None) -> str:
    """One line summary used by the scan command."""
    name = label or _java_name(cf.name)
    return (f"{name}: version {cf.version}, {len(cf.constant_pool)} constants, "
            f"{len(cf.fields)} fields, {len(cf.methods)} methods, "
            f"{len(cf.diagnostics)} diagnostic(s)")
