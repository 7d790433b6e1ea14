"""Low-level decoding of the class-file structure.

Only the parts needed for metadata extraction are interpreted: the constant
pool, member tables, and a handful of attributes (annotations, ``Code`` with
its line-number and local-variable tables, ``MethodParameters``,
``Exceptions``, ``SourceFile``, ``Record``).  Every other attribute is skipped
by its declared length.

All structural problems surface as :class:`AnalysisError`.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any

from classlens.bytecode.descriptors import field_type, internal_to_java
from classlens.errors import AnalysisError

# Constant pool tags.
CONSTANT_UTF8 = 1
CONSTANT_INTEGER = 3
CONSTANT_FLOAT = 4
CONSTANT_LONG = 5
CONSTANT_DOUBLE = 6
CONSTANT_CLASS = 7
CONSTANT_STRING = 8
CONSTANT_FIELDREF = 9
CONSTANT_METHODREF = 10
CONSTANT_INTERFACE_METHODREF = 11
CONSTANT_NAME_AND_TYPE = 12
CONSTANT_METHOD_HANDLE = 15
CONSTANT_METHOD_TYPE = 16
CONSTANT_DYNAMIC = 17
CONSTANT_INVOKE_DYNAMIC = 18
CONSTANT_MODULE = 19
CONSTANT_PACKAGE = 20

# Invocation opcodes.
INVOKEVIRTUAL = 0xB6
INVOKESPECIAL = 0xB7
INVOKESTATIC = 0xB8
INVOKEINTERFACE = 0xB9
INVOKEDYNAMIC = 0xBA

_TABLESWITCH = 0xAA
_LOOKUPSWITCH = 0xAB
_WIDE = 0xC4
_IINC = 0x84


def _build_opcode_lengths() -> list[int | None]:
    """Fixed instruction lengths (opcode byte included); 0 marks switches/wide."""
    lengths: list[int | None] = [None] * 256
    for op in range(0x00, 0x10):  # nop .. dconst_1
        lengths[op] = 1
    lengths[0x10] = 2  # bipush
    lengths[0x11] = 3  # sipush
    lengths[0x12] = 2  # ldc
    lengths[0x13] = 3  # ldc_w
    lengths[0x14] = 3  # ldc2_w
    for op in range(0x15, 0x1A):  # iload .. aload
        lengths[op] = 2
    for op in range(0x1A, 0x36):  # *load_n, *aload
        lengths[op] = 1
    for op in range(0x36, 0x3B):  # istore .. astore
        lengths[op] = 2
    for op in range(0x3B, 0x84):  # *store_n .. lxor
        lengths[op] = 1
    lengths[_IINC] = 3
    for op in range(0x85, 0x99):  # conversions, comparisons
        lengths[op] = 1
    for op in range(0x99, 0xA9):  # if*, goto, jsr
        lengths[op] = 3
    lengths[0xA9] = 2  # ret
    lengths[_TABLESWITCH] = 0
    lengths[_LOOKUPSWITCH] = 0
    for op in range(0xAC, 0xB2):  # returns
        lengths[op] = 1
    for op in range(0xB2, 0xB9):  # field access, invokevirtual/special/static
        lengths[op] = 3
    lengths[INVOKEINTERFACE] = 5
    lengths[INVOKEDYNAMIC] = 5
    lengths[0xBB] = 3  # new
    lengths[0xBC] = 2  # newarray
    lengths[0xBD] = 3  # anewarray
    lengths[0xBE] = 1  # arraylength
    lengths[0xBF] = 1  # athrow
    lengths[0xC0] = 3  # checkcast
    lengths[0xC1] = 3  # instanceof
    lengths[0xC2] = 1  # monitorenter
    lengths[0xC3] = 1  # monitorexit
    lengths[_WIDE] = 0
    lengths[0xC5] = 4  # multianewarray
    lengths[0xC6] = 3  # ifnull
    lengths[0xC7] = 3  # ifnonnull
    lengths[0xC8] = 5  # goto_w
    lengths[0xC9] = 5  # jsr_w
    lengths[0xCA] = 1  # breakpoint
    lengths[0xFE] = 1  # impdep1
    lengths[0xFF] = 1  # impdep2
    return lengths


_OPCODE_LENGTHS = _build_opcode_lengths()


class ByteCursor:
    """Big-endian reader over a bytes buffer with bounds checking."""

    _U2 = struct.Struct(">H")
    _U4 = struct.Struct(">I")
    _S4 = struct.Struct(">i")

    def __init__(self, data: bytes, offset: int = 0, what: str = "class record"):
        self.data = data
        self.pos = offset
        self.what = what

    def _require(self, n: int) -> None:
        if n < 0 or self.pos + n > len(self.data):
            raise AnalysisError(
                f"truncated {self.what}: need {n} bytes at offset {self.pos}, "
                f"have {len(self.data) - self.pos}"
            )

    def u1(self) -> int:
        self._require(1)
        value = self.data[self.pos]
        self.pos += 1
        return value

    def u2(self) -> int:
        self._require(2)
        (value,) = self._U2.unpack_from(self.data, self.pos)
        self.pos += 2
        return value

    def u4(self) -> int:
        self._require(4)
        (value,) = self._U4.unpack_from(self.data, self.pos)
        self.pos += 4
        return value

    def s4(self) -> int:
        self._require(4)
        (value,) = self._S4.unpack_from(self.data, self.pos)
        self.pos += 4
        return value

    def read(self, n: int) -> bytes:
        self._require(n)
        chunk = self.data[self.pos : self.pos + n]
        self.pos += n
        return chunk

    def skip(self, n: int) -> None:
        self._require(n)
        self.pos += n

    def at_end(self) -> bool:
        return self.pos >= len(self.data)


def decode_modified_utf8(raw: bytes) -> str:
    """Decode the JVM's modified UTF-8 (``C0 80`` nulls, surrogate pairs)."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        pass
    try:
        text = raw.replace(b"\xc0\x80", b"\x00").decode("utf-8", "surrogatepass")
        return text.encode("utf-16", "surrogatepass").decode("utf-16")
    except UnicodeError as e:
        raise AnalysisError(f"invalid modified UTF-8 constant: {e}") from e


class ConstantPool:
    """Decoded constant pool; index 0 and the upper half of wide slots are None."""

    def __init__(self, entries: list[tuple | None]):
        self.entries = entries

    def __len__(self) -> int:
        return len(self.entries)

    def entry(self, index: int, *tags: int) -> tuple:
        if index <= 0 or index >= len(self.entries) or self.entries[index] is None:
            raise AnalysisError(f"invalid constant pool index {index}")
        value = self.entries[index]
        if tags and value[0] not in tags:
            raise AnalysisError(
                f"constant pool entry {index} has tag {value[0]}, expected one of {tags}"
            )
        return value

    def utf8(self, index: int) -> str:
        return self.entry(index, CONSTANT_UTF8)[1]

    def class_name(self, index: int) -> str:
        """Return the Java name of a CONSTANT_Class entry."""
        return internal_to_java(self.utf8(self.entry(index, CONSTANT_CLASS)[1]))

    def name_and_type(self, index: int) -> tuple[str, str]:
        _, name_index, desc_index = self.entry(index, CONSTANT_NAME_AND_TYPE)
        return self.utf8(name_index), self.utf8(desc_index)

    def member_ref(self, index: int) -> tuple[str, str, str]:
        """Return (owner, name, descriptor) of a field or method reference."""
        _, class_index, nat_index = self.entry(
            index, CONSTANT_FIELDREF, CONSTANT_METHODREF, CONSTANT_INTERFACE_METHODREF
        )
        name, desc = self.name_and_type(nat_index)
        return self.class_name(class_index), name, desc

    def invoke_dynamic(self, index: int) -> tuple[str, str]:
        _, _bootstrap, nat_index = self.entry(index, CONSTANT_INVOKE_DYNAMIC)
        return self.name_and_type(nat_index)

    def constant_value(self, index: int) -> Any:
        """Return a loadable constant (number or string) for annotation values."""
        value = self.entry(index)
        tag = value[0]
        if tag in (CONSTANT_INTEGER, CONSTANT_FLOAT, CONSTANT_LONG, CONSTANT_DOUBLE):
            return value[1]
        if tag == CONSTANT_UTF8:
            return value[1]
        if tag == CONSTANT_STRING:
            return self.utf8(value[1])
        raise AnalysisError(f"constant pool entry {index} is not a constant value")


def read_constant_pool(cursor: ByteCursor) -> ConstantPool:
    count = cursor.u2()
    if count == 0:
        raise AnalysisError("constant pool count is zero")
    entries: list[tuple | None] = [None] * count
    i = 1
    while i < count:
        tag = cursor.u1()
        if tag == CONSTANT_UTF8:
            length = cursor.u2()
            entries[i] = (tag, decode_modified_utf8(cursor.read(length)))
        elif tag == CONSTANT_INTEGER:
            entries[i] = (tag, struct.unpack(">i", cursor.read(4))[0])
        elif tag == CONSTANT_FLOAT:
            entries[i] = (tag, struct.unpack(">f", cursor.read(4))[0])
        elif tag == CONSTANT_LONG:
            entries[i] = (tag, struct.unpack(">q", cursor.read(8))[0])
        elif tag == CONSTANT_DOUBLE:
            entries[i] = (tag, struct.unpack(">d", cursor.read(8))[0])
        elif tag in (
            CONSTANT_CLASS,
            CONSTANT_STRING,
            CONSTANT_METHOD_TYPE,
            CONSTANT_MODULE,
            CONSTANT_PACKAGE,
        ):
            entries[i] = (tag, cursor.u2())
        elif tag in (
            CONSTANT_FIELDREF,
            CONSTANT_METHODREF,
            CONSTANT_INTERFACE_METHODREF,
            CONSTANT_NAME_AND_TYPE,
            CONSTANT_DYNAMIC,
            CONSTANT_INVOKE_DYNAMIC,
        ):
            entries[i] = (tag, cursor.u2(), cursor.u2())
        elif tag == CONSTANT_METHOD_HANDLE:
            entries[i] = (tag, cursor.u1(), cursor.u2())
        else:
            raise AnalysisError(f"unknown constant pool tag {tag} at index {i}")
        # Long and Double take two slots.
        i += 2 if tag in (CONSTANT_LONG, CONSTANT_DOUBLE) else 1
    return ConstantPool(entries)


@dataclass
class RawMember:
    """A field_info or method_info entry."""

    access_flags: int
    name: str
    descriptor: str
    attributes: dict[str, bytes] = field(default_factory=dict)


@dataclass
class RawClass:
    minor_version: int
    major_version: int
    pool: ConstantPool
    access_flags: int
    this_class: str
    super_class: str | None
    interfaces: list[str]
    fields: list[RawMember]
    methods: list[RawMember]
    attributes: dict[str, bytes]


def _read_attributes(cursor: ByteCursor, pool: ConstantPool) -> dict[str, bytes]:
    attributes: dict[str, bytes] = {}
    for _ in range(cursor.u2()):
        name = pool.utf8(cursor.u2())
        length = cursor.u4()
        # First occurrence wins if an attribute is repeated.
        attributes.setdefault(name, cursor.read(length))
    return attributes


def _read_members(cursor: ByteCursor, pool: ConstantPool) -> list[RawMember]:
    members: list[RawMember] = []
    for _ in range(cursor.u2()):
        access = cursor.u2()
        name = pool.utf8(cursor.u2())
        descriptor = pool.utf8(cursor.u2())
        members.append(
            RawMember(access, name, descriptor, _read_attributes(cursor, pool))
        )
    return members


def parse_class_file(data: bytes) -> RawClass:
    """Decode the structure of a class record whose header is already valid."""
    cursor = ByteCursor(data, offset=4)  # magic already checked
    minor = cursor.u2()
    major = cursor.u2()
    pool = read_constant_pool(cursor)

    access = cursor.u2()
    this_class = pool.class_name(cursor.u2())
    super_index = cursor.u2()
    super_class = pool.class_name(super_index) if super_index else None
    interfaces = [pool.class_name(cursor.u2()) for _ in range(cursor.u2())]

    fields = _read_members(cursor, pool)
    methods = _read_members(cursor, pool)
    attributes = _read_attributes(cursor, pool)

    return RawClass(
        minor_version=minor,
        major_version=major,
        pool=pool,
        access_flags=access,
        this_class=this_class,
        super_class=super_class,
        interfaces=interfaces,
        fields=fields,
        methods=methods,
        attributes=attributes,
    )


# ---------------------------------------------------------------------------
# Attribute decoders
# ---------------------------------------------------------------------------


# Nested arrays and annotations deeper than this are rejected.
MAX_ELEMENT_DEPTH = 64


def _read_element_value(cursor: ByteCursor, pool: ConstantPool, depth: int = 0) -> Any:
    if depth > MAX_ELEMENT_DEPTH:
        raise AnalysisError(f"annotation element values nested deeper than {MAX_ELEMENT_DEPTH}")
    tag = chr(cursor.u1())
    if tag in "BCDFIJSZs":
        value = pool.constant_value(cursor.u2())
        if tag == "Z":
            return bool(value)
        if tag == "C" and isinstance(value, int):
            if not 0 <= value <= 0xFFFF:
                raise AnalysisError(f"char element value {value} out of range")
            return chr(value)
        return value
    if tag == "e":
        enum_type = field_type(pool.utf8(cursor.u2()))
        const_name = pool.utf8(cursor.u2())
        return f"{enum_type}.{const_name}"
    if tag == "c":
        return field_type(pool.utf8(cursor.u2()))
    if tag == "@":
        _, values = _read_annotation(cursor, pool, depth + 1)
        return values
    if tag == "[":
        return [_read_element_value(cursor, pool, depth + 1) for _ in range(cursor.u2())]
    raise AnalysisError(f"unknown annotation element tag {tag!r}")


def _read_annotation(
    cursor: ByteCursor, pool: ConstantPool, depth: int = 0
) -> tuple[str, dict[str, Any]]:
    type_name = field_type(pool.utf8(cursor.u2()))
    values: dict[str, Any] = {}
    for _ in range(cursor.u2()):
        name = pool.utf8(cursor.u2())
        values[name] = _read_element_value(cursor, pool, depth)
    return type_name, values


def decode_annotations(
    attributes: dict[str, bytes], pool: ConstantPool
) -> dict[str, dict[str, Any]]:
    """Decode visible and invisible annotations into {type name: values}."""
    annotations: dict[str, dict[str, Any]] = {}
    for attr_name in ("RuntimeVisibleAnnotations", "RuntimeInvisibleAnnotations"):
        raw = attributes.get(attr_name)
        if raw is None:
            continue
        cursor = ByteCursor(raw, what=attr_name)
        for _ in range(cursor.u2()):
            type_name, values = _read_annotation(cursor, pool)
            annotations.setdefault(type_name, values)
    return annotations


def decode_source_file(attributes: dict[str, bytes], pool: ConstantPool) -> str | None:
    raw = attributes.get("SourceFile")
    if raw is None:
        return None
    return pool.utf8(ByteCursor(raw, what="SourceFile").u2())


def decode_exceptions(attributes: dict[str, bytes], pool: ConstantPool) -> list[str]:
    raw = attributes.get("Exceptions")
    if raw is None:
        return []
    cursor = ByteCursor(raw, what="Exceptions")
    return [pool.class_name(cursor.u2()) for _ in range(cursor.u2())]


def decode_method_parameters(
    attributes: dict[str, bytes], pool: ConstantPool
) -> list[str | None]:
    """Names from the MethodParameters attribute (None for unnamed entries)."""
    raw = attributes.get("MethodParameters")
    if raw is None:
        return []
    cursor = ByteCursor(raw, what="MethodParameters")
    names: list[str | None] = []
    for _ in range(cursor.u1()):
        name_index = cursor.u2()
        cursor.u2()  # access flags
        names.append(pool.utf8(name_index) if name_index else None)
    return names


@dataclass(frozen=True)
class Invocation:
    pc: int
    opcode: int
    owner: str
    name: str
    descriptor: str


@dataclass
class CodeInfo:
    invocations: list[Invocation] = field(default_factory=list)
    # (start_pc, line_number), sorted by start_pc
    line_numbers: list[tuple[int, int]] = field(default_factory=list)
    # slot index -> variable name, for variables live from pc 0
    local_names: dict[int, str] = field(default_factory=dict)

    def line_at(self, pc: int) -> int | None:
        line = None
        for start_pc, number in self.line_numbers:
            if start_pc > pc:
                break
            line = number
        return line


def _scan_instructions(code: bytes, pool: ConstantPool) -> list[Invocation]:
    invocations: list[Invocation] = []
    cursor = ByteCursor(code, what="Code")
    while not cursor.at_end():
        pc = cursor.pos
        opcode = cursor.u1()
        length = _OPCODE_LENGTHS[opcode]
        if length is None:
            raise AnalysisError(f"invalid opcode 0x{opcode:02x} at pc {pc}")

        if opcode in (INVOKEVIRTUAL, INVOKESPECIAL, INVOKESTATIC, INVOKEINTERFACE):
            owner, name, desc = pool.member_ref(cursor.u2())
            invocations.append(Invocation(pc, opcode, owner, name, desc))
            cursor.skip(length - 3)
        elif opcode == INVOKEDYNAMIC:
            name, desc = pool.invoke_dynamic(cursor.u2())
            invocations.append(
                Invocation(pc, opcode, "java.lang.invoke.LambdaMetafactory", name, desc)
            )
            cursor.skip(2)
        elif opcode == _TABLESWITCH:
            cursor.skip((4 - (pc + 1) % 4) % 4)
            cursor.s4()  # default
            low = cursor.s4()
            high = cursor.s4()
            if high < low:
                raise AnalysisError(f"tableswitch with high < low at pc {pc}")
            cursor.skip((high - low + 1) * 4)
        elif opcode == _LOOKUPSWITCH:
            cursor.skip((4 - (pc + 1) % 4) % 4)
            cursor.s4()  # default
            npairs = cursor.s4()
            if npairs < 0:
                raise AnalysisError(f"lookupswitch with negative pair count at pc {pc}")
            cursor.skip(npairs * 8)
        elif opcode == _WIDE:
            modified = cursor.u1()
            cursor.skip(4 if modified == _IINC else 2)
        else:
            cursor.skip(length - 1)
    return invocations


def decode_code(attributes: dict[str, bytes], pool: ConstantPool) -> CodeInfo | None:
    """Decode a method's Code attribute; None for abstract and native methods."""
    raw = attributes.get("Code")
    if raw is None:
        return None
    cursor = ByteCursor(raw, what="Code attribute")
    cursor.u2()  # max_stack
    cursor.u2()  # max_locals
    code = cursor.read(cursor.u4())
    cursor.skip(cursor.u2() * 8)  # exception table
    nested = _read_attributes(cursor, pool)

    info = CodeInfo(invocations=_scan_instructions(code, pool))

    raw_lines = nested.get("LineNumberTable")
    if raw_lines is not None:
        lines = ByteCursor(raw_lines, what="LineNumberTable")
        info.line_numbers = sorted(
            (lines.u2(), lines.u2()) for _ in range(lines.u2())
        )

    raw_locals = nested.get("LocalVariableTable")
    if raw_locals is not None:
        lvt = ByteCursor(raw_locals, what="LocalVariableTable")
        for _ in range(lvt.u2()):
            start_pc = lvt.u2()
            lvt.u2()  # length
            name = pool.utf8(lvt.u2())
            lvt.u2()  # descriptor
            index = lvt.u2()
            if start_pc == 0:
                info.local_names.setdefault(index, name)

    return info
