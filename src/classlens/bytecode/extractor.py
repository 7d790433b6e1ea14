"""Turn one raw class record into a :class:`ClassMetadata` value."""

from __future__ import annotations

import logging

from classlens.bytecode.classfile import (
    CodeInfo,
    RawClass,
    RawMember,
    decode_annotations,
    decode_code,
    decode_exceptions,
    decode_method_parameters,
    decode_source_file,
    parse_class_file,
)
from classlens.bytecode.descriptors import field_type, method_types, slot_size
from classlens.bytecode.reader import read_header
from classlens.errors import AnalysisError, ParsingError
from classlens.model import (
    ClassMetadata,
    ClassType,
    FieldMetadata,
    MethodCall,
    MethodMetadata,
    ParameterInfo,
)

logger = logging.getLogger(__name__)

ACC_PUBLIC = 0x0001
ACC_PRIVATE = 0x0002
ACC_PROTECTED = 0x0004
ACC_STATIC = 0x0008
ACC_FINAL = 0x0010
ACC_SYNCHRONIZED = 0x0020
ACC_VOLATILE = 0x0040
ACC_TRANSIENT = 0x0080
ACC_NATIVE = 0x0100
ACC_INTERFACE = 0x0200
ACC_ABSTRACT = 0x0400
ACC_STRICT = 0x0800
ACC_ANNOTATION = 0x2000
ACC_ENUM = 0x4000
ACC_MODULE = 0x8000

# The same bit means different things on classes, fields and methods
# (0x0040 is volatile on a field but bridge on a method).
_CLASS_MODIFIERS = [
    (ACC_PUBLIC, "public"),
    (ACC_FINAL, "final"),
    (ACC_ABSTRACT, "abstract"),
]
_FIELD_MODIFIERS = [
    (ACC_PUBLIC, "public"),
    (ACC_PRIVATE, "private"),
    (ACC_PROTECTED, "protected"),
    (ACC_STATIC, "static"),
    (ACC_FINAL, "final"),
    (ACC_VOLATILE, "volatile"),
    (ACC_TRANSIENT, "transient"),
]
_METHOD_MODIFIERS = [
    (ACC_PUBLIC, "public"),
    (ACC_PRIVATE, "private"),
    (ACC_PROTECTED, "protected"),
    (ACC_STATIC, "static"),
    (ACC_FINAL, "final"),
    (ACC_SYNCHRONIZED, "synchronized"),
    (ACC_NATIVE, "native"),
    (ACC_ABSTRACT, "abstract"),
    (ACC_STRICT, "strictfp"),
]


def _modifiers(access: int, table: list[tuple[int, str]]) -> tuple[str, ...]:
    return tuple(name for flag, name in table if access & flag)


def _class_type(raw: RawClass) -> ClassType:
    access = raw.access_flags
    if access & ACC_ANNOTATION:
        return ClassType.ANNOTATION
    if access & ACC_INTERFACE:
        return ClassType.INTERFACE
    if access & ACC_ENUM:
        return ClassType.ENUM
    if "Record" in raw.attributes or raw.super_class == "java.lang.Record":
        return ClassType.RECORD
    return ClassType.CLASS


def _split_name(fqn: str) -> tuple[str, str]:
    """Return (package, simple name); inner classes keep their ``$``."""
    if "." in fqn:
        package, simple = fqn.rsplit(".", 1)
        return package, simple
    return "", fqn


def _parameter_names(
    member: RawMember,
    raw: RawClass,
    param_types: list[str],
    code: CodeInfo | None,
) -> list[str]:
    """Best-effort parameter names: MethodParameters, then LocalVariableTable."""
    names = [f"arg{i}" for i in range(len(param_types))]

    declared = decode_method_parameters(member.attributes, raw.pool)
    if len(declared) == len(param_types):
        for i, name in enumerate(declared):
            if name:
                names[i] = name
        return names

    if code is None or not code.local_names:
        return names

    # Slot 0 holds `this` for instance methods; long and double take two slots.
    slot = 0 if member.access_flags & ACC_STATIC else 1
    for i, java_type in enumerate(param_types):
        name = code.local_names.get(slot)
        if name:
            names[i] = name
        slot += slot_size(java_type)
    return names


def _extract_field(member: RawMember, raw: RawClass) -> FieldMetadata:
    access = member.access_flags
    return FieldMetadata(
        field_name=member.name,
        type=field_type(member.descriptor),
        access_modifiers=_modifiers(access, _FIELD_MODIFIERS),
        annotations=tuple(decode_annotations(member.attributes, raw.pool)),
        is_static=bool(access & ACC_STATIC),
        is_final=bool(access & ACC_FINAL),
        is_volatile=bool(access & ACC_VOLATILE),
        is_transient=bool(access & ACC_TRANSIENT),
    )


def _extract_method(member: RawMember, raw: RawClass) -> MethodMetadata:
    access = member.access_flags
    param_types, return_type = method_types(member.descriptor)
    code = decode_code(member.attributes, raw.pool)
    names = _parameter_names(member, raw, param_types, code)

    invocations: tuple[MethodCall, ...] = ()
    if code is not None:
        invocations = tuple(
            MethodCall(
                owner_class=inv.owner,
                method_name=inv.name,
                descriptor=inv.descriptor,
                line_number=code.line_at(inv.pc),
            )
            for inv in code.invocations
        )

    annotation_values = decode_annotations(member.attributes, raw.pool)
    return MethodMetadata(
        method_name=member.name,
        return_type=return_type,
        parameters=tuple(
            ParameterInfo(name=names[i], type=t, index=i)
            for i, t in enumerate(param_types)
        ),
        access_modifiers=_modifiers(access, _METHOD_MODIFIERS),
        annotations=tuple(annotation_values),
        invocations=invocations,
        is_static=bool(access & ACC_STATIC),
        is_abstract=bool(access & ACC_ABSTRACT),
        descriptor=member.descriptor,
        exceptions=tuple(decode_exceptions(member.attributes, raw.pool)),
        annotation_values=annotation_values,
    )


def _build(raw: RawClass, include_private_methods: bool) -> ClassMetadata:
    fqn = raw.this_class
    package, simple = _split_name(fqn)

    methods = [
        _extract_method(m, raw)
        for m in raw.methods
        if include_private_methods or not m.access_flags & ACC_PRIVATE
    ]
    fields = [_extract_field(f, raw) for f in raw.fields]
    annotation_values = decode_annotations(raw.attributes, raw.pool)

    return ClassMetadata(
        fully_qualified_name=fqn,
        class_name=simple,
        package_name=package,
        class_type=_class_type(raw),
        super_class_name=raw.super_class,
        interfaces=tuple(dict.fromkeys(raw.interfaces)),
        annotations=tuple(annotation_values),
        access_modifiers=_modifiers(raw.access_flags, _CLASS_MODIFIERS),
        fields=tuple(fields),
        methods=tuple(methods),
        is_abstract=bool(raw.access_flags & ACC_ABSTRACT),
        source_file=decode_source_file(raw.attributes, raw.pool),
        major_version=raw.major_version,
        minor_version=raw.minor_version,
        annotation_values=annotation_values,
    )


def extract_class(data: bytes, include_private_methods: bool = True) -> ClassMetadata:
    """Decode a complete class record.

    Raises :class:`ParsingError` if the header is short or the magic number is
    wrong, and :class:`AnalysisError` if anything past the header is
    inconsistent.
    """
    header = read_header(data)
    if not header.is_valid:
        raise ParsingError(f"bad magic number 0x{header.magic:08X}")

    try:
        raw = parse_class_file(data)
        if raw.access_flags & ACC_MODULE:
            raise AnalysisError(f"{raw.this_class} is a module descriptor, not a type")
        metadata = _build(raw, include_private_methods)
    except (IndexError, ValueError, RecursionError) as e:
        # Anything the cursor checks did not already turn into AnalysisError.
        raise AnalysisError(f"malformed class structure: {e}") from e

    logger.debug(
        "Extracted %s (%s): %d fields, %d methods",
        metadata.fully_qualified_name,
        metadata.class_type.value,
        len(metadata.fields),
        len(metadata.methods),
    )
    return metadata


class MetadataExtractor:
    """Extract :class:`ClassMetadata` from raw class records.

    Instances hold only options, so they can be shipped to worker processes.
    """

    def __init__(self, include_private_methods: bool = True):
        self.include_private_methods = include_private_methods

    def extract(self, data: bytes) -> ClassMetadata:
        return extract_class(data, self.include_private_methods)
