"""Convert JVM type descriptors into readable Java type names."""

from __future__ import annotations

from classlens.errors import AnalysisError

_PRIMITIVES = {
    "B": "byte",
    "C": "char",
    "D": "double",
    "F": "float",
    "I": "int",
    "J": "long",
    "S": "short",
    "Z": "boolean",
    "V": "void",
}


def internal_to_java(name: str) -> str:
    """``java/util/List`` -> ``java.util.List``; array class names are decoded."""
    if name.startswith("["):
        return field_type(name)
    return name.replace("/", ".")


def _read_type(desc: str, i: int) -> tuple[str, int]:
    """Read one type starting at *desc[i]*; return (java name, next index)."""
    array_depth = 0
    while i < len(desc) and desc[i] == "[":
        array_depth += 1
        i += 1

    if i >= len(desc):
        raise AnalysisError(f"truncated descriptor: {desc!r}")

    c = desc[i]
    if c == "L":
        end = desc.find(";", i)
        if end == -1:
            raise AnalysisError(f"unterminated class type in descriptor: {desc!r}")
        name = desc[i + 1 : end].replace("/", ".")
        i = end + 1
    elif c in _PRIMITIVES:
        name = _PRIMITIVES[c]
        i += 1
    else:
        raise AnalysisError(f"bad descriptor character {c!r} in {desc!r}")

    return name + "[]" * array_depth, i


def field_type(desc: str) -> str:
    """Decode a field descriptor such as ``[Ljava/lang/String;``."""
    name, end = _read_type(desc, 0)
    if end != len(desc):
        raise AnalysisError(f"trailing data in field descriptor: {desc!r}")
    return name


def method_types(desc: str) -> tuple[list[str], str]:
    """Decode a method descriptor into (parameter types, return type).

    Examples:
        (I)D -> (["int"], "double")
        (Ljava/lang/String;[I)V -> (["java.lang.String", "int[]"], "void")
    """
    if not desc.startswith("("):
        raise AnalysisError(f"method descriptor must start with '(': {desc!r}")
    close = desc.find(")")
    if close == -1:
        raise AnalysisError(f"method descriptor has no ')': {desc!r}")

    params: list[str] = []
    i = 1
    while i < close:
        name, i = _read_type(desc, i)
        params.append(name)
    if i != close:
        raise AnalysisError(f"malformed parameter list in descriptor: {desc!r}")

    return_type = field_type(desc[close + 1 :])
    return params, return_type


def slot_size(java_type: str) -> int:
    """Local-variable slots taken by a value of *java_type*."""
    return 2 if java_type in ("long", "double") else 1
