"""Class record header validation and platform version labels."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from classlens.errors import ParsingError

CLASS_MAGIC = 0xCAFEBABE

# magic (u4) + minor_version (u2) + major_version (u2)
HEADER_LENGTH = 8

_HEADER = struct.Struct(">IHH")

_VERSION_LABELS = {
    45: "Platform 1.1",
    46: "Platform 1.2",
    47: "Platform 1.3",
    48: "Platform 1.4",
    49: "Platform 5",
    50: "Platform 6",
    51: "Platform 7",
    52: "Platform 8",
    53: "Platform 9",
    54: "Platform 10",
    55: "Platform 11",
    56: "Platform 12",
    57: "Platform 13",
    58: "Platform 14",
    59: "Platform 15",
    60: "Platform 16",
    61: "Platform 17",
    62: "Platform 18",
    63: "Platform 19",
    64: "Platform 20",
    65: "Platform 21",
    66: "Platform 22",
}


@dataclass(frozen=True)
class RecordHeader:
    magic: int
    minor_version: int
    major_version: int

    @property
    def is_valid(self) -> bool:
        return self.magic == CLASS_MAGIC

    @property
    def platform(self) -> str:
        return format_version(self.major_version)


def read_header(data: bytes | None) -> RecordHeader:
    """Decode the fixed header of a class record.

    Raises :class:`ParsingError` only when fewer than ``HEADER_LENGTH`` bytes
    are available; a wrong magic number is reported through
    :attr:`RecordHeader.is_valid`.
    """
    if data is None or len(data) < HEADER_LENGTH:
        size = 0 if data is None else len(data)
        raise ParsingError(
            f"class record is {size} bytes, shorter than the {HEADER_LENGTH}-byte header"
        )
    magic, minor, major = _HEADER.unpack_from(data, 0)
    return RecordHeader(magic=magic, minor_version=minor, major_version=major)


def validate(data: bytes | None) -> bool:
    """Return True if *data* starts with the class magic and a version header."""
    try:
        return read_header(data).is_valid
    except ParsingError:
        return False


def format_version(major_version: int) -> str:
    """Map a class-file major version to a platform release label."""
    label = _VERSION_LABELS.get(major_version)
    if label is not None:
        return label
    return f"Platform {major_version - 44}"
