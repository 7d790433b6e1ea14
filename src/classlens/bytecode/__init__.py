"""Class-record decoding: header checks and metadata extraction."""

from __future__ import annotations

from classlens.bytecode.extractor import MetadataExtractor, extract_class
from classlens.bytecode.reader import (
    CLASS_MAGIC,
    HEADER_LENGTH,
    RecordHeader,
    format_version,
    read_header,
    validate,
)

__all__ = [
    "CLASS_MAGIC",
    "HEADER_LENGTH",
    "MetadataExtractor",
    "RecordHeader",
    "extract_class",
    "format_version",
    "read_header",
    "validate",
]
