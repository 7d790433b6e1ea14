"""Exception types raised by the analysis pipeline."""

from __future__ import annotations


class ClassLensError(Exception):
    """Base class for all classlens errors."""


class ParsingError(ClassLensError):
    """A class record header is missing, truncated, or not a class file."""


class AnalysisError(ClassLensError):
    """A class record has a valid header but its structure cannot be decoded."""


class PipelineTimeoutError(ClassLensError):
    """The extraction stage did not finish within the configured timeout."""
