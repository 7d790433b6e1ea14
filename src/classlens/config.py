"""Analysis settings and their optional project-level overrides."""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Platform and language-runtime packages; references to these never become
# dependency edges.
DEFAULT_EXCLUDE_PREFIXES: tuple[str, ...] = (
    "java.",
    "javax.",
    "jdk.",
    "sun.",
    "com.sun.",
    "kotlin.",
    "scala.",
)


def _default_workers() -> int:
    return min(8, os.cpu_count() or 1)


@dataclass(frozen=True)
class AnalysisConfig:
    """Settings for one analysis run."""

    # Worker processes for per-record extraction; <= 1 runs inline.
    workers: int = field(default_factory=_default_workers)
    # Seconds allowed for the extraction stage; None waits indefinitely.
    timeout: float | None = None
    # Maximum number of methods in an enumerated call chain.
    max_call_depth: int = 5
    # Stop enumerating call chains after this many; None means no cap.
    max_chains: int | None = 10_000
    include_private_methods: bool = True
    exclude_prefixes: tuple[str, ...] = DEFAULT_EXCLUDE_PREFIXES
    # Extra role annotations per component type, e.g. {"SERVICE": ["a.b.Svc"]}.
    extra_annotations: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def is_excluded(self, type_name: str) -> bool:
        """True for platform/library types that are filtered out of graphs."""
        return type_name.startswith(self.exclude_prefixes)

    def with_overrides(self, **overrides: Any) -> AnalysisConfig:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


_FIELD_NAMES = {f.name for f in fields(AnalysisConfig)}


def _from_table(table: dict[str, Any], source: Path) -> AnalysisConfig:
    values: dict[str, Any] = {}
    for key, value in table.items():
        name = key.replace("-", "_")
        if name not in _FIELD_NAMES:
            logger.warning("Ignoring unknown setting %r in %s", key, source)
            continue
        if name == "exclude_prefixes":
            value = tuple(value)
        elif name == "extra_annotations":
            value = {k.upper(): tuple(v) for k, v in value.items()}
        values[name] = value
    return AnalysisConfig(**values)


def load_config(project_dir: Path) -> AnalysisConfig:
    """Read settings from .classlens.toml or [tool.classlens] in pyproject.toml."""
    # Try .classlens.toml first
    classlens_toml = project_dir / ".classlens.toml"
    if classlens_toml.exists():
        try:
            with open(classlens_toml, "rb") as f:
                data = tomllib.load(f)
            return _from_table(data.get("classlens", {}), classlens_toml)
        except (OSError, tomllib.TOMLDecodeError, TypeError, AttributeError) as e:
            logger.warning("Could not read %s: %s", classlens_toml, e)

    # Fall back to [tool.classlens] in pyproject.toml
    pyproject = project_dir / "pyproject.toml"
    if pyproject.exists():
        try:
            with open(pyproject, "rb") as f:
                data = tomllib.load(f)
            table = data.get("tool", {}).get("classlens")
            if table is not None:
                return _from_table(table, pyproject)
        except (OSError, tomllib.TOMLDecodeError, TypeError, AttributeError) as e:
            logger.warning("Could not read %s: %s", pyproject, e)

    return AnalysisConfig()
