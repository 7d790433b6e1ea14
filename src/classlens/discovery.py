"""Locate compiled class records on disk for Maven, Gradle and plain layouts."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from pathlib import Path

from classlens.model import ClassRecord

logger = logging.getLogger(__name__)

CLASS_SUFFIX = ".class"

_MAVEN_OUTPUT = Path("target", "classes")
_GRADLE_OUTPUT = Path("build", "classes", "java", "main")

# One include statement per line; it may name several projects.
_INCLUDE_STMT = re.compile(r"^\s*include\b(.*)$", re.MULTILINE)
_QUOTED = re.compile(r"""["']([^"']+)["']""")


def _maven_modules(project_dir: Path) -> list[str]:
    """Module directories listed under <modules> in the root pom.xml."""
    pom_path = project_dir / "pom.xml"
    if not pom_path.is_file():
        return []
    try:
        from jgo.maven import POM
    except ImportError:
        logger.debug("jgo not installed; skipping Maven module discovery")
        return []
    try:
        modules = list(POM(pom_path).values("modules/module"))
    except (OSError, ValueError, KeyError) as e:
        logger.debug("Could not read modules from %s: %s", pom_path, e)
        return []
    logger.debug("Maven modules: %s", modules)
    return modules


def _gradle_includes(project_dir: Path) -> list[str]:
    """Project paths named by include(...) in settings.gradle(.kts).

    ``:core:util`` becomes ``core/util``.
    """
    for name in ("settings.gradle.kts", "settings.gradle"):
        settings_path = project_dir / name
        if not settings_path.is_file():
            continue
        try:
            text = settings_path.read_text()
        except OSError as e:
            logger.debug("Could not read %s: %s", settings_path, e)
            return []
        return [
            project.lstrip(":").replace(":", "/")
            for statement in _INCLUDE_STMT.findall(text)
            for project in _QUOTED.findall(statement)
        ]
    return []


def find_classes_dirs(project_dir: Path) -> list[Path]:
    """Compiled class directories of a Maven or Gradle build.

    Multi-module Maven and multi-project Gradle layouts are tried first, then
    the single-module conventions.  Returns an empty list when nothing has
    been built.
    """
    modules = [project_dir / m for m in _maven_modules(project_dir)]
    subprojects = [project_dir / p for p in _gradle_includes(project_dir)]
    for roots, output in (
        (modules, _MAVEN_OUTPUT),
        ([project_dir], _MAVEN_OUTPUT),
        (subprojects, _GRADLE_OUTPUT),
        ([project_dir], _GRADLE_OUTPUT),
    ):
        found = [root / output for root in roots if (root / output).is_dir()]
        if found:
            return found
    return []


def find_class_files(path: Path) -> list[Path]:
    """All ``.class`` files under *path*, in a stable sorted order.

    *path* may be a single class file, a build project (whose compiled
    output directories are used) or any directory, which is searched
    recursively.  ``module-info.class`` descriptors are skipped.
    """
    if path.is_file():
        return [path] if path.suffix == CLASS_SUFFIX else []
    if not path.is_dir():
        return []

    roots = find_classes_dirs(path) or [path]
    logger.debug("Class roots: %s", [str(r) for r in roots])

    files = [
        f
        for root in roots
        for f in root.rglob(f"*{CLASS_SUFFIX}")
        if f.is_file() and f.name != "module-info.class"
    ]
    return sorted(set(files))


def read_records(files: list[Path], base: Path | None = None) -> Iterator[ClassRecord]:
    """Load each file as a :class:`ClassRecord` labelled by its (relative) path."""
    for f in files:
        label = f
        if base is not None and base.is_dir():
            try:
                label = f.relative_to(base)
            except ValueError:
                pass
        yield ClassRecord(name=label.as_posix(), data=f.read_bytes())
