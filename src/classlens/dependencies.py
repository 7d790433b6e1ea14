"""Class-level dependency graph over the classes of one archive."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from classlens.analysis import find_cycles, inheritance_depths
from classlens.config import DEFAULT_EXCLUDE_PREFIXES
from classlens.model import (
    ClassMetadata,
    DependencyEdge,
    DependencyGraph,
    EdgeReason,
)

logger = logging.getLogger(__name__)

DEFAULT_PACKAGE = "(default)"


@dataclass(frozen=True)
class GraphMetrics:
    node_count: int
    edge_count: int
    density: float
    highly_connected: tuple[str, ...]
    orphans: tuple[str, ...]
    circular_dependencies: int


def normalize_type(type_name: str) -> str:
    """Strip array suffixes and generic arguments from a declared type name."""
    type_name = type_name.replace("[]", "")
    generic = type_name.find("<")
    if generic > 0:
        type_name = type_name[:generic]
    return type_name


def package_of(fqn: str) -> str:
    if "." in fqn:
        return fqn.rsplit(".", 1)[0]
    return DEFAULT_PACKAGE


def _references(cls: ClassMetadata) -> Iterator[tuple[str, EdgeReason]]:
    if cls.super_class_name:
        yield cls.super_class_name, EdgeReason.SUPERTYPE
    for iface in cls.interfaces:
        yield iface, EdgeReason.INTERFACE
    for f in cls.fields:
        yield f.type, EdgeReason.FIELD
    for m in cls.methods:
        for p in m.parameters:
            yield p.type, EdgeReason.PARAMETER
        yield m.return_type, EdgeReason.RETURN


class DependencyGraphBuilder:
    """Build :class:`DependencyGraph` values from extracted class metadata.

    Only references to classes that are themselves part of the input become
    edges.  Names starting with one of *exclude_prefixes* are dropped before
    that check, so platform types never appear even if the archive happens to
    bundle them.
    """

    def __init__(self, exclude_prefixes: Sequence[str] = DEFAULT_EXCLUDE_PREFIXES):
        self.exclude_prefixes = tuple(exclude_prefixes)

    def is_excluded(self, type_name: str) -> bool:
        return type_name.startswith(self.exclude_prefixes)

    def build(self, classes: Iterable[ClassMetadata]) -> DependencyGraph:
        classes = list(classes)
        by_name = {c.fully_qualified_name: c for c in classes}
        known = {name for name in by_name if not self.is_excluded(name)}

        edges: set[DependencyEdge] = set()
        for cls in classes:
            source = cls.fully_qualified_name
            if source not in known:
                continue
            for ref, reason in _references(cls):
                target = normalize_type(ref)
                if target in known:
                    edges.add(DependencyEdge(source, target, reason))

        targets: dict[str, set[str]] = {name: set() for name in known}
        for edge in edges:
            targets[edge.source].add(edge.target)
        adjacency = {name: tuple(sorted(t)) for name, t in sorted(targets.items())}

        superclasses = {
            name: by_name[name].super_class_name
            for name in sorted(known)
        }
        depths = inheritance_depths(superclasses)
        cycles = find_cycles(adjacency)

        graph = DependencyGraph(
            nodes=tuple(sorted(known)),
            edges=frozenset(edges),
            adjacency=adjacency,
            inheritance_depth=dict(sorted(depths.items())),
            cycles=tuple(tuple(group) for group in cycles),
        )
        logger.info(
            "Dependency graph: %d classes, %d edges, %d cycle group(s)",
            len(graph.nodes),
            len(edges),
            graph.circular_dependencies,
        )
        for group in graph.cycles:
            logger.debug("Dependency cycle: %s", " -> ".join(group))
        return graph

    def build_package_graph(
        self,
        classes: Iterable[ClassMetadata],
        graph: DependencyGraph | None = None,
    ) -> dict[str, tuple[str, ...]]:
        """Map each package to the other archive packages it depends on.

        Derived from the class edges of :meth:`build` (pass *graph* to reuse
        one already built); references between classes of the same package
        are not package dependencies.
        """
        if graph is None:
            graph = self.build(classes)
        packages: dict[str, set[str]] = {
            package_of(name): set() for name in graph.nodes
        }
        for edge in graph.edges:
            src, dst = package_of(edge.source), package_of(edge.target)
            if src != dst:
                packages[src].add(dst)
        return {pkg: tuple(sorted(deps)) for pkg, deps in sorted(packages.items())}

    def calculate_metrics(self, graph: DependencyGraph) -> GraphMetrics:
        # Parallel edges with different reasons count once here.
        node_count = len(graph.nodes)
        pairs = {
            (e.source, e.target) for e in graph.edges if e.source != e.target
        }
        edge_count = len(pairs)

        degree: dict[str, int] = defaultdict(int)
        for src, dst in pairs:
            degree[src] += 1
            degree[dst] += 1

        threshold = max(3, edge_count // node_count) if node_count else 3
        highly_connected = tuple(n for n in graph.nodes if degree[n] >= threshold)
        orphans = tuple(n for n in graph.nodes if degree[n] == 0)
        density = (
            edge_count / (node_count * (node_count - 1)) if node_count > 1 else 0.0
        )
        return GraphMetrics(
            node_count=node_count,
            edge_count=edge_count,
            density=density,
            highly_connected=highly_connected,
            orphans=orphans,
            circular_dependencies=graph.circular_dependencies,
        )

    def find_subtypes(self, graph: DependencyGraph, fqn: str) -> tuple[str, ...]:
        """Direct subclasses and implementors of *fqn* inside the graph."""
        return tuple(
            sorted(
                {
                    e.source
                    for e in graph.edges
                    if e.target == fqn
                    and e.reason in (EdgeReason.SUPERTYPE, EdgeReason.INTERFACE)
                }
            )
        )
