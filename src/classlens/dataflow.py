"""Type-based data-flow queries and bounded call-chain enumeration."""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from classlens.methods import MethodExtractionService
from classlens.model import (
    CallChain,
    CallGraph,
    ClassMetadata,
    DataFlowPath,
    DataFlowResult,
    TransformationMethod,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 5

_TRANSFORM_PREFIXES = ("convert", "map", "transform", "to")

_SCALAR_TYPES = frozenset(
    [
        "void", "boolean", "byte", "char", "short", "int", "long", "float", "double",
        "java.lang.String", "java.lang.Boolean", "java.lang.Byte",
        "java.lang.Character", "java.lang.Short", "java.lang.Integer",
        "java.lang.Long", "java.lang.Float", "java.lang.Double",
    ]
)

_CHAIN_PURPOSES = (
    ("controller", "REQUEST_HANDLING"),
    ("service", "BUSINESS_LOGIC"),
    ("repository", "DATA_ACCESS"),
    ("dao", "DATA_ACCESS"),
)


@dataclass(frozen=True)
class FlowStatistics:
    total_paths: int
    unique_data_types: int
    top_flow_types: tuple[tuple[str, int], ...]
    total_call_chains: int
    total_transformations: int


def _is_special(method_name: str) -> bool:
    # <init> and <clinit>
    return method_name.startswith("<")


def _short_id(method: str) -> str:
    """``com.acme.UserService#findAll`` -> ``UserService.findAll``."""
    cls, _, name = method.partition("#")
    return f"{cls.rsplit('.', 1)[-1]}.{name}"


def _short_type(type_name: str) -> str:
    return type_name.rsplit(".", 1)[-1]


def chain_purpose(methods: tuple[str, ...]) -> str:
    """Tag a chain by the role its first class name suggests."""
    if not methods:
        return "UNKNOWN"
    first = methods[0].partition("#")[0].rsplit(".", 1)[-1].lower()
    for marker, purpose in _CHAIN_PURPOSES:
        if marker in first:
            return purpose
    return "GENERAL"


class DataFlowAnalyzer:
    """Producer/consumer queries over declared types, plus call chains.

    Matching is purely textual on declared type names; generic arguments and
    subtyping are not considered.
    """

    def __init__(self, methods: MethodExtractionService | None = None):
        self.methods = methods or MethodExtractionService()

    def find_producers_of(
        self, classes: Iterable[ClassMetadata], type_name: str
    ) -> list[str]:
        """Ids of methods whose declared return type is exactly *type_name*."""
        ids = (
            cls.method_id(m)
            for cls in classes
            for m in cls.methods
            if m.return_type == type_name
        )
        return list(dict.fromkeys(ids))

    def find_consumers_of(
        self, classes: Iterable[ClassMetadata], type_name: str
    ) -> list[str]:
        """Ids of methods taking at least one parameter declared as *type_name*."""
        ids = (
            cls.method_id(m)
            for cls in classes
            for m in cls.methods
            if any(p.type == type_name for p in m.parameters)
        )
        return list(dict.fromkeys(ids))

    def analyze_flow(
        self,
        classes: Iterable[ClassMetadata],
        max_depth: int | None = None,
        max_chains: int | None = None,
    ) -> DataFlowResult:
        classes = list(classes)
        logger.info("Analyzing data flow for %d classes", len(classes))

        producers: dict[str, set[str]] = defaultdict(set)
        consumers: dict[str, set[str]] = defaultdict(set)
        for cls in classes:
            for m in cls.methods:
                if _is_special(m.method_name):
                    continue
                mid = cls.method_id(m)
                if m.return_type != "void":
                    producers[m.return_type].add(mid)
                for p in m.parameters:
                    consumers[p.type].add(mid)

        paths = sorted(
            DataFlowPath(source, target, type_name)
            for type_name in producers.keys() & consumers.keys()
            for source in producers[type_name]
            for target in consumers[type_name]
            if source != target
        )

        chains = self.analyze_call_chains(
            classes,
            DEFAULT_MAX_DEPTH if max_depth is None else max_depth,
            max_chains=max_chains,
        )
        result = DataFlowResult(
            producers={t: tuple(sorted(ids)) for t, ids in sorted(producers.items())},
            consumers={t: tuple(sorted(ids)) for t, ids in sorted(consumers.items())},
            call_chains=tuple(chains),
            paths=tuple(paths),
            transformations=tuple(self._transformations(classes)),
        )
        logger.info(
            "Data flow: %d types produced, %d consumed, %d paths, %d call chains",
            len(result.producers),
            len(result.consumers),
            len(paths),
            len(chains),
        )
        return result

    def _transformations(
        self, classes: list[ClassMetadata]
    ) -> list[TransformationMethod]:
        found = []
        for cls in classes:
            for m in cls.methods:
                if not m.method_name.lower().startswith(_TRANSFORM_PREFIXES):
                    continue
                inputs = tuple(
                    p.type for p in m.parameters if p.type not in _SCALAR_TYPES
                )
                if inputs and m.return_type not in _SCALAR_TYPES:
                    found.append(TransformationMethod(cls.method_id(m), inputs, m.return_type))
        return found

    def analyze_call_chains(
        self,
        classes: Iterable[ClassMetadata],
        max_depth: int,
        entry_points: Iterable[str] | None = None,
        max_chains: int | None = None,
    ) -> list[CallChain]:
        """Enumerate bounded call paths through the call graph.

        Traversal starts at every archive method, or only at *entry_points*
        when given.  A path stops growing when it holds *max_depth* methods,
        when the next callee is already on the path, or when the current
        method has no callees.  Paths of a single method are dropped; the
        rest are returned deduplicated and sorted.
        """
        if max_depth < 1:
            return []
        graph = self.methods.build_call_graph(classes)
        starts = sorted(set(entry_points)) if entry_points is not None else graph.all_methods()

        found: set[tuple[str, ...]] = set()
        capped = False
        for start in starts:
            for path in self._walk(graph, start, max_depth):
                if len(path) < 2:
                    continue
                found.add(path)
                if max_chains is not None and len(found) >= max_chains:
                    capped = True
                    break
            if capped:
                logger.warning(
                    "Call-chain enumeration stopped at %d chains (max_chains)",
                    len(found),
                )
                break

        return [CallChain(p, chain_purpose(p)) for p in sorted(found)]

    @staticmethod
    def _walk(graph: CallGraph, start: str, max_depth: int) -> Iterator[tuple[str, ...]]:
        """Yield bounded, cycle-truncated paths from *start* (may repeat)."""
        # Each frame: (path so far, remaining callees to try, whether it extended).
        stack = [((start,), sorted(graph.get_callees(start)), False)]
        while stack:
            path, pending, extended = stack.pop()
            if len(path) >= max_depth:
                yield path
                continue
            while pending:
                callee = pending.pop(0)
                if callee in path:
                    yield path
                    continue
                stack.append((path, pending, True))
                stack.append((path + (callee,), sorted(graph.get_callees(callee)), False))
                break
            else:
                if not extended:
                    yield path

    def generate_flow_diagram(self, result: DataFlowResult, max_edges: int) -> str:
        """PlantUML activity-style diagram of the strongest producer->consumer links.

        A link's weight is the number of types flowing along it.  Links are
        ordered by descending weight, then by producer and consumer id.
        """
        weights: dict[tuple[str, str], list[str]] = defaultdict(list)
        for path in result.paths:
            weights[(path.source, path.target)].append(path.data_type)
        ranked = sorted(weights.items(), key=lambda kv: (-len(kv[1]), kv[0]))
        ranked = ranked[: max(max_edges, 0)]

        lines = ["@startuml"]
        aliases: dict[str, str] = {}
        for (source, target), types in ranked:
            for node in (source, target):
                if node not in aliases:
                    aliases[node] = f"n{len(aliases)}"
                    lines.append(f'rectangle "{_short_id(node)}" as {aliases[node]}')
            label = ", ".join(sorted({_short_type(t) for t in types}))
            lines.append(f"{aliases[source]} --> {aliases[target]} : {label}")
        lines.append("@enduml")
        return "\n".join(lines) + "\n"

    @staticmethod
    def get_statistics(result: DataFlowResult) -> FlowStatistics:
        by_type = Counter(p.data_type for p in result.paths)
        top = sorted(by_type.items(), key=lambda kv: (-kv[1], kv[0]))[:10]
        return FlowStatistics(
            total_paths=len(result.paths),
            unique_data_types=len(by_type),
            top_flow_types=tuple(top),
            total_call_chains=len(result.call_chains),
            total_transformations=len(result.transformations),
        )
