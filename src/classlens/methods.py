"""Method-level analysis: categorization and the method call graph."""

from __future__ import annotations

import logging
import re
from collections import Counter, defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

from classlens.model import (
    CallGraph,
    ClassMetadata,
    MethodCategory,
    MethodMetadata,
    method_id,
)

logger = logging.getLogger(__name__)

_SPRING_WEB = "org.springframework.web.bind.annotation."

ROUTE_ANNOTATIONS: frozenset[str] = frozenset(
    [
        _SPRING_WEB + "RequestMapping",
        _SPRING_WEB + "GetMapping",
        _SPRING_WEB + "PostMapping",
        _SPRING_WEB + "PutMapping",
        _SPRING_WEB + "DeleteMapping",
        _SPRING_WEB + "PatchMapping",
    ]
    + [
        f"{ns}.ws.rs.{verb}"
        for ns in ("javax", "jakarta")
        for verb in ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS", "Path")
    ]
)

ENTRY_CATEGORIES = (MethodCategory.ENTRY_POINT, MethodCategory.REST_ENDPOINT)


def _accessor_name(name: str, prefix: str) -> bool:
    """``getX`` / ``isX`` / ``setX``: the prefix followed by an uppercase letter."""
    return (
        name.startswith(prefix)
        and len(name) > len(prefix)
        and name[len(prefix)].isupper()
    )


def _simple_type(type_name: str) -> str:
    if type_name.startswith("java.lang."):
        return type_name[len("java.lang."):]
    return type_name.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class EnrichedMethod:
    """A method together with its owner and computed properties."""

    owner_class: str
    class_name: str
    method: MethodMetadata
    category: MethodCategory
    signature: str

    @property
    def id(self) -> str:
        return method_id(self.owner_class, self.method.method_name)

    @property
    def method_name(self) -> str:
        return self.method.method_name


@dataclass(frozen=True)
class ParameterAnalysis:
    count_distribution: dict[int, int]
    type_frequency: dict[str, int]
    max_parameters: int
    average_parameters: float


@dataclass(frozen=True)
class MethodCallCount:
    method: str
    count: int


@dataclass(frozen=True)
class MethodFilter:
    """Criteria for :meth:`MethodExtractionService.find_methods`.

    Unset criteria match everything.  ``name_pattern`` must match the whole
    method name; an annotation criterion matches any annotation whose name
    contains it, so simple names such as ``"GetMapping"`` work.
    """

    name_pattern: str | None = None
    return_type: str | None = None
    annotations: frozenset[str] = frozenset()
    categories: frozenset[MethodCategory] = frozenset()
    public_only: bool = False
    static_only: bool = False

    @classmethod
    def all(cls) -> MethodFilter:
        return cls()

    @classmethod
    def public_methods(cls) -> MethodFilter:
        return cls(public_only=True)

    @classmethod
    def by_category(cls, *categories: MethodCategory) -> MethodFilter:
        return cls(categories=frozenset(categories))

    def matches(self, m: EnrichedMethod) -> bool:
        method = m.method
        if self.name_pattern is not None and not re.fullmatch(
            self.name_pattern, method.method_name
        ):
            return False
        if self.return_type is not None and method.return_type != self.return_type:
            return False
        if self.annotations and not any(
            wanted in a for a in method.annotations for wanted in self.annotations
        ):
            return False
        if self.categories and m.category not in self.categories:
            return False
        if self.public_only and not method.is_public:
            return False
        return not self.static_only or method.is_static


def signature_of(method: MethodMetadata) -> str:
    """Readable Java-like signature, e.g. ``public static void main(String[] args)``."""
    parts = []
    for modifier in ("public", "protected", "private"):
        if modifier in method.access_modifiers:
            parts.append(modifier)
            break
    if method.is_static:
        parts.append("static")
    if method.is_abstract:
        parts.append("abstract")

    params = []
    for p in method.parameters:
        text = _simple_type(p.type)
        if not p.name.startswith("arg"):
            text += f" {p.name}"
        params.append(text)

    sig = f"{_simple_type(method.return_type)} {method.method_name}({', '.join(params)})"
    if method.exceptions:
        sig += " throws " + ", ".join(_simple_type(e) for e in method.exceptions)
    return " ".join(parts + [sig])


class MethodExtractionService:
    """Categorize methods and build the name-resolved call graph."""

    def __init__(self, route_annotations: Iterable[str] = ROUTE_ANNOTATIONS):
        self.route_annotations = frozenset(route_annotations)

    def is_route_handler(self, method: MethodMetadata) -> bool:
        return any(a in self.route_annotations for a in method.annotations)

    def categorize(self, method: MethodMetadata) -> MethodCategory:
        """Classify *method*; the first matching rule wins."""
        name = method.method_name
        n_params = len(method.parameters)
        returns_value = method.return_type != "void"

        if name == "<init>":
            return MethodCategory.CONSTRUCTOR
        if name == "<clinit>":
            return MethodCategory.STATIC_INITIALIZER
        if (
            n_params == 0
            and returns_value
            and (_accessor_name(name, "get") or _accessor_name(name, "is"))
        ):
            return MethodCategory.GETTER
        if n_params == 1 and not returns_value and _accessor_name(name, "set"):
            return MethodCategory.SETTER
        if self.is_route_handler(method):
            return MethodCategory.REST_ENDPOINT
        if (
            name == "main"
            and method.is_static
            and method.is_public
            and n_params == 1
            and method.parameters[0].type == "java.lang.String[]"
        ):
            return MethodCategory.ENTRY_POINT
        return MethodCategory.BUSINESS

    def enrich(self, method: MethodMetadata, owner: ClassMetadata) -> EnrichedMethod:
        return EnrichedMethod(
            owner_class=owner.fully_qualified_name,
            class_name=owner.class_name,
            method=method,
            category=self.categorize(method),
            signature=signature_of(method),
        )

    def extract_all_methods(
        self, classes: Iterable[ClassMetadata]
    ) -> list[EnrichedMethod]:
        return [self.enrich(m, cls) for cls in classes for m in cls.methods]

    def find_methods(
        self, classes: Iterable[ClassMetadata], method_filter: MethodFilter
    ) -> list[EnrichedMethod]:
        return [m for m in self.extract_all_methods(classes) if method_filter.matches(m)]

    def build_call_graph(self, classes: Iterable[ClassMetadata]) -> CallGraph:
        """One edge per recorded invocation, resolved by owner and name only.

        Overloads of a callee share a single node.  Callees declared outside
        the archive are kept as nodes so in-degrees stay accurate.
        """
        outgoing: dict[str, set[str]] = defaultdict(set)
        incoming: dict[str, set[str]] = defaultdict(set)
        declared: set[str] = set()

        for cls in classes:
            for method in cls.methods:
                caller = cls.method_id(method)
                declared.add(caller)
                for call in method.invocations:
                    callee = method_id(call.owner_class, call.method_name)
                    outgoing[caller].add(callee)
                    incoming[callee].add(caller)

        graph = CallGraph(
            outgoing={k: frozenset(v) for k, v in sorted(outgoing.items())},
            incoming={k: frozenset(v) for k, v in sorted(incoming.items())},
            methods=frozenset(declared),
        )
        logger.info(
            "Call graph: %d methods, %d call edges",
            len(declared),
            graph.edge_count(),
        )
        return graph

    def find_entry_points(
        self, classes: Iterable[ClassMetadata]
    ) -> list[EnrichedMethod]:
        """Main methods and route handlers, in declaration order.

        A route-mapped method is a handler even when its name and shape make
        it categorize as an accessor (``getUsers()`` under ``@GetMapping``).
        """
        return [
            m for m in self.extract_all_methods(classes)
            if m.category in ENTRY_CATEGORIES or self.is_route_handler(m.method)
        ]

    @staticmethod
    def _rank(adjacency: dict[str, frozenset[str]], n: int) -> list[MethodCallCount]:
        ranked = sorted(adjacency.items(), key=lambda kv: (-len(kv[1]), kv[0]))
        return [MethodCallCount(k, len(v)) for k, v in ranked[: max(n, 0)] if v]

    def most_called(self, graph: CallGraph, n: int) -> list[MethodCallCount]:
        """Top *n* methods by number of distinct callers; ties by id."""
        return self._rank(graph.incoming, n)

    def most_complex(self, graph: CallGraph, n: int) -> list[MethodCallCount]:
        """Top *n* methods by number of distinct callees; ties by id."""
        return self._rank(graph.outgoing, n)

    def find_unused_methods(self, graph: CallGraph) -> list[str]:
        """Archive methods nobody in the archive calls.

        Constructors, static initializers and synthetic (``$``) methods
        are not reported.
        """
        return [
            m for m in graph.all_methods()
            if not graph.get_callers(m)
            and "<" not in m.split("#", 1)[1]
            and "$" not in m.split("#", 1)[1]
        ]

    def group_by_category(
        self, classes: Iterable[ClassMetadata]
    ) -> dict[MethodCategory, list[EnrichedMethod]]:
        groups: dict[MethodCategory, list[EnrichedMethod]] = {}
        for m in self.extract_all_methods(classes):
            groups.setdefault(m.category, []).append(m)
        return groups

    def find_overloaded_methods(
        self, classes: Iterable[ClassMetadata]
    ) -> dict[str, list[EnrichedMethod]]:
        """Method ids that more than one declared member collapses onto."""
        by_id: dict[str, list[EnrichedMethod]] = defaultdict(list)
        for m in self.extract_all_methods(classes):
            by_id[m.id].append(m)
        return {k: v for k, v in sorted(by_id.items()) if len(v) > 1}

    def analyze_parameters(self, classes: Iterable[ClassMetadata]) -> ParameterAnalysis:
        methods = [m for cls in classes for m in cls.methods]
        counts = [len(m.parameters) for m in methods]
        types = Counter(p.type for m in methods for p in m.parameters)
        return ParameterAnalysis(
            count_distribution=dict(sorted(Counter(counts).items())),
            type_frequency=dict(sorted(types.items(), key=lambda kv: (-kv[1], kv[0]))),
            max_parameters=max(counts, default=0),
            average_parameters=sum(counts) / len(counts) if counts else 0.0,
        )

    def analyze_return_types(self, classes: Iterable[ClassMetadata]) -> dict[str, int]:
        types = Counter(m.return_type for cls in classes for m in cls.methods)
        return dict(sorted(types.items(), key=lambda kv: (-kv[1], kv[0])))
