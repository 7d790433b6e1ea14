"""Data model for analyzed class records and the graphs built over them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ClassType(str, Enum):
    CLASS = "CLASS"
    INTERFACE = "INTERFACE"
    ENUM = "ENUM"
    ANNOTATION = "ANNOTATION"
    RECORD = "RECORD"


class MethodCategory(str, Enum):
    CONSTRUCTOR = "CONSTRUCTOR"
    STATIC_INITIALIZER = "STATIC_INITIALIZER"
    GETTER = "GETTER"
    SETTER = "SETTER"
    REST_ENDPOINT = "REST_ENDPOINT"
    ENTRY_POINT = "ENTRY_POINT"
    BUSINESS = "BUSINESS"


class EdgeReason(str, Enum):
    SUPERTYPE = "SUPERTYPE"
    INTERFACE = "INTERFACE"
    FIELD = "FIELD"
    PARAMETER = "PARAMETER"
    RETURN = "RETURN"


class ComponentType(str, Enum):
    # Declaration order is the classification priority.
    SERVICE = "SERVICE"
    CONTROLLER = "CONTROLLER"
    REPOSITORY = "REPOSITORY"
    ENTITY = "ENTITY"
    CONFIGURATION = "CONFIGURATION"
    OTHER = "OTHER"


def method_id(class_name: str, method_name: str) -> str:
    """Return the call-graph identifier ``<class>#<method>``."""
    return f"{class_name}#{method_name}"


@dataclass(frozen=True)
class ClassRecord:
    """One raw class record and a label used in diagnostics."""

    name: str
    data: bytes


@dataclass(frozen=True)
class ParameterInfo:
    name: str  # best-effort; "argN" when no debug data is present
    type: str
    index: int


@dataclass(frozen=True)
class MethodCall:
    """An invocation site inside a method body.

    ``owner_class`` is the declaring type named by the instruction, not the
    dynamic receiver type.
    """

    owner_class: str
    method_name: str
    descriptor: str = ""
    line_number: int | None = None


@dataclass(frozen=True)
class FieldMetadata:
    field_name: str
    type: str
    access_modifiers: tuple[str, ...] = ()
    annotations: tuple[str, ...] = ()
    is_static: bool = False
    is_final: bool = False
    is_volatile: bool = False
    is_transient: bool = False


@dataclass(frozen=True)
class MethodMetadata:
    method_name: str
    return_type: str
    parameters: tuple[ParameterInfo, ...] = ()
    access_modifiers: tuple[str, ...] = ()
    annotations: tuple[str, ...] = ()
    invocations: tuple[MethodCall, ...] = ()
    is_static: bool = False
    is_abstract: bool = False
    descriptor: str = ""
    exceptions: tuple[str, ...] = ()
    annotation_values: dict[str, dict[str, Any]] = field(
        default_factory=dict, compare=False, hash=False
    )

    @property
    def is_public(self) -> bool:
        return "public" in self.access_modifiers


@dataclass(frozen=True)
class ClassMetadata:
    """Everything extracted from one class record."""

    fully_qualified_name: str
    class_name: str
    package_name: str
    class_type: ClassType
    super_class_name: str | None = None
    interfaces: tuple[str, ...] = ()
    annotations: tuple[str, ...] = ()
    access_modifiers: tuple[str, ...] = ()
    fields: tuple[FieldMetadata, ...] = ()
    methods: tuple[MethodMetadata, ...] = ()
    is_abstract: bool = False
    source_file: str | None = None
    major_version: int = 0
    minor_version: int = 0
    annotation_values: dict[str, dict[str, Any]] = field(
        default_factory=dict, compare=False, hash=False
    )

    def method_id(self, method: MethodMetadata) -> str:
        return method_id(self.fully_qualified_name, method.method_name)


@dataclass(frozen=True, order=True)
class DependencyEdge:
    source: str
    target: str
    reason: EdgeReason


@dataclass(frozen=True)
class DependencyGraph:
    """Class-to-class reference graph restricted to classes in the archive."""

    nodes: tuple[str, ...] = ()
    edges: frozenset[DependencyEdge] = frozenset()
    adjacency: dict[str, tuple[str, ...]] = field(default_factory=dict)
    inheritance_depth: dict[str, int] = field(default_factory=dict)
    cycles: tuple[tuple[str, ...], ...] = ()

    @property
    def circular_dependencies(self) -> int:
        """Number of multi-node cycle groups (not the number of edges)."""
        return len(self.cycles)

    def sorted_edges(self) -> list[DependencyEdge]:
        return sorted(self.edges)

    def dependencies_of(self, class_name: str) -> tuple[str, ...]:
        return self.adjacency.get(class_name, ())


@dataclass(frozen=True)
class CallGraph:
    """Method-level invocation graph keyed by ``<class>#<method>`` ids.

    Overloads share one id: callees are resolved by name only.
    """

    outgoing: dict[str, frozenset[str]] = field(default_factory=dict)
    incoming: dict[str, frozenset[str]] = field(default_factory=dict)
    methods: frozenset[str] = frozenset()

    def get_callees(self, method: str) -> frozenset[str]:
        return self.outgoing.get(method, frozenset())

    def get_callers(self, method: str) -> frozenset[str]:
        return self.incoming.get(method, frozenset())

    def all_methods(self) -> list[str]:
        """Ids of the methods declared in the archive, sorted."""
        return sorted(self.methods)

    def nodes(self) -> list[str]:
        """All ids, including callees declared outside the archive."""
        return sorted(self.methods | set(self.outgoing) | set(self.incoming))

    def edge_count(self) -> int:
        return sum(len(callees) for callees in self.outgoing.values())


@dataclass(frozen=True)
class DetectedComponent:
    fully_qualified_name: str
    class_name: str
    package_name: str
    component_type: ComponentType
    evidence: tuple[str, ...] = ()
    injected_dependencies: tuple[str, ...] = ()
    bean_methods: tuple[str, ...] = ()
    exposed_methods: tuple[str, ...] = ()


@dataclass(frozen=True)
class BeanDefinition:
    configuration_class: str
    method_name: str
    return_type: str
    is_primary: bool = False
    is_lazy: bool = False


@dataclass(frozen=True, order=True)
class CallChain:
    methods: tuple[str, ...]
    purpose: str = "GENERAL"


@dataclass(frozen=True, order=True)
class DataFlowPath:
    source: str
    target: str
    data_type: str


@dataclass(frozen=True)
class TransformationMethod:
    method: str
    input_types: tuple[str, ...]
    output_type: str


@dataclass(frozen=True)
class DataFlowResult:
    producers: dict[str, tuple[str, ...]] = field(default_factory=dict)
    consumers: dict[str, tuple[str, ...]] = field(default_factory=dict)
    call_chains: tuple[CallChain, ...] = ()
    paths: tuple[DataFlowPath, ...] = ()
    transformations: tuple[TransformationMethod, ...] = ()


@dataclass(frozen=True)
class Diagnostic:
    """A record that was skipped or only partially understood."""

    record: str
    kind: str  # "parsing", "analysis", "duplicate"
    message: str
