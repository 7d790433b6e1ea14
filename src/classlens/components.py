"""Annotation-driven role detection (services, controllers, entities...)."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from classlens.dependencies import normalize_type
from classlens.model import (
    BeanDefinition,
    ClassMetadata,
    ClassType,
    ComponentType,
    DetectedComponent,
)

logger = logging.getLogger(__name__)

_STEREOTYPE = "org.springframework.stereotype."
_CONTEXT = "org.springframework.context.annotation."

_ENTITY = frozenset(
    [
        f"{ns}.persistence.{name}"
        for ns in ("javax", "jakarta")
        for name in ("Entity", "Table", "MappedSuperclass")
    ]
    + ["org.springframework.data.mongodb.core.mapping.Document"]
)
_REPOSITORY_BASE = frozenset(
    [
        "org.springframework.data.repository." + name
        for name in (
            "Repository",
            "CrudRepository",
            "ListCrudRepository",
            "PagingAndSortingRepository",
        )
    ]
    + [
        "org.springframework.data.jpa.repository.JpaRepository",
        "org.springframework.data.mongodb.repository.MongoRepository",
    ]
)
_CONFIGURATION = frozenset([_CONTEXT + "Configuration"])


def _frozen(mapping: Mapping[str, ComponentType]) -> Mapping[str, ComponentType]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ComponentCatalog:
    """The closed set of annotations that assign roles.

    ``roles`` maps an annotation's fully-qualified name to the component
    type it indicates.  The entity and configuration sets back the targeted
    :meth:`ComponentDetector.detect_entities` and
    :meth:`ComponentDetector.detect_configurations` queries.
    ``repository_base`` names the data-access interfaces whose subtypes
    :meth:`ComponentDetector.detect_repositories` reports without an annotation.
    """

    roles: Mapping[str, ComponentType] = field(default_factory=dict)
    entity: frozenset[str] = frozenset()
    configuration: frozenset[str] = frozenset()
    bean: frozenset[str] = frozenset()
    primary: frozenset[str] = frozenset()
    lazy: frozenset[str] = frozenset()
    repository_base: frozenset[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "roles", _frozen(self.roles))

    def role_of(self, annotation: str) -> ComponentType | None:
        return self.roles.get(annotation)

    def with_extra(self, extra: Mapping[str, Iterable[str]]) -> ComponentCatalog:
        """Return a catalog that also recognizes *extra* annotations.

        *extra* maps a :class:`ComponentType` name to annotation names, as
        read from the ``extra_annotations`` setting.  Unknown type names are
        ignored with a warning.
        """
        if not extra:
            return self
        roles = dict(self.roles)
        entity, configuration = set(self.entity), set(self.configuration)
        for type_name, annotations in extra.items():
            try:
                ctype = ComponentType[type_name.upper()]
            except KeyError:
                logger.warning("Unknown component type %r in extra_annotations", type_name)
                continue
            for annotation in annotations:
                roles[annotation] = ctype
                if ctype is ComponentType.ENTITY:
                    entity.add(annotation)
                elif ctype is ComponentType.CONFIGURATION:
                    configuration.add(annotation)
        return ComponentCatalog(
            roles=roles,
            entity=frozenset(entity),
            configuration=frozenset(configuration),
            bean=self.bean,
            primary=self.primary,
            lazy=self.lazy,
            repository_base=self.repository_base,
        )


DEFAULT_CATALOG = ComponentCatalog(
    roles={
        _STEREOTYPE + "Service": ComponentType.SERVICE,
        _STEREOTYPE + "Controller": ComponentType.CONTROLLER,
        "org.springframework.web.bind.annotation.RestController": ComponentType.CONTROLLER,
        _STEREOTYPE + "Repository": ComponentType.REPOSITORY,
        **{name: ComponentType.ENTITY for name in _ENTITY},
        **{name: ComponentType.CONFIGURATION for name in _CONFIGURATION},
    },
    entity=_ENTITY,
    configuration=_CONFIGURATION,
    bean=frozenset([_CONTEXT + "Bean"]),
    primary=frozenset([_CONTEXT + "Primary"]),
    lazy=frozenset([_CONTEXT + "Lazy"]),
    repository_base=_REPOSITORY_BASE,
)

_PRIORITY = {ctype: rank for rank, ctype in enumerate(ComponentType)}


@dataclass(frozen=True)
class ComponentStatistics:
    total: int
    by_type: dict[ComponentType, int]
    by_package: dict[str, int]
    total_bean_methods: int


class ComponentDetector:
    """Classify classes by their annotations against a :class:`ComponentCatalog`."""

    def __init__(self, catalog: ComponentCatalog = DEFAULT_CATALOG):
        self.catalog = catalog

    def classify(self, cls: ClassMetadata) -> ComponentType:
        """Role of *cls*; when several annotations match the highest-priority type wins."""
        found = [
            ctype
            for a in cls.annotations
            if (ctype := self.catalog.role_of(a)) is not None
        ]
        if not found:
            return ComponentType.OTHER
        return min(found, key=_PRIORITY.__getitem__)

    @staticmethod
    def _injected(cls: ClassMetadata) -> tuple[str, ...]:
        return tuple(f.type for f in cls.fields if f.is_final and not f.is_static)

    def _component(self, cls: ClassMetadata, ctype: ComponentType) -> DetectedComponent:
        return DetectedComponent(
            fully_qualified_name=cls.fully_qualified_name,
            class_name=cls.class_name,
            package_name=cls.package_name,
            component_type=ctype,
            evidence=tuple(
                a for a in cls.annotations
                if a in self.catalog.roles
                or a in self.catalog.entity
                or a in self.catalog.configuration
            ),
            injected_dependencies=self._injected(cls),
            bean_methods=tuple(
                m.method_name for m in cls.methods
                if any(a in self.catalog.bean for a in m.annotations)
            ),
            exposed_methods=tuple(
                m.method_name for m in cls.methods
                if m.is_public and not m.method_name.startswith("<")
            ),
        )

    def detect_components(
        self, classes: Iterable[ClassMetadata]
    ) -> list[DetectedComponent]:
        """All classes whose role is not OTHER, in input order."""
        classes = list(classes)
        components = []
        for cls in classes:
            ctype = self.classify(cls)
            if ctype is not ComponentType.OTHER:
                components.append(self._component(cls, ctype))
        logger.info(
            "Detected %d component(s) among %d classes", len(components), len(classes)
        )
        return components

    def detect_entities(
        self, classes: Iterable[ClassMetadata]
    ) -> list[DetectedComponent]:
        return [
            self._component(cls, ComponentType.ENTITY)
            for cls in classes
            if any(a in self.catalog.entity for a in cls.annotations)
        ]

    def detect_configurations(
        self, classes: Iterable[ClassMetadata]
    ) -> list[DetectedComponent]:
        return [
            self._component(cls, ComponentType.CONFIGURATION)
            for cls in classes
            if any(a in self.catalog.configuration for a in cls.annotations)
        ]

    def detect_repositories(
        self, classes: Iterable[ClassMetadata]
    ) -> list[DetectedComponent]:
        """Annotated repositories plus interfaces extending a data-access base."""
        repositories = []
        for cls in classes:
            bases = tuple(i for i in cls.interfaces if i in self.catalog.repository_base)
            if self.classify(cls) is ComponentType.REPOSITORY:
                repositories.append(self._component(cls, ComponentType.REPOSITORY))
            elif bases and cls.class_type is ClassType.INTERFACE:
                component = self._component(cls, ComponentType.REPOSITORY)
                repositories.append(replace(component, evidence=component.evidence + bases))
        return repositories

    def detect_beans(self, classes: Iterable[ClassMetadata]) -> list[BeanDefinition]:
        """One definition per bean-annotated method of a configuration class."""
        beans = []
        for cls in classes:
            if self.classify(cls) is not ComponentType.CONFIGURATION:
                continue
            for m in cls.methods:
                annotations = set(m.annotations)
                if not annotations & self.catalog.bean:
                    continue
                beans.append(
                    BeanDefinition(
                        configuration_class=cls.fully_qualified_name,
                        method_name=m.method_name,
                        return_type=m.return_type,
                        is_primary=bool(annotations & self.catalog.primary),
                        is_lazy=bool(annotations & self.catalog.lazy),
                    )
                )
        return beans

    def detect_dependencies(
        self, classes: Iterable[ClassMetadata]
    ) -> dict[str, list[str]]:
        """Component-to-component edges through final instance fields.

        Only components with at least one such collaborator appear as keys.
        """
        classes = list(classes)
        components = {
            cls.fully_qualified_name: cls
            for cls in classes
            if self.classify(cls) is not ComponentType.OTHER
        }
        dependencies: dict[str, list[str]] = {}
        for name, cls in components.items():
            deps = [
                t for t in (normalize_type(t) for t in self._injected(cls))
                if t in components
            ]
            if deps:
                dependencies[name] = list(dict.fromkeys(deps))
        return dependencies

    @staticmethod
    def group_by_type(
        components: Iterable[DetectedComponent],
    ) -> dict[ComponentType, list[DetectedComponent]]:
        groups: dict[ComponentType, list[DetectedComponent]] = {}
        for c in components:
            groups.setdefault(c.component_type, []).append(c)
        return dict(sorted(groups.items(), key=lambda kv: _PRIORITY[kv[0]]))

    @staticmethod
    def group_by_package(
        components: Iterable[DetectedComponent],
    ) -> dict[str, list[DetectedComponent]]:
        groups: dict[str, list[DetectedComponent]] = {}
        for c in components:
            groups.setdefault(c.package_name, []).append(c)
        return dict(sorted(groups.items()))

    @staticmethod
    def get_statistics(components: Iterable[DetectedComponent]) -> ComponentStatistics:
        components = list(components)
        return ComponentStatistics(
            total=len(components),
            by_type=dict(Counter(c.component_type for c in components)),
            by_package=dict(sorted(Counter(c.package_name for c in components).items())),
            total_bean_methods=sum(len(c.bean_methods) for c in components),
        )
