"""REST endpoint detection from controller and route annotations.

Routes come from decoded annotation element values: the class-level
``@RequestMapping``/``@Path`` gives the base path, and each handler's
mapping annotation gives the verb and the remaining path.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from classlens.methods import MethodExtractionService
from classlens.model import ClassMetadata, MethodMetadata, ParameterInfo, method_id

logger = logging.getLogger(__name__)

_SPRING_WEB = "org.springframework.web.bind.annotation."

CONTROLLER_ANNOTATIONS = frozenset(
    ["org.springframework.stereotype.Controller", _SPRING_WEB + "RestController"]
)
_REQUEST_MAPPING = _SPRING_WEB + "RequestMapping"
_SPRING_VERBS = {
    _SPRING_WEB + f"{verb.capitalize()}Mapping": verb
    for verb in ("GET", "POST", "PUT", "DELETE", "PATCH")
}
_JAXRS_PATHS = frozenset(f"{ns}.ws.rs.Path" for ns in ("javax", "jakarta"))
_JAXRS_VERBS = {
    f"{ns}.ws.rs.{verb}": verb
    for ns in ("javax", "jakarta")
    for verb in ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")
}
_ROLE_ANNOTATIONS = frozenset(
    [
        "javax.annotation.security.RolesAllowed",
        "jakarta.annotation.security.RolesAllowed",
        "org.springframework.security.access.annotation.Secured",
        "org.springframework.security.access.prepost.PreAuthorize",
    ]
)
_DEPRECATED = "java.lang.Deprecated"


@dataclass(frozen=True)
class Endpoint:
    http_method: str
    path: str
    controller_class: str
    method_name: str
    response_type: str
    parameters: tuple[ParameterInfo, ...] = ()
    required_roles: tuple[str, ...] = ()
    deprecated: bool = False
    description: str = ""

    @property
    def id(self) -> str:
        return method_id(self.controller_class, self.method_name)


@dataclass(frozen=True)
class EndpointStatistics:
    total: int
    by_http_method: dict[str, int]
    by_controller: dict[str, int]
    authenticated: int
    deprecated: int


def _strings(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [v for v in value if isinstance(v, str)]
    return []


def _path_value(values: Mapping[str, Any]) -> str:
    """First of ``path`` or ``value``; Spring declares both as arrays."""
    for key in ("path", "value"):
        found = _strings(values.get(key))
        if found:
            return found[0]
    return ""


def _request_method(values: Mapping[str, Any]) -> str:
    # Enum constants decode as "<enum type>.<constant>".
    declared = _strings(values.get("method"))
    return declared[0].rsplit(".", 1)[-1] if declared else "GET"


def normalize_path(path: str) -> str:
    """Collapse repeated slashes, force a leading slash and drop a trailing one."""
    path = re.sub(r"/{2,}", "/", "/" + path)
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return path


def describe(method_name: str) -> str:
    """``getUserById`` -> ``Get user by id``."""
    words = re.sub(r"(?<!^)(?=[A-Z])", " ", method_name).lower()
    return words[:1].upper() + words[1:]


def path_prefix(path: str) -> str:
    first = path.strip("/").split("/", 1)[0]
    return f"/{first}" if first else "/"


class EndpointDetector:
    """Find HTTP handlers on controller classes."""

    def __init__(self, methods: MethodExtractionService | None = None):
        self.methods = methods or MethodExtractionService()

    @staticmethod
    def is_controller(cls: ClassMetadata) -> bool:
        return any(a in CONTROLLER_ANNOTATIONS or a in _JAXRS_PATHS for a in cls.annotations)

    @staticmethod
    def _base_path(cls: ClassMetadata) -> str:
        for a in cls.annotations:
            if a == _REQUEST_MAPPING or a in _JAXRS_PATHS:
                return _path_value(cls.annotation_values.get(a, {}))
        return ""

    @staticmethod
    def _route(method: MethodMetadata) -> tuple[str, str] | None:
        """(verb, path) from the method's mapping annotations; later ones win."""
        verb = None
        path = ""
        for a in method.annotations:
            values = method.annotation_values.get(a, {})
            if a in _SPRING_VERBS:
                verb, path = _SPRING_VERBS[a], _path_value(values)
            elif a == _REQUEST_MAPPING:
                verb, path = _request_method(values), _path_value(values)
            elif a in _JAXRS_VERBS:
                verb = _JAXRS_VERBS[a]
            elif a in _JAXRS_PATHS:
                path = _path_value(values)
        return None if verb is None else (verb, path)

    @staticmethod
    def _roles(method: MethodMetadata) -> tuple[str, ...]:
        roles: list[str] = []
        for a in method.annotations:
            if a in _ROLE_ANNOTATIONS:
                roles.extend(_strings(method.annotation_values.get(a, {}).get("value")))
        return tuple(roles)

    def detect_endpoints(self, classes: Iterable[ClassMetadata]) -> list[Endpoint]:
        """Endpoints of every controller, in class then declaration order."""
        classes = list(classes)
        endpoints = []
        for cls in classes:
            if not self.is_controller(cls):
                continue
            base = self._base_path(cls)
            for method in cls.methods:
                if not self.methods.is_route_handler(method):
                    continue
                route = self._route(method)
                if route is None:
                    continue
                verb, path = route
                endpoints.append(
                    Endpoint(
                        http_method=verb,
                        path=normalize_path(f"{base}/{path}"),
                        controller_class=cls.fully_qualified_name,
                        method_name=method.method_name,
                        response_type=method.return_type,
                        parameters=method.parameters,
                        required_roles=self._roles(method),
                        deprecated=_DEPRECATED in method.annotations,
                        description=describe(method.method_name),
                    )
                )
        logger.info("Detected %d endpoint(s) among %d classes", len(endpoints), len(classes))
        return endpoints

    @staticmethod
    def _group(endpoints: Iterable[Endpoint], key) -> dict[str, list[Endpoint]]:
        groups: dict[str, list[Endpoint]] = {}
        for e in endpoints:
            groups.setdefault(key(e), []).append(e)
        return dict(sorted(groups.items()))

    def group_by_http_method(self, endpoints: Iterable[Endpoint]) -> dict[str, list[Endpoint]]:
        return self._group(endpoints, lambda e: e.http_method)

    def group_by_controller(self, endpoints: Iterable[Endpoint]) -> dict[str, list[Endpoint]]:
        return self._group(endpoints, lambda e: e.controller_class)

    def group_by_path_prefix(self, endpoints: Iterable[Endpoint]) -> dict[str, list[Endpoint]]:
        """Group by the first path segment, e.g. ``/api/users`` under ``/api``."""
        return self._group(endpoints, lambda e: path_prefix(e.path))

    @staticmethod
    def find_by_path_pattern(endpoints: Iterable[Endpoint], pattern: str) -> list[Endpoint]:
        """Endpoints whose whole path matches *pattern*; ``*`` matches anything."""
        regex = ".*".join(re.escape(part) for part in pattern.split("*"))
        return [e for e in endpoints if re.fullmatch(regex, e.path)]

    @staticmethod
    def get_statistics(endpoints: Iterable[Endpoint]) -> EndpointStatistics:
        endpoints = list(endpoints)
        return EndpointStatistics(
            total=len(endpoints),
            by_http_method=dict(sorted(Counter(e.http_method for e in endpoints).items())),
            by_controller=dict(sorted(Counter(e.controller_class for e in endpoints).items())),
            authenticated=sum(1 for e in endpoints if e.required_roles),
            deprecated=sum(1 for e in endpoints if e.deprecated),
        )
