"""Tests for REST endpoint detection."""

from __future__ import annotations

import pytest

from _metadata import cls, method
from classlens.config import AnalysisConfig
from classlens.endpoints import EndpointDetector, describe, normalize_path
from classlens.model import ClassRecord
from classlens.pipeline import analyze_records

WEB = "org.springframework.web.bind.annotation."
REST_CONTROLLER = WEB + "RestController"
REQUEST_MAPPING = WEB + "RequestMapping"
GET_MAPPING = WEB + "GetMapping"
POST_MAPPING = WEB + "PostMapping"
DELETE_MAPPING = WEB + "DeleteMapping"
REQUEST_METHOD = "org.springframework.web.bind.annotation.RequestMethod"
JAXRS_PATH = "jakarta.ws.rs.Path"
JAXRS_GET = "jakarta.ws.rs.GET"
ROLES_ALLOWED = "jakarta.annotation.security.RolesAllowed"
PRE_AUTHORIZE = "org.springframework.security.access.prepost.PreAuthorize"


@pytest.fixture
def detector() -> EndpointDetector:
    return EndpointDetector()


def _spring_controller():
    return cls(
        "app.web.UserController",
        values={REST_CONTROLLER: {}, REQUEST_MAPPING: {"value": ["/api/users/"]}},
        methods=(
            method("list", returns="java.util.List", values={GET_MAPPING: {}}),
            method(
                "getById",
                returns="app.User",
                params=("long",),
                values={GET_MAPPING: {"value": ["{id}"]}},
            ),
            method(
                "create",
                returns="app.User",
                params=("app.User",),
                values={POST_MAPPING: {}, PRE_AUTHORIZE: {"value": "hasRole('ADMIN')"}},
            ),
            method(
                "update",
                values={
                    REQUEST_MAPPING: {
                        "path": ["/{id}"],
                        "method": [f"{REQUEST_METHOD}.PUT"],
                    }
                },
            ),
            method(
                "remove",
                annotations=(DELETE_MAPPING, "java.lang.Deprecated"),
                values={DELETE_MAPPING: {"value": ["/{id}"]}},
            ),
            method("helper"),
        ),
    )


def _jaxrs_resource():
    return cls(
        "app.rs.OrderResource",
        values={JAXRS_PATH: {"value": "orders"}},
        methods=(
            method(
                "find",
                returns="app.Order",
                values={
                    JAXRS_GET: {},
                    JAXRS_PATH: {"value": "/{id}"},
                    ROLES_ALLOWED: {"value": ["USER", "ADMIN"]},
                },
            ),
            method("all", returns="java.util.List", values={JAXRS_GET: {}}),
            # A sub-resource locator has a path but no verb.
            method("items", values={JAXRS_PATH: {"value": "items"}}),
        ),
    )


class TestDetect:
    def test_spring_routes(self, detector: EndpointDetector) -> None:
        found = detector.detect_endpoints([_spring_controller()])
        assert [(e.http_method, e.path, e.method_name) for e in found] == [
            ("GET", "/api/users", "list"),
            ("GET", "/api/users/{id}", "getById"),
            ("POST", "/api/users", "create"),
            ("PUT", "/api/users/{id}", "update"),
            ("DELETE", "/api/users/{id}", "remove"),
        ]

    def test_endpoint_details(self, detector: EndpointDetector) -> None:
        by_name = {e.method_name: e for e in detector.detect_endpoints([_spring_controller()])}
        get = by_name["getById"]
        assert get.id == "app.web.UserController#getById"
        assert get.response_type == "app.User"
        assert [p.type for p in get.parameters] == ["long"]
        assert get.description == "Get by id"
        assert by_name["create"].required_roles == ("hasRole('ADMIN')",)
        assert by_name["remove"].deprecated
        assert not by_name["list"].deprecated

    def test_jaxrs_routes(self, detector: EndpointDetector) -> None:
        found = detector.detect_endpoints([_jaxrs_resource()])
        assert [(e.http_method, e.path) for e in found] == [
            ("GET", "/orders/{id}"),
            ("GET", "/orders"),
        ]
        assert found[0].required_roles == ("USER", "ADMIN")

    def test_request_mapping_defaults_to_get(self, detector: EndpointDetector) -> None:
        controller = cls(
            "a.Web",
            values={REST_CONTROLLER: {}},
            methods=(method("ping", values={REQUEST_MAPPING: {"value": ["ping"]}}),),
        )
        (endpoint,) = detector.detect_endpoints([controller])
        assert (endpoint.http_method, endpoint.path) == ("GET", "/ping")

    def test_non_controllers_are_skipped(self, detector: EndpointDetector) -> None:
        plain = cls("a.Util", methods=(method("get", values={GET_MAPPING: {}}),))
        assert detector.detect_endpoints([plain]) == []

    def test_through_class_bytes(self, user_controller_bytes: bytes) -> None:
        result = analyze_records(
            [ClassRecord("UserController.class", user_controller_bytes)],
            AnalysisConfig(workers=1),
        )
        (endpoint,) = result.endpoints
        assert (endpoint.http_method, endpoint.path) == ("GET", "/users")
        assert endpoint.response_type == "java.util.List"


class TestQueries:
    def _endpoints(self, detector: EndpointDetector):
        return detector.detect_endpoints([_spring_controller(), _jaxrs_resource()])

    def test_group_by_http_method(self, detector: EndpointDetector) -> None:
        groups = detector.group_by_http_method(self._endpoints(detector))
        assert list(groups) == ["DELETE", "GET", "POST", "PUT"]
        assert [e.method_name for e in groups["GET"]] == ["list", "getById", "find", "all"]

    def test_group_by_path_prefix(self, detector: EndpointDetector) -> None:
        groups = detector.group_by_path_prefix(self._endpoints(detector))
        assert {k: len(v) for k, v in groups.items()} == {"/api": 5, "/orders": 2}

    def test_group_by_controller(self, detector: EndpointDetector) -> None:
        groups = detector.group_by_controller(self._endpoints(detector))
        assert list(groups) == ["app.rs.OrderResource", "app.web.UserController"]

    def test_find_by_path_pattern(self, detector: EndpointDetector) -> None:
        endpoints = self._endpoints(detector)
        found = EndpointDetector.find_by_path_pattern(endpoints, "/api/users/{id}")
        assert [e.method_name for e in found] == ["getById", "update", "remove"]
        assert len(EndpointDetector.find_by_path_pattern(endpoints, "/orders*")) == 2

    def test_statistics(self, detector: EndpointDetector) -> None:
        stats = EndpointDetector.get_statistics(self._endpoints(detector))
        assert stats.total == 7
        assert stats.by_http_method == {"DELETE": 1, "GET": 4, "POST": 1, "PUT": 1}
        assert stats.by_controller == {"app.rs.OrderResource": 2, "app.web.UserController": 5}
        assert stats.authenticated == 2
        assert stats.deprecated == 1


class TestHelpers:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("", "/"), ("/", "/"), ("api//users/", "/api/users"), ("/a/{id}", "/a/{id}")],
    )
    def test_normalize_path(self, raw: str, expected: str) -> None:
        assert normalize_path(raw) == expected

    def test_describe(self) -> None:
        assert describe("getUserById") == "Get user by id"
        assert describe("list") == "List"
