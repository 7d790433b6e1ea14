"""Tests for method categorization and the call graph."""

from __future__ import annotations

import pytest

from _metadata import cls, method
from classlens.methods import MethodCallCount, MethodExtractionService, MethodFilter, signature_of
from classlens.model import MethodCategory, MethodMetadata, ParameterInfo

GET_MAPPING = "org.springframework.web.bind.annotation.GetMapping"
JAXRS_GET = "jakarta.ws.rs.GET"


@pytest.fixture
def service() -> MethodExtractionService:
    return MethodExtractionService()


class TestCategorize:
    @pytest.mark.parametrize(
        ("m", "expected"),
        [
            (method("<init>"), MethodCategory.CONSTRUCTOR),
            (method("<clinit>", static=True), MethodCategory.STATIC_INITIALIZER),
            (method("getName", returns="java.lang.String"), MethodCategory.GETTER),
            (method("isActive", returns="boolean"), MethodCategory.GETTER),
            (method("setName", params=("java.lang.String",)), MethodCategory.SETTER),
            (method("list", returns="java.util.List", annotations=(GET_MAPPING,)), MethodCategory.REST_ENDPOINT),
            (method("list", returns="java.util.List", annotations=(JAXRS_GET,)), MethodCategory.REST_ENDPOINT),
            (method("main", params=("java.lang.String[]",), static=True), MethodCategory.ENTRY_POINT),
            (method("process", params=("a.Order",)), MethodCategory.BUSINESS),
        ],
    )
    def test_rules(self, service: MethodExtractionService, m: MethodMetadata, expected: MethodCategory) -> None:
        assert service.categorize(m) is expected

    @pytest.mark.parametrize(
        "m",
        [
            method("get", returns="java.lang.Object"),  # no property name
            method("getter", returns="java.lang.Object"),  # lowercase after prefix
            method("getName", returns="void"),  # void return
            method("getName", returns="a.B", params=("int",)),  # takes a parameter
            method("setName", params=("a", "b")),  # two parameters
            method("setName", returns="a.B", params=("a.B",)),  # fluent setter
            method("main", params=("java.lang.String[]",)),  # not static
            method("main", params=("java.lang.String[]",), static=True, public=False),
            method("main", params=("java.lang.String",), static=True),
        ],
    )
    def test_near_misses_are_business(self, service: MethodExtractionService, m: MethodMetadata) -> None:
        assert service.categorize(m) is MethodCategory.BUSINESS

    def test_getter_rule_wins_over_route_annotation(self, service: MethodExtractionService) -> None:
        m = method("getUsers", returns="java.util.List", annotations=(GET_MAPPING,))
        assert service.categorize(m) is MethodCategory.GETTER

    def test_custom_route_annotations(self) -> None:
        svc = MethodExtractionService(route_annotations=["my.Route"])
        assert svc.categorize(method("handle", annotations=("my.Route",))) is MethodCategory.REST_ENDPOINT
        assert svc.categorize(method("handle", annotations=(GET_MAPPING,))) is MethodCategory.BUSINESS


class TestCallGraph:
    def _classes(self):
        return [
            cls(
                "a.Controller",
                methods=(
                    method("list", calls=(("a.Service", "findAll"), ("a.Service", "count"))),
                    method("show", calls=(("a.Service", "findAll"),)),
                ),
            ),
            cls(
                "a.Service",
                methods=(
                    method("findAll", calls=(("a.Repo", "query"), ("a.Repo", "query"))),
                    method("findAll", params=("int",)),
                    method("count"),
                ),
            ),
        ]

    def test_edges_and_reverse_lookup(self, service: MethodExtractionService) -> None:
        graph = service.build_call_graph(self._classes())
        assert graph.get_callees("a.Controller#list") == {"a.Service#findAll", "a.Service#count"}
        assert graph.get_callers("a.Service#findAll") == {"a.Controller#list", "a.Controller#show"}
        assert graph.get_callees("a.Service#findAll") == {"a.Repo#query"}

    def test_unknown_or_leaf_methods_have_no_callees(self, service: MethodExtractionService) -> None:
        graph = service.build_call_graph(self._classes())
        assert graph.get_callees("a.Service#count") == frozenset()
        assert graph.get_callees("no.Such#method") == frozenset()
        assert graph.get_callers("a.Controller#list") == frozenset()

    def test_overloads_collapse_to_one_node(self, service: MethodExtractionService) -> None:
        graph = service.build_call_graph(self._classes())
        assert graph.all_methods() == [
            "a.Controller#list",
            "a.Controller#show",
            "a.Service#count",
            "a.Service#findAll",
        ]
        overloaded = service.find_overloaded_methods(self._classes())
        assert list(overloaded) == ["a.Service#findAll"]
        assert len(overloaded["a.Service#findAll"]) == 2

    def test_external_callees_are_nodes(self, service: MethodExtractionService) -> None:
        graph = service.build_call_graph(self._classes())
        assert "a.Repo#query" in graph.nodes()
        assert "a.Repo#query" not in graph.all_methods()
        assert graph.edge_count() == 4

    def test_most_called(self, service: MethodExtractionService) -> None:
        graph = service.build_call_graph(self._classes())
        assert service.most_called(graph, 2) == [
            MethodCallCount("a.Service#findAll", 2),
            MethodCallCount("a.Repo#query", 1),
        ]
        assert service.most_called(graph, 0) == []

    def test_most_complex(self, service: MethodExtractionService) -> None:
        graph = service.build_call_graph(self._classes())
        assert service.most_complex(graph, 1) == [MethodCallCount("a.Controller#list", 2)]

    def test_find_unused_methods(self, service: MethodExtractionService) -> None:
        classes = self._classes() + [cls("a.X", methods=(method("<init>"), method("lambda$run$0")))]
        graph = service.build_call_graph(classes)
        assert service.find_unused_methods(graph) == ["a.Controller#list", "a.Controller#show"]


class TestEntryPoints:
    def test_main_and_route_handlers(self, service: MethodExtractionService) -> None:
        classes = [
            cls("a.App", methods=(method("main", params=("java.lang.String[]",), static=True),)),
            cls("a.Web", methods=(method("list", annotations=(GET_MAPPING,)), method("helper"))),
        ]
        found = service.find_entry_points(classes)
        assert [(m.id, m.category) for m in found] == [
            ("a.App#main", MethodCategory.ENTRY_POINT),
            ("a.Web#list", MethodCategory.REST_ENDPOINT),
        ]

    def test_route_mapped_getter_is_still_an_entry_point(self, service: MethodExtractionService) -> None:
        classes = [cls("a.Web", methods=(method("getUsers", returns="java.util.List", annotations=(GET_MAPPING,)),))]
        found = service.find_entry_points(classes)
        assert [(m.id, m.category) for m in found] == [("a.Web#getUsers", MethodCategory.GETTER)]

    def test_group_by_category(self, service: MethodExtractionService) -> None:
        classes = [cls("a.T", methods=(method("<init>"), method("getX", returns="int"), method("run")))]
        groups = service.group_by_category(classes)
        assert {k: [m.method_name for m in v] for k, v in groups.items()} == {
            MethodCategory.CONSTRUCTOR: ["<init>"],
            MethodCategory.GETTER: ["getX"],
            MethodCategory.BUSINESS: ["run"],
        }


class TestFindMethods:
    def _classes(self):
        return [
            cls("a.App", methods=(method("main", params=("java.lang.String[]",), static=True),)),
            cls(
                "a.Web",
                methods=(
                    method("listUsers", returns="java.util.List", annotations=(GET_MAPPING,)),
                    method("findUser", returns="a.User", annotations=(JAXRS_GET,)),
                    method("findHelper", returns="a.User", public=False),
                    method("setName", params=("java.lang.String",)),
                ),
            ),
        ]

    def test_all(self, service: MethodExtractionService) -> None:
        assert len(service.find_methods(self._classes(), MethodFilter.all())) == 5

    def test_name_pattern_matches_whole_name(self, service: MethodExtractionService) -> None:
        found = service.find_methods(self._classes(), MethodFilter(name_pattern="find.*"))
        assert [m.method_name for m in found] == ["findUser", "findHelper"]
        assert service.find_methods(self._classes(), MethodFilter(name_pattern="find")) == []

    def test_return_type_and_visibility(self, service: MethodExtractionService) -> None:
        wanted = MethodFilter(return_type="a.User", public_only=True)
        assert [m.id for m in service.find_methods(self._classes(), wanted)] == ["a.Web#findUser"]
        public = service.find_methods(self._classes(), MethodFilter.public_methods())
        assert "findHelper" not in [m.method_name for m in public]

    def test_annotation_by_simple_name(self, service: MethodExtractionService) -> None:
        found = service.find_methods(
            self._classes(), MethodFilter(annotations=frozenset(["GetMapping", "ws.rs.GET"]))
        )
        assert [m.method_name for m in found] == ["listUsers", "findUser"]

    def test_category_and_static(self, service: MethodExtractionService) -> None:
        found = service.find_methods(
            self._classes(),
            MethodFilter.by_category(MethodCategory.SETTER, MethodCategory.ENTRY_POINT),
        )
        assert [m.method_name for m in found] == ["main", "setName"]
        static = service.find_methods(self._classes(), MethodFilter(static_only=True))
        assert [m.id for m in static] == ["a.App#main"]


class TestStatistics:
    def test_analyze_parameters(self, service: MethodExtractionService) -> None:
        classes = [
            cls(
                "a.T",
                methods=(
                    method("a"),
                    method("b", params=("int",)),
                    method("c", params=("int", "a.Dto")),
                    method("d", params=("int",)),
                ),
            )
        ]
        analysis = service.analyze_parameters(classes)
        assert analysis.count_distribution == {0: 1, 1: 2, 2: 1}
        assert analysis.type_frequency == {"int": 3, "a.Dto": 1}
        assert analysis.max_parameters == 2
        assert analysis.average_parameters == 1.0

    def test_analyze_parameters_empty(self, service: MethodExtractionService) -> None:
        analysis = service.analyze_parameters([])
        assert analysis.max_parameters == 0
        assert analysis.average_parameters == 0.0
        assert analysis.count_distribution == {}

    def test_analyze_return_types(self, service: MethodExtractionService) -> None:
        classes = [cls("a.T", methods=(method("a"), method("b"), method("c", returns="int")))]
        assert service.analyze_return_types(classes) == {"void": 2, "int": 1}


class TestSignature:
    def test_readable_signature(self) -> None:
        m = MethodMetadata(
            method_name="save",
            return_type="java.lang.String",
            parameters=(
                ParameterInfo("user", "a.User", 0),
                ParameterInfo("arg1", "int", 1),
            ),
            access_modifiers=("public", "static"),
            is_static=True,
            exceptions=("java.io.IOException",),
        )
        assert signature_of(m) == "public static String save(User user, int) throws IOException"
