"""Serialize analysis results into plain records with stable field names."""

from __future__ import annotations

import json
from pathlib import Path

from classlens.bytecode import format_version
from classlens.endpoints import Endpoint
from classlens.model import (
    BeanDefinition,
    CallGraph,
    ClassMetadata,
    DataFlowResult,
    DependencyGraph,
    DetectedComponent,
    FieldMetadata,
    MethodMetadata,
)
from classlens.pipeline import AnalysisResult


def _field_to_dict(f: FieldMetadata) -> dict:
    return {
        "fieldName": f.field_name,
        "type": f.type,
        "accessModifiers": list(f.access_modifiers),
        "annotations": list(f.annotations),
        "static": f.is_static,
        "final": f.is_final,
    }


def _method_to_dict(m: MethodMetadata) -> dict:
    d: dict = {
        "methodName": m.method_name,
        "accessModifiers": list(m.access_modifiers),
        "returnType": m.return_type,
        "parameters": [
            {"name": p.name, "type": p.type, "index": p.index} for p in m.parameters
        ],
        "invocations": [
            {
                "ownerClass": c.owner_class,
                "methodName": c.method_name,
                "lineNumber": c.line_number,
            }
            for c in m.invocations
        ],
        "annotations": list(m.annotations),
        "static": m.is_static,
    }
    if m.exceptions:
        d["exceptions"] = list(m.exceptions)
    if m.is_abstract:
        d["abstract"] = True
    return d


def class_to_dict(cls: ClassMetadata) -> dict:
    d: dict = {
        "className": cls.class_name,
        "packageName": cls.package_name,
        "fullyQualifiedName": cls.fully_qualified_name,
        "classType": cls.class_type.value,
        "superClassName": cls.super_class_name,
        "interfaces": list(cls.interfaces),
        "annotations": list(cls.annotations),
        "accessModifiers": list(cls.access_modifiers),
        "fields": [_field_to_dict(f) for f in cls.fields],
        "methods": [_method_to_dict(m) for m in cls.methods],
        "platformVersion": format_version(cls.major_version),
    }
    if cls.source_file is not None:
        d["sourceFile"] = cls.source_file
    return d


def dependency_graph_to_dict(graph: DependencyGraph) -> dict:
    return {
        "nodes": list(graph.nodes),
        "edges": [
            {"source": e.source, "target": e.target, "reason": e.reason.value}
            for e in graph.sorted_edges()
        ],
        "inheritanceDepth": graph.inheritance_depth,
        "cycles": [list(group) for group in graph.cycles],
        "circularDependencies": graph.circular_dependencies,
    }


def call_graph_to_dict(graph: CallGraph) -> dict:
    return {
        "methods": graph.all_methods(),
        "calls": {k: sorted(v) for k, v in graph.outgoing.items()},
    }


def component_to_dict(c: DetectedComponent) -> dict:
    return {
        "className": c.class_name,
        "packageName": c.package_name,
        "fullyQualifiedName": c.fully_qualified_name,
        "componentType": c.component_type.value,
        "evidence": list(c.evidence),
        "injectedDependencies": list(c.injected_dependencies),
        "beanMethods": list(c.bean_methods),
        "exposedMethods": list(c.exposed_methods),
    }


def bean_to_dict(b: BeanDefinition) -> dict:
    return {
        "configurationClass": b.configuration_class,
        "methodName": b.method_name,
        "returnType": b.return_type,
        "primary": b.is_primary,
        "lazy": b.is_lazy,
    }


def endpoint_to_dict(e: Endpoint) -> dict:
    d: dict = {
        "httpMethod": e.http_method,
        "path": e.path,
        "controllerClass": e.controller_class,
        "methodName": e.method_name,
        "responseType": e.response_type,
        "parameters": [{"name": p.name, "type": p.type} for p in e.parameters],
        "description": e.description,
    }
    if e.required_roles:
        d["requiredRoles"] = list(e.required_roles)
    if e.deprecated:
        d["deprecated"] = True
    return d


def flow_to_dict(flow: DataFlowResult) -> dict:
    return {
        "producers": {k: list(v) for k, v in flow.producers.items()},
        "consumers": {k: list(v) for k, v in flow.consumers.items()},
        "callChains": [
            {"methods": list(c.methods), "purpose": c.purpose} for c in flow.call_chains
        ],
        "paths": [
            {"source": p.source, "target": p.target, "dataType": p.data_type}
            for p in flow.paths
        ],
        "transformations": [
            {
                "method": t.method,
                "inputTypes": list(t.input_types),
                "outputType": t.output_type,
            }
            for t in flow.transformations
        ],
    }


def result_to_dict(result: AnalysisResult, flow: DataFlowResult | None = None) -> dict:
    """Build the full report document for *result* (and *flow*, if computed)."""
    data: dict = {
        "classes": [class_to_dict(c) for c in result.classes],
        "dependencyGraph": dependency_graph_to_dict(result.dependency_graph),
        "packageGraph": {k: list(v) for k, v in result.package_graph.items()},
        "callGraph": call_graph_to_dict(result.call_graph),
        "entryPoints": [m.id for m in result.entry_points],
        "components": [component_to_dict(c) for c in result.components],
        "entities": [component_to_dict(c) for c in result.entities],
        "repositories": [component_to_dict(c) for c in result.repositories],
        "configurations": [component_to_dict(c) for c in result.configurations],
        "beans": [bean_to_dict(b) for b in result.beans],
        "componentDependencies": result.component_dependencies,
        "endpoints": [endpoint_to_dict(e) for e in result.endpoints],
        "diagnostics": [
            {"record": d.record, "kind": d.kind, "message": d.message}
            for d in result.diagnostics
        ],
    }
    if result.metrics is not None:
        m = result.metrics
        data["metrics"] = {
            "nodeCount": m.node_count,
            "edgeCount": m.edge_count,
            "density": m.density,
            "highlyConnected": list(m.highly_connected),
            "orphans": list(m.orphans),
            "circularDependencies": m.circular_dependencies,
        }
    if flow is not None:
        data["dataFlow"] = flow_to_dict(flow)
    return data


def write_report(
    result: AnalysisResult,
    output_path: Path,
    flow: DataFlowResult | None = None,
) -> None:
    """Write the JSON report for *result* to *output_path*."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(result_to_dict(result, flow), indent=2))
