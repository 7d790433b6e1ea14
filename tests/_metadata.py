"""Build ClassMetadata values directly, without going through class bytes."""

from __future__ import annotations

from typing import Any

from classlens.model import (
    ClassMetadata,
    ClassType,
    FieldMetadata,
    MethodCall,
    MethodMetadata,
    ParameterInfo,
)


def method(
    name: str,
    returns: str = "void",
    params: tuple[str, ...] = (),
    calls: tuple[tuple[str, str], ...] = (),
    annotations: tuple[str, ...] = (),
    public: bool = True,
    static: bool = False,
    values: dict[str, dict[str, Any]] | None = None,
) -> MethodMetadata:
    modifiers = ("public",) if public else ("private",)
    if static:
        modifiers += ("static",)
    return MethodMetadata(
        method_name=name,
        return_type=returns,
        parameters=tuple(
            ParameterInfo(name=f"arg{i}", type=t, index=i) for i, t in enumerate(params)
        ),
        access_modifiers=modifiers,
        annotations=annotations or tuple(values or ()),
        invocations=tuple(MethodCall(owner, callee) for owner, callee in calls),
        is_static=static,
        annotation_values=dict(values or {}),
    )


def field(name: str, type_name: str, final: bool = False, static: bool = False) -> FieldMetadata:
    return FieldMetadata(field_name=name, type=type_name, is_final=final, is_static=static)


def cls(
    fqn: str,
    methods: tuple[MethodMetadata, ...] = (),
    fields: tuple[FieldMetadata, ...] = (),
    annotations: tuple[str, ...] = (),
    super_name: str | None = "java.lang.Object",
    interfaces: tuple[str, ...] = (),
    class_type: ClassType = ClassType.CLASS,
    values: dict[str, dict[str, Any]] | None = None,
) -> ClassMetadata:
    package, _, simple = fqn.rpartition(".")
    return ClassMetadata(
        fully_qualified_name=fqn,
        class_name=simple,
        package_name=package,
        class_type=class_type,
        super_class_name=super_name,
        interfaces=interfaces,
        annotations=annotations or tuple(values or ()),
        fields=fields,
        methods=methods,
        annotation_values=dict(values or {}),
    )
