"""
Import Resolver
===============

Computes the types a declaration must import and builds the
:class:`~declass.core.names.PackageNameFilter` used to elide package
qualifiers while rendering it.

Walk order for a class: constructors, fields, inner types, interfaces,
methods, type-parameter bounds, superclass.  The result drops arrays (in
favour of their element type), primitives, ``void``, ``java.lang`` and
the declaring package, keeps the first occurrence of each type, and is
optionally sorted by fully qualified name.
"""

from __future__ import annotations

from typing import Iterable, assert_never

from declass.core.configuration import Configuration
from declass.core.names import JAVA_LANG, PackageNameFilter
from declass.core.types import (
    AnnotationType,
    AnyType,
    ArrayType,
    ClassType,
    EnumType,
    InterfaceType,
    PrimitiveType,
    Type,
    VoidType,
)


def _referenced_types(type_: AnyType) -> list[Type]:
    """Every type the declaration of *type_* mentions, in walk order."""
    if isinstance(type_, ClassType):
        found: list[Type] = []
        for constructor in type_.constructors:
            found.extend(constructor.importable_types())
        for field in type_.fields:
            found.extend(field.importable_types())
        for inner in type_.inner_types:
            found.extend(_referenced_types(inner.type))  # type: ignore[arg-type]
        found.extend(type_.interfaces)
        for method in type_.methods:
            found.extend(method.importable_types())
        found.extend(_bound_types(type_))
        superclass = type_.superclass
        if superclass is not None:
            found.append(superclass)
        return found
    if isinstance(type_, InterfaceType):
        found = []
        for field in type_.fields:
            found.extend(field.importable_types())
        found.extend(type_.interfaces)
        for method in type_.methods:
            found.extend(method.importable_types())
        found.extend(_bound_types(type_))
        return found
    if isinstance(type_, (EnumType, AnnotationType, PrimitiveType, VoidType, ArrayType)):
        return []
    assert_never(type_)


def _bound_types(type_: ClassType | InterfaceType) -> list[Type]:
    signature = type_.signature
    if signature is None:
        return []
    return [type_.registry.resolve(name) for name in dict.fromkeys(signature.bound_class_names())]


def _element(type_: Type) -> Type:
    while isinstance(type_, ArrayType):
        type_ = type_.component
    return type_


def normalize(types: Iterable[Type], own_package: str, *, sorting: bool) -> list[Type]:
    """Unwrap, filter and de-duplicate a raw reference list."""
    kept: dict[Type, None] = {}
    for candidate in types:
        element = _element(candidate)
        if isinstance(element, (PrimitiveType, VoidType)):
            continue
        package = element.package_name
        if package == JAVA_LANG or package == own_package:
            continue
        kept.setdefault(element, None)
    result = list(kept)
    if sorting:
        result.sort(key=lambda t: t.name)
    return result


def importable_types(type_: AnyType, *, sorting: bool = True) -> list[Type]:
    """Importable types of *type_*, cached per sorting flag on declared types."""
    if isinstance(type_, (ClassType, InterfaceType, EnumType, AnnotationType)):
        return list(
            type_.memo(
                ("importable_types", sorting),
                lambda: normalize(_referenced_types(type_), type_.package_name, sorting=sorting),
            )
        )
    if isinstance(type_, (PrimitiveType, VoidType, ArrayType)):
        return []
    assert_never(type_)


def import_lines(types: Iterable[Type]) -> list[str]:
    """``import a.b.C;`` lines; nested types import their top-level class."""
    names = dict.fromkeys(t.name.split("$", 1)[0] for t in types)
    return [f"import {name};" for name in names]


def name_filter(type_: AnyType, configuration: Configuration) -> PackageNameFilter:
    """Package filter for rendering the declaration of *type_*."""
    importables = (
        importable_types(type_, sorting=configuration.sorting_imports)
        if configuration.importing_types
        else []
    )
    return PackageNameFilter(
        type_.package_name,
        discarding=configuration.discarding_unnecessary_package_names,
        importing=configuration.importing_types,
        importable_names=[t.name for t in importables],
    )
