"""
Import resolution tests.
"""

import pytest

from classfile_builder import ABSTRACT_METHOD, ClassBuilder, interface
from declass.core.configuration import Configuration
from declass.core.imports import import_lines, importable_types, name_filter
from declass.parsers.classfile import ACC_PUBLIC, ACC_STATIC


class TestImportableTypes:
    """Test which referenced types are imported."""

    @pytest.fixture
    def widget(self, registry, add_class):
        builder = ClassBuilder("com/example/Widget")
        builder.field(ACC_PUBLIC, "count", "I")
        builder.field(ACC_PUBLIC, "label", "Ljava/lang/String;")
        builder.field(ACC_PUBLIC, "peer", "Lcom/example/Peer;")
        builder.constructor()
        builder.method(ACC_PUBLIC, "getCount", "()I")
        add_class(builder, ClassBuilder("com/example/Peer"))
        return registry.class_type("com.example.Widget")

    def test_nothing_to_import(self, widget):
        """Test that primitives, java.lang and the own package are skipped."""
        assert importable_types(widget) == []
        assert import_lines(importable_types(widget)) == []

    def test_cross_package_sorted(self, registry, add_class):
        """Test sorting, de-duplication and array unwrapping."""
        builder = ClassBuilder("com/example/Catalog", interfaces=["java/io/Serializable"])
        builder.field(ACC_PUBLIC, "entries", "Ljava/util/List;")
        builder.field(ACC_PUBLIC, "more", "Ljava/util/List;")
        builder.field(ACC_PUBLIC, "grid", "[[Lcom/other/Cell;")
        builder.method(ACC_PUBLIC, "load", "()V", exceptions=["java/io/IOException"])
        add_class(builder, ClassBuilder("com/other/Cell"))
        catalog = registry.class_type("com.example.Catalog")

        assert [t.name for t in importable_types(catalog)] == [
            "com.other.Cell",
            "java.io.IOException",
            "java.io.Serializable",
            "java.util.List",
        ]
        assert [t.name for t in importable_types(catalog, sorting=False)] == [
            "java.util.List",
            "com.other.Cell",
            "java.io.Serializable",
            "java.io.IOException",
        ]

    def test_nested_type_imports_top_level(self, registry, add_class):
        """Test that Map$Entry imports java.util.Map."""
        builder = ClassBuilder("com/example/Holder")
        builder.field(ACC_PUBLIC, "entry", "Ljava/util/Map$Entry;")
        builder.field(ACC_PUBLIC, "map", "Ljava/util/Map;")
        add_class(builder)
        holder = registry.class_type("com.example.Holder")
        assert import_lines(importable_types(holder)) == ["import java.util.Map;"]

    def test_referenced_code_owners(self, registry, add_class):
        """Test that owners touched by constructor code are imported."""
        builder = ClassBuilder("com/example/Child", super_name="com/base/Parent")
        builder.constructor()
        add_class(builder, ClassBuilder("com/base/Parent"))
        child = registry.class_type("com.example.Child")
        assert [t.name for t in importable_types(child)] == ["com.base.Parent"]

    def test_inner_type_references(self, registry, add_class):
        """Test that members of inner classes contribute imports."""
        outer = ClassBuilder("com/example/Outer")
        outer.inner_classes([("com/example/Outer$Node", "com/example/Outer", "Node", ACC_STATIC)])
        node = ClassBuilder("com/example/Outer$Node")
        node.field(ACC_PUBLIC, "items", "Ljava/util/List;")
        add_class(outer, node)
        assert [t.name for t in importable_types(registry.class_type("com.example.Outer"))] == [
            "java.util.List"
        ]

    def test_interface_imports(self, registry, add_class):
        builder = interface("com/example/Source", "java/util/Map")
        builder.method(ABSTRACT_METHOD, "read", "()Lcom/other/Cell;")
        add_class(builder, ClassBuilder("com/other/Cell"))
        source = registry.interface_type("com.example.Source")
        assert [t.name for t in importable_types(source)] == ["com.other.Cell", "java.util.Map"]

    def test_non_declared_types(self, registry):
        assert importable_types(registry.resolve("int[]")) == []


class TestNameFilter:
    """Test filter construction from the configuration."""

    def test_importables_drive_elision(self, registry, add_class):
        builder = ClassBuilder("com/example/Holder")
        builder.field(ACC_PUBLIC, "items", "Ljava/util/List;")
        add_class(builder)
        holder = registry.class_type("com.example.Holder")

        filter_ = name_filter(holder, Configuration())
        assert filter_.accepts("java.util", "List") is False

        filter_ = name_filter(holder, Configuration(importing_types=False))
        assert filter_.accepts("java.util", "List") is True
        assert filter_.accepts("java.lang", "String") is False
