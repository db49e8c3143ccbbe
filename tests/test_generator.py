"""
Source generator tests.
"""

import pytest

from classfile_builder import (
    ABSTRACT_METHOD,
    ClassBuilder,
    enum_builder,
    interface,
    invoke_special,
)
from declass.core.configuration import TOGGLE_LABELS, Configuration
from declass.core.errors import ConfigurationError, DecompilationError
from declass.core.generator import RULE, SourceCodeGenerator, decompile
from declass.parsers.classfile import (
    ACC_ABSTRACT,
    ACC_ANNOTATION,
    ACC_FINAL,
    ACC_INTERFACE,
    ACC_NATIVE,
    ACC_PRIVATE,
    ACC_PUBLIC,
    ACC_STATIC,
    ACC_SUPER,
)
from shared.logger import DeclassLogger

TAB_RULE = "\t" + RULE


def widget_builder():
    builder = ClassBuilder("com/example/Widget")
    builder.field(ACC_PUBLIC, "count", "I")
    builder.constructor()
    builder.method(ACC_PUBLIC, "getCount", "()I", code=b"\x03\xac")
    return builder


class TestClassLayout:
    """Test the overall shape of rendered classes."""

    @pytest.fixture
    def widget(self, registry, add_class):
        add_class(widget_builder())
        return registry.class_type("com.example.Widget")

    def test_default_layout(self, widget):
        """Test blank-line separation without rules."""
        assert decompile(widget).splitlines() == [
            "package com.example;",
            "",
            "public class Widget {",
            "\tpublic int count;",
            "",
            "\tpublic Widget() {",
            "",
            "\t}",
            "",
            "\tpublic int getCount() {",
            "\t\treturn 0;",
            "\t}",
            "}",
        ]

    def test_grouped_layout(self, widget):
        """Test that separated, sorted groups are divided by rules."""
        text = decompile(widget, Configuration(separating_groups=True, sorting_groups=True))
        lines = text.splitlines()
        assert lines == [
            "package com.example;",
            "",
            "public class Widget {",
            "\tpublic int count;",
            "",
            TAB_RULE,
            "",
            "\tpublic Widget() {",
            "",
            "\t}",
            "",
            TAB_RULE,
            "",
            "\tpublic int getCount() {",
            "\t\treturn 0;",
            "\t}",
            "}",
        ]
        assert lines.count(TAB_RULE) == 2
        assert len(RULE) == 100
        assert text.endswith("}\n")

    def test_separating_requires_sorting(self, widget):
        """Test that separation alone adds no rules."""
        text = decompile(widget, Configuration(separating_groups=True))
        assert RULE not in text

    def test_rules_between_visibility_groups(self, registry, add_class):
        """Test extra rules where sorted neighbours change group."""
        builder = ClassBuilder("com/example/Table")
        builder.field(ACC_PRIVATE, "c", "I")
        builder.field(ACC_PUBLIC, "b", "I")
        builder.field(ACC_PUBLIC | ACC_STATIC, "A", "I")
        add_class(builder)
        text = decompile(
            registry.class_type("com.example.Table"),
            Configuration(separating_groups=True, sorting_groups=True),
        )
        assert text.splitlines()[2:] == [
            "public class Table {",
            "\tpublic static int A;",
            "",
            TAB_RULE,
            "",
            "\tpublic int b;",
            "",
            TAB_RULE,
            "",
            "\tprivate int c;",
            "}",
        ]

    def test_default_package(self, registry, add_class):
        """Test that no package clause is written for the default package."""
        add_class(ClassBuilder("Thing", access=ACC_SUPER | ACC_FINAL))
        assert decompile(registry.class_type("Thing")) == "final class Thing {\n}\n"

    def test_extends_object_toggle(self, widget):
        text = decompile(widget, Configuration(discarding_extends_object=False))
        assert "public class Widget extends Object {" in text.splitlines()

    def test_custom_indent(self, widget):
        text = decompile(widget, Configuration(indent="    "))
        assert "        return 0;" in text.splitlines()


class TestDefaultBodies:
    """Test placeholder bodies for every return type."""

    @pytest.mark.parametrize(
        "descriptor, body",
        [
            ("V", ""),
            ("Z", "\t\treturn false;"),
            ("B", "\t\treturn 0;"),
            ("C", "\t\treturn '\\u0000';"),
            ("S", "\t\treturn 0;"),
            ("I", "\t\treturn 0;"),
            ("J", "\t\treturn 0L;"),
            ("F", "\t\treturn 0.0F;"),
            ("D", "\t\treturn 0.0D;"),
            ("Ljava/lang/String;", "\t\treturn null;"),
            ("[I", "\t\treturn null;"),
        ],
    )
    def test_body(self, registry, add_class, descriptor, body):
        builder = ClassBuilder("com/example/Body")
        builder.method(ACC_PUBLIC, "value", "()" + descriptor)
        add_class(builder)
        lines = decompile(registry.class_type("com.example.Body")).splitlines()
        start = next(i for i, line in enumerate(lines) if " value() {" in line)
        assert lines[start + 1] == body
        assert lines[start + 2] == "\t}"


class TestInterfaces:
    """Test interface rendering and modifier discarding."""

    @pytest.fixture
    def shape(self, registry, add_class):
        builder = interface("com/example/Shape")
        builder.method(ABSTRACT_METHOD, "area", "()D")
        builder.method(ACC_PUBLIC, "describe", "()Ljava/lang/String;")
        builder.method(ACC_PUBLIC | ACC_STATIC, "of", "()Lcom/example/Shape;")
        add_class(builder)
        return registry.interface_type("com.example.Shape")

    def test_interface(self, shape):
        assert decompile(shape) == (
            "package com.example;\n"
            "\n"
            "public interface Shape {\n"
            "\tdouble area();\n"
            "\n"
            "\tdefault String describe() {\n"
            "\t\treturn null;\n"
            "\t}\n"
            "\n"
            "\tstatic Shape of() {\n"
            "\t\treturn null;\n"
            "\t}\n"
            "}\n"
        )

    def test_modifiers_kept(self, shape):
        """Test interface methods with discarding disabled."""
        configuration = Configuration(
            discarding_abstract_interface_method_modifier=False,
            discarding_public_interface_method_modifier=False,
        )
        lines = decompile(shape, configuration).splitlines()
        assert "\tpublic abstract double area();" in lines
        assert "\tpublic default String describe() {" in lines
        assert "\tpublic static Shape of() {" in lines

    def test_object_method_override(self, registry, add_class):
        """Test @Override on an interface redeclaring an Object method."""
        builder = interface("com/example/Matcher")
        builder.method(ABSTRACT_METHOD, "equals", "(Ljava/lang/Object;)Z")
        builder.method(ABSTRACT_METHOD, "matches", "(Ljava/lang/Object;)Z")
        add_class(builder)
        lines = decompile(registry.interface_type("com.example.Matcher")).splitlines()
        assert lines.count("\t@Override") == 1
        assert lines[lines.index("\t@Override") + 1].startswith("\tboolean equals(Object ")

    def test_extends_and_imports(self, registry, add_class):
        builder = interface("com/example/Store", "java/util/List", "java/lang/Runnable")
        builder.signature("<K:Ljava/lang/Object;>Ljava/lang/Object;Ljava/util/List<TK;>;Ljava/lang/Runnable;")
        add_class(builder)
        assert decompile(registry.interface_type("com.example.Store")).splitlines() == [
            "package com.example;",
            "",
            "import java.util.List;",
            "",
            "public interface Store<K> extends List<K>, Runnable {",
            "}",
        ]


class TestShells:
    """Test enum and annotation shells."""

    def test_enum(self, registry, add_class):
        add_class(enum_builder("com/example/Color"))
        assert decompile(registry.enum_type("com.example.Color")) == (
            "package com.example;\n\npublic enum Color {\n}\n"
        )

    def test_annotation(self, registry, add_class):
        add_class(
            ClassBuilder(
                "com/example/Marker",
                access=ACC_PUBLIC | ACC_INTERFACE | ACC_ABSTRACT | ACC_ANNOTATION,
            )
        )
        assert decompile(registry.annotation_type("com.example.Marker")) == (
            "package com.example;\n\npublic @interface Marker {\n}\n"
        )


class TestInnerClasses:
    """Test nested class declarations."""

    def test_static_inner_class(self, registry, add_class):
        outer = ClassBuilder("com/example/Outer")
        outer.inner_classes(
            [
                ("com/example/Outer$Node", "com/example/Outer", "Node", ACC_PRIVATE | ACC_STATIC),
                ("com/example/Outer", "com/example/Outer", "Outer", ACC_PUBLIC),
                ("com/example/Other$Leaf", "com/example/Other", "Leaf", ACC_PUBLIC),
            ]
        )
        node = ClassBuilder("com/example/Outer$Node", access=ACC_SUPER)
        node.field(0, "value", "I")
        add_class(outer, node)
        assert decompile(registry.class_type("com.example.Outer")) == (
            "package com.example;\n"
            "\n"
            "public class Outer {\n"
            "\tprivate static class Node {\n"
            "\t\tint value;\n"
            "\t}\n"
            "}\n"
        )

    def test_inner_type_references_render_dotted(self, registry, add_class):
        """Test that nested type names print as Outer.Inner."""
        builder = ClassBuilder("com/example/Holder")
        builder.field(ACC_PUBLIC, "entry", "Ljava/util/Map$Entry;")
        add_class(builder)
        lines = decompile(registry.class_type("com.example.Holder")).splitlines()
        assert lines[2] == "import java.util.Map;"
        assert "\tpublic Map.Entry entry;" in lines


class TestGenericClass:
    """Test a generic class with imports, constants and overrides."""

    @pytest.fixture
    def repository(self, registry, add_class):
        base = ClassBuilder("com/base/Base")
        base.constructor()
        base.method(ACC_PUBLIC, "close", "()V")

        builder = ClassBuilder(
            "com/example/Repository",
            super_name="com/base/Base",
            interfaces=["java/lang/Runnable"],
        )
        builder.signature("<T::Ljava/lang/Comparable<TT;>;>Lcom/base/Base;Ljava/lang/Runnable;")
        builder.field(ACC_PRIVATE | ACC_FINAL, "items", "Ljava/util/List;", signature="Ljava/util/List<TT;>;")
        builder.field(ACC_PUBLIC | ACC_STATIC | ACC_FINAL, "LIMIT", "I", constant=10)
        builder.field(ACC_PUBLIC | ACC_STATIC | ACC_FINAL, "NAME", "Ljava/lang/String;", constant="repo\n")
        builder.constructor(
            descriptor="(Ljava/util/List;)V",
            signature="(Ljava/util/List<TT;>;)V",
            parameters=[("items", ACC_FINAL)],
            code=invoke_special("com/base/Base", "<init>", "()V"),
        )
        builder.method(ACC_PUBLIC, "run", "()V")
        builder.method(ACC_PUBLIC, "close", "()V", exceptions=["java/io/IOException"])
        builder.method(ACC_PUBLIC, "find", "(I)Ljava/lang/Object;", signature="(I)TT;")
        builder.method(ACC_PUBLIC | ACC_NATIVE, "handle", "()J")
        add_class(base, builder)
        return registry.class_type("com.example.Repository")

    def test_full_declaration(self, repository):
        assert decompile(repository) == (
            "package com.example;\n"
            "\n"
            "import com.base.Base;\n"
            "import java.io.IOException;\n"
            "import java.util.List;\n"
            "\n"
            "public class Repository<T extends Comparable<T>> extends Base implements Runnable {\n"
            "\tprivate final List<T> items;\n"
            "\tpublic static final int LIMIT = 10;\n"
            '\tpublic static final String NAME = "repo\\n";\n'
            "\n"
            "\tpublic Repository(final List<T> items) {\n"
            "\n"
            "\t}\n"
            "\n"
            "\t@Override\n"
            "\tpublic void run() {\n"
            "\n"
            "\t}\n"
            "\n"
            "\t@Override\n"
            "\tpublic void close() {\n"
            "\n"
            "\t}\n"
            "\n"
            "\tpublic T find(int int0) {\n"
            "\t\treturn null;\n"
            "\t}\n"
            "\n"
            "\tpublic native long handle();\n"
            "}\n"
        )

    def test_without_override_annotations(self, repository):
        text = decompile(repository, Configuration(annotating_overridden_methods=False))
        assert "@Override" not in text

    def test_without_imports(self, repository):
        """Test qualified names once imports are turned off."""
        lines = decompile(repository, Configuration(importing_types=False)).splitlines()
        assert not any(line.startswith("import ") for line in lines)
        assert lines[2] == (
            "public class Repository<T extends Comparable<T>> extends com.base.Base implements Runnable {"
        )
        assert "\tprivate final java.util.List<T> items;" in lines

    def test_without_discarding_packages(self, repository):
        lines = decompile(
            repository, Configuration(discarding_unnecessary_package_names=False)
        ).splitlines()
        assert "import java.util.List;" in lines
        assert "\tprivate final java.util.List<T> items;" in lines
        assert "\tpublic static final java.lang.String NAME = \"repo\\n\";" in lines


class TestDebugOutput:
    """Test configuration, attribute and instruction comments."""

    @pytest.fixture
    def widget(self, registry, add_class):
        builder = widget_builder()
        builder.source_file("Widget.java")
        builder.method(ACC_PUBLIC, "old", "()V", deprecated=True)
        add_class(builder)
        return registry.class_type("com.example.Widget")

    def test_configuration_comment(self, widget):
        lines = decompile(widget, Configuration(displaying_configuration_parameters=True)).splitlines()
        assert lines[0] == "/*"
        assert lines[1] == " * com.example.Widget decompiled by Declass."
        assert " * <DisplayingConfigurationParameters>: true" in lines
        assert " * <SortingGroups>: false" in lines
        closing = lines.index(" */")
        assert closing == 3 + len(TOGGLE_LABELS)
        assert lines[closing + 1] == "package com.example;"

    def test_attribute_comment(self, widget):
        lines = decompile(widget, Configuration(displaying_attribute_infos=True)).splitlines()
        header = lines.index("public class Widget {")
        assert lines[header - 3:header] == ["/*", " * SourceFile", " */"]
        assert "\t * Code" in lines

    def test_instruction_table(self, widget):
        lines = decompile(widget, Configuration(displaying_instructions=True)).splitlines()
        rows = [line for line in lines if line.startswith("\t * ")]
        assert any(row.startswith("\t * Mnemonic") for row in rows)
        iconst = next(row for row in rows if row.startswith("\t * iconst_0"))
        assert "0000" in iconst and "0x03" in iconst and "003" in iconst
        assert iconst == iconst.rstrip()
        assert any(row.startswith("\t * invokespecial") and "java.lang.Object.<init>:()V" in row for row in rows)

    def test_deprecated_toggle(self, widget):
        assert "\t@Deprecated" in decompile(widget).splitlines()
        text = decompile(widget, Configuration(annotating_deprecated_methods=False))
        assert "@Deprecated" not in text


class TestGeneratorErrors:
    """Test rejection of types without a declaration."""

    @pytest.mark.parametrize("name", ["int", "void", "java.lang.String[]"])
    def test_non_declared_types(self, registry, name):
        with pytest.raises(DecompilationError) as excinfo:
            SourceCodeGenerator().generate(registry.resolve(name))
        assert isinstance(excinfo.value.cause, ValueError)
        assert excinfo.value.__cause__ is excinfo.value.cause
        assert excinfo.value.unit == name

    def test_invalid_configuration(self):
        with pytest.raises(ConfigurationError):
            SourceCodeGenerator(Configuration(indent="x"))

    def test_ineffective_configuration_is_logged(self, registry, tmp_path):
        """Test that accepted but ineffective toggles are reported."""
        log_path = tmp_path / "generator.log"
        logger = DeclassLogger("generatortest", log_file=log_path, console_output=False)
        text = decompile(
            registry.class_type("java.lang.Object"),
            Configuration(separating_groups=True),
            logger,
        )
        assert "class Object" in text
        logged = log_path.read_text(encoding="utf-8")
        assert "WARNING" in logged
        assert "sorting_groups" in logged
