"""
Source Code Generator
=====================

Renders the declaration of one type into Java-like source text.  Method
and constructor bodies are fixed placeholders; only declarations are
reconstructed.

Emission order for a class::

    [configuration comment]
    package clause
    import lines
    [attribute-info comment]
    header {
        fields       | separator
        constructors | separator
        methods      | separator
        inner classes
    }

With both ``separating_groups`` and ``sorting_groups`` enabled, member
groups are divided by a full-width rule, and an extra rule is placed
wherever two adjacent members of a sorted group fall into different
visibility or static groups.
"""

from __future__ import annotations

from typing import Sequence, assert_never

from declass.core.configuration import TOGGLE_LABELS, Configuration
from declass.core.errors import DecompilationError
from declass.core.imports import import_lines, importable_types, name_filter
from declass.core.members import (
    Constructor,
    Field,
    InnerType,
    Method,
    in_different_groups,
    name_fragment,
    type_fragment,
)
from declass.core.models import Modifier
from declass.core.names import Fragment, PackageNameFilter, join_fragments, render
from declass.core.types import (
    JAVA_LANG_OBJECT,
    AnnotationType,
    AnyType,
    ArrayType,
    ClassType,
    EnumType,
    InterfaceType,
    PrimitiveType,
    VoidType,
)
from declass.parsers.classfile import AttributeInfo, ClassFile
from declass.parsers.instructions import Instruction
from shared.logger import DeclassLogger

RULE: str = "/" * 100

_INSTRUCTION_FORMAT: str = "%-15s    %-5s    %-13s    %-13s    %-20s    %-20s    %s"
_INSTRUCTION_HEADER: tuple[str, ...] = (
    "Mnemonic",
    "Index",
    "Opcode (Hex.)",
    "Opcode (Dec.)",
    "Operands",
    "Branch Offsets",
    "Data",
)


class Document:
    """Line buffer with an indentation level."""

    def __init__(self, indent: str = "\t") -> None:
        self._indent = indent
        self._level = 0
        self._lines: list[str] = []

    def line(self, text: str = "") -> None:
        self._lines.append(self._indent * self._level + text if text else "")

    def indent(self) -> None:
        self._level += 1

    def outdent(self) -> None:
        self._level = max(0, self._level - 1)

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def text(self) -> str:
        return "\n".join(self._lines) + "\n"


class SourceCodeGenerator:
    """Configuration-driven renderer for declared types.

    Usage::

        generator = SourceCodeGenerator(Configuration(sorting_groups=True))
        text = generator.generate(registry.class_type("com.example.Foo"))
    """

    def __init__(
        self,
        configuration: Configuration | None = None,
        *,
        logger: DeclassLogger | None = None,
    ) -> None:
        self.configuration = configuration or Configuration()
        self.logger = logger or DeclassLogger("generator")
        # Ineffective combinations are accepted and reported
        for warning in self.configuration.validate():
            self.logger.warning("Configuration: %s", warning)

    # ------------------------------------------------------------------ #
    #  Entry point
    # ------------------------------------------------------------------ #

    def generate(self, type_: AnyType) -> str:
        """Render *type_*.

        Raises:
            DecompilationError: *type_* is a primitive, void or array type.
        """
        document = Document(self.configuration.indent)
        if isinstance(type_, ClassType):
            self._configuration_comment(document, type_.name)
            self._class(document, type_)
        elif isinstance(type_, InterfaceType):
            self._configuration_comment(document, type_.name)
            self._interface(document, type_)
        elif isinstance(type_, EnumType):
            self._configuration_comment(document, type_.name)
            self._shell(document, type_, "enum")
        elif isinstance(type_, AnnotationType):
            self._configuration_comment(document, type_.name)
            self._shell(document, type_, "@interface")
        elif isinstance(type_, (PrimitiveType, VoidType, ArrayType)):
            raise DecompilationError(
                type_.name, ValueError(f"{type_.kind.value} types have no declaration")
            )
        else:
            assert_never(type_)
        return document.text()

    # ------------------------------------------------------------------ #
    #  Shared pieces
    # ------------------------------------------------------------------ #

    def _configuration_comment(self, document: Document, name: str) -> None:
        if not self.configuration.displaying_configuration_parameters:
            return
        document.line("/*")
        document.line(f" * {name} decompiled by Declass.")
        document.line(" * ")
        for toggle, label in TOGGLE_LABELS.items():
            value = "true" if getattr(self.configuration, toggle) else "false"
            document.line(f" * <{label}>: {value}")
        document.line(" */")

    def _package_clause(self, document: Document, package: str) -> bool:
        if not package:
            return False
        document.line(f"package {package};")
        return True

    def _imports(self, type_: AnyType) -> list[str]:
        if not self.configuration.importing_types:
            return []
        return import_lines(importable_types(type_, sorting=self.configuration.sorting_imports))

    def _attribute_comment(self, document: Document, attributes: Sequence[AttributeInfo]) -> None:
        if not self.configuration.displaying_attribute_infos or not attributes:
            return
        document.line("/*")
        for attribute in attributes:
            document.line(f" * {attribute.name}")
        document.line(" */")

    def _debug_block(
        self,
        document: Document,
        attributes: Sequence[AttributeInfo],
        instructions: Sequence[Instruction],
        class_file: ClassFile,
    ) -> None:
        show_attributes = self.configuration.displaying_attribute_infos and bool(attributes)
        show_instructions = self.configuration.displaying_instructions and bool(instructions)
        if not (show_attributes or show_instructions):
            return

        document.line("/*")
        if show_attributes:
            for attribute in attributes:
                document.line(f" * {attribute.name}")
        if show_attributes and show_instructions:
            document.line(" * ")
        if show_instructions:
            document.line((" * " + _INSTRUCTION_FORMAT % _INSTRUCTION_HEADER).rstrip())
            document.line(" * ")
            for instruction in instructions:
                document.line(" * " + _instruction_row(instruction, class_file))
        document.line(" */")

    # ------------------------------------------------------------------ #
    #  Classes
    # ------------------------------------------------------------------ #

    def _class(self, document: Document, type_: ClassType) -> None:
        filter_ = name_filter(type_, self.configuration)
        if self._package_clause(document, type_.package_name):
            document.line()
        imports = self._imports(type_)
        if imports:
            for line in imports:
                document.line(line)
            document.line()
        self._class_declaration(document, type_, filter_, None)

    def _class_declaration(
        self,
        document: Document,
        type_: ClassType,
        filter_: PackageNameFilter,
        inner: InnerType | None,
    ) -> None:
        config = self.configuration
        self._attribute_comment(document, type_.attributes)

        modifiers = inner.modifiers if inner is not None else type_.modifiers
        name = inner.simple_name if inner is not None else type_.simple_name
        signature = type_.signature
        type_parameters = (
            render(signature.type_parameters_fragment(config.discarding_extends_object), filter_)
            if signature
            else ""
        )
        document.line(
            f"{Modifier.to_external_form(modifiers)}class {name}{type_parameters}"
            f"{self._extends_clause(type_, filter_)}{self._implements_clause(type_, filter_)} {{"
        )
        document.indent()
        self._class_body(document, type_, filter_)
        document.outdent()
        document.line("}")

    def _extends_clause(self, type_: ClassType, filter_: PackageNameFilter) -> str:
        if not type_.has_superclass:
            return ""
        super_name = type_.class_file.super_class_name.replace("/", ".")  # type: ignore[union-attr]
        if super_name == JAVA_LANG_OBJECT and self.configuration.discarding_extends_object:
            return ""
        signature = type_.signature
        fragment = signature.superclass.fragment() if signature else name_fragment(super_name)
        return " extends " + render(fragment, filter_)

    def _implements_clause(self, type_: ClassType, filter_: PackageNameFilter) -> str:
        fragments = self._interface_fragments(type_)
        if not fragments:
            return ""
        return " implements " + render(join_fragments(fragments, ", "), filter_)

    def _interface_fragments(self, type_: ClassType | InterfaceType) -> list[Fragment]:
        signature = type_.signature
        if signature is not None:
            return [interface.fragment() for interface in signature.superinterfaces]
        return [type_fragment(interface) for interface in type_.interfaces]

    def _class_body(self, document: Document, type_: ClassType, filter_: PackageNameFilter) -> None:
        config = self.configuration
        grouped = config.separating_groups and config.sorting_groups

        fields = self._ordered(type_.fields)
        constructors = self._ordered(type_.constructors)
        methods = self._ordered(type_.methods)
        inners = [inner for inner in type_.inner_types if isinstance(inner.type, ClassType)]

        self._fields(document, fields, filter_, grouped)
        self._separator(document, bool(fields) and bool(constructors or methods or inners), grouped)
        self._executables(document, constructors, filter_, grouped)
        self._separator(document, bool(fields or constructors) and bool(methods or inners), grouped)
        self._executables(document, methods, filter_, grouped)
        self._separator(document, bool(fields or constructors or methods) and bool(inners), grouped)

        for index, inner in enumerate(inners):
            if index:
                document.line()
                if config.separating_groups:
                    document.line(RULE)
                    document.line()
            self._class_declaration(document, inner.type, filter_, inner)  # type: ignore[arg-type]

    def _ordered(self, members: list) -> list:
        if self.configuration.sorting_groups:
            return sorted(members, key=lambda member: member.sort_key())
        return members

    def _separator(self, document: Document, present: bool, grouped: bool) -> None:
        if not present:
            return
        document.line()
        if grouped:
            document.line(RULE)
            document.line()

    # ------------------------------------------------------------------ #
    #  Members
    # ------------------------------------------------------------------ #

    def _fields(
        self,
        document: Document,
        fields: list[Field],
        filter_: PackageNameFilter,
        grouped: bool,
    ) -> None:
        for index, field in enumerate(fields):
            following = fields[index + 1] if index + 1 < len(fields) else field
            self._field(document, field, filter_)
            if grouped and in_different_groups(field, following):
                document.line()
                document.line(RULE)
                document.line()
            elif (
                following is not field
                and self.configuration.displaying_attribute_infos
                and following.attributes
            ):
                document.line()

    def _field(self, document: Document, field: Field, filter_: PackageNameFilter) -> None:
        self._attribute_comment(document, field.attributes)
        document.line(
            f"{Modifier.to_external_form(field.modifiers)}"
            f"{render(field.type_fragment(), filter_)} {field.name}{field.assignment()};"
        )

    def _executables(
        self,
        document: Document,
        members: list[Method] | list[Constructor],
        filter_: PackageNameFilter,
        grouped: bool,
    ) -> None:
        for index, member in enumerate(members):
            if index:
                document.line()
            if isinstance(member, Constructor):
                self._constructor(document, member, filter_)
            else:
                self._method(document, member, filter_)
            following = members[index + 1] if index + 1 < len(members) else member
            if grouped and in_different_groups(member, following):
                document.line()
                document.line(RULE)

    def _parameters(self, member: Method | Constructor, filter_: PackageNameFilter) -> str:
        generator = self.configuration.local_variable_name_generator
        return render(member.parameters.fragment(generator), filter_)

    def _method_type_parameters(self, member: Method | Constructor, filter_: PackageNameFilter) -> str:
        if member.signature is None or not member.signature.type_parameters:
            return ""
        fragment = member.signature.type_parameters_fragment(
            self.configuration.discarding_extends_object
        )
        return render(fragment, filter_) + " "

    def _method(self, document: Document, method: Method, filter_: PackageNameFilter) -> None:
        config = self.configuration
        enclosing = method.enclosing
        self._debug_block(document, method.attributes, method.instructions, enclosing.class_file)  # type: ignore[attr-defined]

        if config.annotating_deprecated_methods and method.is_deprecated:
            document.line("@Deprecated")
        if (
            config.annotating_overridden_methods
            and not method.is_private
            and not method.is_static
            and enclosing.has_method_overridden(method)  # type: ignore[attr-defined]
        ):
            document.line("@Override")

        modifiers = method.modifiers
        if isinstance(enclosing, InterfaceType):
            if config.discarding_abstract_interface_method_modifier:
                modifiers = [m for m in modifiers if m is not Modifier.ABSTRACT]
            if config.discarding_public_interface_method_modifier:
                modifiers = [m for m in modifiers if m is not Modifier.PUBLIC]

        header = (
            f"{Modifier.to_external_form(modifiers)}"
            f"{self._method_type_parameters(method, filter_)}"
            f"{render(method.return_type_fragment(), filter_)} {method.name}"
            f"({self._parameters(method, filter_)})"
        )
        if method.is_abstract or method.is_native:
            document.line(header + ";")
            return

        document.line(header + " {")
        document.indent()
        document.line(method.default_return_statement())
        document.outdent()
        document.line("}")

    def _constructor(
        self, document: Document, constructor: Constructor, filter_: PackageNameFilter
    ) -> None:
        enclosing = constructor.enclosing
        self._debug_block(
            document, constructor.attributes, constructor.instructions, enclosing.class_file  # type: ignore[attr-defined]
        )
        if self.configuration.annotating_deprecated_methods and constructor.is_deprecated:
            document.line("@Deprecated")
        document.line(
            f"{Modifier.to_external_form(constructor.modifiers)}"
            f"{self._method_type_parameters(constructor, filter_)}"
            f"{enclosing.simple_name}({self._parameters(constructor, filter_)}) {{"
        )
        document.line()
        document.line("}")

    # ------------------------------------------------------------------ #
    #  Interfaces, enums and annotations
    # ------------------------------------------------------------------ #

    def _interface(self, document: Document, type_: InterfaceType) -> None:
        config = self.configuration
        filter_ = name_filter(type_, config)
        started = self._package_clause(document, type_.package_name)
        imports = self._imports(type_)
        if imports:
            if started:
                document.line()
            for line in imports:
                document.line(line)
            started = True
        if started:
            document.line()

        self._attribute_comment(document, type_.attributes)
        signature = type_.signature
        type_parameters = (
            render(signature.type_parameters_fragment(config.discarding_extends_object), filter_)
            if signature
            else ""
        )
        fragments = self._interface_fragments(type_)
        extends = " extends " + render(join_fragments(fragments, ", "), filter_) if fragments else ""
        document.line(
            f"{Modifier.to_external_form(type_.modifiers)}interface "
            f"{type_.simple_name}{type_parameters}{extends} {{"
        )
        document.indent()

        fields = self._ordered(type_.fields)
        methods = self._ordered(type_.methods)
        for field in fields:
            self._field(document, field, filter_)
        if fields and methods:
            document.line()
            if config.separating_groups:
                document.line(RULE)
                document.line()
        for index, method in enumerate(methods):
            if index:
                document.line()
            self._method(document, method, filter_)

        document.outdent()
        document.line("}")

    def _shell(self, document: Document, type_: EnumType | AnnotationType, keyword: str) -> None:
        if self._package_clause(document, type_.package_name):
            document.line()
        document.line(
            f"{Modifier.to_external_form(type_.modifiers)}{keyword} {type_.simple_name} {{"
        )
        document.line("}")


def _instruction_row(instruction: Instruction, class_file: ClassFile) -> str:
    operands = instruction.operand_values
    branches = instruction.branch_offsets()
    row = _INSTRUCTION_FORMAT % (
        instruction.mnemonic,
        "%04d" % instruction.offset,
        "0x%02X" % instruction.opcode,
        "%03d" % instruction.opcode,
        "{" + ", ".join(str(v) for v in operands) + "}" if operands else "",
        "[" + ", ".join(str(b) for b in branches) + "]" if branches else "",
        instruction.describe(class_file),
    )
    return row.rstrip()


def decompile(
    type_: AnyType,
    configuration: Configuration | None = None,
    logger: DeclassLogger | None = None,
) -> str:
    """Render one type with *configuration* (defaults when ``None``)."""
    return SourceCodeGenerator(configuration, logger=logger).generate(type_)
