"""
Generic Signature Parser
========================

Recursive-descent parser for the ``Signature`` attribute grammar of
JVMS 4.7.9.1, producing an immutable node tree.  Every node renders into
a name *fragment* (see :mod:`declass.core.names`) so package qualifiers
can be elided after rendering without touching keywords.

Rendered forms::

    TypeParameter      T extends Number & Comparable<T>
    TypeArgument       ?, ? extends X, ? super X
    ClassTypeSignature java.util.Map<K, V>.Entry<K, V>
    ArrayTypeSignature X[]

References:
    - The Java Virtual Machine Specification, Java SE 21 Edition, 4.7.9.1.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from declass.core.errors import ReadError
from declass.core.names import QualifiedName, join_fragments, render
from declass.parsers.descriptors import BASE_TYPES

Piece = Union[str, QualifiedName]

_IDENTIFIER_STOPS: frozenset[str] = frozenset(".;[/<>:")

JAVA_LANG_OBJECT: str = "java.lang.Object"


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class BaseTypeSignature:
    code: str

    def fragment(self) -> list[Piece]:
        return [BASE_TYPES[self.code]]

    def class_names(self) -> list[str]:
        return []

    def to_external_form(self) -> str:
        return render(self.fragment())


@dataclass(frozen=True, slots=True)
class VoidSignature:
    def fragment(self) -> list[Piece]:
        return ["void"]

    def class_names(self) -> list[str]:
        return []

    def to_external_form(self) -> str:
        return "void"


@dataclass(frozen=True, slots=True)
class TypeVariableSignature:
    identifier: str

    def fragment(self) -> list[Piece]:
        return [self.identifier]

    def class_names(self) -> list[str]:
        return []

    def to_external_form(self) -> str:
        return self.identifier


@dataclass(frozen=True, slots=True)
class TypeArgument:
    """``wildcard`` is ``"*"``, ``"+"``, ``"-"`` or ``""``."""

    wildcard: str
    signature: ReferenceTypeSignature | None = None

    def fragment(self) -> list[Piece]:
        if self.wildcard == "*" or self.signature is None:
            return ["?"]
        inner = self.signature.fragment()
        if self.wildcard == "+":
            return ["? extends ", *inner]
        if self.wildcard == "-":
            return ["? super ", *inner]
        return inner

    def class_names(self) -> list[str]:
        return self.signature.class_names() if self.signature is not None else []


def _arguments_fragment(arguments: tuple[TypeArgument, ...]) -> list[Piece]:
    if not arguments:
        return []
    return ["<", *join_fragments((a.fragment() for a in arguments), ", "), ">"]


@dataclass(frozen=True, slots=True)
class SimpleClassTypeSignature:
    identifier: str
    arguments: tuple[TypeArgument, ...] = ()


@dataclass(frozen=True, slots=True)
class ClassTypeSignature:
    package: str
    simple: SimpleClassTypeSignature
    suffixes: tuple[SimpleClassTypeSignature, ...] = ()

    @property
    def binary_name(self) -> str:
        """``java.util.Map$Entry`` style name of the referenced class."""
        nested = "$".join([self.simple.identifier, *(s.identifier for s in self.suffixes)])
        return f"{self.package}.{nested}" if self.package else nested

    def is_object(self) -> bool:
        return self.binary_name == JAVA_LANG_OBJECT and not self.simple.arguments

    def fragment(self) -> list[Piece]:
        pieces: list[Piece] = [QualifiedName(self.package, self.simple.identifier)]
        pieces.extend(_arguments_fragment(self.simple.arguments))
        for suffix in self.suffixes:
            pieces.append("." + suffix.identifier)
            pieces.extend(_arguments_fragment(suffix.arguments))
        return pieces

    def class_names(self) -> list[str]:
        names = [self.binary_name]
        for part in (self.simple, *self.suffixes):
            for argument in part.arguments:
                names.extend(argument.class_names())
        return names

    def to_external_form(self) -> str:
        return render(self.fragment())


@dataclass(frozen=True, slots=True)
class ArrayTypeSignature:
    component: JavaTypeSignature

    def fragment(self) -> list[Piece]:
        return [*self.component.fragment(), "[]"]

    def class_names(self) -> list[str]:
        return self.component.class_names()

    def to_external_form(self) -> str:
        return render(self.fragment())


ReferenceTypeSignature = Union[ClassTypeSignature, TypeVariableSignature, ArrayTypeSignature]
JavaTypeSignature = Union[ReferenceTypeSignature, BaseTypeSignature]
ResultSignature = Union[JavaTypeSignature, VoidSignature]


@dataclass(frozen=True, slots=True)
class TypeParameter:
    identifier: str
    class_bound: ReferenceTypeSignature | None
    interface_bounds: tuple[ReferenceTypeSignature, ...] = ()

    def bounds(self, discard_object: bool = False) -> list[ReferenceTypeSignature]:
        bounds: list[ReferenceTypeSignature] = []
        if self.class_bound is not None:
            if not (
                discard_object
                and isinstance(self.class_bound, ClassTypeSignature)
                and self.class_bound.is_object()
            ):
                bounds.append(self.class_bound)
        bounds.extend(self.interface_bounds)
        return bounds

    def fragment(self, discard_object: bool = False) -> list[Piece]:
        bounds = self.bounds(discard_object)
        if not bounds:
            return [self.identifier]
        return [
            self.identifier,
            " extends ",
            *join_fragments((b.fragment() for b in bounds), " & "),
        ]

    def class_names(self) -> list[str]:
        names: list[str] = []
        for bound in self.bounds():
            names.extend(bound.class_names())
        return names


def type_parameters_fragment(
    parameters: tuple[TypeParameter, ...], discard_object: bool = False
) -> list[Piece]:
    """``<A, B extends X>``, or nothing when there are no parameters."""
    if not parameters:
        return []
    return [
        "<",
        *join_fragments((p.fragment(discard_object) for p in parameters), ", "),
        ">",
    ]


@dataclass(frozen=True, slots=True)
class ClassSignature:
    type_parameters: tuple[TypeParameter, ...]
    superclass: ClassTypeSignature
    superinterfaces: tuple[ClassTypeSignature, ...] = ()

    def type_parameters_fragment(self, discard_object: bool = False) -> list[Piece]:
        return type_parameters_fragment(self.type_parameters, discard_object)

    def bound_class_names(self) -> list[str]:
        names: list[str] = []
        for parameter in self.type_parameters:
            names.extend(parameter.class_names())
        return names


@dataclass(frozen=True, slots=True)
class MethodSignature:
    type_parameters: tuple[TypeParameter, ...]
    parameters: tuple[JavaTypeSignature, ...]
    result: ResultSignature
    throws: tuple[ReferenceTypeSignature, ...] = ()

    def type_parameters_fragment(self, discard_object: bool = False) -> list[Piece]:
        return type_parameters_fragment(self.type_parameters, discard_object)


@dataclass(frozen=True, slots=True)
class FieldSignature:
    signature: ReferenceTypeSignature

    def fragment(self) -> list[Piece]:
        return self.signature.fragment()


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class _Reader:
    """Cursor over a signature string."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def fail(self, expected: str) -> ReadError:
        return ReadError(f"Expected {expected} at {self.pos} in signature {self.text!r}")

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def take(self, char: str) -> None:
        if self.peek() != char:
            raise self.fail(repr(char))
        self.pos += 1

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def identifier(self) -> str:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in _IDENTIFIER_STOPS:
            self.pos += 1
        if start == self.pos:
            raise self.fail("identifier")
        return self.text[start:self.pos]

    # -- productions ---------------------------------------------------------

    def java_type(self) -> JavaTypeSignature:
        char = self.peek()
        if char in BASE_TYPES:
            self.pos += 1
            return BaseTypeSignature(char)
        return self.reference_type()

    def reference_type(self) -> ReferenceTypeSignature:
        char = self.peek()
        if char == "L":
            return self.class_type()
        if char == "T":
            self.pos += 1
            identifier = self.identifier()
            self.take(";")
            return TypeVariableSignature(identifier)
        if char == "[":
            self.pos += 1
            return ArrayTypeSignature(self.java_type())
        raise self.fail("reference type signature")

    def class_type(self) -> ClassTypeSignature:
        self.take("L")
        segments = [self.identifier()]
        while self.peek() == "/":
            self.pos += 1
            segments.append(self.identifier())
        simple = SimpleClassTypeSignature(segments[-1], self.type_arguments())
        suffixes: list[SimpleClassTypeSignature] = []
        while self.peek() == ".":
            self.pos += 1
            identifier = self.identifier()
            suffixes.append(SimpleClassTypeSignature(identifier, self.type_arguments()))
        self.take(";")
        return ClassTypeSignature(".".join(segments[:-1]), simple, tuple(suffixes))

    def type_arguments(self) -> tuple[TypeArgument, ...]:
        if self.peek() != "<":
            return ()
        self.pos += 1
        arguments: list[TypeArgument] = []
        while self.peek() != ">":
            if self.at_end():
                raise self.fail("'>'")
            char = self.peek()
            if char == "*":
                self.pos += 1
                arguments.append(TypeArgument("*"))
            elif char in "+-":
                self.pos += 1
                arguments.append(TypeArgument(char, self.reference_type()))
            else:
                arguments.append(TypeArgument("", self.reference_type()))
        self.pos += 1
        if not arguments:
            raise self.fail("type argument")
        return tuple(arguments)

    def type_parameters(self) -> tuple[TypeParameter, ...]:
        if self.peek() != "<":
            return ()
        self.pos += 1
        parameters: list[TypeParameter] = []
        while self.peek() != ">":
            if self.at_end():
                raise self.fail("'>'")
            identifier = self.identifier()
            self.take(":")
            class_bound = None
            if self.peek() not in (":", ">"):
                class_bound = self.reference_type()
            interface_bounds: list[ReferenceTypeSignature] = []
            while self.peek() == ":":
                self.pos += 1
                interface_bounds.append(self.reference_type())
            parameters.append(TypeParameter(identifier, class_bound, tuple(interface_bounds)))
        self.pos += 1
        if not parameters:
            raise self.fail("type parameter")
        return tuple(parameters)

    def finish(self) -> None:
        if not self.at_end():
            raise self.fail("end of signature")


def parse_class_signature(text: str) -> ClassSignature:
    reader = _Reader(text)
    type_parameters = reader.type_parameters()
    superclass = reader.class_type()
    interfaces: list[ClassTypeSignature] = []
    while not reader.at_end():
        interfaces.append(reader.class_type())
    return ClassSignature(type_parameters, superclass, tuple(interfaces))


def parse_method_signature(text: str) -> MethodSignature:
    reader = _Reader(text)
    type_parameters = reader.type_parameters()
    reader.take("(")
    parameters: list[JavaTypeSignature] = []
    while reader.peek() != ")":
        if reader.at_end():
            raise reader.fail("')'")
        parameters.append(reader.java_type())
    reader.pos += 1
    result: ResultSignature
    if reader.peek() == "V":
        reader.pos += 1
        result = VoidSignature()
    else:
        result = reader.java_type()
    throws: list[ReferenceTypeSignature] = []
    while reader.peek() == "^":
        reader.pos += 1
        signature = reader.reference_type()
        if isinstance(signature, ArrayTypeSignature):
            raise reader.fail("class or type variable after '^'")
        throws.append(signature)
    reader.finish()
    return MethodSignature(type_parameters, tuple(parameters), result, tuple(throws))


def parse_field_signature(text: str) -> FieldSignature:
    reader = _Reader(text)
    signature = reader.reference_type()
    reader.finish()
    return FieldSignature(signature)


def parse_class_signature_optional(text: str | None) -> ClassSignature | None:
    return parse_class_signature(text) if text is not None else None


def parse_method_signature_optional(text: str | None) -> MethodSignature | None:
    return parse_method_signature(text) if text is not None else None


def parse_field_signature_optional(text: str | None) -> FieldSignature | None:
    return parse_field_signature(text) if text is not None else None
