"""
Member Model
============

Fields, methods, constructors, parameters and inner-type links of a
class or interface, as built by the type registry.

This module owns three concerns of the member layer:
    - modifier reconstruction from access flags, in the fixed keyword
      order of each element kind (``default`` is synthesised for
      interface methods that are neither abstract nor static)
    - stable ordering keys and the "different group" predicate that
      drives separator emission
    - placeholder bodies and constant initialisers

Members hold resolved :class:`~declass.core.types.Type` references but
never resolve anything themselves.
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import TYPE_CHECKING, Sequence

import numpy as np

from declass.core.configuration import LocalVariableNameGenerator
from declass.core.models import Modifier, TypeKind
from declass.core.names import QualifiedName, package_name
from declass.parsers.classfile import (
    ACC_ABSTRACT,
    ACC_FINAL,
    ACC_NATIVE,
    ACC_PRIVATE,
    ACC_PROTECTED,
    ACC_PUBLIC,
    ACC_STATIC,
    ACC_STRICT,
    ACC_SYNCHRONIZED,
    ACC_TRANSIENT,
    ACC_VOLATILE,
    CONSTANT_DOUBLE,
    CONSTANT_FLOAT,
    CONSTANT_LONG,
    CONSTANT_STRING,
    AttributeInfo,
    ConstantValueAttribute,
    DeprecatedAttribute,
    MemberInfo,
    find_attribute,
)
from declass.parsers.instructions import Instruction
from declass.parsers.signatures import FieldSignature, JavaTypeSignature, MethodSignature

if TYPE_CHECKING:
    from declass.core.types import Type

# ---------------------------------------------------------------------------
# Modifier reconstruction
# ---------------------------------------------------------------------------

_VISIBILITY: tuple[tuple[int, Modifier], ...] = (
    (ACC_PRIVATE, Modifier.PRIVATE),
    (ACC_PROTECTED, Modifier.PROTECTED),
    (ACC_PUBLIC, Modifier.PUBLIC),
)

# Sort rank: public, protected, package-private, private
VISIBILITY_PUBLIC: int = 0
VISIBILITY_PROTECTED: int = 1
VISIBILITY_PACKAGE: int = 2
VISIBILITY_PRIVATE: int = 3


def visibility_rank(access_flags: int) -> int:
    if access_flags & ACC_PUBLIC:
        return VISIBILITY_PUBLIC
    if access_flags & ACC_PROTECTED:
        return VISIBILITY_PROTECTED
    if access_flags & ACC_PRIVATE:
        return VISIBILITY_PRIVATE
    return VISIBILITY_PACKAGE


def _visibility(access_flags: int) -> list[Modifier]:
    for flag, modifier in _VISIBILITY:
        if access_flags & flag:
            return [modifier]
    return []


def class_modifiers(access_flags: int) -> list[Modifier]:
    modifiers = [Modifier.PUBLIC] if access_flags & ACC_PUBLIC else []
    if access_flags & ACC_ABSTRACT:
        modifiers.append(Modifier.ABSTRACT)
    elif access_flags & ACC_FINAL:
        modifiers.append(Modifier.FINAL)
    return modifiers


def interface_modifiers(access_flags: int) -> list[Modifier]:
    return [Modifier.PUBLIC] if access_flags & ACC_PUBLIC else []


def method_modifiers(access_flags: int, *, in_interface: bool) -> list[Modifier]:
    modifiers = _visibility(access_flags)
    if access_flags & ACC_STATIC:
        modifiers.append(Modifier.STATIC)
    if in_interface and not access_flags & (ACC_ABSTRACT | ACC_STATIC):
        modifiers.append(Modifier.DEFAULT)
    if access_flags & ACC_ABSTRACT:
        modifiers.append(Modifier.ABSTRACT)
    elif access_flags & ACC_FINAL:
        modifiers.append(Modifier.FINAL)
    if access_flags & ACC_SYNCHRONIZED:
        modifiers.append(Modifier.SYNCHRONIZED)
    if access_flags & ACC_NATIVE:
        modifiers.append(Modifier.NATIVE)
    if access_flags & ACC_STRICT:
        modifiers.append(Modifier.STRICTFP)
    return modifiers


def field_modifiers(access_flags: int) -> list[Modifier]:
    modifiers = _visibility(access_flags)
    for flag, modifier in (
        (ACC_STATIC, Modifier.STATIC),
        (ACC_FINAL, Modifier.FINAL),
        (ACC_TRANSIENT, Modifier.TRANSIENT),
        (ACC_VOLATILE, Modifier.VOLATILE),
    ):
        if access_flags & flag:
            modifiers.append(modifier)
    return modifiers


def constructor_modifiers(access_flags: int) -> list[Modifier]:
    modifiers = _visibility(access_flags)
    if access_flags & ACC_STRICT:
        modifiers.append(Modifier.STRICTFP)
    return modifiers


def inner_type_modifiers(access_flags: int) -> list[Modifier]:
    modifiers = _visibility(access_flags)
    if access_flags & ACC_STATIC:
        modifiers.append(Modifier.STATIC)
    if access_flags & ACC_ABSTRACT:
        modifiers.append(Modifier.ABSTRACT)
    elif access_flags & ACC_FINAL:
        modifiers.append(Modifier.FINAL)
    return modifiers


# ---------------------------------------------------------------------------
# Name fragments for plain (non-generic) types
# ---------------------------------------------------------------------------

def name_fragment(name: str) -> list[str | QualifiedName]:
    """Span for an external class name; ``a.Map$Entry`` renders as ``a.Map.Entry``."""
    package = package_name(name)
    local = name[len(package) + 1:] if package else name
    return [QualifiedName(package, local.replace("$", "."))]


def type_fragment(type_: Type) -> list[str | QualifiedName]:
    """Span-based rendering of a type without a generic signature."""
    dimensions = 0
    element = type_
    while element.kind is TypeKind.ARRAY:
        element = element.component  # type: ignore[attr-defined]
        dimensions += 1
    if element.kind in (TypeKind.PRIMITIVE, TypeKind.VOID):
        pieces: list[str | QualifiedName] = [element.name]
    else:
        pieces = name_fragment(element.name)
    if dimensions:
        pieces.append("[]" * dimensions)
    return pieces


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------

class Parameter:
    """A formal parameter; ``name`` is ``None`` without ``MethodParameters``."""

    __slots__ = ("type", "name", "is_final", "signature", "index")

    def __init__(
        self,
        type_: Type,
        index: int,
        *,
        name: str | None = None,
        is_final: bool = False,
        signature: JavaTypeSignature | None = None,
    ) -> None:
        self.type = type_
        self.index = index
        self.name = name
        self.is_final = is_final
        self.signature = signature

    def sort_key(self) -> str:
        return self.type.simple_name

    def resolved_name(self, generator: LocalVariableNameGenerator) -> str:
        return self.name if self.name else generator(self.type.name, self.index)

    def fragment(self, generator: LocalVariableNameGenerator) -> list[str | QualifiedName]:
        pieces: list[str | QualifiedName] = ["final "] if self.is_final else []
        pieces.extend(self.signature.fragment() if self.signature else type_fragment(self.type))
        pieces.append(" " + self.resolved_name(generator))
        return pieces

    def __repr__(self) -> str:
        return f"Parameter({self.type.name!r}, {self.name!r})"


class ParameterList:
    """Ordered parameters; compares pairwise by type simple name, then length."""

    __slots__ = ("parameters",)

    def __init__(self, parameters: Sequence[Parameter] = ()) -> None:
        self.parameters = list(parameters)

    def sort_key(self) -> tuple[str, ...]:
        # Tuple ordering is pairwise first, then shorter first
        return tuple(parameter.sort_key() for parameter in self.parameters)

    @property
    def erased(self) -> tuple[str, ...]:
        return tuple(parameter.type.descriptor for parameter in self.parameters)

    def fragment(self, generator: LocalVariableNameGenerator) -> list[str | QualifiedName]:
        pieces: list[str | QualifiedName] = []
        for index, parameter in enumerate(self.parameters):
            if index:
                pieces.append(", ")
            pieces.extend(parameter.fragment(generator))
        return pieces

    def __len__(self) -> int:
        return len(self.parameters)

    def __iter__(self):
        return iter(self.parameters)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

class _Member:
    """State shared by fields, methods and constructors."""

    __slots__ = ("enclosing", "info")

    def __init__(self, enclosing: Type, info: MemberInfo) -> None:
        self.enclosing = enclosing
        self.info = info

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def access_flags(self) -> int:
        return self.info.access_flags

    @property
    def attributes(self) -> list[AttributeInfo]:
        return self.info.attributes

    @property
    def is_static(self) -> bool:
        return bool(self.info.access_flags & ACC_STATIC)

    @property
    def is_private(self) -> bool:
        return bool(self.info.access_flags & ACC_PRIVATE)

    @property
    def is_abstract(self) -> bool:
        return bool(self.info.access_flags & ACC_ABSTRACT)

    @property
    def is_native(self) -> bool:
        return bool(self.info.access_flags & ACC_NATIVE)

    @property
    def is_deprecated(self) -> bool:
        return find_attribute(self.info.attributes, DeprecatedAttribute) is not None

    @property
    def visibility(self) -> int:
        return visibility_rank(self.info.access_flags)

    @property
    def instructions(self) -> list[Instruction]:
        return self.info.instructions

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.enclosing.name}.{self.name})"


class Field(_Member):
    __slots__ = ("type", "signature")

    def __init__(
        self,
        enclosing: Type,
        info: MemberInfo,
        type_: Type,
        signature: FieldSignature | None = None,
    ) -> None:
        super().__init__(enclosing, info)
        self.type = type_
        self.signature = signature

    @property
    def modifiers(self) -> list[Modifier]:
        return field_modifiers(self.access_flags)

    def sort_key(self) -> tuple:
        # Static fields come before instance fields
        return (self.visibility, 0 if self.is_static else 1, self.type.simple_name, self.name)

    def type_fragment(self) -> list[str | QualifiedName]:
        return self.signature.fragment() if self.signature else type_fragment(self.type)

    def importable_types(self) -> list[Type]:
        return [self.type]

    def assignment(self) -> str:
        """`` = <literal>`` from ``ConstantValue``, or ``""``."""
        constant = find_attribute(self.attributes, ConstantValueAttribute)
        if constant is None:
            return ""
        return " = " + constant_literal(constant, self.type.descriptor)


class Method(_Member):
    __slots__ = ("return_type", "parameters", "exceptions", "referenced_types", "signature")

    def __init__(
        self,
        enclosing: Type,
        info: MemberInfo,
        return_type: Type,
        parameters: ParameterList,
        *,
        exceptions: Sequence[Type] = (),
        referenced_types: Sequence[Type] = (),
        signature: MethodSignature | None = None,
    ) -> None:
        super().__init__(enclosing, info)
        self.return_type = return_type
        self.parameters = parameters
        self.exceptions = list(exceptions)
        self.referenced_types = list(referenced_types)
        self.signature = signature

    @property
    def modifiers(self) -> list[Modifier]:
        return method_modifiers(
            self.access_flags, in_interface=self.enclosing.kind is TypeKind.INTERFACE
        )

    @property
    def erased_signature(self) -> tuple[str, tuple[str, ...]]:
        """Name plus erased parameter descriptors, the override identity."""
        return self.name, self.parameters.erased

    def sort_key(self) -> tuple:
        return (
            self.visibility,
            1 if self.is_static else 0,
            self.return_type.simple_name,
            self.name,
            self.parameters.sort_key(),
        )

    def return_type_fragment(self) -> list[str | QualifiedName]:
        if self.signature is not None:
            return self.signature.result.fragment()
        return type_fragment(self.return_type)

    def importable_types(self) -> list[Type]:
        return [
            self.return_type,
            *self.exceptions,
            *self.referenced_types,
            *(parameter.type for parameter in self.parameters),
        ]

    def default_return_statement(self) -> str:
        return default_return_statement(self.return_type)


class Constructor(_Member):
    __slots__ = ("parameters", "exceptions", "referenced_types", "signature")

    def __init__(
        self,
        enclosing: Type,
        info: MemberInfo,
        parameters: ParameterList,
        *,
        exceptions: Sequence[Type] = (),
        referenced_types: Sequence[Type] = (),
        signature: MethodSignature | None = None,
    ) -> None:
        super().__init__(enclosing, info)
        self.parameters = parameters
        self.exceptions = list(exceptions)
        self.referenced_types = list(referenced_types)
        self.signature = signature

    @property
    def modifiers(self) -> list[Modifier]:
        return constructor_modifiers(self.access_flags)

    def sort_key(self) -> tuple:
        return (self.visibility, self.parameters.sort_key())

    def importable_types(self) -> list[Type]:
        return [
            *self.exceptions,
            *(parameter.type for parameter in self.parameters),
            *self.referenced_types,
        ]


class InnerType:
    """Link between an enclosing type and a type declared inside it."""

    __slots__ = ("outer_name", "inner_name", "simple_name", "access_flags", "type")

    def __init__(
        self,
        outer_name: str,
        inner_name: str,
        simple_name: str,
        access_flags: int,
        type_: Type,
    ) -> None:
        self.outer_name = outer_name
        self.inner_name = inner_name
        self.simple_name = simple_name
        self.access_flags = access_flags
        self.type = type_

    @property
    def modifiers(self) -> list[Modifier]:
        return inner_type_modifiers(self.access_flags)

    def __repr__(self) -> str:
        return f"InnerType({self.inner_name!r})"


def in_different_groups(a: Field | Method | Constructor, b: Field | Method | Constructor) -> bool:
    """Visibility differs or, except for constructors, static-ness differs."""
    if a.visibility != b.visibility:
        return True
    if isinstance(a, Constructor):
        return False
    return a.is_static != b.is_static


# ---------------------------------------------------------------------------
# Placeholder bodies and constant literals
# ---------------------------------------------------------------------------

_DEFAULT_RETURNS: dict[str, str] = {
    "V": "",
    "Z": "return false;",
    "B": "return 0;",
    "S": "return 0;",
    "I": "return 0;",
    "J": "return 0L;",
    "F": "return 0.0F;",
    "D": "return 0.0D;",
    "C": "return '\\u0000';",
}


def default_return_statement(return_type: Type) -> str:
    """Placeholder statement for a body returning *return_type*."""
    return _DEFAULT_RETURNS.get(return_type.descriptor, "return null;")


def java_floating_text(text: str) -> str:
    """Reformat a shortest round-trip decimal the way Java's ``toString`` does."""
    sign, digit_tuple, exponent = Decimal(text).as_tuple()
    digits = list(digit_tuple)
    while len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exponent += 1  # type: ignore[operator]
    prefix = "-" if sign else ""
    if digits == [0]:
        return prefix + "0.0"

    magnitude = len(digits) + exponent - 1  # type: ignore[operator]
    text_digits = "".join(str(d) for d in digits)
    if -3 <= magnitude < 7:
        if exponent >= 0:  # type: ignore[operator]
            return f"{prefix}{text_digits}{'0' * exponent}.0"  # type: ignore[operator]
        point = len(text_digits) + exponent  # type: ignore[operator]
        if point > 0:
            return f"{prefix}{text_digits[:point]}.{text_digits[point:]}"
        return f"{prefix}0.{'0' * -point}{text_digits}"
    mantissa = text_digits[0] + "." + (text_digits[1:] or "0")
    return f"{prefix}{mantissa}E{magnitude}"


def _non_finite(value: float) -> str | None:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return None


def java_double_text(value: float) -> str:
    return _non_finite(value) or java_floating_text(repr(float(value)))


def java_float_text(value: float) -> str:
    special = _non_finite(value)
    if special:
        return special
    shortest = np.format_float_positional(np.float32(value), unique=True, trim="0")
    return java_floating_text(shortest)


_STRING_ESCAPES: dict[str, str] = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\t": "\\t",
    "\r": "\\r",
    "\b": "\\b",
    "\f": "\\f",
}


def java_string_literal(value: str) -> str:
    out: list[str] = []
    for char in value:
        if char in _STRING_ESCAPES:
            out.append(_STRING_ESCAPES[char])
        elif ord(char) < 0x20 or ord(char) == 0x7F:
            out.append(f"\\u{ord(char):04x}")
        else:
            out.append(char)
    return '"' + "".join(out) + '"'


def constant_literal(constant: ConstantValueAttribute, field_descriptor: str) -> str:
    value = constant.value
    if constant.constant_tag == CONSTANT_DOUBLE:
        return java_double_text(value) + "D"  # type: ignore[arg-type]
    if constant.constant_tag == CONSTANT_FLOAT:
        return java_float_text(value) + "F"  # type: ignore[arg-type]
    if constant.constant_tag == CONSTANT_LONG:
        return f"{value}L"
    if constant.constant_tag == CONSTANT_STRING:
        return java_string_literal(str(value))
    if field_descriptor == "Z":
        return "true" if value else "false"
    return str(value)
