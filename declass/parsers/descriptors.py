"""
Field and Method Descriptor Parser
==================================

Descriptors are the erased type encodings of the class file format
(JVMS 4.3), e.g. ``[Ljava/lang/String;`` or ``(IJ)V``.  This module
splits them into single-type descriptors and converts those into the
external names used by the type registry (``java.lang.String[]``).
"""

from __future__ import annotations

from typing import NamedTuple

from declass.core.errors import ReadError

BASE_TYPES: dict[str, str] = {
    "B": "byte",
    "C": "char",
    "D": "double",
    "F": "float",
    "I": "int",
    "J": "long",
    "S": "short",
    "Z": "boolean",
}

VOID_DESCRIPTOR: str = "V"

EXTERNAL_TO_DESCRIPTOR: dict[str, str] = {name: code for code, name in BASE_TYPES.items()}
EXTERNAL_TO_DESCRIPTOR["void"] = VOID_DESCRIPTOR


class MethodDescriptor(NamedTuple):
    parameters: list[str]
    return_type: str


def _scan_field_type(text: str, pos: int) -> int:
    """Return the end index of the field type starting at *pos*."""
    start = pos
    while pos < len(text) and text[pos] == "[":
        pos += 1
    if pos >= len(text):
        raise ReadError(f"Truncated descriptor {text!r}")
    char = text[pos]
    if char in BASE_TYPES:
        return pos + 1
    if char == "L":
        end = text.find(";", pos)
        if end <= pos + 1:
            raise ReadError(f"Unterminated class type in descriptor {text!r}")
        return end + 1
    raise ReadError(f"Invalid descriptor character {char!r} at {start} in {text!r}")


def parse_field_descriptor(text: str) -> str:
    """Validate a field descriptor and return it unchanged."""
    if _scan_field_type(text, 0) != len(text):
        raise ReadError(f"Trailing characters in field descriptor {text!r}")
    return text


def parse_method_descriptor(text: str) -> MethodDescriptor:
    """Split ``(params)return`` into parameter and return descriptors."""
    if not text.startswith("("):
        raise ReadError(f"Method descriptor must start with '(': {text!r}")
    parameters: list[str] = []
    pos = 1
    while pos < len(text) and text[pos] != ")":
        end = _scan_field_type(text, pos)
        parameters.append(text[pos:end])
        pos = end
    if pos >= len(text):
        raise ReadError(f"Unterminated parameter list in {text!r}")
    return_type = text[pos + 1:]
    if return_type != VOID_DESCRIPTOR:
        parse_field_descriptor(return_type)
    return MethodDescriptor(parameters, return_type)


def descriptor_to_external(descriptor: str) -> str:
    """``[[I`` -> ``int[][]``, ``Ljava/util/Map$Entry;`` -> ``java.util.Map$Entry``."""
    dimensions = len(descriptor) - len(descriptor.lstrip("["))
    element = descriptor[dimensions:]
    if element == VOID_DESCRIPTOR and dimensions == 0:
        name = "void"
    elif element in BASE_TYPES:
        name = BASE_TYPES[element]
    elif element.startswith("L") and element.endswith(";"):
        name = element[1:-1].replace("/", ".")
    else:
        raise ReadError(f"Invalid descriptor {descriptor!r}")
    return name + "[]" * dimensions


def external_to_descriptor(name: str) -> str:
    """Inverse of :func:`descriptor_to_external`."""
    dimensions = 0
    while name.endswith("[]"):
        name = name[:-2]
        dimensions += 1
    element = EXTERNAL_TO_DESCRIPTOR.get(name)
    if element is None:
        element = f"L{name.replace('.', '/')};"
    return "[" * dimensions + element
