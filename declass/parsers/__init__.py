"""
Declass Parsers
===============

Binary and textual decoders for the class file format: the container
itself, bytecode instructions, descriptors and generic signatures.
"""

from declass.parsers.classfile import ClassFile, ClassFileParser, read_class_file
from declass.parsers.descriptors import parse_field_descriptor, parse_method_descriptor
from declass.parsers.instructions import Instruction, decode_instructions
from declass.parsers.signatures import (
    parse_class_signature_optional,
    parse_field_signature_optional,
    parse_method_signature_optional,
)

__all__ = [
    "ClassFile",
    "ClassFileParser",
    "Instruction",
    "decode_instructions",
    "parse_class_signature_optional",
    "parse_field_descriptor",
    "parse_field_signature_optional",
    "parse_method_descriptor",
    "parse_method_signature_optional",
    "read_class_file",
]
