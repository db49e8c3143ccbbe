"""
JVM Class File Parser
=====================

Manual struct-based parser for the ``.class`` container format.  All
multi-byte values are big-endian.

The parser extracts:
    - magic and format version
    - the constant pool (every tag up to Java 21, long/double taking two slots)
    - class access flags, this/super class and direct interfaces
    - field and method records with their attributes
    - class attributes

Attributes the decompiler consumes are decoded into dedicated classes
(``Code``, ``ConstantValue``, ``Deprecated``, ``Exceptions``,
``InnerClasses``, ``MethodParameters``, ``Signature``, ``SourceFile``);
every other attribute is kept as a :class:`GenericAttribute` holding its
name and raw bytes.

References:
    - Lindholm, T. et al. (2023). The Java Virtual Machine Specification,
      Java SE 21 Edition, Chapter 4.
"""

from __future__ import annotations

import struct
from typing import TypeVar

from declass.core.errors import ReadError
from declass.parsers.instructions import Instruction, decode_instructions

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

CLASS_MAGIC: int = 0xCAFEBABE

# Access flags (classes, fields, methods, inner classes, parameters)
ACC_PUBLIC: int = 0x0001
ACC_PRIVATE: int = 0x0002
ACC_PROTECTED: int = 0x0004
ACC_STATIC: int = 0x0008
ACC_FINAL: int = 0x0010
ACC_SUPER: int = 0x0020         # class
ACC_SYNCHRONIZED: int = 0x0020  # method
ACC_VOLATILE: int = 0x0040      # field
ACC_BRIDGE: int = 0x0040        # method
ACC_TRANSIENT: int = 0x0080     # field
ACC_VARARGS: int = 0x0080       # method
ACC_NATIVE: int = 0x0100
ACC_INTERFACE: int = 0x0200
ACC_ABSTRACT: int = 0x0400
ACC_STRICT: int = 0x0800
ACC_SYNTHETIC: int = 0x1000
ACC_ANNOTATION: int = 0x2000
ACC_ENUM: int = 0x4000
ACC_MANDATED: int = 0x8000      # parameter
ACC_MODULE: int = 0x8000        # class

# Constant pool tags
CONSTANT_UTF8: int = 1
CONSTANT_INTEGER: int = 3
CONSTANT_FLOAT: int = 4
CONSTANT_LONG: int = 5
CONSTANT_DOUBLE: int = 6
CONSTANT_CLASS: int = 7
CONSTANT_STRING: int = 8
CONSTANT_FIELDREF: int = 9
CONSTANT_METHODREF: int = 10
CONSTANT_INTERFACE_METHODREF: int = 11
CONSTANT_NAME_AND_TYPE: int = 12
CONSTANT_METHOD_HANDLE: int = 15
CONSTANT_METHOD_TYPE: int = 16
CONSTANT_DYNAMIC: int = 17
CONSTANT_INVOKE_DYNAMIC: int = 18
CONSTANT_MODULE: int = 19
CONSTANT_PACKAGE: int = 20

# Payload layout per tag; Utf8 is length-prefixed and handled separately
_CP_LAYOUT: dict[int, str] = {
    CONSTANT_INTEGER: ">i",
    CONSTANT_FLOAT: ">f",
    CONSTANT_LONG: ">q",
    CONSTANT_DOUBLE: ">d",
    CONSTANT_CLASS: ">H",
    CONSTANT_STRING: ">H",
    CONSTANT_FIELDREF: ">HH",
    CONSTANT_METHODREF: ">HH",
    CONSTANT_INTERFACE_METHODREF: ">HH",
    CONSTANT_NAME_AND_TYPE: ">HH",
    CONSTANT_METHOD_HANDLE: ">BH",
    CONSTANT_METHOD_TYPE: ">H",
    CONSTANT_DYNAMIC: ">HH",
    CONSTANT_INVOKE_DYNAMIC: ">HH",
    CONSTANT_MODULE: ">H",
    CONSTANT_PACKAGE: ">H",
}

_REF_TAGS: frozenset[int] = frozenset(
    {CONSTANT_FIELDREF, CONSTANT_METHODREF, CONSTANT_INTERFACE_METHODREF}
)


def decode_modified_utf8(raw: bytes) -> str:
    """Decode the JVM's modified UTF-8 (``C0 80`` nulls, surrogate pairs)."""
    text = raw.replace(b"\xc0\x80", b"\x00").decode("utf-8", "surrogatepass")
    return text.encode("utf-16", "surrogatepass").decode("utf-16")


# ---------------------------------------------------------------------------
# Parsed structures
# ---------------------------------------------------------------------------

class ConstantEntry:
    """One constant-pool slot.

    ``value`` is the decoded literal for Utf8/Integer/Float/Long/Double and
    a tuple of referenced indices (or kind and index) for every other tag.
    """
    __slots__ = ("tag", "value")

    def __init__(self, tag: int, value: object) -> None:
        self.tag = tag
        self.value = value

    def __repr__(self) -> str:
        return f"ConstantEntry(tag={self.tag}, value={self.value!r})"


class AttributeInfo:
    """Base class for decoded attributes."""
    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class GenericAttribute(AttributeInfo):
    __slots__ = ("info",)

    def __init__(self, name: str, info: bytes) -> None:
        super().__init__(name)
        self.info = info


class ExceptionHandler:
    __slots__ = ("start_pc", "end_pc", "handler_pc", "catch_type")

    def __init__(self, start_pc: int, end_pc: int, handler_pc: int, catch_type: str | None) -> None:
        self.start_pc = start_pc
        self.end_pc = end_pc
        self.handler_pc = handler_pc
        self.catch_type = catch_type


class CodeAttribute(AttributeInfo):
    __slots__ = ("max_stack", "max_locals", "code", "exception_table", "attributes", "instructions")

    def __init__(self) -> None:
        super().__init__("Code")
        self.max_stack: int = 0
        self.max_locals: int = 0
        self.code: bytes = b""
        self.exception_table: list[ExceptionHandler] = []
        self.attributes: list[AttributeInfo] = []
        self.instructions: list[Instruction] = []


class ConstantValueAttribute(AttributeInfo):
    """``value`` is already resolved: int, float or str."""
    __slots__ = ("constant_tag", "value")

    def __init__(self, constant_tag: int, value: int | float | str) -> None:
        super().__init__("ConstantValue")
        self.constant_tag = constant_tag
        self.value = value


class DeprecatedAttribute(AttributeInfo):
    __slots__ = ()

    def __init__(self) -> None:
        super().__init__("Deprecated")


class ExceptionsAttribute(AttributeInfo):
    __slots__ = ("exception_names",)

    def __init__(self, exception_names: list[str]) -> None:
        super().__init__("Exceptions")
        self.exception_names = exception_names


class InnerClassEntry:
    """One row of ``InnerClasses``; class names are internal (``a/b/C$D``)."""
    __slots__ = ("inner_class_name", "outer_class_name", "inner_name", "access_flags")

    def __init__(
        self,
        inner_class_name: str,
        outer_class_name: str | None,
        inner_name: str | None,
        access_flags: int,
    ) -> None:
        self.inner_class_name = inner_class_name
        self.outer_class_name = outer_class_name
        self.inner_name = inner_name
        self.access_flags = access_flags


class InnerClassesAttribute(AttributeInfo):
    __slots__ = ("classes",)

    def __init__(self, classes: list[InnerClassEntry]) -> None:
        super().__init__("InnerClasses")
        self.classes = classes


class MethodParameter:
    __slots__ = ("name", "access_flags")

    def __init__(self, name: str | None, access_flags: int) -> None:
        self.name = name
        self.access_flags = access_flags

    @property
    def is_final(self) -> bool:
        return bool(self.access_flags & ACC_FINAL)


class MethodParametersAttribute(AttributeInfo):
    __slots__ = ("parameters",)

    def __init__(self, parameters: list[MethodParameter]) -> None:
        super().__init__("MethodParameters")
        self.parameters = parameters


class SignatureAttribute(AttributeInfo):
    __slots__ = ("signature",)

    def __init__(self, signature: str) -> None:
        super().__init__("Signature")
        self.signature = signature


class SourceFileAttribute(AttributeInfo):
    __slots__ = ("source_file",)

    def __init__(self, source_file: str) -> None:
        super().__init__("SourceFile")
        self.source_file = source_file


A = TypeVar("A", bound=AttributeInfo)


def find_attribute(attributes: list[AttributeInfo], kind: type[A]) -> A | None:
    """Return the first attribute of class *kind*, or ``None``."""
    for attribute in attributes:
        if isinstance(attribute, kind):
            return attribute
    return None


class MemberInfo:
    """A ``field_info`` or ``method_info`` record."""
    __slots__ = ("access_flags", "name", "descriptor", "attributes")

    def __init__(self) -> None:
        self.access_flags: int = 0
        self.name: str = ""
        self.descriptor: str = ""
        self.attributes: list[AttributeInfo] = []

    def attribute(self, kind: type[A]) -> A | None:
        return find_attribute(self.attributes, kind)

    @property
    def code(self) -> CodeAttribute | None:
        return self.attribute(CodeAttribute)

    @property
    def instructions(self) -> list[Instruction]:
        code = self.code
        return code.instructions if code is not None else []

    def __repr__(self) -> str:
        return f"MemberInfo({self.name!r}, {self.descriptor!r})"


class ClassFile:
    """An immutable, fully decoded class file."""

    def __init__(self) -> None:
        self.minor_version: int = 0
        self.major_version: int = 0
        self.constant_pool: list[ConstantEntry | None] = [None]
        self.access_flags: int = 0
        self.this_class: int = 0
        self.super_class: int = 0
        self.interfaces: list[int] = []
        self.fields: list[MemberInfo] = []
        self.methods: list[MemberInfo] = []
        self.attributes: list[AttributeInfo] = []

    # ------------------------------------------------------------------ #
    #  Constant pool access
    # ------------------------------------------------------------------ #

    def constant(self, index: int) -> ConstantEntry:
        if not 0 < index < len(self.constant_pool):
            raise ReadError(f"Constant pool index {index} out of range")
        entry = self.constant_pool[index]
        if entry is None:
            raise ReadError(f"Constant pool index {index} is unusable")
        return entry

    def _expect(self, index: int, tag: int) -> ConstantEntry:
        entry = self.constant(index)
        if entry.tag != tag:
            raise ReadError(f"Constant pool index {index} has tag {entry.tag}, expected {tag}")
        return entry

    def utf8(self, index: int) -> str:
        return self._expect(index, CONSTANT_UTF8).value  # type: ignore[return-value]

    def class_name(self, index: int) -> str:
        """Internal name stored in a ``CONSTANT_Class`` entry."""
        (name_index,) = self._expect(index, CONSTANT_CLASS).value  # type: ignore[misc]
        return self.utf8(name_index)

    def name_and_type(self, index: int) -> tuple[str, str]:
        name_index, descriptor_index = self._expect(index, CONSTANT_NAME_AND_TYPE).value  # type: ignore[misc]
        return self.utf8(name_index), self.utf8(descriptor_index)

    def member_ref(self, index: int) -> tuple[str, str, str]:
        """``(owner internal name, member name, descriptor)`` of a field/method ref."""
        entry = self.constant(index)
        if entry.tag not in _REF_TAGS:
            raise ReadError(f"Constant pool index {index} is not a member reference")
        class_index, nat_index = entry.value  # type: ignore[misc]
        name, descriptor = self.name_and_type(nat_index)
        return self.class_name(class_index), name, descriptor

    def literal(self, index: int) -> int | float | str:
        """Value of an Integer/Float/Long/Double/String constant."""
        entry = self.constant(index)
        if entry.tag == CONSTANT_STRING:
            (string_index,) = entry.value  # type: ignore[misc]
            return self.utf8(string_index)
        if entry.tag in (CONSTANT_INTEGER, CONSTANT_FLOAT, CONSTANT_LONG, CONSTANT_DOUBLE):
            return entry.value  # type: ignore[return-value]
        raise ReadError(f"Constant pool index {index} is not a literal")

    # ------------------------------------------------------------------ #
    #  Class-level views
    # ------------------------------------------------------------------ #

    @property
    def this_class_name(self) -> str:
        return self.class_name(self.this_class)

    @property
    def super_class_name(self) -> str | None:
        return self.class_name(self.super_class) if self.super_class else None

    @property
    def interface_names(self) -> list[str]:
        return [self.class_name(index) for index in self.interfaces]

    def attribute(self, kind: type[A]) -> A | None:
        return find_attribute(self.attributes, kind)

    def is_interface(self) -> bool:
        return bool(self.access_flags & ACC_INTERFACE)

    def is_annotation(self) -> bool:
        return bool(self.access_flags & ACC_ANNOTATION)

    def is_enum(self) -> bool:
        return bool(self.access_flags & ACC_ENUM)

    def __repr__(self) -> str:
        try:
            name = self.this_class_name
        except ReadError:
            name = "?"
        return f"ClassFile({name!r}, version={self.major_version}.{self.minor_version})"


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class ClassFileParser:
    """Struct-based class file parser.

    Usage::

        parser = ClassFileParser(raw_bytes)
        if parser.parse():
            class_file = parser.get_class_file()
        else:
            print(parser.error)
    """

    def __init__(self, data: bytes) -> None:
        self._data: bytes = data
        self._offset: int = 0
        self._class_file: ClassFile = ClassFile()
        self._parsed: bool = False
        self.error: str | None = None

    # ------------------------------------------------------------------ #
    #  Public interface
    # ------------------------------------------------------------------ #

    def parse(self) -> bool:
        """Decode the whole class file.

        Returns:
            ``True`` on success; on failure ``False`` with :attr:`error` set.
        """
        if len(self._data) < 10:
            self.error = "Data too short for a class file header"
            return False

        try:
            magic, minor, major = self._unpack(">IHH")
            if magic != CLASS_MAGIC:
                self.error = f"Bad magic 0x{magic:08X}"
                return False
            cf = self._class_file
            cf.minor_version, cf.major_version = minor, major
            self._parse_constant_pool()
            cf.access_flags, cf.this_class, cf.super_class = self._unpack(">HHH")
            (count,) = self._unpack(">H")
            cf.interfaces = [self._unpack(">H")[0] for _ in range(count)]
            cf.fields = self._parse_members()
            cf.methods = self._parse_members()
            cf.attributes = self._parse_attributes()
            # Resolve eagerly so a dangling this_class fails here
            cf.this_class_name
        except (struct.error, IndexError, ValueError, UnicodeDecodeError) as exc:
            self.error = f"Malformed class file: {exc}"
            return False
        except ReadError as exc:
            self.error = str(exc)
            return False

        self._parsed = True
        return True

    def get_class_file(self) -> ClassFile:
        if not self._parsed:
            raise ReadError(self.error or "Class file has not been parsed")
        return self._class_file

    # ------------------------------------------------------------------ #
    #  Internal parsing helpers
    # ------------------------------------------------------------------ #

    def _unpack(self, fmt: str) -> tuple:
        values = struct.unpack_from(fmt, self._data, self._offset)
        self._offset += struct.calcsize(fmt)
        return values

    def _take(self, length: int) -> bytes:
        end = self._offset + length
        if end > len(self._data):
            raise IndexError(f"Read past end of data at offset {self._offset}")
        chunk = self._data[self._offset:end]
        self._offset = end
        return chunk

    def _parse_constant_pool(self) -> None:
        (count,) = self._unpack(">H")
        pool: list[ConstantEntry | None] = [None]
        index = 1
        while index < count:
            (tag,) = self._unpack(">B")
            if tag == CONSTANT_UTF8:
                (length,) = self._unpack(">H")
                pool.append(ConstantEntry(tag, decode_modified_utf8(self._take(length))))
            elif tag in _CP_LAYOUT:
                values = self._unpack(_CP_LAYOUT[tag])
                if tag in (CONSTANT_INTEGER, CONSTANT_FLOAT, CONSTANT_LONG, CONSTANT_DOUBLE):
                    pool.append(ConstantEntry(tag, values[0]))
                else:
                    pool.append(ConstantEntry(tag, values))
            else:
                raise ValueError(f"Unknown constant pool tag {tag} at index {index}")

            index += 1
            if tag in (CONSTANT_LONG, CONSTANT_DOUBLE):
                pool.append(None)
                index += 1
        self._class_file.constant_pool = pool

    def _parse_members(self) -> list[MemberInfo]:
        cf = self._class_file
        (count,) = self._unpack(">H")
        members: list[MemberInfo] = []
        for _ in range(count):
            member = MemberInfo()
            flags, name_index, descriptor_index = self._unpack(">HHH")
            member.access_flags = flags
            member.name = cf.utf8(name_index)
            member.descriptor = cf.utf8(descriptor_index)
            member.attributes = self._parse_attributes()
            members.append(member)
        return members

    def _parse_attributes(self) -> list[AttributeInfo]:
        (count,) = self._unpack(">H")
        return [self._parse_attribute() for _ in range(count)]

    def _parse_attribute(self) -> AttributeInfo:
        cf = self._class_file
        name_index, length = self._unpack(">HI")
        name = cf.utf8(name_index)
        start = self._offset
        end = start + length
        if end > len(self._data):
            raise IndexError(f"Attribute {name} overruns the class file")

        decoder = _ATTRIBUTE_DECODERS.get(name)
        if decoder is None:
            attribute: AttributeInfo = GenericAttribute(name, self._take(length))
        else:
            attribute = decoder(self)
            if self._offset != end:
                raise ValueError(f"Attribute {name} length mismatch")
        return attribute

    # -- typed attributes ----------------------------------------------------

    def _code(self) -> AttributeInfo:
        cf = self._class_file
        code = CodeAttribute()
        code.max_stack, code.max_locals, code_length = self._unpack(">HHI")
        code.code = self._take(code_length)
        (table_length,) = self._unpack(">H")
        for _ in range(table_length):
            start_pc, end_pc, handler_pc, catch_index = self._unpack(">HHHH")
            catch_type = cf.class_name(catch_index) if catch_index else None
            code.exception_table.append(ExceptionHandler(start_pc, end_pc, handler_pc, catch_type))
        code.attributes = self._parse_attributes()
        code.instructions = decode_instructions(code.code)
        return code

    def _constant_value(self) -> AttributeInfo:
        (index,) = self._unpack(">H")
        cf = self._class_file
        return ConstantValueAttribute(cf.constant(index).tag, cf.literal(index))

    def _deprecated(self) -> AttributeInfo:
        return DeprecatedAttribute()

    def _exceptions(self) -> AttributeInfo:
        (count,) = self._unpack(">H")
        indices = [self._unpack(">H")[0] for _ in range(count)]
        return ExceptionsAttribute([self._class_file.class_name(i) for i in indices])

    def _inner_classes(self) -> AttributeInfo:
        cf = self._class_file
        (count,) = self._unpack(">H")
        entries: list[InnerClassEntry] = []
        for _ in range(count):
            inner_index, outer_index, name_index, flags = self._unpack(">HHHH")
            entries.append(
                InnerClassEntry(
                    inner_class_name=cf.class_name(inner_index),
                    outer_class_name=cf.class_name(outer_index) if outer_index else None,
                    inner_name=cf.utf8(name_index) if name_index else None,
                    access_flags=flags,
                )
            )
        return InnerClassesAttribute(entries)

    def _method_parameters(self) -> AttributeInfo:
        cf = self._class_file
        (count,) = self._unpack(">B")
        parameters: list[MethodParameter] = []
        for _ in range(count):
            name_index, flags = self._unpack(">HH")
            parameters.append(MethodParameter(cf.utf8(name_index) if name_index else None, flags))
        return MethodParametersAttribute(parameters)

    def _signature(self) -> AttributeInfo:
        (index,) = self._unpack(">H")
        return SignatureAttribute(self._class_file.utf8(index))

    def _source_file(self) -> AttributeInfo:
        (index,) = self._unpack(">H")
        return SourceFileAttribute(self._class_file.utf8(index))


_ATTRIBUTE_DECODERS = {
    "Code": ClassFileParser._code,
    "ConstantValue": ClassFileParser._constant_value,
    "Deprecated": ClassFileParser._deprecated,
    "Exceptions": ClassFileParser._exceptions,
    "InnerClasses": ClassFileParser._inner_classes,
    "MethodParameters": ClassFileParser._method_parameters,
    "Signature": ClassFileParser._signature,
    "SourceFile": ClassFileParser._source_file,
}


def read_class_file(data: bytes, *, identifier: str | None = None) -> ClassFile:
    """Parse *data* or raise :class:`ReadError`."""
    parser = ClassFileParser(data)
    if not parser.parse():
        where = f" ({identifier})" if identifier else ""
        raise ReadError(f"{parser.error}{where}", identifier=identifier)
    return parser.get_class_file()
