"""
Class File Builder
==================

Assembles JVMS-conformant ``.class`` bytes in memory so tests can feed the
parser and the registry without a Java toolchain.

Usage::

    builder = ClassBuilder("com/example/Foo")
    builder.field(ACC_PUBLIC, "count", "I")
    builder.method(ACC_PUBLIC, "getCount", "()I")
    data = builder.build()
"""

from __future__ import annotations

import struct
from pathlib import Path
from typing import Callable, Iterable, Sequence, Union

from declass.parsers.classfile import (
    ACC_ABSTRACT,
    ACC_ENUM,
    ACC_FINAL,
    ACC_INTERFACE,
    ACC_NATIVE,
    ACC_PUBLIC,
    ACC_SUPER,
    CLASS_MAGIC,
    CONSTANT_CLASS,
    CONSTANT_DOUBLE,
    CONSTANT_FIELDREF,
    CONSTANT_FLOAT,
    CONSTANT_INTEGER,
    CONSTANT_LONG,
    CONSTANT_METHODREF,
    CONSTANT_NAME_AND_TYPE,
    CONSTANT_STRING,
    CONSTANT_UTF8,
)

RETURN: bytes = b"\xb1"

# Code is raw bytes, or built from the pool when it references constants
CodeBody = Union[bytes, Callable[["ConstantPool"], bytes]]


def _modified_utf8(text: str) -> bytes:
    return text.encode("utf-8").replace(b"\x00", b"\xc0\x80")


class ConstantPool:
    """Deduplicating constant pool writer."""

    def __init__(self) -> None:
        self._entries: list[bytes] = []
        self._indices: dict[tuple, int] = {}
        self._next = 1

    def _add(self, key: tuple, payload: bytes, slots: int = 1) -> int:
        if key in self._indices:
            return self._indices[key]
        index = self._next
        self._entries.append(payload)
        self._indices[key] = index
        self._next += slots
        return index

    def utf8(self, text: str) -> int:
        raw = _modified_utf8(text)
        return self._add(("utf8", text), struct.pack(">BH", CONSTANT_UTF8, len(raw)) + raw)

    def class_(self, internal_name: str) -> int:
        name = self.utf8(internal_name)
        return self._add(("class", internal_name), struct.pack(">BH", CONSTANT_CLASS, name))

    def string(self, text: str) -> int:
        value = self.utf8(text)
        return self._add(("string", text), struct.pack(">BH", CONSTANT_STRING, value))

    def integer(self, value: int) -> int:
        return self._add(("int", value), struct.pack(">Bi", CONSTANT_INTEGER, value))

    def float_(self, value: float) -> int:
        return self._add(("float", value), struct.pack(">Bf", CONSTANT_FLOAT, value))

    def long(self, value: int) -> int:
        return self._add(("long", value), struct.pack(">Bq", CONSTANT_LONG, value), slots=2)

    def double(self, value: float) -> int:
        return self._add(("double", value), struct.pack(">Bd", CONSTANT_DOUBLE, value), slots=2)

    def name_and_type(self, name: str, descriptor: str) -> int:
        name_index = self.utf8(name)
        descriptor_index = self.utf8(descriptor)
        return self._add(
            ("nat", name, descriptor),
            struct.pack(">BHH", CONSTANT_NAME_AND_TYPE, name_index, descriptor_index),
        )

    def field_ref(self, owner: str, name: str, descriptor: str) -> int:
        owner_index = self.class_(owner)
        nat = self.name_and_type(name, descriptor)
        return self._add(
            ("fieldref", owner, name, descriptor),
            struct.pack(">BHH", CONSTANT_FIELDREF, owner_index, nat),
        )

    def method_ref(self, owner: str, name: str, descriptor: str) -> int:
        owner_index = self.class_(owner)
        nat = self.name_and_type(name, descriptor)
        return self._add(
            ("methodref", owner, name, descriptor),
            struct.pack(">BHH", CONSTANT_METHODREF, owner_index, nat),
        )

    def to_bytes(self) -> bytes:
        return struct.pack(">H", self._next) + b"".join(self._entries)


def _attribute(pool: ConstantPool, name: str, body: bytes) -> bytes:
    return struct.pack(">HI", pool.utf8(name), len(body)) + body


def _attributes(pool: ConstantPool, bodies: Sequence[tuple[str, bytes]]) -> bytes:
    return struct.pack(">H", len(bodies)) + b"".join(_attribute(pool, n, b) for n, b in bodies)


def invoke_special(owner: str, name: str, descriptor: str) -> Callable[[ConstantPool], bytes]:
    """``aload_0; invokespecial owner.name; return``."""
    return lambda pool: b"\x2a\xb7" + struct.pack(">H", pool.method_ref(owner, name, descriptor)) + RETURN


def invoke_static(owner: str, name: str, descriptor: str) -> Callable[[ConstantPool], bytes]:
    """``invokestatic owner.name; return``."""
    return lambda pool: b"\xb8" + struct.pack(">H", pool.method_ref(owner, name, descriptor)) + RETURN


def get_static(owner: str, name: str, descriptor: str) -> Callable[[ConstantPool], bytes]:
    """``getstatic owner.name; pop; return``."""
    return lambda pool: b"\xb2" + struct.pack(">H", pool.field_ref(owner, name, descriptor)) + b"\x57" + RETURN


class _Member:
    def __init__(self, access: int, name: str, descriptor: str) -> None:
        self.access = access
        self.name = name
        self.descriptor = descriptor
        self.attributes: list[Callable[[ConstantPool], tuple[str, bytes]]] = []

    def encode(self, pool: ConstantPool) -> bytes:
        head = struct.pack(">HHH", self.access, pool.utf8(self.name), pool.utf8(self.descriptor))
        return head + _attributes(pool, [make(pool) for make in self.attributes])


class ClassBuilder:
    """Collects the parts of one class file and serialises them."""

    def __init__(
        self,
        name: str,
        *,
        access: int = ACC_PUBLIC | ACC_SUPER,
        super_name: str | None = "java/lang/Object",
        interfaces: Iterable[str] = (),
        major_version: int = 61,
    ) -> None:
        self.name = name
        self.access = access
        self.super_name = super_name
        self.interfaces = list(interfaces)
        self.major_version = major_version
        self._fields: list[_Member] = []
        self._methods: list[_Member] = []
        self._attributes: list[Callable[[ConstantPool], tuple[str, bytes]]] = []

    # ------------------------------------------------------------------ #
    #  Members
    # ------------------------------------------------------------------ #

    def field(
        self,
        access: int,
        name: str,
        descriptor: str,
        *,
        signature: str | None = None,
        constant: int | float | str | None = None,
        deprecated: bool = False,
    ) -> ClassBuilder:
        member = _Member(access, name, descriptor)
        if constant is not None:
            member.attributes.append(
                lambda pool: ("ConstantValue", struct.pack(">H", _constant(pool, descriptor, constant)))
            )
        self._common(member, signature, deprecated)
        self._fields.append(member)
        return self

    def method(
        self,
        access: int,
        name: str,
        descriptor: str,
        *,
        code: CodeBody | None = None,
        signature: str | None = None,
        parameters: Sequence[tuple[str, int]] | None = None,
        exceptions: Sequence[str] = (),
        deprecated: bool = False,
        max_locals: int = 4,
    ) -> ClassBuilder:
        member = _Member(access, name, descriptor)
        if not access & (ACC_ABSTRACT | ACC_NATIVE):
            body = code if code is not None else RETURN
            member.attributes.append(lambda pool: ("Code", _code(pool, body, max_locals)))
        if exceptions:
            member.attributes.append(
                lambda pool: (
                    "Exceptions",
                    struct.pack(f">H{len(exceptions)}H", len(exceptions), *(pool.class_(e) for e in exceptions)),
                )
            )
        if parameters is not None:
            member.attributes.append(
                lambda pool: (
                    "MethodParameters",
                    struct.pack(">B", len(parameters))
                    + b"".join(struct.pack(">HH", pool.utf8(n), f) for n, f in parameters),
                )
            )
        self._common(member, signature, deprecated)
        self._methods.append(member)
        return self

    def constructor(self, access: int = ACC_PUBLIC, descriptor: str = "()V", **kwargs) -> ClassBuilder:
        kwargs.setdefault("code", invoke_special(self.super_name or "java/lang/Object", "<init>", "()V"))
        return self.method(access, "<init>", descriptor, **kwargs)

    @staticmethod
    def _common(member: _Member, signature: str | None, deprecated: bool) -> None:
        if signature is not None:
            member.attributes.append(lambda pool: ("Signature", struct.pack(">H", pool.utf8(signature))))
        if deprecated:
            member.attributes.append(lambda pool: ("Deprecated", b""))

    # ------------------------------------------------------------------ #
    #  Class attributes
    # ------------------------------------------------------------------ #

    def signature(self, text: str) -> ClassBuilder:
        self._attributes.append(lambda pool: ("Signature", struct.pack(">H", pool.utf8(text))))
        return self

    def source_file(self, file_name: str) -> ClassBuilder:
        self._attributes.append(lambda pool: ("SourceFile", struct.pack(">H", pool.utf8(file_name))))
        return self

    def inner_classes(self, entries: Sequence[tuple[str, str | None, str | None, int]]) -> ClassBuilder:
        """Rows of ``(inner, outer or None, simple name or None, flags)``."""

        def body(pool: ConstantPool) -> tuple[str, bytes]:
            rows = b"".join(
                struct.pack(
                    ">HHHH",
                    pool.class_(inner),
                    pool.class_(outer) if outer else 0,
                    pool.utf8(simple) if simple else 0,
                    flags,
                )
                for inner, outer, simple, flags in entries
            )
            return "InnerClasses", struct.pack(">H", len(entries)) + rows

        self._attributes.append(body)
        return self

    def raw_attribute(self, name: str, data: bytes) -> ClassBuilder:
        self._attributes.append(lambda pool: (name, data))
        return self

    # ------------------------------------------------------------------ #
    #  Serialisation
    # ------------------------------------------------------------------ #

    def build(self) -> bytes:
        pool = ConstantPool()
        this_index = pool.class_(self.name)
        super_index = pool.class_(self.super_name) if self.super_name else 0
        interface_indices = [pool.class_(name) for name in self.interfaces]

        body = bytearray(struct.pack(">HHH", self.access, this_index, super_index))
        body += struct.pack(f">H{len(interface_indices)}H", len(interface_indices), *interface_indices)
        body += struct.pack(">H", len(self._fields))
        for member in self._fields:
            body += member.encode(pool)
        body += struct.pack(">H", len(self._methods))
        for member in self._methods:
            body += member.encode(pool)
        body += _attributes(pool, [make(pool) for make in self._attributes])

        header = struct.pack(">IHH", CLASS_MAGIC, 0, self.major_version)
        return header + pool.to_bytes() + bytes(body)


def _code(pool: ConstantPool, body: CodeBody, max_locals: int) -> bytes:
    code = body(pool) if callable(body) else body
    return (
        struct.pack(">HHI", 2, max_locals, len(code))
        + code
        + struct.pack(">H", 0)
        + struct.pack(">H", 0)
    )


def _constant(pool: ConstantPool, descriptor: str, value: int | float | str) -> int:
    if descriptor == "J":
        return pool.long(int(value))
    if descriptor == "D":
        return pool.double(float(value))
    if descriptor == "F":
        return pool.float_(float(value))
    if descriptor == "Ljava/lang/String;":
        return pool.string(str(value))
    return pool.integer(int(value))


# ---------------------------------------------------------------------------
# JDK stubs and layout helpers
# ---------------------------------------------------------------------------

INTERFACE_FLAGS: int = ACC_PUBLIC | ACC_INTERFACE | ACC_ABSTRACT
ABSTRACT_METHOD: int = ACC_PUBLIC | ACC_ABSTRACT


def interface(name: str, *interfaces: str) -> ClassBuilder:
    return ClassBuilder(name, access=INTERFACE_FLAGS, interfaces=interfaces)


def enum_builder(name: str) -> ClassBuilder:
    return ClassBuilder(
        name, access=ACC_PUBLIC | ACC_FINAL | ACC_SUPER | ACC_ENUM, super_name="java/lang/Enum"
    )


def jdk_builders() -> list[ClassBuilder]:
    """Just enough of ``java.base`` for declarations to resolve."""
    obj = ClassBuilder("java/lang/Object", super_name=None)
    obj.method(ACC_PUBLIC, "<init>", "()V", code=RETURN)
    obj.method(ACC_PUBLIC, "equals", "(Ljava/lang/Object;)Z")
    obj.method(ACC_PUBLIC, "hashCode", "()I")
    obj.method(ACC_PUBLIC, "toString", "()Ljava/lang/String;")

    string = ClassBuilder(
        "java/lang/String",
        access=ACC_PUBLIC | ACC_FINAL | ACC_SUPER,
        interfaces=["java/io/Serializable", "java/lang/Comparable"],
    )
    string.method(ACC_PUBLIC, "length", "()I")

    comparable = interface("java/lang/Comparable")
    comparable.signature("<T:Ljava/lang/Object;>Ljava/lang/Object;")
    comparable.method(ABSTRACT_METHOD, "compareTo", "(Ljava/lang/Object;)I")

    runnable = interface("java/lang/Runnable")
    runnable.method(ABSTRACT_METHOD, "run", "()V")

    auto_closeable = interface("java/lang/AutoCloseable")
    auto_closeable.method(ABSTRACT_METHOD, "close", "()V")

    list_ = interface("java/util/List")
    list_.signature("<E:Ljava/lang/Object;>Ljava/lang/Object;")
    list_.method(ABSTRACT_METHOD, "size", "()I")

    return [
        obj,
        string,
        comparable,
        runnable,
        auto_closeable,
        list_,
        interface("java/io/Serializable"),
        interface("java/util/Map"),
        interface("java/util/Map$Entry"),
        ClassBuilder("java/lang/Number", access=ACC_PUBLIC | ACC_ABSTRACT | ACC_SUPER),
        ClassBuilder("java/lang/Throwable"),
        ClassBuilder("java/lang/Exception", super_name="java/lang/Throwable"),
        ClassBuilder("java/io/IOException", super_name="java/lang/Exception"),
        ClassBuilder(
            "java/lang/Enum",
            access=ACC_PUBLIC | ACC_ABSTRACT | ACC_SUPER,
            interfaces=["java/lang/Comparable", "java/io/Serializable"],
        ),
    ]


def write_classes(root: Path, builders: Iterable[ClassBuilder]) -> Path:
    """Lay out ``<root>/<internal name>.class`` files and return *root*."""
    for builder in builders:
        path = root / f"{builder.name}.class"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(builder.build())
    return root
