"""
Type Resolution & Cache
=======================

The semantic type graph.  A :class:`Registry` turns names into one of
seven type variants and memoises them; every other component reaches
types only through a registry it was handed.

Lifecycle of a declared type (class, interface, enum, annotation):

    1. ``Registry.create`` reads the class file, picks the variant from
       the access flags and inserts an unpopulated shell into the cache.
    2. The first member access calls :meth:`DeclaredType.populate`, which
       resolves members and supertypes exactly once.  Other types it
       references are only created, never populated, so mutually
       referential types resolve without recursion.

Override detection walks the hierarchy depth-first: direct interfaces
first, then the superclass chain, stopping at the first match.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, ClassVar, TypeVar, Union, assert_never

from declass.core.errors import ReadError, ResolutionError, TypeStateError
from declass.core.members import (
    Constructor,
    Field,
    InnerType,
    Method,
    Parameter,
    ParameterList,
    class_modifiers,
    interface_modifiers,
)
from declass.core.classpath import ClassPath
from declass.core.models import Modifier, TypeKind, TypeState
from declass.core.names import package_name, simple_name
from declass.parsers.classfile import (
    ACC_ENUM,
    ACC_PUBLIC,
    AttributeInfo,
    ClassFile,
    ExceptionsAttribute,
    InnerClassesAttribute,
    MemberInfo,
    MethodParametersAttribute,
    SignatureAttribute,
)
from declass.parsers.descriptors import (
    BASE_TYPES,
    EXTERNAL_TO_DESCRIPTOR,
    VOID_DESCRIPTOR,
    parse_field_descriptor,
    parse_method_descriptor,
)
from declass.parsers.instructions import referenced_owner_names
from declass.parsers.signatures import (
    ClassSignature,
    parse_class_signature_optional,
    parse_field_signature_optional,
    parse_method_signature_optional,
)
from shared.logger import DeclassLogger

JAVA_LANG_OBJECT: str = "java.lang.Object"
CONSTRUCTOR_NAME: str = "<init>"
STATIC_INITIALIZER_NAME: str = "<clinit>"

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------

class Type:
    """Base of the seven variants; identity is ``(kind, identity_key)``."""

    kind: ClassVar[TypeKind]

    def __init__(self, name: str) -> None:
        self._name = name

    @property
    def name(self) -> str:
        """External name: ``int``, ``java.util.Map$Entry``, ``int[][]``."""
        return self._name

    @property
    def package_name(self) -> str:
        return package_name(self._name)

    @property
    def simple_name(self) -> str:
        return simple_name(self._name)

    @property
    def descriptor(self) -> str:
        return "L" + self._name.replace(".", "/") + ";"

    @property
    def identity_key(self) -> str:
        return self._name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Type):
            return NotImplemented
        return self.kind is other.kind and self.identity_key == other.identity_key

    def __hash__(self) -> int:
        return hash((self.kind, self.identity_key))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r})"


class PrimitiveType(Type):
    kind = TypeKind.PRIMITIVE

    @property
    def descriptor(self) -> str:
        return EXTERNAL_TO_DESCRIPTOR[self._name]

    @property
    def identity_key(self) -> str:
        return self.descriptor

    @property
    def package_name(self) -> str:
        return ""

    @property
    def simple_name(self) -> str:
        return self._name


class VoidType(Type):
    kind = TypeKind.VOID

    def __init__(self) -> None:
        super().__init__("void")

    @property
    def descriptor(self) -> str:
        return VOID_DESCRIPTOR

    @property
    def identity_key(self) -> str:
        return VOID_DESCRIPTOR

    @property
    def package_name(self) -> str:
        return ""

    @property
    def simple_name(self) -> str:
        return "void"


class ArrayType(Type):
    """One array dimension over :attr:`component`."""

    kind = TypeKind.ARRAY

    def __init__(self, component: Type) -> None:
        super().__init__(component.name + "[]")
        self.component = component

    @property
    def descriptor(self) -> str:
        return "[" + self.component.descriptor

    @property
    def identity_key(self) -> str:
        return self.descriptor

    @property
    def element_type(self) -> Type:
        """Innermost non-array component."""
        element = self.component
        while isinstance(element, ArrayType):
            element = element.component
        return element

    @property
    def package_name(self) -> str:
        return self.element_type.package_name

    @property
    def simple_name(self) -> str:
        return self.component.simple_name + "[]"


class DeclaredType(Type):
    """A variant backed by a class file."""

    def __init__(self, name: str, class_file: ClassFile, registry: Registry) -> None:
        super().__init__(name)
        self.class_file = class_file
        self._registry = registry
        self._state = TypeState.CREATED
        self._lock = threading.RLock()
        self._memo: dict[Any, Any] = {}

    @property
    def state(self) -> TypeState:
        return self._state

    @property
    def access_flags(self) -> int:
        return self.class_file.access_flags

    @property
    def attributes(self) -> list[AttributeInfo]:
        return self.class_file.attributes

    @property
    def modifiers(self) -> list[Modifier]:
        return [Modifier.PUBLIC] if self.access_flags & ACC_PUBLIC else []

    @property
    def is_inner_type(self) -> bool:
        inner = self.class_file.attribute(InnerClassesAttribute)
        return inner is not None and any(e.outer_class_name for e in inner.classes)

    @property
    def registry(self) -> Registry:
        return self._registry

    # ------------------------------------------------------------------ #
    #  Two-phase population
    # ------------------------------------------------------------------ #

    def populate(self) -> None:
        """Resolve members exactly once.

        Raises:
            TypeStateError: called again by the thread already populating.
        """
        with self._lock:
            if self._state is TypeState.POPULATED:
                return
            if self._state is TypeState.POPULATING:
                raise TypeStateError(f"{self.name} is already being populated")
            self._state = TypeState.POPULATING
            try:
                self._populate()
            except BaseException:
                self._reset()
                self._state = TypeState.CREATED
                raise
            self._state = TypeState.POPULATED

    def _populate(self) -> None:
        """Enum and annotation bodies are not decompiled."""

    def _reset(self) -> None:
        self._memo.clear()

    def memo(self, key: Any, factory: Callable[[], T]) -> T:
        """Compute once per *key* and cache on this type."""
        with self._lock:
            if key not in self._memo:
                self._memo[key] = factory()
            return self._memo[key]


class _MemberedType(DeclaredType):
    """Shared shape of classes and interfaces."""

    def __init__(self, name: str, class_file: ClassFile, registry: Registry) -> None:
        super().__init__(name, class_file, registry)
        self._signature: ClassSignature | None = None
        self._interfaces: list[AnyType] = []
        self._fields: list[Field] = []
        self._methods: list[Method] = []

    def _populate(self) -> None:
        registry = self._registry
        signature = self.class_file.attribute(SignatureAttribute)
        self._signature = parse_class_signature_optional(
            signature.signature if signature else None
        )
        self._interfaces = [registry.resolve(n) for n in self.class_file.interface_names]
        self._fields = [
            registry.build_field(self, info)
            for info in self.class_file.fields
            if not info.access_flags & ACC_ENUM
        ]
        self._methods = [
            registry.build_method(self, info)
            for info in self.class_file.methods
            if info.name not in (CONSTRUCTOR_NAME, STATIC_INITIALIZER_NAME)
        ]

    def _reset(self) -> None:
        super()._reset()
        self._signature = None
        self._interfaces = []
        self._fields = []
        self._methods = []

    # ------------------------------------------------------------------ #
    #  Populated views
    # ------------------------------------------------------------------ #

    @property
    def signature(self) -> ClassSignature | None:
        self.populate()
        return self._signature

    @property
    def interfaces(self) -> list[AnyType]:
        self.populate()
        return list(self._interfaces)

    @property
    def fields(self) -> list[Field]:
        self.populate()
        return list(self._fields)

    @property
    def methods(self) -> list[Method]:
        self.populate()
        return list(self._methods)

    @property
    def has_superclass(self) -> bool:
        return self._name != JAVA_LANG_OBJECT and self.class_file.super_class != 0

    @property
    def superclass(self) -> ClassType | None:
        """Resolved on first use; ``None`` for ``java.lang.Object``.

        Interfaces name ``java.lang.Object`` here, so its methods are
        inherited by every interface.
        """
        if not self.has_superclass:
            return None
        name = self.class_file.super_class_name
        return self.memo(
            "superclass", lambda: self._registry.class_type(name.replace("/", "."))  # type: ignore[union-attr]
        )

    # ------------------------------------------------------------------ #
    #  Override queries
    # ------------------------------------------------------------------ #

    def has_method(self, method: Method) -> bool:
        """Declares a method with the same name and erased parameters."""
        wanted = method.erased_signature
        return any(own.erased_signature == wanted for own in self.methods)

    def has_method_inherited(self, method: Method) -> bool:
        """Reachable through interfaces (depth-first), then the superclass."""
        for interface in self.interfaces:
            if declares_method(interface, method) or inherits_method(interface, method):
                return True
        superclass = self.superclass
        if superclass is not None:
            return superclass.has_method(method) or superclass.has_method_inherited(method)
        return False

    def has_method_overridden(self, method: Method) -> bool:
        """Declared here and also reachable through inheritance."""
        return self.has_method(method) and self.has_method_inherited(method)


class ClassType(_MemberedType):
    kind = TypeKind.CLASS

    def __init__(self, name: str, class_file: ClassFile, registry: Registry) -> None:
        super().__init__(name, class_file, registry)
        self._constructors: list[Constructor] = []
        self._inner_types: list[InnerType] = []

    @property
    def modifiers(self) -> list[Modifier]:
        return class_modifiers(self.access_flags)

    def _populate(self) -> None:
        super()._populate()
        registry = self._registry
        self._constructors = [
            registry.build_constructor(self, info)
            for info in self.class_file.methods
            if info.name == CONSTRUCTOR_NAME
        ]
        self._inner_types = registry.build_inner_types(self)

    def _reset(self) -> None:
        super()._reset()
        self._constructors = []
        self._inner_types = []

    @property
    def constructors(self) -> list[Constructor]:
        self.populate()
        return list(self._constructors)

    @property
    def inner_types(self) -> list[InnerType]:
        self.populate()
        return list(self._inner_types)


class InterfaceType(_MemberedType):
    kind = TypeKind.INTERFACE

    @property
    def modifiers(self) -> list[Modifier]:
        return interface_modifiers(self.access_flags)


class EnumType(DeclaredType):
    kind = TypeKind.ENUM


class AnnotationType(DeclaredType):
    kind = TypeKind.ANNOTATION


AnyType = Union[
    PrimitiveType, VoidType, ArrayType, ClassType, InterfaceType, EnumType, AnnotationType
]

ReferenceType = Union[ClassType, InterfaceType, EnumType, AnnotationType]


def declares_method(type_: AnyType, method: Method) -> bool:
    if isinstance(type_, (ClassType, InterfaceType)):
        return type_.has_method(method)
    if isinstance(type_, (PrimitiveType, VoidType, ArrayType, EnumType, AnnotationType)):
        return False
    assert_never(type_)


def inherits_method(type_: AnyType, method: Method) -> bool:
    if isinstance(type_, (ClassType, InterfaceType)):
        return type_.has_method_inherited(method)
    if isinstance(type_, (PrimitiveType, VoidType, ArrayType, EnumType, AnnotationType)):
        return False
    assert_never(type_)


def kind_of(class_file: ClassFile) -> TypeKind:
    """Variant implied by class access flags."""
    if class_file.is_annotation():
        return TypeKind.ANNOTATION
    if class_file.is_enum():
        return TypeKind.ENUM
    if class_file.is_interface():
        return TypeKind.INTERFACE
    return TypeKind.CLASS


_DECLARED_VARIANTS: dict[TypeKind, type[DeclaredType]] = {
    TypeKind.CLASS: ClassType,
    TypeKind.INTERFACE: InterfaceType,
    TypeKind.ENUM: EnumType,
    TypeKind.ANNOTATION: AnnotationType,
}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class Registry:
    """Memoising resolver from names to types.

    One cache per variant namespace plus one for parsed class files, each
    behind its own lock.  Inserts are insert-if-absent, so concurrent
    workers resolving the same name share one instance.

    Usage::

        registry = Registry(DirectoryClassPath("build/classes"))
        string = registry.class_type("java.lang.String")
        assert registry.resolve("java/lang/String") is string
    """

    def __init__(self, class_path: ClassPath, logger: DeclassLogger | None = None) -> None:
        self.class_path = class_path
        self.logger = logger or DeclassLogger("registry")
        self._caches: dict[TypeKind, dict[str, Type]] = {kind: {} for kind in TypeKind}
        self._locks: dict[TypeKind, threading.Lock] = {kind: threading.Lock() for kind in TypeKind}
        self._class_files: dict[str, ClassFile] = {}
        self._class_file_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    #  Resolution
    # ------------------------------------------------------------------ #

    def resolve(self, name: str, kind: TypeKind | None = None) -> AnyType:
        """Resolve *name* to a type, optionally requiring a variant.

        Accepts primitive keywords, ``void``, array names (``int[]``),
        array descriptors (``[I``), and external or internal reference
        names.  A bare descriptor token such as ``I`` means the primitive
        unless a default-package class of that name is on the class path.

        Raises:
            ResolutionError: bytes are missing or corrupt, or the variant
                differs from *kind*.
        """
        text = name.strip()
        if not text:
            raise ResolutionError("Cannot resolve an empty name", name=name)

        resolved: AnyType
        if text.startswith("["):
            resolved = self.resolve_descriptor(text)
        elif text.endswith("[]"):
            resolved = self._array(text)
        elif text in EXTERNAL_TO_DESCRIPTOR:
            resolved = self._primitive_or_void(EXTERNAL_TO_DESCRIPTOR[text])
        elif (text in BASE_TYPES or text == VOID_DESCRIPTOR) and not self._has_class(text):
            resolved = self._primitive_or_void(text)
        else:
            resolved = self._declared(text.replace("/", "."))

        if kind is not None and resolved.kind is not kind:
            raise ResolutionError(
                f"{text} is a {resolved.kind.value}, not a {kind.value}", name=name
            )
        return resolved

    def resolve_descriptor(self, descriptor: str) -> AnyType:
        """Resolve a field descriptor or ``V`` by its structure."""
        try:
            if descriptor != VOID_DESCRIPTOR:
                parse_field_descriptor(descriptor)
        except ReadError as exc:
            raise ResolutionError(str(exc), name=descriptor) from exc

        if descriptor.startswith("["):
            element = descriptor.lstrip("[")
            return self._array_of(self.resolve_descriptor(element), len(descriptor) - len(element))
        if descriptor.startswith("L"):
            return self._declared(descriptor[1:-1].replace("/", "."))
        return self._primitive_or_void(descriptor)

    def class_type(self, name: str) -> ClassType:
        return self.resolve(name, TypeKind.CLASS)  # type: ignore[return-value]

    def interface_type(self, name: str) -> InterfaceType:
        return self.resolve(name, TypeKind.INTERFACE)  # type: ignore[return-value]

    def enum_type(self, name: str) -> EnumType:
        return self.resolve(name, TypeKind.ENUM)  # type: ignore[return-value]

    def annotation_type(self, name: str) -> AnnotationType:
        return self.resolve(name, TypeKind.ANNOTATION)  # type: ignore[return-value]

    def array_type(self, name: str) -> ArrayType:
        return self.resolve(name, TypeKind.ARRAY)  # type: ignore[return-value]

    def primitive_type(self, name: str) -> PrimitiveType:
        return self.resolve(name, TypeKind.PRIMITIVE)  # type: ignore[return-value]

    def void_type(self) -> VoidType:
        return self.resolve("void", TypeKind.VOID)  # type: ignore[return-value]

    def clear(self) -> None:
        """Drop every cached type and class file."""
        for kind, cache in self._caches.items():
            with self._locks[kind]:
                cache.clear()
        with self._class_file_lock:
            self._class_files.clear()

    def cached(self, kind: TypeKind) -> list[Type]:
        with self._locks[kind]:
            return list(self._caches[kind].values())

    # ------------------------------------------------------------------ #
    #  Cache internals
    # ------------------------------------------------------------------ #

    def _insert_if_absent(self, kind: TypeKind, key: str, factory: Callable[[], Type]) -> Any:
        with self._locks[kind]:
            cache = self._caches[kind]
            existing = cache.get(key)
            if existing is None:
                existing = factory()
                cache[key] = existing
            return existing

    def _lookup_declared(self, name: str) -> DeclaredType | None:
        for kind in _DECLARED_VARIANTS:
            with self._locks[kind]:
                found = self._caches[kind].get(name)
            if found is not None:
                return found  # type: ignore[return-value]
        return None

    def _primitive_or_void(self, text: str) -> AnyType:
        if text in (VOID_DESCRIPTOR, "void"):
            return self._insert_if_absent(TypeKind.VOID, VOID_DESCRIPTOR, VoidType)
        external = BASE_TYPES.get(text, text)
        return self._insert_if_absent(
            TypeKind.PRIMITIVE, EXTERNAL_TO_DESCRIPTOR[external], lambda: PrimitiveType(external)
        )

    def _array(self, text: str) -> ArrayType:
        element_name = text
        while element_name.endswith("[]"):
            element_name = element_name[:-2]
        if element_name in ("void", VOID_DESCRIPTOR):
            raise ResolutionError(f"Arrays of void are not types: {text}", name=text)
        return self._array_of(self.resolve(element_name), (len(text) - len(element_name)) // 2)

    def _array_of(self, element: AnyType, dimensions: int) -> ArrayType:
        current: Type = element
        # Build one dimension at a time from the innermost component outward
        for _ in range(dimensions):
            component = current
            current = self._insert_if_absent(
                TypeKind.ARRAY, "[" + component.descriptor, lambda: ArrayType(component)
            )
        return current  # type: ignore[return-value]

    def _has_class(self, name: str) -> bool:
        """A declared type or class file exists for *name*."""
        if self._lookup_declared(name) is not None:
            return True
        with self._class_file_lock:
            if name in self._class_files:
                return True
        try:
            return self.class_path.find(name) is not None
        except ReadError:
            return True

    def _load_class_file(self, name: str) -> ClassFile:
        with self._class_file_lock:
            class_file = self._class_files.get(name)
            if class_file is not None:
                return class_file
            try:
                class_file = self.class_path.open_class_file(name)
                actual = class_file.this_class_name.replace("/", ".")
            except ReadError as exc:
                raise ResolutionError(f"Cannot resolve {name}: {exc}", name=name) from exc
            if actual != name:
                raise ResolutionError(f"Class file for {name} declares {actual}", name=name)
            self._class_files[name] = class_file
            return class_file

    def _declared(self, name: str) -> DeclaredType:
        cached = self._lookup_declared(name)
        if cached is not None:
            return cached
        return self.create(name)

    def create(self, name: str) -> DeclaredType:
        """Insert an unpopulated shell for *name* and return the cached one."""
        class_file = self._load_class_file(name)
        kind = kind_of(class_file)
        self.logger.debug("Created %s shell for %s", kind.value, name)
        variant = _DECLARED_VARIANTS[kind]
        return self._insert_if_absent(kind, name, lambda: variant(name, class_file, self))

    # ------------------------------------------------------------------ #
    #  Member builders, called while a type populates
    # ------------------------------------------------------------------ #

    def _resolve_all(self, names: list[str]) -> list[AnyType]:
        return [self.resolve(name) for name in dict.fromkeys(names)]

    def build_field(self, owner: DeclaredType, info: MemberInfo) -> Field:
        signature = info.attribute(SignatureAttribute)
        return Field(
            owner,
            info,
            self.resolve_descriptor(info.descriptor),
            parse_field_signature_optional(signature.signature if signature else None),
        )

    def _build_parameters(
        self, info: MemberInfo, descriptors: list[str], signature_parameters: tuple
    ) -> ParameterList:
        metadata = info.attribute(MethodParametersAttribute)
        named = metadata.parameters if metadata and len(metadata.parameters) == len(descriptors) else None
        generic = signature_parameters if len(signature_parameters) == len(descriptors) else None

        parameters: list[Parameter] = []
        for index, descriptor in enumerate(descriptors):
            entry = named[index] if named else None
            parameters.append(
                Parameter(
                    self.resolve_descriptor(descriptor),
                    index,
                    name=entry.name if entry else None,
                    is_final=entry.is_final if entry else False,
                    signature=generic[index] if generic else None,
                )
            )
        return ParameterList(parameters)

    def _executable_parts(self, owner: DeclaredType, info: MemberInfo) -> dict[str, Any]:
        descriptor = parse_method_descriptor(info.descriptor)
        signature_attribute = info.attribute(SignatureAttribute)
        signature = parse_method_signature_optional(
            signature_attribute.signature if signature_attribute else None
        )
        exceptions = info.attribute(ExceptionsAttribute)
        owners = referenced_owner_names(info.instructions, owner.class_file)
        return {
            "descriptor": descriptor,
            "signature": signature,
            "parameters": self._build_parameters(
                info, descriptor.parameters, signature.parameters if signature else ()
            ),
            "exceptions": self._resolve_all(exceptions.exception_names if exceptions else []),
            "referenced_types": self._resolve_all(owners),
        }

    def build_method(self, owner: DeclaredType, info: MemberInfo) -> Method:
        parts = self._executable_parts(owner, info)
        return Method(
            owner,
            info,
            self.resolve_descriptor(parts["descriptor"].return_type),
            parts["parameters"],
            exceptions=parts["exceptions"],
            referenced_types=parts["referenced_types"],
            signature=parts["signature"],
        )

    def build_constructor(self, owner: DeclaredType, info: MemberInfo) -> Constructor:
        parts = self._executable_parts(owner, info)
        return Constructor(
            owner,
            info,
            parts["parameters"],
            exceptions=parts["exceptions"],
            referenced_types=parts["referenced_types"],
            signature=parts["signature"],
        )

    def build_inner_types(self, owner: ClassType) -> list[InnerType]:
        """Entries declared directly inside *owner*, excluding *owner* itself."""
        attribute = owner.class_file.attribute(InnerClassesAttribute)
        if attribute is None:
            return []
        own = owner.class_file.this_class_name
        inner_types: list[InnerType] = []
        for entry in attribute.classes:
            if not entry.inner_name or entry.outer_class_name != own:
                continue
            if entry.inner_class_name == own:
                continue
            inner_types.append(
                InnerType(
                    outer_name=own.replace("/", "."),
                    inner_name=entry.inner_class_name.replace("/", "."),
                    simple_name=entry.inner_name,
                    access_flags=entry.access_flags,
                    type_=self.resolve(entry.inner_class_name),
                )
            )
        return inner_types
