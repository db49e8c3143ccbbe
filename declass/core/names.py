"""
Qualified-Name Spans and Package Elision
========================================

Type names are rendered in two passes.  Renderers first produce a
*fragment*: a sequence of plain strings and :class:`QualifiedName` spans.
:func:`render` then turns the fragment into text, asking a
:class:`PackageNameFilter` whether each span keeps its package qualifier.
Keywords such as ``extends`` are always plain text, so they can never be
mistaken for part of a name.
"""

from __future__ import annotations

from typing import Iterable, NamedTuple, Sequence, Union

JAVA_LANG: str = "java.lang"


class QualifiedName(NamedTuple):
    """A type name split into its package and its simple name."""

    package: str
    simple: str

    @property
    def full(self) -> str:
        return f"{self.package}.{self.simple}" if self.package else self.simple

    @classmethod
    def of(cls, name: str) -> QualifiedName:
        """Split a dotted external name at its last dot."""
        return cls(package_name(name), name.rpartition(".")[2])


Fragment = Sequence[Union[str, QualifiedName]]


def package_name(name: str) -> str:
    """``java.util.Map$Entry`` -> ``java.util``; ``""`` for the default package."""
    return name.rpartition(".")[0]


def simple_name(name: str) -> str:
    """Text after the last ``.`` and, for nested types, after the last ``$``."""
    return name.rpartition(".")[2].rpartition("$")[2]


class PackageNameFilter:
    """Decides whether a span keeps its package qualifier.

    A package is dropped when discarding is enabled and it is the
    declaring type's own package, ``java.lang``, or (with importing
    enabled) the package of one of the declaring type's importable types.
    """

    def __init__(
        self,
        own_package: str,
        *,
        discarding: bool = True,
        importing: bool = True,
        importable_names: Iterable[str] = (),
    ) -> None:
        self._own_package = own_package
        self._discarding = discarding
        self._importing = importing
        self._importable_packages = frozenset(package_name(name) for name in importable_names)

    def accepts(self, package: str, simple: str) -> bool:
        """``True`` keeps the qualifier, ``False`` strips it."""
        if not package or not self._discarding:
            return True
        if package == self._own_package or package == JAVA_LANG:
            return False
        if self._importing and package in self._importable_packages:
            return False
        return True


def render(fragment: Fragment, name_filter: PackageNameFilter | None = None) -> str:
    """Join *fragment*, qualifying each span the filter accepts."""
    parts: list[str] = []
    for piece in fragment:
        if isinstance(piece, QualifiedName):
            if name_filter is None or name_filter.accepts(piece.package, piece.simple):
                parts.append(piece.full)
            else:
                parts.append(piece.simple)
        else:
            parts.append(piece)
    return "".join(parts)


def join_fragments(fragments: Iterable[Fragment], separator: str) -> list[str | QualifiedName]:
    joined: list[str | QualifiedName] = []
    for index, fragment in enumerate(fragments):
        if index:
            joined.append(separator)
        joined.extend(fragment)
    return joined
