"""
Class Path
==========

Sources of class-file bytes keyed by class name.  A name may be given in
external (``java.util.Map$Entry``) or internal (``java/util/Map$Entry``)
form; both map to the entry ``java/util/Map$Entry.class``.

Supported sources:
    - :class:`DirectoryClassPath`  a directory tree of ``.class`` files
    - :class:`ArchiveClassPath`    a ``.jar`` or ``.zip`` archive
    - :class:`InMemoryClassPath`   a mapping of names to bytes
    - :class:`CompositeClassPath`  first hit across several sources
"""

from __future__ import annotations

import threading
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Mapping

from declass.core.errors import ReadError
from declass.parsers.classfile import ClassFile, read_class_file


def entry_name(identifier: str) -> str:
    """``java.lang.String`` -> ``java/lang/String.class``."""
    name = identifier.removesuffix(".class")
    return name.replace(".", "/") + ".class"


class ClassPath(ABC):
    """Read-only source of class bytes."""

    @abstractmethod
    def find(self, identifier: str) -> bytes | None:
        """Bytes for *identifier*, or ``None`` when this source lacks it.

        Raises:
            ReadError: the entry exists but cannot be read.
        """

    def read_class_bytes(self, identifier: str) -> bytes:
        data = self.find(identifier)
        if data is None:
            raise ReadError(f"Class {identifier} not found on class path", identifier=identifier)
        return data

    def open_class_file(self, identifier: str) -> ClassFile:
        return read_class_file(self.read_class_bytes(identifier), identifier=identifier)

    def close(self) -> None:
        """Release any open handles."""


class DirectoryClassPath(ClassPath):
    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def find(self, identifier: str) -> bytes | None:
        path = self._root / entry_name(identifier)
        if not path.is_file():
            return None
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ReadError(f"Cannot read {path}: {exc}", identifier=identifier) from exc

    def __repr__(self) -> str:
        return f"DirectoryClassPath({str(self._root)!r})"


class ArchiveClassPath(ClassPath):
    """Entries of a jar or zip archive; the archive is opened on first use."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._archive: zipfile.ZipFile | None = None
        self._names: frozenset[str] = frozenset()
        self._lock = threading.Lock()

    def _open(self) -> zipfile.ZipFile:
        if self._archive is None:
            try:
                self._archive = zipfile.ZipFile(self._path)
            except (OSError, zipfile.BadZipFile) as exc:
                raise ReadError(f"Cannot open archive {self._path}: {exc}") from exc
            self._names = frozenset(self._archive.namelist())
        return self._archive

    def find(self, identifier: str) -> bytes | None:
        name = entry_name(identifier)
        # ZipFile shares one file handle between readers
        with self._lock:
            archive = self._open()
            if name not in self._names:
                return None
            try:
                return archive.read(name)
            except (OSError, zipfile.BadZipFile) as exc:
                raise ReadError(
                    f"Cannot read {name} from {self._path}: {exc}", identifier=identifier
                ) from exc

    def close(self) -> None:
        with self._lock:
            if self._archive is not None:
                self._archive.close()
                self._archive = None

    def __repr__(self) -> str:
        return f"ArchiveClassPath({str(self._path)!r})"


class InMemoryClassPath(ClassPath):
    """Class bytes keyed by name; handy for tests and embedding."""

    def __init__(self, classes: Mapping[str, bytes] | None = None) -> None:
        self._classes: dict[str, bytes] = {}
        for name, data in (classes or {}).items():
            self.add(name, data)

    def add(self, identifier: str, data: bytes) -> None:
        self._classes[entry_name(identifier)] = data

    def find(self, identifier: str) -> bytes | None:
        return self._classes.get(entry_name(identifier))

    def __len__(self) -> int:
        return len(self._classes)


class CompositeClassPath(ClassPath):
    """Searches its sources in order."""

    def __init__(self, sources: Iterable[ClassPath]) -> None:
        self._sources = list(sources)

    def find(self, identifier: str) -> bytes | None:
        for source in self._sources:
            data = source.find(identifier)
            if data is not None:
                return data
        return None

    def close(self) -> None:
        for source in self._sources:
            source.close()

    def __repr__(self) -> str:
        return f"CompositeClassPath({self._sources!r})"


def from_entries(entries: Iterable[str | Path]) -> ClassPath:
    """Build a class path from directories and ``.jar``/``.zip`` files.

    Raises:
        ReadError: an entry does not exist.
    """
    sources: list[ClassPath] = []
    for entry in entries:
        path = Path(entry)
        if path.is_dir():
            sources.append(DirectoryClassPath(path))
        elif path.is_file() and path.suffix.lower() in (".jar", ".zip"):
            sources.append(ArchiveClassPath(path))
        else:
            raise ReadError(f"Class path entry {path} is neither a directory nor an archive")
    return sources[0] if len(sources) == 1 else CompositeClassPath(sources)
