"""
Declass Errors
==============

Exception hierarchy shared by the parsers, the type registry, the source
generator and the batch decompiler.  Every error raised on purpose by
Declass derives from :class:`DeclassError`.
"""

from __future__ import annotations


class DeclassError(Exception):
    """Base class for all Declass errors."""


class ReadError(DeclassError):
    """Class bytes could not be obtained or are not a valid class file."""

    def __init__(self, message: str, *, identifier: str | None = None) -> None:
        super().__init__(message)
        self.identifier = identifier


class ResolutionError(DeclassError):
    """A name could not be resolved to a type of the requested kind."""

    def __init__(self, message: str, *, name: str) -> None:
        super().__init__(message)
        self.name = name


class ConfigurationError(DeclassError, ValueError):
    """Rendering configuration holds an invalid value."""


class DecompilationError(DeclassError):
    """One decompilation unit failed.

    The underlying error is kept as ``__cause__`` and as :attr:`cause`.
    """

    def __init__(self, unit: str, cause: BaseException) -> None:
        super().__init__(f"Decompiling {unit} failed: {cause}")
        self.unit = unit
        self.cause = cause
        self.__cause__ = cause


class TypeStateError(DeclassError, RuntimeError):
    """A type was populated again while its population was in progress."""
