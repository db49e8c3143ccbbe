"""
Declass Data Models
===================

Enumerations used across the type graph, and the Pydantic models that
describe the outcome of a batch decompilation run.
"""

from __future__ import annotations

import datetime as _dt
import enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class TypeKind(str, enum.Enum):
    """The seven type variants."""
    PRIMITIVE = "primitive"
    VOID = "void"
    ARRAY = "array"
    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"
    ANNOTATION = "annotation"


class TypeState(str, enum.Enum):
    """Population state of a type shell."""
    CREATED = "created"
    POPULATING = "populating"
    POPULATED = "populated"


class Modifier(str, enum.Enum):
    """Source-level modifier keywords."""
    ABSTRACT = "abstract"
    DEFAULT = "default"
    FINAL = "final"
    NATIVE = "native"
    PRIVATE = "private"
    PROTECTED = "protected"
    PUBLIC = "public"
    STATIC = "static"
    STRICTFP = "strictfp"
    SYNCHRONIZED = "synchronized"
    TRANSIENT = "transient"
    VOLATILE = "volatile"

    @property
    def keyword(self) -> str:
        return self.value

    @staticmethod
    def to_external_form(modifiers: Iterable[Modifier]) -> str:
        """Keywords joined by spaces, with a trailing space when non-empty."""
        text = " ".join(modifier.keyword for modifier in modifiers)
        return f"{text} " if text else ""


# ---------------------------------------------------------------------------
# Batch results
# ---------------------------------------------------------------------------

class UnitResult(BaseModel):
    """Source text produced for one requested class.

    Attributes:
        name:   Fully qualified class name as requested.
        kind:   Variant the name resolved to.
        source: Rendered declaration text.
        path:   File the text was written to, if any.
    """

    model_config = ConfigDict(validate_assignment=True, extra="ignore")

    name: str = Field(..., min_length=1, description="Requested class name")
    kind: TypeKind = Field(..., description="Resolved type variant")
    source: str = Field(default="", description="Rendered source text")
    path: Optional[str] = Field(default=None, description="Output file, if written")


class UnitFailure(BaseModel):
    """A requested class that could not be decompiled."""

    model_config = ConfigDict(validate_assignment=True, extra="ignore")

    name: str = Field(..., min_length=1, description="Requested class name")
    error_type: str = Field(..., description="Class name of the underlying error")
    message: str = Field(default="", description="Error message")


class DecompilationResult(BaseModel):
    """Outcome of :meth:`declass.core.engine.Decompiler.decompile`.

    Units are reported in the order they were added, whether or not
    they ran concurrently.
    """

    model_config = ConfigDict(validate_assignment=True, extra="ignore")

    units: list[UnitResult] = Field(default_factory=list, description="Successful units")
    failures: list[UnitFailure] = Field(default_factory=list, description="Failed units")
    start_time: _dt.datetime = Field(
        default_factory=lambda: _dt.datetime.now(_dt.timezone.utc),
        description="Batch start (UTC)",
    )
    end_time: Optional[_dt.datetime] = Field(default=None, description="Batch end (UTC)")

    @property
    def duration_seconds(self) -> float | None:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    @property
    def succeeded(self) -> bool:
        return not self.failures

    @property
    def total(self) -> int:
        return len(self.units) + len(self.failures)

    def source_of(self, name: str) -> str | None:
        for unit in self.units:
            if unit.name == name:
                return unit.source
        return None

    def finalize(self) -> None:
        """Stamp the end time."""
        self.end_time = _dt.datetime.now(_dt.timezone.utc)
