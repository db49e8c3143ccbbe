"""
Declass Console Output
======================

Rich-powered terminal display for batch decompilation results: a table
of rendered classes, a table of failures and, on request, the rendered
sources as syntax-highlighted listings.

Uses the DeclassConsole abstraction for consistent styling.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from rich.markup import escape

from shared.console import DeclassConsole

from declass.core.models import DecompilationResult, TypeKind, UnitFailure, UnitResult


# ---------------------------------------------------------------------------
# Colour helpers
# ---------------------------------------------------------------------------

_KIND_COLOURS: dict[str, str] = {
    TypeKind.CLASS.value: "bright_cyan",
    TypeKind.INTERFACE.value: "bright_magenta",
    TypeKind.ENUM.value: "bright_yellow",
    TypeKind.ANNOTATION.value: "bright_blue",
}


def _kind_cell(kind: TypeKind) -> str:
    colour = _KIND_COLOURS.get(kind.value, "dim")
    return f"[{colour}]{kind.value}[/{colour}]"


# ---------------------------------------------------------------------------
# DecompilationConsoleOutput
# ---------------------------------------------------------------------------

class DecompilationConsoleOutput:
    """Rich terminal display for a :class:`DecompilationResult`.

    Usage::

        output = DecompilationConsoleOutput()
        output.display(result, show_sources=True)
    """

    def __init__(self, console: DeclassConsole | None = None) -> None:
        self._console: DeclassConsole = console or DeclassConsole()

    def display(self, result: DecompilationResult, *, show_sources: bool = False) -> None:
        """Display units, failures and a summary line.

        Args:
            result:       Outcome of a batch run.
            show_sources: Also print every rendered source listing.
        """
        self._console.section("Decompiled Classes")

        if result.units:
            self.display_units(result.units)
        else:
            self._console.warning("No classes were decompiled.")

        if result.failures:
            self._console.blank()
            self.display_failures(result.failures)

        if show_sources:
            for unit in result.units:
                self.display_source(unit)

        self._console.blank()
        self.display_summary(result)
        self._console.divider()

    def display_units(self, units: list[UnitResult]) -> None:
        rows = [
            (
                escape(unit.name),
                _kind_cell(unit.kind),
                unit.source.count("\n"),
                unit.path or "-",
            )
            for unit in units
        ]
        self._console.table(
            "Rendered",
            [("Class", "bold"), ("Kind", ""), ("Lines", "green"), ("Written To", "dim")],
            rows,
        )

    def display_failures(self, failures: list[UnitFailure]) -> None:
        rows = [(escape(f.name), f.error_type, escape(f.message)) for f in failures]
        self._console.table(
            "Failed",
            [("Class", "bold"), ("Error", "red"), ("Message", "")],
            rows,
        )

    def display_source(self, unit: UnitResult) -> None:
        title = unit.path or unit.name.replace(".", "/") + ".java"
        self._console.source(unit.source, title=title)

    def display_summary(self, result: DecompilationResult) -> None:
        duration = result.duration_seconds
        if duration is not None:
            self._console.info(f"Duration: {duration:.2f}s")
        message = f"{len(result.units)} of {result.total} class(es) decompiled"
        if result.succeeded:
            self._console.success(message)
        else:
            self._console.error(f"{message}, {len(result.failures)} failed")
