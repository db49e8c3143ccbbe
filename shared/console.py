"""
Declass Console Interface
=========================

Rich-powered console used by the command-line front end: banner, section
rules, status lines, a batch progress bar, tables and syntax-highlighted
source listings, all styled from one theme.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

import datetime as _dt
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from rich.console import Console, Group
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

_DECLASS_THEME = Theme(
    {
        "declass.title": "bold bright_cyan",
        "declass.rule": "bright_magenta",
        "declass.ok": "green",
        "declass.warn": "yellow",
        "declass.fail": "bold red",
        "declass.note": "bright_blue",
        "declass.muted": "dim",
    }
)

_BANNER_ART = r"""     _           _
  __| | ___  ___| | __ _ ___ ___
 / _` |/ _ \/ __| |/ _` / __/ __|
| (_| |  __/ (__| | (_| \__ \__ \
 \__,_|\___|\___|_|\__,_|___/___/"""

# (theme style, marker) per status line kind
_STATUS: dict[str, tuple[str, str]] = {
    "success": ("declass.ok", "ok"),
    "warning": ("declass.warn", "warn"),
    "error": ("declass.fail", "fail"),
    "info": ("declass.note", "info"),
}


class DeclassConsole:
    """Presentation helpers over a single :class:`rich.console.Console`.

    Usage::

        con = DeclassConsole()
        con.banner("1.0.0")
        con.section("Decompiled Classes")
        con.source(text, title="java/util/Foo.java")
    """

    def __init__(self, *, quiet: bool = False) -> None:
        self._console = Console(theme=_DECLASS_THEME, quiet=quiet, highlight=False)

    # ------------------------------------------------------------------ #
    #  Banner and sections
    # ------------------------------------------------------------------ #

    def banner(self, version: str) -> None:
        started = _dt.datetime.now().strftime("%Y-%m-%d %H:%M")
        body = Group(
            Text(_BANNER_ART, style="declass.title"),
            Text(f"class-file declaration decompiler  v{version}  {started}", style="declass.muted"),
        )
        self._console.print(Panel.fit(body, border_style="declass.title"))

    def section(self, title: str) -> None:
        self._console.rule(title, style="declass.rule")

    # ------------------------------------------------------------------ #
    #  Status lines
    # ------------------------------------------------------------------ #

    def _status(self, kind: str, message: str) -> None:
        style, marker = _STATUS[kind]
        line = Text.assemble((f"[{marker}] ", style), message)
        self._console.print(line)

    def success(self, message: str) -> None:
        self._status("success", message)

    def warning(self, message: str) -> None:
        self._status("warning", message)

    def error(self, message: str) -> None:
        self._status("error", message)

    def info(self, message: str) -> None:
        self._status("info", message)

    # ------------------------------------------------------------------ #
    #  Progress
    # ------------------------------------------------------------------ #

    @contextmanager
    def progress(self, description: str, total: int) -> Iterator[tuple[Progress, Any]]:
        """Yield ``(bar, task_id)``; the bar is filled on exit.

        Example::

            with con.progress("Decompiling", total=len(names)) as (bar, task):
                for name in names:
                    bar.update(task, advance=1, description=name)
        """
        bar = Progress(
            TextColumn("{task.description}", style="declass.note"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self._console,
        )
        with bar:
            task_id = bar.add_task(description, total=total)
            yield bar, task_id
            bar.update(task_id, completed=total)

    # ------------------------------------------------------------------ #
    #  Tables and listings
    # ------------------------------------------------------------------ #

    def table(
        self,
        title: str,
        columns: Sequence[tuple[str, str]],
        rows: Sequence[Sequence[Any]],
    ) -> None:
        """Render *rows* under ``(header, style)`` *columns*; cells are stringified."""
        tbl = Table(title=title, title_justify="left", header_style="declass.title")
        for header, style in columns:
            tbl.add_column(header, style=style)
        for row in rows:
            tbl.add_row(*map(str, row))
        self._console.print(tbl)

    def source(self, text: str, *, title: str) -> None:
        """Print a syntax-highlighted Java listing inside a panel."""
        syntax = Syntax(text, "java", theme="ansi_dark", tab_size=4)
        self._console.print(Panel(syntax, title=title, title_align="left", border_style="declass.muted"))

    def blank(self) -> None:
        self._console.print()

    def divider(self) -> None:
        self._console.rule(style="declass.muted")
