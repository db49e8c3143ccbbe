"""
Declass Structured Logger
=========================

Provides :class:`DeclassLogger`, a logging facade bound to one tool of the
project.  Records go to a Rich console handler on stderr and, optionally,
to a rotating log file in plain text or JSON lines.

Every record carries the tool name and, while a unit of work is active,
the name of that unit (``operation``), so a batch run can be filtered
down to a single decompiled class after the fact.

References:
    - Python logging HOWTO. https://docs.python.org/3/howto/logging.html
    - Rich logging handler. https://rich.readthedocs.io/en/stable/logging.html
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

_LOG_THEME = Theme(
    {
        "log.level.debug": "dim cyan",
        "log.level.info": "bright_blue",
        "log.level.warning": "yellow",
        "log.level.error": "bold red",
    }
)

_FILE_FORMAT = "%(asctime)s %(levelname)-7s [%(tool_name)s:%(operation)s] %(message)s"


def _level(name: str) -> int:
    return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)


# ---------------------------------------------------------------------------
# Record context and formatting
# ---------------------------------------------------------------------------

class _ContextFilter(logging.Filter):
    """Stamps ``tool_name`` and the thread's current ``operation`` on records."""

    def __init__(self, tool_name: str, local: threading.local) -> None:
        super().__init__()
        self._tool_name = tool_name
        self._local = local

    def filter(self, record: logging.LogRecord) -> bool:
        record.tool_name = self._tool_name
        record.operation = getattr(self._local, "operation", None) or "-"
        return True


class _JSONLinesFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "time": created.isoformat(),
            "level": record.levelname,
            "tool": getattr(record, "tool_name", None),
            "operation": getattr(record, "operation", None),
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


# ---------------------------------------------------------------------------
# DeclassLogger
# ---------------------------------------------------------------------------

class DeclassLogger:
    """Structured logger bound to a tool name.

    The *operation* is kept per thread, so concurrent decompilation
    workers each tag their own records.

    Usage::

        log = DeclassLogger("decompiler", log_file="declass.log", json_logs=True)
        with log.operation("java.util.ArrayList"):
            log.debug("Populating members")

    Args:
        tool_name:       Logger suffix, giving ``declass.<tool_name>``.
        log_level:       Minimum severity name.
        log_file:        Rotating log file path, or ``None`` for no file.
        json_logs:       Write JSON lines to the file instead of plain text.
        console_output:  Attach the Rich stderr handler.
    """

    def __init__(
        self,
        tool_name: str,
        *,
        log_level: str = "INFO",
        log_file: str | Path | None = None,
        json_logs: bool = False,
        console_output: bool = True,
    ) -> None:
        self._tool_name = tool_name
        self._local = threading.local()
        level = _level(log_level)

        self._logger = logging.getLogger(f"declass.{tool_name}")
        self._logger.setLevel(level)
        self._logger.propagate = False
        for handler in list(self._logger.handlers):
            self._logger.removeHandler(handler)
            handler.close()
        self._logger.filters.clear()
        self._logger.addFilter(_ContextFilter(tool_name, self._local))

        if console_output:
            self._logger.addHandler(
                RichHandler(
                    level=level,
                    console=Console(theme=_LOG_THEME, stderr=True),
                    show_path=False,
                    rich_tracebacks=True,
                    markup=False,
                )
            )

        if log_file is not None:
            path = Path(log_file)
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(
                _JSONLinesFormatter() if json_logs else logging.Formatter(_FILE_FORMAT)
            )
            self._logger.addHandler(file_handler)

    # ------------------------------------------------------------------ #
    #  Scopes
    # ------------------------------------------------------------------ #

    @contextmanager
    def operation(self, name: str) -> Iterator[DeclassLogger]:
        """Tag every record this thread logs inside the block with *name*."""
        previous = getattr(self._local, "operation", None)
        self._local.operation = name
        try:
            yield self
        finally:
            self._local.operation = previous

    @contextmanager
    def timed(self, label: str) -> Iterator[None]:
        """Log *label* at DEBUG on entry and with its duration on exit."""
        started = time.perf_counter()
        self._log(logging.DEBUG, "Started: %s", label)
        try:
            yield
        finally:
            self._log(
                logging.INFO, "Completed: %s (%.3f sec)", label, time.perf_counter() - started
            )

    # ------------------------------------------------------------------ #
    #  Log methods
    # ------------------------------------------------------------------ #

    def _log(self, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("stacklevel", 3)
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, *args, **kwargs)
