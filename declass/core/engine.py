"""
Declass Decompiler Engine
=========================

Batch front end over the registry and the source generator.  Classes are
queued with :meth:`Decompiler.add_class` and rendered by
:meth:`Decompiler.decompile`, sequentially or on a thread pool.

Each queued class is an independent unit:
    1. observers receive ``"Decompiling <name>..."``
    2. the name is resolved through the shared :class:`Registry`
    3. the declaration is rendered into its own buffer
    4. the unit's sink, if any, receives the text

A failing unit is logged, wrapped in :class:`DecompilationError` and
reported in the result; the remaining units still run.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, NamedTuple, Protocol, runtime_checkable

from shared.config import DeclassConfig
from shared.logger import DeclassLogger

from declass.core.classpath import ClassPath, from_entries
from declass.core.configuration import Configuration
from declass.core.errors import ConfigurationError, DecompilationError
from declass.core.generator import SourceCodeGenerator
from declass.core.models import DecompilationResult, UnitFailure, UnitResult
from declass.core.types import AnyType, Registry

# A sink receives (class name, source text) and may return the path it wrote
Sink = Callable[[str, str], "str | None"]


@runtime_checkable
class DecompilerObserver(Protocol):
    """Receives one progress message per unit started."""

    def on_progress(self, message: str) -> None: ...


class _Unit(NamedTuple):
    name: str
    sink: Sink | None


class FileSink:
    """Writes each unit to ``<root>/<package dirs>/<Simple><extension>``."""

    def __init__(self, root: str | Path, extension: str = ".java") -> None:
        self._root = Path(root)
        self._extension = extension

    def path_for(self, name: str) -> Path:
        parts = name.split(".")
        return self._root.joinpath(*parts[:-1], parts[-1] + self._extension)

    def __call__(self, name: str, source: str) -> str:
        path = self.path_for(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
        return str(path)


class Decompiler:
    """Queue of classes to decompile against one registry.

    Usage::

        decompiler = Decompiler(Registry(DirectoryClassPath("build/classes")))
        decompiler.add_class("com.example.Foo")
        result = decompiler.decompile()
        print(result.source_of("com.example.Foo"))
    """

    def __init__(
        self,
        registry: Registry,
        configuration: Configuration | None = None,
        *,
        max_workers: int = 1,
        logger: DeclassLogger | None = None,
    ) -> None:
        if max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {max_workers}")
        self._registry = registry
        self._configuration = configuration or Configuration()
        self._max_workers = max_workers
        self._logger = logger or DeclassLogger("decompiler")
        self._units: list[_Unit] = []
        self._observers: list[DecompilerObserver] = []
        self._observer_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: DeclassConfig,
        configuration: Configuration | None = None,
        *,
        class_path: ClassPath | None = None,
        logger: DeclassLogger | None = None,
    ) -> Decompiler:
        """Build from ``declass.toml`` settings.

        Rendering options come from ``[decompiler.options]`` unless
        *configuration* is given.
        """
        settings = config.decompiler
        logger = logger or DeclassLogger(
            "decompiler",
            log_level=config.global_settings.log_level,
            log_file=config.global_settings.log_file,
            json_logs=config.global_settings.log_json,
        )
        source = class_path or from_entries(settings.class_path)
        return cls(
            Registry(source, logger=logger),
            configuration or Configuration.from_mapping(settings.options),
            max_workers=settings.max_workers,
            logger=logger,
        )

    # ------------------------------------------------------------------ #
    #  Properties
    # ------------------------------------------------------------------ #

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def configuration(self) -> Configuration:
        return self._configuration

    @property
    def class_names(self) -> list[str]:
        return [unit.name for unit in self._units]

    # ------------------------------------------------------------------ #
    #  Queue and observers
    # ------------------------------------------------------------------ #

    def add_class(self, name: str, sink: Sink | None = None) -> None:
        """Queue *name*; *sink* receives its source once rendered."""
        self._units.append(_Unit(name.replace("/", "."), sink))

    def add_observer(self, observer: DecompilerObserver) -> None:
        with self._observer_lock:
            self._observers.append(observer)

    def remove_observer(self, observer: DecompilerObserver) -> None:
        with self._observer_lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def _notify(self, message: str) -> None:
        with self._observer_lock:
            observers = list(self._observers)
        for observer in observers:
            observer.on_progress(message)

    # ------------------------------------------------------------------ #
    #  Main decompilation entry point
    # ------------------------------------------------------------------ #

    def decompile(self) -> DecompilationResult:
        """Render every queued class.

        Returns:
            Successful units and failures, in queue order.

        Raises:
            ConfigurationError: the rendering configuration is invalid.
        """
        generator = SourceCodeGenerator(self._configuration, logger=self._logger)
        units = list(self._units)
        result = DecompilationResult()
        self._logger.info(
            "Decompiling %d class(es) with %d worker(s)", len(units), self._max_workers
        )

        with self._logger.timed(f"batch of {len(units)} class(es)"):
            if self._max_workers > 1 and len(units) > 1:
                with ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="declass"
                ) as pool:
                    outcomes = list(pool.map(lambda unit: self._run_unit(generator, unit), units))
            else:
                outcomes = [self._run_unit(generator, unit) for unit in units]

        for outcome in outcomes:
            if isinstance(outcome, UnitResult):
                result.units.append(outcome)
            else:
                result.failures.append(outcome)
        result.finalize()

        self._logger.info(
            "Decompiled %d of %d class(es), %d failed",
            len(result.units),
            result.total,
            len(result.failures),
        )
        return result

    def _run_unit(self, generator: SourceCodeGenerator, unit: _Unit) -> UnitResult | UnitFailure:
        self._notify(f"Decompiling {unit.name}...")
        with self._logger.operation(unit.name):
            try:
                type_ = self._registry.resolve(unit.name)
                source = generator.generate(type_)
                path = unit.sink(unit.name, source) if unit.sink is not None else None
            except Exception as exc:
                error = exc if isinstance(exc, DecompilationError) else DecompilationError(unit.name, exc)
                self._logger.error("%s", error, exc_info=(type(error), error, error.__traceback__))
                return UnitFailure(
                    name=unit.name,
                    error_type=type(error.cause).__name__,
                    message=str(error.cause),
                )
            self._logger.debug("Rendered %d line(s)", source.count("\n"))
            return UnitResult(name=unit.name, kind=type_.kind, source=source, path=path)

    # ------------------------------------------------------------------ #
    #  Single-unit helpers
    # ------------------------------------------------------------------ #

    def decompile_type(self, type_: AnyType) -> str:
        """Render *type_* directly; errors propagate."""
        return SourceCodeGenerator(self._configuration, logger=self._logger).generate(type_)

    def decompile_name(self, name: str) -> str:
        return self.decompile_type(self._registry.resolve(name))
