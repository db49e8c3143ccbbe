"""
Declass CLI -- Declaration-Level Class Decompiler
=================================================

Click-based command-line interface for Declass.  Resolves each requested
class on the class path, renders its declaration and either prints it or
writes it below an output directory.

Usage::

    # Print the declaration of one class
    declass com.example.Foo -cp build/classes

    # Decompile several classes from a jar into src-out/
    declass com.example.Foo com.example.Bar -cp app.jar -o src-out

    # Sorted, separated member groups with four workers
    declass com.example.Foo -cp app.jar --sort-groups --separate-groups --workers 4

    # Machine-readable result
    declass com.example.Foo -cp app.jar --json

Exit codes:
    0    every class decompiled
    1    usage, configuration or class path error
    2    at least one class failed
    130  interrupted

References:
    - Click documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import sys
from typing import Any

import click
from click.core import ParameterSource

from shared.config import DeclassConfig
from shared.console import DeclassConsole
from shared.logger import DeclassLogger

from declass import __version__
from declass.core.classpath import from_entries
from declass.core.configuration import Configuration
from declass.core.engine import Decompiler, FileSink
from declass.core.errors import ConfigurationError, ReadError
from declass.core.types import Registry
from declass.output.console import DecompilationConsoleOutput

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_PARTIAL: int = 2
EXIT_INTERRUPTED: int = 130


# ---------------------------------------------------------------------------
# Rendering toggles: (flag stem, Configuration field, help)
# ---------------------------------------------------------------------------

_TOGGLES: tuple[tuple[str, str, str], ...] = (
    ("annotate-deprecated", "annotating_deprecated_methods", "Emit @Deprecated."),
    ("annotate-override", "annotating_overridden_methods", "Emit @Override."),
    (
        "discard-interface-abstract",
        "discarding_abstract_interface_method_modifier",
        "Drop 'abstract' from interface methods.",
    ),
    ("discard-extends-object", "discarding_extends_object", "Drop 'extends Object'."),
    (
        "discard-interface-public",
        "discarding_public_interface_method_modifier",
        "Drop 'public' from interface methods.",
    ),
    (
        "discard-packages",
        "discarding_unnecessary_package_names",
        "Strip package qualifiers that are not needed.",
    ),
    ("show-attributes", "displaying_attribute_infos", "Comment attribute names."),
    (
        "show-configuration",
        "displaying_configuration_parameters",
        "Lead with a comment listing the toggles.",
    ),
    ("show-instructions", "displaying_instructions", "Comment bytecode tables in bodies."),
    ("imports", "importing_types", "Emit import lines."),
    ("separate-groups", "separating_groups", "Divide member groups with rules."),
    ("sort-groups", "sorting_groups", "Sort fields, constructors and methods."),
    ("sort-imports", "sorting_imports", "Sort import lines."),
)


def _toggle_options(func: Any) -> Any:
    for stem, dest, help_text in reversed(_TOGGLES):
        func = click.option(
            f"--{stem}/--no-{stem}",
            dest,
            help=help_text,
        )(func)
    return func


class _ProgressObserver:
    """Advances a Rich progress bar once per started class."""

    def __init__(self, bar: Any, task_id: Any) -> None:
        self._bar = bar
        self._task_id = task_id

    def on_progress(self, message: str) -> None:
        self._bar.update(self._task_id, advance=1, description=message)


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------

@click.command("declass")
@click.argument("class_names", nargs=-1, required=True)
@click.option(
    "--class-path", "-cp",
    "class_path",
    multiple=True,
    type=click.Path(exists=True),
    help="Directory, .jar or .zip to load classes from.  Repeatable.",
)
@click.option(
    "--output-dir", "-o",
    "output_dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Write <package>/<Simple>.java files below this directory.",
)
@click.option(
    "--config", "config_path",
    type=click.Path(),
    default=None,
    help="Settings file (default: ./declass.toml if present).",
)
@click.option(
    "--workers", "-w",
    type=int,
    default=None,
    help="Worker threads (default: from settings, else 1).",
)
@click.option(
    "--json", "json_output",
    is_flag=True,
    default=False,
    help="Print the result as JSON to stdout.",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@_toggle_options
def declass_cli(
    class_names: tuple[str, ...],
    class_path: tuple[str, ...],
    output_dir: str | None,
    config_path: str | None,
    workers: int | None,
    json_output: bool,
    verbose: bool,
    **toggles: bool,
) -> None:
    """Declass -- declaration-level Java class decompiler.

    CLASS_NAMES are fully qualified class names such as
    java.util.ArrayList or com/example/Foo.

    Examples:

    \b
        declass com.example.Foo -cp build/classes
        declass com.example.Foo -cp app.jar -o src-out --sort-groups
    """
    console = DeclassConsole(quiet=json_output)

    try:
        config = DeclassConfig.load(config_path)
    except FileNotFoundError as exc:
        console.error(str(exc))
        sys.exit(EXIT_ERROR)
    except Exception as exc:
        console.warning(f"Ignoring unreadable settings: {exc}")
        config = DeclassConfig()

    settings = config.global_settings
    logger = DeclassLogger(
        "cli",
        log_level="DEBUG" if verbose else settings.log_level,
        log_file=settings.log_file,
        json_logs=settings.log_json,
    )

    entries = list(class_path) or config.decompiler.class_path
    if not entries:
        console.error("No class path given: use --class-path or [decompiler] class_path.")
        sys.exit(EXIT_ERROR)

    options = dict(config.decompiler.options)
    # Flags given on the command line override the settings file
    ctx = click.get_current_context()
    options.update({
        name: value
        for name, value in toggles.items()
        if ctx.get_parameter_source(name) in (ParameterSource.COMMANDLINE, ParameterSource.ENVIRONMENT)
    })
    configuration = Configuration.from_mapping(options)
    target = output_dir or settings.output_dir

    try:
        source = from_entries(entries)
    except ReadError as exc:
        console.error(str(exc))
        sys.exit(EXIT_ERROR)

    if not json_output:
        console.banner(__version__)

    try:
        decompiler = Decompiler(
            Registry(source, logger=logger),
            configuration,
            max_workers=workers if workers is not None else config.decompiler.max_workers,
            logger=logger,
        )
        sink = FileSink(target, config.decompiler.file_extension) if target else None
        for name in class_names:
            decompiler.add_class(name, sink)

        with console.progress("Decompiling", total=len(class_names)) as (bar, task_id):
            decompiler.add_observer(_ProgressObserver(bar, task_id))
            result = decompiler.decompile()
    except KeyboardInterrupt:
        console.warning("Decompilation interrupted by user.")
        sys.exit(EXIT_INTERRUPTED)
    except ConfigurationError as exc:
        console.error(f"Invalid configuration: {exc}")
        sys.exit(EXIT_ERROR)
    except Exception as exc:
        console.error(f"Decompilation failed: {exc}")
        if verbose:
            import traceback
            traceback.print_exc()
        sys.exit(EXIT_ERROR)
    finally:
        source.close()

    if json_output:
        click.echo(result.model_dump_json(indent=2))
    else:
        DecompilationConsoleOutput(console=console).display(result, show_sources=target is None)

    sys.exit(EXIT_OK if result.succeeded else EXIT_PARTIAL)


# ---------------------------------------------------------------------------
# Module entry point
# ---------------------------------------------------------------------------

def main() -> None:
    """Entry point for the ``declass`` script and ``python -m declass``."""
    declass_cli()


if __name__ == "__main__":
    main()
