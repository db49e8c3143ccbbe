"""
Declass Settings
================

Settings for the command-line front end and the batch decompiler,
persisted as TOML and loaded into dataclass sections.

Example ``declass.toml``::

    [global]
    log_level = "DEBUG"
    log_file = "logs/declass.log"
    log_json = true
    output_dir = "src-decompiled"

    [decompiler]
    class_path = ["build/classes", "lib/commons-lang3.jar"]
    max_workers = 4

    [decompiler.options]
    sorting_groups = true
    separating_groups = true

References:
    - TOML v1.0.0 Specification. https://toml.io/en/v1.0.0
"""

from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Looked up in the working directory when no explicit path is given
# ---------------------------------------------------------------------------
_DEFAULT_CONFIG_PATH: Path = Path("declass.toml")


# =========================== Sections ======================================


@dataclass(frozen=False, slots=True)
class GlobalConfig:
    """Logging and output settings shared by every Declass entry point."""

    log_level: str = "INFO"
    log_file: str | None = None
    log_json: bool = False
    output_dir: str | None = None


@dataclass(frozen=False, slots=True)
class DecompilerConfig:
    """Batch decompiler settings.

    ``options`` holds rendering toggles by name; they are turned into a
    :class:`declass.core.configuration.Configuration` by the caller.
    """

    class_path: list[str] = field(default_factory=list)
    max_workers: int = 1
    file_extension: str = ".java"
    options: dict[str, Any] = field(default_factory=dict)


# =========================== Master Config =================================


@dataclass(frozen=False, slots=True)
class DeclassConfig:
    """Root of the settings tree.

    Usage:
        >>> config = DeclassConfig.load()                 # ./declass.toml if present
        >>> config = DeclassConfig.load("ci.toml")        # explicit path must exist
        >>> config.decompiler.max_workers
        1
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    decompiler: DecompilerConfig = field(default_factory=DecompilerConfig)

    # ------------------------------------------------------------------ #
    #  TOML loading
    # ------------------------------------------------------------------ #

    @classmethod
    def load(cls, path: str | Path | None = None) -> DeclassConfig:
        """Load settings from a TOML file.

        Without *path*, ``declass.toml`` in the working directory is used
        when it exists and defaults are returned otherwise.  Keys a
        section does not declare are ignored.

        Raises:
            FileNotFoundError: *path* was given and does not exist.
            tomllib.TOMLDecodeError: The file is not valid TOML.
        """
        config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH

        if not config_path.exists():
            if path is not None:
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return cls()

        with open(config_path, "rb") as fh:
            raw: dict[str, Any] = tomllib.load(fh)

        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> DeclassConfig:
        """Build the tree from an already-parsed TOML document."""
        return cls(
            global_settings=cls._build_section(GlobalConfig, raw.get("global", {})),
            decompiler=cls._build_section(DecompilerConfig, raw.get("decompiler", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @staticmethod
    def _build_section(section: type, data: dict[str, Any]) -> Any:
        valid = {f.name for f in fields(section)}
        return section(**{k: v for k, v in data.items() if k in valid})


# ========================= Module-level convenience ========================


def get_config(path: str | Path | None = None) -> DeclassConfig:
    """Load once and cache; an explicit *path* always reloads."""
    if not hasattr(get_config, "_cached") or path is not None:
        get_config._cached = DeclassConfig.load(path)  # type: ignore[attr-defined]
    return get_config._cached  # type: ignore[attr-defined]
