"""Config loading for test-excludes.

Reads `.excludes/config.yaml` (or `~/.excludes/config.yaml`).
Raises SystemExit on parse errors or missing `version` field.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (if provided — for testing or explicit override)
  2. EXCLUDES_CONFIG environment variable (if set)
  3. `.excludes/config.yaml` (working directory)
  4. `~/.excludes/config.yaml` (home directory)

Environment variable overrides:
  EXCLUDES_DIR       — os.pathsep-separated directories; replaces excludes.dirs
  EXCLUDES_LOG_LEVEL — overrides logging.level
  EXCLUDES_CONFIG    — sets an explicit config file path to try first
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import NoReturn, Optional

import yaml

from excludes.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

# Current supported config version
SUPPORTED_CONFIG_VERSION = 1

# Set of all supported versions — used for validation in load_config()
SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# ─── Validation sets ─────────────────────────────────────────────────────────

VALID_LOG_LEVELS: frozenset[str] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# Default config search paths (EXCLUDES_CONFIG env var prepended at runtime)
DEFAULT_CONFIG_PATHS = [
    ".excludes/config.yaml",
    os.path.expanduser("~/.excludes/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ExcludesConfig:
    """Where excludes files are read from.

    dirs: Excludes directories, loaded in order (earlier wins on overlap).
          Relative paths are resolved against the config file's directory.
    """

    dirs: list[str] = field(default_factory=list)


@dataclass
class LoggingConfig:
    """structlog output configuration."""

    level: str = "WARNING"
    json: bool = False


@dataclass
class Config:
    """Root configuration object populated from .excludes/config.yaml.

    All fields have safe defaults — nothing is excluded without a config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    excludes: ExcludesConfig = field(default_factory=ExcludesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Args:
            raw:  Parsed YAML dict (must already be validated for version field).
            path: Path to the config file; relative excludes dirs resolve against it.

        Raises:
            SystemExit(1): On an invalid logging.level or a non-list excludes.dirs.
        """
        # ── Excludes ──────────────────────────────────────────────────────────
        excludes_raw = raw.get("excludes") or {}
        logging_raw = raw.get("logging") or {}
        for key, section in (("excludes", excludes_raw), ("logging", logging_raw)):
            if not isinstance(section, dict):
                _fail(f"CONFIG ERROR: '{key}' must be a mapping, got {type(section).__name__}.")

        dirs_raw = excludes_raw.get("dirs", [])
        if isinstance(dirs_raw, str):
            dirs_raw = [dirs_raw]
        if not isinstance(dirs_raw, list) or not all(isinstance(d, str) for d in dirs_raw):
            _fail(f"CONFIG ERROR: excludes.dirs must be a list of paths, got {dirs_raw!r}.")
        base = os.path.dirname(path) if path else os.getcwd()
        excludes = ExcludesConfig(dirs=[_resolve(d, base) for d in dirs_raw])

        # ── Logging ───────────────────────────────────────────────────────────
        logging_cfg = LoggingConfig(
            level=_validated_level(str(logging_raw.get("level", "WARNING"))),
            json=bool(logging_raw.get("json", False)),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            excludes=excludes,
            logging=logging_cfg,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate test-excludes configuration.

    Search order:
      1. ``config_path`` argument (if provided)
      2. ``EXCLUDES_CONFIG`` environment variable (if set)
      3. ``.excludes/config.yaml`` (current working directory)
      4. ``~/.excludes/config.yaml`` (home directory)

    If no file is found at any of these paths, returns default Config (not an error).
    If a file is found but invalid, writes error to stderr and raises SystemExit(1).

    Environment overrides are applied afterwards whether or not a file was found.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid ``logging.level`` or ``EXCLUDES_LOG_LEVEL``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("EXCLUDES_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = os.path.abspath(expanded)
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.debug("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.debug("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _fail(f"CONFIG ERROR: Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _fail(
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _fail(
            f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        _fail(
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _fail(
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        excludes_dirs=config.excludes.dirs,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    EXCLUDES_DIR replaces config.excludes.dirs (relative paths resolve against
    the working directory). EXCLUDES_LOG_LEVEL replaces config.logging.level.

    Raises:
        SystemExit(1): If EXCLUDES_LOG_LEVEL is not a valid level name.
    """
    env_dirs = os.environ.get("EXCLUDES_DIR")
    if env_dirs:
        config.excludes.dirs = [
            _resolve(d, os.getcwd()) for d in env_dirs.split(os.pathsep) if d
        ]

    env_level = os.environ.get("EXCLUDES_LOG_LEVEL")
    if env_level:
        config.logging.level = _validated_level(env_level)


def _validated_level(level: str) -> str:
    upper = level.upper()
    if upper not in VALID_LOG_LEVELS:
        _fail(
            f"CONFIG ERROR: Invalid log level: '{level}'. "
            f"Supported values: {sorted(VALID_LOG_LEVELS)}."
        )
    return upper


def _resolve(path: str, base: str) -> str:
    expanded = os.path.expanduser(path)
    return expanded if os.path.isabs(expanded) else os.path.normpath(os.path.join(base, expanded))


def _fail(msg: str) -> NoReturn:
    print(msg, file=sys.stderr)
    raise SystemExit(1)
