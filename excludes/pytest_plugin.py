"""pytest plugin — skips tests listed in excludes directories.

Registered through the ``pytest11`` entry point. Each collected item is
looked up with:

    test case  = the item's class name, or its module name for plain functions
    identifier = item.name, then item.originalname (parametrized tests)

An excluded item gets ``pytest.mark.skip(reason=<exclude reason>)``.

Excludes directories, first non-empty source wins:
  1. ``--excludes-dir PATH`` (repeatable, relative to the invocation dir)
  2. ``excludes_dir`` ini option (relative to the ini file)
  3. ``excludes.dirs`` from the config file / EXCLUDES_DIR

With no directories configured the plugin does nothing.
"""

from __future__ import annotations

import os
from typing import Optional

import pytest
import structlog

from excludes.config import Config, load_config
from excludes.index import ExclusionIndex, load_directories
from excludes.registry import ExclusionEntry
from excludes.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)

index_key = pytest.StashKey[ExclusionIndex]()
config_path_key = pytest.StashKey[Optional[str]]()


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("excludes", "test exclusion lists")
    group.addoption(
        "--excludes-dir",
        action="append",
        default=[],
        dest="excludes_dirs",
        metavar="PATH",
        help="Directory of per-test-case excludes files. May be repeated; earlier wins.",
    )
    group.addoption(
        "--no-excludes",
        action="store_true",
        default=False,
        dest="no_excludes",
        help="Ignore all excludes and run every collected test.",
    )
    parser.addini(
        "excludes_dir",
        type="paths",
        default=[],
        help="Directories of per-test-case excludes files.",
    )


def pytest_configure(config: pytest.Config) -> None:
    if config.getoption("no_excludes"):
        config.stash[index_key] = ExclusionIndex()
        return

    try:
        settings = load_config()
    except SystemExit as exc:
        raise pytest.UsageError("invalid test-excludes config file (see message above)") from exc
    dirs = _excludes_dirs(config, settings)
    if not dirs:
        config.stash[index_key] = ExclusionIndex()
        return

    # The host project owns structlog once it has configured it
    if not structlog.is_configured():
        configure_logging(settings.logging.level, settings.logging.json)
    config.stash[index_key] = load_directories(dirs)
    config.stash[config_path_key] = settings.path


def pytest_report_header(config: pytest.Config) -> Optional[str]:
    index = config.stash.get(index_key, None)
    if not index:
        return None
    header = f"excludes: {index.entry_count} entries for {len(index)} test cases"
    config_path = config.stash.get(config_path_key, None)
    if config_path:
        header += f" (config: {config_path})"
    return header


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    index = config.stash.get(index_key, None)
    if not index:
        return

    for item in items:
        entry = match_item(index, item)
        if entry is None:
            continue
        item.add_marker(pytest.mark.skip(reason=entry.reason))
        logger.info(
            "Test excluded",
            nodeid=item.nodeid,
            matcher=entry.matcher.describe(),
            reason=entry.reason,
            declared_at=entry.source,
        )


def match_item(index: ExclusionIndex, item: pytest.Item) -> Optional[ExclusionEntry]:
    """First exclusion matching a collected item, or None."""
    test_case = _test_case_for(item)
    if test_case is None:
        return None

    names = [item.name]
    original = getattr(item, "originalname", None)
    if original and original != item.name:
        names.append(original)

    for name in names:
        entry = index.match(test_case, name)
        if entry is not None:
            return entry
    return None


def _test_case_for(item: pytest.Item) -> Optional[str]:
    cls = getattr(item, "cls", None)
    if cls is not None:
        return cls.__name__
    module = getattr(item, "module", None)
    if module is not None:
        return module.__name__.rsplit(".", 1)[-1]
    return None


def _excludes_dirs(config: pytest.Config, settings: Config) -> list[str]:
    cli_dirs = config.getoption("excludes_dirs")
    if cli_dirs:
        base = str(config.invocation_params.dir)
        return [os.path.join(base, os.path.expanduser(d)) for d in cli_dirs]

    ini_dirs = config.getini("excludes_dir")
    if ini_dirs:
        return [str(d) for d in ini_dirs]

    return list(settings.excludes.dirs)
