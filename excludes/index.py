"""Per-test-case exclusion index built from excludes directories.

An excludes directory holds one file per test case, named after it:

    excludes/
        TestThread.rb
        TestMutex.yaml

Each file becomes the frozen ExclusionRegistry for that test case. When the
same test case is defined more than once (several directories, or .rb and
.yaml side by side) the entries are concatenated in load order, so the
earlier definition wins overlapping matches.
"""

from __future__ import annotations

import os
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional

from excludes.loader import case_name_for, parse_file
from excludes.registry import ExclusionEntry, ExclusionRegistry
from excludes.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)

_EMPTY_REGISTRY = ExclusionRegistry().freeze()


class ExclusionIndex:
    """Read-only mapping of test case name -> frozen ExclusionRegistry."""

    def __init__(self, registries: Optional[Mapping[str, ExclusionRegistry]] = None) -> None:
        frozen = {case: registry.freeze() for case, registry in (registries or {}).items()}
        self._registries: Mapping[str, ExclusionRegistry] = MappingProxyType(frozen)

    def registry_for(self, test_case: str) -> ExclusionRegistry:
        """Registry for test_case; an empty frozen registry if none was loaded."""
        return self._registries.get(test_case, _EMPTY_REGISTRY)

    def match(self, test_case: str, test_name: str) -> Optional[ExclusionEntry]:
        return self.registry_for(test_case).match(test_name)

    def is_excluded(self, test_case: str, test_name: str) -> Optional[str]:
        """Reason test_case#test_name is excluded, or None."""
        return self.registry_for(test_case).is_excluded(test_name)

    @property
    def test_cases(self) -> list[str]:
        return sorted(self._registries)

    @property
    def entry_count(self) -> int:
        return sum(len(registry) for registry in self._registries.values())

    def __contains__(self, test_case: object) -> bool:
        return test_case in self._registries

    def __iter__(self) -> Iterator[str]:
        return iter(self.test_cases)

    def __len__(self) -> int:
        return len(self._registries)

    def __repr__(self) -> str:
        return f"<ExclusionIndex test_cases={len(self)} entries={self.entry_count}>"


def load_directories(paths: Iterable[str]) -> ExclusionIndex:
    """Build an ExclusionIndex from excludes directories, in the given order.

    Missing directories are logged and contribute nothing. Never raises.
    """
    collected: dict[str, list[ExclusionEntry]] = {}

    for path in paths:
        directory = os.path.expanduser(path)
        if not os.path.isdir(directory):
            logger.warning("Excludes directory not found — skipping", path=directory)
            continue

        with PerformanceLogger("Excludes directory load", logger, path=directory):
            try:
                names = sorted(os.listdir(directory))
            except OSError as exc:
                logger.error("Could not list excludes directory — skipping", path=directory, error=str(exc))
                continue

            for name in names:
                file_path = os.path.join(directory, name)
                test_case = case_name_for(file_path)
                if test_case is None or not os.path.isfile(file_path):
                    continue
                collected.setdefault(test_case, []).extend(parse_file(file_path))

    return ExclusionIndex(
        {case: ExclusionRegistry(entries) for case, entries in collected.items()}
    )


def load_directory(path: str) -> ExclusionIndex:
    """Build an ExclusionIndex from a single excludes directory."""
    return load_directories([path])
