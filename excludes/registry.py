"""Exclusion registry — ordered (matcher, reason) lookup table.

A registry is built once (constructor entries, then register() calls),
frozen, and then only queried. Lookup is first-match-wins in registration
order: the reason of the earliest entry whose matcher matches is returned.

Thread-safety:
    Frozen registries are immutable (tuple of entries plus an exact-name
    position index) and need no locks. register() is for single-threaded
    construction only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from excludes.errors import RegistryFrozenError
from excludes.matcher import ExactName, Matcher, Pattern
from excludes.utils.logger import get_logger

logger = get_logger(__name__)


# ─── ExclusionEntry dataclass ─────────────────────────────────────────────────


@dataclass(frozen=True)
class ExclusionEntry:
    """A single exclusion rule.

    Fields:
        matcher: ExactName or Pattern.
        reason:  Human-readable reason the test is skipped.
        source:  Optional "file:line" the entry was declared at (diagnostics only).
    """

    matcher: Matcher
    reason: str
    source: Optional[str] = field(default=None, compare=False)

    def matches(self, identifier: str) -> bool:
        return self.matcher.matches(identifier)


# ─── ExclusionRegistry ────────────────────────────────────────────────────────


class ExclusionRegistry:
    """Ordered exclusion lookup table.

    Usage:
        registry = ExclusionRegistry()
        registry.register(Pattern("_stack_size$"), "often too expensive")
        registry.register(ExactName("test_priority"), "depends on scheduling")
        registry.freeze()
        registry.is_excluded("test_priority")   # -> "depends on scheduling"

    Duplicate exact names are accepted; the first-registered entry keeps
    winning and a warning is logged for the later one.
    """

    def __init__(self, entries: Iterable[ExclusionEntry] = ()) -> None:
        self._pending: list[ExclusionEntry] = []
        self._entries: tuple[ExclusionEntry, ...] = ()
        self._exact_positions: dict[str, int] = {}
        self._patterns: tuple[tuple[int, ExclusionEntry], ...] = ()
        self._frozen = False
        for entry in entries:
            self._append(entry)

    # ── Construction ──────────────────────────────────────────────────────────

    def register(self, matcher: Matcher, reason: str, source: Optional[str] = None) -> ExclusionEntry:
        """Append an exclusion. No check that the named test exists.

        Raises:
            RegistryFrozenError: If freeze() has already been called.
        """
        entry = ExclusionEntry(matcher=matcher, reason=reason, source=source)
        self._append(entry)
        return entry

    def _append(self, entry: ExclusionEntry) -> None:
        if self._frozen:
            raise RegistryFrozenError("cannot register into a frozen exclusion registry")
        if isinstance(entry.matcher, ExactName):
            if entry.matcher.name in self._exact_positions:
                logger.warning(
                    "Duplicate exact exclude — earlier entry wins",
                    name=entry.matcher.name,
                    ignored_reason=entry.reason,
                    declared_at=entry.source,
                )
            else:
                self._exact_positions[entry.matcher.name] = len(self._pending)
        self._pending.append(entry)

    def freeze(self) -> "ExclusionRegistry":
        """Make the registry read-only. Idempotent."""
        if not self._frozen:
            self._entries = tuple(self._pending)
            self._patterns = tuple(
                (position, entry)
                for position, entry in enumerate(self._entries)
                if isinstance(entry.matcher, Pattern)
            )
            self._pending = []
            self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ── Queries ───────────────────────────────────────────────────────────────

    def match(self, identifier: str) -> Optional[ExclusionEntry]:
        """Return the first entry (registration order) matching identifier, else None."""
        if not self._frozen:
            for entry in tuple(self._pending):
                if entry.matches(identifier):
                    return entry
            return None

        exact_position = self._exact_positions.get(identifier)
        # Only patterns registered before the exact entry can win over it.
        for position, entry in self._patterns:
            if exact_position is not None and position > exact_position:
                break
            if entry.matches(identifier):
                return entry
        if exact_position is not None:
            return self._entries[exact_position]
        return None

    def is_excluded(self, identifier: str) -> Optional[str]:
        """Return the exclusion reason for identifier, or None if not excluded."""
        entry = self.match(identifier)
        return entry.reason if entry is not None else None

    def __contains__(self, identifier: object) -> bool:
        return isinstance(identifier, str) and self.match(identifier) is not None

    def __iter__(self) -> Iterator[ExclusionEntry]:
        return iter(self._entries if self._frozen else tuple(self._pending))

    def __len__(self) -> int:
        return len(self._entries) if self._frozen else len(self._pending)

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"<ExclusionRegistry {state} entries={len(self)}>"
