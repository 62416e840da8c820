"""Exception types for test-excludes.

Lookups never raise. These errors only surface programming mistakes:
building a Pattern from an invalid regex, or registering into a frozen
registry. Declaration files never raise them to callers; the loader logs
and skips bad declarations instead.
"""

__all__ = ["ExcludesError", "InvalidPatternError", "RegistryFrozenError"]


class ExcludesError(Exception):
    """Base class for all test-excludes errors."""


class InvalidPatternError(ExcludesError, ValueError):
    """A matcher pattern is not a valid google-re2 regular expression."""

    def __init__(self, pattern: str, detail: str) -> None:
        super().__init__(f"invalid exclude pattern {pattern!r}: {detail}")
        self.pattern = pattern
        self.detail = detail


class RegistryFrozenError(ExcludesError):
    """register() was called on a registry that is already frozen."""
