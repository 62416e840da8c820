"""Root test configuration for test-excludes.

Clears EXCLUDES_* environment variables for every test so a developer's own
config never leaks into the suite. Tests that exercise env overrides set them
with their own monkeypatch calls.
"""

import os

import pytest

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")
EXCLUDES_FIXTURE_DIR = os.path.join(FIXTURES_DIR, "excludes")


@pytest.fixture(autouse=True)
def clear_excludes_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove EXCLUDES_CONFIG / EXCLUDES_DIR / EXCLUDES_LOG_LEVEL for each test."""
    for name in ("EXCLUDES_CONFIG", "EXCLUDES_DIR", "EXCLUDES_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def excludes_fixture_dir() -> str:
    """Directory holding TestThread.rb, the MRI thread excludes list."""
    return EXCLUDES_FIXTURE_DIR
