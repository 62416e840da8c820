"""Matchers deciding whether an exclusion applies to a test identifier.

Two variants share a single ``matches(identifier)`` capability:

    ExactName — identifier equals the name
    Pattern   — google-re2 search over the identifier (partial match)

IMPORT RULES:
  - `import re2` ONLY — `import re` is PROHIBITED in this package.
    Exclude patterns come from data files; re2 keeps them linear-time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

import re2  # google-re2. NEVER: import re

from excludes.errors import InvalidPatternError

# Regex literal flags accepted on patterns, mapped to re2 inline flags.
# "m" follows the Ruby literal meaning: dot also matches newline.
PATTERN_FLAGS: dict[str, str] = {
    "i": "i",
    "m": "s",
}


@dataclass(frozen=True)
class ExactName:
    """Matches one test identifier exactly."""

    name: str

    def matches(self, identifier: str) -> bool:
        return identifier == self.name

    def describe(self) -> str:
        return f":{self.name}"


@dataclass(frozen=True)
class Pattern:
    """Matches any identifier the regex finds a match in.

    Fields:
        source: Regex source text, without delimiters.
        flags:  Subset of PATTERN_FLAGS keys ("i", "m").

    The regex is compiled once, at construction.
    Raises InvalidPatternError for unknown flags or an invalid regex.
    """

    source: str
    flags: str = ""
    _compiled: Any = field(init=False, repr=False, compare=False, hash=False)

    def __post_init__(self) -> None:
        unknown = sorted(set(self.flags) - PATTERN_FLAGS.keys())
        if unknown:
            raise InvalidPatternError(self.source, f"unsupported flags {''.join(unknown)!r}")

        inline = "".join(PATTERN_FLAGS[f] for f in sorted(set(self.flags)))
        text = f"(?{inline}){self.source}" if inline else self.source
        try:
            compiled = re2.compile(text)
        except re2.error as exc:
            raise InvalidPatternError(self.source, str(exc)) from exc
        object.__setattr__(self, "_compiled", compiled)

    def matches(self, identifier: str) -> bool:
        return self._compiled.search(identifier) is not None

    def describe(self) -> str:
        return f"/{self.source}/{self.flags}"


Matcher = Union[ExactName, Pattern]
