"""Exclusion declaration loader.

Reads exclusion declarations from files and turns them into frozen
ExclusionRegistry objects. Two formats, chosen by file extension:

  .rb           exclude DSL, one declaration per line:
                  exclude(/_stack_size$/, 'often too expensive')
                  exclude :test_priority, "unreliably depends on thread scheduling"
  .yaml / .yml  {version: 1, excludes: [{name|pattern: ..., reason: ...}, ...]}
                or a bare list of entries

Malformed declarations are logged as warnings and skipped; they never match.
File-level failures are logged as errors and yield no entries. Never raises.

IMPORT RULES:
  - `import re2` ONLY — `import re` is PROHIBITED in this package.
"""

from __future__ import annotations

import os
from typing import Optional

import re2  # google-re2. NEVER: import re
import yaml

from excludes.errors import InvalidPatternError
from excludes.matcher import ExactName, Matcher, Pattern
from excludes.registry import ExclusionEntry, ExclusionRegistry
from excludes.utils.logger import clear_source, get_logger, set_source

logger = get_logger(__name__)

# ─── Format constants ─────────────────────────────────────────────────────────

DECLARATION_EXTENSIONS: frozenset[str] = frozenset({".rb"})
YAML_EXTENSIONS: frozenset[str] = frozenset({".yaml", ".yml"})
SUPPORTED_EXTENSIONS: frozenset[str] = DECLARATION_EXTENSIONS | YAML_EXTENSIONS

SUPPORTED_EXCLUDES_VERSIONS: frozenset[int] = frozenset({1})

# ─── Declaration grammar ──────────────────────────────────────────────────────

_SINGLE_QUOTED = r"'(?:[^'\\]|\\.)*'"
_DOUBLE_QUOTED = r'"(?:[^"\\]|\\.)*"'
_SYMBOL = r":[A-Za-z_][A-Za-z0-9_]*[?!=]?"
_REGEX_LITERAL = r"/(?:[^/\\]|\\.)*/[A-Za-z]*"

_MATCHER = f"{_SYMBOL}|{_REGEX_LITERAL}|{_SINGLE_QUOTED}|{_DOUBLE_QUOTED}"
_REASON = f"{_SINGLE_QUOTED}|{_DOUBLE_QUOTED}"

_DECLARATION = re2.compile(
    r"^exclude(?:"
    rf"\s*\(\s*(?P<paren_matcher>{_MATCHER})\s*,\s*(?P<paren_reason>{_REASON})\s*\)"
    r"|"
    rf"\s+(?P<bare_matcher>{_MATCHER})\s*,\s*(?P<bare_reason>{_REASON})"
    r")\s*(?:#.*)?$"
)

_SINGLE_QUOTE_ESCAPES = {"'": "'", "\\": "\\"}
_DOUBLE_QUOTE_ESCAPES = {'"': '"', "\\": "\\", "n": "\n", "t": "\t"}


# ─── Declaration parsing ──────────────────────────────────────────────────────


def parse_declarations(text: str, source: str = "<string>") -> list[ExclusionEntry]:
    """Parse exclude DSL text into ExclusionEntry objects (declaration order).

    Blank lines and # comments are ignored. Any other line that is not a
    valid declaration is logged with its line number and skipped.
    """
    entries: list[ExclusionEntry] = []

    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        found = _DECLARATION.search(line)
        if found is None:
            logger.warning(
                "Malformed exclude declaration — skipping",
                line=lineno,
                text=line,
            )
            continue

        matcher_token = found.group("paren_matcher") or found.group("bare_matcher")
        reason_token = found.group("paren_reason") or found.group("bare_reason")
        try:
            matcher = _matcher_from_token(matcher_token)
        except InvalidPatternError as exc:
            logger.warning(
                "Exclude pattern is not a valid google-re2 regex — skipping",
                line=lineno,
                pattern=exc.pattern,
                error=exc.detail,
            )
            continue

        entries.append(
            ExclusionEntry(
                matcher=matcher,
                reason=_unquote(reason_token),
                source=f"{source}:{lineno}",
            )
        )

    return entries


def _matcher_from_token(token: str) -> Matcher:
    if token.startswith(":"):
        return ExactName(token[1:])
    if token.startswith("/"):
        end = token.rindex("/")
        return Pattern(token[1:end].replace("\\/", "/"), flags=token[end + 1:])
    return ExactName(_unquote(token))


def _unquote(token: str) -> str:
    """Strip quotes and decode escapes the way the quote style allows."""
    single = token[0] == "'"
    escapes = _SINGLE_QUOTE_ESCAPES if single else _DOUBLE_QUOTE_ESCAPES
    out: list[str] = []
    chars = iter(token[1:-1])
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            # Single quotes keep unknown escapes verbatim; double quotes drop the backslash
            out.append(escapes.get(nxt, "\\" + nxt if single else nxt))
        else:
            out.append(ch)
    return "".join(out)


# ─── YAML parsing ─────────────────────────────────────────────────────────────


def _parse_excludes_raw(raw: object, source: str = "<yaml>") -> list[ExclusionEntry]:
    """Parse a top-level YAML object into ExclusionEntry objects.

    Handles two YAML structures:
      1. Direct list: [{name: ..., reason: ...}, ...]
      2. Mapping with excludes key: {version: 1, excludes: [...]}
    """
    if raw is None:
        return []

    if isinstance(raw, list):
        return _parse_entries(raw, source)

    if isinstance(raw, dict):
        version = raw.get("version")
        if version is not None and version not in SUPPORTED_EXCLUDES_VERSIONS:
            logger.error(
                "Unsupported excludes file version — ignoring file",
                version=version,
                supported=sorted(SUPPORTED_EXCLUDES_VERSIONS),
            )
            return []
        entries_raw = raw.get("excludes", [])
        if entries_raw is None:
            return []
        if not isinstance(entries_raw, list):
            logger.warning(
                "excludes key is not a list — ignoring",
                actual_type=type(entries_raw).__name__,
            )
            return []
        return _parse_entries(entries_raw, source)

    logger.warning(
        "Excludes YAML root is neither a list nor a mapping — no entries",
        actual_type=type(raw).__name__,
    )
    return []


def _parse_entries(raw_list: list, source: str) -> list[ExclusionEntry]:
    """Parse a list of raw YAML dicts. Skips invalid entries with a WARNING."""
    entries: list[ExclusionEntry] = []

    for i, item in enumerate(raw_list):
        if not isinstance(item, dict):
            logger.warning(
                "Exclude entry is not a mapping — skipping",
                index=i,
                actual_type=type(item).__name__,
            )
            continue

        reason = item.get("reason")
        if not isinstance(reason, str) or not reason:
            logger.warning("Exclude entry missing reason — skipping", index=i, entry=item)
            continue

        name = item.get("name")
        pattern = item.get("pattern")
        if (name is None) == (pattern is None):
            logger.warning(
                "Exclude entry needs exactly one of name or pattern — skipping",
                index=i,
                entry=item,
            )
            continue

        matcher: Matcher
        if name is not None:
            if not isinstance(name, str) or not name:
                logger.warning("Exclude name is not a string — skipping", index=i, name=name)
                continue
            matcher = ExactName(name)
        else:
            flags = item.get("flags", "")
            if not isinstance(pattern, str) or not isinstance(flags, str):
                logger.warning(
                    "Exclude pattern or flags is not a string — skipping",
                    index=i,
                    pattern=pattern,
                )
                continue
            try:
                matcher = Pattern(pattern, flags=flags)
            except InvalidPatternError as exc:
                logger.warning(
                    "Exclude pattern is not a valid google-re2 regex — skipping",
                    index=i,
                    pattern=exc.pattern,
                    error=exc.detail,
                )
                continue

        entries.append(ExclusionEntry(matcher=matcher, reason=reason, source=f"{source}#{i}"))

    return entries


# ─── File loading ─────────────────────────────────────────────────────────────


def parse_file(path: str) -> list[ExclusionEntry]:
    """Read one excludes file and return its entries in declaration order.

    Returns [] if the file does not exist (not an error), cannot be read,
    fails YAML parsing, or has an unsupported extension. Never raises.
    """
    extension = os.path.splitext(path)[1].lower()
    if extension not in SUPPORTED_EXTENSIONS:
        logger.warning(
            "Unsupported excludes file type — ignoring",
            path=path,
            supported=sorted(SUPPORTED_EXTENSIONS),
        )
        return []

    try:
        with open(path, encoding="utf-8") as fh:
            text = fh.read()
    except FileNotFoundError:
        logger.debug("Excludes file not found — no entries", path=path)
        return []
    except (OSError, UnicodeDecodeError) as exc:
        logger.error("Could not read excludes file — no entries", path=path, error=str(exc))
        return []

    source = os.path.basename(path)
    set_source(source)
    try:
        if extension in DECLARATION_EXTENSIONS:
            entries = parse_declarations(text, source=source)
        else:
            try:
                raw = yaml.safe_load(text)
            except yaml.YAMLError as exc:
                logger.error("Excludes YAML parse error — no entries", path=path, error=str(exc))
                return []
            entries = _parse_excludes_raw(raw, source=source)
    finally:
        clear_source()

    logger.debug("Excludes file loaded", path=path, count=len(entries))
    return entries


def load_file(path: str) -> ExclusionRegistry:
    """Load one excludes file into a frozen ExclusionRegistry. Never raises."""
    return ExclusionRegistry(parse_file(path)).freeze()


def case_name_for(path: str) -> Optional[str]:
    """Test case an excludes file applies to (its file stem), or None if unsupported."""
    stem, extension = os.path.splitext(os.path.basename(path))
    if extension.lower() not in SUPPORTED_EXTENSIONS or not stem or stem.startswith("."):
        return None
    return stem
