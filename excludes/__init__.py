"""test-excludes — test-case exclusion registry.

Public API:
    ExactName, Pattern     — matchers (exact test name / re2 search)
    ExclusionEntry         — (matcher, reason) rule
    ExclusionRegistry      — ordered first-match-wins lookup table
    ExclusionIndex         — per-test-case registries from excludes directories
    parse_declarations     — parse `exclude ...` declaration text
    load_file              — load one excludes file into a frozen registry
    load_directory         — build an ExclusionIndex from a directory
"""
from excludes.errors import ExcludesError, InvalidPatternError, RegistryFrozenError
from excludes.index import ExclusionIndex, load_directories, load_directory
from excludes.loader import load_file, parse_declarations
from excludes.matcher import ExactName, Pattern
from excludes.registry import ExclusionEntry, ExclusionRegistry

__all__ = [
    "ExactName",
    "ExcludesError",
    "ExclusionEntry",
    "ExclusionIndex",
    "ExclusionRegistry",
    "InvalidPatternError",
    "Pattern",
    "RegistryFrozenError",
    "load_directories",
    "load_directory",
    "load_file",
    "parse_declarations",
]
