"""Exclusion filter — drop plan steps the user asked to leave alone.

Patterns are matched against ``<domain>.<identifier>`` keys such as
``package-official.vim``. A pattern containing ``*``, ``?`` or ``[`` is a
shell-style glob; anything else must equal the whole key. The manifest prefix
spelling (``package.official.*``) is accepted and rewritten to the domain name.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from hostform.errors import ExclusionPatternInvalid
from hostform.models.domain import DOMAIN_SPECS
from hostform.sync.plan import Plan, PlanStep

logger = logging.getLogger(__name__)

_GLOB_CHARS = set("*?[")


@dataclass(frozen=True)
class ExclusionPattern:
    """A validated exclusion pattern."""

    raw: str
    pattern: str
    is_glob: bool

    def matches(self, key: str) -> bool:
        if self.is_glob:
            return fnmatch.fnmatchcase(key, self.pattern)
        return key == self.pattern


@dataclass
class FilterResult:
    plan: Plan
    removed: int = 0
    removed_steps: list[PlanStep] = field(default_factory=list)


def compile_pattern(raw: str) -> ExclusionPattern:
    """Validate and normalise a single pattern."""
    pattern = raw.strip()
    if not pattern:
        raise ExclusionPatternInvalid(raw, "pattern is empty")

    pattern = _normalise_prefix(pattern)
    is_glob = any(c in _GLOB_CHARS for c in pattern)
    if is_glob:
        _check_brackets(raw, pattern)
    return ExclusionPattern(raw=raw, pattern=pattern, is_glob=is_glob)


def compile_patterns(patterns: Iterable[str]) -> list[ExclusionPattern]:
    return [compile_pattern(p) for p in patterns]


def filter_plan(plan: Plan, patterns: Iterable[str | ExclusionPattern]) -> FilterResult:
    """Remove every step whose key matches any pattern.

    Raises ExclusionPatternInvalid before touching the plan if any pattern is
    malformed.
    """
    compiled = [p if isinstance(p, ExclusionPattern) else compile_pattern(p) for p in patterns]
    if not compiled:
        return FilterResult(plan=plan)

    kept: list[PlanStep] = []
    removed: list[PlanStep] = []
    for step in plan.steps:
        hit = next((p for p in compiled if p.matches(step.key)), None)
        if hit is None:
            kept.append(step)
        else:
            logger.info("Excluded %s (pattern %s)", step.key, hit.raw)
            removed.append(step)

    return FilterResult(plan=Plan(steps=kept), removed=len(removed), removed_steps=removed)


def load_exclusion_file(path: str | Path) -> list[str]:
    """Read patterns from a file: one per line, ``#`` comments and blanks ignored."""
    patterns = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                patterns.append(line)
    return patterns


def _normalise_prefix(pattern: str) -> str:
    for domain, spec in DOMAIN_SPECS.items():
        head = spec.prefix + "."
        if pattern.startswith(head):
            return f"{domain.value}.{pattern[len(head):]}"
    return pattern


def _check_brackets(raw: str, pattern: str) -> None:
    """Reject character classes that are never closed."""
    i = 0
    while i < len(pattern):
        if pattern[i] == "[":
            j = i + 1
            if j < len(pattern) and pattern[j] in "!^":
                j += 1
            if j < len(pattern) and pattern[j] == "]":
                j += 1
            close = pattern.find("]", j)
            if close == -1:
                raise ExclusionPatternInvalid(raw, "unterminated '[' character class")
            i = close + 1
        else:
            i += 1
