"""Ordered severity levels for domain and run outcomes."""

from __future__ import annotations

from enum import Enum
from typing import Iterable


class Severity(Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _RANK[self]

    @property
    def exit_code(self) -> int:
        return _RANK[self]

    @property
    def label(self) -> str:
        return self.name

    def __lt__(self, other: Severity) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: Severity) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: Severity) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: Severity) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def combine(cls, severities: Iterable[Severity]) -> Severity:
        """Worst of *severities*; OK when there are none."""
        return max(severities, default=cls.OK)


_RANK = {Severity.OK: 0, Severity.WARNING: 1, Severity.ERROR: 2}
