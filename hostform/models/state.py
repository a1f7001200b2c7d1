"""Declared and observed state records.

A ManifestEntry is what the manifest says should exist; an ObservedItem is what
a state observer found on the host. Both carry a domain, an identifier unique
within that domain, and a flat attribute mapping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from hostform.models.domain import DOMAIN_ORDER, STATE, Domain


class _StateRecord:
    """Shared behaviour for entries and observed items."""

    domain: Domain
    identifier: str
    attributes: dict[str, str]

    @property
    def key(self) -> str:
        """Composite key used by exclusion patterns, e.g. ``package-official.vim``."""
        return f"{self.domain.value}.{self.identifier}"

    @property
    def state(self) -> str:
        return self.attributes.get(STATE, "")

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.attributes.get(name, default)

    def sort_key(self) -> tuple[int, str]:
        return (self.domain.order, self.identifier)

    def __hash__(self) -> int:
        return hash((self.domain, self.identifier, tuple(sorted(self.attributes.items()))))


@dataclass(frozen=True, eq=True)
class ManifestEntry(_StateRecord):
    """A single declared resource."""

    domain: Domain
    identifier: str
    attributes: dict[str, str] = field(default_factory=dict)

    __hash__ = _StateRecord.__hash__


@dataclass(frozen=True, eq=True)
class ObservedItem(_StateRecord):
    """A single resource as currently found on the host."""

    domain: Domain
    identifier: str
    attributes: dict[str, str] = field(default_factory=dict)

    __hash__ = _StateRecord.__hash__


@dataclass(frozen=True)
class ParseWarning:
    """Something the parser tolerated but the user should know about."""

    kind: str  # duplicate | unrecognized | malformed
    message: str
    line_no: int = 0
    source: str = ""

    def __str__(self) -> str:
        where = f"{self.source or '<manifest>'}:{self.line_no}" if self.line_no else ""
        return f"{where}: [{self.kind}] {self.message}" if where else f"[{self.kind}] {self.message}"


@dataclass(frozen=True)
class Manifest:
    """The deduplicated declared state for one run.

    Entries are kept sorted by domain order then identifier, so two manifests
    holding the same set of entries compare equal.
    """

    entries: tuple[ManifestEntry, ...] = ()
    prune: frozenset[Domain] = frozenset()

    @classmethod
    def build(
        cls, entries: Iterable[ManifestEntry], prune: Iterable[Domain] = ()
    ) -> Manifest:
        return cls(
            entries=tuple(sorted(entries, key=lambda e: e.sort_key())),
            prune=frozenset(prune),
        )

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def for_domain(self, domain: Domain) -> list[ManifestEntry]:
        return [e for e in self.entries if e.domain == domain]

    def get(self, domain: Domain, identifier: str) -> ManifestEntry | None:
        for entry in self.entries:
            if entry.domain == domain and entry.identifier == identifier:
                return entry
        return None

    @property
    def domains(self) -> list[Domain]:
        """Domains with at least one declaration, in execution order."""
        present = {e.domain for e in self.entries}
        return [d for d in DOMAIN_ORDER if d in present]
