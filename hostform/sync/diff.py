"""Differencer — compare declared entries with observed items for one domain.

Every declared identifier lands in exactly one of missing, changed or
unchanged. Extras (observed but not declared) are only computed in detailed
mode and are informational unless a prune policy turns them into removals.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from hostform.models.domain import Domain
from hostform.models.severity import Severity
from hostform.models.state import ManifestEntry, ObservedItem


@dataclass(frozen=True)
class Change:
    """A declared entry whose observed counterpart disagrees on a comparable attribute."""

    desired: ManifestEntry
    observed: ObservedItem
    attributes: tuple[str, ...] = ()

    @property
    def identifier(self) -> str:
        return self.desired.identifier

    def describe(self) -> str:
        parts = []
        for name in self.attributes:
            want = self.desired.get(name)
            have = self.observed.get(name, "<unknown>")
            if want is None:
                parts.append(f"{name} is {have}")
            else:
                parts.append(f"{name} {have} != {want}")
        return ", ".join(parts)


@dataclass
class DiffResult:
    """Drift for a single domain."""

    domain: Domain
    missing: list[ManifestEntry] = field(default_factory=list)
    extra: list[ObservedItem] = field(default_factory=list)
    changed: list[Change] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    detailed: bool = False

    @property
    def has_drift(self) -> bool:
        return bool(self.missing or self.changed)

    @property
    def severity(self) -> Severity:
        return Severity.ERROR if self.has_drift else Severity.OK

    def summary(self) -> str:
        text = (
            f"{self.domain.value}: {len(self.missing)} missing, "
            f"{len(self.changed)} changed, {len(self.unchanged)} ok"
        )
        if self.detailed:
            text += f", {len(self.extra)} extra"
        return text


def diff(
    domain: Domain,
    desired: Iterable[ManifestEntry],
    observed: Iterable[ObservedItem],
    detailed: bool = False,
) -> DiffResult:
    """Compute drift between declared and observed state for *domain*.

    Entries and items from other domains are ignored. Desired entries are
    taken as already deduplicated by the parser.
    """
    wanted = {e.identifier: e for e in desired if e.domain == domain}
    found = {i.identifier: i for i in observed if i.domain == domain}

    result = DiffResult(domain=domain, detailed=detailed)

    for identifier in sorted(wanted):
        entry = wanted[identifier]
        item = found.get(identifier)
        if item is None:
            result.missing.append(entry)
            continue

        mismatched = mismatched_attributes(entry, item)
        if mismatched:
            result.changed.append(Change(desired=entry, observed=item, attributes=mismatched))
        else:
            result.unchanged.append(identifier)

    if detailed:
        result.extra = [found[i] for i in sorted(found) if i not in wanted]

    return result


def mismatched_attributes(entry: ManifestEntry, item: ObservedItem) -> tuple[str, ...]:
    """Comparable attributes on which *entry* and *item* disagree.

    An attribute is compared only when the manifest declares it. Observed
    values the domain forbids (a failed service) mismatch regardless.
    """
    spec = entry.domain.spec
    mismatched = []
    for name in spec.comparable:
        want = entry.get(name)
        have = item.get(name)
        if want is not None and have != want:
            mismatched.append(name)
        elif have is not None and have in spec.forbidden.get(name, ()):
            mismatched.append(name)
    return tuple(mismatched)
