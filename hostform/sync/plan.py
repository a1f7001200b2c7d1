"""The ordered steps that bring a host back to its declared state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from hostform.models.domain import Domain
from hostform.sync.diff import DiffResult


class StepAction(Enum):
    INSTALL = "install"
    REMOVE = "remove"
    REPAIR = "repair"
    SKIP = "skip"


@dataclass(frozen=True)
class PlanStep:
    """A single action on a single resource."""

    domain: Domain
    identifier: str
    action: StepAction
    rationale: str = ""
    attributes: tuple[tuple[str, str], ...] = ()  # Declared attributes, for the applier

    @property
    def key(self) -> str:
        return f"{self.domain.value}.{self.identifier}"

    @property
    def verb(self) -> str:
        install, remove, repair = self.domain.spec.verbs
        return {
            StepAction.INSTALL: install,
            StepAction.REMOVE: remove,
            StepAction.REPAIR: repair,
            StepAction.SKIP: "skip",
        }[self.action]

    def describe(self) -> str:
        return f"{self.verb} {self.identifier}"

    def sort_key(self) -> tuple[int, str, str]:
        return (self.domain.order, self.identifier, self.action.value)


@dataclass
class Plan:
    """Steps in execution order: fixed domain order, then identifier."""

    steps: list[PlanStep] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __bool__(self) -> bool:
        return bool(self.steps)

    def for_domain(self, domain: Domain) -> list[PlanStep]:
        return [s for s in self.steps if s.domain == domain]

    def counts(self) -> dict[str, int]:
        counts = {action.value: 0 for action in StepAction}
        for step in self.steps:
            counts[step.action.value] += 1
        return counts

    @classmethod
    def ordered(cls, steps: Iterable[PlanStep]) -> Plan:
        return cls(steps=sorted(steps, key=lambda s: s.sort_key()))


def build_plan(diffs: Iterable[DiffResult], prune: Iterable[Domain] = ()) -> Plan:
    """Turn per-domain drift into an ordered plan.

    Missing entries become installs and changed entries repairs. Extras become
    removals only for domains named in *prune*; otherwise they stay report-only.
    """
    prune = frozenset(prune)
    steps: list[PlanStep] = []

    for result in diffs:
        for entry in result.missing:
            steps.append(
                PlanStep(
                    domain=entry.domain,
                    identifier=entry.identifier,
                    action=StepAction.INSTALL,
                    rationale="declared but not present",
                    attributes=tuple(sorted(entry.attributes.items())),
                )
            )
        for change in result.changed:
            steps.append(
                PlanStep(
                    domain=change.desired.domain,
                    identifier=change.identifier,
                    action=StepAction.REPAIR,
                    rationale=change.describe(),
                    attributes=tuple(sorted(change.desired.attributes.items())),
                )
            )
        if result.domain in prune:
            for item in result.extra:
                steps.append(
                    PlanStep(
                        domain=item.domain,
                        identifier=item.identifier,
                        action=StepAction.REMOVE,
                        rationale="present but not declared (prune policy)",
                    )
                )

    return Plan.ordered(steps)
