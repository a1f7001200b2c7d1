"""Reconcile report model and the single place severity is decided.

Every renderer reads ``DomainOutcome.status`` and
``ReconcileReport.overall_status``; none of them computes severity on its own,
so text, JSON and HTML always agree for the same run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from hostform.models.domain import Domain, Mode
from hostform.models.severity import Severity
from hostform.sync.diff import DiffResult
from hostform.sync.executor import StepOutcome, StepStatus
from hostform.sync.plan import PlanStep


class ReportKind(Enum):
    CHECK = "check"  # Diff only
    PLAN = "plan"  # Diff, planned and filtered, not executed
    EXECUTE = "execute"  # Plan executed (dry-run or apply)


@dataclass
class DomainOutcome:
    """Everything a run learned about one domain."""

    domain: Domain
    kind: ReportKind = ReportKind.CHECK
    diff: DiffResult | None = None
    error: str = ""  # Set when the domain could not be observed
    planned: list[PlanStep] = field(default_factory=list)
    results: list[StepOutcome] = field(default_factory=list)
    excluded: list[PlanStep] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return not self.error

    @property
    def pending(self) -> list[PlanStep]:
        """Steps that still need to happen for this domain to converge."""
        if self.kind == ReportKind.PLAN:
            return list(self.planned)
        if self.kind == ReportKind.EXECUTE:
            return [r.step for r in self.results if r.status == StepStatus.WOULD_APPLY]
        return []

    def results_with(self, status: StepStatus) -> list[StepOutcome]:
        return [r for r in self.results if r.status == status]

    @property
    def status(self) -> Severity:
        if self.error:
            return Severity.WARNING
        if self.kind == ReportKind.CHECK:
            return self.diff.severity if self.diff else Severity.OK
        if self.results_with(StepStatus.FAILED) or self.pending:
            return Severity.ERROR
        if self.results_with(StepStatus.SKIPPED) or self.excluded:
            return Severity.WARNING
        return Severity.OK

    def to_dict(self) -> dict[str, Any]:
        diff = self.diff
        data: dict[str, Any] = {
            "status": self.status.value,
            "available": self.available,
            "error": self.error,
            "missing": [e.identifier for e in diff.missing] if diff else [],
            "extra": [i.identifier for i in diff.extra] if diff else [],
            "changed": [c.identifier for c in diff.changed] if diff else [],
            "changed_detail": {c.identifier: c.describe() for c in diff.changed} if diff else {},
            "unchanged": len(diff.unchanged) if diff else 0,
            "steps": [],
            "excluded": [s.identifier for s in self.excluded],
        }
        if self.kind == ReportKind.PLAN:
            data["steps"] = [_step_dict(s) for s in self.planned]
        elif self.kind == ReportKind.EXECUTE:
            data["steps"] = [
                {**_step_dict(r.step), "status": r.status.value, "reason": r.reason}
                for r in self.results
            ]
        return data


@dataclass
class ReconcileReport:
    """Outcome of one reconciliation run across domains."""

    kind: ReportKind
    mode: Mode
    generated: str
    hostname: str
    domains: list[DomainOutcome] = field(default_factory=list)
    dry_run: bool = False
    detailed: bool = False
    warnings: list[str] = field(default_factory=list)
    total_duration_ms: int = 0

    @property
    def overall_status(self) -> Severity:
        return Severity.combine(d.status for d in self.domains)

    @property
    def exit_code(self) -> int:
        return self.overall_status.exit_code

    @property
    def excluded(self) -> int:
        return sum(len(d.excluded) for d in self.domains)

    def domain(self, domain: Domain) -> DomainOutcome | None:
        return next((d for d in self.domains if d.domain == domain), None)

    def summary(self) -> str:
        counts = {s: 0 for s in Severity}
        for outcome in self.domains:
            counts[outcome.status] += 1
        return (
            f"Status: {self.overall_status.label} "
            f"({counts[Severity.OK]} ok, {counts[Severity.WARNING]} warning, "
            f"{counts[Severity.ERROR]} error)"
        )

    def to_dict(self) -> dict[str, Any]:
        """Canonical field layout shared by every report format."""
        return {
            "generated": self.generated,
            "hostname": self.hostname,
            "kind": self.kind.value,
            "mode": self.mode.value,
            "dry_run": self.dry_run,
            "detailed": self.detailed,
            "domains": {d.domain.value: d.to_dict() for d in self.domains},
            "excluded": self.excluded,
            "warnings": list(self.warnings),
            "overall_status": self.overall_status.value,
            "exit_code": self.exit_code,
        }


def _step_dict(step: PlanStep) -> dict[str, Any]:
    return {
        "action": step.action.value,
        "identifier": step.identifier,
        "description": step.describe(),
        "rationale": step.rationale,
    }
