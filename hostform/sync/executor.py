"""Executor — run a plan one step at a time, in plan order.

Dry runs never touch the applier. Real runs hand each step to the applier and
carry on after a failure: one broken step must not stop unrelated domains from
converging. Nothing is retried; re-running reconciliation on a converged host
produces an empty plan.
"""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

from hostform.errors import ApplierFailure
from hostform.models.domain import Domain
from hostform.sync.plan import Plan, PlanStep

logger = logging.getLogger(__name__)


class ExecutionMode(Enum):
    DRY_RUN = "dry-run"
    APPLY = "apply"


class StepStatus(Enum):
    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"
    WOULD_APPLY = "would-apply"


@dataclass(frozen=True)
class StepResult:
    """What an applier reports for one step."""

    status: StepStatus
    reason: str = ""

    @classmethod
    def applied(cls, reason: str = "") -> StepResult:
        return cls(StepStatus.APPLIED, reason)

    @classmethod
    def failed(cls, reason: str) -> StepResult:
        return cls(StepStatus.FAILED, reason)

    @classmethod
    def skipped(cls, reason: str) -> StepResult:
        return cls(StepStatus.SKIPPED, reason)


@runtime_checkable
class Applier(Protocol):
    """Performs the real-world effect of a plan step.

    Implementations must honour ``timeout`` (seconds) where they block, raising
    TimeoutError (or subprocess.TimeoutExpired) when it elapses.
    """

    def apply(self, step: PlanStep, timeout: float | None = None) -> StepResult:
        ...


@dataclass
class StepOutcome:
    step: PlanStep
    status: StepStatus
    reason: str = ""
    duration_ms: int = 0

    def describe(self) -> str:
        if self.status == StepStatus.WOULD_APPLY:
            return f"would {self.step.describe()}"
        text = f"{self.status.value}: {self.step.describe()}"
        return f"{text} ({self.reason})" if self.reason else text


@dataclass
class ExecutionReport:
    """Per-step outcomes of one execution, in plan order."""

    mode: ExecutionMode
    outcomes: list[StepOutcome] = field(default_factory=list)
    total_duration_ms: int = 0

    @property
    def dry_run(self) -> bool:
        return self.mode == ExecutionMode.DRY_RUN

    def for_domain(self, domain: Domain) -> list[StepOutcome]:
        return [o for o in self.outcomes if o.step.domain == domain]

    def with_status(self, status: StepStatus) -> list[StepOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def failed(self) -> list[StepOutcome]:
        return self.with_status(StepStatus.FAILED)

    @property
    def all_applied(self) -> bool:
        return all(o.status == StepStatus.APPLIED for o in self.outcomes)

    def summary(self) -> str:
        if self.dry_run:
            return f"[DRY RUN] {len(self.outcomes)} step(s) would be applied"
        applied = len(self.with_status(StepStatus.APPLIED))
        failed = len(self.failed)
        skipped = len(self.with_status(StepStatus.SKIPPED))
        return f"{applied} applied, {failed} failed, {skipped} skipped"


def execute(
    plan: Plan,
    mode: ExecutionMode | str = ExecutionMode.DRY_RUN,
    applier: Applier | None = None,
    timeout: float | None = None,
) -> ExecutionReport:
    """Execute *plan* sequentially.

    Args:
        plan: Steps in execution order.
        mode: DRY_RUN records every step as would-apply; APPLY dispatches to *applier*.
        applier: Required for APPLY.
        timeout: Per-step timeout passed to the applier; a timeout is a failure.
    """
    mode = ExecutionMode(mode)
    if mode == ExecutionMode.APPLY and applier is None:
        raise ValueError("An applier is required to apply a plan")

    report = ExecutionReport(mode=mode)
    start = time.monotonic()

    for step in plan.steps:
        if mode == ExecutionMode.DRY_RUN:
            logger.info("[DRY RUN] would %s", step.describe())
            report.outcomes.append(StepOutcome(step=step, status=StepStatus.WOULD_APPLY))
            continue
        report.outcomes.append(_run_step(applier, step, timeout))

    report.total_duration_ms = int((time.monotonic() - start) * 1000)
    return report


def _run_step(applier: Applier, step: PlanStep, timeout: float | None) -> StepOutcome:
    start = time.monotonic()
    try:
        result = applier.apply(step, timeout=timeout)
    except (TimeoutError, subprocess.TimeoutExpired):
        result = StepResult.failed(f"timed out after {timeout}s")
    except ApplierFailure as e:
        result = StepResult.failed(str(e))
    except Exception as e:
        logger.exception("Applier raised while applying %s", step.key)
        result = StepResult.failed(f"{type(e).__name__}: {e}")

    if not isinstance(result, StepResult):
        result = StepResult.failed(f"applier returned {type(result).__name__}, not StepResult")
    if result.status == StepStatus.WOULD_APPLY:
        result = StepResult.failed("applier returned would-apply during a real run")

    outcome = StepOutcome(
        step=step,
        status=result.status,
        reason=result.reason,
        duration_ms=int((time.monotonic() - start) * 1000),
    )
    if outcome.status == StepStatus.FAILED:
        logger.error("Failed to %s: %s", step.describe(), outcome.reason)
    else:
        logger.info("%s", outcome.describe())
    return outcome
