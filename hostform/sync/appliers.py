"""Appliers that ship with hostform.

Real appliers (package manager, systemctl, docker, file restore) are external
and are plugged in by import path. These two cover the cases hostform handles
itself: nothing configured, and recording steps for inspection.
"""

from __future__ import annotations

from hostform.errors import ApplierFailure
from hostform.sync.executor import StepResult
from hostform.sync.plan import PlanStep


class UnconfiguredApplier:
    """Skips every step; used when no applier has been configured."""

    reason = "no applier configured"

    def apply(self, step: PlanStep, timeout: float | None = None) -> StepResult:
        return StepResult.skipped(self.reason)


class RecordingApplier:
    """Records the steps it receives and answers with scripted outcomes.

    ``failures`` and ``skips`` map step keys to reasons. Keys in ``raises``
    make the applier raise ApplierFailure instead of returning a result.
    """

    def __init__(
        self,
        failures: dict[str, str] | None = None,
        skips: dict[str, str] | None = None,
        raises: dict[str, str] | None = None,
    ):
        self.failures = failures or {}
        self.skips = skips or {}
        self.raises = raises or {}
        self.applied: list[PlanStep] = []

    def apply(self, step: PlanStep, timeout: float | None = None) -> StepResult:
        self.applied.append(step)
        if step.key in self.raises:
            raise ApplierFailure(self.raises[step.key])
        if step.key in self.failures:
            return StepResult.failed(self.failures[step.key])
        if step.key in self.skips:
            return StepResult.skipped(self.skips[step.key])
        return StepResult.applied()
