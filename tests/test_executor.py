"""Tests for plan execution and the bundled appliers."""

import subprocess

import pytest

from hostform.models.domain import Domain
from hostform.sync.appliers import RecordingApplier, UnconfiguredApplier
from hostform.sync.executor import ExecutionMode, StepResult, StepStatus, execute
from hostform.sync.plan import Plan, PlanStep, StepAction


def _plan():
    return Plan.ordered(
        [
            PlanStep(Domain.PACKAGE_OFFICIAL, "vim", StepAction.INSTALL),
            PlanStep(Domain.SERVICE_SYSTEM, "sshd", StepAction.REPAIR),
            PlanStep(Domain.DOCKER_NETWORK, "web", StepAction.INSTALL),
        ]
    )


def test_dry_run_never_calls_applier():
    applier = RecordingApplier()
    report = execute(_plan(), mode=ExecutionMode.DRY_RUN, applier=applier)

    assert applier.applied == []
    assert report.dry_run
    assert [o.status for o in report.outcomes] == [StepStatus.WOULD_APPLY] * 3
    assert report.outcomes[0].describe() == "would install vim"
    assert report.summary() == "[DRY RUN] 3 step(s) would be applied"


def test_dry_run_without_applier():
    report = execute(_plan(), mode="dry-run")
    assert len(report.outcomes) == 3


def test_apply_requires_applier():
    with pytest.raises(ValueError):
        execute(_plan(), mode=ExecutionMode.APPLY)


def test_apply_runs_steps_in_order():
    applier = RecordingApplier()
    report = execute(_plan(), mode=ExecutionMode.APPLY, applier=applier)

    assert [s.key for s in applier.applied] == [
        "package-official.vim",
        "service-system.sshd",
        "docker-network.web",
    ]
    assert report.all_applied
    assert report.summary() == "3 applied, 0 failed, 0 skipped"


def test_failure_does_not_stop_later_steps():
    applier = RecordingApplier(failures={"package-official.vim": "pacman exited 1"})
    report = execute(_plan(), mode=ExecutionMode.APPLY, applier=applier)

    assert len(applier.applied) == 3
    assert [o.status for o in report.outcomes] == [
        StepStatus.FAILED,
        StepStatus.APPLIED,
        StepStatus.APPLIED,
    ]
    assert report.failed[0].reason == "pacman exited 1"
    assert report.outcomes[0].describe() == "failed: install vim (pacman exited 1)"


def test_applier_exceptions_become_failures():
    applier = RecordingApplier(raises={"service-system.sshd": "unit not found"})
    report = execute(_plan(), mode=ExecutionMode.APPLY, applier=applier)

    sshd = report.for_domain(Domain.SERVICE_SYSTEM)[0]
    assert sshd.status == StepStatus.FAILED
    assert sshd.reason == "unit not found"
    assert report.outcomes[-1].status == StepStatus.APPLIED


class _TimingOutApplier:
    def __init__(self):
        self.timeouts = []

    def apply(self, step, timeout=None):
        self.timeouts.append(timeout)
        if step.domain == Domain.PACKAGE_OFFICIAL:
            raise subprocess.TimeoutExpired(cmd="pacman -S vim", timeout=timeout)
        if step.domain == Domain.SERVICE_SYSTEM:
            raise TimeoutError()
        return StepResult.applied()


def test_timeouts_are_failures():
    applier = _TimingOutApplier()
    report = execute(_plan(), mode=ExecutionMode.APPLY, applier=applier, timeout=5)

    assert applier.timeouts == [5, 5, 5]
    assert [o.status for o in report.outcomes] == [
        StepStatus.FAILED,
        StepStatus.FAILED,
        StepStatus.APPLIED,
    ]
    assert report.outcomes[0].reason == "timed out after 5s"


class _BrokenApplier:
    def apply(self, step, timeout=None):
        if step.identifier == "vim":
            raise RuntimeError("boom")
        if step.identifier == "sshd":
            return "done"
        return StepResult(StepStatus.WOULD_APPLY)


def test_unexpected_applier_behaviour_is_failure():
    report = execute(_plan(), mode=ExecutionMode.APPLY, applier=_BrokenApplier())

    assert [o.status for o in report.outcomes] == [StepStatus.FAILED] * 3
    assert report.outcomes[0].reason == "RuntimeError: boom"
    assert "not StepResult" in report.outcomes[1].reason


def test_unconfigured_applier_skips():
    report = execute(_plan(), mode=ExecutionMode.APPLY, applier=UnconfiguredApplier())

    assert [o.status for o in report.outcomes] == [StepStatus.SKIPPED] * 3
    assert report.outcomes[0].reason == "no applier configured"
    assert report.summary() == "0 applied, 0 failed, 3 skipped"


def test_empty_plan():
    report = execute(Plan(), mode=ExecutionMode.APPLY, applier=RecordingApplier())
    assert report.outcomes == []
    assert report.all_applied
