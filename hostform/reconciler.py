"""Reconciler — one run from parsed manifest to report.

1. Observe the run's domains (concurrently, once each)
2. Diff declared against observed state per domain
3. Build the plan, then drop excluded steps
4. Execute the plan (dry-run or apply)
5. Assemble the report

Unavailable domains are reported as warnings and kept out of the plan.
"""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from hostform.models.domain import Domain, Mode, domains_for_mode
from hostform.models.state import Manifest, ParseWarning
from hostform.observe.observer import Observation, StateObserver, collect_observations
from hostform.report.model import DomainOutcome, ReconcileReport, ReportKind
from hostform.sync.diff import DiffResult, diff
from hostform.sync.exclusion import ExclusionPattern, FilterResult, compile_pattern, filter_plan
from hostform.sync.executor import Applier, ExecutionMode, ExecutionReport, execute
from hostform.sync.plan import Plan, build_plan

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Report plus the intermediate artefacts of a run."""

    report: ReconcileReport
    diffs: dict[Domain, DiffResult] = field(default_factory=dict)
    plan: Plan | None = None
    filtered: FilterResult | None = None
    execution: ExecutionReport | None = None


class Reconciler:
    """Reconciles a manifest against a host through a state observer."""

    def __init__(
        self,
        manifest: Manifest,
        observer: StateObserver,
        mode: Mode | str = Mode.ALL,
        detailed: bool = False,
        prune: Iterable[Domain] = (),
        timeout: float | None = None,
        max_workers: int = 4,
        warnings: Iterable[ParseWarning | str] = (),
    ):
        self.manifest = manifest
        self.observer = observer
        self.mode = Mode(mode)
        self.detailed = detailed
        self.prune = manifest.prune | frozenset(prune)
        self.timeout = timeout
        self.max_workers = max_workers
        self.warnings = [str(w) for w in warnings]
        self._observations: dict[Domain, Observation] | None = None

    @property
    def domains(self) -> list[Domain]:
        """Domains this run covers.

        Declared and pruned domains within the mode; every domain of the mode
        in detailed runs, since extras can exist where nothing is declared.
        """
        in_mode = domains_for_mode(self.mode)
        if self.detailed:
            return in_mode
        wanted = set(self.manifest.domains) | self.prune
        return [d for d in in_mode if d in wanted]

    def observe(self) -> dict[Domain, Observation]:
        """Observed state for the run's domains, fetched once."""
        if self._observations is None:
            self._observations = collect_observations(
                self.observer,
                self.domains,
                timeout=self.timeout,
                max_workers=self.max_workers,
            )
        return self._observations

    def diff(self) -> dict[Domain, DiffResult]:
        """Drift for every domain that could be observed."""
        results = {}
        for domain, observation in self.observe().items():
            if not observation.available:
                continue
            results[domain] = diff(
                domain,
                self.manifest.for_domain(domain),
                observation.items,
                detailed=self.detailed or domain in self.prune,
            )
        return results

    # ── Runs ─────────────────────────────────────────────────────────

    def check(self) -> RunResult:
        """Diff only."""
        start = time.monotonic()
        diffs = self.diff()
        report = self._report(ReportKind.CHECK, diffs)
        report.total_duration_ms = _elapsed(start)
        return RunResult(report=report, diffs=diffs)

    def plan(
        self,
        exclude: Iterable[str | ExclusionPattern] = (),
    ) -> RunResult:
        """Diff, plan and filter without executing."""
        start = time.monotonic()
        patterns = _compile(exclude)
        diffs = self.diff()
        plan, filtered = self._plan(diffs, patterns)
        report = self._report(ReportKind.PLAN, diffs, filtered=filtered)
        report.total_duration_ms = _elapsed(start)
        return RunResult(report=report, diffs=diffs, plan=plan, filtered=filtered)

    def run(
        self,
        mode: ExecutionMode | str = ExecutionMode.DRY_RUN,
        applier: Applier | None = None,
        exclude: Iterable[str | ExclusionPattern] = (),
    ) -> RunResult:
        """Diff, plan, filter and execute."""
        start = time.monotonic()
        mode = ExecutionMode(mode)
        patterns = _compile(exclude)
        diffs = self.diff()
        plan, filtered = self._plan(diffs, patterns)

        execution = execute(filtered.plan, mode=mode, applier=applier, timeout=self.timeout)
        logger.info("Execution finished: %s", execution.summary())

        report = self._report(ReportKind.EXECUTE, diffs, filtered=filtered, execution=execution)
        report.dry_run = execution.dry_run
        report.total_duration_ms = _elapsed(start)
        return RunResult(
            report=report, diffs=diffs, plan=plan, filtered=filtered, execution=execution
        )

    # ── Internals ────────────────────────────────────────────────────

    def _plan(
        self,
        diffs: dict[Domain, DiffResult],
        patterns: list[ExclusionPattern],
    ) -> tuple[Plan, FilterResult]:
        plan = build_plan(diffs.values(), prune=self.prune)
        filtered = filter_plan(plan, patterns)
        if filtered.removed:
            logger.info("Exclusions removed %d of %d step(s)", filtered.removed, len(plan))
        return plan, filtered

    def _report(
        self,
        kind: ReportKind,
        diffs: dict[Domain, DiffResult],
        filtered: FilterResult | None = None,
        execution: ExecutionReport | None = None,
    ) -> ReconcileReport:
        outcomes = []
        for domain, observation in self.observe().items():
            if not observation.available:
                outcomes.append(DomainOutcome(domain=domain, kind=kind, error=observation.error))
                continue

            outcome = DomainOutcome(domain=domain, kind=kind, diff=diffs[domain])
            if filtered is not None:
                outcome.planned = filtered.plan.for_domain(domain)
                outcome.excluded = [s for s in filtered.removed_steps if s.domain == domain]
            if execution is not None:
                outcome.results = execution.for_domain(domain)
            outcomes.append(outcome)

        return ReconcileReport(
            kind=kind,
            mode=self.mode,
            generated=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            hostname=socket.gethostname(),
            domains=outcomes,
            detailed=self.detailed,
            warnings=list(self.warnings),
        )


def _compile(exclude: Iterable[str | ExclusionPattern]) -> list[ExclusionPattern]:
    return [p if isinstance(p, ExclusionPattern) else compile_pattern(p) for p in exclude]


def _elapsed(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
