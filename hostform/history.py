"""A summary record of every reconciliation run.

Stored as newline-delimited JSON in ``~/.hostform/history/runs.jsonl`` so past
runs can be reviewed with ``hostform history``. Only summaries are kept; full
reports are written with ``--output`` when wanted.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from hostform.report.model import ReconcileReport, ReportKind
from hostform.sync.executor import StepStatus

logger = logging.getLogger(__name__)


@dataclass
class RunRecord:
    """Summary of one run."""

    ran_at: str
    command: str
    mode: str
    dry_run: bool
    overall_status: str
    domains: dict[str, str] = field(default_factory=dict)
    steps_planned: int = 0
    steps_applied: int = 0
    steps_failed: int = 0
    steps_excluded: int = 0
    manifests: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @classmethod
    def from_report(
        cls, report: ReconcileReport, command: str, manifests: list[str] | None = None
    ) -> RunRecord:
        planned = applied = failed = 0
        for outcome in report.domains:
            planned += len(outcome.planned)
            applied += len(outcome.results_with(StepStatus.APPLIED))
            failed += len(outcome.results_with(StepStatus.FAILED))

        return cls(
            ran_at=datetime.now(timezone.utc).isoformat(),
            command=command,
            mode=report.mode.value,
            dry_run=report.dry_run,
            overall_status=report.overall_status.value,
            domains={d.domain.value: d.status.value for d in report.domains},
            steps_planned=planned if report.kind != ReportKind.CHECK else 0,
            steps_applied=applied,
            steps_failed=failed,
            steps_excluded=report.excluded,
            manifests=list(manifests or []),
            duration_ms=report.total_duration_ms,
        )


class RunHistoryStore:
    """Appends and reads run records."""

    HISTORY_FILE = "runs.jsonl"

    def __init__(self, base_dir: str | Path | None = None):
        if base_dir is None:
            base_dir = Path.home() / ".hostform" / "history"
        self.base_dir = Path(base_dir)
        self.history_file = self.base_dir / self.HISTORY_FILE

    def record(self, record: RunRecord) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        with open(self.history_file, "a") as f:
            f.write(json.dumps(asdict(record)) + "\n")

    def get_history(self, limit: int | None = None) -> list[RunRecord]:
        """Records in the order they were written, the last *limit* of them."""
        if not self.history_file.exists():
            return []

        records = []
        with open(self.history_file) as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(RunRecord(**json.loads(line)))
                except (json.JSONDecodeError, TypeError) as e:
                    logger.warning("Skipping corrupt history line %d: %s", line_no, e)
        if limit is not None:
            records = records[-limit:] if limit > 0 else []
        return records

    def get_latest(self) -> RunRecord | None:
        history = self.get_history()
        return history[-1] if history else None
