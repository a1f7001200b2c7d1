"""Tests for severity, the report model and its renderings."""

import json

import pytest

from hostform.models.domain import Domain, Mode
from hostform.models.severity import Severity
from hostform.models.state import ManifestEntry, ObservedItem
from hostform.report.model import DomainOutcome, ReconcileReport, ReportKind
from hostform.report.render import ReportFormat, render
from hostform.sync.diff import Change, DiffResult
from hostform.sync.executor import StepOutcome, StepStatus
from hostform.sync.plan import PlanStep, StepAction


VIM = PlanStep(Domain.PACKAGE_OFFICIAL, "vim", StepAction.INSTALL, rationale="declared but not present")


def _report(*outcomes, kind=ReportKind.CHECK, **kwargs):
    return ReconcileReport(
        kind=kind,
        mode=Mode.ALL,
        generated="2024-01-01T00:00:00+00:00",
        hostname="testhost",
        domains=list(outcomes),
        **kwargs,
    )


def _missing_vim():
    return DiffResult(
        domain=Domain.PACKAGE_OFFICIAL,
        missing=[ManifestEntry(Domain.PACKAGE_OFFICIAL, "vim", {"state": "required"})],
    )


# --- Severity ---


def test_severity_ordering():
    assert Severity.OK < Severity.WARNING < Severity.ERROR
    assert max([Severity.WARNING, Severity.OK]) == Severity.WARNING
    assert [s.exit_code for s in Severity] == [0, 1, 2]
    assert Severity.ERROR.label == "ERROR"


def test_severity_combine():
    assert Severity.combine([]) == Severity.OK
    assert Severity.combine([Severity.OK, Severity.ERROR, Severity.WARNING]) == Severity.ERROR


@pytest.mark.parametrize("extra", list(Severity))
def test_overall_status_is_monotonic(extra):
    outcomes = [
        DomainOutcome(Domain.PACKAGE_OFFICIAL),
        DomainOutcome(Domain.DOCKER_NETWORK, error="docker daemon not reachable"),
    ]
    before = _report(*outcomes).overall_status

    added = {
        Severity.OK: DomainOutcome(Domain.SERVICE_SYSTEM),
        Severity.WARNING: DomainOutcome(Domain.DOCKER_VOLUME, error="unreachable"),
        Severity.ERROR: DomainOutcome(Domain.PACKAGE_AUR, diff=DiffResult(
            domain=Domain.PACKAGE_AUR,
            missing=[ManifestEntry(Domain.PACKAGE_AUR, "yay", {"state": "required"})],
        )),
    }[extra]
    after = _report(*outcomes, added).overall_status

    assert added.status == extra
    assert after >= before


# --- Domain outcomes ---


def test_unavailable_domain_is_warning():
    outcome = DomainOutcome(Domain.DOCKER_NETWORK, error="docker daemon not reachable")
    assert not outcome.available
    assert outcome.status == Severity.WARNING


def test_check_with_drift_is_error():
    outcome = DomainOutcome(Domain.PACKAGE_OFFICIAL, diff=_missing_vim())
    assert outcome.status == Severity.ERROR


def test_extras_only_check_is_ok():
    result = DiffResult(
        domain=Domain.DOCKER_NETWORK,
        extra=[ObservedItem(Domain.DOCKER_NETWORK, "legacy")],
        detailed=True,
    )
    assert DomainOutcome(Domain.DOCKER_NETWORK, diff=result).status == Severity.OK


def test_pending_plan_is_error():
    outcome = DomainOutcome(Domain.PACKAGE_OFFICIAL, kind=ReportKind.PLAN, diff=_missing_vim(), planned=[VIM])
    assert outcome.pending == [VIM]
    assert outcome.status == Severity.ERROR


def test_excluded_only_is_warning():
    outcome = DomainOutcome(
        Domain.PACKAGE_OFFICIAL, kind=ReportKind.PLAN, diff=_missing_vim(), excluded=[VIM]
    )
    assert outcome.status == Severity.WARNING


def test_dry_run_outcomes_are_error():
    outcome = DomainOutcome(
        Domain.PACKAGE_OFFICIAL,
        kind=ReportKind.EXECUTE,
        diff=_missing_vim(),
        results=[StepOutcome(step=VIM, status=StepStatus.WOULD_APPLY)],
    )
    assert outcome.status == Severity.ERROR


@pytest.mark.parametrize(
    "status, expected",
    [
        (StepStatus.APPLIED, Severity.OK),
        (StepStatus.SKIPPED, Severity.WARNING),
        (StepStatus.FAILED, Severity.ERROR),
    ],
)
def test_applied_outcome_status(status, expected):
    outcome = DomainOutcome(
        Domain.PACKAGE_OFFICIAL,
        kind=ReportKind.EXECUTE,
        diff=_missing_vim(),
        results=[StepOutcome(step=VIM, status=status)],
    )
    assert outcome.status == expected


# --- Report ---


def test_report_summary_and_exit_code():
    report = _report(
        DomainOutcome(Domain.PACKAGE_OFFICIAL, diff=_missing_vim()),
        DomainOutcome(Domain.SERVICE_SYSTEM, diff=DiffResult(domain=Domain.SERVICE_SYSTEM, unchanged=["sshd"])),
        DomainOutcome(Domain.DOCKER_NETWORK, error="docker daemon not reachable"),
    )
    assert report.overall_status == Severity.ERROR
    assert report.exit_code == 2
    assert report.summary() == "Status: ERROR (1 ok, 1 warning, 1 error)"


def test_empty_report_is_ok():
    report = _report()
    assert report.overall_status == Severity.OK
    assert report.exit_code == 0


def test_report_dict_layout():
    report = _report(
        DomainOutcome(Domain.PACKAGE_OFFICIAL, kind=ReportKind.PLAN, diff=_missing_vim(), planned=[VIM]),
        kind=ReportKind.PLAN,
    )
    data = report.to_dict()

    assert data["generated"] == "2024-01-01T00:00:00+00:00"
    assert data["hostname"] == "testhost"
    assert data["overall_status"] == "error"
    assert data["exit_code"] == 2
    domain = data["domains"]["package-official"]
    assert domain["missing"] == ["vim"]
    assert domain["steps"] == [
        {
            "action": "install",
            "identifier": "vim",
            "description": "install vim",
            "rationale": "declared but not present",
        }
    ]


# --- Rendering ---


def _changed_report():
    change = Change(
        desired=ManifestEntry(Domain.CONFIG_FILE, "etc.fstab", {"checksum": "abc123"}),
        observed=ObservedItem(Domain.CONFIG_FILE, "etc.fstab", {"checksum": "def456"}),
        attributes=("checksum",),
    )
    return _report(
        DomainOutcome(Domain.CONFIG_FILE, diff=DiffResult(domain=Domain.CONFIG_FILE, changed=[change])),
        DomainOutcome(Domain.DOCKER_VOLUME, error="docker daemon <not> reachable"),
        warnings=["m.conf:3: [duplicate] package-official.vim redeclared"],
    )


def test_formats_agree_on_status():
    report = _changed_report()

    data = json.loads(render(report, ReportFormat.JSON))
    text = render(report, ReportFormat.TEXT)
    html = render(report, "html")

    assert data["overall_status"] == "error"
    assert data["domains"]["config-file"]["status"] == "error"
    assert data["domains"]["docker-volume"]["status"] == "warning"

    assert "## Overall Status" in text
    assert "Status: ERROR" in text
    assert "Status: WARNING" in text

    assert "Status: ERROR" in html
    assert "Status: WARNING" in html
    assert 'class="exit_code">2<' in html


def test_text_report_content():
    text = render(_changed_report(), ReportFormat.TEXT)

    assert text.startswith("# System State Validation Report\n")
    assert "# Generated on: 2024-01-01T00:00:00+00:00" in text
    assert "# Host: testhost" in text
    assert "etc.fstab: checksum def456 != abc123" in text
    assert "Unavailable: docker daemon <not> reachable" in text
    assert "## Manifest Warnings" in text
    assert "Exit code: 2" in text
    assert "Recommendations:" in text


def test_html_report_escapes_values():
    html = render(_changed_report(), ReportFormat.HTML)
    assert "&lt;not&gt;" in html
    assert "<not>" not in html


def test_ok_text_report_recommendations():
    report = _report(
        DomainOutcome(Domain.SERVICE_SYSTEM, diff=DiffResult(domain=Domain.SERVICE_SYSTEM, unchanged=["sshd"]))
    )
    text = render(report)
    assert "Status: OK" in text
    assert "- No action required" in text


def test_execute_report_lists_step_results():
    report = _report(
        DomainOutcome(
            Domain.PACKAGE_OFFICIAL,
            kind=ReportKind.EXECUTE,
            diff=_missing_vim(),
            results=[StepOutcome(step=VIM, status=StepStatus.FAILED, reason="pacman exited 1")],
        ),
        kind=ReportKind.EXECUTE,
    )
    text = render(report)
    data = json.loads(render(report, "json"))

    assert "failed: install vim (pacman exited 1)" in text
    assert data["domains"]["package-official"]["steps"][0]["status"] == "failed"


def test_extras_render_whenever_the_diff_has_them():
    # Pruned domains collect extras even when the run is not detailed
    result = DiffResult(domain=Domain.DOCKER_NETWORK, extra=[ObservedItem(Domain.DOCKER_NETWORK, "legacy")])
    report = _report(DomainOutcome(Domain.DOCKER_NETWORK, diff=result))
    assert not report.detailed

    text = render(report, ReportFormat.TEXT)
    assert "Extra (1):\n  - legacy" in text

    html = render(report, ReportFormat.HTML)
    assert "Extra (1)" in html
    assert "legacy" in html


def test_changed_identifier_ending_in_colon_is_kept():
    entry = ManifestEntry(Domain.CONFIG_FILE, "odd:", {"checksum": "abc123"})
    change = Change(desired=entry, observed=ObservedItem(Domain.CONFIG_FILE, "odd:"))
    report = _report(
        DomainOutcome(Domain.CONFIG_FILE, diff=DiffResult(domain=Domain.CONFIG_FILE, changed=[change]))
    )

    text = render(report, ReportFormat.TEXT)
    assert "Changed (1):\n  - odd:\n" in text
