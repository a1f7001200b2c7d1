"""Reconcile reports: the severity model and its text, JSON and HTML renderings."""

from hostform.report.model import DomainOutcome, ReconcileReport, ReportKind
from hostform.report.render import ReportFormat, render

__all__ = ["DomainOutcome", "ReconcileReport", "ReportFormat", "ReportKind", "render"]
