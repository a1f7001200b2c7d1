"""Report rendering in text, JSON and HTML.

All three formats are built from ``ReconcileReport.to_dict()`` so field names
and statuses match across formats. Text is Markdown-like, JSON is for tools,
HTML is rendered from a Jinja2 template.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from hostform.report.model import ReconcileReport

TEMPLATE_DIR = Path(__file__).parent / "templates"

_TITLES = {
    "check": "System State Validation Report",
    "plan": "System State Reconciliation Plan",
    "execute": "System State Reconciliation Report",
}


class ReportFormat(Enum):
    TEXT = "text"
    JSON = "json"
    HTML = "html"


def render(report: ReconcileReport, fmt: ReportFormat | str = ReportFormat.TEXT) -> str:
    """Render *report* in the requested format."""
    fmt = ReportFormat(fmt)
    data = report.to_dict()
    if fmt == ReportFormat.JSON:
        return render_json(data)
    if fmt == ReportFormat.HTML:
        return render_html(data)
    return render_text(data)


def render_json(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2) + "\n"


def render_html(data: dict[str, Any], template_dir: Path | None = None) -> str:
    env = Environment(
        loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
        autoescape=select_autoescape(["html", "xml", "jinja2"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["status_label"] = _status_label
    template = env.get_template("report.html.jinja2")
    return template.render(report=data, title=_TITLES.get(data["kind"], _TITLES["check"]))


def render_text(data: dict[str, Any]) -> str:
    lines = [
        f"# {_TITLES.get(data['kind'], _TITLES['check'])}",
        f"# Generated on: {data['generated']}",
        f"# Host: {data['hostname']}",
        f"# Mode: {data['mode']}" + (" (dry run)" if data["dry_run"] else ""),
        "",
    ]

    if data["warnings"]:
        lines.append("## Manifest Warnings")
        lines.append("")
        lines.extend(f"  - {w}" for w in data["warnings"])
        lines.append("")

    for name, domain in data["domains"].items():
        lines.extend(_domain_section(name, domain))

    status = data["overall_status"]
    lines.append("## Overall Status")
    lines.append("")
    lines.append(f"Status: {_status_label(status)}")
    lines.append(f"Exit code: {data['exit_code']}")
    if data["excluded"]:
        lines.append(f"Excluded steps: {data['excluded']}")
    lines.append("")
    lines.append("Recommendations:")
    lines.extend(_recommendations(data))
    return "\n".join(lines) + "\n"


def _domain_section(name: str, domain: dict[str, Any]) -> list[str]:
    lines = [f"### {name}", "", f"Status: {_status_label(domain['status'])}", ""]

    if not domain["available"]:
        lines.append(f"Unavailable: {domain['error']}")
        lines.append("")
        return lines

    lines.extend(_listing("Missing", domain["missing"]))
    changed = []
    for identifier in domain["changed"]:
        detail = domain["changed_detail"].get(identifier, "")
        changed.append(f"{identifier}: {detail}" if detail else identifier)
    lines.extend(_listing("Changed", changed))
    lines.extend(_listing("Extra", domain["extra"]))

    if domain["steps"]:
        lines.append(f"Steps ({len(domain['steps'])}):")
        for step in domain["steps"]:
            lines.append(f"  - {_step_line(step)}")
        lines.append("")

    lines.extend(_listing("Excluded", domain["excluded"]))
    return lines


def _listing(title: str, items: list[str]) -> list[str]:
    if not items:
        return []
    return [f"{title} ({len(items)}):", *(f"  - {i}" for i in items), ""]


def _step_line(step: dict[str, Any]) -> str:
    status = step.get("status")
    if status is None:
        return f"{step['description']} ({step['rationale']})" if step["rationale"] else step["description"]
    if status == "would-apply":
        return f"would {step['description']}"
    line = f"{status}: {step['description']}"
    return f"{line} ({step['reason']})" if step["reason"] else line


def _recommendations(data: dict[str, Any]) -> list[str]:
    status = data["overall_status"]
    if status == "ok":
        return [
            "- System state matches declarative configuration",
            "- No action required",
        ]

    notes = []
    if any(not d["available"] for d in data["domains"].values()):
        notes.append("- Some domains could not be observed; check the state sources and re-run")
    if data["kind"] == "execute" and not data["dry_run"]:
        notes.append("- Review failed or skipped steps above")
        notes.append("- Re-run reconciliation to confirm the host converged")
    else:
        notes.append("- Review the drift listed above")
        notes.append("- Apply the plan to fix it, then re-run validation to confirm")
    return notes


def _status_label(status: str) -> str:
    return status.upper()
