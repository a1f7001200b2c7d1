"""hostform CLI — the main entry point for host state reconciliation."""

from __future__ import annotations

import functools
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from hostform import __version__
from hostform.config import Settings, load_component, load_settings
from hostform.errors import ConfigError, HostformError
from hostform.models.domain import DOMAIN_ORDER, Mode
from hostform.report.render import ReportFormat

console = Console()
err_console = Console(stderr=True)

FATAL_EXIT_CODE = 2


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-v info, -vv debug)")
@click.option("--config", "-c", "config_path", default=None, help="Settings file (default: ./hostform.yaml)")
@click.pass_context
def main(ctx: click.Context, verbose: int, config_path: str | None):
    """hostform — reconcile declared host state against what is actually there.

    Compare a declarative manifest of packages, services, configuration files
    and Docker resources with the host's observed state, plan the steps that
    close the gap, and apply them (or preview them with --dry-run).

    Exit codes: 0 OK, 1 WARNING, 2 ERROR.
    """
    from hostform.utils.logging import configure_logging, verbosity_to_level

    configure_logging(level=verbosity_to_level(verbose), console=err_console, force=True)
    try:
        ctx.obj = load_settings(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Config error:[/] {e}")
        ctx.exit(FATAL_EXIT_CODE)


def run_options(f):
    """Options shared by check, plan and apply."""
    options = [
        click.argument("manifests", nargs=-1, type=click.Path(dir_okay=False)),
        click.option("--mode", "-m", type=click.Choice([m.value for m in Mode]), default=None,
                     help="Domains to reconcile: system, docker or all"),
        click.option("--detailed/--no-detailed", default=None, help="Also report undeclared (extra) resources"),
        click.option("--strict/--no-strict", default=None, help="Fail on malformed manifest lines"),
        click.option("--observed", "snapshot", default=None, type=click.Path(exists=True, dir_okay=False),
                     help="Observed-state snapshot (YAML)"),
        click.option("--observer", default=None, help="State observer as module:attribute"),
        click.option("--format", "-f", "fmt", type=click.Choice([f.value for f in ReportFormat]), default=None,
                     help="Report format"),
        click.option("--output", "-o", default=None, help="Write the report to a file"),
        click.option("--timeout", type=float, default=None, help="Seconds allowed per observer/applier call"),
        click.option("--no-history", is_flag=True, help="Do not record this run in the history"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def plan_options(f):
    """Options shared by plan and apply."""
    options = [
        click.option("--exclude", "-e", multiple=True, help="Exclude steps matching a pattern (repeatable)"),
        click.option("--exclude-file", multiple=True, type=click.Path(exists=True, dir_okay=False),
                     help="File of exclusion patterns, one per line"),
        click.option("--prune", multiple=True, type=click.Choice([d.value for d in DOMAIN_ORDER]),
                     help="Plan removal of undeclared resources in this domain (repeatable)"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def fatal_errors(f):
    """Turn fatal hostform errors into a message and exit code 2."""

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except HostformError as e:
            err_console.print(f"[red]Error:[/] {e}")
            raise SystemExit(FATAL_EXIT_CODE)

    return wrapper


# ── Check ────────────────────────────────────────────────────────────


@main.command()
@run_options
@click.pass_obj
@fatal_errors
def check(settings: Settings, manifests, mode, detailed, strict, snapshot, observer, fmt, output, timeout, no_history):
    """Validate the host against MANIFESTS without changing anything.

    MANIFESTS are read in order and merged; later declarations win.
    """
    settings = settings.merged(
        manifests=manifests, mode=mode, detailed=detailed, strict=strict,
        observer=observer, format=fmt, timeout_seconds=timeout,
    )
    reconciler = _reconciler(settings, snapshot)
    result = reconciler.check()
    _finish(settings, result.report, "check", output, no_history)


# ── Plan ─────────────────────────────────────────────────────────────


@main.command()
@run_options
@plan_options
@click.pass_obj
@fatal_errors
def plan(settings: Settings, manifests, mode, detailed, strict, snapshot, observer, fmt, output, timeout,
         no_history, exclude, exclude_file, prune):
    """Show the ordered steps that would reconcile the host."""
    settings = settings.merged(
        manifests=manifests, mode=mode, detailed=detailed, strict=strict, observer=observer,
        format=fmt, timeout_seconds=timeout, exclude=exclude, exclude_files=exclude_file, prune=prune,
    )
    reconciler = _reconciler(settings, snapshot)
    result = reconciler.plan(exclude=_exclusions(settings))
    _finish(settings, result.report, "plan", output, no_history)


# ── Apply ────────────────────────────────────────────────────────────


@main.command()
@run_options
@plan_options
@click.option("--dry-run", is_flag=True, help="Simulate without invoking the applier")
@click.option("--applier", default=None, help="Applier as module:attribute")
@click.pass_obj
@fatal_errors
def apply(settings: Settings, manifests, mode, detailed, strict, snapshot, observer, fmt, output, timeout,
          no_history, exclude, exclude_file, prune, dry_run, applier):
    """Apply the plan to the host (or preview it with --dry-run).

    Steps run one at a time in domain order: packages, services, config
    files, Docker networks, volumes, then compose projects. A failed step
    does not stop the remaining steps.
    """
    from hostform.sync.appliers import UnconfiguredApplier
    from hostform.sync.executor import ExecutionMode

    settings = settings.merged(
        manifests=manifests, mode=mode, detailed=detailed, strict=strict, observer=observer,
        applier=applier, format=fmt, timeout_seconds=timeout, exclude=exclude,
        exclude_files=exclude_file, prune=prune,
    )
    patterns = _exclusions(settings)
    reconciler = _reconciler(settings, snapshot)

    if dry_run:
        step_applier = None
    elif settings.applier:
        step_applier = load_component(settings.applier, kind="applier")
    else:
        err_console.print("[yellow]![/] No applier configured; every step will be skipped.")
        step_applier = UnconfiguredApplier()

    result = reconciler.run(
        mode=ExecutionMode.DRY_RUN if dry_run else ExecutionMode.APPLY,
        applier=step_applier,
        exclude=patterns,
    )
    _finish(settings, result.report, "apply", output, no_history)


# ── Fmt ──────────────────────────────────────────────────────────────


@main.command(name="fmt")
@click.argument("manifests", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--strict", is_flag=True, help="Fail on malformed lines")
@click.option("--output", "-o", default=None, help="Write the canonical manifest to a file")
@fatal_errors
def fmt_manifest(manifests, strict: bool, output: str | None):
    """Merge MANIFESTS and print them in canonical, deduplicated form."""
    from hostform.manifest.parser import load_manifest
    from hostform.manifest.serializer import serialize

    parsed = load_manifest(manifests, strict=strict)
    for warning in parsed.warnings:
        err_console.print(f"  [yellow]![/] {_escape(str(warning))}")

    text = serialize(parsed.manifest)
    if output:
        Path(output).write_text(text, encoding="utf-8")
        err_console.print(f"[green]Manifest written to:[/] {output} ({len(parsed.manifest)} entries)")
    else:
        click.echo(text, nl=False)


# ── Domains ──────────────────────────────────────────────────────────


@main.command()
def domains():
    """List the managed domains, their manifest prefixes and compared fields."""
    table = Table(title="Domains (in execution order)")
    table.add_column("Domain", style="cyan")
    table.add_column("Prefix")
    table.add_column("Fields")
    table.add_column("Compared")
    table.add_column("Group", style="dim")

    for domain in DOMAIN_ORDER:
        spec = domain.spec
        table.add_row(
            domain.value,
            spec.prefix,
            ", ".join(sorted(spec.fields)),
            ", ".join(spec.comparable) or "-",
            spec.group.value,
        )
    console.print(table)


# ── History ──────────────────────────────────────────────────────────


@main.command()
@click.option("--limit", "-n", default=20, help="Number of runs to show")
@click.pass_obj
def history(settings: Settings, limit: int):
    """Show recent reconciliation runs."""
    from hostform.history import RunHistoryStore

    records = RunHistoryStore(settings.history_dir).get_history(limit=limit)
    if not records:
        console.print("[yellow]No runs recorded yet.[/]")
        return

    table = Table(title=f"Recent runs ({len(records)})")
    table.add_column("Ran at", style="dim")
    table.add_column("Command", style="cyan")
    table.add_column("Mode")
    table.add_column("Status", justify="center")
    table.add_column("Planned", justify="right")
    table.add_column("Applied", justify="right")
    table.add_column("Failed", justify="right")

    for record in reversed(records):
        command = record.command + (" (dry run)" if record.dry_run else "")
        table.add_row(
            record.ran_at,
            command,
            record.mode,
            _status_markup(record.overall_status),
            str(record.steps_planned),
            str(record.steps_applied),
            str(record.steps_failed),
        )
    console.print(table)


# ── Helpers ──────────────────────────────────────────────────────────


def _reconciler(settings: Settings, snapshot: str | None):
    from hostform.manifest.parser import load_manifest
    from hostform.reconciler import Reconciler

    if not settings.manifests:
        raise ConfigError("No manifest given (pass MANIFESTS or set 'manifests' in the config)")

    parsed = load_manifest(settings.manifests, strict=settings.strict)
    return Reconciler(
        parsed.manifest,
        _observer(settings, snapshot),
        mode=settings.mode,
        detailed=settings.detailed,
        prune=settings.prune,
        timeout=settings.timeout_seconds,
        max_workers=settings.max_workers,
        warnings=parsed.warnings,
    )


def _observer(settings: Settings, snapshot: str | None):
    from hostform.observe.snapshot import SnapshotObserver

    if snapshot:
        return SnapshotObserver.load(snapshot)
    if settings.observer:
        return load_component(settings.observer, kind="observer")
    raise ConfigError("No state observer configured (use --observed SNAPSHOT or --observer module:attribute)")


def _exclusions(settings: Settings) -> list:
    from hostform.sync.exclusion import compile_patterns, load_exclusion_file

    raw = list(settings.exclude)
    for path in settings.exclude_files:
        try:
            raw.extend(load_exclusion_file(path))
        except OSError as e:
            raise ConfigError(f"Cannot read exclusion file {path}: {e}") from e
    return compile_patterns(raw)


def _finish(settings: Settings, report, command: str, output: str | None, no_history: bool):
    from hostform.history import RunHistoryStore, RunRecord
    from hostform.report.render import render

    content = render(report, settings.format)
    if output:
        Path(output).write_text(content, encoding="utf-8")
        err_console.print(f"[green]Report saved to:[/] {output}")
    else:
        click.echo(content, nl=False)

    if not no_history:
        store = RunHistoryStore(settings.history_dir)
        try:
            store.record(RunRecord.from_report(report, command, manifests=settings.manifests))
        except OSError as e:
            err_console.print(f"[yellow]![/] Could not record run history: {_escape(str(e))}")

    err_console.print(f"{_status_markup(report.overall_status.value)} {_escape(report.summary())}")
    raise SystemExit(report.exit_code)


def _status_markup(status: str) -> str:
    color = {"ok": "green", "warning": "yellow", "error": "red"}.get(status, "white")
    return f"[{color}]{status.upper()}[/]"


def _escape(text: str) -> str:
    from rich.markup import escape

    return escape(text)


if __name__ == "__main__":
    main()
