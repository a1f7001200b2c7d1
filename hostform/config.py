"""Settings — YAML configuration with CLI overrides.

A ``hostform.yaml`` in the working directory (or the file passed with
``--config``) supplies defaults for every run option::

    manifests: [declarative/system.conf, declarative/docker.conf]
    mode: all
    detailed: false
    strict: false
    format: text
    exclude: ["package-aur.*"]
    exclude_files: [excludes.txt]
    prune: [docker-network]
    observer: mypkg.observers:HostObserver
    applier: mypkg.appliers:HostApplier
    timeout_seconds: 120
    max_workers: 4
    history_dir: ~/.hostform/history
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from hostform.errors import ConfigError
from hostform.models.domain import Domain, Mode, parse_domain
from hostform.report.render import ReportFormat

DEFAULT_CONFIG_FILE = "hostform.yaml"
DEFAULT_HISTORY_DIR = Path.home() / ".hostform" / "history"


@dataclass
class Settings:
    """Options for a reconciliation run."""

    manifests: list[str] = field(default_factory=list)
    mode: Mode = Mode.ALL
    detailed: bool = False
    strict: bool = False
    format: ReportFormat = ReportFormat.TEXT
    exclude: list[str] = field(default_factory=list)
    exclude_files: list[str] = field(default_factory=list)
    prune: list[Domain] = field(default_factory=list)
    observer: str = ""  # "module:attribute" import path
    applier: str = ""
    timeout_seconds: float | None = None
    max_workers: int = 4
    history_dir: str = str(DEFAULT_HISTORY_DIR)

    def merged(self, **overrides: Any) -> Settings:
        """Copy with every override that is not None (or empty) applied."""
        changes = {}
        for name, value in overrides.items():
            if value is None or value == () or value == []:
                continue
            changes[name] = list(value) if isinstance(value, tuple) else value
        return replace(self, **_coerce(changes))


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from *path*, or from ``hostform.yaml`` if it exists.

    An explicitly given path must exist; the default file is optional.
    """
    if path is None:
        default = Path(DEFAULT_CONFIG_FILE)
        if not default.exists():
            return Settings()
        path = default

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config {path}: {e}") from e

    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping")

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config key(s) in {path}: {', '.join(unknown)}")

    return Settings(**_coerce(data))


def load_component(path: str, kind: str = "component") -> Any:
    """Import ``module:attribute`` and return an instance.

    Classes and factory functions are called with no arguments; any other
    object is returned as-is.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"Invalid {kind} path '{path}'. Expected 'module:attribute'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import {kind} module '{module_name}': {e}") from e

    try:
        target = getattr(module, attr)
    except AttributeError as e:
        raise ConfigError(f"Module '{module_name}' has no attribute '{attr}'") from e

    return target() if callable(target) else target


def _coerce(data: dict[str, Any]) -> dict[str, Any]:
    out = dict(data)
    try:
        if "mode" in out:
            out["mode"] = Mode(out["mode"])
        if "format" in out:
            out["format"] = ReportFormat(out["format"])
        if "prune" in out:
            out["prune"] = [d if isinstance(d, Domain) else parse_domain(str(d)) for d in _as_list(out["prune"])]
    except ValueError as e:
        raise ConfigError(str(e)) from e

    for key in ("manifests", "exclude", "exclude_files"):
        if key in out:
            out[key] = [str(v) for v in _as_list(out[key])]
    for key in ("detailed", "strict"):
        if key in out and not isinstance(out[key], bool):
            raise ConfigError(f"'{key}' must be true or false")
    if out.get("timeout_seconds") is not None:
        out["timeout_seconds"] = _number(out["timeout_seconds"], "timeout_seconds")
    if "max_workers" in out:
        workers = _number(out["max_workers"], "max_workers")
        if workers < 1:
            raise ConfigError("'max_workers' must be at least 1")
        out["max_workers"] = int(workers)
    if "history_dir" in out:
        out["history_dir"] = str(Path(str(out["history_dir"])).expanduser())
    return out


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{name}' must be a number")
    return value
