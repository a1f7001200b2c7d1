"""Snapshot observer — observed state read from a YAML file.

The snapshot is produced by whatever inventories the host (package manager
queries, systemctl, docker CLI) and handed to hostform. Layout::

    package-official: [bash, git]
    service-system:
      sshd: {state: enabled, active-state: active}
    config-file:
      etc.fstab: {checksum: def456}

Each domain maps to either a list of identifiers or a mapping of identifier
to attributes. A domain missing from the snapshot counts as unavailable; an
explicitly empty one (``docker-volume: []``) means nothing is deployed.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from hostform.errors import ConfigError, ObservationUnavailable
from hostform.models.domain import Domain, parse_domain
from hostform.models.state import ObservedItem


class SnapshotObserver:
    """Serves observed items from an in-memory snapshot."""

    def __init__(self, snapshot: dict[Domain, list[ObservedItem]]):
        self._snapshot = snapshot

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SnapshotObserver:
        snapshot: dict[Domain, list[ObservedItem]] = {}
        for name, value in (data or {}).items():
            try:
                domain = parse_domain(str(name))
            except ValueError as e:
                raise ConfigError(f"Snapshot: {e}") from e
            snapshot[domain] = _items(domain, value)
        return cls(snapshot)

    @classmethod
    def load(cls, path: str | Path) -> SnapshotObserver:
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read snapshot {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in snapshot {path}: {e}") from e

        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"Snapshot {path} must be a mapping of domain to items")
        return cls.from_dict(data)

    def observe(self, domain: Domain) -> list[ObservedItem]:
        if domain not in self._snapshot:
            raise ObservationUnavailable(domain, "not present in snapshot")
        return list(self._snapshot[domain])


def _items(domain: Domain, value: Any) -> list[ObservedItem]:
    if value is None:
        return []
    if isinstance(value, list):
        return [ObservedItem(domain=domain, identifier=str(v)) for v in value]
    if isinstance(value, dict):
        items = []
        for identifier, attrs in value.items():
            attrs = attrs or {}
            if not isinstance(attrs, dict):
                raise ConfigError(
                    f"Snapshot: attributes of {domain.value}.{identifier} must be a mapping"
                )
            items.append(
                ObservedItem(
                    domain=domain,
                    identifier=str(identifier),
                    attributes={str(k): str(v) for k, v in attrs.items()},
                )
            )
        return items
    raise ConfigError(f"Snapshot: {domain.value} must be a list or a mapping")
