"""The observer contract hostform calls and the snapshot-backed implementation.

Real observers (package manager, service manager, container runtime, file
checksums) live outside hostform and plug in through ``StateObserver``.
"""

from hostform.observe.observer import (
    Observation,
    StateObserver,
    collect_observations,
    observe_domain,
)
from hostform.observe.snapshot import SnapshotObserver

__all__ = [
    "Observation",
    "SnapshotObserver",
    "StateObserver",
    "collect_observations",
    "observe_domain",
]
