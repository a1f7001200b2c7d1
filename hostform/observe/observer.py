"""State observer contract and concurrent collection of observed state.

Observers are read-only, so independent domains are observed in parallel. A
domain that cannot be observed (unreachable runtime, timeout, unexpected
exception) yields an Observation carrying the error instead of items; the run
continues for every other domain.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Iterable, Protocol, runtime_checkable

from hostform.errors import ObservationUnavailable
from hostform.models.domain import Domain
from hostform.models.state import ObservedItem

logger = logging.getLogger(__name__)


@runtime_checkable
class StateObserver(Protocol):
    """Reports what currently exists on the host for a domain."""

    def observe(self, domain: Domain) -> Iterable[ObservedItem]:
        """Return the observed items for ``domain`` or raise ObservationUnavailable."""
        ...


@dataclass
class Observation:
    """Outcome of observing one domain."""

    domain: Domain
    items: list[ObservedItem] = field(default_factory=list)
    error: str = ""
    duration_ms: int = 0

    @property
    def available(self) -> bool:
        return not self.error


def observe_domain(observer: StateObserver, domain: Domain) -> Observation:
    """Observe a single domain, converting failures into an unavailable Observation."""
    start = time.monotonic()
    try:
        items = list(observer.observe(domain))
    except ObservationUnavailable as e:
        logger.warning("Domain %s unavailable: %s", domain.value, e.reason or e)
        return Observation(domain=domain, error=e.reason or str(e), duration_ms=_elapsed(start))
    except Exception as e:
        logger.warning("Observer for %s failed: %s", domain.value, e)
        return Observation(domain=domain, error=f"observer failed: {e}", duration_ms=_elapsed(start))

    stray = [i for i in items if i.domain != domain]
    if stray:
        logger.debug("Dropping %d item(s) reported under the wrong domain", len(stray))
        items = [i for i in items if i.domain == domain]
    return Observation(domain=domain, items=items, duration_ms=_elapsed(start))


def collect_observations(
    observer: StateObserver,
    domains: Iterable[Domain],
    timeout: float | None = None,
    max_workers: int = 4,
) -> dict[Domain, Observation]:
    """Observe *domains* concurrently, at most once each.

    Workers are daemon threads, so an observer that never returns cannot keep
    the process alive once its domain has timed out. A stuck worker is
    replaced so the remaining domains still get observed.

    Args:
        observer: The state observer to call.
        domains: Domains to observe.
        timeout: Seconds each domain may take once started; a timeout marks it unavailable.
        max_workers: Number of worker threads. ``1`` observes sequentially.

    Returns:
        Observations keyed by domain, in the order the domains were given.
    """
    domains = list(dict.fromkeys(domains))
    if not domains:
        return {}

    pending: queue.Queue[Domain] = queue.Queue()
    for domain in domains:
        pending.put(domain)
    finished: queue.Queue[Observation] = queue.Queue()
    started: dict[Domain, float] = {}
    lock = threading.Lock()

    def work() -> None:
        while True:
            try:
                domain = pending.get_nowait()
            except queue.Empty:
                return
            with lock:
                started[domain] = time.monotonic()
            finished.put(observe_domain(observer, domain))

    def spawn() -> None:
        threading.Thread(target=work, name="hostform-observer", daemon=True).start()

    for _ in range(max(1, min(max_workers, len(domains)))):
        spawn()

    results: dict[Domain, Observation] = {}
    while len(results) < len(domains):
        _drain(finished, results)
        if len(results) == len(domains):
            break

        wait = None
        if timeout is not None:
            now = time.monotonic()
            with lock:
                running = {d: since for d, since in started.items() if d not in results}
            for domain, since in running.items():
                if now - since >= timeout:
                    logger.warning("Observing %s timed out after %ss", domain.value, timeout)
                    results[domain] = Observation(
                        domain=domain,
                        error=f"observation timed out after {timeout}s",
                        duration_ms=_elapsed(since),
                    )
                    spawn()
            deadlines = [since + timeout for d, since in running.items() if d not in results]
            wait = max(0.0, min(deadlines) - now) if deadlines else timeout

        try:
            observation = finished.get(timeout=wait)
        except queue.Empty:
            continue
        # Answers that arrive after their domain timed out are dropped
        results.setdefault(observation.domain, observation)

    return {d: results[d] for d in domains}


def _drain(finished: queue.Queue[Observation], results: dict[Domain, Observation]) -> None:
    while True:
        try:
            observation = finished.get_nowait()
        except queue.Empty:
            return
        results.setdefault(observation.domain, observation)


def _elapsed(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
