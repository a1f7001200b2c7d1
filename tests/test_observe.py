"""Tests for state observation."""

import tempfile
import threading
import time
from pathlib import Path

import pytest
import yaml

from hostform.errors import ConfigError, ObservationUnavailable
from hostform.models.domain import Domain
from hostform.models.state import ObservedItem
from hostform.observe.observer import StateObserver, collect_observations, observe_domain
from hostform.observe.snapshot import SnapshotObserver


SNAPSHOT = {
    "package-official": ["bash", "git"],
    "service.system": {"sshd": {"state": "enabled", "active-state": "active"}},
    "config-file": {"etc.fstab": {"checksum": "def456"}},
    "docker-volume": [],
}


# --- Snapshot observer ---


def test_snapshot_observer_lists_and_mappings():
    observer = SnapshotObserver.from_dict(SNAPSHOT)

    packages = observer.observe(Domain.PACKAGE_OFFICIAL)
    assert [i.identifier for i in packages] == ["bash", "git"]

    sshd = observer.observe(Domain.SERVICE_SYSTEM)[0]
    assert sshd.identifier == "sshd"
    assert sshd.get("active-state") == "active"

    assert observer.observe(Domain.DOCKER_VOLUME) == []


def test_snapshot_missing_domain_is_unavailable():
    observer = SnapshotObserver.from_dict(SNAPSHOT)
    with pytest.raises(ObservationUnavailable) as exc:
        observer.observe(Domain.DOCKER_NETWORK)
    assert exc.value.domain == Domain.DOCKER_NETWORK


def test_snapshot_is_a_state_observer():
    assert isinstance(SnapshotObserver.from_dict({}), StateObserver)


def test_snapshot_load_from_yaml():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "observed.yaml"
        path.write_text(yaml.dump(SNAPSHOT))
        observer = SnapshotObserver.load(path)

    items = observer.observe(Domain.CONFIG_FILE)
    assert items[0].get("checksum") == "def456"


@pytest.mark.parametrize(
    "data",
    [
        {"not-a-domain": []},
        {"package-official": "bash"},
        {"service-system": {"sshd": "enabled"}},
    ],
)
def test_snapshot_rejects_bad_layout(data):
    with pytest.raises(ConfigError):
        SnapshotObserver.from_dict(data)


def test_snapshot_load_rejects_non_mapping():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "observed.yaml"
        path.write_text("- bash\n- git\n")
        with pytest.raises(ConfigError):
            SnapshotObserver.load(path)


# --- Collection ---


class _RaisingObserver:
    def observe(self, domain):
        if domain == Domain.DOCKER_NETWORK:
            raise ObservationUnavailable(domain, "docker daemon not reachable")
        if domain == Domain.DOCKER_VOLUME:
            raise RuntimeError("unexpected")
        return [
            ObservedItem(domain=domain, identifier="ok"),
            ObservedItem(domain=Domain.PACKAGE_AUR, identifier="stray"),
        ]


def test_observe_domain_converts_failures():
    observer = _RaisingObserver()

    network = observe_domain(observer, Domain.DOCKER_NETWORK)
    assert not network.available
    assert network.error == "docker daemon not reachable"

    volume = observe_domain(observer, Domain.DOCKER_VOLUME)
    assert not volume.available
    assert "unexpected" in volume.error


def test_observe_domain_drops_stray_items():
    observation = observe_domain(_RaisingObserver(), Domain.PACKAGE_OFFICIAL)
    assert [i.identifier for i in observation.items] == ["ok"]


def test_collect_observations_keeps_domain_order():
    domains = [Domain.DOCKER_VOLUME, Domain.PACKAGE_OFFICIAL, Domain.DOCKER_NETWORK]
    results = collect_observations(_RaisingObserver(), domains)

    assert list(results) == domains
    assert results[Domain.PACKAGE_OFFICIAL].available
    assert not results[Domain.DOCKER_NETWORK].available


class _CountingObserver:
    def __init__(self):
        self.calls = []
        self.lock = threading.Lock()

    def observe(self, domain):
        with self.lock:
            self.calls.append(domain)
        return []


def test_collect_observations_once_per_domain():
    observer = _CountingObserver()
    domains = [Domain.PACKAGE_OFFICIAL, Domain.PACKAGE_OFFICIAL, Domain.SERVICE_SYSTEM]
    results = collect_observations(observer, domains)

    assert len(results) == 2
    assert sorted(d.value for d in observer.calls) == ["package-official", "service-system"]


class _BarrierObserver:
    """Only succeeds if both domains are observed at the same time."""

    def __init__(self, parties):
        self.barrier = threading.Barrier(parties, timeout=5)

    def observe(self, domain):
        self.barrier.wait()
        return [ObservedItem(domain=domain, identifier="x")]


def test_collect_observations_runs_concurrently():
    observer = _BarrierObserver(2)
    results = collect_observations(
        observer, [Domain.PACKAGE_OFFICIAL, Domain.DOCKER_NETWORK], max_workers=2
    )
    assert all(o.available for o in results.values())


class _HangingObserver:
    """Never answers for docker-compose."""

    def __init__(self):
        self.release = threading.Event()
        self.threads = []

    def observe(self, domain):
        if domain == Domain.DOCKER_COMPOSE:
            self.threads.append(threading.current_thread())
            self.release.wait(60)
        return [ObservedItem(domain=domain, identifier="x")]


def test_collect_observations_timeout_marks_unavailable():
    observer = _HangingObserver()
    start = time.monotonic()
    results = collect_observations(
        observer, [Domain.PACKAGE_OFFICIAL, Domain.DOCKER_COMPOSE], timeout=0.2
    )
    elapsed = time.monotonic() - start

    assert elapsed < 5
    assert results[Domain.PACKAGE_OFFICIAL].available
    assert not results[Domain.DOCKER_COMPOSE].available
    assert "timed out" in results[Domain.DOCKER_COMPOSE].error
    # The stuck worker must not hold the interpreter open at exit
    assert observer.threads and all(t.daemon for t in observer.threads)
    assert observer.threads[0].is_alive()


def test_hung_domain_does_not_starve_sequential_observation():
    observer = _HangingObserver()
    results = collect_observations(
        observer,
        [Domain.DOCKER_COMPOSE, Domain.PACKAGE_OFFICIAL, Domain.SERVICE_SYSTEM],
        timeout=0.2,
        max_workers=1,
    )

    assert not results[Domain.DOCKER_COMPOSE].available
    assert results[Domain.PACKAGE_OFFICIAL].available
    assert results[Domain.SERVICE_SYSTEM].available
    assert list(results) == [Domain.DOCKER_COMPOSE, Domain.PACKAGE_OFFICIAL, Domain.SERVICE_SYSTEM]


class _SlowObserver:
    def observe(self, domain):
        time.sleep(0.5)
        return [ObservedItem(domain=domain, identifier="late")]


def test_late_answer_after_timeout_is_dropped():
    results = collect_observations(_SlowObserver(), [Domain.DOCKER_VOLUME], timeout=0.1)
    time.sleep(0.6)

    assert not results[Domain.DOCKER_VOLUME].available
    assert results[Domain.DOCKER_VOLUME].items == []


def test_collect_observations_empty():
    assert collect_observations(_CountingObserver(), []) == {}
