"""Resource domains and the per-domain rules the rest of hostform relies on.

A domain decides three things: how its lines look in a manifest (the dotted
prefix and the fields it knows), which attributes are compared when both sides
have an entry, and where its steps sit in the execution order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Domain(Enum):
    """Closed set of managed resource categories, in execution order."""

    PACKAGE_OFFICIAL = "package-official"
    PACKAGE_AUR = "package-aur"
    SERVICE_SYSTEM = "service-system"
    SERVICE_USER = "service-user"
    SERVICE_MASKED = "service-masked"
    CONFIG_FILE = "config-file"
    DOCKER_NETWORK = "docker-network"
    DOCKER_VOLUME = "docker-volume"
    DOCKER_COMPOSE = "docker-compose"

    @property
    def spec(self) -> DomainSpec:
        return DOMAIN_SPECS[self]

    @property
    def order(self) -> int:
        return DOMAIN_ORDER.index(self)


class DomainGroup(Enum):
    """Coarse grouping used by the mode selector."""

    SYSTEM = "system"
    DOCKER = "docker"


class Mode(Enum):
    """Which domain groups a run covers."""

    SYSTEM = "system"
    DOCKER = "docker"
    ALL = "all"


STATE = "state"


@dataclass(frozen=True)
class DomainSpec:
    """Static description of a domain."""

    prefix: str  # Dotted manifest prefix, e.g. "package.official"
    group: DomainGroup
    fields: frozenset[str] = frozenset({STATE})
    comparable: tuple[str, ...] = ()
    # Observed values that are a mismatch whatever the manifest declares
    forbidden: dict[str, frozenset[str]] = field(default_factory=dict)
    bare_state: bool = False  # Serialize state as "prefix.id=value"
    verbs: tuple[str, str, str] = ("install", "remove", "repair")


DOMAIN_SPECS: dict[Domain, DomainSpec] = {
    Domain.PACKAGE_OFFICIAL: DomainSpec(
        prefix="package.official",
        group=DomainGroup.SYSTEM,
        fields=frozenset({STATE, "version"}),
        comparable=("version",),
        bare_state=True,
    ),
    Domain.PACKAGE_AUR: DomainSpec(
        prefix="package.aur",
        group=DomainGroup.SYSTEM,
        fields=frozenset({STATE, "version"}),
        comparable=("version",),
        bare_state=True,
    ),
    Domain.SERVICE_SYSTEM: DomainSpec(
        prefix="service.system",
        group=DomainGroup.SYSTEM,
        fields=frozenset({STATE, "active-state"}),
        comparable=("active-state",),
        forbidden={"active-state": frozenset({"failed"})},
        bare_state=True,
        verbs=("enable", "disable", "repair"),
    ),
    Domain.SERVICE_USER: DomainSpec(
        prefix="service.user",
        group=DomainGroup.SYSTEM,
        fields=frozenset({STATE, "active-state"}),
        comparable=("active-state",),
        forbidden={"active-state": frozenset({"failed"})},
        bare_state=True,
        verbs=("enable", "disable", "repair"),
    ),
    Domain.SERVICE_MASKED: DomainSpec(
        prefix="service.masked",
        group=DomainGroup.SYSTEM,
        bare_state=True,
        verbs=("mask", "unmask", "repair"),
    ),
    Domain.CONFIG_FILE: DomainSpec(
        prefix="config.system",
        group=DomainGroup.SYSTEM,
        fields=frozenset({STATE, "source", "checksum", "mode", "owner"}),
        comparable=("checksum", "mode", "owner"),
        verbs=("restore", "remove", "restore"),
    ),
    Domain.DOCKER_NETWORK: DomainSpec(
        prefix="docker.network",
        group=DomainGroup.DOCKER,
        fields=frozenset({STATE, "driver"}),
        comparable=("driver",),
        verbs=("create", "remove", "recreate"),
    ),
    Domain.DOCKER_VOLUME: DomainSpec(
        prefix="docker.volume",
        group=DomainGroup.DOCKER,
        fields=frozenset({STATE, "driver"}),
        comparable=("driver",),
        verbs=("create", "remove", "recreate"),
    ),
    Domain.DOCKER_COMPOSE: DomainSpec(
        prefix="docker.compose",
        group=DomainGroup.DOCKER,
        fields=frozenset({STATE, "file"}),
        verbs=("deploy", "tear down", "redeploy"),
    ),
}

# Later domains assume earlier ones exist (services need packages, compose
# projects need their networks and volumes).
DOMAIN_ORDER: tuple[Domain, ...] = tuple(Domain)


def domains_for_mode(mode: Mode | str) -> list[Domain]:
    """Return the domains a run in *mode* covers, in execution order."""
    mode = Mode(mode)
    if mode == Mode.ALL:
        return list(DOMAIN_ORDER)
    group = DomainGroup(mode.value)
    return [d for d in DOMAIN_ORDER if d.spec.group == group]


def domain_for_key(key: str) -> tuple[Domain, str] | None:
    """Split a dotted manifest key into its domain and the remainder.

    ``"package.official.vim"`` gives ``(Domain.PACKAGE_OFFICIAL, "vim")``.
    Returns None when no domain prefix matches.
    """
    for domain, spec in DOMAIN_SPECS.items():
        head = spec.prefix + "."
        if key.startswith(head):
            return domain, key[len(head):]
    return None


def parse_domain(value: str) -> Domain:
    """Resolve a domain from its name (``package-official``) or prefix (``package.official``)."""
    try:
        return Domain(value)
    except ValueError:
        pass
    for domain, spec in DOMAIN_SPECS.items():
        if spec.prefix == value:
            return domain
    valid = ", ".join(d.value for d in DOMAIN_ORDER)
    raise ValueError(f"Unknown domain '{value}'. Must be one of: {valid}")
