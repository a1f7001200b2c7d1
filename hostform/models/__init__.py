"""Typed model of declared and observed host state."""

from hostform.models.domain import (
    DOMAIN_ORDER,
    DOMAIN_SPECS,
    Domain,
    DomainGroup,
    DomainSpec,
    Mode,
    domains_for_mode,
    parse_domain,
)
from hostform.models.severity import Severity
from hostform.models.state import Manifest, ManifestEntry, ObservedItem, ParseWarning

__all__ = [
    "DOMAIN_ORDER",
    "DOMAIN_SPECS",
    "Domain",
    "DomainGroup",
    "DomainSpec",
    "Manifest",
    "ManifestEntry",
    "Mode",
    "ObservedItem",
    "ParseWarning",
    "Severity",
    "domains_for_mode",
    "parse_domain",
]
