"""Manifest parser — line-oriented declarations into a typed Manifest.

Grammar, one declaration per line::

    <domain prefix>.<identifier>[.<field>]=<value>
    policy.prune.<domain>=<true|false>

Blank lines and ``#`` comments are skipped. When the last dotted segment of a
key is a field the domain knows, it names the attribute; otherwise the whole
remainder is the identifier and the value is its ``state``. Fragments appended
over time are merged: a later declaration of an attribute the entry already
holds replaces the earlier entry as a whole and is reported as a duplicate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from hostform.errors import ManifestParseError
from hostform.models.domain import DOMAIN_SPECS, STATE, Domain, domain_for_key, parse_domain
from hostform.models.state import Manifest, ManifestEntry, ParseWarning

logger = logging.getLogger(__name__)

POLICY_PRUNE_PREFIX = "policy.prune."

_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}
_PREFIXES = {spec.prefix for spec in DOMAIN_SPECS.values()}


@dataclass
class ParseResult:
    """A parsed manifest and everything the parser tolerated along the way."""

    manifest: Manifest
    warnings: list[ParseWarning] = field(default_factory=list)

    @property
    def duplicates(self) -> list[ParseWarning]:
        return [w for w in self.warnings if w.kind == "duplicate"]


def parse(text: str, strict: bool = False, source: str = "") -> ParseResult:
    """Parse manifest text.

    Args:
        text: Manifest content.
        strict: Raise ManifestParseError on malformed lines and record
            unrecognized lines as warnings.
        source: Name used in warnings and errors (usually the file path).
    """
    builder = ManifestBuilder(strict=strict)
    builder.feed(text, source=source)
    return builder.result()


def load_manifest(paths: str | Path | Iterable[str | Path], strict: bool = False) -> ParseResult:
    """Read and merge one or more manifest files, in order."""
    if isinstance(paths, (str, Path)):
        paths = [paths]

    builder = ManifestBuilder(strict=strict)
    for path in paths:
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestParseError(f"cannot read manifest: {e}", source=str(path)) from e
        builder.feed(text, source=str(path))
    return builder.result()


class ManifestBuilder:
    """Accumulates declarations from one or more fragments."""

    def __init__(self, strict: bool = False):
        self.strict = strict
        self.warnings: list[ParseWarning] = []
        self._entries: dict[tuple[Domain, str], dict[str, str]] = {}
        self._origins: dict[tuple[Domain, str], str] = {}
        self._prune: dict[Domain, bool] = {}

    def feed(self, text: str, source: str = "") -> None:
        for line_no, raw in enumerate(text.splitlines(), start=1):
            self._feed_line(raw, line_no, source)

    def result(self) -> ParseResult:
        entries = [
            ManifestEntry(domain=domain, identifier=identifier, attributes=dict(attrs))
            for (domain, identifier), attrs in self._entries.items()
        ]
        prune = [domain for domain, enabled in self._prune.items() if enabled]
        return ParseResult(manifest=Manifest.build(entries, prune), warnings=list(self.warnings))

    # ── Lines ────────────────────────────────────────────────────────

    def _feed_line(self, raw: str, line_no: int, source: str) -> None:
        line = raw.strip()
        if not line or line.startswith("#"):
            return

        key, sep, value = line.partition("=")
        key = key.strip()
        value = value.strip()

        if key.startswith(POLICY_PRUNE_PREFIX):
            self._feed_policy(key, sep, value, line, line_no, source)
            return

        if key in _PREFIXES:
            self._malformed("missing identifier", line, line_no, source)
            return

        match = domain_for_key(key)
        if match is None:
            if self.strict:
                self._warn("unrecognized", f"ignored line: {line}", line_no, source)
            else:
                logger.debug("Ignoring unrecognized manifest line %s:%d", source, line_no)
            return

        if not sep:
            self._malformed("missing '='", line, line_no, source)
            return

        domain, rest = match
        identifier, attr = _split_field(domain, rest)
        if not identifier:
            self._malformed("empty identifier", line, line_no, source)
            return
        if not value:
            self._malformed("empty value", line, line_no, source)
            return

        self._declare(domain, identifier, attr, value, line_no, source)

    def _feed_policy(
        self, key: str, sep: str, value: str, line: str, line_no: int, source: str
    ) -> None:
        name = key[len(POLICY_PRUNE_PREFIX):]
        try:
            domain = parse_domain(name)
        except ValueError as e:
            self._malformed(str(e), line, line_no, source)
            return

        lowered = value.lower()
        if not sep or lowered not in _TRUE | _FALSE:
            self._malformed("prune policy must be true or false", line, line_no, source)
            return

        if domain in self._prune:
            self._warn(
                "duplicate",
                f"prune policy for {domain.value} redeclared; last value wins",
                line_no,
                source,
            )
        self._prune[domain] = lowered in _TRUE

    def _declare(
        self, domain: Domain, identifier: str, attr: str, value: str, line_no: int, source: str
    ) -> None:
        slot = (domain, identifier)
        here = f"{source or '<manifest>'}:{line_no}"
        attrs = self._entries.get(slot)

        if attrs is not None and attr in attrs:
            self._warn(
                "duplicate",
                f"{domain.value}.{identifier} redeclared; "
                f"earlier declaration at {self._origins[slot]} discarded",
                line_no,
                source,
            )
            attrs = None

        if attrs is None:
            attrs = {}
            self._entries[slot] = attrs
            self._origins[slot] = here

        attrs[attr] = value

    # ── Diagnostics ──────────────────────────────────────────────────

    def _warn(self, kind: str, message: str, line_no: int, source: str) -> None:
        warning = ParseWarning(kind=kind, message=message, line_no=line_no, source=source)
        logger.warning("%s", warning)
        self.warnings.append(warning)

    def _malformed(self, reason: str, line: str, line_no: int, source: str) -> None:
        if self.strict:
            raise ManifestParseError(f"{reason}: {line}", line_no=line_no, line=line, source=source)
        self._warn("malformed", f"{reason}: {line}", line_no, source)


def _split_field(domain: Domain, rest: str) -> tuple[str, str]:
    """Split ``identifier[.field]`` using the fields the domain knows."""
    # Older inventories wrote "package.official.vim.=required"
    if rest.endswith("."):
        return rest[:-1], STATE
    head, dot, last = rest.rpartition(".")
    if dot and last in domain.spec.fields:
        return head, last
    return rest, STATE
