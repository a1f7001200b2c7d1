"""Manifest serializer — the canonical text form of a Manifest.

Output is deterministic: entries in domain order then identifier, the state
line first, remaining attributes sorted by name, prune policy last. Parsing
the output yields the same set of entries.
"""

from __future__ import annotations

from hostform.manifest.parser import POLICY_PRUNE_PREFIX
from hostform.models.domain import DOMAIN_ORDER, STATE
from hostform.models.state import Manifest, ManifestEntry

HEADER = (
    "# hostform manifest\n"
    "# Format: <domain>.<sub>.<identifier>[.<field>]=<value>\n"
)


def serialize(manifest: Manifest, header: bool = True) -> str:
    """Render *manifest* as manifest text."""
    lines: list[str] = []
    current = None

    for entry in sorted(manifest.entries, key=lambda e: e.sort_key()):
        if entry.domain != current:
            if current is not None:
                lines.append("")
            lines.append(f"# {entry.domain.value}")
            current = entry.domain
        lines.extend(entry_lines(entry))

    prune = [d for d in DOMAIN_ORDER if d in manifest.prune]
    if prune:
        lines.append("")
        lines.append("# policy")
        lines.extend(f"{POLICY_PRUNE_PREFIX}{d.value}=true" for d in prune)

    body = "\n".join(lines) + "\n" if lines else ""
    return (HEADER + "\n" + body) if header else body


def entry_lines(entry: ManifestEntry) -> list[str]:
    """The declaration lines for a single entry."""
    spec = entry.domain.spec
    base = f"{spec.prefix}.{entry.identifier}"
    attrs = dict(entry.attributes)
    state = attrs.pop(STATE, None)

    lines = []
    if state is not None:
        # A bare line would read the identifier's last segment as a field, or
        # drop a trailing dot from the identifier
        _, _, last = entry.identifier.rpartition(".")
        if spec.bare_state and last not in spec.fields and not entry.identifier.endswith("."):
            lines.append(f"{base}={state}")
        else:
            lines.append(f"{base}.{STATE}={state}")

    for name in sorted(attrs):
        lines.append(f"{base}.{name}={attrs[name]}")
    return lines
