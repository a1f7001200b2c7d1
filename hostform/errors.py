"""Error taxonomy for a reconciliation run.

Parse, exclusion and configuration errors are fatal and stop a run before any
report is produced. Observation and applier errors are collected into the
report and never raised past the executor.
"""

from __future__ import annotations


class HostformError(Exception):
    """Base class for all hostform errors."""


class ManifestParseError(HostformError):
    """A manifest line could not be parsed (strict mode)."""

    def __init__(self, message: str, line_no: int = 0, line: str = "", source: str = ""):
        self.line_no = line_no
        self.line = line
        self.source = source
        location = f"{source or '<manifest>'}:{line_no}" if line_no else (source or "<manifest>")
        super().__init__(f"{location}: {message}")


class ObservationUnavailable(HostformError):
    """The external state source for a domain could not be reached."""

    def __init__(self, domain, reason: str = ""):
        self.domain = domain
        self.reason = reason
        name = getattr(domain, "value", domain)
        super().__init__(f"{name}: {reason}" if reason else f"{name}: observation unavailable")


class ApplierFailure(HostformError):
    """A plan step could not be applied."""


class ExclusionPatternInvalid(HostformError):
    """An exclusion pattern is malformed."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid exclusion pattern {pattern!r}: {reason}")


class ConfigError(HostformError):
    """Settings could not be loaded or a configured component could not be imported."""
