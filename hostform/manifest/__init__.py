"""Manifest text format: parsing, merging of appended fragments, and canonical output."""

from hostform.manifest.parser import ParseResult, load_manifest, parse
from hostform.manifest.serializer import serialize

__all__ = ["ParseResult", "load_manifest", "parse", "serialize"]
