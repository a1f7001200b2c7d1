"""hostform — reconcile a host's declared state against what is actually there."""

__version__ = "0.3.0"
