"""Reconciliation primitives — the path from drift to converged state.

This package provides:
- Diffing: missing, changed and extra resources per domain
- Planning: ordered install/repair/remove steps in fixed domain order
- Exclusion: user patterns that keep steps out of a plan
- Execution: dry-run or real application through an external applier
"""
