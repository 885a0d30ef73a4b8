"""
Composite guards - Guard composition patterns.
"""

from caseguard.guards.composite.base import CompositeEvidenceGuard

__all__ = [
    "CompositeEvidenceGuard",
]
