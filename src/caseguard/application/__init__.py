"""
Application layer for the coordination core.

Contains the services that coordinate domain objects over a case store.
"""

from caseguard.application.allocator import SourceAllocator
from caseguard.application.gates import Evaluation, GateEvaluator
from caseguard.application.leads import LeadBoard
from caseguard.application.merger import BatchMerger

__all__ = [
    "BatchMerger",
    "Evaluation",
    "GateEvaluator",
    "LeadBoard",
    "SourceAllocator",
]
