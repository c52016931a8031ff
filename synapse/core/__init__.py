"""
Core Module - Shared domain models.

Components:
- mastery: Coarse mastery stage shown alongside each vocabulary item
"""

from synapse.core.mastery import MasteryStage

__all__ = [
    "MasteryStage",
]
