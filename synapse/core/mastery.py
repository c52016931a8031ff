"""
Core Mastery Module.

Provides the coarse mastery stage attached to every vocabulary item.

The stage is owned by the linguistic/mastery subsystem. The scheduling
engine only reads it (solid items are never due) and never promotes or
demotes an item.
"""

from __future__ import annotations

from enum import Enum


class MasteryStage(str, Enum):
    """
    Mastery stage of a vocabulary item.

    Progression: GHOST (discovered) -> LIQUID (learning) -> SOLID (mastered).
    """

    GHOST = "ghost"
    LIQUID = "liquid"
    SOLID = "solid"

    @classmethod
    def parse(cls, value: str | MasteryStage) -> MasteryStage:
        """
        Parse a stage from user or database input.

        Args:
            value: Stage name, case-insensitive, or a MasteryStage

        Returns:
            Corresponding MasteryStage

        Raises:
            ValueError: If the value is not a known stage
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(stage.value for stage in cls)
            raise ValueError(f"Unknown mastery stage {value!r} (expected one of: {valid})") from None

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return self.value.title()

    @property
    def emoji(self) -> str:
        """Status glyph for CLI display."""
        return {
            MasteryStage.GHOST: "○",
            MasteryStage.LIQUID: "◑",
            MasteryStage.SOLID: "●",
        }[self]

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return {
            MasteryStage.GHOST: "dim",
            MasteryStage.LIQUID: "cyan",
            MasteryStage.SOLID: "green",
        }[self]
