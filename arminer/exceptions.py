"""Errors and warnings raised by arminer."""

from __future__ import annotations


class InvalidInputError(ValueError):
    """The transaction corpus cannot be mined (empty, or malformed items)."""


class InvalidParameterError(ValueError):
    """A mining parameter is outside its allowed range."""


class MiningCancelledError(RuntimeError):
    """Raised when a mining run is cancelled at a level boundary."""

    def __init__(self, level: int) -> None:
        super().__init__(f"Mining cancelled before level {level} was counted.")
        self.level = level


class EmptyResultWarning(UserWarning):
    """Thresholds are too strict: the run produced no itemsets or no rules.

    This is not a failure. Lower ``support_threshold`` or
    ``confidence_threshold`` and mine again.
    """
