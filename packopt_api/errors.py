# packopt_api/errors.py
"""
Typed failures raised by the packing core.

Normalization problems are clamped away, so everything here is raised either
before packing starts (`InvalidInputError`) or by the engine itself.
`AugmentorUnavailableError` never leaves the augmentor layer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .models import PackingPlan


class PackingError(Exception):
    """Base class for every error raised by packopt_api."""


class InvalidInputError(PackingError, ValueError):
    """The request cannot be packed at all (no items, no catalog)."""


class InfeasibleError(PackingError):
    """
    A specific item cannot be placed in any catalog box, even alone.

    `partial_plan` holds the algorithmic plan for the items that could be
    packed, so callers can still present something (or a flat-rate quote).
    """

    def __init__(
        self,
        item_id: str,
        reason: str = "does not fit in any available box",
        partial_plan: Optional["PackingPlan"] = None,
    ) -> None:
        self.item_id = item_id
        self.reason = reason
        self.partial_plan = partial_plan
        super().__init__(f"Item {item_id!r} {reason}")


class IterationLimitExceeded(PackingError):
    """
    The outer packing loop hit its iteration cap.

    Distinct from InfeasibleError: this points at the heuristic, not the input.
    """

    def __init__(
        self, iterations: int, partial_plan: Optional["PackingPlan"] = None
    ) -> None:
        self.iterations = iterations
        self.partial_plan = partial_plan
        super().__init__(
            f"Packing did not finish within {iterations} iterations"
        )


class AugmentorUnavailableError(PackingError):
    """The strategy augmentor failed or returned an unusable proposal."""


__all__ = [
    "PackingError",
    "InvalidInputError",
    "InfeasibleError",
    "IterationLimitExceeded",
    "AugmentorUnavailableError",
]
