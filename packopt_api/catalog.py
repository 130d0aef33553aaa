# packopt_api/catalog.py
"""
Read-only catalog of shipping containers.

A `BoxCatalog` is built once and shared by every request; nothing here
mutates after construction, so no locking is needed. `DEFAULT_CATALOG` holds
the standard envelope/box line-up (inches, pounds, USD).
"""

from __future__ import annotations

from typing import Iterable, Iterator, List, Tuple

from .errors import InvalidInputError
from .models import BoxType


class BoxCatalog:
    """Immutable ordered sequence of BoxType."""

    __slots__ = ("_box_types",)

    def __init__(self, box_types: Iterable[BoxType]) -> None:
        box_types = tuple(box_types)
        if not box_types:
            raise InvalidInputError("Box catalog must contain at least one box type")
        seen = set()
        for bt in box_types:
            if bt.id in seen:
                raise InvalidInputError(f"Duplicate box type id {bt.id!r} in catalog")
            seen.add(bt.id)
        self._box_types: Tuple[BoxType, ...] = box_types

    @property
    def box_types(self) -> Tuple[BoxType, ...]:
        return self._box_types

    def __iter__(self) -> Iterator[BoxType]:
        return iter(self._box_types)

    def __len__(self) -> int:
        return len(self._box_types)

    def __repr__(self) -> str:
        return f"BoxCatalog({[bt.id for bt in self._box_types]!r})"

    def ordered(self, prefer_envelope: bool = False) -> Tuple[BoxType, ...]:
        """
        Box types in trial order.

        With `prefer_envelope` envelopes move to the front (keeping their
        relative order); no candidate is ever dropped.
        """
        if not prefer_envelope:
            return self._box_types
        envelopes = [bt for bt in self._box_types if bt.is_envelope]
        others = [bt for bt in self._box_types if not bt.is_envelope]
        return tuple(envelopes + others)

    def get(self, box_id: str) -> BoxType:
        for bt in self._box_types:
            if bt.id == box_id:
                return bt
        raise KeyError(box_id)

    def largest(self) -> BoxType:
        """Largest box by interior volume (ties: higher weight capacity, then catalog order)."""
        return max(self._box_types, key=lambda bt: (bt.volume, bt.max_weight))

    def most_expensive(self) -> BoxType:
        return max(self._box_types, key=lambda bt: bt.cost)


DEFAULT_BOX_TYPES: Tuple[BoxType, ...] = (
    BoxType("envelope", 12, 9, 1, max_weight=1, cost=3.00, category="envelope", name="Padded Envelope"),
    BoxType("small", 10, 7, 4, max_weight=3, cost=4.50, name="Small Box"),
    BoxType("medium", 14, 10, 6, max_weight=10, cost=6.50, name="Medium Box"),
    BoxType("large", 18, 14, 8, max_weight=20, cost=9.00, name="Large Box"),
    BoxType("xlarge", 24, 18, 12, max_weight=40, cost=14.00, name="Extra Large Box"),
)

DEFAULT_CATALOG = BoxCatalog(DEFAULT_BOX_TYPES)


def list_box_types(catalog: BoxCatalog = DEFAULT_CATALOG) -> List[BoxType]:
    """Return the catalog's box types, in catalog order."""
    return list(catalog.box_types)


__all__ = ["BoxCatalog", "DEFAULT_BOX_TYPES", "DEFAULT_CATALOG", "list_box_types"]
