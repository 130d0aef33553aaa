# packopt_api/normalizer.py
"""
Turn raw order lines into individually packable unit items.

Everything here is a pure transform: dimensions and weight are defaulted and
floor-clamped, handling attributes (fragile, stackable, density class) are
derived from the material/category strings. Canonical records from an item
lookup are merged in beforehand by `resolve_lines`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from .models import Dimensions, Item

DEFAULT_DIMENSIONS: Dimensions = (6.0, 4.0, 2.0)
MIN_DIMENSION = 0.5
DEFAULT_WEIGHT = 0.5
MIN_WEIGHT = 0.1

FRAGILE_MATERIALS = ("glass", "ceramic", "crystal", "porcelain")
UNSTACKABLE_KEYWORDS = ("electronic", "fragile", "liquid")

HEAVY_DENSITY = 0.5
MEDIUM_DENSITY = 0.2


@dataclass(frozen=True)
class OrderLine:
    """
    One raw order line as received from the caller.

    `dimensions` is a mapping with length/width/height; values may be numbers
    or numeric strings and any of them may be missing.
    """

    item_id: str
    quantity: Any = 1
    dimensions: Optional[Mapping[str, Any]] = None
    weight: Any = None
    material: Optional[str] = None
    category: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class ItemRecord:
    """Canonical item data returned by an item lookup."""

    dimensions: Optional[Mapping[str, Any]] = None
    weight: Optional[float] = None
    material: Optional[str] = None
    category: Optional[str] = None
    name: Optional[str] = None


class ItemResolver(Protocol):
    """Key-value lookup of canonical item data by item id."""

    def resolve(self, item_id: str) -> Optional[ItemRecord]:
        ...


class InMemoryItemResolver:
    """Dict-backed ItemResolver, mostly for tests and demos."""

    def __init__(self, records: Optional[Mapping[str, ItemRecord]] = None) -> None:
        self._records: Dict[str, ItemRecord] = dict(records or {})

    def resolve(self, item_id: str) -> Optional[ItemRecord]:
        return self._records.get(item_id)


# ----------------------------
# Scalar normalization
# ----------------------------


def _to_float(raw: Any) -> Optional[float]:
    """Parse a number; None for anything missing, non-numeric, zero or NaN."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value) or value == 0:
        return None
    return value


def normalize_dimensions(raw: Optional[Mapping[str, Any]]) -> Dimensions:
    """
    Return clamped (length, width, height).

    A missing mapping gives the fallback cuboid; a missing or unusable
    component falls back to its own default. Every side is at least 0.5.
    """
    if not raw:
        return DEFAULT_DIMENSIONS
    dims = []
    for key, default in zip(("length", "width", "height"), DEFAULT_DIMENSIONS):
        value = _to_float(raw.get(key))
        if value is None:
            value = default
        dims.append(max(value, MIN_DIMENSION))
    return dims[0], dims[1], dims[2]


def normalize_weight(raw: Any) -> float:
    value = _to_float(raw)
    if value is None:
        value = DEFAULT_WEIGHT
    return max(value, MIN_WEIGHT)


def normalize_quantity(raw: Any) -> int:
    """Quantities that are missing, malformed or <= 0 produce no units."""
    if raw is None or isinstance(raw, bool):
        return 0
    try:
        value = int(float(raw))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(value, 0)


# ----------------------------
# Derived attributes
# ----------------------------


def is_fragile(material: Optional[str]) -> bool:
    if not material:
        return False
    lowered = material.lower()
    return any(keyword in lowered for keyword in FRAGILE_MATERIALS)


def is_stackable(material: Optional[str], category: Optional[str]) -> bool:
    if is_fragile(material):
        return False
    for text in (material, category):
        if text and any(keyword in text.lower() for keyword in UNSTACKABLE_KEYWORDS):
            return False
    return True


def density_class(weight: float, volume: float) -> str:
    density = weight / volume if volume > 0 else math.inf
    if density > HEAVY_DENSITY:
        return "heavy"
    if density > MEDIUM_DENSITY:
        return "medium"
    return "light"


# ----------------------------
# Lines -> items
# ----------------------------


def resolve_lines(
    lines: Iterable[OrderLine], resolver: Optional[ItemResolver]
) -> List[OrderLine]:
    """
    Fill the gaps of each line from the resolver's canonical record.

    Values supplied on the line always win; an unknown item id leaves the line
    as it is so the normalizer defaults apply.
    """
    lines = list(lines)
    if resolver is None:
        return lines

    resolved: List[OrderLine] = []
    for line in lines:
        record = resolver.resolve(line.item_id)
        if record is None:
            resolved.append(line)
            continue
        resolved.append(
            replace(
                line,
                dimensions=line.dimensions or record.dimensions,
                weight=line.weight if line.weight is not None else record.weight,
                material=line.material or record.material,
                category=line.category or record.category,
                name=line.name or record.name,
            )
        )
    return resolved


def normalize_line(line: OrderLine, line_index: int) -> List[Item]:
    """Expand one order line into its unit items."""
    length, width, height = normalize_dimensions(line.dimensions)
    weight = normalize_weight(line.weight)
    volume = length * width * height
    fragile = is_fragile(line.material)
    stackable = is_stackable(line.material, line.category)
    density = density_class(weight, volume)
    name = line.name or line.category or line.item_id

    return [
        Item(
            id=f"{line.item_id}_{line_index}_{unit}",
            length=length,
            width=width,
            height=height,
            weight=weight,
            fragile=fragile,
            stackable=stackable,
            density_class=density,
            product_id=line.item_id,
            name=name,
        )
        for unit in range(normalize_quantity(line.quantity))
    ]


def normalize_items(lines: Iterable[OrderLine]) -> List[Item]:
    """Flat list of unit items, one per unit of quantity, in line order."""
    items: List[Item] = []
    for index, line in enumerate(lines):
        items.extend(normalize_line(line, index))
    return items


__all__ = [
    "OrderLine",
    "ItemRecord",
    "ItemResolver",
    "InMemoryItemResolver",
    "normalize_dimensions",
    "normalize_weight",
    "normalize_quantity",
    "is_fragile",
    "is_stackable",
    "density_class",
    "resolve_lines",
    "normalize_line",
    "normalize_items",
]
