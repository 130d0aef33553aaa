# packopt_api/models.py
"""
Core datamodels for packopt_api.

This module provides:
- Frozen dataclass models used by the packing engine (geometry and weight).
- Pydantic models used for API input/output (serialization & validation).
- Small conversion helpers between dataclasses and pydantic models.

Keep dataclasses free of framework-specific dependencies so they can be used
directly by the packing algorithm. Pydantic models are thin wrappers for
validation/IO when exposing the functionality through FastAPI. Wire names are
camelCase; Python attributes stay snake_case.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Dimensions = Tuple[float, float, float]
Position = Tuple[float, float, float]

DensityClass = Literal["light", "medium", "heavy"]
BoxCategory = Literal["envelope", "box"]


def _require_positive(name: str, value: float) -> float:
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return float(value)


# ----------------------------
# Dataclass core models
# ----------------------------


@dataclass(frozen=True)
class Item:
    """
    One packable unit, produced by the normalizer.

    Attributes:
    - id: unique within a packing request (e.g. "MUG-1_0_2")
    - length, width, height: clamped positive dimensions
    - weight: clamped positive weight
    - fragile, stackable, density_class: derived handling attributes
    - product_id: the order line's item id this unit came from
    - name: optional human readable name
    """

    id: str
    length: float
    width: float
    height: float
    weight: float
    fragile: bool = False
    stackable: bool = True
    density_class: DensityClass = "light"
    product_id: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "length", _require_positive("length", self.length))
        object.__setattr__(self, "width", _require_positive("width", self.width))
        object.__setattr__(self, "height", _require_positive("height", self.height))
        object.__setattr__(self, "weight", _require_positive("weight", self.weight))
        if self.product_id is None:
            object.__setattr__(self, "product_id", self.id)
        if self.name is None:
            object.__setattr__(self, "name", self.product_id)

    @property
    def dimensions(self) -> Dimensions:
        return self.length, self.width, self.height

    @property
    def volume(self) -> float:
        """Geometric volume (length * width * height)."""
        return self.length * self.width * self.height


@dataclass(frozen=True)
class BoxType:
    """
    Static catalog entry for a shipping container.

    - id: unique identifier within a catalog
    - inner_length, inner_width, inner_height: usable interior dimensions
    - max_weight: weight capacity
    - cost: monetary cost of shipping one container of this type
    - category: "envelope" or "box"
    - name: optional human-readable name
    """

    id: str
    inner_length: float
    inner_width: float
    inner_height: float
    max_weight: float
    cost: float
    category: BoxCategory = "box"
    name: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "inner_length", _require_positive("inner_length", self.inner_length)
        )
        object.__setattr__(
            self, "inner_width", _require_positive("inner_width", self.inner_width)
        )
        object.__setattr__(
            self, "inner_height", _require_positive("inner_height", self.inner_height)
        )
        object.__setattr__(
            self, "max_weight", _require_positive("max_weight", self.max_weight)
        )
        if self.cost < 0:
            raise ValueError(f"cost cannot be negative, got {self.cost!r}")
        object.__setattr__(self, "cost", float(self.cost))
        if self.category not in ("envelope", "box"):
            raise ValueError(f"category must be 'envelope' or 'box', got {self.category!r}")
        if self.name is None:
            object.__setattr__(self, "name", self.id)

    @property
    def dimensions(self) -> Dimensions:
        """Return inner dimensions (length, width, height)."""
        return self.inner_length, self.inner_width, self.inner_height

    @property
    def volume(self) -> float:
        """Usable interior volume."""
        return self.inner_length * self.inner_width * self.inner_height

    @property
    def max_dimension(self) -> float:
        return max(self.dimensions)

    @property
    def is_envelope(self) -> bool:
        return self.category == "envelope"


@dataclass(frozen=True)
class FreeSpace:
    """
    Axis-aligned cuboid of unused capacity inside one box being packed.

    (x, y, z) is the minimum corner; length/width/height run along x/y/z.
    """

    x: float
    y: float
    z: float
    length: float
    width: float
    height: float

    @classmethod
    def for_box(cls, box_type: BoxType) -> "FreeSpace":
        return cls(0.0, 0.0, 0.0, *box_type.dimensions)

    @property
    def origin(self) -> Position:
        return self.x, self.y, self.z

    @property
    def dimensions(self) -> Dimensions:
        return self.length, self.width, self.height

    @property
    def volume(self) -> float:
        return self.length * self.width * self.height

    def fits(self, dims: Dimensions) -> bool:
        """True if `dims` fits as given (no rotation)."""
        l, w, h = dims
        return l <= self.length and w <= self.width and h <= self.height


@dataclass(frozen=True)
class PackingPreferences:
    """
    Packing constraints derived from the item set by the policy engine.

    None means "no constraint" for the optional limits.
    """

    prefer_envelope: bool = False
    max_items_per_box_fragile: Optional[int] = None
    max_weight_per_box: Optional[float] = None


@dataclass(frozen=True)
class PlacedItem:
    """
    An item placed inside a packed box.

    - position: (x, y, z) of the item's minimum corner inside the box
    - dimensions: (l, w, h) actually used, i.e. after orientation
    """

    item: Item
    position: Position
    dimensions: Dimensions

    @property
    def item_id(self) -> str:
        return self.item.id


@dataclass(frozen=True)
class PackedBox:
    """
    A committed container: box type plus its ordered placements.

    Utilizations are percentages. Emergency boxes were force-filled without a
    geometric placement and carry a fixed nominal utilization.
    """

    box_type: BoxType
    placements: Tuple[PlacedItem, ...]
    volume_utilization: float
    weight_utilization: float
    emergency: bool = False

    @property
    def items(self) -> Tuple[Item, ...]:
        return tuple(p.item for p in self.placements)

    @property
    def item_ids(self) -> List[str]:
        return [p.item.id for p in self.placements]

    @property
    def weight_total(self) -> float:
        return sum(p.item.weight for p in self.placements)

    @property
    def packed_volume(self) -> float:
        return sum(p.item.volume for p in self.placements)

    @property
    def cost(self) -> float:
        return self.box_type.cost


@dataclass(frozen=True)
class PlanEvaluation:
    """Derived and comparative metrics for a finished plan."""

    total_cost: float
    box_count: int
    item_count: int
    average_utilization: float
    weight_utilization: float
    individual_shipping_cost: float
    savings_vs_individual: float
    single_box_cost: float
    savings_vs_single_box: float
    efficiency_pct: float
    total_weight: float
    chargeable_weight: float


@dataclass(frozen=True)
class PackingPlan:
    """
    Ordered list of packed boxes plus run metadata.

    `source` tells whether the plan came from the algorithm or was accepted
    from the strategy augmentor. `evaluation` is attached last, by the
    service, and never changes the boxes.
    """

    boxes: Tuple[PackedBox, ...] = ()
    iteration_count: int = 0
    processing_duration_ms: int = 0
    source: str = "algorithmic"
    evaluation: Optional[PlanEvaluation] = None

    @property
    def total_cost(self) -> float:
        return sum(b.cost for b in self.boxes)

    @property
    def average_utilization(self) -> float:
        if not self.boxes:
            return 0.0
        return sum(b.volume_utilization for b in self.boxes) / len(self.boxes)

    @property
    def weight_utilization(self) -> float:
        if not self.boxes:
            return 0.0
        return sum(b.weight_utilization for b in self.boxes) / len(self.boxes)

    @property
    def item_count(self) -> int:
        return sum(len(b.placements) for b in self.boxes)

    @property
    def item_ids(self) -> List[str]:
        return [item_id for b in self.boxes for item_id in b.item_ids]

    def with_evaluation(self, evaluation: PlanEvaluation) -> "PackingPlan":
        return replace(self, evaluation=evaluation)


# ----------------------------
# Pydantic models for API surface
# ----------------------------


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Input models (Create / Request)


class DimensionsIn(CamelModel):
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None


class OrderLineCreate(CamelModel):
    item_id: str = Field(..., description="Catalog id of the purchased item")
    quantity: int = Field(1, description="Units ordered; <= 0 contributes nothing")
    dimensions: Optional[DimensionsIn] = Field(None)
    weight: Optional[float] = Field(None)
    material: Optional[str] = Field(None)
    category: Optional[str] = Field(None)
    name: Optional[str] = Field(None)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "itemId": "MUG-01",
                "quantity": 2,
                "dimensions": {"length": 5.0, "width": 4.0, "height": 4.5},
                "weight": 0.9,
                "material": "ceramic",
                "category": "kitchen",
                "name": "Coffee Mug",
            }
        },
    )


class BoxTypeCreate(CamelModel):
    id: str = Field(..., description="Unique id for the box type")
    inner_length: float = Field(..., gt=0)
    inner_width: float = Field(..., gt=0)
    inner_height: float = Field(..., gt=0)
    max_weight: float = Field(..., gt=0)
    cost: float = Field(..., ge=0)
    category: BoxCategory = Field("box")
    name: Optional[str] = Field(None)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "medium",
                "innerLength": 14.0,
                "innerWidth": 10.0,
                "innerHeight": 6.0,
                "maxWeight": 10.0,
                "cost": 6.5,
                "category": "box",
                "name": "Medium Box",
            }
        },
    )


class OptimizeRequest(CamelModel):
    items: List[OrderLineCreate]
    destination: Optional[Dict[str, Any]] = None
    box_types: Optional[List[BoxTypeCreate]] = Field(
        None, description="Override the default catalog for this request"
    )


# Output models (Read / Response)


class BoxTypeRead(CamelModel):
    id: str
    name: Optional[str]
    inner_length: float
    inner_width: float
    inner_height: float
    max_weight: float
    cost: float
    category: str
    volume: float


class PlacementRead(CamelModel):
    item_id: str
    name: Optional[str]
    position: Tuple[float, float, float]
    dimensions: Tuple[float, float, float]
    fragile: bool


class PackedBoxRead(CamelModel):
    box_type: str
    box_name: Optional[str]
    items: List[str]
    placements: List[PlacementRead]
    weight_total: float
    volume_utilization: float
    weight_utilization: float
    cost: float
    emergency: bool = False


class PlanEvaluationRead(CamelModel):
    total_cost: float
    box_count: int
    item_count: int
    average_utilization: float
    weight_utilization: float
    individual_shipping_cost: float
    savings_vs_individual: float
    single_box_cost: float
    savings_vs_single_box: float
    efficiency_pct: float
    total_weight: float
    chargeable_weight: float


class PackingPlanRead(CamelModel):
    boxes: List[PackedBoxRead]
    total_cost: float
    average_utilization: float
    weight_utilization: float
    iteration_count: int
    processing_duration_ms: int
    source: str = "algorithmic"
    evaluation: Optional[PlanEvaluationRead] = None


# ----------------------------
# Conversion helpers
# ----------------------------


def boxtypecreate_to_dataclass(bc: BoxTypeCreate) -> BoxType:
    """Convert BoxTypeCreate (pydantic) to BoxType dataclass."""
    return BoxType(
        id=bc.id,
        inner_length=bc.inner_length,
        inner_width=bc.inner_width,
        inner_height=bc.inner_height,
        max_weight=bc.max_weight,
        cost=bc.cost,
        category=bc.category,
        name=bc.name or bc.id,
    )


def boxtype_to_read(bt: BoxType) -> BoxTypeRead:
    return BoxTypeRead(
        id=bt.id,
        name=bt.name,
        inner_length=bt.inner_length,
        inner_width=bt.inner_width,
        inner_height=bt.inner_height,
        max_weight=bt.max_weight,
        cost=bt.cost,
        category=bt.category,
        volume=bt.volume,
    )


def packed_box_to_read(pb: PackedBox) -> PackedBoxRead:
    """Convert a PackedBox dataclass to its wire representation."""
    return PackedBoxRead(
        box_type=pb.box_type.id,
        box_name=pb.box_type.name,
        items=pb.item_ids,
        placements=[
            PlacementRead(
                item_id=p.item.id,
                name=p.item.name,
                position=p.position,
                dimensions=p.dimensions,
                fragile=p.item.fragile,
            )
            for p in pb.placements
        ],
        weight_total=round(pb.weight_total, 2),
        volume_utilization=round(pb.volume_utilization, 1),
        weight_utilization=round(pb.weight_utilization, 1),
        cost=round(pb.cost, 2),
        emergency=pb.emergency,
    )


def evaluation_to_read(ev: PlanEvaluation) -> PlanEvaluationRead:
    return PlanEvaluationRead(
        total_cost=round(ev.total_cost, 2),
        box_count=ev.box_count,
        item_count=ev.item_count,
        average_utilization=round(ev.average_utilization, 1),
        weight_utilization=round(ev.weight_utilization, 1),
        individual_shipping_cost=round(ev.individual_shipping_cost, 2),
        savings_vs_individual=round(ev.savings_vs_individual, 2),
        single_box_cost=round(ev.single_box_cost, 2),
        savings_vs_single_box=round(ev.savings_vs_single_box, 2),
        efficiency_pct=round(ev.efficiency_pct, 1),
        total_weight=round(ev.total_weight, 2),
        chargeable_weight=round(ev.chargeable_weight, 2),
    )


def plan_to_read(plan: PackingPlan) -> PackingPlanRead:
    """Convenience helper to create the wire PackingPlanRead from a PackingPlan."""
    return PackingPlanRead(
        boxes=[packed_box_to_read(b) for b in plan.boxes],
        total_cost=round(plan.total_cost, 2),
        average_utilization=round(plan.average_utilization, 1),
        weight_utilization=round(plan.weight_utilization, 1),
        iteration_count=plan.iteration_count,
        processing_duration_ms=plan.processing_duration_ms,
        source=plan.source,
        evaluation=(
            evaluation_to_read(plan.evaluation) if plan.evaluation is not None else None
        ),
    )


# Expose minimal public API from this module
__all__ = [
    "Dimensions",
    "Position",
    "Item",
    "BoxType",
    "FreeSpace",
    "PackingPreferences",
    "PlacedItem",
    "PackedBox",
    "PlanEvaluation",
    "PackingPlan",
    "DimensionsIn",
    "OrderLineCreate",
    "BoxTypeCreate",
    "OptimizeRequest",
    "BoxTypeRead",
    "PlacementRead",
    "PackedBoxRead",
    "PlanEvaluationRead",
    "PackingPlanRead",
    "boxtypecreate_to_dataclass",
    "boxtype_to_read",
    "packed_box_to_read",
    "evaluation_to_read",
    "plan_to_read",
]
