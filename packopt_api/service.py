# packopt_api/service.py
"""
End-to-end optimization: order lines in, evaluated packing plan out.

Data flow: resolve lines (optional item lookup) -> normalize units -> derive
policy preferences -> pack -> optional strategy augmentor -> evaluate.
Nothing here holds state between calls; the catalog is shared read-only.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional

from .augmentor import StrategyAugmentor, augment_plan, build_augmentor
from .catalog import DEFAULT_CATALOG, BoxCatalog, list_box_types
from .config import DEFAULT_SETTINGS, Settings
from .errors import InvalidInputError
from .evaluator import evaluate_plan, individual_shipping_cost
from .models import OrderLineCreate, PackingPlan
from .normalizer import (
    ItemResolver,
    OrderLine,
    normalize_items,
    normalize_quantity,
    resolve_lines,
)
from .packing import pack_items
from .policy import derive_preferences

logger = logging.getLogger(__name__)


def orderline_from_create(line: OrderLineCreate) -> OrderLine:
    """Convert the pydantic request line to the normalizer's OrderLine."""
    dims = line.dimensions.model_dump() if line.dimensions is not None else None
    return OrderLine(
        item_id=line.item_id,
        quantity=line.quantity,
        dimensions=dims,
        weight=line.weight,
        material=line.material,
        category=line.category,
        name=line.name,
    )


def optimize(
    lines: Iterable[OrderLine],
    destination: Optional[Mapping[str, Any]] = None,
    *,
    catalog: BoxCatalog = DEFAULT_CATALOG,
    resolver: Optional[ItemResolver] = None,
    augmentor: Optional[StrategyAugmentor] = None,
    settings: Optional[Settings] = None,
) -> PackingPlan:
    """
    Compute the packing plan for an order.

    `destination` is accepted for interface compatibility and logged; rates
    are catalog costs, so it does not change the plan. When `augmentor` is
    None one is built from settings (a no-op unless credentials are set).

    Raises InvalidInputError, InfeasibleError or IterationLimitExceeded.
    """
    settings = settings or DEFAULT_SETTINGS
    lines = list(lines)
    if not lines:
        raise InvalidInputError("Order must contain at least one item")

    items = normalize_items(resolve_lines(lines, resolver))
    if not items:
        raise InvalidInputError("Every order line has a non-positive quantity")

    logger.info(
        "Optimizing %d units from %d lines (destination=%s)",
        len(items),
        len(lines),
        dict(destination) if destination else None,
    )

    preferences = derive_preferences(items, settings)
    plan = pack_items(items, catalog, preferences, settings)

    if augmentor is None:
        augmentor = build_augmentor(settings)
    plan = augment_plan(
        augmentor, items, catalog, plan, settings.augmentor_timeout, settings
    )

    return plan.with_evaluation(evaluate_plan(plan, catalog, settings))


def fallback_quote(
    lines: Iterable[OrderLine], settings: Optional[Settings] = None
) -> float:
    """Flat per-item price for an order whose optimization failed."""
    settings = settings or DEFAULT_SETTINGS
    units = sum(normalize_quantity(line.quantity) for line in lines)
    return individual_shipping_cost(units, settings)


__all__: List[str] = [
    "optimize",
    "orderline_from_create",
    "fallback_quote",
    "list_box_types",
]
