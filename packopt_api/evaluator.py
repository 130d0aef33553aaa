# packopt_api/evaluator.py
"""
Derived and comparative metrics for a finished packing plan.

Evaluation is read-only: it never re-orders or re-packs the plan's boxes,
so evaluating the same plan twice yields identical numbers.
"""

from __future__ import annotations

from .catalog import DEFAULT_CATALOG, BoxCatalog
from .config import DEFAULT_SETTINGS, Settings
from .models import PackedBox, PackingPlan, PlanEvaluation


def individual_shipping_cost(
    item_count: int, settings: Settings = DEFAULT_SETTINGS
) -> float:
    """Baseline: every unit shipped on its own at the flat per-item rate."""
    return max(item_count, 0) * settings.flat_rate_per_item


def chargeable_weight(box: PackedBox, settings: Settings = DEFAULT_SETTINGS) -> float:
    """Carrier billable weight: the larger of dimensional and actual weight."""
    return max(box.box_type.volume / settings.dim_divisor, box.weight_total)


def evaluate_plan(
    plan: PackingPlan,
    catalog: BoxCatalog = DEFAULT_CATALOG,
    settings: Settings = DEFAULT_SETTINGS,
) -> PlanEvaluation:
    total_cost = plan.total_cost
    item_count = plan.item_count

    individual = individual_shipping_cost(item_count, settings)
    single_box = catalog.most_expensive().cost

    efficiency = (1.0 - total_cost / individual) * 100.0 if individual > 0 else 0.0

    return PlanEvaluation(
        total_cost=total_cost,
        box_count=len(plan.boxes),
        item_count=item_count,
        average_utilization=plan.average_utilization,
        weight_utilization=plan.weight_utilization,
        individual_shipping_cost=individual,
        savings_vs_individual=max(0.0, individual - total_cost),
        single_box_cost=single_box,
        savings_vs_single_box=max(0.0, single_box - total_cost),
        efficiency_pct=efficiency,
        total_weight=sum(b.weight_total for b in plan.boxes),
        chargeable_weight=sum(chargeable_weight(b, settings) for b in plan.boxes),
    )


__all__ = ["evaluate_plan", "individual_shipping_cost", "chargeable_weight"]
