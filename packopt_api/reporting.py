# packopt_api/reporting.py
"""
Human-readable output for packing plans.

- packing_instructions: per-box packing steps for warehouse staff
- format_plan_summary / print_plan_summary: box-by-box summary with totals
"""

from __future__ import annotations

from collections import Counter
from typing import List

from .models import PackedBox, PackingPlan


def _box_label(box: PackedBox, index: int) -> str:
    return f"Box {index} ({box.box_type.name})"


def box_instructions(box: PackedBox, index: int) -> str:
    """
    Numbered packing steps for one box.

    Fragile items go in first on padding; the rest follow in placement order.
    """
    fragile = [it.name for it in box.items if it.fragile]
    regular = [it.name for it in box.items if not it.fragile]

    steps: List[str] = []
    if fragile:
        steps.append("Add protective padding to the bottom")
        steps.append(f"Place fragile items first: {', '.join(fragile)}")
    if regular:
        steps.append(f"Fill remaining space with: {', '.join(regular)}")
    steps.append(f"Total weight should be {box.weight_total:.1f} lbs")
    if box.emergency:
        steps.append("Force-packed box: check that everything closes safely")
    else:
        steps.append(f"Utilization: {box.volume_utilization:.1f}%")
    steps.append("Double-check all items are secure before sealing")

    lines = [f"{_box_label(box, index)}:"]
    lines.extend(f"{n}. {step}" for n, step in enumerate(steps, start=1))
    return "\n".join(lines)


def packing_instructions(plan: PackingPlan) -> str:
    """Instructions for every box of the plan, separated by blank lines."""
    return "\n\n".join(
        box_instructions(box, idx) for idx, box in enumerate(plan.boxes, start=1)
    )


def format_plan_summary(plan: PackingPlan) -> str:
    """
    Multi-line summary: one block per box (size, utilization, item counts
    per product) followed by plan totals and, when evaluated, savings.
    """
    lines: List[str] = []
    for idx, box in enumerate(plan.boxes, start=1):
        bt = box.box_type
        counter = Counter(it.product_id for it in box.items)
        lines.append(_box_label(box, idx) + (" [emergency]" if box.emergency else ""))
        lines.append(f" Box size: {bt.inner_length}x{bt.inner_width}x{bt.inner_height}")
        lines.append(f" Volume utilization: {box.volume_utilization:.1f}%")
        lines.append(
            f" Weight: {box.weight_total:.2f} / {bt.max_weight} lbs "
            f"({box.weight_utilization:.1f}%)"
        )
        lines.append(f" Cost: ${bt.cost:.2f}")
        lines.append(" Items:")
        for product_id, qty in counter.items():
            lines.append(f" - {product_id}: {qty}")
        lines.append("")

    lines.append(
        f"Total: {len(plan.boxes)} boxes, {plan.item_count} items, "
        f"${plan.total_cost:.2f} (avg utilization {plan.average_utilization:.1f}%)"
    )
    ev = plan.evaluation
    if ev is not None:
        lines.append(
            f"Savings: ${ev.savings_vs_individual:.2f} vs individual shipping "
            f"(${ev.individual_shipping_cost:.2f}), "
            f"${ev.savings_vs_single_box:.2f} vs a single ${ev.single_box_cost:.2f} box"
        )
        lines.append(f"Chargeable weight: {ev.chargeable_weight:.2f} lbs")
    lines.append(
        f"Computed in {plan.iteration_count} iterations, "
        f"{plan.processing_duration_ms} ms ({plan.source})"
    )
    return "\n".join(lines)


def print_plan_summary(plan: PackingPlan) -> None:
    """
    Print a human-friendly packing summary to stdout.
    """
    print(format_plan_summary(plan))


__all__ = [
    "box_instructions",
    "packing_instructions",
    "format_plan_summary",
    "print_plan_summary",
]
