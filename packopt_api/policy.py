# packopt_api/policy.py
"""
Rule-driven packing preferences.

`derive_preferences` is a pure function of the normalized items. Rules run in
a fixed order and each one may only tighten what an earlier rule set.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional, Sequence

from .config import DEFAULT_SETTINGS, Settings
from .models import Item, PackingPreferences


def tighten(current: Optional[float], proposed: float) -> float:
    """Combine two upper limits; None means unlimited."""
    if current is None:
        return proposed
    return min(current, proposed)


def is_thin_and_light(item: Item, settings: Settings = DEFAULT_SETTINGS) -> bool:
    return (
        item.height <= settings.thin_item_height
        and item.weight <= settings.light_item_weight
    )


def derive_preferences(
    items: Sequence[Item], settings: Settings = DEFAULT_SETTINGS
) -> PackingPreferences:
    prefs = PackingPreferences()
    if not items:
        return prefs

    # 1) fragile items ship alone
    if any(it.fragile for it in items):
        prefs = replace(
            prefs,
            max_items_per_box_fragile=int(tighten(prefs.max_items_per_box_fragile, 1)),
        )

    # 2) mostly flat, light items: try envelopes first
    thin = sum(1 for it in items if is_thin_and_light(it, settings))
    if thin * 2 >= len(items):
        prefs = replace(prefs, prefer_envelope=True)

    # 3) heavy items: stay under the common carrier weight breakpoint
    if any(it.weight >= settings.heavy_item_weight for it in items):
        prefs = replace(
            prefs,
            max_weight_per_box=tighten(
                prefs.max_weight_per_box, settings.heavy_box_weight_cap
            ),
        )

    return prefs


__all__ = ["derive_preferences", "is_thin_and_light", "tighten"]
