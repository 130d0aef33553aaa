# packopt_api/packing.py
"""
Core packing logic: multi-box first-fit-decreasing over 3D free-space
partitioning.

This module provides:
- orientation helpers: orientations_of, fits_within, item_fits_box
- free-space partitioning: partition_space, find_best_space
- single-box trial: trial_pack, score_trial
- multi-box engine: sort_items, emergency_pack, pack_items

Every structure built here (free spaces, trials, the remaining-item tuple)
is local to one `pack_items` call. The implementations remain pure-Python and
operate on the dataclasses defined in `packopt_api.models`.
"""

from __future__ import annotations

import itertools
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import dataclass
from functools import cmp_to_key
from math import inf
from typing import ContextManager, Iterable, List, Optional, Sequence, Tuple

from .catalog import DEFAULT_CATALOG, BoxCatalog
from .config import DEFAULT_SETTINGS, Settings
from .errors import InfeasibleError, InvalidInputError, IterationLimitExceeded, PackingError
from .models import (
    BoxType,
    Dimensions,
    FreeSpace,
    Item,
    PackedBox,
    PackingPlan,
    PackingPreferences,
    PlacedItem,
)

logger = logging.getLogger(__name__)

# Float slack for weight sums (0.1 * 30 != 3.0)
WEIGHT_EPSILON = 1e-9

# Volume or weight differences up to this are ties in FFD ordering
SORT_TOLERANCE = 0.1

# ----------------------------
# Geometry helpers
# ----------------------------


def orientations_of(dims: Dimensions) -> List[Dimensions]:
    """
    Return unique axis-aligned orientation permutations (L, W, H).

    Order is stable: permutation order with duplicates removed.
    """
    return list(dict.fromkeys(itertools.permutations(dims, 3)))


def fits_within(dims: Dimensions, container: Dimensions) -> bool:
    """True if some axis-aligned orientation of `dims` fits inside `container`."""
    cl, cw, ch = container
    return any(
        l <= cl and w <= cw and h <= ch for l, w, h in orientations_of(dims)
    )


def item_fits_box(item: Item, box_type: BoxType) -> bool:
    """Could `item` ship alone in an empty box of this type?"""
    return item.weight <= box_type.max_weight + WEIGHT_EPSILON and fits_within(
        item.dimensions, box_type.dimensions
    )


def _orientation_key(dims: Dimensions) -> Tuple[float, float, float]:
    # lowest height first, then longest, then widest
    l, w, h = dims
    return h, -l, -w


def find_best_space(
    spaces: Sequence[FreeSpace], dims: Dimensions
) -> Optional[Tuple[int, Dimensions]]:
    """
    Best-fit search over the free spaces.

    Returns (space index, orientation) for the space that wastes the least
    volume, or None when the item fits nowhere. Ties keep the earlier space.
    """
    item_volume = dims[0] * dims[1] * dims[2]
    options = orientations_of(dims)

    best: Optional[Tuple[int, Dimensions]] = None
    best_waste = inf
    for idx, space in enumerate(spaces):
        fitting = [o for o in options if space.fits(o)]
        if not fitting:
            continue
        waste = space.volume - item_volume
        if waste < best_waste:
            best_waste = waste
            best = (idx, min(fitting, key=_orientation_key))
    return best


def partition_space(
    space: FreeSpace, dims: Dimensions, min_extent: float = 0.5
) -> List[FreeSpace]:
    """
    Split `space` after placing an item of size `dims` at its origin.

    Children (guillotine cuts, non-overlapping):
    - right: remaining length, full width and height
    - behind: remaining width, spanning the item's length, full height
    - above: remaining height over the item's footprint
    Slivers with any side <= `min_extent` are dropped.
    """
    l, w, h = dims
    right = FreeSpace(
        space.x + l, space.y, space.z, space.length - l, space.width, space.height
    )
    behind = FreeSpace(
        space.x, space.y + w, space.z, l, space.width - w, space.height
    )
    above = FreeSpace(space.x, space.y, space.z + h, l, w, space.height - h)
    return [
        s
        for s in (right, behind, above)
        if s.length > min_extent and s.width > min_extent and s.height > min_extent
    ]


# ----------------------------
# Single-box trial
# ----------------------------


@dataclass(frozen=True)
class TrialPack:
    """Outcome of filling one fresh box of a given type."""

    box_type: BoxType
    placements: Tuple[PlacedItem, ...]
    packed_weight: float
    packed_volume: float

    @property
    def packed_count(self) -> int:
        return len(self.placements)

    @property
    def volume_utilization(self) -> float:
        return self.packed_volume / self.box_type.volume * 100.0

    @property
    def weight_utilization(self) -> float:
        return self.packed_weight / self.box_type.max_weight * 100.0

    def to_packed_box(self) -> PackedBox:
        return PackedBox(
            box_type=self.box_type,
            placements=self.placements,
            volume_utilization=self.volume_utilization,
            weight_utilization=self.weight_utilization,
        )


def trial_pack(
    items: Iterable[Item],
    box_type: BoxType,
    preferences: PackingPreferences = PackingPreferences(),
    settings: Settings = DEFAULT_SETTINGS,
) -> TrialPack:
    """
    Fill one empty box of `box_type` with as many of `items` as possible,
    taking them in the given order.

    Items that would break the weight budget, the fragile isolation limit or
    that fit in no free space are skipped (they stay for a later box).
    """
    budget = box_type.max_weight
    if preferences.max_weight_per_box is not None:
        budget = min(budget, preferences.max_weight_per_box)
    isolation = preferences.max_items_per_box_fragile

    spaces: List[FreeSpace] = [FreeSpace.for_box(box_type)]
    placements: List[PlacedItem] = []
    packed_weight = 0.0
    packed_volume = 0.0
    holds_fragile = False

    for item in items:
        if not spaces or packed_weight >= budget - WEIGHT_EPSILON:
            break
        if packed_weight + item.weight > budget + WEIGHT_EPSILON:
            continue
        if isolation is not None:
            if holds_fragile and len(placements) >= isolation:
                break
            if item.fragile and len(placements) >= isolation:
                continue

        found = find_best_space(spaces, item.dimensions)
        if found is None:
            continue
        idx, dims = found
        space = spaces[idx]

        placements.append(PlacedItem(item=item, position=space.origin, dimensions=dims))
        packed_weight += item.weight
        packed_volume += item.volume
        holds_fragile = holds_fragile or item.fragile
        spaces[idx : idx + 1] = partition_space(space, dims, settings.min_space_extent)

    return TrialPack(
        box_type=box_type,
        placements=tuple(placements),
        packed_weight=packed_weight,
        packed_volume=packed_volume,
    )


def score_trial(trial: TrialPack, settings: Settings = DEFAULT_SETTINGS) -> float:
    """Efficiency: reward packed items and utilization, penalize box cost."""
    return (
        trial.packed_count * settings.count_weight
        + trial.volume_utilization * settings.utilization_weight
        - trial.box_type.cost * settings.cost_weight
    )


# ----------------------------
# Multi-box engine
# ----------------------------


def _ffd_compare(a: Item, b: Item) -> int:
    volume_diff = b.volume - a.volume
    if abs(volume_diff) > SORT_TOLERANCE:
        return 1 if volume_diff > 0 else -1
    weight_diff = b.weight - a.weight
    if abs(weight_diff) > SORT_TOLERANCE:
        return 1 if weight_diff > 0 else -1
    if a.fragile != b.fragile:
        return -1 if a.fragile else 1
    return 0


def sort_items(items: Iterable[Item]) -> List[Item]:
    """
    First-fit-decreasing order: volume desc, weight desc, fragile first.

    Volumes or weights within SORT_TOLERANCE of each other count as equal and
    fall through to the next key. The sort is stable, so full ties keep
    input order.
    """
    return sorted(items, key=cmp_to_key(_ffd_compare))


def emergency_pack(
    items: Sequence[Item], box_type: BoxType, settings: Settings = DEFAULT_SETTINGS
) -> Optional[PackedBox]:
    """
    Last resort: put every remaining item into `box_type` if the combined
    weight allows it. No geometric placement is done, so the utilization is
    the fixed nominal value from settings.
    """
    total_weight = sum(it.weight for it in items)
    if not items or total_weight > box_type.max_weight + WEIGHT_EPSILON:
        return None
    return PackedBox(
        box_type=box_type,
        placements=tuple(
            PlacedItem(item=it, position=(0.0, 0.0, 0.0), dimensions=it.dimensions)
            for it in items
        ),
        volume_utilization=settings.emergency_utilization,
        weight_utilization=total_weight / box_type.max_weight * 100.0,
        emergency=True,
    )


def _select_best(
    trials: Iterable[TrialPack], settings: Settings
) -> Optional[TrialPack]:
    best: Optional[TrialPack] = None
    best_score = -inf
    for trial in trials:
        if not trial.placements:
            continue
        score = score_trial(trial, settings)
        if score > best_score:
            best_score = score
            best = trial
    return best


def _trial_executor(settings: Settings, n_box_types: int) -> ContextManager:
    if settings.parallel_trials and n_box_types > 1:
        return ThreadPoolExecutor(
            max_workers=min(settings.max_workers, n_box_types),
            thread_name_prefix="packopt-trial",
        )
    return nullcontext()


def _build_plan(boxes: List[PackedBox], iterations: int, started: float) -> PackingPlan:
    return PackingPlan(
        boxes=tuple(boxes),
        iteration_count=iterations,
        processing_duration_ms=int(round((time.perf_counter() - started) * 1000)),
    )


def _run_packing_loop(
    ordered: Sequence[Item],
    catalog: BoxCatalog,
    preferences: PackingPreferences,
    settings: Settings,
) -> PackingPlan:
    started = time.perf_counter()
    box_types = catalog.ordered(preferences.prefer_envelope)
    remaining: Tuple[Item, ...] = tuple(ordered)
    boxes: List[PackedBox] = []
    iterations = 0

    with _trial_executor(settings, len(box_types)) as executor:
        while remaining:
            if iterations >= settings.max_iterations:
                raise IterationLimitExceeded(
                    iterations, partial_plan=_build_plan(boxes, iterations, started)
                )
            iterations += 1

            # Trials only read the snapshot; the commit below is serial.
            snapshot = remaining
            if executor is not None:
                trials = list(
                    executor.map(
                        lambda bt: trial_pack(snapshot, bt, preferences, settings),
                        box_types,
                    )
                )
            else:
                trials = [
                    trial_pack(snapshot, bt, preferences, settings) for bt in box_types
                ]

            best = _select_best(trials, settings)
            if best is not None:
                packed = best.to_packed_box()
            else:
                fallback_box = catalog.largest()
                packed = emergency_pack(remaining, fallback_box, settings)
                if packed is None:
                    raise InfeasibleError(
                        remaining[0].id,
                        reason=(
                            "could not be placed in any box and the remaining items "
                            f"exceed the weight capacity of {fallback_box.id!r}"
                        ),
                        partial_plan=_build_plan(boxes, iterations, started),
                    )
                logger.warning(
                    "Emergency packing of %d items into %s",
                    len(remaining),
                    fallback_box.id,
                )

            boxes.append(packed)
            packed_ids = set(packed.item_ids)
            remaining = tuple(it for it in remaining if it.id not in packed_ids)
            logger.debug(
                "Iteration %d: committed %s with %d items (%.1f%% volume), %d left",
                iterations,
                packed.box_type.id,
                len(packed.placements),
                packed.volume_utilization,
                len(remaining),
            )

    return _build_plan(boxes, iterations, started)


def pack_items(
    items: Iterable[Item],
    catalog: BoxCatalog = DEFAULT_CATALOG,
    preferences: Optional[PackingPreferences] = None,
    settings: Settings = DEFAULT_SETTINGS,
) -> PackingPlan:
    """
    Pack normalized unit items into catalog boxes.

    Returns the algorithmic PackingPlan (without evaluation). Raises
    InvalidInputError for an empty or ambiguous item list, InfeasibleError
    when an item cannot ship in any box even alone, IterationLimitExceeded
    when the loop cap is hit.
    """
    items = list(items)
    if not items:
        raise InvalidInputError("No items to pack")
    ids = [it.id for it in items]
    if len(set(ids)) != len(ids):
        raise InvalidInputError("Item ids must be unique within a request")
    if preferences is None:
        preferences = PackingPreferences()

    ordered = sort_items(items)

    unpackable = [
        it for it in ordered if not any(item_fits_box(it, bt) for bt in catalog)
    ]
    if unpackable:
        offending = unpackable[0]
        if any(fits_within(offending.dimensions, bt.dimensions) for bt in catalog):
            reason = "is too heavy for every box it fits in"
        else:
            reason = "is larger than every available box"
        rejected = {it.id for it in unpackable}
        rest = [it for it in ordered if it.id not in rejected]
        partial: Optional[PackingPlan] = None
        if rest:
            try:
                partial = _run_packing_loop(rest, catalog, preferences, settings)
            except PackingError as exc:
                logger.warning("No partial plan for infeasible request: %s", exc)
        logger.info("Infeasible request: item %s %s", offending.id, reason)
        raise InfeasibleError(offending.id, reason=reason, partial_plan=partial)

    plan = _run_packing_loop(ordered, catalog, preferences, settings)
    logger.info(
        "Packed %d items into %d boxes (cost %.2f, %d iterations, %d ms)",
        len(items),
        len(plan.boxes),
        plan.total_cost,
        plan.iteration_count,
        plan.processing_duration_ms,
    )
    return plan


__all__ = [
    "WEIGHT_EPSILON",
    "SORT_TOLERANCE",
    "orientations_of",
    "fits_within",
    "item_fits_box",
    "find_best_space",
    "partition_space",
    "TrialPack",
    "trial_pack",
    "score_trial",
    "sort_items",
    "emergency_pack",
    "pack_items",
]
