# packopt_api/augmentor.py
"""
Optional external strategy advisor.

An augmentor may propose an alternative plan for the same items. The engine
only ever treats a proposal as a candidate: it is re-verified geometrically,
compared on cost against the algorithmic plan and silently discarded on any
failure. The algorithmic plan is always ready before the advisor is asked.

`LLMStrategyAugmentor` talks to an OpenAI-compatible chat-completions
endpoint through httpx and tries the configured models in order.
"""

from __future__ import annotations

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import replace
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import httpx

from .catalog import BoxCatalog
from .config import DEFAULT_SETTINGS, Settings
from .errors import AugmentorUnavailableError
from .models import Item, PackedBox, PackingPlan
from .packing import sort_items, trial_pack
from .policy import derive_preferences

logger = logging.getLogger(__name__)

Assignment = List[Tuple[str, List[str]]]

_FENCE_RE = re.compile(r"```(?:json)?\s*|\s*```")


class StrategyAugmentor(Protocol):
    def propose(
        self, items: Sequence[Item], catalog: BoxCatalog, plan: PackingPlan
    ) -> Optional[PackingPlan]:
        ...


class NoOpAugmentor:
    """Default augmentor: never proposes anything."""

    def propose(
        self, items: Sequence[Item], catalog: BoxCatalog, plan: PackingPlan
    ) -> Optional[PackingPlan]:
        return None


# ----------------------------
# Proposal verification
# ----------------------------


def plan_from_assignment(
    items: Sequence[Item],
    catalog: BoxCatalog,
    assignment: Assignment,
    settings: Settings = DEFAULT_SETTINGS,
) -> PackingPlan:
    """
    Turn a box -> item-ids assignment into a verified PackingPlan.

    Every item must appear exactly once, every box type must exist, and each
    box's items must actually place (weight, geometry and the same policy
    preferences the engine used). Anything else raises
    AugmentorUnavailableError.
    """
    by_id: Dict[str, Item] = {it.id: it for it in items}
    preferences = derive_preferences(list(items), settings)
    seen = set()
    boxes: List[PackedBox] = []

    for box_id, item_ids in assignment:
        try:
            box_type = catalog.get(box_id)
        except KeyError:
            raise AugmentorUnavailableError(
                f"Unknown box type {box_id!r} in proposal"
            ) from None
        if not item_ids:
            raise AugmentorUnavailableError(f"Empty box {box_id!r} in proposal")
        for item_id in item_ids:
            if item_id not in by_id:
                raise AugmentorUnavailableError(f"Unknown item {item_id!r} in proposal")
            if item_id in seen:
                raise AugmentorUnavailableError(f"Item {item_id!r} assigned twice")
            seen.add(item_id)

        box_items = sort_items(by_id[i] for i in item_ids)
        trial = trial_pack(box_items, box_type, preferences, settings)
        if trial.packed_count != len(box_items):
            raise AugmentorUnavailableError(
                f"Proposed items do not fit in {box_id!r} "
                f"({trial.packed_count}/{len(box_items)} placed)"
            )
        boxes.append(trial.to_packed_box())

    missing = set(by_id) - seen
    if missing:
        raise AugmentorUnavailableError(
            f"Proposal leaves {len(missing)} item(s) unpacked"
        )
    return PackingPlan(boxes=tuple(boxes), source="augmentor")


def choose_plan(
    algorithmic: PackingPlan, proposal: Optional[PackingPlan]
) -> PackingPlan:
    """
    Keep the proposal only if it ships the same items for strictly less.

    Ties go to the algorithmic plan.
    """
    if proposal is None:
        return algorithmic
    if sorted(proposal.item_ids) != sorted(algorithmic.item_ids):
        return algorithmic
    if proposal.total_cost < algorithmic.total_cost - 1e-9:
        return replace(
            proposal,
            iteration_count=algorithmic.iteration_count,
            processing_duration_ms=algorithmic.processing_duration_ms,
        )
    return algorithmic


def verify_proposal(
    items: Sequence[Item],
    catalog: BoxCatalog,
    proposal: Any,
    settings: Settings = DEFAULT_SETTINGS,
) -> PackingPlan:
    """
    Rebuild a proposed plan from its box -> item-ids assignment.

    Whatever the augmentor returned, only the assignment is trusted: boxes are
    re-packed through `plan_from_assignment`, so weight, geometry, fragile
    isolation and catalog membership hold for the result. Raises
    AugmentorUnavailableError for anything that is not a usable PackingPlan.
    """
    if not isinstance(proposal, PackingPlan):
        raise AugmentorUnavailableError(
            f"Augmentor returned {type(proposal).__name__}, not a PackingPlan"
        )
    if not proposal.boxes:
        raise AugmentorUnavailableError("Augmentor proposed no boxes")
    assignment: Assignment = [(b.box_type.id, b.item_ids) for b in proposal.boxes]
    return plan_from_assignment(items, catalog, assignment, settings)


def augment_plan(
    augmentor: Optional[StrategyAugmentor],
    items: Sequence[Item],
    catalog: BoxCatalog,
    plan: PackingPlan,
    timeout: float = DEFAULT_SETTINGS.augmentor_timeout,
    settings: Settings = DEFAULT_SETTINGS,
) -> PackingPlan:
    """
    Ask the augmentor for a better plan within `timeout` seconds.

    Never raises: errors, timeouts, malformed and infeasible proposals all
    return `plan`.
    """
    if augmentor is None or isinstance(augmentor, NoOpAugmentor):
        return plan

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="packopt-augmentor")
    future = executor.submit(augmentor.propose, list(items), catalog, plan)
    try:
        proposal = future.result(timeout=timeout)
        if proposal is None:
            return plan
        chosen = choose_plan(plan, verify_proposal(items, catalog, proposal, settings))
    except FutureTimeoutError:
        logger.warning("Strategy augmentor timed out after %.1fs", timeout)
        return plan
    except Exception as exc:  # the advisor must never fail the request
        logger.warning("Strategy augmentor proposal discarded: %s", exc)
        return plan
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    if chosen is not plan:
        logger.info(
            "Augmentor plan accepted: %.2f -> %.2f",
            plan.total_cost,
            chosen.total_cost,
        )
    return chosen


# ----------------------------
# LLM-backed augmentor
# ----------------------------


def parse_assignment(content: str) -> Assignment:
    """
    Extract `{"boxes": [{"boxType": ..., "items": [...]}]}` from a reply.

    Markdown code fences and chatter around the JSON object are tolerated.
    """
    text = _FENCE_RE.sub("", content).strip()
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        raise AugmentorUnavailableError("No JSON object in augmentor reply")
    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise AugmentorUnavailableError(f"Malformed augmentor JSON: {exc}") from exc

    boxes = data.get("boxes") if isinstance(data, dict) else None
    if not isinstance(boxes, list) or not boxes:
        raise AugmentorUnavailableError("Augmentor reply has no 'boxes' list")

    assignment: Assignment = []
    for entry in boxes:
        if not isinstance(entry, dict):
            raise AugmentorUnavailableError("Box entries must be objects")
        box_id = entry.get("boxType", entry.get("box_type"))
        item_ids = entry.get("items")
        if not isinstance(box_id, str) or not isinstance(item_ids, list):
            raise AugmentorUnavailableError("Box entries need 'boxType' and 'items'")
        assignment.append((box_id, [str(i) for i in item_ids]))
    return assignment


def build_prompt(
    items: Sequence[Item], catalog: BoxCatalog, plan: PackingPlan
) -> str:
    item_lines = "\n".join(
        f"- {it.id}: {it.length}x{it.width}x{it.height}, {it.weight} lb, "
        f"{'FRAGILE' if it.fragile else 'regular'}"
        for it in items
    )
    box_lines = "\n".join(
        f"- {bt.id}: {bt.inner_length}x{bt.inner_width}x{bt.inner_height}, "
        f"max {bt.max_weight} lb, ${bt.cost:.2f}"
        for bt in catalog
    )
    plan_lines = "\n".join(
        f"- {b.box_type.id}: {', '.join(b.item_ids)}" for b in plan.boxes
    )
    return (
        "Find a cheaper way to ship these items. Items may rotate in 90 degree "
        "steps; fragile items must ship alone.\n\n"
        f"ITEMS:\n{item_lines}\n\n"
        f"BOX TYPES:\n{box_lines}\n\n"
        f"CURRENT PLAN (total ${plan.total_cost:.2f}):\n{plan_lines}\n\n"
        'Reply with JSON only: {"boxes": [{"boxType": "<box id>", '
        '"items": ["<item id>", ...]}]}'
    )


class LLMStrategyAugmentor:
    """Strategy augmentor backed by an OpenAI-compatible chat endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_SETTINGS.augmentor_base_url,
        models: Sequence[str] = DEFAULT_SETTINGS.augmentor_models,
        timeout: float = DEFAULT_SETTINGS.augmentor_timeout,
        settings: Settings = DEFAULT_SETTINGS,
        client: Optional[httpx.Client] = None,
        max_tokens: int = 800,
    ) -> None:
        if not api_key:
            raise ValueError("LLMStrategyAugmentor requires an api_key")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.models = tuple(models) or DEFAULT_SETTINGS.augmentor_models
        self.timeout = timeout
        self.settings = settings
        self.max_tokens = max_tokens
        self._client = client

    def _request(self, client: httpx.Client, model: str, prompt: str) -> str:
        response = client.post(
            f"{self.base_url}/chat/completions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": model,
                "max_tokens": self.max_tokens,
                "messages": [
                    {
                        "role": "system",
                        "content": "You are an assistant helping with task: shipping box packing",
                    },
                    {"role": "user", "content": prompt},
                ],
            },
        )
        response.raise_for_status()
        data: Any = response.json()
        return data["choices"][0]["message"]["content"]

    def complete(self, prompt: str) -> str:
        """Return the first successful model reply, trying models in order."""
        last_error: Optional[Exception] = None
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            for model in self.models:
                try:
                    return self._request(client, model, prompt)
                except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
                    logger.info("Augmentor model %s failed: %s", model, exc)
                    last_error = exc
        finally:
            if self._client is None:
                client.close()
        raise AugmentorUnavailableError(
            f"All augmentor models failed: {last_error}"
        ) from last_error

    def propose(
        self, items: Sequence[Item], catalog: BoxCatalog, plan: PackingPlan
    ) -> Optional[PackingPlan]:
        content = self.complete(build_prompt(items, catalog, plan))
        assignment = parse_assignment(content)
        return plan_from_assignment(items, catalog, assignment, self.settings)


def build_augmentor(settings: Settings = DEFAULT_SETTINGS) -> StrategyAugmentor:
    """LLM augmentor when credentials are configured, otherwise the no-op one."""
    if not settings.augmentor_enabled:
        return NoOpAugmentor()
    return LLMStrategyAugmentor(
        api_key=settings.augmentor_api_key or "",
        base_url=settings.augmentor_base_url,
        models=settings.augmentor_models,
        timeout=settings.augmentor_timeout,
        settings=settings,
    )


__all__ = [
    "StrategyAugmentor",
    "NoOpAugmentor",
    "LLMStrategyAugmentor",
    "plan_from_assignment",
    "choose_plan",
    "verify_proposal",
    "augment_plan",
    "parse_assignment",
    "build_prompt",
    "build_augmentor",
]
