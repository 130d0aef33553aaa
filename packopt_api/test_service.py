"""
Tests for plan evaluation, the strategy augmentor, settings and the
end-to-end service facade.

The LLM augmentor is exercised against an in-process httpx.MockTransport,
so no network access is needed.
"""

import json
import time

import httpx
import pytest

from packopt_api import models as m
from packopt_api.augmentor import (
    LLMStrategyAugmentor,
    NoOpAugmentor,
    augment_plan,
    build_augmentor,
    choose_plan,
    parse_assignment,
    plan_from_assignment,
    verify_proposal,
)
from packopt_api.catalog import BoxCatalog
from packopt_api.config import Settings
from packopt_api.errors import AugmentorUnavailableError, InvalidInputError
from packopt_api.evaluator import chargeable_weight, evaluate_plan, individual_shipping_cost
from packopt_api.normalizer import OrderLine
from packopt_api.packing import pack_items
from packopt_api.policy import derive_preferences
from packopt_api.reporting import format_plan_summary, packing_instructions
from packopt_api.service import fallback_quote, optimize


def example_catalog():
    return BoxCatalog(
        [
            m.BoxType("envelope", 12, 9, 1, max_weight=1, cost=3.0, category="envelope"),
            m.BoxType("small", 10, 7, 4, max_weight=3, cost=4.5),
            m.BoxType("medium", 14, 10, 6, max_weight=10, cost=6.5),
        ]
    )


def example_lines():
    return [
        OrderLine("A", 1, {"length": 12, "width": 8, "height": 3}, weight=2.5),
        OrderLine("B", 2, {"length": 9, "width": 6, "height": 1}, weight=0.8),
    ]


def example_plan():
    items = [
        m.Item("A", 12, 8, 3, weight=2.5),
        m.Item("B1", 9, 6, 1, weight=0.8),
        m.Item("B2", 9, 6, 1, weight=0.8),
    ]
    catalog = example_catalog()
    return items, catalog, pack_items(items, catalog, derive_preferences(items))


ONE_MEDIUM_REPLY = json.dumps(
    {"boxes": [{"boxType": "medium", "items": ["A", "B1", "B2"]}]}
)


class StaticAugmentor:
    def __init__(self, reply=None, delay=0.0, error=None):
        self.reply = reply
        self.delay = delay
        self.error = error

    def propose(self, items, catalog, plan):
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return plan_from_assignment(items, catalog, parse_assignment(self.reply))


# ----------------------------
# Evaluator
# ----------------------------


def test_individual_shipping_cost():
    assert individual_shipping_cost(3) == 27.0
    assert individual_shipping_cost(0) == 0.0
    assert individual_shipping_cost(2, Settings(flat_rate_per_item=5)) == 10.0


def test_evaluate_plan_example():
    _, catalog, plan = example_plan()

    ev = evaluate_plan(plan, catalog)

    assert ev.total_cost == pytest.approx(12.5)
    assert ev.box_count == 3
    assert ev.item_count == 3
    assert ev.individual_shipping_cost == 27.0
    assert ev.savings_vs_individual == pytest.approx(14.5)
    assert ev.single_box_cost == 6.5
    assert ev.savings_vs_single_box == 0.0
    assert ev.efficiency_pct == pytest.approx((1 - 12.5 / 27) * 100)
    assert ev.total_weight == pytest.approx(4.1)
    # evaluation is read-only and repeatable
    assert evaluate_plan(plan, catalog) == ev


def test_chargeable_weight_uses_dimensional_weight():
    _, _, plan = example_plan()
    medium = plan.boxes[-1]
    assert medium.box_type.id == "medium"
    assert chargeable_weight(medium) == pytest.approx(840 / 139)

    heavy = m.PackedBox(
        box_type=medium.box_type,
        placements=(m.PlacedItem(m.Item("h", 2, 2, 2, weight=9), (0, 0, 0), (2, 2, 2)),),
        volume_utilization=1.0,
        weight_utilization=90.0,
    )
    assert chargeable_weight(heavy) == 9


# ----------------------------
# Augmentor
# ----------------------------


def test_parse_assignment_tolerates_fences_and_chatter():
    reply = "Sure! Here you go:\n```json\n" + ONE_MEDIUM_REPLY + "\n```\nEnjoy."
    assert parse_assignment(reply) == [("medium", ["A", "B1", "B2"])]

    snake = '{"boxes": [{"box_type": "small", "items": [1, 2]}]}'
    assert parse_assignment(snake) == [("small", ["1", "2"])]


@pytest.mark.parametrize(
    "reply",
    ["no json here", "{not json}", '{"boxes": []}', '{"boxes": [{"items": ["A"]}]}'],
)
def test_parse_assignment_rejects_garbage(reply):
    with pytest.raises(AugmentorUnavailableError):
        parse_assignment(reply)


def test_plan_from_assignment_verifies_geometry():
    items, catalog, _ = example_plan()

    plan = plan_from_assignment(items, catalog, [("medium", ["A", "B1", "B2"])])
    assert plan.source == "augmentor"
    assert plan.total_cost == 6.5
    assert sorted(plan.item_ids) == ["A", "B1", "B2"]

    bad = [
        [("pallet", ["A", "B1", "B2"])],  # unknown box
        [("medium", ["A", "B1"])],  # item missing
        [("medium", ["A", "B1", "B2"]), ("envelope", ["B1"])],  # duplicate
        [("medium", ["A", "B1", "B2", "Z"])],  # unknown item
        [("envelope", ["A"]), ("medium", ["B1", "B2"])],  # A does not fit
        [("medium", ["A", "B1", "B2"]), ("small", [])],  # empty box
    ]
    for assignment in bad:
        with pytest.raises(AugmentorUnavailableError):
            plan_from_assignment(items, catalog, assignment)


def test_choose_plan_requires_strictly_cheaper_same_items():
    items, catalog, plan = example_plan()
    cheaper = plan_from_assignment(items, catalog, [("medium", ["A", "B1", "B2"])])

    chosen = choose_plan(plan, cheaper)
    assert chosen.source == "augmentor"
    assert chosen.iteration_count == plan.iteration_count

    assert choose_plan(plan, None) is plan
    assert choose_plan(plan, plan) is plan

    partial = plan_from_assignment(items[:1], catalog, [("medium", ["A"])])
    assert choose_plan(plan, partial) is plan


def test_augment_plan_accepts_cheaper_proposal():
    items, catalog, plan = example_plan()
    result = augment_plan(StaticAugmentor(ONE_MEDIUM_REPLY), items, catalog, plan, 5.0)

    assert result.source == "augmentor"
    assert result.total_cost == 6.5


def test_augment_plan_falls_back_on_failure_and_timeout():
    items, catalog, plan = example_plan()

    failing = StaticAugmentor(error=RuntimeError("boom"))
    assert augment_plan(failing, items, catalog, plan, 5.0) is plan

    slow = StaticAugmentor(ONE_MEDIUM_REPLY, delay=0.5)
    assert augment_plan(slow, items, catalog, plan, 0.05) is plan

    assert augment_plan(NoOpAugmentor(), items, catalog, plan, 5.0) is plan
    assert augment_plan(None, items, catalog, plan) is plan


class ObjectAugmentor:
    """Returns a fixed object instead of building the plan itself."""

    def __init__(self, proposal):
        self.proposal = proposal

    def propose(self, items, catalog, plan):
        return self.proposal


def _forced_box(box_type, items):
    placements = tuple(m.PlacedItem(it, (0, 0, 0), it.dimensions) for it in items)
    return m.PackedBox(box_type, placements, volume_utilization=50.0, weight_utilization=50.0)


def test_augment_plan_ignores_malformed_proposals():
    items, catalog, plan = example_plan()

    for proposal in ({"boxes": []}, "medium", m.PackingPlan()):
        assert augment_plan(ObjectAugmentor(proposal), items, catalog, plan, 5.0) is plan


def test_augment_plan_rejects_infeasible_plan_object():
    catalog = example_catalog()
    bricks = [m.Item(f"brick{i}", 4, 4, 4, weight=8) for i in range(3)]
    plan = pack_items(bricks, catalog, derive_preferences(bricks))
    assert [b.box_type.id for b in plan.boxes] == ["medium"] * 3

    overloaded = m.PackingPlan(
        boxes=(_forced_box(catalog.get("envelope"), bricks),), source="augmentor"
    )
    assert overloaded.total_cost < plan.total_cost

    result = augment_plan(ObjectAugmentor(overloaded), bricks, catalog, plan, 5.0)
    assert result is plan
    assert result.source == "algorithmic"


def test_augment_plan_repacks_feasible_plan_object():
    items, catalog, plan = example_plan()
    # Placements are discarded; only the box -> items assignment is kept
    proposal = m.PackingPlan(
        boxes=(_forced_box(catalog.get("medium"), items),), source="augmentor"
    )

    result = augment_plan(ObjectAugmentor(proposal), items, catalog, plan, 5.0)
    assert result.source == "augmentor"
    assert result.total_cost == 6.5
    assert sorted(result.item_ids) == ["A", "B1", "B2"]
    assert result.boxes[0].placements != proposal.boxes[0].placements


def test_verify_proposal_rejects_non_plans():
    items, catalog, _ = example_plan()
    with pytest.raises(AugmentorUnavailableError):
        verify_proposal(items, catalog, {"boxes": []})
    with pytest.raises(AugmentorUnavailableError):
        verify_proposal(items, catalog, m.PackingPlan())


def _chat_transport(calls, failing_models=()):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        calls.append(body["model"])
        assert request.headers["Authorization"] == "Bearer test-key"
        assert request.url.path.endswith("/chat/completions")
        if body["model"] in failing_models:
            return httpx.Response(503, json={"error": "unavailable"})
        content = "```json\n" + ONE_MEDIUM_REPLY + "\n```"
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    return httpx.MockTransport(handler)


def test_llm_augmentor_tries_models_in_order():
    items, catalog, plan = example_plan()
    calls = []
    client = httpx.Client(transport=_chat_transport(calls, failing_models={"first"}))
    augmentor = LLMStrategyAugmentor(
        "test-key", base_url="https://llm.test/v1", models=("first", "second"), client=client
    )

    proposal = augmentor.propose(items, catalog, plan)

    assert calls == ["first", "second"]
    assert proposal.total_cost == 6.5
    assert [b.box_type.id for b in proposal.boxes] == ["medium"]


def test_llm_augmentor_all_models_fail():
    calls = []
    client = httpx.Client(transport=_chat_transport(calls, failing_models={"a", "b"}))
    augmentor = LLMStrategyAugmentor("test-key", models=("a", "b"), client=client)

    with pytest.raises(AugmentorUnavailableError):
        augmentor.complete("hello")
    assert calls == ["a", "b"]


def test_build_augmentor_from_settings():
    assert isinstance(build_augmentor(Settings()), NoOpAugmentor)
    llm = build_augmentor(Settings(augmentor_api_key="k", augmentor_models=("x",)))
    assert isinstance(llm, LLMStrategyAugmentor)
    assert llm.models == ("x",)
    with pytest.raises(ValueError):
        LLMStrategyAugmentor("")


# ----------------------------
# Settings
# ----------------------------


def test_settings_from_env():
    settings = Settings.from_env(
        {
            "PACKOPT_MAX_ITERATIONS": "5",
            "PACKOPT_PARALLEL_TRIALS": "yes",
            "PACKOPT_AUGMENTOR_MODELS": "a, b",
            "PACKOPT_SCORE_COST_WEIGHT": "2.5",
            "PACKOPT_DIM_DIVISOR": "",
        }
    )
    assert settings.max_iterations == 5
    assert settings.parallel_trials is True
    assert settings.augmentor_models == ("a", "b")
    assert settings.cost_weight == 2.5
    assert settings.dim_divisor == 139.0
    assert not settings.augmentor_enabled


def test_settings_reject_bad_values():
    with pytest.raises(ValueError, match="PACKOPT_MAX_ITERATIONS"):
        Settings.from_env({"PACKOPT_MAX_ITERATIONS": "many"})
    with pytest.raises(ValueError):
        Settings.from_env({"PACKOPT_PARALLEL_TRIALS": "maybe"})
    with pytest.raises(ValueError):
        Settings(max_iterations=0)


# ----------------------------
# Service facade
# ----------------------------


def test_optimize_end_to_end():
    plan = optimize(example_lines(), {"country": "US"}, catalog=example_catalog(),
                    augmentor=NoOpAugmentor())

    assert [b.box_type.id for b in plan.boxes] == ["envelope", "envelope", "medium"]
    assert plan.boxes[2].item_ids == ["A_0_0"]
    assert plan.source == "algorithmic"
    assert plan.evaluation is not None
    assert plan.evaluation.savings_vs_individual == pytest.approx(14.5)


def test_optimize_with_augmentor():
    reply = json.dumps({"boxes": [{"boxType": "medium", "items": ["A_0_0", "B_1_0", "B_1_1"]}]})
    plan = optimize(example_lines(), catalog=example_catalog(),
                    augmentor=StaticAugmentor(reply))

    assert plan.source == "augmentor"
    assert plan.evaluation.total_cost == 6.5
    assert plan.iteration_count == 3


def test_optimize_rejects_empty_orders():
    with pytest.raises(InvalidInputError):
        optimize([])
    with pytest.raises(InvalidInputError):
        optimize([OrderLine("A", quantity=0), OrderLine("B", quantity=-1)])


def test_fallback_quote():
    lines = [OrderLine("A", 2), OrderLine("B", 1), OrderLine("C", 0)]
    assert fallback_quote(lines) == 27.0


# ----------------------------
# Reporting
# ----------------------------


def test_packing_instructions_and_summary():
    lines = example_lines() + [OrderLine("MUG", 1, weight=0.9, material="ceramic", name="Mug")]
    plan = optimize(lines, catalog=example_catalog(), augmentor=NoOpAugmentor())

    text = packing_instructions(plan)
    assert text.startswith("Box 1 (")
    assert text.count("Double-check all items are secure") == len(plan.boxes)
    assert "Place fragile items first: Mug" in text

    summary = format_plan_summary(plan)
    assert f"Total: {len(plan.boxes)} boxes, 4 items" in summary
    assert "vs individual shipping ($36.00)" in summary
