"""
Tests for order-line normalization, the box catalog and the policy engine.
"""

import pytest

from packopt_api import models as m
from packopt_api import normalizer
from packopt_api.catalog import DEFAULT_CATALOG, BoxCatalog, list_box_types
from packopt_api.config import Settings
from packopt_api.errors import InvalidInputError
from packopt_api.normalizer import InMemoryItemResolver, ItemRecord, OrderLine
from packopt_api.policy import derive_preferences, is_thin_and_light, tighten

# ----------------------------
# Normalizer
# ----------------------------


def test_normalize_dimensions_defaults_and_clamps():
    assert normalizer.normalize_dimensions(None) == (6.0, 4.0, 2.0)
    assert normalizer.normalize_dimensions({}) == (6.0, 4.0, 2.0)
    assert normalizer.normalize_dimensions(
        {"length": "10", "width": 0, "height": 0.2}
    ) == (10.0, 4.0, 0.5)
    assert normalizer.normalize_dimensions(
        {"length": "abc", "width": float("nan")}
    ) == (6.0, 4.0, 2.0)


@pytest.mark.parametrize(
    "raw, expected",
    [(None, 0.5), ("abc", 0.5), (0, 0.5), (0.05, 0.1), ("2.5", 2.5), (-3, 0.1)],
)
def test_normalize_weight(raw, expected):
    assert normalizer.normalize_weight(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [("3", 3), (0, 0), (-2, 0), ("x", 0), (None, 0), (2.7, 2), (True, 0)],
)
def test_normalize_quantity(raw, expected):
    assert normalizer.normalize_quantity(raw) == expected


def test_material_and_category_attributes():
    assert normalizer.is_fragile("Tempered Glass")
    assert normalizer.is_fragile("porcelain")
    assert not normalizer.is_fragile("plastic")
    assert not normalizer.is_fragile(None)

    assert not normalizer.is_stackable("ceramic", None)
    assert not normalizer.is_stackable("plastic", "Consumer Electronics")
    assert not normalizer.is_stackable("liquid soap", "bath")
    assert normalizer.is_stackable("cotton", "apparel")


def test_density_class_thresholds():
    assert normalizer.density_class(1.0, 1.0) == "heavy"
    assert normalizer.density_class(0.5, 1.0) == "medium"
    assert normalizer.density_class(0.3, 1.0) == "medium"
    assert normalizer.density_class(0.2, 1.0) == "light"


def test_normalize_items_expands_quantities():
    lines = [
        OrderLine("A", quantity=2, dimensions={"length": 3, "width": 2, "height": 1}),
        OrderLine("B", quantity=0),
        OrderLine("C", quantity="1", material="glass", category="decor"),
    ]

    items = normalizer.normalize_items(lines)

    assert [it.id for it in items] == ["A_0_0", "A_0_1", "C_2_0"]
    assert items[0].dimensions == (3.0, 2.0, 1.0)
    assert items[0].product_id == "A"
    assert items[0].name == "A"
    assert items[2].fragile and not items[2].stackable
    assert items[2].name == "decor"
    assert items[2].dimensions == (6.0, 4.0, 2.0)
    assert items[2].weight == 0.5


def test_resolve_lines_merges_canonical_records():
    resolver = InMemoryItemResolver(
        {
            "MUG": ItemRecord(
                dimensions={"length": 5, "width": 4, "height": 4.5},
                weight=0.9,
                material="ceramic",
                name="Coffee Mug",
            )
        }
    )
    lines = [OrderLine("MUG", quantity=1, weight=1.5), OrderLine("UNKNOWN")]

    resolved = normalizer.resolve_lines(lines, resolver)

    assert resolved[0].weight == 1.5  # caller value wins
    assert resolved[0].dimensions == {"length": 5, "width": 4, "height": 4.5}
    assert resolved[0].material == "ceramic"
    assert resolved[0].name == "Coffee Mug"
    assert resolved[1] == lines[1]
    assert normalizer.resolve_lines(lines, None) == lines


# ----------------------------
# Catalog
# ----------------------------


def test_default_catalog():
    ids = [bt.id for bt in list_box_types()]
    assert ids == ["envelope", "small", "medium", "large", "xlarge"]
    assert DEFAULT_CATALOG.largest().id == "xlarge"
    assert DEFAULT_CATALOG.most_expensive().cost == 14.0
    assert DEFAULT_CATALOG.get("medium").volume == 840


def test_catalog_ordering_moves_envelopes_first():
    catalog = BoxCatalog(
        [
            m.BoxType("small", 10, 7, 4, max_weight=3, cost=4.5),
            m.BoxType("flat", 12, 9, 1, max_weight=1, cost=3.0, category="envelope"),
            m.BoxType("medium", 14, 10, 6, max_weight=10, cost=6.5),
        ]
    )
    assert [bt.id for bt in catalog.ordered()] == ["small", "flat", "medium"]
    assert [bt.id for bt in catalog.ordered(prefer_envelope=True)] == [
        "flat",
        "small",
        "medium",
    ]


def test_catalog_validation():
    with pytest.raises(InvalidInputError):
        BoxCatalog([])
    small = m.BoxType("small", 10, 7, 4, max_weight=3, cost=4.5)
    with pytest.raises(InvalidInputError):
        BoxCatalog([small, small])
    with pytest.raises(KeyError):
        DEFAULT_CATALOG.get("pallet")


def test_dataclass_validation():
    with pytest.raises(ValueError):
        m.Item("x", 0, 1, 1, weight=1)
    with pytest.raises(ValueError):
        m.BoxType("b", 1, 1, 1, max_weight=1, cost=-1)
    with pytest.raises(ValueError):
        m.BoxType("b", 1, 1, 1, max_weight=1, cost=1, category="crate")


# ----------------------------
# Policy
# ----------------------------


def test_tighten():
    assert tighten(None, 40) == 40
    assert tighten(30, 40) == 30
    assert tighten(50, 40) == 40


def test_no_items_no_preferences():
    assert derive_preferences([]) == m.PackingPreferences()


def test_fragile_items_isolate():
    items = [
        m.Item("mug", 5, 4, 4.5, weight=0.9, fragile=True),
        m.Item("book", 9, 6, 1.5, weight=1.2),
    ]
    prefs = derive_preferences(items)
    assert prefs.max_items_per_box_fragile == 1
    assert not prefs.prefer_envelope
    assert prefs.max_weight_per_box is None


def test_thin_items_prefer_envelope():
    thin = m.Item("card", 6, 4, 0.5, weight=0.2)
    bulky = m.Item("box", 6, 6, 6, weight=2)
    assert is_thin_and_light(thin)
    assert not is_thin_and_light(bulky)

    assert derive_preferences([thin, bulky]).prefer_envelope
    assert not derive_preferences([thin, bulky, bulky]).prefer_envelope


def test_heavy_items_cap_box_weight():
    items = [m.Item("dumbbell", 8, 4, 4, weight=15)]
    assert derive_preferences(items).max_weight_per_box == 40

    light = Settings(heavy_item_weight=20)
    assert derive_preferences(items, light).max_weight_per_box is None


def test_rules_combine():
    items = [
        m.Item("plate", 10, 10, 1, weight=0.8, fragile=True),
        m.Item("sheet", 11, 8, 0.2, weight=0.1),
        m.Item("weights", 8, 8, 8, weight=25),
    ]
    prefs = derive_preferences(items)
    assert prefs == m.PackingPreferences(
        prefer_envelope=True, max_items_per_box_fragile=1, max_weight_per_box=40
    )
