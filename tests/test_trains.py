"""Tests for train construction and ordering."""

import itertools
import json
import math

from cleanval import Machine, build_trains, line_largest_essa, order_trains, train_key
from cleanval.trains import batch_size_mdd_ratio


class TestPartition:
    """Tests for grouping products into trains."""

    def test_machine_order_is_irrelevant(self, criteria, make_product, make_machines):
        """[1, 2] and [2, 1] on the same line and form share one train."""
        machines = make_machines({1: 100.0, 2: 200.0})
        p1 = make_product([1, 2])
        p2 = make_product([2, 1])

        trains = build_trains([p1, p2], machines, criteria)

        assert len(trains) == 1
        assert trains[0].product_ids == [p1.id, p2.id]
        assert trains[0].machine_ids == [1, 2]

    def test_line_and_form_split_trains(self, criteria, make_product, make_machines):
        """Same machines on a different line or dosage form is another train."""
        machines = make_machines({1: 100.0})
        products = [
            make_product([1]),
            make_product([1], line="Liquids"),
            make_product([1], product_type="Capsules"),
        ]

        trains = build_trains(products, machines, criteria)

        assert len(trains) == 3
        assert len({t.key for t in trains}) == 3

    def test_every_product_in_exactly_one_train(self, criteria, make_product, make_machines):
        """Products are in the same train iff line, form and machine set match."""
        machines = make_machines({i: 10.0 for i in range(1, 6)})
        products = [
            make_product([1, 2]),
            make_product([2, 1, 2]),
            make_product([3]),
            make_product([1, 2], line="B"),
            make_product([4, 5], product_type="Capsules"),
            make_product([5, 4], product_type="Capsules"),
        ]

        trains = build_trains(products, machines, criteria)

        membership = {}
        for train in trains:
            for product in train.products:
                assert product.id not in membership
                membership[product.id] = train.key
        assert set(membership) == {p.id for p in products}

        for a, b in itertools.combinations(products, 2):
            same = (a.line, a.dosage_form, sorted(set(a.machine_ids))) == (
                b.line,
                b.dosage_form,
                sorted(set(b.machine_ids)),
            )
            assert (membership[a.id] == membership[b.id]) == same

    def test_products_without_machines_skipped(self, criteria, make_product, make_machines):
        trains = build_trains([make_product([])], make_machines({1: 1.0}), criteria)
        assert trains == []

    def test_missing_product_type_is_other(self, criteria, make_product, make_machines):
        trains = build_trains(
            [make_product([1], product_type=None)], make_machines({1: 1.0}), criteria
        )
        assert trains[0].dosage_form == "Other"

    def test_key_is_deterministic(self):
        """Key depends on line, form and the sorted distinct machine ids."""
        assert train_key("A", "Tablets", [3, 1, 3]) == json.dumps(["A", "Tablets", [1, 3]])


class TestSurfaceArea:
    """Tests for ESSA computation."""

    def test_essa_sums_distinct_machines(self, criteria, make_product, make_machines):
        machines = make_machines({1: 100.0, 2: 250.0})
        trains = build_trains([make_product([1, 2, 2])], machines, criteria)
        assert trains[0].essa == 350.0

    def test_missing_machine_counts_zero_with_warning(self, criteria, make_product, make_machines):
        """Unknown machine ids contribute 0 area and a warning."""
        machines = make_machines({1: 100.0})
        trains = build_trains([make_product([1, 99])], machines, criteria)

        assert trains[0].essa == 100.0
        assert any("machine 99" in w for w in trains[0].warnings)

    def test_line_largest_essa(self, criteria, make_product, make_machines):
        """Largest ESSA is taken within the same line and dosage form only."""
        machines = make_machines({1: 100.0, 2: 500.0, 3: 5000.0})
        products = [
            make_product([1]),
            make_product([2]),
            make_product([3], line="Other Line"),
        ]
        trains = build_trains(products, machines, criteria)
        small = next(t for t in trains if t.machine_ids == [1])

        assert line_largest_essa(small, trains) == 500.0


class TestAggregates:
    """Tests for per-train aggregate inputs."""

    def test_minimums_and_sources(self, criteria, make_product, make_ingredient, make_machines):
        machines = make_machines({1: 100.0})
        p1 = make_product(
            [1],
            ingredients=[make_ingredient(therapeutic_dose=50, mdd=500, pde=2.0, ld50=300)],
            batch_size_kg=200,
        )
        p2 = make_product(
            [1],
            ingredients=[make_ingredient(therapeutic_dose=10, mdd=100, pde=None, ld50=40)],
            batch_size_kg=80,
        )

        train = build_trains([p1, p2], machines, criteria)[0]

        assert train.lowest_ltd == 10
        assert train.lowest_ltd_product_id == p2.id
        assert train.lowest_pde == 2.0
        assert train.lowest_ld50 == 40
        assert train.min_mbs_kg == 80
        assert train.min_mbs_product_id == p2.id
        # p1: 200000 g / 0.5 g = 400000; p2: 80000 g / 0.1 g = 800000
        assert train.min_bs_mdd_ratio == 400000
        assert train.min_bs_mdd_ratio_product_id == p1.id

    def test_mdd_stored_in_mg_converted_to_grams(self, make_product, make_ingredient):
        """Ratio uses batch grams over MDD grams; MDD input is milligrams."""
        ingredient = make_ingredient(mdd=4000)  # 4 g/day
        product = make_product([1], ingredients=[ingredient], batch_size_kg=51.08)

        assert ingredient.mdd_g == 4.0
        assert math.isclose(batch_size_mdd_ratio(product, ingredient), 51080 / 4)

    def test_no_valid_values_default_to_zero(self, criteria, make_product, make_ingredient, make_machines):
        """Malformed data leaves 0, never Infinity or NaN, and records warnings."""
        ingredient = make_ingredient(therapeutic_dose=None, mdd=0, pde=None, ld50=None)
        product = make_product([1], ingredients=[ingredient], batch_size_kg=None)

        train = build_trains([product], make_machines({1: 10.0}), criteria)[0]

        for value in (train.lowest_ltd, train.min_mbs_kg, train.min_bs_mdd_ratio):
            assert value == 0
            assert math.isfinite(value)
        assert train.lowest_pde is None
        assert train.lowest_ld50 is None
        assert len(train.warnings) >= 3

    def test_worst_rpn_across_ingredients(self, criteria, make_product, make_ingredient, make_machines):
        """Worst product RPN is the highest-RPN ingredient in the train."""
        mild = make_ingredient(name="Mild", solubility="Very soluble", cleanability="Easy")
        harsh = make_ingredient(name="Harsh", solubility="Insoluble", cleanability="Hard")
        products = [
            make_product([1], ingredients=[mild], name="Gentle"),
            make_product([1], ingredients=[harsh], name="Tough"),
        ]

        train = build_trains(products, make_machines({1: 1.0}), criteria)[0]

        assert train.worst_product_rpn.product_name == "Tough"
        assert train.worst_product_rpn.ingredient_name == "Harsh"
        assert train.worst_rpn == 7 * 2 * 3 * 7

    def test_worst_rpn_tie_keeps_first(self, criteria, make_product, make_ingredient, make_machines):
        products = [
            make_product([1], ingredients=[make_ingredient(name="First")]),
            make_product([1], ingredients=[make_ingredient(name="Second")]),
        ]
        train = build_trains(products, make_machines({1: 1.0}), criteria)[0]
        assert train.worst_product_rpn.ingredient_name == "First"


class TestOrdering:
    """Tests for consistent train numbering."""

    def test_numbers_follow_line_form_discovery(self, criteria, make_product, make_machines):
        machines = make_machines({1: 1.0, 2: 1.0, 3: 1.0})
        products = [
            make_product([1], line="Zeta"),
            make_product([2], line="Alpha", product_type="Tablets"),
            make_product([3], line="Alpha", product_type="Capsules"),
            make_product([1], line="Alpha", product_type="Tablets"),
        ]

        trains = build_trains(products, machines, criteria)

        labels = [(t.line, t.dosage_form, t.machine_ids) for t in trains]
        assert labels == [
            ("Alpha", "Capsules", [3]),
            ("Alpha", "Tablets", [2]),
            ("Alpha", "Tablets", [1]),
            ("Zeta", "Tablets", [1]),
        ]
        assert [t.number for t in trains] == [1, 2, 3, 4]

    def test_rebuild_is_idempotent(self, criteria, make_product, make_machines):
        """Identical inputs give identical keys, aggregates and numbers."""
        machines = make_machines({1: 10.0, 2: 20.0, 3: 30.0})
        products = [
            make_product([1, 2]),
            make_product([3], line="B"),
            make_product([2, 3]),
        ]

        first = build_trains(products, machines, criteria)
        second = build_trains(products, machines, criteria)

        assert [(t.key, t.number, t.essa, t.worst_rpn) for t in first] == [
            (t.key, t.number, t.essa, t.worst_rpn) for t in second
        ]

    def test_order_trains_is_stable(self, criteria, make_product, make_machines):
        """Re-ordering already ordered trains keeps the numbers."""
        machines = make_machines({1: 1.0, 2: 1.0})
        trains = build_trains(
            [make_product([1]), make_product([2], line="A")], machines, criteria
        )
        numbers = [(t.key, t.number) for t in trains]

        reordered = order_trains(list(reversed(trains)))

        assert [(t.key, t.number) for t in reordered] == numbers

    def test_machine_line_default(self):
        """Blank machine line falls back to Unassigned."""
        assert Machine(id=1, name="m", line="").line == "Unassigned"
