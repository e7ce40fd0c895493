"""Tests for ingredient RPN scoring."""

import pytest

from cleanval import ScoringCategory, ScoringCriteria, ToxicityVisibility, calculate_scores
from cleanval.scoring import RATING_NOT_AVAILABLE


class TestExactMatch:
    """Tests for exactMatch categories (solubility, cleanability)."""

    def test_known_text_scores(self, criteria: ScoringCriteria):
        """Configured texts map to their scores."""
        assert criteria.solubility.score_text("Very soluble") == 1
        assert criteria.solubility.score_text("Practically insoluble") == 7
        assert criteria.cleanability.score_text("Hard") == 3

    def test_match_is_case_sensitive(self, criteria: ScoringCriteria):
        """A differently cased text falls back to the default score."""
        assert criteria.solubility.score_text("Freely soluble") == 2
        assert criteria.solubility.score_text("freely soluble") == 3

    def test_missing_text_uses_default(self, criteria: ScoringCriteria):
        """None or unknown text uses defaultScore."""
        assert criteria.cleanability.score_text(None) == 2
        assert criteria.cleanability.score_text("Impossible") == 2


class TestRangeRules:
    """Tests for range comparisons and first-match-wins ordering."""

    @pytest.mark.parametrize(
        "dose,expected",
        [
            (1500, 1),
            (1000, 2),
            (100, 2),
            (99.5, 3),  # between bands: default
            (10, 3),
            (9, 4),
            (1, 4),
            (0.5, 5),
        ],
    )
    def test_therapeutic_dose_bands(self, criteria: ScoringCriteria, dose, expected):
        """Therapeutic dose buckets follow configured bounds."""
        assert criteria.therapeutic_dose.score_value(dose) == expected

    @pytest.mark.parametrize(
        "pde,expected",
        [(0.0005, 10), (0.001, 10), (0.0011, 9), (0.5, 7), (1000, 4), (1000.1, 3)],
    )
    def test_pde_bands(self, criteria: ScoringCriteria, pde, expected):
        """PDE bands are exclusive below and inclusive above."""
        assert criteria.toxicity_pde.score_value(pde) == expected

    def test_first_matching_rule_wins(self):
        """Overlapping rules resolve to the first in configured order."""
        category = ScoringCategory.model_validate(
            {
                "type": "range",
                "default_score": 0,
                "criteria": [
                    {"score": 1, "lower_bound": 10, "comparison": "greater_inclusive"},
                    {"score": 2, "lower_bound": 5, "comparison": "greater_inclusive"},
                ],
            }
        )
        assert category.score_value(20) == 1
        assert category.score_value(7) == 2
        assert category.score_value(1) == 0

    def test_inclusive_lower_exclusive_upper(self):
        """between_inclusive_lower_exclusive_upper excludes the upper bound."""
        category = ScoringCategory.model_validate(
            {
                "type": "range",
                "default_score": 9,
                "criteria": [
                    {
                        "score": 1,
                        "lower_bound": 1,
                        "upper_bound": 2,
                        "comparison": "between_inclusive_lower_exclusive_upper",
                    }
                ],
            }
        )
        assert category.score_value(1) == 1
        assert category.score_value(2) == 9

    def test_rule_missing_bound_never_matches(self):
        """A rule without the bound its comparison needs is skipped."""
        category = ScoringCategory.model_validate(
            {
                "type": "range",
                "default_score": 4,
                "criteria": [{"score": 1, "comparison": "greater_exclusive"}],
            }
        )
        assert category.score_value(100) == 4


class TestRpnRating:
    """Tests for RPN rating bands and sample counts."""

    @pytest.mark.parametrize(
        "rpn,rating",
        [(1, "Low"), (20, "Low"), (21, "Medium"), (50, "Medium"), (51, "High"), (10000, "High")],
    )
    def test_half_open_bands(self, criteria: ScoringCriteria, rpn, rating):
        """Bands are [min, max) with an open-ended top band."""
        assert criteria.rating_for(rpn) == rating

    def test_no_band_is_not_available(self, criteria: ScoringCriteria):
        """An RPN outside every band rates N/A."""
        assert criteria.rating_for(0) == RATING_NOT_AVAILABLE

    def test_number_of_samples(self, criteria: ScoringCriteria):
        """Sample counts come from inclusive RPN ranges."""
        assert criteria.samples_for(27) == 1
        assert criteria.samples_for(36) == 2
        assert criteria.samples_for(81) == 3
        assert criteria.samples_for(30) == 1  # default


class TestCalculateScores:
    """Tests for calculate_scores()."""

    def test_pde_preferred_over_ld50(self, criteria, make_ingredient):
        """With both present and visible, PDE drives toxicity."""
        ingredient = make_ingredient(pde=1.0, ld50=50)
        scores = calculate_scores(ingredient, criteria)

        assert scores.valid
        assert scores.toxicity_source == "pde"
        assert scores.pde_score == 7
        assert scores.ld50_score == 3
        # Soluble 3 x dose 2 x Medium 2 x PDE 7
        assert scores.rpn == 84
        assert scores.rpn_rating == "High"

    def test_ld50_only_ingredient(self, criteria, make_ingredient):
        """Missing PDE scores toxicity from LD50 without a PDE term."""
        ingredient = make_ingredient(pde=None, ld50=50)
        scores = calculate_scores(ingredient, criteria)

        assert scores.toxicity_source == "ld50"
        assert scores.pde_score is None
        assert scores.ld50_score == 3
        assert scores.rpn == 3 * 2 * 2 * 3
        assert scores.rpn_rating == "Medium"

    def test_hidden_pde_falls_back_to_ld50(self, criteria, make_ingredient):
        """Hiding PDE uses LD50 when present."""
        ingredient = make_ingredient(pde=1.0, ld50=50)
        scores = calculate_scores(ingredient, criteria, ToxicityVisibility(pde_hidden=True))

        assert scores.toxicity_source == "ld50"
        assert scores.rpn == 36

    def test_both_hidden_drops_toxicity(self, criteria, make_ingredient):
        """With both toxicity values hidden the RPN has no toxicity term."""
        ingredient = make_ingredient(pde=1.0, ld50=50)
        visibility = ToxicityVisibility(pde_hidden=True, ld50_hidden=True)
        scores = calculate_scores(ingredient, criteria, visibility)

        assert scores.toxicity_source is None
        assert scores.toxicity_score is None
        assert scores.rpn == 12

    @pytest.mark.parametrize("dose", [None, 0, -5, float("nan"), float("inf")])
    def test_unusable_dose_is_invalid(self, criteria, make_ingredient, dose):
        """Bad therapeutic dose returns an invalid result instead of raising."""
        scores = calculate_scores(make_ingredient(therapeutic_dose=dose), criteria)

        assert not scores.valid
        assert scores.rpn == 0
        assert "therapeutic dose" in scores.error

    def test_rpn_monotonic_in_solubility(self, criteria, make_ingredient):
        """A worse solubility score never lowers the RPN."""
        texts = sorted(
            (rule.text for rule in criteria.solubility.criteria),
            key=criteria.solubility.score_text,
        )
        rpns = [
            calculate_scores(make_ingredient(solubility=text), criteria).rpn
            for text in texts
        ]
        assert rpns == sorted(rpns)

    def test_rpn_monotonic_in_toxicity(self, criteria, make_ingredient):
        """Lower PDE (higher toxicity score) never lowers the RPN."""
        rpns = [
            calculate_scores(make_ingredient(pde=pde), criteria).rpn
            for pde in (5000, 500, 50, 5, 0.5, 0.05, 0.005, 0.0005)
        ]
        assert rpns == sorted(rpns)
