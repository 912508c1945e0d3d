"""Tests for core/inference.py: belief updates, surprise and selection."""

import numpy as np
import pytest

from colorpie.content.question_bank import QUESTION_BANK, likert_table
from colorpie.core.exceptions import (
    EmptyPoolError,
    ImpossibleObservationError,
    InvalidTemperatureError,
)
from colorpie.core.inference import (
    apply_step,
    apply_step_detailed,
    bayesian_update,
    expected_surprise,
    rank_candidates,
    redundancy_discount,
    sample_index,
    select_next,
    select_uniform,
    selection_probabilities,
)
from colorpie.core.likelihood import SimilarityMatrix
from colorpie.core.model import Archetype, Distribution, normalize, shrink_toward_uniform, uniform

MAX_SURPRISE = np.log2(7)


@pytest.fixture
def prior():
    return Distribution(np.array([0.1, 0.2, 0.3, 0.25, 0.15]))


@pytest.fixture
def sharp_question(make_question):
    """Everyone answers 4 almost surely."""
    return make_question("sharp", [0.01, 0.01, 0.01, 0.94, 0.01, 0.01, 0.01])


@pytest.fixture
def flat_question(make_question):
    return make_question("flat", [1.0 / 7] * 7)


@pytest.fixture
def graded_question(make_question):
    return make_question("graded", likert_table((6.0, 4.5, 3.0, 2.0, 5.0)).T)


class TestBeliefUpdate:
    def test_blue_answer_favours_blue(self, blue_six_question):
        posterior = bayesian_update(uniform(), blue_six_question, 6)
        assert posterior[Archetype.BLUE] == pytest.approx(0.75)
        for archetype in Archetype:
            if archetype is not Archetype.BLUE:
                assert posterior[Archetype.BLUE] > posterior[archetype]

    def test_uninformative_answer_keeps_prior(self, flat_question, prior):
        for score in range(1, 8):
            posterior = bayesian_update(prior, flat_question, score)
            assert posterior.isclose(prior, atol=1e-12)

    def test_impossible_score(self, make_question):
        q = make_question("no_sevens", [1.0 / 6] * 6 + [0.0])
        with pytest.raises(ImpossibleObservationError) as exc:
            bayesian_update(uniform(), q, 7)
        assert exc.value.question_id == "no_sevens"
        assert exc.value.score == 7

    def test_score_outside_scale_is_impossible(self, flat_question):
        with pytest.raises(ImpossibleObservationError):
            bayesian_update(uniform(), flat_question, 8)

    def test_impossible_under_current_beliefs(self, make_question):
        """A score only Blue gives is impossible once Blue has zero mass."""
        other = [1.0 / 6] * 6 + [0.0]
        blue = [0.0] * 6 + [1.0]
        q = make_question("only_blue_sevens", [other, blue, other, other, other])
        no_blue = normalize(np.array([1.0, 0.0, 1.0, 1.0, 1.0]))
        with pytest.raises(ImpossibleObservationError):
            bayesian_update(no_blue, q, 7)

    def test_posterior_stays_normalized(self, graded_question, prior):
        for score in range(1, 8):
            p = bayesian_update(prior, graded_question, score).as_array()
            assert p.sum() == pytest.approx(1.0, abs=1e-9)
            assert (p >= 0).all()


class TestRedundancyDiscount:
    def test_empty_history(self, blue_six_question):
        assert redundancy_discount(blue_six_question, [], SimilarityMatrix()) == 1.0

    def test_strictly_decreasing(self, make_question):
        target = make_question("target", [1.0 / 7] * 7)
        others = [make_question(f"o{i}", [1.0 / 7] * 7) for i in range(4)]
        sim = SimilarityMatrix([(o.id, "target", 0.3) for o in others])

        discounts = [redundancy_discount(target, others[:k], sim) for k in range(5)]
        assert discounts[0] == 1.0
        assert discounts[2] == pytest.approx(0.49)
        assert all(a > b for a, b in zip(discounts, discounts[1:]))
        assert discounts[-1] > 0.0

    def test_unrelated_history_does_not_discount(self, blue_six_question, flat_question):
        assert redundancy_discount(blue_six_question, [flat_question], SimilarityMatrix()) == 1.0

    def test_duplicate_asking_is_rejected(self, blue_six_question):
        with pytest.raises(ValueError):
            redundancy_discount(blue_six_question, [blue_six_question], SimilarityMatrix())


class TestApplyStep:
    def test_full_weight_without_history(self, blue_six_question):
        result = apply_step_detailed(
            uniform(), blue_six_question, 6, [], SimilarityMatrix(), 0.0
        )
        assert result.discount == 1.0
        assert result.distribution == result.raw_posterior

    def test_shrinkage_applied_after_blend(self, blue_six_question):
        d = apply_step(uniform(), blue_six_question, 6, [], SimilarityMatrix(), 0.1)
        raw = bayesian_update(uniform(), blue_six_question, 6)
        assert d.isclose(shrink_toward_uniform(raw, 0.1))

    def test_identical_questions_are_fully_discounted(self, make_question):
        """Scenario: the second of two identical items changes nothing but shrinkage."""
        blue = [0.4 / 6] * 5 + [0.6] + [0.4 / 6]
        other = [0.95 / 6] * 5 + [0.05] + [0.95 / 6]
        columns = [other, blue, other, other, other]
        q1 = make_question("q1", columns)
        q2 = make_question("q2", columns)
        sim = SimilarityMatrix([("q1", "q2", 1.0)])
        alpha = 0.05

        d1 = apply_step(uniform(), q1, 6, [], sim, alpha)
        result = apply_step_detailed(d1, q2, 6, [q1], sim, alpha)

        assert result.discount == pytest.approx(0.0)
        assert result.blended.isclose(d1)
        assert result.distribution.isclose(shrink_toward_uniform(d1, alpha))


class TestExpectedSurprise:
    def test_bounds_over_bank(self, prior):
        for q in QUESTION_BANK:
            for d in (uniform(), prior):
                h = expected_surprise(q, d)
                assert 0.0 <= h <= MAX_SURPRISE + 1e-12

    def test_uniform_prediction_is_maximal(self, flat_question, prior):
        assert expected_surprise(flat_question, prior) == pytest.approx(MAX_SURPRISE)

    def test_point_mass_prediction_is_zero(self, make_question, prior):
        certain = make_question("certain", [0, 0, 0, 1.0, 0, 0, 0])
        assert expected_surprise(certain, prior) == 0.0

    def test_positive_unless_point_mass(self, sharp_question, prior):
        assert expected_surprise(sharp_question, prior) > 0.0

    def test_does_not_mutate_inputs(self, graded_question, prior):
        before = prior.as_array()
        expected_surprise(graded_question, prior)
        np.testing.assert_array_equal(prior.as_array(), before)


class TestSelection:
    def test_probabilities_are_valid(self, sharp_question, graded_question, flat_question, prior):
        candidates = [flat_question, sharp_question, graded_question]
        probs, surprises = selection_probabilities(candidates, prior, 0.5)
        assert probs.sum() == pytest.approx(1.0)
        assert len(surprises) == 3
        # Lower surprise, higher weight
        assert np.argmax(probs) == int(np.argmin(surprises)) == 1

    def test_same_draw_same_question(self, sharp_question, graded_question, flat_question, prior, fixed_draw):
        candidates = [flat_question, graded_question, sharp_question]
        picks = {select_next(candidates, prior, 1.0, fixed_draw(0.42)).id for _ in range(10)}
        assert len(picks) == 1

    def test_low_temperature_is_greedy(self, sharp_question, graded_question, flat_question, prior, fixed_draw):
        candidates = [graded_question, flat_question, sharp_question]
        probs, _ = selection_probabilities(candidates, prior, 1e-3)
        assert probs[2] == pytest.approx(1.0)
        for draw in (0.05, 0.3, 0.999):
            assert select_next(candidates, prior, 1e-3, fixed_draw(draw)) is sharp_question

    def test_high_temperature_is_uniform(self, sharp_question, graded_question, flat_question, prior):
        candidates = [graded_question, flat_question, sharp_question]
        probs, _ = selection_probabilities(candidates, prior, 1e6)
        np.testing.assert_allclose(probs, 1.0 / 3, atol=1e-5)

    def test_inverse_cdf_order(self):
        probs = [0.2, 0.5, 0.3]
        assert sample_index(probs, 0.0) == 0
        assert sample_index(probs, 0.2) == 0
        assert sample_index(probs, 0.21) == 1
        assert sample_index(probs, 0.69) == 1
        assert sample_index(probs, 0.71) == 2

    def test_rounding_falls_back_to_last(self):
        assert sample_index([0.3, 0.3, 0.3], 0.95) == 2

    @pytest.mark.parametrize("temperature", [0.0, -1.0, float("nan")])
    def test_invalid_temperature(self, temperature, flat_question, fixed_draw):
        with pytest.raises(InvalidTemperatureError):
            select_next([flat_question], uniform(), temperature, fixed_draw(0.5))

    def test_empty_candidates(self, fixed_draw):
        with pytest.raises(EmptyPoolError):
            select_next([], uniform(), 1.0, fixed_draw(0.5))
        with pytest.raises(EmptyPoolError):
            select_uniform([], fixed_draw(0.5))

    def test_uniform_pick_follows_draw(self, sharp_question, graded_question, flat_question, fixed_draw):
        candidates = [sharp_question, graded_question, flat_question]
        assert select_uniform(candidates, fixed_draw(0.0)) is sharp_question
        assert select_uniform(candidates, fixed_draw(0.5)) is graded_question
        assert select_uniform(candidates, fixed_draw(0.99)) is flat_question

    def test_seeded_generator_is_reproducible(self, prior):
        candidates = QUESTION_BANK[:10]
        a = [select_next(candidates, prior, 0.5, rng).id
             for rng in [np.random.default_rng(11)] for _ in range(5)]
        b = [select_next(candidates, prior, 0.5, rng).id
             for rng in [np.random.default_rng(11)] for _ in range(5)]
        assert a == b

    def test_rank_candidates(self, sharp_question, graded_question, flat_question, prior):
        ranked = rank_candidates([flat_question, graded_question, sharp_question], prior)
        assert [q.id for q, _ in ranked] == ["sharp", "graded", "flat"]
