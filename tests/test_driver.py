"""Tests for core/driver.py: session lifecycle and step loop."""

import asyncio

import numpy as np
import pytest

from colorpie.content.question_bank import likert_table
from colorpie.core.config import SessionConfig
from colorpie.core.driver import (
    STATE_COMPLETED,
    STATE_INITIALIZED,
    STATE_IN_PROGRESS,
    SessionDriver,
)
from colorpie.core.exceptions import (
    EmptyPoolError,
    ImpossibleObservationError,
    NoPendingQuestionError,
    SessionClosedError,
    SessionNotCompletedError,
)
from colorpie.core.likelihood import SimilarityMatrix, build_question
from colorpie.core.model import shrink_toward_uniform, uniform


def _pool(n):
    """n questions with varied per-archetype expected answers."""
    questions = []
    for i in range(n):
        means = tuple(float(1 + (i + 2 * j) % 7) for j in range(5))
        questions.append(build_question(f"q{i:02d}", f"Item {i}", likert_table(means)))
    return questions


@pytest.fixture
def pool50():
    return _pool(50)


@pytest.fixture
def driver(pool50):
    return SessionDriver(pool50, config=SessionConfig(max_questions=20), seed=1)


class TestLifecycle:
    def test_starts_initialized_with_uniform_belief(self, driver):
        assert driver.state == STATE_INITIALIZED
        assert driver.current_distribution() == uniform()
        assert driver.answered == []

    def test_first_presentation_starts_session(self, driver):
        driver.present_next()
        assert driver.state == STATE_IN_PROGRESS

    def test_completes_after_max_questions(self, driver):
        """Scenario: 20 answers out of a 50-question pool."""
        for i in range(20):
            assert not driver.is_complete
            driver.present_next()
            driver.record_answer(4)
        assert driver.state == STATE_COMPLETED
        assert len(driver.answered) == 20
        assert len(driver.remaining) == 30

        result = driver.final_result()
        p = result.as_array()
        assert p.sum() == pytest.approx(1.0, abs=1e-9)
        assert (p >= 0).all()

        with pytest.raises(SessionClosedError):
            driver.step(lambda q: 4)
        with pytest.raises(SessionClosedError):
            driver.present_next()
        with pytest.raises(SessionClosedError):
            driver.record_answer(4)

    def test_completes_when_pool_exhausted(self):
        d = SessionDriver(_pool(3), config=SessionConfig(max_questions=10), seed=0)
        d.run(lambda q: 5)
        assert d.is_complete
        assert len(d.answered) == 3

    def test_final_result_requires_completion(self, driver):
        with pytest.raises(SessionNotCompletedError):
            driver.final_result()

    def test_empty_pool(self):
        with pytest.raises(EmptyPoolError):
            SessionDriver([])

    def test_duplicate_ids(self):
        q = _pool(1)[0]
        with pytest.raises(ValueError):
            SessionDriver([q, q])


class TestStepping:
    def test_present_is_idempotent_until_answered(self, driver):
        first = driver.present_next()
        assert driver.present_next() is first
        driver.record_answer(3)
        assert driver.pending_question is None

    def test_answer_requires_pending_question(self, driver):
        with pytest.raises(NoPendingQuestionError):
            driver.record_answer(4)

    def test_answered_question_leaves_pool(self, driver):
        q = driver.present_next()
        driver.record_answer(2)
        assert q.id not in [r.id for r in driver.remaining]
        assert driver.answered == [(q, 2)]

    def test_answer_order_is_preserved(self, driver):
        asked = []
        for score in (1, 7, 4, 2):
            asked.append((driver.present_next().id, score))
            driver.record_answer(score)
        assert [(q.id, s) for q, s in driver.answered] == asked
        assert [(e.question_id, e.score) for e in driver.trace] == asked
        assert [e.step for e in driver.trace] == [1, 2, 3, 4]

    def test_first_question_is_uniform_over_pool(self, pool50, fixed_draw):
        first = SessionDriver(pool50, rng=fixed_draw(0.0)).present_next()
        last = SessionDriver(pool50, rng=fixed_draw(0.999)).present_next()
        assert first is pool50[0]
        assert last is pool50[-1]

    def test_distribution_replaced_not_mutated(self, driver):
        before = driver.current_distribution()
        snapshot = before.as_array()
        driver.present_next()
        after = driver.record_answer(7)
        assert after is driver.current_distribution()
        assert after is not before
        np.testing.assert_array_equal(before.as_array(), snapshot)

    def test_impossible_answer_leaves_state_unchanged(self, make_question, fixed_draw):
        no_sevens = make_question("no_sevens", [1.0 / 6] * 6 + [0.0])
        other = make_question("other", [1.0 / 7] * 7)
        d = SessionDriver([no_sevens, other], rng=fixed_draw(0.0))

        assert d.present_next() is no_sevens
        with pytest.raises(ImpossibleObservationError):
            d.record_answer(7)
        assert d.pending_question is no_sevens
        assert d.answered == []
        assert d.current_distribution() == uniform()

        d.record_answer(3)
        assert len(d.answered) == 1

    def test_skip_pending(self, make_question, fixed_draw):
        q = make_question("only", [1.0 / 7] * 7)
        d = SessionDriver([q], rng=fixed_draw(0.5))
        d.present_next()
        d.skip_pending()
        assert d.is_complete
        assert d.final_result() == uniform()
        assert d.summary()["n_skipped"] == 1

    def test_redundant_second_question(self, make_question):
        """Scenario: after answering one of two identical items the other is discounted to zero."""
        blue = [0.4 / 6] * 5 + [0.6] + [0.4 / 6]
        other = [0.95 / 6] * 5 + [0.05] + [0.95 / 6]
        columns = [other, blue, other, other, other]
        q1 = make_question("q1", columns)
        q2 = make_question("q2", columns)
        config = SessionConfig(max_questions=2, shrinkage_factor=0.05)
        d = SessionDriver([q1, q2], SimilarityMatrix([("q1", "q2", 1.0)]), config, seed=5)

        d.present_next()
        after_first = d.record_answer(6)
        d.present_next()
        after_second = d.record_answer(6)

        assert d.trace[0].discount == 1.0
        assert d.trace[1].discount == pytest.approx(0.0)
        assert after_second.isclose(shrink_toward_uniform(after_first, 0.05))


class TestRunners:
    def test_run_with_presenter(self, pool50):
        d = SessionDriver(pool50, config=SessionConfig(max_questions=5), seed=2)
        seen = []

        def presenter(question):
            seen.append(question.id)
            return 6

        result = d.run(presenter)
        assert len(seen) == 5
        assert len(set(seen)) == 5
        assert result == d.final_result()

    def test_arun_awaits_presenter(self, pool50):
        d = SessionDriver(pool50, config=SessionConfig(max_questions=4), seed=2)

        async def presenter(question):
            await asyncio.sleep(0)
            return 2

        result = asyncio.run(d.arun(presenter))
        assert d.is_complete
        assert len(d.answered) == 4
        assert result.as_array().sum() == pytest.approx(1.0)

    def test_seeded_sessions_are_reproducible(self, pool50):
        def ids(seed):
            d = SessionDriver(pool50, config=SessionConfig(max_questions=8), seed=seed)
            d.run(lambda q: 5)
            return [e.question_id for e in d.trace]

        assert ids(9) == ids(9)

    def test_sessions_are_independent(self, pool50):
        a = SessionDriver(pool50, seed=1)
        b = SessionDriver(pool50, seed=1)
        a.present_next()
        a.record_answer(7)
        assert b.current_distribution() == uniform()
        assert b.answered == []
        assert len(b.remaining) == 50


class TestReporting:
    def test_summary(self, driver):
        driver.run(lambda q: 6)
        summary = driver.summary()
        assert summary["state"] == STATE_COMPLETED
        assert summary["n_answered"] == 20
        assert 0.0 <= summary["confidence"] <= 1.0
        assert summary["top_archetype"] == driver.final_result().top().value
        assert summary["progress"] == 1.0

    def test_progress(self, pool50):
        d = SessionDriver(pool50, config=SessionConfig(max_questions=4), seed=0)
        assert d.progress == 0.0
        d.present_next()
        d.record_answer(4)
        assert d.progress == pytest.approx(0.25)

    def test_candidate_scores_sorted(self, driver):
        scores = driver.candidate_scores(limit=5)
        assert len(scores) == 5
        values = [s["expected_surprise"] for s in scores]
        assert values == sorted(values)
