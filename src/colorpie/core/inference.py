"""
Belief update and question selection.

Implements the Bayesian archetype update (with redundancy discounting and
shrinkage toward uniform) and the expected-surprise scoring that drives
softmax question selection. NumPy only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

import numpy as np

from .exceptions import EmptyPoolError, ImpossibleObservationError, InvalidTemperatureError
from .likelihood import Question, SimilarityMatrix, marginal, predicted_answers
from .model import Distribution, blend, shrink_toward_uniform
from .utils import EPSILON, entropy_bits, normalize_array, softmax


# =============================================================================
# BELIEF UPDATE
# =============================================================================

def bayesian_update(
    distribution: Distribution,
    question: Question,
    score: int,
) -> Distribution:
    """
    Bayesian belief update for one answered question.

    q(c) ∝ prior(c) * p(score | c)

    Args:
        distribution: Prior belief over archetypes
        question: The answered question
        score: Observed Likert score (1-7)

    Returns:
        posterior: Updated belief

    Raises:
        ImpossibleObservationError: if p(score) is (near) zero under the
            prior, i.e. the table or the score scale does not match.
    """
    m = marginal(question, score, distribution)
    if m <= EPSILON:
        raise ImpossibleObservationError(question.id, score, m)
    posterior = question.likelihood.row(score) * distribution.as_array() / m
    return Distribution(normalize_array(posterior))


def redundancy_discount(
    candidate: Question,
    answered: Sequence[Question],
    similarity: SimilarityMatrix,
) -> float:
    """
    Weight of a new answer given what has already been asked.

    discount = prod_q (1 - sim(q, candidate))

    1.0 when nothing has been answered yet; approaches 0 as near-duplicates
    of the candidate accumulate.
    """
    discount = 1.0
    for q in answered:
        if q.id == candidate.id:
            raise ValueError(f"Question {candidate.id!r} was already answered")
        discount *= 1.0 - similarity.get(q.id, candidate.id)
    return float(min(max(discount, 0.0), 1.0))


@dataclass(frozen=True)
class UpdateResult:
    """Intermediate products of one belief step."""
    raw_posterior: Distribution
    discount: float
    blended: Distribution
    distribution: Distribution


def apply_step_detailed(
    distribution: Distribution,
    question: Question,
    score: int,
    answered_so_far: Sequence[Question],
    similarity: SimilarityMatrix,
    shrinkage_alpha: float,
) -> UpdateResult:
    """
    Full belief step: Bayes, redundancy discount, then shrinkage.

    raw     = bayesian_update(prior, question, score)
    blended = discount * raw + (1 - discount) * prior
    final   = shrink_toward_uniform(blended, alpha)
    """
    raw = bayesian_update(distribution, question, score)
    discount = redundancy_discount(question, answered_so_far, similarity)
    blended = blend(raw, distribution, discount)
    final = shrink_toward_uniform(blended, shrinkage_alpha)
    return UpdateResult(
        raw_posterior=raw,
        discount=discount,
        blended=blended,
        distribution=final,
    )


def apply_step(
    distribution: Distribution,
    question: Question,
    score: int,
    answered_so_far: Sequence[Question],
    similarity: SimilarityMatrix,
    shrinkage_alpha: float,
) -> Distribution:
    """Belief after one answer; see apply_step_detailed."""
    return apply_step_detailed(
        distribution, question, score, answered_so_far, similarity, shrinkage_alpha
    ).distribution


# =============================================================================
# INFORMATIVENESS
# =============================================================================

def expected_surprise(question: Question, distribution: Distribution) -> float:
    """
    Entropy (bits) of the predicted answer to a question.

    H[q(o)] with q(o) = sum_c p(o | c) q(c)

    0 means the answer is fully predictable under current beliefs;
    log2(7) means every score is equally likely.
    """
    return entropy_bits(predicted_answers(question, distribution))


# =============================================================================
# SELECTION
# =============================================================================

def _check_temperature(temperature: float) -> None:
    if not np.isfinite(temperature) or temperature <= 0.0:
        raise InvalidTemperatureError(temperature)


def selection_probabilities(
    candidates: Sequence[Question],
    distribution: Distribution,
    temperature: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Softmax policy over candidates, favouring low expected surprise.

    p(q) ∝ exp(-H_q / T)

    Returns:
        (probabilities, surprise_values), both aligned with `candidates`
    """
    _check_temperature(temperature)
    if len(candidates) == 0:
        raise EmptyPoolError("No candidate questions to score")

    surprises = np.array(
        [expected_surprise(q, distribution) for q in candidates], dtype=np.float64
    )
    probs = softmax(-surprises, temperature=temperature)
    return probs, surprises


def sample_index(probabilities: Sequence[float], draw: float) -> int:
    """
    Inverse-CDF lookup: first index whose cumulative probability reaches `draw`.

    Falls back to the last index when rounding keeps the cumulative sum
    below the draw.
    """
    cumulative = 0.0
    for i, p in enumerate(probabilities):
        cumulative += float(p)
        if cumulative >= draw:
            return i
    return len(probabilities) - 1


def select_next(
    candidates: Sequence[Question],
    distribution: Distribution,
    temperature: float,
    rng: Any,
) -> Question:
    """
    Draw the next question from the softmax policy.

    Args:
        candidates: Remaining questions, in a fixed order
        distribution: Current belief
        temperature: Softmax temperature (> 0); small = greedy
        rng: Random source with a .random() method, e.g. np.random.Generator

    Raises:
        InvalidTemperatureError: temperature <= 0
        EmptyPoolError: no candidates
    """
    probs, _ = selection_probabilities(candidates, distribution, temperature)
    draw = float(rng.random())
    return candidates[sample_index(probs, draw)]


def select_uniform(candidates: Sequence[Question], rng: Any) -> Question:
    """Pick a candidate uniformly at random (used for the opening question)."""
    if len(candidates) == 0:
        raise EmptyPoolError("No candidate questions to choose from")
    n = len(candidates)
    return candidates[sample_index(np.full(n, 1.0 / n), float(rng.random()))]


def rank_candidates(
    candidates: Sequence[Question],
    distribution: Distribution,
) -> List[Tuple[Question, float]]:
    """Candidates sorted by expected surprise, lowest (most decisive) first."""
    scored = [(q, expected_surprise(q, distribution)) for q in candidates]
    scored.sort(key=lambda item: item[1])
    return scored
