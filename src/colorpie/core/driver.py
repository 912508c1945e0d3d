"""
SessionDriver: orchestrates one respondent's questionnaire.

Manages the lifecycle:
    initialized → in_progress → completed

Each step selects a question (uniformly for the opener, softmax over
expected surprise afterwards), hands it to an external presenter, and folds
the returned score into the belief with redundancy discounting and
shrinkage. All state is per instance; sessions never share beliefs.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import SessionConfig
from .exceptions import (
    EmptyPoolError,
    NoPendingQuestionError,
    SessionClosedError,
    SessionNotCompletedError,
)
from .inference import apply_step_detailed, rank_candidates, select_next, select_uniform
from .likelihood import Question, SimilarityMatrix
from .model import Distribution, uniform
from .utils import normalized_confidence

logger = logging.getLogger(__name__)

# Lifecycle states
STATE_INITIALIZED = "initialized"
STATE_IN_PROGRESS = "in_progress"
STATE_COMPLETED = "completed"

Presenter = Callable[[Question], int]
AsyncPresenter = Callable[[Question], Union[int, Awaitable[int]]]


@dataclass(frozen=True)
class TraceEntry:
    """One recorded step: what was asked, the answer, and the belief after it."""
    step: int
    question_id: str
    score: int
    discount: float
    distribution: Distribution

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "question_id": self.question_id,
            "score": self.score,
            "discount": self.discount,
            "distribution": self.distribution.as_dict(),
        }


class SessionDriver:
    """
    Adaptive questionnaire session for a single respondent.

    Selection and update are separate calls so the caller can run any
    presentation logic (blocking or async) in between.

    Usage:
        driver = SessionDriver(pool, similarity, SessionConfig(), seed=7)
        while not driver.is_complete:
            question = driver.present_next()
            score = ask_somehow(question)
            driver.record_answer(score)
        result = driver.final_result()
    """

    def __init__(
        self,
        questions: Sequence[Question],
        similarity: Optional[SimilarityMatrix] = None,
        config: Optional[SessionConfig] = None,
        seed: Optional[int] = None,
        rng: Optional[Any] = None,
    ):
        if len(questions) == 0:
            raise EmptyPoolError("Cannot start a session with an empty question pool")
        ids = [q.id for q in questions]
        if len(set(ids)) != len(ids):
            raise ValueError("Question pool contains duplicate ids")

        self.config = config or SessionConfig()
        self.similarity = similarity or SimilarityMatrix()
        self.rng = rng if rng is not None else np.random.default_rng(seed)

        self.state: str = STATE_INITIALIZED
        self._distribution: Distribution = uniform()
        self._remaining: List[Question] = list(questions)
        self._answered: List[Tuple[Question, int]] = []
        self._skipped: List[str] = []
        self._trace: List[TraceEntry] = []
        self._pending: Optional[Question] = None

    # -------------------------------------------------------------------------
    # PROPERTIES
    # -------------------------------------------------------------------------

    @property
    def is_complete(self) -> bool:
        return self.state == STATE_COMPLETED

    @property
    def pending_question(self) -> Optional[Question]:
        return self._pending

    @property
    def answered(self) -> List[Tuple[Question, int]]:
        """(question, score) pairs in the order they were answered."""
        return list(self._answered)

    @property
    def remaining(self) -> List[Question]:
        return list(self._remaining)

    @property
    def trace(self) -> List[TraceEntry]:
        return list(self._trace)

    @property
    def progress(self) -> float:
        """Fraction of the step budget used, in [0, 1]."""
        if self.is_complete:
            return 1.0
        limit = min(self.config.max_questions, len(self._answered) + len(self._remaining))
        if limit <= 0:
            return 1.0
        return min(len(self._answered) / limit, 1.0)

    def current_distribution(self) -> Distribution:
        return self._distribution

    def final_result(self) -> Distribution:
        """The final belief; only available once the session completed."""
        if not self.is_complete:
            raise SessionNotCompletedError(
                f"Session is {self.state}; final result not available yet"
            )
        return self._distribution

    # -------------------------------------------------------------------------
    # STEP API
    # -------------------------------------------------------------------------

    def present_next(self) -> Question:
        """
        Choose the next question and mark it as pending.

        Repeated calls before an answer return the same question.

        Raises:
            SessionClosedError: if the session already completed.
        """
        if self.is_complete:
            raise SessionClosedError("Session is completed; no further questions")
        if self._pending is not None:
            return self._pending

        if self.state == STATE_INITIALIZED:
            self.state = STATE_IN_PROGRESS
            logger.info(
                f"Session started: {len(self._remaining)} questions, "
                f"max_questions={self.config.max_questions}"
            )

        if not self._answered:
            # Under the uniform prior most questions look alike; open at random
            question = select_uniform(self._remaining, self.rng)
        else:
            question = select_next(
                self._remaining,
                self._distribution,
                self.config.temperature,
                self.rng,
            )
        self._pending = question
        logger.debug(f"Presenting question {question.id!r}")
        return question

    def record_answer(self, score: int) -> Distribution:
        """
        Fold the score for the pending question into the belief.

        On error the session is left unchanged and the question stays
        pending, so the caller can retry, skip it, or abandon the session.

        Raises:
            SessionClosedError: session already completed
            NoPendingQuestionError: present_next() was not called first
            ImpossibleObservationError: score impossible under current beliefs
        """
        if self.is_complete:
            raise SessionClosedError("Session is completed; answers are no longer accepted")
        if self._pending is None:
            raise NoPendingQuestionError("No question is awaiting an answer")

        question = self._pending
        answered_questions = [q for q, _ in self._answered]
        result = apply_step_detailed(
            self._distribution,
            question,
            score,
            answered_questions,
            self.similarity,
            self.config.shrinkage_factor,
        )

        self._answered.append((question, int(score)))
        self._remaining = [q for q in self._remaining if q.id != question.id]
        self._distribution = result.distribution
        self._pending = None
        self._trace.append(TraceEntry(
            step=len(self._answered),
            question_id=question.id,
            score=int(score),
            discount=result.discount,
            distribution=result.distribution,
        ))
        logger.debug(
            f"Step {len(self._answered)}: {question.id!r}={score}, "
            f"discount={result.discount:.3f}, top={result.distribution.top().value}"
        )

        self._check_completion()
        return self._distribution

    def skip_pending(self) -> None:
        """
        Drop the pending question without updating the belief.

        Used when its answer cannot be processed (e.g. an impossible
        observation). The question is removed from the pool.
        """
        if self.is_complete:
            raise SessionClosedError("Session is completed")
        if self._pending is None:
            raise NoPendingQuestionError("No question is awaiting an answer")
        question = self._pending
        self._remaining = [q for q in self._remaining if q.id != question.id]
        self._skipped.append(question.id)
        self._pending = None
        logger.info(f"Skipped question {question.id!r}")
        self._check_completion()

    def step(self, presenter: Presenter) -> Tuple[Question, Distribution]:
        """Present one question via `presenter` and record its score."""
        question = self.present_next()
        score = presenter(question)
        return question, self.record_answer(score)

    def run(self, presenter: Presenter) -> Distribution:
        """Run the whole session with a blocking presenter."""
        while not self.is_complete:
            self.step(presenter)
        return self.final_result()

    async def arun(self, presenter: AsyncPresenter) -> Distribution:
        """Run the whole session, awaiting the presenter between select and update."""
        while not self.is_complete:
            question = self.present_next()
            score = presenter(question)
            if inspect.isawaitable(score):
                score = await score
            self.record_answer(score)
        return self.final_result()

    def _check_completion(self) -> None:
        if not self._remaining or len(self._answered) >= self.config.max_questions:
            self.state = STATE_COMPLETED
            top = self._distribution.top()
            logger.info(
                f"Session completed after {len(self._answered)} answers: "
                f"top={top.value} ({self._distribution[top]:.3f})"
            )

    # -------------------------------------------------------------------------
    # ACCESSORS
    # -------------------------------------------------------------------------

    def candidate_scores(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Remaining questions ordered by expected surprise (lowest first)."""
        ranked = rank_candidates(self._remaining, self._distribution)
        if limit is not None:
            ranked = ranked[:limit]
        return [
            {"question_id": q.id, "expected_surprise": float(s)} for q, s in ranked
        ]

    def summary(self) -> Dict[str, Any]:
        """Snapshot of the session for reporting."""
        dist = self._distribution
        top = dist.top()
        return {
            "state": self.state,
            "distribution": dist.as_dict(),
            "top_archetype": top.value,
            "top_probability": dist[top],
            "entropy_bits": dist.entropy(),
            "confidence": normalized_confidence(dist.as_array()),
            "n_answered": len(self._answered),
            "n_skipped": len(self._skipped),
            "n_remaining": len(self._remaining),
            "progress": self.progress,
        }
