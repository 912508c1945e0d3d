"""
Likelihood model: per-question observation tables and pairwise similarity.

Each question carries an A-matrix p(score | archetype) of shape
[n_scores x n_archetypes] whose columns sum to 1, the same convention the
POMDP observation matrices use. Tables are validated once, when a question
is built; lookups afterwards assume a complete table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .exceptions import InvalidLikelihoodTableError
from .model import (
    ARCHETYPES,
    ARCHETYPE_INDEX,
    MAX_SCORE,
    MIN_SCORE,
    N_ARCHETYPES,
    N_SCORES,
    SCORES,
    Archetype,
    Distribution,
)

logger = logging.getLogger(__name__)

# Per-archetype score rows must sum to 1 within this tolerance
TABLE_TOLERANCE = 1e-6


# =============================================================================
# LIKELIHOOD TABLE
# =============================================================================

def validate_table(matrix: np.ndarray, question_id: Optional[str] = None) -> np.ndarray:
    """
    Check an A-matrix [n_scores x n_archetypes] is a proper p(score | archetype).

    Returns:
        A read-only float64 copy of the matrix.

    Raises:
        InvalidLikelihoodTableError: wrong shape, negative or non-finite
            entries, or a column not summing to 1.
    """
    try:
        A = np.array(matrix, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidLikelihoodTableError(f"table is not a numeric matrix ({e})", question_id) from e
    if A.shape != (N_SCORES, N_ARCHETYPES):
        raise InvalidLikelihoodTableError(
            f"table must have shape {(N_SCORES, N_ARCHETYPES)}, got {A.shape}",
            question_id,
        )
    if not np.all(np.isfinite(A)):
        raise InvalidLikelihoodTableError("table contains non-finite values", question_id)
    if np.any(A < 0.0):
        raise InvalidLikelihoodTableError("table contains negative probabilities", question_id)
    col_sums = A.sum(axis=0)
    for archetype, total in zip(ARCHETYPES, col_sums):
        if abs(total - 1.0) > TABLE_TOLERANCE:
            raise InvalidLikelihoodTableError(
                f"scores for {archetype.value} sum to {total:.6f}, expected 1",
                question_id,
            )
    A.setflags(write=False)
    return A


@dataclass(frozen=True, eq=False)
class LikelihoodTable:
    """p(score | archetype) for one question, stored as a validated A-matrix."""
    matrix: np.ndarray = field(repr=False)

    @classmethod
    def from_matrix(
        cls, matrix: Any, question_id: Optional[str] = None
    ) -> "LikelihoodTable":
        return cls(validate_table(matrix, question_id))

    @classmethod
    def from_mapping(
        cls,
        table: Mapping[Any, Mapping[Any, float]],
        question_id: Optional[str] = None,
    ) -> "LikelihoodTable":
        """
        Build from {archetype: {score: probability}}.

        Archetype keys may be Archetype members or labels ("blue", "Blue");
        score keys may be ints or numeric strings (as JSON produces).
        """
        A = np.full((N_SCORES, N_ARCHETYPES), np.nan, dtype=np.float64)
        seen = set()
        for raw_archetype, row in table.items():
            try:
                archetype = Archetype.parse(raw_archetype)
            except ValueError as e:
                raise InvalidLikelihoodTableError(str(e), question_id) from e
            if archetype in seen:
                raise InvalidLikelihoodTableError(
                    f"archetype {archetype.value} listed more than once", question_id
                )
            seen.add(archetype)
            if not isinstance(row, Mapping):
                raise InvalidLikelihoodTableError(
                    f"scores for {archetype.value} must be a mapping", question_id
                )
            col = ARCHETYPE_INDEX[archetype]
            for raw_score, p in row.items():
                try:
                    score = int(raw_score)
                except (TypeError, ValueError) as e:
                    raise InvalidLikelihoodTableError(
                        f"invalid score key {raw_score!r}", question_id
                    ) from e
                if score not in SCORES:
                    raise InvalidLikelihoodTableError(
                        f"score {score} outside {MIN_SCORE}..{MAX_SCORE}", question_id
                    )
                try:
                    A[score - MIN_SCORE, col] = float(p)
                except (TypeError, ValueError) as e:
                    raise InvalidLikelihoodTableError(
                        f"probability {p!r} for {archetype.value}, score {score} is not a number",
                        question_id,
                    ) from e

        for archetype in ARCHETYPES:
            column = A[:, ARCHETYPE_INDEX[archetype]]
            if np.all(np.isnan(column)):
                raise InvalidLikelihoodTableError(
                    f"missing archetype {archetype.value}", question_id
                )
            missing = [s for s, v in zip(SCORES, column) if np.isnan(v)]
            if missing:
                raise InvalidLikelihoodTableError(
                    f"missing scores {missing} for {archetype.value}", question_id
                )
        return cls(validate_table(A, question_id))

    def conditional(self, archetype: Archetype, score: int) -> float:
        """p(score | archetype); 0 for scores outside the table's domain."""
        if score not in SCORES:
            return 0.0
        return float(self.matrix[int(score) - MIN_SCORE, ARCHETYPE_INDEX[archetype]])

    def row(self, score: int) -> np.ndarray:
        """p(score | c) for every archetype c, zeros outside the domain."""
        if score not in SCORES:
            return np.zeros(N_ARCHETYPES, dtype=np.float64)
        return self.matrix[int(score) - MIN_SCORE, :]

    def as_mapping(self) -> Dict[str, Dict[int, float]]:
        return {
            archetype.value: {
                score: float(self.matrix[int(score) - MIN_SCORE, ARCHETYPE_INDEX[archetype]])
                for score in SCORES
            }
            for archetype in ARCHETYPES
        }


# =============================================================================
# QUESTIONS
# =============================================================================

@dataclass(frozen=True)
class Question:
    """A Likert question with its observation model."""
    id: str
    text: str
    likelihood: LikelihoodTable = field(repr=False, compare=False)
    category: str = ""                     # Archetype the item was written for, if any


def conditional(question: Question, archetype: Archetype, score: int) -> float:
    """p(score | archetype) for a question."""
    return question.likelihood.conditional(archetype, score)


def marginal(question: Question, score: int, distribution: Distribution) -> float:
    """p(score) = sum_c p(score | c) * q(c)."""
    return float(np.dot(question.likelihood.row(score), distribution.as_array()))


def predicted_answers(question: Question, distribution: Distribution) -> np.ndarray:
    """
    Predicted answer distribution q(o) = A @ q(s) over scores 1..7.
    """
    return question.likelihood.matrix @ distribution.as_array()


# =============================================================================
# QUESTION POOL
# =============================================================================

class QuestionPool(Sequence[Question]):
    """Ordered collection of validated questions, unique by id."""

    def __init__(self, questions: Iterable[Question], rejected: Optional[Dict[str, str]] = None):
        self._questions: List[Question] = []
        self._by_id: Dict[str, Question] = {}
        for q in questions:
            if q.id in self._by_id:
                raise ValueError(f"Duplicate question id: {q.id!r}")
            self._questions.append(q)
            self._by_id[q.id] = q
        # id -> reason, for questions refused at load time
        self.rejected: Dict[str, str] = dict(rejected or {})

    def __getitem__(self, index):  # type: ignore[override]
        return self._questions[index]

    def __len__(self) -> int:
        return len(self._questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, Question):
            return item.id in self._by_id
        return item in self._by_id

    def get(self, question_id: str) -> Optional[Question]:
        return self._by_id.get(question_id)

    @property
    def ids(self) -> List[str]:
        return [q.id for q in self._questions]


def build_question(
    question_id: str,
    text: str,
    likelihood: Any,
    category: str = "",
) -> Question:
    """
    Build a Question, validating its table.

    `likelihood` may be an A-matrix (array-like [7 x 5]) or an
    {archetype: {score: p}} mapping.

    Raises:
        InvalidLikelihoodTableError: if the table is malformed.
    """
    if isinstance(likelihood, LikelihoodTable):
        table = LikelihoodTable.from_matrix(likelihood.matrix, question_id)
    elif isinstance(likelihood, Mapping):
        table = LikelihoodTable.from_mapping(likelihood, question_id)
    else:
        table = LikelihoodTable.from_matrix(likelihood, question_id)
    return Question(id=question_id, text=text, likelihood=table, category=category)


def build_pool(candidates: Iterable[Mapping[str, Any]]) -> QuestionPool:
    """
    Validate raw question records and build a pool.

    Each record needs "id", "text" and "likelihoods" (mapping or matrix);
    "category" is optional. Records with a malformed table are rejected and
    logged; the remaining questions still form a usable pool.

    Raises:
        ValueError: on duplicate ids.
    """
    accepted: List[Question] = []
    rejected: Dict[str, str] = {}
    seen = set()
    for record in candidates:
        question_id = str(record["id"])
        if question_id in seen:
            raise ValueError(f"Duplicate question id: {question_id!r}")
        seen.add(question_id)
        try:
            if "likelihoods" not in record:
                raise InvalidLikelihoodTableError("no likelihoods given", question_id)
            question = build_question(
                question_id,
                str(record.get("text", "")),
                record["likelihoods"],
                str(record.get("category", "")),
            )
        except InvalidLikelihoodTableError as e:
            logger.warning(f"Rejected question {question_id!r}: {e.message}")
            rejected[question_id] = e.message
            continue
        accepted.append(question)

    logger.info(f"Question pool built: {len(accepted)} accepted, {len(rejected)} rejected")
    return QuestionPool(accepted, rejected=rejected)


# =============================================================================
# SIMILARITY MATRIX
# =============================================================================

class SimilarityMatrix:
    """
    Symmetric pairwise similarity between questions, values in [0, 1].

    Unlisted pairs have similarity 0. A question is never compared with
    itself; asking for that is a contract violation.
    """

    def __init__(self, pairs: Optional[Iterable[Tuple[str, str, float]]] = None):
        self._values: Dict[Tuple[str, str], float] = {}
        for a, b, value in pairs or ():
            self.set(a, b, value)

    @staticmethod
    def _key(a: str, b: str) -> Tuple[str, str]:
        return (a, b) if a <= b else (b, a)

    @classmethod
    def from_pairs(cls, pairs: Iterable[Sequence[Any]]) -> "SimilarityMatrix":
        return cls((str(a), str(b), float(v)) for a, b, v in pairs)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Mapping[str, float]]) -> "SimilarityMatrix":
        """Build from nested {id_a: {id_b: value}}; diagonal entries are ignored."""
        matrix = cls()
        for a, row in mapping.items():
            for b, value in row.items():
                if a == b:
                    continue
                matrix.set(a, b, value)
        return matrix

    def set(self, a: str, b: str, value: float) -> None:
        if a == b:
            raise ValueError(f"Self-similarity is implicit, cannot set it for {a!r}")
        value = float(value)
        if not np.isfinite(value):
            raise ValueError(f"Similarity for ({a!r}, {b!r}) is not finite")
        clamped = min(max(value, 0.0), 1.0)
        if clamped != value:
            logger.debug(f"Clamped similarity ({a!r}, {b!r}) from {value} to {clamped}")
        self._values[self._key(a, b)] = clamped

    def get(self, a: str, b: str) -> float:
        if a == b:
            raise ValueError(f"Question {a!r} compared with itself")
        return self._values.get(self._key(a, b), 0.0)

    def __len__(self) -> int:
        return len(self._values)

    def pairs(self) -> List[Tuple[str, str, float]]:
        return [(a, b, v) for (a, b), v in sorted(self._values.items())]
