"""
Question bank for the ColorPie questionnaire.

25 Likert items (5 written for each archetype). Each item carries an
A-matrix p(score | archetype) built from the expected answer of each
archetype on the 7-point scale. Also loads externally calibrated pools and
similarity matrices from JSON.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple, Union

import numpy as np

from ..core.likelihood import (
    Question,
    QuestionPool,
    SimilarityMatrix,
    build_pool,
    build_question,
)
from ..core.model import N_ARCHETYPES, SCORES

logger = logging.getLogger(__name__)

# Floor mass on every score so no answer is ever strictly impossible
SCORE_FLOOR = 0.01


def likert_table(means: Tuple[float, ...], spread: float = 1.2) -> np.ndarray:
    """
    Build an A-matrix [7 x 5] from per-archetype expected answers.

    Each column is a discretised Gaussian over scores 1..7 centred on that
    archetype's mean, with a small floor, normalised to sum to 1.

    Args:
        means: Expected score per archetype, in canonical order (W, U, B, R, G)
        spread: Standard deviation on the score scale
    """
    if len(means) != N_ARCHETYPES:
        raise ValueError(f"Need {N_ARCHETYPES} means, got {len(means)}")
    scores = np.array(SCORES, dtype=np.float64)
    A = np.zeros((len(SCORES), N_ARCHETYPES), dtype=np.float64)
    for col, mu in enumerate(means):
        column = np.exp(-0.5 * ((scores - mu) / spread) ** 2) + SCORE_FLOOR
        A[:, col] = column / column.sum()
    return A


#                     W    U    B    R    G
_BANK_ITEMS: List[Tuple[str, str, str, Tuple[float, ...]]] = [
    # White: order, fairness, community
    ("white_rules", "white",
     "Rules exist for good reasons and should be followed even when inconvenient.",
     (6.3, 4.4, 2.2, 2.0, 4.0)),
    ("white_fairness", "white",
     "Everyone in a group should be held to exactly the same standard.",
     (6.2, 4.2, 2.4, 3.0, 3.8)),
    ("white_community", "white",
     "I would give up something I want if it made my community better off.",
     (6.0, 3.6, 1.8, 3.4, 5.2)),
    ("white_structure", "white",
     "I feel most at ease when everyone knows their role and sticks to it.",
     (6.1, 4.0, 3.0, 1.9, 4.6)),
    ("white_peace", "white",
     "Keeping the peace matters more than winning an argument.",
     (5.9, 3.2, 2.0, 2.2, 5.0)),

    # Blue: knowledge, planning, perfection
    ("blue_plan", "blue",
     "I would rather plan thoroughly than act quickly.",
     (4.6, 6.4, 4.0, 1.6, 3.6)),
    ("blue_curiosity", "blue",
     "Understanding how something works matters to me more than using it.",
     (3.4, 6.3, 3.8, 2.6, 3.0)),
    ("blue_improve", "blue",
     "Anything can be improved with enough study and effort.",
     (4.2, 6.2, 4.6, 3.2, 2.4)),
    ("blue_patience", "blue",
     "I am happy to wait a long time for a result if it comes out right.",
     (4.6, 6.0, 3.6, 1.8, 4.8)),
    ("blue_logic", "blue",
     "I trust a careful argument over a strong gut feeling.",
     (4.2, 6.3, 4.4, 1.8, 2.8)),

    # Black: ambition, self-interest, pragmatism
    ("black_ambition", "black",
     "Getting ahead is worth making a few enemies along the way.",
     (1.6, 3.4, 6.4, 4.4, 2.2)),
    ("black_selfreliance", "black",
     "In the end, the only person you can truly count on is yourself.",
     (1.8, 4.0, 6.3, 4.8, 2.6)),
    ("black_means", "black",
     "If the outcome is worth it, the methods matter less.",
     (1.5, 4.2, 6.2, 4.0, 2.4)),
    ("black_power", "black",
     "Power is something to be pursued, not avoided.",
     (2.4, 3.6, 6.4, 4.6, 2.4)),
    ("black_advantage", "black",
     "I look for angles other people have missed and use them.",
     (2.2, 5.0, 6.2, 4.2, 2.6)),

    # Red: freedom, passion, impulse
    ("red_impulse", "red",
     "I often act on impulse and figure out the details later.",
     (1.8, 1.6, 3.8, 6.5, 4.0)),
    ("red_feelings", "red",
     "My emotions are the best guide to what I should do.",
     (2.6, 1.6, 3.4, 6.3, 4.6)),
    ("red_freedom", "red",
     "Nobody should tell me how to live my life.",
     (1.8, 3.2, 5.0, 6.4, 4.4)),
    ("red_thrill", "red",
     "I would pick an exciting risk over a safe routine.",
     (2.0, 2.4, 4.6, 6.4, 3.0)),
    ("red_honesty", "red",
     "I say what I feel, even when it would be wiser to hold back.",
     (3.0, 1.8, 2.6, 6.2, 4.2)),

    # Green: nature, acceptance, tradition
    ("green_nature", "green",
     "People are at their best when they accept who they naturally are.",
     (3.6, 2.4, 3.2, 4.8, 6.4)),
    ("green_harmony", "green",
     "The world already has a balance, and we should respect it.",
     (4.6, 2.2, 2.0, 3.4, 6.4)),
    ("green_tradition", "green",
     "Wisdom passed down through generations is usually right.",
     (5.2, 2.0, 2.6, 2.6, 6.2)),
    ("green_growth", "green",
     "Growth should happen at its own pace, not be forced.",
     (4.2, 2.2, 2.2, 3.0, 6.3)),
    ("green_instinct", "green",
     "I trust instinct more than analysis.",
     (3.0, 1.6, 3.2, 5.6, 6.2)),
]


QUESTION_BANK: List[Question] = [
    build_question(qid, text, likert_table(means), category=category)
    for qid, category, text, means in _BANK_ITEMS
]


# Pairs of items that probe nearly the same disposition
DEFAULT_SIMILARITY = SimilarityMatrix([
    ("white_rules", "white_structure", 0.6),
    ("white_fairness", "white_rules", 0.4),
    ("white_community", "white_peace", 0.35),
    ("blue_plan", "blue_patience", 0.55),
    ("blue_curiosity", "blue_logic", 0.4),
    ("blue_plan", "red_impulse", 0.5),
    ("black_means", "black_ambition", 0.65),
    ("black_power", "black_ambition", 0.5),
    ("black_selfreliance", "red_freedom", 0.3),
    ("red_impulse", "red_thrill", 0.55),
    ("red_feelings", "green_instinct", 0.45),
    ("red_feelings", "blue_logic", 0.5),
    ("green_harmony", "green_growth", 0.5),
    ("green_tradition", "white_rules", 0.3),
    ("green_nature", "green_growth", 0.4),
])


def default_pool() -> QuestionPool:
    """The built-in bank as a QuestionPool."""
    return QuestionPool(QUESTION_BANK)


def get_question_by_id(question_id: str) -> Optional[Question]:
    """Look up a built-in question by ID."""
    for q in QUESTION_BANK:
        if q.id == question_id:
            return q
    return None


# =============================================================================
# EXTERNAL DATA
# =============================================================================

def load_similarity(data: Any) -> SimilarityMatrix:
    """
    Build a similarity matrix from parsed JSON.

    Accepts a list of [id_a, id_b, value] triples, a list of
    {"a", "b", "value"} objects, or a nested {id_a: {id_b: value}} mapping.
    """
    if data is None:
        return SimilarityMatrix()
    if isinstance(data, Mapping):
        return SimilarityMatrix.from_mapping(data)
    pairs = []
    for entry in data:
        if isinstance(entry, Mapping):
            pairs.append((entry["a"], entry["b"], entry["value"]))
        else:
            pairs.append(tuple(entry))
    return SimilarityMatrix.from_pairs(pairs)


def load_question_pool(
    source: Union[str, Path, Mapping[str, Any]],
) -> Tuple[QuestionPool, SimilarityMatrix]:
    """
    Load a question pool and its similarity matrix.

    Format:
        {
          "questions": [
            {"id": "q1", "text": "...", "category": "blue",
             "likelihoods": {"blue": {"1": 0.05, ..., "7": 0.3}, ...}}
          ],
          "similarity": [["q1", "q2", 0.4], ...]
        }

    Questions with malformed tables are rejected (see build_pool); the rest
    are returned. Similarity entries naming unknown questions are dropped.
    """
    if isinstance(source, Mapping):
        data = source
    else:
        path = Path(source)
        data = json.loads(path.read_text(encoding="utf-8"))
        logger.info(f"Loading question pool from {path}")

    pool = build_pool(data.get("questions", []))
    similarity = load_similarity(data.get("similarity"))

    known = set(pool.ids) | set(pool.rejected)
    unknown = [(a, b) for a, b, _ in similarity.pairs() if a not in known or b not in known]
    if unknown:
        logger.warning(f"Similarity entries reference unknown questions: {unknown}")
        similarity = SimilarityMatrix(
            (a, b, v) for a, b, v in similarity.pairs() if a in known and b in known
        )
    return pool, similarity

