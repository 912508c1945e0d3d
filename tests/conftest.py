"""Shared fixtures: question factories and a controllable random source."""

import numpy as np
import pytest

from colorpie.core.likelihood import build_question
from colorpie.core.model import N_ARCHETYPES


class FixedDraw:
    """Random source whose .random() always returns the same value."""

    def __init__(self, value: float):
        self.value = value
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        return self.value


@pytest.fixture
def fixed_draw():
    """Factory for a FixedDraw random source."""
    return FixedDraw


@pytest.fixture
def make_question():
    """
    Factory: build a question from per-archetype score columns.

    `columns` is either one length-7 column shared by all archetypes or a
    list of 5 columns in canonical archetype order.
    """
    def _make(question_id, columns, text="", category=""):
        columns = np.asarray(columns, dtype=np.float64)
        if columns.ndim == 1:
            matrix = np.tile(columns[:, None], (1, N_ARCHETYPES))
        else:
            matrix = columns.T
        return build_question(question_id, text or question_id, matrix, category=category)

    return _make


@pytest.fixture
def blue_six_question(make_question):
    """Blue answers 6 with probability 0.6; everyone else rarely does."""
    blue = [0.4 / 6] * 5 + [0.6] + [0.4 / 6]
    other = [0.95 / 6] * 5 + [0.05] + [0.95 / 6]
    return make_question("blue_six", [other, blue, other, other, other])
