"""
Exception hierarchy for the ColorPie questionnaire engine.

All engine errors inherit from ColorPieError. None of them are retried or
masked inside the core: the caller decides whether to abort the session,
skip the offending question, or retry with corrected input.
"""

from __future__ import annotations

from typing import Optional


class ColorPieError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Input data errors
# =============================================================================


class ConfigurationError(ColorPieError):
    """Invalid session configuration."""


class InvalidLikelihoodTableError(ColorPieError):
    """Likelihood table is missing entries, has negative values, or rows not summing to 1."""

    def __init__(self, message: str, question_id: Optional[str] = None):
        self.question_id = question_id
        if question_id is not None:
            message = f"Question {question_id!r}: {message}"
        super().__init__(message)


# =============================================================================
# Inference errors
# =============================================================================


class ImpossibleObservationError(ColorPieError):
    """Observed score has (near) zero marginal probability under current beliefs."""

    def __init__(self, question_id: str, score: int, marginal: float):
        self.question_id = question_id
        self.score = score
        self.marginal = marginal
        super().__init__(
            f"Score {score} for question {question_id!r} is impossible under "
            f"current beliefs (marginal={marginal:.3e})"
        )


class DegenerateDistributionError(ColorPieError):
    """Normalization attempted on an all-zero (or invalid) vector."""


class InvalidTemperatureError(ColorPieError):
    """Non-positive softmax temperature."""

    def __init__(self, temperature: float):
        self.temperature = temperature
        super().__init__(f"Temperature must be > 0, got {temperature!r}")


class EmptyPoolError(ColorPieError):
    """Selection attempted with no remaining candidate questions."""


# =============================================================================
# Session lifecycle errors
# =============================================================================


class SessionClosedError(ColorPieError):
    """Operation attempted on a completed session."""


class SessionNotCompletedError(ColorPieError):
    """Final result requested before the session completed."""


class NoPendingQuestionError(ColorPieError):
    """Answer recorded while no question is being presented."""
