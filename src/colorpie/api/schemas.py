"""
Pydantic request/response models for the ColorPie API.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# REQUEST MODELS
# =============================================================================

class StartSessionRequest(BaseModel):
    """Request to start a new questionnaire session (None = server default)."""
    max_questions: Optional[int] = Field(None, gt=0, description="Stop after this many answers")
    temperature: Optional[float] = Field(None, gt=0.0, description="Softmax temperature for selection")
    shrinkage_factor: Optional[float] = Field(None, ge=0.0, lt=1.0, description="Per-step pull toward uniform")
    seed: Optional[int] = Field(None, description="Seed for reproducible question order")


class AnswerRequest(BaseModel):
    """Score for the question currently presented."""
    score: int = Field(..., description="Likert score (1-7)")

    @field_validator("score", mode="before")
    @classmethod
    def _reject_bool(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("score must be an integer, not a boolean")
        return v


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class QuestionData(BaseModel):
    """A question as shown to the respondent."""
    id: str
    text: str
    category: str = ""
    scale: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5, 6, 7])


class SummaryData(BaseModel):
    """Final or interim classification summary."""
    top_archetype: str
    top_probability: float
    entropy_bits: float
    confidence: float
    n_answered: int


class StartSessionResponse(BaseModel):
    """Response from starting a new session."""
    session_id: str
    state: str
    question: QuestionData
    distribution: Dict[str, float]
    config: Dict[str, Any]


class StepResponse(BaseModel):
    """Response after an answer or a skip."""
    state: str
    distribution: Dict[str, float]
    question: Optional[QuestionData] = None
    progress: float
    is_complete: bool = False
    result: Optional[SummaryData] = None


class TraceEntryData(BaseModel):
    step: int
    question_id: str
    score: int
    discount: float
    distribution: Dict[str, float]
