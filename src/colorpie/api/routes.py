"""
REST API routes for ColorPie.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException

from ..content.question_bank import DEFAULT_SIMILARITY, default_pool, load_question_pool
from ..core.config import SessionConfig
from ..core.driver import SessionDriver
from ..core.exceptions import (
    ColorPieError,
    ConfigurationError,
    EmptyPoolError,
    ImpossibleObservationError,
    NoPendingQuestionError,
    SessionClosedError,
    SessionNotCompletedError,
)
from ..core.likelihood import Question
from ..viz.radar_chart import create_radar_chart
from .schemas import (
    AnswerRequest,
    QuestionData,
    StartSessionRequest,
    StartSessionResponse,
    StepResponse,
    SummaryData,
    TraceEntryData,
)
from .session import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Optional JSON pool replacing the built-in bank
POOL_PATH_ENV = "COLORPIE_POOL_PATH"

# Global session manager (created on first use)
session_manager: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    global session_manager
    if session_manager is None:
        pool_path = os.environ.get(POOL_PATH_ENV, "").strip()
        if pool_path:
            pool, similarity = load_question_pool(pool_path)
        else:
            pool, similarity = default_pool(), DEFAULT_SIMILARITY
        session_manager = SessionManager(pool, similarity, SessionConfig.from_env())
    return session_manager


def _get_driver(session_id: str) -> SessionDriver:
    sm = get_session_manager()
    driver = sm.get_driver(session_id)
    if driver is None:
        raise HTTPException(404, f"Session {session_id} not found")
    return driver


def _http_error(e: ColorPieError) -> HTTPException:
    """Map an engine error onto an HTTP status."""
    if isinstance(e, (SessionClosedError, SessionNotCompletedError, NoPendingQuestionError)):
        return HTTPException(409, e.message)
    if isinstance(e, (ImpossibleObservationError, ConfigurationError)):
        return HTTPException(422, e.message)
    if isinstance(e, EmptyPoolError):
        return HTTPException(503, e.message)
    return HTTPException(500, e.message)


def _question_data(question: Optional[Question]) -> Optional[QuestionData]:
    if question is None:
        return None
    return QuestionData(id=question.id, text=question.text, category=question.category)


def _summary_data(driver: SessionDriver) -> SummaryData:
    summary = driver.summary()
    return SummaryData(
        top_archetype=summary["top_archetype"],
        top_probability=summary["top_probability"],
        entropy_bits=summary["entropy_bits"],
        confidence=summary["confidence"],
        n_answered=summary["n_answered"],
    )


def _step_response(driver: SessionDriver) -> StepResponse:
    """Present the next question (if any) and describe the session."""
    question = None if driver.is_complete else driver.present_next()
    return StepResponse(
        state=driver.state,
        distribution=driver.current_distribution().as_dict(),
        question=_question_data(question),
        progress=driver.progress,
        is_complete=driver.is_complete,
        result=_summary_data(driver) if driver.is_complete else None,
    )


@router.get("/status")
async def status() -> Dict[str, Any]:
    """Question bank size and default configuration."""
    sm = get_session_manager()
    return {
        "n_questions": len(sm.pool),
        "rejected_questions": sorted(sm.pool.rejected),
        "config": sm.config.to_dict(),
        "active_sessions": len(sm.list_sessions()),
    }


@router.post("/session/start", response_model=StartSessionResponse)
async def start_session(request: StartSessionRequest = StartSessionRequest()):
    """Start a new session and present its first question."""
    sm = get_session_manager()
    try:
        config = sm.config.with_overrides(
            max_questions=request.max_questions,
            temperature=request.temperature,
            shrinkage_factor=request.shrinkage_factor,
        )
        session_id = sm.create_session(config=config, seed=request.seed)
        driver = sm.get_driver(session_id)
        if driver is None:
            raise HTTPException(500, "Failed to create session")
        question = driver.present_next()
    except ColorPieError as e:
        raise _http_error(e) from e

    return StartSessionResponse(
        session_id=session_id,
        state=driver.state,
        question=_question_data(question),
        distribution=driver.current_distribution().as_dict(),
        config=config.to_dict(),
    )


@router.post("/session/{session_id}/answer", response_model=StepResponse)
async def answer(session_id: str, request: AnswerRequest):
    """Record the score for the presented question and present the next one."""
    driver = _get_driver(session_id)
    try:
        driver.record_answer(request.score)
        return _step_response(driver)
    except ColorPieError as e:
        logger.info(f"Session {session_id}: answer rejected ({e.message})")
        raise _http_error(e) from e


@router.post("/session/{session_id}/skip", response_model=StepResponse)
async def skip(session_id: str):
    """Drop the presented question without using it."""
    driver = _get_driver(session_id)
    try:
        driver.skip_pending()
        return _step_response(driver)
    except ColorPieError as e:
        raise _http_error(e) from e


@router.get("/session/{session_id}/distribution")
async def get_distribution(session_id: str) -> Dict[str, Any]:
    """Current belief and session summary."""
    return _get_driver(session_id).summary()


@router.get("/session/{session_id}/result", response_model=SummaryData)
async def get_result(session_id: str):
    """Final classification; 409 until the session completes."""
    driver = _get_driver(session_id)
    try:
        driver.final_result()
    except ColorPieError as e:
        raise _http_error(e) from e
    return _summary_data(driver)


@router.get("/session/{session_id}/trace", response_model=List[TraceEntryData])
async def get_trace(session_id: str):
    """Ordered (question, score, belief) log of the session."""
    return [TraceEntryData(**entry.to_dict()) for entry in _get_driver(session_id).trace]


@router.get("/session/{session_id}/chart")
async def get_chart(session_id: str) -> Dict[str, Any]:
    """Plotly radar chart of the current belief."""
    driver = _get_driver(session_id)
    trace = driver.trace
    previous = trace[-2].distribution if len(trace) >= 2 else None
    return {"chart": create_radar_chart(driver.current_distribution(), previous=previous)}


@router.delete("/session/{session_id}")
async def delete_session(session_id: str) -> Dict[str, Any]:
    """Abandon a session."""
    sm = get_session_manager()
    if not sm.session_exists(session_id):
        raise HTTPException(404, f"Session {session_id} not found")
    sm.delete_session(session_id)
    return {"deleted": session_id}
