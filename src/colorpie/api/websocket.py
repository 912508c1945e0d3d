"""
WebSocket handler for interactive ColorPie sessions.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ..core.exceptions import ColorPieError
from ..core.driver import SessionDriver
from .schemas import AnswerRequest
from .session import SessionManager


def _question_message(driver: SessionDriver) -> Dict[str, Any]:
    question = driver.present_next()
    return {
        "type": "question",
        "data": {"id": question.id, "text": question.text, "category": question.category},
        "progress": driver.progress,
    }


def _result_message(driver: SessionDriver) -> Dict[str, Any]:
    return {
        "type": "result",
        "data": driver.summary(),
        "trace": [entry.to_dict() for entry in driver.trace],
    }


async def websocket_endpoint(
    websocket: WebSocket,
    session_id: str,
    session_manager: SessionManager,
):
    """
    WebSocket handler for a questionnaire session.

    The server presents a question and waits for the respondent's answer;
    nothing is locked while waiting.

    Protocol:
        Client -> Server:
            {"type": "answer", "score": 5}
            {"type": "skip"}
            {"type": "status"}

        Server -> Client:
            {"type": "question", "data": {...}, "progress": 0.25}
            {"type": "distribution", "data": {...}}
            {"type": "result", "data": {...}, "trace": [...]}
            {"type": "error", "message": "..."}
    """
    await websocket.accept()

    driver = session_manager.get_driver(session_id)
    if driver is None:
        await websocket.send_json({"type": "error", "message": f"Session {session_id} not found"})
        await websocket.close()
        return

    try:
        if driver.is_complete:
            await websocket.send_json(_result_message(driver))
        else:
            await websocket.send_json(_question_message(driver))

        while True:
            data = await websocket.receive_json()
            if not isinstance(data, dict):
                await websocket.send_json({"type": "error", "message": "Message must be a JSON object"})
                continue
            msg_type = data.get("type", "")

            if msg_type == "status":
                await websocket.send_json({"type": "distribution", "data": driver.summary()})
                continue

            try:
                if msg_type == "answer":
                    request = AnswerRequest.model_validate(data)
                    driver.record_answer(request.score)
                    await websocket.send_json({
                        "type": "distribution",
                        "data": driver.current_distribution().as_dict(),
                    })
                elif msg_type == "skip":
                    driver.skip_pending()
                else:
                    await websocket.send_json({
                        "type": "error",
                        "message": f"Unknown message type: {msg_type!r}",
                    })
                    continue
            except ValidationError as e:
                await websocket.send_json({"type": "error", "message": f"Invalid answer: {e.errors()[0]['msg']}"})
                continue
            except ColorPieError as e:
                await websocket.send_json({"type": "error", "message": e.message})
                continue

            if driver.is_complete:
                await websocket.send_json(_result_message(driver))
            else:
                await websocket.send_json(_question_message(driver))

    except WebSocketDisconnect:
        pass
