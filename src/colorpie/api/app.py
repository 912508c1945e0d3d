"""
FastAPI application for ColorPie.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from .routes import router, get_session_manager
from .websocket import websocket_endpoint

# INFO from colorpie modules (session start/completion, rejected questions)
logging.basicConfig(level=logging.INFO, format="%(name)s - %(levelname)s - %(message)s")
logging.getLogger("colorpie").setLevel(logging.INFO)

app = FastAPI(
    title="ColorPie",
    description="Adaptive archetype questionnaire with Bayesian belief updating",
    version="0.1.0",
)

# CORS for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(router)


@app.get("/")
async def root():
    return {"message": "ColorPie API", "docs": "/docs"}


@app.websocket("/ws/{session_id}")
async def ws_endpoint(websocket: WebSocket, session_id: str):
    """WebSocket endpoint for interactive sessions."""
    sm = get_session_manager()
    await websocket_endpoint(websocket, session_id, sm)
