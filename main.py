# src/main.py
import asyncio
import logging

from fastapi import FastAPI, WebSocket
from starlette.websockets import WebSocketDisconnect

from engine import SignalEngine
from models import StatusResponse

logger = logging.getLogger(__name__)


def create_app(engine: SignalEngine, poll_interval_s: float = 0.1) -> FastAPI:
    """Read-only view of a running engine.

    The app never mutates the engine. It serves ``engine.published``, the snapshot
    the engine takes after each sample, so a request handled while ``process`` waits
    on a notification never sees a sample half-applied.
    """
    app = FastAPI(title="Crossover Signal Bot")
    app.state.engine = engine

    @app.get("/health", tags=["Status"])
    async def health():
        return {"status": "ok"}

    @app.get("/status", response_model=StatusResponse, tags=["Status"])
    async def get_status():
        return engine.published

    @app.websocket("/ws/decisions")
    async def decisions_ws(websocket: WebSocket):
        """Send a status snapshot on connect, then each new decision as it is emitted."""
        await websocket.accept()
        try:
            await websocket.send_json({"type": "status", "status": engine.published.model_dump()})
            last_seen = engine.published_decisions
            while True:
                # Only the latest decision is kept, so a burst within one poll
                # interval is reported as its final decision.
                published = engine.published
                if engine.published_decisions != last_seen and published.latest_decision is not None:
                    last_seen = engine.published_decisions
                    await websocket.send_json({"type": "decision", "decision": published.latest_decision})
                # Waiting on receive (not sleep) notices a disconnect while idle.
                # Client frames of any kind are ignored.
                try:
                    message = await asyncio.wait_for(websocket.receive(), timeout=poll_interval_s)
                except asyncio.TimeoutError:
                    continue
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
        except WebSocketDisconnect:
            logger.info("Client disconnected from decisions WebSocket.")

    return app
