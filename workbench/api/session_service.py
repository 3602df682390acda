"""Service layer holding the workbench session and its websocket subscribers."""

from __future__ import annotations

import logging

from fastapi import WebSocket

from workbench.ai_engine.engine import AIEngine
from workbench.config.settings import WorkbenchConfig
from workbench.session.controller import ModelEngine, WorkbenchSession
from workbench.signals.types import Signal
from workbench.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


class SessionService:
    """Owns the single in-memory session served by the API."""

    def __init__(self, config: WorkbenchConfig, engine: ModelEngine | None = None) -> None:
        self.config = config
        self.session = WorkbenchSession(config, engine)
        self.websockets: list[WebSocket] = []
        self.session.signals.subscribe(self._broadcast)

    @classmethod
    def from_config(cls, config: WorkbenchConfig) -> SessionService:
        """Attach a live engine when a credential is configured.

        Without one the service still starts; model-backed endpoints then
        answer with a configuration error.
        """
        engine = AIEngine.from_config(config) if config.is_configured else None
        if engine is None:
            logger.warning("Gemini API key missing; extraction, news and chat are disabled")
        return cls(config, engine)

    async def _broadcast(self, signal: Signal) -> None:
        data = signal.model_dump_json()
        disconnected: list[WebSocket] = []
        for ws in self.websockets:
            try:
                await ws.send_text(data)
            except Exception as exc:
                emit_structured_error(
                    logger,
                    code=ErrorCode.API_WEBSOCKET_SEND_FAILED,
                    message=str(exc),
                    suppressed=True,
                    session_id=self.session.session_id,
                    phase=self.session.phase.value,
                )
                disconnected.append(ws)
        for ws in disconnected:
            self.remove_websocket(ws)

    def add_websocket(self, websocket: WebSocket) -> None:
        self.websockets.append(websocket)

    def remove_websocket(self, websocket: WebSocket) -> None:
        self.websockets = [ws for ws in self.websockets if ws is not websocket]
