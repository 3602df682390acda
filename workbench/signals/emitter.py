"""In-memory signal log for one workbench session.

Each emitted signal gets the next sequence number, is appended to the log and
is then pushed to every subscriber (WebSocket broadcasters, tests). Late
subscribers catch up through ``since``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Union

from workbench.signals.types import Signal, SignalType
from workbench.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

Subscriber = Callable[[Signal], Union[None, Awaitable[None]]]


class SignalEmitter:
    """Sequenced, append-only signal log with push delivery."""

    def __init__(self, session_id: str) -> None:
        self._session_id = session_id
        self._log: list[Signal] = []
        self._listeners: list[Subscriber] = []
        self._emit_lock = asyncio.Lock()

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def signals(self) -> list[Signal]:
        return list(self._log)

    @property
    def last_sequence(self) -> int:
        return self._log[-1].sequence if self._log else 0

    def since(self, sequence: int) -> list[Signal]:
        """Signals with a sequence number greater than ``sequence``."""
        return [signal for signal in self._log if signal.sequence > sequence]

    def subscribe(self, callback: Subscriber) -> None:
        self._listeners.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        # Identity, not equality: two bound methods of one object compare equal.
        self._listeners = [listener for listener in self._listeners if listener is not callback]

    async def emit(self, signal_type: SignalType, payload: dict[str, Any] | None = None) -> Signal:
        async with self._emit_lock:
            signal = Signal(
                sequence=self.last_sequence + 1,
                signal_type=signal_type,
                timestamp=datetime.now(timezone.utc),
                session_id=self._session_id,
                payload=dict(payload or {}),
            )
            self._log.append(signal)

        await self._deliver(signal)
        return signal

    async def _deliver(self, signal: Signal) -> None:
        for listener in tuple(self._listeners):
            try:
                outcome = listener(signal)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception as exc:
                emit_structured_error(
                    logger,
                    code=ErrorCode.SIGNAL_SUBSCRIBER_FAILURE,
                    message=str(exc),
                    suppressed=True,
                    session_id=self._session_id,
                    details={"signal_type": signal.signal_type.value, "sequence": signal.sequence},
                )

    async def _emit_transition(
        self,
        signal_type: SignalType,
        from_phase: str,
        to_phase: str,
        context: dict[str, Any] | None,
    ) -> Signal:
        return await self.emit(signal_type, {**(context or {}), "from_phase": from_phase, "to_phase": to_phase})

    async def emit_phase_transition(
        self, from_phase: str, to_phase: str, context: dict[str, Any] | None = None
    ) -> Signal:
        return await self._emit_transition(SignalType.PHASE_TRANSITION, from_phase, to_phase, context)

    async def emit_news_transition(
        self, from_phase: str, to_phase: str, context: dict[str, Any] | None = None
    ) -> Signal:
        return await self._emit_transition(SignalType.NEWS_TRANSITION, from_phase, to_phase, context)

    async def emit_section_result(self, section: str, succeeded: bool, detail: str = "") -> Signal:
        """SECTION_COMPLETE or SECTION_FAILED for one extraction section."""
        payload: dict[str, Any] = {"section": section}
        if detail:
            payload["detail"] = detail
        return await self.emit(
            SignalType.SECTION_COMPLETE if succeeded else SignalType.SECTION_FAILED, payload
        )
