"""Workbench session: the controller sequencing staging, extraction and news.

The session is a finite state machine over ``SessionPhase`` with an orthogonal
``NewsPhase`` sub-state. It owns the staged files, the current record and the
error slots, and it replaces the record wholesale on every change.

Responsibilities:
- Stage files (unique by name) and invalidate prior results on any change
- Refuse to extract without a configured credential
- Unpack, encode and extract, always leaving the EXTRACTING phase
- Start the news lookup in the background once an entity name is known
- Keep the news sub-state isolated from the extracted record
- Hand out a Q&A session bound to the current record
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Iterable, Protocol, Sequence

from pydantic import BaseModel, Field, ValidationError

from workbench.chat.session import ChatTransport, QASession
from workbench.config.settings import WorkbenchConfig
from workbench.extraction.fields import missing_fields
from workbench.extraction.orchestrator import ExtractionOrchestrator
from workbench.extraction.schema import ExtractedRecord
from workbench.extraction.sections import SectionSpec, section_for
from workbench.ingest.email_unpacker import unpack_files
from workbench.ingest.files import EncodedFile, UploadedFile, encode_files
from workbench.news.enrichment import NewsEnrichment, NewsResult, classify_news_error
from workbench.session.phases import (
    VALID_NEWS_TRANSITIONS,
    VALID_TRANSITIONS,
    NewsPhase,
    SessionPhase,
)
from workbench.signals.emitter import SignalEmitter
from workbench.signals.types import SignalType
from workbench.telemetry.errors import (
    ErrorCode,
    SessionBusyError,
    SessionError,
    emit_structured_error,
)

logger = logging.getLogger(__name__)


class ModelEngine(Protocol):
    async def generate_json(
        self, prompt: str, files: Sequence[EncodedFile], response_schema: dict[str, Any]
    ) -> Any: ...

    async def search_grounded(self, prompt: str) -> Any: ...

    def start_chat(self, system_instruction: str) -> ChatTransport: ...


class StagedFile(BaseModel):
    name: str
    size: int
    content_type: str | None = None


class SessionState(BaseModel):
    """Serializable view of a session."""

    session_id: str
    phase: SessionPhase
    files: list[StagedFile] = Field(default_factory=list)
    record: dict[str, Any] | None = None
    missing_fields: dict[str, list[str]] = Field(default_factory=dict)
    extraction_error: str | None = None
    news_phase: NewsPhase = NewsPhase.IDLE
    news: NewsResult | None = None
    news_error: str | None = None
    is_extracting: bool = False
    is_news_loading: bool = False


def _resolve_field(spec: SectionSpec, name: str) -> str:
    for attribute, info in spec.model.model_fields.items():
        if name in (attribute, info.alias):
            return attribute
    raise KeyError(f"Unknown field '{name}' in section '{spec.key}'")


class WorkbenchSession:
    """In-memory controller for one underwriter's workbench."""

    def __init__(
        self,
        config: WorkbenchConfig,
        engine: ModelEngine | None = None,
        *,
        session_id: str | None = None,
    ) -> None:
        self._config = config
        self._session_id = session_id or f"session_{uuid.uuid4().hex[:12]}"
        self._signals = SignalEmitter(session_id=self._session_id)
        self._engine = engine
        self._orchestrator = (
            ExtractionOrchestrator(engine, signals=self._signals) if engine else None
        )
        self._news_service = NewsEnrichment(engine) if engine else None

        self._phase = SessionPhase.IDLE
        self._news_phase = NewsPhase.IDLE
        self._files: list[UploadedFile] = []
        self._record: ExtractedRecord | None = None
        self._news: NewsResult | None = None
        self._extraction_error: str | None = None
        self._news_error: str | None = None
        self._news_task: asyncio.Task[None] | None = None
        self._run = 0
        self._chat: QASession | None = None
        self._submitting = False

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def news_phase(self) -> NewsPhase:
        return self._news_phase

    @property
    def signals(self) -> SignalEmitter:
        return self._signals

    @property
    def files(self) -> list[UploadedFile]:
        return list(self._files)

    @property
    def record(self) -> ExtractedRecord | None:
        return self._record

    @property
    def news(self) -> NewsResult | None:
        return self._news

    @property
    def extraction_error(self) -> str | None:
        return self._extraction_error

    @property
    def news_error(self) -> str | None:
        return self._news_error

    @property
    def is_configured(self) -> bool:
        return self._config.is_configured

    # --- Phase Transition ---

    async def _transition(self, to_phase: SessionPhase, context: dict[str, Any] | None = None) -> None:
        """Every outer phase change goes through this guard."""
        if to_phase not in VALID_TRANSITIONS.get(self._phase, set()):
            raise SessionError(f"Invalid transition: {self._phase.value} -> {to_phase.value}")
        from_phase = self._phase
        self._phase = to_phase
        await self._signals.emit_phase_transition(from_phase.value, to_phase.value, context)

    async def _set_news_phase(self, to_phase: NewsPhase, context: dict[str, Any] | None = None) -> None:
        if to_phase is self._news_phase:
            return
        if to_phase not in VALID_NEWS_TRANSITIONS.get(self._news_phase, set()):
            raise SessionError(
                f"Invalid news transition: {self._news_phase.value} -> {to_phase.value}"
            )
        from_phase = self._news_phase
        self._news_phase = to_phase
        await self._signals.emit_news_transition(from_phase.value, to_phase.value, context)

    def _ensure_not_extracting(self) -> None:
        if self._submitting or self._phase is SessionPhase.EXTRACTING:
            raise SessionBusyError("An extraction is already in progress")

    async def _reset_results(self) -> None:
        """Drop the record, news and both error slots; supersede any news lookup."""
        self._run += 1
        if self._news_task is not None and not self._news_task.done():
            self._news_task.cancel()
        self._news_task = None
        self._record = None
        self._news = None
        self._extraction_error = None
        self._news_error = None
        self._chat = None
        await self._set_news_phase(NewsPhase.IDLE)

    async def _files_changed(self) -> None:
        await self._reset_results()
        await self._transition(SessionPhase.FILES_STAGED if self._files else SessionPhase.IDLE)
        await self._signals.emit(
            SignalType.FILES_CHANGED, {"files": [file.name for file in self._files]}
        )

    # --- Staging ---

    async def add_files(self, files: Iterable[UploadedFile]) -> int:
        """Stage files whose names are not staged yet; returns how many were added."""
        self._ensure_not_extracting()
        staged_names = {file.name for file in self._files}
        added: list[UploadedFile] = []
        for file in files:
            if file.name in staged_names:
                continue
            staged_names.add(file.name)
            added.append(file)
        if not added:
            return 0
        self._files = [*self._files, *added]
        await self._files_changed()
        return len(added)

    async def remove_file(self, index: int) -> UploadedFile:
        self._ensure_not_extracting()
        if not 0 <= index < len(self._files):
            raise IndexError(f"No staged file at index {index}")
        removed = self._files[index]
        self._files = [file for i, file in enumerate(self._files) if i != index]
        await self._files_changed()
        return removed

    async def clear_files(self) -> None:
        self._ensure_not_extracting()
        self._files = []
        await self._files_changed()

    def dismiss_error(self) -> None:
        self._extraction_error = None

    # --- Extraction ---

    async def submit(self) -> ExtractedRecord | None:
        """Run one extraction over the staged files.

        Returns the new record, or None when nothing was staged or the run
        failed (the reason is kept in ``extraction_error``). Raises
        ConfigurationError before any work when no credential is configured.
        """
        if not self._files:
            return None
        self._ensure_not_extracting()
        self._config.require_api_key()
        if self._orchestrator is None:
            raise SessionError("No model engine is attached to this session")

        self._submitting = True
        try:
            return await self._extract(self._orchestrator)
        finally:
            self._submitting = False

    async def _extract(self, orchestrator: ExtractionOrchestrator) -> ExtractedRecord | None:
        await self._reset_results()
        run = self._run
        await self._transition(SessionPhase.EXTRACTING, {"files": len(self._files)})

        try:
            unpacked = unpack_files(self._files)
            encoded = encode_files(unpacked)
            record = await orchestrator.extract(encoded)
        except asyncio.CancelledError:
            await self._fail_extraction("Extraction was cancelled")
            raise
        except Exception as exc:
            await self._fail_extraction(str(exc) or type(exc).__name__)
            return None

        self._record = record
        await self._transition(SessionPhase.EXTRACTED)
        await self._signals.emit(
            SignalType.EXTRACTION_COMPLETE,
            {
                "sublimits": len(record.sublimits),
                "buildings": len(record.building_details),
                "entity_name": record.anagrafica.entity_name,
            },
        )

        entity_name = record.anagrafica.entity_name
        if entity_name:
            await self._set_news_phase(NewsPhase.LOADING, {"entity_name": entity_name})
            self._news_task = asyncio.create_task(self._run_news(run, entity_name))
        return record

    async def _fail_extraction(self, reason: str) -> None:
        emit_structured_error(
            logger,
            code=ErrorCode.EXTRACTION_RUN_FAILED,
            message=reason,
            suppressed=True,
            session_id=self._session_id,
            phase=self._phase.value,
        )
        self._record = None
        self._news = None
        self._extraction_error = reason
        await self._transition(SessionPhase.EXTRACTION_FAILED, {"reason": reason})
        await self._signals.emit(SignalType.EXTRACTION_FAILED, {"failure_reason": reason})

    async def _run_news(self, run: int, entity_name: str) -> None:
        if self._news_service is None:
            return
        try:
            news = await self._news_service.fetch_news(entity_name)
        except Exception as exc:
            if run != self._run:
                return
            message = classify_news_error(exc)
            emit_structured_error(
                logger,
                code=ErrorCode.NEWS_FETCH_FAILED,
                message=str(exc) or type(exc).__name__,
                suppressed=True,
                session_id=self._session_id,
                phase=self._phase.value,
                details={"entity_name": entity_name},
            )
            self._news_error = message
            await self._set_news_phase(NewsPhase.FAILED, {"reason": message})
            await self._signals.emit(SignalType.NEWS_FAILED, {"reason": message})
            return

        if run != self._run:
            return
        self._news = news
        await self._set_news_phase(NewsPhase.READY)
        await self._signals.emit(
            SignalType.NEWS_READY,
            {"found": news is not None, "citations": len(news.citations) if news else 0},
        )

    async def wait_for_news(self) -> None:
        """Wait until the in-flight news lookup (if any) has settled."""
        task = self._news_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    # --- Editing ---

    def _require_record(self) -> ExtractedRecord:
        if self._phase is not SessionPhase.EXTRACTED or self._record is None:
            raise SessionError("No extracted record to edit")
        return self._record

    async def _store_edit(self, record: ExtractedRecord, detail: dict[str, Any]) -> ExtractedRecord:
        self._record = record
        await self._signals.emit(SignalType.RECORD_EDITED, detail)
        return record

    async def update_field(self, section: str, field: str, value: Any) -> ExtractedRecord:
        """Set one field of a scalar section, producing a new record."""
        record = self._require_record()
        spec = section_for(section)
        if spec.is_list:
            raise SessionError(f"Section '{spec.key}' is a list; use update_list_item")
        attribute = _resolve_field(spec, field)
        current = getattr(record, spec.attribute)
        try:
            updated = spec.model.model_validate({**current.model_dump(), attribute: value})
        except ValidationError as exc:
            raise SessionError(f"Invalid value for {spec.key}.{field}: {exc.errors()[0]['msg']}") from exc
        return await self._store_edit(
            record.model_copy(update={spec.attribute: updated}),
            {"section": spec.key, "field": field},
        )

    async def update_list_item(
        self, section: str, index: int, field: str, value: Any
    ) -> ExtractedRecord:
        """Set one field of one item in a list section, producing a new record."""
        record = self._require_record()
        spec = section_for(section)
        if not spec.is_list:
            raise SessionError(f"Section '{spec.key}' is not a list")
        items = list(getattr(record, spec.attribute))
        if not 0 <= index < len(items):
            raise IndexError(f"No item at index {index} in '{spec.key}'")
        attribute = _resolve_field(spec, field)
        try:
            items[index] = spec.model.model_validate({**items[index].model_dump(), attribute: value})
        except ValidationError as exc:
            raise SessionError(f"Invalid value for {spec.key}.{field}: {exc.errors()[0]['msg']}") from exc
        return await self._store_edit(
            record.model_copy(update={spec.attribute: items}),
            {"section": spec.key, "index": index, "field": field},
        )

    async def add_list_item(self, section: str) -> ExtractedRecord:
        record = self._require_record()
        spec = section_for(section)
        if not spec.is_list:
            raise SessionError(f"Section '{spec.key}' is not a list")
        items = [*getattr(record, spec.attribute), spec.model()]
        return await self._store_edit(
            record.model_copy(update={spec.attribute: items}),
            {"section": spec.key, "added_index": len(items) - 1},
        )

    async def remove_list_item(self, section: str, index: int) -> ExtractedRecord:
        record = self._require_record()
        spec = section_for(section)
        if not spec.is_list:
            raise SessionError(f"Section '{spec.key}' is not a list")
        items = list(getattr(record, spec.attribute))
        if not 0 <= index < len(items):
            raise IndexError(f"No item at index {index} in '{spec.key}'")
        del items[index]
        return await self._store_edit(
            record.model_copy(update={spec.attribute: items}),
            {"section": spec.key, "removed_index": index},
        )

    async def replace_record(self, record: ExtractedRecord) -> ExtractedRecord:
        self._require_record()
        return await self._store_edit(record.model_copy(deep=True), {"replaced": True})

    # --- Q&A ---

    def chat(self) -> QASession:
        """The Q&A session for the current record, recreated when the record changes."""
        self._config.require_api_key()
        if self._record is None:
            raise SessionError("Extract data before starting a chat")
        if self._engine is None:
            raise SessionError("No model engine is attached to this session")
        if self._chat is None or self._chat.source is not self._record:
            self._chat = QASession(self._engine, self._record)
        return self._chat

    # --- View ---

    def snapshot(self) -> SessionState:
        return SessionState(
            session_id=self._session_id,
            phase=self._phase,
            files=[
                StagedFile(name=file.name, size=file.size, content_type=file.content_type)
                for file in self._files
            ],
            record=self._record.to_wire() if self._record else None,
            missing_fields={
                title: [spec.label for spec in specs]
                for title, specs in missing_fields(self._record).items()
            }
            if self._record
            else {},
            extraction_error=self._extraction_error,
            news_phase=self._news_phase,
            news=self._news,
            news_error=self._news_error,
            is_extracting=self._phase is SessionPhase.EXTRACTING,
            is_news_loading=self._news_phase is NewsPhase.LOADING,
        )
