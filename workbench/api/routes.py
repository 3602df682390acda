"""REST API routes for the underwriting workbench.

Provides endpoints for:
- Describing the editable fields of a record
- Staging and removing submission files
- Running extraction and reading the session state
- Editing the extracted record
- Reading the news lookup and chatting about the record
- Exporting CSV, PDF, the broker e-mail draft and the risk snapshot
- Streaming session signals over a WebSocket
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
)
from pydantic import BaseModel

from workbench.api.session_service import SessionService
from workbench.chat.session import ChatMessage
from workbench.config.settings import MISSING_CREDENTIAL_MESSAGE
from workbench.export.csv_export import CSV_MEDIA_TYPE, csv_filename, export_csv
from workbench.export.email_draft import EmailDraft, draft_missing_info_email
from workbench.export.pdf_export import PDF_MEDIA_TYPE, PdfExportConfig, export_pdf, pdf_filename
from workbench.extraction.fields import SectionDescriptor, field_catalogue
from workbench.extraction.schema import ExtractedRecord
from workbench.extraction.sections import section_for
from workbench.extraction.snapshot import RiskSnapshot, build_snapshot
from workbench.ingest.files import UploadedFile
from workbench.news.enrichment import NewsResult
from workbench.session.controller import SessionState
from workbench.session.phases import NewsPhase
from workbench.telemetry.errors import (
    ChatBusyError,
    ConfigurationError,
    SessionBusyError,
    SessionError,
    UnsupportedFileError,
)

router = APIRouter()


def get_session_service(request: Request) -> SessionService:
    return request.app.state.session_service


@contextmanager
def _http_errors() -> Iterator[None]:
    """Translate workbench errors into HTTP responses."""
    try:
        yield
    except ConfigurationError as exc:
        raise HTTPException(
            status_code=503,
            detail={"error": "Configuration Required", "message": str(exc)},
        ) from exc
    except UnsupportedFileError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except (SessionBusyError, ChatBusyError) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except (SessionError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (KeyError, IndexError) as exc:
        detail = exc.args[0] if exc.args else type(exc).__name__
        raise HTTPException(status_code=404, detail=str(detail)) from exc


def _require_record(service: SessionService) -> ExtractedRecord:
    record = service.session.record
    if record is None:
        raise HTTPException(status_code=404, detail="No extracted record available")
    return record


# --- Request/Response Models ---


class ConfigStatus(BaseModel):
    configured: bool
    message: str


class FilesResponse(BaseModel):
    added: int
    session: SessionState


class RecordEdit(BaseModel):
    """Edit of one field; ``index`` selects the item in list sections."""

    field: str
    value: Any = None
    index: int | None = None


class NewsState(BaseModel):
    phase: NewsPhase
    news: NewsResult | None = None
    error: str | None = None


class ChatRequest(BaseModel):
    text: str


# --- Configuration and Session ---


@router.get("/config/status", response_model=ConfigStatus)
async def config_status(service: SessionService = Depends(get_session_service)) -> ConfigStatus:
    if service.config.is_configured:
        return ConfigStatus(configured=True, message="Gemini API key configured.")
    return ConfigStatus(configured=False, message=MISSING_CREDENTIAL_MESSAGE)


@router.get("/fields", response_model=list[SectionDescriptor])
async def list_fields() -> list[SectionDescriptor]:
    """Labels, input kinds, suggestions and hints for every editable field."""
    return field_catalogue()


@router.get("/session", response_model=SessionState)
async def get_session(service: SessionService = Depends(get_session_service)) -> SessionState:
    return service.session.snapshot()


@router.post("/session/files", response_model=FilesResponse)
async def upload_files(
    files: list[UploadFile] = File(..., description="Submission documents (PDF, DOCX, EML, MSG, TXT)"),
    service: SessionService = Depends(get_session_service),
) -> FilesResponse:
    """Stage uploaded files. Files whose names are already staged are ignored."""
    limit = service.config.api.max_upload_bytes
    uploaded: list[UploadedFile] = []
    for upload in files:
        data = await upload.read()
        if len(data) > limit:
            raise HTTPException(
                status_code=413,
                detail=f"File '{upload.filename}' exceeds the {limit} byte upload limit",
            )
        uploaded.append(
            UploadedFile(
                name=upload.filename or "upload",
                data=data,
                content_type=upload.content_type,
            )
        )

    with _http_errors():
        added = await service.session.add_files(uploaded)
    return FilesResponse(added=added, session=service.session.snapshot())


@router.delete("/session/files/{index}", response_model=SessionState)
async def remove_file(index: int, service: SessionService = Depends(get_session_service)) -> SessionState:
    with _http_errors():
        await service.session.remove_file(index)
    return service.session.snapshot()


@router.delete("/session/files", response_model=SessionState)
async def clear_files(service: SessionService = Depends(get_session_service)) -> SessionState:
    with _http_errors():
        await service.session.clear_files()
    return service.session.snapshot()


@router.delete("/session/error", response_model=SessionState)
async def dismiss_error(service: SessionService = Depends(get_session_service)) -> SessionState:
    service.session.dismiss_error()
    return service.session.snapshot()


@router.post("/session/extract", response_model=SessionState)
async def extract(service: SessionService = Depends(get_session_service)) -> SessionState:
    """Run extraction over the staged files.

    A failed run is reported through ``extraction_error`` in the returned
    state; the news lookup continues in the background on success.
    """
    with _http_errors():
        await service.session.submit()
    return service.session.snapshot()


# --- Record Editing ---


@router.patch("/session/record/{section}", response_model=SessionState)
async def edit_record(
    section: str,
    edit: RecordEdit,
    service: SessionService = Depends(get_session_service),
) -> SessionState:
    with _http_errors():
        spec = section_for(section)
        if spec.is_list:
            if edit.index is None:
                raise SessionError(f"Section '{spec.key}' requires an item index")
            await service.session.update_list_item(section, edit.index, edit.field, edit.value)
        else:
            await service.session.update_field(section, edit.field, edit.value)
    return service.session.snapshot()


@router.post("/session/record/{section}/items", response_model=SessionState)
async def add_record_item(section: str, service: SessionService = Depends(get_session_service)) -> SessionState:
    with _http_errors():
        await service.session.add_list_item(section)
    return service.session.snapshot()


@router.delete("/session/record/{section}/items/{index}", response_model=SessionState)
async def remove_record_item(
    section: str, index: int, service: SessionService = Depends(get_session_service)
) -> SessionState:
    with _http_errors():
        await service.session.remove_list_item(section, index)
    return service.session.snapshot()


# --- News and Q&A ---


@router.get("/session/news", response_model=NewsState)
async def get_news(service: SessionService = Depends(get_session_service)) -> NewsState:
    with _http_errors():
        service.config.require_api_key()
    session = service.session
    return NewsState(phase=session.news_phase, news=session.news, error=session.news_error)


@router.get("/chat/messages", response_model=list[ChatMessage])
async def list_chat_messages(service: SessionService = Depends(get_session_service)) -> list[ChatMessage]:
    with _http_errors():
        return service.session.chat().messages


@router.post("/chat/messages", response_model=ChatMessage)
async def send_chat_message(
    request: ChatRequest, service: SessionService = Depends(get_session_service)
) -> ChatMessage:
    with _http_errors():
        chat = service.session.chat()
        return await chat.send_message(request.text)


# --- Exports ---


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@router.get("/export/csv")
async def download_csv(service: SessionService = Depends(get_session_service)) -> Response:
    record = _require_record(service)
    return Response(
        content=export_csv(record),
        media_type=CSV_MEDIA_TYPE,
        headers=_attachment(csv_filename(record)),
    )


@router.post("/export/pdf")
async def download_pdf(
    config: PdfExportConfig | None = None,
    service: SessionService = Depends(get_session_service),
) -> Response:
    record = _require_record(service)
    content = export_pdf(record, service.session.news, config or PdfExportConfig())
    return Response(
        content=content,
        media_type=PDF_MEDIA_TYPE,
        headers=_attachment(pdf_filename(record)),
    )


@router.get("/export/email-draft", response_model=EmailDraft)
async def email_draft(service: SessionService = Depends(get_session_service)) -> EmailDraft:
    return draft_missing_info_email(_require_record(service))


@router.get("/export/snapshot", response_model=RiskSnapshot)
async def risk_snapshot(service: SessionService = Depends(get_session_service)) -> RiskSnapshot:
    return build_snapshot(_require_record(service))


# --- WebSocket for real-time Signal streaming ---


@router.websocket("/ws/session")
async def websocket_signals(websocket: WebSocket, after: int = Query(default=0, ge=0)) -> None:
    """Stream session signals as JSON.

    Signals with a sequence number above ``after`` are replayed on connect,
    so a reconnecting client passes the last sequence it saw. The client may
    send ``ping`` and receives ``pong``; idle connections get a keepalive.
    """
    service: SessionService = websocket.app.state.session_service
    await websocket.accept()
    service.add_websocket(websocket)

    try:
        for signal in service.session.signals.since(after):
            await websocket.send_text(signal.model_dump_json())

        while True:
            try:
                data = await asyncio.wait_for(websocket.receive_text(), timeout=30)
                if data == "ping":
                    await websocket.send_text("pong")
            except asyncio.TimeoutError:
                await websocket.send_text('{"type":"keepalive"}')
            except WebSocketDisconnect:
                break
    finally:
        service.remove_websocket(websocket)
