"""RiskBot Q&A session bound to one extracted record snapshot."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Literal, Protocol

from pydantic import BaseModel

from workbench.extraction.schema import ExtractedRecord
from workbench.telemetry.errors import ChatBusyError, ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

GREETING = (
    "Hello! I am RiskBot, your AI assistant. Ask me anything about the extracted "
    "data from the document."
)
GENERIC_REPLY_ERROR = "Sorry, I encountered an error. Please try again."
OVERLOADED_REPLY = (
    "The AI assistant is currently overloaded. Please wait a moment before sending "
    "your message again."
)
OVERLOAD_MARKERS = ("503", "UNAVAILABLE", "overloaded")


class ChatMessage(BaseModel):
    sender: Literal["user", "model"]
    text: str

    model_config = {"frozen": True}


class ChatTransport(Protocol):
    async def send(self, text: str) -> str: ...


class ChatFactory(Protocol):
    def start_chat(self, system_instruction: str) -> ChatTransport: ...


def build_system_instruction(record: ExtractedRecord) -> str:
    data = json.dumps(record.to_wire(), indent=2, ensure_ascii=False)
    return (
        'You are a helpful AI assistant for an insurance underwriter. Your name is "RiskBot".\n'
        "Your purpose is to answer questions based *exclusively* on the following JSON data "
        "which represents extracted information from an insurance document.\n"
        "Do not use any external knowledge or make assumptions beyond what is provided in this data.\n"
        "If a question cannot be answered from the data, state that clearly. "
        "Keep your answers concise and professional.\n"
        "Format your answers for readability, using bullet points or bold text where helpful.\n\n"
        f"Here is the risk data:\n{data}\n"
    )


def reply_for_error(exc: BaseException) -> str:
    text = f"{type(exc).__name__}: {exc}"
    if any(marker in text for marker in OVERLOAD_MARKERS):
        return OVERLOADED_REPLY
    return GENERIC_REPLY_ERROR


class QASession:
    """A chat grounded in a private copy of one record.

    At most one exchange is in flight; transport errors become scripted
    model replies so the log always alternates user/model.
    """

    def __init__(self, factory: ChatFactory, record: ExtractedRecord) -> None:
        self._source = record
        self._record = record.model_copy(deep=True)
        self._channel = factory.start_chat(build_system_instruction(self._record))
        self._messages: list[ChatMessage] = [ChatMessage(sender="model", text=GREETING)]
        self._pending = False

    @property
    def source(self) -> ExtractedRecord:
        """The record object this session was created for (identity, not a copy)."""
        return self._source

    @property
    def record(self) -> ExtractedRecord:
        return self._record

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    @property
    def is_busy(self) -> bool:
        return self._pending

    async def send_message(self, text: str) -> ChatMessage:
        if not text or not text.strip():
            raise ValueError("Message text cannot be empty")
        if self._pending:
            raise ChatBusyError("A reply is already in progress")

        self._pending = True
        try:
            self._messages.append(ChatMessage(sender="user", text=text))
            try:
                reply_text = await self._channel.send(text)
            except asyncio.CancelledError:
                # The log alternates user/model even for an abandoned exchange.
                self._messages.append(ChatMessage(sender="model", text=GENERIC_REPLY_ERROR))
                raise
            except Exception as exc:
                emit_structured_error(
                    logger,
                    code=ErrorCode.CHAT_REPLY_FAILED,
                    message=str(exc) or type(exc).__name__,
                    suppressed=True,
                )
                reply_text = reply_for_error(exc)
            reply = ChatMessage(sender="model", text=reply_text)
            self._messages.append(reply)
            return reply
        finally:
            self._pending = False
