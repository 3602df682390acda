"""AI Engine: request transport to the Gemini API.

The engine knows how to talk to Gemini and nothing about underwriting: callers
hand it prompts, files and schemas, and it hands back parsed JSON, raw grounded
responses or chat channels. Each request is bounded by the configured timeout
and, when ``RetryConfig.max_retries`` is above zero, retried on transient
errors with exponential backoff.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import random
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from google import genai
from google.genai import types

from workbench.config.settings import GeminiConfig, RetryConfig, TimeoutConfig, WorkbenchConfig
from workbench.ingest.files import EncodedFile
from workbench.telemetry.errors import ConfigurationError, ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERROR_MARKERS = ("429", "500", "503", "UNAVAILABLE", "RESOURCE_EXHAUSTED", "overloaded")


class ModelResponseError(Exception):
    """Raised when the model returns no usable JSON payload."""


def is_transient_error(exc: BaseException) -> bool:
    """Whether an error is worth retrying (timeouts, rate limits, overload)."""
    if isinstance(exc, asyncio.TimeoutError):
        return True
    text = str(exc)
    return any(marker in text for marker in TRANSIENT_ERROR_MARKERS)


def to_parts(files: Sequence[EncodedFile]) -> list[types.Part]:
    """Convert encoded files into inline-data request parts."""
    return [
        types.Part(
            inline_data=types.Blob(data=base64.b64decode(file.data), mime_type=file.mime_type)
        )
        for file in files
    ]


class ChatChannel:
    """A stateful Gemini chat keyed by one system instruction."""

    def __init__(self, engine: AIEngine, chat: Any) -> None:
        self._engine = engine
        self._chat = chat

    async def send(self, text: str) -> str:
        response = await self._engine.request(
            "chat_reply", lambda: self._chat.send_message(text)
        )
        return response.text or ""


class AIEngine:
    """Gemini client wrapper.

    Stateless apart from the SDK client; sessions and orchestration own
    all workbench state.
    """

    def __init__(
        self,
        config: GeminiConfig,
        *,
        retry: RetryConfig | None = None,
        timeouts: TimeoutConfig | None = None,
        client: Any = None,
    ) -> None:
        self._config = config
        self._retry = retry or RetryConfig(max_retries=0)
        self._timeouts = timeouts or TimeoutConfig(ai_timeout_s=60)
        self._client = client

    @classmethod
    def from_config(cls, config: WorkbenchConfig) -> AIEngine:
        """Build an engine with a live SDK client.

        Raises ConfigurationError when no API key is configured or the client
        cannot be constructed.
        """
        api_key = config.require_api_key()
        try:
            client = genai.Client(api_key=api_key)
        except Exception as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.AI_INITIALIZATION_FAILED,
                message=str(exc),
                suppressed=False,
            )
            raise ConfigurationError(f"Failed to initialize Gemini client: {exc}") from exc
        logger.info("Initialized Gemini client", extra={"model": config.gemini.model})
        return cls(config.gemini, retry=config.retry, timeouts=config.timeouts, client=client)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    @property
    def model(self) -> str:
        return self._config.model

    def _require_client(self) -> Any:
        if self._client is None:
            raise ConfigurationError("Gemini client is not configured")
        return self._client

    # --- Retry Logic ---

    async def _backoff(self, attempt: int) -> None:
        """Exponential backoff with jitter."""
        base = self._retry.backoff_base_ms / 1000.0
        max_delay = self._retry.backoff_max_ms / 1000.0
        delay = min(base * (2 ** attempt), max_delay)
        if self._retry.jitter:
            delay += random.uniform(0, base)
        await asyncio.sleep(delay)

    async def request(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run one model call under the timeout budget, retrying transient errors."""
        attempt = 0
        while True:
            try:
                return await asyncio.wait_for(call(), timeout=self._timeouts.ai_timeout_s)
            except Exception as exc:
                if attempt >= self._retry.max_retries or not is_transient_error(exc):
                    raise
                attempt += 1
                emit_structured_error(
                    logger,
                    code=ErrorCode.AI_REQUEST_RETRIED,
                    message=str(exc) or type(exc).__name__,
                    suppressed=True,
                    details={
                        "operation": operation,
                        "attempt_number": attempt,
                        "max_attempts": self._retry.max_retries,
                    },
                )
                await self._backoff(attempt)

    # --- Operations ---

    async def generate_json(
        self,
        prompt: str,
        files: Sequence[EncodedFile],
        response_schema: dict[str, Any],
    ) -> Any:
        """Request schema-constrained JSON and return it parsed."""
        client = self._require_client()
        contents = [types.Part(text=prompt), *to_parts(files)]
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=response_schema,
            temperature=self._config.extraction_temperature,
        )
        response = await self.request(
            "generate_json",
            lambda: client.aio.models.generate_content(
                model=self._config.model, contents=contents, config=config
            ),
        )
        if not response.text:
            raise ModelResponseError("Empty response from Gemini")
        return json.loads(response.text)

    async def search_grounded(self, prompt: str) -> Any:
        """Run a prompt with the Google Search tool enabled; returns the raw response."""
        client = self._require_client()
        config = types.GenerateContentConfig(
            tools=[types.Tool(google_search=types.GoogleSearch())],
        )
        return await self.request(
            "search_grounded",
            lambda: client.aio.models.generate_content(
                model=self._config.model, contents=prompt, config=config
            ),
        )

    def start_chat(self, system_instruction: str) -> ChatChannel:
        """Open a chat whose every turn is grounded by ``system_instruction``."""
        client = self._require_client()
        chat = client.aio.chats.create(
            model=self._config.model,
            config=types.GenerateContentConfig(
                system_instruction=system_instruction,
                temperature=self._config.chat_temperature,
            ),
        )
        return ChatChannel(self, chat)
