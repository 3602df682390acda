"""Tests for the Gemini transport: requests, timeouts and retries."""

import asyncio
import base64
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from workbench.ai_engine import engine as engine_module
from workbench.ai_engine.engine import AIEngine, ModelResponseError, is_transient_error, to_parts
from workbench.config.settings import GeminiConfig, RetryConfig, TimeoutConfig, WorkbenchConfig
from workbench.ingest.files import EncodedFile
from workbench.telemetry.errors import ConfigurationError

SCHEMA = {"type": "OBJECT", "properties": {"anagrafica": {"type": "OBJECT", "properties": {}}}}
NO_BACKOFF = RetryConfig(max_retries=2, backoff_base_ms=0, backoff_max_ms=0, jitter=False)


def _response(text):
    return SimpleNamespace(text=text)


def _client(generate_content=None, chat=None):
    return SimpleNamespace(
        aio=SimpleNamespace(
            models=SimpleNamespace(
                generate_content=generate_content or AsyncMock(return_value=_response("{}"))
            ),
            chats=SimpleNamespace(create=MagicMock(return_value=chat)),
        )
    )


def _engine(client, **kwargs):
    return AIEngine(GeminiConfig(api_key="k", model="gemini-test"), client=client, **kwargs)


class TestGenerateJson:
    @pytest.mark.asyncio
    async def test_returns_parsed_json(self):
        generate = AsyncMock(return_value=_response('{"anagrafica": {"entityName": "Acme"}}'))
        engine = _engine(_client(generate))
        files = [EncodedFile(name="a.pdf", data=base64.b64encode(b"%PDF").decode(), mime_type="application/pdf")]

        result = await engine.generate_json("Extract", files, SCHEMA)

        assert result == {"anagrafica": {"entityName": "Acme"}}
        kwargs = generate.await_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["config"].response_mime_type == "application/json"
        assert kwargs["config"].temperature == 0.2
        assert kwargs["contents"][0].text == "Extract"
        assert kwargs["contents"][1].inline_data.data == b"%PDF"

    @pytest.mark.asyncio
    async def test_empty_response_raises(self):
        engine = _engine(_client(AsyncMock(return_value=_response(""))))
        with pytest.raises(ModelResponseError):
            await engine.generate_json("Extract", [], SCHEMA)

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self):
        engine = _engine(_client(AsyncMock(return_value=_response("not json"))))
        with pytest.raises(ValueError):
            await engine.generate_json("Extract", [], SCHEMA)

    @pytest.mark.asyncio
    async def test_requires_client(self):
        with pytest.raises(ConfigurationError):
            await _engine(None).generate_json("Extract", [], SCHEMA)


class TestRequestPolicy:
    @pytest.mark.asyncio
    async def test_single_attempt_by_default(self):
        generate = AsyncMock(side_effect=RuntimeError("503 UNAVAILABLE"))
        engine = _engine(_client(generate))
        with pytest.raises(RuntimeError):
            await engine.generate_json("Extract", [], SCHEMA)
        assert generate.await_count == 1

    @pytest.mark.asyncio
    async def test_transient_error_retried(self, caplog):
        generate = AsyncMock(side_effect=[RuntimeError("429 RESOURCE_EXHAUSTED"), _response('{"ok": true}')])
        engine = _engine(_client(generate), retry=NO_BACKOFF)
        with caplog.at_level(logging.ERROR):
            assert await engine.generate_json("Extract", [], SCHEMA) == {"ok": True}
        assert generate.await_count == 2
        assert any(getattr(r, "error_code", None) == "AI_REQUEST_RETRIED" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self):
        generate = AsyncMock(side_effect=ValueError("400 INVALID_ARGUMENT"))
        engine = _engine(_client(generate), retry=NO_BACKOFF)
        with pytest.raises(ValueError):
            await engine.generate_json("Extract", [], SCHEMA)
        assert generate.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        generate = AsyncMock(side_effect=RuntimeError("503 UNAVAILABLE"))
        engine = _engine(_client(generate), retry=NO_BACKOFF)
        with pytest.raises(RuntimeError):
            await engine.generate_json("Extract", [], SCHEMA)
        assert generate.await_count == 3

    @pytest.mark.asyncio
    async def test_request_times_out(self):
        async def slow(**_kwargs):
            await asyncio.sleep(1)
            return _response("{}")

        engine = _engine(_client(slow), timeouts=TimeoutConfig(ai_timeout_s=0.01))
        with pytest.raises(asyncio.TimeoutError):
            await engine.generate_json("Extract", [], SCHEMA)

    def test_transient_classification(self):
        assert is_transient_error(RuntimeError("503 UNAVAILABLE"))
        assert is_transient_error(asyncio.TimeoutError())
        assert not is_transient_error(ValueError("bad request"))


class TestGroundedSearchAndChat:
    @pytest.mark.asyncio
    async def test_search_enables_google_search_tool(self):
        response = _response("news")
        generate = AsyncMock(return_value=response)
        engine = _engine(_client(generate))

        assert await engine.search_grounded("Summarize Acme") is response
        config = generate.await_args.kwargs["config"]
        assert config.tools[0].google_search is not None

    @pytest.mark.asyncio
    async def test_chat_channel(self):
        chat = SimpleNamespace(send_message=AsyncMock(return_value=_response("Limit is 5M")))
        client = _client(chat=chat)
        channel = _engine(client).start_chat("You are RiskBot")

        assert await channel.send("Limit?") == "Limit is 5M"
        config = client.aio.chats.create.call_args.kwargs["config"]
        assert config.system_instruction == "You are RiskBot"
        assert config.temperature == 0.3
        chat.send_message.assert_awaited_once_with("Limit?")


class TestFromConfig:
    def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            AIEngine.from_config(WorkbenchConfig(gemini=GeminiConfig(api_key="")))

    def test_builds_client(self, monkeypatch):
        factory = MagicMock(return_value=_client())
        monkeypatch.setattr(engine_module.genai, "Client", factory)
        engine = AIEngine.from_config(WorkbenchConfig(gemini=GeminiConfig(api_key="secret")))
        assert engine.is_available
        factory.assert_called_once_with(api_key="secret")

    def test_client_failure_reported(self, monkeypatch, caplog):
        monkeypatch.setattr(engine_module.genai, "Client", MagicMock(side_effect=RuntimeError("bad key")))
        with caplog.at_level(logging.ERROR), pytest.raises(ConfigurationError):
            AIEngine.from_config(WorkbenchConfig(gemini=GeminiConfig(api_key="secret")))
        assert any(getattr(r, "error_code", None) == "AI_INITIALIZATION_FAILED" for r in caplog.records)


def test_to_parts_decodes_base64():
    parts = to_parts([EncodedFile(name="a.txt", data=base64.b64encode(b"hi").decode(), mime_type="text/plain")])
    assert parts[0].inline_data.data == b"hi"
    assert parts[0].inline_data.mime_type == "text/plain"
