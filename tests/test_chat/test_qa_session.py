"""Tests for the RiskBot Q&A session."""

import asyncio
import json
import logging

import pytest

from fakes import FakeEngine
from workbench.chat.session import (
    GENERIC_REPLY_ERROR,
    GREETING,
    OVERLOADED_REPLY,
    QASession,
    build_system_instruction,
)
from workbench.telemetry.errors import ChatBusyError


class TestQASession:
    def test_starts_with_greeting(self, sample_record):
        session = QASession(FakeEngine(), sample_record)
        assert [(m.sender, m.text) for m in session.messages] == [("model", GREETING)]

    def test_system_instruction_embeds_record(self, sample_record):
        engine = FakeEngine()
        QASession(engine, sample_record)
        instruction = engine.system_instructions[0]
        assert "RiskBot" in instruction
        assert "state that clearly" in instruction
        assert json.dumps(sample_record.to_wire(), indent=2, ensure_ascii=False) in instruction

    def test_binds_a_private_copy(self, sample_record):
        session = QASession(FakeEngine(), sample_record)
        assert session.source is sample_record
        assert session.record == sample_record
        assert session.record is not sample_record

    @pytest.mark.asyncio
    async def test_exchange_appends_both_messages(self, sample_record):
        engine = FakeEngine(chat_replies=["The insured is Acme Valves S.p.A."])
        session = QASession(engine, sample_record)
        reply = await session.send_message("Who is the insured?")

        assert reply.sender == "model"
        assert reply.text == "The insured is Acme Valves S.p.A."
        assert [m.sender for m in session.messages] == ["model", "user", "model"]
        assert engine.chats[0].sent == ["Who is the insured?"]

    @pytest.mark.asyncio
    async def test_blank_message_rejected(self, sample_record):
        session = QASession(FakeEngine(), sample_record)
        with pytest.raises(ValueError):
            await session.send_message("   ")
        assert len(session.messages) == 1

    @pytest.mark.asyncio
    async def test_overloaded_reply(self, sample_record, caplog):
        engine = FakeEngine(chat_replies=[RuntimeError("503 UNAVAILABLE")])
        session = QASession(engine, sample_record)
        with caplog.at_level(logging.ERROR):
            reply = await session.send_message("Limits?")
        assert reply.text == OVERLOADED_REPLY
        assert any(getattr(r, "error_code", None) == "CHAT_REPLY_FAILED" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_generic_error_reply(self, sample_record):
        session = QASession(FakeEngine(chat_replies=[ValueError("bad")]), sample_record)
        reply = await session.send_message("Limits?")
        assert reply.text == GENERIC_REPLY_ERROR
        assert session.is_busy is False

    @pytest.mark.asyncio
    async def test_second_send_while_pending_is_rejected(self, sample_record):
        release = asyncio.Event()

        class SlowChat:
            async def send(self, text):
                await release.wait()
                return "done"

        class SlowFactory:
            def start_chat(self, system_instruction):
                return SlowChat()

        session = QASession(SlowFactory(), sample_record)
        first = asyncio.create_task(session.send_message("first"))
        await asyncio.sleep(0)
        assert session.is_busy

        with pytest.raises(ChatBusyError):
            await session.send_message("second")

        release.set()
        reply = await first
        assert reply.text == "done"
        assert [m.text for m in session.messages][1:] == ["first", "done"]

    @pytest.mark.asyncio
    async def test_cancelled_exchange_keeps_log_alternating(self, sample_record):
        class HangingChat:
            async def send(self, text):
                await asyncio.Event().wait()

        class HangingFactory:
            def start_chat(self, system_instruction):
                return HangingChat()

        session = QASession(HangingFactory(), sample_record)
        pending = asyncio.create_task(session.send_message("Limit?"))
        await asyncio.sleep(0)
        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

        assert [m.sender for m in session.messages] == ["model", "user", "model"]
        assert session.messages[-1].text == GENERIC_REPLY_ERROR
        assert session.is_busy is False

    def test_messages_returns_copy(self, sample_record):
        session = QASession(FakeEngine(), sample_record)
        session.messages.clear()
        assert len(session.messages) == 1


def test_system_instruction_uses_wire_names(sample_record):
    instruction = build_system_instruction(sample_record)
    assert '"entityName": "Acme Valves S.p.A."' in instruction
    assert '"dettaglioEdifici"' in instruction
