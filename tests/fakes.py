"""Scripted stand-ins for the Gemini engine used across the test suite."""

from __future__ import annotations

import copy
from types import SimpleNamespace
from typing import Any


SAMPLE_SECTIONS: dict[str, Any] = {
    "riskSummary": {
        "riskSummary": "Manufacturer of industrial valves with two plants in Lombardy.",
    },
    "anagrafica": {
        "entityName": "Acme Valves S.p.A.",
        "type": "Policyholder",
        "industry": "Industrial machinery",
        "country": "Italy",
        "city": "Milano",
        "address": "Via Roma 1, 20100 Milano",
        "periodFrom": "2025-01-01",
        "periodTo": "2025-12-31",
        "riskTypes": "Property, GL, PL",
        "annualRevenueAmount": 12500000,
        "headcount": 140,
        "dataStatus": "ok",
    },
    "propertyDetails": {
        "tivPdTotalEur": 1000000,
        "tivBiSumInsEur": 250000,
        "catIncluded": "Yes",
        "propertyNotes": "Sprinklered warehouse",
        "dataStatus": "partial",
    },
    "generalLiabilityDetails": {
        "rctLimitEur": 5000000,
        "formRctRco": "Loss Occurrence",
        "dataStatus": "ok",
    },
    "productLiabilityDetails": {
        "rcpLimitEur": 3000000,
        "formRcp": "Claims Made",
    },
    "sublimits": [
        {
            "riskType": "GL",
            "coverage": "Pollution",
            "sublimitType": "amount",
            "amountEurPercent": "500000",
        },
    ],
    "dettaglioEdifici": [
        {
            "buildingId": "B1",
            "buildingName": "Main plant",
            "address": "Via Roma 1",
            "totalRcvEur": 800000,
            "yearBuilt": 1998,
            "buildingNotes": "Steel frame",
        },
    ],
}


def section_key(response_schema: dict[str, Any]) -> str:
    return next(iter(response_schema["properties"]))


def grounded_response(text: str | None, chunks: Any = None) -> SimpleNamespace:
    """Shape of a google-genai response with grounding metadata."""
    metadata = SimpleNamespace(grounding_chunks=chunks)
    return SimpleNamespace(text=text, candidates=[SimpleNamespace(grounding_metadata=metadata)])


def web_chunk(uri: str | None, title: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(web=SimpleNamespace(uri=uri, title=title))


class FakeChat:
    """Chat transport replaying scripted replies; exceptions are raised."""

    def __init__(self, replies: list[Any]) -> None:
        self.replies = list(replies)
        self.sent: list[str] = []

    async def send(self, text: str) -> str:
        self.sent.append(text)
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, BaseException):
            raise reply
        return reply


class FakeEngine:
    """Scripted engine implementing generate_json, search_grounded and start_chat."""

    def __init__(
        self,
        sections: dict[str, Any] | None = None,
        *,
        failing_sections: set[str] | None = None,
        news_response: Any = None,
        news_error: BaseException | None = None,
        chat_replies: list[Any] | None = None,
    ) -> None:
        self.sections = copy.deepcopy(SAMPLE_SECTIONS if sections is None else sections)
        self.failing_sections = failing_sections or set()
        self.news_response = (
            news_response
            if news_response is not None
            else grounded_response(
                "Acme Valves opened a new plant.",
                [web_chunk("https://news.example.com/acme", "Acme expands")],
            )
        )
        self.news_error = news_error
        self.chat_replies = chat_replies or []
        self.json_calls: list[str] = []
        self.search_calls: list[str] = []
        self.system_instructions: list[str] = []
        self.chats: list[FakeChat] = []

    async def generate_json(
        self, prompt: str, files: Any, response_schema: dict[str, Any]
    ) -> Any:
        key = section_key(response_schema)
        self.json_calls.append(key)
        if key in self.failing_sections:
            raise RuntimeError(f"503 UNAVAILABLE while extracting {key}")
        if key not in self.sections:
            return {}
        return {key: copy.deepcopy(self.sections[key])}

    async def search_grounded(self, prompt: str) -> Any:
        self.search_calls.append(prompt)
        if self.news_error is not None:
            raise self.news_error
        return self.news_response

    def start_chat(self, system_instruction: str) -> FakeChat:
        self.system_instructions.append(system_instruction)
        chat = FakeChat(self.chat_replies)
        self.chats.append(chat)
        return chat
