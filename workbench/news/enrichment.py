"""News enrichment: web-grounded summary about the insured entity.

Errors are not handled here: callers classify them with
``classify_news_error`` so rate limits can be reported distinctly.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = (
    "Could not fetch news due to API rate limits. Please check your plan and billing details."
)
GENERIC_NEWS_ERROR_MESSAGE = "Failed to fetch news and web information."
RATE_LIMIT_MARKERS = ("RESOURCE_EXHAUSTED", "429")


class Citation(BaseModel):
    title: str | None = None
    uri: str


class NewsResult(BaseModel):
    summary: str | None = None
    citations: list[Citation] = Field(default_factory=list)


class GroundedSearch(Protocol):
    async def search_grounded(self, prompt: str) -> Any: ...


def news_prompt(entity_name: str) -> str:
    return f'Summarize the latest news and relevant web information about "{entity_name}".'


def extract_citations(response: Any) -> list[Citation]:
    """Read web citations from the first candidate's grounding metadata.

    A missing or non-list chunk list yields no citations; chunks without a
    URI are skipped and repeated URIs keep their first occurrence.
    """
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None)
    if not isinstance(chunks, list):
        return []

    citations: list[Citation] = []
    seen: set[str] = set()
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        uri = getattr(web, "uri", None)
        if not uri or uri in seen:
            continue
        seen.add(uri)
        citations.append(Citation(title=getattr(web, "title", None), uri=uri))
    return citations


class NewsEnrichment:
    def __init__(self, engine: GroundedSearch) -> None:
        self._engine = engine

    async def fetch_news(self, entity_name: str | None) -> NewsResult | None:
        """Summarize recent public information about ``entity_name``.

        Returns None without any request when the name is empty, and None when
        the reply carries neither a summary nor citations. A blank summary
        counts as no summary.
        """
        if not entity_name:
            return None

        response = await self._engine.search_grounded(news_prompt(entity_name))
        text = getattr(response, "text", None)
        summary = text if text and text.strip() else None
        citations = extract_citations(response)
        if summary is None and not citations:
            logger.info("No news found", extra={"entity_name": entity_name})
            return None
        return NewsResult(summary=summary, citations=citations)


def classify_news_error(exc: BaseException) -> str:
    """Map a news failure to the message shown to the underwriter."""
    text = str(exc)
    if any(marker in text for marker in RATE_LIMIT_MARKERS):
        return RATE_LIMIT_MESSAGE
    return GENERIC_NEWS_ERROR_MESSAGE
