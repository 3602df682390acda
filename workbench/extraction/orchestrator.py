"""Extraction orchestrator: concurrent per-section extraction and merge.

Each section is requested independently with all files attached. A section
that fails (transport error, timeout, invalid JSON, schema violation) degrades
to its empty value; it never aborts its siblings or the overall call.
There is no section-level retry: callers re-run ``extract`` to try again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, Sequence

from workbench.extraction.schema import ExtractedRecord
from workbench.extraction.sections import SECTIONS, SectionOutcome, SectionSpec
from workbench.ingest.files import EncodedFile
from workbench.signals.emitter import SignalEmitter
from workbench.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


class JsonModel(Protocol):
    async def generate_json(
        self, prompt: str, files: Sequence[EncodedFile], response_schema: dict[str, Any]
    ) -> Any: ...


class ExtractionOrchestrator:
    """Fans extraction out to one request per section and merges the results."""

    def __init__(
        self,
        engine: JsonModel,
        *,
        sections: Sequence[SectionSpec] = SECTIONS,
        signals: SignalEmitter | None = None,
    ) -> None:
        self._engine = engine
        self._sections = tuple(sections)
        self._signals = signals

    async def _extract_section(
        self, spec: SectionSpec, files: Sequence[EncodedFile]
    ) -> SectionOutcome[Any]:
        try:
            payload = await self._engine.generate_json(spec.prompt, files, spec.response_schema)
            outcome: SectionOutcome[Any] = SectionOutcome.present(spec, spec.parse(payload))
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            emit_structured_error(
                logger,
                code=ErrorCode.SECTION_EXTRACTION_FAILED,
                message=message,
                suppressed=True,
                session_id=self._signals.session_id if self._signals else None,
                details={"section": spec.key},
            )
            outcome = SectionOutcome.absent(spec, message)
        else:
            logger.debug("Section extracted", extra={"section": spec.key})

        if self._signals is not None:
            await self._signals.emit_section_result(
                spec.key, outcome.is_present, outcome.error or ""
            )
        return outcome

    async def extract_outcomes(self, files: Sequence[EncodedFile]) -> list[SectionOutcome[Any]]:
        """Run every section concurrently; one outcome per section, in order."""
        return list(
            await asyncio.gather(*(self._extract_section(spec, files) for spec in self._sections))
        )

    @staticmethod
    def merge(outcomes: Sequence[SectionOutcome[Any]]) -> ExtractedRecord:
        """Merge outcomes into one record; absent sections use their empty value."""
        values = {outcome.spec.attribute: outcome.resolve() for outcome in outcomes}
        return ExtractedRecord(**values)

    async def extract(self, files: Sequence[EncodedFile]) -> ExtractedRecord:
        outcomes = await self.extract_outcomes(files)
        failed = [outcome.spec.key for outcome in outcomes if not outcome.is_present]
        logger.info(
            "Extraction finished",
            extra={"sections": len(outcomes), "failed_sections": failed},
        )
        return self.merge(outcomes)
