"""Tests for concurrent per-section extraction and merging."""

import asyncio
import logging

import pytest

from fakes import SAMPLE_SECTIONS, FakeEngine
from workbench.extraction.orchestrator import ExtractionOrchestrator
from workbench.extraction.schema import ExtractedRecord
from workbench.extraction.sections import SECTIONS
from workbench.ingest.files import EncodedFile
from workbench.signals.emitter import SignalEmitter
from workbench.signals.types import SignalType

FILES = [EncodedFile(name="a.pdf", data="JVBERg==", mime_type="application/pdf")]
ALL_KEYS = {spec.key for spec in SECTIONS}


class BarrierEngine(FakeEngine):
    """Holds every request until all sections have been requested."""

    def __init__(self):
        super().__init__()
        self.in_flight = 0
        self.peak = 0
        self.all_started = asyncio.Event()

    async def generate_json(self, prompt, files, response_schema):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        if self.peak == len(SECTIONS):
            self.all_started.set()
        try:
            await asyncio.wait_for(self.all_started.wait(), timeout=2)
            return await super().generate_json(prompt, files, response_schema)
        finally:
            self.in_flight -= 1


class TestExtractionOrchestrator:
    @pytest.mark.asyncio
    async def test_requests_every_section_once(self, engine):
        await ExtractionOrchestrator(engine).extract(FILES)
        assert sorted(engine.json_calls) == sorted(ALL_KEYS)

    @pytest.mark.asyncio
    async def test_merges_all_sections(self, engine):
        record = await ExtractionOrchestrator(engine).extract(FILES)
        assert record.risk_summary.summary.startswith("Manufacturer of industrial valves")
        assert record.anagrafica.entity_name == "Acme Valves S.p.A."
        assert record.property_details.tiv_pd_total_eur == 1000000
        assert record.general_liability_details.rct_limit_eur == 5000000
        assert record.product_liability_details.rcp_limit_eur == 3000000
        assert record.sublimits[0].amount == "500000"
        assert record.building_details[0].building_id == "B1"

    @pytest.mark.asyncio
    async def test_arrays_never_null_when_every_section_fails(self, caplog):
        engine = FakeEngine(failing_sections=set(ALL_KEYS))
        with caplog.at_level(logging.ERROR):
            record = await ExtractionOrchestrator(engine).extract(FILES)

        assert record.sublimits == []
        assert record.building_details == []
        assert record.to_wire()["sublimits"] == []
        assert record.to_wire()["dettaglioEdifici"] == []
        assert record.anagrafica.entity_name is None
        assert record.risk_summary.summary is None
        failures = [r for r in caplog.records if getattr(r, "error_code", None) == "SECTION_EXTRACTION_FAILED"]
        assert len(failures) == len(ALL_KEYS)

    @pytest.mark.asyncio
    async def test_single_section_failure_is_isolated(self):
        engine = FakeEngine(failing_sections={"propertyDetails"})
        record = await ExtractionOrchestrator(engine).extract(FILES)

        assert record.property_details == ExtractedRecord().property_details
        assert record.anagrafica.entity_name == "Acme Valves S.p.A."
        assert len(record.sublimits) == 1
        assert len(record.building_details) == 1

    @pytest.mark.asyncio
    async def test_null_list_section_becomes_empty(self):
        sections = dict(SAMPLE_SECTIONS)
        sections["sublimits"] = None
        record = await ExtractionOrchestrator(FakeEngine(sections)).extract(FILES)
        assert record.sublimits == []

    @pytest.mark.asyncio
    async def test_missing_section_key_uses_empty_default(self):
        sections = {key: value for key, value in SAMPLE_SECTIONS.items() if key != "anagrafica"}
        record = await ExtractionOrchestrator(FakeEngine(sections)).extract(FILES)
        assert record.anagrafica.entity_name is None
        assert record.property_details.tiv_pd_total_eur == 1000000

    @pytest.mark.asyncio
    async def test_schema_violation_degrades_section(self):
        sections = dict(SAMPLE_SECTIONS)
        sections["generalLiabilityDetails"] = {"rctLimitEur": "not a number"}
        outcomes = await ExtractionOrchestrator(FakeEngine(sections)).extract_outcomes(FILES)
        by_key = {outcome.spec.key: outcome for outcome in outcomes}
        assert by_key["generalLiabilityDetails"].is_present is False
        assert by_key["anagrafica"].is_present is True

    @pytest.mark.asyncio
    async def test_outcomes_follow_section_order(self, engine):
        outcomes = await ExtractionOrchestrator(engine).extract_outcomes(FILES)
        assert [o.spec.key for o in outcomes] == [spec.key for spec in SECTIONS]

    @pytest.mark.asyncio
    async def test_section_signals_emitted(self):
        signals = SignalEmitter(session_id="session_orch")
        engine = FakeEngine(failing_sections={"sublimits"})
        await ExtractionOrchestrator(engine, signals=signals).extract(FILES)

        completed = [s for s in signals.signals if s.signal_type == SignalType.SECTION_COMPLETE]
        failed = [s for s in signals.signals if s.signal_type == SignalType.SECTION_FAILED]
        assert len(completed) == len(SECTIONS) - 1
        assert [s.payload["section"] for s in failed] == ["sublimits"]
        assert "UNAVAILABLE" in failed[0].payload["detail"]

    @pytest.mark.asyncio
    async def test_sections_requested_concurrently(self):
        engine = BarrierEngine()
        record = await ExtractionOrchestrator(engine).extract(FILES)

        assert engine.peak == len(SECTIONS)
        assert record.anagrafica.entity_name == "Acme Valves S.p.A."
        assert record.building_details[0].building_id == "B1"

    @pytest.mark.asyncio
    async def test_latency_bounded_by_slowest_section(self):
        class SlowEngine(FakeEngine):
            async def generate_json(self, prompt, files, response_schema):
                await asyncio.sleep(0.3)
                return await super().generate_json(prompt, files, response_schema)

        loop = asyncio.get_running_loop()
        started = loop.time()
        await ExtractionOrchestrator(SlowEngine()).extract(FILES)
        assert loop.time() - started < 0.3 * len(SECTIONS) / 2
