"""Shared fixtures for the workbench test suite."""

from __future__ import annotations

import pytest

from fakes import SAMPLE_SECTIONS, FakeEngine
from workbench.config.settings import GeminiConfig, WorkbenchConfig
from workbench.extraction.schema import ExtractedRecord
from workbench.ingest.files import UploadedFile


@pytest.fixture
def config() -> WorkbenchConfig:
    return WorkbenchConfig(gemini=GeminiConfig(api_key="test-key"))


@pytest.fixture
def unconfigured() -> WorkbenchConfig:
    return WorkbenchConfig(gemini=GeminiConfig(api_key=""))


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def sample_record() -> ExtractedRecord:
    return ExtractedRecord.model_validate(SAMPLE_SECTIONS)


@pytest.fixture
def pdf_file() -> UploadedFile:
    return UploadedFile(name="submission.pdf", data=b"%PDF-1.4 sample", content_type="application/pdf")
