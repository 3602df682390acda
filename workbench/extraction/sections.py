"""Section definitions: one independent model request per record section."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from workbench.extraction.schema import (
    BuildingDetail,
    GeneralLiabilityDetails,
    PrimaryEntity,
    ProductLiabilityDetails,
    PropertyDetails,
    RiskSummary,
    Sublimit,
    section_schema,
)

T = TypeVar("T")

BASE_INSTRUCTION = """You are an expert AI assistant for an insurance underwriting workbench.
Your task is to meticulously extract and consolidate all relevant information from the provided documents.
The documents could be a mix of PDFs, Word documents, or emails related to the same insurance policy or client.
If information for the same field is present in multiple documents, prioritize the most recent or comprehensive data.
If a specific piece of information is not found, you MUST use 'null' as the value for that field. Do not invent information.
For fields that are arrays (like 'dettaglioEdifici' or 'sublimits'), return an empty array [] if no items are found.
Return only the JSON object based on the provided schema.

Now, focus ONLY on extracting the data for the following section:"""


@dataclass(frozen=True)
class SectionSpec:
    """How to request, validate and default one section.

    ``key`` is the wire key the section is wrapped in (both in the response
    schema and in the model's JSON reply); ``attribute`` is the matching
    ``ExtractedRecord`` field.
    """

    key: str
    attribute: str
    title: str
    model: type[BaseModel]
    instruction: str
    is_list: bool = False

    @property
    def prompt(self) -> str:
        return f"{BASE_INSTRUCTION} {self.title}. {self.instruction}".rstrip()

    @property
    def response_schema(self) -> dict[str, Any]:
        return section_schema(self.key, self.model, is_list=self.is_list)

    def empty(self) -> Any:
        """The well-known empty value: all fields null, or an empty list."""
        if self.is_list:
            return []
        return self.model()

    def parse(self, payload: Any) -> Any:
        """Validate the value found under ``key`` in a model reply.

        A missing or null value yields the empty default; a non-list value for
        a list section yields ``[]``.
        """
        value = payload.get(self.key) if isinstance(payload, dict) else None
        if value is None:
            return self.empty()
        if self.is_list:
            if not isinstance(value, list):
                return []
            return [self.model.model_validate(item) for item in value if item is not None]
        return self.model.model_validate(value)


@dataclass(frozen=True)
class SectionOutcome(Generic[T]):
    """Present(value) or Absent(reason) for one section request."""

    spec: SectionSpec
    value: T | None = None
    error: str | None = None

    @classmethod
    def present(cls, spec: SectionSpec, value: T) -> SectionOutcome[T]:
        return cls(spec=spec, value=value)

    @classmethod
    def absent(cls, spec: SectionSpec, error: str) -> SectionOutcome[T]:
        return cls(spec=spec, error=error)

    @property
    def is_present(self) -> bool:
        return self.error is None

    def resolve(self) -> Any:
        """Materialize the section value, substituting the empty default."""
        if not self.is_present or self.value is None:
            return self.spec.empty()
        return self.value


SECTIONS: tuple[SectionSpec, ...] = (
    SectionSpec(
        key="riskSummary",
        attribute="risk_summary",
        title="Risk Summary",
        model=RiskSummary,
        instruction=(
            "This should be a concise overview highlighting the main insured party, "
            "primary risks, and significant limits."
        ),
    ),
    SectionSpec(
        key="anagrafica",
        attribute="anagrafica",
        title="General Information (Anagrafica)",
        model=PrimaryEntity,
        instruction=(
            "IMPORTANT: This section MUST exclusively contain information about the "
            "insured client. Do NOT populate it with details about the insurer."
        ),
    ),
    SectionSpec(
        key="propertyDetails",
        attribute="property_details",
        title="Property Details",
        model=PropertyDetails,
        instruction=(
            "Use the 'propertyNotes' field to summarize any important information that "
            "does not fit into the other predefined structured fields."
        ),
    ),
    SectionSpec(
        key="generalLiabilityDetails",
        attribute="general_liability_details",
        title="General Liability Details",
        model=GeneralLiabilityDetails,
        instruction=(
            "Use the 'generalLiabilityNotes' field for relevant information not captured elsewhere."
        ),
    ),
    SectionSpec(
        key="productLiabilityDetails",
        attribute="product_liability_details",
        title="Product Liability Details",
        model=ProductLiabilityDetails,
        instruction=(
            "Use the 'productLiabilityNotes' field for relevant information not captured elsewhere."
        ),
    ),
    SectionSpec(
        key="sublimits",
        attribute="sublimits",
        title="Sublimits",
        model=Sublimit,
        instruction="",
        is_list=True,
    ),
    SectionSpec(
        key="dettaglioEdifici",
        attribute="building_details",
        title="Building Details (Dettaglio Edifici)",
        model=BuildingDetail,
        instruction="Use the 'buildingNotes' field for relevant details.",
        is_list=True,
    ),
)

SECTIONS_BY_KEY: dict[str, SectionSpec] = {spec.key: spec for spec in SECTIONS}
SECTIONS_BY_ATTRIBUTE: dict[str, SectionSpec] = {spec.attribute: spec for spec in SECTIONS}


def section_for(name: str) -> SectionSpec:
    """Look up a section by wire key or record attribute name."""
    spec = SECTIONS_BY_KEY.get(name) or SECTIONS_BY_ATTRIBUTE.get(name)
    if spec is None:
        raise KeyError(name)
    return spec

