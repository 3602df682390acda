"""Extracted record data model and Gemini response schema generation.

Every section is a pydantic model whose fields are all optional; ``None``
means "not found in the documents". Wire names (model output, API payloads,
chat grounding context) are camelCase aliases.
"""

from __future__ import annotations

import types
import typing
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DataStatus(str, Enum):
    """Data quality status reported by the model for a section."""

    OK = "ok"
    PARTIAL = "partial"
    AMBIGUOUS = "ambiguous"


class RecordModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RiskSummary(RecordModel):
    summary: str | None = Field(
        default=None,
        alias="riskSummary",
        description="A concise summary of the key risks, coverages, and insured entity from the document.",
    )


class PrimaryEntity(RecordModel):
    """General information (anagrafica) about the insured client."""

    entity_name: str | None = Field(default=None, description="Entity's legal name.")
    alt_names: str | None = Field(default=None, description="Alternative or former names.")
    entity_type: str | None = Field(
        default=None, alias="type", description="Role (e.g., Policyholder, Insured, Owner)."
    )
    industry: str | None = Field(default=None, description="Business Activity / Industry Sector.")
    country: str | None = Field(default=None, description="Country.")
    city: str | None = Field(default=None, description="City.")
    address: str | None = Field(default=None, description="Full address.")
    top_location: str | None = Field(default=None, description="Main risk location.")
    vat: str | None = Field(default=None, description="VAT number.")
    tax_code: str | None = Field(default=None, description="Tax Code.")
    website: str | None = Field(default=None, description="Website.")
    broker_name: str | None = Field(default=None, description="Broker name.")
    broker_company: str | None = Field(default=None, description="Brokerage company.")
    period_from: str | None = Field(
        default=None, description="Coverage start date (YYYY-MM-DD format)."
    )
    period_to: str | None = Field(default=None, description="Coverage end date (YYYY-MM-DD format).")
    risk_types: str | None = Field(
        default=None, description="Risk types (Property, Liability, Cyber, etc.)."
    )
    territorial_scope: str | None = Field(default=None, description="Territorial scope.")
    loss_history_5y: str | None = Field(
        default=None, alias="lossHistory5y", description="Loss history for the last 5 years."
    )
    annual_revenue_amount: float | None = Field(default=None, description="Annual revenue amount.")
    annual_revenue_year: int | None = Field(default=None, description="Year of revenue.")
    payroll_amount: float | None = Field(default=None, description="Payroll amount.")
    payroll_year: int | None = Field(default=None, description="Year of payroll.")
    headcount: int | None = Field(default=None, description="Number of employees.")
    data_status: DataStatus | None = Field(
        default=None, description="Data quality status (ok, partial, ambiguous)."
    )


class PropertyDetails(RecordModel):
    entity_name: str | None = None
    top_location: str | None = None
    tiv_pd_total_eur: float | None = Field(default=None, description="Sum insured for Property Damage.")
    tiv_bi_sum_ins_eur: float | None = Field(
        default=None, description="Sum insured for Business Interruption."
    )
    rate_per_mille: float | None = Field(default=None, description="Gross rate requested.")
    cat_included: str | None = Field(default=None, description="Catastrophic risks inclusion.")
    buildings_eur: float | None = Field(default=None, description="Buildings value in EUR.")
    machinery_eur: float | None = Field(default=None, description="Machinery value in EUR.")
    stock_eur: float | None = Field(default=None, description="Stock value in EUR.")
    margin_contribution_eur: float | None = Field(
        default=None, description="Contribution margin in EUR."
    )
    fire_protection_summary: str | None = Field(default=None, description="Fire protection summary.")
    nat_hazard_notes: str | None = Field(default=None, description="Natural hazard notes.")
    bi_period_months: int | None = Field(default=None, description="BI indemnity period in months.")
    bi_notes: str | None = Field(default=None, description="BI details.")
    property_notes: str | None = Field(
        default=None,
        description="A summary of any other relevant property details not captured in other fields.",
    )
    data_status: DataStatus | None = Field(default=None, description="Data quality status.")


class GeneralLiabilityDetails(RecordModel):
    rct_limit_eur: float | None = Field(default=None, description="General Liability Limit.")
    aggregate_limit_eur: float | None = Field(default=None, description="Annual aggregate limit.")
    form_rct_rco: str | None = Field(
        default=None, description="Form (Loss Occurrence/Claims Made) for GL."
    )
    usa_can_covered: str | None = Field(default=None, description="USA/Canada Coverage (Yes/No).")
    ded_rct: float | None = Field(default=None, description="GL Deductible.")
    extensions: str | None = Field(default=None, description="Coverage extensions.")
    exclusions: str | None = Field(default=None, description="Main exclusions.")
    waivers: str | None = Field(default=None, description="Waivers of recourse.")
    retro_ultrattivita: str | None = Field(
        default=None, description="Retroactivity / Extended Reporting."
    )
    general_liability_notes: str | None = Field(
        default=None,
        description=(
            "A summary of any other relevant general liability details not captured in other fields."
        ),
    )
    data_status: DataStatus | None = Field(default=None, description="Data quality status.")


class ProductLiabilityDetails(RecordModel):
    rcp_limit_eur: float | None = Field(default=None, description="Product Liability Limit.")
    form_rcp: str | None = Field(default=None, description="Form (Claims Made) for PL.")
    recall_sublimit_eur: float | None = Field(default=None, description="Product Recall Sublimit.")
    pollution_acc_sublimit_eur: float | None = Field(
        default=None, description="Accidental Pollution Sublimit."
    )
    interruption_third_party_sublimit_eur: float | None = Field(
        default=None, description="Third-party interruption sublimit."
    )
    ded_rcp: float | None = Field(default=None, description="PL Deductible.")
    product_liability_notes: str | None = Field(
        default=None,
        description=(
            "A summary of any other relevant product liability details not captured in other fields."
        ),
    )
    data_status: DataStatus | None = Field(default=None, description="Data quality status.")


class Sublimit(RecordModel):
    risk_type: str | None = Field(default=None, description="Risk Type (GL/RCO/PL/Property).")
    coverage: str | None = Field(default=None, description="Coverage Type.")
    sublimit_type: str | None = Field(default=None, description="Sublimit Type (amount/percent).")
    amount: str | None = Field(default=None, alias="amountEurPercent", description="Amount EUR/%.")


class BuildingDetail(RecordModel):
    entity_name: str | None = None
    building_id: str | None = Field(default=None, description="Building ID.")
    building_name: str | None = Field(default=None, description="Building Name.")
    address: str | None = Field(default=None, description="Building Address.")
    occupancy: str | None = Field(
        default=None, description="Occupancy (production, warehouse, offices)."
    )
    floor_area_sm: float | None = Field(default=None, description="Floor Area in sqm.")
    building_rcv_eur: float | None = Field(
        default=None, description="Building Replacement Cost Value."
    )
    contents_rcv_eur: float | None = Field(
        default=None, description="Contents Replacement Cost Value."
    )
    total_rcv_eur: float | None = Field(default=None, description="Total Replacement Cost Value.")
    year_built: int | None = Field(default=None, description="Year Built.")
    manual_fire_alarm_percent: float | None = Field(
        default=None, description="% presence of manual fire alarm."
    )
    automatic_fire_alarm_percent: float | None = Field(
        default=None, description="% presence of automatic fire alarm."
    )
    sprinklers_percent: float | None = Field(default=None, description="% presence of sprinklers.")
    roof_material: str | None = Field(default=None, description="Roof Material.")
    building_notes: str | None = Field(
        default=None,
        description="A summary of any other relevant building details not captured in other fields.",
    )


class ExtractedRecord(RecordModel):
    """The consolidated result of one extraction run."""

    risk_summary: RiskSummary = Field(default_factory=RiskSummary)
    anagrafica: PrimaryEntity = Field(default_factory=PrimaryEntity)
    property_details: PropertyDetails = Field(default_factory=PropertyDetails)
    general_liability_details: GeneralLiabilityDetails = Field(
        default_factory=GeneralLiabilityDetails
    )
    product_liability_details: ProductLiabilityDetails = Field(
        default_factory=ProductLiabilityDetails
    )
    sublimits: list[Sublimit] = Field(default_factory=list)
    building_details: list[BuildingDetail] = Field(
        default_factory=list, alias="dettaglioEdifici"
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize with wire (camelCase) names and enum values."""
        return self.model_dump(by_alias=True, mode="json")


# --- Gemini response schema ---

_SCALAR_TYPES: dict[type, str] = {
    str: "STRING",
    float: "NUMBER",
    int: "INTEGER",
    bool: "BOOLEAN",
}


def _unwrap_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _field_schema(annotation: Any, description: str | None) -> dict[str, Any]:
    base = _unwrap_optional(annotation)
    if isinstance(base, type) and issubclass(base, Enum):
        schema: dict[str, Any] = {"type": "STRING", "enum": [member.value for member in base]}
    elif base in _SCALAR_TYPES:
        schema = {"type": _SCALAR_TYPES[base]}
    else:
        raise TypeError(f"Unsupported schema field type: {annotation!r}")
    schema["nullable"] = True
    if description:
        schema["description"] = description
    return schema


def object_schema(model: type[BaseModel]) -> dict[str, Any]:
    """Build a Gemini OpenAPI-subset object schema from a section model."""
    properties: dict[str, Any] = {}
    for name, info in model.model_fields.items():
        key = info.alias or name
        properties[key] = _field_schema(info.annotation, info.description)
    return {"type": "OBJECT", "properties": properties, "nullable": True}


def section_schema(key: str, model: type[BaseModel], *, is_list: bool) -> dict[str, Any]:
    """Wrap a section schema in its top-level key, as requested from the model."""
    inner = object_schema(model)
    if is_list:
        inner = {"type": "ARRAY", "items": inner}
    return {"type": "OBJECT", "properties": {key: inner}}
