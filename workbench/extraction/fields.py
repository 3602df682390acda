"""Field catalogue: display labels, hints and the missing-value predicate.

The catalogue drives every human-facing rendering of a record (CSV, PDF,
broker e-mail draft, the API's missing-field flags) and is served to
editing clients for labels, input kinds, suggestions and hints.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, Field

from workbench.extraction.sections import section_for

FieldKind = Literal["text", "number", "date"]

DATA_STATUS_SUGGESTIONS = ("ok", "partial", "ambiguous")


@dataclass(frozen=True)
class FieldSpec:
    attribute: str
    label: str
    kind: FieldKind = "text"
    suggestions: tuple[str, ...] = ()
    tooltip: str = ""


@dataclass(frozen=True)
class SectionFields:
    """Labelled fields of one scalar section, plus its notes row if any."""

    attribute: str
    title: str
    fields: tuple[FieldSpec, ...]
    notes: FieldSpec | None = None


def is_value_missing(value: Any) -> bool:
    """Whether a value counts as missing for highlighting and broker requests.

    None, empty strings and numeric zero all count as missing. This is a
    display heuristic: the record itself keeps 0 and None distinct.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == 0
    return False


ANAGRAFICA_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("entity_name", "Entity Name"),
    FieldSpec("alt_names", "Alternative Names"),
    FieldSpec("entity_type", "Type", suggestions=("Policyholder", "Insured", "Owner")),
    FieldSpec("industry", "Industry"),
    FieldSpec("country", "Country"),
    FieldSpec("city", "City"),
    FieldSpec("address", "Address"),
    FieldSpec("top_location", "Top Location"),
    FieldSpec("vat", "VAT Number"),
    FieldSpec("tax_code", "Tax Code"),
    FieldSpec("website", "Website"),
    FieldSpec("broker_name", "Broker Name"),
    FieldSpec("broker_company", "Broker Company"),
    FieldSpec("period_from", "Period From", kind="date"),
    FieldSpec("period_to", "Period To", kind="date"),
    FieldSpec("risk_types", "Risk Types"),
    FieldSpec("territorial_scope", "Territorial Scope"),
    FieldSpec("loss_history_5y", "Loss History (5y)"),
    FieldSpec("annual_revenue_amount", "Annual Revenue", kind="number"),
    FieldSpec("annual_revenue_year", "Revenue Year", kind="number"),
    FieldSpec("payroll_amount", "Payroll Amount", kind="number"),
    FieldSpec("payroll_year", "Payroll Year", kind="number"),
    FieldSpec("headcount", "Headcount", kind="number"),
)

PROPERTY_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec(
        "tiv_pd_total_eur",
        "TIV PD Total (EUR)",
        kind="number",
        tooltip=(
            "Total Insured Value for Property Damage is a key metric for assessing the "
            "maximum potential loss from a single event."
        ),
    ),
    FieldSpec(
        "tiv_bi_sum_ins_eur",
        "TIV BI Sum (EUR)",
        kind="number",
        tooltip=(
            "Business Interruption value helps quantify the financial impact of a shutdown "
            "and is critical for coverage adequacy."
        ),
    ),
    FieldSpec(
        "rate_per_mille",
        "Rate per Mille",
        kind="number",
        tooltip=(
            "The rate is used to calculate the premium based on the total insured value; "
            "it reflects the assessed risk level."
        ),
    ),
    FieldSpec(
        "cat_included",
        "CAT Included",
        tooltip=(
            "Clarifies if catastrophic events like earthquakes or floods are covered, which "
            "significantly impacts the risk profile."
        ),
    ),
    FieldSpec(
        "buildings_eur",
        "Buildings (EUR)",
        kind="number",
        tooltip="The value of buildings is a primary component of the total property exposure.",
    ),
    FieldSpec(
        "machinery_eur",
        "Machinery (EUR)",
        kind="number",
        tooltip=(
            "The value of machinery is essential for industries where equipment is critical "
            "to operations."
        ),
    ),
    FieldSpec(
        "stock_eur",
        "Stock (EUR)",
        kind="number",
        tooltip=(
            "Stock value helps assess exposure related to inventory, which can be highly "
            "susceptible to damage."
        ),
    ),
    FieldSpec(
        "margin_contribution_eur",
        "Margin Contribution (EUR)",
        kind="number",
        tooltip=(
            "The contribution margin is a key input for calculating Business Interruption "
            "coverage needs."
        ),
    ),
    FieldSpec(
        "fire_protection_summary",
        "Fire Protection Summary",
        tooltip=(
            "Details on fire protection systems (sprinklers, alarms) are crucial for "
            "evaluating fire risk mitigation."
        ),
    ),
    FieldSpec(
        "nat_hazard_notes",
        "Natural Hazard Notes",
        tooltip=(
            "Information on natural hazard exposure (e.g., flood zones, seismic activity) is "
            "vital for CAT risk assessment."
        ),
    ),
    FieldSpec(
        "bi_period_months",
        "BI Period (Months)",
        kind="number",
        tooltip=(
            "The Business Interruption indemnity period determines how long the policy will "
            "cover losses after an event."
        ),
    ),
    FieldSpec(
        "bi_notes",
        "BI Notes",
        tooltip=(
            "Specific notes on Business Interruption can highlight unique dependencies or "
            "vulnerabilities."
        ),
    ),
)

GENERAL_LIABILITY_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec(
        "rct_limit_eur",
        "RCT Limit (EUR)",
        kind="number",
        tooltip=(
            "The General Liability Limit defines the maximum payout for third-party bodily "
            "injury or property damage claims."
        ),
    ),
    FieldSpec(
        "aggregate_limit_eur",
        "Aggregate Limit (EUR)",
        kind="number",
        tooltip=(
            "The annual aggregate limit is the total amount the policy will pay for all "
            "claims within a policy period."
        ),
    ),
    FieldSpec(
        "form_rct_rco",
        "Form RCT/RCO",
        suggestions=("Loss Occurrence", "Claims Made"),
        tooltip=(
            "The policy form (e.g., Claims Made) determines when a claim must be reported "
            "to be covered."
        ),
    ),
    FieldSpec(
        "usa_can_covered",
        "USA/Canada Covered",
        suggestions=("Yes", "No"),
        tooltip=(
            "Coverage for USA/Canada is a major factor as it represents a significantly "
            "different legal and risk environment."
        ),
    ),
    FieldSpec(
        "ded_rct",
        "Deductible RCT",
        kind="number",
        tooltip=(
            "The deductible is the amount the insured must pay out-of-pocket before the "
            "policy responds to a General Liability claim."
        ),
    ),
    FieldSpec(
        "extensions",
        "Extensions",
        tooltip="Understanding coverage extensions is key to defining the full scope of the policy.",
    ),
    FieldSpec(
        "exclusions",
        "Exclusions",
        tooltip=(
            "Identifying main exclusions is critical to understanding what is not covered "
            "by the policy."
        ),
    ),
    FieldSpec(
        "waivers",
        "Waivers",
        tooltip=(
            "Waivers of recourse affect the insurer's ability to recover losses from third "
            "parties."
        ),
    ),
    FieldSpec(
        "retro_ultrattivita",
        "Retroactivity",
        tooltip=(
            "Retroactive date is crucial for 'Claims Made' policies, defining the starting "
            "point for covered events."
        ),
    ),
)

PRODUCT_LIABILITY_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec(
        "rcp_limit_eur",
        "RCP Limit (EUR)",
        kind="number",
        tooltip=(
            "Product Liability Limit is essential for businesses that manufacture or sell "
            "products, covering claims of product-related harm."
        ),
    ),
    FieldSpec(
        "form_rcp",
        "Form RCP",
        suggestions=("Claims Made",),
        tooltip="The policy form for products is critical, especially for risks with a long tail.",
    ),
    FieldSpec(
        "recall_sublimit_eur",
        "Recall Sublimit (EUR)",
        kind="number",
        tooltip=(
            "Product recall coverage is important for mitigating the high costs associated "
            "with recalling a faulty product."
        ),
    ),
    FieldSpec(
        "pollution_acc_sublimit_eur",
        "Pollution Sublimit (EUR)",
        kind="number",
        tooltip=(
            "Pollution liability is a critical coverage, especially for industrial or "
            "manufacturing risks."
        ),
    ),
    FieldSpec(
        "interruption_third_party_sublimit_eur",
        "3rd Party Interruption (EUR)",
        kind="number",
        tooltip=(
            "This covers losses when a key supplier or customer experiences an interruption, "
            "affecting the insured."
        ),
    ),
    FieldSpec(
        "ded_rcp",
        "Deductible RCP",
        kind="number",
        tooltip=(
            "The product liability deductible impacts the insured's retained risk for "
            "product-related claims."
        ),
    ),
)

SUBLIMIT_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("risk_type", "Risk Type"),
    FieldSpec("coverage", "Coverage"),
    FieldSpec("sublimit_type", "Sublimit Type"),
    FieldSpec("amount", "Amount (EUR/%)"),
)

BUILDING_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("building_id", "Building ID"),
    FieldSpec("building_name", "Building Name"),
    FieldSpec("address", "Address"),
    FieldSpec("occupancy", "Occupancy"),
    FieldSpec("floor_area_sm", "Floor Area (sqm)", kind="number"),
    FieldSpec("building_rcv_eur", "Building RCV (EUR)", kind="number"),
    FieldSpec("contents_rcv_eur", "Contents RCV (EUR)", kind="number"),
    FieldSpec("total_rcv_eur", "Total RCV (EUR)", kind="number"),
    FieldSpec("year_built", "Year Built", kind="number"),
    FieldSpec("manual_fire_alarm_percent", "% Manual Fire Alarm", kind="number"),
    FieldSpec("automatic_fire_alarm_percent", "% Automatic Fire Alarm", kind="number"),
    FieldSpec("sprinklers_percent", "% Sprinklers", kind="number"),
    FieldSpec("roof_material", "Roof Material"),
)

BUILDING_NOTES = FieldSpec("building_notes", "Building Notes")

DATA_STATUS_FIELD = FieldSpec(
    "data_status",
    "Data Status",
    suggestions=DATA_STATUS_SUGGESTIONS,
    tooltip="Confidence in the extracted values of this section.",
)

SCALAR_SECTIONS: tuple[SectionFields, ...] = (
    SectionFields("anagrafica", "General Information", ANAGRAFICA_FIELDS),
    SectionFields(
        "property_details",
        "Property Details",
        PROPERTY_FIELDS,
        notes=FieldSpec("property_notes", "Property Notes"),
    ),
    SectionFields(
        "general_liability_details",
        "General Liability Details",
        GENERAL_LIABILITY_FIELDS,
        notes=FieldSpec("general_liability_notes", "General Liability Notes"),
    ),
    SectionFields(
        "product_liability_details",
        "Product Liability Details",
        PRODUCT_LIABILITY_FIELDS,
        notes=FieldSpec("product_liability_notes", "Product Liability Notes"),
    ),
)


def field_value(model: BaseModel, spec: FieldSpec) -> Any:
    """Read a field as a plain value (enums unwrapped)."""
    value = getattr(model, spec.attribute)
    return getattr(value, "value", value)


def missing_fields(record: Any) -> dict[str, list[FieldSpec]]:
    """Labelled fields per scalar section that count as missing, in catalogue order.

    Sections without missing fields are omitted.
    """
    result: dict[str, list[FieldSpec]] = {}
    for section in SCALAR_SECTIONS:
        data = getattr(record, section.attribute)
        missing = [spec for spec in section.fields if is_value_missing(field_value(data, spec))]
        if missing:
            result[section.title] = missing
    return result


def display_value(value: Any) -> str:
    """Plain-text rendering used by exports; None renders as an empty string."""
    value = getattr(value, "value", value)
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


LIST_SECTIONS: dict[str, tuple[FieldSpec, ...]] = {
    "sublimits": SUBLIMIT_FIELDS,
    "building_details": (*BUILDING_FIELDS, BUILDING_NOTES),
}


class FieldDescriptor(BaseModel):
    """One editable field as presented to editing clients."""

    key: str
    label: str
    kind: FieldKind
    suggestions: list[str] = Field(default_factory=list)
    tooltip: str | None = None


class SectionDescriptor(BaseModel):
    key: str
    title: str
    is_list: bool
    fields: list[FieldDescriptor]


def _describe_section(attribute: str, specs: list[FieldSpec]) -> SectionDescriptor:
    section = section_for(attribute)
    model_fields = section.model.model_fields
    if "data_status" in model_fields and DATA_STATUS_FIELD not in specs:
        specs = [*specs, DATA_STATUS_FIELD]
    return SectionDescriptor(
        key=section.key,
        title=section.title,
        is_list=section.is_list,
        fields=[
            FieldDescriptor(
                key=model_fields[spec.attribute].alias or spec.attribute,
                label=spec.label,
                kind=spec.kind,
                suggestions=list(spec.suggestions),
                tooltip=spec.tooltip or None,
            )
            for spec in specs
        ],
    )


def field_catalogue() -> list[SectionDescriptor]:
    """Editable fields per section, keyed by their wire names, in display order."""
    catalogue = []
    for section in SCALAR_SECTIONS:
        specs = [*section.fields, *([section.notes] if section.notes else [])]
        catalogue.append(_describe_section(section.attribute, specs))
    for attribute, specs in LIST_SECTIONS.items():
        catalogue.append(_describe_section(attribute, list(specs)))
    return catalogue
