"""Risk snapshot: headline metrics computed from the current record."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel

from workbench.extraction.fields import is_value_missing
from workbench.extraction.schema import ExtractedRecord


class RiskSnapshot(BaseModel):
    total_insured_value: float
    total_insured_value_display: str
    key_liability_limit: float
    key_liability_limit_display: str
    policy_period: str
    risk_types: str | None
    completeness_score: int
    missing_key_fields: list[str]


def format_eur(value: float | None) -> str:
    """Format as whole euros with dot thousands separators, e.g. ``1.250.000 €``."""
    if value is None:
        return "N/A"
    return f"{value:,.0f}".replace(",", ".") + " €"


def format_date(value: str | None) -> str:
    """Render an ISO date as dd/mm/yyyy; other strings are returned as-is."""
    if not value:
        return "N/A"
    try:
        return date.fromisoformat(value).strftime("%d/%m/%Y")
    except ValueError:
        return value


def _key_fields(record: ExtractedRecord) -> dict[str, object]:
    entity = record.anagrafica
    return {
        "entityName": entity.entity_name,
        "address": entity.address,
        "industry": entity.industry,
        "annualRevenueAmount": entity.annual_revenue_amount,
        "periodFrom": entity.period_from,
        "periodTo": entity.period_to,
        "tivPdTotalEur": record.property_details.tiv_pd_total_eur,
        "tivBiSumInsEur": record.property_details.tiv_bi_sum_ins_eur,
        "rctLimitEur": record.general_liability_details.rct_limit_eur,
    }


def build_snapshot(record: ExtractedRecord) -> RiskSnapshot:
    prop = record.property_details
    total_insured_value = (prop.tiv_pd_total_eur or 0) + (prop.tiv_bi_sum_ins_eur or 0)
    key_liability_limit = max(
        record.general_liability_details.rct_limit_eur or 0,
        record.product_liability_details.rcp_limit_eur or 0,
    )

    key_fields = _key_fields(record)
    missing = [name for name, value in key_fields.items() if is_value_missing(value)]
    filled = len(key_fields) - len(missing)
    completeness = int(filled / len(key_fields) * 100 + 0.5)

    return RiskSnapshot(
        total_insured_value=total_insured_value,
        total_insured_value_display=format_eur(total_insured_value),
        key_liability_limit=key_liability_limit,
        key_liability_limit_display=format_eur(key_liability_limit),
        policy_period=(
            f"{format_date(record.anagrafica.period_from)} - "
            f"{format_date(record.anagrafica.period_to)}"
        ),
        risk_types=record.anagrafica.risk_types,
        completeness_score=completeness,
        missing_key_fields=missing,
    )
