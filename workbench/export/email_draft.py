"""Broker e-mail draft requesting the fields still missing from a record."""

from __future__ import annotations

from pydantic import BaseModel

from workbench.extraction.fields import missing_fields
from workbench.extraction.schema import ExtractedRecord

SIGN_OFF = "Best regards,\nYour Underwriting Team"


class EmailDraft(BaseModel):
    subject: str
    body: str


def draft_missing_info_email(record: ExtractedRecord) -> EmailDraft:
    """Compose the request for information sent back to the broker.

    Missing values are grouped under their section title in catalogue order.
    When nothing is missing the body acknowledges a complete submission.
    """
    entity_name = record.anagrafica.entity_name
    subject = f"Request for Information: Policy for {entity_name or 'N/A'}"
    client = entity_name or "your client"

    missing = missing_fields(record)
    if not missing:
        body = (
            "Dear Broker,\n\n"
            f"Thank you for sending over the documentation for {client}. All primary data "
            "fields appear to be complete based on our initial review.\n\n"
            "If you have any additional information to provide, please let us know.\n\n"
            f"{SIGN_OFF}"
        )
        return EmailDraft(subject=subject, body=body)

    groups = "\n\n".join(
        f"{title}:\n" + "\n".join(f"- {spec.label}" for spec in specs)
        for title, specs in missing.items()
    )
    body = (
        "Dear Broker,\n\n"
        "Thank you for sending over the documentation. To proceed with the underwriting "
        f"process for {client}, we kindly request the following missing or zero-value "
        "information:\n\n"
        f"{groups}"
        "\n\nPlease provide these details at your earliest convenience.\n\n"
        f"{SIGN_OFF}"
    )
    return EmailDraft(subject=subject, body=body)
