"""CSV export of an extracted record.

Sections are separated by blank lines. Scalar sections are rendered as
``Field,Value`` tables; sublimits and buildings as header + rows tables,
emitted only when they have items. Cells are quoted only when they contain a
comma, a quote or a line break, with internal quotes doubled.
"""

from __future__ import annotations

import csv
import io
import re
from typing import Any

from workbench.extraction.fields import (
    BUILDING_FIELDS,
    BUILDING_NOTES,
    SCALAR_SECTIONS,
    SUBLIMIT_FIELDS,
    display_value,
)
from workbench.extraction.schema import ExtractedRecord

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"

_SECTION_HEADINGS = {
    "anagrafica": "General Information (Anagrafica)",
}


def csv_filename(record: ExtractedRecord) -> str:
    name = record.anagrafica.entity_name
    if not name:
        return "underwriting_data.csv"
    slug = re.sub(r"\s+", "_", name.strip())
    return f"{slug}_Underwriting_Data.csv"


def record_rows(record: ExtractedRecord) -> list[list[str]]:
    rows: list[list[str]] = [
        ["Risk Summary"],
        [display_value(record.risk_summary.summary)],
        [],
    ]

    for section in SCALAR_SECTIONS:
        data: Any = getattr(record, section.attribute)
        rows.append([_SECTION_HEADINGS.get(section.attribute, section.title)])
        rows.append(["Field", "Value"])
        for spec in section.fields:
            rows.append([spec.label, display_value(getattr(data, spec.attribute))])
        if section.notes is not None:
            rows.append([section.notes.label, display_value(getattr(data, section.notes.attribute))])
        rows.append(["Data Status", display_value(data.data_status)])
        rows.append([])

    if record.sublimits:
        rows.append(["Sublimits"])
        rows.append([spec.label for spec in SUBLIMIT_FIELDS])
        for sublimit in record.sublimits:
            rows.append([display_value(getattr(sublimit, spec.attribute)) for spec in SUBLIMIT_FIELDS])
        rows.append([])

    if record.building_details:
        columns = (*BUILDING_FIELDS, BUILDING_NOTES)
        rows.append(["Building Details (Dettaglio Edifici)"])
        rows.append([spec.label for spec in columns])
        for building in record.building_details:
            rows.append([display_value(getattr(building, spec.attribute)) for spec in columns])
        rows.append([])

    return rows


def export_csv(record: ExtractedRecord) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerows(record_rows(record))
    return buffer.getvalue()
