"""PDF risk report rendered with fpdf2.

Layout: a cover page, then numbered sections in a fixed order. Sections
switched off in ``PdfExportConfig`` are skipped and the numbering closes up.
The buildings table gets its own landscape page. Core fonts are latin-1 only,
so every string goes through ``_text`` first.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Callable

from fpdf import FPDF
from fpdf.enums import XPos, YPos
from pydantic import BaseModel

from workbench.extraction.fields import (
    BUILDING_FIELDS,
    BUILDING_NOTES,
    SCALAR_SECTIONS,
    SUBLIMIT_FIELDS,
    SectionFields,
    display_value,
)
from workbench.extraction.schema import ExtractedRecord
from workbench.news.enrichment import NewsResult

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"

_TITLE_COLOR = (0, 51, 102)
_MUTED_COLOR = (110, 110, 110)


class PdfExportConfig(BaseModel):
    """Which sections go into the report, plus optional cover page details."""

    include_risk_summary: bool = True
    include_latest_news: bool = True
    include_anagrafica: bool = True
    include_property_details: bool = True
    include_general_liability_details: bool = True
    include_product_liability_details: bool = True
    include_sublimits: bool = True
    include_building_details: bool = True
    use_custom_cover_page: bool = False
    policy_number: str = ""
    underwriter_name: str = ""


def _text(value: Any) -> str:
    if value is None:
        return "N/A"
    rendered = display_value(value) or "N/A"
    rendered = rendered.replace("€", "EUR")
    return rendered.encode("latin-1", "replace").decode("latin-1")


def pdf_filename(record: ExtractedRecord) -> str:
    name = record.anagrafica.entity_name
    if not name:
        return "Risk_Report.pdf"
    slug = re.sub(r"\s+", "_", name.strip())
    return f"{slug}_Risk_Report.pdf"


class RiskReportPDF(FPDF):
    def __init__(self, entity_name: str | None) -> None:
        super().__init__(orientation="P", unit="mm", format="A4")
        self.entity_name = entity_name
        self.set_auto_page_break(auto=True, margin=18)
        self.set_title(_text(f"Risk Assessment Report - {entity_name or 'Risk Report'}"))

    def footer(self) -> None:
        self.set_y(-12)
        self.set_font("helvetica", "I", 8)
        self.set_text_color(*_MUTED_COLOR)
        self.cell(0, 8, f"Page {self.page_no()} of {{nb}}", align="L")
        self.set_x(self.l_margin)
        self.cell(0, 8, _text(self.entity_name or "Risk Report"), align="R")


class RiskReportBuilder:
    def __init__(
        self,
        record: ExtractedRecord,
        news: NewsResult | None,
        config: PdfExportConfig,
        *,
        generated_on: date | None = None,
    ) -> None:
        self.record = record
        self.news = news
        self.config = config
        self.generated_on = generated_on or date.today()
        self.pdf = RiskReportPDF(record.anagrafica.entity_name)
        self._number = 0

    def build(self) -> bytes:
        self._cover_page()
        self.pdf.add_page()

        sections: list[tuple[bool, Callable[[], None]]] = [
            (self.config.include_risk_summary, self._risk_summary),
            (self.config.include_latest_news and self.news is not None, self._latest_news),
        ]
        flags = {
            "anagrafica": self.config.include_anagrafica,
            "property_details": self.config.include_property_details,
            "general_liability_details": self.config.include_general_liability_details,
            "product_liability_details": self.config.include_product_liability_details,
        }
        for section in SCALAR_SECTIONS:
            sections.append((flags[section.attribute], self._scalar_renderer(section)))
        sections.append((self.config.include_sublimits, self._sublimits))

        for enabled, render in sections:
            if enabled:
                render()

        if self.config.include_building_details and self.record.building_details:
            self._building_details()

        return bytes(self.pdf.output())

    # --- Layout helpers ---

    def _heading(self, title: str) -> None:
        self._number += 1
        pdf = self.pdf
        pdf.ln(2)
        pdf.set_font("helvetica", "B", 14)
        pdf.set_fill_color(240, 240, 240)
        pdf.set_text_color(*_TITLE_COLOR)
        pdf.cell(
            0, 10, _text(f"{self._number}. {title}"),
            fill=True, new_x=XPos.LMARGIN, new_y=YPos.NEXT,
        )
        pdf.ln(3)
        pdf.set_text_color(0, 0, 0)

    def _paragraph(self, text: Any, size: int = 10) -> None:
        self.pdf.set_font("helvetica", "", size)
        self.pdf.multi_cell(0, 6, _text(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def _key_value_table(self, rows: list[tuple[str, Any]]) -> None:
        pdf = self.pdf
        pdf.set_font("helvetica", "", 9)
        with pdf.table(col_widths=(35, 65), first_row_as_headings=False) as table:
            for label, value in rows:
                row = table.row()
                row.cell(_text(label))
                row.cell(_text(value))
        pdf.ln(4)

    def _grid(self, headings: list[str], rows: list[list[Any]], font_size: int) -> None:
        pdf = self.pdf
        pdf.set_font("helvetica", "", font_size)
        with pdf.table() as table:
            header = table.row()
            for heading in headings:
                header.cell(_text(heading))
            for values in rows:
                row = table.row()
                for value in values:
                    row.cell(_text(value))
        pdf.ln(4)

    # --- Pages and sections ---

    def _cover_page(self) -> None:
        pdf = self.pdf
        pdf.add_page()
        pdf.set_y(70)
        pdf.set_font("helvetica", "B", 26)
        pdf.set_text_color(*_TITLE_COLOR)
        pdf.cell(0, 20, "Risk Assessment Report", align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

        pdf.ln(10)
        pdf.set_font("helvetica", "B", 16)
        pdf.set_text_color(50, 50, 50)
        pdf.cell(
            0, 10, _text(f"Prepared for: {self.record.anagrafica.entity_name or 'N/A'}"),
            align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT,
        )

        if self.config.use_custom_cover_page:
            pdf.ln(6)
            pdf.set_font("helvetica", "", 12)
            if self.config.policy_number:
                pdf.cell(
                    0, 8, _text(f"Policy Number: {self.config.policy_number}"),
                    align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT,
                )
            if self.config.underwriter_name:
                pdf.cell(
                    0, 8, _text(f"Underwriter: {self.config.underwriter_name}"),
                    align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT,
                )

        pdf.set_y(220)
        pdf.set_font("helvetica", "I", 10)
        pdf.set_text_color(*_MUTED_COLOR)
        pdf.cell(
            0, 10, f"Generated on: {self.generated_on.strftime('%d/%m/%Y')}",
            align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT,
        )
        pdf.set_text_color(0, 0, 0)

    def _risk_summary(self) -> None:
        self._heading("Risk Summary")
        self._paragraph(self.record.risk_summary.summary)
        self.pdf.ln(4)

    def _latest_news(self) -> None:
        news = self.news
        if news is None:
            return
        pdf = self.pdf
        self._heading("Latest News")
        if news.summary:
            pdf.set_font("helvetica", "B", 11)
            pdf.cell(0, 8, "Web Summary", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            self._paragraph(news.summary)
            pdf.ln(3)
        if news.citations:
            pdf.set_font("helvetica", "B", 11)
            pdf.cell(0, 8, "Recent Mentions", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            for citation in news.citations:
                pdf.set_font("helvetica", "B", 9)
                pdf.multi_cell(
                    0, 5, _text(f"- {citation.title or citation.uri}"),
                    new_x=XPos.LMARGIN, new_y=YPos.NEXT,
                )
                pdf.set_font("helvetica", "", 8)
                pdf.set_text_color(*_MUTED_COLOR)
                pdf.multi_cell(0, 5, _text(citation.uri), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
                pdf.set_text_color(0, 0, 0)
            pdf.ln(3)

    def _scalar_renderer(self, section: SectionFields) -> Callable[[], None]:
        def render() -> None:
            data = getattr(self.record, section.attribute)
            self._heading(section.title)
            rows = [(spec.label, getattr(data, spec.attribute)) for spec in section.fields]
            rows.append(("Data Status", data.data_status))
            self._key_value_table(rows)
            if section.notes is not None:
                notes = getattr(data, section.notes.attribute)
                if notes:
                    self.pdf.set_font("helvetica", "B", 10)
                    self.pdf.cell(
                        0, 7, _text(section.notes.label),
                        new_x=XPos.LMARGIN, new_y=YPos.NEXT,
                    )
                    self._paragraph(notes, size=9)
                    self.pdf.ln(3)

        return render

    def _sublimits(self) -> None:
        self._heading("Sublimits")
        if not self.record.sublimits:
            self._paragraph("No sublimits extracted.", size=9)
            self.pdf.ln(3)
            return
        self._grid(
            [spec.label for spec in SUBLIMIT_FIELDS],
            [[getattr(item, spec.attribute) for spec in SUBLIMIT_FIELDS] for item in self.record.sublimits],
            font_size=9,
        )

    def _building_details(self) -> None:
        self.pdf.add_page(orientation="L")
        self._heading("Building Details")
        columns = (*BUILDING_FIELDS, BUILDING_NOTES)
        self._grid(
            [spec.label for spec in columns],
            [[getattr(item, spec.attribute) for spec in columns] for item in self.record.building_details],
            font_size=6,
        )


def export_pdf(
    record: ExtractedRecord,
    news: NewsResult | None = None,
    config: PdfExportConfig | None = None,
    *,
    generated_on: date | None = None,
) -> bytes:
    """Render the report and return the PDF document bytes."""
    config = config or PdfExportConfig()
    content = RiskReportBuilder(record, news, config, generated_on=generated_on).build()
    logger.info("PDF report rendered", extra={"bytes": len(content)})
    return content
