"""PDF rendering of the aggregated reports."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from ..core.config import settings
from ..core.jinja import fmt_currency, fmt_date, fmt_number

LOGGER = logging.getLogger(__name__)

# Names from the backend are free text, so a Unicode TTF is embedded instead of the latin-1 core fonts.
REPORT_PDF_FONT_FAMILY = "DejaVu"
REPORT_PDF_FONT_FILES = {
    "": "DejaVuSans.ttf",
    "B": "DejaVuSans-Bold.ttf",
    "I": "DejaVuSans.ttf",
}
FONTS_DIR = Path(__file__).resolve().parent.parent / "static" / "fonts"
UNIT_HEADERS = {"hours": "Ore", "currency": "Importo", "days": "Giorni"}
NAME_HEADERS = {"activity": "Progetto", "expense": "Categoria", "leave": "Tipo"}


def _register_report_fonts(pdf: FPDF) -> None:
    for style, filename in REPORT_PDF_FONT_FILES.items():
        if f"{REPORT_PDF_FONT_FAMILY.lower()}{style}" in pdf.fonts:
            continue
        font_file = FONTS_DIR / filename
        if not font_file.exists():
            LOGGER.error("Report font missing: %s", font_file)
            raise FileNotFoundError(font_file)
        pdf.add_font(REPORT_PDF_FONT_FAMILY, style=style, fname=str(font_file))


def _format_value(value: Any, unit: str) -> str:
    if unit == "currency":
        return fmt_currency(Decimal(value))
    if unit == "hours":
        return f"{fmt_number(value)} h"
    return f"{value} gg"


def _rows_table(pdf: FPDF, width: float, name_header: str, rows, unit: str) -> None:
    name_width = width * 0.65
    value_width = width - name_width
    pdf.set_font(REPORT_PDF_FONT_FAMILY, "B", 11)
    pdf.cell(name_width, 7, name_header, border="B")
    pdf.cell(value_width, 7, UNIT_HEADERS.get(unit, ""), border="B", align="R", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font(REPORT_PDF_FONT_FAMILY, "", 11)
    for row in rows:
        pdf.cell(name_width, 6.5, str(row["name"]))
        pdf.cell(
            value_width,
            6.5,
            _format_value(row["value"], unit),
            align="R",
            new_x=XPos.LMARGIN,
            new_y=YPos.NEXT,
        )


def render_report_pdf(report: Dict[str, Any], owner: Optional[str] = None, tz: Optional[str] = None) -> bytes:
    """Render the report produced by ``reporting.build_report`` as an A4 PDF."""

    pdf = FPDF(unit="mm", format="A4")
    pdf.set_auto_page_break(auto=True, margin=15)
    _register_report_fonts(pdf)
    pdf.add_page()

    effective_width = pdf.w - pdf.l_margin - pdf.r_margin
    period = report["period"]
    unit = report.get("unit", "hours")

    pdf.set_font(REPORT_PDF_FONT_FAMILY, "B", 16)
    pdf.cell(effective_width, 10, report.get("title", "Report"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    zone = tz or settings.TZ
    generated_at = datetime.now(ZoneInfo(zone)) if zone else datetime.now()
    pdf.set_font(REPORT_PDF_FONT_FAMILY, size=10)
    pdf.cell(
        effective_width,
        5,
        f"Generato il {generated_at.strftime('%d/%m/%Y %H:%M')}",
        new_x=XPos.LMARGIN,
        new_y=YPos.NEXT,
    )
    if owner:
        pdf.cell(effective_width, 5, f"Utente: {owner}", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)

    pdf.set_font(REPORT_PDF_FONT_FAMILY, "", 11)
    pdf.multi_cell(
        effective_width,
        5.5,
        f"Periodo: {period.label} ({fmt_date(period.start)} - {fmt_date(period.end)})",
        new_x=XPos.LMARGIN,
        new_y=YPos.NEXT,
    )
    pdf.multi_cell(
        effective_width,
        5.5,
        f"Totale: {_format_value(report.get('total', 0), unit)}",
        new_x=XPos.LMARGIN,
        new_y=YPos.NEXT,
    )
    pdf.ln(4)

    rows = report.get("rows") or []
    if not rows:
        pdf.set_font(REPORT_PDF_FONT_FAMILY, "I", 10)
        pdf.multi_cell(effective_width, 5, "Nessun dato per il periodo selezionato.")
    else:
        _rows_table(pdf, effective_width, NAME_HEADERS.get(report.get("type", ""), "Voce"), rows, unit)

    type_rows = report.get("type_rows") or []
    if type_rows:
        pdf.ln(6)
        pdf.set_font(REPORT_PDF_FONT_FAMILY, "B", 12)
        pdf.cell(effective_width, 8, "Distribuzione per tipo di attività", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        _rows_table(pdf, effective_width, "Tipo di attività", type_rows, "hours")

    LOGGER.info(
        "Rendered %s report PDF",
        report.get("type"),
        extra={"extra_data": {"report_type": report.get("type"), "period": period.key, "rows": len(rows)}},
    )
    return bytes(pdf.output())


__all__ = ["render_report_pdf"]
