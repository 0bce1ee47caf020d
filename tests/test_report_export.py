from datetime import date
from decimal import Decimal

from worktrack.services import report_export
from worktrack.services.reporting import resolve_period


def _report(rows, unit="currency", kind="expense"):
    return {
        "type": kind,
        "title": "Report Note Spese",
        "period": resolve_period("current-month", date(2024, 3, 20)),
        "rows": rows,
        "total": sum((row["value"] for row in rows), Decimal("0")),
        "unit": unit,
    }


def test_render_report_pdf_produces_document():
    report = _report([{"name": "Viaggi", "value": Decimal("120.00")}, {"name": "Pasti", "value": Decimal("55.11")}])
    pdf_bytes = report_export.render_report_pdf(report, owner="Mario Rossi")
    assert pdf_bytes.startswith(b"%PDF")
    assert len(pdf_bytes) > 500


def test_render_empty_report_pdf():
    report = _report([], unit="days", kind="leave")
    report["title"] = "Report Ferie e Permessi"
    report["total"] = 0
    assert report_export.render_report_pdf(report).startswith(b"%PDF")


def test_render_pdf_with_typographic_names():
    report = _report([{"name": "Dell’Acqua – fase 2", "value": Decimal("6.5")}], unit="hours", kind="activity")
    report["title"] = "Report Attività"
    report["type_rows"] = [{"name": "Analisi “funzionale”", "value": Decimal("6.5")}]
    pdf_bytes = report_export.render_report_pdf(report, owner="Zoë Dell’Acqua", tz="Europe/Rome")
    assert pdf_bytes.startswith(b"%PDF")
    assert b"DejaVu" in pdf_bytes
