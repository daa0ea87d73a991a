import io
from datetime import date

from docx import Document
from openpyxl import load_workbook

from backend.app.db.models.core_types import PlanType
from backend.services.exports import (
    DOCX_MEDIA_TYPE,
    XLSX_MEDIA_TYPE,
    ExportColumn,
    build_excel,
    build_word,
    format_cell,
)

COLUMNS = [ExportColumn("Name", "name"), ExportColumn("Type", "type"), ExportColumn("Start", "start")]
ROWS = [{"name": "Week 1", "type": PlanType.weekly, "start": date(2026, 1, 5)}, {"name": None}]


def test_format_cell():
    assert format_cell(None) == "N/A"
    assert format_cell("") == "N/A"
    assert format_cell(PlanType.annual) == "annual"
    assert format_cell(date(2026, 1, 5)) == "2026-01-05"
    assert format_cell(3.5) == 3.5


def test_build_excel_has_header_and_rows():
    wb = load_workbook(io.BytesIO(build_excel("Plans", COLUMNS, ROWS)))
    ws = wb.active
    values = [[c.value for c in row] for row in ws.iter_rows()]
    assert values[0] == ["Name", "Type", "Start"]
    assert values[1] == ["Week 1", "weekly", "2026-01-05"]
    assert values[2] == ["N/A", "N/A", "N/A"]
    assert ws["A1"].font.bold


def test_build_word_has_table():
    doc = Document(io.BytesIO(build_word("Plans report", COLUMNS, ROWS)))
    assert doc.paragraphs[0].text == "Plans report"
    table = doc.tables[0]
    assert [c.text for c in table.rows[0].cells] == ["Name", "Type", "Start"]
    assert len(table.rows) == 3


def test_export_endpoints(client, admin_headers, make):
    make.unit()
    xlsx = client.get("/api/units/export/excel", headers=admin_headers)
    assert xlsx.status_code == 200
    assert xlsx.headers["content-type"] == XLSX_MEDIA_TYPE
    assert xlsx.headers["content-disposition"].startswith("attachment; filename=units_")
    assert xlsx.content

    docx = client.get("/api/stock/export/word", headers=admin_headers)
    assert docx.status_code == 200
    assert docx.headers["content-type"] == DOCX_MEDIA_TYPE
    assert docx.headers["content-disposition"].endswith(".docx")
