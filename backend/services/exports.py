"""
Exports Excel (openpyxl) et Word (python-docx).

Chaque endpoint d'export construit ses colonnes + lignes (dicts déjà "à plat")
et délègue le rendu ici. Aucune requête DB dans ce module.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Iterable, Sequence

from docx import Document
from docx.shared import Pt, RGBColor
from fastapi import Response
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

HEADER_FILL = "ADD8E6"
TEXT_COLOR = "1F4E79"
BORDER_COLOR = "4682B4"

MISSING = "N/A"


@dataclass(frozen=True)
class ExportColumn:
    header: str
    key: str
    width: int = 20


def format_cell(value: Any) -> Any:
    if value is None or value == "":
        return MISSING
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.isoformat()
    return value


def build_excel(sheet_title: str, columns: Sequence[ExportColumn], rows: Iterable[dict]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]  # limite Excel

    side = Side(style="thin", color=f"FF{BORDER_COLOR}")
    border = Border(top=side, left=side, bottom=side, right=side)

    ws.append([c.header for c in columns])
    for cell in ws[1]:
        cell.font = Font(bold=True, color=f"FF{TEXT_COLOR}")
        cell.fill = PatternFill(fill_type="solid", fgColor=f"FF{HEADER_FILL}")
        cell.border = border
        cell.alignment = Alignment(vertical="center", horizontal="center")

    for row in rows:
        ws.append([format_cell(row.get(c.key)) for c in columns])
        for cell in ws[ws.max_row]:
            cell.font = Font(color=f"FF{TEXT_COLOR}")
            cell.border = border
            cell.alignment = Alignment(vertical="center", horizontal="left")

    for idx, col in enumerate(columns, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = col.width

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def build_word(title: str, columns: Sequence[ExportColumn], rows: Iterable[dict]) -> bytes:
    doc = Document()

    heading = doc.add_paragraph()
    run = heading.add_run(title)
    run.bold = True
    run.font.size = Pt(16)
    run.font.color.rgb = RGBColor.from_string(TEXT_COLOR)

    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    doc.add_paragraph(f"Generated: {generated}")

    table = doc.add_table(rows=1, cols=len(columns))
    table.style = "Table Grid"
    for cell, col in zip(table.rows[0].cells, columns):
        cell.text = ""
        hdr = cell.paragraphs[0].add_run(col.header)
        hdr.bold = True
        hdr.font.color.rgb = RGBColor.from_string(TEXT_COLOR)

    for row in rows:
        cells = table.add_row().cells
        for cell, col in zip(cells, columns):
            cell.text = str(format_cell(row.get(col.key)))

    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


def excel_response(basename: str, sheet_title: str, columns: Sequence[ExportColumn], rows: Iterable[dict]) -> Response:
    return _attachment(build_excel(sheet_title, columns, rows), XLSX_MEDIA_TYPE, basename, "xlsx")


def word_response(basename: str, title: str, columns: Sequence[ExportColumn], rows: Iterable[dict]) -> Response:
    return _attachment(build_word(title, columns, rows), DOCX_MEDIA_TYPE, basename, "docx")


def _attachment(content: bytes, media_type: str, basename: str, ext: str) -> Response:
    stamp = int(datetime.now(timezone.utc).timestamp() * 1000)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={basename}_{stamp}.{ext}"},
    )
