"""
XLSX export/import of the monthly schedule grid.

Layout (one sheet):
    row 1   title
    row 2   姓名 | 1 | 2 | ... | days_in_month
    row 3        | weekday labels
    row 4+  three rows per person (periods A/B/C); the first row carries
            the shift code, followed by the period A label on working days
            (e.g. "GM 運")
"""
import calendar
import io
import re
import zipfile
from datetime import date
from typing import Dict, List, Optional

import openpyxl
from fastapi import HTTPException
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.orm import Session

from .scheduling import (
    ACTIVITY_LABELS,
    DEPARTMENT_LABELS,
    NON_WORKING_SHIFT_CODES,
    PERIODS,
    ShiftCode,
    month_entries,
)


WEEKDAY_LABELS = ["一", "二", "三", "四", "五", "六", "日"]
FIRST_DATA_ROW = 4

TITLE_FONT = Font(bold=True, size=14)
HEADER_FONT = Font(bold=True)
HEADER_FILL = PatternFill(start_color="D6E4F0", end_color="D6E4F0", fill_type="solid")
WEEKEND_FILL = PatternFill(start_color="F3F4F6", end_color="F3F4F6", fill_type="solid")
OFF_FILL = PatternFill(start_color="FCE7E7", end_color="FCE7E7", fill_type="solid")
CENTER = Alignment(horizontal="center", vertical="center")
THIN_BORDER = Border(left=Side(style="thin"), right=Side(style="thin"), top=Side(style="thin"), bottom=Side(style="thin"))

_LABEL_TO_ACTIVITY = {label: code for code, label in ACTIVITY_LABELS.items()}
_SHIFT_CODES = {c.value for c in ShiftCode}
_TITLE_PERIOD_RE = re.compile(r"(\d{4})-(\d{1,2})")


def _department_label(department: Optional[str]) -> str:
    return DEPARTMENT_LABELS.get(department, "全部") if department else "全部"


def export_schedule(db: Session, year: int, month: int, department: Optional[str] = None) -> bytes:
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="Invalid month")
    days_in_month = calendar.monthrange(year, month)[1]
    label = _department_label(department)

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = f"{label} {year}-{month}"

    ws.cell(row=1, column=1, value=f"{label} {year}年{month}月 排班表").font = TITLE_FONT
    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=days_in_month + 1)

    ws.cell(row=2, column=1, value="姓名")
    for day in range(1, days_in_month + 1):
        weekday = date(year, month, day).weekday()
        ws.cell(row=2, column=day + 1, value=day)
        ws.cell(row=3, column=day + 1, value=WEEKDAY_LABELS[weekday])
    for row in (2, 3):
        for col in range(1, days_in_month + 2):
            cell = ws.cell(row=row, column=col)
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            cell.alignment = CENTER
            cell.border = THIN_BORDER

    by_user: Dict = {}
    for e in month_entries(db, year, month, department):
        by_user.setdefault(e.user_id, {"name": e.user.name, "days": {}})["days"][e.date.day] = e

    row = FIRST_DATA_ROW
    for person in by_user.values():
        ws.cell(row=row, column=1, value=person["name"])
        ws.merge_cells(start_row=row, start_column=1, end_row=row + 2, end_column=1)
        for day in range(1, days_in_month + 1):
            entry = person["days"].get(day)
            weekend = date(year, month, day).weekday() >= 5
            off = entry is not None and entry.shift_code in NON_WORKING_SHIFT_CODES
            for offset, period in enumerate(PERIODS):
                cell = ws.cell(row=row + offset, column=day + 1)
                if off:
                    cell.value = entry.shift_code if offset == 0 else None
                    cell.fill = OFF_FILL
                elif entry is not None:
                    value = getattr(entry, period)
                    text = ACTIVITY_LABELS.get(value, value) if value else None
                    if offset == 0 and entry.shift_code:
                        text = f"{entry.shift_code} {text}" if text else entry.shift_code
                    cell.value = text
                if weekend and not off:
                    cell.fill = WEEKEND_FILL
                cell.alignment = CENTER
                cell.border = THIN_BORDER
        ws.cell(row=row, column=1).alignment = CENTER
        row += 3

    ws.column_dimensions["A"].width = 12
    for col in range(2, days_in_month + 2):
        ws.column_dimensions[get_column_letter(col)].width = 4

    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


def _cell_text(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _activity(value) -> Optional[str]:
    text = _cell_text(value)
    if text is None:
        return None
    return _LABEL_TO_ACTIVITY.get(text, text if text in ACTIVITY_LABELS else None)


def _split_shift_code(text: Optional[str]):
    """Split a first-row cell into (shift_code, period A text)."""
    if not text:
        return None, None
    head, _, rest = text.partition(" ")
    if head.upper() in _SHIFT_CODES:
        return head.upper(), _cell_text(rest)
    return None, text


def parse_schedule(content: bytes, department: Optional[str] = None, year: Optional[int] = None, month: Optional[int] = None) -> Dict:
    """Parse an exported-layout workbook into a preview; nothing is written."""
    try:
        wb = openpyxl.load_workbook(io.BytesIO(content), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError):
        raise HTTPException(status_code=400, detail="請上傳 Excel 檔案")
    ws = wb.active

    for code, label in DEPARTMENT_LABELS.items():
        if label in (ws.title or ""):
            department = code
            break

    m = _TITLE_PERIOD_RE.search(ws.title or "")
    if m:
        year, month = int(m.group(1)), int(m.group(2))
    if not year or not month or not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="無法判斷排班年月")

    day_columns = {}
    for col in range(2, ws.max_column + 1):
        value = ws.cell(row=2, column=col).value
        try:
            day = int(value)
        except (TypeError, ValueError):
            continue
        if 1 <= day <= calendar.monthrange(year, month)[1]:
            day_columns[col] = day

    parsed: List[Dict] = []
    names = []
    row = FIRST_DATA_ROW
    while row <= ws.max_row:
        name = _cell_text(ws.cell(row=row, column=1).value)
        if not name:
            row += 1
            continue
        if name not in names:
            names.append(name)
        for col, day in day_columns.items():
            cells = [_cell_text(ws.cell(row=row + i, column=col).value) for i in range(3)]
            code, first = _split_shift_code(cells[0])
            if code in NON_WORKING_SHIFT_CODES:
                entry = {"shift_code": code, "period_a": None, "period_b": None, "period_c": None}
            else:
                entry = {
                    "shift_code": code,
                    "period_a": _activity(first),
                    "period_b": _activity(cells[1]),
                    "period_c": _activity(cells[2]),
                }
                if not code and not any(entry[p] for p in PERIODS):
                    continue
            parsed.append({"user_name": name, "date": date(year, month, day), **entry})
        row += 3

    return {
        "department": department,
        "year": year,
        "month": month,
        "parsed_entries": parsed,
        "total_entries": len(parsed),
        "unique_names": names,
    }
