"""
Grade-sheet workbooks: the blank template teachers fill in, the parser that
reads it back, and the formatted export of a class's grades.

Layout shared by all three:

    row 1   title (merged across all columns)
    row 2   blank
    row 3   headers: No. | Student Code | Full Name | Regular 1..N | period columns
    row 4+  one row per student
"""

from dataclasses import dataclass, field
from io import BytesIO
from typing import Optional

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from schoolhub.utils.grades import (
    DEFAULT_REGULAR_GRADE_COUNT,
    grade_distribution,
    overall_average,
    period_average,
    validate_grade_value,
)

SHEET_TITLE = "Grades"
TITLE_ROW = 1
HEADER_ROW = 3
FIRST_DATA_ROW = 4
FIXED_COLUMNS = ["No.", "Student Code", "Full Name"]

PERIOD_LABELS = {
    "midterm_1": "Midterm, Semester 1",
    "final_1": "Final, Semester 1",
    "semester_1_summary": "Semester 1 Summary",
    "midterm_2": "Midterm, Semester 2",
    "final_2": "Final, Semester 2",
    "semester_2_summary": "Semester 2 Summary",
    "yearly_summary": "Yearly Summary",
}
PERIOD_TYPES = list(PERIOD_LABELS)

# (row attribute, header) pairs following the regular-grade columns
_SUMMARY_COLUMNS = [("midterm_grade", "Midterm"), ("final_grade", "Final"), ("summary_grade", "Semester Average")]
PERIOD_COLUMNS = {
    "midterm_1": [("midterm_grade", "Midterm")],
    "midterm_2": [("midterm_grade", "Midterm")],
    "final_1": [("final_grade", "Final")],
    "final_2": [("final_grade", "Final")],
    "semester_1_summary": _SUMMARY_COLUMNS,
    "semester_2_summary": _SUMMARY_COLUMNS,
    "yearly_summary": [
        ("semester_1_grade", "Semester 1"),
        ("semester_2_grade", "Semester 2"),
        ("yearly_grade", "Yearly Average"),
    ],
}

# Row attribute -> component_type stored in student_detailed_grades
COMPONENT_TYPES = {
    "midterm_grade": "midterm",
    "final_grade": "final",
    "summary_grade": "summary",
    "semester_1_grade": "semester_1",
    "semester_2_grade": "semester_2",
    "yearly_grade": "yearly",
}

HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")
TITLE_FONT = Font(bold=True, size=14)
COLUMN_WIDTHS = {"No.": 6, "Student Code": 16, "Full Name": 30}
GRADE_COLUMN_WIDTH = 12

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class GradeSheetError(ValueError):
    """The uploaded workbook cannot be read as a grade sheet at all."""


@dataclass
class TemplateConfig:
    period_type: str
    subject_name: str
    class_name: str
    students: list[dict] = field(default_factory=list)
    regular_grade_count: int = DEFAULT_REGULAR_GRADE_COUNT


@dataclass
class ParsedGradeRow:
    row_number: int
    student_id: str
    student_code: str
    full_name: str
    regular_grades: list[Optional[float]] = field(default_factory=list)
    midterm_grade: Optional[float] = None
    final_grade: Optional[float] = None
    summary_grade: Optional[float] = None
    semester_1_grade: Optional[float] = None
    semester_2_grade: Optional[float] = None
    yearly_grade: Optional[float] = None

    def components(self) -> list[tuple[str, float]]:
        """(component_type, value) for every grade present on the row."""
        found = [
            (f"regular_{index}", value)
            for index, value in enumerate(self.regular_grades, start=1)
            if value is not None
        ]
        for attr, component in COMPONENT_TYPES.items():
            value = getattr(self, attr)
            if value is not None:
                found.append((component, value))
        return found


@dataclass
class RowError:
    row_number: int
    student: str
    messages: list[str]

    def as_dict(self) -> dict:
        return {"row": self.row_number, "student": self.student, "errors": self.messages}


@dataclass
class GradeSheetResult:
    rows: list[ParsedGradeRow]
    errors: list[RowError]
    total_rows: int


def period_label(period_type: str) -> str:
    return PERIOD_LABELS.get(period_type, period_type)


def grade_headers(period_type: str, regular_count: int) -> list[str]:
    headers = list(FIXED_COLUMNS)
    headers += [f"Regular {i}" for i in range(1, regular_count + 1)]
    headers += [header for _, header in _period_columns(period_type)]
    return headers


def _period_columns(period_type: str) -> list[tuple[str, str]]:
    try:
        return PERIOD_COLUMNS[period_type]
    except KeyError:
        raise GradeSheetError(f"Unknown grade period type '{period_type}'") from None


def _write_header_block(ws, title: str, headers: list[str]) -> None:
    ws.merge_cells(start_row=TITLE_ROW, start_column=1, end_row=TITLE_ROW, end_column=len(headers))
    title_cell = ws.cell(row=TITLE_ROW, column=1, value=title)
    title_cell.font = TITLE_FONT
    title_cell.alignment = Alignment(horizontal="center")

    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=HEADER_ROW, column=col, value=header)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        ws.column_dimensions[get_column_letter(col)].width = COLUMN_WIDTHS.get(header, GRADE_COLUMN_WIDTH)

    ws.freeze_panes = ws.cell(row=FIRST_DATA_ROW, column=len(FIXED_COLUMNS) + 1)


def _to_bytes(wb: Workbook) -> bytes:
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _sheet_title(period_type: str, subject_name: str, class_name: str) -> str:
    return f"{period_label(period_type)} - {subject_name} - Class {class_name}"


# ═══════════════════════════════════════════════════════════════
# TEMPLATE
# ═══════════════════════════════════════════════════════════════

def build_template(config: TemplateConfig) -> bytes:
    headers = grade_headers(config.period_type, config.regular_grade_count)

    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE
    _write_header_block(ws, _sheet_title(config.period_type, config.subject_name, config.class_name), headers)

    for offset, student in enumerate(config.students):
        row = FIRST_DATA_ROW + offset
        ws.cell(row=row, column=1, value=offset + 1)
        ws.cell(row=row, column=2, value=student.get("student_code") or "")
        ws.cell(row=row, column=3, value=student.get("full_name") or "")

    return _to_bytes(wb)


# ═══════════════════════════════════════════════════════════════
# PARSING
# ═══════════════════════════════════════════════════════════════

def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # Numeric student codes come back from Excel as floats
        value = int(value)
    return str(value).strip()


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _read_grade(value, column: str, messages: list[str]) -> Optional[float]:
    if _is_blank(value):
        return None
    grade, errors = validate_grade_value(value)
    messages.extend(f"{column}: {err}" for err in errors)
    return grade


def parse_grade_sheet(
    content: bytes,
    period_type: str,
    regular_count: int,
    expected_students: list[dict],
) -> GradeSheetResult:
    """
    Read a filled-in template in a single pass over the data rows.

    `expected_students` are the class roster dicts (student_id, student_code,
    full_name). Rows that fail to match a student or carry an invalid grade are
    reported in `errors` and left out of `rows`.
    """
    columns = _period_columns(period_type)

    try:
        wb = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except Exception as e:  # openpyxl raises several unrelated types for corrupt files
        raise GradeSheetError(f"Cannot open the uploaded workbook: {e}") from e

    if not wb.worksheets:
        raise GradeSheetError("The workbook has no worksheet")

    sheet_rows = list(wb.worksheets[0].iter_rows(values_only=True))
    wb.close()
    if len(sheet_rows) < FIRST_DATA_ROW - 1:
        raise GradeSheetError("Invalid grade sheet format: header rows are missing")

    by_code = {
        str(s.get("student_code") or "").strip().lower(): s
        for s in expected_students if s.get("student_code")
    }
    by_name = {
        str(s.get("full_name") or "").strip().lower(): s
        for s in expected_students if s.get("full_name")
    }

    width = len(FIXED_COLUMNS) + regular_count + len(columns)
    rows: list[ParsedGradeRow] = []
    errors: list[RowError] = []
    seen: set[str] = set()
    total_rows = 0

    for offset, raw in enumerate(sheet_rows[FIRST_DATA_ROW - 1:]):
        row_number = FIRST_DATA_ROW + offset
        cells = list(raw or ()) + [None] * width
        code = _cell_text(cells[1])
        name = _cell_text(cells[2])
        if not code and not name:
            continue

        total_rows += 1
        label = code or name
        student = by_code.get(code.lower()) if code else None
        if student is None and name:
            student = by_name.get(name.lower())
        if student is None:
            errors.append(RowError(row_number, label, [f"Student '{label}' is not in this class"]))
            continue
        if student["student_id"] in seen:
            errors.append(RowError(row_number, label, ["Student appears more than once in the sheet"]))
            continue
        # A student's first row claims them even when it is rejected
        seen.add(student["student_id"])

        messages: list[str] = []
        parsed = ParsedGradeRow(
            row_number=row_number,
            student_id=student["student_id"],
            student_code=student.get("student_code") or code,
            full_name=student.get("full_name") or name,
        )
        for i in range(regular_count):
            parsed.regular_grades.append(
                _read_grade(cells[len(FIXED_COLUMNS) + i], f"Regular {i + 1}", messages)
            )
        for position, (attr, header) in enumerate(columns):
            value = _read_grade(cells[len(FIXED_COLUMNS) + regular_count + position], header, messages)
            setattr(parsed, attr, value)

        if messages:
            errors.append(RowError(row_number, label, messages))
            continue
        rows.append(parsed)

    return GradeSheetResult(rows=rows, errors=errors, total_rows=total_rows)


# ═══════════════════════════════════════════════════════════════
# EXPORT
# ═══════════════════════════════════════════════════════════════

def build_grade_export(meta: TemplateConfig, students: list[dict]) -> bytes:
    """
    `students` carry student_code, full_name and the grade components
    (regular_grades, midterm_grade, final_grade, summary_grade, ...).
    An Average column and a class statistics block are appended.
    """
    columns = _period_columns(meta.period_type)
    headers = grade_headers(meta.period_type, meta.regular_grade_count) + ["Average"]

    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE
    _write_header_block(ws, _sheet_title(meta.period_type, meta.subject_name, meta.class_name), headers)

    averages = []
    row = FIRST_DATA_ROW
    for index, student in enumerate(students, 1):
        regular = list(student.get("regular_grades") or [])
        regular += [None] * (meta.regular_grade_count - len(regular))
        average = period_average(meta.period_type, student)
        averages.append(average)

        values = [index, student.get("student_code") or "", student.get("full_name") or ""]
        values += regular[:meta.regular_grade_count]
        values += [student.get(attr) for attr, _ in columns]
        values.append(average)

        for col, value in enumerate(values, 1):
            cell = ws.cell(row=row, column=col, value=value)
            if col > len(FIXED_COLUMNS) and isinstance(value, (int, float)):
                cell.number_format = "0.0"
                cell.alignment = Alignment(horizontal="center")
        row += 1

    # Class statistics
    row += 1
    ws.cell(row=row, column=3, value="Class average").font = Font(bold=True)
    ws.cell(row=row, column=4, value=overall_average(averages))
    for band, count in grade_distribution(averages).items():
        row += 1
        ws.cell(row=row, column=3, value=band.capitalize())
        ws.cell(row=row, column=4, value=count)

    return _to_bytes(wb)
