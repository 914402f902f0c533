"""
Grade arithmetic.

Subject average for a semester:

    average = (sum(regular) + 2 * midterm + 3 * final) / (len(regular) + 5)

rounded to one decimal. Regular (continuous-assessment) grades that were not
entered are ignored; without both the midterm and the final grade there is no
average.

Yearly average, when no yearly grade was entered:

    yearly = (semester_1 + 2 * semester_2) / 3
"""

from typing import Iterable, Optional

MIN_GRADE = 0.0
MAX_GRADE = 10.0

MIDTERM_WEIGHT = 2
FINAL_WEIGHT = 3
SEMESTER_2_WEIGHT = 2

DEFAULT_REGULAR_GRADE_COUNT = 3

# Number of continuous-assessment columns per subject code
REGULAR_GRADE_COUNTS: dict[str, int] = {
    "VAN": 4,
    "TOAN": 4,
    "ANH": 4,
    "SU": 3,
    "DIA": 3,
    "LY": 3,
    "HOA": 3,
    "SINH": 3,
    "CN": 3,
    "TIN": 3,
    "GDKT": 3,
    "GDTC": 2,
    "GDQP": 2,
    "NHAC": 2,
    "MT": 2,
    "HDTN": 2,
    "GDDP": 2,
}

# Lower bounds, checked top-down
GRADE_BANDS = [
    ("excellent", 8.0),
    ("good", 6.5),
    ("average", 5.0),
    ("poor", MIN_GRADE),
]


def regular_grade_count(subject_code: str | None) -> int:
    return REGULAR_GRADE_COUNTS.get((subject_code or "").upper(), DEFAULT_REGULAR_GRADE_COUNT)


def round_grade(value: float) -> float:
    # Half-up at one decimal; round() alone would bank 8.25 down to 8.2
    return float(int(value * 10 + 0.5 + 1e-9)) / 10 if value >= 0 else round(value, 1)


def subject_average(
    regular: Iterable[Optional[float]],
    midterm: Optional[float],
    final: Optional[float],
) -> Optional[float]:
    if midterm is None or final is None:
        return None

    entered = [g for g in regular if g is not None]
    total = sum(entered) + MIDTERM_WEIGHT * midterm + FINAL_WEIGHT * final
    weight = len(entered) + MIDTERM_WEIGHT + FINAL_WEIGHT
    return round_grade(total / weight)


def resolve_subject_average(components: dict) -> Optional[float]:
    """A stored summary grade wins over the computed one."""
    summary = components.get("summary_grade")
    if summary is not None:
        return round_grade(summary)
    return subject_average(
        components.get("regular_grades") or [],
        components.get("midterm_grade"),
        components.get("final_grade"),
    )


def yearly_average(
    semester_1: Optional[float],
    semester_2: Optional[float],
    yearly: Optional[float] = None,
) -> Optional[float]:
    """A stored yearly grade wins; otherwise semester 2 counts twice."""
    if yearly is not None:
        return round_grade(yearly)
    if semester_1 is None or semester_2 is None:
        return None
    return round_grade((semester_1 + SEMESTER_2_WEIGHT * semester_2) / (1 + SEMESTER_2_WEIGHT))


def period_average(period_type: str, components: dict) -> Optional[float]:
    if period_type == "yearly_summary":
        return yearly_average(
            components.get("semester_1_grade"),
            components.get("semester_2_grade"),
            components.get("yearly_grade"),
        )
    return resolve_subject_average(components)


def overall_average(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return round_grade(sum(present) / len(present))


def classify(average: float) -> str:
    for band, lower in GRADE_BANDS:
        if average >= lower:
            return band
    return "poor"


def grade_distribution(values: Iterable[Optional[float]]) -> dict[str, int]:
    counts = {band: 0 for band, _ in GRADE_BANDS}
    for value in values:
        if value is not None:
            counts[classify(value)] += 1
    return counts


def validate_grade_value(raw) -> tuple[Optional[float], list[str]]:
    """
    Normalise a grade typed by a person or read from a spreadsheet cell.
    Returns (value, errors); value is None whenever errors is non-empty.
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None, ["Grade is required"]

    if isinstance(raw, bool):
        return None, ["Grade must be a number"]

    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        cleaned = raw.strip().replace(",", ".")
        try:
            value = float(cleaned)
        except ValueError:
            return None, ["Grade may only contain digits and a decimal separator"]
    else:
        return None, ["Grade must be a number"]

    if value != value:  # NaN
        return None, ["Grade is not a valid number"]
    if value < MIN_GRADE or value > MAX_GRADE:
        return None, [f"Grade must be between {MIN_GRADE:g} and {MAX_GRADE:g}"]

    return round_grade(value), []
