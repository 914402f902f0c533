"""
Pydantic schemas for classes and student class assignments.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

# Elective combination type -> variant -> subjects taught together
SUBJECT_COMBINATIONS = {
    "natural-sciences": {
        "name": "Natural Sciences",
        "variants": {
            "physics-chemistry-biology-informatics": ["physics", "chemistry", "biology", "informatics"],
            "physics-chemistry-biology-technology": ["physics", "chemistry", "biology", "technology"],
        },
    },
    "social-sciences": {
        "name": "Social Sciences",
        "variants": {
            "geography-civics-physics-technology": ["geography", "civic_education", "physics", "technology"],
            "geography-civics": ["geography", "civic_education"],
        },
    },
}


def combination_name(combination_type: str, variant: str) -> Optional[str]:
    combo = SUBJECT_COMBINATIONS.get(combination_type)
    if not combo or variant not in combo["variants"]:
        return None
    subjects = ", ".join(s.replace("_", " ").title() for s in combo["variants"][variant])
    return f"{combo['name']} ({subjects})"


def validate_combination(is_combination, combination_type, variant) -> None:
    if not is_combination:
        return
    if not combination_type or not variant:
        raise ValueError("Combination classes require both a combination type and a variant")
    if combination_type not in SUBJECT_COMBINATIONS:
        raise ValueError(f"Unknown subject combination type '{combination_type}'")
    if variant not in SUBJECT_COMBINATIONS[combination_type]["variants"]:
        raise ValueError(f"Variant '{variant}' does not belong to '{combination_type}'")


class ClassCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    academic_year_id: str
    semester_id: str
    homeroom_teacher_id: Optional[str] = None
    max_students: int = Field(default=40, ge=1, le=100)
    is_subject_combination: bool = False
    subject_combination_type: Optional[str] = None
    subject_combination_variant: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def check_combination(self):
        validate_combination(
            self.is_subject_combination, self.subject_combination_type, self.subject_combination_variant,
        )
        if not self.is_subject_combination:
            self.subject_combination_type = None
            self.subject_combination_variant = None
        return self


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    homeroom_teacher_id: Optional[str] = None
    max_students: Optional[int] = Field(default=None, ge=1, le=100)
    is_subject_combination: Optional[bool] = None
    subject_combination_type: Optional[str] = None
    subject_combination_variant: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def check_combination(self):
        validate_combination(
            self.is_subject_combination, self.subject_combination_type, self.subject_combination_variant,
        )
        return self


class ClassAssignmentCreate(BaseModel):
    student_id: str
    class_id: str
    assignment_type: Literal["main", "combined"] = "main"
