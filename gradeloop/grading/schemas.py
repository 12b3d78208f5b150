from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field

Trend = Literal["new", "improving", "declining", "steady"]


class FeedbackDraft(BaseModel):
    summary: str = ""
    strengths: List[str] = Field(default_factory=list)
    growth_areas: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)
    formatted_feedback: str = ""


class FeedbackPair(BaseModel):
    """One AI draft and the version the teacher actually sent."""
    pair_id: str
    assignment_id: int
    student_id: int
    original_draft: str
    teacher_edited: str
    competency_grades: Dict[str, str] = Field(default_factory=dict)
    created_at: str


class GradeEntry(BaseModel):
    assignment_id: int
    grade: str
    date: str


class CompetencyStat(BaseModel):
    current_grade: Optional[str] = None
    history: List[GradeEntry] = Field(default_factory=list)
    trend: Trend = "new"


class StudentRecord(BaseModel):
    course_id: int
    user_id: int
    competencies: Dict[str, CompetencyStat] = Field(default_factory=dict)
    last_updated: str
