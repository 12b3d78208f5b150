from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class TaskType(str, Enum):
    GENERATE_FEEDBACK = "generate_feedback"
    SURFACE_HIGHLIGHTS = "surface_highlights"
    POST_GRADES = "post_grades"
    ANALYZE_TRENDS = "analyze_trends"
    GENERATE_ALL_FEEDBACK = "generate_all_feedback"
    CUSTOM = "custom"


def task_value(task: "TaskType | str") -> str:
    return task.value if isinstance(task, TaskType) else str(task)


class StyleRules(BaseModel):
    """
    Teacher feedback preferences distilled from AI-draft / teacher-edit pairs.
    """
    softens_criticism: bool = False
    adds_encouragement: bool = False
    prefers_shorter: bool = False
    includes_next_steps: bool = False
    uses_student_name: bool = False
    references_rubric: bool = False
    tone_notes: str = ""
    structure_notes: str = ""


class ExamplePair(BaseModel):
    original: str
    edited: str


class SessionContext(BaseModel):
    """
    Snapshot of the teacher's grading session.

    Every field is optional; the briefing renders placeholders for what is
    missing.
    """
    course_id: Optional[int] = None
    course_name: Optional[str] = None
    assignment_id: Optional[int] = None
    assignment_name: Optional[str] = None
    student_id: Optional[int] = None
    student_name: Optional[str] = None
    graded_count: int = 0
    total_count: int = 0
    grades: Dict[str, str] = Field(default_factory=dict)
    teacher_notes: Optional[str] = None
    submission_text: Optional[str] = None
    rubric_criteria: Optional[str] = None
    style_rules: Optional[StyleRules] = None
    examples: List[ExamplePair] = Field(default_factory=list)
