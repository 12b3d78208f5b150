"""
Static catalog of every tool the model may request.

Handlers live in gradeloop.tools; the registry is checked against this list
at startup.
"""

from typing import Dict, List, Optional

from gradeloop.core.tool_schemas import FieldSpec, InputShape, ToolDeclaration
from gradeloop.grading.competencies import COMPETENCY_IDS, GRADES

COMPLETE_TASK = "complete_task"
READ_CONTEXT = "read_context"


def _field(
    type_: str,
    description: str,
    *,
    required: bool = False,
    enum: Optional[List[str]] = None,
) -> FieldSpec:
    return FieldSpec(type=type_, description=description, required=required, enum=enum)


def _shape(**fields: FieldSpec) -> InputShape:
    return InputShape(fields=fields)


# ----------------------------
# Canvas (LMS)
# ----------------------------

CANVAS_TOOLS: List[ToolDeclaration] = [
    ToolDeclaration(
        name="fetch_courses",
        description=(
            "Fetches all Canvas courses where the user has a teacher enrollment. "
            "Returns course names, IDs, student counts, and term information."
        ),
    ),
    ToolDeclaration(
        name="fetch_assignments",
        description=(
            "Fetches all assignments for a specific course. Returns assignment names, "
            "due dates, points possible, submission summaries, and rubric data."
        ),
        input_shape=_shape(
            course_id=_field("integer", "The Canvas course ID", required=True),
        ),
    ),
    ToolDeclaration(
        name="fetch_submissions",
        description=(
            "Fetches all student submissions for a specific assignment. Returns submission "
            "content, attachments, user info, existing grades, and comments."
        ),
        input_shape=_shape(
            course_id=_field("integer", "The Canvas course ID", required=True),
            assignment_id=_field("integer", "The Canvas assignment ID", required=True),
        ),
    ),
    ToolDeclaration(
        name="post_grade",
        description="Posts a grade to a student submission in Canvas.",
        input_shape=_shape(
            course_id=_field("integer", "The Canvas course ID", required=True),
            assignment_id=_field("integer", "The Canvas assignment ID", required=True),
            user_id=_field("integer", "The Canvas user ID of the student", required=True),
            grade=_field(
                "string",
                'The grade to post (e.g., "A", "B+", "85", "pass")',
                required=True,
            ),
        ),
    ),
    ToolDeclaration(
        name="post_comment",
        description=(
            "Posts a text comment on a student submission in Canvas. "
            "Use this to provide feedback to the student."
        ),
        input_shape=_shape(
            course_id=_field("integer", "The Canvas course ID", required=True),
            assignment_id=_field("integer", "The Canvas assignment ID", required=True),
            user_id=_field("integer", "The Canvas user ID of the student", required=True),
            comment_text=_field("string", "The feedback comment to post", required=True),
        ),
    ),
]

# ----------------------------
# Content
# ----------------------------

CONTENT_TOOLS: List[ToolDeclaration] = [
    ToolDeclaration(
        name="read_submission",
        description=(
            "Extracts readable text content from a Canvas submission. Handles text "
            "entries, file attachments (PDF, DOCX), and URL submissions."
        ),
        input_shape=_shape(
            submission_id=_field("integer", "The Canvas submission ID", required=True),
            submission_type=_field(
                "string",
                "Type of submission: text, url, or file",
                required=True,
                enum=["text", "url", "file"],
            ),
            body=_field("string", "For text submissions, the HTML body content"),
            url=_field("string", "For URL submissions, the submitted URL"),
            file_url=_field("string", "For file submissions, the file download URL"),
            content_type=_field("string", "For file submissions, the MIME type of the file"),
        ),
    ),
    ToolDeclaration(
        name="parse_file",
        description=(
            "Parses a file attachment and extracts text content. "
            "Supports PDF, DOCX, and plain text files."
        ),
        input_shape=_shape(
            file_url=_field("string", "The URL to download the file from", required=True),
            content_type=_field(
                "string",
                "The MIME type of the file (e.g., application/pdf)",
                required=True,
            ),
        ),
    ),
    ToolDeclaration(
        name="parse_url",
        description=(
            "Extracts text content from a URL submission. "
            "Handles Google Docs links and generic web pages."
        ),
        input_shape=_shape(
            url=_field("string", "The URL to fetch and parse", required=True),
        ),
    ),
]

# ----------------------------
# Feedback
# ----------------------------

FEEDBACK_TOOLS: List[ToolDeclaration] = [
    ToolDeclaration(
        name="draft_feedback",
        description=(
            "Generates initial feedback for a student submission based on teacher notes, "
            "the submission content, rubric criteria, and competency grades. Returns "
            "structured feedback with summary, strengths, growth areas, and next steps."
        ),
        input_shape=_shape(
            teacher_notes=_field("string", "Raw notes from the teacher about the submission"),
            submission_text=_field(
                "string",
                "The extracted text content of the student submission",
                required=True,
            ),
            competency_grades=_field(
                "string",
                'JSON string mapping competency IDs to letter grades (e.g., {"collaboration": "A"})',
                required=True,
            ),
            rubric_criteria=_field("string", "The rubric criteria and descriptors for this assignment"),
            student_name=_field("string", "The name of the student", required=True),
            assignment_name=_field("string", "The name of the assignment"),
        ),
    ),
    ToolDeclaration(
        name="revise_feedback",
        description="Takes an existing feedback draft and revision instructions, returns an improved version.",
        input_shape=_shape(
            current_draft=_field("string", "The current feedback draft to revise", required=True),
            revision_instructions=_field(
                "string",
                'How to revise the feedback (e.g., "make it shorter", "be more encouraging")',
                required=True,
            ),
        ),
    ),
    ToolDeclaration(
        name="save_feedback_pair",
        description="Saves a before/after pair of AI-generated and teacher-edited feedback for learning purposes.",
        input_shape=_shape(
            assignment_id=_field("integer", "The Canvas assignment ID", required=True),
            student_id=_field("integer", "The Canvas student user ID", required=True),
            original_draft=_field("string", "The original AI-generated feedback", required=True),
            teacher_edited=_field("string", "The teacher-edited version of the feedback", required=True),
            competency_grades=_field("string", "JSON string of competency grades used"),
        ),
    ),
    ToolDeclaration(
        name="read_preferences",
        description=(
            "Reads the teacher's feedback style preferences distilled from saved "
            "AI-draft / teacher-edit pairs."
        ),
    ),
]

# ----------------------------
# Student history
# ----------------------------

STUDENT_TOOLS: List[ToolDeclaration] = [
    ToolDeclaration(
        name="read_student_history",
        description=(
            "Fetches a student's grading history across assignments in a course. Returns "
            "per-competency grade history with dates and trend direction."
        ),
        input_shape=_shape(
            course_id=_field("integer", "The Canvas course ID", required=True),
            user_id=_field("integer", "The Canvas user ID of the student", required=True),
        ),
    ),
    ToolDeclaration(
        name="score_competency",
        description=(
            "Records the teacher's grade for one competency on the current submission. "
            "This updates the stored student history."
        ),
        input_shape=_shape(
            course_id=_field("integer", "The Canvas course ID", required=True),
            user_id=_field("integer", "The Canvas user ID of the student", required=True),
            assignment_id=_field("integer", "The Canvas assignment ID", required=True),
            competency_id=_field(
                "string",
                'The competency ID (e.g., "collaboration", "communication")',
                required=True,
                enum=COMPETENCY_IDS,
            ),
            grade=_field(
                "string",
                "The letter grade (A+, A, B, C, D, F)",
                required=True,
                enum=GRADES,
            ),
        ),
    ),
]

# ----------------------------
# Loop state
# ----------------------------

STATE_TOOLS: List[ToolDeclaration] = [
    ToolDeclaration(
        name=READ_CONTEXT,
        description=(
            "Reads the current agent context including session state, "
            "teacher preferences, and available data."
        ),
    ),
    ToolDeclaration(
        name=COMPLETE_TASK,
        description=(
            "Signals that the agent has completed its current task. "
            "Call this when done with the assigned work."
        ),
        input_shape=_shape(
            success=_field(
                "string",
                "Whether the task was completed successfully (true/false)",
                required=True,
                enum=["true", "false"],
            ),
            notes=_field("string", "Optional notes about the completion status"),
        ),
    ),
]

ALL_TOOLS: List[ToolDeclaration] = [
    *CANVAS_TOOLS,
    *CONTENT_TOOLS,
    *FEEDBACK_TOOLS,
    *STUDENT_TOOLS,
    *STATE_TOOLS,
]


def tool_categories() -> Dict[str, List[ToolDeclaration]]:
    return {
        "canvas": CANVAS_TOOLS,
        "content": CONTENT_TOOLS,
        "feedback": FEEDBACK_TOOLS,
        "student": STUDENT_TOOLS,
        "state": STATE_TOOLS,
    }


def get_tool(name: str) -> Optional[ToolDeclaration]:
    return next((t for t in ALL_TOOLS if t.name == name), None)
