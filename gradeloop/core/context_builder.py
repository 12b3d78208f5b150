import json
from typing import Optional

from gradeloop.config import AppConfig
from gradeloop.core.prompt_loader import has_prompt, load_prompt
from gradeloop.core.session_schemas import SessionContext, TaskType, task_value
from gradeloop.core.tool_catalog import tool_categories
from gradeloop.grading.competencies import competency_list, format_grades
from gradeloop.grading.style import build_style_instructions

EXAMPLE_LIMIT = 3
EXAMPLE_EXCERPT_CHARS = 200
GENERIC_TASK = TaskType.CUSTOM.value


def _labelled(name: Optional[str], ident: Optional[int]) -> str:
    label = name or "Not selected"
    if ident is not None:
        label += f" (ID: {ident})"
    return label


def _examples_section(session: SessionContext) -> str:
    if not session.examples:
        return ""
    blocks = []
    for i, ex in enumerate(session.examples[:EXAMPLE_LIMIT], start=1):
        blocks.append(
            f"### Example {i}\n"
            f"**AI Draft:** {ex.original[:EXAMPLE_EXCERPT_CHARS]}...\n"
            f"**Teacher Edited:** {ex.edited[:EXAMPLE_EXCERPT_CHARS]}..."
        )
    return "\n\n## Recent Feedback Examples (Teacher's Style)\n" + "\n\n".join(blocks)


def _tool_summary() -> str:
    lines = []
    for category, tools in tool_categories().items():
        names = ", ".join(t.name for t in tools)
        lines.append(f"{category.capitalize()}: {names}")
    return "\n".join(lines)


def render_session_context(session: SessionContext, config: AppConfig) -> str:
    style = build_style_instructions(session.style_rules) if session.style_rules else ""
    return load_prompt(
        "agent_context",
        school_name=config.school_name,
        teacher_name=config.teacher_name,
        teacher_role=config.teacher_role,
        style_section=f"\n{style}" if style else "",
        examples_section=_examples_section(session),
        course=_labelled(session.course_name, session.course_id),
        assignment=_labelled(session.assignment_name, session.assignment_id),
        student=_labelled(session.student_name, session.student_id),
        graded_count=session.graded_count,
        total_count=session.total_count,
        grades=format_grades(session.grades),
        teacher_notes=session.teacher_notes or "None provided",
        rubric_criteria=session.rubric_criteria or "None provided",
        competencies=competency_list(),
        tool_summary=_tool_summary(),
    )


def task_instructions(task: "TaskType | str") -> str:
    value = task_value(task)
    known = {t.value for t in TaskType}
    name = f"task_{value}" if value in known else f"task_{GENERIC_TASK}"
    if not has_prompt(name):
        name = f"task_{GENERIC_TASK}"
    return load_prompt(name)


def build_briefing(task: "TaskType | str", session: SessionContext, *, config: AppConfig) -> str:
    """
    System briefing for one loop invocation: persona, session snapshot, task steps.

    Pure function of its inputs; the loop builds it once and sends the same
    text on every turn.
    """
    persona = load_prompt("agent_system", school_name=config.school_name)
    return (
        persona
        + "\n\n"
        + render_session_context(session, config)
        + task_instructions(task)
    )


def context_snapshot(task: "TaskType | str", session: SessionContext) -> str:
    """Serialized view returned by the read_context tool."""
    return json.dumps(
        {
            "task": task_value(task),
            "context": session.model_dump(mode="json", exclude_none=True),
            "system_prompt": "Available in system message",
        },
        ensure_ascii=False,
    )


def build_user_message(
    task: "TaskType | str",
    session: SessionContext,
    *,
    prompt: Optional[str] = None,
    submission_content: Optional[str] = None,
) -> str:
    """Default request text per task when the caller gives no explicit prompt."""
    if prompt:
        return prompt

    task = task_value(task)

    if task in (TaskType.GENERATE_FEEDBACK.value, TaskType.GENERATE_ALL_FEEDBACK.value):
        notes = (
            f"Teacher's notes: {session.teacher_notes}"
            if session.teacher_notes
            else "No specific teacher notes provided."
        )
        submission = f"Submission content:\n{submission_content}\n" if submission_content else ""
        return (
            f"Generate feedback for {session.student_name or 'this student'}'s submission "
            f"on the assignment \"{session.assignment_name or 'this assignment'}\".\n\n"
            f"{notes}\n\n"
            f"Competency grades assigned: {json.dumps(session.grades, ensure_ascii=False)}\n\n"
            f"{submission}"
            "Note: If slide images are attached, analyze them visually to provide specific "
            "feedback on the student's work.\n\n"
            "Please generate encouraging but honest feedback referencing specific parts of "
            "the submission."
        )

    if task == TaskType.SURFACE_HIGHLIGHTS.value:
        return (
            f"Analyze the grading session for {session.course_name or 'this course'} and "
            "surface interesting highlights about student performance.\n\n"
            f"Students graded so far: {session.graded_count}\n\n"
            "Look for patterns, improvements, and notable achievements to share with the teacher."
        )

    if task == TaskType.POST_GRADES.value:
        return (
            "Post all completed grades and feedback to Canvas for "
            f"{session.assignment_name or 'this assignment'}.\n\n"
            f"Course ID: {session.course_id}\n"
            f"Assignment ID: {session.assignment_id}\n\n"
            "Proceed with posting each grade and its associated feedback."
        )

    if task == TaskType.ANALYZE_TRENDS.value:
        return (
            "Analyze competency trends across the class for the assignment "
            f"\"{session.assignment_name or 'this assignment'}\".\n\n"
            f"Course: {session.course_name or 'Unknown'}\n\n"
            "Identify class-wide patterns in the 9 TD competencies."
        )

    return "Please assist with the current grading task."
