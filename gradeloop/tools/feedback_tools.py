import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from gradeloop.core.llm_output import (
    LLMInvalidJSON,
    LLMSchemaViolation,
    extract_json_object,
    parse_and_validate,
)
from gradeloop.core.prompt_loader import load_prompt
from gradeloop.core.tool_router import ToolRegistry
from gradeloop.grading.competencies import build_rubric_context
from gradeloop.grading.schemas import FeedbackDraft, FeedbackPair
from gradeloop.grading.style import (
    MIN_PAIRS_FOR_DISTILLATION,
    build_style_instructions,
    distill_preferences,
)
from gradeloop.infra.ids import new_pair_id
from gradeloop.infra.logging import log_event
from gradeloop.infra.storage import GradeStore

SUBMISSION_PROMPT_CHARS = 8000
STYLE_EXAMPLE_PAIRS = 3
STYLE_EXAMPLE_CHARS = 200


class BadGradesJSON(ValueError):
    pass


def parse_grades(raw: Optional[str]) -> Dict[str, str]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise BadGradesJSON(f"competency_grades is not valid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise BadGradesJSON("competency_grades must be a JSON object")
    return {str(k): str(v) for k, v in data.items()}


def feedback_from_text(text: str, *, fallback_summary: str) -> FeedbackDraft:
    """
    Model text -> FeedbackDraft. Without any JSON object the whole reply is
    taken as the formatted feedback.
    """
    if extract_json_object(text) is None:
        return FeedbackDraft(summary=fallback_summary, formatted_feedback=text)
    try:
        return parse_and_validate(text, FeedbackDraft)
    except (LLMInvalidJSON, LLMSchemaViolation) as e:
        log_event("feedback_parse_fallback", error_type=type(e).__name__)
        return FeedbackDraft(summary=fallback_summary, formatted_feedback=text)


def _style_examples(pairs: List[FeedbackPair]) -> str:
    if not pairs:
        return ""
    examples = "\n\n".join(
        f"Original: {p.original_draft[:STYLE_EXAMPLE_CHARS]}...\n"
        f"Teacher edited to: {p.teacher_edited[:STYLE_EXAMPLE_CHARS]}..."
        for p in pairs
    )
    return f"\n## Teacher's Preferred Style (from recent edits)\n{examples}\n"


def register_feedback_tools(
    registry: ToolRegistry,
    client,
    store: GradeStore,
    *,
    school_name: str,
) -> None:
    def draft_feedback(
        submission_text: str,
        competency_grades: str,
        student_name: str,
        teacher_notes: Optional[str] = None,
        rubric_criteria: Optional[str] = None,
        assignment_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            grades = parse_grades(competency_grades)
        except BadGradesJSON as e:
            return {"success": False, "error": str(e)}

        prompt = load_prompt(
            "feedback_draft",
            school_name=school_name,
            student_name=student_name,
            assignment_name=assignment_name or "Unknown",
            rubric_context=build_rubric_context(grades),
            teacher_notes=teacher_notes or "No specific notes provided.",
            rubric_criteria=rubric_criteria or "Use the TD competency descriptors above as the rubric.",
            submission_text=submission_text[:SUBMISSION_PROMPT_CHARS],
            style_examples=_style_examples(store.list_feedback_pairs(limit=STYLE_EXAMPLE_PAIRS)),
        )
        draft = feedback_from_text(client.generate(prompt), fallback_summary="Feedback generated")
        return {"success": True, "feedback": draft.model_dump()}

    def revise_feedback(current_draft: str, revision_instructions: str) -> Dict[str, Any]:
        prompt = load_prompt(
            "feedback_revise",
            current_draft=current_draft,
            revision_instructions=revision_instructions,
        )
        draft = feedback_from_text(client.generate(prompt), fallback_summary="Revised feedback")
        return {"success": True, "feedback": draft.model_dump()}

    def save_feedback_pair(
        assignment_id: int,
        student_id: int,
        original_draft: str,
        teacher_edited: str,
        competency_grades: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            grades = parse_grades(competency_grades)
        except BadGradesJSON as e:
            return {"success": False, "error": str(e)}

        pair = FeedbackPair(
            pair_id=new_pair_id(),
            assignment_id=assignment_id,
            student_id=student_id,
            original_draft=original_draft,
            teacher_edited=teacher_edited,
            competency_grades=grades,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        total = store.add_feedback_pair(pair)
        return {"success": True, "pair_id": pair.pair_id, "total_pairs": total}

    def read_preferences() -> Dict[str, Any]:
        pairs = store.list_feedback_pairs()
        stored = store.get_style_rules()

        if len(pairs) < MIN_PAIRS_FOR_DISTILLATION and stored is None:
            return {
                "success": True,
                "found": False,
                "pair_count": len(pairs),
                "message": (
                    f"Need at least {MIN_PAIRS_FOR_DISTILLATION} saved feedback pairs "
                    "to learn the teacher's style"
                ),
            }

        rules = stored["rules"] if stored else None
        if stored is None or stored["pair_count"] != len(pairs):
            fresh = distill_preferences(client, pairs)
            if fresh is not None:
                store.save_style_rules(fresh, len(pairs))
                rules = fresh

        if rules is None:
            return {"success": False, "error": "Could not distill style preferences"}

        return {
            "success": True,
            "found": True,
            "pair_count": len(pairs),
            "rules": rules.model_dump(),
            "style_instructions": build_style_instructions(rules),
        }

    registry.register("draft_feedback", draft_feedback)
    registry.register("revise_feedback", revise_feedback)
    registry.register("save_feedback_pair", save_feedback_pair)
    registry.register("read_preferences", read_preferences)
