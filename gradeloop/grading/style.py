from typing import List, Optional

from gradeloop.core.prompt_loader import load_prompt
from gradeloop.core.session_schemas import StyleRules
from gradeloop.grading.schemas import FeedbackPair
from gradeloop.infra.logging import log_event

MIN_PAIRS_FOR_DISTILLATION = 5
MAX_PAIRS_FOR_DISTILLATION = 20
PAIR_EXCERPT_CHARS = 600


def build_style_instructions(rules: StyleRules) -> str:
    instructions: List[str] = []

    if rules.softens_criticism:
        instructions.append("- Use gentler language when discussing areas for improvement")
    if rules.adds_encouragement:
        instructions.append("- Include additional words of encouragement and recognition")
    if rules.prefers_shorter:
        instructions.append("- Keep feedback concise and to the point")
    if rules.includes_next_steps:
        instructions.append("- Always include specific, actionable next steps")
    if rules.uses_student_name:
        instructions.append("- Address the student by name throughout the feedback")
    if rules.references_rubric:
        instructions.append("- Reference specific rubric criteria when explaining grades")

    if rules.tone_notes:
        instructions.append(f"- Tone: {rules.tone_notes}")
    if rules.structure_notes:
        instructions.append(f"- Structure: {rules.structure_notes}")

    if not instructions:
        return ""
    return "## Teacher's Feedback Style Preferences\n" + "\n".join(instructions)


def _excerpt(text: str) -> str:
    if len(text) > PAIR_EXCERPT_CHARS:
        return text[:PAIR_EXCERPT_CHARS] + "..."
    return text


def _format_pairs(pairs: List[FeedbackPair]) -> str:
    blocks = []
    for i, pair in enumerate(pairs, start=1):
        blocks.append(
            f"### Pair {i}\n"
            f"**Original AI Draft:**\n{_excerpt(pair.original_draft)}\n\n"
            f"**Teacher's Edited Version:**\n{_excerpt(pair.teacher_edited)}\n"
        )
    return "\n".join(blocks)


def distill_preferences(client, pairs: List[FeedbackPair]) -> Optional[StyleRules]:
    """
    Ask the model which edits the teacher keeps making.

    Returns None when there are too few pairs to say anything, or when the
    model's answer cannot be validated.
    """
    if len(pairs) < MIN_PAIRS_FOR_DISTILLATION:
        return None

    recent = pairs[-MAX_PAIRS_FOR_DISTILLATION:]
    prompt = load_prompt("style_distill", pairs=_format_pairs(recent))

    try:
        return client.generate_structured(prompt, StyleRules)
    except RuntimeError as e:
        log_event("style_distill_failed", error=f"{type(e).__name__}: {e}", pairs=len(recent))
        return None
