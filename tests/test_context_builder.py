import json

from gradeloop.core.context_builder import (
    build_briefing,
    build_user_message,
    context_snapshot,
    render_session_context,
    task_instructions,
)
from gradeloop.core.session_schemas import ExamplePair, SessionContext, StyleRules, TaskType


class TestBriefing:
    def test_empty_session_renders_placeholders(self, config):
        text = build_briefing(TaskType.GENERATE_FEEDBACK, SessionContext(), config=config)

        assert "Franklin School" in text
        assert "Course: Not selected" in text
        assert "Student: Not selected" in text
        assert "Competency grades so far: None" in text
        assert "Teacher's voice notes: None provided" in text
        assert "Your Task: Generate Feedback" in text

    def test_selected_fields_and_grades(self, config):
        session = SessionContext(
            course_id=12,
            course_name="Design 7",
            student_id=99,
            student_name="Ana",
            graded_count=3,
            total_count=20,
            grades={"collaboration": "A", "mystery": "B"},
        )
        text = render_session_context(session, config)

        assert "Design 7 (ID: 12)" in text
        assert "Ana (ID: 99)" in text
        assert "3 / 20 graded" in text
        assert "🤝 Collaboration: A" in text
        assert "mystery: B" in text
        assert "Ms. Rivera" in text

    def test_style_rules_and_examples(self, config):
        session = SessionContext(
            style_rules=StyleRules(prefers_shorter=True, tone_notes="warm"),
            examples=[ExamplePair(original="x" * 500, edited="y" * 500)] * 5,
        )
        text = render_session_context(session, config)

        assert "Teacher's Feedback Style Preferences" in text
        assert "Keep feedback concise" in text
        assert "Tone: warm" in text
        assert text.count("### Example") == 3
        assert "x" * 201 not in text

    def test_deterministic(self, config):
        session = SessionContext(course_name="C", grades={"agency": "B"})
        a = build_briefing("analyze_trends", session, config=config)
        b = build_briefing("analyze_trends", session, config=config)
        assert a == b


class TestTaskInstructions:
    def test_each_known_task_has_its_own_block(self):
        blocks = {t: task_instructions(t) for t in TaskType}
        assert len(set(blocks.values())) == len(TaskType)

    def test_unknown_task_falls_back_to_custom(self):
        assert task_instructions("write_a_poem") == task_instructions(TaskType.CUSTOM)

    def test_path_like_task_falls_back(self):
        assert task_instructions("../agent_system") == task_instructions(TaskType.CUSTOM)


class TestUserMessage:
    def test_explicit_prompt_wins(self):
        assert build_user_message(TaskType.POST_GRADES, SessionContext(), prompt="Just do it") == "Just do it"

    def test_feedback_request_includes_submission(self):
        session = SessionContext(student_name="Ana", assignment_name="Chair", grades={"agency": "A"})
        msg = build_user_message(TaskType.GENERATE_FEEDBACK, session, submission_content="My chair design")
        assert "Ana's submission" in msg
        assert '"Chair"' in msg
        assert "My chair design" in msg
        assert '{"agency": "A"}' in msg

    def test_post_grades_mentions_ids(self):
        msg = build_user_message("post_grades", SessionContext(course_id=1, assignment_id=2))
        assert "Course ID: 1" in msg and "Assignment ID: 2" in msg

    def test_unknown_task_generic(self):
        assert build_user_message("other", SessionContext()) == "Please assist with the current grading task."


def test_context_snapshot_shape():
    payload = json.loads(context_snapshot(TaskType.CUSTOM, SessionContext(course_id=5)))
    assert payload["task"] == "custom"
    assert payload["context"]["course_id"] == 5
    assert "course_name" not in payload["context"]
    assert payload["system_prompt"] == "Available in system message"
