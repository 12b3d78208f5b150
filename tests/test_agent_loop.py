import json

import pytest

from conftest import ScriptedClient, text_turn, tool_turn
from gradeloop.core.agent_loop import build_initial_message, run_agent_loop
from gradeloop.core.message_schemas import ImageAttachment, ImageBlock, TextBlock, ToolResultBlock
from gradeloop.core.session_schemas import SessionContext, TaskType


@pytest.fixture
def run(config, make_registry):
    def _run(client, **kwargs):
        kwargs.setdefault("task", TaskType.CUSTOM)
        kwargs.setdefault("user_message", "Help me grade.")
        registry = kwargs.pop("registry", None) or make_registry(client)
        return run_agent_loop(client, registry, config=config, **kwargs)
    return _run


class TestTermination:
    def test_text_only_turn_finishes_in_one_iteration(self, run):
        client = ScriptedClient([text_turn("All ", "done.")])
        result = run(client)

        assert result.success is True
        assert result.iterations == 1
        assert result.tools_used == []
        assert result.result == "All \ndone."
        assert result.error is None

    def test_one_tool_then_text(self, run):
        client = ScriptedClient([tool_turn(("fetch_courses", {})), text_turn("Here are your courses.")])
        result = run(client)

        assert result.success is True
        assert result.tools_used == ["fetch_courses"]
        assert result.iterations == 2
        assert result.result == "Here are your courses."

    def test_completion_tool_ends_run_regardless_of_bound(self, run):
        client = ScriptedClient([tool_turn(("complete_task", {"success": "true", "notes": "done"}))])
        result = run(client, max_iterations=50)

        assert result.success is True
        assert result.result == "done"
        assert result.iterations == 1
        assert result.tools_used == ["complete_task"]
        assert len(client.calls) == 1

    def test_completion_with_boolean_flag(self, run):
        client = ScriptedClient([tool_turn(("complete_task", {"success": True, "notes": "posted"}))])
        result = run(client)

        assert result.success is True
        assert result.result == "posted"
        assert len(client.calls) == 1

    def test_completion_with_false_reports_failure(self, run):
        client = ScriptedClient([tool_turn(("complete_task", {"success": "false"}))])
        result = run(client)

        assert result.success is False
        assert result.result == "Task completed"

    def test_bound_exhaustion(self, run):
        client = ScriptedClient([tool_turn(("read_preferences", {}))], repeat_last=True)
        result = run(client, max_iterations=3)

        assert result.success is False
        assert result.iterations == 3
        assert result.result == "max iterations exceeded"
        assert "Max iterations" in result.error
        assert result.tools_used == ["read_preferences"] * 3
        assert len(client.calls) == 3

    def test_default_bound_comes_from_config(self, run, config):
        client = ScriptedClient([tool_turn(("fetch_courses", {}))], repeat_last=True)
        result = run(client)
        assert result.iterations == config.max_iterations

    @pytest.mark.parametrize("bound", [0, -1])
    def test_non_positive_bound_rejected(self, run, bound):
        client = ScriptedClient([text_turn("never")])
        with pytest.raises(ValueError, match="max_iterations"):
            run(client, max_iterations=bound)
        assert client.calls == []


class TestFailures:
    def test_backend_exception_becomes_failed_result(self, run):
        client = ScriptedClient([tool_turn(("fetch_courses", {})), ConnectionError("network down")])
        result = run(client)

        assert result.success is False
        assert result.result == ""
        assert result.error == "network down"
        assert result.iterations == 2
        assert result.tools_used == ["fetch_courses"]

    def test_unknown_tool_is_fed_back_and_loop_continues(self, run):
        client = ScriptedClient([tool_turn(("launch_rocket", {})), text_turn("Sorry, cannot do that.")])
        result = run(client)

        assert result.success is True
        assert result.tools_used == ["launch_rocket"]
        results = client.calls[1]["messages"][-1].content
        assert json.loads(results[0].content) == {"error": "Unknown tool: launch_rocket"}

    def test_bad_tool_input_is_fed_back(self, run):
        client = ScriptedClient([tool_turn(("fetch_assignments", {})), text_turn("ok")])
        run(client)
        payload = json.loads(client.calls[1]["messages"][-1].content[0].content)
        assert payload["error"].startswith("Invalid input for fetch_assignments")


class TestConversationShape:
    def test_every_call_gets_one_matching_result(self, run):
        client = ScriptedClient(
            [
                tool_turn(("fetch_courses", {}), ("read_preferences", {}), text="Let me look."),
                text_turn("done"),
            ]
        )
        run(client)

        second = client.calls[1]["messages"]
        assert [m.role for m in second] == ["user", "assistant", "user"]

        assistant = second[1]
        assert isinstance(assistant.content[0], TextBlock)
        call_ids = [b.id for b in assistant.content if b.type == "tool_call"]

        results = second[2].content
        assert all(isinstance(b, ToolResultBlock) for b in results)
        assert [b.call_id for b in results] == call_ids

    def test_completion_abandons_remaining_calls_in_turn(self, run):
        client = ScriptedClient(
            [
                tool_turn(
                    ("complete_task", {"success": "true", "notes": "early"}),
                    ("fetch_courses", {}),
                )
            ]
        )
        result = run(client)

        assert result.result == "early"
        assert result.tools_used == ["complete_task"]

    def test_briefing_is_identical_every_turn(self, run):
        client = ScriptedClient([tool_turn(("fetch_courses", {})), tool_turn(("fetch_courses", {})), text_turn("x")])
        run(client, session=SessionContext(course_name="Design 7", course_id=42))

        systems = {c["system"] for c in client.calls}
        assert len(systems) == 1
        assert "Design 7 (ID: 42)" in systems.pop()

    def test_full_catalog_is_offered(self, run):
        client = ScriptedClient([text_turn("hi")])
        run(client)
        assert len(client.calls[0]["tools"]) == 16
        assert "complete_task" in client.calls[0]["tools"]

    def test_read_context_sees_task_and_session(self, run):
        client = ScriptedClient([tool_turn(("read_context", {})), text_turn("ok")])
        run(client, task=TaskType.POST_GRADES, session=SessionContext(assignment_id=7))

        payload = json.loads(client.calls[1]["messages"][-1].content[0].content)
        assert payload["task"] == "post_grades"
        assert payload["context"]["assignment_id"] == 7
        assert payload["system_prompt"] == "Available in system message"


class TestDeterminism:
    def test_same_script_same_outcome(self, run):
        def script():
            return ScriptedClient(
                [
                    tool_turn(("fetch_courses", {}), ("read_preferences", {})),
                    tool_turn(("score_competency", {
                        "course_id": 1, "user_id": 2, "assignment_id": 3,
                        "competency_id": "agency", "grade": "A",
                    })),
                    text_turn("finished"),
                ]
            )

        a = run(script())
        b = run(script())

        assert (a.tools_used, a.iterations, a.result) == (b.tools_used, b.iterations, b.result)
        assert a.run_id != b.run_id


class TestInitialMessage:
    def test_plain_text(self):
        msg = build_initial_message("Grade this")
        assert msg.role == "user"
        assert [b.type for b in msg.content] == ["text"]
        assert msg.content[0].text == "Grade this"

    def test_images_precede_text_with_labels(self):
        images = [ImageAttachment(data="AAA"), ImageAttachment(media_type="image/png", data="BBB")]
        msg = build_initial_message("Grade this", images)

        kinds = [b.type for b in msg.content]
        assert kinds == ["text", "image", "text", "image", "text", "text"]
        assert "2 slide images" in msg.content[0].text
        assert isinstance(msg.content[1], ImageBlock) and msg.content[1].data == "AAA"
        assert msg.content[2].text == "[Slide 1]"
        assert msg.content[3].media_type == "image/png"
        assert msg.content[4].text == "[Slide 2]"
        assert msg.content[5].text == "\n\nGrade this"

    def test_images_reach_the_backend(self, run):
        client = ScriptedClient([text_turn("looks good")])
        run(client, images=[ImageAttachment(data="AAA")])
        first = client.calls[0]["messages"][0]
        assert any(b.type == "image" for b in first.content)


class TestPersistence:
    def test_run_is_saved(self, run, store):
        client = ScriptedClient([tool_turn(("fetch_courses", {})), text_turn("saved")])
        result = run(client, store=store, task=TaskType.ANALYZE_TRENDS)

        saved = store.load_run(result.run_id)
        assert saved["success"] is True
        assert saved["task"] == "analyze_trends"
        assert saved["tools_used"] == ["fetch_courses"]
        assert saved["iterations"] == 2
        assert saved["result"] == "saved"
        assert saved["total_tokens"] == 10

    def test_failed_run_is_saved_with_error(self, run, store):
        client = ScriptedClient([RuntimeError("boom")])
        result = run(client, store=store)

        saved = store.load_run(result.run_id)
        assert saved["success"] is False
        assert saved["error"] == "boom"
