"""
Shared fixtures: a scripted model backend, a temp sqlite store and a fully
wired registry. Nothing here touches the network.
"""
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import pytest

from gradeloop.config import AppConfig
from gradeloop.core.message_schemas import Message, ModelTurn, TextBlock, ToolCallBlock
from gradeloop.infra.storage import GradeStore
from gradeloop.tools.registry import build_registry


def text_turn(*texts: str) -> ModelTurn:
    return ModelTurn(content=[TextBlock(text=t) for t in texts])


def tool_turn(*calls: Union[tuple, ToolCallBlock], text: Optional[str] = None) -> ModelTurn:
    """tool_turn(("fetch_courses", {}), ("complete_task", {...})); ids are call_0, call_1, ..."""
    blocks: List[Any] = []
    if text:
        blocks.append(TextBlock(text=text))
    for i, call in enumerate(calls):
        if isinstance(call, ToolCallBlock):
            blocks.append(call)
        else:
            name, args = call
            blocks.append(ToolCallBlock(id=f"call_{i}", name=name, input=args))
    return ModelTurn(content=blocks, total_tokens=10)


class ScriptedClient:
    """
    Stands in for the model backend. Each create_turn pops the next scripted
    item: a ModelTurn, an exception (raised), or a callable taking the
    conversation. Every call's arguments are recorded.
    """

    def __init__(self, turns: Sequence[Any] = (), *, repeat_last: bool = False, generations: Sequence[str] = ()):
        self.turns = list(turns)
        self.repeat_last = repeat_last
        self.generations = list(generations)
        self.calls: List[Dict[str, Any]] = []
        self.prompts: List[str] = []

    def create_turn(self, system: str, messages: Sequence[Message], tools) -> ModelTurn:
        self.calls.append(
            {
                "system": system,
                "messages": [m.model_copy(deep=True) for m in messages],
                "tools": [t.name for t in tools],
            }
        )
        if not self.turns:
            raise AssertionError("ScriptedClient ran out of turns")
        item = self.turns[0] if (self.repeat_last and len(self.turns) == 1) else self.turns.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item(messages)
        return item

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.generations:
            raise AssertionError("ScriptedClient ran out of generations")
        return self.generations.pop(0)

    def generate_structured(self, prompt: str, schema):
        from gradeloop.core.llm_output import parse_and_validate

        return parse_and_validate(self.generate(prompt), schema)


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch):
    monkeypatch.setenv("GRADELOOP_LOG_LEVEL", "quiet")


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        data_dir=tmp_path,
        db_path=tmp_path / "test.sqlite3",
        openai_api_key=None,
        model="test-model",
        temperature=0.0,
        max_output_tokens=512,
        request_timeout_seconds=5.0,
        max_retries=0,
        cost_per_1k_tokens=0.001,
        max_iterations=10,
        canvas_base_url=None,
        canvas_api_token=None,
        teacher_name="Ms. Rivera",
        teacher_role="Design Teacher",
        school_name="Franklin School",
        content_char_limit=50000,
    )


@pytest.fixture
def store(config: AppConfig) -> GradeStore:
    s = GradeStore(config.db_path)
    s.init_db()
    return s


@pytest.fixture
def make_registry(config: AppConfig, store: GradeStore) -> Callable[..., Any]:
    def _make(client=None, canvas=None, http=None):
        return build_registry(
            client=client or ScriptedClient(),
            store=store,
            config=config,
            canvas=canvas,
            http=http,
        )
    return _make
