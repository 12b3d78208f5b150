from dataclasses import dataclass
from typing import Optional

from gradeloop.config import AppConfig, load_config
from gradeloop.core.tool_router import ToolRegistry
from gradeloop.infra.logging import log_event
from gradeloop.infra.storage import GradeStore
from gradeloop.lms.canvas import CanvasClient
from gradeloop.llm.client import LLMClient, OpenAIClient
from gradeloop.tools.registry import build_registry


@dataclass
class App:
    """Process-wide handles, built once at startup and passed into every loop invocation."""
    config: AppConfig
    client: LLMClient
    registry: ToolRegistry
    store: GradeStore
    canvas: Optional[CanvasClient] = None


def build_canvas(config: AppConfig) -> Optional[CanvasClient]:
    if not (config.canvas_base_url and config.canvas_api_token):
        return None
    return CanvasClient(config.canvas_base_url, config.canvas_api_token)


def build_app(config: Optional[AppConfig] = None, *, client: Optional[LLMClient] = None) -> App:
    config = config or load_config()
    client = client or OpenAIClient(config)
    store = GradeStore(config.db_path)
    store.init_db()
    canvas = build_canvas(config)
    registry = build_registry(client=client, store=store, config=config, canvas=canvas)

    log_event(
        "app_ready",
        model=config.model,
        tools=len(registry.names()),
        canvas=canvas is not None,
        db_path=str(config.db_path),
    )
    return App(config=config, client=client, registry=registry, store=store, canvas=canvas)
