from typing import Any, Optional

from gradeloop.config import AppConfig
from gradeloop.core.tool_catalog import ALL_TOOLS
from gradeloop.core.tool_router import ToolRegistry
from gradeloop.infra.storage import GradeStore
from gradeloop.lms.canvas import CanvasClient
from gradeloop.tools.canvas_tools import register_canvas_tools
from gradeloop.tools.content_tools import register_content_tools
from gradeloop.tools.feedback_tools import register_feedback_tools
from gradeloop.tools.state_tools import register_state_tools
from gradeloop.tools.student_tools import register_student_tools


def build_registry(
    *,
    client,
    store: GradeStore,
    config: AppConfig,
    canvas: Optional[CanvasClient] = None,
    http: Optional[Any] = None,
) -> ToolRegistry:
    """
    Declare the full catalog, register every handler, and fail fast if the
    two disagree.
    """
    registry = ToolRegistry(ALL_TOOLS)

    register_canvas_tools(registry, canvas)
    register_content_tools(registry, canvas, char_limit=config.content_char_limit, http=http)
    register_feedback_tools(registry, client, store, school_name=config.school_name)
    register_student_tools(registry, store)
    register_state_tools(registry)

    registry.validate_against(ALL_TOOLS)
    return registry
