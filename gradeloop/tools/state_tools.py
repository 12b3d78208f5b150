import json
from typing import Any, Dict, Optional

from gradeloop.core.tool_catalog import COMPLETE_TASK, READ_CONTEXT
from gradeloop.core.tool_router import ContextAccessor, ToolRegistry
from gradeloop.core.tool_schemas import CompletionPayload


def read_context(context_accessor: Optional[ContextAccessor] = None) -> Dict[str, Any]:
    if context_accessor is None:
        return {"error": "No context provider available"}
    return json.loads(context_accessor())


def complete_task(success: str, notes: Optional[str] = None) -> Dict[str, Any]:
    return CompletionPayload(success=success == "true", notes=notes or "Task completed").model_dump()


def register_state_tools(registry: ToolRegistry) -> None:
    registry.register(READ_CONTEXT, read_context, wants_context=True)
    registry.register(COMPLETE_TASK, complete_task, completes=True)
