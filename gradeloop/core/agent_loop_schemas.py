from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field


class LoopState(str, Enum):
    RUNNING = "running"
    DONE_SUCCESS = "done_success"
    DONE_FAILURE = "done_failure"
    DONE_MAX_ITER = "done_max_iter"
    CANCELLED = "cancelled"


class LoopResult(BaseModel):
    """
    Final output of one loop invocation.

    Reason:
    - One typed object for callers, persistence and logs.
    Benefit:
    - run_id ties the result to every log line the invocation emitted.
    """

    run_id: str
    success: bool
    result: str
    tools_used: List[str] = Field(default_factory=list)
    iterations: int = 0
    error: Optional[str] = None


class ToolCallEvent(BaseModel):
    type: Literal["tool_call"] = "tool_call"
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolResultEvent(BaseModel):
    type: Literal["tool_result"] = "tool_result"
    name: str
    output: str


class TextEvent(BaseModel):
    type: Literal["text"] = "text"
    chunk: str


class DoneEvent(BaseModel):
    type: Literal["done"] = "done"
    success: bool
    tools_used: List[str] = Field(default_factory=list)
    iterations: int
    result: str = ""


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str
    tools_used: List[str] = Field(default_factory=list)
    iterations: int


StreamEvent = Annotated[
    Union[ToolCallEvent, ToolResultEvent, TextEvent, DoneEvent, ErrorEvent],
    Field(discriminator="type"),
]
