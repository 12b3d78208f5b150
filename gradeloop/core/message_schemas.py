from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field


class TextBlock(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageBlock(BaseModel):
    type: Literal["image"] = "image"
    media_type: str = "image/jpeg"
    data: str = Field(description="Base64-encoded image bytes")


class ToolCallBlock(BaseModel):
    """A tool invocation requested by the model."""
    type: Literal["tool_call"] = "tool_call"
    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(BaseModel):
    """The serialized result of one tool call, keyed by the call id."""
    type: Literal["tool_result"] = "tool_result"
    call_id: str
    content: str


ContentBlock = Annotated[
    Union[TextBlock, ImageBlock, ToolCallBlock, ToolResultBlock],
    Field(discriminator="type"),
]


class Message(BaseModel):
    role: Literal["user", "assistant"]
    content: List[ContentBlock]


class ModelTurn(BaseModel):
    """
    One backend reply, normalized to content blocks.

    Only text and tool_call blocks appear here; order is the order the model
    produced them in.
    """
    content: List[ContentBlock] = Field(default_factory=list)
    total_tokens: Optional[int] = None

    def tool_calls(self) -> List[ToolCallBlock]:
        return [b for b in self.content if isinstance(b, ToolCallBlock)]

    def texts(self) -> List[str]:
        return [b.text for b in self.content if isinstance(b, TextBlock)]


class ImageAttachment(BaseModel):
    media_type: str = "image/jpeg"
    data: str
