from typing import Annotated, Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, create_model

FieldType = Literal["string", "integer", "number", "boolean"]

_PY_TYPES: Dict[str, type] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
}


def _bool_as_enum_string(value: Any) -> Any:
    # JSON true/false maps onto "true"/"false" enum members.
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


class FieldSpec(BaseModel):
    type: FieldType
    description: str
    required: bool = False
    enum: Optional[List[str]] = None


class InputShape(BaseModel):
    """
    Structural contract for one tool's input.

    Reason:
    - The same declaration has to feed the backend (JSON Schema) and the
      dispatcher (validation before the handler runs).
    Benefit:
    - One source of truth; the two can never drift apart.
    """
    fields: Dict[str, FieldSpec] = Field(default_factory=dict)

    def required_names(self) -> List[str]:
        return [name for name, spec in self.fields.items() if spec.required]

    def to_json_schema(self) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        for name, spec in self.fields.items():
            prop: Dict[str, Any] = {"type": spec.type, "description": spec.description}
            if spec.enum:
                prop["enum"] = list(spec.enum)
            properties[name] = prop
        return {
            "type": "object",
            "properties": properties,
            "required": self.required_names(),
        }

    def build_model(self, model_name: str) -> Type[BaseModel]:
        definitions: Dict[str, Any] = {}
        for name, spec in self.fields.items():
            annotation: Any = _PY_TYPES[spec.type]
            if spec.enum:
                annotation = Annotated[Literal[tuple(spec.enum)], BeforeValidator(_bool_as_enum_string)]
            if spec.required:
                definitions[name] = (annotation, ...)
            else:
                definitions[name] = (Optional[annotation], None)
        return create_model(
            model_name,
            __config__=ConfigDict(extra="ignore"),
            **definitions,
        )


class ToolDeclaration(BaseModel):
    name: str
    description: str
    input_shape: InputShape = Field(default_factory=InputShape)

    def to_openai_tool(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_shape.to_json_schema(),
            },
        }


class ToolOutcome(BaseModel):
    """
    What the dispatcher hands back to the loop: a serialized payload for the
    model plus whether this call ends the run.
    """
    output: str
    is_completion: bool = False


class CompletionPayload(BaseModel):
    success: bool
    notes: str = "Task completed"
