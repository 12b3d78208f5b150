import json
import re
from typing import Any, Dict, Optional, Type, TypeVar
from pydantic import BaseModel, ValidationError

T = TypeVar("T", bound=BaseModel)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class LLMInvalidJSON(ValueError):
    """Raised when model output is not valid JSON."""


class LLMSchemaViolation(ValueError):
    """Raised when JSON is valid but does not match schema."""


def extract_json_object(text: str) -> Optional[str]:
    """Outermost {...} span in free text, or None. Models often wrap JSON in prose or fences."""
    match = _JSON_OBJECT.search(text or "")
    return match.group(0) if match else None


def parse_json_object(raw_output: str) -> Dict[str, Any]:
    try:
        data = json.loads(raw_output)
    except json.JSONDecodeError as e:
        raise LLMInvalidJSON("LLM returned invalid JSON") from e
    if not isinstance(data, dict):
        raise LLMInvalidJSON(f"Expected a JSON object, got {type(data).__name__}")
    return data


def parse_and_validate(raw_output: str, schema: Type[T]) -> T:
    """
    Parse raw LLM output as JSON and validate against a Pydantic schema.

    Accepts output with surrounding prose as long as it contains one JSON
    object. Raises LLMInvalidJSON / LLMSchemaViolation so callers can decide
    whether to repair or retry.
    """
    candidate = extract_json_object(raw_output) or raw_output
    data = parse_json_object(candidate)

    try:
        return schema(**data)
    except ValidationError as e:
        raise LLMSchemaViolation("LLM JSON did not match schema") from e
