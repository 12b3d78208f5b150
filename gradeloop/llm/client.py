import json
import time
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from openai import OpenAI
from pydantic import BaseModel

from gradeloop.config import AppConfig, ConfigError
from gradeloop.core.llm_output import LLMInvalidJSON, LLMSchemaViolation, parse_and_validate
from gradeloop.core.message_schemas import (
    ImageBlock,
    Message,
    ModelTurn,
    TextBlock,
    ToolCallBlock,
    ToolResultBlock,
)
from gradeloop.core.prompt_loader import load_prompt
from gradeloop.core.tool_schemas import ToolDeclaration
from gradeloop.infra.logging import log_event

T = TypeVar("T", bound=BaseModel)


class LLMClient:
    """Backend contract the loop and the feedback tools depend on."""

    def create_turn(
        self,
        system: str,
        messages: Sequence[Message],
        tools: Sequence[ToolDeclaration],
    ) -> ModelTurn:
        raise NotImplementedError

    def generate(self, prompt: str) -> str:
        raise NotImplementedError

    def generate_structured(self, prompt: str, schema: Type[T]) -> T:
        raise NotImplementedError


# ----------------------------
# Block <-> chat-completions conversion
# ----------------------------

def _user_parts(message: Message) -> List[Dict[str, Any]]:
    parts: List[Dict[str, Any]] = []
    for block in message.content:
        if isinstance(block, TextBlock):
            parts.append({"type": "text", "text": block.text})
        elif isinstance(block, ImageBlock):
            parts.append(
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{block.media_type};base64,{block.data}"},
                }
            )
    return parts


def to_openai_messages(system: str, messages: Sequence[Message]) -> List[Dict[str, Any]]:
    """
    Flatten tagged blocks into chat-completions messages.

    tool_result blocks become one role="tool" message each, in block order,
    directly after the assistant message that requested them.
    """
    out: List[Dict[str, Any]] = [{"role": "system", "content": system}]

    for message in messages:
        if message.role == "assistant":
            texts = [b.text for b in message.content if isinstance(b, TextBlock)]
            calls = [b for b in message.content if isinstance(b, ToolCallBlock)]
            assistant: Dict[str, Any] = {
                "role": "assistant",
                "content": "\n".join(texts) if texts else None,
            }
            if calls:
                assistant["tool_calls"] = [
                    {
                        "id": c.id,
                        "type": "function",
                        "function": {
                            "name": c.name,
                            "arguments": json.dumps(c.input, ensure_ascii=False),
                        },
                    }
                    for c in calls
                ]
            out.append(assistant)
            continue

        results = [b for b in message.content if isinstance(b, ToolResultBlock)]
        for r in results:
            out.append({"role": "tool", "tool_call_id": r.call_id, "content": r.content})

        parts = _user_parts(message)
        if parts:
            out.append({"role": "user", "content": parts})

    return out


def _parse_arguments(raw: Optional[str], tool_name: str) -> Dict[str, Any]:
    if not raw or not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise LLMInvalidJSON(f"Malformed arguments for tool call '{tool_name}'") from e
    if not isinstance(data, dict):
        raise LLMInvalidJSON(f"Arguments for tool call '{tool_name}' are not an object")
    return data


def turn_from_completion(response: Any) -> ModelTurn:
    message = response.choices[0].message
    blocks: List[Any] = []

    if message.content:
        blocks.append(TextBlock(text=message.content))

    for tc in message.tool_calls or []:
        blocks.append(
            ToolCallBlock(
                id=tc.id,
                name=tc.function.name,
                input=_parse_arguments(tc.function.arguments, tc.function.name),
            )
        )

    usage = getattr(response, "usage", None)
    return ModelTurn(
        content=blocks,
        total_tokens=getattr(usage, "total_tokens", None),
    )


# ----------------------------
# OpenAI implementation
# ----------------------------

class OpenAIClient(LLMClient):
    def __init__(self, config: AppConfig, *, sdk_client: Optional[OpenAI] = None):
        if sdk_client is None and not config.openai_api_key:
            raise ConfigError("OPENAI_API_KEY is not set")

        # Secondary (structured) calls only; loop turns are single-attempt.
        self.max_attempts = 3
        self.base_backoff_seconds = 1.0
        self.repair_enabled = True

        self.model = config.model
        self.temperature = config.temperature
        self.max_output_tokens = config.max_output_tokens
        self.cost_per_1k_tokens = config.cost_per_1k_tokens

        self.client = sdk_client or OpenAI(
            api_key=config.openai_api_key,
            timeout=config.request_timeout_seconds,
            max_retries=config.max_retries,
        )

        self.total_tokens = 0
        self.total_cost = 0.0

    def _track_usage(self, tokens_used: Optional[int]) -> None:
        if not tokens_used:
            return
        cost = (tokens_used / 1000) * self.cost_per_1k_tokens
        self.total_tokens += tokens_used
        self.total_cost += cost
        log_event(
            "llm_usage",
            tokens=tokens_used,
            cost=cost,
            total_tokens=self.total_tokens,
            total_cost=self.total_cost,
        )

    def create_turn(
        self,
        system: str,
        messages: Sequence[Message],
        tools: Sequence[ToolDeclaration],
    ) -> ModelTurn:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": to_openai_messages(system, messages),
            "temperature": self.temperature,
            "max_tokens": self.max_output_tokens,
        }
        if tools:
            kwargs["tools"] = [t.to_openai_tool() for t in tools]

        start = time.time()
        response = self.client.chat.completions.create(**kwargs)
        log_event("llm_latency", seconds=time.time() - start, kind="turn")

        turn = turn_from_completion(response)
        self._track_usage(turn.total_tokens)
        return turn

    def generate(self, prompt: str) -> str:
        response = self._call_openai(prompt)
        usage = getattr(response, "usage", None)
        self._track_usage(getattr(usage, "total_tokens", None))
        return response.choices[0].message.content or ""

    def generate_structured(self, prompt: str, schema: Type[T]) -> T:
        """
        Generate a response and return a validated schema object.

        Retry strategy:
        1) Generate -> parse/validate
        2) On invalid JSON or schema violation: one repair pass, then retry
        3) On API failures: backoff and retry
        """
        last_error: Exception | None = None
        raw_output: str | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                log_event(
                    "llm_attempt",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    model=self.model,
                    schema=schema.__name__,
                )
                raw_output = self.generate(prompt)
                return parse_and_validate(raw_output, schema)

            except (LLMInvalidJSON, LLMSchemaViolation) as e:
                last_error = e
                log_event("llm_validation_error", error_type=type(e).__name__)

                if self.repair_enabled and raw_output:
                    repaired = self._repair_json(raw_output, schema)
                    try:
                        return parse_and_validate(repaired, schema)
                    except (LLMInvalidJSON, LLMSchemaViolation) as e2:
                        last_error = e2
                        log_event("llm_repair_failed", error_type=type(e2).__name__)

                self._backoff(attempt)

            except Exception as e:
                last_error = e
                log_event("llm_transient_error", error_type=type(e).__name__)
                self._backoff(attempt)

        raise RuntimeError(f"LLM failed after {self.max_attempts} attempts") from last_error

    def _call_openai(self, prompt: str) -> Any:
        start = time.time()
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
            max_tokens=self.max_output_tokens,
        )
        log_event("llm_latency", seconds=time.time() - start, kind="generate")
        return response

    def _backoff(self, attempt: int) -> None:
        delay = self.base_backoff_seconds * (2 ** (attempt - 1))
        log_event("llm_backoff", delay=delay)
        time.sleep(delay)

    def _repair_json(self, raw_output: str, schema: Type[T]) -> str:
        fields = schema.model_json_schema().get("properties", {})
        schema_hint = "; ".join(f"{name}: {spec.get('type', 'any')}" for name, spec in fields.items())

        repair_prompt = load_prompt("json_repair", schema=schema_hint, raw=raw_output)
        log_event("llm_repair_attempt", schema=schema.__name__)
        return self.generate(repair_prompt)
