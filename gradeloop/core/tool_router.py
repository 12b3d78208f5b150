import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Type

from pydantic import BaseModel, ValidationError

from gradeloop.core.tool_schemas import ToolDeclaration, ToolOutcome
from gradeloop.infra.logging import log_event

ToolFn = Callable[..., Dict[str, Any]]
ContextAccessor = Callable[[], str]


class ToolCatalogMismatch(RuntimeError):
    """Raised at startup when handlers and declarations do not line up one-to-one."""


@dataclass
class _Entry:
    fn: ToolFn
    wants_context: bool = False
    completes: bool = False


def _error_payload(message: str) -> str:
    return json.dumps({"error": message}, ensure_ascii=False)


class ToolRegistry:
    """
    Allowlist of tool handlers keyed by tool name.

    Reason:
    - The model names tools by string; only names registered here can run.
    Benefit:
    - Bad names, bad arguments and handler crashes all come back as data the
      model can read, never as exceptions in the loop.
    """

    def __init__(self, declarations: Optional[Iterable[ToolDeclaration]] = None) -> None:
        self._tools: Dict[str, _Entry] = {}
        self._declarations: Dict[str, ToolDeclaration] = {}
        self._input_models: Dict[str, Type[BaseModel]] = {}
        for decl in declarations or []:
            self.declare(decl)

    def declare(self, decl: ToolDeclaration) -> None:
        if decl.name in self._declarations:
            raise ValueError(f"Tool already declared: {decl.name}")
        self._declarations[decl.name] = decl
        self._input_models[decl.name] = decl.input_shape.build_model(f"{decl.name}_input")

    def register(
        self,
        name: str,
        fn: ToolFn,
        *,
        wants_context: bool = False,
        completes: bool = False,
    ) -> None:
        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")
        self._tools[name] = _Entry(fn=fn, wants_context=wants_context, completes=completes)

    def has(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> list[str]:
        return list(self._tools.keys())

    def declarations(self) -> list[ToolDeclaration]:
        return list(self._declarations.values())

    def validate_against(self, catalog: Iterable[ToolDeclaration]) -> None:
        declared = {d.name for d in catalog}
        registered = set(self._tools)

        missing = sorted(declared - registered)
        extra = sorted(registered - declared)
        if missing or extra:
            raise ToolCatalogMismatch(
                f"Tool registry does not match catalog: missing handlers={missing}, "
                f"undeclared handlers={extra}"
            )

    def _validate_args(self, name: str, args: Dict[str, Any]) -> Dict[str, Any]:
        model = self._input_models.get(name)
        if model is None:
            return dict(args)
        return model(**args).model_dump(exclude_none=True)

    def run(
        self,
        name: str,
        args: Optional[Dict[str, Any]] = None,
        context_accessor: Optional[ContextAccessor] = None,
    ) -> ToolOutcome:
        args = args or {}

        entry = self._tools.get(name)
        if entry is None:
            log_event("tool_unknown", tool_name=name)
            return ToolOutcome(output=_error_payload(f"Unknown tool: {name}"))

        log_event("tool_dispatch_start", tool_name=name, args_keys=sorted(args.keys()))

        try:
            kwargs = self._validate_args(name, args)
        except ValidationError as e:
            log_event("tool_bad_input", tool_name=name, errors=e.error_count())
            return ToolOutcome(output=_error_payload(f"Invalid input for {name}: {e}"))

        if entry.wants_context:
            kwargs["context_accessor"] = context_accessor

        try:
            out = entry.fn(**kwargs)
        except TypeError as e:
            log_event("tool_error", tool_name=name, error=f"TypeError: {e}")
            return ToolOutcome(output=_error_payload(f"Bad tool args: {e}"))
        except Exception as e:
            log_event("tool_error", tool_name=name, error=f"{type(e).__name__}: {e}")
            return ToolOutcome(output=_error_payload(f"Tool error: {type(e).__name__}: {e}"))

        if not isinstance(out, dict):
            log_event("tool_error", tool_name=name, error="non-dict output")
            return ToolOutcome(output=_error_payload("Tool returned non-dict output"))

        try:
            output = json.dumps(out, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            return ToolOutcome(output=_error_payload(f"Tool output not serializable: {e}"))

        log_event(
            "tool_dispatch_end",
            tool_name=name,
            is_completion=entry.completes,
            output_chars=len(output),
        )
        return ToolOutcome(output=output, is_completion=entry.completes)
