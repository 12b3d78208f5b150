import sqlite3
from typing import Callable, Iterator, List, Optional, Sequence

from gradeloop.config import AppConfig
from gradeloop.core.agent_loop_schemas import (
    DoneEvent,
    ErrorEvent,
    LoopResult,
    LoopState,
    StreamEvent,
    TextEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from gradeloop.core.cancellation import CancelToken
from gradeloop.core.context_builder import build_briefing, context_snapshot
from gradeloop.core.message_schemas import (
    ImageAttachment,
    ImageBlock,
    Message,
    TextBlock,
    ToolResultBlock,
)
from gradeloop.core.session_schemas import SessionContext, TaskType, task_value
from gradeloop.core.tool_router import ToolRegistry
from gradeloop.core.tool_schemas import CompletionPayload
from gradeloop.infra.ids import new_run_id
from gradeloop.infra.logging import log_event
from gradeloop.infra.storage import GradeStore

MAX_ITERATIONS_ERROR = "Max iterations exceeded"
MAX_ITERATIONS_RESULT = "max iterations exceeded"
CANCELLED_ERROR = "Cancelled"


def build_initial_message(user_message: str, images: Optional[Sequence[ImageAttachment]] = None) -> Message:
    """Images first, each followed by its [Slide i] label, then the request text."""
    if not images:
        return Message(role="user", content=[TextBlock(text=user_message)])

    blocks: list = [
        TextBlock(
            text=(
                f"I'm providing {len(images)} slide images from the student's PDF "
                "submission for your visual analysis:\n"
            )
        )
    ]
    for i, image in enumerate(images, start=1):
        blocks.append(ImageBlock(media_type=image.media_type, data=image.data))
        blocks.append(TextBlock(text=f"[Slide {i}]"))
    blocks.append(TextBlock(text="\n\n" + user_message))
    return Message(role="user", content=blocks)


def _terminal_state(event: StreamEvent) -> LoopState:
    if isinstance(event, DoneEvent):
        return LoopState.DONE_SUCCESS if event.success else LoopState.DONE_FAILURE
    if event.message == MAX_ITERATIONS_ERROR:
        return LoopState.DONE_MAX_ITER
    if event.message == CANCELLED_ERROR:
        return LoopState.CANCELLED
    return LoopState.DONE_FAILURE


def stream_agent_loop(
    client,
    registry: ToolRegistry,
    *,
    task: "TaskType | str",
    user_message: str,
    config: AppConfig,
    session: Optional[SessionContext] = None,
    max_iterations: Optional[int] = None,
    images: Optional[Sequence[ImageAttachment]] = None,
    cancel: Optional[CancelToken] = None,
    store: Optional[GradeStore] = None,
    run_id: Optional[str] = None,
) -> Iterator[StreamEvent]:
    """
    Drive the model/tool conversation, yielding one event per transition.

    Ends with exactly one DoneEvent or ErrorEvent. Lazy: nothing runs until the
    first event is requested, and a closed generator makes no further backend
    calls or dispatches. A set CancelToken is honored before every backend
    call, on every reply, and before every dispatch.
    """
    run_id = run_id or new_run_id()
    session = session or SessionContext()
    limit = max_iterations if max_iterations is not None else config.max_iterations
    if limit < 1:
        raise ValueError(f"max_iterations must be >= 1, got {limit}")
    task_name = task_value(task)

    tools_used: List[str] = []
    iterations = 0
    tokens = 0

    def finish(event: StreamEvent) -> StreamEvent:
        state = _terminal_state(event)
        result = ""
        error = None
        if isinstance(event, DoneEvent):
            result = event.result
        else:
            error = event.message
            if state == LoopState.DONE_MAX_ITER:
                result = MAX_ITERATIONS_RESULT

        log_event(
            "agent_loop_end",
            run_id=run_id,
            state=state.value,
            iterations=iterations,
            tools_used=tools_used,
            error=error,
            total_tokens=tokens,
        )
        if store is not None:
            try:
                store.save_run(
                    run_id=run_id,
                    task=task_name,
                    user_message=user_message,
                    success=isinstance(event, DoneEvent) and event.success,
                    iterations=iterations,
                    result=result,
                    error=error,
                    tools_used=tools_used,
                    session=session.model_dump(mode="json", exclude_none=True),
                    total_tokens=tokens or None,
                    total_cost=(tokens / 1000) * config.cost_per_1k_tokens if tokens else None,
                )
            except sqlite3.Error as e:
                log_event("run_persist_failed", run_id=run_id, error=f"{type(e).__name__}: {e}")
        return event

    def cancelled() -> bool:
        return cancel is not None and cancel.cancelled

    log_event(
        "agent_loop_start",
        run_id=run_id,
        task=task_name,
        max_iterations=limit,
        images=len(images or []),
    )

    try:
        briefing = build_briefing(task, session, config=config)
        conversation: List[Message] = [build_initial_message(user_message, images)]
        declarations = registry.declarations()

        def snapshot() -> str:
            return context_snapshot(task, session)

        while iterations < limit:
            if cancelled():
                yield finish(ErrorEvent(message=CANCELLED_ERROR, tools_used=list(tools_used), iterations=iterations))
                return

            iterations += 1
            log_event("agent_iteration_start", run_id=run_id, iteration=iterations)

            try:
                turn = client.create_turn(briefing, conversation, declarations)
            except Exception as e:
                log_event("agent_transport_error", run_id=run_id, iteration=iterations, error_type=type(e).__name__)
                yield finish(ErrorEvent(message=str(e) or type(e).__name__, tools_used=list(tools_used), iterations=iterations))
                return

            tokens += turn.total_tokens or 0

            if cancelled():
                # Reply arrived after cancellation; drop it unread.
                yield finish(ErrorEvent(message=CANCELLED_ERROR, tools_used=list(tools_used), iterations=iterations))
                return

            calls = turn.tool_calls()

            if not calls:
                texts = turn.texts()
                for text in texts:
                    yield TextEvent(chunk=text)
                yield finish(
                    DoneEvent(
                        success=True,
                        tools_used=list(tools_used),
                        iterations=iterations,
                        result="\n".join(texts),
                    )
                )
                return

            results: List[ToolResultBlock] = []
            for call in calls:
                if cancelled():
                    yield finish(ErrorEvent(message=CANCELLED_ERROR, tools_used=list(tools_used), iterations=iterations))
                    return

                tools_used.append(call.name)
                yield ToolCallEvent(name=call.name, input=call.input)

                outcome = registry.run(call.name, call.input, context_accessor=snapshot)
                yield ToolResultEvent(name=call.name, output=outcome.output)

                if outcome.is_completion:
                    # Any later calls in this turn are abandoned without a result.
                    payload = CompletionPayload.model_validate_json(outcome.output)
                    log_event(
                        "agent_completion",
                        run_id=run_id,
                        iteration=iterations,
                        success=payload.success,
                        abandoned=len(calls) - len(results) - 1,
                    )
                    yield finish(
                        DoneEvent(
                            success=payload.success,
                            tools_used=list(tools_used),
                            iterations=iterations,
                            result=payload.notes,
                        )
                    )
                    return

                results.append(ToolResultBlock(call_id=call.id, content=outcome.output))

            conversation.append(Message(role="assistant", content=list(turn.content)))
            conversation.append(Message(role="user", content=results))

        yield finish(ErrorEvent(message=MAX_ITERATIONS_ERROR, tools_used=list(tools_used), iterations=iterations))

    except GeneratorExit:
        log_event("agent_stream_closed", run_id=run_id, iterations=iterations)
        raise
    except Exception as e:
        log_event("agent_loop_error", run_id=run_id, error_type=type(e).__name__)
        yield finish(ErrorEvent(message=f"{type(e).__name__}: {e}", tools_used=list(tools_used), iterations=iterations))


def run_agent_loop(
    client,
    registry: ToolRegistry,
    *,
    task: "TaskType | str",
    user_message: str,
    config: AppConfig,
    session: Optional[SessionContext] = None,
    max_iterations: Optional[int] = None,
    images: Optional[Sequence[ImageAttachment]] = None,
    store: Optional[GradeStore] = None,
    on_event: Optional[Callable[[StreamEvent], None]] = None,
) -> LoopResult:
    """
    Blocking mode: drain the event stream and fold it into one LoopResult.

    Reason:
    - Two copies of the control algorithm would drift.
    Benefit:
    - Blocking and streaming dispatch identically by construction.
    """
    run_id = new_run_id()
    terminal: Optional[StreamEvent] = None

    for event in stream_agent_loop(
        client,
        registry,
        task=task,
        user_message=user_message,
        config=config,
        session=session,
        max_iterations=max_iterations,
        images=images,
        store=store,
        run_id=run_id,
    ):
        if on_event is not None:
            on_event(event)
        if isinstance(event, (DoneEvent, ErrorEvent)):
            terminal = event

    if isinstance(terminal, DoneEvent):
        return LoopResult(
            run_id=run_id,
            success=terminal.success,
            result=terminal.result,
            tools_used=terminal.tools_used,
            iterations=terminal.iterations,
        )

    return LoopResult(
        run_id=run_id,
        success=False,
        result=MAX_ITERATIONS_RESULT if terminal.message == MAX_ITERATIONS_ERROR else "",
        tools_used=terminal.tools_used,
        iterations=terminal.iterations,
        error=terminal.message,
    )
