import argparse
import base64
import json
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from gradeloop.bootstrap import build_app
from gradeloop.config import ConfigError
from gradeloop.core.agent_loop import run_agent_loop, stream_agent_loop
from gradeloop.core.agent_loop_schemas import DoneEvent
from gradeloop.core.context_builder import build_user_message
from gradeloop.core.message_schemas import ImageAttachment
from gradeloop.core.session_schemas import SessionContext, TaskType
from gradeloop.infra.logging import log_event


def load_session(path: Optional[str]) -> SessionContext:
    if not path:
        return SessionContext()
    return SessionContext.model_validate_json(Path(path).read_text(encoding="utf-8"))


def load_images(paths: List[str]) -> List[ImageAttachment]:
    images = []
    for p in paths:
        media_type = mimetypes.guess_type(p)[0] or "image/jpeg"
        data = base64.b64encode(Path(p).read_bytes()).decode("ascii")
        images.append(ImageAttachment(media_type=media_type, data=data))
    return images


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one grading-assistant task.")
    parser.add_argument(
        "task",
        help=f"Task type ({', '.join(t.value for t in TaskType)}); anything else runs as custom",
    )
    parser.add_argument("--message", help="Request text; defaults to the task's standard request")
    parser.add_argument("--session", help="Path to a SessionContext JSON file")
    parser.add_argument("--max-iterations", type=int, default=None)
    parser.add_argument("--image", action="append", default=[], help="Slide image to attach (repeatable)")
    parser.add_argument("--stream", action="store_true", help="Print events as JSON lines")
    parser.add_argument("--no-persist", action="store_true", help="Do not save the run")
    args = parser.parse_args(argv)
    if args.max_iterations is not None and args.max_iterations < 1:
        parser.error("--max-iterations must be at least 1")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        app = build_app()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    session = load_session(args.session)
    images = load_images(args.image)
    message = build_user_message(
        args.task,
        session,
        prompt=args.message,
        submission_content=session.submission_text,
    )
    store = None if args.no_persist else app.store

    if args.stream:
        events = stream_agent_loop(
            app.client,
            app.registry,
            task=args.task,
            user_message=message,
            config=app.config,
            session=session,
            max_iterations=args.max_iterations,
            images=images,
            store=store,
        )
        ok = False
        try:
            for event in events:
                print(event.model_dump_json(), flush=True)
                if isinstance(event, DoneEvent):
                    ok = event.success
        except KeyboardInterrupt:
            events.close()
            log_event("cli_interrupted")
            return 130
        return 0 if ok else 1

    result = run_agent_loop(
        app.client,
        app.registry,
        task=args.task,
        user_message=message,
        config=app.config,
        session=session,
        max_iterations=args.max_iterations,
        images=images,
        store=store,
    )
    print(json.dumps(result.model_dump(), indent=2, ensure_ascii=False))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
