import json
import os
import sys
import time
from typing import Any, Dict

_QUIET_VALUES = {"quiet", "off", "none"}


def _jsonable(value: Any) -> Any:
    dump = getattr(value, "model_dump", None)
    if callable(dump):
        return dump(mode="json")
    return str(value)


def log_event(event: str, **fields: Any) -> None:
    """
    Emit one structured JSON line on stderr.

    Reason:
    - Loop runs interleave model calls and tool dispatches; a run_id on every
      line lets one invocation be pulled out of a busy log with grep.
    Benefit:
    - stdout stays free for streamed events and CLI output.
    """
    if os.getenv("GRADELOOP_LOG_LEVEL", "").strip().lower() in _QUIET_VALUES:
        return

    payload: Dict[str, Any] = {
        "ts": time.time(),
        "event": event,
        **fields,
    }
    print(json.dumps(payload, ensure_ascii=False, default=_jsonable), file=sys.stderr)
