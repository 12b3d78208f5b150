import uuid


def new_run_id() -> str:
    """One id per loop invocation; every log line of the run carries it."""
    return uuid.uuid4().hex


def new_pair_id() -> str:
    return uuid.uuid4().hex[:16]
