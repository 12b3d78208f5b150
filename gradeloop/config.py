from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os


class ConfigError(RuntimeError):
    """Raised at startup when a required setting is missing or malformed."""


@dataclass(frozen=True)
class AppConfig:
    # Storage
    data_dir: Path
    db_path: Path

    # Model backend
    openai_api_key: str | None
    model: str
    temperature: float
    max_output_tokens: int
    request_timeout_seconds: float
    max_retries: int
    cost_per_1k_tokens: float

    # Loop
    max_iterations: int

    # LMS
    canvas_base_url: str | None
    canvas_api_token: str | None

    # Briefing persona
    teacher_name: str
    teacher_role: str
    school_name: str

    # Content extraction
    content_char_limit: int


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer (got {raw!r})") from e


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number (got {raw!r})") from e


def load_config() -> AppConfig:
    root = Path(os.getenv("GRADELOOP_ROOT", str(Path.cwd())))

    data_dir = Path(os.getenv("GRADELOOP_DATA_DIR", str(root / "data")))
    db_path = Path(os.getenv("GRADELOOP_DB_PATH", str(data_dir / "gradeloop.sqlite3")))

    openai_api_key = os.getenv("OPENAI_API_KEY", "").strip() or None
    model = os.getenv("GRADELOOP_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
    temperature = _float_env("GRADELOOP_TEMPERATURE", 0.2)
    max_output_tokens = _int_env("GRADELOOP_MAX_OUTPUT_TOKENS", 4096)
    request_timeout_seconds = _float_env("GRADELOOP_REQUEST_TIMEOUT", 60.0)
    max_retries = _int_env("GRADELOOP_MAX_RETRIES", 2)
    cost_per_1k_tokens = _float_env("GRADELOOP_COST_PER_1K_TOKENS", 0.00015)

    max_iterations = _int_env("GRADELOOP_MAX_ITERATIONS", 10)
    if max_iterations < 1:
        raise ConfigError("GRADELOOP_MAX_ITERATIONS must be at least 1")

    canvas_base_url = os.getenv("CANVAS_BASE_URL", "").strip().rstrip("/") or None
    canvas_api_token = os.getenv("CANVAS_API_TOKEN", "").strip() or None

    teacher_name = os.getenv("GRADELOOP_TEACHER_NAME", "").strip() or "Not configured"
    teacher_role = os.getenv("GRADELOOP_TEACHER_ROLE", "").strip() or "Teacher"
    school_name = os.getenv("GRADELOOP_SCHOOL_NAME", "").strip() or "the school"

    content_char_limit = _int_env("GRADELOOP_CONTENT_CHAR_LIMIT", 50000)

    return AppConfig(
        data_dir=data_dir,
        db_path=db_path,

        openai_api_key=openai_api_key,
        model=model,
        temperature=temperature,
        max_output_tokens=max_output_tokens,
        request_timeout_seconds=request_timeout_seconds,
        max_retries=max_retries,
        cost_per_1k_tokens=cost_per_1k_tokens,

        max_iterations=max_iterations,

        canvas_base_url=canvas_base_url,
        canvas_api_token=canvas_api_token,

        teacher_name=teacher_name,
        teacher_role=teacher_role,
        school_name=school_name,

        content_char_limit=content_char_limit,
    )
