from pathlib import Path
from string import Template

PROMPT_DIR = Path(__file__).parent.parent / "prompts"


class PromptNotFound(FileNotFoundError):
    """Raised when neither a versioned nor a flat prompt file exists."""


def _prompt_path(name: str, version: str) -> Path:
    versioned_path = PROMPT_DIR / name / f"{version}.txt"
    flat_path = PROMPT_DIR / f"{name}.txt"
    return versioned_path if versioned_path.exists() else flat_path


def has_prompt(name: str, *, version: str = "v1") -> bool:
    return _prompt_path(name, version).exists()


def load_prompt(name: str, *, version: str = "v1", **kwargs) -> str:
    """
    Load prompts/<name>/<version>.txt (or prompts/<name>.txt) and fill its
    $placeholders.

    Reason:
    - Prompt text lives beside the code, versioned, not inside f-strings.
    Benefit:
    - string.Template needs no brace escaping, so JSON examples in prompts
      stay readable.
    """
    prompt_path = _prompt_path(name, version)
    if not prompt_path.exists():
        raise PromptNotFound(f"No prompt named '{name}' (version {version}) under {PROMPT_DIR}")

    with open(prompt_path, "r", encoding="utf-8") as f:
        template = Template(f.read())

    try:
        return template.substitute(**kwargs)
    except KeyError as e:
        raise RuntimeError(
            f"Prompt substitution failed for '{name}'. Missing variable: {e}"
        )
