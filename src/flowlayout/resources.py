from importlib import resources
from typing import Optional

PROMPT_FILE = "data/system_prompt.txt"


def load_prompt(language: Optional[str] = None) -> str:
    """Generator instructions, optionally pinned to an output language code."""
    with resources.files(__package__).joinpath(PROMPT_FILE).open("r", encoding="utf-8") as fh:
        text = fh.read()
    if language:
        text = text.rstrip("\n") + (
            f"\n\nUser-selected language code: {language}. You only handle structure and labels.\n"
        )
    return text
