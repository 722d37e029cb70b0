"""
Header variant loading
"""

from pathlib import Path
from typing import List

from config import ConfigError


def load_variants(path: str) -> List[str]:
    """
    Read header variants, one per line.

    Line endings are removed; blank lines and duplicates are kept, so
    every line in the file becomes exactly one probe.

    Raises:
        ConfigError: If the file cannot be read
    """
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ConfigError(f"Error reading headers: {e}")

    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]
