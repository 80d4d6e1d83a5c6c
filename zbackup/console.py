"""Terminal output helpers."""
from __future__ import annotations

import os
import sys

# ANSI color codes (respect NO_COLOR convention: https://no-color.org)
if os.environ.get("NO_COLOR") is not None:
    GREEN = RED = YELLOW = RESET = ""
else:
    GREEN = "\033[32m"
    RED = "\033[31m"
    YELLOW = "\033[33m"
    RESET = "\033[0m"


def status(message: str) -> None:
    """Progress message; stdout is kept for command results."""
    print(message, file=sys.stderr)


def error(message: str) -> int:
    """Print an error and return the failure exit code."""
    print(f"{RED}ERROR: {message}{RESET}", file=sys.stderr)
    return 1
