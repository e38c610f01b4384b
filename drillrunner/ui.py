"""Coloured status messages for the terminal."""

import os
import sys

_RED = "31"
_GREEN = "32"


def _style(text: str, color: str) -> str:
    if sys.stdout.isatty():
        return f"\x1b[{color}m{text}\x1b[0m"
    return text


def _emit(symbol: str, plain: str, message: str, color: str) -> None:
    marker = plain if "NO_EMOJI" in os.environ else symbol
    print(f"{_style(marker, color)} {_style(message, color)}")


def warn(message: str) -> None:
    """Print a warning in red."""
    _emit("⚠️ ", "!", message, _RED)


def success(message: str) -> None:
    """Print a success message in green."""
    _emit("✅", "✓", message, _GREEN)