"""User prompts and formatting helpers."""

from __future__ import annotations

import sys

AFFIRMATIVE = ("y", "yes")
QUIT_WORDS = ("q", "quit")


def is_affirmative(raw: str | None) -> bool:
    """Only an explicit y/yes counts; empty input does not."""
    return raw is not None and raw.strip().lower() in AFFIRMATIVE


def confirm(message: str, default_yes: bool = False) -> bool:
    """Simple y/n confirmation. Returns True/False. 'c', 'cancel' or EOF returns False."""
    suffix = "[Y/n]" if default_yes else "[y/N]"
    try:
        raw = input(f"{message} {suffix} ").strip().lower()
    except EOFError:
        return False
    if raw in ("c", "cancel"):
        return False
    if raw == "":
        return default_yes
    return raw in AFFIRMATIVE


def print_table(headers: list[str], rows: list[list[str]]) -> None:
    """Print a simple formatted table to stdout."""
    if not rows:
        print("  (none)")
        return

    col_widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            col_widths[i] = max(col_widths[i], len(cell))

    header_line = "  ".join(h.ljust(col_widths[i]) for i, h in enumerate(headers))
    sep_line = "  ".join("-" * col_widths[i] for i in range(len(headers)))
    print(header_line)
    print(sep_line)
    for row in rows:
        print("  ".join(cell.ljust(col_widths[i]) for i, cell in enumerate(row)).rstrip())


def error(message: str) -> None:
    """Print an error message to stderr."""
    print(f"Error: {message}", file=sys.stderr)


def info(message: str) -> None:
    """Print an info message."""
    print(message)
