"""Shell rc management: locate, extract, remove and insert the managed theme block."""

from __future__ import annotations

import os
import shlex
import tempfile
from pathlib import Path

from loguru import logger

from posh_themer.errors import MalformedBlockError, PoshIOError

START_MARKER = "# --- Oh My Posh Theme Start ---"
END_MARKER = "# --- Oh My Posh Theme End ---"
BEGIN_COMMENT = "# BEGIN: Oh My Posh theme block (auto-generated)"
END_COMMENT = "# END: Oh My Posh theme block"

_EVAL_OPEN = 'eval "$('
_EVAL_CLOSE = ')"'

# rc files are passed through byte for byte
ENCODING = "utf-8"
ERRORS = "surrogateescape"


def _split_lines(content: str) -> list[str]:
    """Split on "\\n" only, keeping line endings, so "".join() gives back content."""
    parts = content.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _is_marker(line: str, marker: str) -> bool:
    return line.rstrip("\r\n") == marker


def _find_block(lines: list[str]) -> tuple[int, int | None] | None:
    """Return (start, end) indexes of the first block, end None if unterminated."""
    for start, line in enumerate(lines):
        if _is_marker(line, START_MARKER):
            for end in range(start + 1, len(lines)):
                if _is_marker(lines[end], END_MARKER):
                    return start, end
            return start, None
    return None


# -- Activation line --

def render_activation_line(theme_path: Path | str, shell: str) -> str:
    """Build the eval line that activates a theme, e.g.

        eval "$(oh-my-posh init zsh --config '/home/me/.oh-my-posh-themes/atomic.omp.json')"
    """
    path = str(theme_path)
    if "\n" in path or "\r" in path:
        raise ValueError(f"Theme path contains a line break: {path!r}")
    quoted = "'" + path.replace("'", "'\\''") + "'"
    return f"{_EVAL_OPEN}oh-my-posh init {shell} --config {quoted}{_EVAL_CLOSE}"


def parse_activation_line(line: str) -> Path | None:
    """Return the --config path of an activation line, or None if the line is not one."""
    text = line.strip()
    if not (text.startswith(_EVAL_OPEN) and text.endswith(_EVAL_CLOSE)):
        return None
    try:
        tokens = shlex.split(text[len(_EVAL_OPEN):-len(_EVAL_CLOSE)])
    except ValueError:
        return None
    if len(tokens) < 3 or tokens[:2] != ["oh-my-posh", "init"]:
        return None

    for i, token in enumerate(tokens):
        if token == "--config" and i + 1 < len(tokens):
            return Path(tokens[i + 1])
        if token.startswith("--config="):
            return Path(token[len("--config="):])
    return None


# -- Block codec --

def extract_active_theme(content: str) -> Path | None:
    """Return the theme path named inside the managed block.

    None when there is no block, the block is unterminated, or it does not
    contain exactly one activation line. Never raises.
    """
    lines = _split_lines(content)
    found = _find_block(lines)
    if found is None or found[1] is None:
        return None
    start, end = found

    paths = [p for p in (parse_activation_line(line) for line in lines[start + 1:end]) if p]
    if len(paths) != 1:
        return None
    return paths[0]


def remove_block(content: str) -> str:
    """Remove the managed block (start marker through end marker, inclusive).

    Content without a start marker is returned unchanged. A start marker with
    no end marker, or a second block, raises MalformedBlockError: guessing
    where the block ends could delete user content.
    """
    lines = _split_lines(content)
    found = _find_block(lines)
    if found is None:
        return content

    start, end = found
    if end is None:
        raise MalformedBlockError(
            f"'{START_MARKER}' on line {start + 1} has no matching '{END_MARKER}'"
        )

    remaining = lines[:start] + lines[end + 1:]
    if any(_is_marker(line, START_MARKER) for line in remaining):
        raise MalformedBlockError(
            f"More than one managed block (another '{START_MARKER}' after line {start + 1})"
        )
    return "".join(remaining)


def insert_block(content: str, body: str) -> str:
    """Append the managed block wrapping a single body line to the end of content."""
    line = body.rstrip("\n")
    if "\n" in line:
        raise ValueError("Block body must be a single line")

    block = (
        f"{START_MARKER}\n"
        f"{BEGIN_COMMENT}\n"
        f"{line}\n"
        f"{END_COMMENT}\n"
        f"{END_MARKER}\n"
    )
    # The start marker must begin its own line
    if content and not content.endswith("\n"):
        content += "\n"
    return content + block


def replace_block(content: str, body: str) -> str:
    """Remove any existing block, then insert a fresh one: exactly one block afterwards."""
    return insert_block(remove_block(content), body)


# -- File I/O --

def read_content(path: Path) -> str:
    try:
        with open(path, encoding=ENCODING, errors=ERRORS, newline="") as f:
            return f.read()
    except OSError as e:
        raise PoshIOError(f"Cannot read {path}: {e}", path) from e


def write_atomically(path: Path, content: str) -> None:
    """Write content to a temp file beside path, then rename it over path.

    A symlinked rc file is written through to its target. On any failure the
    temp file is removed and path is left untouched.
    """
    path = Path(os.path.realpath(path))
    fd, tmp_name = None, None
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "w", encoding=ENCODING, errors=ERRORS, newline="") as f:
            fd = None
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if path.exists():
            os.chmod(tmp_name, path.stat().st_mode & 0o7777)
        os.replace(tmp_name, path)
        tmp_name = None
        logger.debug(f"Wrote {path} ({len(content)} chars)")
    except OSError as e:
        raise PoshIOError(f"Cannot write {path}: {e}", path) from e
    finally:
        if fd is not None:
            os.close(fd)
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                logger.warning(f"Could not remove temporary file {tmp_name}")
