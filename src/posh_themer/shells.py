"""Supported shells: rc file locations and how oh-my-posh is initialized in each."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ShellProfile:
    name: str
    rc_file: str

    def rc_path(self) -> Path:
        return Path(self.rc_file).expanduser()


# Both shells use the same activation syntax:
#   eval "$(oh-my-posh init <shell> --config '<theme>')"
SHELLS: dict[str, ShellProfile] = {
    "zsh": ShellProfile("zsh", "~/.zshrc"),
    "bash": ShellProfile("bash", "~/.bashrc"),
}

DEFAULT_SHELL = "zsh"


def get_profile(name: str) -> ShellProfile:
    """Return the profile for a shell name. Raises ValueError if unsupported."""
    try:
        return SHELLS[name]
    except KeyError:
        supported = ", ".join(sorted(SHELLS))
        raise ValueError(f"Unsupported shell '{name}' (supported: {supported})") from None


def detect_shell(env: Mapping[str, str] | None = None) -> ShellProfile:
    """Pick the profile matching $SHELL, falling back to zsh."""
    env = os.environ if env is None else env
    login_shell = os.path.basename(env.get("SHELL", ""))
    return SHELLS.get(login_shell, SHELLS[DEFAULT_SHELL])
