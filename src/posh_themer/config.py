"""Settings: defaults, POSH_THEMER_* environment overrides, CLI overrides."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from posh_themer.shells import detect_shell, get_profile

ENV_PREFIX = "POSH_THEMER_"

DEFAULT_THEMES_DIR = "~/.oh-my-posh-themes"
DEFAULT_THEME_SUFFIX = ".omp.json"
DEFAULT_MAX_BACKUPS = 5
DEFAULT_PREVIEW_SECONDS = 3.0

# env var suffix -> Settings field
_ENV_FIELDS = {
    "SHELL": "shell",
    "TARGET": "target",
    "THEMES_DIR": "themes_dir",
    "THEME_SUFFIX": "theme_suffix",
    "BACKUP_DIR": "backup_dir",
    "MAX_BACKUPS": "max_backups",
    "PREVIEW_SECONDS": "preview_seconds",
    "BINARY": "posh_binary",
    "LOG_FILE": "log_file",
}


class Settings(BaseModel):
    shell: str = Field(default_factory=lambda: detect_shell().name)
    target: Path | None = None  # None -> the shell's rc file
    themes_dir: Path = Field(default_factory=lambda: Path(DEFAULT_THEMES_DIR).expanduser())
    theme_suffix: str = DEFAULT_THEME_SUFFIX
    backup_dir: Path | None = None  # None -> next to the target
    max_backups: int = Field(default=DEFAULT_MAX_BACKUPS, ge=1)
    preview_seconds: float = Field(default=DEFAULT_PREVIEW_SECONDS, ge=0, le=30)
    posh_binary: str = "oh-my-posh"
    log_file: Path | None = None

    @field_validator("shell")
    @classmethod
    def _known_shell(cls, value: str) -> str:
        get_profile(value)
        return value

    @field_validator("theme_suffix")
    @classmethod
    def _dotted_suffix(cls, value: str) -> str:
        if not value.startswith("."):
            raise ValueError("theme suffix must start with '.'")
        return value

    @field_validator("target", "themes_dir", "backup_dir", "log_file")
    @classmethod
    def _expand(cls, value: Path | None) -> Path | None:
        return value.expanduser().absolute() if value is not None else None

    @model_validator(mode="after")
    def _fill_paths(self) -> Settings:
        if self.target is None:
            self.target = get_profile(self.shell).rc_path()
        if self.backup_dir is None:
            self.backup_dir = self.target.parent
        return self


def load_settings(env: Mapping[str, str] | None = None, **overrides: Any) -> Settings:
    """Build Settings from POSH_THEMER_* variables, then apply non-None overrides."""
    env = os.environ if env is None else env
    values: dict[str, Any] = {"shell": detect_shell(env).name}

    for suffix, field in _ENV_FIELDS.items():
        raw = env.get(f"{ENV_PREFIX}{suffix}")
        if raw:
            values[field] = raw

    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)
