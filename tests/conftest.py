from datetime import datetime
from pathlib import Path

import pytest
from loguru import logger

from posh_themer.backup import BackupStore

USER_RC = (
    "# my zshrc\n"
    "export PATH=\"$HOME/bin:$PATH\"\n"
    "alias ll='ls -la'\n"
)

THEME_NAMES = ("alpha", "beta", "gamma")


@pytest.fixture()
def themes_dir(tmp_path: Path) -> Path:
    d = tmp_path / "themes"
    d.mkdir()
    # created out of order on purpose
    for name in reversed(THEME_NAMES):
        (d / f"{name}.omp.json").write_text('{"blocks": []}\n')
    return d


@pytest.fixture()
def rc_file(tmp_path: Path) -> Path:
    p = tmp_path / ".zshrc"
    p.write_text(USER_RC)
    return p


@pytest.fixture()
def backup_dir(tmp_path: Path) -> Path:
    return tmp_path / "backups"


@pytest.fixture()
def store(backup_dir: Path) -> BackupStore:
    return BackupStore(backup_dir)


@pytest.fixture()
def frozen_store(backup_dir: Path) -> BackupStore:
    """A store whose clock never advances."""
    return BackupStore(backup_dir, clock=lambda: datetime(2026, 10, 19, 12, 0, 0))


@pytest.fixture()
def log_messages():
    messages: list[str] = []
    sink_id = logger.add(messages.append, level="DEBUG", format="{level} {message}")
    yield messages
    logger.remove(sink_id)


@pytest.fixture(autouse=True)
def reset_logging():
    # cli.run() swaps loguru sinks; drop them so later tests don't write to stale streams
    yield
    logger.remove()
