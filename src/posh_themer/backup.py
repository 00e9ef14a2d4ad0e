"""Timestamped backups of the rc file, with rotation and restore."""

from __future__ import annotations

import os
import re
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from loguru import logger

from posh_themer.block import read_content, write_atomically
from posh_themer.config import DEFAULT_MAX_BACKUPS
from posh_themer.errors import PoshIOError

# Fixed width and zero padded: lexicographic order is chronological order
STAMP_FORMAT = "%Y%m%d_%H%M%S_%f"
_STAMP_RE = r"\d{8}_\d{6}_\d{6}"
_CREATE_ATTEMPTS = 5


@dataclass(frozen=True)
class BackupRef:
    source: Path
    path: Path
    stamp: str

    @property
    def created(self) -> datetime:
        return datetime.strptime(self.stamp, STAMP_FORMAT)

    @property
    def name(self) -> str:
        return self.path.name


class BackupStore:
    """Backups of one or more rc files, kept as <name>.backup.<stamp> in backup_dir."""

    def __init__(
        self,
        backup_dir: Path,
        max_kept: int = DEFAULT_MAX_BACKUPS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.backup_dir = Path(backup_dir)
        self.max_kept = max_kept
        self._clock = clock

    def _pattern(self, target: Path) -> re.Pattern[str]:
        return re.compile(rf"^{re.escape(Path(target).name)}\.backup\.({_STAMP_RE})$")

    def _path_for(self, target: Path, stamp: str) -> Path:
        return self.backup_dir / f"{Path(target).name}.backup.{stamp}"

    def _next_stamp(self, target: Path) -> str:
        """Current time, forced past the newest existing backup."""
        now = self._clock()
        existing = self.list_backups(target)
        if existing and now <= existing[0].created:
            now = existing[0].created + timedelta(microseconds=1)
        return now.strftime(STAMP_FORMAT)

    # -- Listing --

    def list_backups(self, target: Path) -> list[BackupRef]:
        """All backups of target, newest first."""
        pattern = self._pattern(target)
        refs = []
        try:
            entries = list(os.scandir(self.backup_dir))
        except FileNotFoundError:
            return []
        except OSError as e:
            raise PoshIOError(f"Cannot list {self.backup_dir}: {e}", self.backup_dir) from e

        for entry in entries:
            match = pattern.match(entry.name)
            if match and entry.is_file(follow_symlinks=False):
                refs.append(BackupRef(Path(target), Path(entry.path), match.group(1)))
        refs.sort(key=lambda ref: ref.stamp, reverse=True)
        return refs

    def latest(self, target: Path) -> BackupRef | None:
        backups = self.list_backups(target)
        return backups[0] if backups else None

    def find(self, target: Path, name: str) -> BackupRef | None:
        """Look up a backup by file name or stamp."""
        for ref in self.list_backups(target):
            if name in (ref.name, ref.stamp):
                return ref
        return None

    # -- Create / rotate / restore --

    def backup(self, target: Path) -> BackupRef:
        """Copy target to a new, never-overwritten backup file."""
        target = Path(target)
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PoshIOError(f"Cannot create backup directory {self.backup_dir}: {e}", self.backup_dir) from e

        for _ in range(_CREATE_ATTEMPTS):
            stamp = self._next_stamp(target)
            dest = self._path_for(target, stamp)
            try:
                with open(dest, "xb") as out:
                    try:
                        with open(target, "rb") as src:
                            shutil.copyfileobj(src, out)
                    except OSError:
                        out.close()
                        dest.unlink(missing_ok=True)
                        raise
                shutil.copystat(target, dest)
            except FileExistsError:
                continue
            except OSError as e:
                raise PoshIOError(f"Cannot back up {target} to {dest}: {e}", target) from e

            logger.info(f"Backed up {target} to {dest}")
            return BackupRef(target, dest, stamp)

        raise PoshIOError(f"Cannot find a free backup name for {target} in {self.backup_dir}", target)

    def rotate(
        self, target: Path, max_kept: int | None = None, keep: BackupRef | None = None
    ) -> list[Path]:
        """Delete backups beyond the newest max_kept. Never raises; returns removed paths.

        The `keep` backup (normally the one just created) is never deleted.
        """
        max_kept = self.max_kept if max_kept is None else max_kept
        try:
            backups = self.list_backups(target)
        except PoshIOError as e:
            logger.warning(f"Backup rotation skipped: {e}")
            return []

        removed = []
        for ref in backups[max_kept:]:
            if keep is not None and ref.path == keep.path:
                continue
            try:
                ref.path.unlink()
            except OSError as e:
                logger.warning(f"Could not remove old backup {ref.path}: {e}")
                continue
            logger.debug(f"Removed old backup {ref.path}")
            removed.append(ref.path)
        return removed

    def restore(self, ref: BackupRef, target: Path | None = None, discard: bool = False) -> Path:
        """Write a backup's content over target (default: its source). Returns target."""
        target = Path(target) if target is not None else ref.source
        write_atomically(target, read_content(ref.path))
        logger.info(f"Restored {target} from {ref.path}")

        if discard:
            try:
                ref.path.unlink()
            except OSError as e:
                raise PoshIOError(f"Restored, but could not delete {ref.path}: {e}", ref.path) from e
        return target
