"""Apply orchestration: backup, rewrite the managed block, persist, request a reload."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from posh_themer import block
from posh_themer.backup import BackupRef, BackupStore
from posh_themer.catalog import Variant
from posh_themer.errors import AppliedError, PoshError, TargetMissingError


@dataclass(frozen=True)
class ApplyResult:
    variant_id: str
    backup: BackupRef
    # The running shell still has the old prompt; the caller decides how to reload
    reload_requested: bool = True


def _backup_first(target: Path, store: BackupStore) -> BackupRef:
    if not target.exists():
        raise TargetMissingError(target)
    ref = store.backup(target)
    store.rotate(target, keep=ref)
    return ref


def apply_theme(target: Path, variant: Variant, store: BackupStore, shell: str) -> ApplyResult:
    """Make `variant` the active theme in the rc file at `target`.

    Raises TargetMissingError or PoshIOError before anything is written, and
    AppliedError (carrying the backup) if the rewrite fails after the backup.
    Rolling back is left to the caller.
    """
    target = Path(target)
    body = block.render_activation_line(variant.path, shell)
    ref = _backup_first(target, store)

    try:
        content = block.read_content(target)
        block.write_atomically(target, block.replace_block(content, body))
    except PoshError as e:
        logger.error(f"Applying {variant.identifier} to {target} failed: {e}")
        raise AppliedError(e, ref) from e

    logger.info(f"Applied theme {variant.identifier} to {target}")
    return ApplyResult(variant.identifier, ref)


def remove_theme(target: Path, store: BackupStore) -> BackupRef | None:
    """Strip the managed block from the rc file. Returns the backup, or None if there was no block."""
    target = Path(target)
    if not target.exists():
        raise TargetMissingError(target)

    content = block.read_content(target)
    stripped = block.remove_block(content)
    if stripped == content:
        return None

    ref = _backup_first(target, store)
    try:
        # Re-read: the backup is of this content, not of the earlier read
        content = block.read_content(target)
        block.write_atomically(target, block.remove_block(content))
    except PoshError as e:
        raise AppliedError(e, ref) from e

    logger.info(f"Removed theme block from {target}")
    return ref


def restore_backup(
    target: Path, ref: BackupRef, store: BackupStore, discard: bool = False
) -> BackupRef | None:
    """Overwrite the rc file with a backup, snapshotting the current content first.

    Returns the snapshot of the replaced content, or None if target did not
    exist. Old backups are rotated only after the restore has succeeded.
    """
    target = Path(target)
    current = store.backup(target) if target.exists() else None

    try:
        store.restore(ref, target, discard=discard)
    except PoshError as e:
        if current is None:
            raise
        logger.error(f"Restoring {target} from {ref.path} failed: {e}")
        raise AppliedError(e, current) from e

    if current is not None:
        store.rotate(target, keep=current)
    return current
