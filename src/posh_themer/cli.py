"""CLI entry point: argparse setup and command dispatch."""

from __future__ import annotations

import argparse
import os
import shutil
import sys
from collections.abc import Sequence
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from posh_themer import __version__
from posh_themer.apply import ApplyResult, apply_theme, remove_theme, restore_backup
from posh_themer.backup import BackupRef, BackupStore
from posh_themer.block import extract_active_theme, read_content
from posh_themer.catalog import Variant, find_by_path, list_variants, require_variants, resolve_name
from posh_themer.config import Settings, load_settings
from posh_themer.errors import AppliedError, MalformedBlockError, PoshError, PoshIOError
from posh_themer.preview import PoshPreviewer
from posh_themer.session import Outcome, SelectionSession, print_catalog
from posh_themer.utils import confirm, error, info, print_table

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"


def configure_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING", format=LOG_FORMAT)
    if log_file is not None:
        logger.add(log_file, level="DEBUG", format="{time:YYYY-MM-DD HH:mm:ss} {level} {message}")


# -- Shared helpers --

def _store(settings: Settings) -> BackupStore:
    return BackupStore(settings.backup_dir, max_kept=settings.max_backups)


def _catalog(settings: Settings) -> list[Variant]:
    return list_variants(settings.themes_dir, settings.theme_suffix)


def _active_path(settings: Settings) -> Path | None:
    """The --config path in the managed block, or None if unreadable or absent."""
    try:
        return extract_active_theme(read_content(settings.target))
    except PoshIOError as e:
        logger.debug(f"No active theme: {e}")
        return None


def _report(err: PoshError, settings: Settings, store: BackupStore | None = None) -> int:
    """Print a user-facing message for err and return the exit status."""
    if isinstance(err, AppliedError):
        error(f"Changing {settings.target} failed: {err.cause}")
        info(f"A backup of the previous version is at {err.backup.path}")
        if isinstance(err.cause, MalformedBlockError):
            # nothing was written
            info(f"The managed block in {settings.target} needs manual inspection.")
        elif store is not None and confirm("Restore the backup now?"):
            try:
                restore_backup(settings.target, err.backup, store)
                info(f"Restored {settings.target}.")
            except PoshError as restore_err:
                error(f"Restore failed: {restore_err}")
                info(f"Copy {err.backup.path} over {settings.target} manually.")
        else:
            info(f"To restore manually: cp '{err.backup.path}' '{settings.target}'")
        return 1

    error(str(err))
    if isinstance(err, MalformedBlockError):
        info(f"{settings.target} needs manual inspection; nothing was changed.")
    return 1


def _applied(result: ApplyResult, settings: Settings, reload: bool) -> None:
    info(f"Theme '{result.variant_id}' applied to {settings.target}.")
    info(f"Backup created at {result.backup.path}")
    if not result.reload_requested:
        return
    if reload:
        info(f"Restarting {settings.shell} to apply changes...")
        sys.stdout.flush()
        os.execvp(settings.shell, [settings.shell])
    info(f"Open a new terminal or run 'exec {settings.shell}' to see the new prompt.")


def _check_binary(settings: Settings) -> None:
    if shutil.which(settings.posh_binary) is None:
        info(f"Warning: '{settings.posh_binary}' was not found on PATH. "
             "The theme is saved but will not render until Oh My Posh is installed.")


# -- Commands --

def cmd_select(args: argparse.Namespace, settings: Settings) -> int:
    """Interactive list / preview / apply session."""
    store = _store(settings)
    session = SelectionSession(
        load_catalog=lambda: require_variants(_catalog(settings), settings.themes_dir),
        load_active=lambda variants: find_by_path(variants, _active_path(settings)),
        applier=lambda variant: apply_theme(settings.target, variant, store, settings.shell),
        previewer=PoshPreviewer(settings.shell, settings.preview_seconds, settings.posh_binary),
    )
    result = session.run()

    if result.outcome is Outcome.APPLIED:
        _check_binary(settings)
        _applied(
            ApplyResult(result.variant_id, result.backup, result.reload_requested),
            settings,
            args.reload,
        )
    elif result.outcome is Outcome.ERROR:
        return _report(result.error, settings, store)
    return result.exit_code


def cmd_list(args: argparse.Namespace, settings: Settings) -> int:
    """List the themes in the catalog."""
    variants = _catalog(settings)
    if not variants:
        info(f"No themes found in {settings.themes_dir}.")
        return 0
    print_catalog(variants, find_by_path(variants, _active_path(settings)))
    return 0


def cmd_current(args: argparse.Namespace, settings: Settings) -> int:
    """Show the active theme."""
    path = _active_path(settings)
    if path is None:
        info(f"No Oh My Posh theme is configured in {settings.target}.")
        return 0
    variant = find_by_path(_catalog(settings), path)
    name = variant.display_name if variant else path.name
    info(f"Current theme: {name} ({path})")
    if variant is None:
        info("Warning: this theme file is not in the themes directory.")
    return 0


def cmd_apply(args: argparse.Namespace, settings: Settings) -> int:
    """Apply a theme by number or name without the interactive menu."""
    store = _store(settings)
    variant = resolve_name(require_variants(_catalog(settings), settings.themes_dir), args.theme)

    if not args.yes and not confirm(f"Apply theme '{variant.display_name}' to {settings.target}?"):
        info("No changes made.")
        return 0

    try:
        result = apply_theme(settings.target, variant, store, settings.shell)
    except PoshError as e:
        return _report(e, settings, store)
    _check_binary(settings)
    _applied(result, settings, args.reload)
    return 0


def cmd_preview(args: argparse.Namespace, settings: Settings) -> int:
    """Preview one theme without changing anything."""
    variant = resolve_name(require_variants(_catalog(settings), settings.themes_dir), args.theme)
    previewer = PoshPreviewer(settings.shell, settings.preview_seconds, settings.posh_binary)
    try:
        previewer(variant)
    except KeyboardInterrupt:
        info("")
    return 0


def cmd_backups(args: argparse.Namespace, settings: Settings) -> int:
    """List backups of the rc file, newest first."""
    backups = _store(settings).list_backups(settings.target)
    print_table(
        ["Backup", "Created"],
        [[ref.name, ref.created.strftime("%Y-%m-%d %H:%M:%S")] for ref in backups],
    )
    return 0


def cmd_restore(args: argparse.Namespace, settings: Settings) -> int:
    """Restore the rc file from a backup (latest by default)."""
    store = _store(settings)
    ref: BackupRef | None
    if args.backup:
        ref = store.find(settings.target, args.backup)
        if ref is None:
            error(f"No backup named '{args.backup}' for {settings.target}.")
            return 1
    else:
        ref = store.latest(settings.target)
        if ref is None:
            error(f"No backups of {settings.target} in {store.backup_dir}.")
            return 1

    if not args.yes and not confirm(f"Overwrite {settings.target} with {ref.name}?"):
        info("No changes made.")
        return 0

    previous = restore_backup(settings.target, ref, store, discard=args.discard)
    info(f"Restored {settings.target} from {ref.path}.")
    if previous is not None:
        info(f"The replaced version was saved to {previous.path}")
    if args.discard:
        info(f"Deleted {ref.name}.")
    return 0


def cmd_remove(args: argparse.Namespace, settings: Settings) -> int:
    """Remove the managed theme block from the rc file."""
    if not args.yes and not confirm(f"Remove the Oh My Posh theme block from {settings.target}?"):
        info("No changes made.")
        return 0

    store = _store(settings)
    try:
        ref = remove_theme(settings.target, store)
    except PoshError as e:
        return _report(e, settings, store)

    if ref is None:
        info(f"{settings.target} has no Oh My Posh theme block.")
    else:
        info(f"Removed the theme block from {settings.target} (backup: {ref.path}).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="posh-themer",
        description="Pick, preview and apply Oh My Posh themes in your shell rc file",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--target", help="Shell rc file to manage (default: ~/.zshrc or ~/.bashrc)")
    parser.add_argument("--themes-dir", help="Directory of *.omp.json themes (default: ~/.oh-my-posh-themes)")
    parser.add_argument("--shell", help="Shell to initialize: zsh or bash (default: from $SHELL)")
    parser.add_argument("--backup-dir", help="Where backups are kept (default: next to the rc file)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # select
    p_select = subparsers.add_parser("select", help="Choose a theme interactively")
    p_select.add_argument("--reload", action="store_true", help="Restart the shell after applying")

    # list
    subparsers.add_parser("list", help="List available themes")

    # current
    subparsers.add_parser("current", help="Show the active theme")

    # apply
    p_apply = subparsers.add_parser("apply", help="Apply a theme by number or name")
    p_apply.add_argument("theme", help="Theme number or name")
    p_apply.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    p_apply.add_argument("--reload", action="store_true", help="Restart the shell after applying")

    # preview
    p_preview = subparsers.add_parser("preview", help="Preview a theme without applying it")
    p_preview.add_argument("theme", help="Theme number or name")

    # backups
    subparsers.add_parser("backups", help="List backups of the rc file")

    # restore
    p_restore = subparsers.add_parser("restore", help="Restore the rc file from a backup")
    p_restore.add_argument("backup", nargs="?", help="Backup file name or timestamp (default: latest)")
    p_restore.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    p_restore.add_argument("--discard", action="store_true", help="Delete the backup after restoring")

    # remove
    p_remove = subparsers.add_parser("remove", help="Remove the theme block from the rc file")
    p_remove.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    return parser


DISPATCH = {
    "select": cmd_select,
    "list": cmd_list,
    "current": cmd_current,
    "apply": cmd_apply,
    "preview": cmd_preview,
    "backups": cmd_backups,
    "restore": cmd_restore,
    "remove": cmd_remove,
}


def run(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = load_settings(
            shell=args.shell,
            target=args.target,
            themes_dir=args.themes_dir,
            backup_dir=args.backup_dir,
        )
    except ValidationError as e:
        error(f"Invalid configuration:\n{e}")
        return 1

    configure_logging(args.verbose, settings.log_file)
    logger.debug(f"Settings: {settings!r}")

    handler = DISPATCH[args.command]
    try:
        return handler(args, settings)
    except PoshError as e:
        return _report(e, settings)


def main() -> None:
    sys.exit(run())
