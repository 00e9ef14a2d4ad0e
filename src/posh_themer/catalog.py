"""Theme catalog: scan the themes directory and resolve a theme by number or name."""

from __future__ import annotations

import os
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from posh_themer.config import DEFAULT_THEME_SUFFIX
from posh_themer.errors import EmptyCatalogError, OutOfRangeError, PoshIOError


@dataclass(frozen=True)
class Variant:
    """One theme file in the catalog."""

    identifier: str  # file name, unique within the catalog directory
    path: Path
    display_name: str  # file name without the catalog suffix


def _scan(catalog_dir: Path, suffix: str) -> Iterator[Variant]:
    with os.scandir(catalog_dir) as entries:
        for entry in entries:
            if not entry.name.endswith(suffix) or entry.name == suffix:
                continue
            if "\n" in entry.name or "\r" in entry.name:
                logger.debug(f"Skipping theme file with a line break in its name: {entry.name!r}")
                continue
            if not entry.is_file():
                continue
            yield Variant(entry.name, Path(entry.path), entry.name[: -len(suffix)])


def list_variants(catalog_dir: Path, suffix: str = DEFAULT_THEME_SUFFIX) -> list[Variant]:
    """Return the catalog's themes sorted by file name bytes (locale independent).

    A missing directory is an empty catalog. Callers that need a selection
    should pass the result through require_variants().
    """
    catalog_dir = Path(catalog_dir)
    try:
        variants = sorted(_scan(catalog_dir, suffix), key=lambda v: os.fsencode(v.identifier))
    except FileNotFoundError:
        logger.debug(f"Themes directory {catalog_dir} does not exist")
        return []
    except OSError as e:
        raise PoshIOError(f"Cannot read themes directory {catalog_dir}: {e}", catalog_dir) from e

    logger.debug(f"Found {len(variants)} theme(s) in {catalog_dir}")
    return variants


def require_variants(variants: Sequence[Variant], catalog_dir: Path | None = None) -> Sequence[Variant]:
    if not variants:
        where = f" in {catalog_dir}" if catalog_dir is not None else ""
        raise EmptyCatalogError(f"No themes found{where}.")
    return variants


def resolve(variants: Sequence[Variant], index: int) -> Variant:
    """Return the theme at a one-based index."""
    require_variants(variants)
    if not 1 <= index <= len(variants):
        raise OutOfRangeError(f"Theme number {index} is out of range (1-{len(variants)}).")
    return variants[index - 1]


def resolve_name(variants: Sequence[Variant], name: str) -> Variant:
    """Resolve a number, a file name, or a display name to a theme."""
    require_variants(variants)
    name = name.strip()
    if name.isdecimal():
        return resolve(variants, int(name))
    for variant in variants:
        if name in (variant.identifier, variant.display_name):
            return variant
    raise OutOfRangeError(f"No theme named '{name}'.")


def find_by_path(variants: Sequence[Variant], path: Path | None) -> Variant | None:
    """Map an activation line's --config path back to a catalog theme."""
    if path is None:
        return None
    wanted = os.path.realpath(path.expanduser())
    for variant in variants:
        if os.path.realpath(variant.path) == wanted:
            return variant
    return None
