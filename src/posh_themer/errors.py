"""Error taxonomy shared by the block codec, backup store, catalog and orchestrator."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from posh_themer.backup import BackupRef


class PoshError(Exception):
    """Base class for expected posh-themer failures."""

    kind = "error"


class PoshIOError(PoshError):
    """Filesystem or permission failure."""

    kind = "io"

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class MalformedBlockError(PoshError):
    """The managed block markers are in a state that cannot be edited safely."""

    kind = "malformed-block"


class TargetMissingError(PoshError):
    """The shell rc file does not exist."""

    kind = "target-missing"

    def __init__(self, path: Path) -> None:
        super().__init__(f"{path} not found. Create it before applying a theme.")
        self.path = path


class EmptyCatalogError(PoshError):
    """No themes were found in the catalog directory."""

    kind = "empty-catalog"


class OutOfRangeError(PoshError):
    """A theme index or name does not match the catalog."""

    kind = "out-of-range"


class AppliedError(PoshError):
    """A failure after the backup succeeded. The target may need restoring."""

    kind = "applied"

    def __init__(self, cause: Exception, backup: BackupRef) -> None:
        super().__init__(f"{cause} (backup: {backup.path})")
        self.cause = cause
        self.backup = backup
