"""Interactive theme selection: list, preview, confirm, apply or quit.

The session is a small state machine. Each input produces a new SessionState
value; nothing is mutated in place:

    LISTING -> PREVIEWING -> LISTING
    LISTING -> CONFIRMING -> APPLIED | LISTING
    LISTING -> QUIT

Previewing never touches the rc file. The applier runs once, on APPLIED.
End of input or Ctrl-C in any state before APPLIED ends the session as QUIT.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from enum import Enum

from loguru import logger

from posh_themer.apply import ApplyResult
from posh_themer.backup import BackupRef
from posh_themer.catalog import Variant, require_variants
from posh_themer.errors import PoshError
from posh_themer.utils import QUIT_WORDS, info, is_affirmative, print_table

LISTING_PROMPT = "Your choice: "
INVALID_MESSAGE = "Invalid selection. Please try again."

_APPLY_RE = re.compile(r"^(\d+)$")
_PREVIEW_RE = re.compile(r"^p\s*(\d+)$")


class State(Enum):
    LISTING = "listing"
    PREVIEWING = "previewing"
    CONFIRMING = "confirming"
    APPLIED = "applied"
    QUIT = "quit"


class ChoiceKind(Enum):
    APPLY = "apply"
    PREVIEW = "preview"
    QUIT = "quit"
    INVALID = "invalid"


@dataclass(frozen=True)
class Choice:
    kind: ChoiceKind
    index: int | None = None


@dataclass(frozen=True)
class SessionState:
    state: State
    variants: tuple[Variant, ...]
    active: Variant | None = None
    selected: Variant | None = None
    message: str | None = None


class Outcome(Enum):
    APPLIED = "applied"
    QUIT = "quit"
    ERROR = "error"


@dataclass(frozen=True)
class SessionResult:
    outcome: Outcome
    variant_id: str | None = None
    backup: BackupRef | None = None
    reload_requested: bool = False
    error: PoshError | None = None

    @classmethod
    def applied(cls, result: ApplyResult) -> SessionResult:
        return cls(Outcome.APPLIED, result.variant_id, result.backup, result.reload_requested)

    @classmethod
    def quit(cls) -> SessionResult:
        return cls(Outcome.QUIT)

    @classmethod
    def failed(cls, err: PoshError) -> SessionResult:
        return cls(Outcome.ERROR, error=err)

    @property
    def error_kind(self) -> str | None:
        return self.error.kind if self.error is not None else None

    @property
    def exit_code(self) -> int:
        return 1 if self.outcome is Outcome.ERROR else 0


# -- Transitions --

def parse_choice(raw: str) -> Choice:
    """'N' applies theme N, 'pN' previews it, 'q' quits."""
    text = raw.strip().lower()
    if text in QUIT_WORDS:
        return Choice(ChoiceKind.QUIT)
    if m := _APPLY_RE.match(text):
        return Choice(ChoiceKind.APPLY, int(m.group(1)))
    if m := _PREVIEW_RE.match(text):
        return Choice(ChoiceKind.PREVIEW, int(m.group(1)))
    return Choice(ChoiceKind.INVALID)


def on_listing_input(s: SessionState, raw: str) -> SessionState:
    choice = parse_choice(raw)
    if choice.kind is ChoiceKind.QUIT:
        return replace(s, state=State.QUIT, selected=None, message=None)

    if choice.kind is not ChoiceKind.INVALID and 1 <= choice.index <= len(s.variants):
        selected = s.variants[choice.index - 1]
        if choice.kind is ChoiceKind.PREVIEW:
            return replace(s, state=State.PREVIEWING, selected=selected, message=None)
        return replace(s, state=State.CONFIRMING, selected=selected, message=None)

    return replace(s, state=State.LISTING, selected=None, message=INVALID_MESSAGE)


def on_preview_done(s: SessionState) -> SessionState:
    return replace(s, state=State.LISTING, selected=None, message=None)


def on_confirm_input(s: SessionState, raw: str) -> SessionState:
    if is_affirmative(raw):
        return replace(s, state=State.APPLIED, message=None)
    return replace(s, state=State.LISTING, selected=None, message="No changes made.")


# -- Presentation --

def print_catalog(variants: Sequence[Variant], active: Variant | None) -> None:
    info("\nAvailable Oh My Posh themes:")
    rows = [
        [str(i), v.display_name, "*" if v == active else ""]
        for i, v in enumerate(variants, 1)
    ]
    print_table(["#", "Theme", "Active"], rows)

    if active is not None:
        info(f"\nCurrent theme: {active.display_name}")
    else:
        info("\nNo Oh My Posh theme is configured in the managed block.")
    info("\nOptions:")
    info(f"- Enter a number (1-{len(variants)}) to select a theme")
    info("- Enter 'p' followed by a number to preview a theme (e.g. 'p1')")
    info("- Enter 'q' to quit")


# -- Runner --

Presenter = Callable[[Sequence[Variant], Variant | None], None]


class SelectionSession:
    """Drive the state machine against real input, preview and apply collaborators."""

    def __init__(
        self,
        load_catalog: Callable[[], Sequence[Variant]],
        load_active: Callable[[Sequence[Variant]], Variant | None],
        applier: Callable[[Variant], ApplyResult],
        previewer: Callable[[Variant], None],
        presenter: Presenter = print_catalog,
        prompt: Callable[[str], str] | None = None,
        notify: Callable[[str], None] = info,
    ) -> None:
        self._load_catalog = load_catalog
        self._load_active = load_active
        self._applier = applier
        self._previewer = previewer
        self._presenter = presenter
        self._prompt = prompt if prompt is not None else input
        self._notify = notify

    def start(self) -> SessionState:
        """Scan the catalog (never cached between sessions) and enter LISTING."""
        variants = tuple(require_variants(self._load_catalog()))
        return SessionState(State.LISTING, variants, self._load_active(variants))

    def step(self, s: SessionState) -> SessionState:
        """Perform one state's I/O and return the next state."""
        if s.state is State.LISTING:
            if s.message:
                self._notify(s.message)
            self._presenter(s.variants, s.active)
            return on_listing_input(s, self._prompt(LISTING_PROMPT))

        if s.state is State.PREVIEWING:
            try:
                self._previewer(s.selected)
            except (PoshError, OSError) as e:
                logger.warning(f"Preview of {s.selected.identifier} failed: {e}")
                self._notify(f"Preview failed: {e}")
            return on_preview_done(s)

        if s.state is State.CONFIRMING:
            self._notify(f"\nYou selected: {s.selected.display_name}")
            return on_confirm_input(s, self._prompt("Do you want to apply this theme? (y/n): "))

        return s

    def run(self) -> SessionResult:
        try:
            s = self.start()
        except PoshError as e:
            return SessionResult.failed(e)

        try:
            while s.state not in (State.APPLIED, State.QUIT):
                s = self.step(s)
        except (EOFError, KeyboardInterrupt):
            s = replace(s, state=State.QUIT)

        if s.state is State.QUIT:
            self._notify("No changes made. Exiting...")
            return SessionResult.quit()

        try:
            result = self._applier(s.selected)
        except PoshError as e:
            return SessionResult.failed(e)
        return SessionResult.applied(result)
