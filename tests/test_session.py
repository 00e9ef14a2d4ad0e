from pathlib import Path

import pytest

from posh_themer.apply import ApplyResult, apply_theme
from posh_themer.backup import BackupRef
from posh_themer.catalog import Variant, list_variants
from posh_themer.errors import AppliedError, MalformedBlockError
from posh_themer.session import (
    INVALID_MESSAGE,
    Choice,
    ChoiceKind,
    Outcome,
    SelectionSession,
    SessionState,
    State,
    on_confirm_input,
    on_listing_input,
    on_preview_done,
    parse_choice,
)

from conftest import USER_RC

VARIANTS = tuple(
    Variant(f"{name}.omp.json", Path(f"/themes/{name}.omp.json"), name)
    for name in ("alpha", "beta", "gamma")
)
FAKE_BACKUP = BackupRef(Path("/home/me/.zshrc"), Path("/home/me/.zshrc.backup.x"), "20261019_120000_000000")


def listing() -> SessionState:
    return SessionState(State.LISTING, VARIANTS)


class Recorder:
    """Scripted input plus records of what the session did."""

    def __init__(self, inputs, variants=VARIANTS, active=None):
        self.inputs = list(inputs)
        self.variants = variants
        self.active = active
        self.applied = []
        self.previewed = []
        self.shown_active = []
        self.notes = []
        self.catalog_loads = 0

    def prompt(self, text):
        if not self.inputs:
            raise EOFError
        value = self.inputs.pop(0)
        if isinstance(value, BaseException):
            raise value
        return value

    def load_catalog(self):
        self.catalog_loads += 1
        return list(self.variants)

    def applier(self, variant):
        self.applied.append(variant)
        return ApplyResult(variant.identifier, FAKE_BACKUP)

    def previewer(self, variant):
        self.previewed.append(variant)

    def session(self, **overrides) -> SelectionSession:
        kwargs = dict(
            load_catalog=self.load_catalog,
            load_active=lambda variants: self.active,
            applier=self.applier,
            previewer=self.previewer,
            presenter=lambda variants, active: self.shown_active.append(active),
            prompt=self.prompt,
            notify=self.notes.append,
        )
        kwargs.update(overrides)
        return SelectionSession(**kwargs)


# -- Pure transitions --

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2", Choice(ChoiceKind.APPLY, 2)),
        (" 12 ", Choice(ChoiceKind.APPLY, 12)),
        ("p1", Choice(ChoiceKind.PREVIEW, 1)),
        ("P3", Choice(ChoiceKind.PREVIEW, 3)),
        ("q", Choice(ChoiceKind.QUIT)),
        ("QUIT", Choice(ChoiceKind.QUIT)),
        ("", Choice(ChoiceKind.INVALID)),
        ("beta", Choice(ChoiceKind.INVALID)),
        ("p", Choice(ChoiceKind.INVALID)),
        ("-1", Choice(ChoiceKind.INVALID)),
    ],
)
def test_parse_choice(raw, expected):
    assert parse_choice(raw) == expected


def test_listing_to_confirming():
    s = on_listing_input(listing(), "2")
    assert s.state is State.CONFIRMING
    assert s.selected == VARIANTS[1]


def test_listing_to_previewing_and_back():
    s = on_listing_input(listing(), "p3")
    assert s.state is State.PREVIEWING
    assert s.selected == VARIANTS[2]
    back = on_preview_done(s)
    assert back.state is State.LISTING
    assert back.selected is None


@pytest.mark.parametrize("raw", ["0", "4", "p0", "p9", "x"])
def test_invalid_input_stays_listing(raw):
    s = on_listing_input(listing(), raw)
    assert s.state is State.LISTING
    assert s.message == INVALID_MESSAGE


def test_listing_quit():
    assert on_listing_input(listing(), "q").state is State.QUIT


@pytest.mark.parametrize("raw", ["y", "Y", "yes", " YES "])
def test_confirm_accepts_explicit_yes(raw):
    s = on_listing_input(listing(), "1")
    assert on_confirm_input(s, raw).state is State.APPLIED


@pytest.mark.parametrize("raw", ["", "n", "no", "sure", "1", "q"])
def test_confirm_anything_else_returns_to_listing(raw):
    s = on_confirm_input(on_listing_input(listing(), "1"), raw)
    assert s.state is State.LISTING
    assert s.selected is None


def test_transitions_do_not_mutate_state():
    start = listing()
    on_listing_input(start, "2")
    assert start.state is State.LISTING
    assert start.selected is None


# -- Runner --

def test_select_and_confirm_applies_once():
    rec = Recorder(["2", "y"])
    result = rec.session().run()

    assert rec.applied == [VARIANTS[1]]
    assert result.outcome is Outcome.APPLIED
    assert result.variant_id == "beta.omp.json"
    assert result.backup == FAKE_BACKUP
    assert result.reload_requested
    assert result.exit_code == 0


def test_preview_then_quit_has_no_side_effects():
    rec = Recorder(["p1", "q"])
    result = rec.session().run()

    assert rec.previewed == [VARIANTS[0]]
    assert rec.applied == []
    assert result.outcome is Outcome.QUIT
    assert result.exit_code == 0
    assert result.error is None


def test_declined_confirmation_then_other_theme():
    rec = Recorder(["1", "", "3", "n", "2", "yes"])
    result = rec.session().run()
    assert rec.applied == [VARIANTS[1]]
    assert result.outcome is Outcome.APPLIED


def test_invalid_input_is_reported():
    rec = Recorder(["banana", "q"])
    rec.session().run()
    assert INVALID_MESSAGE in rec.notes


def test_end_of_input_quits():
    rec = Recorder(["2"])  # EOF at the confirmation prompt
    result = rec.session().run()
    assert result.outcome is Outcome.QUIT
    assert rec.applied == []


def test_ctrl_c_during_preview_quits_without_applying():
    rec = Recorder(["p2", "2", "y"])

    def interrupted(variant):
        raise KeyboardInterrupt

    result = rec.session(previewer=interrupted).run()
    assert result.outcome is Outcome.QUIT
    assert rec.applied == []


def test_ctrl_c_at_prompt_quits():
    rec = Recorder([KeyboardInterrupt()])
    assert rec.session().run().outcome is Outcome.QUIT


def test_failed_preview_returns_to_listing():
    rec = Recorder(["p1", "q"])

    def broken(variant):
        raise FileNotFoundError("oh-my-posh")

    result = rec.session(previewer=broken).run()
    assert result.outcome is Outcome.QUIT
    assert len(rec.shown_active) == 2


def test_empty_catalog_is_an_error():
    rec = Recorder(["1", "y"], variants=())
    result = rec.session().run()
    assert result.outcome is Outcome.ERROR
    assert result.error_kind == "empty-catalog"
    assert result.exit_code == 1
    assert rec.applied == []


def test_apply_failure_is_an_error_result():
    rec = Recorder(["1", "y"])

    def failing(variant):
        raise AppliedError(MalformedBlockError("unterminated"), FAKE_BACKUP)

    result = rec.session(applier=failing).run()
    assert result.outcome is Outcome.ERROR
    assert result.error_kind == "applied"
    assert result.error.backup == FAKE_BACKUP
    assert result.exit_code == 1


def test_active_theme_is_shown_as_hint():
    rec = Recorder(["q"], active=VARIANTS[2])
    rec.session().run()
    assert rec.shown_active == [VARIANTS[2]]


def test_catalog_is_scanned_once_per_session():
    rec = Recorder(["p1", "p2", "q", "q"])
    rec.session().run()
    assert rec.catalog_loads == 1
    rec.session().run()
    assert rec.catalog_loads == 2


def test_preview_never_touches_target(rc_file, themes_dir, store):
    variants = list_variants(themes_dir)
    rec = Recorder(["p1", "p2", "p3", "2", "n", "q"], variants=variants)
    result = rec.session(
        applier=lambda v: apply_theme(rc_file, v, store, "zsh"),
    ).run()

    assert result.outcome is Outcome.QUIT
    assert rec.previewed == variants
    assert rc_file.read_text() == USER_RC
    assert store.list_backups(rc_file) == []


def test_session_applies_to_real_file(rc_file, themes_dir, store):
    variants = list_variants(themes_dir)
    rec = Recorder(["2", "y"], variants=variants)
    result = rec.session(applier=lambda v: apply_theme(rc_file, v, store, "zsh")).run()

    assert result.outcome is Outcome.APPLIED
    assert result.backup == store.latest(rc_file)
    assert "beta.omp.json" in rc_file.read_text()
