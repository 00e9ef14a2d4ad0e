import subprocess
from pathlib import Path

from posh_themer import preview
from posh_themer.catalog import Variant
from posh_themer.preview import PoshPreviewer, render_prompt_cmd

BETA = Variant("beta.omp.json", Path("/themes/beta.omp.json"), "beta")


def test_render_prompt_cmd():
    assert render_prompt_cmd("oh-my-posh", BETA, "zsh") == [
        "oh-my-posh", "print", "primary", "--config", "/themes/beta.omp.json", "--shell", "zsh",
    ]


def test_preview_prints_prompt_and_waits(monkeypatch, capsys):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append((cmd, kwargs))
        return subprocess.CompletedProcess(cmd, 0, stdout="~/src > ", stderr="")

    sleeps = []
    monkeypatch.setattr(preview.subprocess, "run", fake_run)
    PoshPreviewer("bash", duration=2, sleep=sleeps.append)(BETA)

    assert calls[0][0][-1] == "bash"
    assert calls[0][1]["timeout"] == 2
    assert "~/src > " in capsys.readouterr().out
    assert len(sleeps) == 1
    assert 0 < sleeps[0] <= 2


def test_preview_without_binary(monkeypatch, capsys):
    def missing(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    sleeps = []
    monkeypatch.setattr(preview.subprocess, "run", missing)
    PoshPreviewer("zsh", duration=3, binary="no-such-posh", sleep=sleeps.append)(BETA)

    assert sleeps == []
    assert "Could not render beta.omp.json" in capsys.readouterr().err


def test_preview_failed_render(monkeypatch):
    def failing(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="invalid config")

    monkeypatch.setattr(preview.subprocess, "run", failing)
    assert PoshPreviewer("zsh").render(BETA) is None


def test_preview_timeout(monkeypatch):
    def slow(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

    monkeypatch.setattr(preview.subprocess, "run", slow)
    assert PoshPreviewer("zsh", duration=1).render(BETA) is None
