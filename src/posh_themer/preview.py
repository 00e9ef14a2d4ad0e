"""Transient theme preview in a throwaway oh-my-posh child process."""

from __future__ import annotations

import subprocess
import time
from collections.abc import Callable

from loguru import logger

from posh_themer.catalog import Variant
from posh_themer.config import DEFAULT_PREVIEW_SECONDS
from posh_themer.utils import error, info


def render_prompt_cmd(binary: str, variant: Variant, shell: str) -> list[str]:
    return [binary, "print", "primary", "--config", str(variant.path), "--shell", shell]


class PoshPreviewer:
    """Print a theme's primary prompt, then hold it on screen for `duration` seconds.

    The rc file is never touched: the prompt is rendered by a child process
    and discarded when it exits. Ctrl-C during the wait propagates as
    KeyboardInterrupt so the caller can end the session.
    """

    def __init__(
        self,
        shell: str,
        duration: float = DEFAULT_PREVIEW_SECONDS,
        binary: str = "oh-my-posh",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.shell = shell
        self.duration = duration
        self.binary = binary
        self._sleep = sleep

    def render(self, variant: Variant) -> str | None:
        """Return the rendered prompt, or None if oh-my-posh could not render it."""
        cmd = render_prompt_cmd(self.binary, variant, self.shell)
        logger.debug(f"Preview: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=max(self.duration, 1.0)
            )
        except FileNotFoundError:
            logger.warning(f"Preview unavailable: '{self.binary}' is not installed")
            return None
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.warning(f"Preview of {variant.identifier} failed: {e}")
            return None

        if result.returncode != 0:
            logger.warning(
                f"Preview of {variant.identifier} exited with {result.returncode}: "
                f"{result.stderr.strip()}"
            )
            return None
        return result.stdout

    def __call__(self, variant: Variant) -> None:
        info(f"\nPreviewing theme: {variant.display_name}")
        started = time.monotonic()
        prompt = self.render(variant)
        if prompt is None:
            error(f"Could not render {variant.identifier} with {self.binary}.")
            return

        info(prompt)
        info(f"(preview for {self.duration:g} seconds, Ctrl-C to quit)")
        remaining = self.duration - (time.monotonic() - started)
        if remaining > 0:
            self._sleep(remaining)
