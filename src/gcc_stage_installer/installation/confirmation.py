"""Confirmation policies for destructive steps."""

from typing import Callable, Optional

import click


class ConfirmationPolicy:
    """Decides whether a single destructive step may proceed."""

    name = "base"

    def confirm(self, message: str) -> bool:
        raise NotImplementedError


class InteractiveConfirmation(ConfirmationPolicy):
    """Ask on the terminal; anything but y/yes declines."""

    name = "interactive"

    def __init__(self, prompt: Optional[Callable[..., str]] = None):
        self.prompt = prompt or click.prompt

    def confirm(self, message: str) -> bool:
        try:
            response = self.prompt(
                f"{message} [y/N]",
                default="n",
                show_default=False,
                type=str,
            )
        except click.Abort:
            # EOF or Ctrl-C at the prompt
            return False
        return response.strip().lower() in ("y", "yes")


class AssumeYesConfirmation(ConfirmationPolicy):
    """Unattended runs: every step is approved."""

    name = "assume-yes"

    def confirm(self, message: str) -> bool:
        return True


class DryRunConfirmation(ConfirmationPolicy):
    """Approve everything so each planned step is reported, not performed."""

    name = "dry-run"

    def confirm(self, message: str) -> bool:
        return True


def build_confirmation(assume_yes: bool = False, dry_run: bool = False) -> ConfirmationPolicy:
    if dry_run:
        return DryRunConfirmation()
    if assume_yes:
        return AssumeYesConfirmation()
    return InteractiveConfirmation()
