"""Errors raised while building settings."""

from typing import Iterable, Optional


class ConfigurationError(Exception):
    """The config file or environment could not be turned into settings."""

    def __init__(
        self,
        message: str,
        config_file: Optional[str] = None,
        problems: Optional[Iterable[str]] = None,
    ):
        self.message = message
        self.config_file = config_file
        self.problems = list(problems or [])
        super().__init__(message)

    def __str__(self) -> str:
        text = self.message
        if self.config_file:
            text = f"{text} ({self.config_file})"
        if self.problems:
            text = f"{text}: {'; '.join(self.problems)}"
        return text
