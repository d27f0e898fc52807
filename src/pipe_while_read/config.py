"""Run configuration and environment-driven runtime settings."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from pipe_while_read.engine.models import OutputMode
from pipe_while_read.engine.placeholders import DEFAULT_DELIMITER, DEFAULT_REPLACE_TOKEN

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True, slots=True)
class RuntimeSettings:
    """Tunables that are not worth a command-line flag."""

    kill_grace_seconds: float = 2.0
    poll_interval_seconds: float = 0.05
    progress_width: int = 20
    log_level: str = "WARNING"
    no_color: bool = False

    @classmethod
    def from_env(cls) -> RuntimeSettings:
        """Load settings from environment, falling back to defaults."""

        settings = cls(
            kill_grace_seconds=_env_float("PIPE_WHILE_READ_KILL_GRACE_SECONDS", 2.0),
            poll_interval_seconds=_env_float("PIPE_WHILE_READ_POLL_INTERVAL_SECONDS", 0.05),
            progress_width=_env_int("PIPE_WHILE_READ_PROGRESS_WIDTH", 20),
            log_level=os.getenv("PIPE_WHILE_READ_LOG_LEVEL", "WARNING").strip().upper(),
            no_color=bool(os.getenv("NO_COLOR", "")),
        )
        settings.validate()
        return settings

    @property
    def color(self) -> bool | None:
        """Value for ``click.echo(color=...)``: force off, or let click decide."""

        return False if self.no_color else None

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level)

    def validate(self) -> None:
        if self.kill_grace_seconds <= 0:
            raise ValueError("PIPE_WHILE_READ_KILL_GRACE_SECONDS must be > 0.")
        if self.poll_interval_seconds <= 0:
            raise ValueError("PIPE_WHILE_READ_POLL_INTERVAL_SECONDS must be > 0.")
        if self.progress_width <= 0:
            raise ValueError("PIPE_WHILE_READ_PROGRESS_WIDTH must be a positive integer.")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"Invalid PIPE_WHILE_READ_LOG_LEVEL: {self.log_level!r}. "
                f"Expected one of {', '.join(sorted(_LOG_LEVELS))}.",
            )


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Everything one invocation needs, built once from parsed options."""

    command: tuple[str, ...]
    dry_run: bool = False
    verbose: bool = False
    quiet: bool = False
    jobs: int = 1
    timeout_seconds: float = 0.0
    retries: int = 0
    retry_delay_seconds: float = 1.0
    keep_order: bool = False
    progress: bool = False
    null_delimited: bool = False
    delimiter: str = DEFAULT_DELIMITER
    replace_token: str = DEFAULT_REPLACE_TOKEN
    tag: bool = False
    fail_fast: bool = False
    pass_stdin: bool = False
    delay_seconds: float = 0.0
    trim: bool = False
    runtime: RuntimeSettings = field(default_factory=RuntimeSettings)

    @property
    def parallel(self) -> bool:
        return self.jobs > 1

    @property
    def needs_buffering(self) -> bool:
        """Whether the record total must be known before the first job starts."""

        return self.progress

    @property
    def output_mode(self) -> OutputMode:
        if self.quiet:
            return OutputMode.DISCARD
        if self.tag or (self.keep_order and self.parallel):
            return OutputMode.CAPTURE
        return OutputMode.INHERIT

    def validate(self) -> None:
        """Raise ValueError for option combinations that cannot run."""

        if not self.command:
            raise ValueError("Missing command to run.")
        if self.jobs < 1:
            raise ValueError("--jobs must be >= 1.")
        if self.timeout_seconds < 0:
            raise ValueError("--timeout must be >= 0.")
        if self.retries < 0:
            raise ValueError("--retries must be >= 0.")
        if self.retry_delay_seconds < 0:
            raise ValueError("--retry-delay must be >= 0.")
        if self.delay_seconds < 0:
            raise ValueError("--delay must be >= 0.")
        if not self.replace_token:
            raise ValueError("--replace must not be empty.")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as error:
        raise ValueError(f"Invalid number for {name}: {raw!r}") from error


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as error:
        raise ValueError(f"Invalid integer for {name}: {raw!r}") from error
