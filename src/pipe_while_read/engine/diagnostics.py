"""User-facing narration on the diagnostic stream."""

from __future__ import annotations

import threading
from collections.abc import Sequence

import rich_click as click


class Diagnostics:
    """Writes styled status lines to stderr.

    Worker threads report retries and timeouts concurrently, so every write
    holds one lock.
    """

    def __init__(self, *, verbose: bool = False, color: bool | None = None) -> None:
        self.verbose = verbose
        self.color = color
        self._lock = threading.Lock()

    def emit(self, message: str, *, fg: str | None = None, dim: bool = False) -> None:
        styled = click.style(message, fg=fg, dim=dim or None)
        with self._lock:
            click.echo(styled, err=True, color=self.color)

    def note(self, message: str) -> None:
        if self.verbose:
            self.emit(message, dim=True)

    def job_started(self, number: int, total: int | None, argv: Sequence[str]) -> None:
        if not self.verbose:
            return
        label = f"[{number}/{total}]" if total is not None else f"[{number}]"
        self.emit(f"{label} {' '.join(argv)}", dim=True)

    def job_failed(self, number: int, exit_code: int) -> None:
        if self.verbose:
            self.emit(f"[FAILED] job {number} exit code {exit_code}", fg="red")

    def retry(self, attempt: int, max_attempts: int, argv: Sequence[str]) -> None:
        if self.verbose:
            self.emit(f"[RETRY {attempt}/{max_attempts}] {' '.join(argv)}", fg="yellow")

    def timeout(self, argv: Sequence[str]) -> None:
        if self.verbose:
            self.emit(f"[TIMEOUT] {' '.join(argv)}", fg="red")

    def error(self, message: str) -> None:
        self.emit(message, fg="red")

    def summary(self, succeeded: int, failed: int) -> None:
        self.emit(f"Completed: {succeeded} succeeded, {failed} failed", dim=True)
