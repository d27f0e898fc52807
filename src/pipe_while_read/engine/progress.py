"""Progress bar with ETA for buffered runs."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TextIO

import rich_click as click

_FILLED = "█"
_EMPTY = "░"
_UNKNOWN_ETA = "--:--"


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    """Scheduler counters at one point in time."""

    processed: int
    total: int
    failed: int
    elapsed_seconds: float

    @property
    def percentage(self) -> int:
        if self.total <= 0:
            return 0
        return self.processed * 100 // self.total

    @property
    def eta_seconds(self) -> float | None:
        if self.processed <= 0 or self.elapsed_seconds <= 0:
            return None
        return self.elapsed_seconds * (self.total - self.processed) / self.processed


def format_eta(seconds: float | None) -> str:
    if seconds is None:
        return _UNKNOWN_ETA
    whole = int(seconds)
    return f"{whole // 60:02d}:{whole % 60:02d}"


def render_bar(percentage: int, width: int) -> str:
    filled = min(width, max(0, percentage * width // 100))
    return _FILLED * filled + _EMPTY * (width - filled)


def render_progress_line(snapshot: ProgressSnapshot, *, width: int = 20) -> str:
    bar = render_bar(snapshot.percentage, width)
    return (
        f"\r[{bar}] {snapshot.percentage:3d}% "
        f"({snapshot.processed}/{snapshot.total}) ETA: {format_eta(snapshot.eta_seconds)}  "
    )


def render_done_line(snapshot: ProgressSnapshot, *, width: int = 20) -> str:
    line = (
        f"\r[{render_bar(100, width)}] 100% "
        f"({snapshot.total}/{snapshot.total}) Done in {int(snapshot.elapsed_seconds)}s"
    )
    if snapshot.failed:
        line += f" ({snapshot.failed} failed)"
    return line


class ProgressReporter:
    """Observer that redraws a progress line on the diagnostic stream.

    It only writes; the scheduler never waits on it. Nothing is drawn unless
    the stream is an interactive terminal.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        total: int,
        enabled: bool = True,
        width: int = 20,
        color: bool | None = None,
        stream: TextIO | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.total = total
        self.width = width
        self.color = color
        self.stream = stream if stream is not None else click.get_text_stream("stderr")
        self._clock = clock
        self._started_at = clock()
        self.enabled = enabled and total > 0 and _is_tty(self.stream)

    def snapshot(self, processed: int, failed: int) -> ProgressSnapshot:
        return ProgressSnapshot(
            processed=processed,
            total=self.total,
            failed=failed,
            elapsed_seconds=self._clock() - self._started_at,
        )

    def update(self, processed: int, failed: int) -> None:
        if not self.enabled:
            return
        line = render_progress_line(self.snapshot(processed, failed), width=self.width)
        click.echo(click.style(line, fg="cyan"), file=self.stream, nl=False, color=self.color)

    def finish(self, processed: int, failed: int) -> None:
        if not self.enabled:
            return
        snapshot = self.snapshot(processed, failed)
        click.echo(
            click.style(render_done_line(snapshot, width=self.width), fg="green"),
            file=self.stream,
            color=self.color,
        )


def _is_tty(stream: TextIO) -> bool:
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())
