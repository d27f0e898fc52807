from __future__ import annotations

import io

import allure
import pytest

from pipe_while_read.engine.progress import (
    ProgressReporter,
    ProgressSnapshot,
    format_eta,
    render_bar,
    render_done_line,
    render_progress_line,
)

pytestmark = [
    allure.epic("Reporting"),
    allure.feature("Progress"),
]


class FakeTerminal(io.StringIO):
    def isatty(self) -> bool:
        return True


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_percentage_is_floored() -> None:
    assert ProgressSnapshot(processed=1, total=3, failed=0, elapsed_seconds=1).percentage == 33
    assert ProgressSnapshot(processed=3, total=3, failed=0, elapsed_seconds=1).percentage == 100


def test_eta_is_unknown_before_first_completion() -> None:
    assert ProgressSnapshot(processed=0, total=5, failed=0, elapsed_seconds=4).eta_seconds is None
    assert ProgressSnapshot(processed=2, total=5, failed=0, elapsed_seconds=0).eta_seconds is None


def test_eta_extrapolates_average_job_time() -> None:
    snapshot = ProgressSnapshot(processed=2, total=5, failed=0, elapsed_seconds=10)

    assert snapshot.eta_seconds == pytest.approx(15.0)


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(None, "--:--"), (0, "00:00"), (59.9, "00:59"), (61, "01:01"), (3600, "60:00")],
)
def test_format_eta(seconds: float | None, expected: str) -> None:
    assert format_eta(seconds) == expected


def test_bar_width_and_fill() -> None:
    assert render_bar(0, 10) == "░" * 10
    assert render_bar(50, 10) == "█" * 5 + "░" * 5
    assert render_bar(100, 4) == "████"


def test_progress_line_layout() -> None:
    snapshot = ProgressSnapshot(processed=1, total=4, failed=0, elapsed_seconds=30)

    line = render_progress_line(snapshot, width=4)

    assert line == "\r[█░░░]  25% (1/4) ETA: 01:30  "


def test_done_line_mentions_failures_only_when_present() -> None:
    clean = ProgressSnapshot(processed=4, total=4, failed=0, elapsed_seconds=7.8)
    failing = ProgressSnapshot(processed=4, total=4, failed=2, elapsed_seconds=7.8)

    assert render_done_line(clean, width=2) == "\r[██] 100% (4/4) Done in 7s"
    assert render_done_line(failing, width=2).endswith("Done in 7s (2 failed)")


def test_reporter_is_silent_on_non_terminal_stream() -> None:
    stream = io.StringIO()
    reporter = ProgressReporter(total=3, stream=stream)

    reporter.update(1, 0)
    reporter.finish(3, 0)

    assert reporter.enabled is False
    assert stream.getvalue() == ""


def test_reporter_is_disabled_for_empty_input() -> None:
    assert ProgressReporter(total=0, stream=FakeTerminal()).enabled is False


def test_reporter_redraws_in_place_on_terminal() -> None:
    stream = FakeTerminal()
    clock = FakeClock()
    reporter = ProgressReporter(total=2, width=2, color=False, stream=stream, clock=clock)

    clock.now += 4
    reporter.update(1, 1)
    clock.now += 4
    reporter.finish(2, 1)

    assert stream.getvalue() == (
        "\r[█░]  50% (1/2) ETA: 00:04  "
        "\r[██] 100% (2/2) Done in 8s (1 failed)\n"
    )
