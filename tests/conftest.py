"""Shared test fixtures."""

from __future__ import annotations

import io
from collections.abc import Callable
from dataclasses import replace

import pytest
from helpers import records_from

from pipe_while_read.config import RunConfig, RuntimeSettings
from pipe_while_read.controllers import PipeCliController
from pipe_while_read.engine import RunSummary, Scheduler

FAST_RUNTIME = RuntimeSettings(kill_grace_seconds=0.5, poll_interval_seconds=0.01)


class SchedulerHarness:
    """Scheduler plus the buffer its captured output lands in."""

    def __init__(self, config: RunConfig) -> None:
        self.config = config
        self.output = io.BytesIO()
        self.scheduler: Scheduler = PipeCliController().build_scheduler(config, output=self.output)

    def run(self, data: bytes) -> RunSummary:
        return self.scheduler.run(records_from(data, null_delimited=self.config.null_delimited))

    @property
    def text(self) -> str:
        return self.output.getvalue().decode("utf-8")


@pytest.fixture()
def make_harness() -> Callable[..., SchedulerHarness]:
    """Build a scheduler with fast polling and no retry delay."""

    def _make(command: tuple[str, ...], **overrides) -> SchedulerHarness:
        config = RunConfig(command=command, retry_delay_seconds=0, runtime=FAST_RUNTIME)
        return SchedulerHarness(replace(config, **overrides))

    return _make
