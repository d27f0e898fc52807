"""Controller wiring a run configuration to the engine."""

from __future__ import annotations

import logging
from typing import BinaryIO

import rich_click as click

from pipe_while_read.config import RunConfig
from pipe_while_read.engine import (
    Diagnostics,
    JobRunner,
    PlaceholderExpander,
    RunSummary,
    Scheduler,
    read_records,
)

logger = logging.getLogger(__name__)


class PipeCliController:
    """Builds the engine components for one invocation and runs them."""

    def build_scheduler(self, config: RunConfig, *, output: BinaryIO | None = None) -> Scheduler:
        diagnostics = Diagnostics(verbose=config.verbose, color=config.runtime.color)
        expander = PlaceholderExpander(
            replace_token=config.replace_token,
            delimiter=config.delimiter,
            trim=config.trim,
            pass_stdin=config.pass_stdin,
        )
        runner = JobRunner(
            diagnostics=diagnostics,
            timeout_seconds=config.timeout_seconds,
            retries=config.retries,
            retry_delay_seconds=config.retry_delay_seconds,
            kill_grace_seconds=config.runtime.kill_grace_seconds,
            poll_interval_seconds=config.runtime.poll_interval_seconds,
        )
        return Scheduler(
            config=config,
            expander=expander,
            runner=runner,
            diagnostics=diagnostics,
            output=output,
        )

    def run(
        self,
        config: RunConfig,
        *,
        stdin: BinaryIO | None = None,
        output: BinaryIO | None = None,
    ) -> RunSummary:
        config.validate()
        scheduler = self.build_scheduler(config, output=output)
        stream = stdin if stdin is not None else click.get_binary_stream("stdin")
        summary = scheduler.run(read_records(stream, null_delimited=config.null_delimited))
        logger.info(
            "Run %s: processed=%d failed=%d",
            summary.status.value,
            summary.processed,
            summary.failed,
        )
        return summary
