"""Drive records through the job runner, sequentially or on a bounded pool."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, BinaryIO

import rich_click as click

from pipe_while_read.engine.diagnostics import Diagnostics
from pipe_while_read.engine.models import (
    CommandTemplate,
    Job,
    JobResult,
    JobStatus,
    OutputMode,
    Record,
    RunStatus,
    RunSummary,
    SchedulerState,
)
from pipe_while_read.engine.placeholders import PlaceholderExpander
from pipe_while_read.engine.progress import ProgressReporter
from pipe_while_read.engine.runner import JobRunner

if TYPE_CHECKING:
    from pipe_while_read.config import RunConfig

logger = logging.getLogger(__name__)

ProgressFactory = Callable[[int], ProgressReporter]


class Scheduler:
    """Runs one job per record and aggregates their results.

    Counters, exit codes, keep-order buffers and output writes are only
    touched from the thread that calls :meth:`run`; pool threads only run
    jobs and hand back a :class:`JobResult`.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        config: RunConfig,
        expander: PlaceholderExpander,
        runner: JobRunner,
        diagnostics: Diagnostics,
        output: BinaryIO | None = None,
        progress_factory: ProgressFactory | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.expander = expander
        self.runner = runner
        self.diagnostics = diagnostics
        self.output = output if output is not None else click.get_binary_stream("stdout")
        self.progress_factory = progress_factory or self._default_progress
        self.template: CommandTemplate = expander.compile(config.command)
        self.state = SchedulerState.IDLE
        self._sleep = sleep
        self._cancel = threading.Event()
        self._ordered_output: dict[int, bytes] = {}
        self._progress: ProgressReporter | None = None

    def run(self, records: Iterable[Record]) -> RunSummary:
        """Process every record and return the aggregate result."""

        self.state = SchedulerState.READING
        summary = RunSummary()
        if self.config.needs_buffering:
            records = list(records)
            summary.total = len(records)
            if summary.total == 0:
                self.diagnostics.note("No input lines to process")
                self.state = SchedulerState.DONE
                return summary
            self.diagnostics.note(
                f"Processing {summary.total} lines with {self.config.jobs} job(s)",
            )
            if not self.config.dry_run:
                self._progress = self.progress_factory(summary.total)

        self.state = SchedulerState.DISPATCHING
        if self.config.dry_run:
            self._preview(records, summary)
        elif self.config.parallel:
            self._run_parallel(iter(records), summary)
        else:
            self._run_sequential(records, summary)

        if summary.status == RunStatus.ABORTED:
            self.state = SchedulerState.ABORTED
            return summary

        self.state = SchedulerState.DRAINING
        self._finish(summary)
        self.state = SchedulerState.DONE
        return summary

    # -- dispatch modes ------------------------------------------------------

    def _preview(self, records: Iterable[Record], summary: RunSummary) -> None:
        jobs = self.config.jobs
        for record in records:
            self._pause_before(record.number)
            slot = (record.number - 1) % jobs + 1
            job = self._build_job(record, slot)
            label = f"[DRY RUN {record.number}]" if self.config.parallel else "[DRY RUN]"
            click.echo(
                f"{click.style(label, fg='yellow')} {job.preview()}",
                color=self.config.runtime.color,
            )
            summary.processed += 1

    def _run_sequential(self, records: Iterable[Record], summary: RunSummary) -> None:
        for record in records:
            self._pause_before(record.number)
            job = self._build_job(record, slot=1)
            self.diagnostics.job_started(job.number, summary.total, job.argv)
            result = self.runner.run(
                job,
                output_mode=self.config.output_mode,
                cancel_event=self._cancel,
            )
            self._emit(result)
            if self._account(result, summary):
                self._abort(summary)
                return

    def _run_parallel(self, records: Iterator[Record], summary: RunSummary) -> None:
        free_slots = deque(range(1, self.config.jobs + 1))
        in_flight: dict[Future[JobResult], int] = {}

        try:
            with ThreadPoolExecutor(
                max_workers=self.config.jobs,
                thread_name_prefix="pipe-while-read-job",
            ) as executor:
                for record in records:
                    while len(in_flight) >= self.config.jobs:
                        if self._reap(in_flight, free_slots, summary):
                            self._abort_pool(in_flight, summary)
                            return
                    self._pause_before(record.number)
                    # jobs may have finished while the next record or the delay was awaited
                    if self._reap(in_flight, free_slots, summary, block=False):
                        self._abort_pool(in_flight, summary)
                        return

                    job = self._build_job(record, free_slots.popleft())
                    self.diagnostics.job_started(job.number, summary.total, job.argv)
                    future = executor.submit(
                        self.runner.run,
                        job,
                        output_mode=self.config.output_mode,
                        cancel_event=self._cancel,
                    )
                    in_flight[future] = job.slot

                self.state = SchedulerState.DRAINING
                while in_flight:
                    if self._reap(in_flight, free_slots, summary):
                        self._abort_pool(in_flight, summary)
                        return
        except BaseException:
            self._cancel.set()
            raise

        for number in sorted(self._ordered_output):
            self._write(self._ordered_output[number])
        self._ordered_output.clear()

    def _reap(
        self,
        in_flight: dict[Future[JobResult], int],
        free_slots: deque[int],
        summary: RunSummary,
        *,
        block: bool = True,
    ) -> bool:
        """Collect finished jobs. Returns True when fail-fast must abort.

        With ``block=False`` only jobs that are already done are collected.
        """

        if not in_flight:
            return False
        done, _ = wait(
            in_flight,
            timeout=None if block else 0,
            return_when=FIRST_COMPLETED,
        )
        abort = False
        for future in sorted(done, key=lambda item: item.result().number):
            free_slots.append(in_flight.pop(future))
            result = future.result()
            if abort:
                continue
            if self.config.keep_order:
                self._ordered_output[result.number] = self._format_output(result)
            else:
                self._emit(result)
            abort = self._account(result, summary)
        return abort

    # -- bookkeeping ---------------------------------------------------------

    def _build_job(self, record: Record, slot: int) -> Job:
        argv = self.expander.build_argv(self.template, record, job_slot=slot)
        payload = os.fsencode(record.raw) + b"\n" if self.config.pass_stdin else None
        return Job(record=record, slot=slot, argv=tuple(argv), stdin_payload=payload)

    def _account(self, result: JobResult, summary: RunSummary) -> bool:
        """Count one finished job. Returns True when the run must abort."""

        summary.processed += 1
        summary.exit_codes[result.number] = result.exit_code
        if not result.ok:
            summary.failed += 1
            summary.status = RunStatus.FAILED
            self.diagnostics.job_failed(result.number, result.exit_code)
            logger.info(
                "Job %d %s with exit code %d after %d attempt(s)",
                result.number,
                result.status.value,
                result.exit_code,
                result.attempts,
            )
        if self._progress is not None:
            self._progress.update(summary.processed, summary.failed)
        return not result.ok and self.config.fail_fast

    def _abort(self, summary: RunSummary) -> None:
        self._cancel.set()
        self._ordered_output.clear()
        summary.status = RunStatus.ABORTED
        self.diagnostics.error("Stopping due to --fail-fast")
        logger.warning("Run aborted after %d processed job(s)", summary.processed)

    def _abort_pool(self, in_flight: dict[Future[JobResult], int], summary: RunSummary) -> None:
        self._abort(summary)
        # Leaving the executor context joins the workers, which exit as soon
        # as their runners notice the cancel event.
        for future in in_flight:
            result = future.result()
            if result.status != JobStatus.CANCELED:
                logger.debug("Job %d finished during abort: %s", result.number, result.status.value)

    def _finish(self, summary: RunSummary) -> None:
        if self._progress is not None:
            self._progress.finish(summary.processed, summary.failed)
        if self.config.dry_run:
            return
        if summary.processed == 0:
            self.diagnostics.note("No input lines to process")
            return
        if self.config.verbose or (summary.failed and not self.config.quiet):
            self.diagnostics.summary(summary.succeeded, summary.failed)

    def _pause_before(self, number: int) -> None:
        if self.config.delay_seconds > 0 and number > 1:
            self._sleep(self.config.delay_seconds)

    # -- output --------------------------------------------------------------

    def _format_output(self, result: JobResult) -> bytes:
        if not self.config.tag or not result.output:
            return result.output
        prefix = os.fsencode(f"{result.job.record.raw}: ")
        return b"".join(prefix + line + b"\n" for line in result.output.splitlines())

    def _emit(self, result: JobResult) -> None:
        if self.config.output_mode == OutputMode.CAPTURE:
            self._write(self._format_output(result))

    def _write(self, data: bytes) -> None:
        if not data:
            return
        self.output.write(data)
        self.output.flush()

    def _default_progress(self, total: int) -> ProgressReporter:
        return ProgressReporter(
            total=total,
            enabled=self.config.progress,
            width=self.config.runtime.progress_width,
            color=self.config.runtime.color,
        )
