"""Subprocess runner with timeout, retry and cancellation."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass

from pipe_while_read.engine.diagnostics import Diagnostics
from pipe_while_read.engine.models import (
    NOT_EXECUTABLE_EXIT_CODE,
    NOT_FOUND_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    Job,
    JobResult,
    JobStatus,
    OutputMode,
)

logger = logging.getLogger(__name__)

_POSIX = os.name == "posix"


@dataclass(slots=True)
class AttemptResult:
    """Outcome of a single child process launch."""

    exit_code: int
    output: bytes = b""
    timed_out: bool = False
    canceled: bool = False


class JobRunner:
    """Execute one expanded command, retrying failures up to a bound."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        diagnostics: Diagnostics,
        timeout_seconds: float = 0,
        retries: int = 0,
        retry_delay_seconds: float = 1.0,
        kill_grace_seconds: float = 2.0,
        poll_interval_seconds: float = 0.05,
    ) -> None:
        self.diagnostics = diagnostics
        self.timeout_seconds = timeout_seconds
        self.retries = retries
        self.retry_delay_seconds = retry_delay_seconds
        self.kill_grace_seconds = kill_grace_seconds
        self.poll_interval_seconds = poll_interval_seconds

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def run(
        self,
        job: Job,
        *,
        output_mode: OutputMode = OutputMode.INHERIT,
        cancel_event: threading.Event | None = None,
    ) -> JobResult:
        """Run the job until it succeeds, attempts run out, or the run is canceled."""

        cancel_event = cancel_event or threading.Event()
        output = bytearray()
        attempt_result = AttemptResult(exit_code=1)
        attempt = 0

        while attempt < self.max_attempts:
            attempt += 1
            if attempt > 1:
                self.diagnostics.retry(attempt, self.max_attempts, job.argv)
                logger.info("Retrying job %d (attempt %d/%d)", job.number, attempt, self.max_attempts)

            attempt_result = self._run_once(job, output_mode=output_mode, cancel_event=cancel_event)
            output += attempt_result.output

            if attempt_result.canceled:
                return JobResult(
                    job=job,
                    exit_code=attempt_result.exit_code,
                    status=JobStatus.CANCELED,
                    attempts=attempt,
                    output=bytes(output),
                )
            if attempt_result.exit_code == 0:
                break
            if attempt_result.timed_out:
                self.diagnostics.timeout(job.argv)

            if attempt < self.max_attempts and cancel_event.wait(self.retry_delay_seconds):
                return JobResult(
                    job=job,
                    exit_code=attempt_result.exit_code,
                    status=JobStatus.CANCELED,
                    attempts=attempt,
                    output=bytes(output),
                )

        return JobResult(
            job=job,
            exit_code=attempt_result.exit_code,
            status=_final_status(attempt_result),
            attempts=attempt,
            output=bytes(output),
        )

    def _run_once(
        self,
        job: Job,
        *,
        output_mode: OutputMode,
        cancel_event: threading.Event,
    ) -> AttemptResult:
        stdout, stderr = _output_targets(output_mode)
        try:
            process = subprocess.Popen(  # noqa: S603
                job.argv,
                stdin=subprocess.PIPE if job.stdin_payload is not None else subprocess.DEVNULL,
                stdout=stdout,
                stderr=stderr,
                start_new_session=_POSIX,
            )
        except FileNotFoundError:
            self.diagnostics.error(f"Command not found: {job.argv[0]}")
            return AttemptResult(exit_code=NOT_FOUND_EXIT_CODE)
        except PermissionError:
            self.diagnostics.error(f"Permission denied: {job.argv[0]}")
            return AttemptResult(exit_code=NOT_EXECUTABLE_EXIT_CODE)
        except (OSError, ValueError) as error:
            # ValueError: NUL byte inside an argument
            self.diagnostics.error(f"Failed to start {job.argv[0]}: {error}")
            return AttemptResult(exit_code=1)

        logger.debug("Job %d started pid=%d argv=%r", job.number, process.pid, job.argv)
        try:
            return self._wait(process, job=job, cancel_event=cancel_event)
        except BaseException:
            _terminate_process(process, grace_seconds=self.kill_grace_seconds)
            raise

    def _wait(
        self,
        process: subprocess.Popen[bytes],
        *,
        job: Job,
        cancel_event: threading.Event,
    ) -> AttemptResult:
        start_monotonic = time.monotonic()
        payload = job.stdin_payload

        while True:
            try:
                captured, _ = process.communicate(
                    input=payload,
                    timeout=self.poll_interval_seconds,
                )
            except subprocess.TimeoutExpired:
                # communicate() keeps the unsent input; it rejects a second copy
                payload = None
            else:
                exit_code = _normalize_returncode(process.returncode)
                logger.debug("Job %d exited with %d", job.number, exit_code)
                return AttemptResult(exit_code=exit_code, output=captured or b"")

            if self.timeout_seconds > 0 and time.monotonic() - start_monotonic >= self.timeout_seconds:
                logger.warning("Job %d timed out after %.1fs", job.number, self.timeout_seconds)
                output = self._stop(process)
                return AttemptResult(exit_code=TIMEOUT_EXIT_CODE, output=output, timed_out=True)

            if cancel_event.is_set():
                logger.info("Job %d canceled", job.number)
                output = self._stop(process)
                return AttemptResult(
                    exit_code=_normalize_returncode(process.returncode),
                    output=output,
                    canceled=True,
                )

    def _stop(self, process: subprocess.Popen[bytes]) -> bytes:
        _terminate_process(process, grace_seconds=self.kill_grace_seconds)
        try:
            captured, _ = process.communicate(timeout=self.kill_grace_seconds)
        except subprocess.TimeoutExpired:
            return b""
        return captured or b""


def _output_targets(output_mode: OutputMode) -> tuple[int | None, int | None]:
    if output_mode == OutputMode.CAPTURE:
        return subprocess.PIPE, subprocess.STDOUT
    if output_mode == OutputMode.DISCARD:
        return subprocess.DEVNULL, subprocess.DEVNULL
    return None, None


def _final_status(result: AttemptResult) -> JobStatus:
    if result.exit_code == 0:
        return JobStatus.SUCCEEDED
    if result.timed_out:
        return JobStatus.TIMED_OUT
    return JobStatus.FAILED


def _normalize_returncode(returncode: int | None) -> int:
    if returncode is None:
        return 1
    if returncode < 0:
        return 128 - returncode
    return returncode


def _send_signal(process: subprocess.Popen[bytes], sig: int) -> bool:
    try:
        if _POSIX:
            os.killpg(process.pid, sig)
        elif sig == signal.SIGTERM:
            process.terminate()
        else:
            process.kill()
    except OSError:
        return False
    return True


def _terminate_process(process: subprocess.Popen[bytes], *, grace_seconds: float) -> None:
    """SIGTERM the child's process group, then SIGKILL it after the grace window."""

    # On POSIX the group may outlive its leader, so it is signaled regardless.
    if not _POSIX and process.poll() is not None:
        return
    if not _send_signal(process, signal.SIGTERM):
        return
    try:
        process.wait(timeout=grace_seconds)
    except subprocess.TimeoutExpired:
        logger.warning("pid=%d ignored SIGTERM, killing", process.pid)
        if not _send_signal(process, getattr(signal, "SIGKILL", signal.SIGTERM)):
            return
        try:
            process.wait(timeout=grace_seconds)
        except subprocess.TimeoutExpired:
            logger.error("pid=%d did not exit after SIGKILL", process.pid)
