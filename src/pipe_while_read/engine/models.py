"""Domain models for records, jobs and run results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

TIMEOUT_EXIT_CODE = 124
NOT_EXECUTABLE_EXIT_CODE = 126
NOT_FOUND_EXIT_CODE = 127


class JobStatus(str, Enum):
    """Final state of one job after retries."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELED = "canceled"


class RunStatus(str, Enum):
    """Final state of a whole run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"


class SchedulerState(str, Enum):
    """Scheduler lifecycle states."""

    IDLE = "idle"
    READING = "reading"
    DISPATCHING = "dispatching"
    DRAINING = "draining"
    DONE = "done"
    ABORTED = "aborted"


class OutputMode(str, Enum):
    """Where a child's stdout/stderr go."""

    INHERIT = "inherit"
    CAPTURE = "capture"
    DISCARD = "discard"


@dataclass(frozen=True, slots=True)
class Record:
    """One unit of input with its 1-based job number."""

    number: int
    raw: str

    @property
    def trimmed(self) -> str:
        return self.raw.strip()

    def value(self, trim: bool) -> str:
        return self.trimmed if trim else self.raw


@dataclass(frozen=True, slots=True)
class CommandTemplate:
    """Command and arguments as given on the command line."""

    arguments: tuple[str, ...]
    has_placeholder: bool


@dataclass(frozen=True, slots=True)
class Job:
    """One record bound to a slot and a fully expanded command."""

    record: Record
    slot: int
    argv: tuple[str, ...]
    stdin_payload: bytes | None = None

    @property
    def number(self) -> int:
        return self.record.number

    def preview(self) -> str:
        return " ".join(self.argv)


@dataclass(slots=True)
class JobResult:
    """Outcome of a job after all attempts."""

    job: Job
    exit_code: int
    status: JobStatus
    attempts: int
    output: bytes = b""

    @property
    def ok(self) -> bool:
        return self.status == JobStatus.SUCCEEDED

    @property
    def number(self) -> int:
        return self.job.number


@dataclass(slots=True)
class RunSummary:
    """Aggregate counters for one run."""

    total: int | None = None
    processed: int = 0
    failed: int = 0
    status: RunStatus = RunStatus.SUCCEEDED
    exit_codes: dict[int, int] = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return self.processed - self.failed

    @property
    def exit_code(self) -> int:
        return 0 if self.status == RunStatus.SUCCEEDED else 1
