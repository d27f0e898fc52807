"""Job expansion and execution engine."""

from pipe_while_read.engine.diagnostics import Diagnostics
from pipe_while_read.engine.models import (
    TIMEOUT_EXIT_CODE,
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
from pipe_while_read.engine.reader import read_records
from pipe_while_read.engine.runner import JobRunner
from pipe_while_read.engine.scheduler import Scheduler

__all__ = [
    "TIMEOUT_EXIT_CODE",
    "CommandTemplate",
    "Diagnostics",
    "Job",
    "JobResult",
    "JobRunner",
    "JobStatus",
    "OutputMode",
    "PlaceholderExpander",
    "ProgressReporter",
    "Record",
    "RunStatus",
    "RunSummary",
    "Scheduler",
    "SchedulerState",
    "read_records",
]
