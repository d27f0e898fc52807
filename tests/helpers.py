"""Helpers shared by test modules."""

from __future__ import annotations

import io
import sys

from pipe_while_read.engine import read_records


def python_command(script: str) -> tuple[str, ...]:
    """Command prefix running an inline Python script.

    Scripts go through placeholder expansion too, so they must not contain
    brace tokens such as ``{}``.
    """

    return (sys.executable, "-c", script)


def records_from(data: bytes, *, null_delimited: bool = False):
    return read_records(io.BytesIO(data), null_delimited=null_delimited)
