"""Lazy record reader over a binary input stream."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from typing import BinaryIO

from pipe_while_read.engine.models import Record

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 65_536


def read_records(
    stream: BinaryIO,
    *,
    null_delimited: bool = False,
    chunk_size: int = _CHUNK_SIZE,
) -> Iterator[Record]:
    """Yield records split on ``\\n`` or NUL, numbered from 1.

    The terminator is not part of the record. Trailing bytes without a
    terminator still form a last record. Bytes are decoded with
    ``os.fsdecode`` so undecodable input survives the trip back into argv.
    """

    terminator = b"\0" if null_delimited else b"\n"
    # read1 returns whatever is buffered instead of waiting for a full chunk
    read = getattr(stream, "read1", stream.read)
    pending = bytearray()
    number = 0

    while True:
        chunk = read(chunk_size)
        if not chunk:
            break
        # only the new bytes can hold a terminator not seen yet
        scan_from = len(pending)
        pending += chunk
        start = 0
        end = pending.find(terminator, scan_from)
        while end != -1:
            number += 1
            yield Record(number=number, raw=os.fsdecode(bytes(pending[start:end])))
            start = end + 1
            end = pending.find(terminator, start)
        del pending[:start]

    if pending:
        number += 1
        yield Record(number=number, raw=os.fsdecode(bytes(pending)))

    logger.debug("Input exhausted after %d record(s)", number)
