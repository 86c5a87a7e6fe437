"""Time-sequential GUIDs.

Random GUIDs scatter new rows throughout an index; placing a millisecond
timestamp in the bytes the database compares first makes inserts append
at the end instead. Which bytes those are depends on how the column is
stored, hence the three layouts:

- ``SEQUENTIAL_AS_STRING``: stored as text (timestamp first in the string);
- ``SEQUENTIAL_AS_BINARY``: stored as raw bytes (timestamp first in bytes);
- ``SEQUENTIAL_AT_END``: SQL Server ``uniqueidentifier`` ordering
  (timestamp in the last six bytes).

Bytes follow the little-endian GUID layout, i.e. they are handed to
`uuid.UUID(bytes_le=...)`.
"""

from __future__ import annotations

import enum
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

_EPOCH = datetime(1, 1, 1, tzinfo=timezone.utc)


class SequentialGuidType(str, enum.Enum):
    SEQUENTIAL_AS_STRING = "sequential_as_string"
    SEQUENTIAL_AS_BINARY = "sequential_as_binary"
    SEQUENTIAL_AT_END = "sequential_at_end"


def _timestamp_bytes(now: Optional[datetime] = None) -> bytes:
    """Big-endian milliseconds since 0001-01-01 UTC, low six bytes."""
    now = now or datetime.now(timezone.utc)
    millis = (now - _EPOCH) // timedelta(milliseconds=1)
    return millis.to_bytes(8, "big")[2:]


def new_guid(kind: SequentialGuidType = SequentialGuidType.SEQUENTIAL_AT_END, now: Optional[datetime] = None) -> uuid.UUID:
    """Return a new GUID whose timestamp bytes are placed according to `kind`."""
    kind = SequentialGuidType(kind)
    random_bytes = secrets.token_bytes(10)
    timestamp = _timestamp_bytes(now)

    if kind is SequentialGuidType.SEQUENTIAL_AT_END:
        raw = bytearray(random_bytes + timestamp)
    else:
        raw = bytearray(timestamp + random_bytes)
        if kind is SequentialGuidType.SEQUENTIAL_AS_STRING:
            # Data1 and Data2 are little-endian in the GUID layout
            raw[0:4] = raw[0:4][::-1]
            raw[4:6] = raw[4:6][::-1]
    return uuid.UUID(bytes_le=bytes(raw))
