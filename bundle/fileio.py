from __future__ import annotations

import struct
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from common.errors import TileReadError
from common.logging_setup import get_logger

log = get_logger(__name__)

_INT32 = struct.Struct("<i")
_UINT32 = struct.Struct("<I")


@contextmanager
def open_optional(path: Path) -> Iterator[Optional[BinaryIO]]:
    """
    Open `path` read-only; yield None if it cannot be opened.

    Sparse caches omit whole bundle groups, so an unopenable file means
    "no tiles here" rather than a failure. The handle is closed on exit.
    """
    try:
        f = open(path, "rb")
    except OSError as e:
        log.warning("Bundle file not available", extra={"extra": {"path": str(path), "error": str(e)}})
        yield None
        return
    with f:
        yield f


def read_at(f: BinaryIO, offset: int, size: int) -> bytes:
    """Read exactly `size` bytes at `offset`; a short read is a TileReadError."""
    name = str(getattr(f, "name", "<stream>"))
    try:
        f.seek(offset)
        buf = f.read(size)
    except (OSError, ValueError) as e:
        raise TileReadError(name, offset, size, str(e)) from e
    if len(buf) != size:
        raise TileReadError(name, offset, size, f"got {len(buf)} bytes")
    return buf


def read_int32(f: BinaryIO, offset: int) -> int:
    return _INT32.unpack(read_at(f, offset, 4))[0]


def read_uint32(f: BinaryIO, offset: int) -> int:
    return _UINT32.unpack(read_at(f, offset, 4))[0]


def read_uint_le(f: BinaryIO, offset: int, size: int) -> int:
    """Unsigned little-endian integer of arbitrary width (V1 uses 5 bytes)."""
    return int.from_bytes(read_at(f, offset, size), "little")
