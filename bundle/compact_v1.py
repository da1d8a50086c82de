"""
Compact cache V1 reader.

A bundle group is stored as two files sharing one stem:
  *.bundlx: 16 byte preamble, then one 5 byte little-endian offset per tile slot
            (column-major: slot = packet_size * col_in_group + row_in_group)
  *.bundle: [int32 length][length bytes of image] blocks addressed by those offsets
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from bundle.address import resolve
from bundle.fileio import open_optional, read_at, read_int32, read_uint_le
from common.logging_setup import get_logger
from common.types import DEFAULT_PACKET_SIZE

log = get_logger(__name__)

INDEX_HEADER_SIZE = 16
INDEX_RECORD_SIZE = 5
MAX_TILE_SIZE = 1_000_000


def slot_index(packet_size: int, row: int, column: int, row_group: int, col_group: int) -> int:
    return packet_size * (column - col_group) + (row - row_group)


def index_record_offset(slot: int) -> int:
    return INDEX_HEADER_SIZE + INDEX_RECORD_SIZE * slot


def read_tile_v1(
    all_layers_dir: str | Path,
    level: int,
    column: int,
    row: int,
    packet_size: int = DEFAULT_PACKET_SIZE,
) -> Optional[bytes]:
    """
    Return the image bytes of tile (level, row, column) or None if the cache
    has no such tile. Raises TileReadError if an opened file is truncated or unreadable.
    """
    loc = resolve(level, row, column, packet_size)
    slot = slot_index(packet_size, row, column, loc.row_group, loc.col_group)

    with open_optional(loc.path(all_layers_dir, ".bundlx")) as index:
        if index is None:
            return None
        data_offset = read_uint_le(index, index_record_offset(slot), INDEX_RECORD_SIZE)

    if data_offset == 0:
        log.debug("Tile not present in bundle", extra={"extra": {"tile": f"{level}/{row}/{column}"}})
        return None

    bundle_path = loc.path(all_layers_dir, ".bundle")
    with open_optional(bundle_path) as bundle:
        if bundle is None:
            return None
        length = read_int32(bundle, data_offset)
        if length <= 0 or length > MAX_TILE_SIZE:
            log.warning(
                "Invalid tile length",
                extra={"extra": {"tile": f"{level}/{row}/{column}", "length": length, "path": str(bundle_path)}},
            )
            return None
        return read_at(bundle, data_offset + 4, length)
