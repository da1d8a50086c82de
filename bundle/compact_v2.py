"""
Compact cache V2 reader.

One self-contained *.bundle per group:
  [0, 64)          header; uint32 version at offset 0 (must be 3)
  [64, 64 + 8*N)   record table, row-major: slot = packet_size * row_in_group + col_in_group;
                   the first 4 bytes of each record are the int32 offset of the tile data
  ...              [int32 length][image bytes] blocks; records point just past the length
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from bundle.address import resolve
from bundle.fileio import open_optional, read_at, read_int32, read_uint32
from common.logging_setup import get_logger
from common.types import DEFAULT_PACKET_SIZE

log = get_logger(__name__)

HEADER_SIZE = 64
RECORD_SIZE = 8
SUPPORTED_VERSION = 3


def slot_index(packet_size: int, row: int, column: int, row_group: int, col_group: int) -> int:
    return packet_size * (row - row_group) + (column - col_group)


def record_offset(slot: int) -> int:
    return HEADER_SIZE + RECORD_SIZE * slot


def read_tile_v2(
    all_layers_dir: str | Path,
    column: int,
    row: int,
    level: int,
    packet_size: int = DEFAULT_PACKET_SIZE,
) -> Optional[bytes]:
    """
    Return the image bytes of tile (level, row, column) or None if the cache
    has no such tile. Raises TileReadError if the opened bundle is truncated or unreadable.
    """
    loc = resolve(level, row, column, packet_size)
    bundle_path = loc.path(all_layers_dir, ".bundle")
    tile = f"{level}/{row}/{column}"

    with open_optional(bundle_path) as bundle:
        if bundle is None:
            return None

        header = read_at(bundle, 0, HEADER_SIZE)
        version = int.from_bytes(header[0:4], "little")
        if version != SUPPORTED_VERSION:
            log.warning("Unsupported bundle version", extra={"extra": {"version": version, "path": str(bundle_path)}})
            return None

        slot = slot_index(packet_size, row, column, loc.row_group, loc.col_group)
        data_offset = read_int32(bundle, record_offset(slot))
        if data_offset == 0:
            log.debug("Tile not present in bundle", extra={"extra": {"tile": tile}})
            return None
        if data_offset < 4:
            # no room for the length prefix
            log.warning("Invalid tile offset", extra={"extra": {"tile": tile, "offset": data_offset}})
            return None

        length = read_int32(bundle, data_offset - 4)
        if length <= 0:
            log.warning("Invalid tile size", extra={"extra": {"tile": tile, "length": length}})
            return None
        return read_at(bundle, data_offset, length)


def read_version(bundle_path: str | Path) -> Optional[int]:
    """Header version of a V2 bundle, or None if the file cannot be opened."""
    with open_optional(Path(bundle_path)) as bundle:
        if bundle is None:
            return None
        return read_uint32(bundle, 0)
