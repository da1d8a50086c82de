from __future__ import annotations

from pathlib import Path
from typing import Optional

from bundle.compact_v1 import read_tile_v1
from bundle.compact_v2 import read_tile_v2
from bundle.loose import read_tile_loose
from common.errors import UnsupportedFormatError
from common.types import DEFAULT_PACKET_SIZE, CacheConf, TileAddress


class TileCacheReader:
    """
    Reads tiles from one map's `_alllayers` directory.

    The storage layout (v1 | v2 | loose) and packet size come from the map's
    cache configuration; this class only dispatches to the matching decoder.
    Nothing is cached between calls, so one instance may be shared freely
    across threads.
    """

    def __init__(self, all_layers_dir: str | Path, tile_type: str, packet_size: int = DEFAULT_PACKET_SIZE):
        if packet_size <= 0:
            raise ValueError("packet_size must be > 0")
        self.all_layers_dir = Path(all_layers_dir)
        self.tile_type = tile_type
        self.packet_size = int(packet_size)

    @classmethod
    def from_conf(cls, all_layers_dir: str | Path, conf: CacheConf) -> "TileCacheReader":
        return cls(all_layers_dir, conf.tile_type, conf.packet_size)

    def read_tile(self, address: TileAddress) -> Optional[bytes]:
        """
        Return the tile's image bytes, or None if the cache does not hold it.

        Raises:
            UnsupportedFormatError: the configured format tag is not v1/v2/loose.
            TileReadError: an existing bundle could not be read.
        """
        if self.tile_type == "v1":
            return read_tile_v1(
                self.all_layers_dir, address.level, address.column, address.row, self.packet_size
            )
        if self.tile_type == "v2":
            return read_tile_v2(
                self.all_layers_dir, address.column, address.row, address.level, self.packet_size
            )
        if self.tile_type == "loose":
            return read_tile_loose(self.all_layers_dir, address)
        raise UnsupportedFormatError(self.tile_type)
