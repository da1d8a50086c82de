"""
Tile cache readers for ArcGIS `_alllayers` directories.

- compact_v1: *.bundlx index + *.bundle data (esriMapCacheStorageModeCompact)
- compact_v2: self-indexed *.bundle (esriMapCacheStorageModeCompactV2)
- loose: one image file per tile (esriMapCacheStorageModeExploded)

Usage:
    from bundle import TileCacheReader
    from common.types import TileAddress

    reader = TileCacheReader("image_tiles/city/_alllayers", "v2", packet_size=128)
    data = reader.read_tile(TileAddress(level=12, row=629, column=3329))  # bytes or None
"""
from .address import resolve
from .compact_v1 import read_tile_v1
from .compact_v2 import read_tile_v2
from .loose import read_tile_loose
from .reader import TileCacheReader

__all__ = ["resolve", "read_tile_v1", "read_tile_v2", "read_tile_loose", "TileCacheReader"]
