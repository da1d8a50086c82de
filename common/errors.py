"""
Error taxonomy shared by the bundle decoders and the HTTP layer.

A tile that is simply not stored is NOT an error: decoders return None.
Only the exceptions below cross the decoder boundary.
"""
from __future__ import annotations

from typing import Optional


class TileCacheError(Exception):
    """Base class for tile cache failures."""


class UnsupportedFormatError(TileCacheError):
    """The cache storage format tag is not one the reader understands."""

    def __init__(self, tile_type: str):
        super().__init__(f"Unsupported tile cache format: {tile_type!r}")
        self.tile_type = tile_type


class TileReadError(TileCacheError):
    """
    An opened bundle/index file could not be read as expected
    (truncated file, disk error). Surfaced to clients as a server failure.
    """

    def __init__(self, path: str, offset: int, size: int, detail: Optional[str] = None):
        msg = f"Failed to read {size} bytes at offset {offset} from {path}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.path = path
        self.offset = offset
        self.size = size


class CacheConfigError(TileCacheError):
    """conf.xml is missing or cannot be interpreted."""
