from __future__ import annotations

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional


TileType = Literal["v1", "v2", "loose", "unknown"]

DEFAULT_PACKET_SIZE = 128


def _check_non_negative(name: str, value: int) -> int:
    # bool is an int subclass; floats would be silently truncated
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be >= 0")
    return value


@dataclass(frozen=True, slots=True)
class TileAddress:
    """
    One tile in one zoom level's grid.

    Attributes:
        level: zoom level (LOD id).
        row: tile row, counted from the tile origin downwards.
        column: tile column, counted from the tile origin rightwards.
    """
    level: int
    row: int
    column: int

    def __post_init__(self) -> None:
        _check_non_negative("level", self.level)
        _check_non_negative("row", self.row)
        _check_non_negative("column", self.column)

    def __str__(self) -> str:
        return f"{self.level}/{self.row}/{self.column}"


@dataclass(frozen=True, slots=True)
class BundleLocation:
    """
    Bundle group covering a tile plus the file naming derived from it.

        <all_layers_dir>/L05/R0080C0100.bundle
                          ^      ^ file_stem
                          level_dir
    """
    level: int
    row_group: int
    col_group: int
    packet_size: int

    @property
    def level_dir(self) -> str:
        return f"L{self.level:02d}"

    @property
    def file_stem(self) -> str:
        return f"R{self.row_group:04x}C{self.col_group:04x}"

    def path(self, all_layers_dir: str | Path, suffix: str) -> Path:
        """Path of the bundle file with `suffix` ('.bundle' or '.bundlx')."""
        return Path(all_layers_dir) / self.level_dir / f"{self.file_stem}{suffix}"


@dataclass(slots=True)
class SpatialReference:
    wkid: Optional[int] = None
    latest_wkid: Optional[int] = None
    wkt: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"wkid": self.wkid, "latestWkid": self.latest_wkid}
        if self.wkt:
            d["wkt"] = self.wkt
        return d


@dataclass(slots=True)
class Lod:
    level: int
    resolution: float
    scale: float


@dataclass(slots=True)
class TileInfo:
    """TileCacheInfo section of conf.xml."""
    spatial_reference: SpatialReference
    rows: int
    cols: int
    dpi: int
    origin_x: float
    origin_y: float
    lods: List[Lod] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        """ArcGIS REST `tileInfo` shape."""
        return {
            "rows": self.rows,
            "cols": self.cols,
            "dpi": self.dpi,
            "origin": {"x": self.origin_x, "y": self.origin_y},
            "spatialReference": self.spatial_reference.to_json(),
            "lods": [asdict(lod) for lod in self.lods],
        }


@dataclass(slots=True)
class CacheConf:
    """
    Per-map cache metadata parsed from conf.xml.

    Attributes:
        tile_info: grid definition (origin, tile size, LODs).
        image_format: CacheTileFormat as written by ArcGIS (PNG, PNG32, JPEG, MIXED, ...).
        tile_type: storage layout: v1 | v2 | loose | unknown.
        packet_size: bundle group side length in tiles.
    """
    tile_info: TileInfo
    image_format: str
    tile_type: TileType
    packet_size: int = DEFAULT_PACKET_SIZE

    def __post_init__(self) -> None:
        if self.packet_size <= 0:
            raise ValueError("packet_size must be > 0")
