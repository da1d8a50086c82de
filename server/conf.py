"""
conf.xml reader for ArcGIS tile caches.

    <map>/conf.xml
    <map>/_alllayers/L00/...

Only the parts the tile server needs are interpreted: the tiling scheme
(TileCacheInfo), the tile image format and the storage layout + packet size.
"""
from __future__ import annotations

import threading
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Callable, Dict, Optional

from common.errors import CacheConfigError
from common.logging_setup import get_logger
from common.types import DEFAULT_PACKET_SIZE, CacheConf, Lod, SpatialReference, TileInfo, TileType

log = get_logger(__name__)

STORAGE_FORMATS: Dict[str, TileType] = {
    "esriMapCacheStorageModeCompact": "v1",
    "esriMapCacheStorageModeCompactV2": "v2",
    "esriMapCacheStorageModeExploded": "loose",
}


def _text(el: Optional[ET.Element], path: str, default: Optional[str] = None) -> Optional[str]:
    if el is None:
        return default
    node = el.find(path)
    if node is None or node.text is None:
        return default
    return node.text.strip()


def _required(el: ET.Element, path: str) -> str:
    v = _text(el, path)
    if v is None:
        raise CacheConfigError(f"conf.xml is missing <{path}>")
    return v


def _opt_int(v: Optional[str]) -> Optional[int]:
    return int(v) if v not in (None, "") else None


def parse_conf_xml(text: str | bytes) -> CacheConf:
    """
    Parse the contents of a conf.xml file. Pass raw bytes when reading from disk
    so the encoding declared in the XML prolog is honoured.
    """
    try:
        root = ET.fromstring(text)
    except (ET.ParseError, LookupError, ValueError) as e:  # ValueError/LookupError: unusable encoding declaration
        raise CacheConfigError(f"conf.xml is not valid XML: {e}") from e

    tci = root.find("TileCacheInfo")
    if tci is None:
        raise CacheConfigError("conf.xml is missing <TileCacheInfo>")

    try:
        sr_el = tci.find("SpatialReference")
        sr = SpatialReference(
            wkid=_opt_int(_text(sr_el, "WKID")),
            latest_wkid=_opt_int(_text(sr_el, "LatestWKID")),
            wkt=_text(sr_el, "WKT"),
        )
        lods = [
            Lod(
                level=int(_required(lod, "LevelID")),
                resolution=float(_required(lod, "Resolution")),
                scale=float(_required(lod, "Scale")),
            )
            for lod in tci.findall("LODInfos/LODInfo")
        ]
        tile_info = TileInfo(
            spatial_reference=sr,
            rows=int(_required(tci, "TileRows")),
            cols=int(_required(tci, "TileCols")),
            dpi=int(_text(tci, "DPI", "96")),
            origin_x=float(_required(tci, "TileOrigin/X")),
            origin_y=float(_required(tci, "TileOrigin/Y")),
            lods=lods,
        )
        packet_size = int(_text(root, "CacheStorageInfo/PacketSize") or DEFAULT_PACKET_SIZE)
    except ValueError as e:
        raise CacheConfigError(f"conf.xml has an invalid value: {e}") from e

    storage = _text(root, "CacheStorageInfo/StorageFormat", "")
    tile_type: TileType = STORAGE_FORMATS.get(storage, "unknown")
    if tile_type == "unknown":
        log.warning("Unrecognized cache storage format", extra={"extra": {"storage_format": storage}})

    try:
        return CacheConf(
            tile_info=tile_info,
            image_format=_text(root, "TileImageInfo/CacheTileFormat", "PNG"),
            tile_type=tile_type,
            packet_size=packet_size,
        )
    except ValueError as e:
        raise CacheConfigError(str(e)) from e


def load_conf(path: str | Path) -> CacheConf:
    p = Path(path)
    if not p.is_file():
        raise CacheConfigError(f"conf.xml not found at {p}")
    try:
        raw = p.read_bytes()
    except OSError as e:
        raise CacheConfigError(f"conf.xml at {p} cannot be read: {e}") from e
    return parse_conf_xml(raw)


# -------- image formats --------

def media_type(image_format: str, data: Optional[bytes] = None) -> str:
    """
    MIME type for a CacheTileFormat value. MIXED caches hold both PNG and JPEG
    tiles, so the tile bytes are sniffed when given.
    """
    fmt = image_format.upper()
    if fmt.startswith("PNG"):
        return "image/png"
    if fmt in ("JPEG", "JPG"):
        return "image/jpeg"
    if fmt == "MIXED":
        if data is not None and data[:8] == b"\x89PNG\r\n\x1a\n":
            return "image/png"
        return "image/jpeg"
    return f"image/{image_format.lower()}"


# -------- per-map memo --------

class ConfCache:
    """
    Process-wide memo of map name -> CacheConf.

    Cache directories are treated as immutable while the server runs, so entries
    are never evicted or refreshed. Concurrent lookups of the same missing map
    perform a single load; failed loads are not memoized.
    """

    def __init__(self, raster_root: str | Path, loader: Callable[[Path], CacheConf] = load_conf):
        self.raster_root = Path(raster_root)
        self._loader = loader
        self._entries: Dict[str, CacheConf] = {}
        self._key_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def map_dir(self, map_name: str) -> Path:
        if not map_name or map_name in (".", "..") or "/" in map_name or "\\" in map_name:
            raise CacheConfigError(f"Invalid map name: {map_name!r}")
        return self.raster_root / map_name

    def all_layers_dir(self, map_name: str) -> Path:
        return self.map_dir(map_name) / "_alllayers"

    def get(self, map_name: str) -> CacheConf:
        conf = self._entries.get(map_name)
        if conf is not None:
            return conf

        conf_path = self.map_dir(map_name) / "conf.xml"
        with self._lock:
            key_lock = self._key_locks.setdefault(map_name, threading.Lock())
        try:
            with key_lock:
                conf = self._entries.get(map_name)
                if conf is None:
                    conf = self._loader(conf_path)
                    self._entries[map_name] = conf
                    log.info(
                        "Loaded cache configuration",
                        extra={"extra": {"map": map_name, "tile_type": conf.tile_type, "packet_size": conf.packet_size}},
                    )
        finally:
            # a late arrival either hits _entries or, after a failed load, retries with a fresh lock
            with self._lock:
                if self._key_locks.get(map_name) is key_lock:
                    del self._key_locks[map_name]
        return conf

    def __len__(self) -> int:
        return len(self._entries)
