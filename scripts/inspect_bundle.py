#!/usr/bin/env python3
"""
List the tiles stored in one ArcGIS compact cache bundle.

The level and the group origin are taken from the path, as ArcGIS lays them out:
    <_alllayers>/L<level>/R<row_group hex>C<col_group hex>.bundle

Examples:
  python scripts/inspect_bundle.py image_tiles/city/_alllayers/L12/R0200C0c80.bundle --format v2
  python scripts/inspect_bundle.py .../L03/R0000C0000.bundle --format v1 --packet-size 128 --limit 20
"""
from __future__ import annotations

import argparse
import io
import sys
from pathlib import Path
from typing import Iterator, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from bundle import compact_v1, compact_v2
from bundle.compact_v2 import SUPPORTED_VERSION, read_version
from bundle.fileio import open_optional, read_at, read_int32
from common.types import DEFAULT_PACKET_SIZE, TileAddress


def parse_bundle_path(path: Path) -> Tuple[int, int, int]:
    """Return (level, row_group, col_group) encoded in a bundle path."""
    level = int(path.parent.name.lstrip("L"))
    stem = path.stem
    # hex digits are lowercase, so the uppercase C is unambiguous
    sep = stem.index("C")
    return level, int(stem[1:sep], 16), int(stem[sep + 1:], 16)


def image_size(data: bytes) -> Optional[Tuple[int, int]]:
    try:
        with Image.open(io.BytesIO(data)) as im:
            return im.size
    except UnidentifiedImageError:
        return None


def _v1_tiles(bundle_path: Path, level: int, row_group: int, col_group: int,
              packet_size: int) -> Iterator[Tuple[TileAddress, bytes]]:
    """Walk a V1 group reading the .bundlx index once; slots are column-major."""
    count = packet_size * packet_size
    with open_optional(bundle_path.with_suffix(".bundlx")) as index:
        if index is None:
            return
        raw = read_at(index, compact_v1.index_record_offset(0), compact_v1.INDEX_RECORD_SIZE * count)

    with open_optional(bundle_path) as bundle:
        if bundle is None:
            return
        for slot in range(count):
            start = slot * compact_v1.INDEX_RECORD_SIZE
            offset = int.from_bytes(raw[start:start + compact_v1.INDEX_RECORD_SIZE], "little")
            if offset == 0:
                continue
            length = read_int32(bundle, offset)
            if length <= 0 or length > compact_v1.MAX_TILE_SIZE:
                continue
            col, row = divmod(slot, packet_size)
            address = TileAddress(level=level, row=row_group + row, column=col_group + col)
            yield address, read_at(bundle, offset + 4, length)


def _v2_tiles(bundle_path: Path, level: int, row_group: int, col_group: int,
              packet_size: int) -> Iterator[Tuple[TileAddress, bytes]]:
    """Walk a V2 group reading the record table once; slots are row-major."""
    count = packet_size * packet_size
    with open_optional(bundle_path) as bundle:
        if bundle is None:
            return
        table = read_at(bundle, compact_v2.record_offset(0), compact_v2.RECORD_SIZE * count)
        for slot in range(count):
            start = slot * compact_v2.RECORD_SIZE
            offset = int.from_bytes(table[start:start + 4], "little", signed=True)
            if offset < 4:
                continue
            length = read_int32(bundle, offset - 4)
            if length <= 0:
                continue
            row, col = divmod(slot, packet_size)
            address = TileAddress(level=level, row=row_group + row, column=col_group + col)
            yield address, read_at(bundle, offset, length)


def iter_tiles(bundle_path: Path, tile_type: str, packet_size: int) -> Iterator[Tuple[TileAddress, bytes]]:
    """Yield (address, image bytes) for every populated slot of the bundle."""
    level, row_group, col_group = parse_bundle_path(bundle_path)
    walk = _v1_tiles if tile_type == "v1" else _v2_tiles
    yield from walk(bundle_path, level, row_group, col_group, packet_size)


def main() -> None:
    ap = argparse.ArgumentParser(description="List tiles stored in a compact cache bundle")
    ap.add_argument("bundle", help="Path to a .bundle file")
    ap.add_argument("--format", choices=["v1", "v2"], default="v2", help="Compact cache version")
    ap.add_argument("--packet-size", type=int, default=DEFAULT_PACKET_SIZE, help="Bundle side length in tiles")
    ap.add_argument("--limit", type=int, default=0, help="Stop after N tiles (0 = all)")
    args = ap.parse_args()

    bundle_path = Path(args.bundle)
    if not bundle_path.is_file():
        print(f"[err] no such bundle: {bundle_path}", file=sys.stderr)
        sys.exit(1)

    if args.format == "v2":
        version = read_version(bundle_path)
        print(f"version: {version}")
        if version != SUPPORTED_VERSION:
            print(f"[err] unsupported V2 bundle version {version}", file=sys.stderr)
            sys.exit(2)

    count = 0
    total = 0
    for address, data in iter_tiles(bundle_path, args.format, args.packet_size):
        size = image_size(data)
        dims = f"{size[0]}x{size[1]}" if size else "?"
        print(f"{address}\t{len(data)} bytes\t{dims}")
        count += 1
        total += len(data)
        if args.limit and count >= args.limit:
            break

    print(f"[ok] {count} tiles, {total} bytes")


if __name__ == "__main__":
    main()
