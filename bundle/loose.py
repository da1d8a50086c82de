from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from common.types import TileAddress

LOOSE_EXTENSIONS: Sequence[str] = (".jpg", ".jpeg", ".png")


def loose_tile_path(all_layers_dir: str | Path, address: TileAddress, ext: str) -> Path:
    """<all_layers_dir>/L05/R0000012a/C000003f1.png"""
    return (
        Path(all_layers_dir)
        / f"L{address.level:02d}"
        / f"R{address.row:08x}"
        / f"C{address.column:08x}{ext}"
    )


def find_loose_tile(all_layers_dir: str | Path, address: TileAddress) -> Optional[Path]:
    for ext in LOOSE_EXTENSIONS:
        p = loose_tile_path(all_layers_dir, address, ext)
        if p.is_file():
            return p
    return None


def read_tile_loose(all_layers_dir: str | Path, address: TileAddress) -> Optional[bytes]:
    """Image bytes of an exploded-cache tile, or None if no file exists for it."""
    p = find_loose_tile(all_layers_dir, address)
    if p is None:
        return None
    with p.open("rb") as f:
        return f.read()
