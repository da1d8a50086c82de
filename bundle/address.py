from __future__ import annotations

from common.types import DEFAULT_PACKET_SIZE, BundleLocation


def resolve(level: int, row: int, column: int, packet_size: int = DEFAULT_PACKET_SIZE) -> BundleLocation:
    """
    Map a tile address to the bundle group that stores it.

    row_group / col_group are the row and column of the group's top-left tile,
    i.e. floor(x / packet_size) * packet_size.
    """
    if packet_size <= 0:
        raise ValueError("packet_size must be > 0")
    if level < 0 or row < 0 or column < 0:
        raise ValueError("level/row/column must be >= 0")
    return BundleLocation(
        level=int(level),
        row_group=(row // packet_size) * packet_size,
        col_group=(column // packet_size) * packet_size,
        packet_size=int(packet_size),
    )
