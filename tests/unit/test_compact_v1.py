"""
Unit tests for the Compact V1 (bundlx + bundle) reader
"""

import logging
import os
import sys
from unittest.mock import patch

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from bundle import compact_v1
from bundle.compact_v1 import index_record_offset, read_tile_v1, slot_index
from common.errors import TileReadError
from tests.fixtures.bundles import png_bytes, write_v1_bundle


class TestSlotIndex:
    """Test cases for the column-major slot arithmetic"""

    def test_origin(self):
        assert slot_index(128, 0, 0, 0, 0) == 0
        assert index_record_offset(0) == 16

    def test_column_major(self):
        """Column advances by packet size, row by one"""
        assert slot_index(128, row=1, column=0, row_group=0, col_group=0) == 1
        assert slot_index(128, row=0, column=1, row_group=0, col_group=0) == 128
        assert slot_index(128, row=130, column=260, row_group=128, col_group=256) == 128 * 4 + 2
        assert index_record_offset(128 * 4 + 2) == 16 + 5 * (128 * 4 + 2)


class TestReadTileV1:
    """Test cases for read_tile_v1"""

    def test_round_trip(self, tmp_path):
        """A tile written at a known slot comes back byte-for-byte"""
        img = png_bytes((10, 200, 30))
        other = png_bytes((0, 0, 255))
        write_v1_bundle(tmp_path, 4, {(3, 7): img, (7, 3): other})

        assert read_tile_v1(tmp_path, 4, column=7, row=3) == img
        assert read_tile_v1(tmp_path, 4, column=3, row=7) == other

    def test_round_trip_non_zero_group(self, tmp_path):
        """Group-relative addressing in a group away from the origin"""
        img = b"\xff\xd8jpeg-ish payload\xff\xd9"
        write_v1_bundle(tmp_path, 9, {(300, 129): img}, packet_size=128)

        assert (tmp_path / "L09" / "R0100C0080.bundlx").exists()
        assert read_tile_v1(tmp_path, 9, column=129, row=300) == img

    def test_custom_packet_size(self, tmp_path):
        img = b"tile-at-16"
        write_v1_bundle(tmp_path, 2, {(18, 35): img}, packet_size=16)
        assert read_tile_v1(tmp_path, 2, column=35, row=18, packet_size=16) == img

    def test_zero_record_is_absent(self, tmp_path):
        """Empty slots in an existing bundle return None without error"""
        write_v1_bundle(tmp_path, 4, {(0, 0): b"abc"})
        assert read_tile_v1(tmp_path, 4, column=1, row=0) is None

    def test_missing_files_are_absent(self, tmp_path, caplog):
        """A sparse cache may omit whole groups"""
        with caplog.at_level(logging.WARNING):
            assert read_tile_v1(tmp_path, 4, column=0, row=0) is None
        assert any("not available" in r.getMessage() for r in caplog.records)

    def test_missing_data_file_is_absent(self, tmp_path):
        _, bundle = write_v1_bundle(tmp_path, 4, {(0, 0): b"abc"})
        bundle.unlink()
        assert read_tile_v1(tmp_path, 4, column=0, row=0) is None

    def test_oversized_length_is_absent_with_warning(self, tmp_path, caplog):
        """Length 1,000,001 exceeds the V1 bound"""
        write_v1_bundle(tmp_path, 4, {}, raw_lengths={(2, 2): compact_v1.MAX_TILE_SIZE + 1})
        with caplog.at_level(logging.WARNING, logger="bundle.compact_v1"):
            assert read_tile_v1(tmp_path, 4, column=2, row=2) is None
        assert any(r.levelno == logging.WARNING and "Invalid tile length" in r.getMessage() for r in caplog.records)

    @pytest.mark.parametrize("length", [0, -5])
    def test_non_positive_length_is_absent(self, tmp_path, length):
        write_v1_bundle(tmp_path, 4, {}, raw_lengths={(1, 1): length})
        assert read_tile_v1(tmp_path, 4, column=1, row=1) is None

    def test_max_length_accepted(self, tmp_path):
        img = b"\x01" * compact_v1.MAX_TILE_SIZE
        write_v1_bundle(tmp_path, 4, {(0, 5): img})
        assert read_tile_v1(tmp_path, 4, column=5, row=0) == img

    def test_truncated_data_raises(self, tmp_path):
        """An index pointing past the end of the bundle is an I/O fault, not absence"""
        _, bundle = write_v1_bundle(tmp_path, 4, {(0, 0): b"x" * 100})
        raw = bundle.read_bytes()
        bundle.write_bytes(raw[:-50])
        with pytest.raises(TileReadError):
            read_tile_v1(tmp_path, 4, column=0, row=0)

    def test_truncated_index_raises(self, tmp_path):
        bundlx, _ = write_v1_bundle(tmp_path, 4, {(0, 0): b"abc"})
        bundlx.write_bytes(bundlx.read_bytes()[:20])
        with pytest.raises(TileReadError):
            read_tile_v1(tmp_path, 4, column=10, row=10)

    def test_handles_released_on_every_path(self, tmp_path):
        """Every handle opened is closed whether the tile is found, absent, invalid or truncated"""
        write_v1_bundle(tmp_path, 4, {(0, 0): b"tile"})
        write_v1_bundle(tmp_path, 5, {}, raw_lengths={(1, 1): compact_v1.MAX_TILE_SIZE + 1})
        _, truncated = write_v1_bundle(tmp_path, 6, {(0, 0): b"x" * 100})
        truncated.write_bytes(truncated.read_bytes()[:-50])

        opened = []
        real_open = open

        def tracking_open(*args, **kwargs):
            f = real_open(*args, **kwargs)
            opened.append(f)
            return f

        with patch("builtins.open", tracking_open):
            assert read_tile_v1(tmp_path, 4, column=0, row=0) == b"tile"
            assert read_tile_v1(tmp_path, 4, column=3, row=3) is None
            assert read_tile_v1(tmp_path, 5, column=1, row=1) is None
            with pytest.raises(TileReadError):
                read_tile_v1(tmp_path, 6, column=0, row=0)

        # found: 2, zero record: bundlx only, oversized: 2, truncated: 2
        assert len(opened) == 7
        assert all(f.closed for f in opened)
