import pytest

from beidou_grid import codec2d
from beidou_grid.errors import InvalidLevel, PolarRegionUnsupported
from beidou_grid.models import GeoPoint
from beidou_grid.neighbors import (
    DEFAULT_OFFSETS,
    get_among_us,
    get_neighbors,
    get_offset,
    get_relative_grid,
)


# ---- get_relative_grid ----

class TestRelativeGrid:
    def test_identity(self, hemisphere_points):
        for point in hemisphere_points:
            for level in (1, 3, 6, 10):
                code = codec2d.encode(point, level)
                assert get_relative_grid(code, 0, 0) == code

    def test_inside_parent(self):
        assert get_relative_grid("N50J47", 1, 0) == "N50J57"
        assert get_relative_grid("N50J47", -4, -7) == "N50J00"

    def test_crosses_parent(self):
        assert get_relative_grid("N50JB7", 1, 0) == "N51J07"
        assert get_relative_grid("N50J00", -1, 0) == "N49JB0"

    def test_zorder_level_crosses_parent(self):
        assert get_relative_grid("N50J475", 1, 0) == "N50J574"

    def test_crosses_prime_meridian(self):
        assert get_relative_grid("N31A", -1, 0) == "N30A"
        assert get_relative_grid("N30A", -1, 0) == "N31A"
        assert get_relative_grid("N30A", 1, 0) == "N29A"

    def test_crosses_equator(self):
        assert get_relative_grid("N31A", 0, -1) == "S31A"
        assert get_relative_grid("S31A", 0, -1) == "N31A"

    def test_crosses_antimeridian(self):
        assert get_relative_grid("N60A", 1, 0) == "N01A"
        assert get_relative_grid("N01A", 1, 0) == "N60A"

    def test_into_polar_cap(self):
        with pytest.raises(PolarRegionUnsupported):
            get_relative_grid("N31V", 0, 1)

    def test_level0_rejected(self):
        with pytest.raises(InvalidLevel):
            get_relative_grid("N", 1, 0)

    def test_matches_encoding_shifted_point(self):
        code = codec2d.encode(GeoPoint(longitude=116.3098, latitude=39.9123), 5)
        moved = get_relative_grid(code, 20, -9)
        min_lng, min_lat, _, _ = codec2d.cell_bounds(code)
        step = 4 / 3600
        expected = codec2d.encode(
            GeoPoint(longitude=min_lng + 20.5 * step, latitude=min_lat - 8.5 * step), 5
        )
        assert moved == expected


# ---- get_offset ----

class TestOffset:
    @pytest.mark.parametrize("d_col,d_row", [(0, 0), (1, 0), (-1, 1), (7, -7), (-20, 13), (40, -3)])
    def test_round_trip(self, hemisphere_points, d_col, d_row):
        for point in hemisphere_points:
            for level in (2, 5, 7):
                code = codec2d.encode(point, level)
                target = get_relative_grid(code, d_col, d_row)
                assert get_offset(code, target) == (d_col, d_row)

    @pytest.mark.parametrize("d_col,d_row", [(-3, -2), (-1, 0), (0, -1), (2, -5)])
    def test_round_trip_across_origin(self, d_col, d_row):
        for lng, lat in ((0.01, 0.01), (-0.01, -0.01), (0.01, -0.01), (-0.01, 0.01)):
            code = codec2d.encode(GeoPoint(longitude=lng, latitude=lat), 4)
            target = get_relative_grid(code, d_col, d_row)
            assert get_offset(code, target) == (d_col, d_row)

    @pytest.mark.parametrize("d_col,d_row", [(3, -5), (1, 0), (-2, 4), (6, 2)])
    def test_round_trip_across_antimeridian(self, d_col, d_row):
        for lng, lat in ((179.999, 10.3), (-179.999, 10.3), (179.999, -10.3), (-179.999, -10.3)):
            for level in (2, 5):
                code = codec2d.encode(GeoPoint(longitude=lng, latitude=lat), level)
                target = get_relative_grid(code, d_col, d_row)
                assert get_offset(code, target) == (d_col, d_row)
                assert get_relative_grid(code, *get_offset(code, target)) == target

    def test_offset_across_antimeridian(self):
        target = get_relative_grid("S01FA1", 3, -5)
        assert target[:3] == "S60"
        assert get_offset("S01FA1", target) == (3, -5)
        assert get_offset("N60A", "N01A") == (1, 0)
        assert get_offset("N01A", "N60A") == (1, 0)

    def test_level1_neighbours_across_meridian(self):
        assert get_offset("N31A", "N30A") == (-1, 0)
        assert get_offset("N30A", "N31A") == (-1, 0)

    def test_finer_target_is_shortened(self):
        assert get_offset("N50J47", "N50J58475") == (1, 1)


# ---- batch helpers ----

class TestBatch:
    def test_default_neighbors(self):
        codes = get_neighbors("N50J47")
        assert len(codes) == len(DEFAULT_OFFSETS) == 9
        assert codes[4] == "N50J47"
        assert len(set(codes)) == 9

    def test_custom_offsets(self):
        assert get_neighbors("N50J47", [(1, 0), (0, 1)]) == ["N50J57", "N50J48"]

    def test_among_us(self):
        assert sorted(get_among_us("N50J47", "N50J58")) == ["N50J47", "N50J48", "N50J57", "N50J58"]

    def test_among_us_reversed(self):
        assert sorted(get_among_us("N50J58", "N50J47")) == ["N50J47", "N50J48", "N50J57", "N50J58"]

    def test_among_us_across_meridian(self):
        assert sorted(get_among_us("N30A", "N31A")) == ["N30A", "N31A"]

    def test_among_us_across_antimeridian(self):
        assert sorted(get_among_us("N60A", "N01B")) == ["N01A", "N01B", "N60A", "N60B"]

    def test_among_us_level_mismatch(self):
        with pytest.raises(InvalidLevel):
            get_among_us("N50J", "N50J47")
