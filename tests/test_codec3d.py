import pytest

from beidou_grid import codec2d, codec3d
from beidou_grid.elevation import encode_elevation
from beidou_grid.errors import InvalidCodeLength, InvalidLevel
from beidou_grid.models import DMSPoint


class TestEncode3D:
    def test_length(self, beijing):
        assert len(codec3d.encode(beijing)) == 32
        for level in range(1, 11):
            assert len(codec3d.encode(beijing, level)) == codec3d.CODE_LENGTH_3D[level]

    def test_prefix_flags(self, beijing, buenos_aires):
        code = codec3d.encode(beijing)
        assert code[:2] == "N0"
        below = codec3d.encode(buenos_aires.with_elevation(-40.0))
        assert below[:2] == "S1"

    def test_interleaving_level1(self, beijing):
        ele = encode_elevation(beijing.elevation, 1)
        assert codec3d.encode(beijing, 1) == "N" + ele[0] + "50J" + ele[1:3]

    def test_split_matches_components(self, hemisphere_points):
        for point in hemisphere_points:
            code2d, code_ele = codec3d.split(codec3d.encode(point))
            assert code2d == codec2d.encode(point)
            assert code_ele == encode_elevation(point.elevation)

    def test_join_split_round_trip(self, beijing):
        code = codec3d.encode(beijing, 7)
        assert codec3d.join(*codec3d.split(code)) == code

    def test_join_level_mismatch(self, beijing):
        with pytest.raises(InvalidCodeLength):
            codec3d.join(codec2d.encode(beijing, 3), encode_elevation(50.0, 4))

    def test_invalid_level(self, beijing):
        with pytest.raises(InvalidLevel):
            codec3d.encode(beijing, 0)


class TestDecode3D:
    def test_decode(self, beijing):
        pt = codec3d.decode(codec3d.encode(beijing))
        assert pt.longitude == pytest.approx(beijing.longitude, abs=1e-6)
        assert pt.latitude == pytest.approx(beijing.latitude, abs=1e-6)
        assert pt.elevation == pytest.approx(beijing.elevation, abs=0.02)
        assert pt.elevation <= beijing.elevation

    def test_decode_dms(self, sydney):
        pt = codec3d.decode(codec3d.encode(sydney, 5), form="dms")
        assert isinstance(pt, DMSPoint)
        assert pt.lat_direction == "S"

    def test_idempotent(self, hemisphere_points):
        for point in hemisphere_points:
            for level in (1, 4, 10):
                code = codec3d.encode(point, level)
                assert codec3d.encode(codec3d.decode(code), level) == code

    def test_explicit_level(self, beijing):
        code = codec3d.encode(beijing, 4)
        assert codec3d.decode(code, level=4) == codec3d.decode(code)
        with pytest.raises(InvalidCodeLength):
            codec3d.decode(code, level=5)

    def test_code_level(self):
        assert codec3d.get_code_level_3d("N0" + "50J" + "00") == 1
        with pytest.raises(InvalidCodeLength):
            codec3d.get_code_level_3d("N050J0")

    def test_neighbor(self):
        assert codec3d.get_neighbor("0" * 12, 1) == "0" * 11 + "1"
        assert codec3d.get_neighbor("1" + "0" * 11, -1) == "0" * 12

    def test_grid_cell(self, beijing):
        cell = codec3d.grid_cell(codec3d.encode(beijing, 10))
        assert cell.min_height <= beijing.elevation < cell.max_height
        assert cell.contains(beijing.longitude, beijing.latitude)
        assert cell.level == 10
