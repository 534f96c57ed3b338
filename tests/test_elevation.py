import pytest

from beidou_grid.elevation import (
    decode_elevation,
    elevation_block,
    elevation_children,
    elevation_codes_in_range,
    elevation_from_index,
    elevation_index,
    elevation_index_from_code,
    encode_elevation,
    encode_elevation_index,
    get_code_level,
    get_elevation_neighbor,
)
from beidou_grid.errors import (
    ElevationOutOfRange,
    GridNotExist,
    InvalidCodeLength,
    InvalidGridCode,
    InvalidLevel,
)
from beidou_grid.grid_spec import ELEVATION_CODE_LENGTH


# ---- height <-> index ----

class TestElevationIndex:
    def test_surface_is_zero(self):
        assert elevation_index(0.0) == 0
        assert elevation_from_index(0) == 0.0

    def test_step_size(self):
        assert elevation_from_index(1) == pytest.approx(0.01497, rel=1e-3)

    def test_monotonic(self):
        heights = [-500.0, -1.0, -0.01, 0.0, 0.01, 1.0, 100.0, 8848.86, 1e6]
        indices = [elevation_index(h) for h in heights]
        assert indices == sorted(indices)

    def test_below_surface_is_negative(self):
        assert elevation_index(-10.0) < 0

    def test_inverse_is_lower_bound(self):
        for h in (-123.4, 0.5, 8848.86):
            n = elevation_index(h)
            assert elevation_from_index(n) <= h + 1e-6
            assert elevation_from_index(n + 1) > h - 1e-6

    def test_centre_of_earth_rejected(self):
        with pytest.raises(ElevationOutOfRange):
            elevation_index(-6378137.0)


# ---- encoding ----

class TestEncodeElevation:
    def test_everest(self):
        code = encode_elevation(8848.86)
        assert len(code) == 12
        assert code[0] == "0"
        assert decode_elevation(code) == pytest.approx(8848.86, abs=0.1)

    def test_surface(self):
        assert encode_elevation(0.0) == "0" * 12

    def test_below_surface_sign(self):
        assert encode_elevation(-10.0)[0] == "1"
        assert decode_elevation(encode_elevation(-10.0)) == pytest.approx(-10.0, abs=0.02)

    def test_lengths_per_level(self):
        for level in range(0, 11):
            assert len(encode_elevation(1234.5, level)) == ELEVATION_CODE_LENGTH[level]

    def test_digit_layout(self):
        assert encode_elevation_index(1 << 25) == "001000000000"
        assert encode_elevation_index(5 << 22) == "000500000000"
        assert encode_elevation_index(0xA << 17) == "00000A000000"
        assert encode_elevation_index(63 << 25, 1) == "063"
        assert encode_elevation_index(-7) == "100000000007"

    def test_index_round_trip(self):
        for n in (0, 1, -1, 12345, -987654, 2 ** 31 - 1, -(2 ** 31 - 1)):
            assert elevation_index_from_code(encode_elevation_index(n)) == n

    def test_index_out_of_range(self):
        with pytest.raises(ElevationOutOfRange):
            encode_elevation_index(2 ** 31)
        with pytest.raises(ElevationOutOfRange):
            encode_elevation_index(-(2 ** 31))

    def test_invalid_level(self):
        with pytest.raises(InvalidLevel):
            encode_elevation(10.0, 11)


# ---- decoding ----

class TestDecodeElevation:
    def test_truncated_code_is_padded(self):
        assert decode_elevation("001") == pytest.approx(elevation_from_index(1 << 25))

    def test_bad_characters(self):
        with pytest.raises(InvalidGridCode):
            decode_elevation("2" + "0" * 11)
        with pytest.raises(InvalidGridCode):
            decode_elevation("099000000000")  # level-1 digit above 63
        with pytest.raises(InvalidGridCode):
            decode_elevation("000800000000")  # octal digit 8
        with pytest.raises(InvalidGridCode):
            decode_elevation("00000a000000")

    def test_bad_length(self):
        with pytest.raises(InvalidCodeLength):
            decode_elevation("0" * 13)
        with pytest.raises(InvalidCodeLength):
            decode_elevation("")

    def test_code_level(self):
        assert get_code_level("0") == 0
        assert get_code_level("000") == 1
        assert get_code_level("0" * 12) == 10
        with pytest.raises(InvalidCodeLength):
            get_code_level("00")


# ---- neighbours ----

class TestElevationNeighbor:
    def test_negative_boundary_crosses_origin(self):
        assert get_elevation_neighbor("1" + "0" * 11, -1) == "0" * 12

    def test_origin_steps_below(self):
        assert get_elevation_neighbor("0" * 12, -1) == "1" + "0" * 11

    def test_simple_steps(self):
        assert get_elevation_neighbor("0" * 12, 1) == "0" * 11 + "1"
        assert get_elevation_neighbor("0" * 11 + "5", -1) == "0" * 11 + "4"

    def test_carry(self):
        assert get_elevation_neighbor("000000000007", 1) == "000000000010"
        assert get_elevation_neighbor("000000000010", -1) == "000000000007"

    def test_carry_through_mixed_radix(self):
        # hex digits at levels 4 and 5 roll over into the binary level-3 digit
        assert get_elevation_neighbor("00000FF", 1) == "0000100"

    def test_matches_index_arithmetic(self):
        for n in (0, 7, 8, 63, 4095, 123456):
            code = encode_elevation_index(n)
            assert elevation_index_from_code(get_elevation_neighbor(code, 1)) == n + 1

    def test_coarser_level(self):
        code = encode_elevation(8848.86)
        up = get_elevation_neighbor(code, 1, level=3)
        assert len(up) == ELEVATION_CODE_LENGTH[3]
        assert elevation_index_from_code(up) - elevation_index_from_code(code[:5]) == 1 << 21

    def test_surface_crossing_at_coarser_level(self):
        assert get_elevation_neighbor("0" * 12, -1, level=5) == "1000000"
        assert get_elevation_neighbor("1" + "0" * 11, -1, level=3) == "00000"
        assert get_elevation_neighbor("000000000005", -1, level=5) == "1000000"
        for level in range(0, 11):
            assert len(get_elevation_neighbor("0" * 12, -1, level=level)) == ELEVATION_CODE_LENGTH[level]

    def test_overflow_raises(self):
        with pytest.raises(GridNotExist):
            get_elevation_neighbor("063", 1)
        with pytest.raises(GridNotExist):
            get_elevation_neighbor("1", 1)

    def test_bad_offset(self):
        with pytest.raises(ValueError):
            get_elevation_neighbor("000", 2)


# ---- blocks ----

class TestElevationBlocks:
    def test_block_of_sign(self):
        assert elevation_block("0") == (0, 2 ** 31 - 1)
        assert elevation_block("1") == (-(2 ** 31 - 1), -1)

    def test_block_of_level1(self):
        assert elevation_block("001") == (1 << 25, (2 << 25) - 1)

    def test_negative_zero_block_is_empty(self):
        low, high = elevation_block("1" + "0" * 11)
        assert low > high

    def test_children(self):
        children = elevation_children("0")
        assert len(children) == 64
        assert children[0] == "000"
        assert children[-1] == "063"
        assert elevation_children("00000") == ["000000", "000001"] + [f"00000{d}" for d in "23456789ABCDEF"]
        with pytest.raises(InvalidLevel):
            elevation_children("0" * 12)

    def test_codes_in_range(self):
        assert elevation_codes_in_range(0, 0, 10) == ["0" * 12]
        assert set(elevation_codes_in_range(-1, 0, 10)) == {"0" * 12, "100000000001"}
        assert elevation_codes_in_range(0, (1 << 25) - 1, 1) == ["000"]
        assert elevation_codes_in_range(5, 4, 3) == []

    def test_codes_in_range_cover_heights(self):
        low, high = elevation_index(10.0), elevation_index(11.0)
        codes = elevation_codes_in_range(low, high, 10)
        assert len(codes) == high - low + 1
        assert encode_elevation(10.5) in codes
