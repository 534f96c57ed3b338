"""
codec2d.py

Two-dimensional BeiDou grid codes: position <-> variable-length code string
for levels 1..10.

Code layout (level 9, 18 characters)::

    N 50J 47 5 39 B8 2 55 34 61
    | |   |  | |  |  | |  |  +- level 9: column, row (digits 0-7)
    | |   |  | |  |  | |  +---- level 8
    | |   |  | |  |  | +------- level 7
    | |   |  | |  |  +--------- level 6: Z-order digit of a 2x2 sub-grid
    | |   |  | |  +------------ level 5: column, row (hex, 15x15)
    | |   |  | +--------------- level 4: column, row (hex, 15x10)
    | |   |  +----------------- level 3: Z-order digit of a 2x3 sub-grid
    | |   +-------------------- level 2: column, row (hex, 12x8)
    | +------------------------ level 1: longitude band + 31, latitude letter
    +-------------------------- hemisphere flag N/S

Level 10 appends one more column/row pair.

Below level 1 every hemisphere is the mirror image of the north-east one:
columns count away from the prime meridian and rows away from the equator.
All arithmetic runs on absolute values in integer units of 1/2048
arc-second, so ten levels of subdivision accumulate no rounding error.
"""

from __future__ import annotations

import math
from fractions import Fraction
from typing import List, Literal, Optional, Tuple, Union

from .errors import (
    InvalidCodeLength,
    InvalidGridCode,
    InvalidLevel,
    PolarRegionUnsupported,
)
from .grid_spec import (
    CODE_LENGTH_2D,
    LEVEL1_BAND_OFFSET,
    LEVEL_RULES,
    MAX_LEVEL,
    POLAR_LATITUDE_DEG,
    POLAR_LATITUDE_UNITS,
    UNITS_PER_DEGREE,
    UNITS_PER_SECOND,
    FragmentKind,
    Hemisphere,
    degrees_to_units,
    units_to_degrees,
    validate_level,
    zorder_cell,
    zorder_digit,
)
from .models import DMSPoint, GeoPoint, GridCell

DecodeForm = Literal["decimal", "dms"]

# columns/rows of level-1 cells inside one hemisphere
_LEVEL1_COLUMNS = 30
_LEVEL1_ROWS = 22

_HEX_DIGITS = "0123456789ABCDEF"


# ------------------------------------------------------------
# Code structure
# ------------------------------------------------------------

def get_code_level(code: str) -> int:
    """Return the level of a 2D code, derived from its length alone."""
    try:
        level = CODE_LENGTH_2D.index(len(code))
    except ValueError:
        raise InvalidCodeLength(f"no 2D level has code length {len(code)}: {code!r}") from None
    if code[0] not in ("N", "S"):
        raise InvalidGridCode(f"2D code must start with N or S: {code!r}")
    return level


def shorten(code: str, level: int) -> str:
    """Truncate *code* to *level*; level 0 keeps only the hemisphere flag."""
    validate_level(level, minimum=0)
    if get_code_level(code) <= level:
        return code
    return code[:CODE_LENGTH_2D[level]]


def fragment_at(code: str, level: int) -> str:
    """The characters contributed by *level* (the flag for level 0)."""
    if level == 0:
        return code[0]
    r = LEVEL_RULES[level]
    return code[r.code_start:r.code_end]


def _max_columns(level: int) -> int:
    return _LEVEL1_COLUMNS if level == 1 else LEVEL_RULES[level].lng_divisions


def encode_fragment(level: int, col: int, row: int, hemisphere: Hemisphere) -> str:
    """Write the hemisphere-frame cell ``(col, row)`` as *level*'s fragment."""
    r = LEVEL_RULES[level]
    if not (0 <= col < _max_columns(level) and 0 <= row < r.lat_divisions):
        raise InvalidGridCode(f"cell ({col}, {row}) does not exist at level {level}")

    if r.kind is FragmentKind.BAND:
        if hemisphere.lng_sign > 0:
            band = LEVEL1_BAND_OFFSET + col
        else:
            band = LEVEL1_BAND_OFFSET - 1 - col
        return f"{band:02d}{chr(ord('A') + row)}"
    if r.kind is FragmentKind.ZORDER:
        return str(zorder_digit(hemisphere, level, col, row))
    return _HEX_DIGITS[col] + _HEX_DIGITS[row]


def cell_indices(code: str, level: int, hemisphere: Optional[Hemisphere] = None) -> Tuple[int, int]:
    """Parse *level*'s fragment back into its hemisphere-frame ``(col, row)``."""
    r = LEVEL_RULES[level]
    fragment = fragment_at(code, level)
    if len(fragment) != r.width:
        raise InvalidCodeLength(f"level {level} fragment of {code!r} is truncated")
    if hemisphere is None:
        hemisphere = Hemisphere.from_code(code)

    if r.kind is FragmentKind.BAND:
        if not fragment[:2].isdigit():
            raise InvalidGridCode(f"longitude band must be two digits: {code!r}")
        band = int(fragment[:2])
        if band == 0:
            raise PolarRegionUnsupported(f"polar codes are not supported: {code!r}")
        if band > 2 * _LEVEL1_COLUMNS:
            raise InvalidGridCode(f"longitude band {band} out of range: {code!r}")
        col = band - LEVEL1_BAND_OFFSET if band >= LEVEL1_BAND_OFFSET else LEVEL1_BAND_OFFSET - 1 - band
        row = ord(fragment[2]) - ord("A")
    elif r.kind is FragmentKind.ZORDER:
        if not fragment.isdigit():
            raise InvalidGridCode(f"level {level} digit must be decimal: {code!r}")
        try:
            col, row = zorder_cell(hemisphere, level, int(fragment))
        except KeyError:
            raise InvalidGridCode(f"level {level} digit {fragment} out of range: {code!r}") from None
    else:
        if fragment[0] not in _HEX_DIGITS or fragment[1] not in _HEX_DIGITS:
            raise InvalidGridCode(f"level {level} fragment must be upper-case hex: {code!r}")
        col = _HEX_DIGITS.index(fragment[0])
        row = _HEX_DIGITS.index(fragment[1])

    if not (0 <= col < _max_columns(level) and 0 <= row < r.lat_divisions):
        raise InvalidGridCode(f"level {level} fragment {fragment!r} out of range: {code!r}")
    return col, row


# ------------------------------------------------------------
# Encoding
# ------------------------------------------------------------

def encode_units(lng_units, lat_units, level: int, hemisphere: Hemisphere) -> str:
    """Encode absolute longitude/latitude given in 1/2048-second units.

    Args:
        lng_units: ``abs(longitude)`` in units (int or Fraction).
        lat_units: ``abs(latitude)`` in units (int or Fraction).
        level: Target level 1..10.
        hemisphere: Hemisphere the position lies in.

    Returns:
        The 2D code of the cell containing the position.
    """
    validate_level(level)
    if lat_units >= POLAR_LATITUDE_UNITS:
        raise PolarRegionUnsupported(
            f"|latitude| >= {POLAR_LATITUDE_DEG} needs the polar grid, which is not implemented"
        )

    base_lng = 0
    base_lat = 0
    parts = [hemisphere.lat_direction]
    for n in range(1, level + 1):
        r = LEVEL_RULES[n]
        col = min(math.floor((lng_units - base_lng) / r.lng_size), _max_columns(n) - 1)
        row = min(math.floor((lat_units - base_lat) / r.lat_size), r.lat_divisions - 1)
        base_lng += col * r.lng_size
        base_lat += row * r.lat_size
        parts.append(encode_fragment(n, col, row, hemisphere))
    return "".join(parts)


def _dms_units(degree: int, minute: int, second: float) -> Fraction:
    return (Fraction(degree) * UNITS_PER_DEGREE
            + Fraction(minute) * 60 * UNITS_PER_SECOND
            + Fraction(repr(float(second))) * UNITS_PER_SECOND)


def encode(point: Union[GeoPoint, DMSPoint], level: int = MAX_LEVEL) -> str:
    """Encode a position into its 2D grid code at *level*.

    Args:
        point: Position in decimal degrees or degree/minute/second form.
        level: Target level 1..10 (default 10, ~1.5 cm at the equator).

    Returns:
        Code of length ``CODE_LENGTH_2D[level]``.

    Raises:
        InvalidLevel: *level* outside 1..10.
        PolarRegionUnsupported: ``|latitude| >= 88``.
    """
    validate_level(level)
    if isinstance(point, DMSPoint):
        hemisphere = Hemisphere.from_directions(point.lat_direction, point.lng_direction)
        lng_units = _dms_units(point.lng_degree, point.lng_minute, point.lng_second)
        lat_units = _dms_units(point.lat_degree, point.lat_minute, point.lat_second)
    else:
        hemisphere = point.hemisphere
        lng_units = abs(degrees_to_units(point.longitude))
        lat_units = abs(degrees_to_units(point.latitude))
    return encode_units(lng_units, lat_units, level, hemisphere)


# ------------------------------------------------------------
# Decoding
# ------------------------------------------------------------

def anchor_units(code: str) -> Tuple[int, Hemisphere, int, int]:
    """Return ``(level, hemisphere, lng_units, lat_units)`` of the cell anchor.

    The anchor is given in absolute units: it is the cell corner nearest the
    prime meridian and the equator.
    """
    level = get_code_level(code)
    hemisphere = Hemisphere.from_code(code)
    lng = 0
    lat = 0
    for n in range(1, level + 1):
        r = LEVEL_RULES[n]
        col, row = cell_indices(code, n, hemisphere)
        lng += col * r.lng_size
        lat += row * r.lat_size
    return level, hemisphere, lng, lat


def _split_dms(units: int) -> Tuple[int, int, float]:
    seconds = Fraction(units, UNITS_PER_SECOND)
    degree = math.floor(seconds / 3600)
    seconds -= degree * 3600
    minute = math.floor(seconds / 60)
    seconds -= minute * 60
    return degree, minute, float(seconds)


def decode(code: str, form: DecodeForm = "decimal") -> Union[GeoPoint, DMSPoint]:
    """Decode a 2D code into its anchor point.

    The anchor is the cell's south-west corner in the north-east hemisphere
    and its mirror image elsewhere (the corner nearest the prime meridian and
    the equator).  Signed zero is kept, so ``encode(decode(code))`` returns
    *code* in every hemisphere.

    Args:
        code: 2D grid code of any level.
        form: ``"decimal"`` for a :class:`GeoPoint`, ``"dms"`` for a
            :class:`DMSPoint`.

    Raises:
        InvalidCodeLength: the length matches no level.
        InvalidGridCode: a fragment is outside its alphabet.
        PolarRegionUnsupported: longitude band ``00``.
    """
    _, hemisphere, lng, lat = anchor_units(code)
    if form == "decimal":
        return GeoPoint(
            longitude=math.copysign(float(units_to_degrees(lng)), hemisphere.lng_sign),
            latitude=math.copysign(float(units_to_degrees(lat)), hemisphere.lat_sign),
        )
    if form == "dms":
        lng_d, lng_m, lng_s = _split_dms(lng)
        lat_d, lat_m, lat_s = _split_dms(lat)
        return DMSPoint(
            lng_degree=lng_d, lng_minute=lng_m, lng_second=lng_s,
            lng_direction=hemisphere.lng_direction,
            lat_degree=lat_d, lat_minute=lat_m, lat_second=lat_s,
            lat_direction=hemisphere.lat_direction,
        )
    raise ValueError(f"form must be 'decimal' or 'dms', got {form!r}")


# ------------------------------------------------------------
# Cells
# ------------------------------------------------------------

def bounds_units(code: str) -> Tuple[int, int, int, int]:
    """Signed ``(min_lng, min_lat, max_lng, max_lat)`` of a cell in units."""
    level, hemisphere, lng, lat = anchor_units(code)
    if level == 0:
        raise InvalidLevel("a level-0 code covers a whole hemisphere and has no cell")
    r = LEVEL_RULES[level]
    if hemisphere.lng_sign > 0:
        min_lng, max_lng = lng, lng + r.lng_size
    else:
        min_lng, max_lng = -(lng + r.lng_size), -lng
    if hemisphere.lat_sign > 0:
        min_lat, max_lat = lat, lat + r.lat_size
    else:
        min_lat, max_lat = -(lat + r.lat_size), -lat
    return min_lng, min_lat, max_lng, max_lat


def cell_bounds(code: str) -> Tuple[float, float, float, float]:
    """Geographic ``(min_lng, min_lat, max_lng, max_lat)`` of a code's cell."""
    return tuple(float(units_to_degrees(v)) for v in bounds_units(code))


def grid_cell(code: str) -> GridCell:
    min_lng, min_lat, max_lng, max_lat = cell_bounds(code)
    return GridCell(
        code=code,
        level=get_code_level(code),
        min_lng=min_lng,
        min_lat=min_lat,
        max_lng=max_lng,
        max_lat=max_lat,
    )


def child_codes(code: str) -> List[str]:
    """All codes one level below *code*, built without decoding."""
    level = get_code_level(code)
    if level < 1 or level >= MAX_LEVEL:
        raise InvalidLevel(f"only codes of level 1..{MAX_LEVEL - 1} have children, got {level}")
    hemisphere = Hemisphere.from_code(code)
    r = LEVEL_RULES[level + 1]
    return [
        code + encode_fragment(level + 1, col, row, hemisphere)
        for col in range(r.lng_divisions)
        for row in range(r.lat_divisions)
    ]


def get_grid_size(code: str, level: int) -> Tuple[float, float]:
    """Rough ``(east-west, north-south)`` extent in km of *code*'s cell at *level*.

    Only an estimate: uses 111.7 km per degree and the cosine of the anchor
    latitude.
    """
    validate_level(level)
    code = shorten(code, level)
    r = LEVEL_RULES[get_code_level(code)]
    anchor = decode(code)
    cos_lat = math.cos(math.radians(abs(anchor.latitude)))
    return (float(r.lng_size_deg) * 111.7 * cos_lat, float(r.lat_size_deg) * 111.7)
