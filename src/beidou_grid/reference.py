"""
reference.py

Reference codes: a target cell written relative to a nearby reference cell
of level 5 or finer::

    N50J47539B8-3A-10-75

The first two-character segment after the reference is the signed
``(column, row)`` delta of the target at the reference level, in geographic
direction (east/north positive).  Each further segment is the target's own
column and row at the next finer level.  Non-negative values are written
``0``-``7`` and negative ones ``A``-``G`` (``A`` = -1).
"""

from __future__ import annotations

from typing import Tuple, Union

from . import codec2d
from .errors import (
    InvalidLevel,
    MalformedReferenceDigit,
    OutOfReferenceRange,
    ReferenceLevelTooLow,
)
from .grid_spec import LEVEL_RULES, MAX_LEVEL, Hemisphere, units_to_degrees
from .models import GeoPoint
from .neighbors import get_offset, get_relative_grid

MIN_REFERENCE_LEVEL = 5
MAX_REFERENCE_DELTA = 7

DEFAULT_SEPARATOR = "-"


def _reference_level(reference: str) -> int:
    level = codec2d.get_code_level(reference)
    if level < MIN_REFERENCE_LEVEL:
        raise ReferenceLevelTooLow(
            f"reference code must be level {MIN_REFERENCE_LEVEL} or finer, got level {level}"
        )
    return level


def _delta_char(value: int) -> str:
    if value >= 0:
        return str(value)
    return chr(ord("A") - 1 - value)


def _parse_delta(char: str, sign: int) -> int:
    if "0" <= char <= "7":
        return (ord(char) - ord("0")) * sign
    if "A" <= char <= "G":
        return -(ord(char) - ord("A") + 1) * sign
    raise MalformedReferenceDigit(f"reference digit must be 0-7 or A-G, got {char!r}")


def refer(target: Union[str, GeoPoint], reference: str, separator: str = DEFAULT_SEPARATOR) -> str:
    """Express *target* relative to *reference*.

    Args:
        target: A 2D code at least as fine as *reference*, or a point (encoded
            at level 10).
        reference: 2D code of level 5..10.
        separator: Segment separator.

    Raises:
        ReferenceLevelTooLow: *reference* is coarser than level 5.
        InvalidLevel: *target* is coarser than *reference*.
        OutOfReferenceRange: the target lies more than 7 cells away.
    """
    if isinstance(target, GeoPoint):
        target = codec2d.encode(target, MAX_LEVEL)
    level = _reference_level(reference)
    target_level = codec2d.get_code_level(target)
    if target_level < level:
        raise InvalidLevel(f"target level {target_level} is coarser than reference level {level}")

    hemisphere = Hemisphere.from_code(reference)
    d_col, d_row = get_offset(reference, target)
    lng_delta = d_col * hemisphere.lng_sign
    lat_delta = d_row * hemisphere.lat_sign
    if abs(lng_delta) > MAX_REFERENCE_DELTA or abs(lat_delta) > MAX_REFERENCE_DELTA:
        raise OutOfReferenceRange(
            f"{target!r} is ({lng_delta}, {lat_delta}) cells from {reference!r}; "
            f"at most {MAX_REFERENCE_DELTA} is allowed"
        )

    segments = [reference, _delta_char(lng_delta) + _delta_char(lat_delta)]
    for n in range(level + 1, target_level + 1):
        col, row = codec2d.cell_indices(target, n)
        segments.append(_delta_char(col * hemisphere.lng_sign) + _delta_char(row * hemisphere.lat_sign))
    return separator.join(segments)


def de_refer(code: str, separator: str = DEFAULT_SEPARATOR) -> str:
    """Rebuild the full 2D code from a reference code.

    A code without *separator* is returned unchanged.

    Raises:
        MalformedReferenceDigit: a segment character is outside 0-7 and A-G,
            or a segment is not two characters long.
    """
    parts = code.split(separator)
    if len(parts) == 1:
        return code
    reference, segments = parts[0], parts[1:]
    level = _reference_level(reference)
    if level + len(segments) - 1 > MAX_LEVEL:
        raise InvalidLevel(f"{code!r} would decode past level {MAX_LEVEL}")

    hemisphere = Hemisphere.from_code(reference)
    result = reference
    for i, segment in enumerate(segments):
        if len(segment) != 2:
            raise MalformedReferenceDigit(f"reference segment must have two characters, got {segment!r}")
        d_col = _parse_delta(segment[0], hemisphere.lng_sign)
        d_row = _parse_delta(segment[1], hemisphere.lat_sign)
        if i == 0:
            result = get_relative_grid(reference, d_col, d_row)
        else:
            result += codec2d.encode_fragment(level + i, d_col, d_row, Hemisphere.from_code(result))
    return result


def get_refer_range(code: str) -> Tuple[GeoPoint, GeoPoint]:
    """South-west and north-east corners of the area *code* can refer to.

    Cells own their edge nearest the origin, so the far edge of the range is
    pulled in by one level-10 cell.
    """
    level = _reference_level(code)
    min_lng, min_lat, max_lng, max_lat = codec2d.bounds_units(code)
    r = LEVEL_RULES[level]
    span_lng = MAX_REFERENCE_DELTA * r.lng_size
    span_lat = MAX_REFERENCE_DELTA * r.lat_size
    hemisphere = Hemisphere.from_code(code)

    west, east = min_lng - span_lng, max_lng + span_lng
    if hemisphere.lng_sign > 0:
        east -= 1
    else:
        west += 1
    south, north = min_lat - span_lat, max_lat + span_lat
    if hemisphere.lat_sign > 0:
        north -= 1
    else:
        south += 1
    return (
        GeoPoint(longitude=float(units_to_degrees(west)), latitude=float(units_to_degrees(south))),
        GeoPoint(longitude=float(units_to_degrees(east)), latitude=float(units_to_degrees(north))),
    )

