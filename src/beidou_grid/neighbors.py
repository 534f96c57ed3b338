"""
neighbors.py

Cell stepping on 2D codes.  Offsets are always counted in the hemisphere's
own frame: ``+d_col`` moves away from the prime meridian, ``+d_row`` away from
the equator.

Moves that stay inside the parent cell only rewrite the last fragment.  Any
other move shifts the cell centre by whole cell sizes in exact
1/2048-second units and re-encodes it, which also handles crossing the prime
meridian, the equator and the antimeridian.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Sequence, Tuple

from .codec2d import (
    anchor_units,
    cell_indices,
    encode_fragment,
    encode_units,
    get_code_level,
    shorten,
)
from .errors import InvalidLevel
from .grid_spec import CODE_LENGTH_2D, LEVEL_RULES, UNITS_PER_DEGREE, Hemisphere

logger = logging.getLogger(__name__)

Offset = Tuple[int, int]

DEFAULT_OFFSETS: Tuple[Offset, ...] = (
    (-1, -1), (-1, 0), (-1, 1),
    (0, -1), (0, 0), (0, 1),
    (1, -1), (1, 0), (1, 1),
)

# doubled units, so cell centres stay integral
_HALF_TURN = 2 * 180 * UNITS_PER_DEGREE
_FULL_TURN = 2 * _HALF_TURN

_LEVEL1_COLUMNS = 30


def _signed_center(code: str) -> Tuple[int, int, int, Hemisphere]:
    """Geographic cell centre in doubled units: ``(level, lng2, lat2, hemisphere)``."""
    level, hemisphere, lng, lat = anchor_units(code)
    r = LEVEL_RULES[level]
    return (
        level,
        hemisphere.lng_sign * (2 * lng + r.lng_size),
        hemisphere.lat_sign * (2 * lat + r.lat_size),
        hemisphere,
    )


def _in_parent(level: int, col: int, row: int) -> bool:
    r = LEVEL_RULES[level]
    columns = _LEVEL1_COLUMNS if level == 1 else r.lng_divisions
    return 0 <= col < columns and 0 <= row < r.lat_divisions


def get_relative_grid(code: str, d_col: int, d_row: int) -> str:
    """Code of the cell *d_col* columns and *d_row* rows away from *code*.

    Args:
        code: 2D code of level 1..10.
        d_col: Column offset in the hemisphere frame.
        d_row: Row offset in the hemisphere frame.

    Returns:
        A code of the same level.

    Raises:
        PolarRegionUnsupported: the target cell lies at ``|latitude| >= 88``.
    """
    level = get_code_level(code)
    if level == 0:
        raise InvalidLevel("a level-0 code has no neighbours")
    hemisphere = Hemisphere.from_code(code)
    col, row = cell_indices(code, level, hemisphere)
    if _in_parent(level, col + d_col, row + d_row):
        return code[:CODE_LENGTH_2D[level - 1]] + encode_fragment(level, col + d_col, row + d_row, hemisphere)

    r = LEVEL_RULES[level]
    _, lng2, lat2, _ = _signed_center(code)
    lng2 += hemisphere.lng_sign * 2 * d_col * r.lng_size
    lat2 += hemisphere.lat_sign * 2 * d_row * r.lat_size
    while lng2 > _HALF_TURN:
        lng2 -= _FULL_TURN
    while lng2 < -_HALF_TURN:
        lng2 += _FULL_TURN
    target = Hemisphere.from_directions("N" if lat2 > 0 else "S", "E" if lng2 > 0 else "W")
    return encode_units(abs(lng2) // 2, abs(lat2) // 2, level, target)


def get_offset(reference: str, target: str) -> Offset:
    """``(d_col, d_row)`` from *reference* to *target* at the reference level.

    *target* may be finer than *reference*; it is shortened first.  The
    result is counted in the reference's hemisphere frame, so
    ``get_relative_grid(reference, *get_offset(reference, target))`` lands on
    the target cell.
    """
    level = get_code_level(reference)
    if level == 0:
        raise InvalidLevel("a level-0 code has no offset")
    target = shorten(target, level)
    if get_code_level(target) != level:
        raise InvalidLevel(f"target {target!r} is coarser than level {level}")

    prefix = CODE_LENGTH_2D[level - 1]
    r_hemisphere = Hemisphere.from_code(reference)
    if reference[:prefix] == target[:prefix] and Hemisphere.from_code(target) is r_hemisphere:
        r_col, r_row = cell_indices(reference, level, r_hemisphere)
        t_col, t_row = cell_indices(target, level, r_hemisphere)
        return t_col - r_col, t_row - r_row

    r = LEVEL_RULES[level]
    _, r_lng2, r_lat2, _ = _signed_center(reference)
    _, t_lng2, t_lat2, _ = _signed_center(target)
    d_lng2 = t_lng2 - r_lng2
    # shortest way round, matching the wrap in get_relative_grid
    while d_lng2 > _HALF_TURN:
        d_lng2 -= _FULL_TURN
    while d_lng2 <= -_HALF_TURN:
        d_lng2 += _FULL_TURN
    # centres of same-level cells lie on one lattice, so these divide exactly
    d_col = d_lng2 // (2 * r.lng_size) * r_hemisphere.lng_sign
    d_row = (t_lat2 - r_lat2) // (2 * r.lat_size) * r_hemisphere.lat_sign
    return d_col, d_row


def get_neighbors(code: str, offsets: Iterable[Offset] = DEFAULT_OFFSETS) -> List[str]:
    """Codes at each offset from *code*; by default the 3x3 block around it."""
    return [get_relative_grid(code, d_col, d_row) for d_col, d_row in offsets]


def _span(delta: int) -> Sequence[int]:
    return range(0, delta + 1) if delta >= 0 else range(0, delta - 1, -1)


def get_among_us(start: str, end: str) -> List[str]:
    """Every cell in the rectangle spanned by *start* and *end*, inclusive.

    Raises:
        InvalidLevel: the codes have different levels.
    """
    if get_code_level(start) != get_code_level(end):
        raise InvalidLevel(f"{start!r} and {end!r} must have the same level")
    d_col, d_row = get_offset(start, end)
    logger.debug("enumerating %d x %d cells between %s and %s",
                 abs(d_col) + 1, abs(d_row) + 1, start, end)
    return [
        get_relative_grid(start, i, j)
        for i in _span(d_col)
        for j in _span(d_row)
    ]
