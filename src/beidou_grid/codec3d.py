"""
codec3d.py

Three-dimensional codes: the 2D code and the elevation code of the same
level, interleaved level by level::

    N 0 50J 00 ...
    | | |   +-- level-1 elevation digits
    | | +------ level-1 2D fragment
    | +-------- elevation sign (0 up, 1 down)
    +---------- latitude hemisphere flag

A level-10 code has 20 + 12 = 32 characters.
"""

from __future__ import annotations

from typing import Optional, Tuple, Union

from . import codec2d
from . import elevation
from .errors import InvalidCodeLength
from .grid_spec import (
    CODE_LENGTH_2D,
    EARTH_RADIUS_M,
    ELEVATION_CODE_LENGTH,
    MAX_LEVEL,
    code_length_3d,
    validate_level,
)
from .models import DMSPoint, GeoPoint, GridCell

CODE_LENGTH_3D: Tuple[int, ...] = tuple(code_length_3d(level) for level in range(MAX_LEVEL + 1))


def get_code_level_3d(code: str) -> int:
    """Level of a 3D code, derived from its length."""
    try:
        return CODE_LENGTH_3D.index(len(code))
    except ValueError:
        raise InvalidCodeLength(f"no 3D level has code length {len(code)}: {code!r}") from None


def join(code2d: str, code_ele: str) -> str:
    """Interleave a 2D code and an elevation code of the same level."""
    level = codec2d.get_code_level(code2d)
    if elevation.get_code_level(code_ele) != level:
        raise InvalidCodeLength(
            f"2D code {code2d!r} and elevation code {code_ele!r} have different levels"
        )
    parts = [code2d[0], code_ele[0]]
    for n in range(1, level + 1):
        parts.append(code2d[CODE_LENGTH_2D[n - 1]:CODE_LENGTH_2D[n]])
        parts.append(code_ele[ELEVATION_CODE_LENGTH[n - 1]:ELEVATION_CODE_LENGTH[n]])
    return "".join(parts)


def split(code: str) -> Tuple[str, str]:
    """Separate a 3D code into ``(code2d, code_ele)``."""
    level = get_code_level_3d(code)
    code2d = [code[0]]
    code_ele = [code[1]]
    for n in range(1, level + 1):
        start = CODE_LENGTH_2D[n - 1] + ELEVATION_CODE_LENGTH[n - 1]
        middle = CODE_LENGTH_2D[n] + ELEVATION_CODE_LENGTH[n - 1]
        end = CODE_LENGTH_2D[n] + ELEVATION_CODE_LENGTH[n]
        code2d.append(code[start:middle])
        code_ele.append(code[middle:end])
    return "".join(code2d), "".join(code_ele)


def encode(point: Union[GeoPoint, DMSPoint], level: int = MAX_LEVEL, r: float = EARTH_RADIUS_M) -> str:
    """Encode position and elevation into a 3D code.

    Args:
        point: Position with ``elevation`` in meters.
        level: Target level 1..10.
        r: Reference radius of the elevation transform.

    Raises:
        InvalidLevel: *level* outside 1..10.
        PolarRegionUnsupported: ``|latitude| >= 88``.
        ElevationOutOfRange: the elevation index needs more than 31 bits.
    """
    validate_level(level)
    code2d = codec2d.encode(point, level)
    code_ele = elevation.encode_elevation(point.elevation, level, r)
    return join(code2d, code_ele)


def decode(
    code: str,
    form: codec2d.DecodeForm = "decimal",
    r: float = EARTH_RADIUS_M,
    level: Optional[int] = None,
) -> Union[GeoPoint, DMSPoint]:
    """Decode a 3D code into its anchor point with the lower height bound.

    If *level* is given the code must have exactly that level's length.
    """
    if level is not None:
        validate_level(level)
        if len(code) != CODE_LENGTH_3D[level]:
            raise InvalidCodeLength(
                f"level {level} 3D codes have {CODE_LENGTH_3D[level]} characters, got {len(code)}"
            )
    code2d, code_ele = split(code)
    point = codec2d.decode(code2d, form)
    return point.model_copy(update={"elevation": elevation.decode_elevation(code_ele, r)})


def get_neighbor(code_ele: str, offset: int, level: Optional[int] = None) -> str:
    """Step an elevation code up (``+1``) or down (``-1``) by one cell."""
    return elevation.get_elevation_neighbor(code_ele, offset, level)


def grid_cell(code: str, r: float = EARTH_RADIUS_M) -> GridCell:
    """Footprint and height range of a 3D code's cell."""
    code2d, code_ele = split(code)
    low, high = elevation.elevation_block(code_ele)
    return codec2d.grid_cell(code2d).model_copy(update={
        "code": code,
        "min_height": elevation.elevation_from_index(low, r),
        "max_height": elevation.elevation_from_index(high + 1, r),
    })
