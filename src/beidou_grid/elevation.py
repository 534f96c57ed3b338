"""
elevation.py

Elevation direction of the 3D BeiDou grid: a height in meters becomes a
signed integer index ``n`` of logarithmic height steps, and ``n`` becomes a
12-character code split over the same ten levels as the 2D code.

The index follows GB/T 39409-2020 appendix C::

    n = floor( (theta0 / theta) * ln((h + r) / r) / ln(1 + theta0) )
    h = (1 + theta0) ** (n * theta / theta0) * r - r

with theta = 1/2048 arc-second and theta0 = 1 degree (taken in radians
inside the logarithm).  One step is about 1.5 cm near the surface.

Code layout: one sign character (``0`` up, ``1`` down) followed by the 31-bit
magnitude of ``n`` sliced big-endian into per-level digits (see
``ELEVATION_DIGITS``): 2 decimal characters for level 1, then one octal,
binary, hex, hex, binary and four octal characters.
"""

from __future__ import annotations

import math
import re
from typing import List, Optional, Tuple

from .errors import (
    ElevationOutOfRange,
    GridNotExist,
    InvalidCodeLength,
    InvalidGridCode,
    InvalidLevel,
)
from .grid_spec import (
    EARTH_RADIUS_M,
    ELEVATION_CODE_LENGTH,
    ELEVATION_DIGITS,
    ELEVATION_MAGNITUDE_BITS,
    ELEVATION_SHIFT,
    MAX_LEVEL,
    validate_level,
)

# height grid step (degrees) and the reference angle (degrees)
THETA_DEG = 1.0 / 2048 / 3600
THETA0_DEG = 1.0

_LOG_BASE = math.log(1 + math.radians(THETA0_DEG))

_SNAP_STEPS = 1e-6

_RADIX_FORMAT = {2: "b", 8: "o", 10: "d", 16: "X"}

_FULL_LENGTH = ELEVATION_CODE_LENGTH[MAX_LEVEL]


# ------------------------------------------------------------
# Height <-> index
# ------------------------------------------------------------

def elevation_index(height: float, r: float = EARTH_RADIUS_M) -> int:
    """Signed number of height steps between the reference surface and *height*.

    Heights within a millionth of a step below a boundary are snapped onto
    it, so the decoded lower bound of a cell re-encodes into that cell.
    """
    if not math.isfinite(height) or height <= -r:
        raise ElevationOutOfRange(f"height {height} m cannot be indexed with radius {r} m")
    steps = (THETA0_DEG / THETA_DEG) * math.log((height + r) / r) / _LOG_BASE
    nearest = round(steps)
    if abs(steps - nearest) < _SNAP_STEPS:
        return nearest
    return math.floor(steps)


def elevation_from_index(n: int, r: float = EARTH_RADIUS_M) -> float:
    """Height (meters) of the lower boundary of index *n*."""
    return math.pow(1 + math.radians(THETA0_DEG), n * (THETA_DEG / THETA0_DEG)) * r - r


# ------------------------------------------------------------
# Index <-> code
# ------------------------------------------------------------

def _format_code(sign: int, values: List[int], level: int) -> str:
    parts = [str(sign)]
    for n in range(1, level + 1):
        _, radix = ELEVATION_DIGITS[n]
        digit = format(values[n], _RADIX_FORMAT[radix])
        if n == 1:
            digit = digit.zfill(2)
        parts.append(digit)
    return "".join(parts)


def _parse_code(code: str) -> Tuple[int, List[int]]:
    """Split a (possibly truncated) code into its sign and per-level values."""
    if not code or len(code) > _FULL_LENGTH:
        raise InvalidCodeLength(f"elevation code must have 1..{_FULL_LENGTH} characters: {code!r}")
    padded = code.ljust(_FULL_LENGTH, "0")
    if padded[0] not in ("0", "1"):
        raise InvalidGridCode(f"elevation sign must be 0 or 1: {code!r}")

    values = [0] * (MAX_LEVEL + 1)
    pos = 1
    for n in range(1, MAX_LEVEL + 1):
        bits, radix = ELEVATION_DIGITS[n]
        width = 2 if n == 1 else 1
        chunk = padded[pos:pos + width]
        pos += width
        if chunk != chunk.upper():
            raise InvalidGridCode(f"elevation digits must be upper-case: {code!r}")
        try:
            value = int(chunk, radix)
        except ValueError:
            raise InvalidGridCode(f"level {n} elevation digit {chunk!r} is not base {radix}: {code!r}") from None
        if value >= 1 << bits:
            raise InvalidGridCode(f"level {n} elevation digit {chunk!r} out of range: {code!r}")
        values[n] = value
    return int(padded[0]), values


def encode_elevation_index(n: int, level: int = MAX_LEVEL) -> str:
    """Encode a signed elevation index into a code truncated to *level*."""
    validate_level(level, minimum=0)
    magnitude = abs(n)
    if magnitude >= 1 << ELEVATION_MAGNITUDE_BITS:
        raise ElevationOutOfRange(f"elevation index {n} does not fit into {ELEVATION_MAGNITUDE_BITS} bits")
    values = [0] * (MAX_LEVEL + 1)
    for lv in range(1, MAX_LEVEL + 1):
        bits, _ = ELEVATION_DIGITS[lv]
        values[lv] = (magnitude >> ELEVATION_SHIFT[lv]) & ((1 << bits) - 1)
    return _format_code(1 if n < 0 else 0, values, level)


def elevation_index_from_code(code: str) -> int:
    """Reassemble the signed index of a code; missing levels count as zero."""
    sign, values = _parse_code(code)
    magnitude = 0
    for n in range(1, MAX_LEVEL + 1):
        magnitude |= values[n] << ELEVATION_SHIFT[n]
    return -magnitude if sign else magnitude


def encode_elevation(height: float, level: int = MAX_LEVEL, r: float = EARTH_RADIUS_M) -> str:
    """Encode *height* (meters) into an elevation code.

    Args:
        height: Height above the reference surface; negative below it.
        level: Level 0..10; the code has ``ELEVATION_CODE_LENGTH[level]``
            characters.
        r: Reference radius in meters.

    Raises:
        ElevationOutOfRange: the index does not fit into 31 bits.
    """
    return encode_elevation_index(elevation_index(height, r), level)


def decode_elevation(code: str, r: float = EARTH_RADIUS_M) -> float:
    """Lower height boundary (meters) of the elevation cell *code* denotes.

    Codes shorter than 12 characters are right-padded with zeros, so a
    truncated code decodes to the edge of its coarse cell nearest the
    reference surface.
    """
    return elevation_from_index(elevation_index_from_code(code), r)


def get_code_level(code: str) -> int:
    try:
        return ELEVATION_CODE_LENGTH.index(len(code))
    except ValueError:
        raise InvalidCodeLength(f"no elevation level has code length {len(code)}: {code!r}") from None


def elevation_block(code: str) -> Tuple[int, int]:
    """Inclusive ``(low, high)`` index interval covered by a truncated code.

    Index 0 belongs to the upward half, so ``10...0`` at level 10 covers
    nothing and yields an empty interval (``low > high``).
    """
    level = get_code_level(code)
    magnitude = abs(elevation_index_from_code(code))
    span = (1 << ELEVATION_SHIFT[level]) - 1
    if code[0] == "1":
        return (-(magnitude + span), -max(magnitude, 1))
    return (magnitude, magnitude + span)


def elevation_children(code: str) -> List[str]:
    """Codes one level below *code*."""
    level = get_code_level(code)
    if level >= MAX_LEVEL:
        raise InvalidLevel(f"level {MAX_LEVEL} elevation codes have no children")
    bits, radix = ELEVATION_DIGITS[level + 1]
    width = 2 if level + 1 == 1 else 1
    return [
        code + format(digit, _RADIX_FORMAT[radix]).zfill(width)
        for digit in range(1 << bits)
    ]


def elevation_codes_in_range(n_low: int, n_high: int, level: int) -> List[str]:
    """Codes of *level* whose blocks overlap the index interval ``[n_low, n_high]``."""
    validate_level(level, minimum=0)
    if n_low > n_high:
        return []
    found = []
    stack = ["1", "0"]
    while stack:
        code = stack.pop()
        low, high = elevation_block(code)
        if low > n_high or high < n_low or low > high:
            continue
        if get_code_level(code) == level:
            found.append(code)
        else:
            stack.extend(reversed(elevation_children(code)))
    return found


# ------------------------------------------------------------
# Neighbours
# ------------------------------------------------------------

_ALL_ZERO = re.compile(r"0+")
_NEGATIVE_ZERO = re.compile(r"10+")


def get_elevation_neighbor(code: str, offset: int, level: Optional[int] = None) -> str:
    """Step an elevation code by one cell at *level*.

    *offset* is applied to the code's digits: the level digit is incremented
    or decremented and the carry ripples towards level 1.  Decrementing the
    all-zero code crosses the surface into ``10...0`` and decrementing
    ``10...0`` comes back to ``0...0``.

    Args:
        code: Elevation code (1..12 characters).
        offset: ``+1`` or ``-1``.
        level: Level to step at; defaults to the level of *code*.  The
            result has the length of that level.

    Raises:
        GridNotExist: the carry would run past the level-1 digit.
    """
    if offset not in (-1, 1):
        raise ValueError(f"offset must be +1 or -1, got {offset}")
    if level is None:
        level = get_code_level(code)
    else:
        validate_level(level, minimum=0)
    length = ELEVATION_CODE_LENGTH[level]
    sign, values = _parse_code(code)
    view = code[:length].ljust(length, "0")

    if offset == -1 and _NEGATIVE_ZERO.fullmatch(view):
        return "0" * length
    if offset == -1 and _ALL_ZERO.fullmatch(view):
        return "1" + "0" * (length - 1)

    if level == 0:
        sign += offset
        if sign not in (0, 1):
            raise GridNotExist(f"no elevation cell beyond {code!r} in direction {offset:+d}")
        return str(sign)

    carry = offset
    n = level
    while carry and n >= 1:
        top = (1 << ELEVATION_DIGITS[n][0]) - 1
        value = values[n] + carry
        if value > top:
            values[n] = 0
        elif value < 0:
            values[n] = top
        else:
            values[n] = value
            carry = 0
        n -= 1
    if carry:
        raise GridNotExist(f"no elevation cell beyond {code!r} in direction {offset:+d}")
    return _format_code(sign, values, level)
