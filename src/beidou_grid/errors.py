"""errors.py

Exception hierarchy for the BeiDou grid code library.

Every error is local and synchronous: it signals bad input or a programming
mistake, never a transient condition, so callers should not retry.
"""


class BeiDouGridError(Exception):
    """Base exception for all grid code errors."""

    pass


class InvalidLevel(BeiDouGridError):
    """Level outside the supported range (usually 1..10)."""

    pass


class InvalidCodeLength(BeiDouGridError):
    """Code length does not match any level."""

    pass


class InvalidGridCode(BeiDouGridError):
    """Code has the right length but a fragment is outside its alphabet."""

    pass


class InvalidCoordinate(BeiDouGridError):
    """Longitude/latitude/elevation is non-finite or out of range."""

    pass


class PolarRegionUnsupported(BeiDouGridError):
    """|latitude| >= 88 degrees, which needs the polar projection."""

    pass


class ElevationOutOfRange(BeiDouGridError):
    """Elevation index does not fit into 31 bits."""

    pass


class ReferenceLevelTooLow(BeiDouGridError):
    """Reference code is coarser than level 5."""

    pass


class OutOfReferenceRange(BeiDouGridError):
    """Target is more than 7 cells away from the reference cell."""

    pass


class MalformedReferenceDigit(BeiDouGridError):
    """Reference delta character outside 0-7 / A-G."""

    pass


class GridNotExist(BeiDouGridError):
    """Neighbour step carried past the top-level sign digit."""

    pass


class UnsupportedGeometryKind(BeiDouGridError):
    """Geometry has no exact test and no fallback ``intersects`` predicate."""

    pass


class InvalidHeightRange(BeiDouGridError, ValueError):
    """Minimum height above maximum height in a 3D range query."""

    pass
