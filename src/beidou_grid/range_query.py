"""
range_query.py

Find every grid cell of a target level that intersects a geometry.

The search starts from the level-1 cells under the geometry's envelope and
walks down the code tree, pruning any cell that fails the bounding-box
pre-check or the exact geometric test.  3D queries combine the 2D footprint
search with an independent elevation-index interval ("2.5D").

Cells are half-open on their side away from the prime meridian and the
equator, matching the encoder: a point on a shared edge belongs to exactly
one cell.  Points and lines also take the cell that owns an envelope end
lying on a cell edge; areas only take cells they overlap with positive
extent.
"""

from __future__ import annotations

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from fractions import Fraction
from typing import Iterable, List, NamedTuple, Optional, Sequence, Set, Tuple

from . import codec3d
from .codec2d import anchor_units, encode_fragment, grid_cell
from .elevation import elevation_codes_in_range, elevation_index
from .errors import (
    InvalidHeightRange,
    PolarRegionUnsupported,
    UnsupportedGeometryKind,
)
from .geo import densify_line, height_range
from .geometry import Envelope, GeometryKind, GeometryProvider, as_geometry
from .grid_spec import (
    CELL_SIZE_M,
    EARTH_RADIUS_M,
    LEVEL_RULES,
    POLAR_LATITUDE_DEG,
    POLAR_LATITUDE_UNITS,
    UNITS_PER_DEGREE,
    Hemisphere,
    degrees_to_units,
    units_to_degrees,
    validate_level,
)
from .models import GeoPoint, GridCell

logger = logging.getLogger(__name__)

_LEVEL1_COLUMNS = 30
_LEVEL1_ROWS = 22
_ANTIMERIDIAN_UNITS = 180 * UNITS_PER_DEGREE


# ------------------------------------------------------------
# Configuration
# ------------------------------------------------------------

@dataclass
class RangeQueryConfig:
    """Tunables of :class:`RangeQueryEngine`.

    Attributes:
        max_workers: Threads refining level-1 seeds in parallel; 1 runs
            sequentially.
        earth_radius_m: Reference radius of the elevation transform.
    """
    max_workers: int = 1
    earth_radius_m: float = EARTH_RADIUS_M

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")


# ------------------------------------------------------------
# Cells and envelopes in exact units
# ------------------------------------------------------------

class _Cell(NamedTuple):
    code: str
    level: int
    hemisphere: Hemisphere
    lng: int  # absolute anchor, units
    lat: int

    def bounds(self) -> Tuple[int, int, int, int]:
        r = LEVEL_RULES[self.level]
        if self.hemisphere.lng_sign > 0:
            min_lng, max_lng = self.lng, self.lng + r.lng_size
        else:
            min_lng, max_lng = -(self.lng + r.lng_size), -self.lng
        if self.hemisphere.lat_sign > 0:
            min_lat, max_lat = self.lat, self.lat + r.lat_size
        else:
            min_lat, max_lat = -(self.lat + r.lat_size), -self.lat
        return min_lng, min_lat, max_lng, max_lat

    def bounds_deg(self) -> Tuple[float, float, float, float]:
        return tuple(float(units_to_degrees(v)) for v in self.bounds())

    def children(self) -> List["_Cell"]:
        r = LEVEL_RULES[self.level + 1]
        return [
            _Cell(
                self.code + encode_fragment(self.level + 1, col, row, self.hemisphere),
                self.level + 1,
                self.hemisphere,
                self.lng + col * r.lng_size,
                self.lat + row * r.lat_size,
            )
            for col in range(r.lng_divisions)
            for row in range(r.lat_divisions)
        ]


class _Axis(NamedTuple):
    low: Fraction
    high: Fraction
    # an end sitting on -0.0 belongs to the negative side
    low_negative: bool
    high_negative: bool
    # zero-area geometries also take the cells that own their end values
    closed: bool


def _is_negative_zero(value: float) -> bool:
    return value == 0 and math.copysign(1.0, value) < 0


def _axis(low: float, high: float, closed: bool = False) -> _Axis:
    return _Axis(
        degrees_to_units(low),
        degrees_to_units(high),
        _is_negative_zero(low),
        _is_negative_zero(high),
        closed,
    )


def _owns(lo: int, hi: int, positive: bool, edge: int, value: Fraction, negative: bool) -> bool:
    """Does the cell ``[lo, hi]`` own *value* the way the encoder assigns it?

    Cells own the edge nearest zero; cells on the outer *edge* own it too.
    """
    if positive:
        if value == 0 and negative:
            return False
        return lo <= value < hi or value == hi == edge
    if value == 0:
        return hi == 0 and negative
    return lo < value <= hi or value == lo == -edge


def _axis_hits(axis: _Axis, lo: int, hi: int, positive: bool, edge: int) -> bool:
    """Does the cell ``[lo, hi]`` along one axis take part in *axis*?

    *positive* tells whether the cell lies on the positive side of zero;
    *edge* is the outer limit of the axis, where cells are closed.
    """
    if axis.low == axis.high:
        return _owns(lo, hi, positive, edge, axis.low, axis.low_negative)
    if lo < axis.high and hi > axis.low:
        return True
    if not axis.closed:
        return False
    return (_owns(lo, hi, positive, edge, axis.low, axis.low_negative)
            or _owns(lo, hi, positive, edge, axis.high, axis.high_negative))


def _ring_area2(ring: Sequence[Sequence[float]]) -> float:
    """Twice the signed shoelace area of a ring."""
    return sum(a[0] * b[1] - b[0] * a[1] for a, b in zip(ring, list(ring[1:]) + [ring[0]]))


def _has_area(geometry: GeometryProvider) -> bool:
    kind = geometry.kind
    if kind in (GeometryKind.POINT, GeometryKind.LINESTRING):
        return False
    if kind is GeometryKind.POLYGON:
        return _ring_area2(geometry.coordinates) != 0
    area = getattr(geometry, "area", None)
    return area is None or area > 0


# ------------------------------------------------------------
# Exact tests (closed rectangles, degrees)
# ------------------------------------------------------------

_INSIDE, _LEFT, _RIGHT, _BOTTOM, _TOP = 0, 1, 2, 4, 8


def _outcode(x: float, y: float, rect: Tuple[float, float, float, float]) -> int:
    min_x, min_y, max_x, max_y = rect
    code = _INSIDE
    if x < min_x:
        code |= _LEFT
    elif x > max_x:
        code |= _RIGHT
    if y < min_y:
        code |= _BOTTOM
    elif y > max_y:
        code |= _TOP
    return code


def point_in_rect(x: float, y: float, rect: Tuple[float, float, float, float]) -> bool:
    return _outcode(x, y, rect) == _INSIDE


def segment_intersects_rect(x0: float, y0: float, x1: float, y1: float,
                            rect: Tuple[float, float, float, float]) -> bool:
    """Cohen-Sutherland clipping of a segment against a closed rectangle."""
    min_x, min_y, max_x, max_y = rect
    code0 = _outcode(x0, y0, rect)
    code1 = _outcode(x1, y1, rect)
    while True:
        if not (code0 | code1):
            return True
        if code0 & code1:
            return False
        out = code0 or code1
        if out & _TOP:
            x, y = x0 + (x1 - x0) * (max_y - y0) / (y1 - y0), max_y
        elif out & _BOTTOM:
            x, y = x0 + (x1 - x0) * (min_y - y0) / (y1 - y0), min_y
        elif out & _RIGHT:
            x, y = max_x, y0 + (y1 - y0) * (max_x - x0) / (x1 - x0)
        else:
            x, y = min_x, y0 + (y1 - y0) * (min_x - x0) / (x1 - x0)
        if out == code0:
            x0, y0 = x, y
            code0 = _outcode(x0, y0, rect)
        else:
            x1, y1 = x, y
            code1 = _outcode(x1, y1, rect)


def point_in_polygon(x: float, y: float, ring: Sequence[Sequence[float]]) -> bool:
    """Ray-casting parity test."""
    inside = False
    n = len(ring)
    j = n - 1
    for i in range(n):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def _line_hits(coords: Sequence[Sequence[float]], rect) -> bool:
    if len(coords) == 1:
        return point_in_rect(coords[0][0], coords[0][1], rect)
    return any(
        segment_intersects_rect(a[0], a[1], b[0], b[1], rect)
        for a, b in zip(coords, coords[1:])
    )


def polygon_intersects_rect(ring: Sequence[Sequence[float]], rect) -> bool:
    if any(point_in_rect(p[0], p[1], rect) for p in ring):
        return True
    min_x, min_y, max_x, max_y = rect
    corners = ((min_x, min_y), (max_x, min_y), (max_x, max_y), (min_x, max_y))
    if len(ring) >= 3 and any(point_in_polygon(x, y, ring) for x, y in corners):
        return True
    closed = list(ring) + [ring[0]]
    return _line_hits(closed, rect)


def _exact_hit(geometry: GeometryProvider, rect: Tuple[float, float, float, float]) -> bool:
    kind = geometry.kind
    if kind is GeometryKind.POINT:
        return any(point_in_rect(c[0], c[1], rect) for c in geometry.coordinates)
    if kind is GeometryKind.LINESTRING:
        return _line_hits(geometry.coordinates, rect)
    if kind is GeometryKind.POLYGON:
        return polygon_intersects_rect(geometry.coordinates, rect)
    intersects = getattr(geometry, "intersects", None)
    if not callable(intersects):
        raise UnsupportedGeometryKind(f"{kind.value} geometry without an intersects() predicate")
    return bool(intersects(*rect))


# ------------------------------------------------------------
# Engine
# ------------------------------------------------------------

class RangeQueryEngine:
    """Recursive coarse-to-fine search for the cells under a geometry.

    Example:
        >>> engine = RangeQueryEngine()
        >>> engine.find_2d_grid_codes_in_range(SimpleGeometry.point(116.3, 39.9), 3)
        {'N50J475'}
    """

    def __init__(self, config: Optional[RangeQueryConfig] = None):
        self.config = config or RangeQueryConfig()

    # ---- seeds ----

    def seed_level1_codes(self, envelope: Envelope) -> List[str]:
        """Level-1 codes whose cells may overlap *envelope*."""
        return [cell.code for cell in self._seeds(envelope)]

    def _seeds(self, envelope: Envelope) -> List[_Cell]:
        self._check_polar(envelope)
        r = LEVEL_RULES[1]
        lng_low = degrees_to_units(envelope.min_x)
        lng_high = degrees_to_units(envelope.max_x)
        lat_low = degrees_to_units(envelope.min_y)
        lat_high = degrees_to_units(envelope.max_y)

        # one extra index on each side covers cells that only touch the envelope
        i_range = range(max(math.floor(lng_low / r.lng_size) - 1, -_LEVEL1_COLUMNS),
                        min(math.floor(lng_high / r.lng_size) + 1, _LEVEL1_COLUMNS - 1) + 1)
        j_range = range(max(math.floor(lat_low / r.lat_size) - 1, -_LEVEL1_ROWS),
                        min(math.floor(lat_high / r.lat_size) + 1, _LEVEL1_ROWS - 1) + 1)

        seeds = []
        for j in j_range:
            lat_dir, row = ("N", j) if j >= 0 else ("S", -j - 1)
            for i in i_range:
                lng_dir, col = ("E", i) if i >= 0 else ("W", -i - 1)
                hemisphere = Hemisphere.from_directions(lat_dir, lng_dir)
                seeds.append(_Cell(
                    lat_dir + encode_fragment(1, col, row, hemisphere),
                    1,
                    hemisphere,
                    col * r.lng_size,
                    row * r.lat_size,
                ))
        logger.debug("envelope %s -> %d level-1 seed(s)", envelope, len(seeds))
        return seeds

    @staticmethod
    def _check_polar(envelope: Envelope) -> None:
        for lat in (envelope.min_y, envelope.max_y):
            if abs(degrees_to_units(lat)) >= POLAR_LATITUDE_UNITS:
                raise PolarRegionUnsupported(
                    f"range queries do not cover |latitude| >= {POLAR_LATITUDE_DEG}, got {lat}"
                )

    # ---- tests ----

    @staticmethod
    def _bbox_hit(cell: _Cell, lng_axis: _Axis, lat_axis: _Axis) -> bool:
        min_lng, min_lat, max_lng, max_lat = cell.bounds()
        return (
            _axis_hits(lng_axis, min_lng, max_lng, cell.hemisphere.lng_sign > 0, _ANTIMERIDIAN_UNITS)
            and _axis_hits(lat_axis, min_lat, max_lat, cell.hemisphere.lat_sign > 0, POLAR_LATITUDE_UNITS)
        )

    def intersects_cell(self, code: str, geometry, envelope: Optional[Envelope] = None) -> bool:
        """Bounding-box pre-check followed by the exact test for one 2D code."""
        geometry = as_geometry(geometry)
        envelope = envelope or geometry.envelope
        cell = self._cell_of(code)
        closed = not _has_area(geometry)
        lng_axis = _axis(envelope.min_x, envelope.max_x, closed)
        lat_axis = _axis(envelope.min_y, envelope.max_y, closed)
        if not self._bbox_hit(cell, lng_axis, lat_axis):
            return False
        return _exact_hit(geometry, cell.bounds_deg())

    @staticmethod
    def _cell_of(code: str) -> _Cell:
        level, hemisphere, lng, lat = anchor_units(code)
        return _Cell(code, level, hemisphere, lng, lat)

    # ---- recursion ----

    def _refine(self, seed: _Cell, geometry: GeometryProvider, target_level: int,
                lng_axis: _Axis, lat_axis: _Axis) -> Set[str]:
        found: Set[str] = set()
        # a point-sized envelope is already decided by the bounding box
        exact = lng_axis.low != lng_axis.high or lat_axis.low != lat_axis.high
        stack = [seed]
        while stack:
            cell = stack.pop()
            if not self._bbox_hit(cell, lng_axis, lat_axis):
                continue
            if exact and not _exact_hit(geometry, cell.bounds_deg()):
                continue
            if cell.level == target_level:
                found.add(cell.code)
            else:
                stack.extend(cell.children())
        return found

    def _search(self, geometry: GeometryProvider, target_level: int) -> Set[str]:
        envelope = geometry.envelope
        seeds = self._seeds(envelope)
        closed = not _has_area(geometry)
        lng_axis = _axis(envelope.min_x, envelope.max_x, closed)
        lat_axis = _axis(envelope.min_y, envelope.max_y, closed)

        if self.config.max_workers > 1 and len(seeds) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                parts = list(pool.map(
                    lambda seed: self._refine(seed, geometry, target_level, lng_axis, lat_axis),
                    seeds,
                ))
        else:
            parts = [self._refine(seed, geometry, target_level, lng_axis, lat_axis) for seed in seeds]

        result: Set[str] = set()
        for part in parts:
            result |= part
        return result

    # ---- public queries ----

    def find_2d_grid_codes_in_range(self, geometry, target_level: int) -> Set[str]:
        """2D codes of *target_level* whose cells intersect *geometry*.

        Args:
            geometry: A :class:`~beidou_grid.geometry.GeometryProvider`, a
                shapely geometry or a GeoJSON mapping.
            target_level: Level 1..10 of the returned codes.

        Raises:
            InvalidLevel: *target_level* outside 1..10.
            PolarRegionUnsupported: the envelope reaches ``|latitude| >= 88``.
            UnsupportedGeometryKind: an ``OTHER`` geometry has no
                ``intersects`` predicate.
        """
        validate_level(target_level)
        geometry = as_geometry(geometry)
        started = time.perf_counter()
        result = self._search(geometry, target_level)
        logger.info("2D range query at level %d: %d code(s) in %.3fs",
                    target_level, len(result), time.perf_counter() - started)
        return result

    def find_3d_grid_codes_in_range(
        self,
        geometry,
        target_level: int,
        min_height: Optional[float] = None,
        max_height: Optional[float] = None,
    ) -> Set[str]:
        """3D codes of *target_level* under *geometry* within a height range.

        Heights not given are taken from the geometry's coordinates (missing
        heights count as 0).  A cell is returned when its footprint
        intersects the geometry and its elevation block overlaps
        ``[min_height, max_height]``.

        Raises:
            InvalidHeightRange: ``min_height > max_height``.
        """
        validate_level(target_level)
        geometry = as_geometry(geometry)
        if min_height is None or max_height is None:
            low, high = height_range(geometry.coordinates)
            min_height = low if min_height is None else min_height
            max_height = high if max_height is None else max_height
        if min_height > max_height:
            raise InvalidHeightRange(f"min_height {min_height} is above max_height {max_height}")

        started = time.perf_counter()
        r = self.config.earth_radius_m
        elevation_codes = elevation_codes_in_range(
            elevation_index(min_height, r), elevation_index(max_height, r), target_level
        )
        footprint = self._search(geometry, target_level) if elevation_codes else set()
        result = {codec3d.join(code2d, code_ele) for code2d in footprint for code_ele in elevation_codes}
        logger.info("3D range query at level %d, heights [%s, %s]: %d code(s) in %.3fs",
                    target_level, min_height, max_height, len(result), time.perf_counter() - started)
        return result

    def find_3d_grid_codes_along_line(self, geometry, target_level: int) -> List[str]:
        """3D codes of the cells a line passes through, in travel order.

        The line is sampled at the level's nominal cell size and every sample
        is encoded; heights are interpolated between vertices.
        """
        validate_level(target_level)
        geometry = as_geometry(geometry)
        if geometry.kind not in (GeometryKind.LINESTRING, GeometryKind.POINT):
            raise UnsupportedGeometryKind(f"expected a line, got {geometry.kind.value}")
        self._check_polar(geometry.envelope)

        samples = densify_line(geometry.coordinates, CELL_SIZE_M[target_level])
        logger.debug("line densified to %d sample(s) at level %d", len(samples), target_level)
        codes: List[str] = []
        seen: Set[str] = set()
        for lng, lat, height in samples:
            point = GeoPoint(longitude=lng, latitude=lat, elevation=height)
            code = codec3d.encode(point, target_level, self.config.earth_radius_m)
            if code not in seen:
                seen.add(code)
                codes.append(code)
        return codes

    def grid_cells(self, codes: Iterable[str], three_d: bool = False) -> List[GridCell]:
        """Rectangles (and height ranges for 3D codes) for presentation."""
        if three_d:
            return [codec3d.grid_cell(code, self.config.earth_radius_m) for code in sorted(codes)]
        return [grid_cell(code) for code in sorted(codes)]
