"""
geometry.py

What the range query needs from an input geometry: its kind, its ordered
coordinates (with optional height), its bounding envelope and, for kinds
without an exact cell test, an ``intersects`` predicate against a rectangle.

Two implementations are provided: :class:`SimpleGeometry` for plain
coordinate lists and :class:`ShapelyGeometry` for shapely objects (and
GeoJSON mappings through :func:`as_geometry`).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Protocol, Sequence, Tuple, Union, runtime_checkable

import gpxpy
import gpxpy.gpx
import shapely
from shapely.geometry import LineString, Point, Polygon, box, shape
from shapely.geometry.base import BaseGeometry

from .errors import UnsupportedGeometryKind
from .geo import Coordinate, bbox_of_points, extract_gpx_points


class GeometryKind(Enum):
    POINT = "Point"
    LINESTRING = "LineString"
    POLYGON = "Polygon"
    OTHER = "Other"


@dataclass(frozen=True)
class Envelope:
    """Axis-aligned bounding box in degrees (x = longitude, y = latitude)."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def of(cls, coordinates: Sequence[Sequence[float]]) -> "Envelope":
        bbox = bbox_of_points(coordinates)
        if bbox is None:
            raise ValueError("cannot take the envelope of an empty geometry")
        return cls(*bbox)

    def overlaps(self, other: "Envelope") -> bool:
        return (self.min_x <= other.max_x and self.max_x >= other.min_x
                and self.min_y <= other.max_y and self.max_y >= other.min_y)


@runtime_checkable
class GeometryProvider(Protocol):
    """Interface consumed by :class:`~beidou_grid.range_query.RangeQueryEngine`.

    Providers of kind ``OTHER`` must also offer
    ``intersects(min_x, min_y, max_x, max_y) -> bool``, and may offer an
    ``area``; without one they are treated as having area.
    """

    @property
    def kind(self) -> GeometryKind: ...

    @property
    def coordinates(self) -> Sequence[Coordinate]: ...

    @property
    def envelope(self) -> Envelope: ...


@dataclass(frozen=True)
class SimpleGeometry:
    """A geometry given as a plain coordinate list.

    Polygons are a single ring, closed or not.  Degenerate polygons (one
    vertex, or all vertices on a line) are allowed.
    """
    kind: GeometryKind
    coordinates: Tuple[Coordinate, ...]

    def __post_init__(self):
        if not self.coordinates:
            raise ValueError("a geometry needs at least one coordinate")
        object.__setattr__(self, "coordinates", tuple(tuple(float(v) for v in c) for c in self.coordinates))

    @property
    def envelope(self) -> Envelope:
        return Envelope.of(self.coordinates)

    @classmethod
    def point(cls, lng: float, lat: float, height: Optional[float] = None) -> "SimpleGeometry":
        coord = (lng, lat) if height is None else (lng, lat, height)
        return cls(GeometryKind.POINT, (coord,))

    @classmethod
    def line(cls, coordinates: Sequence[Sequence[float]]) -> "SimpleGeometry":
        return cls(GeometryKind.LINESTRING, tuple(coordinates))

    @classmethod
    def polygon(cls, coordinates: Sequence[Sequence[float]]) -> "SimpleGeometry":
        return cls(GeometryKind.POLYGON, tuple(coordinates))

    @classmethod
    def rectangle(cls, min_x: float, min_y: float, max_x: float, max_y: float) -> "SimpleGeometry":
        return cls.polygon([(min_x, min_y), (max_x, min_y), (max_x, max_y), (min_x, max_y), (min_x, min_y)])


class ShapelyGeometry:
    """Adapter from a shapely geometry to :class:`GeometryProvider`.

    Points, line strings and polygons without holes get the exact cell
    tests; everything else (holes, multi-part geometries, collections) is
    ``OTHER`` and is tested with shapely itself.
    """

    def __init__(self, geom: BaseGeometry):
        if geom.is_empty:
            raise ValueError("cannot query with an empty geometry")
        self.geom = geom

    @property
    def kind(self) -> GeometryKind:
        if isinstance(self.geom, Point):
            return GeometryKind.POINT
        if isinstance(self.geom, LineString):
            return GeometryKind.LINESTRING
        if isinstance(self.geom, Polygon) and not self.geom.interiors:
            return GeometryKind.POLYGON
        return GeometryKind.OTHER

    @property
    def coordinates(self) -> Tuple[Coordinate, ...]:
        source = self.geom.exterior if isinstance(self.geom, Polygon) else self.geom
        coords = shapely.get_coordinates(source, include_z=shapely.has_z(source))
        return tuple(tuple(float(v) for v in c) for c in coords)

    @property
    def envelope(self) -> Envelope:
        return Envelope(*self.geom.bounds)

    @property
    def area(self) -> float:
        return self.geom.area

    def intersects(self, min_x: float, min_y: float, max_x: float, max_y: float) -> bool:
        return self.geom.intersects(box(min_x, min_y, max_x, max_y))

    def __repr__(self) -> str:
        return f"ShapelyGeometry({self.geom.wkt})"


def as_geometry(obj: Union[GeometryProvider, BaseGeometry, Mapping[str, Any]]) -> GeometryProvider:
    """Coerce *obj* into a :class:`GeometryProvider`.

    Accepts providers (returned as-is), shapely geometries and GeoJSON
    geometry or feature mappings.
    """
    if isinstance(obj, BaseGeometry):
        return ShapelyGeometry(obj)
    if isinstance(obj, Mapping):
        if obj.get("type") == "Feature":
            obj = obj["geometry"]
        return ShapelyGeometry(shape(obj))
    if isinstance(obj, GeometryProvider):
        return obj
    raise UnsupportedGeometryKind(f"cannot use {type(obj).__name__} as a geometry")


def geometry_from_gpx(gpx: Union[gpxpy.gpx.GPX, str]) -> SimpleGeometry:
    """Line (or single point) through all route and track points of a GPX document.

    Args:
        gpx: Parsed GPX object or the GPX XML text.

    Returns:
        A geometry whose coordinates carry the GPX elevations.
    """
    if isinstance(gpx, str):
        gpx = gpxpy.parse(gpx)
    points = extract_gpx_points(gpx)
    if not points:
        raise ValueError("GPX document contains no route or track points")
    if len(points) == 1:
        return SimpleGeometry(GeometryKind.POINT, tuple(points))
    return SimpleGeometry.line(points)
