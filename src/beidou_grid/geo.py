"""geo.py

Shared geographic helpers: surface and straight-line distances, bounding
boxes, line densification and GPX track extraction.
"""

from __future__ import annotations

from math import radians, sin, cos, asin, sqrt, floor, isnan
from typing import Iterable, List, Optional, Sequence, Tuple

import gpxpy

from .grid_spec import EARTH_RADIUS_M, MEAN_EARTH_RADIUS_M

Coordinate = Tuple[float, ...]


def haversine_m(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Great-circle distance in meters using the haversine formula."""
    R = MEAN_EARTH_RADIUS_M
    lon1, lat1, lon2, lat2 = map(radians, (lon1, lat1, lon2, lat2))
    dlon = lon2 - lon1
    dlat = lat2 - lat1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(sqrt(a))
    return R * c


def ecef_distance_m(
    lon1: float, lat1: float, h1: float, lon2: float, lat2: float, h2: float
) -> float:
    """Straight-line distance between two lon/lat/height positions.

    Both positions are placed on a sphere of radius ``EARTH_RADIUS_M + h``
    and the Euclidean distance between the resulting Cartesian points is
    returned.
    """
    def to_xyz(lon: float, lat: float, h: float) -> Tuple[float, float, float]:
        lon_r, lat_r = radians(lon), radians(lat)
        rr = EARTH_RADIUS_M + h
        return (rr * cos(lat_r) * cos(lon_r), rr * cos(lat_r) * sin(lon_r), rr * sin(lat_r))

    x1, y1, z1 = to_xyz(lon1, lat1, h1)
    x2, y2, z2 = to_xyz(lon2, lat2, h2)
    return sqrt((x2 - x1) ** 2 + (y2 - y1) ** 2 + (z2 - z1) ** 2)


def height_of(coord: Sequence[float]) -> float:
    """Third component of a coordinate, 0 when missing or NaN."""
    if len(coord) < 3 or coord[2] is None or isnan(coord[2]):
        return 0.0
    return float(coord[2])


def bbox_of_points(
    points: Iterable[Sequence[float]],
) -> Optional[Tuple[float, float, float, float]]:
    """Return (min_lon, min_lat, max_lon, max_lat) or None if empty."""
    min_lon = min_lat = float("inf")
    max_lon = max_lat = float("-inf")
    seen = False
    for p in points:
        lon, lat = p[0], p[1]
        seen = True
        if lon < min_lon:
            min_lon = lon
        if lat < min_lat:
            min_lat = lat
        if lon > max_lon:
            max_lon = lon
        if lat > max_lat:
            max_lat = lat
    return (min_lon, min_lat, max_lon, max_lat) if seen else None


def height_range(points: Iterable[Sequence[float]]) -> Optional[Tuple[float, float]]:
    """Return (min_height, max_height) of the points, missing heights as 0."""
    heights = [height_of(p) for p in points]
    if not heights:
        return None
    return (min(heights), max(heights))


def densify_line(coords: Sequence[Sequence[float]], step_m: float) -> List[Coordinate]:
    """Insert evenly spaced points so no gap exceeds roughly *step_m* meters.

    Heights are interpolated along with lon/lat; missing heights become 0.
    """
    if step_m <= 0:
        raise ValueError(f"step must be positive, got {step_m}")
    pts = [(float(c[0]), float(c[1]), height_of(c)) for c in coords]
    if len(pts) < 2:
        return list(pts)

    out: List[Coordinate] = []
    for (x1, y1, z1), (x2, y2, z2) in zip(pts, pts[1:]):
        out.append((x1, y1, z1))
        dist = ecef_distance_m(x1, y1, z1, x2, y2, z2)
        # points to insert strictly between the two vertices
        count = int(floor(dist / step_m))
        if count and dist % step_m == 0:
            count -= 1
        for j in range(1, count + 1):
            t = j / (count + 1)
            out.append((x1 + (x2 - x1) * t, y1 + (y2 - y1) * t, z1 + (z2 - z1) * t))
    out.append(pts[-1])
    return out


def extract_gpx_points(gpx: gpxpy.gpx.GPX) -> List[Coordinate]:
    """Collect all route & track points as (lon, lat, elevation)."""
    pts: List[Coordinate] = []

    for route in gpx.routes:
        for p in route.points:
            pts.append((p.longitude, p.latitude, p.elevation or 0.0))

    for track in gpx.tracks:
        for seg in track.segments:
            for p in seg.points:
                pts.append((p.longitude, p.latitude, p.elevation or 0.0))

    return pts
