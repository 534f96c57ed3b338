"""models.py

Value types exchanged by the codecs: positions in decimal degrees
(:class:`GeoPoint`), positions in degree/minute/second form
(:class:`DMSPoint`) and the rectangle a grid code denotes (:class:`GridCell`).

Range violations raise :class:`~beidou_grid.errors.InvalidCoordinate`
directly rather than a pydantic ``ValidationError``, so callers can catch a
single error family for every bad input.
"""

from __future__ import annotations

import math
from math import sqrt
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from .errors import InvalidCoordinate
from .geo import haversine_m
from .grid_spec import Hemisphere


def validate_coordinate(longitude: float, latitude: float, elevation: float = 0.0) -> None:
    """Raise :class:`InvalidCoordinate` unless the position is finite and in range."""
    for name, value in (("longitude", longitude), ("latitude", latitude), ("elevation", elevation)):
        if not math.isfinite(value):
            raise InvalidCoordinate(f"{name} must be finite, got {value}")
    if not -180.0 <= longitude <= 180.0:
        raise InvalidCoordinate(f"longitude must be within [-180, 180], got {longitude}")
    if not -90.0 <= latitude <= 90.0:
        raise InvalidCoordinate(f"latitude must be within [-90, 90], got {latitude}")


def _dms_to_degrees(degree: float, minute: float, second: float, negative: bool) -> float:
    if degree < 0 or minute < 0 or second < 0:
        raise InvalidCoordinate("degree/minute/second parts must be non-negative")
    if minute >= 60 or second >= 60:
        raise InvalidCoordinate(f"minutes and seconds must be below 60, got {minute}'{second}\"")
    value = degree + minute / 60.0 + second / 3600.0
    return -value if negative else value


class GeoPoint(BaseModel):
    """Longitude/latitude in signed decimal degrees plus elevation in meters."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    longitude: float
    latitude: float
    elevation: float = 0.0

    @model_validator(mode="after")
    def _check_ranges(self) -> "GeoPoint":
        validate_coordinate(self.longitude, self.latitude, self.elevation)
        return self

    @classmethod
    def from_dms(
        cls,
        lng_degree: float,
        lat_degree: float,
        *,
        lng_minute: float = 0,
        lng_second: float = 0,
        lng_direction: str = "E",
        lat_minute: float = 0,
        lat_second: float = 0,
        lat_direction: str = "N",
        elevation: float = 0.0,
    ) -> "GeoPoint":
        """Build a point from unsigned DMS parts and ``E/W``, ``N/S`` directions."""
        if lng_direction not in ("E", "W"):
            raise InvalidCoordinate(f"longitude direction must be E or W, got {lng_direction!r}")
        if lat_direction not in ("N", "S"):
            raise InvalidCoordinate(f"latitude direction must be N or S, got {lat_direction!r}")
        return cls(
            longitude=_dms_to_degrees(lng_degree, lng_minute, lng_second, lng_direction == "W"),
            latitude=_dms_to_degrees(lat_degree, lat_minute, lat_second, lat_direction == "S"),
            elevation=elevation,
        )

    @property
    def hemisphere(self) -> Hemisphere:
        return Hemisphere.from_signs(self.longitude, self.latitude)

    def is_valid(self) -> bool:
        try:
            validate_coordinate(self.longitude, self.latitude, self.elevation)
        except InvalidCoordinate:
            return False
        return True

    def distance_to(self, other: "GeoPoint") -> float:
        """Haversine surface distance combined with the height difference (meters)."""
        d = haversine_m(self.longitude, self.latitude, other.longitude, other.latitude)
        if self.elevation != 0 or other.elevation != 0:
            dh = self.elevation - other.elevation
            d = sqrt(d * d + dh * dh)
        return d

    def with_elevation(self, elevation: float) -> "GeoPoint":
        return GeoPoint(longitude=self.longitude, latitude=self.latitude, elevation=elevation)


class DMSPoint(BaseModel):
    """Position in unsigned degree/minute/second form with explicit directions."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    lng_degree: int
    lng_minute: int
    lng_second: float
    lng_direction: Literal["E", "W"]
    lat_degree: int
    lat_minute: int
    lat_second: float
    lat_direction: Literal["N", "S"]
    elevation: float = 0.0

    @model_validator(mode="after")
    def _check_ranges(self) -> "DMSPoint":
        lng = _dms_to_degrees(self.lng_degree, self.lng_minute, self.lng_second, self.lng_direction == "W")
        lat = _dms_to_degrees(self.lat_degree, self.lat_minute, self.lat_second, self.lat_direction == "S")
        validate_coordinate(lng, lat, self.elevation)
        return self

    def to_geo_point(self) -> GeoPoint:
        lng = self.lng_degree + self.lng_minute / 60.0 + self.lng_second / 3600.0
        lat = self.lat_degree + self.lat_minute / 60.0 + self.lat_second / 3600.0
        # copysign keeps a western/southern zero as -0.0
        return GeoPoint(
            longitude=math.copysign(lng, -1.0 if self.lng_direction == "W" else 1.0),
            latitude=math.copysign(lat, -1.0 if self.lat_direction == "S" else 1.0),
            elevation=self.elevation,
        )


class GridCell(BaseModel):
    """Geographic footprint (and optional height range) of one grid code.

    This is the tuple a presentation layer receives for rendering.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    code: str
    level: int
    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float
    min_height: Optional[float] = None
    max_height: Optional[float] = None

    @property
    def center(self) -> GeoPoint:
        elevation = 0.0
        if self.min_height is not None and self.max_height is not None:
            elevation = (self.min_height + self.max_height) / 2.0
        return GeoPoint(
            longitude=(self.min_lng + self.max_lng) / 2.0,
            latitude=(self.min_lat + self.max_lat) / 2.0,
            elevation=elevation,
        )

    def contains(self, longitude: float, latitude: float) -> bool:
        return (self.min_lng <= longitude <= self.max_lng
                and self.min_lat <= latitude <= self.max_lat)
