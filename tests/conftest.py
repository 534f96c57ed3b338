# conftest.py
import gpxpy.gpx
import pytest

from beidou_grid.models import GeoPoint
from beidou_grid.range_query import RangeQueryConfig, RangeQueryEngine


@pytest.fixture
def beijing() -> GeoPoint:
    return GeoPoint(longitude=116.3098, latitude=39.9123, elevation=50.0)


@pytest.fixture
def new_york() -> GeoPoint:
    return GeoPoint(longitude=-73.9857, latitude=40.7484, elevation=10.0)


@pytest.fixture
def sydney() -> GeoPoint:
    return GeoPoint(longitude=151.2093, latitude=-33.8688, elevation=3.0)


@pytest.fixture
def buenos_aires() -> GeoPoint:
    return GeoPoint(longitude=-58.3816, latitude=-34.6037, elevation=25.0)


@pytest.fixture
def hemisphere_points(beijing, new_york, sydney, buenos_aires) -> list:
    """One point per hemisphere: NE, NW, SE, SW."""
    return [beijing, new_york, sydney, buenos_aires]


@pytest.fixture
def engine() -> RangeQueryEngine:
    return RangeQueryEngine()


@pytest.fixture
def threaded_engine() -> RangeQueryEngine:
    return RangeQueryEngine(RangeQueryConfig(max_workers=4))


@pytest.fixture
def alpine_gpx() -> gpxpy.gpx.GPX:
    gpx = gpxpy.gpx.GPX()
    track = gpxpy.gpx.GPXTrack(name="Hut to peak")
    segment = gpxpy.gpx.GPXTrackSegment()
    segment.points.append(gpxpy.gpx.GPXTrackPoint(46.78901, 10.12345, elevation=2260))
    segment.points.append(gpxpy.gpx.GPXTrackPoint(46.79100, 10.12500, elevation=2410))
    segment.points.append(gpxpy.gpx.GPXTrackPoint(46.79350, 10.12800, elevation=2588))
    track.segments.append(segment)
    gpx.tracks.append(track)
    return gpx
