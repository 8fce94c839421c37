"""Geometry helpers.

Pure functions over :class:`~fleetsim.models.geo.Coordinate`. Distances are
great-circle (haversine) in meters; interpolation is linear in lat/lon space,
which is close enough at route scale.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from fleetsim._constants import EARTH_RADIUS_M
from fleetsim.models.geo import Coordinate


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance between *a* and *b* in meters."""
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    d_phi = math.radians(b.latitude - a.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Guard against rounding pushing h slightly past 1 for antipodal points.
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def interpolate(a: Coordinate, b: Coordinate, t: float) -> Coordinate:
    """Point at fraction *t* of the way from *a* to *b*.

    *t* is clamped to ``[0, 1]`` so the result always lies on the segment.
    """
    t = min(1.0, max(0.0, t))
    return Coordinate(
        latitude=a.latitude + (b.latitude - a.latitude) * t,
        longitude=a.longitude + (b.longitude - a.longitude) * t,
    )


def bearing_degrees(a: Coordinate, b: Coordinate) -> float:
    """Initial bearing from *a* to *b*, normalized to ``[0, 360)``.

    Returns ``0.0`` when the points coincide.
    """
    if a.latitude == b.latitude and a.longitude == b.longitude:
        return 0.0
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)

    y = math.sin(d_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lambda)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def route_length_meters(points: Sequence[Coordinate]) -> float:
    """Sum of segment lengths along *points*."""
    return sum(distance_meters(points[i], points[i + 1]) for i in range(len(points) - 1))


def point_in_polygon(point: Coordinate, vertices: Sequence[Coordinate]) -> bool:
    """Ray-casting containment test. Polygons need at least three vertices."""
    if len(vertices) < 3:
        return False
    x, y = point.longitude, point.latitude
    inside = False
    j = len(vertices) - 1
    for i, vertex in enumerate(vertices):
        xi, yi = vertex.longitude, vertex.latitude
        xj, yj = vertices[j].longitude, vertices[j].latitude
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return inside


def point_in_rectangle(point: Coordinate, corner_a: Coordinate, corner_b: Coordinate) -> bool:
    """Containment in the lat/lon box spanned by two opposite corners (edges inclusive)."""
    lat_lo, lat_hi = sorted((corner_a.latitude, corner_b.latitude))
    lon_lo, lon_hi = sorted((corner_a.longitude, corner_b.longitude))
    return lat_lo <= point.latitude <= lat_hi and lon_lo <= point.longitude <= lon_hi
