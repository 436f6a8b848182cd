"""Spherical geometry and point-in-polygon primitives.

Distances are integers in millimetres (kilometres x 10^6) so that long
cumulative sums over a road network don't drift. Everything here is pure:
no I/O and no state.
"""

import math
from typing import Iterable

import numpy as np

from ..models import GeoPoint

EARTH_RADIUS_KM = 6360.0
MM_PER_KM = 1_000_000

Edge = tuple[GeoPoint, GeoPoint]


def _haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine of the central angle between two points given in degrees."""
    lat_diff_sin = math.sin((math.radians(lat1) - math.radians(lat2)) / 2.0)
    lon_diff_sin = math.sin((math.radians(lon1) - math.radians(lon2)) / 2.0)
    return (
        lat_diff_sin * lat_diff_sin
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2))
        * lon_diff_sin * lon_diff_sin
    )


def angular_distance(a: GeoPoint, b: GeoPoint) -> float:
    """Central angle between ``a`` and ``b`` in radians."""
    h = _haversine(a.lat, a.lon, b.lat, b.lon)
    return 2.0 * math.asin(min(1.0, math.sqrt(h)))


def distance(a: GeoPoint, b: GeoPoint) -> int:
    """Great-circle distance in millimetres, truncated to an integer."""
    d_km = EARTH_RADIUS_KM * angular_distance(a, b)
    return int(math.floor(d_km * MM_PER_KM))


def slerp(a: GeoPoint, alpha: float, b: GeoPoint) -> GeoPoint:
    """Interpolate along the great circle from ``a`` (alpha=0) to ``b`` (alpha=1).

    Raises ZeroDivisionError when ``a`` and ``b`` coincide; callers must not
    interpolate across a zero-length segment.
    """
    lat1, lon1 = math.radians(a.lat), math.radians(a.lon)
    lat2, lon2 = math.radians(b.lat), math.radians(b.lon)

    d = angular_distance(a, b)
    sin_d = math.sin(d)
    if sin_d == 0.0:
        raise ZeroDivisionError("slerp between coincident points")
    fa = math.sin((1.0 - alpha) * d) / sin_d
    fb = math.sin(alpha * d) / sin_d

    x = fa * math.cos(lat1) * math.cos(lon1) + fb * math.cos(lat2) * math.cos(lon2)
    y = fa * math.cos(lat1) * math.sin(lon1) + fb * math.cos(lat2) * math.sin(lon2)
    z = fa * math.sin(lat1) + fb * math.sin(lat2)
    lat3 = math.atan2(z, math.sqrt(x * x + y * y))
    lon3 = math.atan2(y, x)
    return GeoPoint.fast(math.degrees(lat3), math.degrees(lon3))


def slerp_array(
    lat1: np.ndarray, lon1: np.ndarray, alpha: np.ndarray,
    lat2: np.ndarray, lon2: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Vectorized :func:`slerp` over arrays of degrees.

    Coincident endpoints produce NaN instead of raising.
    """
    lat1, lon1 = np.radians(lat1), np.radians(lon1)
    lat2, lon2 = np.radians(lat2), np.radians(lon2)

    lat_diff_sin = np.sin((lat1 - lat2) / 2.0)
    lon_diff_sin = np.sin((lon1 - lon2) / 2.0)
    h = lat_diff_sin ** 2 + np.cos(lat1) * np.cos(lat2) * lon_diff_sin ** 2
    d = 2.0 * np.arcsin(np.minimum(1.0, np.sqrt(h)))

    with np.errstate(divide="ignore", invalid="ignore"):
        sin_d = np.sin(d)
        fa = np.sin((1.0 - alpha) * d) / sin_d
        fb = np.sin(alpha * d) / sin_d

    x = fa * np.cos(lat1) * np.cos(lon1) + fb * np.cos(lat2) * np.cos(lon2)
    y = fa * np.cos(lat1) * np.sin(lon1) + fb * np.cos(lat2) * np.sin(lon2)
    z = fa * np.sin(lat1) + fb * np.sin(lat2)
    lat3 = np.arctan2(z, np.sqrt(x * x + y * y))
    lon3 = np.arctan2(y, x)
    return np.degrees(lat3), np.degrees(lon3)


def flat_lerp(x1, x2, y1, y2, x):
    """Linear interpolation of y at ``x`` on the line through (x1, y1), (x2, y2)."""
    return y1 + (x - x1) * (y2 - y1) / (x2 - x1)


def point_in_polygon(point: GeoPoint, edges: Iterable[Edge]) -> bool:
    """Even-odd ray cast towards the south pole.

    The comparisons are half-open so a vertex shared by two edges is counted
    once. The ray is cast along the query's meridian, longitude plays the
    role of x and latitude of y.
    """
    crossings = 0
    for p1, p2 in edges:
        if p1.lon <= point.lon and p2.lon <= point.lon:
            continue
        if p1.lon >= point.lon and p2.lon >= point.lon:
            continue
        if p1.lat >= point.lat and p2.lat >= point.lat:
            continue
        if p1.lat <= point.lat and p2.lat <= point.lat:
            crossings += 1
            continue
        if flat_lerp(p1.lon, p2.lon, p1.lat, p2.lat, point.lon) <= point.lat:
            crossings += 1
    return crossings % 2 == 1


def count_crossings(
    lat: float, lon: float,
    lat1: np.ndarray, lon1: np.ndarray, lat2: np.ndarray, lon2: np.ndarray,
) -> int:
    """Array form of the :func:`point_in_polygon` crossing count for one query."""
    west = (lon1 <= lon) & (lon2 <= lon)
    east = (lon1 >= lon) & (lon2 >= lon)
    north = (lat1 >= lat) & (lat2 >= lat)
    south = (lat1 <= lat) & (lat2 <= lat)
    candidates = ~west & ~east & ~north

    mixed = candidates & ~south
    below = np.zeros_like(candidates)
    if mixed.any():
        est = flat_lerp(lon1[mixed], lon2[mixed], lat1[mixed], lat2[mixed], lon)
        below[mixed] = est <= lat
    return int(np.count_nonzero(candidates & south) + np.count_nonzero(below))
