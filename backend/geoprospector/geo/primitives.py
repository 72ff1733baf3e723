"""Coordinate, polygon and centroid helpers."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np
from shapely.geometry import Polygon

from geoprospector.models.geo import Coordinate, Target


# A boundary needs this many vertices before it can be enforced as an area
MIN_AREA_VERTICES = 3

_MERCATOR_MAX_LAT = 85.05112878


def _as_array(points: Sequence[Coordinate]) -> np.ndarray:
    return np.array([[p.lat, p.lng] for p in points], dtype=np.float64)


def centroid(boundary: Sequence[Coordinate]) -> Coordinate:
    """Arithmetic mean of latitudes and of longitudes.

    This is the vertex mean, not the area centroid: a dense run of vertices
    along one edge pulls the target toward that edge.
    """
    if not boundary:
        raise ValueError("centroid of an empty boundary is undefined")

    arr = _as_array(boundary)
    mean = arr.mean(axis=0)
    # Float rounding can push the mean a hair past the extremes
    lo = arr.min(axis=0)
    hi = arr.max(axis=0)
    lat, lng = np.clip(mean, lo, hi)
    return Coordinate(lat=float(lat), lng=float(lng))


def bounding_box(points: Sequence[Coordinate]) -> tuple[float, float, float, float]:
    """(min_lat, min_lng, max_lat, max_lng)."""
    if not points:
        raise ValueError("bounding box of an empty point set is undefined")
    arr = _as_array(points)
    min_lat, min_lng = arr.min(axis=0)
    max_lat, max_lng = arr.max(axis=0)
    return (float(min_lat), float(min_lng), float(max_lat), float(max_lng))


def format_for_prompt(coordinate: Coordinate) -> str:
    return f"{coordinate.lat:.5f}, {coordinate.lng:.5f}"


def is_enforceable(boundary: Sequence[Coordinate] | None) -> bool:
    return boundary is not None and len(boundary) >= MIN_AREA_VERTICES


def is_simple_polygon(boundary: Sequence[Coordinate]) -> bool:
    """True when the ring closes without crossing itself.

    Provisional point sets (fewer than 3 vertices) are reported as simple.
    """
    if len(boundary) < MIN_AREA_VERTICES:
        return True
    # shapely works in (x, y) = (lng, lat)
    polygon = Polygon([(p.lng, p.lat) for p in boundary])
    return bool(polygon.is_valid)


def resolve_target(
    point: Coordinate,
    boundary: Sequence[Coordinate] | None = None,
    use_boundary: bool = False,
) -> Target:
    """Pick the analysis subject from the selected point and plotted area."""
    if use_boundary and is_enforceable(boundary):
        vertices = tuple(boundary)
        return Target(point=centroid(vertices), boundary=vertices)
    return Target(point=point)


def tile_snapshot_url(coordinate: Coordinate, zoom: int = 14) -> str:
    """Satellite tile covering ``coordinate`` (Web-Mercator slippy-map indices)."""
    n = 2**zoom
    lat = min(max(coordinate.lat, -_MERCATOR_MAX_LAT), _MERCATOR_MAX_LAT)
    lat_rad = math.radians(lat)
    x = math.floor((coordinate.lng + 180.0) / 360.0 * n)
    y = math.floor((1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0 * n)
    x = min(max(x, 0), n - 1)
    y = min(max(y, 0), n - 1)
    return f"https://mt1.google.com/vt/lyrs=s&x={x}&y={y}&z={zoom}"
