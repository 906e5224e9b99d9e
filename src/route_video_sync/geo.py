"""Geodesy helpers shared by ingestion and playback synchronization."""

from __future__ import annotations

import math
import re
from typing import Callable, Iterable, TypeVar

from .config import EARTH_RADIUS_M

T = TypeVar("T")

_DISTANCE_LABEL = re.compile(r"^\s*(\d+)\s*\+\s*(\d+(?:\.\d+)?)\s*$")


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two lat/lon points in degrees."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def find_nearest(candidates: Iterable[T], key: Callable[[T], float]) -> T | None:
    """Return the candidate with the smallest key, or None if there are none.

    On equal keys the candidate seen first is kept.
    """
    best = None
    best_key = math.inf
    for candidate in candidates:
        k = key(candidate)
        if best is None or k < best_key:
            best, best_key = candidate, k
    return best


def closest_point(points: Iterable[T], lat: float, lon: float) -> T | None:
    """Nearest point (anything with ``lat``/``lon``) to the given coordinates."""
    return find_nearest(points, lambda p: haversine_m(lat, lon, p.lat, p.lon))


def format_distance(meters: float) -> str:
    """Format a route distance as ``km+m``, e.g. ``5+500.000``."""
    km = math.floor(meters / 1000)
    rest = meters - km * 1000
    return f"{km}+{rest:.3f}"


def parse_distance(label: str) -> float | None:
    """Inverse of :func:`format_distance`; None if ``label`` is not ``km+m``."""
    match = _DISTANCE_LABEL.match(label)
    if match is None:
        return None
    return int(match.group(1)) * 1000 + float(match.group(2))


def target_meters(km: int | float | None, m: int | float | None) -> float | None:
    """Combine operator km/m input into an absolute distance in meters.

    Empty parts count as zero; if both are empty the search is disabled and
    None is returned. Negative totals are rejected the same way.
    """
    if km is None and m is None:
        return None
    total = (km or 0) * 1000 + (m or 0)
    if total < 0:
        return None
    return float(total)
