"""Track ingestion: one distance-annotated point per recorded second."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Iterable

from .geo import haversine_m
from .gpx_reader import read_gpx
from .models import RawFix, TrackIngestResult, TrackMetadata, TrackPoint

logger = logging.getLogger(__name__)


def timestamp_key(text: str | None) -> datetime | str | None:
    """Truncate a fix timestamp to whole-second precision.

    Timezone-aware values are normalised to UTC so that equal instants written
    with different offsets collapse to the same key. Text that is not ISO-8601
    falls back to the text without its fractional-second part.
    """
    if text is None:
        return None
    s = text.strip()
    try:
        dt = datetime.fromisoformat(s[:-1] + "+00:00" if s.endswith(("Z", "z")) else s)
    except ValueError:
        return s.split(".", 1)[0]
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.replace(microsecond=0)


def build_track(fixes: Iterable[RawFix]) -> TrackIngestResult:
    """Deduplicate fixes by second and compute segment/cumulative distances.

    The first fix seen for each second is kept. Kept fixes are numbered
    0, 1, 2, ... in the order they are kept; a gap in real time does not
    leave a gap in ``second``.
    """
    points: list[TrackPoint] = []
    seen: set = set()
    num_fixes = 0
    total = 0.0
    prev: RawFix | None = None

    for fix in fixes:
        num_fixes += 1
        key = timestamp_key(fix.time)
        if key in seen:
            continue
        seen.add(key)

        segment = haversine_m(prev.lat, prev.lon, fix.lat, fix.lon) if prev is not None else 0.0
        total += segment
        points.append(
            TrackPoint(
                lat=fix.lat,
                lon=fix.lon,
                ele=fix.ele,
                second=len(points),
                segment_distance=segment,
                total_distance=total,
            )
        )
        prev = fix

    metadata = TrackMetadata(
        num_fixes=num_fixes,
        num_points=len(points),
        duplicates_dropped=num_fixes - len(points),
        total_distance_m=total,
        total_distance_km=total / 1000,
        has_elevation=any(p.ele is not None for p in points),
    )
    return TrackIngestResult(metadata=metadata, points=points)


def ingest_gpx(file: str | Path | bytes | BinaryIO) -> TrackIngestResult:
    """Read a GPX document and build its track."""
    result = build_track(read_gpx(file))
    meta = result.metadata
    logger.info(
        "Ingested %d points from %d fixes (%d duplicates), %.2f m",
        meta.num_points,
        meta.num_fixes,
        meta.duplicates_dropped,
        meta.total_distance_m,
    )
    return result
