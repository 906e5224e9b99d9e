"""GPS track ingestion and 360 video playback synchronization."""

from .coordinator import PlaybackCoordinator
from .geo import closest_point, find_nearest, format_distance, haversine_m, parse_distance, target_meters
from .gpx_reader import GpxParseError, read_gpx
from .legend import build_marker_groups, visible_markers
from .locations import CrsInfo, detect_crs, nearest_reference_meter, read_reference_kml, read_reference_shapefile
from .models import (
    Marker,
    MarkerGroup,
    PlaybackCursor,
    PointMarker,
    PooledPoint,
    RawFix,
    ReferenceMetadata,
    RenderFrame,
    RouteReferenceLocation,
    Tag,
    TagGroup,
    TrackIngestResult,
    TrackMetadata,
    TrackPoint,
    VideoSegment,
)
from .track import build_track, ingest_gpx, timestamp_key

__all__ = [
    "CrsInfo",
    "GpxParseError",
    "Marker",
    "MarkerGroup",
    "PlaybackCoordinator",
    "PlaybackCursor",
    "PointMarker",
    "PooledPoint",
    "RawFix",
    "ReferenceMetadata",
    "RenderFrame",
    "RouteReferenceLocation",
    "Tag",
    "TagGroup",
    "TrackIngestResult",
    "TrackMetadata",
    "TrackPoint",
    "VideoSegment",
    "build_marker_groups",
    "build_track",
    "closest_point",
    "detect_crs",
    "find_nearest",
    "format_distance",
    "haversine_m",
    "ingest_gpx",
    "nearest_reference_meter",
    "parse_distance",
    "read_gpx",
    "read_reference_kml",
    "read_reference_shapefile",
    "target_meters",
    "timestamp_key",
    "visible_markers",
]
