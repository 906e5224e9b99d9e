"""Pydantic data models for track ingestion and playback synchronization."""

from pydantic import BaseModel, ConfigDict


class RawFix(BaseModel):
    """A single position fix as recorded in a track-log."""

    lat: float
    lon: float
    ele: float | None = None
    time: str | None = None


class TrackPoint(BaseModel):
    """An ingested fix: one point per elapsed second of a video segment."""

    lat: float
    lon: float
    ele: float | None = None
    second: int
    segment_distance: float
    total_distance: float


class TrackMetadata(BaseModel):
    """Summary of an ingested track-log."""

    num_fixes: int
    num_points: int
    duplicates_dropped: int
    total_distance_m: float
    total_distance_km: float
    has_elevation: bool


class TrackIngestResult(BaseModel):
    """Complete result of ingesting a track-log."""

    metadata: TrackMetadata
    points: list[TrackPoint]

    @property
    def total_distance_m(self) -> float:
        return self.metadata.total_distance_m


class VideoSegment(BaseModel):
    """One video file of a collection, with its ingested track."""

    id: int
    order: int
    source_key: str = ""
    start_place: str | None = None
    duration: float | None = None
    points: list[TrackPoint] = []


class PooledPoint(BaseModel):
    """A track point tagged with the segment it belongs to."""

    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float
    second: int
    total_distance: float
    segment_id: int
    segment_order: int


class PlaybackCursor(BaseModel):
    """The single authoritative playback position."""

    model_config = ConfigDict(frozen=True)

    second: float = 0.0
    segment_id: int = 0
    segment_order: int = 0


class RenderFrame(BaseModel):
    """What every view needs to render one cursor state."""

    model_config = ConfigDict(frozen=True)

    cursor: PlaybackCursor
    seek_to: float | None = None
    segment_changed: bool = False
    map_point: TrackPoint | None = None
    distance_m: float | None = None
    distance_label: str | None = None


class RouteReferenceLocation(BaseModel):
    """A surveyed point with its absolute distance along the whole route."""

    lat: float
    lon: float
    meter: float | None = None
    name: str | None = None


class ReferenceMetadata(BaseModel):
    """Metadata about a parsed reference-location source."""

    source_type: str
    crs_epsg: int | None = None
    crs_name: str | None = None
    is_projected: bool | None = None
    crs_note: str | None = None
    num_locations: int
    meter_field: str | None = None
    fields: list[str] = []


class Tag(BaseModel):
    id: int
    name: str
    color: str | None = None


class Marker(BaseModel):
    """A marker type (icon + name) shared by many point markers."""

    id: int
    name: str
    icon: str | None = None


class PointMarker(BaseModel):
    """A point of interest placed on the route."""

    id: int
    lat: float
    lon: float
    marker_id: int = 0
    marker: Marker | None = None
    comment: str | None = None
    tag_ids: list[int] = []


class TagGroup(BaseModel):
    """Point markers sharing exactly the same tag set."""

    tag_key: str
    tags: list[Tag]
    items: list[PointMarker] = []
    sub_groups: list["TagGroup"] = []


class MarkerGroup(BaseModel):
    """All point markers of one marker type, arranged by tag set."""

    marker_id: int
    marker: Marker
    tag_groups: list[TagGroup]
    total_items: int
