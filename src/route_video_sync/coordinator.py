"""Playback synchronization between the 360 video, the map and the distance input.

The coordinator owns the single :class:`PlaybackCursor`. Views never update
each other: they report events here and render the :class:`RenderFrame`
published after every cursor change.

Two sources can move the cursor:

- the video itself, through time ticks while it plays;
- the operator, by clicking the map or a marker, searching a route distance,
  or navigating between segments.

Operator moves make the video seek and open a short settle window during
which ticks from the still-seeking video are ignored. Ticks never make the
video seek unless the cursor drifted beyond the dead-band.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Awaitable, Callable, Iterable

from .config import SEEK_DEAD_BAND_S, SEEK_SETTLE_WINDOW_S, SUGGESTION_LIMIT, TIME_RESOLUTION_S
from .geo import closest_point, find_nearest, format_distance, target_meters
from .models import (
    PlaybackCursor,
    PointMarker,
    PooledPoint,
    RenderFrame,
    RouteReferenceLocation,
    TrackPoint,
    VideoSegment,
)

logger = logging.getLogger(__name__)

Listener = Callable[[RenderFrame], None]

# Float slack when comparing positions against the dead-band.
_EPS = 1e-9


class PlaybackCoordinator:
    """Single owner of the playback cursor for one video collection."""

    def __init__(
        self,
        segments: Iterable[VideoSegment] = (),
        reference_locations: Iterable[RouteReferenceLocation] = (),
        *,
        route_offset_m: float = 0.0,
        dead_band_s: float = SEEK_DEAD_BAND_S,
        settle_window_s: float = SEEK_SETTLE_WINDOW_S,
        time_resolution_s: float = TIME_RESOLUTION_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.route_offset_m = route_offset_m
        self.dead_band_s = dead_band_s
        self.settle_window_s = settle_window_s
        self.time_resolution_s = time_resolution_s
        self._clock = clock
        self._listeners: list[Listener] = []
        self._references: list[RouteReferenceLocation] = []
        self.load_collection(segments, reference_locations)

    # -- collection -------------------------------------------------------

    def load_collection(
        self,
        segments: Iterable[VideoSegment],
        reference_locations: Iterable[RouteReferenceLocation] | None = None,
    ) -> None:
        """Open a collection: rebuild the point pool and reset the cursor."""
        self._segments = sorted(segments, key=lambda s: s.order)
        self._by_order = {s.order: s for s in self._segments}
        self._by_id = {s.id: s for s in self._segments}
        if reference_locations is not None:
            self._references = list(reference_locations)

        self._pool = tuple(
            PooledPoint(
                lat=p.lat,
                lon=p.lon,
                second=p.second,
                total_distance=p.total_distance,
                segment_id=s.id,
                segment_order=s.order,
            )
            for s in self._segments
            for p in s.points
        )

        first = self._segments[0] if self._segments else None
        self._cursor = PlaybackCursor(
            second=0.0,
            segment_id=first.id if first else 0,
            segment_order=first.order if first else 0,
        )
        self._video_position = 0.0
        self._settle_until = -math.inf
        self._end_armed = True
        self.video_url: str | None = None
        logger.debug("Loaded %d segments, %d pooled points", len(self._segments), len(self._pool))

    @property
    def cursor(self) -> PlaybackCursor:
        return self._cursor

    @property
    def segments(self) -> list[VideoSegment]:
        return list(self._segments)

    @property
    def pooled_points(self) -> tuple[PooledPoint, ...]:
        return self._pool

    @property
    def reference_locations(self) -> list[RouteReferenceLocation]:
        return list(self._references)

    @reference_locations.setter
    def reference_locations(self, locations: Iterable[RouteReferenceLocation]) -> None:
        self._references = list(locations)

    @property
    def current_segment(self) -> VideoSegment | None:
        return self._by_id.get(self._cursor.segment_id)

    # -- subscriptions ----------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a view; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def frame(self) -> RenderFrame:
        """Render state for the current cursor, without any seek request."""
        return self._build_frame(self._cursor, seek_to=None, segment_changed=False)

    # -- video events -----------------------------------------------------

    def on_time_update(self, video_time: float) -> RenderFrame | None:
        """The video reports its playback position."""
        segment = self.current_segment
        if segment is None:
            return None
        if self._clock() < self._settle_until:
            logger.debug("Ignoring tick %.3f inside seek-settle window", video_time)
            return None

        self._video_position = max(0.0, video_time)
        second = self._round_time(self._video_position)
        if second == self._cursor.second:
            return None
        return self._move(segment, second, settle=False)

    def on_video_ended(self, segment_id: int | None = None) -> RenderFrame | None:
        """The video reached its end: continue with the next segment, if any.

        Repeated signals for the same playthrough advance only once. A signal
        naming a segment other than the current one is stale and ignored.
        """
        segment = self.current_segment
        if segment is None:
            return None
        if segment_id is not None and segment_id != segment.id:
            logger.debug("Ignoring ended signal for inactive segment %s", segment_id)
            return None
        if not self._end_armed:
            return None
        self._end_armed = False

        following = self._by_order.get(segment.order + 1)
        if following is None:
            logger.debug("Segment %s is the last one, staying at its end", segment.id)
            return None
        return self._move(following, 0.0, settle=True, rearm=False)

    # -- operator events --------------------------------------------------

    def select_location(self, lat: float, lon: float) -> RenderFrame | None:
        """Jump to the recorded point nearest to a map position, in any segment."""
        point = closest_point(self._pool, lat, lon)
        if point is None:
            logger.debug("No track points to select from")
            return None
        return self._move(self._by_id[point.segment_id], float(point.second), settle=True)

    def select_marker(self, marker: PointMarker) -> RenderFrame | None:
        return self.select_location(marker.lat, marker.lon)

    def search_distance(self, km: int | None, m: int | None) -> RenderFrame | None:
        """Jump to the route position of an operator-entered ``km + m`` distance.

        The reference location whose route distance is closest to the target
        is looked up first, then the track point nearest to that location.
        """
        target = target_meters(km, m)
        if target is None or not self._references or not self._pool:
            return None
        reference = find_nearest(self._references, lambda loc: abs((loc.meter or 0.0) - target))
        logger.debug("Distance %.1f m resolved to reference at %s m", target, reference.meter)
        return self.select_location(reference.lat, reference.lon)

    def go_to_segment(self, order: int) -> RenderFrame | None:
        """Start the segment at ``order``; orders with no segment are ignored."""
        segment = self._by_order.get(order)
        if segment is None:
            logger.debug("No segment at order %s", order)
            return None
        return self._move(segment, 0.0, settle=True)

    def next_segment(self) -> RenderFrame | None:
        return self.go_to_segment(self._cursor.segment_order + 1)

    def previous_segment(self) -> RenderFrame | None:
        return self.go_to_segment(self._cursor.segment_order - 1)

    def suggest_points(self, query: str, limit: int = SUGGESTION_LIMIT) -> list[TrackPoint]:
        """Points of the current segment whose ``km+m`` label contains ``query``."""
        segment = self.current_segment
        if segment is None:
            return []
        needle = query.strip().lower()
        matches = [
            p for p in segment.points
            if needle in format_distance(self.route_offset_m + p.total_distance).lower()
        ]
        return matches[:limit]

    # -- video source -----------------------------------------------------

    @property
    def current_source_key(self) -> str | None:
        segment = self.current_segment
        return segment.source_key if segment else None

    def accept_video_url(self, source_key: str, url: str) -> bool:
        """Keep a resolved playable URL only if it belongs to the active segment."""
        if source_key != self.current_source_key:
            logger.debug("Discarding stale video URL for %r", source_key)
            return False
        self.video_url = url
        return True

    async def load_video_url(self, resolver: Callable[[str], Awaitable[str]]) -> str | None:
        """Resolve the playable URL of the active segment.

        The result is dropped if another segment became active meanwhile.
        """
        source_key = self.current_source_key
        if not source_key:
            return None
        url = await resolver(source_key)
        return url if self.accept_video_url(source_key, url) else None

    # -- internals --------------------------------------------------------

    def _round_time(self, seconds: float) -> float:
        scale = 1 / self.time_resolution_s
        return math.floor(seconds * scale + 0.5) / scale

    def _move(self, segment: VideoSegment, second: float, *, settle: bool, rearm: bool = True) -> RenderFrame:
        segment_changed = segment.id != self._cursor.segment_id
        if segment_changed:
            self._video_position = 0.0
            self.video_url = None
        # An ended signal only counts once per playthrough; auto-advance keeps it disarmed
        # until the next segment actually plays.
        if rearm:
            self._end_armed = True
        if settle:
            self._settle_until = self._clock() + self.settle_window_s

        seek_to = None
        if abs(self._video_position - second) - self.dead_band_s > _EPS:
            seek_to = second
            self._video_position = second

        cursor = PlaybackCursor(second=second, segment_id=segment.id, segment_order=segment.order)
        self._cursor = cursor
        frame = self._build_frame(cursor, seek_to=seek_to, segment_changed=segment_changed)
        for listener in list(self._listeners):
            listener(frame)
        return frame

    def _build_frame(self, cursor: PlaybackCursor, *, seek_to: float | None, segment_changed: bool) -> RenderFrame:
        segment = self._by_id.get(cursor.segment_id)
        point = None
        if segment is not None:
            point = find_nearest(segment.points, lambda p: abs(p.second - cursor.second))

        distance = point.total_distance + self.route_offset_m if point is not None else None
        return RenderFrame(
            cursor=cursor,
            seek_to=seek_to,
            segment_changed=segment_changed,
            map_point=point,
            distance_m=distance,
            distance_label=format_distance(distance) if distance is not None else None,
        )
