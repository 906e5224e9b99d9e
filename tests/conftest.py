import pytest

from route_video_sync import RawFix, VideoSegment, build_track

GPX11_NS = "http://www.topografix.com/GPX/1/1"


def _trkpt(lat, lon, ele=None, time=None) -> str:
    inner = ""
    if ele is not None:
        inner += f"<ele>{ele}</ele>"
    if time is not None:
        inner += f"<time>{time}</time>"
    return f'<trkpt lat="{lat}" lon="{lon}">{inner}</trkpt>'


def make_gpx(*segments, namespace: str | None = GPX11_NS) -> bytes:
    """Build a GPX document with one track holding the given segments.

    Each segment is a list of ``(lat, lon, ele, time)`` tuples.
    """
    xmlns = f' xmlns="{namespace}"' if namespace else ""
    trksegs = "".join(
        "<trkseg>" + "".join(_trkpt(*fix) for fix in seg) + "</trkseg>" for seg in segments
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<gpx version="1.1" creator="test"{xmlns}><trk><name>t</name>{trksegs}</trk></gpx>'
    ).encode()


@pytest.fixture
def gpx_factory():
    return make_gpx


@pytest.fixture
def survey_gpx():
    """Five fixes heading north, the second one recorded twice within the same second."""
    return make_gpx(
        [
            (40.0000, -3.0, 600.0, "2024-05-01T10:00:00Z"),
            (40.0001, -3.0, 601.0, "2024-05-01T10:00:01.100Z"),
            (40.0500, -3.0, 999.0, "2024-05-01T10:00:01.900Z"),
            (40.0002, -3.0, 602.0, "2024-05-01T10:00:02Z"),
            (40.0003, -3.0, 603.0, "2024-05-01T10:00:07Z"),
        ]
    )


def _segment(segment_id: int, order: int, start_lat: float, n: int = 5) -> VideoSegment:
    fixes = [
        RawFix(lat=start_lat + i * 0.0001, lon=-3.0, time=f"2024-05-01T10:00:{i:02d}Z")
        for i in range(n)
    ]
    return VideoSegment(
        id=segment_id,
        order=order,
        source_key=f"videos/{segment_id}.mp4",
        points=build_track(fixes).points,
    )


@pytest.fixture
def three_segments():
    """Three consecutive segments of five points each, 0.0001 deg of latitude apart."""
    return [
        _segment(10, 0, 40.0000),
        _segment(11, 1, 40.0010),
        _segment(12, 2, 40.0020),
    ]


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
