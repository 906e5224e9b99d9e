"""Tests for the GPX reader and track ingestion."""

import io
from datetime import datetime, timezone

import pytest

from route_video_sync import GpxParseError, RawFix, build_track, ingest_gpx, read_gpx, timestamp_key

# 0.0001 degree of latitude on a 6,371 km sphere
STEP_M = 11.119492664455873


class TestGpxReader:
    def test_reads_fixes_in_document_order(self, survey_gpx):
        fixes = read_gpx(survey_gpx)
        assert len(fixes) == 5
        assert fixes[0].lat == 40.0
        assert fixes[0].ele == 600.0
        assert fixes[2].time == "2024-05-01T10:00:01.900Z"

    def test_reads_all_segments(self, gpx_factory):
        doc = gpx_factory(
            [(1.0, 2.0, None, "2024-01-01T00:00:00Z")],
            [(3.0, 4.0, None, "2024-01-01T00:00:01Z")],
        )
        fixes = read_gpx(doc)
        assert [(f.lat, f.lon) for f in fixes] == [(1.0, 2.0), (3.0, 4.0)]

    def test_without_namespace(self, gpx_factory):
        doc = gpx_factory([(1.0, 2.0, 5.5, None)], namespace=None)
        fixes = read_gpx(doc)
        assert len(fixes) == 1
        assert fixes[0].ele == 5.5
        assert fixes[0].time is None

    def test_gpx10_namespace(self, gpx_factory):
        doc = gpx_factory([(1.0, 2.0, None, None)], namespace="http://www.topografix.com/GPX/1/0")
        assert len(read_gpx(doc)) == 1

    def test_skips_points_without_coordinates(self):
        doc = b"""<gpx><trk><trkseg>
            <trkpt lat="1.0"><time>2024-01-01T00:00:00Z</time></trkpt>
            <trkpt lat="abc" lon="2.0"/>
            <trkpt lat="1.0" lon="2.0"/>
        </trkseg></trk></gpx>"""
        fixes = read_gpx(doc)
        assert len(fixes) == 1

    def test_no_tracks_is_empty(self):
        assert read_gpx(b'<gpx version="1.1"><wpt lat="1" lon="2"/></gpx>') == []

    def test_empty_segment_is_empty(self):
        assert read_gpx(b"<gpx><trk><trkseg></trkseg></trk></gpx>") == []

    def test_malformed_xml_raises(self):
        with pytest.raises(GpxParseError):
            read_gpx(b"<gpx><trk><trkseg>")

    def test_wrong_root_raises(self):
        with pytest.raises(GpxParseError, match="<kml>"):
            read_gpx(b"<kml><Document/></kml>")

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            read_gpx(b"not xml at all")

    def test_reads_from_path(self, tmp_path, survey_gpx):
        path = tmp_path / "track.gpx"
        path.write_bytes(survey_gpx)
        assert len(read_gpx(path)) == 5
        assert len(read_gpx(str(path))) == 5

    def test_empty_content_is_empty(self):
        assert read_gpx(b"") == []
        assert read_gpx(b"   \n\t") == []
        assert read_gpx(io.BytesIO(b"")) == []

    def test_reads_text(self, survey_gpx):
        text = survey_gpx.decode("utf-8")
        assert read_gpx(text) == read_gpx(survey_gpx)

    def test_empty_text_is_empty(self):
        assert read_gpx("") == []
        assert read_gpx("  \n") == []

    def test_malformed_text_raises(self):
        with pytest.raises(GpxParseError):
            read_gpx("<gpx><trk>")


class TestTimestampKey:
    def test_truncates_fraction(self):
        assert timestamp_key("2024-05-01T10:00:01.100Z") == timestamp_key("2024-05-01T10:00:01.999Z")

    def test_distinct_seconds_differ(self):
        assert timestamp_key("2024-05-01T10:00:01Z") != timestamp_key("2024-05-01T10:00:02Z")

    def test_offsets_normalised_to_utc(self):
        assert timestamp_key("2024-05-01T12:00:01+02:00") == timestamp_key("2024-05-01T10:00:01Z")
        assert timestamp_key("2024-05-01T10:00:01Z") == datetime(2024, 5, 1, 10, 0, 1, tzinfo=timezone.utc)

    def test_missing_time(self):
        assert timestamp_key(None) is None

    def test_unparseable_text_falls_back(self):
        assert timestamp_key("yesterday at 10.5") == "yesterday at 10"


class TestBuildTrack:
    def test_keeps_first_fix_per_second(self, survey_gpx):
        result = build_track(read_gpx(survey_gpx))
        assert len(result.points) == 4
        # the far-away 10:00:01.900 fix shares its second with 10:00:01.100 and is dropped
        assert all(p.lat < 40.01 for p in result.points)
        assert result.points[1].ele == 601.0

    def test_many_fixes_in_one_second(self):
        fixes = [RawFix(lat=1.0 + i, lon=2.0, time=f"2024-01-01T00:00:00.{i}00Z") for i in range(5)]
        result = build_track(fixes)
        assert len(result.points) == 1
        assert result.points[0].lat == 1.0
        assert result.points[0].second == 0

    def test_seconds_are_ordinal(self, survey_gpx):
        # the source jumps from 10:00:02 to 10:00:07; the index does not
        result = build_track(read_gpx(survey_gpx))
        assert [p.second for p in result.points] == [0, 1, 2, 3]

    def test_distances(self, survey_gpx):
        points = build_track(read_gpx(survey_gpx)).points
        assert points[0].segment_distance == 0.0
        assert points[0].total_distance == 0.0
        for p in points[1:]:
            assert p.segment_distance == pytest.approx(STEP_M)
        assert points[-1].total_distance == pytest.approx(3 * STEP_M)

    def test_cumulative_is_running_sum(self, survey_gpx):
        points = build_track(read_gpx(survey_gpx)).points
        running = 0.0
        for p in points:
            running += p.segment_distance
            assert p.total_distance == pytest.approx(running)
        assert all(b.total_distance >= a.total_distance for a, b in zip(points, points[1:]))

    def test_metadata(self, survey_gpx):
        meta = build_track(read_gpx(survey_gpx)).metadata
        assert meta.num_fixes == 5
        assert meta.num_points == 4
        assert meta.duplicates_dropped == 1
        assert meta.total_distance_km == pytest.approx(3 * STEP_M / 1000)
        assert meta.has_elevation is True

    def test_fixes_without_time_keep_only_first(self):
        fixes = [RawFix(lat=1.0, lon=2.0), RawFix(lat=1.5, lon=2.0)]
        assert len(build_track(fixes).points) == 1

    def test_empty(self):
        result = build_track([])
        assert result.points == []
        assert result.total_distance_m == 0.0
        assert result.metadata.has_elevation is False


class TestIngestGpx:
    def test_empty_document(self):
        result = ingest_gpx(b"<gpx/>")
        assert result.points == []
        assert result.total_distance_m == 0

    def test_total_distance(self, survey_gpx):
        result = ingest_gpx(survey_gpx)
        assert result.total_distance_m == pytest.approx(result.points[-1].total_distance)

    def test_reingestion_is_independent(self, survey_gpx):
        first = ingest_gpx(survey_gpx)
        second = ingest_gpx(survey_gpx)
        assert first == second
        assert first.points is not second.points

    def test_malformed_raises(self):
        with pytest.raises(GpxParseError):
            ingest_gpx(b"<gpx>")

    def test_empty_content(self):
        for content in (b"", b" \r\n", ""):
            result = ingest_gpx(content)
            assert result.points == []
            assert result.total_distance_m == 0
            assert result.metadata.num_fixes == 0

    def test_text_input(self):
        result = ingest_gpx(
            '<gpx><trk><trkseg><trkpt lat="1" lon="2"><time>2024-01-01T00:00:00Z</time></trkpt>'
            "</trkseg></trk></gpx>"
        )
        assert [(p.lat, p.lon, p.second) for p in result.points] == [(1.0, 2.0, 0)]
