"""FastAPI server for track ingestion and reference-location import."""

from __future__ import annotations

import csv
import io
import logging
import tempfile
import zipfile
from pathlib import Path

import shapefile
from fastapi import FastAPI, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from .gpx_reader import GpxParseError
from .locations import read_reference_kml, read_reference_shapefile
from .models import ReferenceMetadata, RouteReferenceLocation, TrackIngestResult, TrackPoint
from .track import ingest_gpx

logger = logging.getLogger(__name__)

app = FastAPI(title="Route Video Sync", version="0.1.0")

COMPANION_EXTS = {".shp", ".shx", ".dbf", ".prj"}


class ReferenceLocationsResult(BaseModel):
    """Reference locations parsed from an uploaded survey file."""

    metadata: ReferenceMetadata
    locations: list[RouteReferenceLocation]


@app.post("/ingest")
async def ingest_track(
    files: list[UploadFile],
    format: str = Query("csv", pattern="^(csv|json)$"),
):
    """Ingest an uploaded GPX track-log into one point per second.

    Accepts a single .gpx file.
    """
    if len(files) != 1 or not (files[0].filename or "").lower().endswith(".gpx"):
        raise HTTPException(status_code=400, detail="Upload exactly one .gpx file")

    content = await files[0].read()
    try:
        result = ingest_gpx(content)
    except GpxParseError as exc:
        logger.warning("Rejected %s: %s", files[0].filename, exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if format == "json":
        return result

    return _points_to_csv_response(result)


@app.post("/reference-locations")
async def import_reference_locations(files: list[UploadFile]) -> ReferenceLocationsResult:
    """Parse route reference locations from uploaded survey files.

    Accepts:
    - A single .kmz or .kml file
    - A single .zip containing shapefile components
    - Multiple files (.shp, .shx, .dbf, and optionally .prj)
    """
    filename = (files[0].filename or "").lower() if len(files) == 1 else ""

    try:
        if filename.endswith((".kmz", ".kml")):
            locations, metadata = read_reference_kml(await files[0].read())
        elif filename.endswith(".zip"):
            locations, metadata = await _handle_zip(files[0])
        else:
            locations, metadata = await _handle_multi_file(files)
    except (ValueError, shapefile.ShapefileException, zipfile.BadZipFile) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return ReferenceLocationsResult(metadata=metadata, locations=locations)


async def _handle_zip(upload: UploadFile):
    """Extract shapefile components from a zip archive and read them."""
    content = await upload.read()
    with tempfile.TemporaryDirectory() as extract_dir:
        with zipfile.ZipFile(io.BytesIO(content)) as zf:
            zf.extractall(extract_dir)

        shp_files = sorted(Path(extract_dir).rglob("*.shp"))
        if not shp_files:
            raise HTTPException(status_code=400, detail="No .shp file found in zip archive")
        return read_reference_shapefile(shp_files[0])


async def _handle_multi_file(files: list[UploadFile]):
    """Read a shapefile from multiple uploaded component files."""
    file_map: dict[str, bytes] = {}
    for f in files:
        ext = Path(f.filename or "").suffix.lower()
        if ext in COMPANION_EXTS:
            file_map[ext] = await f.read()

    if ".shp" not in file_map:
        raise HTTPException(status_code=400, detail="Missing required .shp file")

    prj_wkt = None
    if ".prj" in file_map:
        prj_wkt = file_map[".prj"].decode("utf-8", errors="replace")

    return read_reference_shapefile(
        shp_file=io.BytesIO(file_map[".shp"]),
        shx_file=io.BytesIO(file_map[".shx"]) if ".shx" in file_map else None,
        dbf_file=io.BytesIO(file_map[".dbf"]) if ".dbf" in file_map else None,
        prj_wkt=prj_wkt,
    )


def _points_to_csv_response(result: TrackIngestResult) -> StreamingResponse:
    """Convert ingested points to a streaming CSV response."""
    fieldnames = list(TrackPoint.model_fields)

    def generate():
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=fieldnames)
        writer.writeheader()
        yield buf.getvalue()
        buf.seek(0)
        buf.truncate(0)

        for point in result.points:
            writer.writerow(point.model_dump())
            yield buf.getvalue()
            buf.seek(0)
            buf.truncate(0)

    return StreamingResponse(
        generate(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=track_points.csv"},
    )
