"""Route reference locations (kilometre points) from shapefiles and KMZ/KML.

A reference location carries its absolute distance along the whole route,
independent of any single video segment. Shapefile coordinates in a projected
CRS are transformed to WGS84; KML coordinates are always WGS84.
"""

from __future__ import annotations

import io
import logging
import xml.etree.ElementTree as ET
import zipfile
from pathlib import Path
from typing import BinaryIO, Iterable, NamedTuple

import shapefile
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from .geo import closest_point, parse_distance
from .models import ReferenceMetadata, RouteReferenceLocation

logger = logging.getLogger(__name__)

KML_NS = "{http://www.opengis.net/kml/2.2}"

# Attribute names recognised as route distance, with their scale to meters.
METER_FIELDS = {
    "meter": 1.0,
    "meters": 1.0,
    "distance_m": 1.0,
    "kp": 1000.0,
    "kp_km": 1000.0,
}


class CrsInfo(NamedTuple):
    """Coordinate system of a reference-location source.

    ``note`` explains why no CRS could be identified; coordinates are then
    taken as WGS84 lon/lat.
    """

    crs: CRS | None
    note: str | None = None

    @property
    def epsg(self) -> int | None:
        return self.crs.to_epsg() if self.crs is not None else None

    @property
    def name(self) -> str | None:
        return self.crs.name if self.crs is not None else None

    @property
    def is_projected(self) -> bool | None:
        return self.crs.is_projected if self.crs is not None else None


def detect_crs(prj: str | Path | None) -> CrsInfo:
    """Identify the CRS of a shapefile from its .prj (WKT text or file path)."""
    if isinstance(prj, Path):
        if not prj.exists():
            return CrsInfo(None, f"{prj.name} not found, assuming WGS84")
        prj = prj.read_text(errors="replace")
    if prj is None:
        return CrsInfo(None, "no .prj supplied, assuming WGS84")
    if not prj.strip():
        return CrsInfo(None, "empty .prj, assuming WGS84")

    try:
        return CrsInfo(CRS.from_wkt(prj))
    except CRSError as exc:
        logger.warning("Unreadable .prj, assuming WGS84: %s", exc)
        return CrsInfo(None, f"unreadable .prj ({exc}), assuming WGS84")


def read_reference_shapefile(
    shp_path: str | Path | None = None,
    *,
    shp_file: BinaryIO | None = None,
    shx_file: BinaryIO | None = None,
    dbf_file: BinaryIO | None = None,
    prj_wkt: str | None = None,
    meter_field: str | None = None,
) -> tuple[list[RouteReferenceLocation], ReferenceMetadata]:
    """Read a POINT shapefile of reference locations.

    Supports two modes:
    - File path: pass ``shp_path`` (the .prj is auto-discovered)
    - File objects: pass ``shp_file``, ``shx_file``, ``dbf_file``, and optionally ``prj_wkt``

    ``meter_field`` names the attribute holding the route distance; when
    omitted one of :data:`METER_FIELDS` is picked.
    """
    if shp_path is not None:
        shp_path = Path(shp_path)
        sf = shapefile.Reader(str(shp_path))
        prj_path = shp_path.with_suffix(".prj")
        if not prj_path.exists():
            # shp_path might lack an extension (pyshp convention)
            prj_path = Path(str(shp_path) + ".prj")
        crs_info = detect_crs(prj_path)
    elif shp_file is not None:
        sf = shapefile.Reader(shp=shp_file, shx=shx_file, dbf=dbf_file)
        crs_info = detect_crs(prj_wkt)
    else:
        raise ValueError("Provide either shp_path or shp_file")

    shape_type_name = sf.shapeTypeName
    upper = shape_type_name.upper()
    if "POINT" not in upper or "MULTI" in upper:
        raise ValueError(f"Unsupported shape type: {shape_type_name}. Reference locations must be POINT shapes.")

    fields = [f[0] for f in sf.fields[1:]]  # skip DeletionFlag
    field, scale = _pick_meter_field(fields, meter_field)

    xs: list[float] = []
    ys: list[float] = []
    meters: list[float | None] = []
    if sf.dbf is not None:
        pairs = ((sr.shape, sr.record) for sr in sf.iterShapeRecords())
    else:
        pairs = ((shape, None) for shape in sf.iterShapes())

    for shape, record in pairs:
        if not shape.points:
            continue
        x, y = shape.points[0]
        xs.append(x)
        ys.append(y)
        meters.append(_scaled(record[field], scale) if field is not None and record is not None else None)

    if crs_info.is_projected and xs:
        transformer = Transformer.from_crs(crs_info.crs, "EPSG:4326", always_xy=True)
        lons, lats = transformer.transform(xs, ys)
    else:
        lons, lats = xs, ys

    locations = [
        RouteReferenceLocation(lat=lat, lon=lon, meter=meter)
        for lon, lat, meter in zip(lons, lats, meters)
    ]
    metadata = ReferenceMetadata(
        source_type=shape_type_name,
        crs_epsg=crs_info.epsg,
        crs_name=crs_info.name,
        is_projected=crs_info.is_projected,
        crs_note=crs_info.note,
        num_locations=len(locations),
        meter_field=field,
        fields=fields,
    )
    return locations, metadata


def _pick_meter_field(fields: list[str], requested: str | None) -> tuple[str | None, float]:
    if requested is not None:
        if requested not in fields:
            raise ValueError(f"Field {requested!r} not found; available: {', '.join(fields)}")
        return requested, METER_FIELDS.get(requested.lower(), 1.0)
    for name in fields:
        if name.lower() in METER_FIELDS:
            return name, METER_FIELDS[name.lower()]
    logger.info("No route distance attribute among %s", fields)
    return None, 1.0


def _scaled(value, scale: float) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value) * scale
    except (TypeError, ValueError):
        return None


def read_reference_kml(
    file: str | bytes | BinaryIO,
) -> tuple[list[RouteReferenceLocation], ReferenceMetadata]:
    """Read reference locations from the Point placemarks of a KMZ or KML file.

    The route distance comes from an ``ExtendedData`` value named ``meter``
    or, failing that, from a placemark name written as ``km+m``.
    """
    data = _read_bytes(file)
    if _is_zip(data):
        kml_text = _extract_kml_from_kmz(data)
    else:
        kml_text = data.decode("utf-8", errors="replace")

    try:
        root = ET.fromstring(kml_text)
    except ET.ParseError as exc:
        raise ValueError(f"Malformed KML document: {exc}") from exc
    locations = list(_iter_placemark_locations(root))

    metadata = ReferenceMetadata(
        source_type="KML_POINT",
        crs_epsg=4326,
        crs_name="WGS 84",
        is_projected=False,
        num_locations=len(locations),
        meter_field="meter",
    )
    return locations, metadata


def _read_bytes(file: str | bytes | BinaryIO) -> bytes:
    if isinstance(file, bytes):
        return file
    if isinstance(file, str):
        with open(file, "rb") as f:
            return f.read()
    return file.read()


def _is_zip(data: bytes) -> bool:
    return data[:4] == b"PK\x03\x04"


def _extract_kml_from_kmz(data: bytes) -> str:
    """Extract doc.kml, or else the first .kml file, from a KMZ (ZIP) archive."""
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            names = zf.namelist()
            kml_name = next((n for n in names if n.lower() == "doc.kml"), None)
            if kml_name is None:
                kml_name = next((n for n in names if n.lower().endswith(".kml")), None)
            if kml_name is None:
                raise ValueError("No .kml file found in KMZ archive")
            return zf.read(kml_name).decode("utf-8", errors="replace")
    except zipfile.BadZipFile as exc:
        raise ValueError(f"Corrupt KMZ archive: {exc}") from exc


def _iter_placemark_locations(root: ET.Element) -> Iterable[RouteReferenceLocation]:
    for placemark in root.iter(f"{KML_NS}Placemark"):
        coords = placemark.find(f"{KML_NS}Point/{KML_NS}coordinates")
        if coords is None or not coords.text:
            continue
        parts = coords.text.strip().split()[0].split(",")
        if len(parts) < 2:
            continue

        name_elem = placemark.find(f"{KML_NS}name")
        name = name_elem.text.strip() if name_elem is not None and name_elem.text else None

        meter = None
        for data in placemark.iter(f"{KML_NS}Data"):
            if data.get("name", "").lower() in METER_FIELDS:
                value = data.find(f"{KML_NS}value")
                if value is not None and value.text:
                    meter = _scaled(value.text.strip(), METER_FIELDS[data.get("name").lower()])
                break
        if meter is None and name is not None:
            meter = parse_distance(name)

        # KML coordinates are lon,lat[,alt]
        yield RouteReferenceLocation(lat=float(parts[1]), lon=float(parts[0]), meter=meter, name=name)


def nearest_reference_meter(
    locations: Iterable[RouteReferenceLocation], lat: float, lon: float
) -> float:
    """Route distance of the reference location geographically nearest to a point.

    Used to pre-fill the route distance of a newly placed marker; 0 when there
    are no locations or the nearest one has no distance.
    """
    nearest = closest_point(locations, lat, lon)
    if nearest is None or nearest.meter is None:
        return 0.0
    return nearest.meter
