"""GPX reader: extracts the recorded fixes of every track segment.

GPX 1.0 and 1.1 documents (and documents without a namespace) are accepted;
elements are matched on their local names.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import BinaryIO

from .models import RawFix

logger = logging.getLogger(__name__)


class GpxParseError(ValueError):
    """The document cannot be read as a GPX track-log."""


def read_gpx(file: str | Path | bytes | BinaryIO) -> list[RawFix]:
    """Read a GPX document and return its fixes in document order.

    Args:
        file: Path to a .gpx file, the document as text or raw bytes, or a
            binary file object. A ``str`` starting with ``<`` is the document
            itself; any other ``str`` is a path.

    Empty or whitespace-only content has no fixes and yields an empty list.

    Raises:
        GpxParseError: If the document is not well-formed XML or not a GPX document.
    """
    data = _read_bytes(file)
    if not data.strip():
        return []
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise GpxParseError(f"Malformed GPX document: {exc}") from exc

    if _local(root.tag) != "gpx":
        raise GpxParseError(f"Expected a <gpx> root element, found <{_local(root.tag)}>")

    fixes: list[RawFix] = []
    skipped = 0
    for trk in _children(root, "trk"):
        for trkseg in _children(trk, "trkseg"):
            for trkpt in _children(trkseg, "trkpt"):
                fix = _parse_trkpt(trkpt)
                if fix is None:
                    skipped += 1
                    continue
                fixes.append(fix)

    if skipped:
        logger.warning("Skipped %d track points without valid coordinates", skipped)
    return fixes


def _read_bytes(file: str | Path | bytes | BinaryIO) -> bytes:
    if isinstance(file, bytes):
        return file
    if isinstance(file, str):
        text = file.lstrip("\ufeff \t\r\n")
        if not text or text.startswith("<"):
            return file.encode("utf-8")
    if isinstance(file, (str, Path)):
        with open(file, "rb") as f:
            return f.read()
    return file.read()


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(elem: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in elem if _local(child.tag) == name]


def _child_text(elem: ET.Element, name: str) -> str | None:
    for child in _children(elem, name):
        if child.text and child.text.strip():
            return child.text.strip()
    return None


def _parse_trkpt(trkpt: ET.Element) -> RawFix | None:
    """Parse a ``<trkpt lat=".." lon="..">`` element; None if coordinates are unusable."""
    try:
        lat = float(trkpt.attrib["lat"])
        lon = float(trkpt.attrib["lon"])
    except (KeyError, ValueError):
        return None

    ele_text = _child_text(trkpt, "ele")
    try:
        ele = float(ele_text) if ele_text is not None else None
    except ValueError:
        ele = None

    return RawFix(lat=lat, lon=lon, ele=ele, time=_child_text(trkpt, "time"))
