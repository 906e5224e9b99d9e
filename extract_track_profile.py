"""Ingest a GPX track-log: print a summary, export the per-second points as CSV and plot the elevation profile.

Usage:
    python extract_track_profile.py [track.gpx]

This script uses the route_video_sync library for ingestion and adds the
CSV/plot reporting on top.
"""

import csv
import sys
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from route_video_sync import TrackIngestResult, TrackPoint, format_distance, ingest_gpx  # noqa: E402

GPX_FILE = Path(__file__).parent / "sampledata" / "track.gpx"
OUTPUT_CSV = Path(__file__).parent / "track_points.csv"
OUTPUT_PLOT = Path(__file__).parent / "track_profile.png"


def summarize(result: TrackIngestResult) -> dict:
    """Summary figures for a report header."""
    meta = result.metadata
    elevations = [p.ele for p in result.points if p.ele is not None]
    return {
        "points": meta.num_points,
        "fixes": meta.num_fixes,
        "duplicates_dropped": meta.duplicates_dropped,
        "total_distance_m": meta.total_distance_m,
        "total_distance_label": format_distance(meta.total_distance_m),
        "min_ele": min(elevations) if elevations else None,
        "max_ele": max(elevations) if elevations else None,
    }


def export_csv(points: list[TrackPoint], path: Path) -> None:
    """Write track points to a CSV file."""
    fieldnames = list(TrackPoint.model_fields)
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(p.model_dump() for p in points)
    print(f"CSV exported: {path}")


def plot_profile(points: list[TrackPoint], path: Path, title: str = "Track Elevation Profile") -> None:
    """Plot elevation against route distance in km."""
    with_ele = [p for p in points if p.ele is not None]
    km = [p.total_distance / 1000 for p in with_ele]
    elevations = [p.ele for p in with_ele]

    fig, ax = plt.subplots(figsize=(14, 5))
    if with_ele:
        ax.fill_between(km, elevations, min(elevations) - 5, alpha=0.3, color="steelblue")
        ax.plot(km, elevations, color="steelblue", linewidth=0.8, label="Elevation")
        ax.set_ylim(min(elevations) - 5, max(elevations) + 5)
        ax.legend()

    ax.set_xlabel("Distance (km)")
    ax.set_ylabel("Elevation (m)")
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    print(f"Plot saved: {path}")


def main(argv: list[str] | None = None):
    argv = sys.argv[1:] if argv is None else argv
    gpx_path = Path(argv[0]) if argv else GPX_FILE

    print(f"Reading track-log: {gpx_path}\n")
    result = ingest_gpx(gpx_path)
    summary = summarize(result)

    print(f"Fixes:         {summary['fixes']:,}")
    print(f"Points:        {summary['points']:,}  ({summary['duplicates_dropped']:,} duplicate seconds dropped)")
    print(f"Total length:  {summary['total_distance_m']:,.1f} m  ({summary['total_distance_label']})")
    if summary["min_ele"] is not None:
        print(f"Elevation:     {summary['min_ele']:.1f} m  to  {summary['max_ele']:.1f} m")
    print()

    if not result.points:
        print("No track points found, nothing to export.")
        return

    export_csv(result.points, OUTPUT_CSV)
    plot_profile(result.points, OUTPUT_PLOT, title=f"Track Elevation Profile: {gpx_path.stem}")


if __name__ == "__main__":
    main()
