"""Runtime settings, overridable through environment variables."""

import os

# Minimum divergence between video position and cursor before the video seeks.
SEEK_DEAD_BAND_S = float(os.environ.get("ROUTE_SYNC_DEAD_BAND_S", "0.05"))

# After a click/search/navigation, video ticks are ignored for this long.
SEEK_SETTLE_WINDOW_S = float(os.environ.get("ROUTE_SYNC_SETTLE_WINDOW_S", "0.1"))

# Video time ticks are rounded to this resolution before reaching the cursor.
TIME_RESOLUTION_S = float(os.environ.get("ROUTE_SYNC_TIME_RESOLUTION_S", "0.1"))

SUGGESTION_LIMIT = int(os.environ.get("ROUTE_SYNC_SUGGESTION_LIMIT", "30"))

EARTH_RADIUS_M = 6_371_000.0

HOST = os.environ.get("ROUTE_SYNC_HOST", "0.0.0.0")
PORT = int(os.environ.get("ROUTE_SYNC_PORT", "8000"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
