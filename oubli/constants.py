from __future__ import annotations

import os
from pathlib import Path

# Network
DEFAULT_HOST = str(os.getenv("HOST", "0.0.0.0") or "0.0.0.0").strip() or "0.0.0.0"
DEFAULT_PORT = max(0, min(65535, int(os.getenv("PORT", "3000") or "3000")))
DEFAULT_DIST_DIR = Path(os.getenv("OUBLI_DIST_DIR", "dist") or "dist")
MAX_BODY_BYTES = max(
    1024,
    int(os.getenv("OUBLI_MAX_BODY_BYTES", "65536") or "65536"),
)
LOG_LEVEL = str(os.getenv("OUBLI_LOG_LEVEL", "INFO") or "INFO").strip().upper()

# Sweep
SWEEP_INTERVAL_SECONDS = max(
    0.05,
    float(os.getenv("OUBLI_SWEEP_INTERVAL_SECONDS", "30") or "30"),
)
ACTIVE_ROOM_TTL_MS = max(
    1000,
    int(os.getenv("OUBLI_ACTIVE_ROOM_TTL_MS", "60000") or "60000"),
)
ACTIVE_VISITOR_TTL_MS = max(
    1000,
    int(os.getenv("OUBLI_ACTIVE_VISITOR_TTL_MS", "120000") or "120000"),
)

# Visitors
VISITOR_HEADER = "X-Visitor-Id"
ANONYMOUS_VISITOR = "anonymous"
MAX_VISITOR_ID_CHARS = 128

# Seeds and footprints
SEED_CAPACITY = 500
SEED_READ_LIMIT = 5
EDGE_KEY_SEPARATOR = "--"

# Feature payloads
NOTE_DEFAULT_VELOCITY = 0.8
NOTE_PHRASE_MAX = 8
NOTE_PHRASE_MIN = 3
PLANT_DEGRADATION_HORIZON_MS = 24 * 60 * 60 * 1000
PLANT_DEGRADATION_CEILING = 0.9

# Static assets
INDEX_FILE = "index.html"
HTML_CACHE_CONTROL = "no-cache"
ASSET_CACHE_CONTROL = "public, max-age=31536000"
DEFAULT_MIME = "application/octet-stream"
MIME_TYPES: dict[str, str] = {
    ".html": "text/html",
    ".js": "application/javascript",
    ".css": "text/css",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".webp": "image/webp",
    ".webm": "video/webm",
    ".map": "application/json",
}
