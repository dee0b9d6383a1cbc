from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

from .constants import (
    ASSET_CACHE_CONTROL,
    DEFAULT_MIME,
    HTML_CACHE_CONTROL,
    INDEX_FILE,
    MIME_TYPES,
)


@dataclass(frozen=True)
class StaticAsset:
    path: Path
    content_type: str
    cache_control: str
    fallback: bool = False

    def read(self) -> bytes:
        return self.path.read_bytes()


def _asset_for(path: Path, *, fallback: bool = False) -> StaticAsset:
    suffix = path.suffix.lower()
    return StaticAsset(
        path=path,
        content_type=MIME_TYPES.get(suffix, DEFAULT_MIME),
        cache_control=HTML_CACHE_CONTROL if suffix == ".html" else ASSET_CACHE_CONTROL,
        fallback=fallback,
    )


def _candidate_path(dist_root: Path, request_path: str) -> Path | None:
    raw_path = unquote(urlparse(request_path).path)
    relative = raw_path.lstrip("/") or INDEX_FILE
    if "\x00" in relative:
        return None
    try:
        candidate = (dist_root / relative).resolve()
        if candidate != dist_root and dist_root not in candidate.parents:
            return None
        if candidate.is_dir():
            candidate = candidate / INDEX_FILE
        if candidate.is_file():
            return candidate
    except OSError:
        return None
    return None


def resolve_static(dist_root: Path, request_path: str) -> StaticAsset | None:
    """Map a request path onto the build output.

    Unknown paths fall back to the root ``index.html`` so client-side routing
    can take over. ``None`` means even that document is missing.
    """
    root = dist_root.resolve()
    candidate = _candidate_path(root, request_path)
    if candidate is not None:
        return _asset_for(candidate)
    index_path = root / INDEX_FILE
    if index_path.is_file():
        return _asset_for(index_path, fallback=True)
    return None
