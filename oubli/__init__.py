from __future__ import annotations

from .bounded import BoundedCollection, Contribution
from .features import (
    FEATURES,
    FEATURES_BY_NAME,
    FEATURES_BY_PATH,
    ContributionRejected,
    Feature,
    group_phrases,
)
from .metrics import process_snapshot
from .server import HouseHandler, main, make_handler, parse_args, serve
from .static import StaticAsset, resolve_static
from .store import ActiveVisitor, EdgeFootprint, HouseStore, RoomFootprint, edge_key
from .sweeper import SweepWorker

__all__ = [
    "ActiveVisitor",
    "BoundedCollection",
    "Contribution",
    "ContributionRejected",
    "EdgeFootprint",
    "FEATURES",
    "FEATURES_BY_NAME",
    "FEATURES_BY_PATH",
    "Feature",
    "HouseHandler",
    "HouseStore",
    "RoomFootprint",
    "StaticAsset",
    "SweepWorker",
    "edge_key",
    "group_phrases",
    "main",
    "make_handler",
    "parse_args",
    "process_snapshot",
    "resolve_static",
    "serve",
]
