from __future__ import annotations

import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any

from .bounded import BoundedCollection, Contribution
from .constants import (
    ACTIVE_ROOM_TTL_MS,
    ACTIVE_VISITOR_TTL_MS,
    EDGE_KEY_SEPARATOR,
    SEED_CAPACITY,
    SEED_READ_LIMIT,
)
from .features import FEATURES, ContributionRejected, Feature


def _now_ms() -> int:
    return int(time.time() * 1000)


def edge_key(room_a: str, room_b: str) -> str:
    return EDGE_KEY_SEPARATOR.join(sorted((str(room_a), str(room_b))))


def room_name(value: Any) -> str | None:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    return str(value) if value else None


@dataclass
class RoomFootprint:
    visits: int = 0
    unique_visitors: set[str] = field(default_factory=set)
    last_visit: int = 0


@dataclass
class EdgeFootprint:
    traversals: int = 0
    unique_visitors: set[str] = field(default_factory=set)


@dataclass
class ActiveVisitor:
    room: str
    last_seen: int


class HouseStore:
    """Shared, unpersisted state for every visitor of the house.

    The store owns the seed list, the collective pulse, the room and edge
    footprints, the active visitor map and one bounded collection per
    feature. Pulse and footprint maps share ``_lock``; every bounded
    collection carries its own lock.

    Reads only ever expose counts and set sizes for footprints, never the
    visitor ids themselves.
    """

    def __init__(
        self,
        *,
        features: tuple[Feature, ...] = FEATURES,
        room_ttl_ms: int = ACTIVE_ROOM_TTL_MS,
        visitor_ttl_ms: int = ACTIVE_VISITOR_TTL_MS,
        rng: random.Random | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self.room_ttl_ms = max(1, int(room_ttl_ms))
        self.visitor_ttl_ms = max(1, int(visitor_ttl_ms))
        self._rng = rng or random.Random()

        self.seeds = BoundedCollection(SEED_CAPACITY)
        self._total_visits = 0
        self._active_rooms: dict[str, int] = {}
        self._last_activity = _now_ms()

        self._rooms: dict[str, RoomFootprint] = {}
        self._edges: dict[str, EdgeFootprint] = {}
        self._visitors: dict[str, ActiveVisitor] = {}

        self.features: dict[str, Feature] = {feature.name: feature for feature in features}
        self.collections: dict[str, BoundedCollection] = {
            feature.name: BoundedCollection(feature.capacity) for feature in features
        }

    # Seeds

    def plant_seed(
        self, room: str, text: str, visitor_id: str, *, now_ms: int | None = None
    ) -> int:
        if not isinstance(room, str) or not isinstance(text, str) or not room or not text:
            raise ContributionRejected("room and text required")
        return self.seeds.append(
            Contribution(
                author=visitor_id,
                created_at=_now_ms() if now_ms is None else int(now_ms),
                payload={"room": room, "text": text},
            )
        )

    def harvest_seeds(self, room: str | None, visitor_id: str) -> list[dict[str, Any]]:
        candidates = self.seeds.others(visitor_id)
        if room:
            candidates = [seed for seed in candidates if seed.payload.get("room") == room]
        return [
            {
                "room": seed.payload.get("room"),
                "text": seed.payload.get("text"),
                "plantedAt": seed.created_at,
                "isOther": True,
            }
            for seed in candidates[-SEED_READ_LIMIT:]
        ]

    # Pulse

    def record_pulse(self, room: Any, *, now_ms: int | None = None) -> None:
        room = room_name(room)
        now = _now_ms() if now_ms is None else int(now_ms)
        with self._lock:
            self._total_visits += 1
            if room:
                self._active_rooms[room] = now
            self._last_activity = now

    def pulse_snapshot(self) -> dict[str, Any]:
        with self._lock:
            payload = {
                "totalVisits": self._total_visits,
                "activeRooms": dict(self._active_rooms),
                "lastActivity": self._last_activity,
            }
        payload["seedCount"] = len(self.seeds)
        return payload

    # Footprints

    def record_visit(self, room: str, visitor_id: str, *, now_ms: int) -> None:
        with self._lock:
            footprint = self._rooms.get(room)
            if footprint is None:
                footprint = RoomFootprint()
                self._rooms[room] = footprint
            footprint.visits += 1
            footprint.unique_visitors.add(visitor_id)
            footprint.last_visit = int(now_ms)

    def record_traversal(self, from_room: str | None, to_room: str, visitor_id: str) -> None:
        if not from_room or from_room == to_room:
            return
        key = edge_key(from_room, to_room)
        with self._lock:
            footprint = self._edges.get(key)
            if footprint is None:
                footprint = EdgeFootprint()
                self._edges[key] = footprint
            footprint.traversals += 1
            footprint.unique_visitors.add(visitor_id)

    def touch(self, visitor_id: str, room: str, *, now_ms: int) -> None:
        with self._lock:
            self._visitors[visitor_id] = ActiveVisitor(room=room, last_seen=int(now_ms))

    def record_footprint(
        self,
        room: Any,
        from_room: Any,
        visitor_id: str,
        *,
        now_ms: int | None = None,
    ) -> None:
        room = room_name(room)
        if room is None:
            raise ContributionRejected("room required")
        from_room = room_name(from_room)
        now = _now_ms() if now_ms is None else int(now_ms)
        self.record_visit(room, visitor_id, now_ms=now)
        self.record_traversal(from_room, room, visitor_id)
        self.touch(visitor_id, room, now_ms=now)

    def footprints_snapshot(self) -> dict[str, Any]:
        with self._lock:
            rooms = {
                name: {
                    "visits": data.visits,
                    "uniqueVisitors": len(data.unique_visitors),
                    "lastVisit": data.last_visit,
                }
                for name, data in self._rooms.items()
            }
            edges = {
                key: {
                    "traversals": data.traversals,
                    "uniqueVisitors": len(data.unique_visitors),
                }
                for key, data in self._edges.items()
            }
            room_counts: dict[str, int] = {}
            for visitor in self._visitors.values():
                room_counts[visitor.room] = room_counts.get(visitor.room, 0) + 1
            active = len(self._visitors)
        return {
            "rooms": rooms,
            "edges": edges,
            "activeVisitors": active,
            "activeRoomCounts": room_counts,
        }

    # Features

    def contribute(
        self,
        feature_name: str,
        payload: dict[str, Any],
        visitor_id: str,
        *,
        now_ms: int | None = None,
    ) -> dict[str, Any]:
        feature = self.features[feature_name]
        rows = feature.validate(payload)
        created_at = _now_ms() if now_ms is None else int(now_ms)
        total = self.collections[feature_name].extend(
            Contribution(author=visitor_id, created_at=created_at, payload=row)
            for row in rows
        )
        return {"ok": True, feature.total_key: total}

    def gather(
        self, feature_name: str, visitor_id: str, *, now_ms: int | None = None
    ) -> dict[str, Any]:
        feature = self.features[feature_name]
        collection = self.collections[feature_name]
        now = _now_ms() if now_ms is None else int(now_ms)
        return {
            feature.list_key: feature.collect(collection, visitor_id, now, self._rng),
            feature.total_key: len(collection),
        }

    # Sweep

    def sweep(self, *, now_ms: int | None = None) -> dict[str, int]:
        now = _now_ms() if now_ms is None else int(now_ms)
        room_cutoff = now - self.room_ttl_ms
        visitor_cutoff = now - self.visitor_ttl_ms
        with self._lock:
            stale_rooms = [
                room for room, seen in self._active_rooms.items() if seen < room_cutoff
            ]
            for room in stale_rooms:
                del self._active_rooms[room]
            stale_visitors = [
                visitor_id
                for visitor_id, visitor in self._visitors.items()
                if visitor.last_seen < visitor_cutoff
            ]
            for visitor_id in stale_visitors:
                del self._visitors[visitor_id]
        return {"rooms": len(stale_rooms), "visitors": len(stale_visitors)}

    def counts(self) -> dict[str, int]:
        with self._lock:
            payload = {
                "activeRooms": len(self._active_rooms),
                "roomFootprints": len(self._rooms),
                "edgeFootprints": len(self._edges),
                "activeVisitors": len(self._visitors),
            }
        payload["seeds"] = len(self.seeds)
        for name, collection in self.collections.items():
            payload[name] = len(collection)
        return payload
