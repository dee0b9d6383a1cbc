from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Any, Callable

from .bounded import BoundedCollection, Contribution
from .constants import (
    NOTE_DEFAULT_VELOCITY,
    NOTE_PHRASE_MAX,
    NOTE_PHRASE_MIN,
    PLANT_DEGRADATION_CEILING,
    PLANT_DEGRADATION_HORIZON_MS,
)


class ContributionRejected(ValueError):
    """Raised when a posted payload fails validation. The message is sent to the client."""


Validator = Callable[[dict[str, Any]], list[dict[str, Any]]]
Presenter = Callable[[Contribution, int], dict[str, Any]]
Gatherer = Callable[
    [BoundedCollection, str, int, random.Random, int], list[Any]
]


@dataclass(frozen=True)
class Feature:
    name: str
    path: str
    list_key: str
    total_key: str
    capacity: int
    read_limit: int
    read_mode: str
    validate: Validator
    present: Presenter | None = None
    gather: Gatherer | None = None

    def collect(
        self,
        collection: BoundedCollection,
        visitor_id: str,
        now_ms: int,
        rng: random.Random,
    ) -> list[Any]:
        if self.gather is not None:
            return self.gather(collection, visitor_id, now_ms, rng, self.read_limit)
        if self.read_mode == "sample":
            items = collection.sample(self.read_limit, visitor_id, rng)
        else:
            items = collection.recent(self.read_limit, visitor_id)
        present = self.present or _present_text
        return [present(item, now_ms) for item in items]


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _require_text(
    payload: dict[str, Any],
    key: str,
    *,
    max_chars: int,
    truncate: bool = False,
    message: str | None = None,
) -> str:
    value = payload.get(key)
    error = message or f"{key} required (max {max_chars} chars)"
    if not isinstance(value, str) or not value.strip():
        raise ContributionRejected(error)
    if len(value) > max_chars:
        if not truncate:
            raise ContributionRejected(error)
        value = value[:max_chars]
    return value


def _require_number(payload: dict[str, Any], key: str) -> float:
    value = payload.get(key)
    if not _is_number(value):
        raise ContributionRejected(f"{key} must be a number")
    return value


def _text_validator(max_chars: int, *, truncate: bool = False) -> Validator:
    def _validate(payload: dict[str, Any]) -> list[dict[str, Any]]:
        text = _require_text(payload, "text", max_chars=max_chars, truncate=truncate)
        return [{"text": text}]

    return _validate


def _present_text(item: Contribution, now_ms: int) -> dict[str, Any]:
    return {"text": item.payload.get("text", ""), "age": item.age_ms(now_ms)}


def _present_fields(*keys: str) -> Presenter:
    def _present(item: Contribution, now_ms: int) -> dict[str, Any]:
        row = {key: item.payload.get(key) for key in keys}
        row["age"] = item.age_ms(now_ms)
        return row

    return _present


# Instrument


def _validate_notes(payload: dict[str, Any]) -> list[dict[str, Any]]:
    notes = payload.get("notes")
    if not isinstance(notes, list) or not 1 <= len(notes) <= 20:
        raise ContributionRejected("notes array required (1-20)")
    rows: list[dict[str, Any]] = []
    for note in notes:
        if not isinstance(note, dict) or not _is_number(note.get("semitone")):
            raise ContributionRejected("each note needs a numeric semitone")
        velocity = note.get("velocity")
        if velocity is not None and not _is_number(velocity):
            raise ContributionRejected("velocity must be a number")
        rows.append(
            {
                "semitone": note["semitone"],
                "velocity": velocity or NOTE_DEFAULT_VELOCITY,
            }
        )
    return rows


def group_phrases(notes: list[Contribution]) -> list[list[dict[str, Any]]]:
    """Split a note stream into phrases.

    A phrase ends when the player changes or when it reaches eight notes.
    A trailing phrase shorter than three notes is dropped.
    """
    phrases: list[list[dict[str, Any]]] = []
    current: list[dict[str, Any]] = []
    current_author = ""
    for note in notes:
        if note.author != current_author and current:
            phrases.append(current)
            current = []
        current_author = note.author
        current.append(
            {
                "semitone": note.payload.get("semitone"),
                "velocity": note.payload.get("velocity"),
            }
        )
        if len(current) >= NOTE_PHRASE_MAX:
            phrases.append(current)
            current = []
    if len(current) >= NOTE_PHRASE_MIN:
        phrases.append(current)
    return phrases


def _gather_phrases(
    collection: BoundedCollection,
    visitor_id: str,
    now_ms: int,
    rng: random.Random,
    limit: int,
) -> list[Any]:
    del now_ms
    phrases = group_phrases(collection.others(visitor_id))
    return rng.sample(phrases, min(max(0, int(limit)), len(phrases)))


# Garden


def _present_plant(item: Contribution, now_ms: int) -> dict[str, Any]:
    age = item.age_ms(now_ms)
    return {
        "text": item.payload.get("text", ""),
        "age": age,
        "degradation": min(
            PLANT_DEGRADATION_CEILING, age / PLANT_DEGRADATION_HORIZON_MS
        ),
    }


# Sketchpad


def _validate_stroke(payload: dict[str, Any]) -> list[dict[str, Any]]:
    points = payload.get("points")
    if not isinstance(points, list) or not 2 <= len(points) <= 200:
        raise ContributionRejected("points array required (2-200)")
    clean: list[list[float]] = []
    for point in points:
        if (
            not isinstance(point, (list, tuple))
            or len(point) != 2
            or not all(_is_number(axis) for axis in point)
        ):
            raise ContributionRejected("each point must be an [x, y] pair of numbers")
        clean.append([point[0], point[1]])
    return [
        {
            "points": clean,
            "hue": _require_number(payload, "hue"),
            "width": _require_number(payload, "width"),
        }
    ]


# Seance


def _validate_exchange(payload: dict[str, Any]) -> list[dict[str, Any]]:
    message = "question and response required (max 500 chars each)"
    question = _require_text(payload, "question", max_chars=500, message=message)
    response = _require_text(payload, "response", max_chars=500, message=message)
    return [{"question": question, "response": response}]


# Radio


def _validate_broadcast(payload: dict[str, Any]) -> list[dict[str, Any]]:
    freq = _require_number(payload, "freq")
    text = _require_text(payload, "text", max_chars=300)
    return [{"freq": freq, "text": text}]


# Choir


def _validate_voice(payload: dict[str, Any]) -> list[dict[str, Any]]:
    return [{key: _require_number(payload, key) for key in ("x", "y", "freq")}]


FEATURES: tuple[Feature, ...] = (
    Feature(
        name="echoes",
        path="/api/well/echoes",
        list_key="echoes",
        total_key="totalEchoes",
        capacity=200,
        read_limit=5,
        read_mode="sample",
        validate=_text_validator(500),
    ),
    Feature(
        name="notes",
        path="/api/instrument/notes",
        list_key="phrases",
        total_key="totalNotes",
        capacity=500,
        read_limit=3,
        read_mode="sample",
        validate=_validate_notes,
        gather=_gather_phrases,
    ),
    Feature(
        name="plants",
        path="/api/garden/plants",
        list_key="plants",
        total_key="totalPlants",
        capacity=100,
        read_limit=8,
        read_mode="recent",
        validate=_text_validator(500),
        present=_present_plant,
    ),
    Feature(
        name="strokes",
        path="/api/sketchpad/strokes",
        list_key="strokes",
        total_key="totalStrokes",
        capacity=50,
        read_limit=10,
        read_mode="recent",
        validate=_validate_stroke,
        present=_present_fields("points", "hue", "width"),
    ),
    Feature(
        name="writings",
        path="/api/study/writings",
        list_key="writings",
        total_key="totalWritings",
        capacity=100,
        read_limit=5,
        read_mode="sample",
        validate=_text_validator(300),
    ),
    Feature(
        name="exchanges",
        path="/api/seance/exchange",
        list_key="exchanges",
        total_key="totalExchanges",
        capacity=200,
        read_limit=5,
        read_mode="sample",
        validate=_validate_exchange,
        present=_present_fields("question", "response"),
    ),
    Feature(
        name="broadcasts",
        path="/api/radio/broadcast",
        list_key="broadcasts",
        total_key="totalBroadcasts",
        capacity=100,
        read_limit=10,
        read_mode="recent",
        validate=_validate_broadcast,
        present=_present_fields("freq", "text"),
    ),
    Feature(
        name="graffiti",
        path="/api/labyrinth/graffiti",
        list_key="graffiti",
        total_key="totalGraffiti",
        capacity=200,
        read_limit=15,
        read_mode="sample",
        validate=_text_validator(100, truncate=True),
    ),
    Feature(
        name="ash",
        path="/api/furnace/ash",
        list_key="ash",
        total_key="totalAsh",
        capacity=100,
        read_limit=10,
        read_mode="sample",
        validate=_text_validator(200, truncate=True),
    ),
    Feature(
        name="voices",
        path="/api/choir/voices",
        list_key="voices",
        total_key="totalVoices",
        capacity=100,
        read_limit=15,
        read_mode="recent",
        validate=_validate_voice,
        present=_present_fields("x", "y", "freq"),
    ),
)

FEATURES_BY_NAME: dict[str, Feature] = {feature.name: feature for feature in FEATURES}
FEATURES_BY_PATH: dict[str, Feature] = {feature.path: feature for feature in FEATURES}
