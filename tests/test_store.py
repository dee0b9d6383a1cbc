from __future__ import annotations

import random
import threading

import pytest

from oubli import ContributionRejected, HouseStore, edge_key
from oubli.store import room_name


@pytest.fixture
def store() -> HouseStore:
    return HouseStore(rng=random.Random(3))


def test_seed_cap_evicts_oldest(store: HouseStore) -> None:
    for index in range(503):
        total = store.plant_seed("garden", f"seed-{index}", "planter", now_ms=index)
    assert total == 500
    texts = [seed.payload["text"] for seed in store.seeds.snapshot()]
    assert texts[0] == "seed-3"
    assert texts[-1] == "seed-502"


def test_seed_requires_room_and_text(store: HouseStore) -> None:
    with pytest.raises(ContributionRejected, match="room and text required"):
        store.plant_seed("", "text", "v")
    with pytest.raises(ContributionRejected):
        store.plant_seed("garden", None, "v")  # type: ignore[arg-type]
    assert len(store.seeds) == 0


def test_harvest_excludes_own_seeds_and_filters_room(store: HouseStore) -> None:
    store.plant_seed("garden", "mine", "me", now_ms=1)
    store.plant_seed("garden", "theirs", "you", now_ms=2)
    store.plant_seed("well", "elsewhere", "you", now_ms=3)

    garden = store.harvest_seeds("garden", "me")
    assert garden == [
        {"room": "garden", "text": "theirs", "plantedAt": 2, "isOther": True}
    ]
    everywhere = store.harvest_seeds(None, "me")
    assert [seed["text"] for seed in everywhere] == ["theirs", "elsewhere"]


def test_harvest_returns_at_most_five_newest(store: HouseStore) -> None:
    for index in range(9):
        store.plant_seed("garden", f"s{index}", "you", now_ms=index)
    harvested = store.harvest_seeds("garden", "me")
    assert [seed["text"] for seed in harvested] == ["s4", "s5", "s6", "s7", "s8"]


def test_pulse_tracks_visits_and_active_rooms(store: HouseStore) -> None:
    store.record_pulse("garden", now_ms=1_000)
    store.record_pulse(None, now_ms=2_000)
    store.plant_seed("garden", "hello", "v")

    pulse = store.pulse_snapshot()
    assert pulse["totalVisits"] == 2
    assert pulse["activeRooms"] == {"garden": 1_000}
    assert pulse["lastActivity"] == 2_000
    assert pulse["seedCount"] == 1


def test_edge_traversal_is_order_independent(store: HouseStore) -> None:
    store.record_footprint("well", "garden", "v1", now_ms=10)
    store.record_footprint("garden", "well", "v1", now_ms=20)

    edges = store.footprints_snapshot()["edges"]
    assert list(edges) == [edge_key("well", "garden")]
    assert edges["garden--well"] == {"traversals": 2, "uniqueVisitors": 1}


def test_self_traversal_and_missing_from_record_no_edge(store: HouseStore) -> None:
    store.record_footprint("well", None, "v1", now_ms=10)
    store.record_footprint("well", "well", "v1", now_ms=20)
    snapshot = store.footprints_snapshot()
    assert snapshot["edges"] == {}
    assert snapshot["rooms"]["well"] == {
        "visits": 2,
        "uniqueVisitors": 1,
        "lastVisit": 20,
    }


def test_footprint_requires_room(store: HouseStore) -> None:
    with pytest.raises(ContributionRejected, match="room required"):
        store.record_footprint("", None, "v1")
    assert store.footprints_snapshot()["rooms"] == {}


def test_touch_overwrites_single_entry(store: HouseStore) -> None:
    store.touch("v1", "garden", now_ms=100)
    store.touch("v1", "garden", now_ms=100)
    store.touch("v1", "well", now_ms=200)

    snapshot = store.footprints_snapshot()
    assert snapshot["activeVisitors"] == 1
    assert snapshot["activeRoomCounts"] == {"well": 1}


def test_footprint_reads_expose_counts_only(store: HouseStore) -> None:
    store.record_footprint("garden", "well", "secret-visitor", now_ms=5)
    rendered = repr(store.footprints_snapshot())
    assert "secret-visitor" not in rendered


def test_sweep_drops_stale_rooms_and_visitors(store: HouseStore) -> None:
    now = 1_000_000
    store.record_pulse("stale", now_ms=now - 61_000)
    store.record_pulse("fresh", now_ms=now - 59_000)
    store.touch("gone", "stale", now_ms=now - 121_000)
    store.touch("here", "fresh", now_ms=now - 119_000)

    removed = store.sweep(now_ms=now)

    assert removed == {"rooms": 1, "visitors": 1}
    assert store.pulse_snapshot()["activeRooms"] == {"fresh": now - 59_000}
    assert store.footprints_snapshot()["activeRoomCounts"] == {"fresh": 1}


def test_sweep_keeps_room_footprints(store: HouseStore) -> None:
    store.record_footprint("garden", None, "v1", now_ms=0)
    store.sweep(now_ms=10_000_000)
    snapshot = store.footprints_snapshot()
    assert snapshot["rooms"]["garden"]["visits"] == 1
    assert snapshot["activeVisitors"] == 0


def test_contribute_and_gather_excludes_author(store: HouseStore) -> None:
    store.contribute("echoes", {"text": "mine"}, "me", now_ms=0)
    response = store.contribute("echoes", {"text": "theirs"}, "you", now_ms=0)
    assert response == {"ok": True, "totalEchoes": 2}

    heard = store.gather("echoes", "me", now_ms=250)
    assert heard == {"echoes": [{"text": "theirs", "age": 250}], "totalEchoes": 2}


def test_rejected_contribution_leaves_collection_untouched(store: HouseStore) -> None:
    with pytest.raises(ContributionRejected):
        store.contribute("voices", {"x": 1, "y": 2}, "v1")
    assert len(store.collections["voices"]) == 0


def test_feature_caps_hold(store: HouseStore) -> None:
    for index in range(55):
        store.contribute(
            "strokes",
            {"points": [[0, 0], [index, index]], "hue": index, "width": 1},
            "painter",
            now_ms=index,
        )
    strokes = store.collections["strokes"].snapshot()
    assert len(strokes) == 50
    assert strokes[0].payload["hue"] == 5
    assert strokes[-1].payload["hue"] == 54


def test_notes_append_each_note_and_cap(store: HouseStore) -> None:
    for _ in range(26):
        response = store.contribute(
            "notes",
            {"notes": [{"semitone": step} for step in range(20)]},
            "player",
            now_ms=0,
        )
    assert response == {"ok": True, "totalNotes": 500}
    gathered = store.gather("notes", "listener")
    assert len(gathered["phrases"]) == 3
    assert all(3 <= len(phrase) <= 8 for phrase in gathered["phrases"])
    assert gathered["totalNotes"] == 500
    assert store.gather("notes", "player")["phrases"] == []


def test_seance_round_trip(store: HouseStore) -> None:
    store.contribute("exchanges", {"question": "q", "response": "r"}, "asker", now_ms=0)
    gathered = store.gather("exchanges", "someone-else", now_ms=40)
    assert gathered["exchanges"] == [{"question": "q", "response": "r", "age": 40}]


def test_concurrent_contributions_respect_cap(store: HouseStore) -> None:
    def _worker(worker_id: int) -> None:
        for index in range(100):
            store.contribute("echoes", {"text": f"{worker_id}-{index}"}, f"v{worker_id}")

    threads = [threading.Thread(target=_worker, args=(n,)) for n in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(store.collections["echoes"]) == 200
    assert store.counts()["echoes"] == 200


def test_room_names_coerce_truthy_scalars(store: HouseStore) -> None:
    assert room_name("garden") == "garden"
    assert room_name(3) == "3"
    assert room_name(0) is None
    assert room_name("") is None
    assert room_name(True) is None
    assert room_name({"room": "x"}) is None

    store.record_pulse(12, now_ms=5)
    store.record_pulse(["not", "a", "room"], now_ms=6)
    pulse = store.pulse_snapshot()
    assert pulse["activeRooms"] == {"12": 5}
    assert pulse["totalVisits"] == 2

    with pytest.raises(ContributionRejected):
        store.record_footprint(None, "well", "v1")
