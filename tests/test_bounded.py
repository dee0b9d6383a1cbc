from __future__ import annotations

import random

from oubli import BoundedCollection, Contribution


def _item(index: int, author: str = "v1") -> Contribution:
    return Contribution(author=author, created_at=index, payload={"n": index})


def test_capacity_keeps_newest_items_in_order() -> None:
    collection = BoundedCollection(capacity=5)
    for index in range(8):
        collection.append(_item(index))

    kept = [item.payload["n"] for item in collection.snapshot()]
    assert len(collection) == 5
    assert kept == [3, 4, 5, 6, 7]


def test_extend_reports_total_after_eviction() -> None:
    collection = BoundedCollection(capacity=3)
    total = collection.extend(_item(index) for index in range(4))
    assert total == 3
    assert [item.payload["n"] for item in collection.snapshot()] == [1, 2, 3]


def test_recent_excludes_author_and_limits() -> None:
    collection = BoundedCollection(capacity=10)
    for index in range(6):
        collection.append(_item(index, author="me" if index % 2 else "other"))

    recent = collection.recent(2, exclude_author="me")
    assert [item.payload["n"] for item in recent] == [2, 4]
    assert collection.recent(0) == []


def test_sample_never_returns_excluded_author() -> None:
    collection = BoundedCollection(capacity=50)
    for index in range(40):
        collection.append(_item(index, author="me" if index < 30 else f"v{index}"))

    rng = random.Random(7)
    for _ in range(20):
        picked = collection.sample(5, exclude_author="me", rng=rng)
        assert len(picked) == 5
        assert all(item.author != "me" for item in picked)


def test_sample_is_bounded_by_pool_size() -> None:
    collection = BoundedCollection(capacity=10)
    collection.append(_item(1, author="a"))
    collection.append(_item(2, author="b"))
    assert len(collection.sample(5, exclude_author="a")) == 1


def test_age_is_never_negative() -> None:
    item = Contribution(author="v", created_at=2_000)
    assert item.age_ms(1_000) == 0
    assert item.age_ms(2_500) == 500
