from __future__ import annotations

import random
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable


@dataclass(frozen=True)
class Contribution:
    author: str
    created_at: int
    payload: dict[str, Any] = field(default_factory=dict)

    def age_ms(self, now_ms: int) -> int:
        return max(0, int(now_ms) - int(self.created_at))


class BoundedCollection:
    """Append-only list of contributions that forgets its oldest entries.

    Eviction is handled by ``deque(maxlen=...)`` so pushing past capacity
    drops from the head in constant time.
    """

    def __init__(self, capacity: int):
        self.capacity = max(1, int(capacity))
        self._lock = threading.Lock()
        self._items: deque[Contribution] = deque(maxlen=self.capacity)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def append(self, item: Contribution) -> int:
        with self._lock:
            self._items.append(item)
            return len(self._items)

    def extend(self, items: Iterable[Contribution]) -> int:
        with self._lock:
            self._items.extend(items)
            return len(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def snapshot(self) -> list[Contribution]:
        with self._lock:
            return list(self._items)

    def others(self, exclude_author: str | None = None) -> list[Contribution]:
        with self._lock:
            if exclude_author is None:
                return list(self._items)
            return [item for item in self._items if item.author != exclude_author]

    def recent(
        self, limit: int, exclude_author: str | None = None
    ) -> list[Contribution]:
        limit = max(0, int(limit))
        if limit == 0:
            return []
        return self.others(exclude_author)[-limit:]

    def sample(
        self,
        limit: int,
        exclude_author: str | None = None,
        rng: random.Random | None = None,
    ) -> list[Contribution]:
        pool = self.others(exclude_author)
        count = min(len(pool), max(0, int(limit)))
        return (rng or random).sample(pool, count)
