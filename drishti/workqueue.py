# -*- coding: utf-8 -*-

"""

Per-worker work queues with stealing.

Each worker owns one WorkQueue. A worker pops from the back of its own queue
and, once that is empty, steals from the back of the other queues, scanning
round-robin from its right-hand neighbour. Every operation holds the lock of
the queue it touches, so an item is handed to exactly one worker even when
several thieves hit the same victim.

"""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Generic, Iterable, List, Optional, Tuple, TypeVar

T = TypeVar("T")


class WorkQueue(Generic[T]):
    """Lock-guarded deque of pending items."""

    def __init__(self) -> None:
        self._items: Deque[T] = deque()
        self._lock = threading.Lock()
        self.pushed = 0
        self.taken = 0

    def push(self, item: T) -> None:
        with self._lock:
            self._items.append(item)
            self.pushed += 1

    def pop(self) -> Optional[T]:
        """Take the most recently pushed item, or None if the queue is empty."""
        with self._lock:
            if not self._items:
                return None
            self.taken += 1
            return self._items.pop()

    def steal(self) -> Optional[T]:
        """Take an item on behalf of another worker."""
        # Same end as pop: levels are pushed in ascending order and the
        # largest (most refined) ones are the most expensive.
        return self.pop()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class WorkQueuePool(Generic[T]):
    """One WorkQueue per worker plus the round-robin distribution and steal scan."""

    def __init__(self, nworkers: int):
        if nworkers < 1:
            raise ValueError(f"nworkers must be >= 1, got {nworkers}")
        self.queues: List[WorkQueue[T]] = [WorkQueue() for _ in range(nworkers)]
        self._steals = 0
        self._steals_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self.queues)

    def distribute(self, items: Iterable[T]) -> int:
        """Push ``items`` round-robin over the queues; returns how many were pushed."""
        n = 0
        for i, item in enumerate(items):
            self.queues[i % len(self.queues)].push(item)
            n += 1
        return n

    def take(self, worker_id: int) -> Tuple[Optional[T], bool]:
        """
        Next item for ``worker_id``.

        Returns:
            (item, stolen). ``item`` is None once every queue is empty.
        """
        item = self.queues[worker_id].pop()
        if item is not None:
            return item, False

        nqueues = len(self.queues)
        for offset in range(1, nqueues):
            item = self.queues[(worker_id + offset) % nqueues].steal()
            if item is not None:
                with self._steals_lock:
                    self._steals += 1
                return item, True
        return None, False

    @property
    def steals(self) -> int:
        with self._steals_lock:
            return self._steals

    @property
    def pushed(self) -> int:
        return sum(q.pushed for q in self.queues)

    @property
    def taken(self) -> int:
        return sum(q.taken for q in self.queues)

    def pending(self) -> int:
        return sum(len(q) for q in self.queues)
