"""Bounded rolling buffers for samples, tokens and console lines."""

import secrets
from collections import deque
from datetime import datetime
from typing import Deque, Generic, Iterable, Iterator, Optional, Tuple, TypeVar

from .models import LogEntry, LogLevel

T = TypeVar("T")


class BoundedHistory(Generic[T]):
    """Chronological buffer that evicts its oldest entries first."""

    def __init__(self, capacity: int = 30):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._items: Deque[T] = deque(maxlen=capacity)

    def append(self, item: T) -> None:
        self._items.append(item)

    def extend(self, items: Iterable[T]) -> None:
        self._items.extend(items)

    @property
    def latest(self) -> Optional[T]:
        """Most recent entry, or None when empty."""
        return self._items[-1] if self._items else None

    def snapshot(self) -> Tuple[T, ...]:
        """Immutable copy, oldest first."""
        return tuple(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.snapshot())


class ConsoleLog:
    """Newest-first console lines, capped at capacity."""

    def __init__(self, capacity: int = 50):
        self._entries: Deque[LogEntry] = deque(maxlen=capacity)

    def add(self, message: str, level: LogLevel = LogLevel.INFO) -> LogEntry:
        entry = LogEntry(
            id=secrets.token_hex(5)[:9],
            timestamp=datetime.now().strftime("%H:%M:%S"),
            level=level,
            message=message,
        )
        self._entries.appendleft(entry)
        return entry

    def entries(self) -> Tuple[LogEntry, ...]:
        return tuple(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
