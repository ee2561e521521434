"""
Fixed-capacity ring buffer.

Backs the kinematic window and the click/scroll session histories.
Storage is preallocated; when full, the oldest entry is overwritten.
"""

from __future__ import annotations

from typing import Generic, Iterator, List, Optional, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """
    FIFO ring buffer over a fixed arena.

    Iteration yields entries oldest first.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._arena: List[Optional[T]] = [None] * capacity
        self._head = 0  # Index of the oldest entry
        self._size = 0

    def append(self, item: T) -> Optional[T]:
        """
        Append an item.

        Returns:
            The evicted item if the buffer was full, else None
        """
        evicted = None
        if self._size < self.capacity:
            self._arena[(self._head + self._size) % self.capacity] = item
            self._size += 1
        else:
            evicted = self._arena[self._head]
            self._arena[self._head] = item
            self._head = (self._head + 1) % self.capacity
        return evicted

    def clear(self):
        self._arena = [None] * self.capacity
        self._head = 0
        self._size = 0

    def last(self) -> Optional[T]:
        if self._size == 0:
            return None
        return self._arena[(self._head + self._size - 1) % self.capacity]

    def to_list(self) -> List[T]:
        return list(self)

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[T]:
        for i in range(self._size):
            yield self._arena[(self._head + i) % self.capacity]

    def __getitem__(self, index: int) -> T:
        if index < 0:
            index += self._size
        if not 0 <= index < self._size:
            raise IndexError("ring buffer index out of range")
        return self._arena[(self._head + index) % self.capacity]
