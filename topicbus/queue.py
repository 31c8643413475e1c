"""A singly linked FIFO queue whose consumed nodes are reclaimed automatically.

The queue only keeps a reference to its tail. Every iterator holds the node it
currently stands on, so nodes that all iterators have moved past become
unreachable and are freed by the garbage collector.
"""

from __future__ import annotations

import threading
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class QueueClosedError(Exception):
    """Raised when pushing to, or iterating from, a closed queue."""


class _Node(Generic[T]):
    __slots__ = ("value", "next", "released")

    def __init__(self, value: Optional[T] = None) -> None:
        self.value = value
        self.next: Optional[_Node[T]] = None
        # Set once this node is no longer the tail, or the queue is closed.
        self.released = threading.Event()


class SelfCleaningQueue(Generic[T]):
    """FIFO queue with lock-free reads; only push and close take the lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tail: _Node[T] = _Node()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, value: T) -> None:
        """Append a value and wake iterators waiting at the tail."""
        with self._lock:
            if self._closed:
                raise QueueClosedError("SelfCleaningQueue already closed")
            node: _Node[T] = _Node(value)
            old_tail = self._tail
            old_tail.next = node
            self._tail = node
            old_tail.released.set()

    def close(self) -> None:
        """Close the queue and wake every waiting iterator. Idempotent."""
        with self._lock:
            if not self._closed:
                self._closed = True
                self._tail.released.set()

    def end(self) -> QueueIterator[T]:
        """Return an iterator positioned at the current tail.

        It yields only the values pushed after this call.
        """
        with self._lock:
            if self._closed:
                raise QueueClosedError("SelfCleaningQueue already closed")
            return QueueIterator(self._tail)


class QueueIterator(Generic[T]):
    """Forward iterator over a queue; blocks at the tail until push or close."""

    def __init__(self, node: _Node[T]) -> None:
        self._node = node

    def __iter__(self) -> QueueIterator[T]:
        return self

    def __next__(self) -> T:
        node = self._node
        if node.next is None:
            node.released.wait()
            if node.next is None:
                raise StopIteration
        self._node = node.next
        return self._node.value  # type: ignore[return-value]