"""
Sweep Status Structure
======================

Randomized skip list holding indices into a caller-owned segment collection.
The order is not stored: every comparison recomputes where the referenced
segments cross the sweep height supplied to the current operation.

Nodes live in an arena addressed by integer handles. Handle 0 is the ``Start``
sentinel and handle 1 the ``End`` sentinel; both exist on every level.

Note
----
Reusing a list built at one height for queries at a materially different
height is only meaningful while the segments keep their relative order in
between. Height consistency is the caller's responsibility and is not checked.
"""
import math
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

START = 0
VALUE = 1
END = 2

LESS = -1
EQUAL = 0
GREATER = 1

_START_HANDLE = 0
_END_HANDLE = 1


def x_at_height(segment, height: float) -> float:
    """
    x-coordinate where the line through ``segment`` crosses ``height``.

    Horizontal segments have no single crossing and yield NaN.
    """
    (x0, y0), (x1, y1) = segment
    dy = float(y1) - float(y0)
    if dy == 0.0:
        return math.nan
    return float(x0) + (height - float(y0)) / dy * (float(x1) - float(x0))


def compare_nodes(lhs: Tuple[int, int], rhs: Tuple[int, int], segments: Sequence, height: float) -> int:
    """
    Orders two ``(kind, value)`` node keys at the given sweep height.

    ``Start`` precedes everything and ``End`` follows everything. Two value
    nodes are equal only when they hold the same index; otherwise they compare
    by their crossing x-coordinate, and equal or NaN crossings resolve to LESS.
    """
    lhs_kind, lhs_value = lhs
    rhs_kind, rhs_value = rhs
    if lhs_kind == START:
        return LESS
    if lhs_kind == END:
        return GREATER
    if rhs_kind == START:
        return GREATER
    if rhs_kind == END:
        return LESS
    if lhs_value == rhs_value:
        return EQUAL

    lhs_x = x_at_height(segments[lhs_value], height)
    rhs_x = x_at_height(segments[rhs_value], height)
    if lhs_x > rhs_x:
        return GREATER
    return LESS


class SkipList:
    """
    Doubly linked, multi-level ordered list with a height-dependent key.

    Not thread-safe: ``insert`` and ``remove`` assume exclusive access.

    Parameters
    ----------
    rng : np.random.Generator, optional
        Source of the level draws. A fixed generator makes the structure
        reproducible.

    Example
    -------
    ```
    segments = [((0.0, 0.0), (0.0, 10.0)), ((5.0, 0.0), (5.0, 10.0))]
    status = SkipList(rng=np.random.default_rng(0))
    status.insert(1, segments, height=2.0)    # (None, None)
    status.insert(0, segments, height=2.0)    # (None, 1)
    status.to_list()                          # [0, 1]
    ```
    """
    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()
        self._kind = [START, END]
        self._value = [-1, -1]
        self._next: List[List[int]] = [[_END_HANDLE], []]
        self._prev: List[List[int]] = [[], [_START_HANDLE]]
        self._free: List[int] = []
        self._len = 0

    @property
    def height(self) -> int:
        """Number of levels; grows on insertion, never shrinks."""
        return len(self._next[_START_HANDLE])

    def __len__(self):
        return self._len

    # --- Internals ---
    def _key(self, handle: int) -> Tuple[int, int]:
        return self._kind[handle], self._value[handle]

    def _allocate(self, element: int) -> int:
        if self._free:
            handle = self._free.pop()
            self._kind[handle] = VALUE
            self._value[handle] = element
            self._next[handle] = []
            self._prev[handle] = []
        else:
            handle = len(self._kind)
            self._kind.append(VALUE)
            self._value.append(element)
            self._next.append([])
            self._prev.append([])
        return handle

    def _predecessors(self, element: int, segments, height: float) -> List[int]:
        """
        Top-down walk: move forward while the next key is not greater than
        ``element``, descend otherwise. Returns the last visited node per level.
        """
        target = (VALUE, element)
        preds = [_START_HANDLE] * self.height
        node = _START_HANDLE
        for level in reversed(range(self.height)):
            while True:
                nxt = self._next[node][level]
                if compare_nodes(self._key(nxt), target, segments, height) == GREATER:
                    break
                node = nxt
            preds[level] = node
        return preds

    def _neighbor_value(self, handle: int) -> Optional[int]:
        if self._kind[handle] == VALUE:
            return self._value[handle]
        return None

    # --- Public API ---
    def insert(self, element: int, segments, height: float,
               rng: Optional[np.random.Generator] = None) -> Tuple[Optional[int], Optional[int]]:
        """
        Inserts ``element`` at its position for the sweep ``height``.

        The node spans a uniformly drawn number of levels in ``1..=self.height``;
        when the draw hits the maximum, a fair coin may add one more level to
        the whole list.

        Returns
        -------
        (prev, next)
            Values of the new immediate neighbours; None next to a sentinel.
        """
        rng = rng if rng is not None else self.rng
        preds = self._predecessors(element, segments, height)
        max_height = len(preds)
        node_height = int(rng.integers(1, max_height + 1))

        handle = self._allocate(element)
        for level in range(node_height):
            prev = preds[level]
            nxt = self._next[prev][level]
            self._next[handle].append(nxt)
            self._prev[handle].append(prev)
            self._next[prev][level] = handle
            self._prev[nxt][level] = handle

        if node_height == max_height and rng.random() < 0.5:
            self._next[_START_HANDLE].append(handle)
            self._prev[_END_HANDLE].append(handle)
            self._next[handle].append(_END_HANDLE)
            self._prev[handle].append(_START_HANDLE)

        self._len += 1
        return (self._neighbor_value(self._prev[handle][0]),
                self._neighbor_value(self._next[handle][0]))

    def remove(self, element: int, segments, height: float) -> bool:
        """
        Unlinks ``element`` from every level it occupies.

        Returns False when ``element`` is not found at this height.
        """
        handle = self._predecessors(element, segments, height)[0]
        target_x = x_at_height(segments[element], height)

        # Tied or NaN keys may leave the walk past the target; scan back over them
        while self._kind[handle] == VALUE and self._value[handle] != element:
            if x_at_height(segments[self._value[handle]], height) < target_x:
                return False
            handle = self._prev[handle][0]

        if self._kind[handle] != VALUE:
            return False

        for level, (prev, nxt) in enumerate(zip(self._prev[handle], self._next[handle])):
            self._next[prev][level] = nxt
            self._prev[nxt][level] = prev

        self._kind[handle] = VALUE
        self._value[handle] = -1
        self._next[handle] = []
        self._prev[handle] = []
        self._free.append(handle)
        self._len -= 1
        return True

    def iter(self, level: int = 0) -> Iterator[int]:
        """
        Lazily yields the stored values in ascending order at ``level``.

        Level 0 holds every element; levels at or above ``height`` are empty.
        Each call starts a fresh traversal.
        """
        if level < 0 or level >= self.height:
            return
        handle = self._next[_START_HANDLE][level]
        while handle != _END_HANDLE:
            yield self._value[handle]
            handle = self._next[handle][level]

    def __iter__(self):
        return self.iter(0)

    def to_list(self) -> List[int]:
        return list(self.iter(0))

    def __repr__(self):
        return f"SkipList(len={self._len}, height={self.height})"
