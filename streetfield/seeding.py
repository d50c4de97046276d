"""
Seeding
=======

Seed points for the tracer: initial placement, prioritisation and the
max-priority queue consumed by the iteration loop.
"""
import heapq
import itertools
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np
from scipy.spatial import cKDTree

from .tensor_field import DEGENERACY_THRESHOLD

# Deterministic initial seeds on a 512 x 512 reference grid
DEFAULT_SEED_POINTS = np.array([
    (391.0, 113.0), (10.0, 470.0), (382.0, 472.0), (61.0, 152.0), (413.0, 291.0),
    (191.0, 298.0), (0.0, 303.0), (147.0, 0.0), (304.0, 294.0), (298.0, 41.0),
    (230.0, 509.0), (502.0, 416.0), (127.0, 205.0), (285.0, 162.0), (459.0, 40.0),
    (299.0, 436.0), (121.0, 472.0), (508.0, 493.0), (470.0, 151.0), (214.0, 413.0),
    (364.0, 355.0), (171.0, 63.0), (355.0, 191.0), (274.0, 355.0), (66.0, 336.0),
    (230.0, 65.0), (30.0, 31.0), (223.0, 12.0), (193.0, 146.0), (447.0, 224.0),
])
REFERENCE_GRID_SIZE = 512


@dataclass(slots=True)
class SeedPoint:
    """
    A candidate starting point for a streamline.

    Attributes
    ----------
    position : np.ndarray
        Seed location, shape (2,).
    priority : float
        Larger values are traced first.
    follow_major : bool
        Eigenvector family the seed was created for.
    """
    position: np.ndarray
    priority: float = 0.0
    follow_major: bool = True


class SeedQueue:
    """
    Max-priority queue of seeds. Equal priorities come out in insertion order.
    """
    def __init__(self, seeds: Iterable[SeedPoint] = ()):
        self._heap = []
        self._counter = itertools.count()
        self.extend(seeds)

    def push(self, seed: SeedPoint):
        heapq.heappush(self._heap, (-seed.priority, next(self._counter), seed))

    def extend(self, seeds: Iterable[SeedPoint]):
        for seed in seeds:
            self.push(seed)

    def pop(self) -> SeedPoint:
        return heapq.heappop(self._heap)[2]

    def peek(self) -> SeedPoint:
        return self._heap[0][2]

    def ordered(self) -> List[SeedPoint]:
        """All queued seeds by descending priority, without consuming them."""
        return [entry[2] for entry in sorted(self._heap)]

    def __len__(self):
        return len(self._heap)

    def __bool__(self):
        return bool(self._heap)


def default_seed_points(grid_size: int) -> np.ndarray:
    """The built-in seed set scaled to a ``grid_size`` grid."""
    return DEFAULT_SEED_POINTS * (grid_size / REFERENCE_GRID_SIZE)


def distribute_points(point_count: int, grid_size: int, rng: Optional[np.random.Generator] = None,
                      candidates_per_point: int = 10) -> np.ndarray:
    """
    Farthest-point sampling on the integer lattice of the grid.

    Each new point is the candidate, out of ``candidates_per_point`` uniform
    draws, that lies farthest from the points chosen so far.

    Returns
    -------
    np.ndarray
        Points of shape (point_count, 2).
    """
    if rng is None:
        rng = np.random.default_rng()

    points = np.empty((0, 2))
    while len(points) < point_count:
        candidates = rng.integers(0, grid_size, size=(candidates_per_point, 2)).astype(float)
        if len(points) == 0:
            best = candidates[0]
        else:
            distances, _ = cKDTree(points).query(candidates)
            best = candidates[int(np.argmax(distances))]
        points = np.vstack((points, best))

    return points


def prioritize_points(points, city_center, field, degenerate_finder,
                      center_falloff: float = 64.0, degenerate_falloff: float = 64.0,
                      threshold: float = DEGENERACY_THRESHOLD) -> SeedQueue:
    """
    Builds the initial seed queue.

    Priority is ``exp(-d_center / center_falloff) + exp(-d_degenerate / degenerate_falloff)``
    so seeds close to the city center or to a degenerate point are traced first.
    Points where the smoothed field is degenerate are dropped.
    """
    city_center = np.asarray(city_center, dtype=float)
    queue = SeedQueue()

    for point in np.asarray(points, dtype=float):
        if field.evaluate_smoothed(point).norm() <= threshold:
            continue

        center_offset = city_center - point
        center_priority = np.exp(-np.hypot(center_offset[0], center_offset[1]) / center_falloff)
        degenerate_priority = np.exp(
            -degenerate_finder.closest_degenerate_point_distance(point) / degenerate_falloff
        )
        queue.push(SeedPoint(
            position=point.copy(),
            priority=float(center_priority + degenerate_priority),
            follow_major=True,
        ))

    return queue
