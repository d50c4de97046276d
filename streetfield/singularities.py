"""
Degenerate Point Detection
==========================

Locate the regions of the grid where the tensor field vanishes and its
principal directions are undefined.
"""

import numpy as np

from .tensor_field import DEGENERACY_THRESHOLD


class DegeneratePointFinder:
    """
    Coarse, sector-based search for degenerate points.

    The grid is partitioned into ``sector_count x sector_count`` square sectors.
    A sector is degenerate if any smoothed sample on its integer lattice has a
    norm at or below ``threshold``. Distances are measured to sector centers, so
    results are only accurate to sector granularity; more sectors improve
    precision at the cost of speed.

    Sector scans are cached, so repeated queries only evaluate each sector once.

    Parameters
    ----------
    field : TensorField
        Field to probe.
    grid_size : int
        Side length of the square grid.
    sector_count : int
        Sectors per grid side. Default is 16.
    threshold : float
        Degeneracy threshold on the smoothed tensor norm.

    Example
    -------
    ```
    finder = DegeneratePointFinder(field, grid_size=512)
    d = finder.closest_degenerate_point_distance(np.array([100.0, 80.0]))
    ```
    """
    def __init__(self, field, grid_size: int, sector_count: int = 16,
                 threshold: float = DEGENERACY_THRESHOLD):
        if sector_count <= 0:
            raise ValueError("sector_count must be > 0")
        self.field = field
        self.grid_size = int(grid_size)
        self.sector_count = int(sector_count)
        self.threshold = float(threshold)
        self.sector_size = max(1, self.grid_size // self.sector_count)
        self._sector_cache = {}

        half = self.sector_size / 2.0
        idx = np.arange(self.sector_count)
        sx, sy = np.meshgrid(idx, idx, indexing="ij")
        self.sector_indices = np.column_stack((sx.ravel(), sy.ravel()))
        self.sector_centers = self.sector_indices * float(self.sector_size) + half

    # --- Internals ---
    def _sector_has_degenerate_point(self, x_sector: int, y_sector: int) -> bool:
        key = (x_sector, y_sector)
        if key not in self._sector_cache:
            x_vec = np.arange(self.sector_size, dtype=float) + x_sector * self.sector_size
            y_vec = np.arange(self.sector_size, dtype=float) + y_sector * self.sector_size
            A, B = self.field.evaluate_grid(x_vec, y_vec, smoothed=True)
            norms = np.sqrt(2.0 * (A * A + B * B))
            self._sector_cache[key] = bool(np.any(norms <= self.threshold))
        return self._sector_cache[key]

    # --- Public API ---
    def sectors_by_distance(self, point) -> np.ndarray:
        """Sector indices (N*N, 2) sorted by the distance of their centers to ``point``."""
        point = np.asarray(point, dtype=float)
        d2 = np.sum((self.sector_centers - point) ** 2, axis=1)
        order = np.argsort(d2, kind="stable")
        return self.sector_indices[order]

    def closest_degenerate_sector(self, point):
        """
        Center of the nearest sector containing a degenerate sample, or None.

        Sectors are probed nearest-first, so only as many sectors as needed are scanned.
        """
        for x_sector, y_sector in self.sectors_by_distance(point):
            if self._sector_has_degenerate_point(int(x_sector), int(y_sector)):
                return np.array([x_sector, y_sector], dtype=float) * self.sector_size + self.sector_size / 2.0
        return None

    def closest_degenerate_point_distance(self, point) -> float:
        """
        Approximate distance from ``point`` to the nearest degenerate point.

        Returns the distance to the center of the closest degenerate sector,
        or ``inf`` if the field has no degenerate sample on the grid.
        """
        center = self.closest_degenerate_sector(point)
        if center is None:
            return float("inf")
        offset = center - np.asarray(point, dtype=float)
        return float(np.hypot(offset[0], offset[1]))

    def degenerate_sectors(self) -> np.ndarray:
        """Boolean map (sector_count, sector_count) indexed [x_sector, y_sector]."""
        out = np.zeros((self.sector_count, self.sector_count), dtype=bool)
        for x_sector, y_sector in self.sector_indices:
            out[x_sector, y_sector] = self._sector_has_degenerate_point(int(x_sector), int(y_sector))
        return out
