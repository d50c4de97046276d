"""
Clipping & Merging
==================

Nearest-curve distance queries against accepted Hermite curves, the clip pass
that truncates new curves at their first separation violation, and endpoint
merging onto a target network.

Curves are approximated piecewise-linearly between consecutive control points.
"""
from typing import Callable, List, Sequence, Tuple

import numpy as np

from .backends import numba_backend, numpy_backend
from .curves import ControlPoint, HermiteCurve, SmoothedCurve, curve_length

SEGMENT_BACKENDS = {
    "numpy": numpy_backend,
    "numba": numba_backend,
}


def _curve_segments(curve: HermiteCurve) -> np.ndarray:
    """(N-1, 4) array of [x0, y0, x1, y1] rows for consecutive control points."""
    positions = np.array([cp.position for cp in curve], dtype=float).reshape(-1, 2)
    if len(positions) < 2:
        return np.empty((0, 4))
    return np.hstack((positions[:-1], positions[1:]))


class CurveObstacles:
    """
    Read-only segment soup built from a set of curves.

    Safe to share between tracer threads: queries never mutate the object,
    only ``add`` does, and that is reserved for the orchestrating thread.

    Parameters
    ----------
    curves : sequence of HermiteCurve
        Accepted curves acting as obstacles.
    backend : str
        'numpy' or 'numba' segment kernels.
    """
    def __init__(self, curves: Sequence[HermiteCurve] = (), backend: str = "numpy"):
        if backend not in SEGMENT_BACKENDS:
            raise ValueError(f"Unknown backend: {backend}")
        self.backend_name = backend
        self._kernels = SEGMENT_BACKENDS[backend]
        self._segments = np.empty((0, 4))
        self._set_columns()
        for curve in curves:
            self.add(curve)

    def _set_columns(self):
        self.sx0 = np.ascontiguousarray(self._segments[:, 0])
        self.sy0 = np.ascontiguousarray(self._segments[:, 1])
        self.sx1 = np.ascontiguousarray(self._segments[:, 2])
        self.sy1 = np.ascontiguousarray(self._segments[:, 3])

    def add(self, curve: HermiteCurve):
        """Append a curve's segments."""
        segments = _curve_segments(curve)
        if len(segments):
            self._segments = np.vstack((self._segments, segments))
            self._set_columns()
        return self

    def __len__(self):
        return len(self._segments)

    def distance_squared(self, point) -> float:
        """Squared distance to the closest segment, ``inf`` without obstacles."""
        if len(self) == 0:
            return float("inf")
        d2, _, _ = self._kernels.nearest_segment(point[0], point[1], self.sx0, self.sy0, self.sx1, self.sy1)
        return d2

    def distance_squared_cloud(self, points) -> np.ndarray:
        points = np.asarray(points, dtype=float).reshape(-1, 2)
        if len(self) == 0:
            return np.full(len(points), np.inf)
        return self._kernels.nearest_distance_cloud(
            points[:, 0], points[:, 1], self.sx0, self.sy0, self.sx1, self.sy1
        )

    def closest(self, point):
        """
        Closest point on the obstacle set.

        Returns
        -------
        d2 : float
            Squared distance (``inf`` without obstacles).
        closest_point : np.ndarray or None
            Clamped projection of ``point`` onto the closest segment.
        segment_vector : np.ndarray or None
            Direction (end - start) of the closest segment.
        """
        if len(self) == 0:
            return float("inf"), None, None
        d2, idx, t = self._kernels.nearest_segment(point[0], point[1], self.sx0, self.sy0, self.sx1, self.sy1)
        start = self._segments[idx, :2]
        segment_vector = self._segments[idx, 2:] - start
        return d2, start + t * segment_vector, segment_vector


def clip_curve(smoothed: SmoothedCurve, obstacles: CurveObstacles, separation_fn: Callable,
               min_length: float, start_tolerance: float = 0.85):
    """
    Clips a single candidate curve against ``obstacles``.

    Returns
    -------
    (curve, seeds) or None
        The leading run of control points that keeps the separation distance,
        together with the seed positions emitted before the clip point.
        None when the curve is rejected.
    """
    curve = smoothed.curve
    if len(curve) < 2:
        return None

    start = curve[0].position
    d_start = separation_fn(start)
    if obstacles.distance_squared(start) < start_tolerance * d_start * d_start:
        return None

    distances = obstacles.distance_squared_cloud([cp.position for cp in curve])
    kept = 0
    for cp, dist_squared in zip(curve, distances):
        d_sep = separation_fn(cp.position)
        if dist_squared < d_sep * d_sep:
            break
        kept += 1

    if kept < 2:
        return None

    clipped = list(curve[:kept])
    if curve_length(clipped) < min_length:
        return None

    cutoff = kept / len(curve)
    seeds = [np.asarray(position, dtype=float) for position, fraction in smoothed.new_seeds
             if fraction < cutoff]
    return clipped, seeds


def clip_pass(curves: Sequence[SmoothedCurve], previous_curves: Sequence[HermiteCurve],
              separation_fn: Callable, min_length: float, start_tolerance: float = 0.85,
              backend: str = "numpy") -> List[Tuple[HermiteCurve, List[np.ndarray]]]:
    """
    Clips a batch of smoothed curves in emission order.

    Each candidate is tested against the previously accepted curves plus the
    full, unclipped geometry of every earlier candidate in this batch, whether
    or not it was accepted, so later curves yield to earlier ones.

    Parameters
    ----------
    curves : sequence of SmoothedCurve
        Candidates, in the order their seeds were traced.
    previous_curves : sequence of HermiteCurve
        Curves accepted in earlier iterations.
    separation_fn : callable
        ``d_sep(point) -> float``.
    min_length : float
        Clipped curves with a shorter control polygon are discarded.
    start_tolerance : float
        A candidate whose first point is within ``start_tolerance * d_sep^2``
        (squared distance) of an obstacle is dropped entirely.
    backend : str
        Segment kernel backend.

    Returns
    -------
    list of (HermiteCurve, list of np.ndarray)
        Accepted curves and the seed positions they contribute.
    """
    obstacles = CurveObstacles(previous_curves, backend=backend)
    accepted = []
    for smoothed in curves:
        result = clip_curve(smoothed, obstacles, separation_fn, min_length, start_tolerance)
        if result is not None:
            accepted.append(result)
        # Earlier candidates block later ones unclipped, accepted or not
        obstacles.add(smoothed.curve)
    return accepted


def _snap(control_point: ControlPoint, targets: CurveObstacles, connection_distance: float) -> ControlPoint:
    d2, closest_point, _ = targets.closest(control_point.position)
    distance = np.sqrt(d2)
    if 0.001 < distance < connection_distance:
        return ControlPoint(position=closest_point, velocity=control_point.velocity.copy())
    return control_point


def merge_road_endings(curves: Sequence[HermiteCurve], targets: Sequence[HermiteCurve],
                       connection_distance: float, backend: str = "numpy") -> List[HermiteCurve]:
    """
    Snaps curve endpoints onto a target network.

    Start and end are handled independently: an endpoint whose distance to
    the closest point of ``targets`` lies in ``(0.001, connection_distance)``
    is moved onto that point, keeping its tangent. Interior control points are
    untouched and the input curves are not modified.
    """
    obstacles = CurveObstacles(targets, backend=backend)
    merged = []
    for curve in curves:
        new_curve = list(curve)
        if len(new_curve) >= 2:
            new_curve[0] = _snap(new_curve[0], obstacles, connection_distance)
            new_curve[-1] = _snap(new_curve[-1], obstacles, connection_distance)
        merged.append(new_curve)
    return merged
