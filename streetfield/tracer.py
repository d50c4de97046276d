"""
Streamline Tracer
=================

Integrates one eigenvector family of the tensor field from a seed with
4th-order Runge-Kutta, keeping the separation distance to accepted curves
and emitting new candidate seeds along the way.
"""
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .clipping import CurveObstacles
from .tensor_field import DEGENERACY_THRESHOLD

# Lower bound on the squared loop-closure distance; the working tolerance is (h / 2)^2
LOOP_CLOSURE_EPSILON = 1e-4


@dataclass(slots=True)
class TraceOutput:
    """
    Raw streamline.

    Attributes
    ----------
    path : np.ndarray
        Sampled positions of shape (N, 2); empty (0, 2) when the seed was rejected.
    new_seeds : list of (np.ndarray, float)
        Emitted seed positions with their arc-length fraction along the trace.
    """
    path: np.ndarray = field(default_factory=lambda: np.empty((0, 2)))
    new_seeds: List[Tuple[np.ndarray, float]] = field(default_factory=list)

    def __len__(self):
        return len(self.path)


def _in_grid(point, grid_size: float) -> bool:
    return 0.0 <= point[0] <= grid_size and 0.0 <= point[1] <= grid_size


def _segment_distance_squared(point, start, end) -> float:
    """Squared distance from ``point`` to the segment ``start``-``end``."""
    seg = end - start
    length_sq = seg @ seg
    t = 0.0 if length_sq == 0.0 else min(1.0, max(0.0, ((point - start) @ seg) / length_sq))
    offset = start + t * seg - point
    return float(offset @ offset)


def _aligned_direction(field, point, follow_major: bool, reference, threshold: float):
    """
    Unit direction of the chosen eigenvector at ``point``, flipped to agree with ``reference``.

    Falls back to ``reference`` where the field is degenerate.
    """
    tensor = field.evaluate_smoothed(point)
    if tensor.norm() < threshold:
        return reference
    direction = tensor.eigenvectors().direction(follow_major)
    if reference is not None and np.dot(direction, reference) < 0.0:
        direction = -direction
    return direction


def trace(field, seed, step_size: float, separation_fn: Callable, follow_major: bool,
          max_length: float, previous_curves, grid_size: float,
          threshold: float = DEGENERACY_THRESHOLD) -> TraceOutput:
    """
    Traces a single streamline.

    The trace stops when it leaves the grid, reaches a degenerate region,
    comes closer than the separation distance to ``previous_curves``, would
    exceed ``max_length`` or closes a loop back onto its origin.

    Parameters
    ----------
    field : TensorField
        Field to integrate.
    seed : array-like of shape (2,)
        Start position.
    step_size : float
        RK4 step length h.
    separation_fn : callable
        ``d_sep(point) -> float``.
    follow_major : bool
        Integrate the major (True) or minor (False) eigenvector field.
    max_length : float
        Arc length budget of the trace.
    previous_curves : CurveObstacles or sequence of HermiteCurve
        Accepted curves of the same family.
    grid_size : float
        Side length of the square grid.
    threshold : float
        Degeneracy threshold on the smoothed tensor norm.

    Returns
    -------
    TraceOutput
        Empty when the seed is too close to existing geometry or fewer than
        two positions were recorded.
    """
    if not isinstance(previous_curves, CurveObstacles):
        previous_curves = CurveObstacles(previous_curves, backend=field.backend_name)

    origin = np.array(seed, dtype=float)
    if not _in_grid(origin, grid_size):
        return TraceOutput()

    margin = np.sqrt(previous_curves.distance_squared(origin)) - separation_fn(origin)
    if margin <= 0.0:
        return TraceOutput()

    h = float(step_size)
    closure_tolerance = max(LOOP_CLOSURE_EPSILON, (h / 2.0) ** 2)
    record_every = max(1, int(round(1.0 / h)))
    pos = origin.copy()
    path = [origin.copy()]
    new_seeds = []
    heading = None
    accumulated = since_seed = since_check = 0.0
    steps = 0

    while accumulated + h <= max_length:
        tensor = field.evaluate_smoothed(pos)
        if tensor.norm() < threshold:
            break

        k_1 = tensor.eigenvectors().direction(follow_major)
        if heading is not None and np.dot(k_1, heading) < 0.0:
            k_1 = -k_1
        k_2 = _aligned_direction(field, np.clip(pos + h / 2.0 * k_1, 0.0, grid_size), follow_major, k_1, threshold)
        k_3 = _aligned_direction(field, np.clip(pos + h / 2.0 * k_2, 0.0, grid_size), follow_major, k_1, threshold)
        k_4 = _aligned_direction(field, np.clip(pos + h * k_3, 0.0, grid_size), follow_major, k_1, threshold)

        step = h * (k_1 + 2.0 * k_2 + 2.0 * k_3 + k_4) / 6.0
        dist = float(np.hypot(step[0], step[1]))
        if dist == 0.0:
            break
        new_pos = pos + step
        if not _in_grid(new_pos, grid_size):
            break

        # Re-query the obstacles only once the last safety margin is used up
        if since_check + dist >= margin:
            new_margin = np.sqrt(previous_curves.distance_squared(new_pos)) - separation_fn(new_pos)
            if new_margin <= 0.0:
                break
            margin = new_margin
            since_check = 0.0
        else:
            since_check += dist

        accumulated += dist
        since_seed += dist
        if since_seed >= separation_fn(new_pos):
            since_seed = 0.0
            new_seeds.append((new_pos.copy(), accumulated))

        closes_loop = (accumulated > 2.0 * h
                       and _segment_distance_squared(origin, pos, new_pos) <= closure_tolerance)

        pos = new_pos
        heading = step / dist
        steps += 1
        if steps % record_every == 0:
            path.append(pos.copy())

        if closes_loop:
            break

    if steps % record_every != 0:
        path.append(pos.copy())

    if len(path) < 2:
        return TraceOutput()

    return TraceOutput(
        path=np.array(path),
        new_seeds=[(position, length / accumulated) for position, length in new_seeds],
    )


def trace_lanes(seeds: Sequence, field, step_size: float, separation_fn: Callable, follow_major: bool,
                max_length: float, previous_curves, grid_size: float,
                max_workers: Optional[int] = None,
                threshold: float = DEGENERACY_THRESHOLD) -> List[TraceOutput]:
    """
    Traces every seed independently on a thread pool.

    Each task carries its seed index and results are placed back by that
    index, so ``output[i]`` always belongs to ``seeds[i]`` whatever the
    completion order.
    """
    seeds = [np.asarray(seed, dtype=float) for seed in seeds]
    if not isinstance(previous_curves, CurveObstacles):
        previous_curves = CurveObstacles(previous_curves, backend=field.backend_name)

    def task(index, seed):
        return index, trace(field, seed, step_size, separation_fn, follow_major,
                            max_length, previous_curves, grid_size, threshold)

    traces = [TraceOutput() for _ in seeds]
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(task, index, seed) for index, seed in enumerate(seeds)]
        for future in as_completed(futures):
            index, output = future.result()
            traces[index] = output

    return traces
