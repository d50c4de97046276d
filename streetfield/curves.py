"""
Curves
======

Turns raw streamline traces into compact Hermite curves: two-pass smoothing,
curvature-driven control point selection, tangent estimation and resampling.
"""
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np


@dataclass(slots=True)
class ControlPoint:
    """Hermite node: position and the tangent used for cubic interpolation."""
    position: np.ndarray
    velocity: np.ndarray


HermiteCurve = List[ControlPoint]


@dataclass(slots=True)
class SmoothedCurve:
    """A fitted curve together with the seeds its trace emitted."""
    curve: HermiteCurve
    new_seeds: List[Tuple[np.ndarray, float]] = field(default_factory=list)


def _unit_rows(vectors: np.ndarray):
    """Row-normalised vectors plus a mask of rows that had a non-zero length."""
    norms = np.linalg.norm(vectors, axis=1)
    valid = norms > 0.0
    safe = np.where(valid, norms, 1.0)
    return vectors / safe[:, None], valid


def smooth_path(path, alpha: float, beta: float) -> np.ndarray:
    """
    Two-pass smoothing of a traced path. Endpoints never move.

    Pass 1 nudges a point along the change of its velocity when the tangent
    directions on either side disagree by at least ``alpha`` (1 - cos).
    Pass 2 replaces a point by the mean of itself and its neighbours when the
    unit tangents differ by at least ``beta``.

    Parameters
    ----------
    path : array-like of shape (N, 2)
    alpha, beta : float
        Thresholds of the two passes.

    Returns
    -------
    np.ndarray
        Smoothed path of shape (N, 2).
    """
    path = np.array(path, dtype=float)
    if len(path) < 3:
        return path

    # --- Pass 1 ---
    vel = np.diff(path, axis=0)
    cur, prev = vel[1:], vel[:-1]
    cur_n, cur_ok = _unit_rows(cur)
    prev_n, prev_ok = _unit_rows(prev)

    dot = np.minimum(np.sum(cur_n * prev_n, axis=1), 1.0)
    change = cur - prev
    change_len2 = np.sum(change * change, axis=1)
    nudge_mask = cur_ok & prev_ok & (1.0 - dot >= alpha) & (change_len2 > 0.0)

    scale = np.sqrt(np.sum(cur * cur, axis=1) / np.where(change_len2 > 0.0, change_len2, 1.0))
    first_pass = path.copy()
    first_pass[1:-1][nudge_mask] += (change / 2.0 * scale[:, None])[nudge_mask]

    # --- Pass 2 ---
    vel = np.diff(first_pass, axis=0)
    cur_n, cur_ok = _unit_rows(vel[1:])
    prev_n, prev_ok = _unit_rows(vel[:-1])
    average_mask = cur_ok & prev_ok & (np.linalg.norm(cur_n - prev_n, axis=1) >= beta)

    second_pass = first_pass.copy()
    averaged = (first_pass[:-2] + first_pass[1:-1] + first_pass[2:]) / 3.0
    second_pass[1:-1][average_mask] = averaged[average_mask]

    return second_pass


def curvature(path) -> np.ndarray:
    """
    Squared norm of the unit tangent change at every interior point.

    Returns an array of length N - 2 (entry k belongs to path index k + 1).
    Points next to a zero-length step get zero curvature.
    """
    path = np.asarray(path, dtype=float)
    if len(path) < 3:
        return np.zeros(0)
    vel = np.diff(path, axis=0)
    cur_n, cur_ok = _unit_rows(vel[1:])
    prev_n, prev_ok = _unit_rows(vel[:-1])
    second = cur_n - prev_n
    return np.where(cur_ok & prev_ok, np.sum(second * second, axis=1), 0.0)


def highest_curvature_points(path, point_side_padding: int) -> List[int]:
    """
    Minimal set of control point indices that preserves the sharp turns of ``path``.

    Interior points are visited by descending curvature and accepted when they
    are at least ``point_side_padding`` indices away from every accepted index.
    Both endpoints are always accepted first.

    Returns
    -------
    list of int
        Sorted indices, starting with 0 and ending with ``len(path) - 1``.
    """
    n = len(path)
    if n < 2:
        return list(range(n))

    curv = curvature(path)
    order = np.argsort(-curv, kind="stable") + 1

    accepted = [0, n - 1]
    for index in order:
        index = int(index)
        if all(abs(index - other) >= point_side_padding for other in accepted):
            accepted.append(index)

    return sorted(accepted)


def fit_curve(path, indices: Sequence[int], h: float, blend_factor: float) -> HermiteCurve:
    """
    Builds Hermite control points at ``indices`` of ``path``.

    Endpoint velocities are the one-sided differences, interior velocities are
    ``blend_factor`` times the sum of the forward and backward differences.
    All differences are divided by ``h^2`` so tangents scale with the trace step.
    """
    path = np.asarray(path, dtype=float)
    h_square = h * h
    last = len(path) - 1
    curve = []

    for index in indices:
        position = path[index].copy()
        if index == 0:
            velocity = (path[1] - position) / h_square
        elif index == last:
            velocity = (path[last] - path[last - 1]) / h_square
        else:
            velocity = blend_factor * ((path[index + 1] - position) / h_square
                                       + (position - path[index - 1]) / h_square)
        curve.append(ControlPoint(position=position, velocity=velocity))

    return curve


def smooth_lanes(traces, alpha: float, beta: float, point_side_padding: int,
                 h: float, blend_factor: float) -> List[SmoothedCurve]:
    """
    Smooths and fits every non-empty trace. Output order follows input order.
    """
    curves = []
    for trace_output in traces:
        if len(trace_output.path) < 2:
            continue
        smoothed = smooth_path(trace_output.path, alpha, beta)
        indices = highest_curvature_points(smoothed, point_side_padding)
        curves.append(SmoothedCurve(
            curve=fit_curve(smoothed, indices, h, blend_factor),
            new_seeds=list(trace_output.new_seeds),
        ))
    return curves


def evaluate_hermite_curve(p_0, p_1, m_0, m_1, t) -> np.ndarray:
    """
    Cubic Hermite interpolation between (p_0, m_0) and (p_1, m_1).

    ``t`` may be a scalar or a 1D array; the result has shape (2,) or (len(t), 2).
    """
    t = np.asarray(t, dtype=float)
    t2 = t * t
    t3 = t2 * t
    h00 = 2*t3 - 3*t2 + 1
    h10 = t3 - 2*t2 + t
    h01 = -2*t3 + 3*t2
    h11 = t3 - t2
    return (np.multiply.outer(h00, p_0) + np.multiply.outer(h10, m_0)
            + np.multiply.outer(h01, p_1) + np.multiply.outer(h11, m_1))


def resample_curve(curve: HermiteCurve, points_per_spline: int) -> np.ndarray:
    """
    Dense polyline for renderers and graph builders.

    Each span between consecutive control points is sampled at
    ``points_per_spline`` subdivisions; shared joints appear once.
    """
    if points_per_spline < 1:
        raise ValueError("points_per_spline must be >= 1")
    if len(curve) < 2:
        return np.array([cp.position for cp in curve], dtype=float).reshape(-1, 2)

    t = np.linspace(0.0, 1.0, points_per_spline + 1)
    spans = []
    for i, (start, end) in enumerate(zip(curve[:-1], curve[1:])):
        samples = evaluate_hermite_curve(start.position, end.position,
                                         start.velocity, end.velocity, t)
        spans.append(samples if i == 0 else samples[1:])
    return np.vstack(spans)


def curve_positions(curve: HermiteCurve) -> np.ndarray:
    return np.array([cp.position for cp in curve], dtype=float).reshape(-1, 2)


def curve_length(curve: HermiteCurve) -> float:
    """Length of the control polygon."""
    positions = curve_positions(curve)
    if len(positions) < 2:
        return 0.0
    return float(np.sum(np.linalg.norm(np.diff(positions, axis=0), axis=1)))
