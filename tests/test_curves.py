"""
Tests for path smoothing, control point selection and Hermite curves.
"""

import numpy as np
import pytest

from streetfield.curves import (
    ControlPoint,
    curvature,
    curve_length,
    evaluate_hermite_curve,
    fit_curve,
    highest_curvature_points,
    resample_curve,
    smooth_lanes,
    smooth_path,
)
from streetfield.tracer import TraceOutput


def l_shaped_path(n_side=40):
    """Unit-spaced path along +x, then along +y."""
    horizontal = [(float(i), 0.0) for i in range(n_side + 1)]
    vertical = [(float(n_side), float(j)) for j in range(1, n_side + 1)]
    return np.array(horizontal + vertical)


class TestSmoothPath:
    """Tests for the two-pass smoothing."""

    def test_straight_path_unchanged(self):
        path = np.column_stack((np.arange(20.0), np.full(20, 3.0)))
        assert np.allclose(smooth_path(path, 0.03, 0.3), path)

    def test_endpoints_fixed(self):
        rng = np.random.default_rng(0)
        path = np.cumsum(rng.normal(size=(30, 2)), axis=0)
        smoothed = smooth_path(path, 0.03, 0.3)
        assert smoothed.shape == path.shape
        assert np.array_equal(smoothed[0], path[0])
        assert np.array_equal(smoothed[-1], path[-1])

    def test_corner_is_softened(self):
        path = l_shaped_path(10)
        smoothed = smooth_path(path, 0.03, 0.3)
        assert not np.allclose(smoothed[10], path[10])

    def test_short_paths(self):
        path = np.array([[0.0, 0.0], [1.0, 1.0]])
        assert np.array_equal(smooth_path(path, 0.03, 0.3), path)

    def test_repeated_points_do_not_produce_nan(self):
        path = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 0.0], [2.0, 1.0]])
        assert np.all(np.isfinite(smooth_path(path, 0.03, 0.3)))


class TestControlPointSelection:
    """Tests for curvature-driven control point reduction."""

    def test_curvature_peaks_at_corner(self):
        path = l_shaped_path(40)
        curv = curvature(path)
        assert len(curv) == len(path) - 2
        assert int(np.argmax(curv)) + 1 == 40

    def test_includes_endpoints_and_corner(self):
        path = l_shaped_path(40)
        indices = highest_curvature_points(path, 20)
        assert indices[0] == 0
        assert indices[-1] == len(path) - 1
        assert 40 in indices
        assert indices == sorted(indices)

    @pytest.mark.parametrize("padding", [3, 7, 20])
    def test_padding_respected(self, padding):
        rng = np.random.default_rng(padding)
        path = np.cumsum(rng.normal(size=(120, 2)), axis=0)
        indices = highest_curvature_points(path, padding)
        assert indices[0] == 0 and indices[-1] == 119
        gaps = np.diff(indices)
        assert np.all(gaps >= padding)

    def test_padding_larger_than_path(self):
        path = l_shaped_path(3)
        assert highest_curvature_points(path, 50) == [0, len(path) - 1]


class TestFitting:
    """Tests for Hermite control points."""

    def test_velocities(self):
        path = np.column_stack((np.arange(11.0), np.zeros(11)))
        curve = fit_curve(path, [0, 5, 10], h=0.2, blend_factor=0.7)
        assert [cp.position[0] for cp in curve] == [0.0, 5.0, 10.0]
        assert np.allclose(curve[0].velocity, [25.0, 0.0])
        assert np.allclose(curve[1].velocity, [35.0, 0.0])
        assert np.allclose(curve[2].velocity, [25.0, 0.0])

    def test_smooth_lanes_skips_empty(self):
        traces = [
            TraceOutput(),
            TraceOutput(path=np.column_stack((np.arange(30.0), np.zeros(30))),
                        new_seeds=[(np.array([12.0, 0.0]), 0.4)]),
        ]
        curves = smooth_lanes(traces, 0.03, 0.3, 10, 0.2, 0.7)
        assert len(curves) == 1
        assert [int(cp.position[0]) for cp in curves[0].curve] == [0, 10, 29]
        assert curves[0].new_seeds[0][1] == 0.4


class TestHermite:
    """Tests for Hermite evaluation and resampling."""

    def test_basis_endpoints(self):
        p0, p1 = np.array([0.0, 0.0]), np.array([3.0, 4.0])
        m0, m1 = np.array([1.0, 0.0]), np.array([0.0, 1.0])
        assert np.allclose(evaluate_hermite_curve(p0, p1, m0, m1, 0.0), p0)
        assert np.allclose(evaluate_hermite_curve(p0, p1, m0, m1, 1.0), p1)
        assert evaluate_hermite_curve(p0, p1, m0, m1, np.linspace(0, 1, 7)).shape == (7, 2)

    def test_straight_segment(self):
        """Test tangents equal to the chord give a linear interpolation."""
        p0, p1 = np.array([0.0, 0.0]), np.array([4.0, 0.0])
        m = p1 - p0
        assert np.allclose(evaluate_hermite_curve(p0, p1, m, m, 0.25), [1.0, 0.0])

    def test_resample_shares_joints(self):
        curve = [
            ControlPoint(np.array([0.0, 0.0]), np.array([5.0, 0.0])),
            ControlPoint(np.array([5.0, 0.0]), np.array([5.0, 0.0])),
            ControlPoint(np.array([10.0, 0.0]), np.array([5.0, 0.0])),
        ]
        samples = resample_curve(curve, 4)
        assert samples.shape == (9, 2)
        assert np.allclose(samples[0], [0.0, 0.0])
        assert np.allclose(samples[4], [5.0, 0.0])
        assert np.allclose(samples[-1], [10.0, 0.0])

    def test_resample_invalid(self, curve_factory):
        with pytest.raises(ValueError):
            resample_curve(curve_factory([(0.0, 0.0), (1.0, 0.0)]), 0)

    def test_curve_length(self, curve_factory):
        assert curve_length(curve_factory([(0.0, 0.0), (3.0, 4.0), (3.0, 10.0)])) == pytest.approx(11.0)
        assert curve_length(curve_factory([(1.0, 1.0)])) == 0.0
