"""
Tests for rendering helpers and the field engine.
"""

import numpy as np
import pytest

from streetfield.config import Config
from streetfield.engine import FieldEngine
from streetfield.utils import (
    curves_to_polylines,
    eigenvector_glyphs,
    field_magnitude_mask,
    get_orientation_angles,
    to_normalized_device_coordinates,
)


class TestUtils:
    """Tests for array helpers."""

    def test_orientation_angles(self):
        A = np.array([1.0, 0.0, -1.0])
        B = np.array([0.0, 1.0, 0.0])
        assert np.allclose(get_orientation_angles(A, B), [0.0, np.pi / 4, np.pi / 2])

    def test_mask_uniform_field(self, uniform_field):
        mask = field_magnitude_mask(uniform_field, 32)
        assert mask.shape == (32, 32)
        assert mask.all()

    def test_mask_radial_center(self, radial_field):
        mask = field_magnitude_mask(radial_field, 256)
        assert not mask[200, 200]
        assert mask[200, 230]

    def test_glyphs(self, uniform_field):
        glyphs = eigenvector_glyphs(uniform_field, 512, sample_factor=16)
        assert glyphs['origins'].shape == (32 * 32, 2)
        assert np.allclose(glyphs['major'] - glyphs['origins'], [15.0, 0.0])
        assert np.allclose(glyphs['minor'] - glyphs['origins'], [0.0, 15.0])

    def test_polylines_skip_short_curves(self, curve_factory):
        curves = [curve_factory([(0.0, 0.0)]), curve_factory([(0.0, 0.0), (10.0, 0.0)])]
        polylines = curves_to_polylines(curves, points_per_spline=5)
        assert len(polylines) == 1
        assert polylines[0].shape == (6, 2)

    def test_normalized_device_coordinates(self):
        ndc = to_normalized_device_coordinates([[0.0, 512.0], [256.0, 128.0]], 512)
        assert np.allclose(ndc, [[-1.0, 1.0], [0.0, -0.5]])


class TestFieldEngine:
    """Tests for backend selection and grid evaluation."""

    @pytest.fixture
    def config(self):
        config = Config(backend="numpy")
        config.grid.size = 32
        config.tensor_field.add_grid((16.0, 16.0), angle=0.0, length=100.0)
        return config

    def test_selector(self, config):
        engine = FieldEngine(config)
        assert engine.selector("AUTO") == "numba"
        assert engine.selector("NumPy") == "numpy"
        with pytest.raises(ValueError):
            engine.selector("cuda")

    def test_compute_on_grid(self, config):
        engine = FieldEngine(config)
        A, B = engine.compute_on_grid()
        assert A.shape == B.shape == (32, 32)
        assert np.allclose(engine.magnitude_on_grid(), np.sqrt(2.0) * np.exp(-config.tensor_field.decay * (
            (np.arange(32.0)[None, :] - 16.0) ** 2 + (np.arange(32.0)[:, None] - 16.0) ** 2)))

    def test_point_matches_cloud(self, config):
        engine = FieldEngine(config)
        a, b = engine.compute_point(3.0, 7.0)
        A, B = engine.compute_cloud(np.array([3.0]), np.array([7.0]))
        assert a == pytest.approx(A[0])
        assert b == pytest.approx(B[0])

    def test_in_bounds(self, config):
        engine = FieldEngine(config)
        assert engine.in_bounds((0.0, 32.0))
        assert not engine.in_bounds((-0.1, 5.0))

    def test_unknown_backend_switch(self, config):
        engine = FieldEngine(config)
        with pytest.raises(ValueError):
            engine.get_backend("opencl")


class TestBenchmarks:
    """Smoke tests for the backend benchmark scripts."""

    @pytest.mark.parametrize("module_name", ["numpy_backend", "numba_backend"])
    def test_run_benchmark(self, module_name, capsys):
        import importlib

        module = importlib.import_module(f"streetfield.backends.{module_name}")
        module.run_benchmark(grid_size=8)
        out = capsys.readouterr().out
        assert "Points: 64" in out
        assert "Grid time" in out
