"""
Pytest fixtures shared by the streetfield test suite.

Fields are built on the NumPy backend unless a test is specifically about
the Numba kernels.
"""

import numpy as np
import pytest

from streetfield.config import Config
from streetfield.curves import ControlPoint
from streetfield.elements import GridElement, RadialElement
from streetfield.tensor_field import TensorField

GRID_SIZE = 512


def make_curve(points, velocity=(1.0, 0.0)):
    """Hermite curve through ``points`` with a constant tangent."""
    return [
        ControlPoint(position=np.array(p, dtype=float), velocity=np.array(velocity, dtype=float))
        for p in points
    ]


@pytest.fixture
def curve_factory():
    return make_curve


@pytest.fixture
def grid_size():
    return GRID_SIZE


@pytest.fixture
def uniform_field():
    """Zero-rotation grid covering the whole grid without decay: major = +x everywhere."""
    return TensorField([GridElement((256.0, 256.0), angle=0.0, length=2000.0)], decay=0.0, backend="numpy")


@pytest.fixture
def radial_field():
    """Single radial element at (200, 200) without decay."""
    return TensorField([RadialElement((200.0, 200.0))], decay=0.0, backend="numpy")


@pytest.fixture
def mixed_field():
    """Layout mixing rotated grids and a radial center."""
    return TensorField(
        [
            GridElement((100.0, 100.0), angle=-2.0944, length=500.0),
            RadialElement((200.0, 200.0)),
            GridElement((300.0, 400.0), angle=0.1, length=200.0),
            GridElement((0.0, 400.0), angle=0.7, length=10.0),
        ],
        decay=0.0004,
        backend="numpy",
    )


@pytest.fixture
def constant_separation():
    def d_sep(point):
        return 10.0
    return d_sep


@pytest.fixture
def small_config():
    """Small uniform-grid configuration that runs quickly on NumPy."""
    config = Config(backend="numpy")
    config.grid.size = 128
    config.tensor_field.decay = 0.0
    config.tensor_field.add_grid((64.0, 64.0), angle=0.0, length=500.0)
    config.separation.constant(12.0)
    config.trace.iterations = 2
    config.trace.max_length = 60.0
    config.trace.step_size = 0.5
    config.trace.workers = 4
    config.smoothing.point_side_padding = 10
    config.validate()
    return config
