"""
Utility Functions
=================

Helpers that turn fields and curves into plain arrays for renderers and
graph builders.
"""

import numpy as np

from .curves import resample_curve


def get_orientation_angles(A, B):
    """
    Major eigenvector angle of tensors [[a, b], [b, -a]].
    (angle measured from the +x axis)

    Args:
        A, B: Numpy arrays of tensor components, any matching shape.

    Returns:
        Array of angles theta in [-pi/2, pi/2].
    """
    return 0.5 * np.arctan2(B, A)


def field_magnitude_mask(field, grid_size, threshold=0.01):
    """
    Boolean overlay of where the raw field is strong enough to carry streets.

    Args:
        field: TensorField to sample.
        grid_size: Side length of the square grid (integer lattice samples).
        threshold: Norm above which a sample counts as non-degenerate.

    Returns:
        Boolean array of shape (grid_size, grid_size), indexed [y, x].
        False marks near-zero field.
    """
    lattice = np.arange(grid_size, dtype=float)
    return field.norm_grid(lattice, lattice, smoothed=False) > threshold


def eigenvector_glyphs(field, grid_size, sample_factor=14):
    """
    Line segments visualising the major and minor directions on a coarse lattice.

    Args:
        field: TensorField to sample.
        grid_size: Side length of the square grid.
        sample_factor: Lattice spacing; glyphs are sample_factor - 1 long.

    Returns:
        Dictionary {'origins': (N, 2), 'major': (N, 2), 'minor': (N, 2)}
        where 'major'/'minor' hold the glyph end points.
    """
    lattice = np.arange(grid_size // sample_factor, dtype=float) * sample_factor
    A, B = field.evaluate_grid(lattice, lattice, smoothed=False)
    theta = get_orientation_angles(A, B).ravel()

    X, Y = np.meshgrid(lattice, lattice)
    origins = np.column_stack((X.ravel(), Y.ravel()))
    glyph_length = sample_factor - 1

    major = np.column_stack((np.cos(theta), np.sin(theta)))
    minor = np.column_stack((-np.sin(theta), np.cos(theta)))

    return {
        'origins': origins,
        'major': origins + glyph_length * major,
        'minor': origins + glyph_length * minor,
    }


def curves_to_polylines(curves, points_per_spline=10):
    """
    Resamples Hermite curves into dense polylines.

    Args:
        curves: Iterable of HermiteCurve.
        points_per_spline: Subdivisions per control point span.

    Returns:
        List of arrays of shape (M, 2). Curves with fewer than two control
        points are skipped.
    """
    return [resample_curve(curve, points_per_spline) for curve in curves if len(curve) >= 2]


def to_normalized_device_coordinates(points, grid_size):
    """
    Maps grid coordinates [0, grid_size] onto [-1, 1].

    Args:
        points: Array of shape (..., 2).
        grid_size: Side length of the square grid.
    """
    return 2.0 * np.asarray(points, dtype=float) / grid_size - 1.0
