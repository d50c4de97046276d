"""
separations.py
========================

Separation distance profiles used by the tracer and the clip pass.

A separation profile maps a grid position to the minimum distance a new
streamline must keep from every accepted streamline of the same family.
"""
import numpy as np


class separation_profiles:
    """
    Implementations of separation distance profiles.

    All functions take a point (array-like of shape (2,)) plus profile
    parameters and return a positive float.
    """

    @staticmethod
    def constant(point, d_sep: float) -> float:
        """
        Uniform separation over the whole grid.

        Formula:
            d(p) = d_sep

        Parameters
        ----------
        point : array-like
            Query position (ignored).
        d_sep : float
            Separation distance in grid units.
        """
        return float(d_sep)

    @staticmethod
    def center_scaled(point, d_sep: float, center, grid_size: float, scale: float = 15.0) -> float:
        """
        Separation that grows linearly with the distance from a city center.

        Streets are packed densely near the center and spread out towards the
        edge of the grid.

        Formula:
            d(p) = d_sep + scale * |p - center| / grid_size

        Parameters
        ----------
        point : array-like
            Query position.
        d_sep : float
            Separation at the center.
        center : tuple[float, float]
            City center.
        grid_size : float
            Side length of the grid, used to normalise the distance.
        scale : float
            Additional separation reached at one grid length from the center.
        """
        offset = np.asarray(point, dtype=float) - np.asarray(center, dtype=float)
        return float(d_sep + np.hypot(offset[0], offset[1]) / grid_size * scale)
