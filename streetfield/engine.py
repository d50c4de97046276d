"""
Field Engine
============

Builds the tensor field described by a Config and routes bulk evaluations
to the chosen hardware backend.
"""
import time
import numpy as np

from .config import Config
from .tensor_field import TensorField

# Import backends
from .backends.numpy_backend import NumpyMethods
from .backends.numba_backend import NumbaMethods


class FieldEngine:
    """
    Main engine for evaluating the tensor field over the grid.
    """
    def __init__(self, config: Config):
        self.config = config

        self.backend_name = self.selector(self.config.backend)
        self.field = TensorField(
            self.config.tensor_field.elements,
            decay=self.config.tensor_field.decay,
            smoothing_radius=self.config.tensor_field.smoothing_radius,
            backend=self.backend_name,
        )
        if self.config.verbose:
            print(f"--- FieldEngine Initialized (Backend: {self.backend_name}, "
                  f"Elements: {len(self.field.elements)}) ---")

        size = self.config.grid.size
        self.x = np.arange(size, dtype=float)
        self.y = np.arange(size, dtype=float)
        self.grid_extent = [0.0, float(size), 0.0, float(size)]

    def selector(self, choice: str):
        choice = choice.lower()
        if choice in ("auto", "numba"):
            return "numba"
        elif choice == "numpy":
            return "numpy"
        else:
            raise ValueError(f"Backend '{choice}' is not supported.")

    def get_backend(self, backend_name=None):
        if not backend_name: backend_name = self.backend_name
        if backend_name == self.backend_name:
            return self.field.methods
        if backend_name == "numba":
            return NumbaMethods(self.field)
        elif backend_name == "numpy":
            return NumpyMethods(self.field)
        else:
            raise ValueError(f"Unknown backend: {backend_name}")

    def in_bounds(self, point) -> bool:
        size = self.config.grid.size
        return 0.0 <= point[0] <= size and 0.0 <= point[1] <= size

    def compute_on_grid(self, smoothed: bool = False, backend_name: str | None = None):
        """
        Evaluates the tensor components on every integer lattice point of the grid.

        Parameters
        ----------
        smoothed : If True, averages the smoothing stencil at every sample.
        backend_name : Optional, for switching backend post initialization.

        Returns
        -------
        A, B : np.ndarray
            Components of [[a, b], [b, -a]], each of shape (size, size) indexed [y, x].
        """
        backend = self.get_backend(backend_name)

        if self.config.verbose:
            print(f"Grid: {len(self.x)}x{len(self.y)} points | Smoothed: {smoothed}")
            t0 = time.time()

        A, B = backend.compute_grid(self.x, self.y, smoothed=smoothed,
                                    progress_bar=self.config.verbose)

        if self.config.verbose:
            print(f"Grid computation complete in {time.time() - t0:.4f}s")

        return A, B

    def compute_grid(self, x_vec, y_vec, smoothed: bool = False, backend_name: str | None = None):
        """Direct wrapper to compute on a custom rectilinear grid."""
        backend = self.get_backend(backend_name)
        return backend.compute_grid(x_vec, y_vec, smoothed=smoothed,
                                    progress_bar=self.config.verbose)

    def compute_cloud(self, x_arr, y_arr, smoothed: bool = False, backend_name: str | None = None):
        """
        Field components for N arbitrary points (cloud).

        Returns
        -------
        A, B : np.ndarray
            Components of shape (N,).
        """
        backend = self.get_backend(backend_name)
        return backend.compute_cloud(x_arr, y_arr, smoothed=smoothed,
                                     progress_bar=self.config.verbose)

    def compute_point(self, x: float, y: float, smoothed: bool = False, backend_name: str | None = None):
        """Field components (a, b) at a single point."""
        backend = self.get_backend(backend_name)
        return backend.compute_point(x, y, smoothed=smoothed)

    def magnitude_on_grid(self, smoothed: bool = False) -> np.ndarray:
        """Frobenius norm of the field on the grid lattice, shape (size, size)."""
        A, B = self.compute_on_grid(smoothed=smoothed)
        return np.sqrt(2.0 * (A * A + B * B))
