"""
Tensor Field
============

Symmetric traceless 2x2 tensors composed from design elements, and their
eigen-decomposition into major/minor street directions.
"""
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .elements import DesignElement, pack_elements

DEGENERACY_THRESHOLD = 1e-4


@dataclass(frozen=True, slots=True)
class EigenDecomposition:
    """
    Principal directions of a tensor.

    Attributes
    ----------
    major : np.ndarray
        Unit eigenvector of the larger eigenvalue, shape (2,).
    minor : np.ndarray
        Unit eigenvector of the smaller eigenvalue, perpendicular to ``major``.
    magnitude : float
        Frobenius norm of the source tensor.
    """
    major: np.ndarray
    minor: np.ndarray
    magnitude: float

    @property
    def degenerate(self) -> bool:
        """True where the directions are undefined (near-zero tensor)."""
        return self.magnitude < DEGENERACY_THRESHOLD

    def direction(self, follow_major: bool) -> np.ndarray:
        return self.major if follow_major else self.minor


@dataclass(frozen=True, slots=True)
class Tensor:
    """
    Symmetric traceless tensor [[a, b], [b, -a]].

    Any such tensor can be written as r * [[cos 2θ, sin 2θ], [sin 2θ, -cos 2θ]],
    whose major eigenvector points along θ.
    """
    a: float
    b: float

    @property
    def matrix(self) -> np.ndarray:
        return np.array([[self.a, self.b], [self.b, -self.a]])

    def norm(self) -> float:
        """Frobenius norm."""
        return float(np.sqrt(2.0 * (self.a * self.a + self.b * self.b)))

    def eigenvectors(self) -> EigenDecomposition:
        return eigenvectors(self)

    def __add__(self, other: "Tensor") -> "Tensor":
        return Tensor(self.a + other.a, self.b + other.b)

    def __mul__(self, scale: float) -> "Tensor":
        return Tensor(self.a * scale, self.b * scale)

    __rmul__ = __mul__


def eigenvectors(tensor: Tensor) -> EigenDecomposition:
    """
    Major/minor unit directions of ``tensor``.

    Never divides by the tensor magnitude, so a zero tensor yields an arbitrary
    (but finite) orthonormal pair flagged as degenerate.
    """
    theta = 0.5 * np.arctan2(tensor.b, tensor.a)
    c, s = np.cos(theta), np.sin(theta)
    return EigenDecomposition(
        major=np.array([c, s]),
        minor=np.array([-s, c]),
        magnitude=tensor.norm(),
    )


def smoothing_kernel(radius: float) -> np.ndarray:
    """Cross-shaped sampling stencil: the point itself and its four axis neighbours."""
    return np.array([
        [0.0, 0.0],
        [radius, 0.0],
        [-radius, 0.0],
        [0.0, radius],
        [0.0, -radius],
    ])


class TensorField:
    """
    Weighted sum of design element tensors.

    Each element contributes ``exp(-decay * |p - center|^2) * T_element(p)``.
    Evaluation is a pure function of position and the element list.

    Parameters
    ----------
    elements : sequence of DesignElement
        Field generators, in the order they were placed.
    decay : float
        Global decay constant applied to squared distances.
    smoothing_radius : float
        Offset of the neighbouring samples averaged by ``evaluate_smoothed``.
    backend : str
        Compute backend used for point queries ('numpy' or 'numba').
    """
    def __init__(self, elements: Sequence[DesignElement], decay: float = 0.0004,
                 smoothing_radius: float = 1.0, backend: str = "numpy"):
        self.elements = tuple(elements)
        self.decay = float(decay)
        self.smoothing_radius = float(smoothing_radius)
        self.packed = pack_elements(self.elements)
        self.kernel = smoothing_kernel(self.smoothing_radius)
        self.backend_name = backend
        self._methods = None

    @property
    def methods(self):
        if self._methods is None:
            if self.backend_name == "numba":
                from .backends.numba_backend import NumbaMethods
                self._methods = NumbaMethods(self)
            elif self.backend_name == "numpy":
                from .backends.numpy_backend import NumpyMethods
                self._methods = NumpyMethods(self)
            else:
                raise ValueError(f"Unknown backend: {self.backend_name}")
        return self._methods

    def evaluate(self, point) -> Tensor:
        x, y = point
        return Tensor(*self.methods.compute_point(x, y, smoothed=False))

    def evaluate_smoothed(self, point) -> Tensor:
        x, y = point
        return Tensor(*self.methods.compute_point(x, y, smoothed=True))

    def eigenvectors_at(self, point, smoothed: bool = True) -> EigenDecomposition:
        tensor = self.evaluate_smoothed(point) if smoothed else self.evaluate(point)
        return tensor.eigenvectors()

    def is_degenerate(self, point, threshold: float = DEGENERACY_THRESHOLD) -> bool:
        return self.evaluate_smoothed(point).norm() <= threshold

    def evaluate_grid(self, x_vec, y_vec, smoothed: bool = False, progress_bar: bool = False):
        """
        Field components on a rectilinear grid.

        Returns
        -------
        A, B : np.ndarray
            Tensor components of shape (len(y_vec), len(x_vec)).
        """
        return self.methods.compute_grid(x_vec, y_vec, smoothed=smoothed, progress_bar=progress_bar)

    def norm_grid(self, x_vec, y_vec, smoothed: bool = False, progress_bar: bool = False) -> np.ndarray:
        A, B = self.evaluate_grid(x_vec, y_vec, smoothed=smoothed, progress_bar=progress_bar)
        return np.sqrt(2.0 * (A * A + B * B))

    def __repr__(self):
        return f"TensorField(elements={len(self.elements)}, decay={self.decay}, backend='{self.backend_name}')"
