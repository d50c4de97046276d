"""
Design Elements
===============

Field generators a designer places over the grid. Each element contributes a
locally weighted tensor to the :class:`~streetfield.tensor_field.TensorField`.
"""
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

import numpy as np

GRID_KIND = 0
RADIAL_KIND = 1


@dataclass(frozen=True, slots=True)
class GridElement:
    """
    Produces a rotated grid pattern: major eigenvector along ``angle``,
    minor eigenvector perpendicular to it.

    Attributes
    ----------
    center : tuple[float, float]
        Position of the element.
    angle : float
        Rotation of the grid in radians.
    length : float
        Radius of influence. The contribution vanishes beyond it.
    """
    center: Tuple[float, float]
    angle: float = 0.0
    length: float = 100.0

    kind = "grid"

    def __post_init__(self):
        object.__setattr__(self, "center", _as_center(self.center, "grid.center"))
        if self.length <= 0:
            raise ValueError("grid.length must be > 0")

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "center": list(self.center),
                "angle": float(self.angle), "length": float(self.length)}


@dataclass(frozen=True, slots=True)
class RadialElement:
    """
    Produces a radial pattern: major eigenvectors circle ``center``, minor
    eigenvectors radiate from it. The center itself is a degenerate point.
    """
    center: Tuple[float, float]

    kind = "radial"

    def __post_init__(self):
        object.__setattr__(self, "center", _as_center(self.center, "radial.center"))

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "center": list(self.center)}


DesignElement = Union[GridElement, RadialElement]


def _as_center(val, name: str) -> Tuple[float, float]:
    arr = np.asarray(val, dtype=float)
    if arr.shape != (2,):
        raise ValueError(f"Config Error ['{name}']: Expected 2 coordinates, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"Config Error ['{name}']: Coordinates must be finite")
    return (float(arr[0]), float(arr[1]))


def element_from_dict(data: Dict[str, Any]) -> DesignElement:
    """Rebuild a design element from the output of ``to_dict``."""
    data = dict(data)
    kind = data.pop("kind", None)
    if kind == GridElement.kind:
        return GridElement(**data)
    elif kind == RadialElement.kind:
        return RadialElement(**data)
    raise ValueError(f"Unknown design element kind: {kind!r}")


def pack_elements(elements) -> Tuple[np.ndarray, ...]:
    """
    Flattens elements into the parallel arrays consumed by the compute kernels.

    Returns
    -------
    kinds : np.ndarray (int64)
        GRID_KIND or RADIAL_KIND per element.
    cx, cy : np.ndarray
        Element centers.
    cos2, sin2 : np.ndarray
        Grid basis (cos 2θ, sin 2θ). Unused for radial elements.
    lengths : np.ndarray
        Grid radius of influence. Unused for radial elements.
    """
    n = len(elements)
    kinds = np.empty(n, dtype=np.int64)
    cx, cy = np.empty(n), np.empty(n)
    cos2, sin2 = np.zeros(n), np.zeros(n)
    lengths = np.zeros(n)

    for i, element in enumerate(elements):
        cx[i], cy[i] = element.center
        if isinstance(element, GridElement):
            kinds[i] = GRID_KIND
            cos2[i] = np.cos(2.0 * element.angle)
            sin2[i] = np.sin(2.0 * element.angle)
            lengths[i] = element.length
        elif isinstance(element, RadialElement):
            kinds[i] = RADIAL_KIND
        else:
            raise TypeError(f"Unsupported design element: {type(element).__name__}")

    return kinds, cx, cy, cos2, sin2, lengths
