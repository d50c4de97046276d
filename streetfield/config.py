"""
config.py
========================

This module defines the configuration data structures for street plan generation.
It employs strict type checking and validation to ensure parameters are valid
before any tracing begins.

It includes serialization support (JSON), including design elements and
separation profile callables.
"""

import json
import warnings
import numpy as np
from dataclasses import dataclass, field, is_dataclass, fields
from typing import Tuple, List, Dict, Any, Optional, Literal, Callable, Type

from .elements import GridElement, RadialElement, DesignElement, element_from_dict
from .separations import separation_profiles

CURRENT_VERSION = 1
# =========================================================================
#                       VALIDATION HELPERS
# =========================================================================

def _check_scalar(val: Any, name: str, dtype: Type) -> Any:
    """
    Strictly validates a scalar value against a specific type.
    """
    # 1. Booleans are ints in Python, reject them for numeric fields
    if dtype in (int, float) and isinstance(val, (bool, np.bool_)):
        raise TypeError(f"Config Error ['{name}']: Expected {dtype.__name__}, got bool '{val}'")

    # 2. Strict Integer check (prevent floats being passed as ints)
    if dtype is int:
        if not isinstance(val, (int, np.integer)):
            raise TypeError(f"Config Error ['{name}']: "
                            f"Expected strict integer, got {type(val).__name__} '{val}'")

    # 3. Final conversion/check
    try:
        return dtype(val)
    except (ValueError, TypeError):
        raise TypeError(f"Config Error ['{name}']: "
                        f"Cannot convert {type(val).__name__} to {dtype.__name__}")


def _coerce_tuple(val: Any, length: int, name: str, dtype: Type = float) -> Tuple:
    """
    Validates sequences, allows list->tuple, but enforces dtype strictly.
    """
    if not hasattr(val, "__iter__") or isinstance(val, (str, bytes)):
        raise TypeError(f"Config Error ['{name}']: Expected a sequence, got {type(val).__name__}")

    val_list = list(val)
    if len(val_list) != length:
        raise ValueError(f"Config Error ['{name}']: Expected {length} elements, got {len(val_list)}")

    return tuple(_check_scalar(x, f"{name}[{i}]", dtype) for i, x in enumerate(val_list))


def _check_positive(val: Any, name: str, dtype: Type = float, allow_zero: bool = False):
    val = _check_scalar(val, name, dtype)
    if not np.isfinite(val):
        raise ValueError(f"{name} must be finite")
    if val < 0 or (val == 0 and not allow_zero):
        raise ValueError(f"{name} must be {'>=' if allow_zero else '>'} 0")
    return val


# =========================================================================
#                      SAVING/LOADING CONFIGS
# =========================================================================
class SerializableConfig:
    """
    Base class providing JSON serialization.
    Can serialize/deserialize Python function references (module + name)
    and design elements.
    """
    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a dictionary."""
        out = {}
        if self.__class__.__name__ == "Config":
            out["__version__"] = CURRENT_VERSION

        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = self._serialize_value(value)
        return out

    def _serialize_value(self, val):
        """Recursive helper for serialization."""
        if val is None:
            return None
        elif isinstance(val, (GridElement, RadialElement)):
            return {"__element__": True, **val.to_dict()}
        elif is_dataclass(val):
            return val.to_dict()
        elif callable(val):
            return self._serialize_callable(val)
        elif isinstance(val, (list, tuple, np.ndarray)):
            if isinstance(val, np.ndarray): val = val.tolist()
            return [self._serialize_value(item) for item in val]
        elif isinstance(val, dict):
            return {k: self._serialize_value(v) for k, v in val.items()}
        elif isinstance(val, np.generic):
            return val.item()
        else:
            return val

    def _serialize_callable(self, func):
        if func is None: return None

        for attr_name in dir(separation_profiles):
            # Avoid unnecessary introspection on non-callables
            if attr_name.startswith("__"): continue
            attr = getattr(separation_profiles, attr_name)
            if attr is func:
                return {
                    "__callable__": True,
                    "type": "builtin",
                    "name": attr_name,
                }

        return {"__callable__": True, "type": "custom", "name": getattr(func, "__name__", repr(func))}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Reconstruct configuration from a dictionary."""
        data = dict(data)
        # 1. Version Check
        if "__version__" in data:
            version = data.pop("__version__")
            if version != CURRENT_VERSION:
                data = cls._migrate(data, version)

        # 2. Strict Typo Checking
        valid_fields = {f.name for f in fields(cls)}
        incoming_fields = set(data.keys())
        unknown = incoming_fields - valid_fields
        if unknown:
            raise ValueError(f"Unknown configuration fields for {cls.__name__}: {unknown}")

        # 3. Explicit Registry
        sub_classes = {
            'grid': GridConfig,
            'tensor_field': FieldConfig,
            'separation': SeparationConfig,
            'trace': TraceConfig,
            'smoothing': SmoothingConfig,
            'clip': ClipConfig,
            'merge': MergeConfig,
            'seeding': SeedConfig,
            'random': RandomConfig,
        }

        init_args = {}
        for k, v in data.items():
            if v is None:
                init_args[k] = None

            elif k in sub_classes and isinstance(v, dict) and cls is Config:
                init_args[k] = sub_classes[k].from_dict(v)

            else:
                init_args[k] = cls._deserialize_value(v)

        return cls(**init_args)

    @staticmethod
    def _migrate(data: Dict[str, Any], version: int) -> Dict[str, Any]:
        if version > CURRENT_VERSION:
            raise ValueError("Config version is newer than supported.")
        # future migrations go here
        raise ValueError(f"Unsupported config version: {version}")

    @classmethod
    def _deserialize_value(cls, val):
        """Recursive helper for deserialization."""
        if val is None:
            return None

        if isinstance(val, dict):
            if val.get("__element__"):
                return element_from_dict({k: v for k, v in val.items() if k != "__element__"})

            if val.get("__callable__"):
                return cls._deserialize_callable(val)

            return {k: cls._deserialize_value(v) for k, v in val.items()}

        elif isinstance(val, list):
            return [cls._deserialize_value(item) for item in val]

        return val

    @staticmethod
    def custom_callable_fail(*args, **kwargs):
        """Dummy callable as a placeholder for custom functions while deserializing from json."""
        raise RuntimeError(
            "Custom callable(s) not initialized properly! You must redefine it before execution."
            )

    @staticmethod
    def _deserialize_callable(data):
        """Restores functions from separations.py."""
        if data.get("type") == "custom":
            warnings.warn(
                f"Custom callable '{data.get('name')}' found in json. "
                "It must be redefined before execution.",
                UserWarning
            )
            # Return the dummy failure function instead of None
            return SerializableConfig.custom_callable_fail

        target_name = data.get("name")
        if target_name and hasattr(separation_profiles, target_name):
            return getattr(separation_profiles, target_name)

        raise RuntimeError("Deserializing callable failed. Callable must be from separations.py or have type 'custom'. ")

    def save(self, filename: str):
        """Saves the config dataclass as json at filename"""
        with open(filename, 'w') as f:
            json.dump(self.to_dict(), f, indent=4)

    @classmethod
    def load(cls, filename: str):
        """Loads json at filename into the config data class : cls"""
        with open(filename, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

# =========================================================================
#                       CONFIGURATION CLASSES
# =========================================================================

@dataclass(slots=True)
class GridConfig(SerializableConfig):
    """
    Grid Configuration.

    Attributes
    ----------
    size : int
        Side length of the square grid [0, size] x [0, size].
    """
    size: int = 512

    def validate(self):
        self.size = _check_positive(self.size, "grid.size", int)

    def __post_init__(self):
        self.validate()

@dataclass(slots=True)
class FieldConfig(SerializableConfig):
    """
    Tensor Field Configuration.

    Attributes
    ----------
    decay : float
        Global decay constant: each element is weighted by exp(-decay * d^2).
    smoothing_radius : float
        Offset of the neighbouring samples averaged by the smoothed evaluation.
    degeneracy_threshold : float
        Tensor norm below which the field is considered degenerate.
    elements : list of DesignElement
        Field generators.
    """
    decay: float = 0.0004
    smoothing_radius: float = 1.0
    degeneracy_threshold: float = 1e-4
    elements: List[DesignElement] = field(default_factory=list)

    def add_grid(self, center: Tuple[float, float], angle: float = 0.0, length: float = 100.0):
        """Append a grid element."""
        self.elements.append(GridElement(center, angle=angle, length=length))
        return self

    def add_radial(self, center: Tuple[float, float]):
        """Append a radial element."""
        self.elements.append(RadialElement(center))
        return self

    def validate(self):
        """Performs strict type and value checking."""
        self.decay = _check_positive(self.decay, "field.decay", float, allow_zero=True)
        self.smoothing_radius = _check_positive(self.smoothing_radius, "field.smoothing_radius", float)
        self.degeneracy_threshold = _check_positive(
            self.degeneracy_threshold, "field.degeneracy_threshold", float
        )

        elements = []
        for i, element in enumerate(self.elements):
            if isinstance(element, dict):
                element = element_from_dict(element)
            if not isinstance(element, (GridElement, RadialElement)):
                raise TypeError(f"Config Error ['field.elements[{i}]']: "
                                f"Expected a design element, got {type(element).__name__}")
            elements.append(element)
        self.elements = elements

    def __post_init__(self):
        self.validate()

@dataclass(slots=True)
class SeparationConfig(SerializableConfig):
    """
    Separation distance profile shared by the tracer and the clip pass.

    ``fn(point, **params)`` must return a positive float.
    """
    fn: Callable = field(default=separation_profiles.constant)
    params: Dict[str, Any] = field(default_factory=lambda: {"d_sep": 16.0})

    def constant(self, d_sep: float = 16.0):
        """Set a uniform separation distance."""
        self.fn = separation_profiles.constant
        self.params = {'d_sep': d_sep}
        self.validate()
        return self

    def center_scaled(self, d_sep: float, center: Tuple[float, float], grid_size: float, scale: float = 15.0):
        """Set a separation growing with the distance from ``center``."""
        self.fn = separation_profiles.center_scaled
        self.params = {'d_sep': d_sep, 'center': list(center), 'grid_size': grid_size, 'scale': scale}
        self.validate()
        return self

    def custom(self, fn: Callable, **params):
        """Set a user-defined separation profile."""
        self.fn = fn
        self.params = params
        self.validate()
        return self

    def as_function(self) -> Callable:
        """Bind the parameters: returns ``d_sep(point) -> float``."""
        fn, params = self.fn, dict(self.params)
        def d_sep(point):
            return fn(point, **params)
        return d_sep

    @property
    def base_distance(self) -> float:
        """Separation used where a single representative value is needed."""
        if "d_sep" in self.params:
            return float(self.params["d_sep"])
        return float(self.fn(np.zeros(2), **self.params))

    def validate(self):
        """Validates the separation profile with a test point."""
        if getattr(self.fn, '__name__', '').endswith('fail'):
            return

        try:
            result = self.fn(np.array([1.0, 1.0]), **self.params)
            if not np.isscalar(result):
                raise ValueError(f"Separation profile must return a scalar. Got {type(result)}.")
            if not np.isfinite(result) or result <= 0:
                raise ValueError(f"Separation profile returned non-positive value: {result}")
        except Exception as e:
            raise RuntimeError(
                f"Separation profile failed validation: {e}\n"
                f"Ensure signature is: fn(point: np.ndarray, **params) -> float"
            ) from e

    def __post_init__(self):
        self.validate()

@dataclass(slots=True)
class TraceConfig(SerializableConfig):
    """
    Streamline Tracer Configuration.

    Attributes
    ----------
    step_size : float
        RK4 step length h.
    max_length : float
        Maximum arc length of a single trace.
    iterations : int
        Number of trace iterations; even iterations trace major streamlines,
        odd iterations minor ones.
    city_center : tuple[float, float] or None
        Anchor used for seed priorities. Defaults to the first radial element,
        otherwise to the grid center.
    workers : int or None
        Upper bound of the tracing thread pool. None lets the executor decide.
    """
    step_size: float = 0.2
    max_length: float = 200.0
    iterations: int = 16
    city_center: Optional[Tuple[float, float]] = None
    workers: Optional[int] = None

    def validate(self):
        """Performs strict type and value checking."""
        self.step_size = _check_positive(self.step_size, "trace.step_size", float)
        self.max_length = _check_positive(self.max_length, "trace.max_length", float)
        self.iterations = _check_positive(self.iterations, "trace.iterations", int, allow_zero=True)
        if self.city_center is not None:
            self.city_center = _coerce_tuple(self.city_center, 2, "trace.city_center", float)
        if self.workers is not None:
            self.workers = _check_positive(self.workers, "trace.workers", int)

    def __post_init__(self):
        self.validate()

@dataclass(slots=True)
class SmoothingConfig(SerializableConfig):
    """
    Curve smoothing and Hermite fitting parameters.

    Attributes
    ----------
    alpha : float
        Tangent disagreement (1 - cos) above which a point is nudged (pass 1).
    beta : float
        Unit tangent difference above which a point is averaged with its neighbours (pass 2).
    point_side_padding : int
        Minimum index distance between selected control points.
    blend_factor : float
        Weight of the summed forward/backward differences at interior control points.
    """
    alpha: float = 0.03
    beta: float = 0.3
    point_side_padding: int = 20
    blend_factor: float = 0.7

    def validate(self):
        """Performs strict type and value checking."""
        self.alpha = _check_positive(self.alpha, "smoothing.alpha", float)
        self.beta = _check_positive(self.beta, "smoothing.beta", float)
        self.point_side_padding = _check_positive(self.point_side_padding, "smoothing.point_side_padding", int)
        self.blend_factor = _check_positive(self.blend_factor, "smoothing.blend_factor", float, allow_zero=True)

    def __post_init__(self):
        self.validate()

@dataclass(slots=True)
class ClipConfig(SerializableConfig):
    """
    Clip pass thresholds.

    Attributes
    ----------
    min_length_factor : float
        Clipped curves shorter than ``min_length_factor * d_sep`` are discarded.
    start_tolerance : float
        A curve is dropped when its first control point is closer than
        ``start_tolerance * d_sep^2`` (squared distance) to an obstacle.
    """
    min_length_factor: float = 2.0
    start_tolerance: float = 0.85

    def validate(self):
        self.min_length_factor = _check_positive(self.min_length_factor, "clip.min_length_factor", float, allow_zero=True)
        self.start_tolerance = _check_positive(self.start_tolerance, "clip.start_tolerance", float, allow_zero=True)
        if self.start_tolerance > 1.0:
            warnings.warn("clip.start_tolerance > 1 rejects curves the tracer accepted.", UserWarning)

    def __post_init__(self):
        self.validate()

@dataclass(slots=True)
class MergeConfig(SerializableConfig):
    """
    Endpoint merging.

    Attributes
    ----------
    connection_distance : float
        Curve ends closer than this to a target curve are snapped onto it.
    """
    connection_distance: float = 20.0

    def validate(self):
        self.connection_distance = _check_positive(self.connection_distance, "merge.connection_distance", float)

    def __post_init__(self):
        self.validate()

@dataclass(slots=True)
class SeedConfig(SerializableConfig):
    """
    Initial seed placement and prioritisation.

    Attributes
    ----------
    mode : 'fixed' or 'random'
        'fixed' uses a built-in deterministic point set scaled to the grid,
        'random' uses farthest-point sampling.
    count : int
        Number of sampled seeds in 'random' mode.
    sector_count : int
        Sectors per grid side for the degenerate point search.
    center_falloff : float
        Length scale of the city-center priority term exp(-d / falloff).
    degenerate_falloff : float
        Length scale of the degenerate point priority term.
    """
    mode: Literal["fixed", "random"] = "fixed"
    count: int = 30
    sector_count: int = 16
    center_falloff: float = 64.0
    degenerate_falloff: float = 64.0

    def validate(self):
        """Performs strict type and value checking."""
        self.mode = str(self.mode).lower()
        if self.mode not in ["fixed", "random"]:
            raise ValueError("seeding.mode must be 'fixed' or 'random'.")
        self.count = _check_positive(self.count, "seeding.count", int)
        self.sector_count = _check_positive(self.sector_count, "seeding.sector_count", int)
        self.center_falloff = _check_positive(self.center_falloff, "seeding.center_falloff", float)
        self.degenerate_falloff = _check_positive(self.degenerate_falloff, "seeding.degenerate_falloff", float)

    def __post_init__(self):
        self.validate()

@dataclass(slots=True)
class RandomConfig(SerializableConfig):
    """
    Stochastic Process Configuration.

    Attributes
    ----------
    seed : int
        Seed for the random number generator (seed sampling, sweep structures).
    """
    seed: int = 24459

    def validate(self):
        """Performs strict type checking."""
        self.seed = _check_scalar(self.seed, "random.seed", int)

    def __post_init__(self):
        self.validate()

@dataclass(slots=True)
class Config(SerializableConfig):
    """
    Main streetfield Configuration.

    Aggregates all sub-configurations and computational settings.

    Attributes
    ----------
    backend : str
        Computational backend. Options: "auto", "numpy", "numba".
    grid : GridConfig
        Grid extent.
    tensor_field : FieldConfig
        Design elements and field parameters.
    separation : SeparationConfig
        Separation distance profile.
    trace : TraceConfig
        Tracer settings.
    smoothing : SmoothingConfig
        Curve smoothing/fitting settings.
    clip : ClipConfig
        Clip pass thresholds.
    merge : MergeConfig
        Endpoint merging settings.
    seeding : SeedConfig
        Initial seed settings.
    random : RandomConfig
        Stochastic settings.
    verbose : bool
        If True, prints progress details.
    """
    backend: Literal["auto", "numpy", "numba"] = "auto"
    grid: GridConfig = field(default_factory=GridConfig)
    tensor_field: FieldConfig = field(default_factory=FieldConfig)
    separation: SeparationConfig = field(default_factory=SeparationConfig)
    trace: TraceConfig = field(default_factory=TraceConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    clip: ClipConfig = field(default_factory=ClipConfig)
    merge: MergeConfig = field(default_factory=MergeConfig)
    seeding: SeedConfig = field(default_factory=SeedConfig)
    random: RandomConfig = field(default_factory=RandomConfig)
    verbose: bool = False

    def validate(self):
        """
        Cascades validation through all children and checks global consistency.
        """
        # Cascade
        self.grid.validate()
        self.tensor_field.validate()
        self.separation.validate()
        self.trace.validate()
        self.smoothing.validate()
        self.clip.validate()
        self.merge.validate()
        self.seeding.validate()
        self.random.validate()

        # Backend Check
        self.backend = str(self.backend).lower()
        allowed = ["numba", "numpy", "auto"]
        if self.backend not in allowed:
            raise ValueError(f"Invalid backend: {self.backend}. Must be one of {allowed}")

        # Resolution Check
        if getattr(self.separation.fn, "__name__", "").endswith("fail"):
            return
        if self.trace.step_size > self.separation.base_distance:
            warnings.warn(
                f"Step size ({self.trace.step_size}) is larger than the separation "
                f"distance ({self.separation.base_distance}). Streamlines may jump over each other.",
                UserWarning
            )

    @property
    def city_center(self) -> Tuple[float, float]:
        """Explicit city center, else the first radial element, else the grid center."""
        if self.trace.city_center is not None:
            return self.trace.city_center
        for element in self.tensor_field.elements:
            if isinstance(element, RadialElement):
                return element.center
        half = self.grid.size / 2.0
        return (half, half)

    def __post_init__(self):
        self.validate()

def get_config() -> Config:
    """
    Factory function to create a default configuration.

    Returns
    -------
    Config
        Initialized with default values.
    """
    return Config()

def load_config(filename: str) -> Config:
    """
    Load a streetfield configuration from a JSON file.

    Parameters
    ----------
    filename : str
        Path to the saved JSON configuration file.

    Returns
    -------
    Config
        The configuration object.
    """
    return Config.load(filename)
