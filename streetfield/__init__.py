"""
streetfield - Tensor Field Street Network Generation
====================================================

A Python library that grows road networks from a 2D tensor field: design
elements define the field, streamlines of its eigenvector fields become
streets, and a clipping pipeline keeps them apart.

Public API
----------
Main workflow:
    >>> from streetfield import get_config, setup_street_plan
    >>> config = get_config()
    >>> config.tensor_field.add_grid((100.0, 100.0), angle=-2.1, length=500.0)
    >>> config.tensor_field.add_radial((200.0, 200.0))
    >>> planner = setup_street_plan(config)
    >>> plan = planner.run()
    >>> polylines = plan.polylines(points_per_spline=10)
"""

__version__ = "0.0.0"

# Core configuration
from .config import (
    Config,
    GridConfig,
    FieldConfig,
    SeparationConfig,
    TraceConfig,
    SmoothingConfig,
    ClipConfig,
    MergeConfig,
    SeedConfig,
    RandomConfig,
    get_config,
    load_config
)

# Field model
from .elements import GridElement, RadialElement
from .tensor_field import Tensor, EigenDecomposition, TensorField, eigenvectors
from .engine import FieldEngine
from .separations import separation_profiles

# Tracing & post-processing
from .seeding import SeedPoint, SeedQueue, distribute_points, prioritize_points
from .singularities import DegeneratePointFinder
from .tracer import TraceOutput, trace, trace_lanes
from .curves import ControlPoint, smooth_path, highest_curvature_points, resample_curve
from .clipping import CurveObstacles, clip_pass, merge_road_endings
from .street_plan import StreetPlan, StreetPlanner

# Sweep structure
from .status import SkipList

# Utilities
from .utils import (
    field_magnitude_mask,
    eigenvector_glyphs,
    curves_to_polylines,
)

def setup_street_plan(config: Config) -> StreetPlanner:
    """
    High-level wrapper to build the tensor field and initialize the planner.
    """
    return StreetPlanner(config)


__all__ = [
    # Config
    "Config",
    "GridConfig",
    "FieldConfig",
    "SeparationConfig",
    "TraceConfig",
    "SmoothingConfig",
    "ClipConfig",
    "MergeConfig",
    "SeedConfig",
    "RandomConfig",
    "get_config",
    "load_config",

    # Field model
    "GridElement",
    "RadialElement",
    "Tensor",
    "EigenDecomposition",
    "TensorField",
    "eigenvectors",
    "FieldEngine",
    "separation_profiles",

    # Street plan pipeline
    "setup_street_plan",
    "StreetPlanner",
    "StreetPlan",
    "SeedPoint",
    "SeedQueue",
    "distribute_points",
    "prioritize_points",
    "DegeneratePointFinder",
    "TraceOutput",
    "trace",
    "trace_lanes",
    "ControlPoint",
    "smooth_path",
    "highest_curvature_points",
    "resample_curve",
    "CurveObstacles",
    "clip_pass",
    "merge_road_endings",

    # Sweep structure
    "SkipList",

    # Utilities
    "field_magnitude_mask",
    "eigenvector_glyphs",
    "curves_to_polylines",
]
