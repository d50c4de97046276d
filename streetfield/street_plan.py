"""
Street Plan
===========

Iteration loop that turns a tensor field into a network of major and minor
streets: seed prioritisation, parallel tracing, smoothing, clipping and
reseeding, alternating between the two eigenvector families.
"""
import time
import warnings
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
from tqdm import tqdm

from .clipping import clip_pass, merge_road_endings
from .config import Config
from .curves import HermiteCurve, resample_curve, smooth_lanes
from .engine import FieldEngine
from .seeding import (
    SeedPoint,
    SeedQueue,
    default_seed_points,
    distribute_points,
    prioritize_points,
)
from .singularities import DegeneratePointFinder
from .tracer import trace_lanes


@dataclass(slots=True)
class StreetPlan:
    """
    Curves generated by one run of the planner.

    Attributes
    ----------
    major_curves : list of HermiteCurve
        Streets following the major eigenvector field.
    minor_curves : list of HermiteCurve
        Streets following the minor eigenvector field.
    """
    major_curves: List[HermiteCurve] = field(default_factory=list)
    minor_curves: List[HermiteCurve] = field(default_factory=list)

    @property
    def curves(self) -> List[HermiteCurve]:
        return self.major_curves + self.minor_curves

    def __len__(self):
        return len(self.major_curves) + len(self.minor_curves)

    def polylines(self, points_per_spline: int = 10) -> List[np.ndarray]:
        """Dense point sequences of every curve, major curves first."""
        return [resample_curve(curve, points_per_spline) for curve in self.curves]


class StreetPlanner:
    """
    Generates a street plan from a Config.

    Even iterations trace major streamlines, odd iterations minor ones. Every
    iteration traces the whole seed queue in priority order against the
    accepted curves of its own family; clipped survivors are appended to that
    family and their seeds re-enter the queue with priority 0.

    Parameters
    ----------
    config : Config
        Full configuration (field, tracing, smoothing, clipping, seeding).

    Example
    -------
    ```
    config = get_config()
    config.tensor_field.add_grid((256.0, 256.0), angle=0.3, length=400.0)
    plan = StreetPlanner(config).run()
    ```
    """
    def __init__(self, config: Config):
        self.config = config
        self.engine = FieldEngine(config)
        self.field = self.engine.field
        self.backend_name = self.engine.backend_name
        self.grid_size = config.grid.size
        self.separation_fn = config.separation.as_function()
        self.rng = np.random.default_rng(config.random.seed)
        self.degenerate_finder = DegeneratePointFinder(
            self.field,
            self.grid_size,
            sector_count=config.seeding.sector_count,
            threshold=config.tensor_field.degeneracy_threshold,
        )

        if not self.field.elements:
            warnings.warn("Tensor field has no design elements. Every trace will stop at its seed.",
                          UserWarning)

        if config.verbose:
            print(f"--- StreetPlanner Initialized (Backend: {self.backend_name}, "
                  f"Grid: {self.grid_size}, Iterations: {config.trace.iterations}) ---")

    @property
    def min_length(self) -> float:
        """Shortest clipped curve that is kept."""
        return self.config.clip.min_length_factor * self.config.separation.base_distance

    # --- Seeds ---
    def initial_points(self) -> np.ndarray:
        """Seed positions before prioritisation, from the configured seeding mode."""
        if self.config.seeding.mode == "random":
            return distribute_points(self.config.seeding.count, self.grid_size, rng=self.rng)
        return default_seed_points(self.grid_size)

    def initial_seeds(self, points=None) -> SeedQueue:
        """Prioritised seed queue; degenerate positions are dropped."""
        if points is None:
            points = self.initial_points()
        return prioritize_points(
            points,
            self.config.city_center,
            self.field,
            self.degenerate_finder,
            center_falloff=self.config.seeding.center_falloff,
            degenerate_falloff=self.config.seeding.degenerate_falloff,
            threshold=self.config.tensor_field.degeneracy_threshold,
        )

    # --- Iterations ---
    def trace_iteration(self, queue: SeedQueue, follow_major: bool,
                        accepted: Sequence[HermiteCurve]):
        """
        One trace, smooth and clip round.

        Returns
        -------
        curves : list of HermiteCurve
            Clipped curves accepted this round.
        seeds : list of SeedPoint
            Seeds contributed by the accepted curves.
        """
        cfg = self.config
        ordered = queue.ordered()
        traces = trace_lanes(
            [seed.position for seed in ordered],
            self.field,
            cfg.trace.step_size,
            self.separation_fn,
            follow_major,
            cfg.trace.max_length,
            accepted,
            self.grid_size,
            max_workers=cfg.trace.workers,
            threshold=cfg.tensor_field.degeneracy_threshold,
        )
        smoothed = smooth_lanes(
            traces,
            cfg.smoothing.alpha,
            cfg.smoothing.beta,
            cfg.smoothing.point_side_padding,
            cfg.trace.step_size,
            cfg.smoothing.blend_factor,
        )
        clipped = clip_pass(
            smoothed,
            accepted,
            self.separation_fn,
            self.min_length,
            start_tolerance=cfg.clip.start_tolerance,
            backend=self.backend_name,
        )

        curves = [curve for curve, _ in clipped]
        seeds = [SeedPoint(position=position, priority=0.0, follow_major=follow_major)
                 for _, positions in clipped for position in positions]

        if cfg.verbose:
            emitted = sum(len(t.new_seeds) for t in traces)
            family = "major" if follow_major else "minor"
            tqdm.write(f"Traced {len(ordered)} seeds ({family}) | kept {len(curves)} curves | "
                       f"seeds {emitted} -> {len(seeds)}")

        return curves, seeds

    def run(self, seeds=None, previous_major_curves: Sequence[HermiteCurve] = (),
            previous_minor_curves: Sequence[HermiteCurve] = ()) -> StreetPlan:
        """
        Runs the configured number of iterations.

        Parameters
        ----------
        seeds : SeedQueue or iterable of SeedPoint, optional
            Starting queue. Defaults to ``initial_seeds()``. A given queue is
            copied, never extended in place.
        previous_major_curves, previous_minor_curves : sequence of HermiteCurve
            Already accepted curves. They act as obstacles but are not part of
            the returned plan.

        Returns
        -------
        StreetPlan
            Only the curves generated by this run.
        """
        if seeds is None:
            queue = self.initial_seeds()
        elif isinstance(seeds, SeedQueue):
            queue = SeedQueue(seeds.ordered())
        else:
            queue = SeedQueue(seeds)

        major_curves = list(previous_major_curves)
        minor_curves = list(previous_minor_curves)
        prev_major_len = len(major_curves)
        prev_minor_len = len(minor_curves)

        if self.config.verbose:
            print(f"Starting street plan with {len(queue)} seeds")
            t0 = time.time()

        iterations = range(self.config.trace.iterations)
        for i in tqdm(iterations, disable=not self.config.verbose, desc="Iterations"):
            follow_major = (i % 2) == 0
            accepted = major_curves if follow_major else minor_curves
            curves, new_seeds = self.trace_iteration(queue, follow_major, accepted)
            queue.extend(new_seeds)
            accepted.extend(curves)

        plan = StreetPlan(
            major_curves=major_curves[prev_major_len:],
            minor_curves=minor_curves[prev_minor_len:],
        )

        if self.config.verbose:
            print(f"Street plan complete in {time.time() - t0:.4f}s | "
                  f"major: {len(plan.major_curves)} | minor: {len(plan.minor_curves)}")

        return plan

    def merge_endings(self, plan: StreetPlan, connection_distance: Optional[float] = None) -> StreetPlan:
        """
        Snaps the dangling ends of each family onto the other family.

        Returns a new StreetPlan; ``plan`` is left untouched.
        """
        if connection_distance is None:
            connection_distance = self.config.merge.connection_distance
        return StreetPlan(
            major_curves=merge_road_endings(plan.major_curves, plan.minor_curves,
                                            connection_distance, backend=self.backend_name),
            minor_curves=merge_road_endings(plan.minor_curves, plan.major_curves,
                                            connection_distance, backend=self.backend_name),
        )
