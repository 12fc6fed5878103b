"""TrackEngine — time-stepping driver for pytrackit.

Assembles the sampler, integrator, uphill restriction, stopping rules and
trajectory store, and runs the step-sequential loop:

    sample field at previous snapshot → Euler advection → uphill
    correction → boundary / sedimentation stops → store

Each step takes the previous snapshot and produces a new one; the loop
ends when every particle has a stop step or the horizon is exhausted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from pytrackit.core.integrator import EulerIntegrator
from pytrackit.core.models import (
    ConfigurationError,
    CurrentField,
    InvalidCoordinateError,
    SedimentationParams,
    TrackConfig,
    TrackResult,
    TrackStatus,
)
from pytrackit.core.sampler import FieldSample, VelocityFieldSampler
from pytrackit.core.spatial_index import KDTreeIndex, build_field_indices
from pytrackit.core.store import TrajectoryStore
from pytrackit.physics.boundary import BoundaryHandler
from pytrackit.physics.sedimentation import SedimentationModule, build_sedimentation_params
from pytrackit.physics.uphill import UphillRestriction

logger = logging.getLogger(__name__)


@dataclass
class StepOutcome:
    """Result of advancing one snapshot by one step."""
    positions: np.ndarray   # (N, 3) new snapshot
    sample: FieldSample     # field values at the previous snapshot
    cells: Optional[np.ndarray]  # (N,) horizontal cell of the new snapshot, if computed
    outside: np.ndarray     # (N,) bool, boundary rule fired
    settled: np.ndarray     # (N,) bool, sedimentation draw fired

    @property
    def fired(self) -> np.ndarray:
        return self.outside | self.settled


class TrackEngine:
    """Advects passive particles through a time-invariant current field.

    Spatial indices and sedimentation parameters are built once per engine,
    so the same engine can ``run`` many particle batches.

    Parameters
    ----------
    current : CurrentField
        Current-field data.
    config : TrackConfig or None
        Run configuration (defaults to ``TrackConfig()``).
    index, horizontal_index : KDTreeIndex or None
        Prebuilt full and horizontal indices. Built from *current* when
        either is missing.
    sedimentation_params : SedimentationParams or None
        Prebuilt sedimentation constants. Derived from *config* when
        sedimentation is enabled and none are given.
    rng : numpy.random.Generator or None
        Random source for the sedimentation draws (default: seeded from
        ``config.seed``).
    extent : tuple or None
        Explicit ``(lon_min, lon_max, lat_min, lat_max)`` for the boundary
        rule; defaults to the grid extent.
    """

    def __init__(
        self,
        current: CurrentField,
        config: Optional[TrackConfig] = None,
        index: Optional[KDTreeIndex] = None,
        horizontal_index: Optional[KDTreeIndex] = None,
        sedimentation_params: Optional[SedimentationParams] = None,
        rng: Optional[np.random.Generator] = None,
        extent: Optional[tuple[float, float, float, float]] = None,
    ) -> None:
        self.current = current
        self.config = config if config is not None else TrackConfig()
        self._validate_field()
        self._validate_config()

        if index is None or horizontal_index is None:
            built_full, built_horizontal = build_field_indices(
                current, workers=self.config.query_workers,
            )
            index = index if index is not None else built_full
            horizontal_index = (
                horizontal_index if horizontal_index is not None else built_horizontal
            )
        self.index = index
        self.horizontal_index = horizontal_index

        # --- Assemble components ---
        self.sampler = VelocityFieldSampler(current, index, horizontal_index)
        self.integrator = EulerIntegrator(self.config.time_step_s)
        self.boundary = BoundaryHandler(current, extent)

        self.uphill: Optional[UphillRestriction] = None
        if self.config.uphill_restricted is not None:
            self.uphill = UphillRestriction(
                self.config.uphill_restricted,
                self.sampler,
                mean_move=self.config.mean_move,
            )

        self.sedimentation: Optional[SedimentationModule] = None
        if self.config.sedimentation:
            params = sedimentation_params
            if params is None:
                params = build_sedimentation_params(
                    self.config.sink_speed,
                    self.config.time_step_s,
                    self.config.particle_radius,
                )
            self.sedimentation = SedimentationModule(
                current, params, use_max_speed=self.config.sed_at_max_speed,
            )

        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_field(self) -> None:
        cur = self.current
        n = cur.ncell
        if n == 0:
            raise ConfigurationError("Current field has no grid cells")
        for name in ("lat", "depth", "h", "u", "v", "w", "u_max", "v_max"):
            arr = getattr(cur, name)
            if arr is not None and arr.size != n:
                raise ConfigurationError(
                    f"Current field array '{name}' has {arr.size} cells, expected {n}"
                )

    def _validate_config(self) -> None:
        cfg = self.config
        if not cfg.time_step_s > 0:
            raise ConfigurationError(f"time_step_s must be > 0, got {cfg.time_step_s}")
        if cfg.n_steps is not None:
            if isinstance(cfg.n_steps, bool) or int(cfg.n_steps) != cfg.n_steps:
                raise ConfigurationError(
                    f"n_steps must be a whole number of steps, got {cfg.n_steps}"
                )
            if cfg.n_steps < 1:
                raise ConfigurationError(f"n_steps must be >= 1, got {cfg.n_steps}")
        elif not cfg.days > 0:
            raise ConfigurationError(f"days must be > 0, got {cfg.days}")
        if cfg.resolved_steps < 1:
            raise ConfigurationError(
                f"Run of {cfg.days} days at {cfg.time_step_s} s per step has no steps"
            )
        if not cfg.particle_radius > 0:
            raise ConfigurationError(
                f"particle_radius must be > 0, got {cfg.particle_radius}"
            )
        if not np.isfinite(cfg.w_sink):
            raise ConfigurationError(f"w_sink must be finite, got {cfg.w_sink}")
        if cfg.uphill_restricted is not None and cfg.uphill_restricted < 0:
            raise ConfigurationError(
                f"uphill_restricted must be >= 0 metres, got {cfg.uphill_restricted}"
            )
        if cfg.query_workers == 0:
            raise ConfigurationError("query_workers must be a positive count or -1")

    @staticmethod
    def _validate_points(points: np.ndarray) -> np.ndarray:
        pts = np.array(points, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[1] != 3:
            raise InvalidCoordinateError(
                f"Particles must be an (N, 3) table of lon, lat, depth; got shape {pts.shape}"
            )
        if pts.shape[0] == 0:
            raise InvalidCoordinateError("No particles to track")
        if not np.all(np.isfinite(pts)):
            raise InvalidCoordinateError("Particle coordinates must be finite")
        return pts

    # ------------------------------------------------------------------
    # One step
    # ------------------------------------------------------------------

    def step(self, previous: np.ndarray) -> StepOutcome:
        """Advance *previous* by one step and evaluate the stopping rules.

        The stop masks are computed for every particle; set-once semantics
        are applied by the caller.
        """
        sample = self.sampler.sample(previous)
        positions = self.integrator.step(previous, sample)

        cells = None
        if self.uphill is not None:
            positions, cells, _ = self.uphill.apply(
                previous, positions, sample.h, sample.cell,
            )

        outside = self.boundary.outside(positions)

        if self.sedimentation is not None:
            if cells is None:
                cells = self.sampler.cells(positions)
            settled = self.sedimentation.draw(cells, self.rng)
        else:
            settled = np.zeros(positions.shape[0], dtype=bool)

        return StepOutcome(
            positions=positions,
            sample=sample,
            cells=cells,
            outside=outside,
            settled=settled,
        )

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def run(self, points: np.ndarray) -> TrackResult:
        """Track *points* until all have stopped or the horizon is reached.

        Parameters
        ----------
        points : np.ndarray
            Starting positions, shape ``(N, 3)`` of (lon, lat, depth).

        Returns
        -------
        TrackResult
        """
        start = self._validate_points(points)
        n = start.shape[0]
        horizon = self.config.resolved_steps
        store = TrajectoryStore(n, horizon, max_bytes=self.config.max_trajectory_bytes)
        stop_index = np.zeros(n, dtype=np.int64)

        logger.info(f"Starting # of particles: {n}, horizon: {horizon} steps")

        status = TrackStatus.RUNNING
        previous = start
        current = start
        for itime in range(1, horizon + 1):
            outcome = self.step(current)
            previous = current
            current = outcome.positions

            newly = (stop_index == 0) & outcome.fired
            stop_index[newly] = itime
            store.append(current, outcome.sample.cell_full, outcome.sample.cell)

            if newly.any():
                logger.debug(
                    f"Step {itime}: {int(newly.sum())} stopped "
                    f"({int((newly & outcome.outside).sum())} left the domain)"
                )

            if np.all(stop_index != 0):
                status = TrackStatus.ALL_STOPPED
                logger.info(f"Exiting at step {itime}, all stopped")
                break
        else:
            status = TrackStatus.HORIZON_REACHED
            logger.info(f"Horizon of {horizon} steps reached")

        executed = store.count
        if self.config.force_final_settling:
            floating = stop_index == 0
            if floating.any():
                logger.info(f"Forcing {int(floating.sum())} floating particles to settle")
            stop_index[floating] = executed

        return TrackResult(
            trajectories=store.trimmed(),
            final=current,
            previous=previous,
            stop_index=stop_index,
            indices=store.indices,
            indices_2d=store.indices_2d,
            status=status,
        )


def track(
    points: np.ndarray,
    current: CurrentField,
    config: Optional[TrackConfig] = None,
    **kwargs,
) -> TrackResult:
    """Run a single tracking invocation.

    Keyword arguments not consumed by :class:`TrackEngine` (``index``,
    ``horizontal_index``, ``sedimentation_params``, ``rng``, ``extent``) are
    taken as :class:`TrackConfig` fields when *config* is None.
    """
    engine_keys = ("index", "horizontal_index", "sedimentation_params", "rng", "extent")
    engine_kwargs = {k: kwargs.pop(k) for k in engine_keys if k in kwargs}
    if config is None:
        config = TrackConfig(**kwargs)
    elif kwargs:
        raise ConfigurationError(
            f"Unexpected arguments with an explicit config: {sorted(kwargs)}"
        )
    engine = TrackEngine(current, config, **engine_kwargs)
    return engine.run(points)
