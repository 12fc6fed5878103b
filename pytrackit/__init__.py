"""pytrackit - Lagrangian tracking of passive particles in ocean currents.

Advects particles through a time-invariant current field sampled at the
nearest grid cell, with optional seabed-slope restriction and stochastic
sedimentation, and records per-particle trajectories and stop steps.

Package Structure:
    core/       - Models, spatial index, sampler, integrator, store and engine
    physics/    - Stopping and movement rules (boundary, uphill, sedimentation)
    data/       - &TRACKIT namelist configuration parser and writer
"""

__version__ = "0.1.0"

# Core
from pytrackit.core.engine import StepOutcome, TrackEngine, track
from pytrackit.core.integrator import METERS_PER_DEGREE, EulerIntegrator, advect_lonlat
from pytrackit.core.models import (
    ConfigParseError,
    ConfigurationError,
    CurrentField,
    InvalidCoordinateError,
    NumericalInstabilityError,
    PyTrackitError,
    SedimentationInvariantError,
    SedimentationParams,
    TrackConfig,
    TrackResult,
    TrackStatus,
    TrajectoryMemoryError,
)
from pytrackit.core.sampler import FieldSample, VelocityFieldSampler
from pytrackit.core.spatial_index import (
    KDTreeIndex,
    build_field_indices,
    build_horizontal_index,
    build_index,
)
from pytrackit.core.store import TrajectoryStore, estimate_trajectory_nbytes

# Data I/O
from pytrackit.data.config_parser import parse_config, parse_setup_cfg, write_setup_cfg

# Physics
from pytrackit.physics.boundary import BoundaryHandler
from pytrackit.physics.sedimentation import (
    SedimentationModule,
    build_sedimentation_params,
    velocity_deficit,
)
from pytrackit.physics.uphill import UphillRestriction

__all__ = [
    # Core - Engine
    'StepOutcome',
    'TrackEngine',
    'track',
    # Core - Integrator
    'METERS_PER_DEGREE',
    'EulerIntegrator',
    'advect_lonlat',
    # Core - Models
    'CurrentField',
    'SedimentationParams',
    'TrackConfig',
    'TrackResult',
    'TrackStatus',
    # Core - Exceptions
    'ConfigParseError',
    'ConfigurationError',
    'InvalidCoordinateError',
    'NumericalInstabilityError',
    'PyTrackitError',
    'SedimentationInvariantError',
    'TrajectoryMemoryError',
    # Core - Sampling and indices
    'FieldSample',
    'KDTreeIndex',
    'VelocityFieldSampler',
    'build_field_indices',
    'build_horizontal_index',
    'build_index',
    # Core - Store
    'TrajectoryStore',
    'estimate_trajectory_nbytes',
    # Data I/O
    'parse_config',
    'parse_setup_cfg',
    'write_setup_cfg',
    # Physics
    'BoundaryHandler',
    'SedimentationModule',
    'UphillRestriction',
    'build_sedimentation_params',
    'velocity_deficit',
]
