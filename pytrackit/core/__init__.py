"""Core tracking engine and models."""

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
from pytrackit.core.spatial_index import KDTreeIndex, build_horizontal_index, build_index
from pytrackit.core.store import TrajectoryStore, estimate_trajectory_nbytes

__all__ = [
    # Engine
    'StepOutcome',
    'TrackEngine',
    'track',
    # Integrator
    'METERS_PER_DEGREE',
    'EulerIntegrator',
    'advect_lonlat',
    # Models
    'CurrentField',
    'SedimentationParams',
    'TrackConfig',
    'TrackResult',
    'TrackStatus',
    # Exceptions
    'ConfigParseError',
    'ConfigurationError',
    'InvalidCoordinateError',
    'NumericalInstabilityError',
    'PyTrackitError',
    'SedimentationInvariantError',
    'TrajectoryMemoryError',
    # Sampling
    'FieldSample',
    'KDTreeIndex',
    'VelocityFieldSampler',
    'build_horizontal_index',
    'build_index',
    # Store
    'TrajectoryStore',
    'estimate_trajectory_nbytes',
]
