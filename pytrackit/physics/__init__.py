"""Movement and stopping rules applied after advection."""

from pytrackit.physics.boundary import BoundaryHandler
from pytrackit.physics.sedimentation import SedimentationModule, build_sedimentation_params
from pytrackit.physics.uphill import UphillRestriction

__all__ = [
    'BoundaryHandler',
    'SedimentationModule',
    'UphillRestriction',
    'build_sedimentation_params',
]
