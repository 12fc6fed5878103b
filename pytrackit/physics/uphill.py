"""Seabed-slope movement restriction.

A move is "uphill" when the seabed in the cell of the candidate position is
shallower than the seabed of the cell being left by more than a threshold:

    h_new < h_prev - threshold

Hard policy: uphill particles keep their previous position.
Mean-move policy: uphill particles are pulled back to the midpoint between
candidate and previous position and re-tested, at most twice (half step,
then quarter step); anything still uphill after the third test falls back
to the hard policy.
"""

from __future__ import annotations

import logging

import numpy as np

from pytrackit.core.models import ConfigurationError
from pytrackit.core.sampler import VelocityFieldSampler

logger = logging.getLogger(__name__)

MEAN_MOVE_REFINEMENTS = 2


class UphillRestriction:
    """Suppresses moves across a steep bathymetric step.

    Parameters
    ----------
    threshold : float
        Allowed seabed rise per step (m), >= 0.
    sampler : VelocityFieldSampler
        Used to locate the horizontal cell of corrected positions.
    mean_move : bool
        Use the mean-move policy instead of the hard policy.
    """

    def __init__(
        self,
        threshold: float,
        sampler: VelocityFieldSampler,
        mean_move: bool = False,
    ) -> None:
        if threshold < 0:
            raise ConfigurationError(
                f"uphill_restricted must be >= 0 metres, got {threshold}"
            )
        self.threshold = threshold
        self.sampler = sampler
        self.mean_move = mean_move
        self.max_refinements = MEAN_MOVE_REFINEMENTS if mean_move else 0

    def is_uphill(self, h_new: np.ndarray, h_prev: np.ndarray) -> np.ndarray:
        return h_new < h_prev - self.threshold

    def apply(
        self,
        previous: np.ndarray,
        candidate: np.ndarray,
        h_prev: np.ndarray,
        cell_prev: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Correct uphill moves.

        Parameters
        ----------
        previous : np.ndarray
            Snapshot at the start of the step, shape ``(N, 3)``.
        candidate : np.ndarray
            Unrestricted new snapshot, shape ``(N, 3)``.
        h_prev : np.ndarray
            Seabed depth of the cell each particle is leaving.
        cell_prev : np.ndarray
            Horizontal cell each particle is leaving.

        Returns
        -------
        tuple[np.ndarray, np.ndarray, np.ndarray]
            ``(positions, cells, restricted)``: corrected snapshot, its
            horizontal cell indices, and the mask of particles whose
            unrestricted move was uphill.
        """
        positions = candidate.copy()
        cells, h_new = self.sampler.seabed(positions)
        uphill = self.is_uphill(h_new, h_prev)
        restricted = uphill.copy()

        for _ in range(self.max_refinements):
            rows = np.nonzero(uphill)[0]
            if rows.size == 0:
                break
            positions[rows] = 0.5 * (positions[rows] + previous[rows])
            cells[rows], h_rows = self.sampler.seabed(positions[rows])
            uphill[rows[~self.is_uphill(h_rows, h_prev[rows])]] = False

        positions[uphill] = previous[uphill]
        cells[uphill] = cell_prev[uphill]

        if restricted.any():
            logger.debug(
                f"Uphill restriction: {int(restricted.sum())} moves corrected, "
                f"{int(uphill.sum())} reset to previous position"
            )
        return positions, cells, restricted
