"""Stochastic sedimentation stopping rule.

For every occupied horizontal cell the module aggregates the number of
particles and the local current speed, converts the speed into a
normalised velocity deficit

    U_div = max(0, 1 - speed² / U_c²)

and asks the settling function for the expected number of particles that
settle this step. Each occupant then stops with probability
``settling_count / occupant_count``.

The default parameter provider follows the McCave & Swift (1976) deposition
law: deposition only below a critical bed shear stress, with the critical
stress taken from a Shields criterion on the particle diameter.

References:
    McCave, I.N. & Swift, S.A. (1976) GSA Bulletin 87, 541-546.
"""

from __future__ import annotations

import logging

import numpy as np

from pytrackit.core.models import (
    ConfigurationError,
    CurrentField,
    SedimentationInvariantError,
    SedimentationParams,
)

logger = logging.getLogger(__name__)

# Physical constants
GRAVITY = 9.80665            # m/s²
SEAWATER_DENSITY = 1025.0    # kg/m³
SEDIMENT_DENSITY = 2650.0    # kg/m³ (quartz)
DRAG_COEFFICIENT = 2.5e-3    # quadratic bottom drag
SHIELDS_CRITICAL = 0.05      # critical Shields parameter
BOUNDARY_LAYER_THICKNESS = 10.0  # m, near-bed layer particles settle out of


def build_sedimentation_params(
    sink_speed: float,
    step_duration: float,
    particle_radius: float,
    sediment_density: float = SEDIMENT_DENSITY,
    water_density: float = SEAWATER_DENSITY,
    drag_coefficient: float = DRAG_COEFFICIENT,
    shields: float = SHIELDS_CRITICAL,
    layer_thickness: float = BOUNDARY_LAYER_THICKNESS,
    g: float = GRAVITY,
) -> SedimentationParams:
    """Derive sedimentation constants from particle properties.

    Critical speed:
        τ_c = θ_c · (ρ_s − ρ_w) · g · 2r
        U_c² = τ_c / (ρ_w · C_d)

    Settling count for a cell holding ``n`` particles:
        n · U_div · min(1, |w_s| · Δt / δ)

    Parameters
    ----------
    sink_speed : float
        Sinking speed (m/s). The sign is ignored.
    step_duration : float
        Per-step duration (s).  Must be > 0.
    particle_radius : float
        Particle radius (m).  Must be > 0.

    Returns
    -------
    SedimentationParams
    """
    if step_duration <= 0:
        raise ConfigurationError(f"step_duration must be > 0, got {step_duration}")
    if particle_radius <= 0:
        raise ConfigurationError(f"particle_radius must be > 0, got {particle_radius}")
    if sediment_density <= water_density:
        raise ConfigurationError(
            "sediment_density must exceed water_density for deposition"
        )

    tau_c = shields * (sediment_density - water_density) * g * (2.0 * particle_radius)
    ucsq = tau_c / (water_density * drag_coefficient)
    fraction = min(1.0, abs(sink_speed) * step_duration / layer_thickness)

    def settling_fn(u_div: np.ndarray, n_occupants: np.ndarray) -> np.ndarray:
        return np.asarray(n_occupants, dtype=np.float64) * np.asarray(u_div) * fraction

    logger.debug(
        f"Sedimentation params: U_c={np.sqrt(ucsq):.4f} m/s, "
        f"settling fraction per step={fraction:.4f}"
    )
    return SedimentationParams(critical_velocity_sq=ucsq, settling_fn=settling_fn)


def velocity_deficit(speed_sq: np.ndarray, critical_velocity_sq: float) -> np.ndarray:
    """Normalised velocity deficit, clipped at zero (no erosion)."""
    return np.maximum(0.0, 1.0 - np.asarray(speed_sq) / critical_velocity_sq)


class SedimentationModule:
    """Per-cell density and speed driven stopping.

    Parameters
    ----------
    current : CurrentField
        Current-field data.
    params : SedimentationParams
        Critical speed and settling function.
    use_max_speed : bool
        Use the field's precomputed ``u_max``/``v_max`` instead of ``u``/``v``.
    """

    def __init__(
        self,
        current: CurrentField,
        params: SedimentationParams,
        use_max_speed: bool = False,
    ) -> None:
        if params.critical_velocity_sq <= 0:
            raise ConfigurationError(
                f"critical_velocity_sq must be > 0, got {params.critical_velocity_sq}"
            )
        if use_max_speed:
            if not current.has_max_speed:
                raise ConfigurationError(
                    "sed_at_max_speed requires u_max and v_max on the current field"
                )
            self._speed_sq = current.u_max ** 2 + current.v_max ** 2
        else:
            self._speed_sq = current.u ** 2 + current.v ** 2
        self.params = params

    def cell_summary(
        self, cells: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Aggregate occupied cells.

        Returns
        -------
        tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]
            ``(occupied, inverse, counts, settling)``: unique occupied cells,
            the row -> occupied-cell mapping, occupants per cell and the
            expected settling count per cell.
        """
        occupied, inverse, counts = np.unique(
            cells, return_inverse=True, return_counts=True,
        )
        if np.any(counts <= 0):
            raise SedimentationInvariantError(
                "Occupied cell with zero occupants in sedimentation aggregate"
            )
        u_div = velocity_deficit(self._speed_sq[occupied], self.params.critical_velocity_sq)
        settling = np.asarray(self.params.settling_fn(u_div, counts), dtype=np.float64)
        return occupied, inverse.ravel(), counts, settling

    def stop_probability(self, cells: np.ndarray) -> np.ndarray:
        """Per-particle stop probability for this step."""
        cells = np.asarray(cells)
        if cells.size == 0:
            return np.zeros(0)
        _, inverse, counts, settling = self.cell_summary(cells)
        return settling[inverse] / counts[inverse]

    def draw(self, cells: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        """Boolean mask of particles that settle this step.

        One uniform number is drawn per particle regardless of its state so
        that the random stream does not depend on earlier stops.
        """
        prob = self.stop_probability(cells)
        return rng.random(prob.size) < prob
