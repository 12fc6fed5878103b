"""Property-based tests for the advection step and the tracking loop.

Uses hypothesis for automated input generation.
"""

from __future__ import annotations

import numpy as np
from hypothesis import given, settings, strategies as st

from pytrackit.core.engine import TrackEngine, track
from pytrackit.core.integrator import METERS_PER_DEGREE, advect_lonlat
from pytrackit.core.models import CurrentField, TrackConfig, TrackStatus


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_uniform_field(
    u_val: float, v_val: float,
    nx: int = 21, ny: int = 21,
    lon_range: tuple[float, float] = (0.0, 20.0),
    lat_range: tuple[float, float] = (-10.0, 10.0),
) -> CurrentField:
    """Create a regular grid with a spatially uniform current."""
    lon, lat = np.meshgrid(np.linspace(*lon_range, nx), np.linspace(*lat_range, ny))
    n = lon.size
    return CurrentField(
        lon=lon.ravel(), lat=lat.ravel(), depth=np.zeros(n),
        h=np.full(n, 200.0), u=np.full(n, u_val), v=np.full(n, v_val),
    )


def _start_points(lons, lats) -> np.ndarray:
    return np.column_stack((lons, lats, np.zeros(len(lons))))


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

# Current components, moderate to keep particles inside the grid
current_component = st.floats(min_value=-2.0, max_value=2.0,
                              allow_nan=False, allow_infinity=False)

step_seconds = st.floats(min_value=60.0, max_value=7200.0,
                         allow_nan=False, allow_infinity=False)

inner_lon = st.floats(min_value=5.0, max_value=15.0,
                      allow_nan=False, allow_infinity=False)
inner_lat = st.floats(min_value=-5.0, max_value=5.0,
                      allow_nan=False, allow_infinity=False)


# ---------------------------------------------------------------------------
# Property 1: Nautical-mile advection formula
# ---------------------------------------------------------------------------

@given(
    lon=st.floats(min_value=-170.0, max_value=170.0,
                  allow_nan=False, allow_infinity=False),
    lat=st.floats(min_value=-80.0, max_value=80.0,
                  allow_nan=False, allow_infinity=False),
    u=current_component,
    v=current_component,
    dt=step_seconds,
)
@settings(max_examples=100)
def test_property_1_advection_formula(lon, lat, u, v, dt):
    """Δlat = v·dt / M and Δlon = u·dt / (M·cos(lat)), M = 1852·60."""
    new_lon, new_lat = advect_lonlat(
        np.array([lon]), np.array([lat]), np.array([u]), np.array([v]), dt,
    )
    expected_dlat = v * dt / METERS_PER_DEGREE
    expected_dlon = u * dt / (METERS_PER_DEGREE * np.cos(np.deg2rad(lat)))
    np.testing.assert_allclose(new_lat - lat, expected_dlat, atol=1e-10)
    np.testing.assert_allclose(new_lon - lon, expected_dlon, atol=1e-10)


@given(
    u=st.floats(min_value=0.01, max_value=2.0,
                allow_nan=False, allow_infinity=False),
    dt=step_seconds,
)
@settings(max_examples=100)
def test_property_1_higher_latitude_larger_dlon(u, dt):
    """For the same eastward current, higher latitude gives a larger Δlon."""
    low = advect_lonlat(np.array([0.0]), np.array([10.0]),
                        np.array([u]), np.array([0.0]), dt)[0]
    high = advect_lonlat(np.array([0.0]), np.array([60.0]),
                         np.array([u]), np.array([0.0]), dt)[0]
    assert abs(high[0]) > abs(low[0])


# ---------------------------------------------------------------------------
# Property 2: Zero current keeps every snapshot identical
# ---------------------------------------------------------------------------

@given(
    lons=st.lists(inner_lon, min_size=1, max_size=8),
    lat=inner_lat,
    n_steps=st.integers(min_value=1, max_value=15),
)
@settings(max_examples=50, deadline=None)
def test_property_2_zero_current_is_stationary(lons, lat, n_steps):
    points = _start_points(lons, [lat] * len(lons))
    result = track(points, _make_uniform_field(0.0, 0.0), TrackConfig(n_steps=n_steps))

    assert result.status == TrackStatus.HORIZON_REACHED
    assert np.all(result.stop_index == 0)
    for k in range(result.n_steps):
        np.testing.assert_array_equal(result.trajectories[:, :, k], points)


# ---------------------------------------------------------------------------
# Property 3: Stop index range and set-once semantics
# ---------------------------------------------------------------------------

@given(
    lons=st.lists(inner_lon, min_size=1, max_size=10),
    u=current_component,
    v=current_component,
    n_steps=st.integers(min_value=1, max_value=20),
    extra=st.integers(min_value=1, max_value=10),
    seed=st.integers(min_value=0, max_value=2**31 - 1),
)
@settings(max_examples=50, deadline=None)
def test_property_3_stop_index_is_set_once(lons, u, v, n_steps, extra, seed):
    """Stop steps lie in [0, executed] and a longer run never rewrites them."""
    field = _make_uniform_field(u * 0.05, v * 0.05)
    points = _start_points(lons, [0.0] * len(lons))

    short = track(points, field, TrackConfig(n_steps=n_steps, sedimentation=True, seed=seed))
    long = track(points, field,
                 TrackConfig(n_steps=n_steps + extra, sedimentation=True, seed=seed))

    for result in (short, long):
        assert result.stop_index.min() >= 0
        assert result.stop_index.max() <= result.n_steps
        assert result.n_steps == len(result.indices) == len(result.indices_2d)

    stopped = short.stop_index != 0
    np.testing.assert_array_equal(long.stop_index[stopped], short.stop_index[stopped])
    k = short.n_steps
    np.testing.assert_array_equal(long.trajectories[:, :, :k], short.trajectories)


@given(
    lons=st.lists(inner_lon, min_size=1, max_size=10),
    n_steps=st.integers(min_value=1, max_value=20),
    seed=st.integers(min_value=0, max_value=2**31 - 1),
)
@settings(max_examples=50, deadline=None)
def test_property_3_loop_terminal_state(lons, n_steps, seed):
    """ALL_STOPPED exactly when every particle has a stop step."""
    points = _start_points(lons, [0.0] * len(lons))
    result = track(points, _make_uniform_field(0.0, 0.0),
                   TrackConfig(n_steps=n_steps, sedimentation=True, seed=seed))

    if result.status == TrackStatus.ALL_STOPPED:
        assert np.all(result.stop_index != 0)
        assert result.n_steps == result.stop_index.max()
    else:
        assert result.status == TrackStatus.HORIZON_REACHED
        assert result.n_steps == n_steps


@given(
    lons=st.lists(inner_lon, min_size=1, max_size=10),
    n_steps=st.integers(min_value=1, max_value=20),
)
@settings(max_examples=50, deadline=None)
def test_property_3_forced_settling_fills_floating(lons, n_steps):
    points = _start_points(lons, [0.0] * len(lons))
    result = track(points, _make_uniform_field(0.01, 0.0),
                   TrackConfig(n_steps=n_steps, force_final_settling=True))
    np.testing.assert_array_equal(result.stop_index, n_steps)


# ---------------------------------------------------------------------------
# Property 4: Boundary stop at the first out-of-grid step
# ---------------------------------------------------------------------------

@given(
    m=st.integers(min_value=0, max_value=20),
    frac=st.floats(min_value=0.1, max_value=0.9,
                   allow_nan=False, allow_infinity=False),
    u=st.floats(min_value=0.05, max_value=1.0,
                allow_nan=False, allow_infinity=False),
)
@settings(max_examples=50, deadline=None)
def test_property_4_boundary_first_violation(m, frac, u):
    """A particle drifting east stops at the first step beyond lon_max."""
    dt = 1800.0
    d = u * dt / METERS_PER_DEGREE
    lon_max = 1.0 + (m + frac) * d
    field = _make_uniform_field(u, 0.0, lon_range=(0.0, lon_max))
    points = _start_points([1.0, 1.0], [0.0, 0.0])

    result = track(points, field, TrackConfig(n_steps=m + 5, time_step_s=dt))

    np.testing.assert_array_equal(result.stop_index, m + 1)
    assert result.status == TrackStatus.ALL_STOPPED
    assert result.n_steps == m + 1


# ---------------------------------------------------------------------------
# Property 5: Engine runs are independent of earlier batches when seeded
# ---------------------------------------------------------------------------

@given(
    lons=st.lists(inner_lon, min_size=1, max_size=6),
    seed=st.integers(min_value=0, max_value=2**31 - 1),
)
@settings(max_examples=30, deadline=None)
def test_property_5_seeded_runs_repeat(lons, seed):
    field = _make_uniform_field(0.02, 0.0)
    points = _start_points(lons, [0.0] * len(lons))
    config = TrackConfig(n_steps=10, sedimentation=True, seed=seed)

    a = TrackEngine(field, config).run(points)
    b = TrackEngine(field, config).run(points)
    np.testing.assert_array_equal(a.stop_index, b.stop_index)
    np.testing.assert_array_equal(a.trajectories, b.trajectories)
