"""Unit tests for spatial index, sampler, integrator, store and models."""

import numpy as np
import pytest

from pytrackit.core.integrator import METERS_PER_DEGREE, EulerIntegrator, advect_lonlat
from pytrackit.core.models import (
    ConfigurationError,
    CurrentField,
    NumericalInstabilityError,
    TrackConfig,
    TrackResult,
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


def _make_field():
    lon = np.array([0.0, 1.0, 0.0, 1.0])
    lat = np.array([0.0, 0.0, 1.0, 1.0])
    return CurrentField(
        lon=lon, lat=lat,
        depth=np.array([0.0, 0.0, -50.0, -50.0]),
        h=np.array([10.0, 20.0, 30.0, 40.0]),
        u=np.array([0.1, 0.2, 0.3, 0.4]),
        v=np.array([-0.1, -0.2, -0.3, -0.4]),
    )


# ---------------------------------------------------------------------------
# Spatial index
# ---------------------------------------------------------------------------

def test_horizontal_index_nearest():
    index = build_horizontal_index([0.0, 1.0, 0.0, 1.0], [0.0, 0.0, 1.0, 1.0])
    idx, dist = index.nearest(np.array([[0.1, 0.1, 999.0], [0.9, 0.8, -5.0]]))
    np.testing.assert_array_equal(idx, [0, 3])
    assert dist.shape == (2,)
    assert idx.dtype == np.int64


def test_full_index_uses_depth():
    coords = np.array([[0.0, 0.0, 0.0], [0.0, 0.0, -100.0]])
    index = build_index(coords)
    idx, _ = index.nearest(np.array([[0.0, 0.0, -90.0]]))
    assert idx[0] == 1


def test_single_point_query():
    index = build_horizontal_index([0.0, 1.0], [0.0, 0.0])
    idx, _ = index.nearest(np.array([0.9, 0.0]))
    np.testing.assert_array_equal(idx, [1])


def test_index_rejects_bad_coordinates():
    with pytest.raises(ConfigurationError):
        KDTreeIndex(np.zeros((0, 2)))
    with pytest.raises(ConfigurationError):
        KDTreeIndex(np.array([[0.0, np.nan]]))


# ---------------------------------------------------------------------------
# Sampler
# ---------------------------------------------------------------------------

def test_sampler_looks_up_nearest_cell_values():
    field = _make_field()
    full, horizontal = build_field_indices(field)
    sampler = VelocityFieldSampler(field, full, horizontal)
    pts = np.array([[0.9, 0.9, 0.0], [0.1, 0.2, 0.0]])
    s = sampler.sample(pts)
    np.testing.assert_array_equal(s.cell, [3, 0])
    np.testing.assert_allclose(s.u, [0.4, 0.1])
    np.testing.assert_allclose(s.v, [-0.4, -0.1])
    np.testing.assert_allclose(s.h, [40.0, 10.0])
    # full index sees the depth column: (0.9, 0.9, 0) is closest to cell 1
    np.testing.assert_array_equal(s.cell_full, [1, 0])


def test_sampler_does_not_mutate_field():
    field = _make_field()
    before = field.u.copy()
    full, horizontal = build_field_indices(field)
    VelocityFieldSampler(field, full, horizontal).sample(np.array([[0.5, 0.4, 0.0]]))
    np.testing.assert_array_equal(field.u, before)


# ---------------------------------------------------------------------------
# Integrator
# ---------------------------------------------------------------------------

def test_advect_lonlat_equator():
    lon, lat = advect_lonlat(np.array([10.0]), np.array([0.0]),
                             np.array([1.0]), np.array([1.0]), 1852.0 * 60.0)
    np.testing.assert_allclose(lon, [11.0])
    np.testing.assert_allclose(lat, [1.0])


def test_advect_lonlat_cosine_correction():
    lon, _ = advect_lonlat(np.array([0.0]), np.array([60.0]),
                           np.array([1.0]), np.array([0.0]), METERS_PER_DEGREE)
    np.testing.assert_allclose(lon, [2.0])


def test_integrator_carries_depth_and_copies():
    previous = np.array([[0.0, 0.0, -42.0]])
    sample = FieldSample(u=np.array([0.1]), v=np.array([0.0]), h=np.array([50.0]),
                         cell=np.array([0]), cell_full=np.array([0]))
    current = EulerIntegrator(1800.0).step(previous, sample)
    assert current[0, 2] == -42.0
    assert current[0, 0] > 0.0
    assert previous[0, 0] == 0.0


def test_integrator_detects_non_finite():
    previous = np.array([[0.0, 0.0, 0.0]])
    sample = FieldSample(u=np.array([np.inf]), v=np.array([0.0]), h=np.array([50.0]),
                         cell=np.array([0]), cell_full=np.array([0]))
    with pytest.raises(NumericalInstabilityError):
        EulerIntegrator(1800.0).step(previous, sample)


# ---------------------------------------------------------------------------
# Store and models
# ---------------------------------------------------------------------------

def test_estimate_trajectory_nbytes():
    assert estimate_trajectory_nbytes(1000, 48) == 1000 * 3 * 48 * 8


def test_store_trims_to_written_steps():
    store = TrajectoryStore(2, 10)
    snap = np.ones((2, 3))
    store.append(snap, np.array([0, 1]), np.array([2, 3]))
    store.append(snap * 2, np.array([0, 1]), np.array([2, 3]))
    out = store.trimmed()
    assert out.shape == (2, 3, 2)
    np.testing.assert_array_equal(out[:, :, 1], 2.0)
    assert len(store.indices) == 2 and len(store.indices_2d) == 2
    # partial fill must not hold on to the full-capacity buffer
    assert out.base is None
    assert out.nbytes == 2 * 3 * 2 * 8


def test_store_full_raises():
    store = TrajectoryStore(1, 1)
    store.append(np.zeros((1, 3)), np.array([0]), np.array([0]))
    with pytest.raises(IndexError):
        store.append(np.zeros((1, 3)), np.array([0]), np.array([0]))


def test_store_byte_ceiling():
    with pytest.raises(TrajectoryMemoryError):
        TrajectoryStore(100, 100, max_bytes=10)


def test_config_derived_values():
    cfg = TrackConfig()
    assert cfg.resolved_steps == 50 * 48
    assert cfg.sink_speed == pytest.approx(-100.0 / 86400.0)
    assert TrackConfig(days=2, time_step_s=3600).resolved_steps == 48
    assert TrackConfig(days=2, n_steps=5).resolved_steps == 5


def test_current_field_extent():
    field = _make_field()
    assert field.extent == (0.0, 1.0, 0.0, 1.0)
    assert field.ncell == 4
    assert not field.has_max_speed


def test_stop_positions_nan_for_floating():
    traj = np.arange(2 * 3 * 3, dtype=float).reshape(2, 3, 3)
    result = TrackResult(
        trajectories=traj, final=traj[:, :, -1], previous=traj[:, :, -2],
        stop_index=np.array([2, 0]),
    )
    stops = result.stop_positions()
    np.testing.assert_array_equal(stops[0], traj[0, :, 1])
    assert np.all(np.isnan(stops[1]))
