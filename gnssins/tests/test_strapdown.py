import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose
from gnssins import earth, sim, transform
from gnssins.strapdown import Integrator, KinematicState
from gnssins.util import GYRO_COLS, ACCEL_COLS, TRAJECTORY_COLS


def make_integrator(lla_deg=(55.0, 37.0, 150.0), velocity_n=(0, 0, 0),
                    rpy_deg=(0, 0, 0)):
    integrator = Integrator()
    integrator.set_position(np.deg2rad(lla_deg[0]), np.deg2rad(lla_deg[1]),
                            lla_deg[2])
    integrator.set_velocity(*velocity_n)
    integrator.set_attitude(np.deg2rad(rpy_deg))
    return integrator


def test_quaternion_norm_preserved():
    rng = np.random.RandomState(0)
    integrator = make_integrator(velocity_n=(20, -10, 1), rpy_deg=(10, -5, 120))
    for _ in range(500):
        integrator.mechanize(rng.uniform(-1, 1, 3), rng.uniform(-20, 20, 3), 0.01)
        assert abs(np.linalg.norm(integrator.state.quat) - 1) < 1e-9
        assert_allclose(integrator.state.mat_nb,
                        transform.quat_to_mat(integrator.state.quat), atol=1e-14)


def test_static_step():
    integrator = make_integrator()
    lat, lon, alt = integrator.state.lla
    lla_before = integrator.state.lla.copy()
    dt = 0.01

    f_b = -earth.gravity_n(lat, alt)
    integrator.mechanize(np.zeros(3), f_b, dt)

    assert_allclose(integrator.state.velocity_n, 0, atol=1e-15)
    assert_allclose(integrator.state.lla, lla_before, rtol=0, atol=1e-15)

    half_angle = 0.5 * earth.RATE * dt
    quat_expected = np.hstack((np.cos(half_angle),
                               -0.5 * earth.rate_n(lat) * dt))
    quat_expected /= np.linalg.norm(quat_expected)
    assert_allclose(integrator.state.quat, quat_expected, atol=1e-15)


@pytest.mark.parametrize("factor", [1 - 1e-6, 1 + 1e-6])
def test_small_angle_attitude_step(factor):
    integrator = make_integrator(rpy_deg=(3, -2, 40))
    lat = integrator.state.lat
    quat = integrator.state.quat.copy()
    dt = 0.01

    direction = np.array([1.0, 2.0, -2.0]) / 3
    psi = 2 * transform.SMALL_ANGLE_THRESHOLD * factor * direction
    omega_b = psi / dt + integrator.state.mat_nb.T @ earth.rate_n(lat)
    integrator.mechanize(omega_b, np.zeros(3), dt)

    quat_expected = transform.quat_multiply(quat, transform.quat_from_rotvec(psi))
    assert_allclose(integrator.state.quat, quat_expected, rtol=0, atol=1e-14)

    quat_at_threshold = transform.quat_multiply(
        quat, transform.quat_from_rotvec(2 * transform.SMALL_ANGLE_THRESHOLD *
                                         direction))
    assert_allclose(integrator.state.quat, quat_at_threshold, rtol=0, atol=1e-10)


def test_step_against_vector_form():
    integrator = make_integrator(lla_deg=(-30.0, 150.0, 1000.0),
                                 velocity_n=(50, -30, 2), rpy_deg=(3, -7, 40))
    state = integrator.state.copy()
    omega_b = np.array([0.01, -0.02, 0.05])
    f_b = np.array([0.5, -0.3, -9.7])
    dt = 0.02

    terms = integrator.mechanize(omega_b, f_b, dt)

    lat, lon, alt = state.lla
    assert_allclose(terms.rn + terms.re, sum(earth.principal_radii(lat, alt)[:2]))
    assert_allclose(terms.gravity_n, earth.gravity_n(lat, alt), rtol=1e-12)
    assert_allclose(terms.earth_rate_n, earth.rate_n(lat), rtol=1e-12)
    transport_rate_n = earth.transport_rate_n(lat, alt, state.velocity_n)
    assert_allclose(terms.transport_rate_n, transport_rate_n, rtol=1e-12)
    assert_allclose(terms.curvature_matrix, earth.curvature_matrix(lat, alt),
                    rtol=1e-12)
    assert_allclose(terms.mat_nb, state.mat_nb)
    assert_allclose(terms.f_n, state.mat_nb @ f_b)

    psi = (omega_b - state.mat_nb.T @ (terms.earth_rate_n + transport_rate_n)) * dt
    quat = transform.quat_multiply(state.quat, transform.quat_from_rotvec(psi))
    quat /= np.linalg.norm(quat)
    assert_allclose(integrator.state.quat, quat, atol=1e-14)

    dv = (state.mat_nb @ f_b + terms.gravity_n -
          np.cross(2 * terms.earth_rate_n + transport_rate_n, state.velocity_n)) * dt
    velocity_n = state.velocity_n + dv
    assert_allclose(integrator.state.velocity_n, velocity_n, rtol=1e-13)

    velocity_average = 0.5 * (state.velocity_n + velocity_n)
    rn, _, rp = earth.principal_radii(lat, alt)
    assert_allclose(integrator.state.lla,
                    [lat + velocity_average[0] / rn * dt,
                     lon + velocity_average[1] / rp * dt,
                     alt - velocity_average[2] * dt], rtol=1e-13)


def test_stationary_integration():
    time = np.arange(0, 600, 0.01)
    trajectory, imu = sim.generate_stationary_imu(time, [55, 37, 150], [-5, 10, 110])

    integrator = Integrator(KinematicState.from_pva(trajectory.iloc[0]))
    result = integrator.integrate(imu)

    assert list(result.columns) == TRAJECTORY_COLS
    assert result.index.name == 'time'
    assert len(result) == len(imu)
    diff = (result - trajectory).abs().max(axis=0)
    assert (diff[['lat', 'lon']] < 1e-10).all()
    assert diff['alt'] < 1e-3
    assert (diff[['VN', 'VE', 'VD']] < 1e-5).all()
    assert (diff[['roll', 'pitch', 'yaw']] < 1e-8).all()

    pva = integrator.state.to_pva()
    assert_allclose(pva.values, result.iloc[-1].values, atol=1e-10)


def test_integrate_matches_mechanize():
    rng = np.random.RandomState(1)
    time = np.arange(0, 1, 0.01)
    imu = pd.DataFrame(np.hstack((0.1 * rng.randn(len(time), 3),
                                  [0, 0, -9.8] + rng.randn(len(time), 3))),
                       index=time, columns=GYRO_COLS + ACCEL_COLS)

    batch = make_integrator(velocity_n=(10, 5, 0))
    result = batch.integrate(imu)

    single = make_integrator(velocity_n=(10, 5, 0))
    for i in range(len(time) - 1):
        single.mechanize(imu.iloc[i][GYRO_COLS], imu.iloc[i][ACCEL_COLS],
                         time[i + 1] - time[i])

    assert_allclose(batch.state.lla, single.state.lla, rtol=1e-14)
    assert_allclose(batch.state.velocity_n, single.state.velocity_n, atol=1e-12)
    assert_allclose(batch.state.quat, single.state.quat, atol=1e-14)
    assert_allclose(result.iloc[-1].values, single.state.to_pva().values, atol=1e-10)


def test_compute_terms_keeps_state():
    integrator = make_integrator(velocity_n=(10, 0, 0))
    state = integrator.state.copy()
    terms = integrator.compute_terms(np.zeros(3), np.zeros(3), 0.1)
    assert_allclose(integrator.state.lla, state.lla, rtol=0)
    assert_allclose(integrator.state.velocity_n, state.velocity_n, rtol=0)
    assert terms.dt == 0.1
    assert integrator.terms is None


def test_set_attitude():
    rpy = np.deg2rad([10, -20, 30])
    first = Integrator()
    first.set_attitude(*rpy)
    second = Integrator()
    second.set_attitude(transform.mat_from_rpy(rpy))
    third = Integrator()
    third.set_attitude(rpy)
    assert_allclose(first.state.mat_nb, second.state.mat_nb, atol=1e-15)
    assert_allclose(first.state.quat, third.state.quat, atol=1e-15)
    assert_allclose(first.state.rpy, rpy, atol=1e-14)

    with pytest.raises(ValueError):
        first.set_attitude(1, 2)
    with pytest.raises(ValueError):
        first.set_attitude(np.full((3, 3), np.nan))


def test_kinematic_state():
    pva = pd.Series([55, 37, 150, 1, -2, 0.5, 10, -5, 200], index=TRAJECTORY_COLS)
    state = KinematicState.from_pva(pva)
    assert_allclose(state.lat, np.deg2rad(55))
    assert_allclose(state.lon, np.deg2rad(37))
    assert state.alt == 150
    pva_back = state.to_pva('name')
    assert pva_back.name == 'name'
    pva['yaw'] -= 360
    assert_allclose(pva_back, pva, atol=1e-10)

    copy = state.copy()
    copy.lla[0] = 0
    assert state.lat != 0

    with pytest.raises(ValueError):
        state.set_quat([0, 0, 0, 0])
    with pytest.raises(ValueError):
        state.set_quat([1, 0, 0])
    state.set_quat([2, 0, 0, 0])
    assert_allclose(state.quat, [1, 0, 0, 0])


@pytest.mark.parametrize("dt", [0, -0.01, np.nan, np.inf])
def test_invalid_dt(dt):
    integrator = make_integrator()
    with pytest.raises(ValueError):
        integrator.mechanize(np.zeros(3), [0, 0, -9.8], dt)


def test_invalid_inputs():
    integrator = make_integrator()
    with pytest.raises(ValueError):
        integrator.mechanize([np.nan, 0, 0], [0, 0, -9.8], 0.01)
    with pytest.raises(ValueError):
        integrator.mechanize(np.zeros(2), [0, 0, -9.8], 0.01)
    with pytest.raises(ValueError):
        integrator.set_position(np.nan, 0, 0)

    imu = pd.DataFrame(np.zeros((3, 6)), index=[0, 0.1, 0.1],
                       columns=GYRO_COLS + ACCEL_COLS)
    with pytest.raises(ValueError):
        integrator.integrate(imu)
