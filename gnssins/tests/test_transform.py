import numpy as np
import pytest
from numpy.testing import assert_allclose
from scipy.spatial.transform import Rotation
from gnssins import earth, transform


def test_quat_mat_conversions():
    rng = np.random.RandomState(0)
    quat = rng.randn(20, 4)
    quat /= np.linalg.norm(quat, axis=1)[:, None]
    quat[quat[:, 0] < 0] *= -1

    mat = transform.quat_to_mat(quat)
    assert_allclose(mat @ mat.transpose((0, 2, 1)), np.tile(np.eye(3), (20, 1, 1)),
                    atol=1e-14)
    assert_allclose(transform.mat_to_quat(mat), quat, atol=1e-14)
    assert_allclose(transform.mat_to_quat(mat[0]), quat[0], atol=1e-14)


def test_rpy_conversions():
    rpy = np.deg2rad([[10, -20, 30], [-170, 80, -100], [0, 0, 90]])
    mat = transform.mat_from_rpy(rpy)
    assert_allclose(transform.mat_to_rpy(mat), rpy, atol=1e-14)
    assert_allclose(transform.quat_to_rpy(transform.quat_from_rpy(rpy)), rpy,
                    atol=1e-14)
    assert_allclose(transform.quat_to_mat(transform.quat_from_rpy(rpy)), mat,
                    atol=1e-14)

    assert_allclose(mat[2] @ [1, 0, 0], [0, 1, 0], atol=1e-15)

    mat = transform.mat_from_rpy([0, np.deg2rad(30), 0])
    assert_allclose(mat @ [1, 0, 0], [np.cos(np.deg2rad(30)), 0,
                                      -np.sin(np.deg2rad(30))], atol=1e-15)


def test_quat_multiply():
    rng = np.random.RandomState(1)
    p = rng.randn(4)
    q = rng.randn(4)
    p /= np.linalg.norm(p)
    q /= np.linalg.norm(q)

    pq = transform.quat_multiply(p, q)
    assert_allclose(np.linalg.norm(pq), 1, rtol=1e-14)
    assert_allclose(transform.quat_to_mat(pq),
                    transform.quat_to_mat(p) @ transform.quat_to_mat(q), atol=1e-14)
    assert_allclose(transform.quat_multiply([1, 0, 0, 0], q), q)


def test_quat_from_rotvec():
    rv = np.array([0.1, -0.5, 0.3])
    assert_allclose(transform.quat_from_rotvec(rv),
                    np.roll(Rotation.from_rotvec(rv).as_quat(), 1), atol=1e-14)
    assert_allclose(transform.quat_from_rotvec(np.zeros(3)), [1, 0, 0, 0])

    direction = np.array([1.0, 2.0, -2.0]) / 3
    angle = 2 * transform.SMALL_ANGLE_THRESHOLD
    below = transform.quat_from_rotvec(direction * angle * (1 - 1e-9))
    above = transform.quat_from_rotvec(direction * angle * (1 + 1e-9))
    assert_allclose(below, above, atol=1e-6)
    assert_allclose(below[1:], 0.5 * angle * direction, rtol=1e-8)


@pytest.mark.parametrize("lla_deg", [[0, 0, 0], [55, 37, 150], [-33.5, -70.6, 500],
                                     [89.99, 120, 10], [-90, 0, 0], [45, 179, 20e3]])
def test_lla_ecef_conversions(lla_deg):
    lla = np.array([np.deg2rad(lla_deg[0]), np.deg2rad(lla_deg[1]), lla_deg[2]])
    r_e = transform.lla_to_ecef(lla)
    lla_back = transform.ecef_to_lla(r_e)
    assert_allclose(lla_back[0], lla[0], atol=1e-11)
    assert_allclose(lla_back[2], lla[2], atol=1e-5)
    if abs(lla_deg[0]) < 90:
        assert_allclose(lla_back[1], lla[1], atol=1e-11)


def test_lla_to_ecef():
    assert_allclose(transform.lla_to_ecef([0, 0, 0]), [earth.A, 0, 0])
    assert_allclose(transform.lla_to_ecef([0.5 * np.pi, 0, 0]), [0, 0, earth.B],
                    atol=1e-3)
    r_e = transform.lla_to_ecef([[0, 0.5 * np.pi, 100], [0, np.pi, 0]])
    assert_allclose(r_e, [[0, earth.A + 100, 0], [-earth.A, 0, 0]], atol=1e-6)


def test_mat_en_from_ll():
    assert_allclose(transform.mat_en_from_ll(-0.5 * np.pi, 0), np.eye(3), atol=1e-15)
    assert_allclose(transform.mat_en_from_ll(0, 0),
                    [[0, 0, -1], [0, 1, 0], [1, 0, 0]], atol=1e-15)

    mat = transform.mat_en_from_ll([0, 0.5], [0, 1.0])
    assert mat.shape == (2, 3, 3)
    assert_allclose(mat[0], transform.mat_en_from_ll(0, 0))


def test_velocity_rotation():
    lat = np.deg2rad(55.0)
    lon = np.deg2rad(37.0)
    velocity_n = np.array([10.0, -5.0, 1.0])
    velocity_e = transform.ned_to_ecef_velocity(velocity_n, lat, lon)
    assert_allclose(np.linalg.norm(velocity_e), np.linalg.norm(velocity_n))
    assert_allclose(transform.ecef_to_ned_velocity(velocity_e, lat, lon), velocity_n)

    up_e = transform.ned_to_ecef_velocity([0, 0, -1], lat, lon)
    r_e = transform.lla_to_ecef([lat, lon, 0])
    assert up_e @ r_e > 0.99 * np.linalg.norm(r_e)


def test_perturb_lla():
    lla = np.array([np.deg2rad(55.0), np.deg2rad(37.0), 150.0])
    dr_n = np.array([10.0, -20.0, 5.0])
    lla_perturbed = transform.perturb_lla(lla, dr_n)
    assert_allclose(lla_perturbed[2], 145.0)
    assert_allclose(transform.compute_lla_difference(lla_perturbed, lla), dr_n,
                    rtol=1e-5)

    r_e = transform.lla_to_ecef(lla)
    r_e_perturbed = transform.lla_to_ecef(lla_perturbed)
    mat_en = transform.mat_en_from_ll(lla[0], lla[1])
    assert_allclose(mat_en.T @ (r_e_perturbed - r_e), dr_n, atol=1e-3)

    lla = np.tile(lla, (3, 1))
    assert_allclose(transform.perturb_lla(lla, dr_n), np.tile(lla_perturbed, (3, 1)))
    assert_allclose(transform.perturb_lla(lla[0], np.tile(dr_n, (3, 1))),
                    np.tile(lla_perturbed, (3, 1)))
