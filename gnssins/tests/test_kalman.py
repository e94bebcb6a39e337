import numpy as np
import pytest
from numpy.testing import assert_allclose
from gnssins import kalman


def test_kalman_correct():
    # Independent scalar updates have closed form solutions.
    P0 = np.array([[2, 0], [0, 1]], dtype=float)
    x0 = np.array([0, 0], dtype=float)

    z = np.array([1, 2])
    R = np.array([[3, 0], [0, 2]])
    H = np.identity(2)

    x_true = np.array([1 * 2 / (2 + 3), 2 * 1 / (1 + 2)])
    P_true = np.diag([1 / (1/2 + 1/3), 1 / (1/1 + 1/2)])

    x, P, innovation = kalman.correct(x0, P0, z, H, R)
    assert_allclose(x, x_true)
    assert_allclose(P, P_true)
    assert_allclose(innovation, [1 / 5 ** 0.5, 2 / 3 ** 0.5])


def test_kalman_correct_joseph_form():
    rng = np.random.RandomState(0)
    A = rng.randn(6, 6)
    P = A @ A.T + np.eye(6)
    H = rng.randn(3, 6)
    R = np.diag([0.5, 1.0, 2.0])
    x = rng.randn(6)
    z = rng.randn(3)

    x_new, P_new, innovation = kalman.correct(x, P, z, H, R)

    S = H @ P @ H.T + R
    K = P @ H.T @ np.linalg.inv(S)
    assert_allclose(x_new, x + K @ (z - H @ x))
    assert_allclose(P_new, (np.eye(6) - K @ H) @ P, atol=1e-12)
    assert_allclose(P_new, P_new.T, rtol=0)
    assert np.all(np.linalg.eigvalsh(P_new) > 0)

    L = np.linalg.cholesky(S)
    assert_allclose(L @ innovation, z - H @ x)


def test_kalman_correct_singular():
    P = np.diag([1.0, 1.0, 1.0])
    H = np.array([[1.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
    R = np.zeros((2, 2))
    with pytest.raises(np.linalg.LinAlgError):
        kalman.correct(np.zeros(3), P, np.ones(2), H, R)

    H = np.array([[np.nan, 0.0, 0.0]])
    with pytest.raises(np.linalg.LinAlgError):
        kalman.correct(np.zeros(3), P, np.ones(1), H, np.ones((1, 1)))


def test_process_matrices():
    F = np.array([[0, 1], [0, 0]])
    Q = np.array([[0, 0], [0, 1]])

    Phi, Qd = kalman.compute_process_matrices(F, Q, 1)
    assert_allclose(Phi, np.array([[1, 1], [0, 1]]))
    assert_allclose(Qd, np.array([[1 / 3, 0.5], [0.5, 1]]))

    rng = np.random.RandomState(0)
    F = rng.randn(15, 15)
    Q = rng.randn(15, 15)
    Q = Q.dot(Q.T)

    Phi, Qd = kalman.compute_process_matrices(F, Q, 0.5)
    test = F.dot(Qd) + Qd.dot(F.T) + Q - Phi.dot(Q).dot(Phi.T)
    assert_allclose(test, 0, atol=1e-10)
    assert_allclose(Qd, Qd.T, rtol=0)
