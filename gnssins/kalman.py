r"""Linear Kalman filter operations.

Discretization of a continuous linear system and the measurement correction
step, both independent of the navigation problem. See [1]_ for the theory.

Constants
---------
.. autosummary::
    :toctree: generated/

    MAX_CONDITION

Functions
---------
.. autosummary::
    :toctree: generated/

    compute_process_matrices
    correct

References
----------
.. [1] P\. S\. Maybeck, "Stochastic Models, Estimation and Control", volume 1
"""
import numpy as np
from scipy.linalg import cho_solve, cholesky, expm, solve_triangular
from . import util

#: Maximum allowed condition number of the innovation covariance.
MAX_CONDITION = 1e12


def compute_process_matrices(F, Q, dt):
    """Discretize a continuous linear system over a time step.

    For the system ``dx/dt = F @ x + w`` with white noise ``w`` of spectral
    density `Q` the transition matrix and the covariance of the accumulated
    noise are found from one matrix exponential as proposed in [1]_.

    Parameters
    ----------
    F : ndarray, shape (n, n)
        System matrix.
    Q : ndarray, shape (n, n)
        Spectral density of the process noise.
    dt : float
        Time step.

    Returns
    -------
    Phi : ndarray, shape (n, n)
        Transition matrix.
    Qd : ndarray, shape (n, n)
        Covariance of the process noise accumulated over `dt`.

    References
    ----------
    .. [1] C. F. Van Loan, "Computing Integrals Involving the Matrix Exponential",
           IEEE Transactions on Automatic Control, 1978
    """
    n = len(F)
    block = np.block([[-F, Q], [np.zeros((n, n)), F.T]])
    block = expm(block * dt)
    Phi = block[n:, n:].T
    return Phi, util.symmetrize(Phi @ block[:n, n:])


def correct(x, P, z, H, R):
    """Correct state and covariance by a linear measurement.

    The measurement model is ``z = H @ x + v`` with ``v`` having zero mean and
    covariance `R`. The covariance is updated in Joseph form.

    Parameters
    ----------
    x : ndarray, shape (n,)
        A priori state.
    P : ndarray, shape (n, n)
        A priori covariance.
    z : ndarray, shape (m,)
        Measurement vector.
    H : ndarray, shape (m, n)
        Measurement matrix.
    R : ndarray, shape (m, m)
        Covariance of the measurement noise.

    Returns
    -------
    x : ndarray, shape (n,)
        A posteriori state.
    P : ndarray, shape (n, n)
        A posteriori covariance.
    innovation : ndarray, shape (m,)
        Innovation whitened by the Cholesky factor of its covariance, unit
        covariance for a consistent filter.

    Raises
    ------
    numpy.linalg.LinAlgError
        If the innovation covariance is not finite, its condition number exceeds
        `MAX_CONDITION` or it is not positive definite.
    """
    PHt = P @ H.T
    S = H @ PHt + R
    if not np.all(np.isfinite(S)):
        raise np.linalg.LinAlgError("Innovation covariance is not finite")
    if np.linalg.cond(S) > MAX_CONDITION:
        raise np.linalg.LinAlgError("Innovation covariance is ill-conditioned")

    L = cholesky(S, lower=True)
    K = cho_solve((L, True), PHt.T).T
    e = z - H @ x
    I_KH = np.eye(len(x)) - K @ H
    P = util.symmetrize(I_KH @ P @ I_KH.T + K @ R @ K.T)
    return x + K @ e, P, solve_triangular(L, e, lower=True)
