"""GNSS geometry and least-squares positioning.

The receiver state used by the solver is an 8-vector::

    [x, y, z, clock_bias, vx, vy, vz, clock_drift]

with ECEF position and velocity in meters and m/s, clock bias and drift in meters
and m/s.

Satellite positions and velocities are expected in the ECEF frame at the time of
signal reception. Earth rotation during signal travel time (Sagnac effect) is not
accounted for.

Constants
---------
.. autosummary::
    :toctree: generated/

    MAX_ITERATIONS
    TOLERANCE
    MAX_CONDITION
    MAX_GEOMETRY_CONDITION

Functions
---------
.. autosummary::
    :toctree: generated/

    range_and_rate
    geometry_condition
    gauss_newton
    validate_observables
"""
import logging
import numpy as np

logger = logging.getLogger(__name__)

#: Maximum number of Gauss-Newton iterations.
MAX_ITERATIONS = 10
#: Threshold on the norm of the state correction to declare convergence.
TOLERANCE = 1e-4
#: Maximum allowed condition number of the normal equations matrix.
MAX_CONDITION = 1e12
#: Maximum allowed condition number of the line-of-sight geometry matrix.
MAX_GEOMETRY_CONDITION = 1e6

N_STATES = 8
POSITION = [0, 1, 2]
CLOCK_BIAS = 3
VELOCITY = [4, 5, 6]
CLOCK_DRIFT = 7


def range_and_rate(user_pos, user_vel, clock_bias, clock_drift, sv_pos, sv_vel):
    """Compute line-of-sight vectors and predicted pseudoranges and rates.

    Parameters
    ----------
    user_pos, user_vel : array_like, shape (3,)
        Receiver ECEF position and velocity.
    clock_bias, clock_drift : float
        Receiver clock bias and drift in meters and m/s.
    sv_pos, sv_vel : array_like, shape (n_sv, 3)
        Satellite ECEF positions and velocities.

    Returns
    -------
    u : ndarray, shape (n_sv, 3)
        Unit vectors from the receiver to the satellites.
    u_dot : ndarray, shape (n_sv, 3)
        Time derivatives of `u`.
    psr : ndarray, shape (n_sv,)
        Predicted pseudoranges, geometric range plus clock bias.
    psrdot : ndarray, shape (n_sv,)
        Predicted pseudorange rates, range rate plus clock drift.
    """
    dr = np.asarray(sv_pos, dtype=float) - user_pos
    dv = np.asarray(sv_vel, dtype=float) - user_vel

    r = np.linalg.norm(dr, axis=-1)
    u = dr / r[:, None]
    range_rate = np.sum(u * dv, axis=-1)
    u_dot = (dv - u * range_rate[:, None]) / r[:, None]

    return u, u_dot, r + clock_bias, range_rate + clock_drift


def geometry_condition(u):
    """Compute condition number of the satellite geometry matrix.

    The geometry matrix relates pseudoranges to receiver position and clock bias,
    its rows are ``[-u, 1]``. With fewer than 4 satellites the condition number is
    computed from the available singular values, so it stays finite for distinct
    lines of sight and grows without bound when they coincide.

    Parameters
    ----------
    u : array_like, shape (n_sv, 3)
        Unit vectors from the receiver to the satellites.

    Returns
    -------
    float
    """
    u = np.asarray(u, dtype=float)
    G = np.hstack((-u, np.ones((len(u), 1))))
    if not np.all(np.isfinite(G)):
        return np.inf
    return np.linalg.cond(G)


def validate_observables(sv_pos, sv_vel, psr, psrdot, psr_var, psrdot_var):
    """Check shapes and values of per-satellite observables.

    Returns
    -------
    list of ndarray
        The inputs converted to float arrays in the same order.
    """
    sv_pos = np.asarray(sv_pos, dtype=float)
    sv_vel = np.asarray(sv_vel, dtype=float)
    if sv_pos.ndim != 2 or sv_pos.shape[1] != 3:
        raise ValueError("`sv_pos` must have shape (n_sv, 3)")
    if sv_vel.shape != sv_pos.shape:
        raise ValueError("`sv_vel` must have the same shape as `sv_pos`")

    n_sv = len(sv_pos)
    result = [sv_pos, sv_vel]
    for value, name in [(psr, 'psr'), (psrdot, 'psrdot'),
                        (psr_var, 'psr_var'), (psrdot_var, 'psrdot_var')]:
        value = np.asarray(value, dtype=float)
        if value.shape != (n_sv,):
            raise ValueError(f"`{name}` must have shape ({n_sv},)")
        result.append(value)

    if not all(np.all(np.isfinite(value)) for value in result):
        raise ValueError("Observables must contain finite values")
    if np.any(result[4] < 0) or np.any(result[5] < 0):
        raise ValueError("Variances must be non-negative")

    return result


def gauss_newton(state, covariance, sv_pos, sv_vel, psr, psrdot, psr_var, psrdot_var):
    """Solve for receiver position, velocity and clock by Gauss-Newton method.

    Weighted nonlinear least squares with weights equal to inverse variances of
    the measurements is solved. `state` and `covariance` are updated in place.
    When False is returned their content must not be trusted.

    Parameters
    ----------
    state : ndarray, shape (8,)
        Initial guess of the receiver state, updated in place.
    covariance : ndarray, shape (8, 8)
        Output covariance of the solution, updated in place.
    sv_pos, sv_vel : array_like, shape (n_sv, 3)
        Satellite ECEF positions and velocities. At least 4 satellites are
        required.
    psr, psrdot : array_like, shape (n_sv,)
        Measured pseudoranges and pseudorange rates.
    psr_var, psrdot_var : array_like, shape (n_sv,)
        Variances of pseudoranges and pseudorange rates, must be positive.

    Returns
    -------
    bool
        Whether the iterations converged.
    """
    if np.shape(state) != (N_STATES,):
        raise ValueError("`state` must have shape (8,)")
    if np.shape(covariance) != (N_STATES, N_STATES):
        raise ValueError("`covariance` must have shape (8, 8)")

    sv_pos, sv_vel, psr, psrdot, psr_var, psrdot_var = validate_observables(
        sv_pos, sv_vel, psr, psrdot, psr_var, psrdot_var)
    n_sv = len(sv_pos)
    if n_sv < 4:
        raise ValueError("At least 4 satellites are required")
    if np.any(psr_var == 0) or np.any(psrdot_var == 0):
        raise ValueError("Variances must be positive")

    z = np.hstack((psr, psrdot))
    weights = 1 / np.hstack((psr_var, psrdot_var))

    H = np.zeros((2 * n_sv, N_STATES))
    H[:n_sv, CLOCK_BIAS] = 1
    H[n_sv:, CLOCK_DRIFT] = 1
    for iteration in range(MAX_ITERATIONS):
        u, u_dot, psr_pred, psrdot_pred = range_and_rate(
            state[POSITION], state[VELOCITY], state[CLOCK_BIAS], state[CLOCK_DRIFT],
            sv_pos, sv_vel)
        H[:n_sv, POSITION] = -u
        H[n_sv:, POSITION] = -u_dot
        H[n_sv:, VELOCITY] = -u

        residual = z - np.hstack((psr_pred, psrdot_pred))
        HW = H.T * weights
        N = HW @ H
        if not np.all(np.isfinite(N)) or np.linalg.cond(N) > MAX_CONDITION:
            logger.warning(f"Singular normal equations at iteration {iteration}")
            return False

        N_inv = np.linalg.inv(N)
        dx = N_inv @ HW @ residual
        state += dx
        covariance[:] = 0.5 * (N_inv + N_inv.T)
        if np.linalg.norm(dx) < TOLERANCE:
            logger.debug(f"Converged after {iteration + 1} iterations")
            return True

    logger.warning(f"Not converged after {MAX_ITERATIONS} iterations")
    return False
