"""Linearized INS error dynamics.

Small errors of the strapdown solution obey linear differential equations whose
coefficients depend on the current trajectory. Nine states describe them: three
for each of position, velocity and attitude. `InsErrorModel` builds the system
matrices of these equations and applies estimated errors to a `KinematicState`.

Errors are defined as estimated minus true values.

Classes
-------
.. autosummary::
    :toctree: generated/

    InsErrorModel
"""
import numpy as np
from . import earth, transform, util


def _phi_to_delta_rpy(rpy):
    sin = np.sin(rpy)
    cos = np.cos(rpy)

    result = np.zeros((3, 3))
    result[0, 0] = -cos[2] / cos[1]
    result[0, 1] = -sin[2] / cos[1]
    result[1, 0] = sin[2]
    result[1, 1] = -cos[2]
    result[2, 0] = -cos[2] * sin[1] / cos[1]
    result[2, 1] = -sin[2] * sin[1] / cos[1]
    result[2, 2] = -1
    return result


class InsErrorModel:
    """INS error model.

    Implements the "modified phi-angle" model of [1]_. Its velocity error is taken
    with respect to the true velocity resolved in the computed (platform) frame, so
    the specific force does not appear in the system matrix.

    The model is linearized using `NavigationTerms` computed by the strapdown
    mechanization, so the same Earth rate, transport rate and gravity enter both
    the mechanization and the covariance propagation.

    Attributes
    ----------
    states : list of str
        State names.
    n_states : int
        Number of states, always 9.

    References
    ----------
    .. [1] Bruno M. Scherzinger and D.Blake Reid "Modified Strapdown Inertial
           Navigator Error Models"
    """
    DRN = 0
    DRE = 1
    DRD = 2
    DVN = 3
    DVE = 4
    DVD = 5
    DROLL = 6
    DPITCH = 7
    DYAW = 8
    DR_OUT = [DRN, DRE, DRD]
    DV_OUT = [DVN, DVE, DVD]
    DRPY = [DROLL, DPITCH, DYAW]

    DR1 = 0
    DR2 = 1
    DR3 = 2
    DV1 = 3
    DV2 = 4
    DV3 = 5
    PHI1 = 6
    PHI2 = 7
    PHI3 = 8
    DR = [DR1, DR2, DR3]
    DV = [DV1, DV2, DV3]
    PHI = [PHI1, PHI2, PHI3]

    def __init__(self):
        self.states = ['DR1', 'DR2', 'DR3', 'DV1', 'DV2', 'DV3',
                       'PHI1', 'PHI2', 'PHI3']

    @property
    def n_states(self):
        return len(self.states)

    def system_matrices(self, terms):
        """Build the continuous-time error dynamics for one epoch.

        The errors evolve as::

            dx/dt = F @ x + B_gyro @ gyro_error + B_accel @ accel_error

        Where

            - ``x`` - 9 INS error states
            - ``gyro_error``, ``accel_error`` - sensor errors in the body frame
            - ``F``, ``B_gyro``, ``B_accel`` - returned matrices

        Parameters
        ----------
        terms : NavigationTerms
            Terms computed by the mechanization step.

        Returns
        -------
        F : ndarray, shape (9, 9)
            Error dynamics matrix.
        B_gyro : ndarray, shape (9, 3)
            Gyro error coupling matrix.
        B_accel : ndarray, shape (9, 3)
            Accelerometer error coupling matrix.
        """
        V_skew = util.skew_matrix(terms.velocity_n)
        R = terms.curvature_matrix
        Omega_n = terms.earth_rate_n
        rho_n = terms.transport_rate_n
        mat_nb = terms.mat_nb

        F = np.zeros((9, 9))
        F[np.ix_(self.DR, self.DV)] = np.eye(3)
        F[np.ix_(self.DR, self.PHI)] = V_skew

        F[np.ix_(self.DV, self.DV)] = -util.skew_matrix(2 * Omega_n + rho_n)
        F[np.ix_(self.DV, self.PHI)] = -util.skew_matrix(terms.gravity_n)
        F[self.DV3, self.DR3] = 2 * earth.gravity(terms.lla[0], 0) / earth.A

        F[np.ix_(self.PHI, self.DR)] = util.skew_matrix(Omega_n) @ R
        F[np.ix_(self.PHI, self.DV)] = R
        F[np.ix_(self.PHI, self.PHI)] = -util.skew_matrix(rho_n + Omega_n) + R @ V_skew

        B_gyro = np.zeros((9, 3))
        B_gyro[self.DV] = V_skew @ mat_nb
        B_gyro[self.PHI] = -mat_nb

        B_accel = np.zeros((9, 3))
        B_accel[self.DV] = mat_nb

        return F, B_gyro, B_accel

    def transform_to_output(self, state):
        """Matrix mapping the internal errors to the output errors.

        The output errors are NED position and velocity errors followed by roll,
        pitch and yaw errors in radians.

        Parameters
        ----------
        state : KinematicState
            Current navigation state.

        Returns
        -------
        ndarray, shape (9, 9)
            Transformation matrix.
        """
        result = np.zeros((9, 9))
        result[np.ix_(self.DR_OUT, self.DR)] = np.eye(3)
        result[np.ix_(self.DV_OUT, self.DV)] = np.eye(3)
        result[np.ix_(self.DV_OUT, self.PHI)] = util.skew_matrix(state.velocity_n)
        result[np.ix_(self.DRPY, self.PHI)] = _phi_to_delta_rpy(state.rpy)
        return result

    def transform_to_internal(self, state):
        """Matrix mapping the output errors to the internal errors.

        Inverse of `transform_to_output`.

        Parameters
        ----------
        state : KinematicState
            Current navigation state.

        Returns
        -------
        ndarray, shape (9, 9)
            Transformation matrix.
        """
        return np.linalg.inv(self.transform_to_output(state))

    def correct_state(self, state, x):
        """Correct the navigation state with estimated errors in place.

        Parameters
        ----------
        state : KinematicState
            State to correct.
        x : ndarray, shape (9,)
            Estimated errors in the internal representation.
        """
        phi = x[self.PHI]
        mat_tp = transform.quat_to_mat(transform.quat_from_rotvec(phi))
        state.lla[:] = transform.perturb_lla(state.lla, -x[self.DR])
        state.velocity_n[:] = mat_tp @ (state.velocity_n - x[self.DV])
        state.set_quat(transform.quat_multiply(transform.quat_from_rotvec(phi),
                                               state.quat))

    def position_error_jacobian(self, state):
        """Jacobian of the NED position error with respect to the error states.

        Parameters
        ----------
        state : KinematicState
            Current navigation state.

        Returns
        -------
        ndarray, shape (3, 9)
            Jacobian matrix.
        """
        result = np.zeros((3, 9))
        result[:, self.DR] = np.eye(3)
        return result

    def ned_velocity_error_jacobian(self, state):
        """Jacobian of the NED velocity error with respect to the error states.

        Parameters
        ----------
        state : KinematicState
            Current navigation state.

        Returns
        -------
        ndarray, shape (3, 9)
            Jacobian matrix.
        """
        result = np.zeros((3, 9))
        result[:, self.DV] = np.eye(3)
        result[:, self.PHI] = util.skew_matrix(state.velocity_n)
        return result
