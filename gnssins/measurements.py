"""Measurement models for navigation Kalman filters.

In context of inertial navigation measurements are obtained from sensors other than
IMU. In a Kalman filter a measurement is processed by forming a difference between
the predicted and the measured vectors and linearly relating it to the error vector::

    z = Z_ins - Z = H @ x + v

Where

    - ``Z`` - measured vector
    - ``Z_ins`` - predicted vector using the current INS state
    - ``z`` - innovation vector
    - ``x`` - error state vector
    - ``H`` - measurement Jacobian
    - ``v`` - noise vector, typically assumed to have zero mean and known variance

Here the measurements are satellite pseudoranges and pseudorange rates processed in
the tightly coupled manner.

Classes
-------
.. autosummary::
    :toctree: generated/

    SatelliteObservations

References
----------
.. [1] P. D. Groves, "Principles of GNSS, Inertial, and Multisensor Integrated
       Navigation Systems", 2nd edition
"""
import numpy as np
import pandas as pd
from . import gnss, transform
from .util import OBSERVATION_COLS, SV_POS_COLS, SV_VEL_COLS


class SatelliteObservations:
    """Pseudoranges and pseudorange rates of satellites at one epoch.

    Parameters
    ----------
    sv_pos, sv_vel : array_like, shape (n_sv, 3)
        Satellite ECEF positions and velocities.
    psr, psrdot : array_like, shape (n_sv,)
        Measured pseudoranges and pseudorange rates.
    psr_var, psrdot_var : array_like, shape (n_sv,)
        Non-negative variances of the measurements.
    sv_id : array_like, shape (n_sv,) or None, optional
        Satellite identifiers. If None (default), consecutive integers are used.
    """
    def __init__(self, sv_pos, sv_vel, psr, psrdot, psr_var, psrdot_var, sv_id=None):
        (self.sv_pos, self.sv_vel, self.psr, self.psrdot,
         self.psr_var, self.psrdot_var) = gnss.validate_observables(
            sv_pos, sv_vel, psr, psrdot, psr_var, psrdot_var)
        if sv_id is None:
            sv_id = np.arange(len(self.psr))
        sv_id = np.asarray(sv_id)
        if sv_id.shape != self.psr.shape:
            raise ValueError("`sv_id` must have the same length as `psr`")
        self.sv_id = sv_id

    def __len__(self):
        return len(self.psr)

    @classmethod
    def from_data_frame(cls, data):
        """Create from a DataFrame with columns `OBSERVATION_COLS`."""
        sv_id = data['sv_id'].values if 'sv_id' in data else None
        return cls(data[SV_POS_COLS].values, data[SV_VEL_COLS].values,
                   data['psr'].values, data['psrdot'].values,
                   data['psr_var'].values, data['psrdot_var'].values, sv_id)

    def to_data_frame(self, time=None):
        """Convert to a DataFrame with columns `OBSERVATION_COLS`.

        If `time` is given it is used as the index value of all rows.
        """
        data = pd.DataFrame(
            np.column_stack((self.sv_pos, self.sv_vel, self.psr, self.psrdot,
                             self.psr_var, self.psrdot_var)),
            columns=OBSERVATION_COLS[1:])
        data.insert(0, 'sv_id', self.sv_id)
        if time is not None:
            data.index = pd.Index(np.full(len(data), time), name='time')
        return data

    def compute_matrices(self, state, clock, error_model):
        """Compute matrices for the linearized measurement.

        Parameters
        ----------
        state : KinematicState
            Current navigation state.
        clock : array_like, shape (2,)
            Current clock bias and drift estimates.
        error_model : InsErrorModel
            INS error model.

        Returns
        -------
        z : ndarray, shape (2 * n_sv,)
            Predicted minus measured pseudoranges followed by the same for
            pseudorange rates.
        H : ndarray, shape (2 * n_sv, error_model.n_states + 2)
            Observation model matrix. The last two columns relate to clock bias
            and drift errors.
        R : ndarray, shape (2 * n_sv, 2 * n_sv)
            Covariance matrix of the measurement error.

        Raises
        ------
        numpy.linalg.LinAlgError
            If lines of sight to the satellites are degenerate, such that the
            condition number of the geometry matrix exceeds
            `gnss.MAX_GEOMETRY_CONDITION`.
        """
        n_sv = len(self)
        lat, lon, _ = state.lla
        mat_en = transform.mat_en_from_ll(lat, lon)
        r_e = transform.lla_to_ecef(state.lla)
        v_e = mat_en @ state.velocity_n

        u, u_dot, psr, psrdot = gnss.range_and_rate(r_e, v_e, clock[0], clock[1],
                                                    self.sv_pos, self.sv_vel)
        if gnss.geometry_condition(u) > gnss.MAX_GEOMETRY_CONDITION:
            raise np.linalg.LinAlgError("Satellite geometry is degenerate")

        z = np.hstack((psr - self.psr, psrdot - self.psrdot))

        position_jacobian = mat_en @ error_model.position_error_jacobian(state)
        velocity_jacobian = mat_en @ error_model.ned_velocity_error_jacobian(state)

        n_ins = error_model.n_states
        H = np.zeros((2 * n_sv, n_ins + 2))
        H[:n_sv, :n_ins] = -u @ position_jacobian
        H[:n_sv, n_ins] = 1
        H[n_sv:, :n_ins] = -u_dot @ position_jacobian - u @ velocity_jacobian
        H[n_sv:, n_ins + 1] = 1

        R = np.diag(np.hstack((self.psr_var, self.psrdot_var)))
        return z, H, R
