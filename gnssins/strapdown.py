"""Strapdown INS mechanization.

This module integrates gyro and accelerometer readings into position, velocity and
attitude in NED frame over the rotating ellipsoidal Earth.

Each step executes the following sequence:

    1. Compute radii of curvature, gravity vector, Earth rate and transport rate
       at the current position and velocity.
    2. Rotate the attitude quaternion by the body rotation vector
       ``(omega_b - mat_nb.T @ (earth_rate_n + transport_rate_n)) * dt``.
    3. Compute the velocity increment with the attitude before the update.
       The Coriolis term uses ``2 * earth_rate_n + transport_rate_n`` and the
       Earth rate is ``[RATE * cos(lat), 0, -RATE * sin(lat)]``, not the
       ``earth_rate_n + 2 * transport_rate_n`` form with a positive down term.
    4. Update latitude, longitude and altitude using the average velocity.
    5. Re-derive the rotation matrix from the quaternion and commit the velocity.

The local-level mechanization is singular at the poles, where the longitude rate
is proportional to ``1 / cos(lat)``. No special treatment is made for it.

Classes
-------
.. autosummary::
    :toctree: generated/

    KinematicState
    NavigationTerms
    Integrator
"""
import numpy as np
import pandas as pd
from . import transform
from .util import LLA_COLS, VEL_COLS, RPY_COLS, GYRO_COLS, ACCEL_COLS, TRAJECTORY_COLS
from . import _numba_strapdown


def _check_vector(value, name):
    value = np.asarray(value, dtype=float)
    if value.shape != (3,):
        raise ValueError(f"`{name}` must have shape (3,)")
    if not np.all(np.isfinite(value)):
        raise ValueError(f"`{name}` must contain finite values")
    return value


def _check_dt(dt):
    if not np.isfinite(dt) or dt <= 0:
        raise ValueError("`dt` must be positive and finite")
    return float(dt)


class KinematicState:
    """Position, velocity and attitude of a vehicle.

    The attitude is kept as a unit quaternion and the rotation matrix is
    always re-derived from it.

    Parameters
    ----------
    lla : array_like, shape (3,), optional
        Latitude, longitude (radians) and altitude (meters). Zeros by default.
    velocity_n : array_like, shape (3,), optional
        Velocity resolved in NED. Zeros by default.
    quat : array_like, shape (4,), optional
        Scalar-first quaternion ``q_nb``. Identity by default.

    Attributes
    ----------
    lla : ndarray, shape (3,)
        Latitude, longitude and altitude.
    velocity_n : ndarray, shape (3,)
        Velocity resolved in NED.
    quat : ndarray, shape (4,)
        Attitude quaternion.
    mat_nb : ndarray, shape (3, 3)
        Rotation matrix from body to NED frame, derived from `quat`.
    """
    def __init__(self, lla=None, velocity_n=None, quat=None):
        self.lla = np.zeros(3) if lla is None else np.array(lla, dtype=float)
        self.velocity_n = (np.zeros(3) if velocity_n is None
                           else np.array(velocity_n, dtype=float))
        self.quat = np.array([1.0, 0.0, 0.0, 0.0])
        self.mat_nb = np.eye(3)
        if quat is not None:
            self.set_quat(quat)

    @property
    def lat(self):
        return self.lla[0]

    @property
    def lon(self):
        return self.lla[1]

    @property
    def alt(self):
        return self.lla[2]

    @property
    def rpy(self):
        """Roll, pitch and yaw in radians."""
        return transform.quat_to_rpy(self.quat)

    def set_quat(self, quat):
        """Set the attitude quaternion, normalize it and re-derive the matrix."""
        quat = np.array(quat, dtype=float)
        if quat.shape != (4,) or not np.all(np.isfinite(quat)):
            raise ValueError("`quat` must be a finite array with shape (4,)")
        norm = np.linalg.norm(quat)
        if norm == 0:
            raise ValueError("`quat` must be non-zero")
        self.quat[:] = quat / norm
        self.mat_nb[:] = transform.quat_to_mat(self.quat)

    def copy(self):
        return KinematicState(self.lla, self.velocity_n, self.quat)

    @classmethod
    def from_pva(cls, pva):
        """Create state from a position-velocity-attitude Series.

        Parameters
        ----------
        pva : Pva
            Series with latitude, longitude, roll, pitch and yaw in degrees.

        Returns
        -------
        KinematicState
        """
        lla = np.asarray(pva[LLA_COLS], dtype=float).copy()
        lla[:2] = np.deg2rad(lla[:2])
        quat = transform.quat_from_rpy(np.deg2rad(np.asarray(pva[RPY_COLS],
                                                             dtype=float)))
        return cls(lla, pva[VEL_COLS], quat)

    def to_pva(self, name=None):
        """Convert to a position-velocity-attitude Series with angles in degrees."""
        lla = self.lla.copy()
        lla[:2] = np.rad2deg(lla[:2])
        return pd.Series(np.hstack((lla, self.velocity_n, np.rad2deg(self.rpy))),
                         index=TRAJECTORY_COLS, name=name)


class NavigationTerms:
    """Quantities computed by a mechanization step.

    The terms are evaluated at the state before the step and then reused to
    build the error model for the same epoch.

    Attributes
    ----------
    lla : ndarray, shape (3,)
        Latitude, longitude and altitude before the step.
    velocity_n : ndarray, shape (3,)
        Velocity before the step.
    mat_nb : ndarray, shape (3, 3)
        Attitude matrix before the step.
    omega_b, f_b : ndarray, shape (3,)
        Angular rate and specific force used in the step.
    dt : float
        Time step.
    rn, re : float
        Meridian and transverse radii of curvature plus altitude.
    gravity_n : ndarray, shape (3,)
        Gravity vector in NED.
    earth_rate_n : ndarray, shape (3,)
        Earth rate resolved in NED.
    transport_rate_n : ndarray, shape (3,)
        Transport rate resolved in NED.
    """
    def __init__(self, state, omega_b, f_b, dt, terms):
        self.lla = state.lla.copy()
        self.velocity_n = state.velocity_n.copy()
        self.mat_nb = state.mat_nb.copy()
        self.omega_b = omega_b
        self.f_b = f_b
        self.dt = dt
        self.rn = terms[_numba_strapdown.RN]
        self.re = terms[_numba_strapdown.RE]
        self.gravity_n = terms[_numba_strapdown.GRAVITY].copy()
        self.earth_rate_n = terms[_numba_strapdown.EARTH_RATE].copy()
        self.transport_rate_n = terms[_numba_strapdown.TRANSPORT_RATE].copy()

    @property
    def curvature_matrix(self):
        """Earth curvature matrix consistent with `transport_rate_n`."""
        result = np.zeros((3, 3))
        result[0, 1] = 1 / self.re
        result[1, 0] = -1 / self.rn
        result[2, 1] = -np.tan(self.lla[0]) / self.re
        return result

    @property
    def f_n(self):
        """Specific force resolved in NED."""
        return self.mat_nb @ self.f_b


class Integrator:
    """Strapdown INS integration algorithm.

    Parameters
    ----------
    state : KinematicState, optional
        Initial state. If None (default), the state at zero latitude, longitude and
        altitude with zero velocity and identity attitude is used.

    Attributes
    ----------
    state : KinematicState
        Current state, updated in place by `mechanize`.
    terms : NavigationTerms or None
        Terms computed by the last `mechanize` call.
    """
    def __init__(self, state=None):
        self.state = KinematicState() if state is None else state
        self.terms = None
        self._terms = np.empty(_numba_strapdown.TERMS_SIZE)

    def set_position(self, lat, lon, alt):
        """Set latitude, longitude (radians) and altitude (meters)."""
        self.state.lla[:] = _check_vector([lat, lon, alt], "position")

    def set_velocity(self, vn, ve, vd):
        """Set NED velocity."""
        self.state.velocity_n[:] = _check_vector([vn, ve, vd], "velocity")

    def set_attitude(self, *args):
        """Set attitude.

        Can be called either with roll, pitch and yaw in radians as three numbers
        or a single array, or with a body-to-NED rotation matrix.
        """
        if len(args) == 3:
            rpy = _check_vector(args, "rpy")
            self.state.set_quat(transform.quat_from_rpy(rpy))
        elif len(args) == 1:
            value = np.asarray(args[0], dtype=float)
            if value.shape == (3, 3):
                if not np.all(np.isfinite(value)):
                    raise ValueError("Rotation matrix must contain finite values")
                self.state.set_quat(transform.mat_to_quat(value))
            else:
                self.state.set_quat(transform.quat_from_rpy(_check_vector(value,
                                                                          "rpy")))
        else:
            raise ValueError("Either roll, pitch, yaw or a rotation matrix must be "
                             "passed")

    def mechanize(self, omega_b, f_b, dt):
        """Advance the state by one IMU sample.

        Parameters
        ----------
        omega_b : array_like, shape (3,)
            Angular rate in body frame, rad/s.
        f_b : array_like, shape (3,)
            Specific force in body frame, m/s^2.
        dt : float
            Sample interval, must be positive.

        Returns
        -------
        NavigationTerms
            Terms computed at the state before the update.
        """
        omega_b = _check_vector(omega_b, "omega_b")
        f_b = _check_vector(f_b, "f_b")
        dt = _check_dt(dt)

        state = self.state
        before = state.copy()
        _numba_strapdown.mechanize(state.lla, state.velocity_n, state.quat,
                                   state.mat_nb, omega_b, f_b, dt, self._terms)
        self.terms = NavigationTerms(before, omega_b, f_b, dt, self._terms)
        return self.terms

    def compute_terms(self, omega_b, f_b, dt):
        """Compute navigation terms at the current state without advancing it.

        Parameters are the same as in `mechanize`.

        Returns
        -------
        NavigationTerms
        """
        omega_b = _check_vector(omega_b, "omega_b")
        f_b = _check_vector(f_b, "f_b")
        dt = _check_dt(dt)
        _numba_strapdown.compute_terms(self.state.lla, self.state.velocity_n,
                                       self._terms)
        return NavigationTerms(self.state, omega_b, f_b, dt, self._terms)

    def integrate(self, imu):
        """Integrate a batch of IMU readings.

        A reading at time ``t[i]`` is held constant over ``[t[i], t[i + 1]]``,
        thus the last reading is not used.

        Parameters
        ----------
        imu : Imu
            DataFrame indexed by time with angular rates in `GYRO_COLS` and specific
            forces in `ACCEL_COLS`.

        Returns
        -------
        Trajectory
            DataFrame with positions, velocities and attitudes at the times of
            `imu`, angles are in degrees. The first row is the initial state.
        """
        dt = np.diff(np.asarray(imu.index, dtype=float))
        if np.any(~np.isfinite(dt)) or np.any(dt <= 0):
            raise ValueError("`imu` index must be strictly increasing")

        n = len(imu)
        lla = np.empty((n, 3))
        velocity_n = np.empty((n, 3))
        quat = np.empty((n, 4))
        mat_nb = np.empty((n, 3, 3))
        lla[0] = self.state.lla
        velocity_n[0] = self.state.velocity_n
        quat[0] = self.state.quat
        mat_nb[0] = self.state.mat_nb

        omega_b = np.ascontiguousarray(imu[GYRO_COLS].values[:-1], dtype=float)
        f_b = np.ascontiguousarray(imu[ACCEL_COLS].values[:-1], dtype=float)
        _numba_strapdown.integrate(dt, lla, velocity_n, quat, mat_nb,
                                   omega_b, f_b, 0)

        self.state = KinematicState(lla[-1], velocity_n[-1], quat[-1])
        lla[:, :2] = np.rad2deg(lla[:, :2])
        rpy = np.rad2deg(transform.quat_to_rpy(quat))
        trajectory = pd.DataFrame(np.hstack((lla, velocity_n, rpy)),
                                  index=imu.index, columns=TRAJECTORY_COLS)
        trajectory.index.name = 'time'
        return trajectory
