"""Navigation Kalman filters.

Module provides the tightly coupled GNSS/INS navigation filter in feedback form
(extended Kalman filter) and a function to run it over recorded data. It relies on
functionality provided by `gnssins.strapdown`, `gnssins.error_model`,
`gnssins.inertial_sensor`, `gnssins.clock` and `gnssins.measurements` modules.

The error state vector is composed of blocks::

    [INS errors (9), gyro biases, accelerometer biases, clock bias, clock drift]

where the number of bias states depends on the configured IMU error model.

Refer to [1]_ for the discussion of Kalman filtering in context of inertial navigation.

Classes
-------
.. autosummary::
    :toctree: generated/

    NavigationFilter

Functions
---------
.. autosummary::
    :toctree: generated/

    run_feedback_filter

References
----------
.. [1] P. D. Groves, "Principles of GNSS, Inertial, and Multisensor Integrated
       Navigation Systems", 2nd edition
"""
import logging
import warnings
import numpy as np
import pandas as pd
from . import gnss, kalman, transform, util
from .clock import ClockModel
from .error_model import InsErrorModel
from .inertial_sensor import ImuErrorModel
from .measurements import SatelliteObservations
from .strapdown import Integrator, KinematicState
from .util import GYRO_COLS, ACCEL_COLS, CLOCK_COLS, TRAJECTORY_ERROR_COLS

logger = logging.getLogger(__name__)


def _extract_sd(P):
    variance = np.diagonal(P, axis1=-2, axis2=-1).copy()
    if np.any(variance < 0):
        warnings.warn("Negative variances found in the covariance matrix, "
                      "they are replaced with zeros")
        variance[variance < 0] = 0
    return variance ** 0.5


class NavigationFilter:
    """Tightly coupled GNSS/INS navigation filter.

    The filter owns the navigation state, the clock state, the IMU bias estimates
    and the error covariance. Each IMU sample must be processed by `mechanize`
    followed by `propagate`. Satellite measurements are processed by
    `gnss_update` after that.

    The covariance is built at construction using the current state. After the
    state is set with `set_position` or `set_attitude`, call `reset_covariance`
    to rebuild it.

    Parameters
    ----------
    position_sd : float, optional
        Initial position standard deviation in meters. Default is 10.
    velocity_sd : float, optional
        Initial velocity standard deviation in m/s. Default is 1.
    level_sd : float, optional
        Initial roll and pitch standard deviation in degrees. Default is 1.
    azimuth_sd : float, optional
        Initial yaw standard deviation in degrees. Default is 10.
    clock_bias_sd : float, optional
        Initial clock bias standard deviation in meters. Default is 100.
    clock_drift_sd : float, optional
        Initial clock drift standard deviation in m/s. Default is 10.
    imu_model : ImuErrorModel or None, optional
        IMU error model. If None (default), biases are not estimated and no
        sensor noise is assumed until `set_imu_spec` is called.
    clock_model : ClockModel or None, optional
        Clock model. If None (default), a noise-free clock model is used until
        `set_clock_spec` is called.

    Attributes
    ----------
    integrator : Integrator
        Strapdown integrator holding the kinematic state.
    error_model : InsErrorModel
        INS error model.
    imu_model : ImuErrorModel
        IMU error model.
    clock_model : ClockModel
        Clock model.
    clock : ndarray, shape (2,)
        Clock bias and drift estimates in meters and m/s.
    P : ndarray, shape (n_states, n_states)
        Error covariance matrix.
    innovation : ndarray or None
        Standardized innovation of the last successful update.
    """
    def __init__(self, position_sd=10.0, velocity_sd=1.0, level_sd=1.0, azimuth_sd=10.0,
                 clock_bias_sd=100.0, clock_drift_sd=10.0, imu_model=None,
                 clock_model=None):
        self.position_sd = position_sd
        self.velocity_sd = velocity_sd
        self.level_sd = level_sd
        self.azimuth_sd = azimuth_sd
        self.clock_bias_sd = clock_bias_sd
        self.clock_drift_sd = clock_drift_sd

        self.integrator = Integrator()
        self.error_model = InsErrorModel()
        self.imu_model = ImuErrorModel(None, None, None, None) if imu_model is None \
            else imu_model
        self.clock_model = ClockModel() if clock_model is None else clock_model
        self.clock = np.zeros(2)
        self.innovation = None
        self._pending_terms = None
        self.reset_covariance()

    @property
    def state(self):
        """Current `KinematicState`."""
        return self.integrator.state

    @property
    def n_states(self):
        return self.error_model.n_states + self.imu_model.n_states + 2

    @property
    def ins_block(self):
        return slice(self.error_model.n_states)

    @property
    def gyro_block(self):
        start = self.error_model.n_states
        return slice(start, start + self.imu_model.gyro.n_states)

    @property
    def accel_block(self):
        start = self.error_model.n_states + self.imu_model.gyro.n_states
        return slice(start, start + self.imu_model.accel.n_states)

    @property
    def clock_block(self):
        return slice(self.n_states - 2, self.n_states)

    def reset_covariance(self):
        """Rebuild the covariance from the configured initial uncertainties."""
        em = self.error_model
        P_pva = np.zeros((9, 9))
        P_pva[em.DR_OUT, em.DR_OUT] = self.position_sd ** 2
        P_pva[em.DV_OUT, em.DV_OUT] = self.velocity_sd ** 2
        P_pva[em.DROLL, em.DROLL] = np.deg2rad(self.level_sd) ** 2
        P_pva[em.DPITCH, em.DPITCH] = np.deg2rad(self.level_sd) ** 2
        P_pva[em.DYAW, em.DYAW] = np.deg2rad(self.azimuth_sd) ** 2

        T = em.transform_to_internal(self.state)
        P = np.zeros((self.n_states, self.n_states))
        P[self.ins_block, self.ins_block] = T @ P_pva @ T.transpose()
        P[self.gyro_block, self.gyro_block] = self.imu_model.gyro.P
        P[self.accel_block, self.accel_block] = self.imu_model.accel.P
        P[self.clock_block, self.clock_block] = np.diag([self.clock_bias_sd ** 2,
                                                         self.clock_drift_sd ** 2])
        self.P = util.symmetrize(P)

    def set_position(self, lat, lon, alt):
        """Set latitude, longitude in radians and altitude in meters."""
        self.integrator.set_position(lat, lon, alt)

    def set_velocity(self, vn, ve, vd):
        """Set velocity resolved in NED in m/s."""
        self.integrator.set_velocity(vn, ve, vd)

    def set_attitude(self, *args):
        """Set attitude from roll, pitch, yaw in radians or a rotation matrix.

        See `Integrator.set_attitude`.
        """
        self.integrator.set_attitude(*args)

    def set_clock(self, bias, drift):
        """Set clock bias in meters and drift in m/s."""
        clock = np.array([bias, drift], dtype=float)
        if not np.all(np.isfinite(clock)):
            raise ValueError("Clock bias and drift must be finite")
        self.clock[:] = clock

    def set_clock_spec(self, h0, h1, h2):
        """Set power-law coefficients h0, h-1 and h-2 of the clock model."""
        self.clock_model = ClockModel(h0, h1, h2)

    def set_imu_spec(self, accel_bias, accel_noise, gyro_bias, gyro_noise,
                     accel_bias_walk=None, gyro_bias_walk=None):
        """Configure the IMU error model.

        The covariance is rebuilt as the number of bias states may change.
        See `ImuErrorModel` for the description of parameters.
        """
        self.imu_model = ImuErrorModel(accel_bias, accel_noise, gyro_bias, gyro_noise,
                                       accel_bias_walk, gyro_bias_walk)
        self.reset_covariance()

    def initialize_from_gnss(self, observations, rpy=None):
        """Initialize position, velocity and clock from satellite measurements.

        The receiver state is solved by `gnss.gauss_newton` starting from the
        current position. Position, velocity and clock blocks of the covariance
        are taken from the least-squares solution, other blocks are reset to
        the initial uncertainties.

        Parameters
        ----------
        observations : SatelliteObservations
            Measurements at one epoch.
        rpy : array_like, shape (3,) or None, optional
            Roll, pitch and yaw in radians to set. If None (default), the
            attitude is kept.

        Returns
        -------
        bool
            Whether the least-squares solution converged. When False the filter
            is left unchanged.
        """
        x = np.zeros(gnss.N_STATES)
        x[gnss.POSITION] = transform.lla_to_ecef(self.state.lla)
        covariance = np.zeros((gnss.N_STATES, gnss.N_STATES))
        if not gnss.gauss_newton(x, covariance, observations.sv_pos,
                                 observations.sv_vel, observations.psr,
                                 observations.psrdot, observations.psr_var,
                                 observations.psrdot_var):
            return False

        lat, lon, alt = transform.ecef_to_lla(x[gnss.POSITION])
        velocity_n = transform.ecef_to_ned_velocity(x[gnss.VELOCITY], lat, lon)
        self.set_position(lat, lon, alt)
        self.set_velocity(*velocity_n)
        if rpy is not None:
            self.set_attitude(rpy)
        self.set_clock(x[gnss.CLOCK_BIAS], x[gnss.CLOCK_DRIFT])
        self.imu_model.gyro.reset_estimates()
        self.imu_model.accel.reset_estimates()
        self.reset_covariance()

        em = self.error_model
        mat_en = transform.mat_en_from_ll(lat, lon)
        self.P[np.ix_(em.DR, em.DR)] = (
            mat_en.T @ covariance[np.ix_(gnss.POSITION, gnss.POSITION)] @ mat_en)
        self.P[np.ix_(em.DV, em.DV)] = (
            mat_en.T @ covariance[np.ix_(gnss.VELOCITY, gnss.VELOCITY)] @ mat_en)
        clock_indices = [gnss.CLOCK_BIAS, gnss.CLOCK_DRIFT]
        self.P[self.clock_block, self.clock_block] = covariance[np.ix_(clock_indices,
                                                                       clock_indices)]
        self.P = util.symmetrize(self.P)
        self._pending_terms = None

        logger.info(f"Initialized from {len(observations)} satellites at "
                    f"lat={np.rad2deg(lat):.6f}, lon={np.rad2deg(lon):.6f}, "
                    f"alt={alt:.1f}")
        return True

    def mechanize(self, omega_b, f_b, dt):
        """Advance the kinematic state by one IMU sample.

        The readings are corrected by the estimated biases before integration.

        Parameters
        ----------
        omega_b : array_like, shape (3,)
            Measured angular rate in rad/s.
        f_b : array_like, shape (3,)
            Measured specific force in m/s^2.
        dt : float
            Sample interval.
        """
        omega_b = self.imu_model.gyro.correct_readings(omega_b)
        f_b = self.imu_model.accel.correct_readings(f_b)
        self._pending_terms = self.integrator.mechanize(omega_b, f_b, dt)

    def _compute_process_matrices(self, terms):
        gyro_model = self.imu_model.gyro
        accel_model = self.imu_model.accel
        n_states = self.n_states
        n_noises = (gyro_model.n_output_noises + accel_model.n_output_noises +
                    gyro_model.n_noises + accel_model.n_noises)

        Fii, Fig, Fia = self.error_model.system_matrices(terms)

        ins_block = self.ins_block
        gyro_block = self.gyro_block
        accel_block = self.accel_block
        clock_block = self.clock_block

        gyro_out_noise_block = slice(gyro_model.n_output_noises)
        accel_out_noise_block = slice(
            gyro_model.n_output_noises,
            gyro_model.n_output_noises + accel_model.n_output_noises)
        gyro_noise_block = slice(
            gyro_model.n_output_noises + accel_model.n_output_noises,
            gyro_model.n_output_noises + accel_model.n_output_noises +
            gyro_model.n_noises)
        accel_noise_block = slice(
            gyro_model.n_output_noises + accel_model.n_output_noises +
            gyro_model.n_noises, n_noises)

        F = np.zeros((n_states, n_states))
        F[ins_block, ins_block] = Fii
        F[ins_block, gyro_block] = Fig @ gyro_model.H
        F[ins_block, accel_block] = Fia @ accel_model.H
        F[gyro_block, gyro_block] = gyro_model.F
        F[accel_block, accel_block] = accel_model.F
        F[clock_block, clock_block] = self.clock_model.F

        G = np.zeros((n_states, n_noises))
        G[ins_block, gyro_out_noise_block] = Fig @ gyro_model.J
        G[ins_block, accel_out_noise_block] = Fia @ accel_model.J
        G[gyro_block, gyro_noise_block] = gyro_model.G
        G[accel_block, accel_noise_block] = accel_model.G

        q = np.hstack((gyro_model.v, accel_model.v, gyro_model.q, accel_model.q))
        Q = G @ np.diag(q ** 2) @ G.transpose()
        Q[clock_block, clock_block] += self.clock_model.Q

        return kalman.compute_process_matrices(F, Q, terms.dt)

    def propagate(self, omega_b, f_b, dt):
        """Propagate the error covariance and the clock state over one IMU sample.

        The error model is linearized with the terms computed by the preceding
        `mechanize` call. If `mechanize` was not called since the last
        propagation, the terms are computed at the current state.

        Parameters
        ----------
        omega_b : array_like, shape (3,)
            Measured angular rate in rad/s.
        f_b : array_like, shape (3,)
            Measured specific force in m/s^2.
        dt : float
            Sample interval.
        """
        terms = self._pending_terms
        if terms is None or terms.dt != dt:
            terms = self.integrator.compute_terms(
                self.imu_model.gyro.correct_readings(omega_b),
                self.imu_model.accel.correct_readings(f_b), dt)
        self._pending_terms = None

        Phi, Qd = self._compute_process_matrices(terms)
        self.P = util.symmetrize(Phi @ self.P @ Phi.transpose() + Qd)
        self.clock[0] += self.clock[1] * terms.dt

    def process_observations(self, observations):
        """Process satellite measurements.

        Parameters
        ----------
        observations : SatelliteObservations
            Measurements at the current epoch.

        Returns
        -------
        bool
            True if the update was applied. False if the satellite geometry is
            degenerate or the innovation covariance is singular or
            ill-conditioned, in this case the state and covariance are left
            unchanged.
        """
        try:
            z, H_meas, R = observations.compute_matrices(self.state, self.clock,
                                                         self.error_model)
            H = np.zeros((len(z), self.n_states))
            H[:, self.ins_block] = H_meas[:, :self.error_model.n_states]
            H[:, self.clock_block] = H_meas[:, self.error_model.n_states:]
            x, P, innovation = kalman.correct(np.zeros(self.n_states), self.P,
                                              z, H, R)
        except np.linalg.LinAlgError as error:
            logger.warning(f"GNSS update with {len(observations)} satellites "
                           f"skipped: {error}")
            return False

        self.error_model.correct_state(self.state, x[self.ins_block])
        self.imu_model.gyro.update_estimates(x[self.gyro_block])
        self.imu_model.accel.update_estimates(x[self.accel_block])
        self.clock -= x[self.clock_block]
        self.P = P
        self.innovation = innovation
        return True

    def gnss_update(self, sv_pos, sv_vel, psr, psrdot, psr_var, psrdot_var):
        """Process satellite measurements given as arrays.

        See `SatelliteObservations` for the description of parameters and
        `process_observations` for the returned value.
        """
        return self.process_observations(SatelliteObservations(
            sv_pos, sv_vel, psr, psrdot, psr_var, psrdot_var))

    def get_sd(self):
        """Get standard deviations of the navigation, bias and clock errors.

        Returns
        -------
        Series
            Position errors in meters, velocity errors in m/s, roll, pitch and yaw
            errors in degrees, bias errors and clock errors.
        """
        sd = _extract_sd(self.P)
        T = self.error_model.transform_to_output(self.state)
        trajectory_sd = _extract_sd(T @ self.P[self.ins_block, self.ins_block] @ T.T)
        trajectory_sd[6:] = np.rad2deg(trajectory_sd[6:])
        index = (TRAJECTORY_ERROR_COLS +
                 [f"gyro_{state}" for state in self.imu_model.gyro.states] +
                 [f"accel_{state}" for state in self.imu_model.accel.states] +
                 CLOCK_COLS)
        return pd.Series(np.hstack((trajectory_sd, sd[self.error_model.n_states:])),
                         index=index)


def run_feedback_filter(initial_pva, imu, observations=None, imu_model=None,
                        clock_model=None, initial_clock=(0.0, 0.0),
                        position_sd=10.0, velocity_sd=1.0, level_sd=1.0,
                        azimuth_sd=10.0, clock_bias_sd=100.0, clock_drift_sd=10.0):
    """Run navigation filter with feedback corrections.

    Also known as extended Kalman filter (EKF).

    An observation epoch is processed at the first IMU time stamp which is not
    earlier than the epoch time. Epochs before the first IMU time stamp are ignored.

    Parameters
    ----------
    initial_pva : Pva
        Initial position-velocity-attitude with angles in degrees.
    imu : Imu
        DataFrame indexed by time with angular rates in `GYRO_COLS` and specific
        forces in `ACCEL_COLS`.
    observations : DataFrame or None, optional
        Satellite observations indexed by time with columns `OBSERVATION_COLS`,
        one row per satellite. If None (default), no measurements are processed.
    imu_model : ImuErrorModel or None, optional
        IMU error model. If None (default), biases are not estimated.
    clock_model : ClockModel or None, optional
        Clock model. If None (default), a noise-free model is used.
    initial_clock : tuple of 2 floats, optional
        Initial clock bias and drift. Zeros by default.
    position_sd, velocity_sd, level_sd, azimuth_sd, clock_bias_sd, clock_drift_sd
        Initial standard deviations, see `NavigationFilter`.

    Returns
    -------
    Bunch with the following fields:

        trajectory, trajectory_sd : DataFrame
            Estimated trajectory and its error standard deviations.
        clock, clock_sd : DataFrame
            Estimated clock bias and drift and their standard deviations.
        gyro, gyro_sd : DataFrame
            Estimated gyro biases and their standard deviations.
        accel, accel_sd : DataFrame
            Estimated accelerometer biases and their standard deviations.
        innovations : DataFrame
            Standardized innovations of pseudoranges and pseudorange rates.
        skipped_updates : list of float
            Times of epochs for which the update was skipped.
    """
    nav = NavigationFilter(position_sd, velocity_sd, level_sd, azimuth_sd,
                           clock_bias_sd, clock_drift_sd, imu_model, clock_model)
    nav.integrator.state = KinematicState.from_pva(initial_pva)
    nav.set_clock(*initial_clock)
    nav.imu_model.gyro.reset_estimates()
    nav.imu_model.accel.reset_estimates()
    nav.reset_covariance()

    times = np.asarray(imu.index, dtype=float)
    gyro = imu[GYRO_COLS].values
    accel = imu[ACCEL_COLS].values

    if observations is None:
        epochs = []
    else:
        epochs = [(time, SatelliteObservations.from_data_frame(data))
                  for time, data in observations.groupby(level=0)
                  if time >= times[0]]
    epoch_index = 0

    trajectory = []
    clock = []
    gyro_result = []
    accel_result = []
    P_result = []
    T_result = []
    innovations = []
    skipped_updates = []
    for i, time in enumerate(times):
        while epoch_index < len(epochs) and epochs[epoch_index][0] <= time:
            epoch_time, epoch = epochs[epoch_index]
            if nav.process_observations(epoch):
                n_sv = len(epoch)
                innovation = pd.DataFrame(
                    {'sv_id': epoch.sv_id,
                     'psr': nav.innovation[:n_sv],
                     'psrdot': nav.innovation[n_sv:]},
                    index=pd.Index(np.full(n_sv, epoch_time), name='time'))
                innovations.append(innovation)
            else:
                skipped_updates.append(epoch_time)
            epoch_index += 1

        trajectory.append(nav.state.to_pva(time))
        clock.append(nav.clock.copy())
        gyro_result.append(nav.imu_model.gyro.get_estimates())
        accel_result.append(nav.imu_model.accel.get_estimates())
        P_result.append(nav.P)
        T_result.append(nav.error_model.transform_to_output(nav.state))

        if i + 1 < len(times):
            dt = times[i + 1] - times[i]
            nav.mechanize(gyro[i], accel[i], dt)
            nav.propagate(gyro[i], accel[i], dt)

    index = pd.Index(times, name='time')
    P_result = np.asarray(P_result)
    T_result = np.asarray(T_result)

    trajectory_sd = _extract_sd(
        util.mm_prod_symmetric(T_result, P_result[:, nav.ins_block, nav.ins_block]))
    trajectory_sd[:, 6:] = np.rad2deg(trajectory_sd[:, 6:])

    if innovations:
        innovations = pd.concat(innovations)
    else:
        innovations = pd.DataFrame(columns=['sv_id', 'psr', 'psrdot'],
                                   index=pd.Index([], name='time'))

    return util.Bunch(
        trajectory=pd.DataFrame(trajectory, index=index),
        trajectory_sd=pd.DataFrame(trajectory_sd, index=index,
                                   columns=TRAJECTORY_ERROR_COLS),
        clock=pd.DataFrame(clock, index=index, columns=CLOCK_COLS),
        clock_sd=pd.DataFrame(_extract_sd(P_result[:, nav.clock_block,
                                                   nav.clock_block]),
                              index=index, columns=CLOCK_COLS),
        gyro=pd.DataFrame(gyro_result, index=index),
        gyro_sd=pd.DataFrame(_extract_sd(P_result[:, nav.gyro_block, nav.gyro_block]),
                             index=index, columns=nav.imu_model.gyro.states),
        accel=pd.DataFrame(accel_result, index=index),
        accel_sd=pd.DataFrame(_extract_sd(P_result[:, nav.accel_block,
                                                   nav.accel_block]),
                              index=index, columns=nav.imu_model.accel.states),
        innovations=innovations,
        skipped_updates=skipped_updates)
