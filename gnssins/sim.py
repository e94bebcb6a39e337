"""Simulation of sensors.

The module synthesizes IMU readings, satellite constellation states and GNSS
observations for testing the navigation filter. It also contains utility functions
to generate and apply random errors of position-velocity-attitude.

Functions
---------
.. autosummary::
    :toctree: generated/

    generate_stationary_imu
    generate_gnss_observations
    generate_pva_error
    perturb_pva

Classes
-------
.. autosummary::
    :toctree: generated/

    Constellation
"""
import numpy as np
import pandas as pd
from scipy.spatial.transform import Rotation
from scipy._lib._util import check_random_state
from . import earth, gnss, transform
from .util import (LLA_COLS, VEL_COLS, RPY_COLS, NED_COLS, GYRO_COLS, ACCEL_COLS,
                   CLOCK_COLS, OBSERVATION_COLS, TRAJECTORY_COLS,
                   TRAJECTORY_ERROR_COLS)


def generate_stationary_imu(time, lla, rpy):
    """Generate IMU readings for a vehicle at rest relative to Earth.

    Parameters
    ----------
    time : array_like, shape (n,)
        Time stamps.
    lla : array_like, shape (3,)
        Latitude, longitude in degrees and altitude in meters.
    rpy : array_like, shape (3,)
        Roll, pitch and yaw in degrees.

    Returns
    -------
    trajectory : Trajectory
        Constant trajectory with angles in degrees.
    imu : Imu
        Angular rates and specific forces.
    """
    time = np.asarray(time, dtype=float)
    lat = np.deg2rad(lla[0])
    mat_nb = transform.mat_from_rpy(np.deg2rad(rpy))

    gyro = mat_nb.T @ earth.rate_n(lat)
    accel = -mat_nb.T @ earth.gravity_n(lat, lla[2])

    index = pd.Index(time, name='time')
    trajectory = pd.DataFrame(np.tile(np.hstack((lla, np.zeros(3), rpy)),
                                      (len(time), 1)),
                              index=index, columns=TRAJECTORY_COLS)
    imu = pd.DataFrame(np.tile(np.hstack((gyro, accel)), (len(time), 1)),
                       index=index, columns=GYRO_COLS + ACCEL_COLS)
    return trajectory, imu


class Constellation:
    """GPS-like constellation of satellites on circular orbits.

    Satellites are placed according to the Walker delta pattern. The ECEF states are
    computed assuming Earth rotating with constant rate and ECI and ECEF frames
    coinciding at zero time.

    Parameters
    ----------
    n_planes : int, optional
        Number of orbital planes. Default is 6.
    n_per_plane : int, optional
        Number of satellites in each plane. Default is 4.
    inclination : float, optional
        Orbit inclination in degrees. Default is 55.
    radius : float, optional
        Orbit radius in meters. Default is 26 559 700.
    phasing : int, optional
        Walker phasing parameter. Default is 1.

    Attributes
    ----------
    n_satellites : int
        Total number of satellites.
    mean_motion : float
        Angular rate of satellites along the orbits.
    """
    def __init__(self, n_planes=6, n_per_plane=4, inclination=55.0, radius=26559.7e3,
                 phasing=1):
        self.n_satellites = n_planes * n_per_plane
        self.radius = radius
        self.mean_motion = (earth.MU / radius ** 3) ** 0.5

        plane = np.repeat(np.arange(n_planes), n_per_plane)
        slot = np.tile(np.arange(n_per_plane), n_planes)
        self.raan = 2 * np.pi * plane / n_planes
        self.latitude_argument = (2 * np.pi * slot / n_per_plane +
                                  2 * np.pi * phasing * plane / self.n_satellites)
        self.mat_io = Rotation.from_euler(
            'ZX', np.column_stack((self.raan,
                                   np.full(self.n_satellites,
                                           np.deg2rad(inclination))))).as_matrix()

    def compute_states(self, time):
        """Compute ECEF positions and velocities of all satellites.

        Parameters
        ----------
        time : float
            Time in seconds.

        Returns
        -------
        sv_pos, sv_vel : ndarray, shape (n_satellites, 3)
            Positions and velocities in ECEF.
        """
        u = self.latitude_argument + self.mean_motion * time
        r_o = np.zeros((self.n_satellites, 3))
        r_o[:, 0] = self.radius * np.cos(u)
        r_o[:, 1] = self.radius * np.sin(u)
        v_o = np.zeros((self.n_satellites, 3))
        v_o[:, 0] = -self.radius * self.mean_motion * np.sin(u)
        v_o[:, 1] = self.radius * self.mean_motion * np.cos(u)

        r_i = np.einsum('nij,nj->ni', self.mat_io, r_o)
        v_i = np.einsum('nij,nj->ni', self.mat_io, v_o)

        mat_ei = Rotation.from_rotvec([0, 0, -earth.RATE * time]).as_matrix()
        sv_pos = r_i @ mat_ei.T
        sv_vel = v_i @ mat_ei.T - np.cross([0, 0, earth.RATE], sv_pos)
        return sv_pos, sv_vel

    def compute_elevation(self, time, lla):
        """Compute elevation angles of satellites.

        Parameters
        ----------
        time : float
            Time in seconds.
        lla : array_like, shape (3,)
            Receiver latitude, longitude in radians and altitude in meters.

        Returns
        -------
        ndarray, shape (n_satellites,)
            Elevation angles in radians.
        """
        sv_pos, _ = self.compute_states(time)
        los_e = sv_pos - transform.lla_to_ecef(lla)
        los_n = los_e @ transform.mat_en_from_ll(lla[0], lla[1])
        return np.arcsin(-los_n[:, 2] / np.linalg.norm(los_n, axis=1))


def generate_gnss_observations(trajectory, constellation, psr_sd, psrdot_sd,
                               clock=None, elevation_mask=10.0, rng=None):
    """Generate pseudorange and pseudorange rate observations.

    Parameters
    ----------
    trajectory : Trajectory
        Receiver trajectory with angles in degrees at the epochs where
        observations are generated.
    constellation : Constellation
        Satellite constellation.
    psr_sd, psrdot_sd : float
        Noise standard deviations of pseudoranges and pseudorange rates.
    clock : DataFrame or None, optional
        Clock bias and drift indexed by the same time as `trajectory`.
        If None (default), zero clock errors are used.
    elevation_mask : float, optional
        Minimum elevation angle of visible satellites in degrees. Default is 10.
    rng : None, int or `numpy.random.RandomState`, optional
        Seed to create or already created RandomState. None (default) corresponds to
        nondeterministic seeding.

    Returns
    -------
    DataFrame
        Observations indexed by time with columns `OBSERVATION_COLS`, one row per
        visible satellite.
    """
    rng = check_random_state(rng)
    if clock is None:
        clock = pd.DataFrame(0.0, index=trajectory.index, columns=CLOCK_COLS)

    result = []
    for time, row in trajectory.iterrows():
        lla = np.asarray(row[LLA_COLS], dtype=float).copy()
        lla[:2] = np.deg2rad(lla[:2])
        r_e = transform.lla_to_ecef(lla)
        v_e = transform.ned_to_ecef_velocity(np.asarray(row[VEL_COLS], dtype=float),
                                             lla[0], lla[1])

        sv_pos, sv_vel = constellation.compute_states(time)
        visible = (constellation.compute_elevation(time, lla) >=
                   np.deg2rad(elevation_mask))
        sv_pos = sv_pos[visible]
        sv_vel = sv_vel[visible]
        n_sv = len(sv_pos)

        _, _, psr, psrdot = gnss.range_and_rate(r_e, v_e, clock.loc[time, 'clock_bias'],
                                                clock.loc[time, 'clock_drift'],
                                                sv_pos, sv_vel)
        psr = psr + psr_sd * rng.randn(n_sv)
        psrdot = psrdot + psrdot_sd * rng.randn(n_sv)

        data = pd.DataFrame(
            np.column_stack((np.flatnonzero(visible), sv_pos, sv_vel, psr, psrdot,
                             np.full(n_sv, psr_sd ** 2),
                             np.full(n_sv, psrdot_sd ** 2))),
            columns=OBSERVATION_COLS, index=pd.Index(np.full(n_sv, time), name='time'))
        data['sv_id'] = data['sv_id'].astype(int)
        result.append(data)

    return pd.concat(result)


def generate_pva_error(position_sd, velocity_sd, level_sd, azimuth_sd, rng=None):
    """Generate random position-velocity-attitude error.

    All errors are generated as independent and normally distributed.

    Parameters
    ----------
    position_sd : float
        Position error standard deviation in meters.
    velocity_sd : float
        Velocity error standard deviation in m/s.
    level_sd : float
        Roll and pitch standard deviation in degrees.
    azimuth_sd : float
        Yaw standard deviation in degrees.
    rng : None, int or `numpy.random.RandomState`, optional
        Seed to create or already created RandomState. None (default) corresponds to
        nondeterministic seeding.

    Returns
    -------
    PvaError
        Series containing 9 elements with position-velocity-attitude errors.
    """
    rng = check_random_state(rng)
    result = pd.Series(index=TRAJECTORY_ERROR_COLS, dtype=float)
    result[NED_COLS] = position_sd * rng.randn(3)
    result[VEL_COLS] = velocity_sd * rng.randn(3)
    result[RPY_COLS] = [level_sd, level_sd, azimuth_sd] * rng.randn(3)
    return result


def perturb_pva(pva, pva_error):
    """Apply errors to position-velocity-attitude.

    Parameters
    ----------
    pva : Pva
        Position-velocity-attitude with angles in degrees.
    pva_error : PvaError
        Errors of position-velocity-attitude.

    Returns
    -------
    Pva
        Position-velocity-attitude with applied errors.
    """
    result = pva.copy()
    lla = np.asarray(pva[LLA_COLS], dtype=float).copy()
    lla[:2] = np.deg2rad(lla[:2])
    lla = transform.perturb_lla(lla, np.asarray(pva_error[NED_COLS], dtype=float))
    lla[:2] = np.rad2deg(lla[:2])
    result[LLA_COLS] = lla
    result[VEL_COLS] += pva_error[VEL_COLS]
    result[RPY_COLS] += pva_error[RPY_COLS]
    return result
