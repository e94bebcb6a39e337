"""Inertial sensor errors.

Gyro and accelerometer triads share one error description: a bias which is
a random constant with an optional random walk, plus additive white noise.
`EstimationModel` turns it into bias states for the navigation filter,
`Parameters` draws a concrete realization of it to corrupt simulated readings.
`ImuErrorModel` groups the gyro and accelerometer estimation models.

Classes
-------
.. autosummary::
    :toctree: generated/

    EstimationModel
    ImuErrorModel
    Parameters

Functions
---------
.. autosummary::
    :toctree: generated/

    apply_imu_parameters
"""
import numpy as np
import pandas as pd
from scipy._lib._util import check_random_state
from .util import GYRO_COLS, ACCEL_COLS, INDEX_TO_XYZ


def _to_triad(value, name, allow_scalar=True):
    if value is None:
        return np.zeros(3)
    value = np.asarray(value, dtype=float)
    if allow_scalar and value.ndim == 0:
        value = np.full(3, value)
    if value.shape != (3,):
        raise ValueError(f"`{name}` must be a float or an array with shape (3,)")
    if not np.all(np.isfinite(value)):
        raise ValueError(f"`{name}` must contain finite values")
    return value


class EstimationModel:
    """Bias estimation model of a sensor triad.

    Each parameter is either a float applied to all three axes or a 3-vector.
    Non-positive elements disable the effect on the corresponding axis and None
    disables it on all axes. A bias state is created for every axis with positive
    `bias_sd`.

    Parameters
    ----------
    bias_sd : array_like or None, optional
        Standard deviation of the initial bias.
    noise : array_like or None, optional
        Root PSD of the white noise on the readings: angle random walk for gyros
        (rad/sqrt(s)), velocity random walk for accelerometers (m/s/sqrt(s)).
    bias_walk : array_like or None, optional
        Root PSD of the white noise integrated into the bias. Allowed only on axes
        with positive `bias_sd`.

    Attributes
    ----------
    n_states : int
        Number of bias states.
    n_noises : int
        Number of noises driving the bias states.
    n_output_noises : int
        Number of noises added to the readings.
    states : list of str
        Names of the bias states, like 'bias_x'.
    F, G : ndarray
        System and noise input matrices of the bias states.
    H : ndarray, shape (3, n_states)
        Matrix mapping the bias states to the sensor axes.
    J : ndarray, shape (3, n_output_noises)
        Matrix mapping the output noises to the sensor axes.
    P : ndarray, shape (n_states, n_states)
        Initial covariance of the bias states.
    q, v : ndarray
        Root PSD of the bias driving noises and of the output noises.
    bias : ndarray, shape (3,)
        Current bias estimate, zero on axes without a state.
    """
    def __init__(self, bias_sd=None, noise=None, bias_walk=None):
        bias_sd = _to_triad(bias_sd, "bias_sd")
        noise = _to_triad(noise, "noise")
        bias_walk = _to_triad(bias_walk, "bias_walk")
        if np.any((bias_walk > 0) & (bias_sd <= 0)):
            raise ValueError(
                "`bias_walk` can be enabled only for axes where `bias_sd` is positive")

        axes = np.flatnonzero(bias_sd > 0)
        walk = np.flatnonzero(bias_walk[axes] > 0)
        noise_axes = np.flatnonzero(noise > 0)
        n_states = len(axes)

        self.bias_sd = bias_sd
        self.noise = noise
        self.bias_walk = bias_walk
        self.states = [f"bias_{INDEX_TO_XYZ[axis]}" for axis in axes]
        self.n_states = n_states
        self.n_noises = len(walk)
        self.n_output_noises = len(noise_axes)

        self.F = np.zeros((n_states, n_states))
        self.G = np.zeros((n_states, len(walk)))
        self.G[walk, np.arange(len(walk))] = 1
        self.H = np.zeros((3, n_states))
        self.H[axes, np.arange(n_states)] = 1
        self.J = np.zeros((3, len(noise_axes)))
        self.J[noise_axes, np.arange(len(noise_axes))] = 1
        self.P = np.diag(bias_sd[axes] ** 2)
        self.q = bias_walk[axes[walk]]
        self.v = noise[noise_axes]

        self._axes = axes
        self.bias = np.zeros(3)

    def reset_estimates(self):
        """Set the bias estimate to zero."""
        self.bias = np.zeros(3)

    def update_estimates(self, x):
        """Add estimated corrections of the bias states."""
        x = np.asarray(x, dtype=float)
        if x.shape != (self.n_states,):
            raise ValueError(f"`x` must have shape ({self.n_states},)")
        self.bias[self._axes] += x

    def correct_readings(self, readings):
        """Subtract the bias estimate from readings."""
        return np.asarray(readings) - self.bias

    def get_estimates(self):
        """Bias estimates as a Series indexed by `states`."""
        return pd.Series(self.bias[self._axes], index=self.states, dtype=float)


class ImuErrorModel:
    """Error model of an IMU comprised of gyro and accelerometer triads.

    Parameters
    ----------
    accel_bias, accel_noise : array_like or None
        Accelerometer bias standard deviation (m/s^2) and noise root PSD
        (m/s/sqrt(s)).
    gyro_bias, gyro_noise : array_like or None
        Gyro bias standard deviation (rad/s) and noise root PSD (rad/sqrt(s)).
    accel_bias_walk, gyro_bias_walk : array_like or None, optional
        Root PSD of bias random walks. None (default) disables them.

    Attributes
    ----------
    gyro, accel : EstimationModel
        Models of the sensor triads.
    """
    def __init__(self, accel_bias, accel_noise, gyro_bias, gyro_noise,
                 accel_bias_walk=None, gyro_bias_walk=None):
        self.gyro = EstimationModel(gyro_bias, gyro_noise, gyro_bias_walk)
        self.accel = EstimationModel(accel_bias, accel_noise, accel_bias_walk)

    @property
    def n_states(self):
        """Total number of bias states."""
        return self.gyro.n_states + self.accel.n_states


class Parameters:
    """Errors of a sensor triad used to simulate readings.

    A reading is formed as::

        reading = true_value + bias + noise

    where ``bias`` starts from the given vector and accumulates a random walk,
    ``noise`` is white Gaussian with the given root PSD.

    Parameters
    ----------
    bias : array_like, shape (3,) or None, optional
        Initial bias. None (default) means zero.
    noise : float, array_like of shape (3,) or None, optional
        Root PSD of the white noise. None (default) means zero.
    bias_walk : float, array_like of shape (3,) or None, optional
        Root PSD of the noise integrated into the bias. None (default) means zero.
    rng : None, int or `numpy.random.RandomState`, optional
        Seed or random state. None (default) seeds nondeterministically.

    Attributes
    ----------
    data_frame : DataFrame or None
        Set by `apply`: the bias history indexed by time with a 'bias_x', 'bias_y'
        or 'bias_z' column for every axis with a non-zero bias or bias walk. The
        columns match the bias estimates returned by `gnssins.filters`.
    """
    def __init__(self, bias=None, noise=None, bias_walk=None, rng=None):
        self.bias = _to_triad(bias, 'bias', allow_scalar=False)
        self.noise = _to_triad(noise, 'noise')
        self.bias_walk = _to_triad(bias_walk, 'bias_walk')
        self.rng = check_random_state(rng)
        self.data_frame = None

    @classmethod
    def from_EstimationModel(cls, model, rng=None):
        """Draw parameters consistent with an `EstimationModel`.

        The bias is normally distributed with standard deviations `model.bias_sd`,
        noise and bias walk intensities are taken from the model.
        """
        rng = check_random_state(rng)
        return cls(model.bias_sd * rng.randn(3), model.noise, model.bias_walk, rng)

    def apply(self, readings):
        """Corrupt readings of the triad.

        Parameters
        ----------
        readings : DataFrame
            Readings of one triad indexed by time, exactly 3 columns.

        Returns
        -------
        DataFrame
            Readings with the errors added.
        """
        time = np.asarray(readings.index, dtype=float)
        dt = np.diff(time, prepend=time[0])[:, None]
        walk = np.cumsum(self.rng.randn(*readings.shape) * dt ** 0.5, axis=0)
        bias = self.bias + self.bias_walk * walk

        dt[0] = dt[1]
        noise = self.noise * self.rng.randn(*readings.shape) / dt ** 0.5

        self.data_frame = pd.DataFrame(
            {f"bias_{INDEX_TO_XYZ[axis]}": bias[:, axis] for axis in range(3)
             if self.bias[axis] != 0 or self.bias_walk[axis] != 0},
            index=readings.index)
        return pd.DataFrame(readings.values + bias + noise, index=readings.index,
                            columns=readings.columns)


def apply_imu_parameters(imu, gyro_parameters=None, accel_parameters=None):
    """Corrupt IMU readings.

    Parameters
    ----------
    imu : Imu
        Angular rates and specific forces.
    gyro_parameters, accel_parameters : `Parameters` or None, optional
        Errors of the gyros and the accelerometers. None (default) leaves the
        readings of the triad unchanged.

    Returns
    -------
    Imu
        Readings with the errors added.
    """
    if gyro_parameters is None:
        gyro_parameters = Parameters()
    if accel_parameters is None:
        accel_parameters = Parameters()
    return pd.concat([gyro_parameters.apply(imu[GYRO_COLS]),
                      accel_parameters.apply(imu[ACCEL_COLS])], axis='columns')
