"""Receiver clock model.

The receiver clock error is described by bias and drift expressed in meters and
m/s. Their evolution follows the two-state model::

    d(bias)/dt = drift + w_bias
    d(drift)/dt = w_drift

where ``w_bias`` and ``w_drift`` are white noises with spectral densities derived
from the power-law coefficients ``h0``, ``h-1`` and ``h-2`` of the oscillator
fractional frequency deviation [1]_::

    S_bias = c^2 * h0 / 2
    S_drift = 2 * pi^2 * c^2 * h-2

The flicker coefficient ``h-1`` has no finite-dimensional white-noise
representation, it is stored but does not enter the model.

Classes
-------
.. autosummary::
    :toctree: generated/

    ClockModel

References
----------
.. [1] R. G. Brown, P. Y. C. Hwang, "Introduction to Random Signals and Applied
       Kalman Filtering", 4th edition
"""
import numpy as np
import pandas as pd
from scipy._lib._util import check_random_state
from .util import CLOCK_COLS

#: Speed of light in m/s.
SPEED_OF_LIGHT = 299792458.0

#: Typical power-law coefficients (h0, h-1, h-2) of oscillators.
OSCILLATORS = {
    'tcxo': (2e-19, 7e-21, 2e-20),
    'ocxo': (8e-20, 2e-21, 4e-23),
    'rubidium': (2e-20, 7e-24, 4e-29),
}


class ClockModel:
    """Power-law receiver clock model.

    Parameters
    ----------
    h0, h1, h2 : float, optional
        Coefficients ``h0``, ``h-1`` and ``h-2`` of the fractional frequency power
        spectral density. Zeros by default.

    Attributes
    ----------
    states : list of str
        State names.
    n_states : int
        Number of states, always 2.
    F : ndarray, shape (2, 2)
        Continuous system matrix.
    Q : ndarray, shape (2, 2)
        Continuous process noise matrix.
    """
    BIAS = 0
    DRIFT = 1

    def __init__(self, h0=0.0, h1=0.0, h2=0.0):
        h = np.array([h0, h1, h2], dtype=float)
        if not np.all(np.isfinite(h)) or np.any(h < 0):
            raise ValueError("Clock coefficients must be finite and non-negative")
        self.h0, self.h1, self.h2 = h
        self.states = list(CLOCK_COLS)

        self.F = np.array([[0.0, 1.0], [0.0, 0.0]])
        self.Q = np.diag([SPEED_OF_LIGHT ** 2 * self.h0 / 2,
                          2 * np.pi ** 2 * SPEED_OF_LIGHT ** 2 * self.h2])

    @classmethod
    def from_oscillator(cls, name):
        """Create a model for a typical oscillator.

        Parameters
        ----------
        name : 'tcxo', 'ocxo' or 'rubidium'
            Oscillator type.

        Returns
        -------
        ClockModel
        """
        if name not in OSCILLATORS:
            raise ValueError(f"`name` must be one of {sorted(OSCILLATORS)}")
        return cls(*OSCILLATORS[name])

    @property
    def n_states(self):
        return len(self.states)

    def discrete_matrices(self, dt):
        """Compute exact discrete transition and noise matrices.

        Parameters
        ----------
        dt : float
            Time step.

        Returns
        -------
        Phi : ndarray, shape (2, 2)
            Transition matrix.
        Qd : ndarray, shape (2, 2)
            Process noise covariance accumulated over `dt`.
        """
        s_bias = self.Q[self.BIAS, self.BIAS]
        s_drift = self.Q[self.DRIFT, self.DRIFT]
        Phi = np.array([[1.0, dt], [0.0, 1.0]])
        Qd = np.array([
            [s_bias * dt + s_drift * dt ** 3 / 3, s_drift * dt ** 2 / 2],
            [s_drift * dt ** 2 / 2, s_drift * dt]
        ])
        return Phi, Qd

    def simulate(self, time, bias=0.0, drift=0.0, rng=None):
        """Simulate clock bias and drift.

        Parameters
        ----------
        time : array_like, shape (n,)
            Increasing time stamps.
        bias, drift : float, optional
            Initial bias and drift. Zeros by default.
        rng : None, int or `numpy.random.RandomState`, optional
            Seed to create or already created RandomState. None (default)
            corresponds to nondeterministic seeding.

        Returns
        -------
        DataFrame
            Clock bias and drift indexed by time.
        """
        rng = check_random_state(rng)
        time = np.asarray(time, dtype=float)
        x = np.empty((len(time), 2))
        x[0] = bias, drift
        for i in range(len(time) - 1):
            Phi, Qd = self.discrete_matrices(time[i + 1] - time[i])
            x[i + 1] = Phi @ x[i] + rng.multivariate_normal(np.zeros(2), Qd)
        return pd.DataFrame(x, index=pd.Index(time, name='time'), columns=CLOCK_COLS)
