"""Utility functions.

Functions
---------
.. autosummary::
    :toctree: generated

    mm_prod
    mm_prod_symmetric
    mv_prod
    skew_matrix
    symmetrize
    compute_rms
"""
import numpy as np


LLA_COLS = ['lat', 'lon', 'alt']
VEL_COLS = ['VN', 'VE', 'VD']
RPY_COLS = ['roll', 'pitch', 'yaw']
GYRO_COLS = ['gyro_x', 'gyro_y', 'gyro_z']
ACCEL_COLS = ['accel_x', 'accel_y', 'accel_z']
NED_COLS = ['north', 'east', 'down']
CLOCK_COLS = ['clock_bias', 'clock_drift']
SV_POS_COLS = ['sv_x', 'sv_y', 'sv_z']
SV_VEL_COLS = ['sv_vx', 'sv_vy', 'sv_vz']
OBSERVATION_COLS = (['sv_id'] + SV_POS_COLS + SV_VEL_COLS +
                    ['psr', 'psrdot', 'psr_var', 'psrdot_var'])
TRAJECTORY_COLS = LLA_COLS + VEL_COLS + RPY_COLS
TRAJECTORY_ERROR_COLS = NED_COLS + VEL_COLS + RPY_COLS
INDEX_TO_XYZ = {0: 'x', 1: 'y', 2: 'z'}


def _stack_transpose(a, transpose):
    return np.swapaxes(a, -1, -2) if transpose else a


def mm_prod(a, b, at=False, bt=False):
    """Multiply matrices or stacks of matrices.

    Parameters
    ----------
    a, b : array_like, shape (n, m) or (k, n, m)
        Matrices or stacks of matrices along the first axis. A single matrix is
        broadcast against a stack.
    at, bt : bool, optional
        Transpose `a` or `b` before multiplying.

    Returns
    -------
    ndarray
    """
    a = np.asarray(a)
    b = np.asarray(b)
    if a.ndim not in (2, 3) or b.ndim not in (2, 3):
        raise ValueError("`a` and `b` must be 2-D or 3-D arrays")
    return np.matmul(_stack_transpose(a, at), _stack_transpose(b, bt))


def mm_prod_symmetric(a, b):
    """Compute ``a @ b @ a.T`` for matrices or stacks of matrices."""
    return mm_prod(mm_prod(a, b), a, bt=True)


def mv_prod(a, b, at=False):
    """Multiply matrices by vectors, each possibly stacked along the first axis.

    Parameters
    ----------
    a : array_like, shape (n, m) or (k, n, m)
        Matrices.
    b : array_like, shape (m,) or (k, m)
        Vectors.
    at : bool, optional
        Transpose `a` before multiplying.

    Returns
    -------
    ndarray, shape (n,) or (k, n)
    """
    a = np.asarray(a)
    b = np.asarray(b)
    if a.ndim not in (2, 3) or b.ndim not in (1, 2):
        raise ValueError("`a` must be 2-D or 3-D and `b` must be 1-D or 2-D")
    return np.einsum("...ij,...j->...i", _stack_transpose(a, at), b)


def skew_matrix(vec):
    """Build the cross-product matrix of a vector.

    ``skew_matrix(a) @ b`` equals ``np.cross(a, b)``.

    Parameters
    ----------
    vec : array_like, shape (3,) or (n, 3)

    Returns
    -------
    ndarray, shape (3, 3) or (n, 3, 3)
    """
    vec = np.asarray(vec, dtype=float)
    x, y, z = vec[..., 0], vec[..., 1], vec[..., 2]
    zero = np.zeros_like(x)
    return np.stack([np.stack([zero, -z, y], axis=-1),
                     np.stack([z, zero, -x], axis=-1),
                     np.stack([-y, x, zero], axis=-1)], axis=-2)


def symmetrize(P):
    """Return the symmetric part of a square matrix."""
    return 0.5 * (P + P.T)


def compute_rms(data):
    """Root-mean-square along the first axis."""
    return np.mean(np.square(data), axis=0) ** 0.5


class Bunch(dict):
    """Dictionary with attribute access to its items."""

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name)

    __setattr__ = dict.__setitem__
    __delattr__ = dict.__delitem__

    def __dir__(self):
        return list(self.keys())
