"""Coordinate and attitude transformations.

Quaternions are stored scalar-first as ``[w, x, y, z]``. A quaternion ``q_nb`` and
a matrix ``mat_nb`` both describe the rotation which projects vectors from the body
frame to NED frame. Roll, pitch and yaw follow the aerospace sequence::

    mat_nb = Rz(yaw) @ Ry(pitch) @ Rx(roll)

All angles are in radians.

Constants
----------
.. autosummary::
    :toctree: generated

    DEG_TO_RAD
    RAD_TO_DEG
    DH_TO_RS
    DRH_TO_RRS
    SMALL_ANGLE_THRESHOLD

Functions
---------
.. autosummary::
    :toctree: generated

    quat_from_rpy
    quat_to_rpy
    quat_to_mat
    mat_to_quat
    mat_from_rpy
    mat_to_rpy
    quat_multiply
    quat_from_rotvec
    lla_to_ecef
    ecef_to_lla
    mat_en_from_ll
    ned_to_ecef_velocity
    ecef_to_ned_velocity
    perturb_lla
    compute_lla_difference
"""
import numpy as np
from scipy.spatial.transform import Rotation
from . import earth, util

#: Degrees to radians.
DEG_TO_RAD = np.pi / 180
#: Radians to degrees.
RAD_TO_DEG = 1 / DEG_TO_RAD
#: Degrees per hour to radians per second.
DH_TO_RS = DEG_TO_RAD / 3600
#: Degrees per root-hour to radians per root-second.
DRH_TO_RRS = DEG_TO_RAD / 60
#: Half rotation angle below which the linearized quaternion exponential is used.
SMALL_ANGLE_THRESHOLD = 1e-5

_ECEF_TO_LLA_ITERATIONS = 6


def _to_scipy(quat):
    return np.roll(np.asarray(quat, dtype=float), -1, axis=-1)


def _from_scipy(quat):
    return np.roll(quat, 1, axis=-1)


def quat_from_rpy(rpy):
    """Create a quaternion from roll, pitch and yaw.

    Parameters
    ----------
    rpy : array_like, shape (3,) or (n, 3)
        Roll, pitch and yaw.

    Returns
    -------
    ndarray, shape (4,) or (n, 4)
        Scalar-first quaternions.
    """
    return _from_scipy(Rotation.from_euler('xyz', rpy).as_quat())


def quat_to_rpy(quat):
    """Convert a quaternion to roll, pitch and yaw.

    Parameters
    ----------
    quat : array_like, shape (4,) or (n, 4)
        Scalar-first quaternions.

    Returns
    -------
    ndarray, shape (3,) or (n, 3)
        Roll, pitch and yaw.
    """
    return Rotation.from_quat(_to_scipy(quat)).as_euler('xyz')


def quat_to_mat(quat):
    """Convert a quaternion to a rotation matrix.

    Parameters
    ----------
    quat : array_like, shape (4,) or (n, 4)
        Scalar-first quaternions.

    Returns
    -------
    ndarray, shape (3, 3) or (n, 3, 3)
        Rotation matrices.
    """
    return Rotation.from_quat(_to_scipy(quat)).as_matrix()


def mat_to_quat(mat):
    """Convert a rotation matrix to a quaternion.

    The returned quaternion has non-negative scalar part.

    Parameters
    ----------
    mat : array_like, shape (3, 3) or (n, 3, 3)
        Rotation matrices.

    Returns
    -------
    ndarray, shape (4,) or (n, 4)
        Scalar-first quaternions.
    """
    quat = _from_scipy(Rotation.from_matrix(mat).as_quat())
    sign = np.where(quat[..., :1] < 0, -1.0, 1.0)
    return sign * quat


def mat_from_rpy(rpy):
    """Create a rotation matrix from roll, pitch and yaw.

    Parameters
    ----------
    rpy : array_like, shape (3,) or (n, 3)
        Roll, pitch and yaw.

    Returns
    -------
    ndarray, shape (3, 3) or (n, 3, 3)
        Rotation matrices.
    """
    return Rotation.from_euler('xyz', rpy).as_matrix()


def mat_to_rpy(mat):
    """Convert a rotation matrix to roll, pitch and yaw angles.

    Parameters
    ----------
    mat : array_like, shape (3, 3) or (n, 3, 3)
        Rotation matrices.

    Returns
    -------
    ndarray, with shape (3,) or (n, 3)
        Roll, pitch and yaw angles.
    """
    return Rotation.from_matrix(mat).as_euler('xyz')


def quat_multiply(p, q):
    """Compute Hamilton product of two quaternions.

    Parameters
    ----------
    p, q : array_like, shape (4,)
        Scalar-first quaternions.

    Returns
    -------
    ndarray, shape (4,)
        Product ``p * q``.
    """
    p0, p1, p2, p3 = p
    q0, q1, q2, q3 = q
    return np.array([
        p0 * q0 - p1 * q1 - p2 * q2 - p3 * q3,
        p0 * q1 + p1 * q0 + p2 * q3 - p3 * q2,
        p0 * q2 - p1 * q3 + p2 * q0 + p3 * q1,
        p0 * q3 + p1 * q2 - p2 * q1 + p3 * q0
    ])


def quat_from_rotvec(rv):
    """Create a quaternion from a rotation vector.

    When half of the rotation angle is below `SMALL_ANGLE_THRESHOLD` the
    vector part is linearized as ``rv / 2``, otherwise the exact
    ``sin(angle / 2) / angle * rv`` is used. The returned quaternion is not
    normalized in the linearized branch.

    Parameters
    ----------
    rv : array_like, shape (3,)
        Rotation vector.

    Returns
    -------
    ndarray, shape (4,)
        Scalar-first quaternion.
    """
    rv = np.asarray(rv, dtype=float)
    gamma = 0.5 * np.sqrt(np.dot(rv, rv))
    if gamma < SMALL_ANGLE_THRESHOLD:
        k = 0.5
    else:
        k = 0.5 * np.sin(gamma) / gamma
    return np.hstack((np.cos(gamma), k * rv))


def lla_to_ecef(lla):
    """Convert geodetic coordinates to ECEF.

    Parameters
    ----------
    lla : array_like, shape (3,) or (n, 3)
        Latitude, longitude and altitude.

    Returns
    -------
    r_e : ndarray, shape (3,) or (n, 3)
        ECEF coordinates.
    """
    lat, lon, alt = np.moveaxis(np.asarray(lla, dtype=float), -1, 0)
    _, re, _ = earth.principal_radii(lat, 0)
    horizontal = (re + alt) * np.cos(lat)
    return np.stack([horizontal * np.cos(lon),
                     horizontal * np.sin(lon),
                     (re * (1 - earth.E2) + alt) * np.sin(lat)], axis=-1)


def ecef_to_lla(r_e):
    """Convert ECEF Cartesian coordinates into latitude, longitude, altitude.

    Latitude is found by fixed-point iterations which converge to sub-millimeter
    accuracy for terrestrial and orbital altitudes.

    Parameters
    ----------
    r_e : array_like, shape (3,) or (n, 3)
        Cartesian coordinates in ECEF frame.

    Returns
    -------
    lla : ndarray, shape (3,) or (n, 3)
        Latitude, longitude and altitude.
    """
    x, y, z = np.asarray(r_e, dtype=float).T
    p = np.hypot(x, y)
    lon = np.arctan2(y, x)
    lat = np.arctan2(z, p * (1 - earth.E2))
    for _ in range(_ECEF_TO_LLA_ITERATIONS):
        sin_lat = np.sin(lat)
        d = 1 - earth.E2 * sin_lat ** 2
        re = earth.A / np.sqrt(d)
        alt = p * np.cos(lat) + z * sin_lat - earth.A * np.sqrt(d)
        lat = np.arctan2(z, p * (1 - earth.E2 * re / (re + alt)))

    sin_lat = np.sin(lat)
    alt = (p * np.cos(lat) + z * sin_lat
           - earth.A * np.sqrt(1 - earth.E2 * sin_lat ** 2))
    return np.stack((lat, lon, alt), axis=-1)


def mat_en_from_ll(lat, lon):
    """Rotation matrix projecting from NED to ECEF.

    The columns are the north, east and down unit vectors resolved in ECEF.

    Parameters
    ----------
    lat, lon : float or array_like, shape (n,)
        Latitude and longitude of the NED frame origin.

    Returns
    -------
    ndarray, shape (3, 3) or (n, 3, 3)
    """
    lat, lon = np.broadcast_arrays(np.asarray(lat, dtype=float),
                                   np.asarray(lon, dtype=float))
    sin_lat = np.sin(lat)
    cos_lat = np.cos(lat)
    sin_lon = np.sin(lon)
    cos_lon = np.cos(lon)
    zero = np.zeros_like(lat)
    return np.stack([
        np.stack([-sin_lat * cos_lon, -sin_lon, -cos_lat * cos_lon], axis=-1),
        np.stack([-sin_lat * sin_lon, cos_lon, -cos_lat * sin_lon], axis=-1),
        np.stack([cos_lat, zero, -sin_lat], axis=-1)], axis=-2)


def ned_to_ecef_velocity(velocity_n, lat, lon):
    """Rotate a vector from NED to ECEF frame.

    Parameters
    ----------
    velocity_n : array_like, shape (3,) or (n, 3)
        Vectors resolved in NED.
    lat, lon : float or array_like
        Latitude and longitude of the NED frame origin.

    Returns
    -------
    ndarray, shape (3,) or (n, 3)
        Vectors resolved in ECEF.
    """
    return util.mv_prod(mat_en_from_ll(lat, lon), velocity_n)


def ecef_to_ned_velocity(velocity_e, lat, lon):
    """Rotate a vector from ECEF to NED frame.

    Parameters
    ----------
    velocity_e : array_like, shape (3,) or (n, 3)
        Vectors resolved in ECEF.
    lat, lon : float or array_like
        Latitude and longitude of the NED frame origin.

    Returns
    -------
    ndarray, shape (3,) or (n, 3)
        Vectors resolved in NED.
    """
    return util.mv_prod(mat_en_from_ll(lat, lon), velocity_e, at=True)


def perturb_lla(lla, dr_n):
    """Move geodetic points by small displacements given in meters.

    The displacement is converted to latitude and longitude increments with
    the radii of curvature at the starting point, which is accurate while it
    stays much smaller than the Earth radius.

    Parameters
    ----------
    lla : array_like, shape (3,) or (n, 3)
        Latitude, longitude and altitude.
    dr_n : array_like, shape (3,) or (n, 3)
        Displacement resolved in NED.

    Returns
    -------
    ndarray, shape (3,) or (n, 3)
        Displaced latitude, longitude and altitude.
    """
    lla, dr_n = np.broadcast_arrays(np.asarray(lla, dtype=float),
                                    np.asarray(dr_n, dtype=float))
    rn, _, rp = earth.principal_radii(lla[..., 0], lla[..., 2])
    return lla + np.stack([dr_n[..., 0] / rn, dr_n[..., 1] / rp, -dr_n[..., 2]],
                          axis=-1)


def compute_lla_difference(lla1, lla2):
    """Express the difference of geodetic points as a NED displacement in meters.

    The radii of curvature are evaluated at the midpoint.

    Parameters
    ----------
    lla1, lla2 : array_like, shape (3,) or (n, 3)
        Latitude, longitude and altitude.

    Returns
    -------
    ndarray, shape (3,) or (n, 3)
        Displacement from `lla2` to `lla1` resolved in NED.
    """
    lla1 = np.asarray(lla1, dtype=float)
    lla2 = np.asarray(lla2, dtype=float)
    middle = 0.5 * (lla1 + lla2)
    rn, _, rp = earth.principal_radii(middle[..., 0], middle[..., 2])
    diff = lla1 - lla2
    return np.stack([diff[..., 0] * rn, diff[..., 1] * rp, -diff[..., 2]], axis=-1)
