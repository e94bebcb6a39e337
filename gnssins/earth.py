"""Earth geometry and gravity models.

WGS84 ellipsoid constants together with the curvature, gravity and rotation
rate models used by the strapdown mechanization and its error model, see [1]_.

All angles are in radians.

Constants
---------
.. autosummary::
    :toctree: generated

    RATE
    A
    B
    E2
    FLATTENING
    MU
    GE
    GP

Functions
---------
.. autosummary::
    :toctree: generated/

    principal_radii
    gravity
    gravity_n
    curvature_matrix
    rate_n
    transport_rate_n

References
----------
.. [1] P. D. Groves, "Principles of GNSS, Inertial, and Multisensor Integrated
       Navigation Systems", 2nd edition
"""
import numpy as np


#: Earth rotation rate, rad/s.
RATE = 7.292115e-5
#: Equatorial radius (semi-major axis), m.
A = 6378137.0
#: Polar radius (semi-minor axis), m.
B = 6356752.31425
#: First eccentricity squared.
E2 = 6.6943799901413e-3
#: Ellipsoid flattening.
FLATTENING = 1 / 298.257223563
#: Earth gravitational constant in m^3/s^2.
MU = 3.986004418e14
#: Normal gravity on the equator, m/s^2.
GE = 9.7803253359
#: Normal gravity at the poles, m/s^2.
GP = 9.8321849378
#: Somigliana constant.
K = (1 - E2) ** 0.5 * GP / GE - 1
#: Coefficient of the north gravity component per meter of altitude.
G_NORTH = 8.08e-9

_M = RATE ** 2 * A ** 2 * B / MU


def _stack_ned(north, east, down):
    north, east, down = np.broadcast_arrays(north, east, down)
    return np.stack([north, east, down], axis=-1).astype(float)


def principal_radii(lat, alt):
    """Radii of curvature at a given latitude, each with the altitude added.

    Parameters
    ----------
    lat, alt : array_like
        Latitude in radians and altitude in meters.

    Returns
    -------
    rn : float or ndarray
        Meridian radius plus altitude.
    re : float or ndarray
        Transverse (prime vertical) radius plus altitude.
    rp : float or ndarray
        Distance from the polar axis, ``re * cos(lat)``.
    """
    denominator = 1 - E2 * np.sin(lat) ** 2
    re = A / denominator ** 0.5
    rn = (1 - E2) * re / denominator
    return rn + alt, re + alt, (re + alt) * np.cos(lat)


def gravity(lat, alt):
    """Magnitude of normal gravity.

    The Somigliana formula gives gravity on the ellipsoid surface and a second
    order series in altitude scales it above the surface.
    """
    sin_lat_2 = np.sin(lat) ** 2
    h = np.asarray(alt) / A
    surface = GE * (1 + K * sin_lat_2) / (1 - E2 * sin_lat_2) ** 0.5
    return surface * (1 - 2 * h * (1 + FLATTENING * (1 - 2 * sin_lat_2) + _M)
                      + 3 * h ** 2)


def gravity_n(lat, alt):
    """Gravity vector resolved in NED.

    Besides the down component the vector has a small north component
    ``-G_NORTH * alt * sin(2 * lat)``.

    Parameters
    ----------
    lat, alt : array_like
        Latitude in radians and altitude in meters.

    Returns
    -------
    ndarray, shape (3,) or (n, 3)
    """
    north = -G_NORTH * np.asarray(alt) * np.sin(2 * np.asarray(lat))
    return _stack_ned(north, 0.0, gravity(lat, alt))


def curvature_matrix(lat, alt):
    """Matrix mapping NED displacement to the rotation of NED frame.

    A small displacement ``dr_n`` over the ellipsoid turns the local level
    frame by ``curvature_matrix(lat, alt) @ dr_n``. Applied to the velocity it
    gives the transport rate.

    Parameters
    ----------
    lat, alt : array_like
        Latitude in radians and altitude in meters.

    Returns
    -------
    ndarray, shape (3, 3) or (n, 3, 3)
    """
    rn, re, _ = principal_radii(lat, alt)
    rn = np.asarray(rn, dtype=float)
    re = np.asarray(re, dtype=float)
    result = np.zeros(re.shape + (3, 3))
    result[..., 0, 1] = 1 / re
    result[..., 1, 0] = -1 / rn
    result[..., 2, 1] = -np.tan(lat) / re
    return result


def rate_n(lat):
    """Earth rotation rate resolved in NED, ``[RATE cos(lat), 0, -RATE sin(lat)]``."""
    lat = np.asarray(lat)
    return _stack_ned(RATE * np.cos(lat), 0.0, -RATE * np.sin(lat))


def transport_rate_n(lat, alt, velocity_n):
    """Rotation rate of NED frame caused by motion over the ellipsoid.

    Parameters
    ----------
    lat, alt : array_like
        Latitude in radians and altitude in meters.
    velocity_n : array_like, shape (3,) or (n, 3)
        Velocity resolved in NED.

    Returns
    -------
    ndarray, shape (3,) or (n, 3)
    """
    return np.einsum("...ij,...j->...i", curvature_matrix(lat, alt),
                     np.asarray(velocity_n, dtype=float))
