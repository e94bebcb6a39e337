import numba
import numpy as np
from . import earth, transform

_M = earth.RATE ** 2 * earth.A ** 2 * earth.B / earth.MU

TERMS_SIZE = 11
RN = 0
RE = 1
GRAVITY = slice(2, 5)
EARTH_RATE = slice(5, 8)
TRANSPORT_RATE = slice(8, 11)


@numba.njit
def quat_to_mat(q, mat):
    w, x, y, z = q[0], q[1], q[2], q[3]
    mat[0, 0] = 1 - 2 * (y * y + z * z)
    mat[0, 1] = 2 * (x * y - w * z)
    mat[0, 2] = 2 * (x * z + w * y)
    mat[1, 0] = 2 * (x * y + w * z)
    mat[1, 1] = 1 - 2 * (x * x + z * z)
    mat[1, 2] = 2 * (y * z - w * x)
    mat[2, 0] = 2 * (x * z - w * y)
    mat[2, 1] = 2 * (y * z + w * x)
    mat[2, 2] = 1 - 2 * (x * x + y * y)


@numba.njit
def compute_terms(lla, velocity_n, terms):
    lat = lla[0]
    alt = lla[2]

    sin_lat = np.sin(lat)
    cos_lat = np.cos(lat)
    tan_lat = np.tan(lat)
    sin_lat_2 = sin_lat * sin_lat

    x = 1 - earth.E2 * sin_lat_2
    re = earth.A / x ** 0.5
    rn = re * (1 - earth.E2) / x + alt
    re += alt

    g0 = earth.GE * (1 + earth.K * sin_lat_2) / x ** 0.5
    g = g0 * (1 - 2 * alt / earth.A * (1 + earth.FLATTENING * (1 - 2 * sin_lat_2) + _M)
              + 3 * (alt / earth.A) ** 2)

    terms[RN] = rn
    terms[RE] = re

    terms[2] = -earth.G_NORTH * alt * np.sin(2 * lat)
    terms[3] = 0.0
    terms[4] = g

    terms[5] = earth.RATE * cos_lat
    terms[6] = 0.0
    terms[7] = -earth.RATE * sin_lat

    terms[8] = velocity_n[1] / re
    terms[9] = -velocity_n[0] / rn
    terms[10] = -velocity_n[1] * tan_lat / re


@numba.njit
def mechanize(lla, velocity_n, quat, mat_nb, omega_b, f_b, dt, terms):
    compute_terms(lla, velocity_n, terms)
    rn = terms[RN]
    re = terms[RE]

    Omega1 = terms[5]
    Omega2 = terms[6]
    Omega3 = terms[7]
    rho1 = terms[8]
    rho2 = terms[9]
    rho3 = terms[10]

    chi1 = Omega1 + rho1
    chi2 = Omega2 + rho2
    chi3 = Omega3 + rho3
    psi = np.empty(3)
    for i in range(3):
        psi[i] = (omega_b[i] - (mat_nb[0, i] * chi1 + mat_nb[1, i] * chi2
                                + mat_nb[2, i] * chi3)) * dt

    gamma = 0.5 * (psi[0] * psi[0] + psi[1] * psi[1] + psi[2] * psi[2]) ** 0.5
    if gamma < transform.SMALL_ANGLE_THRESHOLD:
        k = 0.5
    else:
        k = 0.5 * np.sin(gamma) / gamma
    p0 = np.cos(gamma)
    p1 = k * psi[0]
    p2 = k * psi[1]
    p3 = k * psi[2]

    q0, q1, q2, q3 = quat[0], quat[1], quat[2], quat[3]
    quat[0] = q0 * p0 - q1 * p1 - q2 * p2 - q3 * p3
    quat[1] = q0 * p1 + q1 * p0 + q2 * p3 - q3 * p2
    quat[2] = q0 * p2 - q1 * p3 + q2 * p0 + q3 * p1
    quat[3] = q0 * p3 + q1 * p2 - q2 * p1 + q3 * p0
    norm = (quat[0] ** 2 + quat[1] ** 2 + quat[2] ** 2 + quat[3] ** 2) ** 0.5
    for i in range(4):
        quat[i] /= norm

    V1 = velocity_n[0]
    V2 = velocity_n[1]
    V3 = velocity_n[2]

    w1 = 2 * Omega1 + rho1
    w2 = 2 * Omega2 + rho2
    w3 = 2 * Omega3 + rho3
    f_n = np.dot(mat_nb, f_b)
    dv1 = (f_n[0] + terms[2] - (w2 * V3 - w3 * V2)) * dt
    dv2 = (f_n[1] + terms[3] - (w3 * V1 - w1 * V3)) * dt
    dv3 = (f_n[2] + terms[4] - (w1 * V2 - w2 * V1)) * dt

    cos_lat = np.cos(lla[0])
    lla[0] += (V1 + 0.5 * dv1) / rn * dt
    lla[1] += (V2 + 0.5 * dv2) / (re * cos_lat) * dt
    lla[2] -= (V3 + 0.5 * dv3) * dt

    quat_to_mat(quat, mat_nb)
    velocity_n[0] = V1 + dv1
    velocity_n[1] = V2 + dv2
    velocity_n[2] = V3 + dv3


@numba.njit
def integrate(dt, lla, velocity_n, quat, mat_nb, omega_b, f_b, offset):
    terms = np.empty(TERMS_SIZE)
    for i in range(len(dt)):
        j = i + offset
        lla[j + 1] = lla[j]
        velocity_n[j + 1] = velocity_n[j]
        quat[j + 1] = quat[j]
        mat_nb[j + 1] = mat_nb[j]
        mechanize(lla[j + 1], velocity_n[j + 1], quat[j + 1], mat_nb[j + 1],
                  omega_b[i], f_b[i], dt[i], terms)
