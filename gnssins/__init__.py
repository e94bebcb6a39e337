r"""gnssins: tightly coupled GNSS/INS navigation in Python.

The package integrates gyro and accelerometer readings into a navigation solution
and corrects it with satellite pseudoranges and pseudorange rates in an error-state
extended Kalman filter. A Gauss-Newton least-squares solver provides the initial
position, velocity and receiver clock from satellite measurements alone.

Data conventions
----------------
Batch inputs and outputs are pandas objects indexed by time in seconds, all
referenced to one clock. The following names are used for them in docstrings:

    - `Trajectory` - DataFrame with columns 'lat', 'lon', 'alt' (geodetic
      position), 'VN', 'VE', 'VD' (NED velocity) and 'roll', 'pitch', 'yaw'
    - `Pva` - one row of `Trajectory` as a Series
    - `Imu` - DataFrame with angular rates in 'gyro_x', 'gyro_y', 'gyro_z' and
      specific forces in 'accel_x', 'accel_y', 'accel_z'
    - `TrajectoryError` - DataFrame with NED position errors in meters in 'north',
      'east', 'down', velocity errors in 'VN', 'VE', 'VD' and attitude errors in
      'roll', 'pitch', 'yaw'. Standard deviations use the same columns
    - `PvaError` - one row of `TrajectoryError` as a Series
    - Observations - DataFrame with one row per satellite and epoch: 'sv_id',
      ECEF satellite position 'sv_x', 'sv_y', 'sv_z' and velocity 'sv_vx', 'sv_vy',
      'sv_vz', measured 'psr' and 'psrdot' and their variances 'psr_var' and
      'psrdot_var'

Frames and naming
-----------------
A vector resolved in frame ``a`` is named ``vec_a`` and a matrix projecting from
frame ``b`` to frame ``a`` is named ``mat_ab``. Quaternions are scalar-first and
``quat`` stands for ``q_nb``. Frames, as defined in [1]_:

    - e - Earth-centered Earth-fixed (ECEF)
    - n - local North-East-Down
    - b - IMU body axes

Units
-----
SI units throughout. The numerical core (`strapdown`, `transform`, `earth` and
the `filters` setters) takes angles in radians, while `Trajectory`, `Pva` and the
attitude standard deviations reported by the filter use degrees. Clock bias and
drift are in meters and m/s. White noise intensities are given as root power
spectral density, see [2]_.

Modules
-------
.. autosummary::
   :toctree: generated/

   clock
   earth
   error_model
   filters
   gnss
   inertial_sensor
   kalman
   measurements
   sim
   strapdown
   transform
   util

References
----------
.. [1] P. D. Groves, "Principles of GNSS, Inertial, and Multisensor Integrated
       Navigation Systems", 2nd edition
.. [2] P\. S\. Maybeck, "Stochastic Models, Estimation and Control", volume 1
"""
from . import (clock, earth, error_model, filters, gnss, inertial_sensor, kalman,
               measurements, sim, strapdown, transform, util)

__version__ = "0.1"
