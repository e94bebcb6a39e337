import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose, assert_equal
from gnssins.inertial_sensor import (EstimationModel, ImuErrorModel, Parameters,
                                     apply_imu_parameters)
from gnssins.util import GYRO_COLS, ACCEL_COLS


def test_EstimationModel_disabled():
    model = EstimationModel()
    assert model.n_states == 0
    assert model.n_noises == 0
    assert model.n_output_noises == 0
    assert model.states == []
    assert model.P.shape == (0, 0)
    assert model.F.shape == (0, 0)
    assert model.G.shape == (0, 0)
    assert model.H.shape == (3, 0)
    assert model.J.shape == (3, 0)
    assert len(model.q) == 0
    assert len(model.v) == 0


@pytest.mark.parametrize("bias_sd, bias_walk, noise", [
    (1e-3, None, 1e-4),
    ([1e-3, 1e-3, 1e-3], [1e-6, 1e-6, 1e-6], None),
])
def test_EstimationModel_all_axes(bias_sd, bias_walk, noise):
    model = EstimationModel(bias_sd=bias_sd, noise=noise, bias_walk=bias_walk)
    assert model.n_states == 3
    assert model.states == ['bias_x', 'bias_y', 'bias_z']
    assert_allclose(model.P, 1e-6 * np.eye(3))
    assert_equal(model.F, np.zeros((3, 3)))
    assert_equal(model.H, np.eye(3))
    if bias_walk is None:
        assert model.n_noises == 0
        assert model.n_output_noises == 3
        assert_allclose(model.v, 1e-4)
    else:
        assert model.n_noises == 3
        assert model.n_output_noises == 0
        assert_equal(model.G, np.eye(3))
        assert_allclose(model.q, 1e-6)


def test_EstimationModel_selected_axes():
    model = EstimationModel(bias_sd=[0.0, 0.5, 0.3], noise=[0.01, 0.0, 0.0],
                            bias_walk=[0.0, 0.02, 0.0])
    assert model.states == ['bias_y', 'bias_z']
    assert model.n_noises == 1
    assert model.n_output_noises == 1
    assert_allclose(model.P, np.diag([0.25, 0.09]))
    assert_equal(model.H, [[0, 0], [1, 0], [0, 1]])
    assert_equal(model.G, [[1], [0]])
    assert_equal(model.J, [[1], [0], [0]])
    assert_equal(model.q, [0.02])
    assert_equal(model.v, [0.01])


def test_EstimationModel_invalid():
    with pytest.raises(ValueError):
        EstimationModel(bias_sd=[0.1, 0.0, 0.1], bias_walk=[0.0, 0.1, 0.0])
    with pytest.raises(ValueError):
        EstimationModel(noise=[0.1, 0.1])
    with pytest.raises(ValueError):
        EstimationModel(bias_sd=[0.1, np.nan, 0.1])


def test_EstimationModel_estimates():
    model = EstimationModel(bias_sd=[0.0, 0.1, 0.1])
    model.update_estimates([0.2, -0.1])
    model.update_estimates([-0.05, 0.3])
    assert_allclose(model.bias, [0.0, 0.15, 0.2])

    estimates = model.get_estimates()
    assert list(estimates.index) == ['bias_y', 'bias_z']
    assert_allclose(estimates, [0.15, 0.2])
    assert_allclose(model.correct_readings([1.0, 1.0, 1.0]), [1.0, 0.85, 0.8])

    with pytest.raises(ValueError):
        model.update_estimates([0.1])

    model.reset_estimates()
    assert_equal(model.bias, np.zeros(3))


def test_ImuErrorModel():
    model = ImuErrorModel(accel_bias=[0.02, 0.02, 0.0], accel_noise=5e-4,
                          gyro_bias=1e-5, gyro_noise=[1e-4, 1e-4, 0],
                          accel_bias_walk=[1e-5, 0, 0])
    assert model.n_states == 5
    assert model.accel.states == ['bias_x', 'bias_y']
    assert model.accel.n_noises == 1
    assert model.gyro.n_output_noises == 2

    assert ImuErrorModel(None, None, None, None).n_states == 0


def test_Parameters_bias():
    rng = np.random.RandomState(1)
    readings = pd.DataFrame(rng.randn(50, 3), index=0.02 * np.arange(50))
    parameters = Parameters(bias=[0.5, 0.0, -0.2])
    result = parameters.apply(readings)
    assert_allclose(result, readings + [0.5, 0.0, -0.2], rtol=1e-15)
    assert list(parameters.data_frame.columns) == ['bias_x', 'bias_z']
    assert_allclose(parameters.data_frame['bias_z'], -0.2)

    assert (Parameters().apply(readings) == readings).all(None)

    with pytest.raises(ValueError):
        Parameters(bias=0.1)


def test_Parameters_random():
    rng = np.random.RandomState(2)
    readings = pd.DataFrame(np.zeros((2000, 3)), index=0.01 * np.arange(2000))

    parameters = Parameters(noise=[0.0, 0.1, 0.0], rng=rng)
    result = parameters.apply(readings)
    assert (result[[0, 2]] == 0).all(None)
    assert_allclose(result[1].std(), 0.1 / 0.01 ** 0.5, rtol=0.1)

    parameters = Parameters(bias_walk=[0.1, 0.0, 0.0], rng=rng)
    result = parameters.apply(readings)
    assert list(parameters.data_frame.columns) == ['bias_x']
    assert_allclose(result[0], parameters.data_frame['bias_x'])
    increments = np.diff(parameters.data_frame["bias_x"]) / 0.01 ** 0.5
    assert_allclose(np.std(increments), 0.1, rtol=0.1)


def test_Parameters_from_EstimationModel():
    model = EstimationModel(bias_sd=[1.0, 0.0, 1.0], noise=0.01, bias_walk=[0.1, 0, 0])
    parameters = Parameters.from_EstimationModel(model, 0)
    assert parameters.bias[0] != 0
    assert parameters.bias[1] == 0
    assert parameters.bias[2] != 0
    assert_equal(parameters.noise, [0.01, 0.01, 0.01])
    assert_equal(parameters.bias_walk, [0.1, 0, 0])


def test_apply_imu_parameters():
    time = np.arange(0, 5, 0.05)
    imu = pd.DataFrame(np.ones((len(time), 6)), index=time,
                       columns=GYRO_COLS + ACCEL_COLS)
    result = apply_imu_parameters(imu, Parameters(bias=[0, 2e-5, 0]),
                                  Parameters(bias=[-0.01, 0, 0]))
    assert list(result.columns) == GYRO_COLS + ACCEL_COLS
    assert_allclose(result['gyro_y'], 1 + 2e-5)
    assert_allclose(result['accel_x'], 0.99)
    assert_allclose(result[['gyro_x', 'gyro_z', 'accel_y', 'accel_z']], 1)
    assert (apply_imu_parameters(imu) == imu).all(None)
