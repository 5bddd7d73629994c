import numpy as np
import pytest

from neuralnet.config import LayerConf, LayerType, Phase
from neuralnet.exceptions import ConfigurationError
from neuralnet.layers import Activation, ReLU, Sigmoid, STanh
from neuralnet.layers.Activation import STANH_A

from layer_utils import make_input, numeric_grad, run_backward


def _setup(layer, inp):
    layer.setup(LayerConf(name=layer.kind.value, type=layer.kind), [inp])
    return layer


def test_relu_forward_and_backward_mask(rng):
    x = rng.normal(size=(4, 3, 5)).astype(np.float32)
    inp = make_input(x)
    relu = _setup(ReLU(), inp)
    upstream = rng.normal(size=x.shape).astype(np.float32)
    run_backward(relu, [inp], upstream)

    out = relu.data_.data
    np.testing.assert_array_equal(out, np.maximum(x, 0))
    gsrc = inp.grad_.data
    assert np.all(gsrc[out == 0] == 0)
    np.testing.assert_array_equal(gsrc[out > 0], upstream[out > 0])


def test_sigmoid_range_and_gradient(rng, float64):
    x = rng.uniform(-10, 10, size=(3, 7))
    inp = make_input(x)
    sig = _setup(Sigmoid(), inp)
    upstream = rng.normal(size=x.shape)
    run_backward(sig, [inp], upstream)

    out = sig.data_.data
    assert np.all(out > 0) and np.all(out < 1)
    np.testing.assert_allclose(out, 1 / (1 + np.exp(-x)), rtol=1e-12)
    expected = numeric_grad(sig, [inp], inp.data_.data, upstream)
    np.testing.assert_allclose(inp.grad_.data, expected, rtol=1e-5, atol=1e-8)


def test_stanh_range_and_gradient(rng, float64):
    x = rng.uniform(-5, 5, size=(2, 9))
    inp = make_input(x)
    layer = _setup(STanh(), inp)
    upstream = rng.normal(size=x.shape)
    run_backward(layer, [inp], upstream)

    out = layer.data_.data
    assert np.all(np.abs(out) < STANH_A)
    np.testing.assert_allclose(out, 1.7159047 * np.tanh(0.66666667 * x), rtol=1e-12)
    expected = numeric_grad(layer, [inp], inp.data_.data, upstream)
    np.testing.assert_allclose(inp.grad_.data, expected, rtol=1e-5, atol=1e-8)


def test_activation_needs_exactly_one_source(rng):
    a = make_input(rng.normal(size=(2, 2)))
    b = make_input(rng.normal(size=(2, 2)))
    with pytest.raises(ConfigurationError):
        ReLU().setup(LayerConf(name="relu", type=LayerType.RELU), [a, b])
    with pytest.raises(ConfigurationError):
        Sigmoid().setup(LayerConf(name="sig", type=LayerType.SIGMOID), [])


def test_activation_rejects_non_activation_kind():
    with pytest.raises(ConfigurationError):
        Activation(LayerType.POOLING)


def test_backward_without_source_gradient_is_a_no_op(rng):
    x = rng.normal(size=(2, 4)).astype(np.float32)
    inp = make_input(x, keep_grad=False)
    relu = _setup(ReLU(), inp)
    relu.compute_feature(Phase.TRAIN, [inp])
    relu.grad_.data[...] = 1.0
    relu.compute_gradient(Phase.TRAIN, [inp])
    assert inp.mutable_grad() is None
