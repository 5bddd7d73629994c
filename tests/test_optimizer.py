import numpy as np
import pytest

from neuralnet.config import ParamConf
from neuralnet.optimizer import SGDOptimizer
from neuralnet.params import Param


def _param(values, grad, **conf):
    p = Param(ParamConf(name="p", **conf)).setup((len(values),))
    p.data.data[...] = values
    p.grad.data[...] = grad
    return p


def test_plain_step_scaled_per_param():
    a = _param([1.0, 2.0], [1.0, -1.0])
    b = _param([1.0, 2.0], [1.0, -1.0], lr_scale=2.0)
    SGDOptimizer([a, b], lr=0.1).step()
    np.testing.assert_allclose(a.data.data, [0.9, 2.1], rtol=1e-6)
    np.testing.assert_allclose(b.data.data, [0.8, 2.2], rtol=1e-6)


def test_weight_decay_respects_wd_scale():
    a = _param([1.0], [0.0])
    b = _param([1.0], [0.0], wd_scale=0.0)
    SGDOptimizer([a, b], lr=0.1, weight_decay=0.5).step()
    assert a.data.data[0] == pytest.approx(0.95)
    assert b.data.data[0] == pytest.approx(1.0)


def test_momentum_accumulates_velocity():
    p = _param([0.0], [1.0])
    opt = SGDOptimizer([p], lr=0.1, momentum=0.9)
    opt.step()
    assert p.data.data[0] == pytest.approx(-0.1)
    opt.step()
    assert p.data.data[0] == pytest.approx(-0.1 - 0.19)


def test_zero_grad():
    p = _param([1.0, 1.0], [3.0, 4.0])
    SGDOptimizer([p]).zero_grad()
    assert np.all(p.grad.data == 0)
