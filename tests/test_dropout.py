import numpy as np
import pytest

from neuralnet.config import DropoutConf, LayerConf, LayerType, Phase
from neuralnet.exceptions import ConfigurationError
from neuralnet.layers import Dropout

from layer_utils import make_input, run_backward


def _dropout(ratio, inp, seed=0):
    layer = Dropout(rng=np.random.default_rng(seed))
    conf = LayerConf(name="drop", type=LayerType.DROPOUT,
                     dropout_conf=DropoutConf(dropout_ratio=ratio))
    layer.setup(conf, [inp])
    return layer


def test_zero_ratio_is_identity_both_ways(rng):
    x = rng.normal(size=(8, 16)).astype(np.float32)
    inp = make_input(x)
    layer = _dropout(0.0, inp)
    upstream = rng.normal(size=x.shape).astype(np.float32)
    run_backward(layer, [inp], upstream, flag=Phase.TRAIN)
    np.testing.assert_array_equal(layer.data_.data, x)
    np.testing.assert_array_equal(inp.grad_.data, upstream)


def test_mask_holds_zero_or_inverse_keep_probability(rng):
    x = rng.normal(size=(32, 32)).astype(np.float32)
    inp = make_input(x)
    layer = _dropout(0.25, inp)
    upstream = rng.normal(size=x.shape).astype(np.float32)
    run_backward(layer, [inp], upstream)

    mask = layer.mask_.data
    values = np.unique(mask)
    np.testing.assert_allclose(values, [0.0, 1.0 / 0.75], rtol=1e-6)
    np.testing.assert_allclose(layer.data_.data, x * mask, rtol=1e-6)
    # backward reuses the forward mask
    np.testing.assert_allclose(inp.grad_.data, upstream * mask, rtol=1e-6)
    kept = np.mean(mask > 0)
    assert abs(kept - 0.75) < 0.05


def test_high_ratio_drops_almost_everything(rng):
    x = np.ones((100, 100), dtype=np.float32)
    inp = make_input(x)
    layer = _dropout(0.99, inp)
    layer.compute_feature(Phase.TRAIN, [inp])
    assert np.mean(layer.data_.data != 0) < 0.02
    assert np.median(layer.data_.data) == 0.0


def test_inference_copies_input_and_leaves_mask(rng):
    x = rng.normal(size=(4, 5)).astype(np.float32)
    inp = make_input(x)
    layer = _dropout(0.5, inp)
    layer.compute_feature(Phase.TRAIN, [inp])
    mask_before = layer.mask_.data.copy()
    layer.compute_feature(Phase.TEST, [inp])
    np.testing.assert_array_equal(layer.data_.data, x)
    np.testing.assert_array_equal(layer.mask_.data, mask_before)


def test_same_seed_same_mask(rng):
    x = rng.normal(size=(6, 6)).astype(np.float32)
    inp = make_input(x)
    a = _dropout(0.5, inp, seed=7)
    b = _dropout(0.5, inp, seed=7)
    a.compute_feature(Phase.TRAIN, [inp])
    b.compute_feature(Phase.TRAIN, [inp])
    np.testing.assert_array_equal(a.mask_.data, b.mask_.data)


@pytest.mark.parametrize("ratio", [-0.1, 1.0, 1.5])
def test_invalid_ratio_rejected(rng, ratio):
    inp = make_input(rng.normal(size=(2, 2)))
    with pytest.raises(ConfigurationError):
        _dropout(ratio, inp)
