import numpy as np
import pytest

from neuralnet.config import LayerConf, LayerType, Phase, RBMConf
from neuralnet.exceptions import ConfigurationError
from neuralnet.layers import RBMHidLayer, RBMState, RBMVisLayer, pair_rbm_layers, sample
from neuralnet.helpers.Blob import Blob
from neuralnet.optimizer import SGDOptimizer

from layer_utils import make_input

PATTERNS = np.array([
    [1, 1, 1, 1, 0, 0, 0, 0],
    [0, 0, 0, 0, 1, 1, 1, 1],
    [1, 1, 0, 0, 1, 1, 0, 0],
    [0, 0, 1, 1, 0, 0, 1, 1],
], dtype=np.float32)


def _conf(kind, hdim, gaussian=False):
    return LayerConf(name=kind.value, type=kind, rbm_conf=RBMConf(hdim=hdim, gaussian=gaussian))


def _rbm(x, hdim=4, gaussian=False, seed=0):
    inp = make_input(x, keep_grad=False)
    vis = RBMVisLayer(rng=np.random.default_rng(seed))
    hid = RBMHidLayer(rng=np.random.default_rng(seed + 1))
    vis.setup(_conf(LayerType.RBM_VIS, hdim), [inp, hid])
    hid.setup(_conf(LayerType.RBM_HID, hdim, gaussian), [vis])
    return inp, vis, hid


def _cd_step(inp, vis, hid, test=False):
    vis.compute_feature(Phase.POSITIVE, [inp, hid])
    hid.compute_feature(Phase.POSITIVE, [vis])
    negative = Phase.NEGATIVE | Phase.TEST if test else Phase.NEGATIVE
    vis.compute_feature(negative, [inp, hid])
    hid.compute_feature(negative, [vis])
    vis.compute_gradient(Phase.TRAIN, [inp, hid])
    hid.compute_gradient(Phase.TRAIN, [vis])


def test_setup_pairs_layers_and_ties_weight():
    inp, vis, hid = _rbm(PATTERNS)
    assert vis.hid_layer is hid and hid.vis_layer is vis
    assert hid.weight is vis.weight
    assert vis.weight.shape == (4, 8)
    assert vis.bias.shape == (8,)
    assert hid.bias.shape == (4,)
    assert vis.get_params() == [vis.weight, vis.bias]
    # the tied weight is exported once, by the visible side
    assert hid.get_params() == [hid.bias]
    assert hid.data_.shape == (4, 4)
    assert vis.state.sample.shape == (4, 8)


def test_input_may_come_second():
    inp = make_input(PATTERNS)
    vis = RBMVisLayer()
    hid = RBMHidLayer()
    vis.setup(_conf(LayerType.RBM_VIS, 3), [hid, inp])
    assert vis.input_layer is inp
    assert vis.state.vdim == 8


def test_visible_needs_exactly_one_hidden_source():
    inp = make_input(PATTERNS)
    other = make_input(PATTERNS)
    with pytest.raises(ConfigurationError):
        RBMVisLayer().setup(_conf(LayerType.RBM_VIS, 4), [inp, other])
    with pytest.raises(ConfigurationError):
        RBMVisLayer().setup(_conf(LayerType.RBM_VIS, 4), [inp, RBMHidLayer(), RBMHidLayer()])


def test_hidden_checks_its_partner():
    inp = make_input(PATTERNS)
    with pytest.raises(ConfigurationError):
        RBMHidLayer().setup(_conf(LayerType.RBM_HID, 4), [inp])

    vis, hid = RBMVisLayer(), RBMHidLayer()
    pair_rbm_layers(vis, hid)
    # the visible side owns the weight, so it is set up first
    with pytest.raises(ConfigurationError):
        hid.setup(_conf(LayerType.RBM_HID, 4), [vis])

    vis.setup(_conf(LayerType.RBM_VIS, 4), [inp, hid])
    with pytest.raises(ConfigurationError):
        hid.setup(_conf(LayerType.RBM_HID, 5), [vis])


def test_pairing_is_exclusive():
    vis, hid = RBMVisLayer(), RBMHidLayer()
    pair_rbm_layers(vis, hid)
    pair_rbm_layers(vis, hid)
    with pytest.raises(ConfigurationError):
        pair_rbm_layers(vis, RBMHidLayer())
    with pytest.raises(ConfigurationError):
        pair_rbm_layers(RBMVisLayer(), hid)
    with pytest.raises(ConfigurationError):
        pair_rbm_layers(hid, vis)


def test_binary_sampling_and_gibbs_source():
    rng = np.random.default_rng(0)
    state = RBMState(data=Blob((50, 40)))
    state.data.data[...] = 0.3
    state.neg_data.reshape((50, 40)).data[...] = 1.0
    state.sample.reshape((50, 40))
    state.neg_sample.reshape((50, 40))

    drawn = sample(state, Phase.POSITIVE, rng)
    assert drawn is state.sample
    assert set(np.unique(drawn.data)) <= {0.0, 1.0}
    assert abs(drawn.data.mean() - 0.3) < 0.05

    # first negative step still samples the positive activations
    assert sample(state, Phase.NEGATIVE, rng) is state.sample
    state.first_gibbs = False
    drawn = sample(state, Phase.NEGATIVE, rng)
    assert drawn is state.neg_sample
    assert np.all(drawn.data == 1.0)


def test_gaussian_sampling_adds_unit_noise():
    rng = np.random.default_rng(0)
    state = RBMState(data=Blob((200, 50)), gaussian=True)
    state.data.data[...] = 2.0
    state.sample.reshape((200, 50))
    drawn = sample(state, Phase.POSITIVE, rng).data
    assert abs(drawn.mean() - 2.0) < 0.05
    assert abs(drawn.std() - 1.0) < 0.05


def test_gaussian_hidden_units_are_linear():
    inp, vis, hid = _rbm(PATTERNS, gaussian=True)
    hid.bias.mutable_data().data[...] = 5.0
    vis.compute_feature(Phase.POSITIVE, [inp, hid])
    hid.compute_feature(Phase.POSITIVE, [vis])
    expected = PATTERNS @ vis.weight.mutable_data().data.T + 5.0
    np.testing.assert_allclose(hid.data_.data, expected, rtol=1e-5)


def test_cd_gradients_match_their_definition():
    inp, vis, hid = _rbm(PATTERNS, hdim=3)
    vis.weight.mutable_data().data[...] = np.random.default_rng(9).normal(0, 0.5, size=(3, 8))
    _cd_step(inp, vis, hid)

    w = vis.weight.mutable_data().data
    vpos = PATTERNS
    hpos = 1 / (1 + np.exp(-(vpos @ w.T + hid.bias.mutable_data().data)))
    np.testing.assert_allclose(hid.data_.data, hpos, rtol=1e-5)
    # reconstruction from the first hidden sample
    hsample = hid.state.sample.data
    assert set(np.unique(hsample)) <= {0.0, 1.0}
    vneg = 1 / (1 + np.exp(-(hsample @ w + vis.bias.mutable_data().data)))
    np.testing.assert_allclose(vis.state.neg_data.data, vneg, rtol=1e-5)
    # negative hidden activations come from the reconstruction itself
    hneg = 1 / (1 + np.exp(-(vneg @ w.T + hid.bias.mutable_data().data)))
    np.testing.assert_allclose(hid.state.neg_data.data, hneg, rtol=1e-5)

    batch = PATTERNS.shape[0]
    np.testing.assert_allclose(
        vis.weight.mutable_grad().data, (hneg.T @ vneg - hpos.T @ vpos) / batch,
        rtol=1e-4, atol=1e-6)
    np.testing.assert_allclose(
        vis.bias.mutable_grad().data, (vneg.sum(0) - vpos.sum(0)) / batch, rtol=1e-4, atol=1e-6)
    np.testing.assert_allclose(
        hid.bias.mutable_grad().data, (hneg.sum(0) - hpos.sum(0)) / batch, rtol=1e-4, atol=1e-6)
    assert not vis.state.first_gibbs and not hid.state.first_gibbs


def test_reconstruction_error_only_in_test_mode():
    inp, vis, hid = _rbm(PATTERNS)
    _cd_step(inp, vis, hid)
    assert len(vis.metric) == 0
    _cd_step(inp, vis, hid, test=True)
    err = vis.metric.get("Squared Error")
    diff = PATTERNS - vis.state.neg_data.data
    assert err == pytest.approx(float(np.sum(diff * diff)) / 4, rel=1e-5)


@pytest.mark.slow
def test_contrastive_divergence_reduces_reconstruction_error():
    inp, vis, hid = _rbm(PATTERNS, hdim=4, seed=11)
    opt = SGDOptimizer(vis.get_params() + hid.get_params(), lr=0.5)
    errors = []
    for _ in range(300):
        vis.metric.reset()
        _cd_step(inp, vis, hid, test=True)
        errors.append(vis.metric.get("Squared Error"))
        opt.step()
    assert np.mean(errors[-10:]) < np.mean(errors[:10])
