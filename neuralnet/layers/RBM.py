"""
Restricted Boltzmann machine layers trained by contrastive divergence.

A visible layer and a hidden layer form one RBM. Their shared buffers and
flags live in an RBMState each; sample() draws from either state. The
visible layer's weight Param is the canonical weight: the hidden layer
holds a reference to it and only exports its own bias.

One CD-1 step, as a scheduler would run it:

    vis.compute_feature(Phase.POSITIVE, [inp, hid])
    hid.compute_feature(Phase.POSITIVE, [vis])
    vis.compute_feature(Phase.NEGATIVE, [inp, hid])
    hid.compute_feature(Phase.NEGATIVE, [vis])
    vis.compute_gradient(Phase.TRAIN, [inp, hid])
    hid.compute_gradient(Phase.TRAIN, [vis])
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..config import InitMethod, LayerType, ParamInitConf, Phase
from ..exceptions import ConfigurationError
from ..helpers.Backend import backend
from ..helpers.Blob import Blob
from ..helpers.metric import Metric
from ..helpers.tensor import tensor2
from ..params.Param import Param
from .Activation import sigmoid
from .Layer import Layer

logger = logging.getLogger(__name__)


@dataclass
class RBMState:
    """Buffers and flags of one side of an RBM."""
    data: Blob
    hdim: int = 0
    vdim: int = 0
    batchsize: int = 0
    # if true, units are Gaussian instead of binary
    gaussian: bool = False
    first_gibbs: bool = True
    neg_data: Blob = field(default_factory=Blob)
    sample: Blob = field(default_factory=Blob)
    neg_sample: Blob = field(default_factory=Blob)
    weight: Optional[Param] = None
    bias: Optional[Param] = None


def sample(state, flag, rng):
    """
    Draw units of one RBM side and return the blob holding the draw.

    The positive phase and the first Gibbs step sample from data into
    sample; later negative steps sample from neg_data into neg_sample.
    Gaussian units add N(0, 1) noise to the activation, binary units are
    Bernoulli draws with the activation as success probability.
    """
    if flag & Phase.POSITIVE or state.first_gibbs:
        src, out = state.data, state.sample
    else:
        src, out = state.neg_data, state.neg_sample
    probs = tensor2(src)
    draw = tensor2(out)
    if state.gaussian:
        draw[...] = rng.standard_normal(draw.shape) + probs
    else:
        draw[...] = rng.random(draw.shape) < probs
    return out


def pair_rbm_layers(vis, hid):
    """Link a visible and a hidden layer; each may have exactly one partner."""
    if not isinstance(vis, RBMVisLayer) or not isinstance(hid, RBMHidLayer):
        raise ConfigurationError(
            f"cannot pair {type(vis).__name__} with {type(hid).__name__}"
        )
    if vis.hid_layer is not None and vis.hid_layer is not hid:
        raise ConfigurationError(f"visible layer '{vis.name}' is already paired")
    if hid.vis_layer is not None and hid.vis_layer is not vis:
        raise ConfigurationError(f"hidden layer '{hid.name}' is already paired")
    vis.hid_layer = hid
    hid.vis_layer = vis


class RBMVisLayer(Layer):
    """
    Visible side. Sources: the input layer and the paired hidden layer.

    In test mode the negative phase also adds the squared reconstruction
    error of the batch to self.metric under "Squared Error".
    """
    kind = LayerType.RBM_VIS

    def __init__(self, rng=None):
        super().__init__(rng=rng)
        self.state = RBMState(data=self.data_)
        self.hid_layer = None
        self.input_layer = None
        self.metric = Metric()

    def setup(self, conf, srclayers):
        super().setup(conf, srclayers)
        self._check_num_sources(srclayers, 2)
        # the hidden layer may not have been set up yet
        if self.hid_layer is None:
            partners = [s for s in srclayers if s.kind == LayerType.RBM_HID]
            if len(partners) != 1:
                raise ConfigurationError(
                    f"RBM visible layer '{self.name}' needs exactly one hidden "
                    f"source, found {len(partners)}"
                )
            pair_rbm_layers(self, partners[0])
        elif not any(s is self.hid_layer for s in srclayers):
            raise ConfigurationError(
                f"paired hidden layer of '{self.name}' is not among its sources"
            )
        self.input_layer = srclayers[0] if srclayers[0] is not self.hid_layer else srclayers[1]

        rbm_conf = conf.rbm_conf
        state = self.state
        state.hdim = int(rbm_conf.hdim)
        if state.hdim <= 0:
            raise ConfigurationError(f"RBM hdim must be positive, got {state.hdim}")
        state.gaussian = bool(rbm_conf.gaussian)
        state.first_gibbs = True
        src = self.input_layer.data(self)
        state.batchsize = src.shape[0]
        state.vdim = src.count // state.batchsize
        self.data_.reshape_like(src)
        self.grad_.reshape_like(src)
        state.neg_data.reshape_like(self.data_)
        state.sample.reshape_like(self.data_)
        state.neg_sample.reshape_like(self.data_)

        state.weight = Param.create(
            conf.param(0), ParamInitConf(type=InitMethod.GAUSSIAN, std=0.01))
        state.weight.setup((state.hdim, state.vdim)).init_values(self.rng)
        state.bias = Param.create(conf.param(1))
        state.bias.setup((state.vdim,)).init_values(self.rng)
        logger.debug("RBMVis '%s' vdim=%d hdim=%d batch=%d",
                     self.name, state.vdim, state.hdim, state.batchsize)

    @property
    def weight(self):
        return self.state.weight

    @property
    def bias(self):
        return self.state.bias

    def get_params(self):
        return [self.state.weight, self.state.bias]

    def neg_data(self, requester=None):
        return self.state.neg_data

    def mutable_neg_data(self, requester=None):
        return self.state.neg_data

    def sample(self, flag):
        return sample(self.state, flag, self.rng)

    def compute_feature(self, flag, srclayers):
        state = self.state
        if flag & Phase.POSITIVE:
            self.data_.copy_from(self.input_layer.data(self))
            state.first_gibbs = True
        elif flag & Phase.NEGATIVE:
            # fetch sampling results from hidden layer
            hid_sample = tensor2(self.hid_layer.sample(flag))
            data = tensor2(state.neg_data)
            weight = tensor2(state.weight.mutable_data())
            bias = state.bias.mutable_data().data
            data[...] = sigmoid(backend.matmul(hid_sample, weight) + bias[None, :])
            if flag & Phase.TEST:
                diff = tensor2(self.data_) - data
                err = float(backend.sum(diff * diff))
                self.metric.add("Squared Error", err / state.batchsize)
            state.first_gibbs = False

    def compute_gradient(self, flag, srclayers):
        state = self.state
        vis_pos = tensor2(self.data_)
        vis_neg = tensor2(state.neg_data)
        hid_pos = tensor2(self.hid_layer.mutable_data(self))
        hid_neg = tensor2(self.hid_layer.mutable_neg_data(self))

        gbias = state.bias.mutable_grad().data
        gbias[...] = backend.sum(vis_neg, axis=0) - backend.sum(vis_pos, axis=0)
        gbias /= state.batchsize

        gweight = tensor2(state.weight.mutable_grad())
        gweight[...] = backend.matmul(backend.transpose(hid_neg), vis_neg)
        gweight -= backend.matmul(backend.transpose(hid_pos), vis_pos)
        gweight /= state.batchsize


class RBMHidLayer(Layer):
    """Hidden side. Its single source is the paired visible layer."""
    kind = LayerType.RBM_HID

    def __init__(self, rng=None):
        super().__init__(rng=rng)
        self.state = RBMState(data=self.data_)
        self.vis_layer = None

    def setup(self, conf, srclayers):
        super().setup(conf, srclayers)
        self._check_num_sources(srclayers, 1)
        if self.vis_layer is None:
            if srclayers[0].kind != LayerType.RBM_VIS:
                raise ConfigurationError(
                    f"RBM hidden layer '{self.name}' needs an RBM visible source"
                )
            pair_rbm_layers(srclayers[0], self)
        elif srclayers[0] is not self.vis_layer:
            raise ConfigurationError(
                f"paired visible layer of '{self.name}' is not its source"
            )
        vis_state = self.vis_layer.state
        if vis_state.weight is None:
            raise ConfigurationError(
                f"visible layer '{self.vis_layer.name}' must be set up before '{self.name}'"
            )

        rbm_conf = conf.rbm_conf
        state = self.state
        state.hdim = int(rbm_conf.hdim)
        if state.hdim != vis_state.hdim:
            raise ConfigurationError(
                f"hdim mismatch: hidden '{self.name}' has {state.hdim}, "
                f"visible '{self.vis_layer.name}' has {vis_state.hdim}"
            )
        state.gaussian = bool(rbm_conf.gaussian)
        state.first_gibbs = True
        src = srclayers[0].data(self)
        state.batchsize = src.shape[0]
        state.vdim = src.count // state.batchsize
        self.data_.reshape((state.batchsize, state.hdim))
        self.grad_.reshape_like(self.data_)
        state.neg_data.reshape_like(self.data_)
        state.sample.reshape_like(self.data_)
        state.neg_sample.reshape_like(self.data_)

        # tied to the visible layer's weight, which is the canonical copy
        state.weight = vis_state.weight
        state.bias = Param.create(conf.param(1))
        state.bias.setup((state.hdim,)).init_values(self.rng)
        logger.debug("RBMHid '%s' hdim=%d gaussian=%s", self.name, state.hdim, state.gaussian)

    @property
    def weight(self):
        return self.state.weight

    @property
    def bias(self):
        return self.state.bias

    def get_params(self):
        # the weight is exported by the visible layer
        return [self.state.bias]

    def neg_data(self, requester=None):
        return self.state.neg_data

    def mutable_neg_data(self, requester=None):
        return self.state.neg_data

    def sample(self, flag):
        return sample(self.state, flag, self.rng)

    def compute_feature(self, flag, srclayers):
        state = self.state
        weight = tensor2(state.weight.mutable_data())
        bias = state.bias.mutable_data().data
        if flag & Phase.POSITIVE:
            data = tensor2(self.data_)
            src = tensor2(self.vis_layer.mutable_data(self))
            state.first_gibbs = True
        else:
            data = tensor2(state.neg_data)
            # the visible reconstruction is used as is, not sampled
            src = tensor2(self.vis_layer.mutable_neg_data(self))
            state.first_gibbs = False
        data[...] = backend.matmul(src, backend.transpose(weight)) + bias[None, :]
        if not state.gaussian:
            data[...] = sigmoid(data)

    def compute_gradient(self, flag, srclayers):
        state = self.state
        hid_pos = tensor2(self.data_)
        hid_neg = tensor2(state.neg_data)
        gbias = state.bias.mutable_grad().data
        gbias[...] = backend.sum(hid_neg, axis=0) - backend.sum(hid_pos, axis=0)
        gbias /= state.batchsize
