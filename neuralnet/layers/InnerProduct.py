import logging

from ..config import InitMethod, LayerType, ParamInitConf
from ..exceptions import ConfigurationError
from ..helpers.Backend import backend
from ..helpers.tensor import tensor2
from ..params.Param import Param
from .Layer import Layer

logger = logging.getLogger(__name__)


class InnerProduct(Layer):
    """
    Fully connected layer: data = src @ W.T + b.

    With transpose=True the weight is stored as (vdim, hdim) and applied as
    src @ W, which lets it share a matrix laid out the other way round.
    """
    kind = LayerType.INNER_PRODUCT

    def __init__(self, rng=None):
        super().__init__(rng=rng)
        self.batchsize = self.vdim = self.hdim = 0
        self.transpose = False
        self.weight = None
        self.bias = None

    def setup(self, conf, srclayers):
        super().setup(conf, srclayers)
        self._check_num_sources(srclayers, 1)
        src = srclayers[0].data(self)
        self.batchsize = src.shape[0]
        self.vdim = src.count // self.batchsize
        ip_conf = conf.innerproduct_conf
        if ip_conf.num_output <= 0:
            raise ConfigurationError(f"num_output must be positive, got {ip_conf.num_output}")
        self.hdim = self._partitioned(int(ip_conf.num_output), "num_output")
        self.transpose = bool(ip_conf.transpose)
        self.data_.reshape((self.batchsize, self.hdim))
        self.grad_.reshape_like(self.data_)

        self.weight = Param.create(
            conf.param(0), ParamInitConf(type=InitMethod.GAUSSIAN, std=0.01))
        self.bias = Param.create(conf.param(1))
        if self.transpose:
            self.weight.setup((self.vdim, self.hdim))
        else:
            self.weight.setup((self.hdim, self.vdim))
        self.weight.init_values(self.rng)
        self.bias.setup((self.hdim,)).init_values(self.rng)
        logger.debug("InnerProduct '%s' %d -> %d (transpose=%s)",
                     self.name, self.vdim, self.hdim, self.transpose)

    def get_params(self):
        return [self.weight, self.bias]

    def compute_feature(self, flag, srclayers):
        data = tensor2(self.data_)
        src = tensor2(srclayers[0].mutable_data(self))
        weight = tensor2(self.weight.mutable_data())
        bias = self.bias.mutable_data().data
        if self.transpose:
            data[...] = backend.matmul(src, weight)
        else:
            data[...] = backend.matmul(src, backend.transpose(weight))
        # repeat bias vector into batchsize rows
        data += bias[None, :]

    def compute_gradient(self, flag, srclayers):
        src = tensor2(srclayers[0].mutable_data(self))
        grad = tensor2(self.grad_)
        weight = tensor2(self.weight.mutable_data())
        gweight = tensor2(self.weight.mutable_grad())
        gbias = self.bias.mutable_grad().data

        gbias[...] = backend.sum(grad, axis=0)
        if self.transpose:
            gweight[...] = backend.matmul(backend.transpose(src), grad)
        else:
            gweight[...] = backend.matmul(backend.transpose(grad), src)
        gsrcblob = srclayers[0].mutable_grad(self)
        if gsrcblob is not None:
            gsrc = tensor2(gsrcblob)
            if self.transpose:
                gsrc[...] = backend.matmul(grad, backend.transpose(weight))
            else:
                gsrc[...] = backend.matmul(grad, weight)
