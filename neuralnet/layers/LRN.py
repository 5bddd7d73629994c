import logging

from ..config import LayerType
from ..exceptions import ConfigurationError, ShapeError
from ..helpers.Backend import backend
from ..helpers.Blob import Blob
from ..helpers.tensor import tensor4
from .Layer import Layer

logger = logging.getLogger(__name__)


def channel_window_sum(x, lsize):
    """
    For every channel c of x (batch, channels, H, W), sum x over the channels
    [c - lsize//2, c + lsize//2] clipped to the valid range.
    """
    half = lsize // 2
    channels = x.shape[1]
    padded = backend.pad(x, ((0, 0), (half, half), (0, 0), (0, 0)))
    out = backend.zeros(x.shape, dtype=x.dtype)
    for offset in range(lsize):
        out += padded[:, offset:offset + channels]
    return out


class LRN(Layer):
    """
    Local response normalization across channels.

    b_i = a_i / x_i^beta
    x_i = knorm + alpha/lsize * sum_{j=i-lsize/2}^{i+lsize/2} a_j^2
    """
    kind = LayerType.LRN

    def __init__(self, rng=None):
        super().__init__(rng=rng)
        self.lsize = 5
        self.alpha = 1.0
        self.beta = 0.75
        self.knorm = 1.0
        # normalizer x_i without the power, reused by backward
        self.norm_ = Blob()

    def setup(self, conf, srclayers):
        super().setup(conf, srclayers)
        self._check_num_sources(srclayers, 1)
        lrn_conf = conf.lrn_conf
        self.lsize = int(lrn_conf.local_size)
        if self.lsize <= 0 or self.lsize % 2 != 1:
            raise ConfigurationError(
                f"LRN only supports odd positive local_size, got {self.lsize}"
            )
        self.knorm = float(lrn_conf.knorm)
        self.alpha = float(lrn_conf.alpha)
        self.beta = float(lrn_conf.beta)
        shape = srclayers[0].data(self).shape
        if len(shape) != 4:
            raise ShapeError(f"LRN '{self.name}' needs a 4-d source, got shape {shape}")
        self.data_.reshape(shape)
        self.grad_.reshape(shape)
        self.norm_.reshape(shape)
        logger.debug("LRN '%s' local_size=%d shape %s", self.name, self.lsize, shape)

    def compute_feature(self, flag, srclayers):
        salpha = self.alpha / self.lsize
        src = tensor4(srclayers[0].mutable_data(self))
        data = tensor4(self.data_)
        norm = tensor4(self.norm_)
        norm[...] = channel_window_sum(src * src, self.lsize) * salpha + self.knorm
        data[...] = src * backend.power(norm, -self.beta)

    def compute_gradient(self, flag, srclayers):
        gsrcblob = srclayers[0].mutable_grad(self)
        if gsrcblob is None:
            return
        salpha = self.alpha / self.lsize
        src = tensor4(srclayers[0].mutable_data(self))
        norm = tensor4(self.norm_)
        grad = tensor4(self.grad_)
        gsrc = tensor4(gsrcblob)
        gsrc[...] = grad * backend.power(norm, -self.beta)
        gsrc += (-2.0 * self.beta * salpha) * channel_window_sum(
            grad * src * backend.power(norm, -self.beta - 1.0), self.lsize
        ) * src
