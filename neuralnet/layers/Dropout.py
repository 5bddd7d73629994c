import logging

from ..config import LayerType, Phase
from ..exceptions import ConfigurationError
from ..helpers.Blob import Blob
from ..helpers.tensor import tensor1
from .Layer import Layer

logger = logging.getLogger(__name__)


class Dropout(Layer):
    kind = LayerType.DROPOUT

    def __init__(self, rng=None):
        super().__init__(rng=rng)
        self.pdrop = 0.5
        # 0 for dropped units, 1/(1-pdrop) for kept ones; reused by backward
        self.mask_ = Blob()

    def setup(self, conf, srclayers):
        super().setup(conf, srclayers)
        self._check_num_sources(srclayers, 1)
        self.pdrop = float(conf.dropout_conf.dropout_ratio)
        if not 0.0 <= self.pdrop < 1.0:
            raise ConfigurationError(
                f"dropout_ratio of '{self.name}' must be in [0, 1), got {self.pdrop}"
            )
        src = srclayers[0].data(self)
        self.data_.reshape_like(src)
        self.grad_.reshape_like(src)
        self.mask_.reshape_like(src)
        logger.debug("Dropout '%s' pdrop=%s shape %s", self.name, self.pdrop, self.data_.shape)

    def compute_feature(self, flag, srclayers):
        # inference: pass through, mask untouched
        if not flag & Phase.TRAIN:
            self.data_.copy_from(srclayers[0].data(self))
            return
        pkeep = 1.0 - self.pdrop
        mask = tensor1(self.mask_)
        # draws lie in [0, 1), so pdrop=0 keeps every unit
        draws = self.rng.random(mask.shape)
        mask[...] = (draws >= self.pdrop) * (1.0 / pkeep)
        data = tensor1(self.data_)
        src = tensor1(srclayers[0].mutable_data(self))
        data[...] = src * mask

    def compute_gradient(self, flag, srclayers):
        gsrcblob = srclayers[0].mutable_grad(self)
        if gsrcblob is None:
            return
        mask = tensor1(self.mask_)
        grad = tensor1(self.grad_)
        gsrc = tensor1(gsrcblob)
        gsrc[...] = grad * mask
