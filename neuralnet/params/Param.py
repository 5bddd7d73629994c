import logging

from ..config import InitMethod, ParamConf, ParamInitConf
from ..helpers.Backend import backend
from ..helpers.Blob import Blob

logger = logging.getLogger(__name__)


class Param:
    """
    A learnable buffer (weight or bias) plus its gradient.

    The owning layer creates it in setup() and fixes its shape there; an
    external optimizer reads grad and writes data through get_params().
    """

    def __init__(self, conf=None):
        self.conf = conf if conf is not None else ParamConf()
        self.name = self.conf.name
        self.data = Blob()
        self.grad = Blob()

    @classmethod
    def create(cls, conf, default_init=None):
        """Param from its config, falling back to default_init when unset."""
        if conf is None:
            conf = ParamConf(init=default_init or ParamInitConf())
        return cls(conf)

    def setup(self, shape):
        self.data.reshape(shape)
        self.grad.reshape(shape)
        return self

    def init_values(self, rng=None):
        init = self.conf.init
        out = self.data.data
        if init.type == InitMethod.CONSTANT:
            out[...] = init.value
        elif init.type == InitMethod.UNIFORM:
            rng = rng if rng is not None else backend.rng()
            out[...] = rng.uniform(init.low, init.high, size=out.shape)
        elif init.type == InitMethod.GAUSSIAN:
            rng = rng if rng is not None else backend.rng()
            out[...] = rng.normal(init.mean, init.std, size=out.shape)
        else:
            raise ValueError(f"unknown init method {init.type!r}")
        logger.debug("initialized param %s %s with %s", self.name, self.shape, init.type.name)
        return self

    # convenience accessors used by the layers
    @property
    def shape(self):
        return self.data.shape

    @property
    def lr_scale(self):
        return self.conf.lr_scale

    @property
    def wd_scale(self):
        return self.conf.wd_scale

    def mutable_data(self):
        return self.data

    def mutable_grad(self):
        return self.grad

    def __repr__(self):
        return f"Param(name={self.name!r}, shape={self.shape})"
