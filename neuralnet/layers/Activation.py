import logging

from ..config import LayerType
from ..exceptions import ConfigurationError
from ..helpers.Backend import backend
from ..helpers.tensor import tensor1
from .Layer import Layer

logger = logging.getLogger(__name__)

STANH_A = 1.7159047
STANH_B = 0.66666667


# ----- pointwise functions; the *_grad ones take the forward output -----
def relu(x):
    return backend.maximum(x, 0)


def relu_grad(y):
    return (y > 0).astype(y.dtype)


def sigmoid(x):
    # Clip input to prevent float32 overflow in exp
    return 1.0 / (1.0 + backend.exp(-backend.clip(x, -88.0, 88.0)))


def sigmoid_grad(y):
    return y * (1.0 - y)


def stanh(x):
    return STANH_A * backend.tanh(STANH_B * x)


def stanh_grad(y):
    return STANH_B * STANH_A - STANH_B / STANH_A * y * y


_FUNCTIONS = {
    LayerType.RELU: (relu, relu_grad),
    LayerType.SIGMOID: (sigmoid, sigmoid_grad),
    LayerType.STANH: (stanh, stanh_grad),
}


class Activation(Layer):
    """
    Stateless pointwise layer: RELU, SIGMOID or STANH.

    Backward only needs the forward output, so nothing is cached besides
    data_ itself.
    """

    def __init__(self, kind=LayerType.RELU, rng=None):
        super().__init__(rng=rng)
        if kind not in _FUNCTIONS:
            raise ConfigurationError(f"{kind} is not an activation layer kind")
        self.kind = kind
        self._fn, self._fn_grad = _FUNCTIONS[kind]

    def setup(self, conf, srclayers):
        super().setup(conf, srclayers)
        self._check_num_sources(srclayers, 1)
        self.data_.reshape_like(srclayers[0].data(self))
        self.grad_.reshape_like(self.data_)
        logger.debug("%s '%s' shape %s", self.kind.name, self.name, self.data_.shape)

    def compute_feature(self, flag, srclayers):
        src = tensor1(srclayers[0].mutable_data(self))
        data = tensor1(self.data_)
        data[...] = self._fn(src)

    def compute_gradient(self, flag, srclayers):
        gsrcblob = srclayers[0].mutable_grad(self)
        if gsrcblob is None:
            return
        data = tensor1(self.data_)
        grad = tensor1(self.grad_)
        gsrc = tensor1(gsrcblob)
        gsrc[...] = self._fn_grad(data) * grad


class ReLU(Activation):
    def __init__(self, rng=None):
        super().__init__(LayerType.RELU, rng=rng)


class Sigmoid(Activation):
    def __init__(self, rng=None):
        super().__init__(LayerType.SIGMOID, rng=rng)


class STanh(Activation):
    def __init__(self, rng=None):
        super().__init__(LayerType.STANH, rng=rng)
