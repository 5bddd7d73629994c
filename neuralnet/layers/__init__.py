from ..config import LayerType
from ..exceptions import ConfigurationError
from .Layer import Layer
from .Input import InputLayer
from .Activation import Activation, ReLU, Sigmoid, STanh
from .Dropout import Dropout
from .LRN import LRN
from .Pooling import Pooling
from .Convolution import Convolution
from .InnerProduct import InnerProduct
from .RBM import RBMState, RBMVisLayer, RBMHidLayer, pair_rbm_layers, sample

# kind -> (class, whether the class takes the kind as first argument)
_LAYERS = {
    LayerType.INPUT: (InputLayer, False),
    LayerType.CONVOLUTION: (Convolution, True),
    LayerType.CCONVOLUTION: (Convolution, True),
    LayerType.DROPOUT: (Dropout, False),
    LayerType.LRN: (LRN, False),
    LayerType.POOLING: (Pooling, True),
    LayerType.CPOOLING: (Pooling, True),
    LayerType.RELU: (Activation, True),
    LayerType.SIGMOID: (Activation, True),
    LayerType.STANH: (Activation, True),
    LayerType.INNER_PRODUCT: (InnerProduct, False),
    LayerType.RBM_VIS: (RBMVisLayer, False),
    LayerType.RBM_HID: (RBMHidLayer, False),
}


def create_layer(conf, rng=None):
    """Instantiate (but do not set up) the layer described by conf."""
    try:
        cls, takes_kind = _LAYERS[conf.type]
    except KeyError:
        raise ConfigurationError(f"unknown layer type {conf.type!r}") from None
    layer = cls(conf.type, rng=rng) if takes_kind else cls(rng=rng)
    layer.name = conf.name
    return layer


__all__ = [
    "Layer",
    "InputLayer",
    "Activation",
    "ReLU",
    "Sigmoid",
    "STanh",
    "Dropout",
    "LRN",
    "Pooling",
    "Convolution",
    "InnerProduct",
    "RBMState",
    "RBMVisLayer",
    "RBMHidLayer",
    "pair_rbm_layers",
    "sample",
    "create_layer",
]
