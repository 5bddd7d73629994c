"""
Layer computation engine for feed-forward and energy-based networks.

Each layer is set up once from a LayerConf and its source layers, then
runs compute_feature / compute_gradient in place on its own blobs.
"""
from .config import (
    LayerConf,
    LayerType,
    Phase,
    PoolMethod,
    InitMethod,
    ParamConf,
    ParamInitConf,
    ConvolutionConf,
    PoolingConf,
    LRNConf,
    DropoutConf,
    InnerProductConf,
    RBMConf,
)
from .exceptions import LayerError, ConfigurationError, ShapeError, UnsupportedMethodError
from .helpers import Blob, Metric, backend
from .params import Param
from .layers import create_layer

__version__ = "0.1.0"
