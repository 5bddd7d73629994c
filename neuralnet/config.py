"""
config.py - Layer configuration records

Plain dataclasses describing one layer each. They mirror the options a
config loader hands to setup(): layer-specific scalars in a sub-config and
zero or more parameter specs consumed positionally (params[0] = weight,
params[1] = bias).

Usage:
    conf = LayerConf.from_dict({
        "name": "conv1",
        "type": "CONVOLUTION",
        "convolution_conf": {"kernel": 5, "num_filters": 6},
        "params": [{"name": "w1", "init": {"type": "GAUSSIAN", "std": 0.01}},
                   {"name": "b1"}],
    })
"""
import dataclasses
from dataclasses import dataclass, field
from enum import Enum, IntFlag
from typing import Any, Dict, List, Optional

from .exceptions import ConfigurationError


class LayerType(Enum):
    INPUT = "input"
    CONVOLUTION = "convolution"
    CCONVOLUTION = "cconvolution"
    DROPOUT = "dropout"
    LRN = "lrn"
    POOLING = "pooling"
    CPOOLING = "cpooling"
    RELU = "relu"
    INNER_PRODUCT = "inner_product"
    STANH = "stanh"
    SIGMOID = "sigmoid"
    RBM_VIS = "rbm_vis"
    RBM_HID = "rbm_hid"


class PoolMethod(Enum):
    MAX = "max"
    AVG = "avg"


class InitMethod(Enum):
    CONSTANT = "constant"
    UNIFORM = "uniform"
    GAUSSIAN = "gaussian"


class Phase(IntFlag):
    """Flags passed to compute_feature / compute_gradient."""
    TRAIN = 1
    TEST = 2
    POSITIVE = 4
    NEGATIVE = 8


@dataclass
class ParamInitConf:
    type: InitMethod = InitMethod.CONSTANT
    value: float = 0.0
    low: float = -1.0
    high: float = 1.0
    mean: float = 0.0
    std: float = 1.0


@dataclass
class ParamConf:
    name: str = ""
    init: ParamInitConf = field(default_factory=ParamInitConf)
    lr_scale: float = 1.0
    wd_scale: float = 1.0


@dataclass
class ConvolutionConf:
    num_filters: int = 0
    kernel: int = 0
    pad: int = 0
    stride: int = 1


@dataclass
class PoolingConf:
    kernel: int = 0
    pad: int = 0
    stride: int = 1
    pool: PoolMethod = PoolMethod.MAX


@dataclass
class LRNConf:
    local_size: int = 5
    alpha: float = 1.0
    beta: float = 0.75
    knorm: float = 1.0


@dataclass
class DropoutConf:
    dropout_ratio: float = 0.5


@dataclass
class InnerProductConf:
    num_output: int = 0
    transpose: bool = False


@dataclass
class RBMConf:
    hdim: int = 0
    gaussian: bool = False


@dataclass
class LayerConf:
    name: str
    type: LayerType
    params: List[ParamConf] = field(default_factory=list)
    partition_dim: int = 0
    num_partitions: int = 1
    convolution_conf: ConvolutionConf = field(default_factory=ConvolutionConf)
    pooling_conf: PoolingConf = field(default_factory=PoolingConf)
    lrn_conf: LRNConf = field(default_factory=LRNConf)
    dropout_conf: DropoutConf = field(default_factory=DropoutConf)
    innerproduct_conf: InnerProductConf = field(default_factory=InnerProductConf)
    rbm_conf: RBMConf = field(default_factory=RBMConf)

    def param(self, index: int) -> Optional[ParamConf]:
        """Positional parameter config, or None when not configured."""
        if index < len(self.params):
            return self.params[index]
        return None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "LayerConf":
        """Build a LayerConf from a plain dict (e.g. parsed YAML or JSON)."""
        return _build(cls, raw)


_ENUMS = (LayerType, PoolMethod, InitMethod)


def _coerce_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = value.strip()
        if key.upper() in enum_cls.__members__:
            return enum_cls[key.upper()]
        try:
            return enum_cls(key.lower())
        except ValueError:
            pass
    raise ConfigurationError(f"invalid {enum_cls.__name__} value: {value!r}")


def _build(cls, raw):
    if dataclasses.is_dataclass(raw):
        return raw
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{cls.__name__} expects a mapping, got {type(raw).__name__}")

    known = {f.name: f for f in dataclasses.fields(cls)}
    unknown = set(raw) - set(known)
    if unknown:
        raise ConfigurationError(f"unknown {cls.__name__} option(s): {sorted(unknown)}")

    kwargs = {}
    for key, value in raw.items():
        ftype = known[key].type
        if ftype in _ENUMS:
            kwargs[key] = _coerce_enum(ftype, value)
        elif ftype == List[ParamConf]:
            kwargs[key] = [_build(ParamConf, p) for p in value]
        elif isinstance(ftype, type) and dataclasses.is_dataclass(ftype):
            kwargs[key] = _build(ftype, value)
        else:
            kwargs[key] = value
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ConfigurationError(f"incomplete {cls.__name__}: {e}") from e
