import logging

from ..exceptions import ConfigurationError
from ..helpers.Backend import backend
from ..helpers.Blob import Blob

logger = logging.getLogger(__name__)


class Layer:
    """
    Common state of every layer: the data_/grad_ blobs, the config and the
    partition settings. Subclasses override setup / compute_feature /
    compute_gradient, and get_params when they own parameters.

    Source layers are passed in on every call and never stored as owned
    objects; a layer only reads their data and writes their grad.
    """
    kind = None

    def __init__(self, rng=None):
        self.rng = rng if rng is not None else backend.rng()
        self.conf = None
        self.name = ""
        self.partition_dim = 0
        self.num_partitions = 1
        self.data_ = Blob()
        self.grad_ = Blob()

    def setup(self, conf, srclayers):
        self.conf = conf
        self.name = conf.name
        self.partition_dim = conf.partition_dim
        self.num_partitions = conf.num_partitions

    def compute_feature(self, flag, srclayers):
        raise NotImplementedError

    def compute_gradient(self, flag, srclayers):
        raise NotImplementedError

    def get_params(self):
        # Return list of Param objects, weight first then bias
        return []

    # ----- protocol used by the layers that consume this one -----
    def data(self, requester=None):
        return self.data_

    def mutable_data(self, requester=None):
        return self.data_

    def grad(self, requester=None):
        return self.grad_

    def mutable_grad(self, requester=None):
        return self.grad_

    # ----- helpers -----
    def _check_num_sources(self, srclayers, expected):
        if len(srclayers) != expected:
            raise ConfigurationError(
                f"{type(self).__name__} '{self.name}' needs {expected} source "
                f"layer(s), got {len(srclayers)}"
            )

    def _partitioned(self, value, what):
        """Shrink value by the partition count when partitioned over it."""
        if self.partition_dim <= 0:
            return value
        if value % self.num_partitions != 0:
            raise ConfigurationError(
                f"{what}={value} of layer '{self.name}' is not divisible by "
                f"{self.num_partitions} partitions"
            )
        return value // self.num_partitions

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r}, shape={self.data_.shape})"
