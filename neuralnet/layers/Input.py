from ..config import LayerType
from ..exceptions import ShapeError
from ..helpers.Backend import backend
from .Layer import Layer


class InputLayer(Layer):
    """
    Holds externally fed data for the first layers of a graph.

    By default it has no gradient: mutable_grad() returns None, which is how
    downstream layers learn that they need not back-propagate into it. With
    keep_grad=True it exposes a grad blob shaped like its data, so the
    gradient w.r.t. the fed input can be read back.
    """
    kind = LayerType.INPUT

    def __init__(self, shape=None, keep_grad=False, rng=None):
        super().__init__(rng=rng)
        self.keep_grad = keep_grad
        self.shape = tuple(shape) if shape is not None else None
        if shape is not None:
            self.data_.reshape(shape)
            self.grad_.reshape(shape)

    def feed(self, x):
        x = backend.astype_default(backend.ensure_array(x))
        if self.shape is not None and x.shape != self.shape:
            raise ShapeError(f"input '{self.name}' expects shape {self.shape}, got {x.shape}")
        self.data_.copy_from(x, reshape=True)
        self.grad_.reshape_like(self.data_)
        return self

    def compute_feature(self, flag, srclayers):
        pass

    def compute_gradient(self, flag, srclayers):
        pass

    def mutable_grad(self, requester=None):
        return self.grad_ if self.keep_grad else None
