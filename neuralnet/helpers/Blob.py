import numpy as np

from .Backend import backend


class Blob:
    """
    Dense buffer with a shape. count is the product of the dimensions.

    Layers reshape their blobs once in setup() and afterwards only overwrite
    the contents in place, so views taken with the tensor helpers stay valid.
    """

    def __init__(self, shape=(), dtype=None):
        self.dtype = dtype or backend.default_float
        self._data = backend.zeros(tuple(shape), dtype=self.dtype)

    @property
    def shape(self):
        return tuple(self._data.shape)

    @property
    def count(self):
        return int(self._data.size)

    @property
    def data(self):
        return self._data

    def reshape(self, shape):
        shape = tuple(int(s) for s in shape)
        if shape != self.shape:
            self._data = backend.zeros(shape, dtype=self.dtype)
        return self

    def reshape_like(self, other):
        return self.reshape(other.shape)

    def copy_from(self, other, reshape=False):
        src = other.data if isinstance(other, Blob) else backend.ensure_array(other)
        if reshape:
            self.reshape(src.shape)
        elif src.size != self.count:
            raise ValueError(
                f"cannot copy {src.size} values into a blob of count {self.count}"
            )
        self._data[...] = np.reshape(src, self.shape)
        return self

    def zero(self):
        self._data[...] = 0
        return self

    def __repr__(self):
        return f"Blob(shape={self.shape}, dtype={np.dtype(self.dtype).name})"
