# neuralnet/helpers/Backend.py
import logging

import numpy as np

logger = logging.getLogger(__name__)


class Backend:
    """Array backend shared by every layer (NumPy, float32 by default)."""
    def __init__(self, default_float=np.float32):
        self.default_float = default_float
        self.xp = np
        logger.info("Using CPU backend (NumPy %s)", np.__version__)

    def ensure_array(self, x, dtype=None, copy=False):
        """
        Ensure 'x' is an ndarray.
        Accepts list/tuple/np arrays; returns np.ndarray.
        """
        if isinstance(x, np.ndarray):
            if dtype is not None and x.dtype != dtype:
                return x.astype(dtype, copy=copy)
            return x.copy() if copy else x
        arr = np.asarray(x)
        if dtype is not None and arr.dtype != dtype:
            arr = arr.astype(dtype, copy=False)
        return arr

    def astype_default(self, x):
        """Cast to default float dtype if needed."""
        if hasattr(x, "dtype") and x.dtype == self.default_float:
            return x
        return self.ensure_array(x, dtype=self.default_float)

    # -------- array creation --------
    def zeros(self, *args, **kwargs):
        kwargs.setdefault("dtype", self.default_float)
        return self.xp.zeros(*args, **kwargs)

    # -------- math / linalg (thin wrappers) --------
    def sum(self, x, axis=None, keepdims=False):  return self.xp.sum(x, axis=axis, keepdims=keepdims)
    def max(self, x, axis=None, keepdims=False):  return self.xp.max(x, axis=axis, keepdims=keepdims)
    def argmax(self, x, axis=None):               return self.xp.argmax(x, axis=axis)
    def exp(self, x):                              return self.xp.exp(x)
    def tanh(self, x):                             return self.xp.tanh(x)
    def power(self, x, p):                         return self.xp.power(x, p)
    def transpose(self, x, axes=None):            return self.xp.transpose(x, axes)
    def reshape(self, x, shape):                   return self.xp.reshape(x, shape)
    def matmul(self, a, b):                        return self.xp.matmul(a, b)
    def arange(self, *args, **kwargs):             return self.xp.arange(*args, **kwargs)
    def add_at(self, x, indices, values):          return self.xp.add.at(x, indices, values)

    # -------- sliding window (conv helper) --------
    def sliding_window_view(self, x, window_shape, axis=None, writeable=False):
        return self.xp.lib.stride_tricks.sliding_window_view(
            x, window_shape, axis=axis, writeable=writeable
        )

    # -------- randomness / padding --------
    def rng(self, seed=None):
        """New random stream; pass it explicitly to the layers that sample."""
        return self.xp.random.default_rng(seed)

    def pad(self, array, pad_width, mode="constant", **kwargs):
        return self.xp.pad(array, pad_width, mode=mode, **kwargs)

    # -------- delegate unknown attrs to xp --------
    def __getattr__(self, name):
        return getattr(self.xp, name)


# Global backend instance - can be overridden
backend = Backend()
