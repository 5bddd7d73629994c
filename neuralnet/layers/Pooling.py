import logging

import numpy as np

from ..config import LayerType, PoolMethod
from ..exceptions import ConfigurationError, ShapeError, UnsupportedMethodError
from ..helpers.Backend import backend
from ..helpers.Blob import Blob
from .Layer import Layer

logger = logging.getLogger(__name__)


def spatial_dims(shape):
    """(batch, channels, height, width) of a source with more than two dims."""
    dim = len(shape)
    if dim <= 2:
        raise ShapeError(f"need a source with more than 2 dims, got shape {tuple(shape)}")
    width = shape[dim - 1]
    height = shape[dim - 2]
    channels = shape[dim - 3] if dim > 3 else 1
    return shape[0], channels, height, width


def pooled_size(size, kernel, stride, pad=0):
    return (size + 2 * pad - kernel) // stride + 1


# ================== generic pooling: window grids ==================
def _window_indices(kernel, stride, pooled_h, pooled_w):
    # Broadcast window start positions with kernel offsets:
    # h_all: (H_out, 1, k, 1), w_all: (1, W_out, 1, k)
    k_indices = backend.arange(kernel)
    h_starts = backend.arange(pooled_h) * stride
    w_starts = backend.arange(pooled_w) * stride
    h_all = h_starts[:, None, None, None] + k_indices[None, None, :, None]
    w_all = w_starts[None, :, None, None] + k_indices[None, None, None, :]
    return h_all, w_all


def pool(src, kernel, stride, method, pooled_h, pooled_w):
    """
    src: (B, C, H, W) -> (B, C, H_out, W_out).
    MAX takes window maxima, AVG takes window sums times 1/kernel^2.
    """
    h_all, w_all = _window_indices(kernel, stride, pooled_h, pooled_w)
    # (B, C, H_out, W_out, k, k)
    windows = src[:, :, h_all, w_all]
    if method == PoolMethod.MAX:
        return backend.max(windows, axis=(4, 5))
    if method == PoolMethod.AVG:
        return backend.sum(windows, axis=(4, 5)) * (1.0 / (kernel * kernel))
    raise UnsupportedMethodError(f"unknown pooling method {method!r}")


def unpool(src, pooled, grad, kernel, stride, method):
    """
    Gradient of pool() w.r.t. src.

    MAX sends each output gradient to every window input that equals the
    pooled value; AVG spreads it equally over the window.
    """
    pooled_h, pooled_w = pooled.shape[2], pooled.shape[3]
    h_all, w_all = _window_indices(kernel, stride, pooled_h, pooled_w)
    if method == PoolMethod.MAX:
        windows = src[:, :, h_all, w_all]
        hits = windows == pooled[:, :, :, :, None, None]
        contrib = hits * grad[:, :, :, :, None, None]
    elif method == PoolMethod.AVG:
        contrib = backend.broadcast_to(
            grad[:, :, :, :, None, None] * (1.0 / (kernel * kernel)),
            grad.shape + (kernel, kernel),
        )
    else:
        raise UnsupportedMethodError(f"unknown pooling method {method!r}")
    gsrc = backend.zeros(src.shape, dtype=src.dtype)
    backend.add_at(gsrc, (slice(None), slice(None), h_all, w_all), contrib)
    return gsrc


# ================== index-tracking pooling: explicit loops ==================
def max_pool_with_mask(src, kernel, stride, pad, out, mask):
    """
    Max pooling that records, per output cell, the in-plane index
    h * width + w of the first maximum in row-major scan order of the window
    clamped to the unpadded input.
    """
    B, C, H, W = src.shape
    pooled_h, pooled_w = out.shape[2], out.shape[3]
    for ph in range(pooled_h):
        hstart = ph * stride - pad
        hend = min(hstart + kernel, H)
        hstart = max(hstart, 0)
        for pw in range(pooled_w):
            wstart = pw * stride - pad
            wend = min(wstart + kernel, W)
            wstart = max(wstart, 0)
            # Vectorized over batch and channel dimensions
            window = backend.reshape(src[:, :, hstart:hend, wstart:wend], (B, C, -1))
            arg = backend.argmax(window, axis=-1)
            out[:, :, ph, pw] = np.take_along_axis(window, arg[:, :, None], axis=-1)[:, :, 0]
            win_w = wend - wstart
            mask[:, :, ph, pw] = (hstart + arg // win_w) * W + wstart + arg % win_w


def max_unpool_with_mask(grad, mask, gsrc):
    B, C, H, W = gsrc.shape
    gsrc[...] = 0
    flat = backend.reshape(gsrc, (B * C, H * W))
    rows = backend.arange(B * C)[:, None]
    backend.add_at(
        flat,
        (rows, backend.reshape(mask, (B * C, -1))),
        backend.reshape(grad, (B * C, -1)),
    )


def avg_pool_padded(src, kernel, stride, pad, out):
    """Average over windows clamped to the input, divided by the padded window size."""
    B, C, H, W = src.shape
    pooled_h, pooled_w = out.shape[2], out.shape[3]
    for ph in range(pooled_h):
        hstart = ph * stride - pad
        hend = min(hstart + kernel, H + pad)
        for pw in range(pooled_w):
            wstart = pw * stride - pad
            wend = min(wstart + kernel, W + pad)
            pool_size = (hend - hstart) * (wend - wstart)
            hs, he = max(hstart, 0), min(hend, H)
            ws, we = max(wstart, 0), min(wend, W)
            out[:, :, ph, pw] = backend.sum(src[:, :, hs:he, ws:we], axis=(2, 3)) / pool_size


def avg_unpool_padded(grad, kernel, stride, pad, gsrc):
    B, C, H, W = gsrc.shape
    pooled_h, pooled_w = grad.shape[2], grad.shape[3]
    gsrc[...] = 0
    for ph in range(pooled_h):
        hstart = ph * stride - pad
        hend = min(hstart + kernel, H + pad)
        for pw in range(pooled_w):
            wstart = pw * stride - pad
            wend = min(wstart + kernel, W + pad)
            pool_size = (hend - hstart) * (wend - wstart)
            hs, he = max(hstart, 0), min(hend, H)
            ws, we = max(wstart, 0), min(wend, W)
            gsrc[:, :, hs:he, ws:we] += grad[:, :, ph, pw][:, :, None, None] / pool_size


class Pooling(Layer):
    """
    Spatial max/average pooling.

    kind POOLING recomputes the arg-max in backward and supports no padding;
    kind CPOOLING keeps the arg-max indices from forward (book-keeping as in
    Caffe) and supports symmetric padding. Only the batch/channel axes may be
    partitioned; windows are never split.
    """
    KINDS = (LayerType.POOLING, LayerType.CPOOLING)

    def __init__(self, kind=LayerType.POOLING, rng=None):
        super().__init__(rng=rng)
        if kind not in self.KINDS:
            raise ConfigurationError(f"{kind} is not a pooling layer kind")
        self.kind = kind
        self.kernel = self.stride = 0
        self.pad = 0
        self.pool = PoolMethod.MAX
        self.batchsize = self.channels = self.height = self.width = 0
        self.pooled_height = self.pooled_width = 0
        # flat in-plane arg-max indices, CPOOLING + MAX only
        self.mask_ = Blob(dtype=np.int64)

    def setup(self, conf, srclayers):
        super().setup(conf, srclayers)
        self._check_num_sources(srclayers, 1)
        pool_conf = conf.pooling_conf
        self.kernel = int(pool_conf.kernel)
        self.stride = int(pool_conf.stride)
        self.pad = int(pool_conf.pad)
        self.pool = pool_conf.pool
        if self.kernel <= 0:
            raise ConfigurationError(f"pooling kernel must be positive, got {self.kernel}")
        if self.stride <= 0:
            raise ConfigurationError(f"pooling stride must be positive, got {self.stride}")
        if not 0 <= self.pad < self.kernel:
            raise ConfigurationError(f"pooling pad must be in [0, kernel), got {self.pad}")
        if self.pool not in (PoolMethod.MAX, PoolMethod.AVG):
            raise ConfigurationError(
                f"pooling only supports MAX and AVG, got {self.pool!r}"
            )
        if self.kind == LayerType.POOLING and self.pad != 0:
            raise ConfigurationError("padding needs the index-tracking pooling layer (CPOOLING)")

        srcshape = srclayers[0].data(self).shape
        self.batchsize, self.channels, self.height, self.width = spatial_dims(srcshape)
        if min(self.height, self.width) + 2 * self.pad < self.kernel:
            raise ShapeError(
                f"pooling kernel {self.kernel} larger than input {self.height}x{self.width}"
            )
        self.pooled_height = pooled_size(self.height, self.kernel, self.stride, self.pad)
        self.pooled_width = pooled_size(self.width, self.kernel, self.stride, self.pad)
        self.data_.reshape((self.batchsize, self.channels, self.pooled_height, self.pooled_width))
        self.grad_.reshape_like(self.data_)
        if self.kind == LayerType.CPOOLING and self.pool == PoolMethod.MAX:
            self.mask_.reshape_like(self.data_)
        logger.debug(
            "%s '%s' %s kernel=%d stride=%d pad=%d -> %s",
            self.kind.name, self.name, self.pool.name,
            self.kernel, self.stride, self.pad, self.data_.shape,
        )

    def _src4(self, blob):
        return backend.reshape(blob.data, (self.batchsize, self.channels, self.height, self.width))

    def compute_feature(self, flag, srclayers):
        src = self._src4(srclayers[0].mutable_data(self))
        data = self.data_.data
        if self.kind == LayerType.POOLING:
            data[...] = pool(src, self.kernel, self.stride, self.pool,
                             self.pooled_height, self.pooled_width)
        elif self.pool == PoolMethod.MAX:
            max_pool_with_mask(src, self.kernel, self.stride, self.pad, data, self.mask_.data)
        elif self.pool == PoolMethod.AVG:
            avg_pool_padded(src, self.kernel, self.stride, self.pad, data)
        else:
            raise UnsupportedMethodError(f"unknown pooling method {self.pool!r}")

    def compute_gradient(self, flag, srclayers):
        gsrcblob = srclayers[0].mutable_grad(self)
        if gsrcblob is None:
            return
        gsrc = self._src4(gsrcblob)
        grad = self.grad_.data
        if self.kind == LayerType.POOLING:
            src = self._src4(srclayers[0].mutable_data(self))
            gsrc[...] = unpool(src, self.data_.data, grad, self.kernel, self.stride, self.pool)
        elif self.pool == PoolMethod.MAX:
            max_unpool_with_mask(grad, self.mask_.data, gsrc)
        elif self.pool == PoolMethod.AVG:
            avg_unpool_padded(grad, self.kernel, self.stride, self.pad, gsrc)
        else:
            raise UnsupportedMethodError(f"unknown pooling method {self.pool!r}")
