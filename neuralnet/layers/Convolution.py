import logging

from ..config import LayerType, ParamInitConf, InitMethod
from ..exceptions import ConfigurationError, ShapeError
from ..helpers.Backend import backend
from ..helpers.Blob import Blob
from ..helpers.tensor import tensor2, tensor3
from ..params.Param import Param
from .Layer import Layer
from .Pooling import spatial_dims

logger = logging.getLogger(__name__)


# Column layout shared by both extraction styles:
#   row    = c * k * k + kh * k + kw
#   column = oh * conv_w + ow


# ----- expression style: sliding-window views and an index-grid scatter -----
def unpack_patch2col(img, kernel, stride, pad, conv_h, conv_w):
    """img: (C, H, W) -> col: (C*k*k, conv_h*conv_w)."""
    if pad > 0:
        img = backend.pad(img, ((0, 0), (pad, pad), (pad, pad)))
    channels = img.shape[0]
    # (C, H_pad-k+1, W_pad-k+1, k, k), then keep every stride-th window
    windows = backend.sliding_window_view(img, (kernel, kernel), axis=(1, 2))
    windows = windows[:, ::stride, ::stride][:, :conv_h, :conv_w]
    # (C, k, k, conv_h, conv_w)
    patches = backend.transpose(windows, (0, 3, 4, 1, 2))
    return backend.reshape(patches, (channels * kernel * kernel, conv_h * conv_w))


def pack_col2patch(col, channels, height, width, kernel, stride, pad, conv_h, conv_w):
    """Inverse of unpack_patch2col: scatter-add overlapping patches, crop the padding."""
    # Create all patch position indices at once
    k_indices = backend.arange(kernel)
    h_starts = backend.arange(conv_h) * stride
    w_starts = backend.arange(conv_w) * stride
    # (k, k, conv_h, conv_w) absolute positions inside the padded image
    h_all = k_indices[:, None, None, None] + h_starts[None, None, :, None]
    w_all = k_indices[None, :, None, None] + w_starts[None, None, None, :]
    patches = backend.reshape(col, (channels, kernel, kernel, conv_h, conv_w))
    padded = backend.zeros((channels, height + 2 * pad, width + 2 * pad), dtype=col.dtype)
    backend.add_at(padded, (slice(None), h_all, w_all), patches)
    return padded[:, pad:pad + height, pad:pad + width]


# ----- explicit-kernel style: one strided slice per (channel, kh, kw) row -----
def im2col(img, kernel, stride, pad, conv_h, conv_w, col):
    """Fill col (C*k*k, conv_h*conv_w) from img (C, H, W)."""
    channels, height, width = img.shape
    padded = backend.zeros((channels, height + 2 * pad, width + 2 * pad), dtype=img.dtype)
    padded[:, pad:pad + height, pad:pad + width] = img
    h_span = stride * (conv_h - 1) + 1
    w_span = stride * (conv_w - 1) + 1
    for c in range(channels * kernel * kernel):
        w_offset = c % kernel
        h_offset = (c // kernel) % kernel
        c_im = c // kernel // kernel
        rows = padded[c_im, h_offset:h_offset + h_span:stride, w_offset:w_offset + w_span:stride]
        col[c] = backend.reshape(rows, (-1,))
    return col


def col2im(col, channels, height, width, kernel, stride, pad, conv_h, conv_w, img):
    """Accumulate col back into img (C, H, W), dropping the padding border."""
    padded = backend.zeros((channels, height + 2 * pad, width + 2 * pad), dtype=col.dtype)
    h_span = stride * (conv_h - 1) + 1
    w_span = stride * (conv_w - 1) + 1
    for c in range(channels * kernel * kernel):
        w_offset = c % kernel
        h_offset = (c // kernel) % kernel
        c_im = c // kernel // kernel
        padded[c_im, h_offset:h_offset + h_span:stride, w_offset:w_offset + w_span:stride] += \
            backend.reshape(col[c], (conv_h, conv_w))
    img[...] = padded[:, pad:pad + height, pad:pad + width]
    return img


class Convolution(Layer):
    """
    2-d convolution expressed as patch extraction plus a matrix product.

    kind CONVOLUTION extracts patches with sliding-window views; kind
    CCONVOLUTION uses explicit per-kernel-offset loops (im2col/col2im). Both
    give the same numbers.
    """
    KINDS = (LayerType.CONVOLUTION, LayerType.CCONVOLUTION)

    def __init__(self, kind=LayerType.CONVOLUTION, rng=None):
        super().__init__(rng=rng)
        if kind not in self.KINDS:
            raise ConfigurationError(f"{kind} is not a convolution layer kind")
        self.kind = kind
        self.kernel = self.pad = self.stride = 0
        self.batchsize = self.channels = self.height = self.width = 0
        self.col_height = self.col_width = 0
        self.conv_height = self.conv_width = self.num_filters = 0
        self.weight = None
        self.bias = None
        self.col_data_ = Blob()
        self.col_grad_ = Blob()

    def setup(self, conf, srclayers):
        super().setup(conf, srclayers)
        self._check_num_sources(srclayers, 1)
        conv_conf = conf.convolution_conf
        self.kernel = int(conv_conf.kernel)
        if self.kernel <= 0:
            raise ConfigurationError("Filter size cannot be zero.")
        self.pad = int(conv_conf.pad)
        self.stride = int(conv_conf.stride)
        if self.pad < 0 or self.stride <= 0:
            raise ConfigurationError(
                f"convolution needs pad >= 0 and stride > 0, got pad={self.pad} stride={self.stride}"
            )
        if conv_conf.num_filters <= 0:
            raise ConfigurationError(f"num_filters must be positive, got {conv_conf.num_filters}")
        self.num_filters = self._partitioned(int(conv_conf.num_filters), "num_filters")

        srcshape = srclayers[0].data(self).shape
        self.batchsize, self.channels, self.height, self.width = spatial_dims(srcshape)
        if min(self.height, self.width) + 2 * self.pad < self.kernel:
            raise ShapeError(
                f"kernel {self.kernel} does not fit input {self.height}x{self.width} with pad {self.pad}"
            )
        self.conv_height = (self.height + 2 * self.pad - self.kernel) // self.stride + 1
        self.conv_width = (self.width + 2 * self.pad - self.kernel) // self.stride + 1
        self.col_height = self.channels * self.kernel * self.kernel
        self.col_width = self.conv_height * self.conv_width
        shape = (self.batchsize, self.num_filters, self.conv_height, self.conv_width)
        self.data_.reshape(shape)
        self.grad_.reshape(shape)
        self.col_data_.reshape((self.col_height, self.col_width))
        self.col_grad_.reshape((self.col_height, self.col_width))

        self.weight = Param.create(
            conf.param(0), ParamInitConf(type=InitMethod.GAUSSIAN, std=0.01))
        self.bias = Param.create(conf.param(1))
        self.weight.setup((self.num_filters, self.col_height)).init_values(self.rng)
        self.bias.setup((self.num_filters,)).init_values(self.rng)
        logger.debug(
            "%s '%s' %d filters k=%d s=%d p=%d: %s -> %s",
            self.kind.name, self.name, self.num_filters, self.kernel,
            self.stride, self.pad, srcshape, shape,
        )

    def get_params(self):
        return [self.weight, self.bias]

    def _src4(self, blob):
        return backend.reshape(blob.data, (self.batchsize, self.channels, self.height, self.width))

    def _extract(self, img):
        col = tensor2(self.col_data_)
        if self.kind == LayerType.CONVOLUTION:
            col[...] = unpack_patch2col(img, self.kernel, self.stride, self.pad,
                                        self.conv_height, self.conv_width)
        else:
            im2col(img, self.kernel, self.stride, self.pad,
                   self.conv_height, self.conv_width, col)
        return col

    def _project_back(self, gcol, out):
        if self.kind == LayerType.CONVOLUTION:
            out[...] = pack_col2patch(gcol, self.channels, self.height, self.width,
                                      self.kernel, self.stride, self.pad,
                                      self.conv_height, self.conv_width)
        else:
            col2im(gcol, self.channels, self.height, self.width, self.kernel,
                   self.stride, self.pad, self.conv_height, self.conv_width, out)

    def compute_feature(self, flag, srclayers):
        src = self._src4(srclayers[0].mutable_data(self))
        data = tensor3(self.data_)
        weight = tensor2(self.weight.mutable_data())
        bias = self.bias.mutable_data().data
        for n in range(self.batchsize):
            col = self._extract(src[n])
            data[n] = backend.matmul(weight, col)
        data += bias[None, :, None]

    def compute_gradient(self, flag, srclayers):
        src = self._src4(srclayers[0].mutable_data(self))
        weight = tensor2(self.weight.mutable_data())
        grad = tensor3(self.grad_)
        gcol = tensor2(self.col_grad_)
        gweight = tensor2(self.weight.mutable_grad())
        gbias = self.bias.mutable_grad().data
        gsrcblob = srclayers[0].mutable_grad(self)
        gsrc = self._src4(gsrcblob) if gsrcblob is not None else None

        gbias[...] = backend.sum(grad, axis=(0, 2))
        gweight[...] = 0.0
        for n in range(self.batchsize):
            col = self._extract(src[n])
            gweight += backend.matmul(grad[n], backend.transpose(col))
            if gsrc is not None:
                gcol[...] = backend.matmul(backend.transpose(weight), grad[n])
                self._project_back(gcol, gsrc[n])
