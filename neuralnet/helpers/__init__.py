from .Backend import backend, Backend
from .Blob import Blob
from .metric import Metric
from .tensor import tensor1, tensor2, tensor3, tensor4

__all__ = [
    "backend",
    "Backend",
    "Blob",
    "Metric",
    "tensor1",
    "tensor2",
    "tensor3",
    "tensor4",
]
