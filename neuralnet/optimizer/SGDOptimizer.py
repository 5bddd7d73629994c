from ..helpers.Backend import backend


class SGDOptimizer:
    """
    Plain SGD over Param objects (e.g. collected from layer.get_params()).

    Each Param's lr_scale / wd_scale multiply the global rates.
    """
    def __init__(self, params, lr=1e-2, weight_decay=0.0, momentum=0.0):
        self.params = list(params)  # list of Param
        self.lr = lr
        self.wd = weight_decay
        self.momentum = momentum
        # velocity keyed by param id
        self._v = {}

    def step(self):
        for p in self.params:
            data = p.data.data
            g = p.grad.data
            lr = self.lr * p.lr_scale
            wd = self.wd * p.wd_scale
            if wd != 0.0:
                g = g + wd * data  # L2 weight decay
            if self.momentum != 0.0:
                pid = id(p)
                if pid not in self._v:
                    self._v[pid] = backend.zeros(data.shape, dtype=data.dtype)
                v = self._v[pid]
                v[...] = self.momentum * v - lr * g
                data += v
            else:
                data -= lr * g

    def zero_grad(self):
        for p in self.params:
            p.grad.zero()
