"""
exceptions.py - Exception classes raised by neuralnet layers

Every failure in this package is a configuration or programming defect, so
these are raised immediately from setup() or the compute methods and are
never caught inside the library.
"""


class LayerError(Exception):
    """Base exception for all layer errors.

    Catching this exception will catch every error raised by the package.
    """
    pass


class ConfigurationError(LayerError, ValueError):
    """Raised when a layer configuration is invalid.

    This exception is raised when:
    - Hyperparameters are out of their valid range (even LRN window,
      non-positive kernel, dropout ratio outside [0, 1))
    - A layer gets the wrong number of source layers
    - An RBM layer has no partner, or more than one
    - A partitioned dimension is not evenly divisible
    """
    pass


class ShapeError(LayerError, ValueError):
    """Raised when a source buffer shape does not fit the layer.

    This exception is raised when:
    - A source has too few dimensions for the layer
    - The kernel does not fit into the (padded) input
    """
    pass


class UnsupportedMethodError(LayerError, NotImplementedError):
    """Raised when an unknown method reaches a compute path.

    setup() rejects unknown pooling methods; this one signals that a layer
    was mutated into an unsupported state after setup.
    """
    pass
