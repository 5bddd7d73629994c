from .Param import Param

__all__ = ["Param"]
