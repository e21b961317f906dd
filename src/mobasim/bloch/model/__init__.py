"""Simulation configuration and driver."""

from . import bloch as _bloch
from . import config as _config

from .bloch import *  # noqa
from .config import *  # noqa

__all__ = []
__all__.extend(_bloch.__all__)
__all__.extend(_config.__all__)
