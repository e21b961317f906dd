"""
"""
# read version from installed package
from importlib.metadata import version

__version__ = version("mobasim")

from . import bloch  # noqa

__all__ = ["bloch"]
